"""plugdeck: terminal dashboard for fetching, removing and running plugins."""

__version__ = "0.1.0"
