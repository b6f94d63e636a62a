"""plugdeck dashboard: browse remote plugin catalogs from the terminal.

Manages:
  - Catalog sources listed in settings (GitHub contents API or listing URLs)
  - Plugin storage at ~/.plugdeck/plugins
  - Batch fetch/remove of selected plugins
  - Running a fetched plugin's interactive component in its own panel
  - Shell aliases for fetched plugins at ~/.plugdeck/aliases.sh
"""
