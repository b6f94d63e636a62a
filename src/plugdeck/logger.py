import logging
from pathlib import Path

from plugdeck.config import Settings

ROOT_LOGGER = "plugdeck"


def setup_logger(settings: Settings, log_file: Path | None = None) -> logging.Logger:
    """Setup and configure the package logger.

    Records go to a file: while the dashboard runs, the terminal is owned
    by the TUI and anything written to stdout would corrupt the screen.
    """
    _logger = logging.getLogger(ROOT_LOGGER)

    if _logger.handlers:
        return _logger

    log_level = logging.DEBUG if settings.debug else logging.INFO
    _logger.setLevel(log_level)

    path = log_file or settings.log_file
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setLevel(log_level)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(formatter)
    _logger.addHandler(file_handler)
    _logger.propagate = False

    return _logger
