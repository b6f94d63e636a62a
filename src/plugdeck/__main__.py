#!/usr/bin/env python3
"""Command-line entry point: ``plugdeck`` / ``python -m plugdeck``."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from plugdeck import __version__
from plugdeck.config import Settings, get_settings
from plugdeck.logger import setup_logger

logger = logging.getLogger("plugdeck")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plugdeck",
        description="Browse, fetch, remove and run plugins from remote catalogs.",
    )
    parser.add_argument(
        "--source",
        action="append",
        metavar="LOCATOR",
        help="Catalog source (owner/repo[/path] or listing URL). Repeatable; "
        "replaces the configured sources.",
    )
    parser.add_argument(
        "--plugin-dir",
        type=Path,
        help="Directory plugins are fetched into.",
    )
    parser.add_argument(
        "--alias-file",
        type=Path,
        help="Alias ledger file to keep in sync.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging to the log file.",
    )
    parser.add_argument("--version", action="version", version=f"plugdeck {__version__}")
    return parser


def resolve_settings(args: argparse.Namespace, base: Settings | None = None) -> Settings:
    settings = base or get_settings()
    overrides: dict = {}
    if args.source:
        overrides["sources"] = args.source
    if args.plugin_dir:
        overrides["plugin_dir"] = args.plugin_dir.expanduser()
    if args.alias_file:
        overrides["alias_file"] = args.alias_file.expanduser()
    if args.debug:
        overrides["debug"] = True
    return settings.model_copy(update=overrides) if overrides else settings


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = resolve_settings(args)
    setup_logger(settings)

    from plugdeck.dashboard.app import DashboardApp
    from plugdeck.dashboard.runtime import DashboardRuntime
    from plugdeck.dashboard.services import build_services
    from plugdeck.dashboard.state import DashboardState

    services = build_services(settings)
    services.storage.ensure_root()
    logger.info(
        "Starting plugdeck %s with %d source(s), plugins in %s",
        __version__,
        len(settings.sources),
        settings.plugin_dir,
    )
    DashboardApp(DashboardRuntime(DashboardState(services))).run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
