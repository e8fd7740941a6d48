"""CLI entrypoints for the ao-coverage service."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import check_host_dir, load_settings
from .errors import ConfigError
from .formats import default_registry
from .logging import configure_logging
from .service import run_service


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Log at debug level regardless of LOG_LEVEL.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ao-coverage",
        description="Host coverage reports and badges for uploaded test runs.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to .ao-coverage.yml or the directory containing it.",
    )

    subparsers.add_parser(
        "formats",
        help="List the report formats accepted for upload.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for ao-coverage commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "formats":
        for name in default_registry().list_formats():
            print(name)
        return

    if args.command == "serve":
        try:
            settings = load_settings(args.config)
            check_host_dir(settings.host_dir)
        except ConfigError as exc:
            parser.exit(1, f"{exc}\n")

        configure_logging(level="debug" if args.verbose else settings.log_level)

        run_service(settings)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


if __name__ == "__main__":
    main(sys.argv[1:])
