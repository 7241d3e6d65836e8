#!/usr/bin/env python3
"""tdsweb - A terminal client for the tdsweb query service."""

from __future__ import annotations

import argparse
import logging
import os
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(log_file: str | None, debug: bool) -> None:
    """Send logs to a file. The TUI owns the terminal, so there is no console handler."""
    if not log_file:
        logging.getLogger("tdsweb").addHandler(logging.NullHandler())
        return
    logging.basicConfig(
        filename=os.path.expanduser(log_file),
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tdsweb",
        description="A terminal client for the tdsweb query service",
        epilog="Example: tdsweb --server https://db.example.com",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--server",
        metavar="URL",
        help="Server base URL; the WebSocket endpoint is <URL>/ws (default: http://localhost:52441)",
    )
    parser.add_argument(
        "--settings",
        metavar="PATH",
        help="Path to settings JSON file (overrides ~/.tdsweb/settings.json)",
    )
    parser.add_argument("--export-dir", metavar="DIR", help="Directory exported files are saved to")
    parser.add_argument("--log-file", metavar="PATH", help="Write logs to PATH")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level (with --log-file)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    query_parser = subparsers.add_parser("query", help="Run one query and print the results")
    query_parser.add_argument("--username", "-u", required=True, help="Login name")
    query_parser.add_argument("--password", "-p", help="Password (prompted if omitted)")
    query_parser.add_argument("--database", "-d", help="Database to switch to before running the query")
    query_parser.add_argument("--query", "-q", help="SQL query to execute")
    query_parser.add_argument("--file", "-f", help="SQL file to execute")
    query_parser.add_argument(
        "--format",
        "-o",
        default="table",
        choices=["table", "csv", "json"],
        help="Output format (default: table)",
    )
    query_parser.add_argument(
        "--export",
        action="store_true",
        help="Ask the server for an Excel export and save it to the export directory",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    if args.settings:
        os.environ["TDSWEB_SETTINGS_PATH"] = str(args.settings)
    _configure_logging(args.log_file, args.debug)

    from .config import load_client_settings

    try:
        settings = load_client_settings(server_url=args.server, export_dir=args.export_dir)
    except (TypeError, ValueError) as exc:
        print(f"Error: {exc}")
        return 1

    if args.command == "query":
        from .domains.query.cli.commands import cmd_query

        return cmd_query(args, settings)

    from .domains.shell.app.main import TdswebApp

    app = TdswebApp(settings=settings)
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
