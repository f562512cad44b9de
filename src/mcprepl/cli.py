"""CLI entry point for the MCP REPL."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from mcprepl.mcp.config import (
    DEFAULT_ENV_FILE,
    ConfigError,
    load_env_file,
    merge_env,
)
from mcprepl.mcp.session.manager import SessionManager
from mcprepl.repl.commands import CommandDispatcher

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

EPILOG = """examples:
  mcprepl                  # load ./.env if present
  mcprepl .env-stdio       # load .env-stdio
  mcprepl .env-sse --log-file mcp.log --log-level DEBUG
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcprepl",
        description="Interactive client for Model Context Protocol servers",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "env_file",
        nargs="?",
        metavar="envFile",
        help=f"Path to a .env file to load on startup (default: {DEFAULT_ENV_FILE} if present)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to this file (the terminal belongs to the UI)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for --log-file (default: INFO)",
    )
    return parser


def configure_logging(log_file: str | None, level: str) -> None:
    """Send package logs to log_file; without one, logging stays silent."""
    if not log_file:
        return
    handler = logging.FileHandler(log_file)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger = logging.getLogger("mcprepl")
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, level.upper()))


def startup_env(env_file: str | None) -> dict[str, str]:
    """
    Process environment with the env file layered on top.

    An explicitly named file must exist; the default .env is optional.

    Raises:
        ConfigError: If an explicitly named file cannot be loaded.
    """
    base = dict(os.environ)
    if env_file:
        return merge_env(base, load_env_file(env_file))
    if Path(DEFAULT_ENV_FILE).is_file():
        return merge_env(base, load_env_file(DEFAULT_ENV_FILE))
    return base


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_file, args.log_level)

    try:
        env = startup_env(args.env_file)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if args.env_file:
        logger.info(f"Loaded environment from {args.env_file}")

    # Imported here so --help works without loading Textual
    from mcprepl.ui.app import ReplApp

    dispatcher = CommandDispatcher(SessionManager(), env=env)
    ReplApp(dispatcher).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
