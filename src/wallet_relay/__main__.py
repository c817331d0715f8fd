"""CLI entry point for Wallet Relay.

Usage:
    python -m wallet_relay [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.config
import sys
from pathlib import Path
from typing import NoReturn

from pydantic import ValidationError

from wallet_relay import __version__
from wallet_relay.app import RelayApp
from wallet_relay.config import Settings, clear_settings_cache, get_settings
from wallet_relay.shutdown import GracefulShutdown

APP_NAME = "Wallet Relay"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="wallet-relay",
        description="Forward wallet addresses added to a watch list into a Telegram chat.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m wallet_relay                              Run the relay
  python -m wallet_relay --config-check               Validate config and exit
  python -m wallet_relay --dry-run                    Log messages instead of sending
  python -m wallet_relay --addresses-file list.txt    Watch another file
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )
    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log outbound messages instead of sending them",
    )
    parser.add_argument(
        "--addresses-file",
        default=None,
        help="Override the watched address file (default: from settings)",
    )
    parser.add_argument(
        "--no-announce",
        action="store_true",
        help="Do not announce already-listed addresses at startup",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # httpx logs every request URL, which includes the bot token
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_config_summary(settings: Settings, dry_run: bool) -> None:
    """Print a summary of the configuration."""
    summary = settings.redacted_summary()
    print(f"{APP_NAME} v{APP_VERSION}")
    print("Configuration:")
    print(f"  Bot token: {summary['bot_token']}")
    print(f"  Chat: {summary['chat_id']}")
    print(f"  Address file: {summary['addresses_file']}")
    print(f"  Notified file: {summary['notified_file']}")
    print(f"  Min interval: {summary['min_interval']}s")
    print(f"  Summary threshold: {summary['summary_threshold']}")
    print(f"  Log Level: {summary['log_level']}")
    print(f"  Dry Run: {dry_run}")
    print()


def validate_config() -> Settings | None:
    """Load configuration, printing every problem on failure.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            print(f"  {field}: {error['msg']}", file=sys.stderr)
        print(
            "Set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID in the environment or a .env file.",
            file=sys.stderr,
        )
        return None


def run_config_check(settings: Settings) -> int:
    """Report configuration and file availability."""
    print("Configuration is valid!")
    print()
    print_config_summary(settings, dry_run=settings.dry_run)

    addresses_file = settings.watch.addresses_file
    if addresses_file.exists():
        print(f"  Address file: found ({addresses_file})")
    else:
        print(f"  Address file: missing ({addresses_file}), will be watched until created")

    print()
    print("All checks passed. Ready to run.")
    return EXIT_SUCCESS


async def run_relay(settings: Settings, dry_run: bool, announce_existing: bool) -> int:
    """Run the relay until SIGINT/SIGTERM.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)

    try:
        async with GracefulShutdown() as shutdown:
            app = RelayApp(settings, dry_run=dry_run, announce_existing=announce_existing)
            shutdown.register_cleanup(app.stop)

            await app.start()
            logger.info("Relay running. Press Ctrl+C to stop.")

            await shutdown.wait()
            await app.stop()

        return EXIT_SUCCESS
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Relay failed: %s", e)
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    if args.addresses_file:
        settings.watch.addresses_file = Path(args.addresses_file)

    configure_logging(args.log_level or settings.log_level)

    if args.config_check:
        sys.exit(run_config_check(settings))

    dry_run = args.dry_run or settings.dry_run
    announce_existing = settings.announce_existing and not args.no_announce
    print_config_summary(settings, dry_run)

    sys.exit(asyncio.run(run_relay(settings, dry_run, announce_existing)))


if __name__ == "__main__":
    main()
