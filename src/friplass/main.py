"""Command line entry point for Friplass."""

import argparse
import json
import logging
import sys

from .config import load_config
from .models.listing import CATEGORY_LABELS
from .services.repository import JsonFileRecordStore, ListingRepository, RecordStoreError
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


def _serve(config: dict, args: argparse.Namespace) -> None:
    """Run the HTTP API on the configured host and port."""
    from .web.app import create_app

    server = config["server"]
    host = args.host or server["host"]
    port = args.port or server["port"]
    debug = args.debug or server["debug"]

    app = create_app(config)
    print(f"Starting server at http://{host}:{port}")
    app.run(host=host, port=port, debug=debug)


def _migrate_category(config: dict, args: argparse.Namespace) -> None:
    """Back up the listings file, then re-run the classifier over it."""
    store = JsonFileRecordStore(config["storage"]["listings_path"])
    if not args.dry_run:
        store.backup()

    report = ListingRepository(store).migrate_categories(dry_run=args.dry_run)
    print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))


def _stats(config: dict, args: argparse.Namespace) -> None:
    """Print per-category listing counts."""
    repository = ListingRepository(JsonFileRecordStore(config["storage"]["listings_path"]))
    counts = repository.counts_by_category()

    print("\n=== Friplass Statistics ===")
    print(f"Total listings: {sum(counts.values())}")
    print("\nBy category:")
    for category, count in counts.items():
        print(f"  {CATEGORY_LABELS.get(category, category)}: {count}")


COMMANDS = {
    "serve": _serve,
    "migrate-category": _migrate_category,
    "stats": _stats,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Friplass - listings for boat, motorhome and camping spots"
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Path to configuration file (default: ./config/config.yaml if present)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Bind address (overrides config)")
    serve.add_argument("--port", type=int, help="Port (overrides config)")
    serve.add_argument("--debug", action="store_true", help="Run Flask in debug mode")

    migrate = subparsers.add_parser(
        "migrate-category", help="Give every stored listing a canonical category"
    )
    migrate.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing",
    )

    subparsers.add_parser("stats", help="Show listing counts per category")

    return parser


def main(argv=None):
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    # Setup logging
    setup_logging("DEBUG" if args.verbose else None)

    try:
        config = load_config(args.config)
        COMMANDS[args.command](config, args)
    except (FileNotFoundError, ValueError, RecordStoreError) as e:
        logger.error(str(e))
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
