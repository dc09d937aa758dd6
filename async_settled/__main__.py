"""async-settled CLI entry point."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

env_file = Path.cwd() / ".env"
load_dotenv(env_file)

from async_settled import __version__
from async_settled.config import get_settings
from async_settled.correction import CorrectionTrigger
from async_settled.exceptions import StorageError
from async_settled.observability import configure_logging, initialize_logfire
from async_settled.storage import MongoStoreManager, create_store_manager
from async_settled.timeutils import to_micro_timestamp

logger = logging.getLogger(__name__)


def _mongo_stores() -> MongoStoreManager | None:
    settings = get_settings()
    if settings.storage_backend != "mongo":
        print(f"\nStorage backend is '{settings.storage_backend}', nothing to do.\n")
        return None
    return create_store_manager(settings)


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    settings = get_settings()
    dump = settings.model_dump(mode="json", exclude={"logfire_token"})
    dump["mongo"] = {
        **dump["mongo"],
        **MongoStoreManager(settings.mongo, settings.ledger).info(),
    }
    dump["mongo"].pop("operator_urls", None)
    print(yaml.safe_dump(dump, sort_keys=False))
    return 0


def cmd_ensure_indexes(args: argparse.Namespace) -> int:
    """Create settlement indexes for each operator."""
    stores = _mongo_stores()
    if stores is None:
        return 0

    async def run() -> None:
        try:
            for op_code in args.op_code:
                names = await stores.ensure_indexes(op_code)
                print(f"  {op_code}: {', '.join(names)}")
        finally:
            await stores.close()

    try:
        asyncio.run(run())
        return 0
    except StorageError as e:
        logger.error(f"Failed to ensure indexes: {e}")
        print(f"\nFailed: {e}\n")
        return 1


def cmd_ping(args: argparse.Namespace) -> int:
    """Check MongoDB connectivity."""
    stores = _mongo_stores()
    if stores is None:
        return 0

    async def run() -> bool:
        try:
            return await stores.ping()
        finally:
            await stores.close()

    healthy = asyncio.run(run())
    print(f"\nMongoDB {stores.info()['url']}: {'OK' if healthy else 'UNREACHABLE'}\n")
    return 0 if healthy else 1


def cmd_correction_check(args: argparse.Namespace) -> int:
    """Report whether a settlement time would be queued for recount now."""
    settings = get_settings()
    trigger = CorrectionTrigger(
        create_store_manager(settings),
        collection=settings.ledger.precount_fix_collection,
        tz=settings.ledger.timezone,
    )
    try:
        settled_time = to_micro_timestamp(args.settled_time)
    except ValueError as e:
        print(f"\n{e}\n")
        return 1

    bucket = trigger.elapsed_bucket(settled_time)
    if bucket is None:
        print(f"\n{settled_time}: current or unsettled hour, no correction\n")
    else:
        print(f"\n{settled_time}: hour {bucket} UTC has elapsed, correction would be queued\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="async-settled: settlement ledger maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"async-settled {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_indexes = subparsers.add_parser(
        "ensure-indexes",
        help="Create unique identity, settled_time and TTL indexes",
    )
    parser_indexes.add_argument(
        "--op-code",
        action="append",
        required=True,
        help="Operator code (repeatable)",
    )
    parser_indexes.set_defaults(func=cmd_ensure_indexes)

    parser_ping = subparsers.add_parser(
        "ping",
        help="Check MongoDB connectivity",
    )
    parser_ping.set_defaults(func=cmd_ping)

    parser_check = subparsers.add_parser(
        "correction-check",
        help="Show whether a settlement time falls into an elapsed hour",
    )
    parser_check.add_argument(
        "--settled-time",
        required=True,
        help="Settlement epoch (seconds or milliseconds)",
    )
    parser_check.set_defaults(func=cmd_correction_check)

    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    settings = get_settings()
    configure_logging(settings)
    initialize_logfire(settings)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
