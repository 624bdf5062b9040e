"""
CardWatch — Admin Unmerge Script

Splits a merged card back into one card per marketplace. Use it when the
matcher merged two different cards.

Usage:
    python scripts/unmerge_card.py 1f0c8a4e-8d7b-4a53-9a53-2f1a6f3b9c11
    python scripts/unmerge_card.py 1f0c8a4e-... --database-url sqlite+aiosqlite:///cardwatch.db
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from cardwatch.config import settings
from cardwatch.main import configure_logging, create_db_engine
from cardwatch.services.card_service import CardService


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Split a merged CardWatch card back into single-source cards.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/unmerge_card.py 1f0c8a4e-8d7b-4a53-9a53-2f1a6f3b9c11
  python scripts/unmerge_card.py 1f0c8a4e-... --database-url sqlite+aiosqlite:///cardwatch.db
""",
    )
    parser.add_argument("card_id", type=str, help="ID of the merged card.")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help=f"Database URL (default: DATABASE_URL setting, {settings.DATABASE_URL}).",
    )
    return parser.parse_args()


async def run_unmerge(card_id: str, database_url: str | None) -> bool:
    engine, session_factory = await create_db_engine(database_url)
    try:
        return await CardService(session_factory).unmerge_card(card_id)
    finally:
        await engine.dispose()


async def main() -> None:
    args = parse_args()
    configure_logging(settings.LOG_LEVEL)

    try:
        unmerged = await run_unmerge(args.card_id, args.database_url)
    except Exception as e:
        print(f"Failed to unmerge card: {e}", file=sys.stderr)
        sys.exit(1)

    if not unmerged:
        print(f"Card {args.card_id} does not exist or was never merged.", file=sys.stderr)
        sys.exit(2)
    print(f"Card {args.card_id} unmerged.")


if __name__ == "__main__":
    asyncio.run(main())
