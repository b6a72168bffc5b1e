"""Assign confirmation numbers to registrations created before they existed.

Registrations sharing a checkout session get one shared number; registrations
without a session each get their own.

    python -m scripts.backfill_confirmation_numbers --dry-run
    python -m scripts.backfill_confirmation_numbers --run
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random

from campreg.core.config import get_settings
from campreg.db.session import dispose_engine, get_sessionmaker
from campreg.services.confirmation_service import (
    BackfillSummary,
    backfill_confirmation_numbers,
)

LOGGER = logging.getLogger("backfill_confirmation_numbers")


async def run(*, dry_run: bool, seed: int | None) -> BackfillSummary:
    settings = get_settings()
    rng = random.Random(seed) if seed is not None else None
    sessionmaker = get_sessionmaker(settings.database_url)
    try:
        async with sessionmaker() as session:
            return await backfill_confirmation_numbers(
                session, dry_run=dry_run, rng=rng
            )
    finally:
        await dispose_engine(settings.database_url)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Backfill registration confirmation numbers"
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--dry-run", action="store_true", help="Show assignments without writing"
    )
    mode.add_argument("--run", action="store_true", help="Write confirmation numbers")
    parser.add_argument(
        "--seed", type=int, default=None, help="Seed the generator (testing only)"
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")
    dry_run = args.dry_run or not args.run

    summary = asyncio.run(run(dry_run=dry_run, seed=args.seed))

    if not summary.assigned:
        print("No registrations need confirmation numbers")
        return
    for registration_id, code in summary.assigned.items():
        print(f"{registration_id} -> {code}")
    verb = "Would assign" if dry_run else "Assigned"
    print(
        f"{verb} {len(summary.codes)} confirmation number(s) to "
        f"{len(summary.assigned)} registration(s): "
        f"{summary.groups} session group(s), {summary.orphans} orphan(s)"
    )
    if dry_run:
        print("Dry run only; re-run with --run to write changes")


if __name__ == "__main__":
    main()
