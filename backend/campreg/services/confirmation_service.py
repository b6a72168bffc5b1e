"""Human-readable confirmation numbers for registrations.

One confirmation number is shared by every registration created in the same
checkout session; registrations without a session each get their own.
"""

from __future__ import annotations

import logging
import random
import secrets
import uuid
from collections import OrderedDict
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from campreg.models import Registration

logger = logging.getLogger(__name__)

CONFIRMATION_PREFIX = "EA-"
CONFIRMATION_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ123456789"
CONFIRMATION_LENGTH = 6
_MAX_ATTEMPTS = 20


@dataclass(slots=True)
class BackfillSummary:
    """Outcome of a confirmation-number backfill run."""

    groups: int = 0
    orphans: int = 0
    assigned: dict[uuid.UUID, str] = field(default_factory=dict)
    dry_run: bool = False

    @property
    def codes(self) -> set[str]:
        return set(self.assigned.values())


def generate_confirmation_number(rng: random.Random | None = None) -> str:
    """Return ``EA-`` followed by six unambiguous characters."""
    chooser = rng or secrets.SystemRandom()
    body = "".join(
        chooser.choice(CONFIRMATION_ALPHABET) for _ in range(CONFIRMATION_LENGTH)
    )
    return f"{CONFIRMATION_PREFIX}{body}"


async def _existing_codes(session: AsyncSession) -> set[str]:
    result = await session.execute(
        select(Registration.confirmation_number).where(
            Registration.confirmation_number.is_not(None)
        )
    )
    return {code for code in result.scalars().all() if code}


def _unique_code(taken: set[str], rng: random.Random | None) -> str:
    for _ in range(_MAX_ATTEMPTS):
        candidate = generate_confirmation_number(rng)
        if candidate not in taken:
            taken.add(candidate)
            return candidate
    raise RuntimeError("Failed to generate unique confirmation number")


async def assign_confirmation_number(
    session: AsyncSession,
    registration_ids: Sequence[uuid.UUID],
    *,
    rng: random.Random | None = None,
) -> str:
    """Give every registration in a checkout batch the same confirmation number.

    Reuses a number already present on any member of the batch.
    """
    result = await session.execute(
        select(Registration.confirmation_number).where(
            Registration.id.in_(list(registration_ids)),
            Registration.confirmation_number.is_not(None),
        )
    )
    code = result.scalars().first()
    if code is None:
        code = _unique_code(await _existing_codes(session), rng)
    await session.execute(
        update(Registration)
        .where(Registration.id.in_(list(registration_ids)))
        .values(confirmation_number=code)
        .execution_options(synchronize_session="fetch")
    )
    return code


async def backfill_confirmation_numbers(
    session: AsyncSession,
    *,
    dry_run: bool = False,
    rng: random.Random | None = None,
) -> BackfillSummary:
    """Assign confirmation numbers to registrations that lack one."""
    summary = BackfillSummary(dry_run=dry_run)
    stmt = (
        select(Registration)
        .where(Registration.confirmation_number.is_(None))
        .order_by(Registration.created_at, Registration.id)
    )
    pending = list((await session.execute(stmt)).scalars().all())
    if not pending:
        return summary

    grouped: OrderedDict[str, list[Registration]] = OrderedDict()
    orphans: list[Registration] = []
    for registration in pending:
        session_id = registration.stripe_checkout_session_id
        if session_id:
            grouped.setdefault(session_id, []).append(registration)
        else:
            orphans.append(registration)

    # Sessions partly numbered already keep their existing code.
    known: dict[str, str] = {}
    if grouped:
        result = await session.execute(
            select(
                Registration.stripe_checkout_session_id,
                Registration.confirmation_number,
            ).where(
                Registration.stripe_checkout_session_id.in_(list(grouped)),
                Registration.confirmation_number.is_not(None),
            )
        )
        for session_id, code in result.all():
            known.setdefault(session_id, code)

    taken = await _existing_codes(session)
    for session_id, members in grouped.items():
        code = known.get(session_id) or _unique_code(taken, rng)
        for registration in members:
            summary.assigned[registration.id] = code
        summary.groups += 1
    for registration in orphans:
        summary.assigned[registration.id] = _unique_code(taken, rng)
        summary.orphans += 1

    if dry_run:
        return summary

    for registration in pending:
        registration.confirmation_number = summary.assigned[registration.id]
    await session.commit()
    logger.info(
        "Backfilled %s registration(s): %s session group(s), %s orphan(s)",
        len(summary.assigned),
        summary.groups,
        summary.orphans,
    )
    return summary
