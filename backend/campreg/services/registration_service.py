"""Registration persistence helpers."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Collection, Iterable, Sequence
from datetime import UTC, datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from campreg.models import (
    ACTIVE_REGISTRATION_STATUSES,
    PaymentStatus,
    Registration,
    RegistrationAddon,
    RegistrationStatus,
)
from campreg.services.pricing_service import AddonLine, CamperPricing, is_uuid

logger = logging.getLogger(__name__)

REPLACED_REASON = "Replaced by a new checkout"
REPLACEABLE_PAYMENT_STATUSES = (PaymentStatus.PENDING, PaymentStatus.FAILED)


class DuplicateRegistrationError(ValueError):
    """Raised when an athlete already holds a confirmed spot in the camp."""


def _replaceable_clause():
    return (
        (Registration.status == RegistrationStatus.PENDING)
        & Registration.payment_status.in_(REPLACEABLE_PAYMENT_STATUSES)
    )


def is_replaceable(registration: Registration) -> bool:
    """Unpaid pending registrations give way to a new checkout."""
    return (
        registration.status is RegistrationStatus.PENDING
        and registration.payment_status in REPLACEABLE_PAYMENT_STATUSES
    )


async def count_active_registrations(session: AsyncSession, camp_id: uuid.UUID) -> int:
    """Count pending and confirmed registrations held against a camp."""
    stmt = select(func.count(Registration.id)).where(
        Registration.camp_id == camp_id,
        Registration.status.in_(ACTIVE_REGISTRATION_STATUSES),
    )
    return int((await session.execute(stmt)).scalar_one())


async def count_replaceable_registrations(
    session: AsyncSession, camp_id: uuid.UUID, athlete_ids: Collection[uuid.UUID]
) -> int:
    """Count spots these athletes already hold that a new checkout would replace."""
    if not athlete_ids:
        return 0
    stmt = select(func.count(Registration.id)).where(
        Registration.camp_id == camp_id,
        Registration.athlete_id.in_(list(athlete_ids)),
        _replaceable_clause(),
    )
    return int((await session.execute(stmt)).scalar_one())


async def _clear_stale_registration(
    session: AsyncSession,
    *,
    camp_id: uuid.UUID,
    athlete_id: uuid.UUID,
    keep: Collection[uuid.UUID] = (),
) -> None:
    stmt = select(Registration).where(
        Registration.camp_id == camp_id,
        Registration.athlete_id == athlete_id,
        Registration.status != RegistrationStatus.CANCELLED,
    )
    if keep:
        stmt = stmt.where(Registration.id.not_in(list(keep)))
    for existing in (await session.execute(stmt)).scalars().all():
        if not is_replaceable(existing):
            raise DuplicateRegistrationError(
                "Athlete is already registered for this camp"
            )
        if existing.stripe_checkout_session_id:
            # The old payment session can still be paid; keep the row for it.
            existing.status = RegistrationStatus.CANCELLED
            existing.cancelled_at = datetime.now(UTC)
            existing.cancellation_reason = REPLACED_REASON
            logger.info(
                "Cancelled stale registration %s (session %s) for athlete %s",
                existing.id,
                existing.stripe_checkout_session_id,
                athlete_id,
            )
            continue
        await session.execute(
            delete(RegistrationAddon).where(
                RegistrationAddon.registration_id == existing.id
            )
        )
        await session.delete(existing)
        logger.info(
            "Removed stale pending registration %s for athlete %s",
            existing.id,
            athlete_id,
        )
    await session.flush()


async def create_registration(
    session: AsyncSession,
    *,
    tenant_id: uuid.UUID,
    camp_id: uuid.UUID,
    athlete_id: uuid.UUID,
    parent_id: uuid.UUID,
    pricing: CamperPricing,
    promo_code_id: uuid.UUID | None = None,
    shirt_size: str | None = None,
    special_considerations: str | None = None,
    keep: Collection[uuid.UUID] = (),
) -> Registration:
    """Insert a pending registration priced by ``pricing``.

    Earlier unpaid registrations of the athlete for this camp are replaced,
    except those listed in ``keep``.
    """
    await _clear_stale_registration(
        session, camp_id=camp_id, athlete_id=athlete_id, keep=keep
    )
    registration = Registration(
        tenant_id=tenant_id,
        camp_id=camp_id,
        athlete_id=athlete_id,
        parent_id=parent_id,
        base_price_cents=pricing.base_price_cents,
        discount_cents=pricing.discount_cents,
        promo_discount_cents=pricing.promo_discount_cents,
        addons_total_cents=pricing.addons_total_cents,
        tax_cents=pricing.tax_cents,
        total_price_cents=pricing.total_cents,
        promo_code_id=promo_code_id,
        shirt_size=shirt_size or None,
        special_considerations=special_considerations or None,
        status=RegistrationStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
    )
    session.add(registration)
    await session.flush()
    return registration


async def add_registration_addons(
    session: AsyncSession,
    *,
    registration_id: uuid.UUID,
    addons: Iterable[AddonLine],
) -> list[RegistrationAddon]:
    """Persist add-on rows, skipping placeholder add-ons without UUID ids."""
    rows: list[RegistrationAddon] = []
    for line in addons:
        if not line.is_persistable:
            logger.debug("Skipping add-on with non-UUID id %s", line.addon_id)
            continue
        variant_id = uuid.UUID(line.variant_id) if is_uuid(line.variant_id) else None
        row = RegistrationAddon(
            registration_id=registration_id,
            addon_id=uuid.UUID(line.addon_id),
            variant_id=variant_id,
            quantity=line.quantity,
            price_cents=line.subtotal_cents,
        )
        session.add(row)
        rows.append(row)
    if rows:
        await session.flush()
    return rows


async def cancel_registrations(
    session: AsyncSession,
    registration_ids: Sequence[uuid.UUID],
    *,
    reason: str,
) -> int:
    """Bulk-cancel registrations, recording ``reason``."""
    if not registration_ids:
        return 0
    result = await session.execute(
        update(Registration)
        .where(Registration.id.in_(list(registration_ids)))
        .values(
            status=RegistrationStatus.CANCELLED,
            cancelled_at=datetime.now(UTC),
            cancellation_reason=reason,
        )
        .execution_options(synchronize_session="fetch")
    )
    return int(result.rowcount or 0)
