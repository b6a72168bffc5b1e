"""Service layer applying payment provider outcomes to registrations."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from campreg.models import PaymentStatus, Registration, RegistrationStatus
from campreg.services import confirmation_service

logger = logging.getLogger(__name__)

REGISTRATION_METADATA_TYPE = "registration"


def registration_ids_from_metadata(metadata: Mapping[str, Any] | None) -> list[UUID]:
    """Read the registration batch carried in checkout metadata."""
    if not metadata:
        return []
    raw = metadata.get("registrationIds") or metadata.get("registrationId") or ""
    ids: list[UUID] = []
    for part in str(raw).split(","):
        part = part.strip()
        if not part:
            continue
        try:
            parsed = UUID(part)
        except ValueError:
            logger.warning("Ignoring malformed registration id %r in metadata", part)
            continue
        if parsed not in ids:
            ids.append(parsed)
    return ids


async def _load(
    session: AsyncSession,
    *,
    registration_ids: Sequence[UUID] = (),
    payment_intent_id: str | None = None,
) -> list[Registration]:
    clauses = []
    if registration_ids:
        clauses.append(Registration.id.in_(list(registration_ids)))
    if payment_intent_id:
        clauses.append(Registration.stripe_payment_intent_id == payment_intent_id)
    if not clauses:
        return []
    stmt = (
        select(Registration)
        .options(selectinload(Registration.addons))
        .where(or_(*clauses))
    )
    return list((await session.execute(stmt)).scalars().unique().all())


def _reconcile_addons(registration: Registration) -> None:
    if not registration.addons:
        return
    persisted = sum(row.price_cents for row in registration.addons)
    if persisted == registration.addons_total_cents:
        return
    registration.addons_total_cents = persisted
    registration.total_price_cents = (
        registration.base_price_cents
        - registration.discount_cents
        - registration.promo_discount_cents
        + persisted
        + registration.tax_cents
    )


async def mark_registrations_paid(
    session: AsyncSession,
    *,
    registration_ids: Sequence[UUID],
    checkout_session_id: str | None,
    payment_intent_id: str | None,
) -> str | None:
    """Confirm a paid checkout batch and give it one confirmation number.

    Cancelled registrations record the payment but stay cancelled.
    """

    registrations = await _load(session, registration_ids=registration_ids)
    if not registrations:
        logger.warning("Paid checkout %s matched no registrations", checkout_session_id)
        return None

    paid_at = datetime.datetime.now(datetime.UTC)
    confirmed: list[Registration] = []
    for registration in registrations:
        registration.payment_status = PaymentStatus.PAID
        registration.paid_at = paid_at
        if checkout_session_id:
            registration.stripe_checkout_session_id = checkout_session_id
        if payment_intent_id:
            registration.stripe_payment_intent_id = payment_intent_id
        if registration.status is RegistrationStatus.CANCELLED:
            # Paid after cancellation: the spot is not restored and needs a refund.
            logger.error(
                "Payment %s received for cancelled registration %s (%s)",
                payment_intent_id or checkout_session_id,
                registration.id,
                registration.cancellation_reason or "no reason recorded",
            )
            continue
        registration.status = RegistrationStatus.CONFIRMED
        _reconcile_addons(registration)
        confirmed.append(registration)
    await session.flush()

    if not confirmed:
        await session.commit()
        return None

    code = await confirmation_service.assign_confirmation_number(
        session, [registration.id for registration in confirmed]
    )
    await session.commit()
    logger.info(
        "Confirmed %s registration(s) for checkout %s as %s",
        len(confirmed),
        checkout_session_id,
        code,
    )
    return code


async def mark_payment_failed(
    session: AsyncSession,
    *,
    registration_ids: Sequence[UUID] = (),
    payment_intent_id: str | None = None,
    reason: str | None = None,
) -> int:
    """Flag unpaid registrations whose payment attempt failed."""

    registrations = await _load(
        session, registration_ids=registration_ids, payment_intent_id=payment_intent_id
    )
    updated = 0
    for registration in registrations:
        if registration.payment_status is PaymentStatus.PAID:
            continue
        registration.payment_status = PaymentStatus.FAILED
        updated += 1
    await session.commit()
    if updated:
        logger.info(
            "Payment failed for %s registration(s) (intent %s): %s",
            updated,
            payment_intent_id,
            reason or "no reason given",
        )
    return updated


async def apply_refund(
    session: AsyncSession,
    *,
    registration_ids: Sequence[UUID] = (),
    payment_intent_id: str | None = None,
) -> int:
    """Mark refunded registrations."""

    registrations = await _load(
        session, registration_ids=registration_ids, payment_intent_id=payment_intent_id
    )
    for registration in registrations:
        registration.payment_status = PaymentStatus.REFUNDED
    await session.commit()
    return len(registrations)
