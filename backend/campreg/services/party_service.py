"""Find-or-create helpers for parent profiles, athletes and pickups."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campreg.models import Athlete, AuthorizedPickup, Profile
from campreg.schemas.registration import (
    CheckoutCamper,
    CheckoutParent,
    CheckoutPickup,
)
from campreg.security.redact import mask_email

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "phone",
    "address_line1",
    "address_line2",
    "city",
    "state",
    "zip_code",
    "emergency_contact_name",
    "emergency_contact_phone",
    "emergency_contact_relationship",
)

# Incoming camper attribute -> Athlete column.
_ATHLETE_FIELDS = {
    "grade": "grade",
    "tshirt_size": "t_shirt_size",
    "medical_notes": "medical_notes",
    "allergies": "allergies",
    "emergency_contact_name": "emergency_contact_name",
    "emergency_contact_phone": "emergency_contact_phone",
    "emergency_contact_relationship": "emergency_contact_relationship",
}


@dataclass(slots=True)
class AuthUser:
    """Identity of an authenticated caller."""

    id: uuid.UUID
    email: str | None = None


class MissingDateOfBirthError(ValueError):
    """Raised when a new athlete would be created without a birth date."""


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _apply_partial(target: Any, values: Mapping[str, Any]) -> list[str]:
    """Copy non-empty values onto ``target``; absent or blank values are ignored."""
    changed: list[str] = []
    for attr, raw in values.items():
        value = _clean(raw)
        if value is None:
            continue
        if getattr(target, attr) != value:
            setattr(target, attr, value)
            changed.append(attr)
    return changed


async def resolve_profile(
    session: AsyncSession,
    parent: CheckoutParent,
    auth_user: AuthUser | None = None,
) -> Profile:
    """Match the parent by email, then by authenticated id, else create one."""
    email = (parent.email or "").strip().lower()
    if not email:
        raise ValueError("Parent email is required")

    result = await session.execute(select(Profile).where(Profile.email == email))
    profile = result.scalar_one_or_none()
    if profile is None and auth_user is not None:
        profile = await session.get(Profile, auth_user.id)

    incoming = {name: getattr(parent, name) for name in _PROFILE_FIELDS}
    if profile is None:
        profile = Profile(
            id=auth_user.id if auth_user is not None else uuid.uuid4(),
            email=email,
            **{name: _clean(value) for name, value in incoming.items()},
        )
        session.add(profile)
        await session.flush()
        logger.info("Created profile %s for %s", profile.id, mask_email(email))
        return profile

    changed = _apply_partial(profile, incoming)
    if changed:
        await session.flush()
        logger.debug("Updated profile %s fields: %s", profile.id, ", ".join(changed))
    return profile


async def _find_athlete_by_name(
    session: AsyncSession, parent_id: uuid.UUID, first_name: str, last_name: str
) -> Athlete | None:
    stmt = (
        select(Athlete)
        .where(
            Athlete.parent_id == parent_id,
            func.lower(Athlete.first_name) == first_name.strip().lower(),
            func.lower(Athlete.last_name) == last_name.strip().lower(),
        )
        .order_by(Athlete.created_at)
    )
    return (await session.execute(stmt)).scalars().first()


async def resolve_athlete(
    session: AsyncSession,
    *,
    parent_id: uuid.UUID,
    camper: CheckoutCamper,
    tenant_id: uuid.UUID | None = None,
) -> Athlete:
    """Match a camper to an existing athlete of this parent or create one."""
    athlete: Athlete | None = None
    if camper.existing_athlete_id:
        try:
            athlete_id = uuid.UUID(camper.existing_athlete_id)
        except ValueError:
            athlete_id = None
        if athlete_id is not None:
            candidate = await session.get(Athlete, athlete_id)
            if candidate is not None and candidate.parent_id == parent_id:
                athlete = candidate

    if athlete is None and camper.first_name and camper.last_name:
        athlete = await _find_athlete_by_name(
            session, parent_id, camper.first_name, camper.last_name
        )

    incoming = {column: getattr(camper, attr) for attr, column in _ATHLETE_FIELDS.items()}
    if athlete is not None:
        changed = _apply_partial(athlete, incoming)
        if changed:
            await session.flush()
        return athlete

    if camper.date_of_birth is None:
        raise MissingDateOfBirthError(
            f"Date of birth is required for {camper.first_name} {camper.last_name}"
        )
    athlete = Athlete(
        parent_id=parent_id,
        tenant_id=tenant_id,
        first_name=(camper.first_name or "").strip(),
        last_name=(camper.last_name or "").strip(),
        date_of_birth=camper.date_of_birth,
        **{column: _clean(value) for column, value in incoming.items()},
    )
    session.add(athlete)
    await session.flush()
    return athlete


async def sync_authorized_pickups(
    session: AsyncSession,
    *,
    parent_id: uuid.UUID,
    athlete_id: uuid.UUID,
    pickups: Iterable[CheckoutPickup],
) -> int:
    """Add listed pickups not already on file for the athlete.

    Failures are logged and swallowed so a pickup problem never blocks
    checkout. Returns the number of pickups created.
    """
    requested = [pickup for pickup in pickups if _clean(pickup.name)]
    if not requested:
        return 0
    created = 0
    try:
        async with session.begin_nested():
            result = await session.execute(
                select(AuthorizedPickup.name).where(
                    AuthorizedPickup.athlete_id == athlete_id,
                    AuthorizedPickup.is_active.is_(True),
                )
            )
            seen = {name.strip().lower() for name in result.scalars().all()}
            for pickup in requested:
                name = pickup.name.strip()
                key = name.lower()
                if key in seen:
                    continue
                seen.add(key)
                session.add(
                    AuthorizedPickup(
                        parent_profile_id=parent_id,
                        athlete_id=athlete_id,
                        name=name,
                        relationship_to_athlete=_clean(pickup.relationship) or "Other",
                        phone=_clean(pickup.phone),
                    )
                )
                created += 1
    except SQLAlchemyError:
        logger.exception("Failed to save authorized pickups for athlete %s", athlete_id)
        return 0
    return created
