"""Tests for parent/athlete matching and pickup syncing."""

from __future__ import annotations

import datetime
import uuid

import pytest
from sqlalchemy import func, select

from campreg.db.session import get_sessionmaker
from campreg.models import Athlete, AuthorizedPickup, Profile
from campreg.schemas.registration import CheckoutCamper, CheckoutParent, CheckoutPickup
from campreg.services import party_service
from campreg.services.party_service import AuthUser, MissingDateOfBirthError

pytestmark = pytest.mark.asyncio


def _parent(**overrides) -> CheckoutParent:
    values = {
        "email": "Jordan.Parent@Example.com",
        "first_name": "Jordan",
        "last_name": "Parent",
        "phone": "319-555-0100",
        "city": "Cedar Rapids",
    }
    values.update(overrides)
    return CheckoutParent(**values)


async def test_profile_created_then_updated_without_blank_overwrites(
    reset_database, db_url: str
) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        created = await party_service.resolve_profile(session, _parent())
        await session.commit()
        assert created.email == "jordan.parent@example.com"

        updated = await party_service.resolve_profile(
            session, _parent(phone="", city="Iowa City", email="JORDAN.PARENT@example.com")
        )
        await session.commit()

        assert updated.id == created.id
        assert updated.phone == "319-555-0100"
        assert updated.city == "Iowa City"
        total = (await session.execute(select(func.count(Profile.id)))).scalar_one()
        assert total == 1


async def test_profile_uses_authenticated_id(reset_database, db_url: str) -> None:
    sessionmaker = get_sessionmaker(db_url)
    user_id = uuid.uuid4()
    async with sessionmaker() as session:
        profile = await party_service.resolve_profile(
            session, _parent(), AuthUser(id=user_id, email="jordan.parent@example.com")
        )
        await session.commit()
        assert profile.id == user_id

        # A new email on the same account still resolves to the same profile.
        again = await party_service.resolve_profile(
            session, _parent(email="new.address@example.com"), AuthUser(id=user_id)
        )
        assert again.id == user_id


async def test_profile_requires_email(reset_database, db_url: str) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        with pytest.raises(ValueError):
            await party_service.resolve_profile(session, _parent(email="  "))


async def test_athlete_matched_by_name_case_insensitively(
    reset_database, db_url: str
) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        profile = await party_service.resolve_profile(session, _parent())
        first = await party_service.resolve_athlete(
            session,
            parent_id=profile.id,
            camper=CheckoutCamper(
                first_name="Riley",
                last_name="Parent",
                date_of_birth=datetime.date(2014, 5, 1),
                allergies="Peanuts",
                grade="6",
            ),
        )
        await session.commit()

        second = await party_service.resolve_athlete(
            session,
            parent_id=profile.id,
            camper=CheckoutCamper(
                first_name="riley",
                last_name="PARENT",
                allergies="Peanuts, shellfish",
                grade="",
            ),
        )
        await session.commit()

        assert second.id == first.id
        assert second.allergies == "Peanuts, shellfish"
        assert second.grade == "6"
        count = (await session.execute(select(func.count(Athlete.id)))).scalar_one()
        assert count == 1


async def test_new_athlete_requires_date_of_birth(reset_database, db_url: str) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        profile = await party_service.resolve_profile(session, _parent())
        with pytest.raises(MissingDateOfBirthError):
            await party_service.resolve_athlete(
                session,
                parent_id=profile.id,
                camper=CheckoutCamper(first_name="Sam", last_name="Parent"),
            )


async def test_existing_athlete_id_scoped_to_parent(reset_database, db_url: str) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        owner = await party_service.resolve_profile(session, _parent())
        stranger = await party_service.resolve_profile(
            session, _parent(email="someone.else@example.com")
        )
        theirs = await party_service.resolve_athlete(
            session,
            parent_id=owner.id,
            camper=CheckoutCamper(
                first_name="Riley",
                last_name="Parent",
                date_of_birth=datetime.date(2014, 5, 1),
            ),
        )
        await session.commit()

        resolved = await party_service.resolve_athlete(
            session,
            parent_id=stranger.id,
            camper=CheckoutCamper(
                existing_athlete_id=str(theirs.id),
                first_name="Casey",
                last_name="Else",
                date_of_birth=datetime.date(2013, 1, 9),
            ),
        )
        assert resolved.id != theirs.id
        assert resolved.parent_id == stranger.id


async def test_pickups_deduplicated(reset_database, db_url: str) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        profile = await party_service.resolve_profile(session, _parent())
        athlete = await party_service.resolve_athlete(
            session,
            parent_id=profile.id,
            camper=CheckoutCamper(
                first_name="Riley",
                last_name="Parent",
                date_of_birth=datetime.date(2014, 5, 1),
            ),
        )
        await session.commit()

        created = await party_service.sync_authorized_pickups(
            session,
            parent_id=profile.id,
            athlete_id=athlete.id,
            pickups=[
                CheckoutPickup(name="Grandma Jo", relationship="Grandparent"),
                CheckoutPickup(name="grandma jo"),
                CheckoutPickup(name="  "),
            ],
        )
        await session.commit()
        assert created == 1

        again = await party_service.sync_authorized_pickups(
            session,
            parent_id=profile.id,
            athlete_id=athlete.id,
            pickups=[CheckoutPickup(name="Grandma Jo"), CheckoutPickup(name="Uncle Ray")],
        )
        await session.commit()
        assert again == 1

        rows = (
            await session.execute(
                select(AuthorizedPickup).where(AuthorizedPickup.athlete_id == athlete.id)
            )
        ).scalars().all()
        names = sorted(row.name for row in rows)
        assert names == ["Grandma Jo", "Uncle Ray"]
        assert {row.relationship_to_athlete for row in rows} == {"Grandparent", "Other"}
