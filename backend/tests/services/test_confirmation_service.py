"""Tests for confirmation number generation and backfill."""

from __future__ import annotations

import datetime
import random
import re
import uuid

import pytest
from sqlalchemy import select

from campreg.db.session import get_sessionmaker
from campreg.models import Athlete, Camp, Profile, Registration, Tenant
from campreg.services import confirmation_service

pytestmark = pytest.mark.asyncio

CODE_PATTERN = re.compile(r"^EA-[ABCDEFGHJKLMNPQRSTUVWXYZ1-9]{6}$")


async def _seed_registrations(session, session_ids: list[str | None]) -> list[Registration]:
    tenant = Tenant(name="HQ", slug=f"hq-{uuid.uuid4().hex[:6]}")
    session.add(tenant)
    await session.flush()
    camp = Camp(tenant_id=tenant.id, name="Camp", slug="camp", price_cents=30000)
    profile = Profile(email="parent@example.com")
    session.add_all([camp, profile])
    await session.flush()

    registrations = []
    for index, session_id in enumerate(session_ids):
        athlete = Athlete(
            parent_id=profile.id,
            first_name=f"Camper{index}",
            last_name="Parent",
            date_of_birth=datetime.date(2014, 5, 1),
        )
        session.add(athlete)
        await session.flush()
        registration = Registration(
            tenant_id=tenant.id,
            camp_id=camp.id,
            athlete_id=athlete.id,
            parent_id=profile.id,
            base_price_cents=30000,
            total_price_cents=30000,
            stripe_checkout_session_id=session_id,
        )
        session.add(registration)
        registrations.append(registration)
    await session.commit()
    return registrations


async def test_generated_numbers_use_unambiguous_alphabet() -> None:
    rng = random.Random(7)
    codes = {confirmation_service.generate_confirmation_number(rng) for _ in range(200)}
    assert all(CODE_PATTERN.match(code) for code in codes)
    assert not any(ch in code[3:] for code in codes for ch in "IO0")
    assert len(confirmation_service.CONFIRMATION_ALPHABET) == 33


async def test_backfill_groups_by_checkout_session(reset_database, db_url: str) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        registrations = await _seed_registrations(
            session, ["cs_test_shared", "cs_test_shared", "cs_test_shared", None, None]
        )

        summary = await confirmation_service.backfill_confirmation_numbers(
            session, rng=random.Random(42)
        )

        assert summary.groups == 1
        assert summary.orphans == 2
        assert len(summary.codes) == 3

        rows = (await session.execute(select(Registration))).scalars().all()
        by_id = {row.id: row.confirmation_number for row in rows}
        grouped = {by_id[reg.id] for reg in registrations[:3]}
        orphans = [by_id[reg.id] for reg in registrations[3:]]
        assert len(grouped) == 1
        assert len(set(orphans)) == 2
        assert grouped.isdisjoint(orphans)
        assert all(CODE_PATTERN.match(code) for code in by_id.values())


async def test_backfill_dry_run_writes_nothing(reset_database, db_url: str) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        await _seed_registrations(session, ["cs_a", None])

        summary = await confirmation_service.backfill_confirmation_numbers(
            session, dry_run=True
        )
        await session.rollback()

        assert len(summary.assigned) == 2
        numbers = (
            await session.execute(select(Registration.confirmation_number))
        ).scalars().all()
        assert numbers == [None, None]


async def test_backfill_reuses_existing_group_number(reset_database, db_url: str) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        registrations = await _seed_registrations(session, ["cs_b", "cs_b"])
        registrations[0].confirmation_number = "EA-ABC123"
        await session.commit()

        summary = await confirmation_service.backfill_confirmation_numbers(session)

        assert summary.assigned == {registrations[1].id: "EA-ABC123"}
        await session.refresh(registrations[1])
        assert registrations[1].confirmation_number == "EA-ABC123"


async def test_assign_number_shared_across_batch(reset_database, db_url: str) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        registrations = await _seed_registrations(session, [None, None])
        ids = [reg.id for reg in registrations]

        first = await confirmation_service.assign_confirmation_number(session, ids)
        second = await confirmation_service.assign_confirmation_number(session, ids)
        await session.commit()

        assert first == second
        numbers = (
            await session.execute(select(Registration.confirmation_number))
        ).scalars().all()
        assert set(numbers) == {first}
