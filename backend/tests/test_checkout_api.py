"""End-to-end tests for registration checkout."""

from __future__ import annotations

import datetime
import uuid
from typing import Any

import pytest
from sqlalchemy import func, select

from campreg.core.security import create_access_token
from campreg.db.session import get_sessionmaker
from campreg.models import (
    Athlete,
    AuthorizedPickup,
    Camp,
    DiscountType,
    PaymentStatus,
    Profile,
    PromoCode,
    Registration,
    RegistrationAddon,
    RegistrationStatus,
)

pytestmark = pytest.mark.asyncio

CHECKOUT_URL = "/api/registrations/checkout"


def _camper(first: str, **extra: Any) -> dict[str, Any]:
    payload = {
        "id": f"tmp-{first.lower()}",
        "firstName": first,
        "lastName": "Rivers",
        "dateOfBirth": "2014-05-01",
        "tshirtSize": "YM",
    }
    payload.update(extra)
    return payload


def _payload(ctx: dict[str, Any], campers: list[dict[str, Any]], **extra: Any) -> dict[str, Any]:
    payload = {
        "campId": str(ctx["camp_id"]),
        "parent": {
            "firstName": "Morgan",
            "lastName": "Rivers",
            "email": "morgan.rivers@example.com",
            "phone": "319-555-0199",
        },
        "campers": campers,
        "addOns": [],
    }
    payload.update(extra)
    return payload


async def _registrations(db_url: str) -> list[Registration]:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        result = await session.execute(
            select(Registration).order_by(Registration.created_at)
        )
        return list(result.scalars().all())


async def test_checkout_creates_sibling_registrations(app_context, db_url: str) -> None:
    client = app_context["client"]
    response = await client.post(
        CHECKOUT_URL,
        json=_payload(app_context, [_camper("Avery"), _camper("Blake")]),
    )
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert len(data["registrationIds"]) == 2
    assert data["sessionId"].startswith("demo_")
    assert "demo=true" in data["checkoutUrl"]
    assert data["checkoutUrl"].startswith(
        "http://localhost:3000/register/confirmation?registration_id="
    )

    rows = {str(row.id): row for row in await _registrations(db_url)}
    first, second = (rows[reg_id] for reg_id in data["registrationIds"])
    assert first.discount_cents == 0
    assert second.discount_cents == 3000
    assert second.total_price_cents == 27000
    assert {first.stripe_checkout_session_id, second.stripe_checkout_session_id} == {
        data["sessionId"]
    }
    assert first.status is RegistrationStatus.PENDING
    assert first.payment_method == "stripe"

    call = app_context["stripe"].calls[0]
    assert call["metadata"]["type"] == "registration"
    assert call["metadata"]["registrationIds"] == ",".join(data["registrationIds"])
    assert call["metadata"]["campSessionId"] == str(app_context["camp_id"])
    assert call["cancel_url"] == "http://localhost:3000/camps/summer-speed-camp"
    assert sum(item.unit_amount * item.quantity for item in call["line_items"]) == 57000


async def test_checkout_uses_origin_header(app_context) -> None:
    client = app_context["client"]
    response = await client.post(
        CHECKOUT_URL,
        json=_payload(app_context, [_camper("Avery")]),
        headers={"Origin": "https://camps.example.org"},
    )
    assert response.status_code == 200
    call = app_context["stripe"].calls[0]
    assert call["success_url"].startswith("https://camps.example.org/register/confirmation")


async def test_checkout_missing_fields_returns_400(app_context, db_url: str) -> None:
    client = app_context["client"]
    response = await client.post(CHECKOUT_URL, json={"addOns": []})
    assert response.status_code == 400
    detail = response.json()["detail"]
    for name in ("campId", "parent", "campers"):
        assert name in detail
    assert await _registrations(db_url) == []


async def test_checkout_unknown_camp_returns_404(app_context) -> None:
    client = app_context["client"]
    payload = _payload(app_context, [_camper("Avery")], campId=str(uuid.uuid4()))
    response = await client.post(CHECKOUT_URL, json=payload)
    assert response.status_code == 404


async def test_checkout_rejects_when_camp_full(app_context, db_url: str) -> None:
    client = app_context["client"]
    names = ["Avery", "Blake", "Cam", "Drew", "Emery"]
    full = await client.post(
        CHECKOUT_URL, json=_payload(app_context, [_camper(name) for name in names])
    )
    assert full.status_code == 200

    response = await client.post(
        CHECKOUT_URL,
        json=_payload(
            app_context,
            [_camper("Finley")],
            parent={"email": "other.family@example.com", "firstName": "Pat"},
        ),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Not enough spots available"

    rows = await _registrations(db_url)
    assert len(rows) == 5
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        profiles = (await session.execute(select(func.count(Profile.id)))).scalar_one()
    assert profiles == 1


async def test_payment_failure_cancels_every_registration(
    app_context, db_url: str
) -> None:
    client = app_context["client"]
    app_context["stripe"].fail = True
    response = await client.post(
        CHECKOUT_URL,
        json=_payload(app_context, [_camper("Avery"), _camper("Blake"), _camper("Cam")]),
    )
    assert response.status_code == 500
    assert "Payment provider unavailable" in response.json()["detail"]

    rows = await _registrations(db_url)
    assert len(rows) == 3
    assert all(row.status is RegistrationStatus.CANCELLED for row in rows)
    assert all(row.cancellation_reason for row in rows)
    assert all(row.stripe_checkout_session_id is None for row in rows)


async def test_repeat_checkout_updates_existing_athlete(app_context, db_url: str) -> None:
    client = app_context["client"]
    first = await client.post(
        CHECKOUT_URL,
        json=_payload(app_context, [_camper("Avery", allergies="Peanuts", grade="6")]),
    )
    assert first.status_code == 200
    second = await client.post(
        CHECKOUT_URL,
        json=_payload(
            app_context,
            [_camper("avery", allergies="Peanuts, bees", grade="")],
        ),
    )
    assert second.status_code == 200, second.text

    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        athletes = (await session.execute(select(Athlete))).scalars().all()
    assert len(athletes) == 1
    assert athletes[0].allergies == "Peanuts, bees"
    assert athletes[0].first_name == "Avery"
    assert athletes[0].grade == "6"

    rows = await _registrations(db_url)
    active = [row for row in rows if row.status is RegistrationStatus.PENDING]
    assert [str(row.id) for row in active] == second.json()["data"]["registrationIds"]
    replaced = [row for row in rows if row.status is RegistrationStatus.CANCELLED]
    assert [str(row.id) for row in replaced] == first.json()["data"]["registrationIds"]
    assert replaced[0].cancellation_reason == "Replaced by a new checkout"
    assert replaced[0].stripe_checkout_session_id == first.json()["data"]["sessionId"]


async def test_same_camper_twice_in_one_checkout_returns_400(
    app_context, db_url: str
) -> None:
    client = app_context["client"]
    response = await client.post(
        CHECKOUT_URL,
        json=_payload(
            app_context, [_camper("Avery"), _camper("avery", id="tmp-avery-2")]
        ),
    )
    assert response.status_code == 400
    assert "listed more than once" in response.json()["detail"]
    assert await _registrations(db_url) == []
    assert app_context["stripe"].calls == []


async def test_existing_athlete_id_repeated_in_batch_returns_400(
    app_context, db_url: str
) -> None:
    client = app_context["client"]
    first = await client.post(CHECKOUT_URL, json=_payload(app_context, [_camper("Avery")]))
    assert first.status_code == 200
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        athlete_id = (await session.execute(select(Athlete.id))).scalar_one()

    response = await client.post(
        CHECKOUT_URL,
        json=_payload(
            app_context,
            [
                _camper("Avery", existingAthleteId=str(athlete_id)),
                _camper("Blake", id="tmp-second", existingAthleteId=str(athlete_id)),
            ],
        ),
    )
    assert response.status_code == 400
    rows = await _registrations(db_url)
    assert [str(row.id) for row in rows] == first.json()["data"]["registrationIds"]
    assert rows[0].status is RegistrationStatus.PENDING


async def test_retry_into_full_camp_replaces_own_pending_spot(
    app_context, db_url: str
) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        camp = await session.get(Camp, app_context["camp_id"])
        camp.capacity = 1
        await session.commit()

    client = app_context["client"]
    first = await client.post(CHECKOUT_URL, json=_payload(app_context, [_camper("Avery")]))
    assert first.status_code == 200
    retry = await client.post(CHECKOUT_URL, json=_payload(app_context, [_camper("Avery")]))
    assert retry.status_code == 200, retry.text

    rows = await _registrations(db_url)
    active = [row for row in rows if row.status is RegistrationStatus.PENDING]
    assert [str(row.id) for row in active] == retry.json()["data"]["registrationIds"]

    # Another family still cannot take the held spot.
    other = await client.post(
        CHECKOUT_URL,
        json=_payload(
            app_context,
            [_camper("Finley")],
            parent={"email": "other.family@example.com", "firstName": "Pat"},
        ),
    )
    assert other.status_code == 400
    assert other.json()["detail"] == "Not enough spots available"


async def test_checkout_addons_tax_and_placeholders(app_context, db_url: str) -> None:
    client = app_context["client"]
    payload = _payload(
        app_context,
        [_camper("Avery"), _camper("Blake")],
        addOns=[
            {
                "addonId": str(app_context["shirt_addon_id"]),
                "camperId": "tmp-blake",
                "quantity": 2,
                "unitPrice": 2500,
            },
            {"addonId": str(app_context["lunch_addon_id"]), "unitPrice": 4000},
            {"addonId": "demo-water-bottle", "camperId": "tmp-avery", "unitPrice": 1500},
        ],
    )
    response = await client.post(CHECKOUT_URL, json=payload)
    assert response.status_code == 200, response.text
    ids = response.json()["data"]["registrationIds"]

    rows = {str(row.id): row for row in await _registrations(db_url)}
    avery, blake = rows[ids[0]], rows[ids[1]]
    assert avery.addons_total_cents == 5500
    assert avery.tax_cents == 0
    assert blake.addons_total_cents == 5000
    assert blake.tax_cents == 400

    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        addon_rows = (await session.execute(select(RegistrationAddon))).scalars().all()
    assert len(addon_rows) == 2
    assert {row.price_cents for row in addon_rows} == {4000, 5000}

    line_items = app_context["stripe"].calls[0]["line_items"]
    tax_lines = [item for item in line_items if item.name == "Sales Tax"]
    assert len(tax_lines) == 1
    assert tax_lines[0].unit_amount == 400


async def test_checkout_applies_promo_to_first_camper(app_context, db_url: str) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        session.add(
            PromoCode(
                tenant_id=app_context["tenant_id"],
                code="SAVE10",
                discount_type=DiscountType.PERCENTAGE,
                discount_value=10,
            )
        )
        await session.commit()

    client = app_context["client"]
    response = await client.post(
        CHECKOUT_URL,
        json=_payload(
            app_context, [_camper("Avery"), _camper("Blake")], promoCode=" save10 "
        ),
    )
    assert response.status_code == 200, response.text
    ids = response.json()["data"]["registrationIds"]
    rows = {str(row.id): row for row in await _registrations(db_url)}
    assert rows[ids[0]].promo_discount_cents == 3000
    assert rows[ids[0]].promo_code_id is not None
    assert rows[ids[1]].promo_discount_cents == 0
    assert rows[ids[1]].discount_cents == 3000

    async with sessionmaker() as session:
        promo = (await session.execute(select(PromoCode))).scalar_one()
    assert promo.current_uses == 1


async def test_unknown_promo_code_is_ignored(app_context, db_url: str) -> None:
    client = app_context["client"]
    response = await client.post(
        CHECKOUT_URL,
        json=_payload(app_context, [_camper("Avery")], promoCode="NOPE"),
    )
    assert response.status_code == 200
    rows = await _registrations(db_url)
    assert rows[0].promo_discount_cents == 0


async def test_free_checkout_confirms_immediately(app_context, db_url: str) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        session.add(
            PromoCode(
                tenant_id=app_context["tenant_id"],
                code="SCHOLARSHIP",
                discount_type=DiscountType.PERCENTAGE,
                discount_value=100,
            )
        )
        await session.commit()

    client = app_context["client"]
    response = await client.post(
        CHECKOUT_URL,
        json=_payload(app_context, [_camper("Avery")], promoCode="SCHOLARSHIP"),
    )
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["sessionId"] == "free_registration"
    assert data["checkoutUrl"].endswith("&free=true")
    assert app_context["stripe"].calls == []

    rows = await _registrations(db_url)
    assert rows[0].status is RegistrationStatus.CONFIRMED
    assert rows[0].payment_status is PaymentStatus.PAID
    assert rows[0].confirmation_number is not None


async def test_checkout_saves_authorized_pickups(app_context, db_url: str) -> None:
    client = app_context["client"]
    camper = _camper(
        "Avery",
        authorizedPickups=[
            {"name": "Grandma Jo", "relationship": "Grandparent", "phone": "555-0101"}
        ],
    )
    response = await client.post(CHECKOUT_URL, json=_payload(app_context, [camper]))
    assert response.status_code == 200

    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        pickups = (await session.execute(select(AuthorizedPickup))).scalars().all()
    assert [pickup.name for pickup in pickups] == ["Grandma Jo"]


async def test_authenticated_checkout_links_profile_to_user(
    app_context, db_url: str
) -> None:
    user_id = uuid.uuid4()
    token = create_access_token(str(user_id), email="morgan.rivers@example.com")
    client = app_context["client"]
    response = await client.post(
        CHECKOUT_URL,
        json=_payload(app_context, [_camper("Avery")]),
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 200

    rows = await _registrations(db_url)
    assert rows[0].parent_id == user_id


async def test_camp_without_tenant_adopts_default(app_context, db_url: str) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        camp = Camp(
            name="Orphan Camp",
            slug="orphan-camp",
            capacity=None,
            price_cents=20000,
            start_date=datetime.date(2026, 8, 1),
        )
        session.add(camp)
        await session.commit()
        camp_id = camp.id

    client = app_context["client"]
    response = await client.post(
        CHECKOUT_URL,
        json=_payload(app_context, [_camper("Avery")], campId=str(camp_id)),
    )
    assert response.status_code == 200, response.text

    async with sessionmaker() as session:
        stored = await session.get(Camp, camp_id)
    assert stored is not None
    assert stored.tenant_id == app_context["tenant_id"]


async def test_mismatched_tenant_returns_404(app_context) -> None:
    client = app_context["client"]
    response = await client.post(
        CHECKOUT_URL,
        json=_payload(app_context, [_camper("Avery")], tenantId=str(uuid.uuid4())),
    )
    assert response.status_code == 404


async def test_quote_prices_without_writing(app_context, db_url: str) -> None:
    client = app_context["client"]
    response = await client.post(
        "/api/registrations/quote",
        json={
            "campId": str(app_context["camp_id"]),
            "campers": [{"id": "a"}, {"id": "b"}],
            "addOns": [
                {
                    "addonId": str(app_context["shirt_addon_id"]),
                    "camperId": "a",
                    "unitPrice": 2500,
                }
            ],
        },
    )
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["isEarlyBird"] is False
    assert data["promoApplied"] is False
    assert [camper["camperId"] for camper in data["campers"]] == ["a", "b"]
    assert data["totals"] == {
        "campSubtotal": 60000,
        "addOnsSubtotal": 2500,
        "siblingDiscount": 3000,
        "promoDiscount": 0,
        "subtotal": 59500,
        "tax": 200,
        "total": 59700,
    }
    assert await _registrations(db_url) == []


async def test_new_camper_without_birth_date_returns_400(app_context, db_url: str) -> None:
    client = app_context["client"]
    camper = _camper("Avery")
    camper.pop("dateOfBirth")
    response = await client.post(CHECKOUT_URL, json=_payload(app_context, [camper]))
    assert response.status_code == 400
    assert "campers[0].dateOfBirth" in response.json()["detail"]
    assert await _registrations(db_url) == []
