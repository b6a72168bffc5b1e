"""Registration checkout orchestration.

A checkout turns one payload (parent, campers, add-ons, promo code) into a
batch of pending registrations and a single hosted payment session. The
camp row is locked while the batch is counted and written, and every
registration in the batch is written in one transaction. If the payment
session cannot be created afterwards the batch is cancelled.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import cast

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campreg.core.config import get_settings
from campreg.integrations import LineItem, StripeClient, StripeClientError
from campreg.models import (
    Addon,
    Athlete,
    Camp,
    PaymentStatus,
    PromoAppliesTo,
    PromoCode,
    Registration,
    RegistrationStatus,
    Tenant,
)
from campreg.schemas.registration import CheckoutCamper, CheckoutParent, CheckoutRequest
from campreg.security.redact import mask_email
from campreg.services import (
    confirmation_service,
    party_service,
    pricing_service,
    promo_service,
    registration_service,
)
from campreg.services.party_service import AuthUser
from campreg.services.pricing_service import AddonLine, CamperPricing

logger = logging.getLogger(__name__)

FREE_SESSION_ID = "free_registration"
COMPENSATION_REASON = "Checkout creation failed"


class CheckoutValidationError(ValueError):
    """Raised when the checkout payload is missing required data."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required fields: {', '.join(self.missing)}")


class CampNotFoundError(LookupError):
    """Raised when the camp (or its tenant) cannot be found."""


class CapacityError(ValueError):
    """Raised when the batch does not fit in the camp's remaining spots."""


class DuplicateCamperError(ValueError):
    """Raised when two campers in one checkout are the same athlete."""


class CheckoutError(RuntimeError):
    """Raised when persistence or the payment provider fails mid-checkout."""


@dataclass(slots=True)
class CheckoutResult:
    registration_ids: list[uuid.UUID]
    checkout_url: str
    session_id: str
    total_cents: int = 0


@dataclass(slots=True)
class QuoteResult:
    is_early_bird: bool
    promo_applied: bool
    campers: list[tuple[str | None, CamperPricing]] = field(default_factory=list)
    totals: dict[str, int] = field(default_factory=dict)


def validate_request(request: CheckoutRequest, *, require_parent: bool = True) -> None:
    """Fail fast with every missing field named, camelCase as sent."""
    missing: list[str] = []
    if not request.camp_id:
        missing.append("campId")
    if require_parent:
        if request.parent is None:
            missing.append("parent")
        elif not (request.parent.email or "").strip():
            missing.append("parent.email")
    if not request.campers:
        missing.append("campers")
    else:
        for index, camper in enumerate(request.campers):
            if require_parent and not (camper.first_name or "").strip():
                missing.append(f"campers[{index}].firstName")
            if require_parent and not (camper.last_name or "").strip():
                missing.append(f"campers[{index}].lastName")
            if (
                require_parent
                and camper.date_of_birth is None
                and not camper.existing_athlete_id
            ):
                missing.append(f"campers[{index}].dateOfBirth")
    if missing:
        raise CheckoutValidationError(missing)


def _parse_uuid(value: str | None) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


async def load_camp(
    session: AsyncSession, camp_id: str | None, *, lock: bool = False
) -> Camp:
    parsed = _parse_uuid(camp_id)
    if parsed is None:
        raise CampNotFoundError("Camp not found")
    stmt = select(Camp).where(Camp.id == parsed)
    if lock:
        stmt = stmt.with_for_update()
    camp = (await session.execute(stmt)).scalar_one_or_none()
    if camp is None:
        raise CampNotFoundError("Camp not found")
    return camp


async def _default_tenant(session: AsyncSession, *, create: bool) -> Tenant | None:
    slugs = get_settings().default_tenant_slugs
    if slugs:
        result = await session.execute(select(Tenant).where(Tenant.slug.in_(slugs)))
        by_slug = {tenant.slug: tenant for tenant in result.scalars().all()}
        for slug in slugs:
            if slug in by_slug:
                return by_slug[slug]

    oldest = (
        await session.execute(select(Tenant).order_by(Tenant.created_at).limit(1))
    ).scalar_one_or_none()
    if oldest is not None or not create:
        return oldest

    tenant = Tenant(name="Default", slug=slugs[0] if slugs else "default")
    session.add(tenant)
    await session.flush()
    logger.warning("No tenant configured; created default tenant %s", tenant.slug)
    return tenant


async def resolve_tenant(
    session: AsyncSession,
    camp: Camp,
    tenant_id: str | None,
    *,
    create: bool = True,
) -> Tenant | None:
    """Pick the tenant a checkout is billed under.

    Order: the tenant named in the request, the camp's tenant, a default
    tenant by slug, the oldest tenant, and finally a newly created default.
    A camp without a tenant adopts the resolved one when ``create`` is set.
    """
    tenant: Tenant | None = None
    if tenant_id:
        parsed = _parse_uuid(tenant_id)
        tenant = await session.get(Tenant, parsed) if parsed is not None else None
        if tenant is None:
            raise CampNotFoundError("Tenant not found")
        if camp.tenant_id is not None and camp.tenant_id != tenant.id:
            raise CampNotFoundError("Camp not found for tenant")
    elif camp.tenant_id is not None:
        tenant = await session.get(Tenant, camp.tenant_id)

    if tenant is None:
        tenant = await _default_tenant(session, create=create)

    if create and tenant is not None and camp.tenant_id is None:
        camp.tenant_id = tenant.id
        await session.flush()
        logger.info("Assigned camp %s to tenant %s", camp.id, tenant.slug)
    return tenant


async def ensure_capacity(
    session: AsyncSession,
    camp: Camp,
    requested: int,
    *,
    athlete_ids: Sequence[uuid.UUID] = (),
) -> None:
    """Reject the batch when it does not fit.

    Unpaid pending spots already held by ``athlete_ids`` are about to be
    replaced, so they do not count against the camp.
    """
    if camp.capacity is None:
        return
    active = await registration_service.count_active_registrations(session, camp.id)
    replaceable = await registration_service.count_replaceable_registrations(
        session, camp.id, athlete_ids
    )
    if active - replaceable + requested > camp.capacity:
        logger.info(
            "Camp %s full: %s active (%s replaceable) + %s requested > %s",
            camp.id,
            active,
            replaceable,
            requested,
            camp.capacity,
        )
        raise CapacityError("Not enough spots available")


def _addon_uuid(addon_id: str | None) -> uuid.UUID | None:
    """Only canonical ids refer to real add-ons; anything else is a placeholder."""
    if not pricing_service.is_uuid(addon_id):
        return None
    return uuid.UUID(str(addon_id))


async def _load_addons(
    session: AsyncSession, request: CheckoutRequest
) -> dict[str, Addon]:
    ids = [
        parsed
        for parsed in (_addon_uuid(item.addon_id) for item in request.add_ons)
        if parsed is not None
    ]
    if not ids:
        return {}
    result = await session.execute(select(Addon).where(Addon.id.in_(ids)))
    return {str(addon.id): addon for addon in result.scalars().all()}


def _catalog_entry(catalog: dict[str, Addon], addon_id: str) -> Addon | None:
    parsed = _addon_uuid(addon_id)
    return catalog.get(str(parsed)) if parsed is not None else None


def _addon_lines(
    request: CheckoutRequest, catalog: dict[str, Addon]
) -> list[AddonLine]:
    lines: list[AddonLine] = []
    for item in request.add_ons:
        addon = _catalog_entry(catalog, item.addon_id)
        lines.append(
            AddonLine(
                addon_id=item.addon_id,
                unit_price_cents=item.unit_price,
                quantity=item.quantity,
                variant_id=item.variant_id,
                camper_ref=item.camper_id or None,
                is_taxable=bool(addon.is_taxable) if addon is not None else False,
            )
        )
    return lines


def _camper_refs(request: CheckoutRequest) -> list[str | None]:
    return [camper.id or camper.existing_athlete_id for camper in request.campers or []]


def price_batch(
    *,
    camp_price_cents: int,
    addon_buckets: Sequence[Sequence[AddonLine]],
    promo: PromoCode | None,
    tax_rate_percent: Decimal | int | float,
) -> list[CamperPricing]:
    return [
        pricing_service.price_camper(
            camp_price_cents=camp_price_cents,
            camper_index=index,
            addons=bucket,
            promo=promo,
            tax_rate_percent=tax_rate_percent,
        )
        for index, bucket in enumerate(addon_buckets)
    ]


def summarize(pricings: Sequence[CamperPricing]) -> dict[str, int]:
    camp_subtotal = sum(p.base_price_cents for p in pricings)
    addons_subtotal = sum(p.addons_total_cents for p in pricings)
    sibling = sum(p.discount_cents for p in pricings)
    promo = sum(p.promo_discount_cents for p in pricings)
    tax = sum(p.tax_cents for p in pricings)
    subtotal = camp_subtotal + addons_subtotal - sibling - promo
    return {
        "camp_subtotal": camp_subtotal,
        "add_ons_subtotal": addons_subtotal,
        "sibling_discount": sibling,
        "promo_discount": promo,
        "subtotal": subtotal,
        "tax": tax,
        "total": subtotal + tax,
    }


async def _applicable_promo(
    session: AsyncSession,
    request: CheckoutRequest,
    *,
    tenant: Tenant | None,
    camp_price_cents: int,
    first_bucket: Sequence[AddonLine],
    today: datetime.date,
) -> PromoCode | None:
    if tenant is None or not request.promo_code:
        return None
    promo = await promo_service.find_applicable_promo(
        session, tenant_id=tenant.id, code=request.promo_code, today=today
    )
    if promo is None:
        return None
    eligible = pricing_service.promo_eligible_cents(
        promo,
        camp_price_cents=camp_price_cents,
        addons_subtotal_cents=sum(line.subtotal_cents for line in first_bucket),
    )
    if not promo_service.meets_minimum(promo, eligible):
        logger.info("Promo code %s below minimum purchase", promo.code)
        return None
    return promo


def _split_promo(
    pricing: CamperPricing, applies_to: PromoAppliesTo | None
) -> tuple[int, list[int]]:
    """Return the promo share taken off the camp line and off each add-on.

    Whatever the camp line cannot absorb spills over the add-ons in proportion
    to their subtotals; the last add-on takes the rounding remainder.
    """
    promo = pricing.promo_discount_cents
    addon_shares = [0] * len(pricing.addons)
    if promo <= 0:
        return 0, addon_shares
    camp_net = pricing.base_price_cents - pricing.discount_cents
    camp_share = 0 if applies_to is PromoAppliesTo.ADDONS else min(promo, camp_net)
    overflow = promo - camp_share
    addons_total = pricing.addons_total_cents
    if overflow <= 0 or addons_total <= 0:
        return camp_share, addon_shares
    remaining = overflow
    for index, line in enumerate(pricing.addons):
        if index == len(pricing.addons) - 1:
            share = remaining
        else:
            share = overflow * line.subtotal_cents // addons_total
        share = min(share, line.subtotal_cents, remaining)
        addon_shares[index] = share
        remaining -= share
    return camp_share, addon_shares


def build_line_items(
    *,
    camp: Camp,
    athletes: Sequence[Athlete],
    pricings: Sequence[CamperPricing],
    catalog: dict[str, Addon],
    promo: PromoCode | None,
) -> list[LineItem]:
    """Translate priced registrations into payment-provider line items."""
    items: list[LineItem] = []
    applies_to = promo.applies_to if promo is not None else None
    for athlete, pricing in zip(athletes, pricings):
        camp_share, addon_shares = _split_promo(pricing, applies_to)
        camp_amount = pricing.base_price_cents - pricing.discount_cents - camp_share
        if camp_amount > 0:
            items.append(
                LineItem(
                    name=f"{camp.name} - {athlete.first_name} {athlete.last_name}",
                    unit_amount=camp_amount,
                    description="Camp registration",
                )
            )
        for line, share in zip(pricing.addons, addon_shares):
            addon = _catalog_entry(catalog, line.addon_id)
            name = addon.name if addon is not None else "Add-on"
            if share:
                amount = line.subtotal_cents - share
                if amount > 0:
                    items.append(
                        LineItem(
                            name=f"{name} x{line.quantity}",
                            unit_amount=amount,
                            description=f"For {athlete.first_name}",
                        )
                    )
            elif line.subtotal_cents > 0:
                items.append(
                    LineItem(
                        name=name,
                        unit_amount=line.unit_price_cents,
                        quantity=line.quantity,
                        description=f"For {athlete.first_name}",
                    )
                )
    tax = sum(pricing.tax_cents for pricing in pricings)
    if tax > 0:
        items.append(LineItem(name="Sales Tax", unit_amount=tax))
    return items


async def _resolve_athletes(
    session: AsyncSession,
    campers: Sequence[CheckoutCamper],
    *,
    parent_id: uuid.UUID,
    tenant_id: uuid.UUID,
) -> list[Athlete]:
    """Resolve every camper, rejecting a batch that names one athlete twice."""
    athletes: list[Athlete] = []
    seen: set[uuid.UUID] = set()
    for camper in campers:
        athlete = await party_service.resolve_athlete(
            session, parent_id=parent_id, camper=camper, tenant_id=tenant_id
        )
        if athlete.id in seen:
            raise DuplicateCamperError(
                f"{athlete.first_name} {athlete.last_name} is listed more than once"
            )
        seen.add(athlete.id)
        athletes.append(athlete)
    return athletes


def _urls(origin: str, camp: Camp, first_id: uuid.UUID) -> tuple[str, str]:
    base = origin.rstrip("/")
    success = f"{base}/register/confirmation?registration_id={first_id}"
    cancel = f"{base}/camps/{camp.slug}"
    return success, cancel


async def quote(
    session: AsyncSession,
    request: CheckoutRequest,
    *,
    now: datetime.datetime | None = None,
) -> QuoteResult:
    """Price a checkout payload without writing anything."""
    validate_request(request, require_parent=False)
    now = now or datetime.datetime.now(datetime.UTC)
    camp = await load_camp(session, request.camp_id)
    tenant = await resolve_tenant(session, camp, request.tenant_id, create=False)
    catalog = await _load_addons(session, request)
    refs = _camper_refs(request)
    buckets = pricing_service.assign_addons(_addon_lines(request, catalog), refs)
    camp_price = pricing_service.effective_camp_price_cents(camp, now)
    promo = await _applicable_promo(
        session,
        request,
        tenant=tenant,
        camp_price_cents=camp_price,
        first_bucket=buckets[0],
        today=now.date(),
    )
    pricings = price_batch(
        camp_price_cents=camp_price,
        addon_buckets=buckets,
        promo=promo,
        tax_rate_percent=tenant.tax_rate_percent if tenant is not None else 0,
    )
    return QuoteResult(
        is_early_bird=pricing_service.is_early_bird(camp, now),
        promo_applied=any(p.promo_discount_cents for p in pricings),
        campers=list(zip(refs, pricings)),
        totals=summarize(pricings),
    )


async def _complete_free_checkout(
    session: AsyncSession, registration_ids: list[uuid.UUID], success_url: str
) -> CheckoutResult:
    await session.execute(
        update(Registration)
        .where(Registration.id.in_(registration_ids))
        .values(
            status=RegistrationStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            payment_method="free",
            paid_at=datetime.datetime.now(datetime.UTC),
        )
        .execution_options(synchronize_session="fetch")
    )
    await confirmation_service.assign_confirmation_number(session, registration_ids)
    await session.commit()
    logger.info("Confirmed free registrations %s", registration_ids)
    return CheckoutResult(
        registration_ids=registration_ids,
        checkout_url=f"{success_url}&free=true",
        session_id=FREE_SESSION_ID,
    )


async def checkout(
    session: AsyncSession,
    request: CheckoutRequest,
    *,
    auth_user: AuthUser | None,
    origin: str | None,
    stripe: StripeClient,
    now: datetime.datetime | None = None,
) -> CheckoutResult:
    """Register every camper in ``request`` and open one payment session."""
    validate_request(request)
    parent = cast(CheckoutParent, request.parent)
    campers = request.campers or []
    now = now or datetime.datetime.now(datetime.UTC)
    origin = origin or get_settings().public_app_url

    try:
        camp = await load_camp(session, request.camp_id, lock=True)
        tenant = cast(Tenant, await resolve_tenant(session, camp, request.tenant_id))

        catalog = await _load_addons(session, request)
        buckets = pricing_service.assign_addons(
            _addon_lines(request, catalog), _camper_refs(request)
        )
        camp_price = pricing_service.effective_camp_price_cents(camp, now)
        promo = await _applicable_promo(
            session,
            request,
            tenant=tenant,
            camp_price_cents=camp_price,
            first_bucket=buckets[0],
            today=now.date(),
        )
        pricings = price_batch(
            camp_price_cents=camp_price,
            addon_buckets=buckets,
            promo=promo,
            tax_rate_percent=tenant.tax_rate_percent,
        )

        profile = await party_service.resolve_profile(session, parent, auth_user)
        athletes = await _resolve_athletes(
            session, campers, parent_id=profile.id, tenant_id=tenant.id
        )
        await ensure_capacity(
            session,
            camp,
            len(campers),
            athlete_ids=[athlete.id for athlete in athletes],
        )

        registration_ids: list[uuid.UUID] = []
        for camper, athlete, pricing in zip(campers, athletes, pricings):
            await party_service.sync_authorized_pickups(
                session,
                parent_id=profile.id,
                athlete_id=athlete.id,
                pickups=camper.authorized_pickups,
            )
            registration = await registration_service.create_registration(
                session,
                tenant_id=tenant.id,
                camp_id=camp.id,
                athlete_id=athlete.id,
                parent_id=profile.id,
                pricing=pricing,
                promo_code_id=promo.id
                if promo is not None and pricing.promo_discount_cents
                else None,
                shirt_size=camper.tshirt_size,
                special_considerations=camper.special_considerations,
                keep=registration_ids,
            )
            await registration_service.add_registration_addons(
                session, registration_id=registration.id, addons=pricing.addons
            )
            registration_ids.append(registration.id)

        if promo is not None and any(p.promo_discount_cents for p in pricings):
            await promo_service.record_usage(session, promo.id)
        await session.commit()
    except (ValueError, LookupError):
        await session.rollback()
        raise
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception(
            "Checkout failed while writing registrations for camp %s", request.camp_id
        )
        raise CheckoutError("Failed to create registrations") from exc

    totals = summarize(pricings)
    if request.totals is not None and request.totals.total != totals["total"]:
        logger.warning(
            "Client total %s differs from server total %s for camp %s",
            request.totals.total,
            totals["total"],
            camp.id,
        )

    success_url, cancel_url = _urls(origin, camp, registration_ids[0])
    if totals["total"] <= 0:
        result = await _complete_free_checkout(session, registration_ids, success_url)
        return result

    line_items = build_line_items(
        camp=camp, athletes=athletes, pricings=pricings, catalog=catalog, promo=promo
    )
    metadata = {
        "type": "registration",
        "registrationId": str(registration_ids[0]),
        "registrationIds": ",".join(str(reg_id) for reg_id in registration_ids),
        "campSessionId": str(camp.id),
        "tenantId": str(tenant.id),
    }
    try:
        payment_session = stripe.create_checkout_session(
            line_items=line_items,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            customer_email=profile.email,
            reference=registration_ids[0],
            idempotency_seed=registration_ids[0],
        )
    except StripeClientError as exc:
        logger.error(
            "Payment session failed for %s registration(s) in camp %s: %s",
            len(registration_ids),
            camp.id,
            exc,
        )
        cancelled = await registration_service.cancel_registrations(
            session, registration_ids, reason=COMPENSATION_REASON
        )
        await session.commit()
        logger.info("Cancelled %s registration(s) after payment failure", cancelled)
        raise CheckoutError(f"Failed to create checkout session: {exc}") from exc

    await session.execute(
        update(Registration)
        .where(Registration.id.in_(registration_ids))
        .values(
            stripe_checkout_session_id=payment_session.id,
            payment_method="stripe",
        )
        .execution_options(synchronize_session="fetch")
    )
    await session.commit()
    logger.info(
        "Checkout session %s opened for %s (%s camper(s), %s cents)",
        payment_session.id,
        mask_email(profile.email),
        len(registration_ids),
        totals["total"],
    )
    return CheckoutResult(
        registration_ids=registration_ids,
        checkout_url=payment_session.url,
        session_id=payment_session.id,
        total_cents=totals["total"],
    )
