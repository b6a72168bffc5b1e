"""Per-camper pricing for registration checkout.

All amounts are integer cents. Each discount and tax step rounds half-up to a
whole cent before the next step consumes it, so totals never carry fractional
cents forward.
"""

from __future__ import annotations

import datetime
import re
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Sequence

from campreg.models import Camp, DiscountType, PromoAppliesTo, PromoCode

SIBLING_DISCOUNT_PERCENT = Decimal("10")
WHOLE_CENT = Decimal("1")
UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
    re.IGNORECASE,
)


@dataclass(slots=True)
class AddonLine:
    """A selected add-on priced at ``unit_price_cents`` x ``quantity``."""

    addon_id: str
    unit_price_cents: int
    quantity: int = 1
    variant_id: str | None = None
    camper_ref: str | None = None
    is_taxable: bool = False

    @property
    def subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    @property
    def is_persistable(self) -> bool:
        """Placeholder add-ons carry non-UUID ids and are never stored."""
        return is_uuid(self.addon_id)


@dataclass(slots=True)
class CamperPricing:
    """Pricing output for one registration line."""

    base_price_cents: int
    discount_cents: int
    promo_discount_cents: int
    addons_total_cents: int
    tax_cents: int
    addons: list[AddonLine] = field(default_factory=list)

    @property
    def total_cents(self) -> int:
        return (
            self.base_price_cents
            - self.discount_cents
            - self.promo_discount_cents
            + self.addons_total_cents
            + self.tax_cents
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_price_cents": self.base_price_cents,
            "discount_cents": self.discount_cents,
            "promo_discount_cents": self.promo_discount_cents,
            "addons_total_cents": self.addons_total_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
        }


def is_uuid(value: str | None) -> bool:
    """Accept only canonical hyphenated UUIDs (version 1-5, RFC 4122 variant)."""
    if not value:
        return False
    return UUID_PATTERN.fullmatch(str(value)) is not None


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(WHOLE_CENT, rounding=ROUND_HALF_UP))


def _percent_of(amount_cents: int, percent: Decimal | int | float | str) -> int:
    return _round_cents(Decimal(amount_cents) * Decimal(str(percent)) / Decimal("100"))


def is_early_bird(camp: Camp, now: datetime.datetime) -> bool:
    """Early-bird pricing holds strictly before the deadline."""
    if camp.early_bird_price_cents is None or camp.early_bird_deadline is None:
        return False
    deadline = camp.early_bird_deadline
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=datetime.timezone.utc)
    return now < deadline


def effective_camp_price_cents(camp: Camp, now: datetime.datetime) -> int:
    if is_early_bird(camp, now):
        return int(camp.early_bird_price_cents or 0)
    return int(camp.price_cents)


def sibling_discount_cents(camp_price_cents: int, camper_index: int) -> int:
    if camper_index == 0:
        return 0
    return _percent_of(camp_price_cents, SIBLING_DISCOUNT_PERCENT)


def promo_eligible_cents(
    promo: PromoCode, *, camp_price_cents: int, addons_subtotal_cents: int
) -> int:
    if promo.applies_to is PromoAppliesTo.ADDONS:
        return addons_subtotal_cents
    if promo.applies_to is PromoAppliesTo.BOTH:
        return camp_price_cents + addons_subtotal_cents
    return camp_price_cents


def promo_discount_cents(
    promo: PromoCode | None,
    *,
    camp_price_cents: int,
    addons_subtotal_cents: int,
    camper_index: int,
) -> int:
    """Promo codes discount only the first camper of a checkout."""
    if promo is None or camper_index != 0:
        return 0
    eligible = promo_eligible_cents(
        promo,
        camp_price_cents=camp_price_cents,
        addons_subtotal_cents=addons_subtotal_cents,
    )
    if eligible <= 0:
        return 0
    if promo.discount_type is DiscountType.FIXED:
        return max(0, min(int(promo.discount_value), eligible))
    return min(_percent_of(eligible, promo.discount_value), eligible)


def tax_cents(addons: Iterable[AddonLine], tax_rate_percent: Decimal | int | float) -> int:
    """Sales tax on taxable add-ons only; the camp fee is never taxed."""
    rate = Decimal(str(tax_rate_percent or 0))
    if rate <= 0:
        return 0
    taxable = sum(line.subtotal_cents for line in addons if line.is_taxable)
    return _percent_of(taxable, rate)


def price_camper(
    *,
    camp_price_cents: int,
    camper_index: int,
    addons: Sequence[AddonLine],
    promo: PromoCode | None,
    tax_rate_percent: Decimal | int | float,
) -> CamperPricing:
    """Compute the full pricing breakdown for one camper."""
    addons_total = sum(line.subtotal_cents for line in addons)
    return CamperPricing(
        base_price_cents=camp_price_cents,
        discount_cents=sibling_discount_cents(camp_price_cents, camper_index),
        promo_discount_cents=promo_discount_cents(
            promo,
            camp_price_cents=camp_price_cents,
            addons_subtotal_cents=addons_total,
            camper_index=camper_index,
        ),
        addons_total_cents=addons_total,
        tax_cents=tax_cents(addons, tax_rate_percent),
        addons=list(addons),
    )


def assign_addons(
    addons: Sequence[AddonLine], camper_refs: Sequence[str | None]
) -> list[list[AddonLine]]:
    """Split add-on selections per camper.

    Selections naming a camper go to that camper; selections without a camper
    (per-order items) go to the first camper.
    """
    buckets: list[list[AddonLine]] = [[] for _ in camper_refs]
    if not buckets:
        return buckets
    positions = {ref: index for index, ref in enumerate(camper_refs) if ref}
    for line in addons:
        if line.camper_ref is None:
            buckets[0].append(line)
            continue
        index = positions.get(line.camper_ref)
        if index is not None:
            buckets[index].append(line)
    return buckets
