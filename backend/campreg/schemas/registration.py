"""Registration checkout schema definitions."""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckoutParent(CamelModel):
    """Parent/guardian details captured during checkout."""

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    emergency_contact_relationship: str | None = None


class CheckoutPickup(CamelModel):
    """Person authorized to collect a camper."""

    name: str
    relationship: str = "Other"
    phone: str | None = None


class CheckoutCamper(CamelModel):
    """One camper in the checkout batch."""

    id: str | None = None
    existing_athlete_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: datetime.date | None = None
    grade: str | None = None
    tshirt_size: str | None = None
    medical_notes: str | None = None
    allergies: str | None = None
    special_considerations: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    emergency_contact_relationship: str | None = None
    authorized_pickups: list[CheckoutPickup] = Field(default_factory=list)

    @field_validator("date_of_birth", "existing_athlete_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CheckoutAddon(CamelModel):
    """Add-on selection; ``unit_price`` is in cents."""

    addon_id: str
    variant_id: str | None = None
    camper_id: str | None = None
    quantity: int = Field(default=1, ge=1)
    unit_price: int = Field(default=0, ge=0)


class CheckoutTotals(CamelModel):
    """Client-computed totals, informational only."""

    camp_subtotal: int = 0
    add_ons_subtotal: int = 0
    sibling_discount: int = 0
    promo_discount: int = 0
    subtotal: int = 0
    tax: int = 0
    total: int = 0


class CheckoutRequest(CamelModel):
    """Input payload for ``POST /registrations/checkout``."""

    camp_id: str | None = None
    tenant_id: str | None = None
    parent: CheckoutParent | None = None
    campers: list[CheckoutCamper] | None = None
    add_ons: list[CheckoutAddon] = Field(default_factory=list)
    promo_code: str | None = None
    totals: CheckoutTotals | None = None


class CheckoutData(CamelModel):
    """Successful checkout payload."""

    registration_ids: list[uuid.UUID]
    checkout_url: str
    session_id: str


class CheckoutResponse(BaseModel):
    """Envelope returned by the checkout endpoint."""

    data: CheckoutData


class CamperQuote(CamelModel):
    """Server-side pricing for one camper."""

    camper_id: str | None = None
    base_price_cents: int
    discount_cents: int
    promo_discount_cents: int
    addons_total_cents: int
    tax_cents: int
    total_cents: int

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class QuoteData(CamelModel):
    """Aggregated pricing preview."""

    is_early_bird: bool
    promo_applied: bool
    campers: list[CamperQuote]
    totals: CheckoutTotals


class QuoteResponse(BaseModel):
    """Envelope returned by the quote endpoint."""

    data: QuoteData
