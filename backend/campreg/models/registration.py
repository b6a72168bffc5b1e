"""Registration models."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campreg.db.base import Base
from campreg.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from campreg.models.addon import Addon, AddonVariant
    from campreg.models.athlete import Athlete
    from campreg.models.camp import Camp
    from campreg.models.profile import Profile


class RegistrationStatus(str, enum.Enum):
    """Lifecycle states for registrations."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    """Payment progress for a registration."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


ACTIVE_REGISTRATION_STATUSES = (
    RegistrationStatus.PENDING,
    RegistrationStatus.CONFIRMED,
)


class Registration(TimestampMixin, Base):
    """One camper enrolled in one camp."""

    __tablename__ = "registrations"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    camp_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("camps.id", ondelete="CASCADE"), nullable=False, index=True
    )
    athlete_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("athletes.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    base_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    promo_discount_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    addons_total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tax_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    promo_code_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("promo_codes.id", ondelete="SET NULL")
    )
    shirt_size: Mapped[str | None] = mapped_column(String(16))
    special_considerations: Mapped[str | None] = mapped_column(Text())
    status: Mapped[RegistrationStatus] = mapped_column(
        Enum(
            RegistrationStatus,
            name="registrationstatus",
            values_callable=lambda enum_cls: [item.value for item in enum_cls],
        ),
        default=RegistrationStatus.PENDING,
        nullable=False,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(
            PaymentStatus,
            name="paymentstatus",
            values_callable=lambda enum_cls: [item.value for item in enum_cls],
        ),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    payment_method: Mapped[str | None] = mapped_column(String(32))
    stripe_checkout_session_id: Mapped[str | None] = mapped_column(
        String(255), index=True
    )
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(255))
    confirmation_number: Mapped[str | None] = mapped_column(String(16), index=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[str | None] = mapped_column(Text())

    camp: Mapped["Camp"] = relationship("Camp", back_populates="registrations")
    athlete: Mapped["Athlete"] = relationship(
        "Athlete", back_populates="registrations"
    )
    parent: Mapped["Profile"] = relationship("Profile")
    addons: Mapped[list["RegistrationAddon"]] = relationship(
        "RegistrationAddon",
        back_populates="registration",
        cascade="all, delete-orphan",
    )


class RegistrationAddon(TimestampMixin, Base):
    """Add-on line item purchased with a registration."""

    __tablename__ = "registration_addons"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    registration_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False
    )
    addon_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("addons.id", ondelete="CASCADE"), nullable=False
    )
    variant_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("addon_variants.id", ondelete="SET NULL")
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    registration: Mapped["Registration"] = relationship(
        "Registration", back_populates="addons"
    )
    addon: Mapped["Addon"] = relationship("Addon")
    variant: Mapped["AddonVariant | None"] = relationship("AddonVariant")
