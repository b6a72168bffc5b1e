"""Tenant-scoped promo code definitions."""

from __future__ import annotations

import datetime
import enum
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campreg.db.base import Base
from campreg.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from campreg.models.tenant import Tenant


class DiscountType(str, enum.Enum):
    """How a promo code's value is interpreted."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PromoAppliesTo(str, enum.Enum):
    """Which part of a registration a promo code discounts."""

    REGISTRATION = "registration"
    ADDONS = "addons"
    BOTH = "both"


class PromoCode(TimestampMixin, Base):
    """Discount rule redeemable against one checkout."""

    __tablename__ = "promo_codes"
    __table_args__ = (UniqueConstraint("tenant_id", "code"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    discount_type: Mapped[DiscountType] = mapped_column(
        Enum(
            DiscountType,
            name="discounttype",
            values_callable=lambda enum_cls: [item.value for item in enum_cls],
        ),
        nullable=False,
    )
    # Percent points for PERCENTAGE, cents for FIXED.
    discount_value: Mapped[int] = mapped_column(Integer, nullable=False)
    applies_to: Mapped[PromoAppliesTo] = mapped_column(
        Enum(
            PromoAppliesTo,
            name="promoappliesto",
            values_callable=lambda enum_cls: [item.value for item in enum_cls],
        ),
        nullable=False,
        default=PromoAppliesTo.REGISTRATION,
    )
    max_uses: Mapped[int | None] = mapped_column(Integer)
    current_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_purchase_cents: Mapped[int | None] = mapped_column(Integer)
    valid_from: Mapped[datetime.date | None] = mapped_column(Date())
    valid_until: Mapped[datetime.date | None] = mapped_column(Date())
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="promo_codes")
