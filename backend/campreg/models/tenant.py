"""Tenant model representing a licensee organization."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campreg.db.base import Base
from campreg.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from campreg.models.camp import Camp
    from campreg.models.promo_code import PromoCode


class Tenant(TimestampMixin, Base):
    """A licensee that owns camps, promo codes and a sales tax rate."""

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    tax_rate_percent: Mapped[Decimal] = mapped_column(
        Numeric(6, 3), nullable=False, default=Decimal("0")
    )

    camps: Mapped[list["Camp"]] = relationship("Camp", back_populates="tenant")
    promo_codes: Mapped[list["PromoCode"]] = relationship(
        "PromoCode", back_populates="tenant", cascade="all, delete-orphan"
    )
