"""Purchasable add-ons attachable to registrations."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campreg.db.base import Base
from campreg.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from campreg.models.camp import Camp


class Addon(TimestampMixin, Base):
    """Extra item (merchandise, meal plan, ...) sold alongside a camp."""

    __tablename__ = "addons"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    camp_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("camps.id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    camp: Mapped["Camp | None"] = relationship("Camp", back_populates="addons")
    variants: Mapped[list["AddonVariant"]] = relationship(
        "AddonVariant", back_populates="addon", cascade="all, delete-orphan"
    )


class AddonVariant(TimestampMixin, Base):
    """Size/flavor variant of an add-on."""

    __tablename__ = "addon_variants"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    addon_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("addons.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    price_adjustment_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    addon: Mapped["Addon"] = relationship("Addon", back_populates="variants")
