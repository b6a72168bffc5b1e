"""Camp session model."""

from __future__ import annotations

import datetime
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campreg.db.base import Base
from campreg.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from campreg.models.addon import Addon
    from campreg.models.registration import Registration
    from campreg.models.tenant import Tenant


class Camp(TimestampMixin, Base):
    """A sellable camp session with capacity and pricing."""

    __tablename__ = "camps"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    start_date: Mapped[datetime.date | None] = mapped_column(Date())
    end_date: Mapped[datetime.date | None] = mapped_column(Date())
    capacity: Mapped[int | None] = mapped_column(Integer, default=60)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    early_bird_price_cents: Mapped[int | None] = mapped_column(Integer)
    early_bird_deadline: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    tenant: Mapped["Tenant | None"] = relationship("Tenant", back_populates="camps")
    registrations: Mapped[list["Registration"]] = relationship(
        "Registration", back_populates="camp"
    )
    addons: Mapped[list["Addon"]] = relationship("Addon", back_populates="camp")
