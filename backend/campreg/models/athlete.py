"""Athlete (camper) model."""

from __future__ import annotations

import datetime
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campreg.db.base import Base
from campreg.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from campreg.models.authorized_pickup import AuthorizedPickup
    from campreg.models.profile import Profile
    from campreg.models.registration import Registration


class Athlete(TimestampMixin, Base):
    """A camper owned by exactly one parent profile."""

    __tablename__ = "athletes"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    parent_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("tenants.id", ondelete="SET NULL")
    )
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    date_of_birth: Mapped[datetime.date] = mapped_column(Date(), nullable=False)
    grade: Mapped[str | None] = mapped_column(String(32))
    t_shirt_size: Mapped[str | None] = mapped_column(String(16))
    medical_notes: Mapped[str | None] = mapped_column(Text())
    allergies: Mapped[str | None] = mapped_column(Text())
    emergency_contact_name: Mapped[str | None] = mapped_column(String(255))
    emergency_contact_phone: Mapped[str | None] = mapped_column(String(32))
    emergency_contact_relationship: Mapped[str | None] = mapped_column(String(120))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    parent: Mapped["Profile"] = relationship("Profile", back_populates="athletes")
    registrations: Mapped[list["Registration"]] = relationship(
        "Registration", back_populates="athlete"
    )
    authorized_pickups: Mapped[list["AuthorizedPickup"]] = relationship(
        "AuthorizedPickup", back_populates="athlete", cascade="all, delete-orphan"
    )
