"""Authorized pickup persons for athletes."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campreg.db.base import Base
from campreg.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from campreg.models.athlete import Athlete


class AuthorizedPickup(TimestampMixin, Base):
    """Person allowed to collect an athlete; deactivated, never deleted."""

    __tablename__ = "authorized_pickups"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    parent_profile_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    athlete_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("athletes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    relationship_to_athlete: Mapped[str] = mapped_column(
        "relationship", String(120), nullable=False
    )
    phone: Mapped[str | None] = mapped_column(String(32))
    photo_id_on_file: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    athlete: Mapped["Athlete"] = relationship(
        "Athlete", back_populates="authorized_pickups"
    )
