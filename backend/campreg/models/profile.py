"""Parent/guardian profile model."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campreg.db.base import Base
from campreg.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from campreg.models.athlete import Athlete


class Profile(TimestampMixin, Base):
    """Parent contact record keyed by email.

    The primary key doubles as the authenticated account id when the profile
    was created by a signed-in parent, so dashboard queries can join on it.
    """

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(120))
    last_name: Mapped[str | None] = mapped_column(String(120))
    phone: Mapped[str | None] = mapped_column(String(32))
    address_line1: Mapped[str | None] = mapped_column(String(255))
    address_line2: Mapped[str | None] = mapped_column(String(255))
    city: Mapped[str | None] = mapped_column(String(120))
    state: Mapped[str | None] = mapped_column(String(120))
    zip_code: Mapped[str | None] = mapped_column(String(32))
    emergency_contact_name: Mapped[str | None] = mapped_column(String(255))
    emergency_contact_phone: Mapped[str | None] = mapped_column(String(32))
    emergency_contact_relationship: Mapped[str | None] = mapped_column(String(120))

    athletes: Mapped[list["Athlete"]] = relationship(
        "Athlete", back_populates="parent", cascade="all, delete-orphan"
    )
