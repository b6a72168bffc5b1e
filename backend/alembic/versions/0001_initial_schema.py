"""Initial registration checkout schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def _uuid_fk(
    name: str, target: str, *, ondelete: str, nullable: bool = False
) -> sa.Column:
    return sa.Column(
        name,
        sa.Uuid(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


registration_status_enum = sa.Enum(
    "pending", "confirmed", "cancelled", name="registrationstatus"
)
payment_status_enum = sa.Enum(
    "pending", "paid", "failed", "refunded", name="paymentstatus"
)
discount_type_enum = sa.Enum("percentage", "fixed", name="discounttype")
promo_applies_to_enum = sa.Enum(
    "registration", "addons", "both", name="promoappliesto"
)


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column(
            "tax_rate_percent",
            sa.Numeric(6, 3),
            nullable=False,
            server_default="0",
        ),
        *_timestamps(),
    )

    op.create_table(
        "camps",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _uuid_fk("tenant_id", "tenants.id", ondelete="SET NULL", nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("start_date", sa.Date()),
        sa.Column("end_date", sa.Date()),
        sa.Column("capacity", sa.Integer()),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("early_bird_price_cents", sa.Integer()),
        sa.Column("early_bird_deadline", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_camps_slug", "camps", ["slug"])

    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("first_name", sa.String(length=120)),
        sa.Column("last_name", sa.String(length=120)),
        sa.Column("phone", sa.String(length=32)),
        sa.Column("address_line1", sa.String(length=255)),
        sa.Column("address_line2", sa.String(length=255)),
        sa.Column("city", sa.String(length=120)),
        sa.Column("state", sa.String(length=120)),
        sa.Column("zip_code", sa.String(length=32)),
        sa.Column("emergency_contact_name", sa.String(length=255)),
        sa.Column("emergency_contact_phone", sa.String(length=32)),
        sa.Column("emergency_contact_relationship", sa.String(length=120)),
        *_timestamps(),
    )

    op.create_table(
        "athletes",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _uuid_fk("parent_id", "profiles.id", ondelete="CASCADE"),
        _uuid_fk("tenant_id", "tenants.id", ondelete="SET NULL", nullable=True),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column("grade", sa.String(length=32)),
        sa.Column("t_shirt_size", sa.String(length=16)),
        sa.Column("medical_notes", sa.Text()),
        sa.Column("allergies", sa.Text()),
        sa.Column("emergency_contact_name", sa.String(length=255)),
        sa.Column("emergency_contact_phone", sa.String(length=32)),
        sa.Column("emergency_contact_relationship", sa.String(length=120)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_athletes_parent_id", "athletes", ["parent_id"])

    op.create_table(
        "authorized_pickups",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _uuid_fk("parent_profile_id", "profiles.id", ondelete="CASCADE"),
        _uuid_fk("athlete_id", "athletes.id", ondelete="CASCADE"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("relationship", sa.String(length=120), nullable=False),
        sa.Column("phone", sa.String(length=32)),
        sa.Column(
            "photo_id_on_file", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(
        "ix_authorized_pickups_athlete_id", "authorized_pickups", ["athlete_id"]
    )

    op.create_table(
        "addons",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _uuid_fk("tenant_id", "tenants.id", ondelete="CASCADE"),
        _uuid_fk("camp_id", "camps.id", ondelete="CASCADE", nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_taxable", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "addon_variants",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _uuid_fk("addon_id", "addons.id", ondelete="CASCADE"),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "price_adjustment_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "promo_codes",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _uuid_fk("tenant_id", "tenants.id", ondelete="CASCADE"),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("discount_type", discount_type_enum, nullable=False),
        sa.Column("discount_value", sa.Integer(), nullable=False),
        sa.Column(
            "applies_to",
            promo_applies_to_enum,
            nullable=False,
            server_default="registration",
        ),
        sa.Column("max_uses", sa.Integer()),
        sa.Column("current_uses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_purchase_cents", sa.Integer()),
        sa.Column("valid_from", sa.Date()),
        sa.Column("valid_until", sa.Date()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "code"),
    )

    op.create_table(
        "registrations",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _uuid_fk("tenant_id", "tenants.id", ondelete="CASCADE"),
        _uuid_fk("camp_id", "camps.id", ondelete="CASCADE"),
        _uuid_fk("athlete_id", "athletes.id", ondelete="CASCADE"),
        _uuid_fk("parent_id", "profiles.id", ondelete="CASCADE"),
        sa.Column("base_price_cents", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "promo_discount_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "addons_total_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("tax_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_price_cents", sa.Integer(), nullable=False),
        _uuid_fk("promo_code_id", "promo_codes.id", ondelete="SET NULL", nullable=True),
        sa.Column("shirt_size", sa.String(length=16)),
        sa.Column("special_considerations", sa.Text()),
        sa.Column(
            "status",
            registration_status_enum,
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "payment_status",
            payment_status_enum,
            nullable=False,
            server_default="pending",
        ),
        sa.Column("payment_method", sa.String(length=32)),
        sa.Column("stripe_checkout_session_id", sa.String(length=255)),
        sa.Column("stripe_payment_intent_id", sa.String(length=255)),
        sa.Column("confirmation_number", sa.String(length=16)),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancellation_reason", sa.Text()),
        *_timestamps(),
    )
    op.create_index("ix_registrations_camp_id", "registrations", ["camp_id"])
    op.create_index(
        "ix_registrations_stripe_checkout_session_id",
        "registrations",
        ["stripe_checkout_session_id"],
    )
    op.create_index(
        "ix_registrations_confirmation_number",
        "registrations",
        ["confirmation_number"],
    )

    op.create_table(
        "registration_addons",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _uuid_fk("registration_id", "registrations.id", ondelete="CASCADE"),
        _uuid_fk("addon_id", "addons.id", ondelete="CASCADE"),
        _uuid_fk("variant_id", "addon_variants.id", ondelete="SET NULL", nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "payment_events",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "provider_event_id", sa.String(length=255), nullable=False, unique=True
        ),
        sa.Column("event_type", sa.String(length=120), nullable=False),
        sa.Column(
            "received_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "raw",
            postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite"),
            nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table("payment_events")
    op.drop_table("registration_addons")
    op.drop_index("ix_registrations_confirmation_number", table_name="registrations")
    op.drop_index(
        "ix_registrations_stripe_checkout_session_id", table_name="registrations"
    )
    op.drop_index("ix_registrations_camp_id", table_name="registrations")
    op.drop_table("registrations")
    op.drop_table("promo_codes")
    op.drop_table("addon_variants")
    op.drop_table("addons")
    op.drop_index("ix_authorized_pickups_athlete_id", table_name="authorized_pickups")
    op.drop_table("authorized_pickups")
    op.drop_index("ix_athletes_parent_id", table_name="athletes")
    op.drop_table("athletes")
    op.drop_table("profiles")
    op.drop_index("ix_camps_slug", table_name="camps")
    op.drop_table("camps")
    op.drop_table("tenants")

    bind = op.get_bind()
    for enum in (
        promo_applies_to_enum,
        discount_type_enum,
        payment_status_enum,
        registration_status_enum,
    ):
        enum.drop(bind, checkfirst=True)
