"""Promo code lookup and usage tracking."""

from __future__ import annotations

import datetime
import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from campreg.models import PromoCode

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return code.strip().upper()


async def find_applicable_promo(
    session: AsyncSession,
    *,
    tenant_id: UUID,
    code: str | None,
    today: datetime.date,
) -> PromoCode | None:
    """Return the tenant's active promo for ``code`` or ``None``.

    Unknown, expired or exhausted codes do not fail checkout; the
    registration is simply priced without a promo discount.
    """
    if not code or not code.strip():
        return None
    stmt = select(PromoCode).where(
        PromoCode.tenant_id == tenant_id,
        PromoCode.code == normalize_code(code),
        PromoCode.is_active.is_(True),
    )
    promo = (await session.execute(stmt)).scalars().first()
    if promo is None:
        logger.info("Promo code %s not found for tenant %s", code, tenant_id)
        return None
    if promo.valid_from and today < promo.valid_from:
        return None
    if promo.valid_until and today > promo.valid_until:
        return None
    if promo.max_uses is not None and promo.current_uses >= promo.max_uses:
        logger.info("Promo code %s exhausted (%s uses)", promo.code, promo.current_uses)
        return None
    return promo


def meets_minimum(promo: PromoCode, purchase_cents: int) -> bool:
    if promo.min_purchase_cents is None:
        return True
    return purchase_cents >= promo.min_purchase_cents


async def record_usage(session: AsyncSession, promo_id: UUID) -> None:
    """Increment the promo's redemption counter."""
    await session.execute(
        update(PromoCode)
        .where(PromoCode.id == promo_id)
        .values(current_uses=PromoCode.current_uses + 1)
    )
