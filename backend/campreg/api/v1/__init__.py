"""Versioned API router."""

from fastapi import APIRouter

from . import health, payments_webhook, registrations

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(
    registrations.router, prefix="/registrations", tags=["registrations"]
)
router.include_router(payments_webhook.router, tags=["payments-webhook"])
