"""Service layer exports."""
from campreg.services import (
    confirmation_service,
    party_service,
    pricing_service,
    promo_service,
    registration_service,
    payments_service,
    checkout_service,
)

__all__ = [
    "checkout_service",
    "confirmation_service",
    "party_service",
    "payments_service",
    "pricing_service",
    "promo_service",
    "registration_service",
]
