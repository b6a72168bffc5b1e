"""ORM models package export."""

from campreg.models.addon import Addon, AddonVariant
from campreg.models.athlete import Athlete
from campreg.models.authorized_pickup import AuthorizedPickup
from campreg.models.camp import Camp
from campreg.models.payment import PaymentEvent
from campreg.models.profile import Profile
from campreg.models.promo_code import DiscountType, PromoAppliesTo, PromoCode
from campreg.models.registration import (
    ACTIVE_REGISTRATION_STATUSES,
    PaymentStatus,
    Registration,
    RegistrationAddon,
    RegistrationStatus,
)
from campreg.models.tenant import Tenant

__all__ = [
    "ACTIVE_REGISTRATION_STATUSES",
    "Addon",
    "AddonVariant",
    "Athlete",
    "AuthorizedPickup",
    "Camp",
    "DiscountType",
    "PaymentEvent",
    "PaymentStatus",
    "Profile",
    "PromoAppliesTo",
    "PromoCode",
    "Registration",
    "RegistrationAddon",
    "RegistrationStatus",
    "Tenant",
]
