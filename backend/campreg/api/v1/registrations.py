"""Public registration checkout API."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from sqlalchemy.ext.asyncio import AsyncSession

from campreg.api import deps
from campreg.core.config import get_settings
from campreg.integrations import StripeClient
from campreg.schemas.registration import (
    CamperQuote,
    CheckoutData,
    CheckoutRequest,
    CheckoutResponse,
    CheckoutTotals,
    QuoteData,
    QuoteResponse,
)
from campreg.security.redact import redact_checkout_payload
from campreg.services import checkout_service
from campreg.services.party_service import AuthUser

logger = logging.getLogger(__name__)

router = APIRouter()

_settings = get_settings()


def _parse_rate(value: str, *, fallback: tuple[int, int]) -> tuple[int, int]:
    try:
        count_str, window_str = value.split("/", 1)
        count = int(count_str.strip())
    except ValueError:
        return fallback
    window = window_str.strip().lower()
    seconds_map = {
        "second": 1,
        "seconds": 1,
        "minute": 60,
        "minutes": 60,
        "hour": 3600,
        "hours": 3600,
    }
    return count, seconds_map.get(window, fallback[1])


_CHECKOUT_LIMIT = _parse_rate(_settings.rate_limit_checkout, fallback=(20, 60))
_QUOTE_LIMIT = _parse_rate(_settings.rate_limit_default, fallback=(100, 60))


def _rate_dependency(limit: tuple[int, int]):
    async def _dependency(request: Request, response: Response) -> None:
        if FastAPILimiter.redis is None:
            return None
        limiter = RateLimiter(times=limit[0], seconds=limit[1])
        await limiter(request, response)

    return Depends(_dependency)


_CHECKOUT_RATE_DEP = _rate_dependency(_CHECKOUT_LIMIT)
_QUOTE_RATE_DEP = _rate_dependency(_QUOTE_LIMIT)


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(exc) or "Failed to process checkout",
    )


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    summary="Create registrations and a payment session",
    dependencies=[_CHECKOUT_RATE_DEP],
)
async def create_checkout(
    payload: CheckoutRequest,
    request: Request,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    stripe_client: Annotated[StripeClient, Depends(deps.get_stripe_client)],
    auth_user: Annotated[AuthUser | None, Depends(deps.get_optional_user)],
) -> CheckoutResponse:
    try:
        result = await checkout_service.checkout(
            session,
            payload,
            auth_user=auth_user,
            origin=request.headers.get("origin"),
            stripe=stripe_client,
        )
    except (ValueError, LookupError) as exc:
        logger.info(
            "Checkout rejected for camp %s: %s (%s)",
            payload.camp_id,
            exc,
            redact_checkout_payload(payload.model_dump(by_alias=True, mode="json")),
        )
        raise _http_error(exc) from exc
    except checkout_service.CheckoutError as exc:
        raise _http_error(exc) from exc
    return CheckoutResponse(
        data=CheckoutData(
            registration_ids=result.registration_ids,
            checkout_url=result.checkout_url,
            session_id=result.session_id,
        )
    )


@router.post(
    "/quote",
    response_model=QuoteResponse,
    summary="Price a checkout without registering",
    dependencies=[_QUOTE_RATE_DEP],
)
async def quote_checkout(
    payload: CheckoutRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> QuoteResponse:
    try:
        result = await checkout_service.quote(session, payload)
    except (ValueError, LookupError) as exc:
        raise _http_error(exc) from exc
    return QuoteResponse(
        data=QuoteData(
            is_early_bird=result.is_early_bird,
            promo_applied=result.promo_applied,
            campers=[
                CamperQuote(camper_id=ref, **pricing.to_dict())
                for ref, pricing in result.campers
            ],
            totals=CheckoutTotals(**result.totals),
        )
    )
