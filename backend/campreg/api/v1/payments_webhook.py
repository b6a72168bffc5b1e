"""Stripe webhook receiver for registration payments and local simulators."""

from __future__ import annotations

import json
import logging
from typing import Any, cast
from uuid import uuid4

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campreg.api import deps
from campreg.core.config import get_settings
from campreg.core.settings import get_payment_settings
from campreg.integrations import StripeClient, StripeClientError
from campreg.models import PaymentEvent
from campreg.services import payments_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments-webhook"])


async def _record_event(
    session: AsyncSession, event_id: str, event_type: str, payload: dict[str, Any]
) -> bool:
    """Store the event; return ``False`` when it was already processed."""
    session.add(
        PaymentEvent(provider_event_id=event_id, event_type=event_type, raw=payload)
    )
    try:
        await session.commit()
    except IntegrityError:  # duplicate events are ignored
        await session.rollback()
        return False
    return True


async def _process_event(
    session: AsyncSession, payload: dict[str, Any]
) -> dict[str, Any]:
    event_id = str(payload.get("id") or uuid4())
    event_type = payload.get("type", "")
    data_object = payload.get("data", {}).get("object", {}) or {}
    metadata = data_object.get("metadata") or {}

    if not await _record_event(session, event_id, event_type, payload):
        logger.info("Skipping duplicate webhook event %s", event_id)
        return {"status": "duplicate"}

    status_payload = "ignored"
    registration_ids = payments_service.registration_ids_from_metadata(metadata)

    if event_type == "checkout.session.completed":
        if metadata.get("type") == payments_service.REGISTRATION_METADATA_TYPE:
            await payments_service.mark_registrations_paid(
                session,
                registration_ids=registration_ids,
                checkout_session_id=data_object.get("id"),
                payment_intent_id=data_object.get("payment_intent"),
            )
            status_payload = "processed"

    elif event_type == "payment_intent.payment_failed":
        reason = (data_object.get("last_payment_error", {}) or {}).get("message")
        await payments_service.mark_payment_failed(
            session,
            registration_ids=registration_ids,
            payment_intent_id=data_object.get("id"),
            reason=reason,
        )
        status_payload = "processed"

    elif event_type == "charge.refunded":
        await payments_service.apply_refund(
            session,
            registration_ids=registration_ids,
            payment_intent_id=data_object.get("payment_intent"),
        )
        status_payload = "processed"

    return {"status": status_payload}


@router.post("/webhook", status_code=status.HTTP_200_OK)
async def handle_webhook(
    request: Request,
    session: AsyncSession = Depends(deps.get_db_session),
    stripe_client: StripeClient = Depends(deps.get_stripe_client),
) -> dict[str, Any]:
    settings = get_payment_settings()
    payload_bytes = await request.body()
    payload: dict[str, Any]

    if settings.payments_webhook_verify:
        signature = request.headers.get("Stripe-Signature")
        if not signature:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing signature header",
            )
        try:
            event = stripe_client.construct_event(payload_bytes, signature)
        except StripeClientError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
            ) from exc
        if hasattr(event, "to_dict_recursive"):
            payload = cast(dict[str, Any], event.to_dict_recursive())
        elif hasattr(event, "to_dict"):
            payload = cast(dict[str, Any], event.to_dict())
        else:
            payload = cast(dict[str, Any], event)
    else:
        try:
            payload = json.loads(payload_bytes)
        except json.JSONDecodeError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload"
            ) from exc

    return await _process_event(session, payload)


@router.post("/dev/simulate-webhook", status_code=status.HTTP_200_OK)
async def simulate_webhook(
    payload: dict[str, Any] = Body(...),
    session: AsyncSession = Depends(deps.get_db_session),
) -> dict[str, Any]:
    settings = get_settings()
    if settings.app_env.lower() != "local":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Simulation route available in local environment only",
        )

    enriched_payload = dict(payload)
    enriched_payload.setdefault("id", f"simulated_{uuid4().hex}")
    return await _process_event(session, enriched_payload)
