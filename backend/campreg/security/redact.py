"""Helpers for redacting parent and camper PII before logging."""

from __future__ import annotations

from typing import Any


def mask_email(value: str | None) -> str | None:
    if not value or "@" not in value:
        return value
    local, _, domain = value.partition("@")
    if not local:
        return "***@" + domain
    return f"{local[0]}***@{domain}"


def mask_phone(value: str | None) -> str | None:
    if not value:
        return value
    digits = [ch for ch in value if ch.isdigit()]
    if len(digits) < 4:
        return "***"
    return f"***-***-{''.join(digits[-4:])}"


_DROPPED_CAMPER_KEYS = ("medicalNotes", "allergies", "dateOfBirth", "specialConsiderations")


def redact_checkout_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a checkout body safe to write to logs."""
    masked = dict(payload)
    parent = masked.get("parent")
    if isinstance(parent, dict):
        parent = dict(parent)
        parent["email"] = mask_email(parent.get("email"))
        for key in ("phone", "emergencyContactPhone"):
            if key in parent:
                parent[key] = mask_phone(parent.get(key))
        for key in ("addressLine1", "addressLine2"):
            if parent.get(key):
                parent[key] = "REDACTED"
        masked["parent"] = parent
    campers = masked.get("campers")
    if isinstance(campers, list):
        cleaned = []
        for camper in campers:
            if isinstance(camper, dict):
                camper = {
                    key: value
                    for key, value in camper.items()
                    if key not in _DROPPED_CAMPER_KEYS
                }
            cleaned.append(camper)
        masked["campers"] = cleaned
    return masked


__all__ = ["mask_email", "mask_phone", "redact_checkout_payload"]
