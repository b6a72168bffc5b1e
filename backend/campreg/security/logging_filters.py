"""Logging filters that scrub sensitive content."""

from __future__ import annotations

import logging
import re

_SENSITIVE_PATTERN = re.compile(
    r"(Authorization: Bearer\s+[\w\.-]+"
    r"|\b(?:sk|rk)_(?:live|test)_[A-Za-z0-9]+"
    r"|\bwhsec_[A-Za-z0-9]+"
    r"|\bcs_(?:live|test)_[A-Za-z0-9]+_secret_[A-Za-z0-9]+"
    r"|client_secret\"?\s*[:=]\s*\"?[^\",\s]+\"?"
    r"|access_token\"\s*:\s*\"[^\"]+\")",
    re.IGNORECASE,
)

REDACTION_MARKER = "**REDACTED**"


def scrub(value: str) -> str:
    return _SENSITIVE_PATTERN.sub(REDACTION_MARKER, value)


class SensitiveFilter(logging.Filter):
    """Replace sensitive tokens in log messages with a redaction marker."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = scrub(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                scrub(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


__all__ = ["REDACTION_MARKER", "SensitiveFilter", "scrub"]
