"""Redaction applied to error text before it leaves the process."""

from __future__ import annotations

import re

_EMAIL_RE = re.compile(r"(?i)\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b")
_IPV4_RE = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")
_JWT_RE = re.compile(r"\beyJ[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]{10,}\b")
_BEARER_RE = re.compile(r"(?i)\b(bearer|api[_-]?key|password|secret)([=:\s]+)\S+")


def redact_text(text: str) -> str:
    """Mask credentials and personal data; identifiers and paths are kept."""
    text = _JWT_RE.sub("<REDACTED_JWT>", text)
    text = _BEARER_RE.sub(r"\1\2<REDACTED_SECRET>", text)
    text = _EMAIL_RE.sub("<REDACTED_EMAIL>", text)
    text = _IPV4_RE.sub("<REDACTED_IP>", text)
    return text
