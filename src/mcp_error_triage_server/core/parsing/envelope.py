"""Raw event envelope decoding.

Log platforms deliver an outer JSON record whose ``_raw`` (or ``raw``) field
is itself a JSON document produced by the application's structured logger.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..errors import MalformedPayload
from ..time_window import coerce_dt

RAW_KEYS = ("_raw", "raw")
EXCEPTION_KEYS = ("@x", "Exception", "exception")
TEMPLATE_KEYS = ("@mt", "MessageTemplate", "messageTemplate")
RENDERED_KEYS = ("@m", "RenderedMessage", "message")


@dataclass(frozen=True, slots=True)
class RawEnvelope:
    """Decoded outer + inner payload."""

    service_name: str | None
    environment: str | None
    timestamp: datetime | None
    exception_text: str
    message_template: str
    source_context: str | None
    inner: Mapping[str, Any]


def _load_object(data: str | bytes | Mapping[str, Any], *, stage: str) -> Mapping[str, Any]:
    if isinstance(data, Mapping):
        return data
    try:
        obj = json.loads(data)
    except (json.JSONDecodeError, TypeError, UnicodeDecodeError) as e:
        raise MalformedPayload(f"Failed to parse the {stage} JSON: {e}", stage=stage) from e
    if not isinstance(obj, dict):
        raise MalformedPayload(f"The {stage} JSON is not an object", stage=stage)
    return obj


def _first_str(obj: Mapping[str, Any], keys: tuple[str, ...]) -> str | None:
    for k in keys:
        v = obj.get(k)
        if isinstance(v, str) and v:
            return v
    return None


def decode_envelope(payload: str | bytes | Mapping[str, Any]) -> RawEnvelope:
    """Decode both JSON layers; raise MalformedPayload naming the failing stage."""
    outer = _load_object(payload, stage="envelope")

    raw = next((outer[k] for k in RAW_KEYS if k in outer), None)
    if raw is None:
        raise MalformedPayload("Envelope has no raw field", stage="envelope")
    inner = _load_object(raw, stage="raw")

    exception_text = _first_str(inner, EXCEPTION_KEYS) or _first_str(inner, RENDERED_KEYS)
    if not exception_text:
        raise MalformedPayload("Raw payload carries no exception text", stage="content")

    raw_time = outer.get("_time") or outer.get("time") or inner.get("@t")
    timestamp = coerce_dt(raw_time)
    if raw_time and timestamp is None:
        raise MalformedPayload(f"Unparseable event time: {raw_time!r}", stage="envelope")

    return RawEnvelope(
        service_name=outer.get("Application") or outer.get("serviceName") or inner.get("Application"),
        environment=outer.get("Environment") or outer.get("environment") or inner.get("Environment"),
        timestamp=timestamp,
        exception_text=exception_text,
        message_template=_first_str(inner, TEMPLATE_KEYS) or "",
        source_context=_first_str(inner, ("SourceContext",)),
        inner=inner,
    )
