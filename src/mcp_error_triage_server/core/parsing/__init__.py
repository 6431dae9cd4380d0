"""Exception parsing strategies.

The deterministic parser is always available; the completion-service
strategy is an optional substitute that falls back to it.
"""

from __future__ import annotations

from .ai import parse_event_with_completion
from .envelope import RawEnvelope, decode_envelope
from .exception import (
    APP_TYPE_MARKERS,
    DENIED_NAMESPACES,
    NO_MESSAGE_FALLBACK,
    ExceptionParser,
    FrameShape,
    classify_frame_line,
    parse_event,
    split_qualified_name,
)

__all__ = [
    "APP_TYPE_MARKERS",
    "DENIED_NAMESPACES",
    "NO_MESSAGE_FALLBACK",
    "ExceptionParser",
    "FrameShape",
    "RawEnvelope",
    "classify_frame_line",
    "decode_envelope",
    "parse_event",
    "parse_event_with_completion",
    "split_qualified_name",
]
