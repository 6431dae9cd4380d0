"""Error signature normalization.

Collapses instance-specific fragments (ids, timestamps, addresses, ports...)
of an error message into fixed placeholders so that occurrences of the same
failure share one grouping key.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .models import LogEvent

UNKNOWN_SIGNATURE = "UNKNOWN_ERROR"

_I = re.IGNORECASE

# "=abc-123" / ": abc:42". The value swallows trailing ":" and "=" so the
# placeholder is never left glued to another separator.
_LABELED_VALUE = r"[:=]\s*[\w-][\w:=-]*"

# Ordered: later rules see the output of earlier ones.
_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    # ids
    (re.compile(r"\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b", _I), "UUID"),
    (re.compile(r"\b[0-9a-f]{32}\b", _I), "GUID"),
    # timestamps
    (
        re.compile(r"\b\d{4}-\d{2}-\d{2}[T\s]\d{2}:\d{2}:\d{2}(?:\.\d{1,7})?Z?(?:[+-]\d{2}:?\d{2})?\b", _I),
        "TIMESTAMP",
    ),
    (re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\s\d{1,2}:\d{2}:\d{2}\s?(?:AM|PM)?\b", _I), "TIMESTAMP"),
    (re.compile(r"\b\d{10,13}\b"), "TIMESTAMP"),
    # labeled correlation ids; the label must be glued to ":" or "=" so a
    # placeholder followed by a plain word is never read as a label again
    (re.compile(rf"\b(?:transaction|session|request)[_-]?id{_LABELED_VALUE}", _I), "TRANSACTION_ID"),
    (re.compile(rf"\b(?:txn|req|sess)[_-]?id{_LABELED_VALUE}", _I), "TRANSACTION_ID"),
    (re.compile(rf"\b(?:correlation|trace)[_-]?id{_LABELED_VALUE}", _I), "CORRELATION_ID"),
    # network addresses
    (re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"), "IP_ADDRESS"),
    (re.compile(r"\b(?:[0-9a-f]{1,4}:){7}[0-9a-f]{1,4}\b", _I), "IPV6_ADDRESS"),
    (re.compile(r"\b0x[0-9a-f]+\b", _I), "MEMORY_ADDRESS"),
    # temp paths
    (re.compile(r"\b[a-z]:[\\/][^\\/\s]+[\\/]temp[\\/][^\\/\s]+", _I), "TEMP_PATH"),
    (re.compile(r"/tmp/\S+", _I), "TEMP_PATH"),
    # numeric entity ids
    (re.compile(r"\bid[:\s=]+\d+\b", _I), "NUMERIC_ID"),
    (re.compile(r"\b(?:user|customer|order|account)[_-]?id[:\s=]+\d+\b", _I), "ENTITY_ID"),
    (re.compile(r":\d{4,5}\b"), ":PORT"),
    (re.compile(r"\b\d{6,}\b"), "LARGE_NUMBER"),
    # template variables
    (re.compile(r"\$\{[^}]+\}"), "VARIABLE"),
    (re.compile(r"%[^%\s]+%"), "VARIABLE"),
    # stack-trace line markers
    (re.compile(r":\d+\)"), ":LINE)"),
    (re.compile(r"\bline\s+\d+", _I), "line NUMBER"),
)

_WS_RE = re.compile(r"\s+")

# No rule matches a placeholder, so one pass is stable; the second pass only
# confirms it.
_MAX_PASSES = 2


def _apply_rules(text: str) -> str:
    for pattern, placeholder in _RULES:
        text = pattern.sub(placeholder, text)
    return _WS_RE.sub(" ", text).strip().upper()


def normalize(raw_message: object) -> str:
    """Return the grouping signature for an error message.

    Total: never raises. Empty or non-string input yields ``UNKNOWN_ERROR``.
    Idempotent: ``normalize(normalize(x)) == normalize(x)``.
    """
    if not isinstance(raw_message, str) or not raw_message.strip():
        return UNKNOWN_SIGNATURE

    # Collapse first so whitespace-dependent patterns see the final spacing.
    current = _WS_RE.sub(" ", raw_message).strip()
    for _ in range(_MAX_PASSES):
        nxt = _apply_rules(current)
        if nxt == current:
            break
        current = nxt
    return current or UNKNOWN_SIGNATURE


def group_by_signature(events: Iterable[LogEvent]) -> dict[str, list[LogEvent]]:
    """Partition events by signature; groups keep first-occurrence order."""
    groups: dict[str, list[LogEvent]] = {}
    for e in events:
        if not e.message:
            continue
        groups.setdefault(normalize(e.message), []).append(e)
    return groups
