"""Error-category classification.

Rules are evaluated in order; the first predicate that matches decides the
category.
"""

from __future__ import annotations

import re
from enum import Enum

from ..models import ErrorContext


class ErrorCategory(str, Enum):
    AUTHENTICATION = "authentication"
    NULL_REFERENCE = "null_reference"
    CONNECTION = "connection"
    VALIDATION = "validation"
    GENERAL = "general"


_I = re.IGNORECASE

_CATEGORY_RULES: tuple[tuple[re.Pattern[str], ErrorCategory], ...] = (
    (
        re.compile(
            r"auth|token|unauthori[sz]ed|forbidden|\b40[13]\b|sign[-\s]?in|login|credential|oauth|claims|jwt",
            _I,
        ),
        ErrorCategory.AUTHENTICATION,
    ),
    (
        re.compile(
            r"null\s*reference|nullpointer|object reference not set|\bnull\b|nonetype|undefined is not|cannot read propert",
            _I,
        ),
        ErrorCategory.NULL_REFERENCE,
    ),
    (
        re.compile(
            r"connection|timed?\s*out|timeout|refused|socket|network|unreachable|econnreset|\b50[234]\b|dns",
            _I,
        ),
        ErrorCategory.CONNECTION,
    ),
    (
        re.compile(r"validat|invalid|argument|format|pars(e|ing)|required|constraint|schema", _I),
        ErrorCategory.VALIDATION,
    ),
)

CATEGORY_KEYWORDS: dict[ErrorCategory, tuple[str, ...]] = {
    ErrorCategory.AUTHENTICATION: (
        "auth",
        "token",
        "oauth",
        "claims",
        "signin",
        "login",
        "identity",
        "jwt",
        "credential",
        "permission",
    ),
    ErrorCategory.NULL_REFERENCE: (
        "null",
        "nullable",
        "optional",
        "guard",
        "check",
        "default",
        "initialize",
    ),
    ErrorCategory.CONNECTION: (
        "connection",
        "timeout",
        "retry",
        "client",
        "http",
        "socket",
        "pool",
        "circuit",
    ),
    ErrorCategory.VALIDATION: (
        "validation",
        "validate",
        "validator",
        "schema",
        "input",
        "parse",
        "format",
        "model",
    ),
    ErrorCategory.GENERAL: (
        "exception",
        "handler",
        "middleware",
    ),
}


def classify_error(context: ErrorContext) -> ErrorCategory:
    """Return the category of an error from its message and type."""
    text = f"{context.exception_type or ''} {context.error_text}"
    for pattern, category in _CATEGORY_RULES:
        if pattern.search(text):
            return category
    return ErrorCategory.GENERAL
