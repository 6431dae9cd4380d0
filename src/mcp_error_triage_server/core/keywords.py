"""Search-term extraction from free error text."""

from __future__ import annotations

import re

SOURCE_EXTENSIONS: tuple[str, ...] = (
    "java",
    "kt",
    "scala",
    "ts",
    "tsx",
    "js",
    "jsx",
    "py",
    "cs",
    "php",
    "rb",
    "go",
    "cpp",
    "c",
)

ERROR_VOCABULARY: tuple[str, ...] = (
    "null",
    "undefined",
    "exception",
    "error",
    "fail",
    "timeout",
    "connection",
    "authentication",
    "authorization",
    "permission",
    "access",
    "denied",
    "invalid",
    "missing",
    "not found",
    "cannot",
    "unable",
    "refused",
)

STOP_WORDS = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "can", "her", "was",
        "one", "our", "had", "day", "get", "use", "man", "new", "now", "old", "see",
        "him", "two", "how", "its", "who", "oil", "sit", "set", "run", "eat", "far",
        "sea", "eye", "with", "from", "this", "that", "when", "while", "into",
    }
)

_EXT_ALT = "|".join(SOURCE_EXTENSIONS)

_DOTTED_RE = re.compile(r"\b(?:[a-z_]\w*\.)*[A-Z]\w*(?:\.[A-Za-z_]\w*)+")
_FILE_RE = re.compile(rf"\b[\w-]+\.(?:{_EXT_ALT})\b", re.IGNORECASE)
_CAMEL_RE = re.compile(r"\b[a-z][a-zA-Z0-9]*[A-Z][a-zA-Z0-9]*\b")
_PASCAL_RE = re.compile(r"\b[A-Z][a-zA-Z0-9]*[A-Z][a-zA-Z0-9]*\b")
_DB_RE = re.compile(
    r"\b(?:table|column|index|constraint|foreign_key|primary_key|database|schema)[\s_-]*\w+\b",
    re.IGNORECASE,
)
_URL_RE = re.compile(r"(?:https?://[\w.-]+(?:/[\w.-]*)*|/(?:api|v\d+)/[\w/.-]*)")
_SOURCE_FILE_RE = re.compile(rf"^[\w.-]+\.(?:{_EXT_ALT})$", re.IGNORECASE)


def is_source_file_name(term: str) -> bool:
    return bool(_SOURCE_FILE_RE.match(term))


def _dotted_paths(text: str, out: set[str]) -> None:
    for m in _DOTTED_RE.finditer(text):
        full = m.group(0)
        if is_source_file_name(full):
            continue
        parts = full.split(".")
        out.add(full)
        out.add(parts[-1])
        out.add(parts[-2])


def _file_names(text: str, out: set[str]) -> None:
    for m in _FILE_RE.finditer(text):
        out.add(m.group(0))
        out.add(m.group(0).split(".")[0])


def _urls(text: str, out: set[str]) -> None:
    for m in _URL_RE.finditer(text):
        url = m.group(0).rstrip("/.")
        out.add(url)
        out.update(p for p in url.split("/") if p and not p.startswith("http"))


def _keep(term: str) -> bool:
    return len(term) > 2 and term.lower() not in STOP_WORDS


def extract_keywords(text: str) -> set[str]:
    """Return candidate search terms found in `text` (unordered, deduplicated)."""
    if not text:
        return set()

    found: set[str] = set()
    _dotted_paths(text, found)
    _file_names(text, found)
    found.update(_CAMEL_RE.findall(text))
    found.update(_PASCAL_RE.findall(text))
    found.update(m.group(0) for m in _DB_RE.finditer(text))

    lower = text.lower()
    found.update(term for term in ERROR_VOCABULARY if term in lower)

    _urls(text, found)
    return {t for t in found if _keep(t)}
