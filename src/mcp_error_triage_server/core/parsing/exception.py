"""Deterministic exception/stack-trace parser."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..models import DiagnosticRecord, SearchKeywords, StackFrame
from .envelope import RawEnvelope, decode_envelope

NO_MESSAGE_FALLBACK = "No error message found"

APP_TYPE_MARKERS: tuple[str, ...] = (
    "Api",
    "Client",
    "Service",
    "Provider",
    "Extensions",
    "Repository",
    "Controller",
    "Handler",
)

DENIED_NAMESPACES: tuple[str, ...] = (
    "System.",
    "Microsoft.",
    "Newtonsoft.",
    "Polly.",
    "Castle.",
    "Autofac.",
    "Npgsql.",
    "Grpc.",
    "StackExchange.",
    "java.",
    "javax.",
    "jdk.",
    "sun.",
    "kotlin.",
    "org.springframework.",
)

_HRESULT_RE = re.compile(r"\s*\(0x[0-9a-fA-F]+\)\s*$")
_QUOTES_RE = re.compile(r"^[\"']|[\"']$")
_ANGLE_RE = re.compile(r"<([A-Za-z_]\w*)>")
_GENERIC_SUFFIX_RE = re.compile(r"(`\d+|\[[^\]]*\])$")
_SERVICE_TAG_RE = re.compile(r"\[(\w+Service)\]")

# Message templates may carry the logging call site as
# "[StackTrace]: [Assembly]:A;[File]:X.cs;[Method]:M(12)=>[Assembly]:..."
TEMPLATE_TRACE_MARKER = "[StackTrace]:"
TEMPLATE_FRAME_SEPARATOR = "=>"
_TEMPLATE_FRAME_RE = re.compile(
    r"\[File\]:(?P<file>[^;\[]*);?\[Method\]:(?P<method>[^(]+?)(?:\((?P<line>\d+)\))?\s*$"
)

# "at Ns.Type.Method(args) in C:\src\Type.cs:line 42"
_LOCATED_RE = re.compile(
    r"^\s*at\s+(?P<qualified>[^\s(]+)\s*\((?P<args>.*)\)\s+in\s+(?P<path>.+?):line\s+(?P<line>\d+)\s*$"
)
# "at com.acme.Type.method(Type.java:42)"
_INLINE_RE = re.compile(
    r"^\s*at\s+(?P<qualified>[\w$.<>]+)\((?P<path>[\w$.-]+\.\w+):(?P<line>\d+)\)\s*$"
)
# "at Ns.Type.Method(args)"
_PATHLESS_RE = re.compile(r"^\s*at\s+(?P<qualified>[^\s(]+)\s*\((?P<args>.*)\)\s*$")


class FrameShape(str, Enum):
    LOCATED = "located"
    INLINE = "inline"
    PATHLESS = "pathless"
    OTHER = "other"


_FRAME_SHAPES: tuple[tuple[re.Pattern[str], FrameShape], ...] = (
    (_LOCATED_RE, FrameShape.LOCATED),
    (_INLINE_RE, FrameShape.INLINE),
    (_PATHLESS_RE, FrameShape.PATHLESS),
)


def classify_frame_line(line: str) -> tuple[FrameShape, re.Match[str] | None]:
    """Return the first matching frame shape for a trace line."""
    for pattern, shape in _FRAME_SHAPES:
        m = pattern.match(line)
        if m:
            return shape, m
    return FrameShape.OTHER, None


def split_qualified_name(qualified: str) -> tuple[str, str]:
    """Split ``Ns.Type.Method`` into (owning type, method).

    Async state machines and lambdas (``<GetAsync>d__5.MoveNext``,
    ``<>c.<Run>b__0``) resolve to the name inside the angle brackets.
    """
    qualified = _GENERIC_SUFFIX_RE.sub("", qualified)
    segments = [s for s in qualified.split(".") if s]
    if not segments:
        return "", ""

    method = segments[-1]
    owner_idx = len(segments) - 2
    for i in range(len(segments) - 1, -1, -1):
        m = _ANGLE_RE.search(segments[i])
        if m:
            method = m.group(1)
            owner_idx = i - 1
            break

    while owner_idx >= 0 and segments[owner_idx].startswith("<"):
        owner_idx -= 1
    owner = segments[owner_idx] if owner_idx >= 0 else ""
    return _GENERIC_SUFFIX_RE.sub("", owner), _GENERIC_SUFFIX_RE.sub("", method)


def _basename(path: str) -> str:
    return re.split(r"[\\/]", path.strip())[-1]


def _unique(items: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(i for i in items if i))


def _last_segment(name: str) -> str:
    return name.rsplit(".", 1)[-1].strip()


def split_exception_header(line: str) -> tuple[str, str]:
    """Return (exception type, message) from the first line of an exception."""
    idx = line.find(":")
    if idx == -1:
        return _HRESULT_RE.sub("", line.strip()), NO_MESSAGE_FALLBACK
    exc_type = _HRESULT_RE.sub("", line[:idx].strip())
    message = _QUOTES_RE.sub("", line[idx + 1 :].strip())
    return exc_type, message


@dataclass(frozen=True, slots=True)
class ExceptionParser:
    """Turn a raw log event into a DiagnosticRecord."""

    app_type_markers: Sequence[str] = APP_TYPE_MARKERS
    denied_namespaces: Sequence[str] = DENIED_NAMESPACES
    source_extension: str = ".cs"

    def _is_app_type(self, owner: str) -> bool:
        return any(marker in owner for marker in self.app_type_markers)

    def _is_denied(self, qualified: str) -> bool:
        return qualified.startswith(tuple(self.denied_namespaces))

    def parse_frame(self, line: str) -> StackFrame | None:
        """Parse one trace line; None for noise and unrecognized lines."""
        shape, m = classify_frame_line(line)
        if m is None:
            return None

        qualified = m.group("qualified")
        if self._is_denied(qualified):
            return None
        owner, method = split_qualified_name(qualified)
        if not method:
            return None

        if shape in (FrameShape.LOCATED, FrameShape.INLINE):
            return StackFrame(file=_basename(m.group("path")), method=method, line=int(m.group("line")))

        if not owner or not self._is_app_type(owner):
            return None
        return StackFrame(file=f"{owner}{self.source_extension}", method=method, line=None)

    def parse_exception(self, text: str) -> tuple[str, str, tuple[StackFrame, ...]]:
        """Return (exception type, message, frames) for exception text."""
        lines = text.splitlines()
        while lines and not lines[0].strip():
            lines.pop(0)
        if not lines:
            return "", NO_MESSAGE_FALLBACK, ()

        exc_type, message = split_exception_header(lines[0])
        frames = tuple(f for f in (self.parse_frame(ln) for ln in lines[1:]) if f is not None)
        return exc_type, message, frames

    def parse_template_frames(self, template: str) -> tuple[StackFrame, ...]:
        """Frames from a ``[StackTrace]:`` section of a message template, in order."""
        idx = template.find(TEMPLATE_TRACE_MARKER)
        if idx == -1:
            return ()
        frames: list[StackFrame] = []
        for segment in template[idx + len(TEMPLATE_TRACE_MARKER) :].split(TEMPLATE_FRAME_SEPARATOR):
            m = _TEMPLATE_FRAME_RE.search(segment.strip())
            if not m:
                continue
            file, method = m.group("file").strip(), m.group("method").strip()
            if not file or not method:
                continue
            line = m.group("line")
            frames.append(StackFrame(file=_basename(file), method=method, line=int(line) if line else None))
        return tuple(frames)

    def build_record(
        self,
        env: RawEnvelope,
        *,
        exception_type: str,
        error_message: str,
        stack_trace: Sequence[StackFrame],
    ) -> DiagnosticRecord:
        """Assemble the record and derive its search keywords."""
        context: list[str] = []
        if exception_type:
            context.append(_last_segment(exception_type))
        if env.source_context:
            context.append(_last_segment(env.source_context))
        m = _SERVICE_TAG_RE.search(env.message_template)
        if m:
            context.append(m.group(1))

        return DiagnosticRecord(
            service_name=env.service_name,
            environment=env.environment,
            timestamp=env.timestamp,
            error_message=error_message,
            exception_type=exception_type,
            stack_trace=tuple(stack_trace),
            search_keywords=SearchKeywords(
                files=_unique(f.file for f in stack_trace),
                methods=_unique(f.method for f in stack_trace),
                context=_unique(context),
            ),
        )

    def parse_envelope(self, env: RawEnvelope) -> DiagnosticRecord:
        exc_type, message, frames = self.parse_exception(env.exception_text)
        # Exception frames first, then the call site recorded by the logger.
        frames += self.parse_template_frames(env.message_template)
        return self.build_record(env, exception_type=exc_type, error_message=message, stack_trace=frames)

    def parse(self, payload: str | bytes | Mapping[str, Any]) -> DiagnosticRecord:
        """Decode and parse a raw event. Raises MalformedPayload."""
        return self.parse_envelope(decode_envelope(payload))


def parse_event(
    payload: str | bytes | Mapping[str, Any],
    *,
    parser: ExceptionParser | None = None,
) -> DiagnosticRecord:
    """Parse with the default parser configuration."""
    return (parser or ExceptionParser()).parse(payload)
