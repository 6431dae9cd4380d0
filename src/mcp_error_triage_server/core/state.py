"""Dedup state stores.

A signature counts as processed when a ProcessingRecord for it was written
within the store's active window.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiofiles

from .models import ProcessingRecord
from .time_window import coerce_dt, lookback_start

logger = logging.getLogger(__name__)

DEFAULT_ACTIVE_DAYS = 30


def _record_to_json(record: ProcessingRecord) -> dict[str, Any]:
    return {
        "errorSignature": record.error_signature,
        "ticketKey": record.ticket_key,
        "recordedAt": record.recorded_at.isoformat(),
        "serviceName": record.service_name,
        "environment": record.environment,
        "errorCount": record.error_count,
        "firstSeen": record.first_seen.isoformat() if record.first_seen else None,
    }


def _record_from_json(obj: dict[str, Any]) -> ProcessingRecord | None:
    recorded_at = coerce_dt(obj.get("recordedAt"))
    if not obj.get("errorSignature") or not obj.get("ticketKey") or recorded_at is None:
        return None
    return ProcessingRecord(
        error_signature=obj["errorSignature"],
        ticket_key=obj["ticketKey"],
        recorded_at=recorded_at,
        service_name=obj.get("serviceName"),
        environment=obj.get("environment"),
        error_count=obj.get("errorCount"),
        first_seen=coerce_dt(obj.get("firstSeen")),
    )


class NullStateStore:
    """Unconfigured store: nothing is processed and writes are dropped."""

    async def is_processed(self, signature: str) -> bool:
        return False

    async def mark_processed(self, record: ProcessingRecord) -> None:
        logger.debug("No state store configured; not recording %s", record.error_signature)

    async def history(self, signature: str, lookback_days: int = 30) -> list[ProcessingRecord]:
        return []


@dataclass(slots=True)
class InMemoryStateStore:
    active_days: int = DEFAULT_ACTIVE_DAYS
    records: list[ProcessingRecord] = field(default_factory=list)

    async def is_processed(self, signature: str) -> bool:
        return bool(await self.history(signature, self.active_days))

    async def mark_processed(self, record: ProcessingRecord) -> None:
        self.records.append(record)

    async def history(self, signature: str, lookback_days: int = 30) -> list[ProcessingRecord]:
        start = lookback_start(lookback_days)
        return [
            r for r in self.records if r.error_signature == signature and r.recorded_at >= start
        ]


class JsonlStateStore:
    """Append-only JSON-lines file of ProcessingRecords."""

    def __init__(self, path: str | Path, *, active_days: int = DEFAULT_ACTIVE_DAYS) -> None:
        self.path = Path(path)
        self.active_days = active_days
        self._lock = asyncio.Lock()

    async def _read_all(self) -> list[ProcessingRecord]:
        if not self.path.exists():
            return []
        records: list[ProcessingRecord] = []
        async with aiofiles.open(self.path, encoding="utf-8") as f:
            line_no = 0
            async for line in f:
                line_no += 1
                line = line.strip()
                if not line:
                    continue
                try:
                    record = _record_from_json(json.loads(line))
                except (json.JSONDecodeError, TypeError, AttributeError):
                    record = None
                if record is None:
                    logger.warning("Ignoring unreadable state record at %s:%s", self.path, line_no)
                    continue
                records.append(record)
        return records

    async def is_processed(self, signature: str) -> bool:
        return bool(await self.history(signature, self.active_days))

    async def mark_processed(self, record: ProcessingRecord) -> None:
        line = json.dumps(_record_to_json(record), separators=(",", ":"))
        async with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, mode="a", encoding="utf-8") as f:
                await f.write(line + "\n")

    async def history(self, signature: str, lookback_days: int = 30) -> list[ProcessingRecord]:
        start = lookback_start(lookback_days)
        return [
            r
            for r in await self._read_all()
            if r.error_signature == signature and r.recorded_at >= start
        ]

    async def prune(self, retention_days: int, *, now: datetime | None = None) -> int:
        """Drop records older than `retention_days`; return how many were removed."""
        cutoff = lookback_start(retention_days, now=now or datetime.now(UTC))
        async with self._lock:
            records = await self._read_all()
            kept = [r for r in records if r.recorded_at >= cutoff]
            removed = len(records) - len(kept)
            if removed:
                async with aiofiles.open(self.path, mode="w", encoding="utf-8") as f:
                    for r in kept:
                        await f.write(json.dumps(_record_to_json(r), separators=(",", ":")) + "\n")
                logger.info("Pruned %s state records older than %s days", removed, retention_days)
        return removed
