from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from mcp_error_triage_server.core.models import ProcessingRecord
from mcp_error_triage_server.core.state import InMemoryStateStore, JsonlStateStore, NullStateStore


def _record(signature: str, *, age: timedelta = timedelta(0), key: str = "OPS-1") -> ProcessingRecord:
    return ProcessingRecord(
        error_signature=signature,
        ticket_key=key,
        recorded_at=datetime.now(UTC) - age,
        service_name="users-api",
        environment="prod",
        error_count=3,
        first_seen=datetime(2025, 6, 1, tzinfo=UTC),
    )


@pytest.mark.asyncio
async def test_jsonl_store_marks_and_finds_signatures(tmp_path: Path) -> None:
    store = JsonlStateStore(tmp_path / "state" / "triage.jsonl")
    assert await store.is_processed("SIG A") is False

    await store.mark_processed(_record("SIG A"))

    assert await store.is_processed("SIG A") is True
    assert await store.is_processed("SIG B") is False
    history = await store.history("SIG A")
    assert [r.ticket_key for r in history] == ["OPS-1"]
    assert history[0].first_seen == datetime(2025, 6, 1, tzinfo=UTC)


@pytest.mark.asyncio
async def test_jsonl_store_ignores_records_outside_active_window(tmp_path: Path) -> None:
    store = JsonlStateStore(tmp_path / "triage.jsonl", active_days=30)
    await store.mark_processed(_record("SIG A", age=timedelta(days=40)))

    assert await store.is_processed("SIG A") is False
    assert len(await store.history("SIG A", lookback_days=60)) == 1


@pytest.mark.asyncio
async def test_jsonl_store_prune_drops_old_records(tmp_path: Path) -> None:
    path = tmp_path / "triage.jsonl"
    store = JsonlStateStore(path)
    await store.mark_processed(_record("OLD", age=timedelta(days=90), key="OPS-1"))
    await store.mark_processed(_record("NEW", key="OPS-2"))

    removed = await store.prune(30)

    assert removed == 1
    assert len(path.read_text(encoding="utf-8").splitlines()) == 1
    assert await store.is_processed("NEW") is True


@pytest.mark.asyncio
async def test_jsonl_store_skips_unreadable_lines(tmp_path: Path) -> None:
    path = tmp_path / "triage.jsonl"
    path.write_text('not json\n{"errorSignature": "SIG A"}\n', encoding="utf-8")
    store = JsonlStateStore(path)
    await store.mark_processed(_record("SIG A"))

    assert len(await store.history("SIG A")) == 1


@pytest.mark.asyncio
async def test_null_store_is_never_processed() -> None:
    store = NullStateStore()
    await store.mark_processed(_record("SIG A"))
    assert await store.is_processed("SIG A") is False
    assert await store.history("SIG A") == []


@pytest.mark.asyncio
async def test_in_memory_store() -> None:
    store = InMemoryStateStore()
    await store.mark_processed(_record("SIG A"))
    assert await store.is_processed("SIG A") is True
    assert await store.is_processed("SIG B") is False
