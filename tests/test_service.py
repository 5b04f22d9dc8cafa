"""
Tests for the transaction service and message sources.
"""
import asyncio
import json
import threading
import time

import pytest

from conftest import TS_NEWEST, TS_OLDEST
from core.db import TransactionStore
from core.exceptions import (
    InvalidInputError,
    MessageSourceError,
    PermissionDeniedError,
    SourceUnavailableError,
    StorageError,
)
from core.schema import RawMessage, TransactionKind
from services.transaction_service import (
    FileMessageSource,
    InMemoryMessageSource,
    TransactionService,
    apply_filters,
    build_kind_statistics,
)

DAY_MS = 24 * 60 * 60 * 1000


@pytest.fixture
def store(tmp_path):
    store = TransactionStore(str(tmp_path / "service.db"))
    store.init_db()
    return store


def test_read_all_extracts_sorts_and_persists(scenario_messages, store):
    service = TransactionService(InMemoryMessageSource(scenario_messages), store=store)

    result = asyncio.run(service.read_all())

    assert result["total_messages"] == 3
    assert [r.id for r in result["records"]] == ["paytm-1", "icici-1"]
    assert result["stats"]["skipped"] == {"not_financial_source": 1}
    assert service.records == result["records"]
    assert [r.id for r in store.get_all_records()] == ["paytm-1", "icici-1"]


def test_permission_denied_never_reads_messages(scenario_messages):
    source = InMemoryMessageSource(scenario_messages, grant_permission=False)
    service = TransactionService(source)

    with pytest.raises(PermissionDeniedError):
        asyncio.run(service.read_all())
    assert source.list_calls == 0
    assert service.records == []


def test_unavailable_source(scenario_messages):
    service = TransactionService(InMemoryMessageSource(scenario_messages, available=False))
    with pytest.raises(SourceUnavailableError):
        asyncio.run(service.read_all())


def test_listing_failure_becomes_message_source_error():
    class BrokenSource(InMemoryMessageSource):
        async def list_messages(self, min_timestamp=None, max_timestamp=None, max_count=None):
            raise RuntimeError("content provider crashed")

    service = TransactionService(BrokenSource())
    with pytest.raises(MessageSourceError) as exc_info:
        asyncio.run(service.read_all())
    assert "content provider crashed" in exc_info.value.message
    assert exc_info.value.details["error_type"] == "RuntimeError"


def test_invalid_listing_result():
    class OddSource(InMemoryMessageSource):
        async def list_messages(self, min_timestamp=None, max_timestamp=None, max_count=None):
            return "not a list"

    with pytest.raises(MessageSourceError):
        asyncio.run(TransactionService(OddSource()).read_all())


def test_read_from_period_filters_old_messages():
    now_ms = int(time.time() * 1000)
    source = InMemoryMessageSource([
        RawMessage(id="recent", sender="SBI", body="Rs 10 debited", timestamp=now_ms - DAY_MS),
        RawMessage(id="old", sender="SBI", body="Rs 20 debited", timestamp=now_ms - 60 * DAY_MS),
        RawMessage(id="undated", sender="SBI", body="Rs 30 debited", timestamp="garbage"),
    ])
    service = TransactionService(source)

    result = asyncio.run(service.read_from_period(30))

    assert result["days_back"] == 30
    assert result["total_messages"] == 1
    assert [r.id for r in result["records"]] == ["recent"]


def test_read_from_period_uses_default_window():
    service = TransactionService(InMemoryMessageSource([]))
    result = asyncio.run(service.read_from_period())
    assert result["days_back"] == 30
    assert result["records"] == []


def test_read_from_period_rejects_non_positive_window():
    with pytest.raises(InvalidInputError):
        asyncio.run(TransactionService(InMemoryMessageSource([])).read_from_period(0))


def test_max_messages_caps_listing(monkeypatch, scenario_messages):
    from core.config import reset_settings

    monkeypatch.setenv("MAX_MESSAGES", "1")
    reset_settings()

    result = asyncio.run(TransactionService(InMemoryMessageSource(scenario_messages)).read_all())
    assert result["total_messages"] == 1
    assert [r.id for r in result["records"]] == ["icici-1"]


def test_apply_filters():
    messages = [RawMessage(timestamp=TS_NEWEST), RawMessage(timestamp=TS_OLDEST)]
    assert apply_filters(messages, min_timestamp=TS_NEWEST) == messages[:1]
    assert apply_filters(messages, max_count=1) == messages[:1]
    assert apply_filters(messages) == messages


def test_storage_errors_do_not_fail_reads(scenario_messages):
    class FailingStore:
        def save_records(self, records):
            raise StorageError("disk full")

    service = TransactionService(InMemoryMessageSource(scenario_messages), store=FailingStore())
    result = asyncio.run(service.read_all())
    assert len(result["records"]) == 2


def test_listener_prepends_new_transactions(scenario_messages, store):
    source = InMemoryMessageSource(scenario_messages)
    service = TransactionService(source, store=store)
    asyncio.run(service.read_all())

    assert service.start_listener() is True
    source.push(RawMessage(id="new-1", sender="AXISBK", body="INR 75 spent at CAFE", timestamp=TS_NEWEST + 1))
    source.push(RawMessage(id="chat", sender="MOM", body="Call me when free"))

    assert [r.id for r in service.records] == ["new-1", "paytm-1", "icici-1"]
    assert service.records[0].kind == TransactionKind.DEBIT
    assert store.count() == 3

    service.stop_listener()
    source.push(RawMessage(id="late", sender="SBI", body="Rs 1 debited"))
    assert len(service.records) == 3


def test_listener_not_started_when_source_unavailable():
    service = TransactionService(InMemoryMessageSource(available=False))
    assert service.start_listener() is False
    assert service.listening is False


def test_file_source_reads_android_export(tmp_path):
    path = tmp_path / "inbox.json"
    path.write_text(json.dumps([
        {"_id": 1, "address": "ICICI", "body": "Rs. 200 debited from your account", "date": TS_OLDEST},
        {"_id": 2, "address": "FRIEND", "body": "lunch?", "date": TS_NEWEST},
    ]), encoding="utf-8")

    source = FileMessageSource(str(path), shape="android")
    assert source.is_available()

    result = asyncio.run(TransactionService(source).read_all())
    assert result["total_messages"] == 2
    assert [r.id for r in result["records"]] == ["1"]


def test_file_source_parse_failure(tmp_path):
    path = tmp_path / "inbox.json"
    path.write_text("[oops", encoding="utf-8")

    with pytest.raises(MessageSourceError) as exc_info:
        asyncio.run(TransactionService(FileMessageSource(str(path))).read_all())
    assert exc_info.value.details["error_type"] == "ParsingError"


def test_file_source_missing_file_is_unavailable(tmp_path):
    source = FileMessageSource(str(tmp_path / "missing.json"))
    with pytest.raises(SourceUnavailableError):
        asyncio.run(TransactionService(source).read_all())


def test_build_kind_statistics(scenario_messages):
    result = asyncio.run(TransactionService(InMemoryMessageSource(scenario_messages)).read_all())
    assert build_kind_statistics(result["records"]) == {"Credit": 1, "Debit": 1}


def test_file_reads_and_extraction_run_off_the_event_loop(tmp_path, monkeypatch):
    path = tmp_path / "inbox.json"
    path.write_text(json.dumps([
        {"_id": 1, "address": "ICICI", "body": "Rs. 200 debited from your account", "date": TS_OLDEST},
    ]), encoding="utf-8")

    loop_thread = threading.get_ident()
    worker_threads = {}

    source = FileMessageSource(str(path), shape="android")
    original_load = source.load

    def tracking_load():
        worker_threads["load"] = threading.get_ident()
        return original_load()

    monkeypatch.setattr(source, "load", tracking_load)

    service = TransactionService(source)
    original_process = service.process_messages

    def tracking_process(messages):
        worker_threads["process"] = threading.get_ident()
        return original_process(messages)

    monkeypatch.setattr(service, "process_messages", tracking_process)

    result = asyncio.run(service.read_all())
    assert [r.id for r in result["records"]] == ["1"]
    assert worker_threads["load"] != loop_thread
    assert worker_threads["process"] != loop_thread
