"""
Unit tests for message-source adapters and inbox export loading.
"""
import json

import pandas as pd
import pytest

from conftest import TS_MIDDLE, TS_NEWEST, TS_OLDEST
from core.exceptions import DataNotFoundError, InvalidInputError, ParsingError
from core.schema import RawMessage
from core.sources import (
    adapt_android_inbox,
    adapt_auto,
    adapt_canonical,
    adapt_sms_retriever,
    clean_text,
    load_message_file,
    normalize_messages,
    within_window,
)


def test_android_inbox_row():
    message = adapt_android_inbox({
        "_id": 17,
        "address": "VM-HDFCBK",
        "body": "Rs 100 debited",
        "date": TS_OLDEST,
        "type": 1,
    })
    assert message == RawMessage(id="17", sender="VM-HDFCBK", body="Rs 100 debited", timestamp=TS_OLDEST)


def test_android_inbox_falls_back_to_date_sent():
    message = adapt_android_inbox({"address": "AXISBK", "body": "x", "date_sent": TS_MIDDLE})
    assert message.timestamp == TS_MIDDLE


def test_sms_retriever_payload():
    message = adapt_sms_retriever({
        "text": "Rs 5 credited",
        "from": "PAYTM",
        "timestamp": str(TS_NEWEST),
    })
    assert message.body == "Rs 5 credited"
    assert message.sender == "PAYTM"
    assert message.timestamp == str(TS_NEWEST)
    assert message.id is None


def test_auto_probes_field_names_in_order():
    message = adapt_auto({"message": "", "text": "Rs 5 sent", "sender": "GPAY", "timestamp": TS_OLDEST})
    assert message.body == "Rs 5 sent"
    assert message.sender == "GPAY"
    assert message.timestamp == TS_OLDEST


def test_canonical_treats_nan_and_blank_as_missing():
    message = adapt_canonical({"body": float("nan"), "sender": "  ", "timestamp": float("nan"), "id": None})
    assert message == RawMessage()


def test_clean_text_drops_float_suffix():
    assert clean_text(919876543210.0) == "919876543210"
    assert clean_text(" HDFC ") == "HDFC"


def test_normalize_messages_skips_unusable_rows():
    rows = [
        {"body": "Rs 1 debited", "address": "SBI"},
        "not a row",
        {"body": "Rs 3 debited", "date": {"nested": 1}},
        {"body": 12, "sender": "SBI"},
        RawMessage(body="Rs 2 debited", sender="SBI"),
    ]
    messages = normalize_messages(rows, shape="auto")
    assert [m.body for m in messages] == ["Rs 1 debited", "12", "Rs 2 debited"]
    assert messages[0].sender == "SBI"


def test_normalize_messages_unknown_shape():
    with pytest.raises(InvalidInputError) as exc_info:
        normalize_messages([], shape="ios")
    assert "canonical" in exc_info.value.details["supported"]


@pytest.mark.parametrize("rows", [None, "text", {"messages": []}, 7])
def test_normalize_messages_rejects_non_sequences(rows):
    with pytest.raises(InvalidInputError):
        normalize_messages(rows)


def test_load_json_list(tmp_path):
    path = tmp_path / "inbox.json"
    path.write_text(json.dumps([{"body": "Rs 1 debited", "address": "SBI"}, 3]), encoding="utf-8")
    assert load_message_file(str(path)) == [{"body": "Rs 1 debited", "address": "SBI"}]


def test_load_json_object_with_messages(tmp_path):
    path = tmp_path / "inbox.json"
    path.write_text(json.dumps({"messages": [{"body": "hi"}]}), encoding="utf-8")
    assert load_message_file(str(path)) == [{"body": "hi"}]


def test_load_json_invalid_structure(tmp_path):
    path = tmp_path / "inbox.json"
    path.write_text(json.dumps({"items": []}), encoding="utf-8")
    with pytest.raises(ParsingError):
        load_message_file(str(path))


def test_load_json_malformed(tmp_path):
    path = tmp_path / "inbox.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ParsingError) as exc_info:
        load_message_file(str(path))
    assert "error" in exc_info.value.details


def test_load_csv_keeps_text_columns(tmp_path):
    path = tmp_path / "inbox.csv"
    path.write_text(
        "_id,address,body,date\n"
        f"001,+919876543210,Rs 10 debited,{TS_OLDEST}\n"
        ",,,\n",
        encoding="utf-8",
    )
    rows = load_message_file(str(path))
    assert len(rows) == 1
    message = adapt_android_inbox(rows[0])
    assert message.id == "001"
    assert message.sender == "+919876543210"
    assert message.timestamp == str(TS_OLDEST)


def test_load_excel(tmp_path):
    path = tmp_path / "inbox.xlsx"
    pd.DataFrame([
        {"address": "ICICI", "body": "Rs 200 debited", "date": TS_MIDDLE},
        {"address": "PAYTM", "body": "Rs 50 received", "date": TS_NEWEST},
    ]).to_excel(path, index=False, engine="openpyxl")

    messages = normalize_messages(load_message_file(str(path)), shape="android")
    assert [m.sender for m in messages] == ["ICICI", "PAYTM"]
    assert messages[1].timestamp == TS_NEWEST


def test_load_missing_file(tmp_path):
    with pytest.raises(DataNotFoundError):
        load_message_file(str(tmp_path / "missing.csv"))


def test_load_unsupported_type(tmp_path):
    path = tmp_path / "inbox.txt"
    path.write_text("hello", encoding="utf-8")
    with pytest.raises(ParsingError):
        load_message_file(str(path))


def test_within_window():
    message = RawMessage(body="x", sender="y", timestamp=TS_MIDDLE)
    assert within_window(message)
    assert within_window(message, min_timestamp=TS_OLDEST, max_timestamp=TS_NEWEST)
    assert within_window(message, min_timestamp=TS_MIDDLE)
    assert not within_window(message, min_timestamp=TS_NEWEST)
    assert not within_window(message, max_timestamp=TS_OLDEST)
    assert not within_window(RawMessage(body="x", timestamp="garbage"), min_timestamp=TS_OLDEST)
