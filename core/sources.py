"""
Message-source adapters.

Each SMS source reports messages in its own shape (Android inbox rows,
SMS-retriever callbacks, inbox export files). Adapters convert one row of a
given shape into a RawMessage so the extractor only ever sees one form.
"""
import json
from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
from pydantic import ValidationError

from core.exceptions import DataNotFoundError, InvalidInputError, ParsingError
from core.extraction import parse_timestamp
from core.logger import setup_logger
from core.schema import RawMessage

logger = setup_logger(__name__)

SUPPORTED_FILE_TYPES = (".json", ".csv", ".xlsx", ".xls")


def clean_value(value: Any) -> Any:
    """
    Normalize a cell value: NaN and blank strings become None,
    numpy scalars become plain Python values.

    Args:
        value: Raw cell or field value

    Returns:
        Cleaned value or None
    """
    if value is None:
        return None
    if pd.api.types.is_scalar(value) and not isinstance(value, str):
        if pd.isna(value):
            return None
        if hasattr(value, "item") and not isinstance(value, datetime):
            value = value.item()
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def clean_text(value: Any) -> Optional[str]:
    """Clean a value and render it as text (integral floats lose their '.0')."""
    value = clean_value(value)
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def clean_timestamp(value: Any) -> Any:
    """Clean a timestamp cell; datetimes are converted to epoch milliseconds."""
    value = clean_value(value)
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    return value


def first_present(row: Mapping, *keys: str) -> Any:
    """Return the first non-empty value among keys."""
    for key in keys:
        value = clean_value(row.get(key))
        if value is not None:
            return value
    return None


def adapt_canonical(row: Mapping) -> RawMessage:
    """Rows already using body / sender / timestamp / id."""
    return RawMessage(
        body=clean_text(row.get("body")),
        sender=clean_text(row.get("sender")),
        timestamp=clean_timestamp(row.get("timestamp")),
        id=clean_text(row.get("id")),
    )


def adapt_android_inbox(row: Mapping) -> RawMessage:
    """Android SMS content-provider rows (_id, address, body, date, date_sent)."""
    return RawMessage(
        body=clean_text(row.get("body")),
        sender=clean_text(row.get("address")),
        timestamp=clean_timestamp(first_present(row, "date", "date_sent")),
        id=clean_text(row.get("_id")),
    )


def adapt_sms_retriever(row: Mapping) -> RawMessage:
    """SMS-retriever callback payloads (message/text, sender/from, timestamp)."""
    return RawMessage(
        body=clean_text(first_present(row, "message", "text", "body")),
        sender=clean_text(first_present(row, "sender", "from", "originatingAddress")),
        timestamp=clean_timestamp(first_present(row, "timestamp", "date")),
        id=clean_text(row.get("id")),
    )


def adapt_auto(row: Mapping) -> RawMessage:
    """
    Unknown shape: probe the field names seen across sources, in order.
    """
    return RawMessage(
        body=clean_text(first_present(row, "body", "message", "text")),
        sender=clean_text(first_present(row, "address", "sender", "from")),
        timestamp=clean_timestamp(first_present(row, "date", "timestamp")),
        id=clean_text(first_present(row, "id", "_id")),
    )


ADAPTERS: Dict[str, Callable[[Mapping], RawMessage]] = {
    "auto": adapt_auto,
    "canonical": adapt_canonical,
    "android": adapt_android_inbox,
    "retriever": adapt_sms_retriever,
}


def get_adapter(shape: str) -> Callable[[Mapping], RawMessage]:
    """
    Look up the adapter for a source shape.

    Raises:
        InvalidInputError: If the shape is not registered
    """
    adapter = ADAPTERS.get((shape or "").lower())
    if adapter is None:
        raise InvalidInputError(
            f"Unknown message shape: {shape}",
            details={"shape": shape, "supported": sorted(ADAPTERS)}
        )
    return adapter


def normalize_messages(rows: Iterable[Any], shape: str = "auto") -> List[RawMessage]:
    """
    Convert raw source rows into RawMessage instances.

    Rows that cannot be adapted are logged and dropped.

    Args:
        rows: Source rows (mappings or RawMessage)
        shape: Adapter name from ADAPTERS

    Returns:
        List of normalized messages, in input order

    Raises:
        InvalidInputError: If rows is not a sequence or shape is unknown
    """
    if rows is None or isinstance(rows, (str, bytes, Mapping)) or not isinstance(rows, Iterable):
        raise InvalidInputError(
            "Invalid messages format received",
            details={"received_type": type(rows).__name__}
        )

    adapter = get_adapter(shape)
    messages: List[RawMessage] = []
    total = 0

    for index, row in enumerate(rows):
        total += 1
        if isinstance(row, RawMessage):
            messages.append(row)
            continue
        if not isinstance(row, Mapping):
            logger.warning(f"Skipping row {index}: expected an object, got {type(row).__name__}")
            continue
        try:
            messages.append(adapter(row))
        except ValidationError as e:
            logger.warning(f"Skipping row {index}: could not adapt {shape} message: {e}")

    logger.debug(f"Normalized {len(messages)} of {total} rows ({shape})")
    return messages


def load_message_file(file_path: str) -> List[Dict[str, Any]]:
    """
    Read an exported SMS inbox into a list of row dictionaries.

    Args:
        file_path: Path to a .json, .csv, .xlsx or .xls export

    Returns:
        List of rows as dictionaries

    Raises:
        DataNotFoundError: If file doesn't exist
        ParsingError: If file format is invalid
    """
    path = Path(file_path)
    if not path.exists():
        raise DataNotFoundError(
            f"File not found: {file_path}",
            details={"file_path": file_path}
        )

    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_FILE_TYPES:
        raise ParsingError(
            f"Unsupported file type: {suffix}",
            details={"file_path": file_path, "supported": list(SUPPORTED_FILE_TYPES)}
        )

    logger.info(f"Loading messages from {path.name}")

    try:
        if suffix == ".json":
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, Mapping):
                data = data.get("messages")
            if not isinstance(data, list):
                raise ParsingError(
                    "JSON export must be a list of messages or an object with a 'messages' list",
                    details={"file_path": file_path}
                )
            rows = [row for row in data if isinstance(row, Mapping)]
        else:
            if suffix == ".csv":
                # Keep ids, addresses and epoch values as text
                df = pd.read_csv(path, dtype=str)
            else:
                engine = "xlrd" if suffix == ".xls" else "openpyxl"
                df = pd.read_excel(path, engine=engine)

            # Remove completely empty rows
            df = df.dropna(how="all")
            rows = df.to_dict(orient="records")

        logger.info(f"Loaded {len(rows)} messages from {path.name}")
        return rows

    except ParsingError:
        raise
    except Exception as e:
        logger.error(f"Failed to read {file_path}: {str(e)}")
        raise ParsingError(
            f"Invalid message export format: {path.name}",
            details={"file_path": file_path, "error": str(e)}
        )


def within_window(
    message: RawMessage,
    min_timestamp: Optional[int] = None,
    max_timestamp: Optional[int] = None
) -> bool:
    """
    Check a message against an inclusive time window.

    Messages whose timestamp cannot be parsed are outside any window.
    """
    if min_timestamp is None and max_timestamp is None:
        return True

    timestamp = parse_timestamp(message.timestamp)
    if timestamp is None:
        return False
    if min_timestamp is not None and timestamp < min_timestamp:
        return False
    if max_timestamp is not None and timestamp > max_timestamp:
        return False
    return True
