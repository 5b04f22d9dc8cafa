"""
Transaction detection and field extraction for SMS messages.

A message becomes a TransactionRecord only when it passes two gates: its
sender or body carries a bank/payment signature, and its body carries a
transaction keyword. Amount, kind and description are then pulled out with
ordered, first-match-wins rules from core.patterns.
"""
import time
from collections.abc import Iterable, Mapping
from datetime import datetime
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import ValidationError

from core.config import get_settings
from core.exceptions import InvalidInputError
from core.logger import mask_digits, setup_logger
from core.patterns import (
    AMOUNT_PATTERNS,
    DEFAULT_DESCRIPTION,
    KIND_KEYWORDS,
    MERCHANT_PATTERNS,
    SOURCE_SIGNATURES,
    TRANSACTION_KEYWORDS,
    UNKNOWN_AMOUNT,
)
from core.schema import (
    ExtractionOutcome,
    RawMessage,
    SkipReason,
    TransactionKind,
    TransactionRecord,
)

logger = setup_logger(__name__)


def current_time_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def is_financial_source(sender: str, body: str) -> bool:
    """
    Check sender and body against the bank / payment-app signature registry.

    Args:
        sender: Originating address or short-code
        body: Message text

    Returns:
        True if any signature appears in either field (case-insensitive)
    """
    sender_upper = sender.upper()
    body_upper = body.upper()
    return any(
        signature in sender_upper or signature in body_upper
        for signature in SOURCE_SIGNATURES
    )


def has_transaction_keywords(body: str) -> bool:
    """Check whether the body mentions a transaction word or currency marker."""
    body_lower = body.lower()
    return any(keyword in body_lower for keyword in TRANSACTION_KEYWORDS)


def extract_amount(body: str) -> str:
    """
    Extract the transaction amount from message text.

    Patterns are tried in priority order and the first match wins.

    Args:
        body: Message text

    Returns:
        Amount with thousands separators removed, or "Unknown"
    """
    for name, pattern in AMOUNT_PATTERNS:
        match = pattern.search(body)
        if match:
            amount = match.group(1).replace(",", "")
            logger.debug(f"Amount matched by '{name}' pattern")
            return amount
    return UNKNOWN_AMOUNT


def classify_kind(body: str) -> TransactionKind:
    """
    Classify message direction by keyword.

    Debit words are checked before credit words, credit before balance.
    """
    body_lower = body.lower()
    for kind, keywords in KIND_KEYWORDS:
        if any(keyword in body_lower for keyword in keywords):
            return kind
    return TransactionKind.UNKNOWN


def extract_description(body: str) -> str:
    """
    Extract merchant or counterparty name from message text.

    Args:
        body: Message text

    Returns:
        First matching name, trimmed, or "Transaction"
    """
    for name, pattern in MERCHANT_PATTERNS:
        match = pattern.search(body)
        if match:
            description = match.group(1).strip()
            if description:
                logger.debug(f"Description matched by '{name}' pattern")
                return description
    return DEFAULT_DESCRIPTION


def parse_timestamp(raw: Any) -> Optional[int]:
    """
    Coerce a raw message timestamp to epoch milliseconds.

    Args:
        raw: None, int milliseconds, or numeric string

    Returns:
        Epoch milliseconds that map to a representable datetime, or None
    """
    if raw is None or isinstance(raw, bool):
        return None

    try:
        if isinstance(raw, str):
            try:
                value = int(raw)
            except ValueError:
                value = int(float(raw))
        else:
            value = int(raw)
        # Rejects instants datetime cannot represent
        datetime.fromtimestamp(value / 1000)
    except (ValueError, TypeError, OverflowError, OSError):
        logger.debug(f"Unusable timestamp {raw!r}")
        return None

    return value


def resolve_timestamp(raw: Any, captured_at_ms: int) -> int:
    """Parse a raw timestamp, falling back to the capture time when unusable."""
    value = parse_timestamp(raw)
    return captured_at_ms if value is None else value


def format_timestamp(timestamp_ms: int) -> Tuple[str, str]:
    """
    Format epoch milliseconds into local date and time strings.

    Returns:
        (date, time) using the configured DATE_FORMAT and TIME_FORMAT
    """
    settings = get_settings()
    moment = datetime.fromtimestamp(timestamp_ms / 1000)
    return moment.strftime(settings.date_format), moment.strftime(settings.time_format)


def build_preview(body: str, length: Optional[int] = None) -> str:
    """Truncate body for list display, marking truncation with an ellipsis."""
    if length is None:
        length = get_settings().preview_length
    if len(body) > length:
        return body[:length] + "..."
    return body


def _unique_id(candidate: str, index: int, seen_ids: Set[str]) -> str:
    while candidate in seen_ids:
        candidate = f"{candidate}_{index}"
    return candidate


def extract_one(
    message: RawMessage,
    index: int,
    captured_at_ms: int,
    seen_ids: Optional[Set[str]] = None
) -> ExtractionOutcome:
    """
    Run both gates and field extraction for one message.

    Args:
        message: Normalized message
        index: Position of the message in its batch
        captured_at_ms: Capture time of the batch (id synthesis, timestamp fallback)
        seen_ids: Ids already assigned in this batch; updated in place

    Returns:
        Outcome holding the record, or the reason the message was skipped
    """
    body = message.body
    sender = message.sender

    if not body or not sender:
        return ExtractionOutcome(index=index, skip_reason=SkipReason.MISSING_FIELDS)

    if not is_financial_source(sender, body):
        return ExtractionOutcome(index=index, skip_reason=SkipReason.NOT_FINANCIAL_SOURCE)

    if not has_transaction_keywords(body):
        return ExtractionOutcome(index=index, skip_reason=SkipReason.NO_TRANSACTION_KEYWORDS)

    timestamp_ms = resolve_timestamp(message.timestamp, captured_at_ms)
    date_str, time_str = format_timestamp(timestamp_ms)

    if seen_ids is None:
        seen_ids = set()
    record_id = _unique_id(message.id or f"{captured_at_ms}_{index}", index, seen_ids)
    seen_ids.add(record_id)

    record = TransactionRecord(
        id=record_id,
        sender=sender,
        amount=extract_amount(body),
        kind=classify_kind(body),
        date=date_str,
        time=time_str,
        description=extract_description(body),
        message_preview=build_preview(body),
        full_message=body,
        timestamp=timestamp_ms,
    )
    return ExtractionOutcome(index=index, record=record)


def _ensure_message_sequence(raw_messages: Any) -> None:
    if (
        raw_messages is None
        or isinstance(raw_messages, (str, bytes, Mapping))
        or not isinstance(raw_messages, Iterable)
    ):
        raise InvalidInputError(
            "Expected a sequence of messages",
            details={"received_type": type(raw_messages).__name__}
        )


def _coerce_message(item: Any) -> RawMessage:
    if isinstance(item, RawMessage):
        return item
    if isinstance(item, Mapping):
        return RawMessage.model_validate(dict(item))
    raise TypeError(f"Unsupported message type: {type(item).__name__}")


def classify_messages(
    raw_messages: Iterable[Any],
    captured_at_ms: Optional[int] = None
) -> List[ExtractionOutcome]:
    """
    Process a batch and return one outcome per input message, in input order.

    Args:
        raw_messages: RawMessage instances (mappings with canonical keys are accepted)
        captured_at_ms: Batch capture time; defaults to now

    Returns:
        List of outcomes

    Raises:
        InvalidInputError: If raw_messages is not a sequence of messages
    """
    _ensure_message_sequence(raw_messages)
    if captured_at_ms is None:
        captured_at_ms = current_time_ms()

    outcomes: List[ExtractionOutcome] = []
    seen_ids: Set[str] = set()

    for index, item in enumerate(raw_messages):
        try:
            message = _coerce_message(item)
        except (ValidationError, TypeError) as e:
            logger.warning(f"Skipping invalid message record at index {index}: {e}")
            outcomes.append(ExtractionOutcome(
                index=index, skip_reason=SkipReason.INVALID_RECORD, detail=str(e)
            ))
            continue

        try:
            outcomes.append(extract_one(message, index, captured_at_ms, seen_ids))
        except Exception as e:
            logger.warning(
                f"Error processing SMS at index {index}: {e} "
                f"(body: {mask_digits(message.body)[:60]!r})"
            )
            outcomes.append(ExtractionOutcome(
                index=index, skip_reason=SkipReason.PROCESSING_ERROR, detail=str(e)
            ))

    return outcomes


def _compare_recency(a: TransactionRecord, b: TransactionRecord) -> int:
    try:
        return b.timestamp - a.timestamp
    except (AttributeError, TypeError):
        return 0


def sort_records(records: Iterable[TransactionRecord]) -> List[TransactionRecord]:
    """Stable sort, newest first. Records without a usable timestamp compare equal."""
    return sorted(records, key=cmp_to_key(_compare_recency))


def extract(
    raw_messages: Iterable[Any],
    captured_at_ms: Optional[int] = None
) -> List[TransactionRecord]:
    """
    Extract transaction records from a batch of messages.

    Args:
        raw_messages: Normalized messages
        captured_at_ms: Batch capture time; defaults to now

    Returns:
        Records for qualifying messages, newest first

    Raises:
        InvalidInputError: If raw_messages is not a sequence of messages
    """
    outcomes = classify_messages(raw_messages, captured_at_ms)
    records = sort_records(o.record for o in outcomes if o.record is not None)

    if outcomes and not records:
        logger.warning(f"No transaction SMS found in {len(outcomes)} messages")
    else:
        logger.info(f"Found {len(records)} transaction SMS out of {len(outcomes)} messages")

    return records


def summarize_outcomes(outcomes: List[ExtractionOutcome]) -> Dict[str, Any]:
    """
    Build extraction statistics.

    Returns:
        Dictionary with total, transaction count, per-kind and per-skip-reason counts
    """
    by_kind: Dict[str, int] = {}
    skipped: Dict[str, int] = {}
    for outcome in outcomes:
        if outcome.record is not None:
            kind = outcome.record.kind.value
            by_kind[kind] = by_kind.get(kind, 0) + 1
        elif outcome.skip_reason is not None:
            reason = outcome.skip_reason.value
            skipped[reason] = skipped.get(reason, 0) + 1

    return {
        "total_messages": len(outcomes),
        "transactions": sum(by_kind.values()),
        "by_kind": by_kind,
        "skipped": skipped,
    }
