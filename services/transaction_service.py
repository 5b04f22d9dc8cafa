"""
Transaction reading service.
Connects a message source to the extractor and forwards results to storage.
"""
import asyncio
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from core.config import get_settings
from core.db import TransactionStore
from core.exceptions import (
    InvalidInputError,
    MessageSourceError,
    PermissionDeniedError,
    SourceUnavailableError,
    StorageError,
)
from core.extraction import classify_messages, extract, sort_records, summarize_outcomes
from core.logger import setup_logger
from core.schema import RawMessage, TransactionRecord
from core.sources import load_message_file, normalize_messages, within_window

logger = setup_logger(__name__)

MessageCallback = Callable[[RawMessage], None]


class MessageSource(Protocol):
    """Contract for anything that can supply SMS messages."""

    def is_available(self) -> bool:
        ...

    async def request_permission(self) -> bool:
        ...

    async def list_messages(
        self,
        min_timestamp: Optional[int] = None,
        max_timestamp: Optional[int] = None,
        max_count: Optional[int] = None
    ) -> List[RawMessage]:
        ...

    def start_listener(self, callback: MessageCallback) -> None:
        ...

    def stop_listener(self) -> None:
        ...


def apply_filters(
    messages: Sequence[RawMessage],
    min_timestamp: Optional[int] = None,
    max_timestamp: Optional[int] = None,
    max_count: Optional[int] = None
) -> List[RawMessage]:
    """Keep messages inside the time window, then cap the count (source order kept)."""
    selected = [m for m in messages if within_window(m, min_timestamp, max_timestamp)]
    if max_count is not None:
        selected = selected[:max_count]
    return selected


class InMemoryMessageSource:
    """Message source backed by a list; push() simulates an incoming SMS."""

    def __init__(
        self,
        messages: Optional[Sequence[RawMessage]] = None,
        available: bool = True,
        grant_permission: bool = True
    ):
        self.messages: List[RawMessage] = list(messages or [])
        self.available = available
        self.grant_permission = grant_permission
        self.list_calls = 0
        self._listener: Optional[MessageCallback] = None

    def is_available(self) -> bool:
        return self.available

    async def request_permission(self) -> bool:
        return self.grant_permission

    async def list_messages(
        self,
        min_timestamp: Optional[int] = None,
        max_timestamp: Optional[int] = None,
        max_count: Optional[int] = None
    ) -> List[RawMessage]:
        self.list_calls += 1
        return apply_filters(self.messages, min_timestamp, max_timestamp, max_count)

    def start_listener(self, callback: MessageCallback) -> None:
        self._listener = callback

    def stop_listener(self) -> None:
        self._listener = None

    def push(self, message: RawMessage) -> None:
        """Deliver a new message to the inbox and to the registered listener."""
        self.messages.insert(0, message)
        if self._listener is not None:
            self._listener(message)


class FileMessageSource:
    """Message source reading an exported inbox file (JSON, CSV or Excel)."""

    def __init__(self, file_path: str, shape: str = "auto"):
        self.file_path = file_path
        self.shape = shape

    def is_available(self) -> bool:
        return Path(self.file_path).is_file()

    async def request_permission(self) -> bool:
        # The user handed the file over
        return True

    async def list_messages(
        self,
        min_timestamp: Optional[int] = None,
        max_timestamp: Optional[int] = None,
        max_count: Optional[int] = None
    ) -> List[RawMessage]:
        loop = asyncio.get_running_loop()
        messages = await loop.run_in_executor(None, self.load)
        return apply_filters(messages, min_timestamp, max_timestamp, max_count)

    def load(self) -> List[RawMessage]:
        """Read and normalize the whole export (blocking)."""
        rows = load_message_file(self.file_path)
        return normalize_messages(rows, self.shape)

    def start_listener(self, callback: MessageCallback) -> None:
        logger.debug(f"{Path(self.file_path).name} is a static export; no new messages will arrive")

    def stop_listener(self) -> None:
        pass


class TransactionService:
    """Reads messages from a source, extracts transactions and keeps the latest list."""

    def __init__(self, source: MessageSource, store: Optional[TransactionStore] = None):
        """
        Initialize transaction service.

        Args:
            source: Message source to read from
            store: Optional persistence sink for extracted records
        """
        self.settings = get_settings()
        self.source = source
        self.store = store
        self.records: List[TransactionRecord] = []
        self.listening = False

    async def fetch_messages(self, min_timestamp: Optional[int] = None) -> List[RawMessage]:
        """
        Check availability and permission, then list messages.

        Raises:
            SourceUnavailableError: If the source is not available
            PermissionDeniedError: If the user refuses access
            MessageSourceError: If listing fails or returns an invalid result
        """
        if not self.source.is_available():
            raise SourceUnavailableError(
                "SMS reader not available",
                details={"source": type(self.source).__name__}
            )

        granted = await self.source.request_permission()
        if not granted:
            raise PermissionDeniedError("SMS permission is required to read messages")

        try:
            messages = await self.source.list_messages(
                min_timestamp=min_timestamp,
                max_count=self.settings.max_messages
            )
        except MessageSourceError:
            raise
        except Exception as e:
            logger.error(f"Error reading SMS: {e}")
            details = getattr(e, "details", {})
            raise MessageSourceError(
                f"Failed to read SMS: {getattr(e, 'message', str(e))}",
                details={**details, "error_type": type(e).__name__}
            )

        if not isinstance(messages, (list, tuple)):
            raise MessageSourceError(
                "Invalid messages format received",
                details={"received_type": type(messages).__name__}
            )

        return list(messages)

    def process_messages(self, messages: List[RawMessage]) -> Dict[str, Any]:
        """
        Extract, remember and persist transactions from a batch.

        Returns:
            Dictionary with records, total_messages and stats
        """
        outcomes = classify_messages(messages)
        records = sort_records(o.record for o in outcomes if o.record is not None)
        stats = summarize_outcomes(outcomes)

        self.records = records
        self.save_to_storage(records)

        logger.info(f"Found {len(records)} transaction SMS out of {len(messages)} total messages")
        if not records:
            logger.warning("No transaction SMS found")

        return {
            "records": records,
            "total_messages": len(messages),
            "stats": stats,
        }

    async def read_all(self) -> Dict[str, Any]:
        """Read every message from the source and extract transactions."""
        messages = await self.fetch_messages()
        logger.info(f"Total SMS count: {len(messages)}")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.process_messages, messages)

    async def read_from_period(self, days_back: Optional[int] = None) -> Dict[str, Any]:
        """
        Read messages received in the last days_back days.

        Args:
            days_back: Window size in days (defaults to DEFAULT_DAYS_BACK)

        Raises:
            InvalidInputError: If days_back is less than 1
        """
        if days_back is None:
            days_back = self.settings.default_days_back
        if days_back < 1:
            raise InvalidInputError("days_back must be at least 1", details={"days_back": days_back})

        cutoff = datetime.now() - timedelta(days=days_back)
        cutoff_ms = int(cutoff.timestamp() * 1000)

        messages = await self.fetch_messages(min_timestamp=cutoff_ms)
        logger.info(f"Recent SMS count ({days_back} days): {len(messages)}")
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self.process_messages, messages)
        result["days_back"] = days_back
        return result

    def save_to_storage(self, records: List[TransactionRecord]) -> None:
        """Persist records when a store is attached; storage errors are logged only."""
        if self.store is None or not records:
            return
        try:
            self.store.save_records(records)
        except StorageError as e:
            logger.error(f"Error saving to storage: {e.message}")

    def start_listener(self) -> bool:
        """
        Register for new messages.

        Returns:
            True if the listener was registered
        """
        if not self.source.is_available():
            logger.warning("SMS source not available for listening")
            return False

        try:
            self.source.start_listener(self.handle_new_message)
        except Exception as e:
            logger.error(f"Failed to start SMS listener: {e}")
            return False

        self.listening = True
        return True

    def stop_listener(self) -> None:
        if not self.listening:
            return
        try:
            self.source.stop_listener()
        except Exception as e:
            logger.error(f"Failed to stop SMS listener: {e}")
        self.listening = False

    def handle_new_message(self, message: RawMessage) -> Optional[TransactionRecord]:
        """
        Process one newly received message and prepend it to the current list.

        Returns:
            The new record, or None if the message is not a transaction
        """
        try:
            new_records = extract([message])
        except Exception as e:
            logger.error(f"Error processing new SMS: {e}")
            return None

        if not new_records:
            return None

        record = new_records[0]
        self.records = [record, *self.records]
        self.save_to_storage([record])
        return record


def build_kind_statistics(records: List[TransactionRecord]) -> Dict[str, int]:
    """
    Count records per transaction kind.

    Args:
        records: Extracted records

    Returns:
        Dictionary with counts per kind
    """
    kind_counts: Dict[str, int] = {}
    for record in records:
        kind = record.kind.value
        kind_counts[kind] = kind_counts.get(kind, 0) + 1
    return kind_counts
