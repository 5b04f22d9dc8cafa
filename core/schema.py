"""
Pydantic schemas for raw messages and extracted transaction records.
"""
import math
from enum import Enum
from typing import Annotated, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def normalize_message_id(v):
    """Normalize message id to a non-empty string (sources may return int)."""
    if v is None:
        return None
    v = str(v).strip()
    return v or None


def normalize_timestamp(v):
    """Normalize raw timestamp: floats truncated, blank strings treated as absent."""
    if v is None:
        return None
    if isinstance(v, float):
        if math.isnan(v) or math.isinf(v):
            return None
        return int(v)
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class TransactionKind(str, Enum):
    """Direction of a detected transaction."""
    DEBIT = "Debit"
    CREDIT = "Credit"
    BALANCE = "Balance"
    UNKNOWN = "Unknown"


class SkipReason(str, Enum):
    """Why a message produced no transaction record."""
    MISSING_FIELDS = "missing_fields"
    NOT_FINANCIAL_SOURCE = "not_financial_source"
    NO_TRANSACTION_KEYWORDS = "no_transaction_keywords"
    INVALID_RECORD = "invalid_record"
    PROCESSING_ERROR = "processing_error"


class RawMessage(BaseModel):
    """
    Normalized message as handed to the extractor.
    Source-specific shapes are converted by the adapters in core.sources.
    """
    model_config = ConfigDict(extra="ignore")

    body: Optional[str] = None
    sender: Optional[str] = None
    timestamp: Annotated[Optional[Union[int, str]], BeforeValidator(normalize_timestamp)] = Field(
        None, description="Epoch milliseconds or a numeric string"
    )
    id: Annotated[Optional[str], BeforeValidator(normalize_message_id)] = None


class TransactionRecord(BaseModel):
    """A single transaction detected in an SMS message."""
    model_config = ConfigDict(frozen=True)

    id: str
    sender: str
    amount: str = Field(..., description="Plain decimal numeral or 'Unknown'")
    kind: TransactionKind
    date: str
    time: str
    description: str = "Transaction"
    message_preview: str
    full_message: str
    timestamp: int = Field(..., description="Resolved epoch milliseconds used for ordering")


class ExtractionOutcome(BaseModel):
    """Result of processing one message: either a record or a skip reason."""
    index: int
    record: Optional[TransactionRecord] = None
    skip_reason: Optional[SkipReason] = None
    detail: Optional[str] = None
