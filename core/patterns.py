"""
Signature, keyword and regex registries for Indian bank / payment SMS.

Pattern chains are ordered: the extractor stops at the first pattern that
matches, so entries earlier in a list take precedence over later ones.
"""
import re
from typing import List, Tuple

from core.schema import TransactionKind

# Bank short names, payment apps and transaction vocabulary (matched upper-case
# against sender and body)
SOURCE_SIGNATURES: Tuple[str, ...] = (
    "HDFC", "ICICI", "SBI", "AXIS", "KOTAK", "CANARA", "BOB", "PNB",
    "PAYTM", "GPAY", "PHONEPE", "BHIM", "AMAZONPAY", "FREECHARGE",
    "MOBIKWIK", "BANK", "CREDIT", "DEBIT", "TRANSACTION", "PAYMENT",
    "UPI", "NEFT", "RTGS", "IMPS", "WALLET", "CRED", "RAZORPAY",
)

# Words and currency markers that indicate a transaction (matched lower-case
# against the body)
TRANSACTION_KEYWORDS: Tuple[str, ...] = (
    "debited", "credited", "transaction", "payment", "transfer",
    "withdrawn", "deposited", "spent", "received", "sent",
    "rs.", "inr", "₹", "upi", "balance", "account", "net banking",
)

# Checked in this order; the first category with a hit wins
KIND_KEYWORDS: Tuple[Tuple[TransactionKind, Tuple[str, ...]], ...] = (
    (TransactionKind.DEBIT, ("debited", "withdrawn", "sent", "paid", "spent", "purchase")),
    (TransactionKind.CREDIT, ("credited", "deposited", "received", "refund", "cashback")),
    (TransactionKind.BALANCE, ("balance", "available")),
)

_NUMERAL = r"(\d+(?:,\d+)*(?:\.\d+)?)"
_CURRENCY = r"(?:Rs\.?|₹|INR)"

AMOUNT_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("rupee_prefix", re.compile(r"\bRs\.?\s*" + _NUMERAL, re.IGNORECASE)),
    ("inr_prefix", re.compile(r"\bINR\s*" + _NUMERAL, re.IGNORECASE)),
    ("rupee_sign_prefix", re.compile(r"₹\s*" + _NUMERAL, re.IGNORECASE)),
    ("rupee_suffix", re.compile(r"\b" + _NUMERAL + r"\s*(?:Rs|INR)\b", re.IGNORECASE)),
    ("amount_of", re.compile(
        r"\bamount\s*(?:of\s*)?[:\-]?\s*" + _CURRENCY + r"?\s*" + _NUMERAL, re.IGNORECASE
    )),
    ("verb_prefix", re.compile(
        r"\b(?:paid|sent|received|debited|credited)\s*" + _CURRENCY + r"?\s*" + _NUMERAL,
        re.IGNORECASE,
    )),
    ("balance_prefix", re.compile(
        r"\b(?:avl\.?\s*|avbl\.?\s*|available\s+)?bal(?:ance)?\b\s*(?:is\s+)?[:\-]?\s*"
        + _CURRENCY + r"?\s*" + _NUMERAL,
        re.IGNORECASE,
    )),
]

# A name starts with a letter and runs until " on", a space before a digit,
# or the end of the message
_NAME = r"([A-Z][A-Z0-9\s]+?)"
_NAME_END = r"(?:\s+on|\s+\d|\s*$)"

MERCHANT_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("preposition", re.compile(r"\b(?:at|to|from)\s+" + _NAME + _NAME_END, re.IGNORECASE)),
    ("counterparty", re.compile(
        r"\b(?:paid to|sent to|received from)\s+" + _NAME + _NAME_END, re.IGNORECASE
    )),
    ("upi_handle", re.compile(r"UPI-([A-Z0-9\s]+?)(?:\s+\d|\s*$)", re.IGNORECASE)),
    ("merchant", re.compile(r"\bmerchant\s+" + _NAME + _NAME_END, re.IGNORECASE)),
    ("purchase_at", re.compile(r"\b(?:purchase|txn)\s+at\s+" + _NAME + _NAME_END, re.IGNORECASE)),
]

UNKNOWN_AMOUNT = "Unknown"
DEFAULT_DESCRIPTION = "Transaction"
