"""
Shared fixtures.

Settings and the transaction store are process-wide singletons, so each test
gets its own storage directory and SQLite file and starts from fresh singletons.
"""
import pytest

from core.config import reset_settings
from core.db import reset_store
from core.schema import RawMessage

# 2023-10-11 ... 2023-10-13 (UTC)
TS_OLDEST = 1697000000000
TS_MIDDLE = 1697100000000
TS_NEWEST = 1697200000000


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point storage and database at the test's temporary directory."""
    for var in ("APP_NAME", "HOST", "PORT", "LOG_LEVEL", "DATE_FORMAT", "TIME_FORMAT",
                "PREVIEW_LENGTH", "DEFAULT_DAYS_BACK", "MAX_MESSAGES"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("STORAGE_PATH", str(tmp_path / "files"))
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "transactions.db"))
    reset_settings()
    reset_store()
    yield
    reset_settings()
    reset_store()


@pytest.fixture
def scenario_messages():
    """ICICI debit, PAYTM credit and a personal message."""
    return [
        RawMessage(
            id="icici-1",
            sender="ICICI",
            body="Dear Customer, Rs. 200 debited from your account on 12-Oct-23.",
            timestamp=TS_MIDDLE,
        ),
        RawMessage(
            id="paytm-1",
            sender="PAYTM",
            body="You have received Rs. 50 from RAHUL in your wallet",
            timestamp=TS_NEWEST,
        ),
        RawMessage(
            id="friend-1",
            sender="FRIEND",
            body="Hey, are we still on for dinner tonight?",
            timestamp=TS_OLDEST,
        ),
    ]
