from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from gmail_history_sync.sync import pipeline
from gmail_history_sync.sync.models import HistoryDelta, MessageAdded, SyncCursor, SyncTarget
from gmail_history_sync.sync.results import ErrorKind, Ok, err
from gmail_history_sync.utils.settings import Settings


class FakeStore:
    """In-memory cursor store that records every call."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self.reads: List[str] = []
        self.writes: List[tuple] = []
        self.fail_read = False
        self.fail_write = False

    def read_cursor(self, target: SyncTarget):
        self.reads.append(target.key)
        if self.fail_read:
            return err(ErrorKind.STORE_UNAVAILABLE, "firestore unreachable")
        value = self.data.get(target.key)
        return Ok(SyncCursor(value=value) if value else None)

    def write_cursor(self, target: SyncTarget, value: str):
        if self.fail_write:
            return err(ErrorKind.STORE_UNAVAILABLE, "permission denied")
        self.writes.append((target.key, value))
        self.data[target.key] = value
        return Ok(None)


class FakeSource:
    """Scripted Gmail: a profile marker plus a queue of history.list results."""

    def __init__(self, profile: str = "100", history=None):
        self.profile = profile
        self.history = list(history or [])
        self.profile_calls = 0
        self.history_calls: List[dict] = []
        self.profile_error = None

    def get_profile(self):
        self.profile_calls += 1
        if self.profile_error is not None:
            return self.profile_error
        return Ok(self.profile)

    def list_history(self, start_history_id, history_types=None):
        self.history_calls.append({"start": start_history_id, "types": history_types})
        return self.history.pop(0)


class FakeProcessor:
    def __init__(self, fail: Optional[set] = None):
        self.calls: List[str] = []
        self.fail = set(fail or ())

    def process(self, message_id: str):
        self.calls.append(message_id)
        if message_id in self.fail:
            return err(ErrorKind.DOWNSTREAM_FAILURE, f"model refused {message_id}")
        return Ok(None)


def delta(ids, history_id=None, pages=1):
    return Ok(
        HistoryDelta(
            events=[MessageAdded(message_id=i) for i in ids],
            history_id=history_id,
            pages=pages,
        )
    )


@pytest.fixture
def target():
    return SyncTarget()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def processor():
    return FakeProcessor()


@pytest.fixture
def settings():
    return Settings(
        GENAI_API_KEY="genai-key",
        OAUTH_CLIENT_ID="client-id",
        OAUTH_CLIENT_SECRET="client-secret",
        GMAIL_REFRESH_TOKEN="refresh-token",
        _env_file=None,
    )


@pytest.fixture(autouse=True)
def _reset_runtime():
    pipeline.reset_runtime()
    yield
    pipeline.reset_runtime()


@pytest.fixture
def gmail_service():
    """MagicMock shaped like googleapiclient's gmail v1 resource."""
    return MagicMock()
