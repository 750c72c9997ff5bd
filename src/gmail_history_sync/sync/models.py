# sync/models.py
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SyncTarget(BaseModel):
    """
    Where the cursor for one mailbox lives.
    Fixed per deployment; frozen so nothing mutates it mid-pass.
    """
    model_config = ConfigDict(frozen=True)

    collection: str = "function_config"
    document: str = "gmail_sync"
    user_id: str = "me"

    @property
    def key(self) -> str:
        return f"{self.collection}/{self.document}"


class SyncCursor(BaseModel):
    """
    Last-seen Gmail historyId. Opaque: never parsed or compared numerically.
    """
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_str(cls, v):
        # Firestore documents written by other tools may hold the id as an int.
        if isinstance(v, int):
            return str(v)
        return v


class MessageAdded(BaseModel):
    message_id: str
    thread_id: Optional[str] = None


class HistoryDelta(BaseModel):
    """
    Result of one history.list walk, all pages accumulated.
    `history_id` is the provider's latest marker from the final page.
    """
    events: List[MessageAdded] = Field(default_factory=list)
    history_id: Optional[str] = None
    pages: int = 0

    @property
    def empty(self) -> bool:
        return not self.events

    def message_ids(self) -> List[str]:
        """Message ids in provider order, first occurrence wins."""
        seen = set()
        out: List[str] = []
        for ev in self.events:
            if ev.message_id in seen:
                continue
            seen.add(ev.message_id)
            out.append(ev.message_id)
        return out


class Outcome(str, Enum):
    INITIALIZED = "initialized"
    NO_NEW_EVENTS = "no_new_events"
    EVENTS_PROCESSED = "events_processed"
    REINITIALIZED = "reinitialized"


class PassReport(BaseModel):
    outcome: Outcome
    message: str
    cursor_before: Optional[str] = None
    cursor_after: Optional[str] = None
    dispatched: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
