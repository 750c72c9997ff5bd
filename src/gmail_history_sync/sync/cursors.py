"""
Durable storage for the last-seen Gmail historyId, one value per SyncTarget.

A missing document is a normal "never synced" state and reads as ``Ok(None)``;
only an unreachable backend is an error.
"""

from __future__ import annotations

import json
import pathlib
from typing import Any, Dict, Optional, Protocol

from google.api_core import exceptions as gapi_exceptions

from .models import SyncCursor, SyncTarget
from .results import ErrorKind, Ok, Result, err

CURSOR_FIELD = "lastHistoryId"


class CursorStore(Protocol):
    def read_cursor(self, target: SyncTarget) -> Result[Optional[SyncCursor]]: ...

    def write_cursor(self, target: SyncTarget, value: str) -> Result[None]: ...


def _cursor_from(data: Optional[Dict[str, Any]]) -> Optional[SyncCursor]:
    if not data:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"cursor document must be an object, got {type(data).__name__}")
    raw = data.get(CURSOR_FIELD)
    if raw is None or raw == "":
        return None
    return SyncCursor(value=raw)


class FirestoreCursorStore:
    """Cursor kept as a single field on a Firestore document."""

    def __init__(self, client, timeout: Optional[float] = 30.0):
        self.client = client
        self.timeout = timeout

    def _doc(self, target: SyncTarget):
        return self.client.collection(target.collection).document(target.document)

    def read_cursor(self, target: SyncTarget) -> Result[Optional[SyncCursor]]:
        try:
            snapshot = self._doc(target).get(timeout=self.timeout)
        except gapi_exceptions.GoogleAPIError as e:
            return err(ErrorKind.STORE_UNAVAILABLE, f"Cursor read failed for {target.key}: {e}")
        if not snapshot.exists:
            return Ok(None)
        try:
            return Ok(_cursor_from(snapshot.to_dict()))
        except ValueError as e:
            return err(ErrorKind.STORE_UNAVAILABLE, f"Unreadable cursor in {target.key}: {e}")

    def write_cursor(self, target: SyncTarget, value: str) -> Result[None]:
        try:
            self._doc(target).set({CURSOR_FIELD: value}, merge=True, timeout=self.timeout)
        except gapi_exceptions.GoogleAPIError as e:
            return err(ErrorKind.STORE_UNAVAILABLE, f"Cursor write failed for {target.key}: {e}")
        return Ok(None)


class FileCursorStore:
    """
    Local JSON file holding one document per target key:
        {"function_config/gmail_sync": {"lastHistoryId": "100"}}
    """

    def __init__(self, path: str | pathlib.Path = ".last_history.json"):
        self.path = pathlib.Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a JSON object")
        return data

    def read_cursor(self, target: SyncTarget) -> Result[Optional[SyncCursor]]:
        try:
            data = self._load()
            return Ok(_cursor_from(data.get(target.key)))
        except (OSError, ValueError) as e:
            return err(ErrorKind.STORE_UNAVAILABLE, f"Cursor read failed for {target.key}: {e}")

    def write_cursor(self, target: SyncTarget, value: str) -> Result[None]:
        try:
            data = self._load()
            doc = data.get(target.key) or {}
            doc[CURSOR_FIELD] = value
            data[target.key] = doc
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except (OSError, ValueError) as e:
            return err(ErrorKind.STORE_UNAVAILABLE, f"Cursor write failed for {target.key}: {e}")
        return Ok(None)
