"""
One incremental sync pass over a Gmail mailbox.

    no cursor            -> bootstrap to the current historyId
    cursor               -> history.list since cursor, dispatch messageAdded, advance
    cursor expired (404) -> bootstrap again and warn that events may be missed

The cursor is only written after a step fully succeeds. If any message fails
downstream the cursor stays where it was, so the next pass re-fetches and
re-dispatches the whole delta; the processor upserts by message id, so a
repeat is harmless.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from ..utils.logging_utils import get_logger
from .cursors import CursorStore
from .models import HistoryDelta, Outcome, PassReport, SyncTarget
from .results import ErrorKind, Ok, Result, err

log = get_logger("sync_engine")

MSG_INITIALIZED = "Initial run complete. History marker set."
MSG_NO_NEW = "No new emails."
MSG_REINITIALIZED = (
    "History marker expired; re-anchored to current history. "
    "Some emails may have been missed."
)


class HistorySource(Protocol):
    def get_profile(self) -> Result[str]: ...

    def list_history(
        self, start_history_id: str, history_types: Optional[List[str]] = None
    ) -> Result[HistoryDelta]: ...


class Processor(Protocol):
    def process(self, message_id: str) -> Result[None]: ...


class SyncEngine:
    def __init__(
        self,
        store: CursorStore,
        source: HistorySource,
        processor: Processor,
        target: Optional[SyncTarget] = None,
    ):
        self.store = store
        self.source = source
        self.processor = processor
        self.target = target or SyncTarget()

    def run_sync_pass(self) -> Result[PassReport]:
        log.info("Sync pass started for %s", self.target.key)

        read = self.store.read_cursor(self.target)
        if not read.ok:
            return read
        cursor = read.value

        if cursor is None:
            log.info("No lastHistoryId found. Setting initial history marker.")
            return self._bootstrap(Outcome.INITIALIZED, MSG_INITIALIZED, cursor_before=None)

        fetched = self.source.list_history(cursor.value, history_types=["messageAdded"])
        if not fetched.ok:
            if fetched.error.kind is ErrorKind.CURSOR_EXPIRED:
                log.warning(
                    "History marker %s expired; re-bootstrapping. Events since then may be missed. (%s)",
                    cursor.value,
                    fetched.error.message,
                )
                return self._bootstrap(
                    Outcome.REINITIALIZED,
                    MSG_REINITIALIZED,
                    cursor_before=cursor.value,
                    warning=f"History marker {cursor.value} expired; events since then may have been missed.",
                )
            return fetched

        delta = fetched.value
        if delta.empty:
            return self._advance_empty(cursor.value, delta)
        return self._dispatch(cursor.value, delta)

    def _bootstrap(
        self,
        outcome: Outcome,
        message: str,
        cursor_before: Optional[str],
        warning: Optional[str] = None,
    ) -> Result[PassReport]:
        profile = self.source.get_profile()
        if not profile.ok:
            return profile
        marker = profile.value

        written = self.store.write_cursor(self.target, marker)
        if not written.ok:
            return written
        log.info("Initial historyId set to %s.", marker)

        return Ok(
            PassReport(
                outcome=outcome,
                message=message,
                cursor_before=cursor_before,
                cursor_after=marker,
                warnings=[warning] if warning else [],
            )
        )

    def _advance_empty(self, current: str, delta: HistoryDelta) -> Result[PassReport]:
        log.info("No new history found.")
        latest = delta.history_id
        # Keep up with the provider even when nothing was added, so the stored
        # marker does not age out of the retention window.
        if latest and latest != current:
            written = self.store.write_cursor(self.target, latest)
            if not written.ok:
                return written
            log.info("History marker advanced %s -> %s with no new emails.", current, latest)
        else:
            latest = current

        return Ok(
            PassReport(
                outcome=Outcome.NO_NEW_EVENTS,
                message=MSG_NO_NEW,
                cursor_before=current,
                cursor_after=latest,
            )
        )

    def _dispatch(self, current: str, delta: HistoryDelta) -> Result[PassReport]:
        ids = delta.message_ids()
        log.info("Found %d new message(s) across %d page(s).", len(ids), delta.pages)

        dispatched: List[str] = []
        failed: List[str] = []
        for message_id in ids:
            dispatched.append(message_id)
            try:
                result = self.processor.process(message_id)
            except Exception as e:
                failed.append(message_id)
                log.exception("Processing message %s raised: %s", message_id, e)
                continue
            if not result.ok:
                failed.append(message_id)
                log.error("Processing message %s failed: %s", message_id, result.error.message)

        if failed:
            return err(
                ErrorKind.DOWNSTREAM_FAILURE,
                f"{len(failed)} of {len(ids)} message(s) failed processing "
                f"({', '.join(failed)}); history marker left at {current}.",
            )

        latest = delta.history_id or current
        if latest != current:
            written = self.store.write_cursor(self.target, latest)
            if not written.ok:
                return written
        log.info("History marker advanced %s -> %s.", current, latest)

        return Ok(
            PassReport(
                outcome=Outcome.EVENTS_PROCESSED,
                message=f"Email check complete. Processed {len(ids)} new email(s).",
                cursor_before=current,
                cursor_after=latest,
                dispatched=dispatched,
            )
        )
