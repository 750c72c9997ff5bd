"""
Process-wide runtime for the sync step.

`init_runtime()` validates configuration and builds every client once, before
the first pass is served. Until it has succeeded, `run_sync()` refuses to run
and the server health check reports the startup error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from google.auth.exceptions import GoogleAuthError

from ..processing import FileResultSink, FirestoreResultSink, MessageProcessor
from ..shared.gmail import GmailClient
from ..shared.openai_utils import make_client
from ..utils.logging_utils import get_logger
from ..utils.settings import ConfigError, Settings, load_settings
from .cursors import FileCursorStore, FirestoreCursorStore
from .engine import SyncEngine
from .models import PassReport
from .results import Result

log = get_logger("pipeline")


@dataclass
class Runtime:
    settings: Settings
    engine: SyncEngine


_runtime: Optional[Runtime] = None
_startup_error: Optional[str] = None


def build_engine(settings: Settings) -> SyncEngine:
    timeout = settings.REQUEST_TIMEOUT_SECONDS
    target = settings.sync_target()
    gmail = GmailClient.from_oauth(
        client_id=settings.OAUTH_CLIENT_ID,
        client_secret=settings.OAUTH_CLIENT_SECRET,
        refresh_token=settings.GMAIL_REFRESH_TOKEN,
        user_id=target.user_id,
        timeout=timeout,
    )

    if settings.CURSOR_BACKEND == "file":
        store = FileCursorStore(settings.CURSOR_PATH)
        sink = FileResultSink(f"{settings.RESULTS_COLLECTION}.json")
    else:
        from google.cloud import firestore

        db = firestore.Client()
        store = FirestoreCursorStore(db, timeout=timeout)
        sink = FirestoreResultSink(db, collection=settings.RESULTS_COLLECTION, timeout=timeout)

    processor = MessageProcessor(
        gmail,
        make_client(settings.GENAI_API_KEY, timeout=timeout),
        sink,
        model=settings.GENAI_MODEL,
    )
    return SyncEngine(store, gmail, processor, target=target)


def init_runtime(settings: Optional[Settings] = None) -> Runtime:
    """Validate config and build clients. Raises ConfigError on failure."""
    global _runtime, _startup_error
    try:
        settings = settings or load_settings()
        engine = build_engine(settings)
    except ConfigError as e:
        _startup_error = str(e)
        raise
    except (GoogleAuthError, EnvironmentError) as e:
        _startup_error = f"FATAL STARTUP ERROR: {e}"
        raise ConfigError(_startup_error) from e

    _runtime = Runtime(settings=settings, engine=engine)
    _startup_error = None
    log.info("All environment variables are present. Runtime initialized.")
    return _runtime


def install_runtime(engine: SyncEngine, settings: Settings) -> Runtime:
    """Use a prebuilt engine (tests, embedding in another process)."""
    global _runtime, _startup_error
    _runtime = Runtime(settings=settings, engine=engine)
    _startup_error = None
    return _runtime


def reset_runtime() -> None:
    global _runtime, _startup_error
    _runtime = None
    _startup_error = None


def get_runtime() -> Optional[Runtime]:
    return _runtime


def startup_error() -> Optional[str]:
    return _startup_error


def run_sync() -> Result[PassReport]:
    if _runtime is None:
        raise RuntimeError(_startup_error or "Runtime not initialized; call init_runtime() first")
    return _runtime.engine.run_sync_pass()
