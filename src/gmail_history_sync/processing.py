"""
Downstream processing for one newly added message.

Fetches the message from Gmail, asks the model for a short summary and a
category, and upserts the result under the message id. Writing by message id
makes a repeated call for the same id overwrite instead of duplicating, which
is what lets the sync engine re-deliver a delta after a failed pass.
"""

from __future__ import annotations

import base64
import json
import pathlib
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from google.api_core import exceptions as gapi_exceptions
from openai import OpenAIError

from .shared.gmail import GmailClient
from .shared.openai_utils import chat_completion
from .sync.results import ErrorKind, Ok, Result, err
from .utils.logging_utils import get_logger

log = get_logger("processor")

CATEGORIES = ["service_call", "inquiry", "invoice", "newsletter", "personal", "other"]
MAX_BODY_CHARS = 8000


class ResultSink(Protocol):
    def save(self, message_id: str, record: Dict[str, Any]) -> Result[None]: ...


class FirestoreResultSink:
    def __init__(self, client, collection: str = "service_calls", timeout: Optional[float] = 30.0):
        self.client = client
        self.collection = collection
        self.timeout = timeout

    def save(self, message_id: str, record: Dict[str, Any]) -> Result[None]:
        try:
            self.client.collection(self.collection).document(message_id).set(
                record, timeout=self.timeout
            )
        except gapi_exceptions.GoogleAPIError as e:
            return err(ErrorKind.DOWNSTREAM_FAILURE, f"Saving result for {message_id} failed: {e}")
        return Ok(None)


class FileResultSink:
    """JSON object keyed by message id; used with the file cursor backend."""

    def __init__(self, path: str | pathlib.Path = "service_calls.json"):
        self.path = pathlib.Path(path)

    def save(self, message_id: str, record: Dict[str, Any]) -> Result[None]:
        try:
            data: Dict[str, Any] = {}
            if self.path.exists():
                data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            data[message_id] = record
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        except (OSError, ValueError) as e:
            return err(ErrorKind.DOWNSTREAM_FAILURE, f"Saving result for {message_id} failed: {e}")
        return Ok(None)


def _header(headers: List[Dict[str, str]], name: str) -> str:
    for h in headers:
        if (h.get("name") or "").lower() == name.lower():
            return h.get("value") or ""
    return ""


def _decode(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", errors="ignore")


def extract_text(payload: Dict[str, Any]) -> str:
    """Return the first text/plain body found walking the MIME tree."""
    if payload.get("mimeType") == "text/plain":
        data = (payload.get("body") or {}).get("data")
        if data:
            return _decode(data)
    for part in payload.get("parts") or []:
        text = extract_text(part)
        if text:
            return text
    return ""


def summarize_message(client, model: str, subject: str, sender: str, body: str) -> Dict[str, str]:
    """
    Ask the model for {"summary": ..., "category": ...}.
    A non-JSON reply is kept verbatim as the summary with category "other".
    """
    prompt = (
        "Summarize this email in 1-2 sentences and classify it as one of: "
        f"{', '.join(CATEGORIES)}.\n"
        'Reply with JSON only: {"summary": "...", "category": "..."}\n\n'
        f"From: {sender}\nSubject: {subject}\n\n{body.strip()[:MAX_BODY_CHARS]}"
    )
    content = chat_completion(
        client,
        model=model,
        messages=[
            {"role": "system", "content": "You triage incoming email."},
            {"role": "user", "content": prompt},
        ],
    )

    try:
        parsed = json.loads(content)
    except ValueError:
        return {"summary": content, "category": "other"}
    if not isinstance(parsed, dict):
        return {"summary": content, "category": "other"}

    category = str(parsed.get("category") or "other").strip().lower()
    if category not in CATEGORIES:
        category = "other"
    return {"summary": str(parsed.get("summary") or "").strip(), "category": category}


class MessageProcessor:
    def __init__(self, gmail: GmailClient, llm_client, sink: ResultSink, model: str = "gpt-4o-mini"):
        self.gmail = gmail
        self.llm_client = llm_client
        self.sink = sink
        self.model = model

    def process(self, message_id: str) -> Result[None]:
        fetched = self.gmail.get_message(message_id)
        if not fetched.ok:
            return err(ErrorKind.DOWNSTREAM_FAILURE, fetched.error.message)
        msg = fetched.value
        if msg is None:
            # Deleted after it was added, e.g. a superseded draft
            log.info("Message %s no longer exists; skipping.", message_id)
            return Ok(None)

        payload = msg.get("payload") or {}
        headers = payload.get("headers") or []
        subject = _header(headers, "Subject") or "(no subject)"
        sender = _header(headers, "From") or "(unknown)"
        try:
            body = extract_text(payload) or msg.get("snippet", "")
        except ValueError as e:
            return err(ErrorKind.DOWNSTREAM_FAILURE, f"Decoding body of {message_id} failed: {e}")

        try:
            summary = summarize_message(self.llm_client, self.model, subject, sender, body)
        except OpenAIError as e:
            return err(ErrorKind.DOWNSTREAM_FAILURE, f"Summarizing {message_id} failed: {e}")

        record = {
            "messageId": message_id,
            "threadId": msg.get("threadId"),
            "subject": subject,
            "from": sender,
            "date": _header(headers, "Date"),
            "summary": summary["summary"],
            "category": summary["category"],
            "processedAt": datetime.now(timezone.utc).isoformat(),
        }
        saved = self.sink.save(message_id, record)
        if not saved.ok:
            return saved
        log.info("Processed %s (%s): %s", message_id, summary["category"], subject)
        return Ok(None)
