from __future__ import annotations

from typing import Any, Dict, List, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..sync.models import HistoryDelta, MessageAdded
from ..sync.results import ErrorKind, Ok, Result, err

SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
MESSAGE_ADDED = "messageAdded"

# Transport-level failures: auth refresh, socket timeouts, httplib2 errors
_TRANSPORT_ERRORS = (GoogleAuthError, httplib2.HttpLib2Error, OSError)


def _status(e: HttpError) -> Optional[int]:
    resp = getattr(e, "resp", None)
    status = getattr(resp, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


class GmailClient:
    def __init__(self, service: Any, user_id: str = "me"):
        self.service = service
        self.user_id = user_id

    @classmethod
    def from_oauth(
        cls,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        user_id: str = "me",
        timeout: Optional[float] = 30.0,
    ) -> "GmailClient":
        """
        Build a Gmail v1 service from a stored refresh token.
        The access token is fetched lazily on the first request.
        """
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            client_id=client_id,
            client_secret=client_secret,
            token_uri=TOKEN_URI,
            scopes=SCOPES,
        )
        http = AuthorizedHttp(creds, http=httplib2.Http(timeout=timeout))
        service = build("gmail", "v1", http=http, cache_discovery=False)
        return cls(service, user_id=user_id)

    def get_profile(self) -> Result[str]:
        """Return the mailbox's current historyId without any history records."""
        try:
            profile = self.service.users().getProfile(userId=self.user_id).execute()
        except (HttpError, *_TRANSPORT_ERRORS) as e:
            return err(ErrorKind.UPSTREAM_UNAVAILABLE, f"Gmail getProfile failed: {e}")

        history_id = profile.get("historyId")
        if not history_id:
            return err(ErrorKind.UPSTREAM_UNAVAILABLE, "Gmail profile did not include a historyId")
        return Ok(str(history_id))

    def list_history(
        self,
        start_history_id: str,
        history_types: Optional[List[str]] = None,
        page_size: int = 500,
    ) -> Result[HistoryDelta]:
        """
        Walk users.history.list from `start_history_id` until nextPageToken
        runs out and return every messageAdded event across all pages.
        Gmail answers 404 when the start id is older than its retention window.
        """
        history_types = history_types or [MESSAGE_ADDED]
        events: List[MessageAdded] = []
        latest: Optional[str] = None
        pages = 0
        page_token = None

        try:
            while True:
                resp = (
                    self.service.users()
                    .history()
                    .list(
                        userId=self.user_id,
                        startHistoryId=start_history_id,
                        historyTypes=history_types,
                        maxResults=min(page_size, 500),
                        pageToken=page_token,
                    )
                    .execute()
                )
                pages += 1
                for record in resp.get("history", []):
                    # Records can also carry labelsAdded/messagesDeleted; only additions count
                    for added in record.get("messagesAdded", []):
                        msg = added.get("message") or {}
                        if msg.get("id"):
                            events.append(
                                MessageAdded(message_id=msg["id"], thread_id=msg.get("threadId"))
                            )
                if resp.get("historyId"):
                    latest = str(resp["historyId"])
                page_token = resp.get("nextPageToken")
                if not page_token:
                    break
        except HttpError as e:
            if _status(e) == 404:
                return err(
                    ErrorKind.CURSOR_EXPIRED,
                    f"History marker {start_history_id} is no longer available: {e}",
                )
            return err(ErrorKind.UPSTREAM_UNAVAILABLE, f"Gmail history.list failed: {e}")
        except _TRANSPORT_ERRORS as e:
            return err(ErrorKind.UPSTREAM_UNAVAILABLE, f"Gmail history.list failed: {e}")

        return Ok(HistoryDelta(events=events, history_id=latest, pages=pages))

    def get_message(self, message_id: str) -> Result[Optional[Dict[str, Any]]]:
        """Fetch one message. A message deleted since it was added reads as Ok(None)."""
        try:
            msg = (
                self.service.users()
                .messages()
                .get(userId=self.user_id, id=message_id, format="full")
                .execute()
            )
        except HttpError as e:
            if _status(e) == 404:
                return Ok(None)
            return err(ErrorKind.UPSTREAM_UNAVAILABLE, f"Gmail messages.get({message_id}) failed: {e}")
        except _TRANSPORT_ERRORS as e:
            return err(ErrorKind.UPSTREAM_UNAVAILABLE, f"Gmail messages.get({message_id}) failed: {e}")
        return Ok(msg)
