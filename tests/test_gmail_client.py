"""Tests for the Gmail API wrapper."""

import socket

import httplib2
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from gmail_history_sync.shared.gmail import GmailClient
from gmail_history_sync.sync.results import ErrorKind


def _http_error(status: int) -> HttpError:
    return HttpError(resp=httplib2.Response({"status": status}), content=b"error")


def _history_list(service):
    return service.users.return_value.history.return_value.list


def test_get_profile_returns_history_id(gmail_service):
    gmail_service.users.return_value.getProfile.return_value.execute.return_value = {
        "emailAddress": "ops@example.com",
        "historyId": 4242,
    }

    result = GmailClient(gmail_service).get_profile()

    assert result.ok
    assert result.value == "4242"
    gmail_service.users.return_value.getProfile.assert_called_once_with(userId="me")


def test_get_profile_without_history_id_is_upstream_error(gmail_service):
    gmail_service.users.return_value.getProfile.return_value.execute.return_value = {}

    result = GmailClient(gmail_service).get_profile()

    assert not result.ok
    assert result.error.kind is ErrorKind.UPSTREAM_UNAVAILABLE


def test_get_profile_refresh_error(gmail_service):
    gmail_service.users.return_value.getProfile.return_value.execute.side_effect = RefreshError(
        "invalid_grant"
    )

    result = GmailClient(gmail_service).get_profile()

    assert not result.ok
    assert result.error.kind is ErrorKind.UPSTREAM_UNAVAILABLE
    assert "invalid_grant" in result.error.message


def test_list_history_follows_pages_and_filters_kinds(gmail_service):
    _history_list(gmail_service).return_value.execute.side_effect = [
        {
            "history": [
                {"id": "11", "messagesAdded": [{"message": {"id": "a", "threadId": "t1"}}]},
                {"id": "12", "labelsAdded": [{"message": {"id": "z"}, "labelIds": ["STARRED"]}]},
            ],
            "nextPageToken": "next",
            "historyId": "15",
        },
        {
            "history": [
                {
                    "id": "13",
                    "messages": [{"id": "b"}],
                    "messagesAdded": [{"message": {"id": "b"}}],
                }
            ],
            "historyId": "20",
        },
    ]

    result = GmailClient(gmail_service, user_id="me").list_history("10")

    assert result.ok
    d = result.value
    assert [e.message_id for e in d.events] == ["a", "b"]
    assert d.events[0].thread_id == "t1"
    assert d.history_id == "20"
    assert d.pages == 2

    calls = _history_list(gmail_service).call_args_list
    assert len(calls) == 2
    assert calls[0].kwargs["startHistoryId"] == "10"
    assert calls[0].kwargs["historyTypes"] == ["messageAdded"]
    assert calls[0].kwargs["pageToken"] is None
    assert calls[1].kwargs["pageToken"] == "next"


def test_list_history_empty_response(gmail_service):
    _history_list(gmail_service).return_value.execute.return_value = {"historyId": "105"}

    result = GmailClient(gmail_service).list_history("105")

    assert result.ok
    assert result.value.empty
    assert result.value.history_id == "105"


def test_list_history_404_is_cursor_expired(gmail_service):
    _history_list(gmail_service).return_value.execute.side_effect = _http_error(404)

    result = GmailClient(gmail_service).list_history("1")

    assert not result.ok
    assert result.error.kind is ErrorKind.CURSOR_EXPIRED


def test_list_history_server_error_is_upstream(gmail_service):
    _history_list(gmail_service).return_value.execute.side_effect = _http_error(500)

    result = GmailClient(gmail_service).list_history("1")

    assert not result.ok
    assert result.error.kind is ErrorKind.UPSTREAM_UNAVAILABLE


def test_list_history_timeout_mid_pagination_is_upstream(gmail_service):
    _history_list(gmail_service).return_value.execute.side_effect = [
        {"history": [{"messagesAdded": [{"message": {"id": "a"}}]}], "nextPageToken": "p2"},
        socket.timeout("timed out"),
    ]

    result = GmailClient(gmail_service).list_history("1")

    assert not result.ok
    assert result.error.kind is ErrorKind.UPSTREAM_UNAVAILABLE


def test_get_message_error(gmail_service):
    gmail_service.users.return_value.messages.return_value.get.return_value.execute.side_effect = (
        _http_error(403)
    )

    result = GmailClient(gmail_service).get_message("m1")

    assert not result.ok
    assert "m1" in result.error.message


def test_get_message_deleted_reads_as_none(gmail_service):
    gmail_service.users.return_value.messages.return_value.get.return_value.execute.side_effect = (
        _http_error(404)
    )

    result = GmailClient(gmail_service).get_message("draft_gone")

    assert result.ok
    assert result.value is None
