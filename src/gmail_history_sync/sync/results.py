"""
Result types passed between the sync engine and its collaborators.

Collaborators never raise for expected failures; they return ``Err`` with a
``SyncError`` describing what went wrong. Only the trigger boundary turns an
``Err`` into a status code.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    STORE_UNAVAILABLE = "store_unavailable"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    CURSOR_EXPIRED = "cursor_expired"
    DOWNSTREAM_FAILURE = "downstream_failure"


@dataclass(frozen=True)
class SyncError:
    kind: ErrorKind
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: SyncError

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def err(kind: ErrorKind, message: str) -> Err:
    return Err(SyncError(kind=kind, message=message))
