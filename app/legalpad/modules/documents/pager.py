"""
Seek-based pagination.

A page is fetched with ``sort_key > cursor ORDER BY sort_key LIMIT n + 1``;
the extra row only tells us whether another page exists and is never
returned. Offsets are not supported because they skip or repeat rows when
documents are inserted between requests.
"""

from __future__ import annotations

import base64
import binascii
import enum
import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from app.legalpad.errors import InvalidCursorError

T = TypeVar("T")

_CURSOR_VERSION = 1


def encode_cursor(sort_key: int) -> str:
    payload = json.dumps({"v": _CURSOR_VERSION, "after": int(sort_key)}, sort_keys=True, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(token: str | None) -> int | None:
    """Return the sort key a cursor points after, or None for an empty token."""
    if token is None or not token.strip():
        return None
    raw = token.strip()
    try:
        padded = raw + "=" * (-len(raw) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidCursorError(f"Malformed cursor: {token!r}") from e
    if not isinstance(data, dict) or data.get("v") != _CURSOR_VERSION:
        raise InvalidCursorError(f"Unsupported cursor: {token!r}")
    after = data.get("after")
    # bool is an int subclass; reject it explicitly.
    if not isinstance(after, int) or isinstance(after, bool):
        raise InvalidCursorError(f"Cursor has no sort key: {token!r}")
    return after


class PagerState(enum.Enum):
    NOT_STARTED = "not_started"
    FETCHING = "fetching"
    HAS_MORE = "has_more"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class Page(Generic[T]):
    documents: list[T]
    next_cursor: str | None
    requested_limit: int
    state: PagerState

    @property
    def has_more(self) -> bool:
        return self.state is PagerState.HAS_MORE


@dataclass
class Pager:
    """
    NOT_STARTED -> FETCHING(cursor) -> HAS_MORE(cursor') | EXHAUSTED

    HAS_MORE may start another fetch from its own cursor; EXHAUSTED is final.
    """

    limit: int
    cursor: str | None = None
    state: PagerState = field(default=PagerState.NOT_STARTED)

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValueError(f"Page limit must be positive, got {self.limit}")
        # Validate eagerly so a bad token fails before any statement runs.
        decode_cursor(self.cursor)

    @property
    def fetch_size(self) -> int:
        return self.limit + 1

    def begin(self) -> int | None:
        """Enter FETCHING; returns the sort key to seek after (None = from the start)."""
        if self.state not in (PagerState.NOT_STARTED, PagerState.HAS_MORE):
            raise RuntimeError(f"Cannot fetch from pager in state {self.state.value}")
        self.state = PagerState.FETCHING
        return decode_cursor(self.cursor)

    def complete(self, rows: Sequence[T], sort_key_of) -> list[T]:
        """
        Consume the ``limit + 1`` fetched rows, advance the cursor and return
        at most ``limit`` of them.
        """
        if self.state is not PagerState.FETCHING:
            raise RuntimeError(f"Cannot complete pager in state {self.state.value}")
        page = list(rows[: self.limit])
        if len(rows) > self.limit:
            self.cursor = encode_cursor(sort_key_of(page[-1]))
            self.state = PagerState.HAS_MORE
        else:
            self.cursor = None
            self.state = PagerState.EXHAUSTED
        return page

    def fail(self) -> None:
        """Return to the pre-fetch state after an aborted fetch so it can be retried."""
        if self.state is PagerState.FETCHING:
            self.state = PagerState.NOT_STARTED
