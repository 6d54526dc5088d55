# SPDX-License-Identifier: MIT
"""Change feed client following a CouchDB ``_changes`` endpoint."""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import aiohttp

from ..constants import (
    DEFAULT_FEED_URL,
    DEFAULT_INACTIVITY_SECONDS,
    DEFAULT_POLL_TIMEOUT_MS,
    FEED_RECONNECT_INITIAL_DELAY,
    FEED_RECONNECT_MAX_DELAY,
    LIVE_TAIL,
)
from ..exceptions import FeedConnectionError
from ..logging_config import get_detail_logger
from ..models import ChangeRecord
from ..protocols import FeedErrorHandler
from ..retry_utils import backoff_delays


detail_logger = get_detail_logger()


def parse_changes(payload: Any) -> tuple[list[ChangeRecord], Any]:
    """Split a ``_changes`` response into records and the next ``since`` value.

    Results without an ``id`` or an integer ``seq`` are dropped.

    Raises:
        FeedConnectionError: If the payload is not a changes document
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        raise FeedConnectionError("Malformed _changes response")

    records: list[ChangeRecord] = []
    for result in payload["results"]:
        if not isinstance(result, dict):
            continue
        change_id = result.get("id")
        seq = _coerce_seq(result.get("seq"))
        if not change_id or seq is None:
            detail_logger.debug(f"Ignoring unusable change: {result!r}")
            continue
        records.append(ChangeRecord(id=str(change_id), seq=seq))

    return records, payload.get("last_seq")


def _coerce_seq(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        # CouchDB 2+ sequences look like "1234-g1AAAA..."
        head = value.split("-", 1)[0]
        if head.isdigit():
            return int(head)
    return None


class CouchChangesFeed:
    """Long-polls a CouchDB changes feed and yields ChangeRecords forever.

    Connection failures are reported to ``on_error`` and retried with capped
    exponential backoff; the subscriber never has to restart the stream.
    """

    def __init__(
        self,
        db_url: str = DEFAULT_FEED_URL,
        poll_timeout_ms: int = DEFAULT_POLL_TIMEOUT_MS,
        inactivity_seconds: int = DEFAULT_INACTIVITY_SECONDS,
        reconnect_initial_delay: float = FEED_RECONNECT_INITIAL_DELAY,
        reconnect_max_delay: float = FEED_RECONNECT_MAX_DELAY,
    ):
        self.db_url = db_url.rstrip("/")
        self.poll_timeout_ms = poll_timeout_ms
        self.inactivity_seconds = inactivity_seconds
        self.reconnect_initial_delay = reconnect_initial_delay
        self.reconnect_max_delay = reconnect_max_delay
        self.session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "CouchChangesFeed":
        """Async context manager entry."""
        self._ensure_session()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            # A long poll returns at poll_timeout at the latest; inactivity
            # bounds how long a stalled connection may hang before we reconnect
            self.session = aiohttp.ClientSession(
                headers={"Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(
                    total=None, sock_read=self.inactivity_seconds
                ),
            )
        return self.session

    async def subscribe(
        self, since: int, on_error: FeedErrorHandler | None = None
    ) -> AsyncIterator[ChangeRecord]:
        """Yield changes after ``since`` (or from now for LIVE_TAIL)."""
        cursor: Any = "now" if since == LIVE_TAIL else since
        delays = None
        detail_logger.info(f"Following {self.db_url} from {cursor}")

        while True:
            try:
                records, last_seq = await self._poll(cursor)
            except FeedConnectionError as e:
                if on_error is not None:
                    on_error(e)
                if delays is None:
                    delays = backoff_delays(
                        self.reconnect_initial_delay, self.reconnect_max_delay
                    )
                delay = next(delays)
                detail_logger.debug(f"Reconnecting to change feed in {delay:.1f}s")
                await asyncio.sleep(delay)
                continue

            delays = None
            for record in records:
                yield record
            if last_seq is not None:
                cursor = last_seq
            elif records:
                cursor = records[-1].seq

    async def _poll(self, since: Any) -> tuple[list[ChangeRecord], Any]:
        session = self._ensure_session()
        params = {
            "feed": "longpoll",
            "since": str(since),
            "timeout": str(self.poll_timeout_ms),
        }
        try:
            async with session.get(f"{self.db_url}/_changes", params=params) as response:
                if response.status != 200:
                    raise FeedConnectionError(
                        f"Change feed returned status {response.status}"
                    )
                payload = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise FeedConnectionError("Change feed inactivity timeout") from e
        except aiohttp.ClientError as e:
            raise FeedConnectionError(f"Change feed connection error: {e}") from e
        except ValueError as e:
            raise FeedConnectionError(f"Malformed change feed payload: {e}") from e

        return parse_changes(payload)
