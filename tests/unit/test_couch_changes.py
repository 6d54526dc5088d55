# SPDX-License-Identifier: MIT
"""Tests for the CouchDB change feed client."""

import asyncio
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from registry_cache_sync.constants import LIVE_TAIL
from registry_cache_sync.exceptions import FeedConnectionError
from registry_cache_sync.feed import CouchChangesFeed, parse_changes
from registry_cache_sync.models import ChangeRecord


def mock_response(status=200, data=None):
    response = AsyncMock()
    response.status = status
    response.json = AsyncMock(return_value=data)
    return response


async def take(iterator, count):
    """Collect ``count`` items from an async iterator, then close it."""
    items = []
    async for item in iterator:
        items.append(item)
        if len(items) == count:
            break
    await iterator.aclose()
    return items


class TestParseChanges:
    """Test cases for parse_changes."""

    def test_parses_records_and_last_seq(self):
        """Test a regular longpoll response."""
        payload = {
            "results": [
                {"seq": 10, "id": "foo", "changes": [{"rev": "3-abc"}]},
                {"seq": 11, "id": "bar", "changes": [{"rev": "1-def"}]},
            ],
            "last_seq": 11,
        }

        records, last_seq = parse_changes(payload)

        assert records == [
            ChangeRecord(id="foo", seq=10),
            ChangeRecord(id="bar", seq=11),
        ]
        assert last_seq == 11

    def test_string_sequences(self):
        """Test CouchDB 2+ opaque sequences with a numeric prefix."""
        payload = {
            "results": [{"seq": "12-g1AAAAFTeJzLYWBg", "id": "foo"}],
            "last_seq": "12-g1AAAAFTeJzLYWBg",
        }

        records, last_seq = parse_changes(payload)

        assert records == [ChangeRecord(id="foo", seq=12)]
        assert last_seq == "12-g1AAAAFTeJzLYWBg"

    def test_unusable_results_dropped(self):
        """Test that results without id or integer seq are ignored."""
        payload = {
            "results": [
                {"seq": 1},
                {"id": "no-seq"},
                {"seq": True, "id": "bool-seq"},
                {"seq": "abc", "id": "text-seq"},
                "garbage",
                {"seq": 2, "id": "ok"},
            ],
        }

        records, last_seq = parse_changes(payload)

        assert records == [ChangeRecord(id="ok", seq=2)]
        assert last_seq is None

    @pytest.mark.parametrize("payload", [None, [], {"last_seq": 1}, {"results": {}}])
    def test_malformed_payload(self, payload):
        """Test that a non-changes document raises FeedConnectionError."""
        with pytest.raises(FeedConnectionError):
            parse_changes(payload)


class TestCouchChangesFeed:
    """Test cases for CouchChangesFeed."""

    @pytest.mark.asyncio
    async def test_context_manager(self):
        """Test that the session lives as long as the context."""
        async with CouchChangesFeed() as feed:
            assert feed.session is not None
        assert feed.session is None

    @pytest.mark.asyncio
    async def test_poll_request(self):
        """Test the longpoll request parameters."""
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.return_value = mock_response(
                200, {"results": [{"seq": 5, "id": "foo"}], "last_seq": 5}
            )

            async with CouchChangesFeed(
                "https://skimdb.example.com/registry/", poll_timeout_ms=30000
            ) as feed:
                records, last_seq = await feed._poll(4)

        assert records == [ChangeRecord(id="foo", seq=5)]
        assert last_seq == 5
        url = mock_get.call_args.args[0]
        assert url == "https://skimdb.example.com/registry/_changes"
        assert mock_get.call_args.kwargs["params"] == {
            "feed": "longpoll",
            "since": "4",
            "timeout": "30000",
        }

    @pytest.mark.asyncio
    async def test_poll_bad_status(self):
        """Test that non-200 responses become FeedConnectionError."""
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.return_value = mock_response(500)

            async with CouchChangesFeed() as feed:
                with pytest.raises(FeedConnectionError, match="status 500"):
                    await feed._poll(0)

    @pytest.mark.asyncio
    async def test_poll_inactivity_timeout(self):
        """Test that a stalled connection becomes FeedConnectionError."""
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.side_effect = asyncio.TimeoutError()

            async with CouchChangesFeed() as feed:
                with pytest.raises(FeedConnectionError, match="inactivity"):
                    await feed._poll(0)

    @pytest.mark.asyncio
    async def test_poll_connection_error(self):
        """Test that transport errors become FeedConnectionError."""
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value.__aenter__.side_effect = (
                aiohttp.ClientConnectionError("refused")
            )

            async with CouchChangesFeed() as feed:
                with pytest.raises(FeedConnectionError, match="refused"):
                    await feed._poll(0)

    @pytest.mark.asyncio
    async def test_subscribe_follows_last_seq(self):
        """Test that each poll continues from the previous last_seq."""
        feed = CouchChangesFeed()
        with patch.object(
            feed,
            "_poll",
            new=AsyncMock(
                side_effect=[
                    ([ChangeRecord(id="foo", seq=10)], 10),
                    ([], 10),
                    ([ChangeRecord(id="bar", seq=11)], 11),
                ]
            ),
        ) as mock_poll:
            records = await take(feed.subscribe(9), 2)

        assert [r.id for r in records] == ["foo", "bar"]
        assert [call.args[0] for call in mock_poll.await_args_list] == [9, 10, 10]

    @pytest.mark.asyncio
    async def test_subscribe_live_tail_starts_now(self):
        """Test that LIVE_TAIL subscribes with since=now."""
        feed = CouchChangesFeed()
        with patch.object(
            feed,
            "_poll",
            new=AsyncMock(return_value=([ChangeRecord(id="foo", seq=700)], 700)),
        ) as mock_poll:
            await take(feed.subscribe(LIVE_TAIL), 1)

        assert mock_poll.await_args_list[0].args[0] == "now"

    @pytest.mark.asyncio
    async def test_subscribe_reports_errors_and_reconnects(self):
        """Test that errors go to on_error and the feed keeps going."""
        errors = []
        feed = CouchChangesFeed(
            reconnect_initial_delay=0.001, reconnect_max_delay=0.002
        )
        with patch.object(
            feed,
            "_poll",
            new=AsyncMock(
                side_effect=[
                    FeedConnectionError("Change feed connection error: reset"),
                    FeedConnectionError("Change feed inactivity timeout"),
                    ([ChangeRecord(id="foo", seq=10)], 10),
                ]
            ),
        ) as mock_poll:
            records = await take(feed.subscribe(9, on_error=errors.append), 1)

        assert records == [ChangeRecord(id="foo", seq=10)]
        assert len(errors) == 2
        assert all(isinstance(e, FeedConnectionError) for e in errors)
        # Reconnects resume from the same cursor
        assert [call.args[0] for call in mock_poll.await_args_list] == [9, 9, 9]

    @pytest.mark.asyncio
    async def test_subscribe_cursor_from_records_without_last_seq(self):
        """Test that the last record's seq is used when last_seq is absent."""
        feed = CouchChangesFeed()
        with patch.object(
            feed,
            "_poll",
            new=AsyncMock(
                side_effect=[
                    ([ChangeRecord(id="foo", seq=10)], None),
                    ([ChangeRecord(id="bar", seq=12)], None),
                ]
            ),
        ) as mock_poll:
            await take(feed.subscribe(9), 2)

        assert [call.args[0] for call in mock_poll.await_args_list] == [9, 10]
