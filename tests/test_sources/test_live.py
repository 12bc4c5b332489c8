"""Tests for LiveStatusSource."""

import pytest

from bili_relay.ingestion.bilibili import ACCOUNT_INFO_URL
from bili_relay.ingestion.http_client import EmptyResponseError, HTTPClientError
from bili_relay.push.schemas import MessageKind
from bili_relay.sources.live import (
    FETCH_FAILED_TITLE,
    OFFLINE_TEXT,
    WENT_LIVE_TITLE,
    WENT_OFFLINE_TITLE,
    LiveStatusSource,
)


async def _poll(source, now):
    return [m async for m in source.poll(now)]


@pytest.fixture
def source(bili_client):
    return LiveStatusSource([42], bili_client, interval=10)


class TestTransitions:
    """Tests for live/offline change detection."""

    @pytest.mark.asyncio
    async def test_went_live_from_unknown(self, source, fake_fetcher, live_payload, now):
        fake_fetcher.add(ACCOUNT_INFO_URL, 42, live_payload(live=True))

        messages = await _poll(source, now)

        assert len(messages) == 1
        msg = messages[0]
        assert msg.kind == MessageKind.LIVE_STATUS
        assert msg.title == WENT_LIVE_TITLE
        assert "hello" in msg.text
        assert msg.images == ("c.jpg",)
        assert msg.link.endswith("100")
        assert msg.author == "Streamer"
        assert msg.timestamp == now
        assert source.is_live(42) is True

    @pytest.mark.asyncio
    async def test_same_status_emits_nothing(self, source, fake_fetcher, live_payload, now):
        fake_fetcher.add(ACCOUNT_INFO_URL, 42, live_payload(live=True))

        await _poll(source, now)
        messages = await _poll(source, now)

        assert messages == []
        assert source.is_live(42) is True

    @pytest.mark.asyncio
    async def test_never_observed_offline_emits_nothing(self, source, fake_fetcher, live_payload, now):
        fake_fetcher.add(ACCOUNT_INFO_URL, 42, live_payload(live=False))

        assert await _poll(source, now) == []
        assert source.is_live(42) is False

    @pytest.mark.asyncio
    async def test_live_then_offline(self, source, fake_fetcher, live_payload, now):
        fake_fetcher.add(
            ACCOUNT_INFO_URL, 42,
            live_payload(live=True),
            live_payload(live=False),
        )

        first = await _poll(source, now)
        second = await _poll(source, now)

        assert [m.title for m in first] == [WENT_LIVE_TITLE]
        assert len(second) == 1
        assert second[0].title == WENT_OFFLINE_TITLE
        assert second[0].text == OFFLINE_TEXT
        assert second[0].images == ()
        assert source.is_live(42) is False

    @pytest.mark.asyncio
    async def test_accounts_are_independent(self, bili_client, fake_fetcher, live_payload, now):
        source = LiveStatusSource([1, 2], bili_client)
        fake_fetcher.add(ACCOUNT_INFO_URL, 1, live_payload(live=True, name="One"))
        fake_fetcher.add(ACCOUNT_INFO_URL, 2, live_payload(live=False, name="Two"))

        messages = await _poll(source, now)

        assert [m.author for m in messages] == ["One"]
        assert source.is_live(1) is True
        assert source.is_live(2) is False


class TestFailures:
    """Tests for fetch failures and upstream errors."""

    @pytest.mark.asyncio
    async def test_fetch_failure_emits_nothing_and_keeps_state(
        self, source, fake_fetcher, live_payload, now,
    ):
        fake_fetcher.add(
            ACCOUNT_INFO_URL, 42,
            live_payload(live=True),
            HTTPClientError("connection reset"),
            live_payload(live=True),
        )

        first = await _poll(source, now)
        failed = await _poll(source, now)
        after = await _poll(source, now)

        assert len(first) == 1
        assert failed == []
        assert after == []
        assert source.is_live(42) is True
        assert source.stats.accounts_failed == 0

    @pytest.mark.asyncio
    async def test_empty_body_counts_as_failure(self, source, fake_fetcher, now):
        fake_fetcher.add(ACCOUNT_INFO_URL, 42, EmptyResponseError("empty"))

        assert await _poll(source, now) == []
        assert source.stats.accounts_failed == 1

    @pytest.mark.asyncio
    async def test_invalid_json_counts_as_failure(self, source, fake_fetcher, now):
        fake_fetcher.add(ACCOUNT_INFO_URL, 42, b"<html>blocked</html>")

        assert await _poll(source, now) == []
        assert source.stats.accounts_failed == 1

    @pytest.mark.asyncio
    async def test_upstream_error_is_reported_as_message(
        self, source, fake_fetcher, error_payload, now,
    ):
        fake_fetcher.add(ACCOUNT_INFO_URL, 42, error_payload(-352, "risk control"))

        messages = await _poll(source, now)

        assert len(messages) == 1
        assert messages[0].title == FETCH_FAILED_TITLE
        assert messages[0].text == "[error] risk control, code=-352"
        assert source.is_live(42) is False

    @pytest.mark.asyncio
    async def test_upstream_error_does_not_corrupt_comparison(
        self, source, fake_fetcher, live_payload, error_payload, now,
    ):
        fake_fetcher.add(
            ACCOUNT_INFO_URL, 42,
            live_payload(live=True),
            error_payload(),
            live_payload(live=True),
        )

        await _poll(source, now)
        errored = await _poll(source, now)
        after = await _poll(source, now)

        assert [m.title for m in errored] == [FETCH_FAILED_TITLE]
        assert after == []

    @pytest.mark.asyncio
    async def test_missing_live_room_is_soft_error(self, source, fake_fetcher, now):
        fake_fetcher.add(
            ACCOUNT_INFO_URL, 42,
            b'{"code": 0, "message": "0", "data": {"name": "NoRoom"}}',
        )

        messages = await _poll(source, now)

        assert len(messages) == 1
        assert messages[0].title == FETCH_FAILED_TITLE
        assert "code=400" in messages[0].text
        assert messages[0].author == "NoRoom"
        assert source.is_live(42) is False


class TestFetchLiveInfo:
    """Tests for the request sent to Bilibili."""

    @pytest.mark.asyncio
    async def test_queries_account_info_by_mid(self, source, fake_fetcher, live_payload):
        fake_fetcher.add(ACCOUNT_INFO_URL, 42, live_payload(roomid=555))

        info = await source.fetch_live_info(42)

        assert fake_fetcher.calls == [(ACCOUNT_INFO_URL, [("mid", 42)])]
        assert info.ok
        assert info.live is True
        assert info.room_id == 555
