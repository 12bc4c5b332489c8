"""Pytest fixtures for bili-relay tests."""

import json
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from bili_relay.config.settings import Settings
from bili_relay.ingestion.bilibili import BilibiliClient
from bili_relay.push.schemas import Message, MessageKind


class FakeFetcher:
    """Fetcher returning canned bodies per (url, uid).

    Each registered response is consumed in order; the last one repeats.
    Exceptions are raised instead of returned.
    """

    def __init__(self) -> None:
        self._responses: dict[tuple[str, int], list[Any]] = {}
        self.calls: list[tuple[str, list[tuple[str, Any]]]] = []

    def add(self, url: str, uid: int, *responses: Any) -> None:
        self._responses.setdefault((url, uid), []).extend(responses)

    async def fetch(self, url: str, params=None) -> bytes:
        params = list(params or [])
        self.calls.append((url, params))
        query = dict(params)
        uid = int(query.get("mid") or query.get("host_mid"))
        queue = self._responses[(url, uid)]
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response


def _encode(payload: dict) -> bytes:
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing."""
    return Settings(
        _env_file=None,
        environment="development",
        log_level="DEBUG",
        live_uids="42",
        dynamic_uids="7",
        poll_interval_seconds=10,
        queue_capacity=10,
    )


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def bili_client(fake_fetcher: FakeFetcher) -> BilibiliClient:
    return BilibiliClient(fake_fetcher)


@pytest.fixture
def now() -> datetime:
    """Fixed tick time used across source tests."""
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def live_payload() -> Callable[..., bytes]:
    """Factory for /x/space/acc/info response bodies."""

    def _make(
        live: bool = True,
        title: str = "hello",
        cover: str = "c.jpg",
        roomid: int = 100,
        name: str = "Streamer",
    ) -> bytes:
        return _encode({
            "code": 0,
            "message": "0",
            "data": {
                "mid": 42,
                "name": name,
                "live_room": {
                    "liveStatus": 1 if live else 0,
                    "roomid": roomid,
                    "title": title,
                    "cover": cover,
                },
            },
        })

    return _make


@pytest.fixture
def error_payload() -> Callable[..., bytes]:
    """Factory for Bilibili error envelopes."""

    def _make(code: int = -352, message: str = "risk control") -> bytes:
        return _encode({"code": code, "message": message, "data": None})

    return _make


@pytest.fixture
def make_item() -> Callable[..., dict]:
    """Factory for one raw dynamic item."""

    def _make(
        type_: str = "DYNAMIC_TYPE_WORD",
        id_str: str = "1000",
        author: str = "Alice",
        pub_ts: int = 1_700_000_000,
        text: str = "Hi",
        major: dict | None = None,
        orig: dict | None = None,
    ) -> dict:
        item: dict[str, Any] = {
            "type": type_,
            "id_str": id_str,
            "modules": {
                "module_author": {"name": author, "pub_ts": pub_ts},
                "module_dynamic": {"desc": {"text": text}, "major": major},
            },
        }
        if orig is not None:
            item["orig"] = orig
        return item

    return _make


@pytest.fixture
def space_payload() -> Callable[[list[dict]], bytes]:
    """Factory for /feed/space response bodies."""

    def _make(items: list[dict]) -> bytes:
        return _encode({
            "code": 0,
            "message": "0",
            "data": {"has_more": True, "items": items, "offset": ""},
        })

    return _make


@pytest.fixture
def sample_message() -> Message:
    """A sample live-status message."""
    return Message(
        timestamp=datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc),
        kind=MessageKind.LIVE_STATUS,
        author="Streamer",
        title="went live",
        text="title: hello",
        images=["https://i0.hdslb.com/c.jpg"],
        link="https://live.bilibili.com/100",
    )
