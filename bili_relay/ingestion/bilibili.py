"""
Bilibili web API access shared by the live and dynamic sources.

Every Bilibili JSON response has the same envelope::

    {"code": 0, "message": "0", "data": {...}}

A non-zero ``code`` is an application-level failure (risk control, unknown
user, ...) even when the HTTP status is 200. ``BilibiliClient`` turns raw
bytes from a Fetcher into ``(data, code, message)`` so each source can decide
how to surface such failures.
"""

import logging
from dataclasses import dataclass

from bili_relay.ingestion.http_client import (
    EmptyResponseError,
    FetchError,
    Fetcher,
    QueryParams,
)
from bili_relay.ingestion.json_view import JsonView

logger = logging.getLogger(__name__)

# API endpoints
ACCOUNT_INFO_URL = "https://api.bilibili.com/x/space/acc/info"
SPACE_DYNAMIC_URL = "https://api.bilibili.com/x/polymer/web-dynamic/v1/feed/space"

# Canonical link prefixes
LIVE_ROOM_URL_PREFIX = "https://live.bilibili.com/"
DYNAMIC_URL_PREFIX = "https://t.bilibili.com/"
VIDEO_URL_PREFIX = "https://www.bilibili.com/video/"
ARTICLE_URL_PREFIX = "https://www.bilibili.com/read/cv"
AUDIO_URL_PREFIX = "https://www.bilibili.com/audio/au"


class BilibiliAPIError(Exception):
    """Raised when Bilibili answers with a non-zero application code."""

    def __init__(self, code: int, message: str):
        super().__init__(f"bilibili api error {code}: {message}")
        self.code = code
        self.message = message


@dataclass(frozen=True)
class APIResult:
    """Unwrapped response envelope."""

    data: JsonView
    code: int = 0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.code == 0

    def raise_for_code(self) -> JsonView:
        """Return ``data`` or raise BilibiliAPIError for a non-zero code."""
        if not self.ok:
            raise BilibiliAPIError(self.code, self.message)
        return self.data


def check_response(body: bytes) -> JsonView:
    """
    Decode a raw response body.

    Raises:
        FetchError: If the body is empty or not JSON
    """
    if not body:
        raise EmptyResponseError("empty response data")
    try:
        return JsonView.parse(body)
    except ValueError as e:
        raise FetchError(f"undecodable response data: {e}") from e


def unwrap(result: JsonView) -> APIResult:
    """Split the Bilibili envelope into data, code and message."""
    code = result.integer("code")
    if code != 0:
        message = result.string("message") or result.string("msg")
        logger.debug("Bilibili returned code %d: %s", code, message)
        return APIResult(data=JsonView(), code=code, message=message)
    return APIResult(data=result.get("data"))


class BilibiliClient:
    """
    Thin Bilibili API wrapper over a Fetcher.

    Does no retrying of its own; the underlying Fetcher decides that.
    """

    def __init__(self, fetcher: Fetcher):
        self._fetcher = fetcher

    async def get(self, url: str, params: QueryParams) -> APIResult:
        """
        Fetch ``url`` and unwrap the response envelope.

        Raises:
            FetchError: Transport failure, empty or undecodable body
        """
        body = await self._fetcher.fetch(url, params)
        return unwrap(check_response(body))

    async def account_info(self, mid: int) -> APIResult:
        """Profile of one account, including its ``live_room`` block."""
        return await self.get(ACCOUNT_INFO_URL, [("mid", mid)])

    async def space_dynamics(self, host_mid: int) -> APIResult:
        """Most recent page of an account's dynamics."""
        return await self.get(
            SPACE_DYNAMIC_URL,
            [
                ("offset", ""),
                ("host_mid", host_mid),
                ("timezone_offset", "-480"),
            ],
        )
