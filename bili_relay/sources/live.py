"""
Live-room status source.

Polls each account's profile and emits a message only when the live flag
differs from the last successfully observed one. Upstream errors are
surfaced as messages so operators notice risk-control bans or bad uids.
"""

from collections.abc import AsyncIterator, Iterable
from datetime import datetime

import structlog

from bili_relay.ingestion.bilibili import LIVE_ROOM_URL_PREFIX, BilibiliClient
from bili_relay.ingestion.http_client import FetchError
from bili_relay.push.schemas import Message, MessageKind
from bili_relay.sources.base import DEFAULT_INTERVAL_SECONDS, BaseSource
from bili_relay.sources.schemas import LiveInfo

logger = structlog.get_logger(__name__)

WENT_LIVE_TITLE = "went live"
WENT_OFFLINE_TITLE = "went offline"
FETCH_FAILED_TITLE = "failed to fetch live status"
OFFLINE_TEXT = "the stream has ended"

MISSING_LIVE_ROOM_CODE = 400
MISSING_LIVE_ROOM_MESSAGE = "response has no live_room field"


class LiveStatusSource(BaseSource):
    """
    Detects live/offline transitions of Bilibili live rooms.

    An account never observed is treated as offline, so starting the relay
    while a stream is already running produces one "went live" message.
    """

    def __init__(
        self,
        uids: Iterable[int],
        client: BilibiliClient,
        interval: float = DEFAULT_INTERVAL_SECONDS,
    ):
        super().__init__(uids, client, interval)
        self._living: dict[int, bool] = {}
        logger.info("Watching Bilibili live status", uids=list(self._uids))

    @property
    def kind(self) -> MessageKind:
        return MessageKind.LIVE_STATUS

    def is_live(self, uid: int) -> bool:
        """Last successfully observed live flag (False if never observed)."""
        return self._living.get(uid, False)

    async def fetch_live_info(self, uid: int) -> LiveInfo:
        """
        Fetch the live-room snapshot of one account.

        Upstream error codes and payloads without ``live_room`` come back
        as a LiveInfo with a non-zero code rather than an exception.

        Raises:
            FetchError: Transport failure, empty or undecodable body
        """
        result = await self._client.account_info(uid)
        if not result.ok:
            return LiveInfo(mid=uid, code=result.code, message=result.message)

        data = result.data
        info = LiveInfo(mid=uid, name=data.string("name"))
        live_room = data.get("live_room")
        if not live_room.exists():
            info.code = MISSING_LIVE_ROOM_CODE
            info.message = MISSING_LIVE_ROOM_MESSAGE
            return info

        info.live = live_room.integer("liveStatus") == 1
        info.room_id = live_room.integer("roomid")
        info.title = live_room.string("title")
        info.cover = live_room.string("cover")
        return info

    async def _poll_account(self, uid: int, now: datetime) -> AsyncIterator[Message]:
        try:
            info = await self.fetch_live_info(uid)
        except FetchError as e:
            self._record_failure(uid, e, "Failed to fetch live status")
            return

        if not info.ok:
            logger.warning(
                "Bilibili rejected live status request",
                uid=uid,
                code=info.code,
                message=info.message,
            )
            yield Message(
                timestamp=now,
                kind=self.kind,
                author=info.name,
                title=FETCH_FAILED_TITLE,
                text=f"[error] {info.message}, code={info.code}",
            )
            return

        if info.live == self.is_live(uid):
            logger.debug("Live status unchanged", uid=uid, live=info.live)
            return

        self._living[uid] = info.live
        if info.live:
            logger.info("Went live", uid=uid, name=info.name, room_id=info.room_id)
            yield Message(
                timestamp=now,
                kind=self.kind,
                author=info.name,
                title=WENT_LIVE_TITLE,
                text=f"title: {info.title}",
                images=[info.cover],
                link=f"{LIVE_ROOM_URL_PREFIX}{info.room_id}",
            )
        else:
            logger.info("Went offline", uid=uid, name=info.name)
            yield Message(
                timestamp=now,
                kind=self.kind,
                author=info.name,
                title=WENT_OFFLINE_TITLE,
                text=OFFLINE_TEXT,
            )
