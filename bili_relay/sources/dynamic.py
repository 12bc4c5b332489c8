"""
Dynamic (feed post) source.

Polls the first page of each account's space feed and emits every item
published after the account's watermark. The watermark is the newest
publish time seen so far; it starts one interval before the first poll so
a freshly started relay does not replay an account's whole history.
"""

from collections.abc import AsyncIterator, Iterable
from datetime import datetime

import structlog

from bili_relay.ingestion.bilibili import BilibiliAPIError, BilibiliClient
from bili_relay.ingestion.http_client import FetchError
from bili_relay.push.schemas import Message, MessageKind
from bili_relay.sources.base import DEFAULT_INTERVAL_SECONDS, BaseSource
from bili_relay.sources.classifier import classify_dynamic
from bili_relay.sources.schemas import DynamicPost

logger = structlog.get_logger(__name__)


class DynamicSource(BaseSource):
    """Detects new dynamics, resolving reposts into readable messages."""

    def __init__(
        self,
        uids: Iterable[int],
        client: BilibiliClient,
        interval: float = DEFAULT_INTERVAL_SECONDS,
    ):
        super().__init__(uids, client, interval)
        self._watermarks: dict[int, int] = {}
        logger.info("Watching Bilibili dynamics", uids=list(self._uids))

    @property
    def kind(self) -> MessageKind:
        return MessageKind.FEED_POST

    def watermark(self, uid: int) -> int | None:
        """Newest publish time already handled for ``uid``, None before the first poll."""
        return self._watermarks.get(uid)

    async def fetch_new_posts(self, uid: int, now: datetime) -> list[DynamicPost]:
        """
        Fetch one account's feed page and return the posts newer than its
        watermark, in platform order. Advances the watermark.

        Raises:
            FetchError: Transport failure, empty or undecodable body
            BilibiliAPIError: Non-zero upstream code
        """
        result = await self._client.space_dynamics(uid)
        data = result.raise_for_code()
        items = data.array("items")

        last = self._watermarks.get(uid)
        if last is None:
            last = int(now.timestamp()) - int(self._interval)
        newest = last

        posts: list[DynamicPost] = []
        for item in items:
            post = classify_dynamic(item)
            if post is None:
                logger.warning("Suppressed unparseable dynamic", uid=uid)
                continue

            newest = max(newest, post.pub_ts)
            if post.is_live_announcement:
                logger.debug("Ignoring live announcement", uid=uid, author=post.author)
                continue
            if post.pub_ts > last:
                posts.append(post)
            else:
                logger.debug("Filtered seen dynamic", uid=uid, link=post.link)

        self._watermarks[uid] = newest
        return posts

    async def _poll_account(self, uid: int, now: datetime) -> AsyncIterator[Message]:
        try:
            posts = await self.fetch_new_posts(uid, now)
        except (FetchError, BilibiliAPIError) as e:
            self._record_failure(uid, e, "Failed to fetch dynamics")
            return

        if not posts:
            logger.debug("No new dynamics", uid=uid)

        for post in posts:
            logger.info(
                "New dynamic",
                uid=uid,
                author=post.author,
                label=post.label,
                link=post.link,
            )
            yield Message(
                timestamp=post.published_at,
                kind=self.kind,
                author=post.author,
                title=post.label,
                text=post.text,
                images=post.images,
                link=post.link,
            )
