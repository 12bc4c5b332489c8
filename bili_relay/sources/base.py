"""
Base source interface and shared polling loop.

A source watches a fixed, ordered list of Bilibili accounts. Each subclass
implements ``_poll_account()``, an async generator yielding the Messages
caused by one account in one tick. The base class provides:
- The fixed-interval tick loop (``run()``)
- Per-account error isolation
- Statistics, metrics and logging
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from bili_relay.ingestion.bilibili import BilibiliClient
from bili_relay.observability.logging import account_context
from bili_relay.observability.metrics import get_metrics
from bili_relay.push.schemas import Message, MessageKind

logger = structlog.get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 10.0


@dataclass
class SourceStats:
    """Statistics for one tick of a source."""

    messages_emitted: int = 0
    accounts_failed: int = 0
    start_time: float = field(default_factory=time.monotonic)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time


class BaseSource(ABC):
    """
    Abstract base class for polled Bilibili sources.

    Subclasses must implement:
        - kind: MessageKind of the messages produced
        - _poll_account(): Async generator of Messages for one account

    Per-account state (live flags, watermarks) belongs to the subclass
    instance and is only touched from its own poll loop.
    """

    def __init__(
        self,
        uids: Iterable[int],
        client: BilibiliClient,
        interval: float = DEFAULT_INTERVAL_SECONDS,
    ):
        """
        Initialize source.

        Args:
            uids: Accounts to watch, polled in this order every tick
            client: Bilibili API client
            interval: Seconds between ticks
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._uids: tuple[int, ...] = tuple(uids)
        self._client = client
        self._interval = interval
        self._stats = SourceStats()
        self._metrics = get_metrics()

    @property
    @abstractmethod
    def kind(self) -> MessageKind:
        """Kind tag carried by every message of this source."""
        ...

    @property
    def name(self) -> str:
        """Human-readable source name."""
        return f"{self.kind.value}_source"

    @property
    def uids(self) -> tuple[int, ...]:
        return self._uids

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def stats(self) -> SourceStats:
        """Statistics of the most recent tick."""
        return self._stats

    @abstractmethod
    def _poll_account(self, uid: int, now: datetime) -> AsyncIterator[Message]:
        """
        Poll one account and yield the messages its changes produce.

        Implementations handle expected failures (fetch errors, upstream
        error codes) themselves and must only mutate state for ``uid``
        after a successful fetch.
        """
        ...

    def _record_failure(self, uid: int, error: Exception, event: str) -> None:
        self._stats.accounts_failed += 1
        self._metrics.record_poll_error(self.name, type(error).__name__)
        logger.error(event, error=str(error))

    async def _collect(self, uid: int, now: datetime) -> list[Message]:
        """Messages of one account; an unexpected error keeps those produced before it."""
        messages: list[Message] = []
        try:
            async for message in self._poll_account(uid, now):
                messages.append(message)
        except Exception as e:
            self._stats.accounts_failed += 1
            self._metrics.record_poll_error(self.name, type(e).__name__)
            logger.exception("Unexpected error polling account")
        return messages

    async def poll(self, now: datetime | None = None) -> AsyncIterator[Message]:
        """
        Run one tick over every tracked account.

        Args:
            now: Tick time (defaults to the current UTC time)

        Yields:
            Messages, per account in the order that account produced them
        """
        now = now or datetime.now(timezone.utc)
        self._stats = SourceStats()

        for uid in self._uids:
            # Context is only bound while fetching, never across a yield
            with account_context(self.name, uid):
                messages = await self._collect(uid, now)
            for message in messages:
                self._stats.messages_emitted += 1
                self._metrics.record_emitted(self.name)
                yield message

        self._metrics.record_poll(self.name, self._stats.elapsed_seconds)
        logger.debug(
            "Tick completed",
            source=self.name,
            accounts=len(self._uids),
            emitted=self._stats.messages_emitted,
            failed=self._stats.accounts_failed,
            elapsed_seconds=round(self._stats.elapsed_seconds, 2),
        )

    async def run(self, sink: asyncio.Queue) -> None:
        """
        Poll forever, one tick per interval, putting messages on ``sink``.

        The first tick happens one interval after start. Ticks that would
        overlap a slow poll are skipped rather than queued up. Returns only
        through cancellation.
        """
        loop = asyncio.get_running_loop()
        logger.info(
            "Starting source",
            source=self.name,
            uids=list(self._uids),
            interval=self._interval,
        )

        next_tick = loop.time() + self._interval
        try:
            while True:
                await asyncio.sleep(max(0.0, next_tick - loop.time()))
                async for message in self.poll():
                    await sink.put(message)

                next_tick += self._interval
                now = loop.time()
                if next_tick <= now:
                    skipped = int((now - next_tick) // self._interval) + 1
                    next_tick += skipped * self._interval
                    logger.warning(
                        "Poll overran interval, skipping ticks",
                        source=self.name,
                        skipped=skipped,
                    )
        except asyncio.CancelledError:
            logger.info("Source stopped", source=self.name)
            raise
