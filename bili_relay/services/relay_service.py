"""
Relay service - multiplexes sources into one delivery pipeline.

Every source runs in its own task and puts Messages on a shared bounded
queue; a single dispatch loop drains the queue and hands each Message to
every output channel in its own task.

Features:
- Concurrent source execution
- Backpressure: a full queue blocks the producing source
- Per-output failure isolation (fire-and-forget delivery)
- Graceful shutdown
"""

import asyncio
from datetime import datetime
from typing import Any

import structlog

from bili_relay.config.settings import Settings, get_settings
from bili_relay.ingestion.bilibili import BilibiliClient
from bili_relay.observability.metrics import get_metrics
from bili_relay.push.channels import OutputChannel
from bili_relay.push.schemas import Message
from bili_relay.sources.base import BaseSource
from bili_relay.sources.dynamic import DynamicSource
from bili_relay.sources.live import LiveStatusSource

logger = structlog.get_logger(__name__)


def build_sources(settings: Settings, client: BilibiliClient) -> list[BaseSource]:
    """Create the sources for every configured account list."""
    sources: list[BaseSource] = []
    interval = settings.poll_interval_seconds

    if settings.live_uid_list:
        sources.append(LiveStatusSource(settings.live_uid_list, client, interval))
    if settings.dynamic_uid_list:
        sources.append(DynamicSource(settings.dynamic_uid_list, client, interval))

    if not sources:
        logger.warning("No accounts configured, set LIVE_UIDS and/or DYNAMIC_UIDS")
    return sources


class RelayService:
    """
    Orchestrates sources and outputs.

    Delivery is best effort: a failing output is logged and counted, never
    retried, and never delays other outputs or the sources. Deliveries
    still in flight when the service stops are abandoned.

    Usage:
        service = RelayService(sources=[...], outputs=[...])
        await service.start()  # Runs until stopped
    """

    def __init__(
        self,
        sources: list[BaseSource] | None = None,
        outputs: list[OutputChannel] | None = None,
        queue_capacity: int | None = None,
    ):
        """
        Initialize relay service.

        Args:
            sources: Message producers
            outputs: Delivery channels
            queue_capacity: Bound of the dispatch queue (default from settings)
        """
        capacity = queue_capacity or get_settings().queue_capacity

        self._queue: asyncio.Queue[Message] = asyncio.Queue(maxsize=capacity)
        self._sources: list[BaseSource] = []
        self._outputs: list[OutputChannel] = []
        self._running = False
        self._tasks: list[asyncio.Task] = []
        self._deliveries: set[asyncio.Task] = set()
        self._metrics = get_metrics()

        self.add_sources(*(sources or []))
        self.add_outputs(*(outputs or []))

        logger.info(
            "Relay service initialized",
            sources=[s.name for s in self._sources],
            outputs=[o.name for o in self._outputs],
            queue_capacity=capacity,
        )

    def add_sources(self, *sources: BaseSource | None) -> None:
        """Register sources; None entries are ignored."""
        self._sources.extend(s for s in sources if s is not None)

    def add_outputs(self, *outputs: OutputChannel | None) -> None:
        """Register outputs; None entries are ignored."""
        self._outputs.extend(o for o in outputs if o is not None)

    @property
    def sources(self) -> list[BaseSource]:
        return list(self._sources)

    @property
    def outputs(self) -> list[OutputChannel]:
        return list(self._outputs)

    @property
    def queue(self) -> asyncio.Queue:
        return self._queue

    async def start(self) -> None:
        """
        Start every source and the dispatch loop.

        Runs until stop() is called or the calling task is cancelled.
        """
        self._running = True
        logger.info("Starting relay service")

        try:
            self._tasks = [
                asyncio.create_task(source.run(self._queue), name=f"source_{source.name}")
                for source in self._sources
            ]
            self._tasks.append(
                asyncio.create_task(self._dispatch_loop(), name="dispatch"),
            )
            for task in self._tasks:
                task.add_done_callback(self._on_task_done)

            await asyncio.gather(*self._tasks, return_exceptions=True)

        except asyncio.CancelledError:
            logger.info("Relay service cancelled")
            raise
        finally:
            await self._cleanup()

    def _on_task_done(self, task: asyncio.Task) -> None:
        """Log a source or dispatch task that ended with an exception."""
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Task died",
                task=task.get_name(),
                error_type=type(error).__name__,
                error=str(error),
            )

    async def stop(self) -> None:
        """Stop the sources and the dispatch loop."""
        logger.info("Stopping relay service")
        self._running = False

        for task in self._tasks:
            task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _cleanup(self) -> None:
        self._running = False
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info(
            "Relay service stopped",
            abandoned_deliveries=len(self._deliveries),
        )

    async def _dispatch_loop(self) -> None:
        """Drain the queue forever, fanning each message out to every output."""
        while True:
            message = await self._queue.get()
            self._metrics.set_queue_depth(self._queue.qsize())
            self.dispatch(message)
            self._queue.task_done()

    def dispatch(self, message: Message) -> list[asyncio.Task]:
        """
        Start one delivery task per output and return without awaiting them.

        Args:
            message: Message to deliver

        Returns:
            The delivery tasks (callers may await them; the dispatch loop does not)
        """
        tasks = []
        for output in self._outputs:
            task = asyncio.create_task(
                self._deliver(output, message),
                name=f"deliver_{output.name}",
            )
            self._deliveries.add(task)
            task.add_done_callback(self._deliveries.discard)
            tasks.append(task)
        return tasks

    async def _deliver(self, output: OutputChannel, message: Message) -> bool:
        """Deliver to one output, reporting but never propagating failure."""
        try:
            success = await output.send(message)
        except Exception:
            logger.exception(
                "Output raised during delivery",
                output=output.name,
                title=message.title,
            )
            success = False

        self._metrics.record_delivery(output.name, success)
        if not success:
            logger.warning(
                "Delivery failed",
                output=output.name,
                kind=message.kind.value,
                author=message.author,
                title=message.title,
            )
        return success

    async def run_once(self, now: datetime | None = None) -> dict[str, int]:
        """
        Run one tick of every source and deliver the results.

        Unlike the running service this awaits every delivery, which makes
        it suitable for manual checks and tests.

        Returns:
            Dictionary of source name -> messages produced
        """
        results: dict[str, int] = {}
        pending: list[asyncio.Task] = []

        for source in self._sources:
            count = 0
            async for message in source.poll(now):
                pending.extend(self.dispatch(message))
                count += 1
            results[source.name] = count

        if pending:
            await asyncio.gather(*pending)
        return results

    @property
    def is_running(self) -> bool:
        """Check if service is running."""
        return self._running

    def health_check(self) -> dict[str, Any]:
        """
        Report service state.

        Returns:
            Dictionary with health status
        """
        return {
            "running": self._running,
            "queue_size": self._queue.qsize(),
            "queue_capacity": self._queue.maxsize,
            "sources": [s.name for s in self._sources],
            "outputs": [o.name for o in self._outputs],
            "active_tasks": len([t for t in self._tasks if not t.done()]),
            "pending_deliveries": len(self._deliveries),
        }
