"""
Command-line interface for bili-relay.

Usage:
    bili-relay run        # Poll forever and deliver notifications
    bili-relay poll-once  # Run a single tick of every source
"""

import asyncio
import signal

import click

from bili_relay.config.settings import get_settings
from bili_relay.ingestion.bilibili import BilibiliClient
from bili_relay.ingestion.http_client import HTTPClient, RetryConfig
from bili_relay.observability.logging import setup_logging
from bili_relay.observability.metrics import get_metrics
from bili_relay.push.channels import ConsoleChannel, build_channels
from bili_relay.services.relay_service import RelayService, build_sources


def _http_client() -> HTTPClient:
    settings = get_settings()
    return HTTPClient(
        retry_config=RetryConfig(
            max_retries=settings.max_http_retries,
            max_backoff_seconds=settings.max_backoff_seconds,
        ),
        timeout=settings.request_timeout_seconds,
        headers={
            "User-Agent": settings.user_agent,
            "Referer": "https://www.bilibili.com/",
        },
    )


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Bili Relay - Bilibili live and dynamic notifications."""
    setup_logging("DEBUG" if debug else None)


@main.command()
@click.option("--metrics/--no-metrics", default=False, help="Enable metrics server")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def run(metrics: bool, metrics_port: int | None) -> None:
    """Run the relay until interrupted."""
    settings = get_settings()

    async def _run():
        async with _http_client() as http:
            client = BilibiliClient(http)
            outputs = build_channels(settings) or [ConsoleChannel()]
            service = RelayService(
                sources=build_sources(settings, client),
                outputs=outputs,
                queue_capacity=settings.queue_capacity,
            )

            if metrics:
                get_metrics().start_server(port=metrics_port)

            # Handle shutdown signals
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda: asyncio.create_task(service.stop()))

            await service.start()

    asyncio.run(_run())


@main.command("poll-once")
@click.option("--deliver/--no-deliver", default=False, help="Send to configured outputs")
def poll_once(deliver: bool) -> None:
    """Poll every source once and print what would be sent.

    The first poll of a feed only sees posts from the last interval, and
    live status is compared against "offline".
    """
    settings = get_settings()

    async def _run():
        async with _http_client() as http:
            client = BilibiliClient(http)
            outputs = build_channels(settings) if deliver else []
            if not any(isinstance(o, ConsoleChannel) for o in outputs):
                outputs.append(ConsoleChannel())
            service = RelayService(
                sources=build_sources(settings, client),
                outputs=outputs,
                queue_capacity=settings.queue_capacity,
            )
            return await service.run_once()

    results = asyncio.run(_run())

    click.echo("Poll results:")
    for name, count in results.items():
        click.echo(f"  {name}: {count} messages")
    if not results:
        click.echo("  no sources configured")


if __name__ == "__main__":
    main()
