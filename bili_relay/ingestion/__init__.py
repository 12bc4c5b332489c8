"""Platform access - HTTP fetching, JSON views, and the Bilibili API envelope."""

from bili_relay.ingestion.bilibili import APIResult, BilibiliAPIError, BilibiliClient
from bili_relay.ingestion.http_client import (
    EmptyResponseError,
    FetchError,
    Fetcher,
    HTTPClient,
    HTTPClientError,
    RateLimitError,
    RetryConfig,
)
from bili_relay.ingestion.json_view import JsonView

__all__ = [
    "APIResult",
    "BilibiliAPIError",
    "BilibiliClient",
    "EmptyResponseError",
    "FetchError",
    "Fetcher",
    "HTTPClient",
    "HTTPClientError",
    "JsonView",
    "RateLimitError",
    "RetryConfig",
]
