"""Polled Bilibili sources - live status and dynamics."""

from bili_relay.sources.base import BaseSource, SourceStats
from bili_relay.sources.classifier import classify_dynamic
from bili_relay.sources.dynamic import DynamicSource
from bili_relay.sources.live import LiveStatusSource
from bili_relay.sources.schemas import DynamicPost, DynamicType, LiveInfo

__all__ = [
    "BaseSource",
    "DynamicPost",
    "DynamicSource",
    "DynamicType",
    "LiveInfo",
    "LiveStatusSource",
    "SourceStats",
    "classify_dynamic",
]
