"""
Canonical notification message for the relay pipeline.

Sources build Messages, output channels render them. A Message is frozen
once constructed: the same instance is handed to every output concurrently.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class MessageKind(str, Enum):
    """Which source produced a message."""

    LIVE_STATUS = "live_status"
    FEED_POST = "feed_post"


class Message(BaseModel):
    """
    One notification, independent of the platform it came from and the
    channel it goes to.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(
        default_factory=_utc_now,
        description="When the change happened (tick time or publish time), UTC",
    )
    kind: MessageKind = Field(..., description="Producing source kind")
    author: str = Field(default="", description="Display name of the account")
    title: str = Field(default="", description="Short headline, e.g. 'went live'")
    text: str = Field(default="", description="Body text")
    images: tuple[str, ...] = Field(
        default=(),
        description="Image URLs in display order",
    )
    link: str = Field(default="", description="Canonical URL of the change")

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Treat naive datetimes as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator("images", mode="before")
    @classmethod
    def drop_empty_images(cls, v: Any) -> Any:
        """Missing covers arrive as empty strings; they are not images."""
        if isinstance(v, (list, tuple)):
            return tuple(url for url in v if url)
        return v

    @property
    def headline(self) -> str:
        """``author title`` as used by chat-style outputs."""
        return f"{self.author} {self.title}".strip()

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "author": self.author,
            "title": self.title,
            "text": self.text,
            "images": list(self.images),
            "link": self.link,
        }
