"""Records produced while polling Bilibili, before they become Messages."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class DynamicType(str, Enum):
    """Feed item (dynamic) types the classifier understands."""

    FORWARD = "DYNAMIC_TYPE_FORWARD"  # repost of another dynamic
    DRAW = "DYNAMIC_TYPE_DRAW"  # text with pictures
    AV = "DYNAMIC_TYPE_AV"  # video submission
    WORD = "DYNAMIC_TYPE_WORD"  # plain text
    ARTICLE = "DYNAMIC_TYPE_ARTICLE"  # column article
    MUSIC = "DYNAMIC_TYPE_MUSIC"  # audio track
    PGC = "DYNAMIC_TYPE_PGC"  # shared episode of a series
    LIVE_RCMD = "DYNAMIC_TYPE_LIVE_RCMD"  # automatic "started streaming" item
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: str) -> "DynamicType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class DynamicPost:
    """
    A classified feed item.

    Attributes:
        type: Declared type of the item (UNKNOWN for unrecognized types).
        id: Platform-local id; the video/article/track id for submissions.
        label: Human-readable action, used as the Message title.
        text: Body text.
        images: Image URLs.
        author: Display name of the poster.
        link: Canonical URL.
        pub_ts: Publish time as a Unix timestamp.
    """

    type: DynamicType
    id: str
    label: str
    text: str = ""
    images: list[str] = field(default_factory=list)
    author: str = ""
    link: str = ""
    pub_ts: int = 0

    @property
    def is_live_announcement(self) -> bool:
        return self.type == DynamicType.LIVE_RCMD

    @property
    def published_at(self) -> datetime:
        return datetime.fromtimestamp(self.pub_ts, tz=timezone.utc)


@dataclass
class LiveInfo:
    """
    Live-room snapshot of one account.

    ``code`` is non-zero when Bilibili reported an error or the payload had
    no ``live_room`` block; ``message`` then explains why.
    """

    mid: int
    name: str = ""
    live: bool = False
    room_id: int = 0
    title: str = ""
    cover: str = ""
    code: int = 0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.code == 0
