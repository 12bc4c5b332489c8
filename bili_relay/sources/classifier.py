"""
Classification of raw Bilibili dynamics into DynamicPost records.

``classify_dynamic`` is pure: it only reads the item view. It returns None
("suppressed") in exactly these cases:

- a live announcement whose ``live_rcmd.content`` is empty or not JSON;
- a repost whose embedded original is missing or itself suppressed;
- a repost chain deeper than MAX_REPOST_DEPTH;
- a top-level item whose ``pub_ts`` is not a representable datetime.

Every other item, including unknown types, maps to some record.
"""

import logging
from datetime import datetime, timezone

from bili_relay.ingestion.bilibili import (
    ARTICLE_URL_PREFIX,
    AUDIO_URL_PREFIX,
    DYNAMIC_URL_PREFIX,
    VIDEO_URL_PREFIX,
)
from bili_relay.ingestion.json_view import JsonView
from bili_relay.sources.schemas import DynamicPost, DynamicType

logger = logging.getLogger(__name__)

# Bilibili points a repost of a repost at the root original, so real
# payloads nest one level.
MAX_REPOST_DEPTH = 3

UNHANDLED_TEXT = "unhandled dynamic type"

LABELS: dict[DynamicType, str] = {
    DynamicType.WORD: "posted",
    DynamicType.DRAW: "posted",
    DynamicType.AV: "posted a video",
    DynamicType.ARTICLE: "posted an article",
    DynamicType.MUSIC: "posted audio",
    DynamicType.PGC: "shared an episode",
    DynamicType.LIVE_RCMD: "live announcement",
    DynamicType.FORWARD: "reposted",
    DynamicType.UNKNOWN: "posted",
}
SHARED_LIVE_LABEL = "shared a live room"


def classify_dynamic(item: JsonView, depth: int = 0) -> DynamicPost | None:
    """
    Classify one feed item.

    Args:
        item: View over one element of ``data.items`` (or a repost's ``orig``)
        depth: Current repost nesting level

    Returns:
        DynamicPost, or None if the item is suppressed
    """
    if depth > MAX_REPOST_DEPTH:
        logger.warning("Repost chain deeper than %d, suppressing", MAX_REPOST_DEPTH)
        return None

    dynamic_type = DynamicType.parse(item.string("type"))
    dynamic_id = item.string("id_str")
    author = item.get("modules.module_author")
    post = DynamicPost(
        type=dynamic_type,
        id=dynamic_id,
        label=LABELS[dynamic_type],
        author=author.string("name"),
        link=DYNAMIC_URL_PREFIX + dynamic_id,
        pub_ts=author.integer("pub_ts"),
    )
    # Only the outer item's publish time reaches a Message
    if depth == 0 and not _representable(post.pub_ts):
        logger.warning("Dynamic %s has unusable pub_ts %d", dynamic_id, post.pub_ts)
        return None

    dynamic = item.get("modules.module_dynamic")
    if dynamic_type is DynamicType.WORD:
        post.text = dynamic.string("desc.text")

    elif dynamic_type is DynamicType.DRAW:
        post.text = dynamic.string("desc.text")
        post.images = [img.string("src") for img in dynamic.array("major.draw.items")]

    elif dynamic_type is DynamicType.AV:
        archive = dynamic.get("major.archive")
        post.id = archive.string("bvid")
        post.link = VIDEO_URL_PREFIX + post.id
        post.text = f"{archive.string('title')}\n{archive.string('desc')}"
        post.images = [archive.string("cover")]

    elif dynamic_type is DynamicType.ARTICLE:
        article = dynamic.get("major.article")
        post.id = str(article.integer("id"))
        post.link = ARTICLE_URL_PREFIX + post.id
        post.text = f"{article.string('title')}\n{article.string('desc')}"
        post.images = [article.string("covers.0")]

    elif dynamic_type is DynamicType.MUSIC:
        music = dynamic.get("major.music")
        post.id = str(music.integer("id"))
        post.link = AUDIO_URL_PREFIX + post.id
        post.text = music.string("title")
        post.images = [music.string("cover")]

    elif dynamic_type is DynamicType.PGC:
        pgc = dynamic.get("major.pgc")
        post.text = pgc.string("title")
        post.images = [pgc.string("cover")]

    elif dynamic_type is DynamicType.LIVE_RCMD:
        # The room info is a JSON document embedded as a string
        content = dynamic.string("major.live_rcmd.content")
        if not content:
            logger.debug("Live announcement %s has no content", dynamic_id)
            return None
        try:
            play_info = JsonView.parse(content).get("live_play_info")
        except ValueError:
            logger.debug("Live announcement %s has undecodable content", dynamic_id)
            return None
        post.text = f"title: {play_info.string('title')}"
        post.images = [play_info.string("cover")]

    elif dynamic_type is DynamicType.FORWARD:
        return _classify_forward(post, item, dynamic, depth)

    else:
        post.text = UNHANDLED_TEXT

    return post


def _representable(pub_ts: int) -> bool:
    try:
        datetime.fromtimestamp(pub_ts, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return False
    return True


def _classify_forward(
    post: DynamicPost,
    item: JsonView,
    dynamic: JsonView,
    depth: int,
) -> DynamicPost | None:
    """Resolve a repost through its embedded original."""
    orig = item.get("orig")
    if not isinstance(orig.value, dict):
        logger.debug("Repost %s carries no original", post.id)
        return None

    original = classify_dynamic(orig, depth + 1)
    if original is None:
        return None

    commentary = dynamic.string("desc.text")
    if original.is_live_announcement:
        post.label = SHARED_LIVE_LABEL
        post.text = (
            f"{commentary}\nshared {original.author}'s live room\n{original.text}"
        )
    else:
        post.text = f"{commentary} \nreposted from: @{original.author}\n{original.text}"
    post.images = list(original.images)
    return post
