"""Rendered text height estimates for comment lists.

Clients lay out long virtualized comment lists before the comments are
rendered, so they ask for the height each comment text takes at a given pixel
width. Heights are estimated from character counts and cached in Redis
(one hash per width).
"""

import math
from collections.abc import Iterable
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from osmod.core.redis import text_size_key


if TYPE_CHECKING:
    from redis.asyncio import Redis

    from osmod.comments.service import CommentService


logger = structlog.get_logger(__name__)


AVERAGE_CHAR_WIDTH = 8.0
LINE_HEIGHT = 24
VERTICAL_PADDING = 16
MIN_WIDTH = 100
MAX_WIDTH = 4000


def estimate_height(text: str, width: int) -> int:
    """Estimated height in pixels of ``text`` wrapped at ``width`` pixels."""
    chars_per_line = max(1, int(width / AVERAGE_CHAR_WIDTH))
    lines = 0
    for paragraph in text.splitlines() or [""]:
        lines += max(1, math.ceil(len(paragraph) / chars_per_line))
    return lines * LINE_HEIGHT + VERTICAL_PADDING


class TextSizeService:
    """Answers height requests from the Redis cache, computing the misses."""

    def __init__(self, comment_service: "CommentService", redis: "Redis | None" = None):
        self.comments = comment_service
        self.redis = redis

    async def get_heights(
        self, comment_ids: Iterable[UUID], width: int
    ) -> dict[str, int]:
        """Heights by comment ID; unknown comments are left out."""
        ids = [str(cid) for cid in dict.fromkeys(comment_ids)]
        heights: dict[str, int] = {}

        if self.redis is not None and ids:
            try:
                cached = await self.redis.hmget(text_size_key(width), ids)
                heights = {cid: int(h) for cid, h in zip(ids, cached, strict=True) if h}
            except Exception as e:
                logger.warning("text_size_cache_read_failed", error=str(e))

        missing = [UUID(cid) for cid in ids if cid not in heights]
        if missing:
            computed = await self.compute(missing, [width])
            heights.update(computed.get(width, {}))
        return heights

    async def compute(
        self, comment_ids: Iterable[UUID], widths: Iterable[int]
    ) -> dict[int, dict[str, int]]:
        """Compute and cache heights of comments at each width."""
        comments = await self.comments.get_comments(comment_ids)
        result: dict[int, dict[str, int]] = {}
        for width in widths:
            result[width] = {
                str(c.comment_id): estimate_height(c.text, width) for c in comments
            }

        if self.redis is not None and comments:
            try:
                pipe = self.redis.pipeline()
                for width, heights in result.items():
                    pipe.hset(text_size_key(width), mapping=heights)
                await pipe.execute()
            except Exception as e:
                logger.warning("text_size_cache_write_failed", error=str(e))

        logger.debug(
            "text_sizes_computed", comments=len(comments), widths=len(result)
        )
        return result
