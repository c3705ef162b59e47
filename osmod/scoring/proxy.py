"""HTTP client for external scorers (the scoring proxy).

Each scorer is a MODERATOR user with an ``endpoint``. The comment is posted
with a callback link; a scorer either answers synchronously with scores or
accepts the request (202) and posts the scores to the callback later.
"""

from typing import Any

import httpx
import structlog

from osmod.articles.models import Article
from osmod.auth.models import User
from osmod.comments.models import Comment
from osmod.config.settings import Settings


logger = structlog.get_logger(__name__)


class ScoringProxyError(Exception):
    """A scorer could not be reached or answered with an error.

    Always retryable: the work queue sends the comment again.
    """

    def __init__(self, message: str, scorer_id: str | None = None):
        self.message = message
        self.scorer_id = scorer_id
        self.code = "scoring_proxy_error"
        super().__init__(message)


def build_scoring_body(
    comment: Comment, article: Article | None, callback_url: str
) -> dict[str, Any]:
    """Request body sent to a scorer."""
    body: dict[str, Any] = {
        "sync": True,
        "includeSummaryScores": True,
        "comment": {
            "commentId": str(comment.comment_id),
            "plainText": comment.text,
            "authorSourceId": comment.author_source_id,
            "sourceCreatedAt": comment.source_created_at.isoformat()
            if comment.source_created_at
            else None,
        },
        "links": {"callback": f"{callback_url.rstrip('/')}/{comment.comment_id}"},
    }
    if article is not None:
        body["article"] = {
            "articleId": str(article.article_id),
            "title": article.title,
            "categoryId": str(article.category_id) if article.category_id else None,
        }
    return body


class ScoringProxyClient:
    """Posts comments to scorer endpoints."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = settings.scoring_timeout_seconds
        self.callback_url = settings.scoring_callback_url
        self._transport = transport

    async def score(
        self,
        scorer: User,
        comment: Comment,
        article: Article | None = None,
    ) -> dict[str, Any] | None:
        """Send a comment to a scorer.

        Returns:
            The scorer's response payload, or None when the scorer accepted
            the request and will post scores to the callback

        Raises:
            ScoringProxyError: On timeouts, network errors, non-2xx statuses
                or an ``{"error": ...}`` response
        """
        scorer_id = str(scorer.user_id)
        if not scorer.endpoint:
            raise ScoringProxyError("Scorer has no endpoint", scorer_id)

        body = build_scoring_body(comment, article, self.callback_url)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(scorer.endpoint, json=body)
        except httpx.TimeoutException as e:
            logger.warning("scorer_timeout", scorer_id=scorer_id, error=str(e))
            raise ScoringProxyError("Scorer timed out", scorer_id) from e
        except httpx.RequestError as e:
            logger.warning("scorer_request_error", scorer_id=scorer_id, error=str(e))
            raise ScoringProxyError(f"Scorer request error: {e}", scorer_id) from e

        if response.status_code == httpx.codes.ACCEPTED:
            logger.debug("scorer_accepted", scorer_id=scorer_id)
            return None

        if not response.is_success:
            logger.warning(
                "scorer_request_failed",
                scorer_id=scorer_id,
                status_code=response.status_code,
                response_text=response.text[:500],
            )
            raise ScoringProxyError(
                f"Scorer returned {response.status_code}", scorer_id
            )

        if not response.content:
            return None

        try:
            data = response.json()
        except ValueError as e:
            raise ScoringProxyError("Scorer returned invalid JSON", scorer_id) from e

        if not isinstance(data, dict):
            raise ScoringProxyError("Scorer returned an unexpected payload", scorer_id)
        if data.get("error"):
            logger.warning("scorer_error", scorer_id=scorer_id, error=str(data["error"]))
            raise ScoringProxyError(f"Scorer error: {data['error']}", scorer_id)

        return data
