"""FastAPI dependencies for score ingestion.

Provides dependency injection for:
- Scoring service
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .proxy import ScoringProxyError
from .service import ScoringError, ScoringService


async def get_scoring_service(request: Request) -> ScoringService:
    """Get scoring service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "scoring_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scoring service not available",
        )
    return app_state.scoring_service


ScoringServiceDep = Annotated[ScoringService, Depends(get_scoring_service)]


def handle_scoring_error(error: ScoringError | ScoringProxyError) -> HTTPException:
    """Convert scoring errors to HTTP exceptions."""
    status_map = {
        "scoring_request_not_found": status.HTTP_404_NOT_FOUND,
        "score_not_found": status.HTTP_404_NOT_FOUND,
        "tag_not_found": status.HTTP_404_NOT_FOUND,
        "scoring_invalid": status.HTTP_400_BAD_REQUEST,
        "scoring_proxy_error": status.HTTP_502_BAD_GATEWAY,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )
