"""FastAPI dependencies for articles."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import ArticleError, ArticleService


async def get_article_service(request: Request) -> ArticleService:
    """Get article service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "article_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Article service not available",
        )
    return app_state.article_service


ArticleServiceDep = Annotated[ArticleService, Depends(get_article_service)]


def handle_article_error(error: ArticleError) -> HTTPException:
    """Convert article errors to HTTP exceptions."""
    status_map = {
        "article_not_found": status.HTTP_404_NOT_FOUND,
        "category_not_found": status.HTTP_404_NOT_FOUND,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )
