"""FastAPI dependencies for moderation.

Provides dependency injection for:
- Moderation and rule services
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .rules import RuleValidationError
from .service import ModerationError, ModerationService, RuleService


async def get_moderation_service(request: Request) -> ModerationService:
    """Get moderation service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "moderation_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Moderation service not available",
        )
    return app_state.moderation_service


async def get_rule_service(request: Request) -> RuleService:
    """Get rule service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "rule_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rule service not available",
        )
    return app_state.rule_service


ModerationServiceDep = Annotated[ModerationService, Depends(get_moderation_service)]
RuleServiceDep = Annotated[RuleService, Depends(get_rule_service)]


def handle_moderation_error(
    error: ModerationError | RuleValidationError,
) -> HTTPException:
    """Convert moderation errors to HTTP exceptions."""
    status_map = {
        "rule_not_found": status.HTTP_404_NOT_FOUND,
        "preselect_not_found": status.HTTP_404_NOT_FOUND,
        "rule_invalid": status.HTTP_400_BAD_REQUEST,
        "rule_invalid_action": status.HTTP_400_BAD_REQUEST,
        "rule_invalid_range": status.HTTP_400_BAD_REQUEST,
        "rule_overlap": status.HTTP_409_CONFLICT,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )
