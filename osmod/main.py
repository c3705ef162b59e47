"""OSMod API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from osmod.articles.router import router as articles_router
from osmod.articles.service import ArticleService
from osmod.auth.router import admin_router as users_admin_router
from osmod.auth.service import UserService
from osmod.comments.router import router as comments_router
from osmod.comments.service import CommentService
from osmod.config import get_settings
from osmod.core.context import get_request_id
from osmod.core.database import init_async_cassandra, shutdown_async_cassandra
from osmod.core.logging import configure_structlog, get_logger
from osmod.core.middleware import RequestContextMiddleware
from osmod.core.redis import init_redis, shutdown_redis
from osmod.health.router import router as health_router
from osmod.moderation.router import admin_router as moderation_admin_router
from osmod.moderation.router import router as moderation_router
from osmod.moderation.service import ModerationService, RuleService
from osmod.notifier.hub import ConnectionManager
from osmod.notifier.service import NotifierService
from osmod.notifier.websocket_router import router as notifier_ws_router
from osmod.scoring.proxy import ScoringProxyClient
from osmod.scoring.router import admin_router as scoring_admin_router
from osmod.scoring.router import router as scoring_router
from osmod.scoring.service import ScoringService
from osmod.workqueue.dispatcher import WorkQueueDispatcher
from osmod.workqueue.router import router as workqueue_router
from osmod.workqueue.tasks import JobHandlers
from osmod.workqueue.textsize import TextSizeService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Redis is optional: without it deltas only reach this process's sockets
    redis_client = None
    try:
        redis_client = await init_redis()
        logger.info("redis_initialized")
    except Exception as e:
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - updates stay local to this process",
        )
    app.state.redis = redis_client

    dispatcher: WorkQueueDispatcher | None = None
    try:
        session = await init_async_cassandra()
        keyspace = settings.cassandra_keyspace
        logger.info("cassandra_initialized")

        user_service = UserService(session=session, keyspace=keyspace)
        article_service = ArticleService(session=session, keyspace=keyspace)
        comment_service = CommentService(session=session, keyspace=keyspace)
        rule_service = RuleService(session=session, keyspace=keyspace)

        scoring_service = ScoringService(
            session,
            keyspace,
            settings,
            comment_service,
            article_service,
            user_service,
            ScoringProxyClient(settings),
        )

        notifier_service = NotifierService(
            ConnectionManager(),
            user_service,
            article_service,
            scoring_service,
            rule_service,
            redis=redis_client,
        )
        logger.info("notifier_initialized", redis_enabled=redis_client is not None)

        moderation_service = ModerationService(
            comment_service,
            article_service,
            scoring_service,
            rule_service,
            notifier_service,
        )
        scoring_service.on_scored = moderation_service.process_scored_comment

        text_size_service = TextSizeService(comment_service, redis_client)

        dispatcher = WorkQueueDispatcher.from_settings(settings)
        JobHandlers(
            dispatcher,
            scoring_service,
            moderation_service,
            comment_service,
            article_service,
            text_size_service,
            settings.text_size_widths,
        ).register()
        await dispatcher.start()

        app.state.user_service = user_service
        app.state.article_service = article_service
        app.state.comment_service = comment_service
        app.state.rule_service = rule_service
        app.state.scoring_service = scoring_service
        app.state.notifier_service = notifier_service
        app.state.moderation_service = moderation_service
        app.state.text_size_service = text_size_service
        app.state.dispatcher = dispatcher
        logger.info("services_initialized")
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    if dispatcher is not None:
        await dispatcher.stop()
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Starlette's debug pages would leak stack traces; the handlers below log them
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="OSMod - Comment moderation API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": _get_request_id_safe(request),
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors; field-level details are safe to expose."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": _get_request_id_safe(request),
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler; internal details are logged, never returned."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": _get_request_id_safe(request),
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(users_admin_router)
    app.include_router(comments_router)
    app.include_router(articles_router)
    app.include_router(scoring_router)
    app.include_router(scoring_admin_router)
    app.include_router(moderation_router)
    app.include_router(moderation_admin_router)
    app.include_router(workqueue_router)
    app.include_router(notifier_ws_router)  # WebSocket for realtime updates

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "OSMod API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
