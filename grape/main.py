import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from grape.api import auth, comments, notifications, posts, search, users
from grape.config_secrets import CORS_ALLOW_ORIGINS, DATABASE_POOL_MAX_SIZE, DATABASE_POOL_MIN_SIZE, DATABASE_URL
from grape.core.db import Database
from grape.services.annotator import ContentAnnotator
from grape.services.engagement_service import EngagementService
from grape.services.errors import ServiceError
from grape.services.feed_service import FeedService
from grape.services.graph_service import SocialGraphService
from grape.services.notification_service import NotificationService
from grape.services.post_service import PostService
from grape.services.s3_service import ObjectStore
from grape.services.search_service import SearchService
from grape.services.user_service import UserService

logger = logging.getLogger(__name__)

API_NAME = "Grape API"
API_VERSION = "1.0.0"


def install_services(app: FastAPI, db: Database, store: ObjectStore) -> None:
    """Wire every service onto app.state around one database and one object store"""
    notification_service = NotificationService(db)
    annotator = ContentAnnotator(notification_service)

    app.state.db = db
    app.state.store = store
    app.state.notification_service = notification_service
    app.state.user_service = UserService(db, store)
    app.state.graph_service = SocialGraphService(db, notification_service)
    app.state.engagement_service = EngagementService(db, notification_service, annotator)
    app.state.post_service = PostService(db, store, annotator)
    app.state.feed_service = FeedService(db)
    app.state.search_service = SearchService(db)


def _error_response(status_code: int, message, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def create_app() -> FastAPI:
    app = FastAPI(
        title=API_NAME,
        description="Short-form video social network API",
        version=API_VERSION,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(posts.router)
    app.include_router(comments.router)
    app.include_router(search.router)
    app.include_router(notifications.router)

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.status_code, exc.detail, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Invalid request"
        # pydantic prefixes messages raised from validators
        message = message.removeprefix("Value error, ")
        return _error_response(400, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, "Internal server error")

    @app.on_event("startup")
    async def startup_event():
        """Initialize connections on startup"""
        if getattr(app.state, "db", None) is not None:
            return
        db = Database(DATABASE_URL, min_size=DATABASE_POOL_MIN_SIZE, max_size=DATABASE_POOL_MAX_SIZE)
        await db.connect()
        install_services(app, db, ObjectStore())

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close connections on shutdown"""
        db = getattr(app.state, "db", None)
        if db is not None:
            await db.close()

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy"}

    @app.get("/api/version")
    async def api_version():
        """API version information"""
        return {
            "version": API_VERSION,
            "name": API_NAME,
        }

    return app


app = create_app()
