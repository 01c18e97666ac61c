import logging
from collections import defaultdict, deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Deque

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import get_settings
from app.core.errors import AppError
from app.core.logging import configure_logging
from app.core.responses import api_error
from app.db.base import Base
from app.db.session import engine
from app.routers import auth, posts

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(self, limit_per_minute: int) -> None:
        self.limit_per_minute = limit_per_minute
        self._hits: dict[str, Deque[float]] = defaultdict(deque)
        self._last_sweep = 0.0

    def hit(self, key: str) -> bool:
        now = datetime.now(timezone.utc).timestamp()
        window_start = now - 60
        if self._last_sweep < window_start:
            self._sweep(window_start)
            self._last_sweep = now
        bucket = self._hits[key]
        while bucket and bucket[0] < window_start:
            bucket.popleft()
        if len(bucket) >= self.limit_per_minute:
            return False
        bucket.append(now)
        return True

    def _sweep(self, window_start: float) -> None:
        stale = [key for key, bucket in self._hits.items() if not bucket or bucket[-1] < window_start]
        for key in stale:
            del self._hits[key]

    def __len__(self) -> int:
        return len(self._hits)


def register_error_handlers(app: FastAPI) -> None:
    settings = get_settings()

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return api_error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        field = ".".join(str(part) for part in errors[0]["loc"]) if errors else "request"
        return api_error(status.HTTP_400_BAD_REQUEST, f"Invalid value for {field}")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return api_error(exc.status_code, f"Not Found - {request.url.path}")
        return api_error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        message = "Server Error" if settings.is_production else str(exc) or "Server Error"
        return api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging()
    app = FastAPI(title=settings.app_name, version=settings.version, debug=settings.debug)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    limiter = RateLimiter(settings.rate_limit_per_minute)

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        key = request.client.host if request.client else "unknown"
        if not limiter.hit(key):
            return api_error(status.HTTP_429_TOO_MANY_REQUESTS, "Rate limit exceeded")
        return await call_next(request)

    register_error_handlers(app)
    app.include_router(auth.router)
    app.include_router(posts.router)

    if settings.media_backend == "local":
        upload_root = Path(settings.upload_dir)
        upload_root.mkdir(parents=True, exist_ok=True)
        app.mount(settings.media_url_prefix, StaticFiles(directory=upload_root), name="uploads")

    @app.on_event("startup")
    def startup() -> None:
        if settings.auto_create_tables:
            Base.metadata.create_all(bind=engine)
        logger.info("%s started in %s mode", settings.app_name, settings.environment)

    @app.get("/api/health")
    def health() -> dict:
        return {
            "success": True,
            "message": "Server is running",
            "env": settings.environment,
            "time": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/")
    def root() -> dict:
        return {
            "success": True,
            "message": settings.app_name,
            "version": settings.version,
            "routes": {
                "auth": "/api/auth",
                "blogs": "/api/blogs",
                "health": "/api/health",
            },
        }

    return app


app = create_app()
