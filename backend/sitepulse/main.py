from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from sitepulse.api.v1.router import api_router
from sitepulse.core.config import settings, setup_logging
from sitepulse.core.limiter import limiter
from sitepulse.core.redis import close_redis
from sitepulse.db.session import AsyncSessionLocal, engine

INGEST_PATH_PREFIX = f"{settings.API_V1_PREFIX}/events"

INGEST_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    setup_logging()
    # Expose session maker for WebSocket auth
    app.state._db_sessionmaker = AsyncSessionLocal
    yield
    # Shutdown
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=f"{settings.API_V1_PREFIX}/docs",
    redoc_url=f"{settings.API_V1_PREFIX}/redoc",
    lifespan=lifespan,
)

# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

# CORS for the dashboard
if settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )


@app.middleware("http")
async def add_security_headers(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Add security headers to all responses."""
    response: Response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
    if not settings.DEBUG:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


@app.middleware("http")
async def open_ingest_cors(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Let tracking snippets on any origin post events.

    Registered last so it wraps the dashboard CORS middleware: preflights for
    the ingest endpoint are answered here, whatever origins the dashboard
    allows.
    """
    if not request.url.path.startswith(INGEST_PATH_PREFIX):
        return await call_next(request)
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=INGEST_CORS_HEADERS)

    response: Response = await call_next(request)
    if "access-control-allow-credentials" in response.headers:
        del response.headers["access-control-allow-credentials"]
    response.headers.update(INGEST_CORS_HEADERS)
    return response


# Routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": f"{settings.PROJECT_NAME} is running"}
