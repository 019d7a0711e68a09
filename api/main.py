"""
api/main.py -- FastAPI application entry point for metricboard.

Run with:      python main.py
               uvicorn api.main:app --reload

Middleware stack (outermost to innermost; Starlette wraps the last one added
outermost):
  1. log_requests       -- one access-log line per request, errors included
  2. CORSMiddleware     -- adds CORS headers, so 429s are readable by browsers
  3. SlowAPIMiddleware  -- enforces per-route rate limits from api.limiter

Lifespan handles startup (stores, upload directory, fanout hub) and shutdown
(dispose stores) symmetrically. Everything request handlers need lives on
app.state so tests can swap it wholesale.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import HealthResponse
from api.routes.auth import router as auth_router
from api.routes.metrics import router as metrics_router
from api.routes.realtime import router as realtime_router
from api.routes.user import UPLOAD_URL_PREFIX
from api.routes.user import router as user_router
from auth.store import UserStore
from core.config import get_settings
from metrics.store import MetricStore
from realtime.fanout import ConnectionHub

__version__ = "0.1.0"

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("metricboard.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create application-level resources for the server lifetime.

    Startup order:
      1. Upload directory -- must exist before the first upload or static hit.
      2. Stores -- create their tables on first use of a fresh database.
      3. Fanout hub -- in-memory only; clients reconnect after a restart and
         anything published while they were away is gone.
    """
    logger.info("metricboard API starting up")
    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.state.upload_dir = upload_dir
    app.state.user_store = UserStore(db_url=settings.database_url)
    app.state.metric_store = MetricStore(db_url=settings.database_url)
    app.state.hub = ConnectionHub(settings.fanout_policy)
    logger.info(
        "Stores initialized (uploads=%s, fanout_policy=%s)",
        upload_dir,
        settings.fanout_policy,
    )

    yield

    app.state.user_store.close()
    app.state.metric_store.close()
    logger.info("metricboard API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="metricboard API",
    description="Users, per-user dashboard metrics, and realtime metric updates.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Routers and static files
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])
app.include_router(user_router, tags=["User"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(realtime_router, tags=["Realtime"])

# check_dir=False: the directory is created in lifespan, after this line runs.
app.mount(
    f"/{UPLOAD_URL_PREFIX}",
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name=UPLOAD_URL_PREFIX,
)


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error leaves the API as a flat {"message": ...} object, which is what
# the dashboard frontend reads.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a credential endpoint is hammered."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content={"message": "Too many requests.", "detail": str(exc.detail)},
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 when a request body or parameter fails validation."""
    return JSONResponse(
        status_code=422,
        content={"message": "Request validation failed.", "detail": str(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return HTTP errors as {"message": ...}.

    Route handlers raise HTTPException with a dict detail built by
    api/errors.py; that dict is the body as-is. Framework errors (unknown
    route, wrong method) carry a string detail and are wrapped.
    """
    content = exc.detail if isinstance(exc.detail, dict) else {"message": str(exc.detail)}
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the log only; the client receives a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"message": "An unexpected error occurred."},
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is reachable regardless of router
# registration. No auth, no rate limit -- load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return liveness, version, and the number of connected realtime clients."""
    hub = getattr(request.app.state, "hub", None)
    return HealthResponse(version=__version__, connected_clients=len(hub) if hub is not None else 0)
