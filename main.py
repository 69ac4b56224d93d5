"""
FitFast coaching API.

Clients submit check-ins and read their plans; coaches manage the check-in
cycle, their knowledge base and their clients' plans. Plan generation runs
on Celery workers, never inside a request.
"""
import logging
import time
import uuid
from typing import List

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import settings
from core.database import check_db_connection
from core.exceptions import APIException, RateLimitExceededError
from core.logging import setup_logging
from core.rate_limit import RateLimitMiddleware
from routers import assessment, check_ins, coach, plans, push_subscriptions, tracking

setup_logging()
logger = logging.getLogger(__name__)

DEV_ORIGINS = ["http://localhost:3000", "http://localhost:3001", "http://127.0.0.1:3000"]


def _scrub_event(event, hint):
    """Drop credentials from Sentry events."""
    headers = event.get("request", {}).get("headers")
    if isinstance(headers, dict):
        for name in ("authorization", "Authorization", "cookie", "Cookie"):
            headers.pop(name, None)
    return event


def _init_sentry() -> None:
    if not settings.SENTRY_DSN:
        return
    import sentry_sdk
    from sentry_sdk.integrations.celery import CeleryIntegration
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.redis import RedisIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
                RedisIntegration(),
                CeleryIntegration(),
            ],
            send_default_pii=False,
            before_send=_scrub_event,
        )
    except Exception as e:
        logger.error(f"Sentry init failed: {e}")
        return
    logger.info(f"Sentry enabled ({settings.ENVIRONMENT})")


def _cors_origins() -> List[str]:
    if settings.DEBUG:
        return ["*"]
    if settings.CORS_ORIGINS:
        return [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    return DEV_ORIGINS


_init_sentry()

app = FastAPI(
    title="FitFast Coaching API",
    description="Client check-ins, AI meal and workout plans, coach tools",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware, default_limit=settings.RATE_LIMIT_PER_MINUTE, window=60)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    started = time.perf_counter()
    fields = {"request_id": request_id, "method": request.method, "path": request.url.path}

    try:
        response = await call_next(request)
    except Exception:
        logger.error(f"{request.method} {request.url.path} raised", exc_info=True, extra={"extra_fields": fields})
        raise

    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code}",
        extra={"extra_fields": {**fields, "status_code": response.status_code, "elapsed_ms": elapsed_ms}},
    )
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    """detail and error_code for every domain error; 429s also carry retry_after."""
    content = {"detail": exc.detail, "error_code": exc.error_code}
    if isinstance(exc, RateLimitExceededError):
        content["retry_after"] = exc.retry_after
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled {type(exc).__name__}: {exc}",
        exc_info=True,
        extra={"extra_fields": {"method": request.method, "path": request.url.path}},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.get("/health")
async def health():
    """200 when the database answers, 503 otherwise."""
    if not check_db_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "unavailable"},
        )
    return {"status": "healthy", "timestamp": time.time()}


@app.get("/ping")
async def ping():
    return {"pong": True}


for module in (check_ins, plans, tracking, assessment, push_subscriptions, coach):
    app.include_router(module.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.API_RELOAD)
