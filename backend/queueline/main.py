"""FastAPI application entry point."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware

from queueline.api.routes import api_router, websocket_endpoints
from queueline.api.routes.websocket_endpoints import ws_manager
from queueline.core.config import settings
from queueline.core.exceptions import QueueError
from queueline.core.rate_limit import limiter
from queueline.db.base import Base
from queueline.db.session import SessionLocal, engine
from queueline.services.queue_service import CONFIG_PATH, QueueService
from queueline.services.realtime import create_store
from queueline.services.subscriptions import QueueSubscriptions

VERSION = "1.0.0"

# Configure logging - use JSON format in production, human-readable in dev
root_logger = logging.getLogger()
root_logger.setLevel(getattr(logging, settings.log_level))
root_logger.handlers.clear()

if settings.debug:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
else:
    import json as _json
    import sys

    class JSONFormatter(logging.Formatter):
        def format(self, record):
            return _json.dumps({
                "ts": self.formatTime(record, self.datefmt),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "module": record.module,
                "line": record.lineno,
            })

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

root_logger.addHandler(handler)
logger = logging.getLogger(__name__)
request_logger = logging.getLogger("requests")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        csp_origins = " ".join(settings.cors_origins_list)
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            f"connect-src 'self' ws: wss: {csp_origins}; "
            "img-src 'self' data:;"
        )
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with status and timing."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in ["/health", "/", "/docs", "/openapi.json"]:
            return await call_next(request)

        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"
        request_logger.info(f"Request: {request.method} {request.url.path} - Client: {client_ip}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            request_logger.error(
                f"Error: {request.method} {request.url.path} - "
                f"Exception: {str(e)} - Time: {process_time:.3f}s - Client: {client_ip}"
            )
            raise

        process_time = time.time() - start_time
        log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
        request_logger.log(
            log_level,
            f"Response: {request.method} {request.url.path} - "
            f"Status: {response.status_code} - Time: {process_time:.3f}s - Client: {client_ip}"
        )
        return response


async def _periodic_archive_cleanup(service: QueueService):
    """Drop archived entries past the retention window, once per interval."""
    while True:
        try:
            removed = await service.prune_archive(settings.archive_retention_days)
            if removed:
                logger.info(f"Periodic cleanup: {removed} archived entries purged")
            await asyncio.sleep(settings.archive_cleanup_interval_seconds)
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning(f"Periodic archive cleanup error: {e}")
            await asyncio.sleep(settings.archive_cleanup_interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting Queueline")

    Base.metadata.create_all(bind=engine)

    store = create_store(settings)
    service = QueueService(store, settings)
    app.state.store = store
    app.state.queue_service = service
    app.state.subscriptions = QueueSubscriptions(store)
    logger.info(f"Realtime store ready ({store.backend_name})")

    cleanup_task = asyncio.create_task(_periodic_archive_cleanup(service))
    logger.info(
        f"Archive cleanup started (retention {settings.archive_retention_days} days, "
        f"every {settings.archive_cleanup_interval_seconds}s)"
    )

    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    await store.close()
    logger.info("Shutting down Queueline")


app = FastAPI(
    title="Queueline",
    description="Restaurant waitlist: join the line, follow your place, manage the queue",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Rate limiting setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(QueueError)
async def queue_error_handler(request: Request, exc: QueueError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware - MUST be added last so it runs first (Starlette LIFO order).
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,  # Cache preflight for 10 minutes
)

app.include_router(api_router, prefix=settings.api_v1_prefix)
app.include_router(websocket_endpoints.router, prefix="/ws", tags=["websocket"])


@app.get("/health")
def health_check():
    """Basic liveness check endpoint."""
    return {"status": "healthy", "version": VERSION}


@app.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness: database, realtime store and WebSocket connection counts."""
    checks = {
        "database": "unknown",
        "realtime_store": "unknown",
        "websocket_manager": "unknown",
    }

    db = None
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        checks["database"] = "unhealthy"
    finally:
        if db:
            db.close()

    store = getattr(request.app.state, "store", None)
    if store is None:
        checks["realtime_store"] = "not initialized"
    else:
        try:
            await asyncio.wait_for(store.get(CONFIG_PATH), timeout=settings.store_timeout_seconds)
            checks["realtime_store"] = f"healthy ({store.backend_name})"
        except Exception as e:
            logger.error(f"Realtime store health check failed: {e}")
            checks["realtime_store"] = "unhealthy"

    checks["websocket_manager"] = f"healthy ({ws_manager.get_connection_count()} connections)"

    all_healthy = all(c.startswith("healthy") for c in checks.values())
    return {
        "status": "ready" if all_healthy else "degraded",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }


@app.get("/")
def root():
    return {
        "message": "Queueline API",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("queueline.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
