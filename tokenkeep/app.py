from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from tokenkeep.api.error_handling import register_exception_handlers
from tokenkeep.api.routes import router
from tokenkeep.logging import get_logger, set_correlation_id

logger = get_logger(__name__)

__version__ = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the runtime on startup and release the store pool on shutdown."""
    from tokenkeep.service.runtime import get_runtime

    runtime = get_runtime()
    logger.info("app_started", list_store=type(runtime.lists).__name__)

    yield

    try:
        await runtime.close()
        logger.info("runtime_cleanup_complete")
    except Exception as exc:
        logger.error("shutdown_failed", error=str(exc))


app = FastAPI(title="tokenkeep", version=__version__, lifespan=lifespan)


@app.middleware("http")
async def add_correlation_id(request, call_next):
    """Tag every log line of a request with X-Request-ID and echo it back."""
    client_request_id = request.headers.get("X-Request-ID")
    correlation_id = set_correlation_id(client_request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = correlation_id
    return response


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


register_exception_handlers(app)
app.include_router(router)
