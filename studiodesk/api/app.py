import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studiodesk import __version__
from studiodesk.api import schemas
from studiodesk.api.dependencies import shutdown_dispatcher
from studiodesk.api.routes import protocols, sessions, tasks, webhooks
from studiodesk.config import get_config
from studiodesk.errors import PersistenceError, StudioDeskError
from studiodesk.logging import get_logger, log_context, setup_logging

logger = get_logger(__name__)

app = FastAPI(
    title="StudioDesk API",
    description="Tasks with webhook notifications and practice-protocol tracking",
    version=__version__,
)

# CORS
config = get_config()
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_allow_origins or [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(tasks.router, prefix="/api")
app.include_router(protocols.router, prefix="/api")
app.include_router(sessions.router, prefix="/api")
app.include_router(webhooks.router, prefix="/api")  # /api/incoming-webhook (secret in query)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag every log line emitted while handling a request with its id."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    with log_context(request_id=request_id):
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("persistence_error", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(status_code=500, content={"detail": "Failed to persist changes"})


@app.exception_handler(StudioDeskError)
async def studiodesk_error_handler(request: Request, exc: StudioDeskError):
    # Routes map validation/not-found themselves; anything reaching here is unexpected.
    status = {"validation": 400, "not_found": 404}.get(exc.category, 500)
    logger.error(
        "unhandled_service_error",
        extra={"path": request.url.path, "category": exc.category, "error": str(exc)},
    )
    return JSONResponse(status_code=status, content={"detail": str(exc)})


@app.on_event("startup")
def configure_logging() -> None:
    """Install structured logging using STUDIODESK_LOG_* settings."""
    cfg = get_config()
    if not logging.getLogger().handlers:
        setup_logging(cfg.log_level, json_output=cfg.log_json)
    logger.info(
        "api_started",
        extra={"data_dir": str(cfg.data_dir), "task_store": cfg.task_store, "webhook_enabled": cfg.webhook_enabled},
    )


@app.on_event("shutdown")
def close_dispatcher() -> None:
    """Let in-flight webhook deliveries finish before exit."""
    shutdown_dispatcher(wait=True)


@app.get("/health", response_model=schemas.Health)
def health_check():
    """Health check endpoint."""
    return schemas.Health(version=__version__)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
