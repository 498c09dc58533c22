"""
FastAPI application main module.
Upload sessions, validation, background import and progress polling.
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
import os
from contextlib import asynccontextmanager
from reach_planning.api.v1 import api_router
from reach_planning.utils import setup_logging, get_logger
from reach_planning.utils.observability import REQUEST_ID_HEADER, ensure_request_id
from reach_planning.jobs.worker_import import ImportWorker, JobTracker, create_queue
from reach_planning import database
from reach_planning.database import Base, session_scope
from reach_planning.exceptions import (
    ImportBlocked,
    InvalidSessionTransition,
    ReachPlanningError,
    SessionAlreadyExists,
    SessionNotFound,
    UnknownTemplate,
)
from reach_planning.services.session_store import SessionStore
import reach_planning.models.db  # noqa: F401  (registers tables on Base.metadata)

# Setup logging before creating the app
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_file=os.getenv("LOG_FILE", "logs/app.log"),
    enable_console=True
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Creates tables, purges expired sessions and runs the import worker.
    """
    logger.info("Application startup initiated")
    worker: ImportWorker | None = None
    try:
        logger.info("Creating database tables")
        Base.metadata.create_all(bind=database.engine)
        with session_scope() as db:
            SessionStore(db).purge_expired()

        queue = create_queue()
        worker = ImportWorker(queue, JobTracker())
        # exposed on app state so endpoints reach the worker without importing main
        app.state.import_queue = queue
        app.state.import_worker = worker
        worker.start()
        logger.info("Import queue + worker started")
        logger.info("Application startup completed successfully")
        yield
    except Exception as e:  # pragma: no cover
        logger.error("Application startup failed", error=str(e), exc_info=True)
        raise
    finally:
        logger.info("Application shutdown initiated")
        if worker is not None:
            worker.stop()
            worker.queue.shutdown()
        logger.info("Application shutdown completed")

app = FastAPI(
    title="Reach Planning Import API",
    description="""
    Validation and import backend for game plan and reach sufficiency uploads.

    ## Flow
    1. `POST /api/v1/sessions` stores parsed upload rows
    2. `POST /api/v1/validate` checks them against master data and game plans
    3. `POST /api/v1/import` starts the background import when no critical issue remains
    4. `POST /api/v1/import/progress` polls progress until `imported` or `error`
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/api/v1/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Upload payloads are large JSON documents
app.add_middleware(GZipMiddleware, minimum_size=1000)

@app.middleware("http")
async def add_request_context_and_logging(request: Request, call_next):
    """
    Add request ID, timing, and request/response logging.
    """
    request_id = ensure_request_id(request.headers)
    request.state.request_id = request_id
    request.state.start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        remote_addr=request.client.host if request.client else "unknown",
        request_id=request_id
    )

    response = await call_next(request)

    process_time = time.time() - request.state.start_time
    response.headers[REQUEST_ID_HEADER] = request_id
    response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))

    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time_ms=round(process_time * 1000, 2),
        request_id=request_id
    )
    return response

def _error_response(request: Request, status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            "request_id": getattr(request.state, "request_id", "unknown"),
            **extra
        }
    )

_DOMAIN_STATUS: list[tuple[type[ReachPlanningError], int]] = [
    (SessionNotFound, status.HTTP_404_NOT_FOUND),
    (ImportBlocked, status.HTTP_400_BAD_REQUEST),
    (UnknownTemplate, status.HTTP_400_BAD_REQUEST),
    (InvalidSessionTransition, status.HTTP_409_CONFLICT),
    (SessionAlreadyExists, status.HTTP_409_CONFLICT),
]

@app.exception_handler(ReachPlanningError)
async def domain_exception_handler(request: Request, exc: ReachPlanningError):
    """Map engine exceptions to HTTP statuses."""
    status_code = next(
        (code for exc_type, code in _DOMAIN_STATUS if isinstance(exc, exc_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    logger.warning(
        "Domain error",
        error=str(exc),
        error_type=type(exc).__name__,
        status_code=status_code,
        request_id=getattr(request.state, "request_id", "unknown"),
        url=str(request.url)
    )
    return _error_response(request, status_code, str(exc), error_type=type(exc).__name__)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    logger.warning(
        "Request validation failed",
        errors=exc.errors(),
        request_id=getattr(request.state, "request_id", "unknown"),
        url=str(request.url),
        method=request.method
    )
    return _error_response(request, 422, "Request validation failed", details=jsonable_errors(exc))

def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=getattr(request.state, "request_id", "unknown"),
        url=str(request.url),
        method=request.method
    )
    return _error_response(request, exc.status_code, exc.detail)

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        request_id=getattr(request.state, "request_id", "unknown"),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )
    return _error_response(request, 500, "Internal server error")

@app.get("/health", tags=["health"], summary="Basic health check")
async def health_check(request: Request):
    """Liveness plus queue and job state counts."""
    queue = getattr(request.app.state, "import_queue", None)
    worker = getattr(request.app.state, "import_worker", None)
    return {
        "status": "healthy",
        "service": "reach-planning-import",
        "version": "1.0.0",
        "timestamp": time.time(),
        "queue": queue.snapshot() if queue is not None else None,
        "jobs": worker.tracker.snapshot() if worker is not None else None,
    }

app.include_router(api_router, prefix="/api/v1")

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "reach_planning.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_config=None,
    )
