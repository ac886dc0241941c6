"""FastAPI application entry point."""

import logging
import structlog
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hommemade.api.deps import build_sweeper
from hommemade.api.v1.admin import router as admin_router
from hommemade.api.v1.chat import router as chat_router
from hommemade.api.v1.health import router as health_router
from hommemade.api.v1.submit import router as submit_router
from hommemade.api.v1.upload import router as upload_router
from hommemade.config import settings
from hommemade.errors import StoreError

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.dev.ConsoleRenderer() if settings.environment == "development"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.log_level.upper(), logging.INFO)
    ),
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info("app_starting", **settings.config_summary())
    for warning in settings.config_warnings():
        logger.warning("config_warning", message=warning)
    for error in settings.config_errors():
        logger.error("config_error", message=error)

    sweeper = build_sweeper()
    sweeper.start()
    yield
    await sweeper.stop()
    logger.info("app_shutting_down")


app = FastAPI(
    title="Homme Made Intake API",
    description="Client onboarding intake, admin export and studio chat assistants",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.cors_origin],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Dict details become the response body; strings fill both error and message.

    Covers routing 404/405 as well as route-raised errors.
    """
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail, "message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request",
            "message": "Request body failed validation",
            "details": [
                {"field": ".".join(str(p) for p in err["loc"][1:]), "message": err["msg"]}
                for err in exc.errors()
            ],
        },
    )


@app.exception_handler(StoreError)
async def store_exception_handler(request: Request, exc: StoreError):
    logger.error("unhandled_store_error", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": "An unexpected error occurred"},
    )


# Include routers
app.include_router(health_router)
app.include_router(submit_router)
app.include_router(upload_router)
app.include_router(chat_router)
app.include_router(admin_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Homme Made Intake API",
        "version": "0.1.0",
        "status": "running",
    }
