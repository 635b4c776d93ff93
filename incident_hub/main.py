"""
Incident Hub - FastAPI Application Entry Point

Incident lifecycle and geospatial verification engine: citizens report
incidents, others upvote and attach media, responders are assigned and
move incidents through to resolution.

DESIGN PRINCIPLES:
- The engine owns lifecycle invariants, not permissions
- Every mutation is a single conditional write on one aggregate
- Domain errors carry a stable code and become JSON error responses here
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from incident_hub.config.firebase import get_incident_store
from incident_hub.core.errors import IncidentHubError
from incident_hub.core.settings import settings
from incident_hub.routes import health, incidents, service_area

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Incident lifecycle and geospatial verification engine",
    debug=settings.DEBUG,
)


@app.exception_handler(IncidentHubError)
async def incident_hub_error_handler(request: Request, exc: IncidentHubError):
    """Map domain errors to JSON responses with their own status codes."""
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.code} - {exc.message}")
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log Pydantic validation errors before returning them."""
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold the raw exception object, which is not JSON serializable
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them with full traceback."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Internal server error: {str(exc)}"},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Initialize services on application startup.
    Currently: incident store (Firestore or in-memory)
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    try:
        get_incident_store()
    except RuntimeError as e:
        logger.warning(f"Incident store initialization failed: {e}")
        logger.warning("The app will start but database operations may fail.")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(incidents.router)
app.include_router(service_area.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
        "nearby": "/incidents/nearby?lng={lng}&lat={lat}&radius={meters}",
    }
