"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models.responses import ErrorCodes, ErrorResponse
from api.routes import health_router, plans_router, reminders_router, timeline_router
from core.config import API_DEBUG, API_VERSION, DB_PATH, configure_logging
from core.database import create_schema, get_connection
from core.errors import TimelineError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    configure_logging()

    # Startup: one shared connection for this single-user process
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(DB_PATH)
    create_schema(conn)
    app.state.conn = conn
    app.state.reconciler = None
    logger.info("Database ready at %s", DB_PATH)

    yield

    conn.close()


app = FastAPI(
    title="Zone Planner API",
    description="Multi-city event timelines, portable plans and reminder scheduling",
    version=API_VERSION,
    debug=API_DEBUG,
    lifespan=lifespan,
)

# CORS middleware (for development)
if API_DEBUG:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(TimelineError)
async def timeline_error_handler(request: Request, exc: TimelineError):
    """Validation failures raised outside a tracked endpoint."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=exc.message,
            code=exc.code,
            details=[str(exc)],
        ).model_dump(),
    )


# Global exception handler for unexpected errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions with standard error format."""
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal server error",
            code=ErrorCodes.INTERNAL_ERROR,
            details=[],
        ).model_dump(),
    )


# Include routers
app.include_router(health_router)
app.include_router(timeline_router)
app.include_router(plans_router)
app.include_router(reminders_router)


# Entry point for uvicorn
if __name__ == "__main__":
    import uvicorn

    from core.config import API_HOST, API_PORT

    uvicorn.run(
        "api.main:app",
        host=API_HOST,
        port=API_PORT,
        reload=API_DEBUG,
    )
