"""Main FastAPI application."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timeharbor import __version__
from timeharbor.api.deps import close_notifications
from timeharbor.api.v1.api import api_router
from timeharbor.config import settings
from timeharbor.exceptions import ConcurrencyConflict, NotAuthenticated, StoreUnavailable, TicketNotFound
from timeharbor.utils.logging import configure_logging

configure_logging(settings.log_level, settings.log_json)

log = logging.getLogger(__name__)

app = FastAPI(
    title="TimeHarbor Clock Engine",
    description="Team clock sessions, ticket timers and timesheet rollups",
    version=__version__
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__
    }


@app.get("/")
async def root():
    return {
        "message": "TimeHarbor Clock Engine API",
        "version": __version__,
        "docs": "/docs"
    }


app.include_router(api_router, prefix=settings.api_v1_str)


@app.on_event("shutdown")
async def shutdown_event():
    close_notifications()
    log.info("Notifier closed")


@app.exception_handler(NotAuthenticated)
async def not_authenticated_handler(request: Request, exc: NotAuthenticated):
    log.debug(f"Rejected unauthenticated request to {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": exc.user_message},
        headers={"WWW-Authenticate": "Bearer"}
    )


@app.exception_handler(TicketNotFound)
async def ticket_not_found_handler(request: Request, exc: TicketNotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.user_message})


@app.exception_handler(ConcurrencyConflict)
async def concurrency_conflict_handler(request: Request, exc: ConcurrencyConflict):
    log.warning(f"Concurrency conflict on {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": exc.user_message})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    log.error(f"Store unavailable on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": exc.user_message},
        headers={"Retry-After": "1"}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=settings.log_level.lower())
