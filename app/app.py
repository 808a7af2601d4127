# Main script to run the sharecal api: builds the context, registers error handlers and routers

import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import errors
import context
from routers import users, calendars, events

# Initialize logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

STATUS_CODES = {
    errors.ValidationFailure: 400,
    errors.NotFoundOrDenied: 404,
    errors.Conflict: 409,
    errors.PermissionDenied: 403,
    errors.Internal: 500,
}


async def handle_sharecal_error(request: Request, exc: errors.SharecalError):
    status_code = STATUS_CODES.get(type(exc), 500)
    if status_code == 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


def create_app(app_context: Optional[context.AppContext] = None) -> FastAPI:
    """
    Build the FastAPI app. Without an explicit context one is built from the
    environment at startup, which also creates the database schema if needed.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app_context is None:
            app.state.context = context.build_context()
        yield
        app.state.context.close()

    app = FastAPI(title="Sharecal-API", version="0.1.0", lifespan=lifespan)
    if app_context is not None:
        app.state.context = app_context

    app.add_exception_handler(errors.SharecalError, handle_sharecal_error)

    # Include routers
    app.include_router(users.router, prefix="/users", tags=["users"])
    app.include_router(calendars.router, prefix="/calendars", tags=["calendars"])
    app.include_router(events.router, prefix="/events", tags=["events"])

    # Health check endpoint
    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
