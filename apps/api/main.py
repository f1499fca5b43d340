from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import os

from apps.api.middleware import RateLimitMiddleware
from apps.api.routes import health, search
from apps.core.config import settings
from apps.core.db import init_db
from apps.core.errors import GENERIC_ERROR_MESSAGE, SearchError, StoreUnavailable

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Subject Search API",
    description="Typo-tolerant search over a catalog of places by name, category and city",
    version="1.0.0"
)

app.add_middleware(
    RateLimitMiddleware,
    max_requests=settings.rate_limit_max_requests,
    window_s=settings.rate_limit_window_s,
)

# Include routers
app.include_router(health.router)
app.include_router(search.router, tags=["search"])


@app.exception_handler(SearchError)
async def search_error_handler(request: Request, exc: SearchError):
    if isinstance(exc, StoreUnavailable):
        logger.error("Internal Server Error: %s %s", exc.error_code, exc.details)
    else:
        logger.warning("Search aborted: %s %s", exc.error_code, exc.details)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse({"error": "Route not found."}, status_code=404)
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Internal Server Error")
    return JSONResponse({"error": GENERIC_ERROR_MESSAGE}, status_code=500)


@app.on_event("startup")
async def create_tables():
    init_db()
    logger.info(
        "startup complete", extra={"env": settings.environment, "port": os.getenv("PORT", str(settings.port))}
    )


@app.get("/")
async def root():
    return {"message": "Subject Search API", "version": "1.0.0"}
