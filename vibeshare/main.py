from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import SQLAlchemyError

from vibeshare.api.v1.router import api_router
from vibeshare.core.config import settings
from vibeshare.core.errors import VibeShareError
from vibeshare.core.logging import configure_logging
from vibeshare.services.categorization import create_categorizer
from vibeshare.services.storage import S3MediaStore


configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, default_response_class=ORJSONResponse, version="0.1.0")

# Resolved once for the lifetime of the process.
app.state.categorizer = create_categorizer(settings.categorization_service)
app.state.media_store = S3MediaStore.from_settings(settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.api_prefix)

Instrumentator().instrument(app).expose(app)


@app.exception_handler(VibeShareError)
async def handle_domain_error(request: Request, exc: VibeShareError) -> ORJSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    return ORJSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(SQLAlchemyError)
async def handle_database_error(request: Request, exc: SQLAlchemyError) -> ORJSONResponse:
    logger.error("%s %s database error", request.method, request.url.path, exc_info=exc)
    return ORJSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
