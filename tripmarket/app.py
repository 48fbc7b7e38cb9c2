"""
FastAPI application entry point for the travel marketplace.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tripmarket.config import get_settings
from tripmarket.errors import MarketplaceError
from tripmarket.routes import router

logger = logging.getLogger(__name__)


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="Tripmarket API", version="0.1.0")
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
