"""Health check endpoint."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    """Report service health; the database must answer a ping."""
    try:
        await request.app.state.database.ping()
    except (SQLAlchemyError, OSError):
        logger.exception("Health check failed: database unreachable")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "version": settings.APP_VERSION, "database": "unreachable"},
        )
    return {"status": "healthy", "version": settings.APP_VERSION, "database": "ok"}
