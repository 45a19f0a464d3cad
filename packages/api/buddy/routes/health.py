# This project was developed with assistance from AI tools.
"""Health check routes."""

from buddy_db import DatabaseService, get_db_service
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.config import settings

router = APIRouter()


@router.get("/")
async def health(db: DatabaseService = Depends(get_db_service)) -> JSONResponse:
    """Liveness plus database reachability. 503 when the database is down."""
    db_ok = await db.health_check()
    body = {
        "status": "ok" if db_ok else "degraded",
        "service": settings.APP_NAME,
        "database": "ok" if db_ok else "unavailable",
    }
    return JSONResponse(status_code=200 if db_ok else 503, content=body)
