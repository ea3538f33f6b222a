from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from leadcrm.core.config import settings
from leadcrm.db.database import get_async_db
from leadcrm.middleware.simple_performance import get_performance_stats
from leadcrm.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

API_VERSION = "1.0.0"


@router.get("")
async def health_check(db: AsyncSession = Depends(get_async_db)):
    """Database connectivity and request counters. Never fails."""
    database = {"status": "connected", "type": "PostgreSQL" if settings.is_postgres else "SQLite"}
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        await db.rollback()
        logger.error(f"Health check database query failed: {e}")
        database["status"] = "unavailable"

    stats = get_performance_stats()
    return {
        "status": "healthy" if database["status"] == "connected" else "degraded",
        "timestamp": utcnow().isoformat(),
        "version": API_VERSION,
        "database": database,
        "requests": {
            "total": stats["total_requests"],
            "avg_response_time_ms": stats["avg_response_time_ms"],
            "slow_requests": len(stats["slow_requests"]),
        },
    }
