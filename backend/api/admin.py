"""
Battery Line MES - Admin API
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-12): Database reset for line changeovers (admin only)
v1.0.0 (2026-09-28): System info / health, schema setup and seeding
"""

from fastapi import APIRouter
from pydantic import BaseModel
import logging

from config import settings
from database import get_db, execute_one
from errors import MesError
from models.user import UserRole
from services import users

router = APIRouter()
logger = logging.getLogger(__name__)


class AdminAction(BaseModel):
    user_id: str


# System Information

@router.get("/system/info")
async def system_info():
    """Get system information"""
    import platform
    import psutil

    return {
        "platform": platform.platform(),
        "python_version": platform.python_version(),
        "cpu_count": psutil.cpu_count(),
        "memory_total_gb": round(psutil.virtual_memory().total / (1024**3), 2),
        "memory_available_gb": round(psutil.virtual_memory().available / (1024**3), 2),
        "disk_usage_percent": psutil.disk_usage('/').percent,
        "database": settings.SQLITE_DB_PATH,
        "app_version": settings.APP_VERSION
    }


@router.get("/system/health")
async def system_health():
    """Database reachability plus open-order and locked-station counts"""
    health = {
        "overall": "healthy",
        "services": {}
    }

    try:
        async with get_db() as db:
            open_orders = await execute_one(
                db, "SELECT COUNT(*) AS n FROM work_orders WHERE status = 'OPEN'"
            )
            locked = await execute_one(
                db, "SELECT COUNT(*) AS n FROM operations WHERE active_operator_id IS NOT NULL"
            )
        health["services"]["sqlite"] = {"status": "healthy"}
        health["open_orders"] = open_orders["n"]
        health["locked_stations"] = locked["n"]
    except MesError as e:
        health["services"]["sqlite"] = {"status": "error", "error": e.message}
        health["overall"] = "degraded"

    return health


# Schema management

@router.post("/setup")
async def setup_database():
    """Create missing tables and seed reference data; safe to repeat"""
    from models import init_db
    from seed import seed_if_empty

    await init_db()
    async with get_db() as db:
        await seed_if_empty(db)
    return {"success": True, "message": "Database initialized"}


@router.post("/reset")
async def reset_database(body: AdminAction):
    """Drop all production data and reseed (ADMIN only)"""
    from models import reset_db
    from seed import seed_if_empty

    async with get_db() as db:
        actor = await users.get_user(db, body.user_id)
        users.require_role(actor, (UserRole.ADMIN,), "Database reset")

    logger.warning(f"Database reset requested by {actor.username}")
    await reset_db()
    async with get_db() as db:
        await seed_if_empty(db)
    return {"success": True, "message": "Database reset and reseeded"}
