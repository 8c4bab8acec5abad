"""
Battery Line MES - Dashboard API
Version: 1.0.0

Changelog:
v1.0.0 (2026-10-12): Production stats for the supervisor board
"""

from fastapi import APIRouter
from datetime import date
from typing import Optional

from database import get_db
from models.production import ProductionStats
from services import ledger

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=ProductionStats)
async def production_stats(
    route_id: Optional[str] = None,
    operation_id: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
):
    """
    Produced count, WIP, average cycle time and hourly output.
    Without operation_id the route's final step is the target; without
    either, any completed unit counts. The window defaults to today.
    """
    async with get_db() as db:
        return await ledger.production_stats(db, route_id, operation_id, start, end)
