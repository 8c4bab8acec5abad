"""
Battery Line MES - Operation (Station) API
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-05): enter returns acquired/holder instead of 409 on contention
v1.0.0 (2026-09-28): Initial station endpoints with enter/exit/unlock
"""

from fastapi import APIRouter
from pydantic import BaseModel
from typing import List

from database import get_db
from models.catalog import Operation, OperationCreate, OperationUpdate
from models.production import LockResult
from services import catalog, station_lock

router = APIRouter(prefix="/operations", tags=["Operations"])


class StationAccess(BaseModel):
    user_id: str


@router.get("/", response_model=List[Operation])
async def list_operations():
    """All stations with their current lock holder"""
    async with get_db() as db:
        return await catalog.list_operations(db)


@router.get("/{operation_id}", response_model=Operation)
async def get_operation(operation_id: str):
    async with get_db() as db:
        return await catalog.get_operation(db, operation_id)


@router.post("/", response_model=Operation, status_code=201)
async def create_operation(data: OperationCreate):
    async with get_db() as db:
        return await catalog.create_operation(db, data)


@router.put("/{operation_id}", response_model=Operation)
async def update_operation(operation_id: str, data: OperationUpdate):
    async with get_db() as db:
        return await catalog.update_operation(db, operation_id, data)


@router.delete("/{operation_id}")
async def delete_operation(operation_id: str):
    async with get_db() as db:
        await catalog.delete_operation(db, operation_id)
    return {"success": True, "message": f"Operation {operation_id} deleted"}


# -- Station lock --

@router.post("/{operation_id}/enter", response_model=LockResult)
async def enter_station(operation_id: str, body: StationAccess):
    """
    Take the station for an operator.
    Contention is not an error: acquired=false names the current holder.
    """
    async with get_db() as db:
        return await station_lock.enter_station(db, operation_id, body.user_id)


@router.post("/{operation_id}/exit")
async def exit_station(operation_id: str, body: StationAccess):
    async with get_db() as db:
        released = await station_lock.exit_station(db, operation_id, body.user_id)
    return {"operation_id": operation_id, "released": released}


@router.post("/{operation_id}/unlock")
async def force_unlock(operation_id: str, body: StationAccess):
    """Supervisor/admin release of an orphaned lock"""
    async with get_db() as db:
        previous = await station_lock.force_unlock(db, operation_id, body.user_id)
    return {"operation_id": operation_id, "released": True, "previous_holder_id": previous}
