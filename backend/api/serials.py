"""
Battery Line MES - Serial Unit API
Version: 1.2.0

Changelog:
v1.2.0 (2026-10-12): Generic /scan dispatching on the part's serial_gen_type
v1.1.0 (2026-10-05): Tray batch endpoints and accessory lot completion
v1.0.0 (2026-09-28): PCB serial create/advance, unit lookup with history
"""

from fastapi import APIRouter, Query
from typing import Optional, List

from database import get_db
from models.production import (
    LotCompletion, ScanRequest, ScanResult, SerialUnit, TrayScan, UnitScan,
)
from services import ledger, serial_engine, work_orders

router = APIRouter(prefix="/serials", tags=["Serials"])


@router.get("/", response_model=List[SerialUnit])
async def list_serials(
    order_number: Optional[str] = None,
    tray_id: Optional[str] = None,
    incomplete_only: bool = False,
    limit: int = Query(500, ge=1, le=5000),
):
    async with get_db() as db:
        return await ledger.list_units(db, order_number, tray_id, incomplete_only, limit)


@router.get("/tray/{tray_id}", response_model=List[SerialUnit])
async def get_tray(tray_id: str, order_number: Optional[str] = None):
    """Units sharing a tray, optionally restricted to one order"""
    async with get_db() as db:
        return await ledger.list_units(db, order_number=order_number, tray_id=tray_id)


@router.get("/{serial_number}", response_model=SerialUnit)
async def get_serial(serial_number: str):
    """Unit with full station history and print history"""
    async with get_db() as db:
        return await ledger.get_unit(db, serial_number)


# -- Scans --

@router.post("/scan", response_model=ScanResult)
async def scan(data: ScanRequest):
    """Station scan: serial for PCB parts, tray id for lot parts, ignored for accessories"""
    async with get_db() as db:
        return await serial_engine.scan(db, data)


@router.post("/create", response_model=ScanResult, status_code=201)
async def create_unit(data: UnitScan):
    async with get_db() as db:
        return await serial_engine.create_unit(db, data)


@router.post("/advance", response_model=ScanResult)
async def advance_unit(data: UnitScan):
    async with get_db() as db:
        return await serial_engine.advance_unit(db, data)


@router.post("/batch-generate", response_model=ScanResult, status_code=201)
async def generate_batch(data: TrayScan):
    async with get_db() as db:
        return await serial_engine.generate_batch(db, data)


@router.post("/batch-advance", response_model=ScanResult)
async def advance_batch(data: TrayScan):
    async with get_db() as db:
        return await serial_engine.advance_batch(db, data)


@router.post("/complete-lot", response_model=ScanResult)
async def complete_lot(data: LotCompletion):
    async with get_db() as db:
        return await serial_engine.complete_lot(db, data)


@router.post("/{serial_number}/unassign", response_model=SerialUnit)
async def unassign(serial_number: str):
    """Detach a unit from its order; history is kept"""
    async with get_db() as db:
        return await work_orders.unassign_serial(db, serial_number)
