"""
Battery Line MES - Part Number API
Version: 1.0.0

Changelog:
v1.0.0 (2026-09-28): Initial part number CRUD
"""

from fastapi import APIRouter
from typing import List

from database import get_db
from models.catalog import PartNumber, PartCreate, PartUpdate
from services import catalog

router = APIRouter(prefix="/parts", tags=["Parts"])


@router.get("/", response_model=List[PartNumber])
async def list_parts():
    async with get_db() as db:
        return await catalog.list_parts(db)


@router.get("/by-product/{product_code}", response_model=PartNumber)
async def get_part_by_product_code(product_code: str):
    """Lookup used by SAP-driven order generation"""
    async with get_db() as db:
        return await catalog.get_part_by_product_code(db, product_code)


@router.get("/{part_id}", response_model=PartNumber)
async def get_part(part_id: str):
    async with get_db() as db:
        return await catalog.get_part(db, part_id)


@router.post("/", response_model=PartNumber, status_code=201)
async def create_part(data: PartCreate):
    async with get_db() as db:
        return await catalog.create_part(db, data)


@router.put("/{part_id}", response_model=PartNumber)
async def update_part(part_id: str, data: PartUpdate):
    async with get_db() as db:
        return await catalog.update_part(db, part_id, data)


@router.delete("/{part_id}")
async def delete_part(part_id: str):
    async with get_db() as db:
        await catalog.delete_part(db, part_id)
    return {"success": True, "message": f"Part {part_id} deleted"}
