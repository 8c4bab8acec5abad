"""
Battery Line MES - Process Route API
Version: 1.0.0

Changelog:
v1.0.0 (2026-09-28): Initial route CRUD
"""

from fastapi import APIRouter
from typing import List

from database import get_db
from models.catalog import ProcessRoute, RouteCreate, RouteUpdate
from services import catalog

router = APIRouter(prefix="/routes", tags=["Routes"])


@router.get("/", response_model=List[ProcessRoute])
async def list_routes():
    """All routes with their ordered steps"""
    async with get_db() as db:
        return await catalog.list_routes(db)


@router.get("/{route_id}", response_model=ProcessRoute)
async def get_route(route_id: str):
    async with get_db() as db:
        return await catalog.get_route(db, route_id)


@router.post("/", response_model=ProcessRoute, status_code=201)
async def create_route(data: RouteCreate):
    async with get_db() as db:
        return await catalog.create_route(db, data)


@router.put("/{route_id}", response_model=ProcessRoute)
async def update_route(route_id: str, data: RouteUpdate):
    async with get_db() as db:
        return await catalog.update_route(db, route_id, data)


@router.delete("/{route_id}")
async def delete_route(route_id: str):
    async with get_db() as db:
        await catalog.delete_route(db, route_id)
    return {"success": True, "message": f"Route {route_id} deleted"}
