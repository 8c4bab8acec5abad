"""
Battery Line MES - Work Order API Endpoints
Version: 1.2.0

Changelog:
v1.2.0 (2026-10-12): Order events endpoint; admin status override via PUT
v1.1.0 (2026-10-05): /open resumes a lot by internal or SAP reference
v1.0.0 (2026-09-28): SAP-driven order generation, list/get/close
"""

from fastapi import APIRouter, Query
from typing import Optional, List

from database import get_db
from models.production import (
    OrderEvent, WorkOrder, WorkOrderGenerate, WorkOrderOpen, WorkOrderUpdate,
)
from services import ledger, work_orders

router = APIRouter(prefix="/work-orders", tags=["Work Orders"])


@router.get("/", response_model=List[WorkOrder])
async def list_work_orders(
    status: Optional[str] = Query(None, description="OPEN or CLOSED"),
    part_number_id: Optional[str] = None,
    search: Optional[str] = Query(None, description="Match internal or SAP number"),
    limit: int = Query(100, ge=1, le=1000),
):
    """List work orders, newest first, with produced counts"""
    async with get_db() as db:
        orders = await work_orders.list_orders(db, status, part_number_id, search, limit)
        return [await work_orders.with_progress(db, order) for order in orders]


@router.post("/generate", response_model=WorkOrder, status_code=201)
async def generate_work_order(data: WorkOrderGenerate):
    """Create an OPEN lot from an SAP order and product code"""
    async with get_db() as db:
        order = await work_orders.generate_auto_order(
            db, data.sap_order_number, data.product_code, data.quantity
        )
        return await work_orders.with_progress(db, order)


@router.post("/open", response_model=WorkOrder)
async def open_work_order(data: WorkOrderOpen):
    """
    Resume a lot by internal number or SAP reference.
    When nothing matches and product_code + quantity are given, a new lot is generated.
    """
    async with get_db() as db:
        return await work_orders.open_or_get(db, data)


@router.get("/by-reference/{reference}", response_model=WorkOrder)
async def get_by_reference(reference: str):
    async with get_db() as db:
        order = await work_orders.get_order_by_reference(db, reference)
        return await work_orders.with_progress(db, order)


@router.get("/{order_id}")
async def get_work_order(order_id: int):
    """Order with progress, its units and order-level print history"""
    async with get_db() as db:
        order = await work_orders.with_progress(db, await work_orders.get_order(db, order_id))
        units = await ledger.list_units(db, order_number=order.order_number)
        prints = await ledger.get_print_history(db, order.order_number)

    result = order.model_dump(mode='json')
    result["remaining"] = max(order.quantity - (order.produced or 0), 0)
    result["units"] = [unit.model_dump(mode='json') for unit in units]
    result["print_history"] = [entry.model_dump(mode='json') for entry in prints]
    return result


@router.get("/{order_id}/events", response_model=List[OrderEvent])
async def get_work_order_events(order_id: int):
    async with get_db() as db:
        return await work_orders.list_order_events(db, order_id)


@router.put("/{order_id}", response_model=WorkOrder)
async def update_work_order(order_id: int, data: WorkOrderUpdate):
    """Quantity edits (supervisor/admin) and forced status changes (admin)"""
    async with get_db() as db:
        return await work_orders.update_order(db, order_id, data)


@router.post("/{order_id}/close")
async def close_work_order(order_id: int):
    """Close the lot if its target is met; a closed lot answers 409"""
    async with get_db() as db:
        order = await work_orders.get_order(db, order_id)
        closed = await work_orders.close_if_complete(db, order.order_number)
        order = await work_orders.with_progress(db, await work_orders.get_order(db, order_id))
    return {"closed": closed, "order": order.model_dump(mode='json')}


@router.delete("/{order_id}")
async def delete_work_order(order_id: int, user_id: str = Query(...)):
    async with get_db() as db:
        await work_orders.delete_order(db, order_id, user_id)
    return {"success": True, "message": f"Work order {order_id} deleted"}
