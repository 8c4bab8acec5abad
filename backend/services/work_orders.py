"""
Battery Line MES - Work Order Manager
Version: 1.2.1

Changelog:
v1.2.1 (2026-10-19): Close and status broadcasts are best effort
v1.2.0 (2026-10-12): Status transitions written to order_events; forced
                      (admin) transitions flagged
v1.1.0 (2026-10-05): open_or_get() resumes a lot by internal or SAP reference
v1.0.0 (2026-09-28): Initial work order service (auto-generate, close on target)

A work order closes automatically once the number of its units that reached
an is_final operation meets the target quantity. Only ADMIN may change the
status directly; those edits are logged as forced transitions.
"""

import logging
from datetime import datetime
from typing import List, Optional

from config import settings
from database import execute_all, execute_one, execute_insert, execute_update, transaction
from errors import ConflictError, NotFoundError, ValidationError
from models.production import (
    OrderEvent, SerialUnit, WorkOrder, WorkOrderOpen, WorkOrderStatus, WorkOrderUpdate,
)
from models.user import UserRole
from services import catalog, ledger, users

logger = logging.getLogger(__name__)

_ORDER_SELECT = """
    SELECT id, order_number, sap_order_number, part_number_id, quantity,
           status, created_at, closed_at
    FROM work_orders
"""


# -- Helper: Generate internal order number --

async def _generate_order_number(db) -> str:
    year = datetime.now().year
    prefix = f"{settings.WORK_ORDER_PREFIX}-{year}-"
    row = await execute_one(
        db,
        "SELECT MAX(CAST(substr(order_number, ?) AS INTEGER)) AS seq "
        "FROM work_orders WHERE order_number LIKE ?",
        (len(prefix) + 1, f"{prefix}%"),
    )
    seq = (row["seq"] or 0) + 1
    return f"{prefix}{seq:05d}"


# -- Lookups --

async def get_order(db, order_id: int) -> WorkOrder:
    row = await execute_one(db, _ORDER_SELECT + " WHERE id = ?", (order_id,))
    if not row:
        raise NotFoundError("Work order", order_id)
    return WorkOrder(**row)


async def get_order_by_number(db, order_number: str) -> WorkOrder:
    row = await execute_one(db, _ORDER_SELECT + " WHERE order_number = ?", (order_number,))
    if not row:
        raise NotFoundError("Work order", order_number)
    return WorkOrder(**row)


async def get_order_by_reference(db, reference: str) -> WorkOrder:
    """Internal order number first, then the most recent order with that SAP reference"""
    row = await execute_one(db, _ORDER_SELECT + """
        WHERE order_number = ? OR sap_order_number = ?
        ORDER BY (order_number = ?) DESC, created_at DESC, id DESC
        LIMIT 1
    """, (reference, reference, reference))
    if not row:
        raise NotFoundError("Work order", reference)
    return WorkOrder(**row)


async def list_orders(db, status: Optional[str] = None,
                      part_number_id: Optional[str] = None,
                      search: Optional[str] = None,
                      limit: int = 100) -> List[WorkOrder]:
    conditions = []
    params = []
    if status:
        conditions.append("status = ?")
        params.append(status.upper())
    if part_number_id:
        conditions.append("part_number_id = ?")
        params.append(part_number_id)
    if search:
        conditions.append("(order_number LIKE ? OR sap_order_number LIKE ?)")
        params.extend([f"%{search}%", f"%{search}%"])

    query = _ORDER_SELECT
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    query += " ORDER BY created_at DESC, id DESC LIMIT ?"
    params.append(limit)

    rows = await execute_all(db, query, params)
    return [WorkOrder(**row) for row in rows]


async def produced_count(db, order_number: str) -> int:
    """Units of the order with a history entry at an is_final operation"""
    row = await execute_one(db, """
        SELECT COUNT(DISTINCT s.serial_number) AS produced
        FROM serials s
        JOIN serial_history h ON h.serial_number = s.serial_number
        JOIN operations o ON h.operation_id = o.id
        WHERE s.order_number = ? AND o.is_final = 1
    """, (order_number,))
    return row["produced"] or 0


async def with_progress(db, order: WorkOrder) -> WorkOrder:
    return order.model_copy(update={"produced": await produced_count(db, order.order_number)})


# -- Creation --

async def generate_auto_order(db, sap_order_number: Optional[str],
                              product_code: str, quantity: int) -> WorkOrder:
    """Create an OPEN lot for the part identified by product code"""
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    part = await catalog.get_part_by_product_code(db, product_code)

    async with transaction(db):
        order_number = await _generate_order_number(db)
        order_id = await execute_insert(db, """
            INSERT INTO work_orders
                (order_number, sap_order_number, part_number_id, quantity, status, created_at)
            VALUES (?, ?, ?, ?, 'OPEN', ?)
        """, (order_number, sap_order_number, part.id, quantity, ledger.now_iso()))

    logger.info(
        f"Work order {order_number} opened: {quantity} x {part.product_code}"
        + (f" (SAP {sap_order_number})" if sap_order_number else "")
    )
    return await get_order(db, order_id)


async def open_or_get(db, data: WorkOrderOpen) -> WorkOrder:
    """Resume a lot across shifts, or auto-generate one when product and quantity are given"""
    try:
        order = await get_order_by_reference(db, data.reference)
    except NotFoundError:
        if not (data.product_code and data.quantity):
            raise
        order = await generate_auto_order(db, data.reference, data.product_code, data.quantity)
    return await with_progress(db, order)


# -- Status transitions --

async def _record_event(db, order_id: int, from_status: str, to_status: str,
                        forced: bool, user_id: Optional[str], reason: Optional[str]):
    await execute_insert(db, """
        INSERT INTO order_events (order_id, from_status, to_status, forced, user_id, reason, timestamp)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    """, (order_id, from_status, to_status, forced, user_id, reason, ledger.now_iso()))


async def try_close(db, order: WorkOrder) -> bool:
    """OPEN -> CLOSED when produced >= quantity; False if not met or already closed"""
    produced = await produced_count(db, order.order_number)
    if produced < order.quantity:
        return False

    async with transaction(db):
        changed = await execute_update(db, """
            UPDATE work_orders SET status = 'CLOSED', closed_at = ?, updated_at = ?
            WHERE id = ? AND status = 'OPEN'
        """, (ledger.now_iso(), ledger.now_iso(), order.id))
        if changed:
            await _record_event(db, order.id, "OPEN", "CLOSED", False, None,
                                f"Produced {produced}/{order.quantity}")
    if not changed:
        return False

    logger.info(f"Work order {order.order_number} finished: {produced}/{order.quantity} produced")
    from api import ws
    try:
        await ws.broadcast_order_closed(order.order_number, {
            "sap_order_number": order.sap_order_number,
            "quantity": order.quantity,
            "produced": produced,
        })
    except Exception as e:
        logger.warning(f"Work order {order.order_number}: close notice not delivered: {e}")
    return True


async def close_if_complete(db, order_number: str) -> bool:
    """Completion check; a CLOSED order cannot be closed again"""
    order = await get_order_by_number(db, order_number)
    if order.status == WorkOrderStatus.CLOSED:
        raise ConflictError(f"Work order {order_number} is already closed")
    return await try_close(db, order)


async def update_order(db, order_id: int, data: WorkOrderUpdate) -> WorkOrder:
    """Supervisor quantity edits; admin-only forced status changes"""
    order = await get_order(db, order_id)
    actor = await users.get_user(db, data.user_id)
    users.require_role(actor, (UserRole.SUPERVISOR, UserRole.ADMIN), "Editing a work order")

    status_change = data.status is not None and data.status != order.status
    if status_change:
        users.require_role(actor, (UserRole.ADMIN,), "Forcing a work order status")
    if data.quantity is None and not status_change:
        raise ValidationError("No fields to update")

    now = ledger.now_iso()
    async with transaction(db):
        if data.quantity is not None:
            await execute_update(
                db, "UPDATE work_orders SET quantity = ?, updated_at = ? WHERE id = ?",
                (data.quantity, now, order_id),
            )
        if status_change:
            closed_at = now if data.status == WorkOrderStatus.CLOSED else None
            await execute_update(
                db, "UPDATE work_orders SET status = ?, closed_at = ?, updated_at = ? WHERE id = ?",
                (data.status.value, closed_at, now, order_id),
            )
            await _record_event(db, order_id, order.status.value, data.status.value,
                                True, actor.id, data.reason)

    if status_change:
        logger.warning(
            f"Work order {order.order_number}: forced {order.status.value} -> "
            f"{data.status.value} by {actor.username}"
        )
        from api import ws
        try:
            await ws.broadcast_alert(
                f"Order {order.order_number} set to {data.status.value} by {actor.name}", "warning"
            )
        except Exception as e:
            logger.warning(f"Work order {order.order_number}: status alert not delivered: {e}")
    if data.quantity is not None:
        logger.info(f"Work order {order.order_number}: quantity {order.quantity} -> {data.quantity}")
    return await with_progress(db, await get_order(db, order_id))


async def list_order_events(db, order_id: int) -> List[OrderEvent]:
    await get_order(db, order_id)
    rows = await execute_all(
        db, "SELECT * FROM order_events WHERE order_id = ? ORDER BY timestamp ASC, id ASC",
        (order_id,),
    )
    return [OrderEvent(**row) for row in rows]


async def delete_order(db, order_id: int, actor_id: str):
    order = await get_order(db, order_id)
    actor = await users.get_user(db, actor_id)
    users.require_role(actor, (UserRole.SUPERVISOR, UserRole.ADMIN), "Deleting a work order")
    assigned = await execute_one(
        db, "SELECT COUNT(*) AS n FROM serials WHERE order_number = ?", (order.order_number,)
    )
    if assigned["n"]:
        raise ConflictError(
            f"Work order {order.order_number} still has {assigned['n']} unit(s); unassign them first"
        )
    await execute_update(db, "DELETE FROM work_orders WHERE id = ?", (order_id,))
    logger.info(f"Work order {order.order_number} deleted by {actor.username}")


# -- Unassign --

async def unassign_serial(db, serial_number: str) -> SerialUnit:
    """Detach a unit from its order; its history stays in the ledger"""
    unit = await ledger.find_unit(db, serial_number)
    if not unit:
        raise NotFoundError("Serial", serial_number)
    if not unit["order_number"]:
        raise ConflictError(f"Serial {serial_number} is not assigned to an order")

    await execute_update(
        db, "UPDATE serials SET order_number = NULL WHERE serial_number = ?", (serial_number,)
    )
    logger.info(f"Serial {serial_number} unassigned from {unit['order_number']}")
    return await ledger.get_unit(db, serial_number)
