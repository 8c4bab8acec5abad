"""
Battery Line MES - Part / Route Catalog
Version: 1.2.1

Changelog:
v1.2.1 (2026-10-19): Unique product codes; a route keeps an initial station
v1.2.0 (2026-10-12): final_step() for dashboard target resolution
v1.1.0 (2026-10-08): Routes returned pre-joined with operation names and flags;
                      step orders renumbered 10, 20, 30... on save
v1.0.0 (2026-09-28): Initial catalog service

Read-mostly reference data: operations (stations), process routes and part
numbers. The only ordering rule is route steps by step_order ascending; ties
fall back to operation order_index, then operation id.
"""

import re
import logging
from typing import List, Optional
from uuid import uuid4

from database import execute_all, execute_one, execute_insert, execute_update, transaction
from errors import ConflictError, NotFoundError, ValidationError
from models.catalog import (
    Operation, OperationCreate, OperationUpdate,
    ProcessRoute, RouteCreate, RouteStep, RouteUpdate,
    PartNumber, PartCreate, PartUpdate,
)

logger = logging.getLogger(__name__)

STEP_ORDER_INCREMENT = 10
_MASK_CHARS = re.compile(r"^[A-Za-z0-9#\-]*$")


# -- Operations --

_OPERATION_SELECT = """
    SELECT o.id, o.name, o.order_index, o.is_initial, o.is_final,
           o.active_operator_id, u.name AS active_operator_name
    FROM operations o
    LEFT JOIN users u ON o.active_operator_id = u.id
"""


async def list_operations(db) -> List[Operation]:
    """All stations with their current lock holder"""
    rows = await execute_all(db, _OPERATION_SELECT + " ORDER BY o.order_index, o.id")
    return [Operation(**row) for row in rows]


async def get_operation(db, operation_id: str) -> Operation:
    row = await execute_one(db, _OPERATION_SELECT + " WHERE o.id = ?", (operation_id,))
    if not row:
        raise NotFoundError("Operation", operation_id)
    return Operation(**row)


async def create_operation(db, data: OperationCreate) -> Operation:
    op_id = data.id or f"op_{uuid4().hex[:8]}"
    if await execute_one(db, "SELECT id FROM operations WHERE id = ?", (op_id,)):
        raise ConflictError(f"Operation '{op_id}' already exists")
    await execute_insert(db, """
        INSERT INTO operations (id, name, order_index, is_initial, is_final)
        VALUES (?, ?, ?, ?, ?)
    """, (op_id, data.name, data.order_index, data.is_initial, data.is_final))
    logger.info(f"Operation {op_id} ({data.name}) created")
    return await get_operation(db, op_id)


async def update_operation(db, operation_id: str, data: OperationUpdate) -> Operation:
    await get_operation(db, operation_id)
    fields = data.model_dump(exclude_none=True)
    if not fields:
        raise ValidationError("No fields to update")
    if fields.get("is_initial") is False:
        await _check_initial_still_covered(db, operation_id)
    assignments = ", ".join(f"{name} = ?" for name in fields)
    await execute_update(
        db,
        f"UPDATE operations SET {assignments} WHERE id = ?",
        [*fields.values(), operation_id],
    )
    return await get_operation(db, operation_id)


async def _check_initial_still_covered(db, operation_id: str):
    """Every route using the operation must keep another initial station"""
    orphaned = await execute_all(db, """
        SELECT DISTINCT s.process_route_id AS route_id FROM process_route_steps s
        WHERE s.operation_id = ? AND NOT EXISTS (
            SELECT 1 FROM process_route_steps s2
            JOIN operations o ON s2.operation_id = o.id
            WHERE s2.process_route_id = s.process_route_id
              AND o.is_initial = 1 AND o.id != ?
        )
        ORDER BY s.process_route_id
    """, (operation_id, operation_id))
    if orphaned:
        route_ids = [row["route_id"] for row in orphaned]
        raise ConflictError(
            f"Operation {operation_id} is the only initial station of route(s) {', '.join(route_ids)}",
            {"operation_id": operation_id, "route_ids": route_ids},
        )


async def delete_operation(db, operation_id: str):
    op = await get_operation(db, operation_id)
    if op.active_operator_id:
        raise ConflictError(f"Operation {op.name} is locked by {op.active_operator_name or op.active_operator_id}")
    used = await execute_one(
        db, "SELECT COUNT(*) AS n FROM process_route_steps WHERE operation_id = ?", (operation_id,)
    )
    if used["n"]:
        raise ConflictError(f"Operation {op.name} is used by {used['n']} route step(s)")
    await execute_update(db, "DELETE FROM operations WHERE id = ?", (operation_id,))
    logger.info(f"Operation {operation_id} deleted")


# -- Process routes --

async def _route_steps(db, route_id: str) -> List[RouteStep]:
    rows = await execute_all(db, """
        SELECT s.id, s.operation_id, s.step_order,
               o.name AS operation_name, o.is_initial, o.is_final
        FROM process_route_steps s
        JOIN operations o ON s.operation_id = o.id
        WHERE s.process_route_id = ?
        ORDER BY s.step_order ASC, o.order_index ASC, o.id ASC
    """, (route_id,))
    return [RouteStep(**row) for row in rows]


async def list_routes(db) -> List[ProcessRoute]:
    rows = await execute_all(db, "SELECT id, name, description FROM process_routes ORDER BY name")
    routes = []
    for row in rows:
        routes.append(ProcessRoute(**row, steps=await _route_steps(db, row["id"])))
    return routes


async def get_route(db, route_id: str) -> ProcessRoute:
    row = await execute_one(
        db, "SELECT id, name, description FROM process_routes WHERE id = ?", (route_id,)
    )
    if not row:
        raise NotFoundError("Route", route_id)
    return ProcessRoute(**row, steps=await _route_steps(db, route_id))


async def _check_route_operations(db, operation_ids: List[str]):
    """Every operation must exist and at least one must be initial"""
    if not operation_ids:
        raise ValidationError("A route needs at least one step")
    has_initial = False
    for op_id in operation_ids:
        op = await get_operation(db, op_id)
        has_initial = has_initial or op.is_initial
    if not has_initial:
        raise ValidationError("A route needs at least one initial operation")


async def _write_steps(db, route_id: str, operation_ids: List[str]):
    await execute_update(db, "DELETE FROM process_route_steps WHERE process_route_id = ?", (route_id,))
    for index, op_id in enumerate(operation_ids, start=1):
        await execute_insert(db, """
            INSERT INTO process_route_steps (process_route_id, operation_id, step_order)
            VALUES (?, ?, ?)
        """, (route_id, op_id, index * STEP_ORDER_INCREMENT))


async def create_route(db, data: RouteCreate) -> ProcessRoute:
    route_id = data.id or f"rt_{uuid4().hex[:8]}"
    if await execute_one(db, "SELECT id FROM process_routes WHERE id = ?", (route_id,)):
        raise ConflictError(f"Route '{route_id}' already exists")
    await _check_route_operations(db, data.operation_ids)

    async with transaction(db):
        await execute_insert(
            db,
            "INSERT INTO process_routes (id, name, description) VALUES (?, ?, ?)",
            (route_id, data.name, data.description),
        )
        await _write_steps(db, route_id, data.operation_ids)

    logger.info(f"Route {route_id} ({data.name}) created with {len(data.operation_ids)} steps")
    return await get_route(db, route_id)


async def update_route(db, route_id: str, data: RouteUpdate) -> ProcessRoute:
    route = await get_route(db, route_id)
    if data.operation_ids is not None:
        await _check_route_operations(db, data.operation_ids)

    async with transaction(db):
        await execute_update(
            db,
            "UPDATE process_routes SET name = ?, description = ? WHERE id = ?",
            (data.name or route.name,
             data.description if data.description is not None else route.description,
             route_id),
        )
        if data.operation_ids is not None:
            await _write_steps(db, route_id, data.operation_ids)

    return await get_route(db, route_id)


async def delete_route(db, route_id: str):
    await get_route(db, route_id)
    used = await execute_one(
        db, "SELECT COUNT(*) AS n FROM part_numbers WHERE process_route_id = ?", (route_id,)
    )
    if used["n"]:
        raise ConflictError(f"Route {route_id} is assigned to {used['n']} part(s)")
    await execute_update(db, "DELETE FROM process_routes WHERE id = ?", (route_id,))
    logger.info(f"Route {route_id} deleted")


def final_step(route: ProcessRoute) -> Optional[RouteStep]:
    """Last step flagged is_final; falls back to the last step by order"""
    if not route.steps:
        return None
    flagged = [step for step in route.steps if step.is_final]
    return flagged[-1] if flagged else route.steps[-1]


def route_has_operation(route: ProcessRoute, operation_id: str) -> bool:
    return any(step.operation_id == operation_id for step in route.steps)


# -- Part numbers --

_PART_SELECT = """
    SELECT id, part_number, revision, description, product_code, serial_mask,
           serial_gen_type, process_route_id, std_qty
    FROM part_numbers
"""


def _part(row: dict) -> PartNumber:
    row = dict(row)
    row["revision"] = row.get("revision") or ""
    row["description"] = row.get("description") or ""
    row["serial_mask"] = row.get("serial_mask") or ""
    row["std_qty"] = row.get("std_qty") or 1
    return PartNumber(**row)


async def list_parts(db) -> List[PartNumber]:
    rows = await execute_all(db, _PART_SELECT + " ORDER BY part_number")
    return [_part(row) for row in rows]


async def get_part(db, part_id: str) -> PartNumber:
    row = await execute_one(db, _PART_SELECT + " WHERE id = ?", (part_id,))
    if not row:
        raise NotFoundError("Part", part_id)
    return _part(row)


async def get_part_by_product_code(db, product_code: str) -> PartNumber:
    row = await execute_one(db, _PART_SELECT + " WHERE product_code = ?", (product_code,))
    if not row:
        raise NotFoundError("Product", product_code)
    return _part(row)


async def _check_part_fields(db, serial_mask: Optional[str], route_id: Optional[str]):
    if serial_mask and not _MASK_CHARS.match(serial_mask):
        raise ValidationError(f"Serial mask '{serial_mask}' may only contain letters, digits, '-' and '#'")
    if route_id:
        await get_route(db, route_id)


async def _check_product_code(db, product_code: str, part_id: Optional[str] = None):
    """A product code resolves to exactly one part"""
    taken = await execute_one(
        db, "SELECT id FROM part_numbers WHERE product_code = ? AND id != ?",
        (product_code, part_id or ""),
    )
    if taken:
        raise ConflictError(
            f"Product code {product_code} is already used by part {taken['id']}",
            {"product_code": product_code, "part_id": taken["id"]},
        )


async def create_part(db, data: PartCreate) -> PartNumber:
    part_id = data.id or f"pn_{uuid4().hex[:8]}"
    if await execute_one(db, "SELECT id FROM part_numbers WHERE id = ?", (part_id,)):
        raise ConflictError(f"Part '{part_id}' already exists")
    await _check_part_fields(db, data.serial_mask, data.process_route_id)
    await _check_product_code(db, data.product_code)
    await execute_insert(db, """
        INSERT INTO part_numbers
            (id, part_number, revision, description, product_code, serial_mask,
             serial_gen_type, process_route_id, std_qty)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        part_id, data.part_number, data.revision, data.description,
        data.product_code, data.serial_mask, data.serial_gen_type.value,
        data.process_route_id, data.std_qty,
    ))
    logger.info(f"Part {data.part_number} ({data.product_code}) created as {data.serial_gen_type.value}")
    return await get_part(db, part_id)


async def update_part(db, part_id: str, data: PartUpdate) -> PartNumber:
    await get_part(db, part_id)
    fields = data.model_dump(exclude_none=True)
    if not fields:
        raise ValidationError("No fields to update")
    await _check_part_fields(db, fields.get("serial_mask"), fields.get("process_route_id"))
    if "product_code" in fields:
        await _check_product_code(db, fields["product_code"], part_id)
    if "serial_gen_type" in fields:
        fields["serial_gen_type"] = fields["serial_gen_type"].value
    assignments = ", ".join(f"{name} = ?" for name in fields)
    await execute_update(
        db,
        f"UPDATE part_numbers SET {assignments} WHERE id = ?",
        [*fields.values(), part_id],
    )
    return await get_part(db, part_id)


async def delete_part(db, part_id: str):
    await get_part(db, part_id)
    used = await execute_one(
        db, "SELECT COUNT(*) AS n FROM work_orders WHERE part_number_id = ?", (part_id,)
    )
    if used["n"]:
        raise ConflictError(f"Part {part_id} is referenced by {used['n']} work order(s)")
    await execute_update(db, "DELETE FROM part_numbers WHERE id = ?", (part_id,))
