"""
Battery Line MES - Database Seed Data
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-12): Sample LOT_BASED and ACCESSORIES parts
v1.0.0 (2026-09-28): Initial seed data: admin user, default stations and
                      route, one PCB part
"""

import logging

log = logging.getLogger(__name__)


# =============================================================================
# USERS (3 records)
# =============================================================================

SEED_USERS = [
    {"id": "u_admin", "username": "admin", "name": "Administrador", "role": "ADMIN"},
    {"id": "u_super", "username": "supervisor", "name": "Supervisor de Linea", "role": "SUPERVISOR"},
    {"id": "u_op1", "username": "operador1", "name": "Operador 1", "role": "OPERATOR"},
]


# =============================================================================
# OPERATIONS (4 records)
# op_10 opens units, op_40 completes them and triggers packing labels
# =============================================================================

SEED_OPERATIONS = [
    {"id": "op_10", "name": "ESTACION INICIAL", "order_index": 10, "is_initial": True, "is_final": False},
    {"id": "op_20", "name": "ENSAMBLE", "order_index": 20, "is_initial": False, "is_final": False},
    {"id": "op_30", "name": "PRUEBA FUNCIONAL", "order_index": 30, "is_initial": False, "is_final": False},
    {"id": "op_40", "name": "EMPAQUE FINAL", "order_index": 40, "is_initial": False, "is_final": True},
]


# =============================================================================
# PROCESS ROUTES (1 record)
# =============================================================================

SEED_ROUTES = [
    {"id": "rt_default", "name": "Ruta Estandar", "description": "Flujo completo de ensamble",
     "operation_ids": ["op_10", "op_20", "op_30", "op_40"]},
]


# =============================================================================
# PART NUMBERS (3 records, one per serial_gen_type)
# =============================================================================

SEED_PARTS = [
    {"id": "pn_bms", "part_number": "BMS-48V-100", "revision": "A",
     "description": "Tarjeta BMS 48V", "product_code": "SKU-BMS48",
     "serial_mask": "31########", "serial_gen_type": "PCB_SERIAL",
     "process_route_id": "rt_default", "std_qty": 10},
    {"id": "pn_cells", "part_number": "CELL-18650-PK", "revision": "B",
     "description": "Paquete de celdas 18650", "product_code": "SKU-CELL",
     "serial_mask": "", "serial_gen_type": "LOT_BASED",
     "process_route_id": "rt_default", "std_qty": 20},
    {"id": "pn_harness", "part_number": "ACC-HARNESS-01", "revision": "A",
     "description": "Kit de arnes y tornilleria", "product_code": "SKU-ACC",
     "serial_mask": "", "serial_gen_type": "ACCESSORIES",
     "process_route_id": "rt_default", "std_qty": 50},
]


async def seed_if_empty(db):
    """Populate the reference tables if they are empty.

    Inserts in FK-dependency order:
        users -> operations -> process_routes -> process_route_steps -> part_numbers
    """

    async def _count(table: str) -> int:
        row = await db.execute(f"SELECT COUNT(*) FROM {table}")
        result = await row.fetchone()
        return result[0] if result else 0

    # ------------------------------------------------------------------
    # 1. USERS
    # ------------------------------------------------------------------
    if await _count("users") == 0:
        log.info("Seeding users (%d records)...", len(SEED_USERS))
        for u in SEED_USERS:
            await db.execute(
                "INSERT INTO users (id, username, name, role) VALUES (?, ?, ?, ?)",
                (u["id"], u["username"], u["name"], u["role"]),
            )

    # ------------------------------------------------------------------
    # 2. OPERATIONS
    # ------------------------------------------------------------------
    if await _count("operations") == 0:
        log.info("Seeding operations (%d records)...", len(SEED_OPERATIONS))
        for op in SEED_OPERATIONS:
            await db.execute(
                """INSERT INTO operations (id, name, order_index, is_initial, is_final)
                   VALUES (?, ?, ?, ?, ?)""",
                (op["id"], op["name"], op["order_index"], op["is_initial"], op["is_final"]),
            )

    # ------------------------------------------------------------------
    # 3. PROCESS ROUTES + STEPS
    # ------------------------------------------------------------------
    if await _count("process_routes") == 0:
        log.info("Seeding process_routes (%d records)...", len(SEED_ROUTES))
        for rt in SEED_ROUTES:
            await db.execute(
                "INSERT INTO process_routes (id, name, description) VALUES (?, ?, ?)",
                (rt["id"], rt["name"], rt["description"]),
            )
            for index, op_id in enumerate(rt["operation_ids"], start=1):
                await db.execute(
                    """INSERT INTO process_route_steps (process_route_id, operation_id, step_order)
                       VALUES (?, ?, ?)""",
                    (rt["id"], op_id, index * 10),
                )

    # ------------------------------------------------------------------
    # 4. PART NUMBERS
    # ------------------------------------------------------------------
    if await _count("part_numbers") == 0:
        log.info("Seeding part_numbers (%d records)...", len(SEED_PARTS))
        for p in SEED_PARTS:
            await db.execute(
                """INSERT INTO part_numbers
                   (id, part_number, revision, description, product_code, serial_mask,
                    serial_gen_type, process_route_id, std_qty)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (p["id"], p["part_number"], p["revision"], p["description"],
                 p["product_code"], p["serial_mask"], p["serial_gen_type"],
                 p["process_route_id"], p["std_qty"]),
            )

    log.info("Database seeding complete (v1.1.0).")
