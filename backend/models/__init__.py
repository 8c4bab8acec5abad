"""
Battery Line MES - Database Models
Version: 1.2.1

Changelog:
v1.2.1 (2026-10-19): product_code unique per part; serial_history indexed by timestamp
v1.2.0 (2026-10-12): order_events table for forced/automatic status transitions;
                      append-only triggers on serial_history and print_logs
v1.1.0 (2026-10-05): print_logs keyed by reference (serial or order number)
v1.0.0 (2026-09-28): Initial schema: users, operations, process routes,
                      part numbers, work orders, serials, serial history
"""

from .catalog import (
    Operation, OperationCreate, OperationUpdate,
    RouteStep, ProcessRoute, RouteCreate, RouteUpdate,
    PartNumber, PartCreate, PartUpdate, SerialGenType,
)
from .production import (
    WorkOrder, WorkOrderStatus, WorkOrderGenerate, WorkOrderOpen, WorkOrderUpdate,
    OrderEvent, HistoryEntry, PrintEntry, SerialUnit,
    ScanContext, ScanRequest, UnitScan, TrayScan, LotCompletion, ScanResult,
    LockResult, HourlyBucket, ProductionStats,
)
from .user import User, UserCreate, UserUpdate, UserRole

import logging

logger = logging.getLogger(__name__)

# Child tables first so a reset can drop in order
TABLES = [
    "print_logs",
    "serial_history",
    "serials",
    "order_events",
    "work_orders",
    "part_numbers",
    "process_route_steps",
    "process_routes",
    "operations",
    "users",
]


async def init_db():
    """Initialize SQLite database with the MES schema"""
    from database import get_db, get_db_path
    logger.info(f"Initializing database: {get_db_path()}")

    async with get_db() as db:
        # ================================================================
        # USERS (operator identity, supplied by the auth collaborator)
        # ================================================================
        await db.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                username TEXT UNIQUE NOT NULL,
                name TEXT NOT NULL,
                role TEXT NOT NULL DEFAULT 'OPERATOR',
                password TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # ================================================================
        # OPERATIONS (stations; active_operator_id is the lock)
        # ================================================================
        await db.execute("""
            CREATE TABLE IF NOT EXISTS operations (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                order_index INTEGER NOT NULL DEFAULT 0,
                is_initial BOOLEAN DEFAULT 0,
                is_final BOOLEAN DEFAULT 0,
                active_operator_id TEXT,
                locked_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # ================================================================
        # PROCESS ROUTES + STEPS
        # ================================================================
        await db.execute("""
            CREATE TABLE IF NOT EXISTS process_routes (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT DEFAULT '',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS process_route_steps (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                process_route_id TEXT NOT NULL
                    REFERENCES process_routes(id) ON DELETE CASCADE,
                operation_id TEXT NOT NULL REFERENCES operations(id),
                step_order INTEGER NOT NULL
            )
        """)

        # ================================================================
        # PART NUMBERS
        # ================================================================
        await db.execute("""
            CREATE TABLE IF NOT EXISTS part_numbers (
                id TEXT PRIMARY KEY,
                part_number TEXT NOT NULL,
                revision TEXT DEFAULT '',
                description TEXT DEFAULT '',
                product_code TEXT NOT NULL,
                serial_mask TEXT DEFAULT '',
                serial_gen_type TEXT NOT NULL DEFAULT 'PCB_SERIAL',
                process_route_id TEXT REFERENCES process_routes(id),
                std_qty INTEGER NOT NULL DEFAULT 1
            )
        """)

        # ================================================================
        # WORK ORDERS (production lots)
        # ================================================================
        await db.execute("""
            CREATE TABLE IF NOT EXISTS work_orders (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                order_number TEXT UNIQUE NOT NULL,
                sap_order_number TEXT,
                part_number_id TEXT NOT NULL REFERENCES part_numbers(id),
                quantity INTEGER NOT NULL,
                status TEXT NOT NULL DEFAULT 'OPEN',
                created_at TIMESTAMP NOT NULL,
                closed_at TIMESTAMP,
                updated_at TIMESTAMP
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS order_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                order_id INTEGER NOT NULL REFERENCES work_orders(id) ON DELETE CASCADE,
                from_status TEXT NOT NULL,
                to_status TEXT NOT NULL,
                forced BOOLEAN NOT NULL DEFAULT 0,
                user_id TEXT,
                reason TEXT,
                timestamp TIMESTAMP NOT NULL
            )
        """)

        # ================================================================
        # SERIALS (order_number is a weak reference; history outlives it)
        # ================================================================
        await db.execute("""
            CREATE TABLE IF NOT EXISTS serials (
                serial_number TEXT PRIMARY KEY,
                order_number TEXT,
                part_number_id TEXT NOT NULL,
                current_operation_id TEXT,
                is_complete BOOLEAN DEFAULT 0,
                tray_id TEXT,
                created_at TIMESTAMP NOT NULL
            )
        """)

        # ================================================================
        # TRACEABILITY LEDGER (append-only)
        # ================================================================
        await db.execute("""
            CREATE TABLE IF NOT EXISTS serial_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                serial_number TEXT NOT NULL REFERENCES serials(serial_number),
                operation_id TEXT NOT NULL,
                operator_id TEXT NOT NULL,
                timestamp TIMESTAMP NOT NULL
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS print_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                reference TEXT NOT NULL,
                label_type TEXT NOT NULL,
                status TEXT NOT NULL,
                message TEXT,
                operator_id TEXT,
                timestamp TIMESTAMP NOT NULL
            )
        """)
        for table in ("serial_history", "print_logs"):
            for action in ("UPDATE", "DELETE"):
                await db.execute(f"""
                    CREATE TRIGGER IF NOT EXISTS {table}_no_{action.lower()}
                    BEFORE {action} ON {table}
                    BEGIN
                        SELECT RAISE(ABORT, '{table} is append-only');
                    END
                """)

        # ================================================================
        # INDEXES
        # ================================================================
        await db.execute("CREATE INDEX IF NOT EXISTS idx_steps_route ON process_route_steps(process_route_id, step_order)")
        await db.execute("DROP INDEX IF EXISTS idx_part_code")
        await db.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_part_product_code ON part_numbers(product_code)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_wo_sap ON work_orders(sap_order_number)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_wo_status ON work_orders(status)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_oe_order ON order_events(order_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_serial_order ON serials(order_number)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_serial_tray ON serials(tray_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_hist_serial ON serial_history(serial_number, timestamp)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_hist_op ON serial_history(operation_id, timestamp)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_hist_ts ON serial_history(timestamp)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_print_ref ON print_logs(reference)")

    logger.info("Database initialized successfully (MES schema v1.2.0)")


async def reset_db():
    """Drop every MES table and recreate the empty schema"""
    from database import get_db

    async with get_db() as db:
        await db.execute("PRAGMA foreign_keys=OFF")
        for table in TABLES:
            await db.execute(f"DROP TABLE IF EXISTS {table}")
    logger.warning("Database reset: all MES tables dropped")
    await init_db()


__all__ = [
    'Operation', 'OperationCreate', 'OperationUpdate',
    'RouteStep', 'ProcessRoute', 'RouteCreate', 'RouteUpdate',
    'PartNumber', 'PartCreate', 'PartUpdate', 'SerialGenType',
    'WorkOrder', 'WorkOrderStatus', 'WorkOrderGenerate', 'WorkOrderOpen',
    'WorkOrderUpdate', 'OrderEvent', 'HistoryEntry', 'PrintEntry', 'SerialUnit',
    'ScanContext', 'ScanRequest', 'UnitScan', 'TrayScan', 'LotCompletion',
    'ScanResult', 'LockResult', 'HourlyBucket', 'ProductionStats',
    'User', 'UserCreate', 'UserUpdate', 'UserRole',
    'init_db', 'reset_db',
]
