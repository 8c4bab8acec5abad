"""
Battery Line MES - Traceability Ledger
Version: 1.2.1

Changelog:
v1.2.1 (2026-10-19): production_stats() filters the window and route in SQL
v1.2.0 (2026-10-12): production_stats() for the dashboard (produced, WIP,
                      cycle time, hour-by-hour output)
v1.1.0 (2026-10-05): Print history keyed by reference (serial or order number)
v1.0.0 (2026-09-28): Initial append-only history

serial_history and print_logs are append-only: this module only INSERTs into
them and the schema rejects UPDATE/DELETE with triggers. Unassigning a unit
from its order touches serials.order_number only, so history survives.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

from config import settings
from database import execute_all, execute_one, execute_insert
from errors import NotFoundError
from models.production import (
    HistoryEntry, HourlyBucket, PrintEntry, ProductionStats, SerialUnit,
)
from services import catalog

logger = logging.getLogger(__name__)

_HISTORY_SELECT = """
    SELECT h.id, h.serial_number, h.operation_id, o.name AS operation_name,
           h.operator_id, u.name AS operator_name, h.timestamp
    FROM serial_history h
    LEFT JOIN operations o ON h.operation_id = o.id
    LEFT JOIN users u ON h.operator_id = u.id
"""


def now_iso() -> str:
    """Wall-clock timestamp with a fixed width so text order equals time order"""
    return datetime.now().isoformat(timespec="microseconds")


# -- Writes --

async def append_history(db, serial_number: str, operation_id: str,
                         operator_id: str, timestamp: Optional[str] = None) -> int:
    return await execute_insert(db, """
        INSERT INTO serial_history (serial_number, operation_id, operator_id, timestamp)
        VALUES (?, ?, ?, ?)
    """, (serial_number, operation_id, operator_id, timestamp or now_iso()))


async def append_print(db, reference: str, label_type: str, status: str,
                       message: Optional[str] = None,
                       operator_id: Optional[str] = None) -> int:
    return await execute_insert(db, """
        INSERT INTO print_logs (reference, label_type, status, message, operator_id, timestamp)
        VALUES (?, ?, ?, ?, ?, ?)
    """, (reference, label_type, status, message, operator_id, now_iso()))


# -- Unit queries --

async def find_unit(db, serial_number: str) -> Optional[dict]:
    """Raw serials row, or None"""
    return await execute_one(db, "SELECT * FROM serials WHERE serial_number = ?", (serial_number,))


async def get_history(db, serial_number: str) -> List[HistoryEntry]:
    rows = await execute_all(
        db,
        _HISTORY_SELECT + " WHERE h.serial_number = ? ORDER BY h.timestamp ASC, h.id ASC",
        (serial_number,),
    )
    return [HistoryEntry(**row) for row in rows]


async def get_print_history(db, reference: str) -> List[PrintEntry]:
    rows = await execute_all(db, """
        SELECT id, reference, label_type, status, message, operator_id, timestamp
        FROM print_logs WHERE reference = ?
        ORDER BY timestamp ASC, id ASC
    """, (reference,))
    return [PrintEntry(**row) for row in rows]


async def get_unit(db, serial_number: str) -> SerialUnit:
    """A unit with its full history and print history"""
    row = await find_unit(db, serial_number)
    if not row:
        raise NotFoundError("Serial", serial_number)
    return SerialUnit(
        **row,
        history=await get_history(db, serial_number),
        print_history=await get_print_history(db, serial_number),
    )


async def list_units(db, order_number: Optional[str] = None,
                     tray_id: Optional[str] = None,
                     incomplete_only: bool = False,
                     limit: Optional[int] = None) -> List[SerialUnit]:
    """Units filtered by order and/or tray, each with ordered history"""
    conditions = []
    params = []
    if order_number is not None:
        conditions.append("order_number = ?")
        params.append(order_number)
    if tray_id is not None:
        conditions.append("tray_id = ?")
        params.append(tray_id)
    if incomplete_only:
        conditions.append("is_complete = 0")
    where = (" WHERE " + " AND ".join(conditions)) if conditions else ""

    query = "SELECT * FROM serials" + where + " ORDER BY created_at ASC, serial_number ASC"
    if limit:
        query += f" LIMIT {int(limit)}"
    rows = await execute_all(db, query, params)
    if not rows:
        return []

    # One history query for the whole set
    history: Dict[str, List[HistoryEntry]] = defaultdict(list)
    placeholders = ", ".join("?" for _ in rows)
    hist_rows = await execute_all(
        db,
        _HISTORY_SELECT + f" WHERE h.serial_number IN ({placeholders})"
                          " ORDER BY h.timestamp ASC, h.id ASC",
        [row["serial_number"] for row in rows],
    )
    for h in hist_rows:
        history[h["serial_number"]].append(HistoryEntry(**h))

    return [SerialUnit(**row, history=history[row["serial_number"]]) for row in rows]


async def order_timeline(db, order_number: str) -> List[dict]:
    """Every history entry of the order's units, oldest first"""
    return await execute_all(
        db,
        _HISTORY_SELECT + """
            JOIN serials s ON s.serial_number = h.serial_number
            WHERE s.order_number = ?
            ORDER BY h.timestamp ASC, h.id ASC
        """,
        (order_number,),
    )


# -- Dashboard --

def _parse(ts: str) -> datetime:
    return datetime.fromisoformat(str(ts))


async def production_stats(db, route_id: Optional[str] = None,
                           operation_id: Optional[str] = None,
                           start: Optional[date] = None,
                           end: Optional[date] = None) -> ProductionStats:
    """
    Output, WIP and cycle time for a route/operation over a date window.

    Target operation: the explicit operation_id, else the route's final step,
    else (global view) any history entry of a completed unit. Cycle time per
    unit is first history entry -> last target entry; values outside
    (0, CYCLE_TIME_MAX_HOURS) are discarded as implausible.

    The window and route filters run in SQL; only one row per produced unit
    comes back.
    """
    start = start or date.today()
    end = end or start
    window = (
        datetime.combine(start, time.min).isoformat(timespec="microseconds"),
        datetime.combine(end, time.max).isoformat(timespec="microseconds"),
    )

    target_op_id = operation_id
    if not target_op_id and route_id:
        step = catalog.final_step(await catalog.get_route(db, route_id))
        target_op_id = step.operation_id if step else None

    route_join = "JOIN part_numbers p ON s.part_number_id = p.id" if route_id else ""
    route_filter = "AND p.process_route_id = ?" if route_id else ""
    route_params = [route_id] if route_id else []

    wip = await execute_one(db, f"""
        SELECT COUNT(*) AS n FROM serials s {route_join}
        WHERE s.is_complete = 0 {route_filter}
    """, route_params)

    if target_op_id:
        target_filter, target_params = "h.operation_id = ?", [target_op_id]
    else:
        target_filter, target_params = "s.is_complete = 1", []

    hits = await execute_all(db, f"""
        SELECT h.serial_number,
               MAX(h.timestamp) AS last_hit,
               (SELECT MIN(timestamp) FROM serial_history
                WHERE serial_number = h.serial_number) AS first_seen,
               (SELECT COUNT(*) FROM serial_history
                WHERE serial_number = h.serial_number) AS entries
        FROM serial_history h
        JOIN serials s ON s.serial_number = h.serial_number
        {route_join}
        WHERE h.timestamp BETWEEN ? AND ?
          AND {target_filter}
          {route_filter}
        GROUP BY h.serial_number
    """, [*window, *target_params, *route_params])

    hourly: Dict[int, int] = {
        hour: 0 for hour in range(settings.SHIFT_START_HOUR, settings.SHIFT_END_HOUR + 1)
    }
    max_cycle = timedelta(hours=settings.CYCLE_TIME_MAX_HOURS)
    cycle_total = timedelta()
    cycle_count = 0

    for row in hits:
        last = _parse(row["last_hit"])
        hourly[last.hour] = hourly.get(last.hour, 0) + 1

        if row["entries"] > 1:
            cycle = last - _parse(row["first_seen"])
            if timedelta() < cycle < max_cycle:
                cycle_total += cycle
                cycle_count += 1

    avg_min = round(cycle_total.total_seconds() / cycle_count / 60) if cycle_count else 0

    if target_op_id:
        target_name = (await catalog.get_operation(db, target_op_id)).name
    else:
        target_name = "Global"

    return ProductionStats(
        target_operation_id=target_op_id,
        target_operation_name=target_name,
        produced_count=len(hits),
        wip_count=wip["n"],
        avg_cycle_time_min=avg_min,
        hourly=[HourlyBucket(hour=f"{h}:00", count=c) for h, c in sorted(hourly.items())],
    )
