"""
Traceability ledger tests: append-only history, unit queries, dashboard stats
"""

from datetime import date, timedelta

import pytest

from database import execute_insert, get_db
from errors import MesError
from models.production import LotCompletion, TrayScan, UnitScan
from services import ledger, serial_engine


async def _pcb_unit(db, order, serial, stations):
    scan = dict(order_number=order.order_number, operator_id="u_op1", serial_number=serial)
    await serial_engine.create_unit(db, UnitScan(operation_id=stations[0], **scan))
    for op_id in stations[1:]:
        await serial_engine.advance_unit(db, UnitScan(operation_id=op_id, **scan))


async def test_history_is_append_only(db, operator_stations, make_order):
    order = await make_order("SKU-BMS48", 5)
    await _pcb_unit(db, order, "3100000400", ["op_10"])

    with pytest.raises(MesError):
        async with get_db() as conn:
            await conn.execute("UPDATE serial_history SET operator_id = 'u_admin'")
    with pytest.raises(MesError):
        async with get_db() as conn:
            await conn.execute("DELETE FROM serial_history")
    with pytest.raises(MesError):
        async with get_db() as conn:
            await conn.execute("DELETE FROM print_logs")

    unit = await ledger.get_unit(db, "3100000400")
    assert len(unit.history) == 1
    assert unit.history[0].operator_id == "u_op1"
    assert unit.history[0].operation_name == "ESTACION INICIAL"
    assert unit.history[0].operator_name == "Operador 1"


async def test_history_is_ordered(db, operator_stations, make_order):
    order = await make_order("SKU-BMS48", 5)
    await _pcb_unit(db, order, "3100000410", ["op_10", "op_20", "op_30", "op_40"])

    unit = await ledger.get_unit(db, "3100000410")
    assert [h.operation_id for h in unit.history] == ["op_10", "op_20", "op_30", "op_40"]
    timestamps = [h.timestamp for h in unit.history]
    assert timestamps == sorted(timestamps)
    assert unit.is_complete
    assert [p.label_type for p in unit.print_history] == ["NAMEPLATE", "NAMEPLATE"]


async def test_unit_queries(db, operator_stations, make_order):
    order = await make_order("SKU-CELL", 40)
    await serial_engine.generate_batch(db, TrayScan(
        order_number=order.order_number, operation_id="op_10",
        operator_id="u_op1", tray_id="TRAY10", quantity=3))
    await serial_engine.generate_batch(db, TrayScan(
        order_number=order.order_number, operation_id="op_10",
        operator_id="u_op1", tray_id="TRAY11", quantity=2))
    await serial_engine.advance_batch(db, TrayScan(
        order_number=order.order_number, operation_id="op_40",
        operator_id="u_op1", tray_id="TRAY11"))

    assert len(await ledger.list_units(db, order_number=order.order_number)) == 5
    assert len(await ledger.list_units(db, tray_id="TRAY10")) == 3
    assert len(await ledger.list_units(db, order_number=order.order_number, incomplete_only=True)) == 3
    assert len(await ledger.list_units(db, limit=2)) == 2

    timeline = await ledger.order_timeline(db, order.order_number)
    assert len(timeline) == 7

    box = await ledger.get_print_history(db, order.order_number)
    assert [p.label_type for p in box] == ["BOX_LABEL"]


async def test_get_unknown_unit(db):
    with pytest.raises(MesError) as exc:
        await ledger.get_unit(db, "NOPE")
    assert exc.value.status_code == 404


async def test_production_stats_for_route(db, operator_stations, make_order):
    order = await make_order("SKU-BMS48", 10)
    await _pcb_unit(db, order, "3100000500", ["op_10", "op_20", "op_40"])
    await _pcb_unit(db, order, "3100000501", ["op_10", "op_40"])
    await _pcb_unit(db, order, "3100000502", ["op_10", "op_20"])

    stats = await ledger.production_stats(db, route_id="rt_default")

    assert stats.target_operation_id == "op_40"
    assert stats.target_operation_name == "EMPAQUE FINAL"
    assert stats.produced_count == 2
    assert stats.wip_count == 1
    hours = [bucket.hour for bucket in stats.hourly]
    for hour in range(6, 23):
        assert f"{hour}:00" in hours
    assert sum(bucket.count for bucket in stats.hourly) == 2


async def test_production_stats_explicit_operation_and_window(db, operator_stations, make_order):
    order = await make_order("SKU-BMS48", 10)
    await _pcb_unit(db, order, "3100000600", ["op_10", "op_20"])

    at_op20 = await ledger.production_stats(db, operation_id="op_20")
    assert at_op20.produced_count == 1
    assert at_op20.target_operation_name == "ENSAMBLE"

    yesterday = date.today() - timedelta(days=1)
    past = await ledger.production_stats(db, operation_id="op_20", start=yesterday, end=yesterday)
    assert past.produced_count == 0


async def test_production_stats_global_view(db, operator_stations, make_order):
    order = await make_order("SKU-ACC", 4)
    await serial_engine.complete_lot(db, LotCompletion(
        order_number=order.order_number, operation_id="op_40", operator_id="u_op1"))

    stats = await ledger.production_stats(db)

    assert stats.target_operation_id is None
    assert stats.target_operation_name == "Global"
    assert stats.produced_count == 4
    assert stats.wip_count == 0
    assert stats.avg_cycle_time_min == 0


async def _recorded_unit(db, serial, is_complete, passes):
    """Unit with history at fixed timestamps: passes = [(operation_id, timestamp)]"""
    await execute_insert(db, """
        INSERT INTO serials (serial_number, order_number, part_number_id,
                             current_operation_id, is_complete, created_at)
        VALUES (?, NULL, 'pn_bms', ?, ?, ?)
    """, (serial, passes[-1][0], is_complete, passes[0][1]))
    for op_id, timestamp in passes:
        await ledger.append_history(db, serial, op_id, "u_op1", timestamp)


async def test_production_stats_fixed_window(db):
    await _recorded_unit(db, "SN-DAY1", True, [
        ("op_10", "2026-03-02T08:00:00.000000"),
        ("op_40", "2026-03-02T09:30:00.000000"),
    ])
    await _recorded_unit(db, "SN-WIP", False, [
        ("op_10", "2026-03-02T08:15:00.000000"),
        ("op_20", "2026-03-03T10:00:00.000000"),
    ])
    await _recorded_unit(db, "SN-DAY2", True, [
        ("op_10", "2026-03-03T07:00:00.000000"),
        ("op_40", "2026-03-03T11:00:00.000000"),
    ])

    day = date(2026, 3, 2)
    stats = await ledger.production_stats(db, route_id="rt_default", start=day, end=day)

    assert stats.produced_count == 1
    assert stats.wip_count == 1
    assert stats.avg_cycle_time_min == 90
    buckets = {bucket.hour: bucket.count for bucket in stats.hourly}
    assert buckets["9:00"] == 1
    assert sum(buckets.values()) == 1

    both = await ledger.production_stats(db, route_id="rt_default", start=day, end=date(2026, 3, 3))
    assert both.produced_count == 2
    assert both.avg_cycle_time_min == 165

    entered = await ledger.production_stats(db, operation_id="op_10", start=day, end=day)
    assert entered.produced_count == 2
    assert entered.avg_cycle_time_min == 0
