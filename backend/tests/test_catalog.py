"""
Catalog tests: operations, route step ordering, part validation
"""

import pytest

from errors import ConflictError, NotFoundError, ValidationError
from models.catalog import (
    OperationCreate, OperationUpdate, PartCreate, PartUpdate,
    RouteCreate, RouteUpdate, SerialGenType,
)
from services import catalog, station_lock


async def test_seeded_catalog(db):
    operations = await catalog.list_operations(db)
    assert [op.id for op in operations] == ["op_10", "op_20", "op_30", "op_40"]
    assert operations[0].is_initial and operations[-1].is_final

    route = await catalog.get_route(db, "rt_default")
    assert [s.step_order for s in route.steps] == [10, 20, 30, 40]
    assert catalog.final_step(route).operation_id == "op_40"

    part = await catalog.get_part_by_product_code(db, "SKU-CELL")
    assert part.serial_gen_type == SerialGenType.LOT_BASED


async def test_route_steps_renumbered(db):
    route = await catalog.create_route(db, RouteCreate(
        name="Corta", operation_ids=["op_10", "op_30", "op_40"]))
    assert route.id.startswith("rt_")
    assert [(s.operation_id, s.step_order) for s in route.steps] == [
        ("op_10", 10), ("op_30", 20), ("op_40", 30),
    ]
    assert catalog.route_has_operation(route, "op_30")
    assert not catalog.route_has_operation(route, "op_20")

    updated = await catalog.update_route(db, route.id, RouteUpdate(operation_ids=["op_10", "op_40"]))
    assert [s.operation_id for s in updated.steps] == ["op_10", "op_40"]
    assert updated.name == "Corta"


async def test_route_needs_initial_operation(db):
    with pytest.raises(ValidationError):
        await catalog.create_route(db, RouteCreate(name="Sin inicio", operation_ids=["op_20", "op_40"]))
    with pytest.raises(NotFoundError):
        await catalog.create_route(db, RouteCreate(name="Fantasma", operation_ids=["op_10", "op_77"]))
    with pytest.raises(ValidationError):
        await catalog.update_route(db, "rt_default", RouteUpdate(operation_ids=[]))


async def test_final_step_falls_back_to_last(db):
    route = await catalog.create_route(db, RouteCreate(name="Parcial", operation_ids=["op_10", "op_20"]))
    assert catalog.final_step(route).operation_id == "op_20"


async def test_delete_route_in_use(db):
    with pytest.raises(ConflictError):
        await catalog.delete_route(db, "rt_default")


async def test_operation_crud(db):
    op = await catalog.create_operation(db, OperationCreate(name="INSPECCION", order_index=35))
    assert op.id.startswith("op_")

    renamed = await catalog.update_operation(db, op.id, OperationUpdate(name="INSPECCION VISUAL"))
    assert renamed.name == "INSPECCION VISUAL"

    with pytest.raises(ConflictError):
        await catalog.create_operation(db, OperationCreate(id=op.id, name="DUP"))

    await catalog.delete_operation(db, op.id)
    with pytest.raises(NotFoundError):
        await catalog.get_operation(db, op.id)


async def test_cannot_delete_used_or_locked_operation(db):
    with pytest.raises(ConflictError):
        await catalog.delete_operation(db, "op_20")

    op = await catalog.create_operation(db, OperationCreate(name="TEMPORAL"))
    await station_lock.enter_station(db, op.id, "u_op1")
    with pytest.raises(ConflictError):
        await catalog.delete_operation(db, op.id)


async def test_part_mask_characters(db):
    with pytest.raises(ValidationError):
        await catalog.create_part(db, PartCreate(
            part_number="BAD", product_code="SKU-BAD", serial_mask="31##?##"))

    part = await catalog.create_part(db, PartCreate(
        part_number="GOOD", product_code="SKU-GOOD", serial_mask="AB-####"))
    assert part.serial_gen_type == SerialGenType.PCB_SERIAL

    updated = await catalog.update_part(db, part.id, PartUpdate(
        serial_gen_type=SerialGenType.ACCESSORIES, std_qty=12))
    assert updated.serial_gen_type == SerialGenType.ACCESSORIES
    assert updated.std_qty == 12

    with pytest.raises(NotFoundError):
        await catalog.update_part(db, part.id, PartUpdate(process_route_id="rt_missing"))


async def test_delete_part_with_orders(db, make_order):
    await make_order("SKU-CELL", 5)
    with pytest.raises(ConflictError):
        await catalog.delete_part(db, "pn_cells")
    await catalog.delete_part(db, "pn_harness")
    with pytest.raises(NotFoundError):
        await catalog.get_part(db, "pn_harness")


async def test_product_code_is_unique(db):
    with pytest.raises(ConflictError) as exc:
        await catalog.create_part(db, PartCreate(
            part_number="BMS-CLONE", product_code="SKU-BMS48", serial_mask="31########"))
    assert exc.value.details["part_id"] == "pn_bms"

    with pytest.raises(ConflictError):
        await catalog.update_part(db, "pn_cells", PartUpdate(product_code="SKU-BMS48"))
    assert (await catalog.get_part_by_product_code(db, "SKU-BMS48")).id == "pn_bms"
    assert (await catalog.get_part(db, "pn_cells")).product_code == "SKU-CELL"

    # Re-saving a part with its own code is not a clash
    same = await catalog.update_part(db, "pn_cells", PartUpdate(product_code="SKU-CELL", std_qty=24))
    assert same.std_qty == 24


async def test_route_keeps_an_initial_station(db):
    with pytest.raises(ConflictError) as exc:
        await catalog.update_operation(db, "op_10", OperationUpdate(is_initial=False))
    assert exc.value.details["route_ids"] == ["rt_default"]

    assert (await catalog.get_operation(db, "op_10")).is_initial
    route = await catalog.get_route(db, "rt_default")
    assert route.steps[0].is_initial

    # A second initial station on the route frees op_10 to drop the flag
    await catalog.update_operation(db, "op_20", OperationUpdate(is_initial=True))
    cleared = await catalog.update_operation(db, "op_10", OperationUpdate(is_initial=False))
    assert not cleared.is_initial


async def test_unrouted_operation_can_drop_initial_flag(db):
    op = await catalog.create_operation(db, OperationCreate(name="CARGA", is_initial=True))
    updated = await catalog.update_operation(db, op.id, OperationUpdate(is_initial=False))
    assert not updated.is_initial
