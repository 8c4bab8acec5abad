"""
Battery Line MES - Serial Unit Lifecycle Engine
Version: 1.2.1

Changelog:
v1.2.1 (2026-10-19): Blank serial/tray ids rejected before any lookup
v1.2.0 (2026-10-12): Generation strategies per serial_gen_type behind one
                      create_or_advance() entry point
v1.1.0 (2026-10-05): Tray batches generated/advanced inside BEGIN IMMEDIATE;
                      UUID-based serials replace timestamp + random suffix
v1.0.0 (2026-09-28): Initial PCB serial create/advance

Every scan goes through the same preconditions:
  1. The operator holds the station lock (LockDeniedError)
  2. The order exists and is OPEN (ConflictError when CLOSED)
  3. The part's route, when set, contains the operation (WrongContextError)

The part's serial_gen_type then picks the strategy:
  PCB_SERIAL   - one scanned serial per unit, validated against the part mask
  LOT_BASED    - a tray scan creates or moves a whole batch of units
  ACCESSORIES  - one "complete lot" action at a final station

Labels are fired after the database work commits; a failed print is logged
in print_logs and never undoes the scan.
"""

import logging
import string
from dataclasses import dataclass
from typing import Dict, List, Optional
from uuid import uuid4

from config import settings
from database import execute_all, execute_one, execute_insert, execute_update, transaction
from errors import ConflictError, NotFoundError, ValidationError, WrongContextError
from models.catalog import Operation, PartNumber, SerialGenType
from models.production import (
    LotCompletion, ScanContext, ScanRequest, ScanResult, TrayScan, UnitScan,
    WorkOrder, WorkOrderStatus,
)
from models.user import User
from services import catalog, label_printer, ledger, station_lock, users, work_orders
from services.label_printer import PrintJob

logger = logging.getLogger(__name__)

LOT_LABEL_EXCLUSIONS = ["CARTON1", "CARTON2", "NAMEPLATE"]


def mask_matches(serial: str, mask: str) -> bool:
    """
    Fixed-length mask check: '#' accepts any ASCII digit, every other mask
    character must match literally. An empty mask accepts anything.
    """
    if not mask:
        return True
    if len(serial) != len(mask):
        return False
    for ch, pattern in zip(serial, mask):
        if pattern == "#":
            if ch not in string.digits:
                return False
        elif ch != pattern:
            return False
    return True


def new_serial() -> str:
    return f"{settings.SERIAL_PREFIX}-{uuid4().hex[:12].upper()}"


@dataclass
class StationContext:
    """Resolved scan context: connection, lot, part, station and operator"""
    db: object
    order: WorkOrder
    part: PartNumber
    operation: Operation
    operator: User
    code: Optional[str] = None
    quantity: Optional[int] = None


# ============================================
# Generation strategies
# ============================================

class GenerationStrategy:
    """One way of turning a scan into unit records"""

    gen_type: SerialGenType

    async def create_or_advance(self, ctx: StationContext) -> ScanResult:
        raise NotImplementedError

    # -- Shared helpers --

    async def _insert_unit(self, ctx: StationContext, serial: str, is_complete: bool,
                           timestamp: str, tray_id: Optional[str] = None):
        await execute_insert(ctx.db, """
            INSERT INTO serials
                (serial_number, order_number, part_number_id, current_operation_id,
                 is_complete, tray_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (serial, ctx.order.order_number, ctx.part.id, ctx.operation.id,
              is_complete, tray_id, timestamp))
        await ledger.append_history(ctx.db, serial, ctx.operation.id, ctx.operator.id, timestamp)

    async def _print(self, ctx: StationContext, reference: str, label_type: str,
                     exclude: Optional[List[str]] = None,
                     description: Optional[str] = None) -> str:
        await label_printer.print_label(ctx.db, PrintJob(
            reference=reference,
            part_number=ctx.part.part_number,
            product_code=ctx.part.product_code,
            label_type=label_type,
            exclude_label_types=exclude or [],
            operator_id=ctx.operator.id,
            job_description=description,
        ))
        return label_type

    async def _print_lot_labels(self, ctx: StationContext, serials: List[str]) -> List[str]:
        """Nameplate per unit plus one box label for the order"""
        labels = []
        for serial in serials:
            labels.append(await self._print(ctx, serial, settings.NAMEPLATE_LABEL))
        labels.append(await self._print(
            ctx, ctx.order.order_number, settings.BOX_LABEL,
            exclude=LOT_LABEL_EXCLUSIONS,
            description=f"{len(serials)} unit(s) of {ctx.part.product_code}",
        ))
        return labels

    async def _result(self, ctx: StationContext, action: str, serials: List[str],
                      completed: bool, labels: List[str], message: str,
                      tray_id: Optional[str] = None) -> ScanResult:
        """Run the completion check and build the response"""
        closed = False
        if completed:
            closed = await work_orders.try_close(ctx.db, ctx.order)
        order = await work_orders.with_progress(
            ctx.db, await work_orders.get_order(ctx.db, ctx.order.id)
        )
        if closed:
            message += f". Order {order.sap_order_number or order.order_number} finished"
        return ScanResult(
            action=action,
            serials=serials,
            tray_id=tray_id,
            is_complete=completed,
            produced=order.produced or 0,
            order=order,
            order_closed=closed,
            labels=labels,
            message=message,
        )


class PcbSerialStrategy(GenerationStrategy):
    """Individually scanned units; the serial must match the part mask"""

    gen_type = SerialGenType.PCB_SERIAL

    async def create_or_advance(self, ctx: StationContext) -> ScanResult:
        if ctx.operation.is_initial:
            return await self.create_unit(ctx)
        return await self.advance_unit(ctx)

    async def create_unit(self, ctx: StationContext) -> ScanResult:
        serial = ctx.code
        op = ctx.operation
        if not op.is_initial:
            raise WrongContextError(
                f"New units can only be opened at an initial station; {op.name} is not one",
                {"operation_id": op.id},
            )
        if not mask_matches(serial, ctx.part.serial_mask):
            raise ValidationError(
                f"Serial {serial} does not match mask {ctx.part.serial_mask}",
                {"serial_number": serial, "mask": ctx.part.serial_mask},
            )
        if await ledger.find_unit(ctx.db, serial):
            raise ConflictError(f"Serial {serial} already exists", {"serial_number": serial})

        async with transaction(ctx.db):
            await self._insert_unit(ctx, serial, op.is_final, ledger.now_iso())
        logger.info(f"Serial {serial} opened at {op.id} for {ctx.order.order_number} by {ctx.operator.username}")

        labels = [await self._print(ctx, serial, settings.NAMEPLATE_LABEL)]
        if op.is_final:
            labels.extend(await self._carton_check(ctx))
        return await self._result(ctx, "created", [serial], op.is_final, labels,
                                  f"Serial {serial} registered at {op.name}")

    async def advance_unit(self, ctx: StationContext) -> ScanResult:
        serial = ctx.code
        op = ctx.operation
        unit = await ledger.find_unit(ctx.db, serial)
        if not unit:
            raise NotFoundError("Serial", serial)
        if unit["order_number"] != ctx.order.order_number:
            raise WrongContextError(
                f"Serial {serial} belongs to order {unit['order_number'] or '(none)'}, "
                f"not {ctx.order.order_number}",
                {"serial_number": serial, "order_number": unit["order_number"]},
            )
        if unit["is_complete"]:
            raise ConflictError(f"Serial {serial} is already complete", {"serial_number": serial})

        async with transaction(ctx.db):
            await execute_update(ctx.db, """
                UPDATE serials SET current_operation_id = ?, is_complete = ?
                WHERE serial_number = ?
            """, (op.id, op.is_final, serial))
            await ledger.append_history(ctx.db, serial, op.id, ctx.operator.id)
        logger.info(f"Serial {serial} advanced to {op.id} by {ctx.operator.username}")

        labels = []
        if op.is_final:
            labels.append(await self._print(ctx, serial, settings.NAMEPLATE_LABEL))
            labels.extend(await self._carton_check(ctx))
        return await self._result(ctx, "advanced", [serial], op.is_final, labels,
                                  f"Serial {serial} passed {op.name}")

    async def _carton_check(self, ctx: StationContext) -> List[str]:
        """Carton label for the order each time a full container is produced"""
        produced = await work_orders.produced_count(ctx.db, ctx.order.order_number)
        if produced and produced % ctx.part.std_qty == 0:
            label = await self._print(
                ctx, ctx.order.order_number, settings.CARTON_LABEL,
                description=f"Carton {produced // ctx.part.std_qty} ({produced} units)",
            )
            return [label]
        return []


class LotBasedStrategy(GenerationStrategy):
    """Units synthesized and moved together by tray scans"""

    gen_type = SerialGenType.LOT_BASED

    async def create_or_advance(self, ctx: StationContext) -> ScanResult:
        if ctx.operation.is_initial:
            return await self.generate_batch(ctx)
        return await self.advance_batch(ctx)

    async def generate_batch(self, ctx: StationContext) -> ScanResult:
        tray_id = ctx.code
        op = ctx.operation
        if not op.is_initial:
            raise WrongContextError(
                f"Trays can only be loaded at an initial station; {op.name} is not one",
                {"operation_id": op.id},
            )
        quantity = _batch_quantity(
            ctx.quantity if ctx.quantity is not None else ctx.part.std_qty
        )

        used = await execute_one(ctx.db, """
            SELECT COUNT(*) AS n FROM serials WHERE order_number = ? AND tray_id = ?
        """, (ctx.order.order_number, tray_id))
        if used["n"]:
            raise ConflictError(
                f"Tray {tray_id} already used in order {ctx.order.order_number}",
                {"tray_id": tray_id},
            )

        serials = [new_serial() for _ in range(quantity)]
        timestamp = ledger.now_iso()
        async with transaction(ctx.db):
            for serial in serials:
                await self._insert_unit(ctx, serial, op.is_final, timestamp, tray_id=tray_id)
        logger.info(
            f"Tray {tray_id}: {quantity} unit(s) generated at {op.id} "
            f"for {ctx.order.order_number} by {ctx.operator.username}"
        )

        labels = await self._print_lot_labels(ctx, serials) if op.is_final else []
        return await self._result(ctx, "batch_generated", serials, op.is_final, labels,
                                  f"Tray {tray_id}: {quantity} unit(s) registered",
                                  tray_id=tray_id)

    async def advance_batch(self, ctx: StationContext) -> ScanResult:
        tray_id = ctx.code
        op = ctx.operation
        rows = await execute_all(ctx.db, """
            SELECT serial_number, order_number, is_complete FROM serials
            WHERE tray_id = ? ORDER BY created_at ASC, serial_number ASC
        """, (tray_id,))
        if not rows:
            raise NotFoundError("Tray", tray_id)
        in_order = [row for row in rows if row["order_number"] == ctx.order.order_number]
        if not in_order:
            raise WrongContextError(
                f"Tray {tray_id} belongs to another order", {"tray_id": tray_id}
            )
        pending = [row["serial_number"] for row in in_order if not row["is_complete"]]
        if not pending:
            raise ConflictError(f"All units on tray {tray_id} are already complete",
                                {"tray_id": tray_id})

        timestamp = ledger.now_iso()
        async with transaction(ctx.db):
            await execute_update(ctx.db, """
                UPDATE serials SET current_operation_id = ?, is_complete = ?
                WHERE order_number = ? AND tray_id = ? AND is_complete = 0
            """, (op.id, op.is_final, ctx.order.order_number, tray_id))
            for serial in pending:
                await ledger.append_history(ctx.db, serial, op.id, ctx.operator.id, timestamp)
        logger.info(f"Tray {tray_id}: {len(pending)} unit(s) advanced to {op.id} by {ctx.operator.username}")

        labels = await self._print_lot_labels(ctx, pending) if op.is_final else []
        return await self._result(ctx, "batch_advanced", pending, op.is_final, labels,
                                  f"Tray {tray_id}: {len(pending)} unit(s) passed {op.name}",
                                  tray_id=tray_id)


class AccessoriesStrategy(GenerationStrategy):
    """Whole-lot completion without per-unit scans"""

    gen_type = SerialGenType.ACCESSORIES

    async def create_or_advance(self, ctx: StationContext) -> ScanResult:
        return await self.complete_lot(ctx)

    async def complete_lot(self, ctx: StationContext) -> ScanResult:
        op = ctx.operation
        if not op.is_final:
            raise WrongContextError(
                f"Accessory lots are completed at a final station; {op.name} is not one",
                {"operation_id": op.id},
            )
        if ctx.quantity is None:
            remaining = ctx.order.quantity - await work_orders.produced_count(
                ctx.db, ctx.order.order_number
            )
            if remaining < 1:
                raise ConflictError(
                    f"Order {ctx.order.order_number} has no remaining units to complete"
                )
            quantity = _batch_quantity(min(remaining, settings.MAX_BATCH_QTY))
        else:
            quantity = _batch_quantity(ctx.quantity)

        serials = [new_serial() for _ in range(quantity)]
        timestamp = ledger.now_iso()
        async with transaction(ctx.db):
            for serial in serials:
                await self._insert_unit(ctx, serial, True, timestamp)
        logger.info(
            f"Order {ctx.order.order_number}: {quantity} accessory unit(s) completed "
            f"at {op.id} by {ctx.operator.username}"
        )

        labels = [await self._print(
            ctx, ctx.order.order_number, settings.BOX_LABEL,
            description=f"{quantity} unit(s) of {ctx.part.product_code}",
        )]
        return await self._result(ctx, "lot_completed", serials, True, labels,
                                  f"{quantity} unit(s) completed at {op.name}")


def _batch_quantity(quantity: int) -> int:
    if not 1 <= quantity <= settings.MAX_BATCH_QTY:
        raise ValidationError(
            f"Batch quantity must be between 1 and {settings.MAX_BATCH_QTY}, got {quantity}",
            {"quantity": quantity},
        )
    return quantity


# ============================================
# Engine
# ============================================

class SerialLifecycleEngine:
    """Resolves scan context and dispatches to the part's strategy"""

    def __init__(self):
        self.strategies: Dict[SerialGenType, GenerationStrategy] = {
            SerialGenType.PCB_SERIAL: PcbSerialStrategy(),
            SerialGenType.LOT_BASED: LotBasedStrategy(),
            SerialGenType.ACCESSORIES: AccessoriesStrategy(),
        }

    async def _context(self, db, data: ScanContext, code: Optional[str] = None,
                       quantity: Optional[int] = None) -> StationContext:
        if code is not None:
            code = code.strip()
            if not code:
                raise ValidationError("Serial/tray id is required", {"field": "code"})

        operation = await station_lock.require_holder(db, data.operation_id, data.operator_id)
        operator = await users.get_user(db, data.operator_id)

        order = await work_orders.get_order_by_reference(db, data.order_number)
        if order.status == WorkOrderStatus.CLOSED:
            raise ConflictError(f"Work order {order.order_number} is closed",
                                {"order_number": order.order_number})

        part = await catalog.get_part(db, order.part_number_id)
        if part.process_route_id:
            route = await catalog.get_route(db, part.process_route_id)
            if not catalog.route_has_operation(route, operation.id):
                raise WrongContextError(
                    f"Station {operation.name} is not on the route of {part.part_number}",
                    {"operation_id": operation.id, "route_id": route.id},
                )

        return StationContext(
            db=db, order=order, part=part, operation=operation, operator=operator,
            code=code, quantity=quantity,
        )

    def _strategy(self, ctx: StationContext, expected: SerialGenType):
        if ctx.part.serial_gen_type != expected:
            raise ValidationError(
                f"Part {ctx.part.part_number} is {ctx.part.serial_gen_type.value}, "
                f"not {expected.value}",
                {"serial_gen_type": ctx.part.serial_gen_type.value},
            )
        return self.strategies[expected]

    async def scan(self, db, data: ScanRequest) -> ScanResult:
        """Generic scan: the part decides whether code is a serial or a tray"""
        ctx = await self._context(db, data, data.code, data.quantity)
        return await self.strategies[ctx.part.serial_gen_type].create_or_advance(ctx)

    async def create_unit(self, db, data: UnitScan) -> ScanResult:
        ctx = await self._context(db, data, data.serial_number)
        return await self._strategy(ctx, SerialGenType.PCB_SERIAL).create_unit(ctx)

    async def advance_unit(self, db, data: UnitScan) -> ScanResult:
        ctx = await self._context(db, data, data.serial_number)
        return await self._strategy(ctx, SerialGenType.PCB_SERIAL).advance_unit(ctx)

    async def generate_batch(self, db, data: TrayScan) -> ScanResult:
        ctx = await self._context(db, data, data.tray_id, data.quantity)
        return await self._strategy(ctx, SerialGenType.LOT_BASED).generate_batch(ctx)

    async def advance_batch(self, db, data: TrayScan) -> ScanResult:
        ctx = await self._context(db, data, data.tray_id)
        return await self._strategy(ctx, SerialGenType.LOT_BASED).advance_batch(ctx)

    async def complete_lot(self, db, data: LotCompletion) -> ScanResult:
        ctx = await self._context(db, data, quantity=data.quantity)
        return await self._strategy(ctx, SerialGenType.ACCESSORIES).complete_lot(ctx)


# Singleton instance
_engine = SerialLifecycleEngine()


async def scan(db, data: ScanRequest) -> ScanResult:
    return await _engine.scan(db, data)


async def create_unit(db, data: UnitScan) -> ScanResult:
    return await _engine.create_unit(db, data)


async def advance_unit(db, data: UnitScan) -> ScanResult:
    return await _engine.advance_unit(db, data)


async def generate_batch(db, data: TrayScan) -> ScanResult:
    return await _engine.generate_batch(db, data)


async def advance_batch(db, data: TrayScan) -> ScanResult:
    return await _engine.advance_batch(db, data)


async def complete_lot(db, data: LotCompletion) -> ScanResult:
    return await _engine.complete_lot(db, data)
