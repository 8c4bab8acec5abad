"""
Live update fan-out: client churn and delivery failures never undo a
committed lock change or lot closure
"""

import json

import pytest

from api import ws
from models.production import UnitScan
from services import serial_engine, station_lock


class FakeSocket:
    """Records messages; optionally drops another client or fails on send"""

    def __init__(self, drops=None, fails=False):
        self.sent = []
        self.drops = drops
        self.fails = fails

    async def send_text(self, message):
        if self.drops is not None:
            ws.active_connections.discard(self.drops)
        if self.fails:
            raise ConnectionResetError("client went away")
        self.sent.append(json.loads(message))


@pytest.fixture
def live_clients(monkeypatch):
    clients = set()
    monkeypatch.setattr(ws, "active_connections", clients)
    return clients


async def test_client_leaving_mid_broadcast(db, live_clients):
    leaving = FakeSocket()
    staying = FakeSocket(drops=leaving)
    live_clients.update({leaving, staying})

    result = await station_lock.enter_station(db, "op_10", "u_op1")

    assert result.acquired
    assert staying.sent[0]["type"] == "station_update"
    assert staying.sent[0]["operation_id"] == "op_10"
    assert leaving not in live_clients


async def test_failed_client_is_dropped(live_clients):
    broken = FakeSocket(fails=True)
    healthy = FakeSocket()
    live_clients.update({broken, healthy})

    await ws.broadcast_alert("Line stop", "warning")

    assert live_clients == {healthy}
    assert healthy.sent == [{"type": "alert", "severity": "warning", "message": "Line stop"}]


async def test_lock_survives_broadcast_failure(db, monkeypatch):
    async def broken_update(*args, **kwargs):
        raise RuntimeError("Set changed size during iteration")

    monkeypatch.setattr(ws, "broadcast_station_update", broken_update)

    result = await station_lock.enter_station(db, "op_20", "u_op1")

    assert result.acquired
    await station_lock.require_holder(db, "op_20", "u_op1")
    assert await station_lock.exit_station(db, "op_20", "u_op1") is True


async def test_order_close_survives_broadcast_failure(db, pcb_part, operator_stations, make_order, monkeypatch):
    async def broken_close(*args, **kwargs):
        raise RuntimeError("Set changed size during iteration")

    monkeypatch.setattr(ws, "broadcast_order_closed", broken_close)
    order = await make_order(pcb_part.product_code, 1)
    scan = dict(order_number=order.order_number, operator_id="u_op1", serial_number="3100000950")

    await serial_engine.create_unit(db, UnitScan(operation_id="op_10", **scan))
    finished = await serial_engine.advance_unit(db, UnitScan(operation_id="op_40", **scan))

    assert finished.order_closed
    assert finished.order.status.value == "CLOSED"
