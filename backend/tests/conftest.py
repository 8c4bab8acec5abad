from typing import List

import pytest
from fastapi.testclient import TestClient

from config import settings
from database import get_db
from models import init_db
from models.catalog import PartCreate, SerialGenType
from seed import seed_if_empty
from services import catalog, label_printer, station_lock, work_orders


class RecordingPrinter(label_printer.LabelPrinter):
    """Keeps every job instead of printing it"""

    def __init__(self):
        self.jobs: List[label_printer.PrintJob] = []

    async def send(self, job):
        self.jobs.append(job)
        return True

    def types(self) -> List[str]:
        return [job.label_type for job in self.jobs]


@pytest.fixture(autouse=True)
def temp_database(tmp_path, monkeypatch):
    """Every test runs against its own SQLite file"""
    monkeypatch.setattr(settings, "SQLITE_DB_PATH", str(tmp_path / "mes_test.db"))
    yield


@pytest.fixture(autouse=True)
def printer():
    recorder = RecordingPrinter()
    previous = label_printer.get_printer()
    label_printer.set_printer(recorder)
    yield recorder
    label_printer.set_printer(previous)


@pytest.fixture
async def db():
    """Initialized and seeded connection"""
    await init_db()
    async with get_db() as conn:
        await seed_if_empty(conn)
        yield conn


@pytest.fixture
async def pcb_part(db):
    return await catalog.create_part(db, PartCreate(
        id="pn_test_pcb",
        part_number="BMS-TEST-01",
        product_code="SKU-TEST-PCB",
        serial_mask="31########",
        serial_gen_type=SerialGenType.PCB_SERIAL,
        process_route_id="rt_default",
        std_qty=2,
    ))


@pytest.fixture
async def operator_stations(db):
    """u_op1 holds every seeded station"""
    for op_id in ("op_10", "op_20", "op_30", "op_40"):
        result = await station_lock.enter_station(db, op_id, "u_op1")
        assert result.acquired
    return "u_op1"


@pytest.fixture
async def make_order(db):
    async def _make(product_code: str, quantity: int, sap: str = None):
        return await work_orders.generate_auto_order(db, sap, product_code, quantity)
    return _make


@pytest.fixture
def client():
    from main import app
    with TestClient(app) as c:
        yield c
