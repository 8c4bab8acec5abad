"""
Battery Line MES - Backend Services
Version: 1.2.0

Changelog:
v1.2.0 (2026-10-12): Lifecycle engine split into per-gen-type strategies
v1.0.0 (2026-09-28): Initial services module
"""

from . import users
from . import catalog
from . import ledger
from . import label_printer
from . import station_lock
from . import work_orders
from . import serial_engine
