"""
Battery Line MES - Production Models (work orders, serial units, scans)
Version: 1.2.0

Changelog:
v1.2.0 (2026-10-12): ProductionStats / HourlyBucket for the dashboard
v1.1.0 (2026-10-05): ScanResult carries the lot-finished signal and fired labels
v1.0.0 (2026-09-28): Initial production models
"""

from pydantic import BaseModel, Field
from enum import Enum
from typing import Optional, List


class WorkOrderStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class WorkOrder(BaseModel):
    """One production lot"""
    id: int
    order_number: str = Field(..., description="Internal, system-generated")
    sap_order_number: Optional[str] = Field(None, description="External SAP reference")
    part_number_id: str
    quantity: int = Field(..., ge=1, description="Target unit count for closing")
    status: WorkOrderStatus = WorkOrderStatus.OPEN
    created_at: str
    closed_at: Optional[str] = None
    produced: Optional[int] = Field(None, description="Units that reached a final operation")


class WorkOrderGenerate(BaseModel):
    sap_order_number: Optional[str] = None
    product_code: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class WorkOrderOpen(BaseModel):
    """Resume a lot by reference, or auto-generate when product/quantity given"""
    reference: str = Field(..., min_length=1)
    product_code: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=1)


class WorkOrderUpdate(BaseModel):
    user_id: str
    quantity: Optional[int] = Field(None, ge=1)
    status: Optional[WorkOrderStatus] = None
    reason: Optional[str] = None


class OrderEvent(BaseModel):
    """Status transition of a work order"""
    id: int
    order_id: int
    from_status: str
    to_status: str
    forced: bool
    user_id: Optional[str] = None
    reason: Optional[str] = None
    timestamp: str


class HistoryEntry(BaseModel):
    id: int
    operation_id: str
    operation_name: Optional[str] = None
    operator_id: str
    operator_name: Optional[str] = None
    timestamp: str


class PrintEntry(BaseModel):
    id: int
    reference: str
    label_type: str
    status: str
    message: Optional[str] = None
    operator_id: Optional[str] = None
    timestamp: str


class SerialUnit(BaseModel):
    serial_number: str
    order_number: Optional[str] = None
    part_number_id: str
    current_operation_id: Optional[str] = None
    is_complete: bool = False
    tray_id: Optional[str] = None
    created_at: Optional[str] = None
    history: List[HistoryEntry] = Field(default_factory=list)
    print_history: List[PrintEntry] = Field(default_factory=list)


# -- Scan requests --

class ScanContext(BaseModel):
    """Who is scanning, where, and against which lot"""
    order_number: str = Field(..., min_length=1)
    operation_id: str = Field(..., min_length=1)
    operator_id: str = Field(..., min_length=1)


class ScanRequest(ScanContext):
    """Generic scan: serial (PCB_SERIAL) or tray id (LOT_BASED)"""
    code: str = Field(..., min_length=1)
    quantity: Optional[int] = None


class UnitScan(ScanContext):
    serial_number: str = Field(..., min_length=1)


class TrayScan(ScanContext):
    tray_id: str = Field(..., min_length=1)
    quantity: Optional[int] = None


class LotCompletion(ScanContext):
    quantity: Optional[int] = None


class ScanResult(BaseModel):
    """Outcome of a scan; order_closed is the lot-finished signal"""
    action: str
    serials: List[str] = Field(default_factory=list)
    tray_id: Optional[str] = None
    is_complete: bool = False
    produced: int = 0
    order: WorkOrder
    order_closed: bool = False
    labels: List[str] = Field(default_factory=list)
    message: str = ""


class LockResult(BaseModel):
    operation_id: str
    acquired: bool
    holder_id: Optional[str] = None
    holder_name: Optional[str] = None


# -- Dashboard --

class HourlyBucket(BaseModel):
    hour: str
    count: int


class ProductionStats(BaseModel):
    target_operation_id: Optional[str] = None
    target_operation_name: str
    produced_count: int
    wip_count: int
    avg_cycle_time_min: int
    hourly: List[HourlyBucket]
