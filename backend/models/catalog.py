"""
Battery Line MES - Catalog Models (operations, routes, part numbers)
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-08): RouteStep carries resolved operation name and flags
v1.0.0 (2026-09-28): Initial catalog models
"""

from pydantic import BaseModel, Field
from enum import Enum
from typing import Optional, List


class SerialGenType(str, Enum):
    """How units of a part are identified"""
    PCB_SERIAL = "PCB_SERIAL"      # every unit scanned individually
    LOT_BASED = "LOT_BASED"        # units synthesized per tray scan
    ACCESSORIES = "ACCESSORIES"    # whole lot completed in one action


class Operation(BaseModel):
    """A station on the line; the lock holder is active_operator_id"""
    id: str
    name: str
    order_index: int = Field(0, description="Informational sequence index")
    is_initial: bool = Field(False, description="May open new units")
    is_final: bool = Field(False, description="Completes units and triggers packing")
    active_operator_id: Optional[str] = Field(None, description="Current lock holder")
    active_operator_name: Optional[str] = None


class OperationCreate(BaseModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    order_index: int = 0
    is_initial: bool = False
    is_final: bool = False


class OperationUpdate(BaseModel):
    name: Optional[str] = None
    order_index: Optional[int] = None
    is_initial: Optional[bool] = None
    is_final: Optional[bool] = None


class RouteStep(BaseModel):
    """One step of a process route, pre-joined with its operation"""
    id: Optional[int] = None
    operation_id: str
    step_order: int
    operation_name: Optional[str] = None
    is_initial: bool = False
    is_final: bool = False


class ProcessRoute(BaseModel):
    id: str
    name: str
    description: str = ""
    steps: List[RouteStep] = Field(default_factory=list)


class RouteCreate(BaseModel):
    """Route definition; operation_ids are in traversal order"""
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    description: str = ""
    operation_ids: List[str] = Field(..., min_length=1)


class RouteUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    operation_ids: Optional[List[str]] = None


class PartNumber(BaseModel):
    id: str
    part_number: str
    revision: str = ""
    description: str = ""
    product_code: str
    serial_mask: str = ""
    serial_gen_type: SerialGenType = SerialGenType.PCB_SERIAL
    process_route_id: Optional[str] = None
    std_qty: int = Field(1, ge=1, description="Units per packing container")


class PartCreate(BaseModel):
    id: Optional[str] = None
    part_number: str = Field(..., min_length=1)
    revision: str = ""
    description: str = ""
    product_code: str = Field(..., min_length=1)
    serial_mask: str = ""
    serial_gen_type: SerialGenType = SerialGenType.PCB_SERIAL
    process_route_id: Optional[str] = None
    std_qty: int = Field(1, ge=1)


class PartUpdate(BaseModel):
    part_number: Optional[str] = None
    revision: Optional[str] = None
    description: Optional[str] = None
    product_code: Optional[str] = None
    serial_mask: Optional[str] = None
    serial_gen_type: Optional[SerialGenType] = None
    process_route_id: Optional[str] = None
    std_qty: Optional[int] = Field(None, ge=1)
