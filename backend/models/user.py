"""
Battery Line MES - Operator Identity Models
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-19): UserUpdate for rename / role change
v1.0.0 (2026-09-28): Initial user models
"""

from pydantic import BaseModel, Field
from enum import Enum
from typing import Optional


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"
    OPERATOR = "OPERATOR"


class User(BaseModel):
    """Operator identity; used only for attribution and role gating"""
    id: str
    username: str
    name: str
    role: UserRole = UserRole.OPERATOR


class UserCreate(BaseModel):
    id: Optional[str] = None
    username: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    role: UserRole = UserRole.OPERATOR


class UserUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    role: Optional[UserRole] = None
