"""
Battery Line MES - User API
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-19): Edit and delete
v1.0.0 (2026-09-28): Operator list / lookup / creation
"""

from fastapi import APIRouter
from typing import List

from database import get_db
from models.user import User, UserCreate, UserUpdate
from services import users

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/", response_model=List[User])
async def list_users():
    async with get_db() as db:
        return await users.list_users(db)


@router.get("/{user_id}", response_model=User)
async def get_user(user_id: str):
    async with get_db() as db:
        return await users.get_user(db, user_id)


@router.post("/", response_model=User, status_code=201)
async def create_user(data: UserCreate):
    async with get_db() as db:
        return await users.create_user(db, data)


@router.put("/{user_id}", response_model=User)
async def update_user(user_id: str, data: UserUpdate):
    async with get_db() as db:
        return await users.update_user(db, user_id, data)


@router.delete("/{user_id}")
async def delete_user(user_id: str):
    async with get_db() as db:
        await users.delete_user(db, user_id)
    return {"success": True, "message": f"User {user_id} deleted"}
