"""
Battery Line MES - Operator Identity Lookup
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-19): update_user() and delete_user(); a station holder cannot be removed
v1.0.0 (2026-09-28): Initial user lookup and role gating
"""

import logging
from typing import Iterable, List
from uuid import uuid4

from database import execute_all, execute_one, execute_insert, execute_update
from errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from models.user import User, UserCreate, UserRole, UserUpdate

logger = logging.getLogger(__name__)


async def get_user(db, user_id: str) -> User:
    row = await execute_one(
        db, "SELECT id, username, name, role FROM users WHERE id = ?", (user_id,)
    )
    if not row:
        raise NotFoundError("User", user_id)
    return User(**row)


async def list_users(db) -> List[User]:
    rows = await execute_all(db, "SELECT id, username, name, role FROM users ORDER BY name")
    return [User(**row) for row in rows]


async def create_user(db, data: UserCreate) -> User:
    user_id = data.id or f"u_{uuid4().hex[:8]}"
    existing = await execute_one(
        db, "SELECT id FROM users WHERE id = ? OR username = ?", (user_id, data.username)
    )
    if existing:
        raise ConflictError(f"User '{data.username}' already exists")
    await execute_insert(
        db,
        "INSERT INTO users (id, username, name, role) VALUES (?, ?, ?, ?)",
        (user_id, data.username, data.name, data.role.value),
    )
    logger.info(f"User {data.username} created with role {data.role.value}")
    return await get_user(db, user_id)


async def update_user(db, user_id: str, data: UserUpdate) -> User:
    user = await get_user(db, user_id)
    fields = data.model_dump(exclude_none=True)
    if not fields:
        raise ValidationError("No fields to update")
    if "username" in fields:
        taken = await execute_one(
            db, "SELECT id FROM users WHERE username = ? AND id != ?", (fields["username"], user_id)
        )
        if taken:
            raise ConflictError(f"User '{fields['username']}' already exists")
    if "role" in fields:
        fields["role"] = fields["role"].value
    assignments = ", ".join(f"{name} = ?" for name in fields)
    await execute_update(
        db,
        f"UPDATE users SET {assignments} WHERE id = ?",
        [*fields.values(), user_id],
    )
    logger.info(f"User {user.username} updated: {', '.join(fields)}")
    return await get_user(db, user_id)


async def delete_user(db, user_id: str):
    """History keeps the operator id; a user holding a station must exit first"""
    user = await get_user(db, user_id)
    held = await execute_all(
        db, "SELECT id FROM operations WHERE active_operator_id = ? ORDER BY id", (user_id,)
    )
    if held:
        stations = [row["id"] for row in held]
        raise ConflictError(
            f"User {user.username} holds station(s) {', '.join(stations)}",
            {"user_id": user_id, "operation_ids": stations},
        )
    await execute_update(db, "DELETE FROM users WHERE id = ?", (user_id,))
    logger.info(f"User {user.username} deleted")


def require_role(user: User, roles: Iterable[UserRole], action: str):
    """Raise ForbiddenError unless the user has one of the given roles"""
    allowed = set(roles)
    if user.role not in allowed:
        names = ", ".join(sorted(r.value for r in allowed))
        raise ForbiddenError(
            f"{action} requires role {names} (user {user.username} is {user.role.value})"
        )
