"""
Battery Line MES - Station Lock Manager
Version: 1.1.1

Changelog:
v1.1.1 (2026-10-19): A failed live update no longer fails the lock change
v1.1.0 (2026-10-05): enter() returns a typed LockResult instead of relying on
                      the caller to re-read the operation; require_holder() for scans
v1.0.0 (2026-09-28): Initial station lock with conditional update

State per operation: FREE or LOCKED(operator). The lock is the
operations.active_operator_id column, changed only through conditional
updates here. There is no lease expiry: a crashed client leaves the station
locked until a supervisor calls force_unlock().
"""

import logging
from datetime import datetime
from typing import Optional

from database import execute_update
from errors import LockDeniedError
from models.catalog import Operation
from models.production import LockResult
from models.user import UserRole
from services import catalog, users

logger = logging.getLogger(__name__)


class StationLockManager:
    """Serializes operator access to each station"""

    async def enter(self, db, operation_id: str, user_id: str) -> LockResult:
        """FREE -> LOCKED(user); idempotent for the current holder"""
        await catalog.get_operation(db, operation_id)
        user = await users.get_user(db, user_id)

        matched = await execute_update(db, """
            UPDATE operations
            SET active_operator_id = ?, locked_at = ?
            WHERE id = ? AND (active_operator_id IS NULL OR active_operator_id = ?)
        """, (user.id, datetime.now().isoformat(), operation_id, user.id))

        op = await catalog.get_operation(db, operation_id)
        acquired = matched > 0 and op.active_operator_id == user.id
        if acquired:
            logger.info(f"Station {operation_id}: locked by {user.username}")
            await self._broadcast(op)
        else:
            logger.warning(
                f"Station {operation_id}: {user.username} denied, "
                f"held by {op.active_operator_name or op.active_operator_id}"
            )

        return LockResult(
            operation_id=operation_id,
            acquired=acquired,
            holder_id=op.active_operator_id,
            holder_name=op.active_operator_name,
        )

    async def exit(self, db, operation_id: str, user_id: str) -> bool:
        """LOCKED(user) -> FREE; a non-holder is a no-op"""
        released = await execute_update(db, """
            UPDATE operations SET active_operator_id = NULL, locked_at = NULL
            WHERE id = ? AND active_operator_id = ?
        """, (operation_id, user_id))
        if released:
            logger.info(f"Station {operation_id}: released by {user_id}")
            await self._broadcast(await catalog.get_operation(db, operation_id))
        return released > 0

    async def force_unlock(self, db, operation_id: str, actor_id: str) -> Optional[str]:
        """Supervisor/admin recovery of an orphaned lock; returns the previous holder"""
        actor = await users.get_user(db, actor_id)
        users.require_role(actor, (UserRole.SUPERVISOR, UserRole.ADMIN), "Force unlock")

        op = await catalog.get_operation(db, operation_id)
        await execute_update(db, """
            UPDATE operations SET active_operator_id = NULL, locked_at = NULL WHERE id = ?
        """, (operation_id,))
        logger.warning(
            f"Station {operation_id}: force-unlocked by {actor.username} "
            f"(was {op.active_operator_id or 'free'})"
        )
        await self._broadcast(await catalog.get_operation(db, operation_id))
        return op.active_operator_id

    async def require_holder(self, db, operation_id: str, user_id: str) -> Operation:
        """Return the operation if user_id holds its lock, else LockDeniedError"""
        op = await catalog.get_operation(db, operation_id)
        if op.active_operator_id != user_id:
            if op.active_operator_id is None:
                raise LockDeniedError(f"Enter station {op.name} before scanning")
            raise LockDeniedError(
                f"Station {op.name} is in use by {op.active_operator_name or op.active_operator_id}",
                {"holder_id": op.active_operator_id},
            )
        return op

    async def _broadcast(self, op: Operation):
        from api import ws
        try:
            await ws.broadcast_station_update(op.id, op.model_dump(mode='json'))
        except Exception as e:
            logger.warning(f"Station {op.id}: live update not delivered: {e}")


# Singleton instance
_manager = StationLockManager()


async def enter_station(db, operation_id: str, user_id: str) -> LockResult:
    """Enter a station"""
    return await _manager.enter(db, operation_id, user_id)


async def exit_station(db, operation_id: str, user_id: str) -> bool:
    """Exit a station"""
    return await _manager.exit(db, operation_id, user_id)


async def force_unlock(db, operation_id: str, actor_id: str) -> Optional[str]:
    """Force unlock"""
    return await _manager.force_unlock(db, operation_id, actor_id)


async def require_holder(db, operation_id: str, user_id: str) -> Operation:
    """Require lock ownership"""
    return await _manager.require_holder(db, operation_id, user_id)
