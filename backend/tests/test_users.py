"""
Operator identity tests: creation, edits, removal
"""

import pytest

from errors import ConflictError, NotFoundError, ValidationError
from models.user import UserCreate, UserRole, UserUpdate
from services import station_lock, users


async def test_create_and_duplicate(db):
    user = await users.create_user(db, UserCreate(username="op2", name="Operador 2"))
    assert user.id.startswith("u_")
    assert user.role == UserRole.OPERATOR

    with pytest.raises(ConflictError):
        await users.create_user(db, UserCreate(username="op2", name="Otro"))


async def test_update_user(db):
    promoted = await users.update_user(db, "u_op1", UserUpdate(role=UserRole.SUPERVISOR))
    assert promoted.role == UserRole.SUPERVISOR
    assert promoted.name == "Operador 1"

    renamed = await users.update_user(db, "u_op1", UserUpdate(name="Operadora Uno"))
    assert renamed.name == "Operadora Uno"
    assert renamed.role == UserRole.SUPERVISOR


async def test_update_user_errors(db):
    taken = (await users.get_user(db, "u_admin")).username
    with pytest.raises(ConflictError):
        await users.update_user(db, "u_op1", UserUpdate(username=taken))
    with pytest.raises(ValidationError):
        await users.update_user(db, "u_op1", UserUpdate())
    with pytest.raises(NotFoundError):
        await users.update_user(db, "u_nobody", UserUpdate(name="X"))

    own = (await users.get_user(db, "u_op1")).username
    same = await users.update_user(db, "u_op1", UserUpdate(username=own))
    assert same.username == own


async def test_delete_user(db):
    await station_lock.enter_station(db, "op_20", "u_op1")

    with pytest.raises(ConflictError) as exc:
        await users.delete_user(db, "u_op1")
    assert exc.value.details["operation_ids"] == ["op_20"]
    assert (await users.get_user(db, "u_op1")).id == "u_op1"

    await station_lock.exit_station(db, "op_20", "u_op1")
    await users.delete_user(db, "u_op1")
    with pytest.raises(NotFoundError):
        await users.get_user(db, "u_op1")


def test_user_endpoints(client):
    created = client.post("/api/users/", json={"username": "op9", "name": "Operador 9"})
    assert created.status_code == 201
    user_id = created.json()["id"]

    edited = client.put(f"/api/users/{user_id}", json={"role": "SUPERVISOR"})
    assert edited.status_code == 200
    assert edited.json()["role"] == "SUPERVISOR"

    unchanged = client.put(f"/api/users/{user_id}", json={"username": created.json()["username"]})
    assert unchanged.status_code == 200

    client.post("/api/operations/op_30/enter", json={"user_id": user_id})
    busy = client.delete(f"/api/users/{user_id}")
    assert busy.status_code == 409
    assert busy.json()["type"] == "conflict"

    client.post("/api/operations/op_30/exit", json={"user_id": user_id})
    assert client.delete(f"/api/users/{user_id}").status_code == 200
    assert client.get(f"/api/users/{user_id}").status_code == 404
