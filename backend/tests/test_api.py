"""
HTTP surface tests through the FastAPI app
"""


def _enter(client, op_id, user_id="u_op1"):
    response = client.post(f"/api/operations/{op_id}/enter", json={"user_id": user_id})
    assert response.status_code == 200
    return response.json()


def _generate(client, product_code, quantity, sap=None):
    response = client.post("/api/work-orders/generate", json={
        "sap_order_number": sap, "product_code": product_code, "quantity": quantity,
    })
    assert response.status_code == 201
    return response.json()


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_catalog_endpoints(client):
    operations = client.get("/api/operations/").json()
    assert [op["id"] for op in operations] == ["op_10", "op_20", "op_30", "op_40"]

    route = client.get("/api/routes/rt_default").json()
    assert [s["step_order"] for s in route["steps"]] == [10, 20, 30, 40]

    assert client.get("/api/parts/by-product/SKU-BMS48").json()["id"] == "pn_bms"
    assert len(client.get("/api/users/").json()) == 3

    missing = client.get("/api/parts/pn_missing")
    assert missing.status_code == 404
    assert missing.json()["type"] == "not_found"


def test_station_lock_endpoints(client):
    first = _enter(client, "op_10", "u_op1")
    second = _enter(client, "op_10", "u_super")
    assert first["acquired"] is True
    assert second["acquired"] is False
    assert second["holder_id"] == "u_op1"

    denied = client.post("/api/operations/op_10/unlock", json={"user_id": "u_op1"})
    assert denied.status_code == 403
    assert denied.json()["type"] == "forbidden"

    unlocked = client.post("/api/operations/op_10/unlock", json={"user_id": "u_super"})
    assert unlocked.json()["previous_holder_id"] == "u_op1"

    released = client.post("/api/operations/op_10/exit", json={"user_id": "u_op1"})
    assert released.json()["released"] is False


def test_scan_without_lock_is_423(client):
    order = _generate(client, "SKU-BMS48", 2)
    response = client.post("/api/serials/scan", json={
        "order_number": order["order_number"], "operation_id": "op_10",
        "operator_id": "u_op1", "code": "3100000001",
    })
    assert response.status_code == 423
    body = response.json()
    assert body["type"] == "lock_denied"
    assert body["retryable"] is False


def test_pcb_flow_over_http(client):
    order = _generate(client, "SKU-BMS48", 1, sap="SAP-9001")
    _enter(client, "op_10")
    _enter(client, "op_40")
    scan = {"order_number": "SAP-9001", "operator_id": "u_op1"}

    bad = client.post("/api/serials/scan", json={**scan, "operation_id": "op_10", "code": "99"})
    assert bad.status_code == 400
    assert bad.json()["type"] == "validation"

    created = client.post("/api/serials/create", json={
        **scan, "operation_id": "op_10", "serial_number": "3100000777"})
    assert created.status_code == 201

    finished = client.post("/api/serials/advance", json={
        **scan, "operation_id": "op_40", "serial_number": "3100000777"})
    assert finished.status_code == 200
    assert finished.json()["order_closed"] is True

    unit = client.get("/api/serials/3100000777").json()
    assert [h["operation_id"] for h in unit["history"]] == ["op_10", "op_40"]

    detail = client.get(f"/api/work-orders/{order['id']}").json()
    assert detail["status"] == "CLOSED"
    assert detail["produced"] == 1
    assert detail["remaining"] == 0
    assert len(detail["units"]) == 1

    closed = client.post("/api/serials/scan", json={
        **scan, "operation_id": "op_10", "code": "3100000778"})
    assert closed.status_code == 409
    assert closed.json()["type"] == "conflict"

    again = client.post(f"/api/work-orders/{order['id']}/close")
    assert again.status_code == 409


def test_wrong_context_is_409(client):
    order = _generate(client, "SKU-ACC", 5)
    _enter(client, "op_10")
    response = client.post("/api/serials/complete-lot", json={
        "order_number": order["order_number"], "operation_id": "op_10", "operator_id": "u_op1",
    })
    assert response.status_code == 409
    assert response.json()["type"] == "wrong_context"


def test_tray_flow_over_http(client):
    order = _generate(client, "SKU-CELL", 4)
    _enter(client, "op_10")
    _enter(client, "op_20")
    tray = {"order_number": order["order_number"], "operator_id": "u_op1", "tray_id": "T-01"}

    generated = client.post("/api/serials/batch-generate", json={**tray, "operation_id": "op_10", "quantity": 4})
    assert generated.status_code == 201
    assert len(generated.json()["serials"]) == 4

    too_many = client.post("/api/serials/batch-generate", json={
        **tray, "tray_id": "T-02", "operation_id": "op_10", "quantity": 1000})
    assert too_many.status_code == 400

    moved = client.post("/api/serials/batch-advance", json={**tray, "operation_id": "op_20"})
    assert moved.status_code == 200

    units = client.get("/api/serials/tray/T-01").json()
    assert all(u["current_operation_id"] == "op_20" for u in units)

    unassigned = client.post(f"/api/serials/{units[0]['serial_number']}/unassign")
    assert unassigned.json()["order_number"] is None
    assert len(client.get(f"/api/serials/?order_number={order['order_number']}").json()) == 3


def test_work_order_endpoints(client):
    order = _generate(client, "SKU-BMS48", 10, sap="SAP-300")

    assert client.get("/api/work-orders/by-reference/SAP-300").json()["id"] == order["id"]
    assert client.post("/api/work-orders/open", json={"reference": "SAP-300"}).json()["id"] == order["id"]
    assert client.post("/api/work-orders/open", json={"reference": "SAP-301"}).status_code == 404

    listed = client.get("/api/work-orders/?status=OPEN").json()
    assert [o["id"] for o in listed] == [order["id"]]

    edited = client.put(f"/api/work-orders/{order['id']}", json={"user_id": "u_super", "quantity": 12})
    assert edited.json()["quantity"] == 12

    forced = client.put(f"/api/work-orders/{order['id']}", json={"user_id": "u_super", "status": "CLOSED"})
    assert forced.status_code == 403

    forced = client.put(f"/api/work-orders/{order['id']}", json={"user_id": "u_admin", "status": "CLOSED"})
    assert forced.json()["status"] == "CLOSED"
    events = client.get(f"/api/work-orders/{order['id']}/events").json()
    assert events[0]["forced"] is True

    deleted = client.delete(f"/api/work-orders/{order['id']}?user_id=u_admin")
    assert deleted.status_code == 200
    assert client.get(f"/api/work-orders/{order['id']}").status_code == 404


def test_dashboard_stats(client):
    response = client.get("/api/dashboard/stats?route_id=rt_default")
    assert response.status_code == 200
    body = response.json()
    assert body["target_operation_id"] == "op_40"
    assert body["produced_count"] == 0


def test_admin_endpoints(client):
    health = client.get("/api/admin/system/health").json()
    assert health["overall"] == "healthy"
    assert health["open_orders"] == 0

    denied = client.post("/api/admin/reset", json={"user_id": "u_op1"})
    assert denied.status_code == 403

    _generate(client, "SKU-BMS48", 3)
    reset = client.post("/api/admin/reset", json={"user_id": "u_admin"})
    assert reset.status_code == 200
    assert client.get("/api/work-orders/").json() == []
    assert len(client.get("/api/operations/").json()) == 4

    assert client.post("/api/admin/setup").status_code == 200
