import uuid


def setup_stock(client, quantity=50, capacity=500):
    warehouse = client.post("/api/warehouses", json={"code": "WH-A", "name": "Main", "capacity": capacity}).json()
    product = client.post("/api/products", json={"sku": "SKU-001", "name": "Widget"}).json()
    response = client.post("/api/stock/receive", json={
        "warehouse_id": warehouse["id"], "product_id": product["id"], "quantity": quantity
    })
    assert response.status_code == 200
    return warehouse, product


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/api/status").json()["status"] == "ok"


def test_warehouse_crud(client):
    response = client.post("/api/warehouses", json={"code": "WH-A", "name": "Main", "capacity": 100})
    assert response.status_code == 201
    warehouse_id = response.json()["id"]

    assert client.post("/api/warehouses", json={"code": "WH-A", "name": "Dup", "capacity": 100}).status_code == 409
    assert client.post("/api/warehouses", json={"code": "WH-Z", "name": "Bad", "capacity": 0}).status_code == 422

    response = client.patch(f"/api/warehouses/{warehouse_id}", json={"location": "Chiang Mai"})
    assert response.json()["location"] == "Chiang Mai"
    assert client.get(f"/api/warehouses/{warehouse_id}/capacity").json()["free_capacity"] == 100
    assert client.delete(f"/api/warehouses/{warehouse_id}").status_code == 200
    assert client.get(f"/api/warehouses/{warehouse_id}").status_code == 404


def test_order_lifecycle_over_http(client):
    warehouse, product = setup_stock(client)
    response = client.post("/api/orders", json={"items": [{"product_id": product["id"], "quantity": 20}]})
    assert response.status_code == 201
    order = response.json()
    assert order["status"] == "pending"

    client.post(f"/api/orders/{order['id']}/status", json={"status": "confirmed"})
    response = client.post(f"/api/orders/{order['id']}/status", json={"status": "dispatch"})
    body = response.json()
    assert body["order"]["status"] == "dispatch"
    assert body["movements"][0]["movement_type"] == "reserved"
    assert body["allocations"][0]["quantity"] == 20

    response = client.post(f"/api/orders/{order['id']}/status", json={"status": "returned"})
    assert response.status_code == 400
    assert "Cannot transition" in response.json()["detail"]

    levels = client.get("/api/stock/levels", params={"product_id": product["id"]}).json()
    assert levels[0]["reserved_quantity"] == 20
    assert levels[0]["available_quantity"] == 30

    history = client.get("/api/stock/movements", params={"reference_id": order["id"]}).json()
    assert history["total"] == 1


def test_insufficient_stock_maps_to_400(client):
    _, product = setup_stock(client, quantity=5)
    response = client.post("/api/orders", json={"items": [{"product_id": product["id"], "quantity": 6}]})
    assert response.status_code == 400
    assert "Available: 5" in response.json()["detail"]


def test_unknown_order_is_404(client):
    assert client.get(f"/api/orders/{uuid.uuid4()}").status_code == 404


def test_transfer_and_adjust(client):
    warehouse, product = setup_stock(client, quantity=30)
    other = client.post("/api/warehouses", json={"code": "WH-B", "name": "Overflow", "capacity": 10}).json()

    response = client.post("/api/stock/transfer", json={
        "from_warehouse_id": warehouse["id"],
        "to_warehouse_id": other["id"],
        "items": [{"product_id": product["id"], "quantity": 20}],
    })
    assert response.status_code == 400
    assert "capacity" in response.json()["detail"]

    response = client.post("/api/stock/adjust", json={
        "warehouse_id": warehouse["id"], "product_id": product["id"],
        "quantity_delta": -5, "reason": "Breakage"
    })
    assert response.json()["entry"]["quantity"] == 25
    assert response.json()["movements"][0]["movement_type"] == "adjustment"


def test_returns_over_http(client):
    _, product = setup_stock(client)
    order = client.post("/api/orders", json={"items": [{"product_id": product["id"], "quantity": 4}]}).json()
    for status in ("confirmed", "dispatch", "delivered"):
        client.post(f"/api/orders/{order['id']}/status", json={"status": status})

    first = client.post("/api/returns", json={"sales_order_id": order["id"]}).json()
    second = client.post("/api/returns", json={"sales_order_id": order["id"]}).json()
    assert first["created"] is True
    assert second["created"] is False
    assert first["expected_return"]["id"] == second["expected_return"]["id"]

    summary = client.get("/api/returns/by-product").json()
    assert summary[0]["expected_quantity"] == 4

    return_id = first["expected_return"]["id"]
    response = client.post(f"/api/returns/{return_id}/status", json={"status": "received"})
    assert response.json()["expected_return"]["status"] == "received"
    assert client.get(f"/api/orders/{order['id']}").json()["status"] == "returned"

    report = client.get("/api/reconciliation/stock").json()
    assert report["in_sync"] is True


def test_product_search_matches_variants(client):
    client.post("/api/products", json={
        "sku": "TEE", "name": "T-Shirt",
        "variants": [{"sku": "TEE-RED-M", "name": "Red M"}, {"sku": "TEE-BLU-L", "name": "Blue L"}],
    })
    client.post("/api/products", json={"sku": "MUG", "name": "Mug"})

    body = client.get("/api/products", params={"search": "BLU"}).json()
    assert body["total"] == 1
    assert body["products"][0]["sku"] == "TEE"
    assert len(body["products"][0]["variants"]) == 2
    assert client.post("/api/products", json={"sku": "MUG", "name": "Again"}).status_code == 409
