from mongomock.collection import Collection
from pymongo.errors import PyMongoError

from dashboard import DashboardAggregator


ORDER = {
    "productId": "p1",
    "productName": "Kaftan",
    "productPrice": 4500,
    "clientName": "Yacine",
    "wilaya": "Algiers",
    "address": "Bab Ezzouar",
    "phone": "0661234567",
    "email": "yacine@example.com",
}


def place(client, **overrides):
    return client.post("/api/public/orders", json=dict(ORDER, **overrides))


def test_root(client):
    body = client.get("/").json()
    assert body["version"] == "1.0.0"
    assert body["cloudinary"] == "Not Configured"


def test_database_check(client):
    body = client.get("/test").json()
    assert body["backend"] == "✅ Running"
    assert body["connection_status"] == "Connected"
    assert body["database_url"] == "✅ Set"


def test_database_check_reports_missing_url(client, app):
    app.state.settings.database_url = ""
    assert client.get("/test").json()["database_url"] == "❌ Not Set"


def test_media_store_check(client, media_store):
    body = client.get("/api/test-cloudinary").json()
    assert body["success"] is True
    assert "cloudinary.com" in body["imageUrl"]

    media_store.fail_uploads = True
    res = client.get("/api/test-cloudinary")
    assert res.status_code == 500
    assert res.json()["success"] is False


def test_wilayas(client):
    wilayas = client.get("/api/wilayas").json()
    assert len(wilayas) == 58
    assert wilayas[0] == "Adrar"
    assert "Oran" in wilayas


def test_unknown_route(client):
    res = client.get("/api/nothing-here")
    assert res.status_code == 404
    assert res.json() == {"message": "Route not found", "path": "/api/nothing-here", "method": "GET"}


def test_place_order(client, db):
    res = place(client, quantity=2)

    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["message"] == "Order placed successfully! We will contact you soon."
    stored = db["order"].find_one({})
    assert str(stored["_id"]) == body["orderId"]
    assert stored["quantity"] == 2
    assert stored["ipAddress"] == "testclient"


def test_order_rejections_are_client_errors(client, db):
    assert place(client, phone="1234567890").json()["message"] == "Invalid phone number format"
    assert place(client, email="a@b").json()["message"] == "Invalid email format"
    assert place(client, wilaya="").status_code == 400
    assert place(client, productPrice="cheap").status_code == 400
    assert db["order"].count_documents({}) == 0

    assert place(client).status_code == 201
    res = place(client)
    assert res.status_code == 400
    assert res.json()["message"] == "You have already ordered this product recently"


def test_sixth_order_from_same_client_is_rate_limited(client):
    for i in range(5):
        assert place(client, productId=f"p{i}").status_code == 201

    res = place(client, productId="p5")
    assert res.status_code == 400
    assert res.json()["message"] == "Too many orders from this location"


def test_order_lifecycle_updates_dashboard(client):
    first = place(client).json()["orderId"]
    place(client, productId="p2", productPrice=1000, quantity=3, email="other@example.com")

    stats = client.get("/api/admin/dashboard/stats").json()
    assert stats["totalOrders"] == 2
    assert stats["pendingOrders"] == 2
    assert stats["totalCustomers"] == 2
    assert stats["totalRevenue"] == 0

    res = client.put(f"/api/admin/orders/{first}", json={"status": "delivered"})
    assert res.status_code == 200
    assert res.json()["status"] == "delivered"

    stats = client.get("/api/admin/dashboard/stats").json()
    assert stats["pendingOrders"] == 1
    assert stats["totalRevenue"] == 4500

    assert client.delete(f"/api/admin/orders/{first}").status_code == 200
    stats = client.get("/api/admin/dashboard/stats").json()
    assert stats["totalOrders"] == 1
    assert stats["totalRevenue"] == 0
    assert len(stats["monthlyRevenue"]) == 6


def test_invalid_status_update(client):
    order_id = place(client).json()["orderId"]

    res = client.put(f"/api/admin/orders/{order_id}", json={"status": "returned"})

    assert res.status_code == 400
    assert res.json()["message"] == "Invalid status"
    assert client.get("/api/admin/orders").json()[0]["status"] == "pending"


def test_missing_order(client):
    assert client.put("/api/admin/orders/507f1f77bcf86cd799439011", json={"status": "shipped"}).status_code == 404
    assert client.delete("/api/admin/orders/507f1f77bcf86cd799439011").status_code == 404


def test_too_many_files(client, db):
    files = [("photos", (f"p{i}.jpg", b"jpeg", "image/jpeg")) for i in range(11)]
    res = client.post(
        "/api/admin/products",
        data={"name": "Bag", "price": "10", "category": "Bags"},
        files=files,
    )
    assert res.status_code == 400
    assert res.json()["message"] == "Too many files. Maximum is 10 files."
    assert db["product"].count_documents({}) == 0


def test_oversized_file(client, app):
    app.state.settings.max_file_size = 8
    res = client.post(
        "/api/admin/products",
        data={"name": "Bag", "price": "10", "category": "Bags"},
        files=[("photos", ("big.jpg", b"0123456789", "image/jpeg"))],
    )
    assert res.status_code == 400
    assert res.json()["message"].startswith("File too large.")


def test_order_storage_failure_is_a_generic_server_error(client, monkeypatch):
    def failing(*args, **kwargs):
        raise PyMongoError("insert failed")

    monkeypatch.setattr(Collection, "insert_one", failing)

    res = place(client)

    assert res.status_code == 500
    assert res.json() == {"message": "There was an error placing your order. Please try again."}


def test_dashboard_failure_does_not_affect_order(client, db, monkeypatch):
    def broken(self):
        raise PyMongoError("connection reset")

    monkeypatch.setattr(DashboardAggregator, "compute", broken)

    res = place(client)

    assert res.status_code == 201
    assert res.json()["success"] is True
    assert db["order"].count_documents({}) == 1
