import os
from datetime import datetime

from mongomock.collection import Collection
from pymongo.errors import PyMongoError


def jpeg(name="photo.jpg"):
    return ("photos", (name, b"\xff\xd8\xff fake jpeg", "image/jpeg"))


PRODUCT_FORM = {
    "name": " Kaftan ",
    "description": "Hand embroidered",
    "price": "4500",
    "category": "Dresses",
    "colors": "red, blue, ,green",
    "sizes": "S,M",
}


def create_product(client, files=None, **form):
    data = dict(PRODUCT_FORM, **form)
    return client.post("/api/admin/products", data=data, files=files or [jpeg()])


def test_create_product_requires_a_photo(client, db):
    res = client.post("/api/admin/products", data=PRODUCT_FORM)
    assert res.status_code == 400
    assert res.json()["message"] == "All fields including photos are required"
    assert db["product"].count_documents({}) == 0


def test_create_product_rejects_non_numeric_price(client, db, settings):
    res = create_product(client, price="abc")
    assert res.status_code == 400
    # the staged upload is cleaned up
    assert os.listdir(settings.uploads_dir) == []


def test_create_product_uploads_photos(client, media_store):
    res = create_product(client, files=[jpeg("a.jpg"), jpeg("b.jpg")])

    assert res.status_code == 201
    body = res.json()
    assert body["name"] == "Kaftan"
    assert body["price"] == 4500
    assert body["colors"] == ["red", "blue", "green"]
    assert body["sizes"] == ["S", "M"]
    assert len(body["photos"]) == 2
    assert all("cloudinary.com" in url for url in body["photos"])
    assert [kind for _, kind in media_store.uploads] == ["image", "image"]


def test_accepts_bracketed_photo_field(client):
    res = client.post(
        "/api/admin/products",
        data=PRODUCT_FORM,
        files=[("photos[]", ("a.jpg", b"jpeg", "image/jpeg"))],
    )
    assert res.status_code == 201
    assert len(res.json()["photos"]) == 1


def test_failed_upload_falls_back_to_local_copy(client, media_store, settings):
    media_store.fail_names.add("broken")

    res = create_product(client, files=[jpeg("ok.jpg"), jpeg("broken.jpg")])

    assert res.status_code == 201
    remote, local = res.json()["photos"]
    assert "cloudinary.com" in remote
    assert local.startswith("/uploads/") and local.endswith("broken.jpg")
    assert os.listdir(settings.uploads_dir) == [os.path.basename(local)]


def test_list_and_get_products(client, db):
    first = create_product(client, name="First").json()
    db["product"].update_one({"name": "First"}, {"$set": {"createdAt": datetime(2020, 1, 1)}})
    second = create_product(client, name="Second").json()

    listed = client.get("/api/public/products").json()
    assert [p["name"] for p in listed] == ["Second", "First"]

    assert client.get(f"/api/public/products/{first['id']}").json()["name"] == "First"
    assert client.get("/api/public/products/507f1f77bcf86cd799439011").status_code == 404
    assert client.get("/api/public/products/nope").status_code == 404
    assert second["id"] != first["id"]


def test_update_changes_only_supplied_fields(client):
    product = create_product(client).json()

    res = client.put(f"/api/admin/products/{product['id']}", data={"price": "5000"})

    assert res.status_code == 200
    body = res.json()
    assert body["price"] == 5000
    assert body["name"] == "Kaftan"
    assert body["colors"] == ["red", "blue", "green"]
    assert body["photos"] == product["photos"]


def test_update_with_photos_replaces_list_without_deleting_old(client, media_store):
    product = create_product(client).json()

    res = client.put(f"/api/admin/products/{product['id']}", files=[jpeg("new1.jpg"), jpeg("new2.jpg")])

    photos = res.json()["photos"]
    assert len(photos) == 2
    assert product["photos"][0] not in photos
    assert media_store.deleted == []


def test_update_missing_product(client):
    res = client.put("/api/admin/products/507f1f77bcf86cd799439011", data={"name": "x"})
    assert res.status_code == 404
    assert res.json()["message"] == "Product not found"


def test_delete_product_removes_media(client, media_store, settings):
    media_store.fail_names.add("local")
    product = create_product(client, files=[jpeg("remote.jpg"), jpeg("local.jpg")]).json()
    remote, local = product["photos"]

    res = client.delete(f"/api/admin/products/{product['id']}")

    assert res.status_code == 200
    assert media_store.deleted == [remote]
    assert not os.path.exists(os.path.join(settings.uploads_dir, os.path.basename(local)))
    assert client.get("/api/public/products").json() == []


def test_failing_media_delete_does_not_block_product_delete(client, media_store):
    media_store.fail_deletes = True
    product = create_product(client, files=[jpeg("a.jpg"), jpeg("b.jpg")]).json()

    res = client.delete(f"/api/admin/products/{product['id']}")

    assert res.status_code == 200
    assert len(media_store.deleted) == 2
    assert client.get(f"/api/public/products/{product['id']}").status_code == 404


def test_product_mutations_refresh_dashboard(client):
    product = create_product(client).json()
    assert client.get("/api/admin/dashboard/stats").json()["totalProducts"] == 1

    client.delete(f"/api/admin/products/{product['id']}")
    assert client.get("/api/admin/dashboard/stats").json()["totalProducts"] == 0


def failing(*args, **kwargs):
    raise PyMongoError("insert failed")


def test_database_failure_on_create_rolls_back_uploads(client, media_store, settings, monkeypatch):
    monkeypatch.setattr(Collection, "insert_one", failing)

    res = create_product(client, files=[jpeg("a.jpg"), jpeg("b.jpg")])

    assert res.status_code == 500
    assert res.json() == {"message": "Error creating product"}
    assert len(media_store.deleted) == 2
    assert all("cloudinary.com" in url for url in media_store.deleted)
    assert os.listdir(settings.uploads_dir) == []


def test_database_failure_on_listing_hides_driver_error(client, monkeypatch):
    monkeypatch.setattr(Collection, "find", failing)

    res = client.get("/api/public/products")

    assert res.status_code == 500
    assert res.json() == {"message": "Error fetching products"}
