"""Tests for the FastAPI API."""

import inspect
import json

import pytest


def order_body(product_id, **overrides):
    body = {
        "customerName": "Sara",
        "customerPhone": "0551925318",
        "region": "Alger",
        "commune": "Hydra",
        "deliveryType": "home",
        "lines": [{"productId": product_id, "quantity": 2}],
    }
    body.update(overrides)
    return body


class TestHealth:
    def test_health(self, api_client):
        for path in ("/health", "/api/health"):
            response = api_client.get(path)
            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "ok"
            assert data["backend"] == "file"
            assert data["database"] == "connected"
            assert data["timestamp"].endswith("Z")

    def test_ping(self, api_client):
        response = api_client.get("/ping")
        assert response.status_code == 200
        assert response.text == "OK"

    def test_cors(self, api_client):
        response = api_client.get("/ping", headers={"Origin": "https://shop.example"})
        assert response.headers["access-control-allow-origin"] in ("*", "https://shop.example")


class TestProducts:
    def test_create_multipart(self, api_client, services):
        response = api_client.post(
            "/api/products",
            data={"product": json.dumps({"title": "Bague Or", "price": 5000, "stock": 10})},
            files=[("images", ("ring.jpg", b"\xff\xd8jpeg", "image/jpeg"))],
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Bague Or"
        assert data["price"] == 5000
        assert data["image"].startswith("/uploads/products/")
        assert data["images"][0]["publicId"].endswith(".jpg")

        image = api_client.get(data["image"])
        assert image.status_code == 200
        assert image.content == b"\xff\xd8jpeg"

    def test_create_without_images(self, api_client):
        response = api_client.post(
            "/api/products", data={"product": json.dumps({"name": "Montre", "price": 100})}
        )
        assert response.status_code == 201
        assert response.json()["images"] == []

    def test_create_missing_price(self, api_client):
        response = api_client.post(
            "/api/products", data={"product": json.dumps({"name": "Montre"})}
        )
        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error_type"] == "MissingFieldError"
        assert "price" in data["error"]

    def test_create_invalid_json(self, api_client):
        response = api_client.post("/api/products", data={"product": "{oops"})
        assert response.status_code == 400
        assert response.json()["error_type"] == "ValidationError"

    def test_too_many_images(self, api_client):
        files = [("images", (f"{i}.png", b"x", "image/png")) for i in range(5)]
        response = api_client.post(
            "/api/products",
            data={"product": json.dumps({"name": "Parure", "price": 10})},
            files=files,
        )
        assert response.status_code == 400

    def test_list_get_update_delete(self, api_client, add_product):
        product_id = add_product(name="Collier", price=3000)
        add_product(name="Hidden", status="inactive")

        listed = api_client.get("/api/products", params={"status": "active"}).json()
        assert [p["name"] for p in listed] == ["Collier"]

        response = api_client.put(
            f"/api/products/{product_id}",
            data={"product": json.dumps({"price": 2500, "oldPrice": 3000})},
        )
        assert response.status_code == 200
        assert response.json()["price"] == 2500
        assert api_client.get(f"/api/products/{product_id}").json()["oldPrice"] == 3000

        assert api_client.delete(f"/api/products/{product_id}").json() == {"success": True}
        assert api_client.get(f"/api/products/{product_id}").status_code == 404

    def test_storage_handlers_run_in_threadpool(self):
        from storefront import api

        for handler in (api.create_product, api.update_product, api.upload_image):
            assert not inspect.iscoroutinefunction(handler)

    def test_create_with_sizes_field(self, api_client):
        response = api_client.post(
            "/api/products",
            data={
                "product": json.dumps({"name": "Robe", "price": 2500}),
                "sizes": json.dumps([{"size": "M", "stock": 2}, "L"]),
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["sizeVariants"] == [{"size": "M", "stock": 2}, "L"]
        assert "sizes" not in data

    def test_legacy_sizes_key_in_product_json(self, api_client):
        response = api_client.post(
            "/api/products",
            data={"product": json.dumps({"name": "Bague", "price": 900, "sizes": ["52", "54"]})},
        )
        assert response.status_code == 201
        assert response.json()["sizeVariants"] == ["52", "54"]

    def test_invalid_sizes_field(self, api_client):
        response = api_client.post(
            "/api/products",
            data={"product": json.dumps({"name": "Robe", "price": 2500}), "sizes": "[oops"},
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "ValidationError"

    def test_update_product_stored_with_sizes(self, api_client, add_product):
        product_id = add_product(name="Robe", sizes=[{"size": "M", "stock": 1}])
        response = api_client.put(
            f"/api/products/{product_id}", data={"product": json.dumps({"price": 1800})}
        )
        assert response.status_code == 200
        assert response.json()["sizeVariants"] == [{"size": "M", "stock": 1}]

    def test_get_unknown(self, api_client):
        response = api_client.get("/api/products/ghost")
        assert response.status_code == 404
        assert response.json()["error_type"] == "ProductNotFoundError"

    def test_categories(self, api_client):
        data = api_client.get("/api/categories").json()
        assert [c["name"] for c in data][:3] == ["Parure", "Bracelet", "Bague"]


class TestImageUpload:
    def test_upload_single_image(self, api_client):
        response = api_client.post(
            "/api/upload", files={"image": ("banner.png", b"\x89PNG", "image/png")}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["url"].startswith("/uploads/uploads/")
        assert data["url"].endswith(".png")
        assert data["publicId"].startswith("uploads/")
        assert api_client.get(data["url"]).content == b"\x89PNG"

    def test_upload_without_image(self, api_client):
        response = api_client.post("/api/upload", data={"note": "nothing attached"})
        assert response.status_code == 400
        data = response.json()
        assert data["error_type"] == "MissingFieldError"
        assert "image" in data["error"]


class TestDeliveryEndpoints:
    def test_upsert_list_and_price(self, api_client):
        response = api_client.put(
            "/api/delivery/regions",
            json={"name": "Alger", "homePrice": 350, "officePrice": 300},
        )
        assert response.status_code == 200
        assert api_client.get("/api/delivery/regions").json() == [
            {"name": "Alger", "homePrice": 350, "officePrice": 300}
        ]

        price = api_client.get("/api/delivery/price", params={"region": "ALGER", "type": "office"})
        assert price.json()["price"] == 300

    def test_bad_delivery_type(self, api_client):
        response = api_client.get("/api/delivery/price", params={"region": "Alger", "type": "drone"})
        assert response.status_code == 400

    def test_negative_price_rejected(self, api_client):
        response = api_client.put("/api/delivery/regions", json={"name": "Alger", "homePrice": -1})
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_seed_and_delete(self, api_client):
        assert api_client.post("/api/delivery/regions/seed").json() == {"success": True, "added": 58}
        assert api_client.post("/api/delivery/regions/seed").json()["added"] == 0

        response = api_client.delete("/api/delivery/regions/0")
        assert response.json()["removed"]["name"] == "Adrar"
        assert len(api_client.get("/api/delivery/regions").json()) == 57

        assert api_client.delete("/api/delivery/regions/99").status_code == 404

    def test_settings_merge(self, api_client):
        api_client.put("/api/settings", json={"storeName": "Windy Luxury"})
        api_client.put(
            "/api/settings",
            json={"deliveryWilayas": [{"name": "Oran", "homePrice": 500, "officePrice": 400}]},
        )
        settings = api_client.get("/api/settings").json()
        assert settings["storeName"] == "Windy Luxury"
        assert settings["deliveryRegions"] == [
            {"name": "Oran", "homePrice": 500, "officePrice": 400}
        ]
        assert "deliveryWilayas" not in settings


class TestOrders:
    @pytest.fixture
    def product_id(self, add_product, alger):
        return add_product(name="Bague Or", price=5000, stock=10)

    def test_place_order(self, api_client, product_id):
        response = api_client.post("/api/orders", json=order_body(product_id))
        assert response.status_code == 201
        data = response.json()
        assert data["subtotal"] == 10000
        assert data["deliveryPrice"] == 350
        assert data["total"] == 10350
        assert data["status"] == "pending"
        assert data["wilaya"] == "Alger"
        assert data["products"][0]["quantity"] == 2

        assert api_client.get(f"/api/orders/{data['id']}").json() == data
        assert api_client.get(f"/api/products/{product_id}").json()["stock"] == 8

    def test_legacy_field_names(self, api_client, product_id):
        body = order_body(product_id)
        body["wilaya"] = body.pop("region")
        body["products"] = [{"id": product_id, "quantity": 1}]
        del body["lines"]
        response = api_client.post("/api/orders", json=body)
        assert response.status_code == 201
        assert response.json()["deliveryPrice"] == 350

    def test_invalid_phone(self, api_client, product_id):
        response = api_client.post(
            "/api/orders", json=order_body(product_id, customerPhone="0123456789")
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidPhoneError"

    def test_zero_quantity(self, api_client, product_id):
        body = order_body(product_id, lines=[{"productId": product_id, "quantity": 0}])
        response = api_client.post("/api/orders", json=body)
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_out_of_stock(self, api_client, add_product):
        product_id = add_product(stock=0)
        response = api_client.post("/api/orders", json=order_body(product_id))
        assert response.status_code == 400
        assert response.json()["error_type"] == "OutOfStockError"

    def test_unknown_order(self, api_client):
        assert api_client.get("/api/orders/nope").status_code == 404

    def test_status_transitions(self, api_client, product_id):
        order_id = api_client.post("/api/orders", json=order_body(product_id)).json()["id"]

        response = api_client.put(f"/api/orders/{order_id}/status", json={"status": "cancelled"})
        assert response.json() == {"success": True}
        assert api_client.get(f"/api/orders/{order_id}").json()["status"] == "cancelled"

        response = api_client.put(f"/api/orders/{order_id}/status", json={"status": "pending"})
        assert response.status_code == 409

        response = api_client.put(f"/api/orders/{order_id}/status", json={"status": "lost"})
        assert response.status_code == 400

    def test_list_by_status(self, api_client, product_id):
        api_client.post("/api/orders", json=order_body(product_id))
        assert len(api_client.get("/api/orders").json()) == 1
        assert api_client.get("/api/orders", params={"status": "completed"}).json() == []

    def test_export(self, api_client, product_id):
        kept = api_client.post("/api/orders", json=order_body(product_id)).json()["id"]
        cancelled = api_client.post("/api/orders", json=order_body(product_id)).json()["id"]
        api_client.put(f"/api/orders/{cancelled}/status", json={"status": "cancelled"})

        response = api_client.get("/api/orders/export/zrexpress")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="ZR_Express_')
        assert disposition.endswith('.csv"')

        lines = response.text.split("\n")
        assert lines[0].startswith("nom complet,telephone1,telephone2")
        assert len(lines) == 2
        assert f'"{kept}"' in lines[1]
        assert '"10350"' in lines[1]

    def test_export_selected_ids(self, api_client, product_id):
        first = api_client.post("/api/orders", json=order_body(product_id)).json()["id"]
        api_client.post("/api/orders", json=order_body(product_id))

        response = api_client.get("/api/orders/export/zrexpress", params={"ids": first})
        lines = response.text.split("\n")
        assert len(lines) == 2
        assert f'"{first}"' in lines[1]


class TestAdmin:
    def test_stats(self, api_client, add_product, alger):
        product_id = add_product(price=1000)
        api_client.post("/api/orders", json=order_body(product_id, lines=[{"productId": product_id}]))

        assert api_client.get("/api/admin/stats").json() == {
            "totalProducts": 1,
            "totalOrders": 1,
            "totalRevenue": 1350,
            "pendingOrders": 1,
        }

    def test_cleanup(self, api_client, backend):
        backend.insert_documents(
            "orders",
            [{"id": f"o{i}", "createdAt": "2020-01-01T00:00:00Z"} for i in range(120)],
        )
        response = api_client.delete("/api/admin/cleanup")
        assert response.json() == {"success": True, "deleted": 20}
        assert len(backend.list_documents("orders")) == 100


class TestUpstreamFailures:
    def test_write_during_outage_is_503(self, api_client, services):
        services.backend.data_dir.mkdir(parents=True, exist_ok=True)
        (services.backend.data_dir / "settings.json").write_text("not json")

        response = api_client.put(
            "/api/delivery/regions", json={"name": "Alger", "homePrice": 350}
        )
        assert response.status_code == 503
        assert response.json()["error_type"] == "UpstreamUnavailableError"

    def test_reads_degrade(self, api_client, services):
        services.backend.data_dir.mkdir(parents=True, exist_ok=True)
        for name in ("products", "categories", "settings"):
            (services.backend.data_dir / f"{name}.json").write_text("not json")

        assert api_client.get("/api/products").json() == []
        assert len(api_client.get("/api/categories").json()) == 6
        assert api_client.get("/api/settings").json() == {}
