"""
HTTP surface tests for /api/v1/orders, run in-process over ASGITransport.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from marketplace.database import get_db
from marketplace.main import app


@pytest_asyncio.fixture
async def client(session_factory, seed):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def _headers(user) -> dict:
    return {"X-Actor-Id": str(user.id)}


def _checkout_body(seed, *lines, **extra) -> dict:
    body = {
        "store_id": str(seed.store.id),
        "address_id": str(seed.address.id),
        "items": [{"product_id": str(p.id), "quantity": q} for p, q in lines],
    }
    body.update(extra)
    return body


async def _create(client, seed, *lines) -> dict:
    response = await client.post("/api/v1/orders", json=_checkout_body(seed, *lines), headers=_headers(seed.buyer))
    assert response.status_code == 201, response.text
    return response.json()


class TestCheckoutEndpoint:

    async def test_create_returns_order_with_allowed_actions(self, client, seed):
        data = await _create(client, seed, (seed.teapot, 2))

        assert data["status"] == 0
        assert data["status_label"] == "UNPAID"
        assert data["allowed_actions"] == ["pay", "cancel"]
        assert data["item_count"] == 2
        assert float(data["total_amount"]) == pytest.approx(39.98)
        assert data["line_items"][0]["product_name"] == "Clay Teapot"
        assert data["shipping_snapshot"]["city"] == "Harbor"
        assert len(data["status_history"]) == 1

    async def test_insufficient_stock_maps_to_409(self, client, seed):
        response = await client.post(
            "/api/v1/orders",
            json=_checkout_body(seed, (seed.teapot, 50)),
            headers=_headers(seed.buyer),
        )

        assert response.status_code == 409
        body = response.json()
        assert body["type"] == "InsufficientStockError"
        assert body["path"] == "/api/v1/orders"

    async def test_unknown_product_maps_to_404(self, client, seed):
        body = _checkout_body(seed, (seed.teapot, 1))
        body["items"][0]["product_id"] = str(uuid.uuid4())

        response = await client.post("/api/v1/orders", json=body, headers=_headers(seed.buyer))

        assert response.status_code == 404
        assert response.json()["type"] == "NotFoundError"

    async def test_empty_items_is_rejected(self, client, seed):
        response = await client.post(
            "/api/v1/orders",
            json=_checkout_body(seed),
            headers=_headers(seed.buyer),
        )
        assert response.status_code == 422

    async def test_oversized_quantity_is_rejected_before_reserving(self, client, seed):
        response = await client.post(
            "/api/v1/orders",
            json=_checkout_body(seed, (seed.teapot, 10**20)),
            headers=_headers(seed.buyer),
        )

        assert response.status_code == 422
        stats = await client.get(f"/api/v1/orders/store/{seed.store.id}/stats", headers=_headers(seed.merchant))
        assert stats.json()["total_orders"] == 0

    async def test_unknown_payment_method_is_rejected(self, client, seed):
        response = await client.post(
            "/api/v1/orders",
            json=_checkout_body(seed, (seed.cups, 1), payment_method="BARTER"),
            headers=_headers(seed.buyer),
        )
        assert response.status_code == 422

    async def test_payment_methods_are_listed(self, client, seed):
        response = await client.get("/api/v1/orders/payment-methods")

        assert response.status_code == 200
        body = response.json()
        assert body["default"] == "ONLINE"
        assert {"ONLINE", "CARD", "COD"} <= set(body["methods"])

    async def test_missing_actor_header_is_rejected(self, client, seed):
        response = await client.post("/api/v1/orders", json=_checkout_body(seed, (seed.cups, 1)))
        assert response.status_code == 422


class TestLifecycleEndpoints:

    async def test_full_happy_path(self, client, seed):
        order = await _create(client, seed, (seed.cups, 2))
        order_id = order["id"]

        response = await client.post(
            f"/api/v1/orders/{order_id}/pay",
            json={"payment_method": "CARD"},
            headers=_headers(seed.buyer),
        )
        assert response.status_code == 200
        assert response.json()["status_label"] == "PAID"
        assert response.json()["payment_method"] == "CARD"

        response = await client.post(f"/api/v1/orders/{order_id}/ship", headers=_headers(seed.merchant))
        assert response.json()["status_label"] == "SHIPPED"

        response = await client.post(f"/api/v1/orders/{order_id}/receive", headers=_headers(seed.buyer))
        assert response.json()["status_label"] == "COMPLETED"
        assert response.json()["allowed_actions"] == []

    async def test_pay_without_body(self, client, seed):
        order = await _create(client, seed, (seed.cups, 1))

        response = await client.post(f"/api/v1/orders/{order['id']}/pay", headers=_headers(seed.buyer))

        assert response.status_code == 200
        assert response.json()["payment_method"] == "ONLINE"

    async def test_cancel_paid_order_maps_to_409(self, client, seed):
        order = await _create(client, seed, (seed.cups, 1))
        await client.post(f"/api/v1/orders/{order['id']}/pay", headers=_headers(seed.buyer))

        response = await client.post(f"/api/v1/orders/{order['id']}/cancel", headers=_headers(seed.buyer))

        assert response.status_code == 409
        assert response.json()["type"] == "InvalidStateError"

    async def test_wrong_actor_maps_to_403(self, client, seed):
        order = await _create(client, seed, (seed.cups, 1))

        response = await client.post(f"/api/v1/orders/{order['id']}/pay", headers=_headers(seed.other_buyer))

        assert response.status_code == 403
        assert response.json()["type"] == "UnauthorizedError"

    async def test_refund_round_trip(self, client, seed):
        order = await _create(client, seed, (seed.teapot, 1))
        await client.post(f"/api/v1/orders/{order['id']}/pay", headers=_headers(seed.buyer))

        response = await client.post(
            f"/api/v1/orders/{order['id']}/refund",
            json={"reason": "wrong colour"},
            headers=_headers(seed.buyer),
        )
        assert response.json()["status_label"] == "REFUND_PENDING"

        response = await client.post(
            f"/api/v1/orders/{order['id']}/refund/decision",
            json={"agree": False},
            headers=_headers(seed.merchant),
        )
        assert response.status_code == 200
        assert response.json()["status_label"] == "REFUND_REJECTED"
        assert response.json()["refund_reason"] == "wrong colour"


class TestQueryEndpoints:

    async def test_get_by_id_and_number(self, client, seed):
        order = await _create(client, seed, (seed.cups, 1))

        by_id = await client.get(f"/api/v1/orders/{order['id']}", headers=_headers(seed.merchant))
        by_number = await client.get(
            f"/api/v1/orders/number/{order['order_number']}",
            headers=_headers(seed.buyer),
        )

        assert by_id.status_code == 200
        assert by_number.json()["id"] == order["id"]

    async def test_stranger_cannot_view_order(self, client, seed):
        order = await _create(client, seed, (seed.cups, 1))

        response = await client.get(f"/api/v1/orders/{order['id']}", headers=_headers(seed.other_buyer))

        assert response.status_code == 403

    async def test_unknown_order_is_404(self, client, seed):
        response = await client.get(f"/api/v1/orders/{uuid.uuid4()}", headers=_headers(seed.buyer))
        assert response.status_code == 404

    async def test_my_orders_and_counts(self, client, seed):
        first = await _create(client, seed, (seed.cups, 1))
        await _create(client, seed, (seed.cups, 1))
        await client.post(f"/api/v1/orders/{first['id']}/pay", headers=_headers(seed.buyer))

        listing = await client.get("/api/v1/orders", headers=_headers(seed.buyer))
        assert listing.json()["total"] == 2
        assert listing.json()["pages"] == 1

        filtered = await client.get("/api/v1/orders", params={"status": 1}, headers=_headers(seed.buyer))
        assert [o["id"] for o in filtered.json()["items"]] == [first["id"]]

        counts = await client.get("/api/v1/orders/count", headers=_headers(seed.buyer))
        assert counts.json() == {
            "unpaid": 1,
            "to_ship": 1,
            "to_receive": 0,
            "completed": 0,
            "refund_pending": 0,
        }

    async def test_status_listing_scoped_by_role(self, client, seed):
        await _create(client, seed, (seed.cups, 1))

        as_admin = await client.get("/api/v1/orders/status/0", headers=_headers(seed.admin))
        as_stranger = await client.get("/api/v1/orders/status/0", headers=_headers(seed.other_buyer))

        assert as_admin.json()["total"] == 1
        assert as_stranger.json()["total"] == 0

    async def test_store_orders_and_stats(self, client, seed):
        await _create(client, seed, (seed.cups, 2))

        orders = await client.get(f"/api/v1/orders/store/{seed.store.id}", headers=_headers(seed.merchant))
        stats = await client.get(f"/api/v1/orders/store/{seed.store.id}/stats", headers=_headers(seed.merchant))
        denied = await client.get(f"/api/v1/orders/store/{seed.store.id}", headers=_headers(seed.buyer))

        assert orders.json()["total"] == 1
        assert stats.json()["total_orders"] == 1
        assert stats.json()["by_status"] == {"UNPAID": 1}
        assert denied.status_code == 403


class TestHealth:

    async def test_health_reports_database(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "connected"
