"""
Tests for API route endpoints.

Tests: orders, ad-hoc payment codes, push subscriptions, products, health,
and the error envelope, all through the ASGI app.
"""
import pytest

from services.async_executor import drain_detached
from services.pix_codec import is_valid_payload, parse_tlv


def _order_body(product_id: int, quantity: int = 2, total="25.50") -> dict:
    return {
        "customer": {"name": "Maria", "address": "Rua 1, 10", "phone": "99 9999-0000"},
        "items": [{"productId": product_id, "quantity": quantity}],
        "total": total,
    }


async def _post_order(client, body: dict):
    response = await client.post("/orders", json=body)
    await drain_detached()
    return response


# ── Orders ──────────────────────────────────────────────────────────


class TestCreateOrder:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_returns_order_with_payment_code(self, client, sample_product, relay):
        response = await _post_order(client, _order_body(sample_product.id))
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["total"] == 25.5
        assert data["customer"]["name"] == "Maria"
        assert data["items"] == [
            {"productId": sample_product.id, "name": "Açaí 500ml", "quantity": 2, "unitPrice": 12.75}
        ]
        code = data["paymentCode"]
        assert code["payload"].startswith("000201")
        assert is_valid_payload(code["payload"])
        assert code["image"].startswith("data:image/png;base64,")
        assert code["transactionId"] == ("PED" + data["id"])[:25]
        assert code["merchantKey"] == "+5599991842200"
        assert len(relay.sent) == 1

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_stock_decremented(self, client, sample_product):
        await _post_order(client, _order_body(sample_product.id, quantity=3))
        products = (await client.get("/products")).json()
        assert products[0]["stockQuantity"] == 7

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_zero_total_has_null_payment_code(self, client, sample_product):
        response = await _post_order(client, _order_body(sample_product.id, total=0))
        assert response.status_code == 200
        assert response.json()["paymentCode"] is None

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_embedded_json_strings_accepted(self, client, sample_product):
        body = {
            "customer": '{"name": "Ana"}',
            "items": f'[{{"productId": {sample_product.id}, "quantity": 1}}]',
            "total": "12,75",
        }
        response = await _post_order(client, body)
        assert response.status_code == 200
        assert response.json()["customer"]["name"] == "Ana"
        assert response.json()["total"] == 12.75

    @pytest.mark.api
    @pytest.mark.asyncio
    @pytest.mark.parametrize("items", [[], None])
    async def test_empty_cart_rejected(self, client, items):
        body = {"customer": {"name": "Maria"}, "total": 10}
        if items is not None:
            body["items"] = items
        response = await _post_order(client, body)
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["error"]["code"] == "validation_error"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_malformed_items_rejected(self, client):
        response = await _post_order(client, {"items": "not json", "total": 1})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_negative_total_rejected(self, client, sample_product):
        response = await _post_order(client, _order_body(sample_product.id, total="-3"))
        assert response.status_code == 400

    @pytest.mark.api
    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["total", "unitPrice"])
    async def test_out_of_range_amount_rejected(self, client, sample_product, field):
        body = _order_body(sample_product.id)
        if field == "total":
            body["total"] = "1e30"
        else:
            body["items"][0]["unitPrice"] = "1e30"
        response = await _post_order(client, body)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"
        assert (await client.get("/orders")).json() == []

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_unknown_product_is_404(self, client):
        response = await _post_order(client, _order_body(4242))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"
        assert (await client.get("/orders")).json() == []


class TestOrderAdmin:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_get_unknown_order_404(self, client):
        response = await client.get("/orders/doesnotexist")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_status_update_is_idempotent(self, client, sample_product, relay):
        order_id = (await _post_order(client, _order_body(sample_product.id))).json()["id"]

        for _ in range(2):
            response = await client.put(f"/orders/{order_id}/status", json={"status": "delivered"})
            await drain_detached()
            assert response.status_code == 200
            assert response.json()["status"] == "delivered"

        first = (await client.get(f"/orders/{order_id}")).json()
        second = (await client.get(f"/orders/{order_id}")).json()
        assert first == second
        assert first["status"] == "delivered"
        assert relay.sent[-1] == f"🔔 Order #{order_id} updated to: <b>delivered</b>"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_long_status_stored_verbatim(self, client, sample_product):
        order_id = (await _post_order(client, _order_body(sample_product.id))).json()["id"]
        status = "Saiu para entrega com o motoboy; cliente pediu para tocar o interfone duas vezes. " * 3

        response = await client.put(f"/orders/{order_id}/status", json={"status": status})
        await drain_detached()

        assert response.status_code == 200
        assert len(status) > 150
        assert (await client.get(f"/orders/{order_id}")).json()["status"] == status

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_status_missing_field_400(self, client, sample_product):
        order_id = (await _post_order(client, _order_body(sample_product.id))).json()["id"]
        response = await client.put(f"/orders/{order_id}/status", json={})
        assert response.status_code == 400

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_list_and_delete(self, client, sample_product):
        order_id = (await _post_order(client, _order_body(sample_product.id))).json()["id"]

        listed = (await client.get("/orders")).json()
        assert [o["id"] for o in listed] == [order_id]

        response = await client.delete(f"/orders/{order_id}")
        assert response.json() == {"success": True, "id": order_id}
        assert (await client.get(f"/orders/{order_id}")).status_code == 404


# ── Payment codes ───────────────────────────────────────────────────


class TestPaymentCode:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_with_transaction_id(self, client):
        response = await client.get("/payment-code/25,50/ABC123")
        assert response.status_code == 200
        assert response.headers["cache-control"] == "no-store"
        data = response.json()
        fields = parse_tlv(data["payload"])
        assert fields["54"] == "25.50"
        assert parse_tlv(fields["62"]) == {"05": "ABC123"}
        assert data["transactionId"] == "ABC123"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_generated_transaction_id(self, client):
        data = (await client.get("/payment-code/10")).json()
        assert data["transactionId"].startswith("PIX")
        assert data["transactionId"][3:].isdigit()
        assert is_valid_payload(data["payload"])

    @pytest.mark.api
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/payment-code/0/TX1", "/payment-code/abc/TX1", "/payment-code/5/TX-1", "/payment-code/1e30/TX1"])
    async def test_invalid_input_is_400(self, client, path):
        response = await client.get(path)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_payment_input"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_payment_key(self, client):
        data = (await client.get("/payment-key")).json()
        assert data == {"key": "+5599991842200", "name": "LOJA EXEMPLO", "city": "SAMBAIBA"}


# ── Push ────────────────────────────────────────────────────────────


class TestPush:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_public_key(self, client):
        assert (await client.get("/push/public-key")).json() == {"publicKey": "test-vapid-public-key"}

    @pytest.mark.api
    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"endpoint": ""}, {"endpoint": "not-a-url"}])
    async def test_subscribe_requires_endpoint(self, client, body):
        response = await client.post("/push/subscribe", json=body)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_subscribe_then_unsubscribe(self, client):
        sub = {"endpoint": "https://push.example/abc", "keys": {"p256dh": "k", "auth": "a"}}

        first = await client.post("/push/subscribe", json=sub)
        again = await client.post("/push/subscribe", json=sub)
        assert first.json() == {"ok": True, "created": True}
        assert again.json() == {"ok": True, "created": False}

        removed = await client.post("/push/unsubscribe", json={"endpoint": sub["endpoint"]})
        assert removed.json() == {"ok": True, "removed": True}
        missing = await client.post("/push/unsubscribe", json={"endpoint": sub["endpoint"]})
        assert missing.json() == {"ok": True, "removed": False}

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_order_reaches_subscribers(self, client, sample_product, push):
        await client.post("/push/subscribe", json={"endpoint": "https://push.example/staff"})
        await _post_order(client, _order_body(sample_product.id))
        assert [ep for ep, _ in push.sent] == ["https://push.example/staff"]


# ── Products ────────────────────────────────────────────────────────


class TestProducts:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_create_list_delete(self, client):
        created = await client.post(
            "/products", json={"name": "Tapioca", "price": "8.50", "stockQuantity": 4}
        )
        assert created.status_code == 200
        product = created.json()
        assert product["name"] == "Tapioca"
        assert product["price"] == 8.5
        assert product["stockQuantity"] == 4

        assert [p["id"] for p in (await client.get("/products")).json()] == [product["id"]]

        deleted = await client.delete(f"/products/{product['id']}")
        assert deleted.json() == {"success": True, "id": product["id"]}
        assert (await client.get("/products")).json() == []

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_delete_unknown_404(self, client):
        assert (await client.delete("/products/999")).status_code == 404

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_negative_price_rejected(self, client):
        response = await client.post("/products", json={"name": "X", "price": -1})
        assert response.status_code == 400


# ── Health ──────────────────────────────────────────────────────────


class TestHealthEndpoint:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_health_returns_200(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database_connected"] is True
        assert data["channels"] == {"relay": True, "push": True}

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_notification_status(self, client, sample_product):
        await _post_order(client, _order_body(sample_product.id))
        data = (await client.get("/notifications/status")).json()
        assert data["fanouts_started"] == 1
        assert data["relay_sent"] == 1
