"""
Tests for the REST API: tables, orders, products and the config endpoint.
"""

import pytest


def _item_payload(product, quantity=1, item_id="tmp-1"):
    return {
        "id": item_id,
        "product_id": product.id,
        "product_name": product.name,
        "unit_price": product.price,
        "quantity": quantity,
    }


async def _open_order(async_client, table):
    response = await async_client.post(f"/api/tables/{table.id}/order")
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_create_and_list_tables(async_client):
    response = await async_client.post("/api/tables", json={"name": "Patio 1", "capacity": 2})
    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "free"

    response = await async_client.get("/api/tables")
    assert [table["id"] for table in response.json()] == [created["id"]]

    response = await async_client.get(f"/api/tables/{created['id']}")
    assert response.json()["name"] == "Patio 1"


@pytest.mark.asyncio
async def test_unknown_table_is_404(async_client):
    response = await async_client.post("/api/tables/nope/order")
    assert response.status_code == 404
    assert "nope" in response.json()["detail"]


@pytest.mark.asyncio
async def test_open_order_is_idempotent(async_client, table):
    first = await _open_order(async_client, table)
    second = await _open_order(async_client, table)
    assert first["id"] == second["id"]
    assert first["kitchen_status"] == "not_sent"


@pytest.mark.asyncio
async def test_get_unknown_order_is_404(async_client):
    response = await async_client.get("/api/orders/missing")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_write_items_and_send_to_kitchen(async_client, table, burger, fries):
    order = await _open_order(async_client, table)
    response = await async_client.put(
        f"/api/orders/{order['id']}/items",
        json={"items": [_item_payload(burger, 2, "tmp-a"), _item_payload(fries, 1, "tmp-b")]},
    )
    assert response.status_code == 200
    written = response.json()
    assert written["total"] == 29.0
    assert all(not item["id"].startswith("tmp-") for item in written["items"])

    burger_id = written["items"][0]["id"]
    response = await async_client.post(
        f"/api/orders/{order['id']}/kitchen", json={"item_ids": [burger_id]}
    )
    sent = response.json()
    assert [item["status"] for item in sent["items"]] == ["sent", "pending"]

    response = await async_client.get(f"/api/tables/{table.id}")
    assert response.json()["status"] == "in_kitchen"


@pytest.mark.asyncio
async def test_kitchen_without_body_sends_everything(async_client, table, burger):
    order = await _open_order(async_client, table)
    await async_client.put(f"/api/orders/{order['id']}/items", json={"items": [_item_payload(burger)]})
    response = await async_client.post(f"/api/orders/{order['id']}/kitchen")
    assert response.status_code == 200
    assert response.json()["items"][0]["status"] == "sent"


@pytest.mark.asyncio
async def test_removed_items(async_client, table, burger, fries):
    order = await _open_order(async_client, table)
    written = (await async_client.put(
        f"/api/orders/{order['id']}/items",
        json={"items": [_item_payload(burger, item_id="tmp-a"), _item_payload(fries, item_id="tmp-b")]},
    )).json()
    burger_item, fries_item = written["items"]

    response = await async_client.put(
        f"/api/orders/{order['id']}/items",
        json={"items": [burger_item], "removed_item_ids": [fries_item["id"]]},
    )
    assert [item["id"] for item in response.json()["items"]] == [burger_item["id"]]


@pytest.mark.asyncio
async def test_notify_query_controls_staff_notification(async_client, app, table, burger):
    order = await _open_order(async_client, table)
    notified = []
    app.state.service.notifications.subscribe("notifications_updated", lambda: notified.append(1))

    await async_client.put(
        f"/api/orders/{order['id']}/items", params={"notify": "false"}, json={"items": [_item_payload(burger)]}
    )
    assert notified == []
    await async_client.put(f"/api/orders/{order['id']}/items", json={"items": [_item_payload(burger)]})
    assert notified == [1]


@pytest.mark.asyncio
async def test_invalid_quantity_is_rejected(async_client, table, burger):
    order = await _open_order(async_client, table)
    response = await async_client.put(
        f"/api/orders/{order['id']}/items", json={"items": [_item_payload(burger, quantity=0)]}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_full_service_cycle(async_client, table, burger):
    order = await _open_order(async_client, table)
    order_id = order["id"]
    await async_client.put(f"/api/orders/{order_id}/items", json={"items": [_item_payload(burger)]})
    await async_client.post(f"/api/orders/{order_id}/kitchen")

    assert (await async_client.post(f"/api/orders/{order_id}/ready")).json()["kitchen_status"] == "ready"
    assert (await async_client.post(f"/api/orders/{order_id}/served")).json()["kitchen_status"] == "served"

    response = await async_client.post(
        f"/api/orders/{order_id}/finalize",
        json={"payment_method": "card", "receipt_url": "https://receipts.example/r.png"},
    )
    final = response.json()
    assert final["status"] == "finalized"
    assert final["payment_receipt_url"] == "https://receipts.example/r.png"

    table_state = (await async_client.get(f"/api/tables/{table.id}")).json()
    assert table_state["status"] == "free"
    assert table_state["order_id"] is None

    response = await async_client.put(f"/api/orders/{order_id}/items", json={"items": [_item_payload(burger)]})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_cancel_unsent_order(async_client, table, burger):
    order = await _open_order(async_client, table)
    await async_client.put(f"/api/orders/{order['id']}/items", json={"items": [_item_payload(burger)]})

    response = await async_client.delete(f"/api/orders/{order['id']}")
    assert response.status_code == 204
    assert (await async_client.get(f"/api/orders/{order['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_products(async_client):
    response = await async_client.post(
        "/api/products", json={"name": "Salad", "price": 7.5, "default_excluded_ingredients": ["feta"]}
    )
    assert response.status_code == 201
    response = await async_client.get("/api/products")
    products = response.json()
    assert [product["name"] for product in products] == ["Salad"]
    assert products[0]["default_excluded_ingredients"] == ["feta"]


@pytest.mark.asyncio
async def test_config_exposes_debounce(async_client):
    response = await async_client.get("/config")
    body = response.json()
    assert body["sync_debounce_ms"] == 300
    assert body["ws_base"].startswith("ws://")
