import uuid

import pytest

from stockroom.models.order import OrderStatus
from stockroom.models.user import UserRole


@pytest.fixture
async def manager(seed):
    return await seed.user(UserRole.MANAGER)


@pytest.fixture
async def staff(seed):
    return await seed.user(UserRole.STAFF)


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"] == "connected"


async def test_missing_token_is_unauthorized(client):
    response = await client.get(f"/api/orders/{uuid.uuid4()}")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


async def test_garbage_token_is_unauthorized(client):
    response = await client.get(f"/api/orders/{uuid.uuid4()}", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


async def test_unknown_order_is_not_found(client, manager, auth_headers):
    response = await client.get(f"/api/orders/{uuid.uuid4()}", headers=auth_headers(manager))
    assert response.status_code == 404
    assert response.json() == {"error": "Order not found"}


async def test_invalid_body_reports_field(client, manager, auth_headers):
    response = await client.post(
        "/api/orders/actions",
        json={"action": "ALLOCATE", "orderId": "not-a-uuid"},
        headers=auth_headers(manager),
    )
    assert response.status_code == 400
    assert response.json()["error"].startswith("orderId:")


async def test_invalid_action(client, manager, auth_headers):
    response = await client.post(
        "/api/orders/actions",
        json={"action": "TELEPORT", "orderId": str(uuid.uuid4())},
        headers=auth_headers(manager),
    )
    assert response.status_code == 400
    assert response.json()["error"].startswith("action:")


async def test_order_id_required(client, manager, auth_headers):
    response = await client.post("/api/orders/actions", json={"action": "ALLOCATE"}, headers=auth_headers(manager))
    assert response.status_code == 400
    assert response.json() == {"error": "orderId is required"}


async def test_allocate_then_cancel(client, seed, manager, auth_headers):
    variant = await seed.variant("WIDGET")
    location = await seed.location("A-01")
    await seed.inventory(variant, location, 6)
    order = await seed.order([(variant, 4)])

    response = await client.post(
        "/api/orders/actions",
        json={"action": "ALLOCATE", "orderId": str(order.id)},
        headers=auth_headers(manager),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["status"] == OrderStatus.ALLOCATED.value
    assert body["reserved_quantity"] == 4

    response = await client.post(
        f"/api/orders/{order.id}/cancel", json={"reason": "Customer called"}, headers=auth_headers(manager)
    )
    assert response.status_code == 200
    detail = response.json()
    assert detail["status"] == OrderStatus.CANCELLED.value
    assert [h["new_status"] for h in detail["status_history"]] == ["ALLOCATED", "CANCELLED"]


async def test_strict_allocation_shortfall_is_a_conflict(client, seed, manager, auth_headers):
    variant = await seed.variant("WIDGET")
    await seed.inventory(variant, await seed.location("A-01"), 2)
    order = await seed.order([(variant, 5)])

    response = await client.post(
        "/api/orders/actions",
        json={"action": "ALLOCATE", "orderId": str(order.id)},
        headers=auth_headers(manager),
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Insufficient inventory for SKU WIDGET. Short by 3 units."}

    response = await client.get(f"/api/orders/{order.id}", headers=auth_headers(manager))
    assert response.json()["status"] == OrderStatus.PENDING.value


async def test_bulk_allocate_reports_each_order(client, seed, manager, auth_headers):
    variant = await seed.variant("WIDGET")
    await seed.inventory(variant, await seed.location("A-01"), 5)
    fits = await seed.order([(variant, 5)])
    too_big = await seed.order([(variant, 5)])

    response = await client.post(
        "/api/orders/actions",
        json={"action": "BULK_ALLOCATE", "orderIds": [str(fits.id), str(too_big.id)]},
        headers=auth_headers(manager),
    )
    assert response.status_code == 200
    body = response.json()
    assert (body["successful"], body["failed"]) == (1, 1)
    assert body["errors"][0]["order_id"] == str(too_big.id)


async def test_single_pick_then_my_work(client, seed, staff, auth_headers):
    variant = await seed.variant("WIDGET")
    await seed.inventory(variant, await seed.location("A-01"), 5)
    order = await seed.order([(variant, 2)])
    headers = auth_headers(staff)

    await client.post("/api/orders/actions", json={"action": "ALLOCATE", "orderId": str(order.id)}, headers=headers)
    response = await client.post(
        "/api/orders/actions",
        json={"action": "GENERATE_SINGLE_PICK", "orderId": str(order.id)},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "IN_PROGRESS"

    response = await client.get("/api/users/my-work", headers=headers)
    assert response.status_code == 200
    assert len(response.json()["pick_lists"]) == 1


async def test_cycle_count_flow(client, seed, staff, manager, auth_headers):
    variant = await seed.variant("BOLT")
    location = await seed.location("A-05")
    await seed.inventory(variant, location, 100)

    response = await client.post(
        "/api/inventory/cycle-counts/campaigns",
        json={"name": "Aisle A", "variantIds": [str(variant.id)]},
        headers=auth_headers(manager),
    )
    assert response.status_code == 200
    task_id = response.json()["tasks"][0]["id"]

    response = await client.post(
        f"/api/inventory/cycle-counts/{task_id}/count",
        json={"countedQuantity": 94},
        headers=auth_headers(staff),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "VARIANCE_REVIEW"

    response = await client.post(f"/api/inventory/cycle-counts/tasks/{task_id}/approve", headers=auth_headers(staff))
    assert response.status_code == 403

    response = await client.post(
        f"/api/inventory/cycle-counts/tasks/{task_id}/approve",
        json={"notes": "Verified"},
        headers=auth_headers(manager),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"


async def test_count_rejects_mismatched_item_id(client, seed, staff, auth_headers):
    response = await client.post(
        f"/api/inventory/cycle-counts/{uuid.uuid4()}/count",
        json={"countedQuantity": 1, "itemId": str(uuid.uuid4())},
        headers=auth_headers(staff),
    )
    assert response.status_code == 400
    assert response.json() == {"error": "itemId does not match the count task"}


async def test_backorders_grouped_by_order(client, seed, manager, auth_headers):
    variant = await seed.variant("GASKET")
    await seed.inventory(variant, await seed.location("A-01"), 3)
    order = await seed.order([(variant, 5)])
    headers = auth_headers(manager)

    response = await client.post(
        "/api/orders/actions",
        json={"action": "ALLOCATE_WITH_BACKORDER", "orderId": str(order.id)},
        headers=headers,
    )
    assert response.json()["back_orders_created"] == 1

    response = await client.get("/api/backorders/grouped", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert (body["total_orders"], body["total_units"]) == (1, 2)
    [group] = body["orders"]
    assert group["order_id"] == str(order.id)
    assert group["can_fulfill"] is False
    assert group["items"][0]["sku"] == "GASKET"
    assert group["items"][0]["quantity_available"] == 0


async def test_packing_task_type_picking_rejected(client, seed, manager, auth_headers):
    widget = await seed.variant("WIDGET")
    order = await seed.order([(widget, 1)], status=OrderStatus.PICKING)
    response = await client.post(
        "/api/packing-tasks",
        json={"orderIds": [str(order.id)], "type": "PICKING"},
        headers=auth_headers(manager),
    )
    assert response.status_code == 400


@pytest.mark.parametrize("path, body", [
    ("/api/returns/RMA-20261018-0001/process-refund", None),
    (f"/api/pick-lists/{uuid.uuid4()}/reassign", {"assignedTo": str(uuid.uuid4())}),
    (f"/api/packing-tasks/{uuid.uuid4()}/reassign", {"assignedTo": str(uuid.uuid4())}),
])
async def test_supervisor_routes_forbid_staff(client, staff, auth_headers, path, body):
    response = await client.post(path, json=body, headers=auth_headers(staff))
    assert response.status_code == 403


async def test_pick_rejects_another_users_id(client, staff, auth_headers):
    response = await client.post(
        f"/api/pick-lists/{uuid.uuid4()}/items/{uuid.uuid4()}/pick",
        json={"quantityPicked": 1, "scannedCode": "WIDGET", "userId": str(uuid.uuid4())},
        headers=auth_headers(staff),
    )
    assert response.status_code == 400
    assert response.json() == {"error": "userId does not match the authenticated user"}
