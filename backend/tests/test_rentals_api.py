from decimal import Decimal

from rental_engine.models.asset import AssetStatus


def _create(client, customer, asset, **overrides):
    payload = {
        "customer_id": customer.id,
        "asset_id": asset.id,
        "start_date": "2026-03-01",
        "estimated_return_date": "2026-03-05",
        "rate": "100",
        "deposit": "250",
    }
    payload.update(overrides)
    return client.post("/api/rentals", json=payload, headers={"X-User": "counter"})


def test_create_and_fetch_rental(client, customer, asset):
    response = _create(client, customer, asset)

    assert response.status_code == 201
    body = response.get_json()
    assert body["status"] == "pending"
    assert Decimal(body["total_amount"]) == Decimal("400.00")
    assert Decimal(body["pending_amount"]) == Decimal("400.00")
    assert body["duration_in_days"] == 4
    assert body["is_overdue"] is False

    detail = client.get(f"/api/rentals/{body['id']}").get_json()
    assert detail["asset"]["id"] == asset.id
    assert detail["customer"]["full_name"] == customer.full_name


def test_create_rejects_bad_payload(client, customer, asset):
    response = client.post("/api/rentals", json={"customer_id": customer.id})

    assert response.status_code == 400
    body = response.get_json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["details"]["errors"]


def test_create_rejects_inverted_window(client, customer, asset):
    response = _create(client, customer, asset, estimated_return_date="2026-02-27")

    assert response.status_code == 400
    assert response.get_json()["error"]["field"] == "estimated_return_date"


def test_overlapping_booking_returns_409(client, customer, asset):
    first = _create(client, customer, asset).get_json()
    response = _create(client, customer, asset, start_date="2026-03-03T00:00:00Z", estimated_return_date="2026-03-07")

    assert response.status_code == 409
    error = response.get_json()["error"]
    assert error["code"] == "RENTAL_CONFLICT"
    assert error["details"]["conflicting_rental_ids"] == [first["id"]]


def test_full_lifecycle_over_http(client, customer, asset):
    rental_id = _create(client, customer, asset).get_json()["id"]

    assert client.post(f"/api/rentals/{rental_id}/activate").status_code == 200

    paid = client.post(f"/api/rentals/{rental_id}/payments", json={"amount": "100"})
    assert paid.status_code == 200
    assert Decimal(paid.get_json()["pending_amount"]) == Decimal("300.00")

    overpaid = client.post(f"/api/rentals/{rental_id}/payments", json={"amount": "1000"})
    assert overpaid.status_code == 400

    completed = client.post(
        f"/api/rentals/{rental_id}/complete",
        json={"return_date": "2026-03-04", "final_hours": "1010", "deposit_returned": True},
    )
    assert completed.status_code == 200
    body = completed.get_json()
    assert body["status"] == "completed"
    assert Decimal(body["total_amount"]) == Decimal("300.00")
    assert Decimal(body["pending_amount"]) == Decimal("200.00")
    assert body["deposit_returned"] is True

    again = client.post(f"/api/rentals/{rental_id}/cancel", json={"reason": "too late"})
    assert again.status_code == 409
    assert again.get_json()["error"]["code"] == "INVALID_STATUS_TRANSITION"

    history = client.get(f"/api/rentals/{rental_id}/history").get_json()
    assert [entry["action"] for entry in history] == ["created", "activated", "payment_recorded", "completed"]
    assert history[0]["changed_by"] == "counter"


def test_cancel_requires_reason_over_http(client, customer, asset):
    rental_id = _create(client, customer, asset).get_json()["id"]

    response = client.post(f"/api/rentals/{rental_id}/cancel", json={})
    assert response.status_code == 400
    assert response.get_json()["error"]["field"] == "reason"

    response = client.post(f"/api/rentals/{rental_id}/cancel", json={"reason": "site closed", "return_deposit": True})
    assert response.status_code == 200
    assert response.get_json()["deposit_returned"] is True


def test_update_and_delete_over_http(client, customer, asset):
    rental_id = _create(client, customer, asset).get_json()["id"]

    updated = client.patch(f"/api/rentals/{rental_id}", json={"estimated_return_date": "2026-03-06"})
    assert updated.status_code == 200
    assert Decimal(updated.get_json()["total_amount"]) == Decimal("500.00")

    assert client.delete(f"/api/rentals/{rental_id}").status_code == 409
    client.post(f"/api/rentals/{rental_id}/cancel", json={"reason": "entered twice"})
    assert client.delete(f"/api/rentals/{rental_id}").status_code == 204
    assert client.get(f"/api/rentals/{rental_id}").status_code == 404


def test_list_rentals_paged(client, customer, make_asset):
    for _ in range(3):
        _create(client, customer, make_asset())

    body = client.get("/api/rentals?page=1&page_size=2").get_json()
    assert body["total"] == 3
    assert body["total_pages"] == 2
    assert body["has_next"] is True
    assert len(body["items"]) == 2

    filtered = client.get("/api/rentals?status=pending&customer_id=" + customer.id).get_json()
    assert filtered["total"] == 3

    bad = client.get("/api/rentals?status=lost")
    assert bad.status_code == 400


def test_asset_availability_endpoint(client, customer, asset):
    rental_id = _create(client, customer, asset).get_json()["id"]

    busy = client.get(
        f"/api/assets/{asset.id}/availability?start_date=2026-03-04&estimated_return_date=2026-03-06"
    ).get_json()
    assert busy["available"] is False
    assert [r["id"] for r in busy["conflicts"]] == [rental_id]

    free = client.get(
        f"/api/assets/{asset.id}/availability?start_date=2026-03-05&estimated_return_date=2026-03-06"
    ).get_json()
    assert free["available"] is True

    own = client.get(
        f"/api/assets/{asset.id}/availability?start_date=2026-03-04&estimated_return_date=2026-03-06"
        f"&exclude_rental_id={rental_id}"
    ).get_json()
    assert own["available"] is True


def test_asset_endpoints(client, asset):
    listed = client.get("/api/assets").get_json()
    assert [a["id"] for a in listed] == [asset.id]
    assert listed[0]["display_name"].startswith("Caterpillar 320")

    response = client.patch(f"/api/assets/{asset.id}/status", json={"status": "maintenance"})
    assert response.status_code == 200
    assert response.get_json()["status"] == AssetStatus.MAINTENANCE.value

    assert client.get("/api/assets/available").get_json() == []
    assert client.patch(f"/api/assets/{asset.id}/status", json={"status": "rented"}).status_code == 400
    assert client.get("/api/assets/missing").status_code == 404


def test_analytics_endpoints(client, customer, asset):
    _create(client, customer, asset)

    dashboard = client.get("/api/analytics/dashboard").get_json()
    assert dashboard["rental_status_counts"]["pending"] == 1
    assert dashboard["asset_status_counts"]["rented"] == 1

    pending = client.get("/api/analytics/pending-payments").get_json()
    assert Decimal(pending["pending_payments_total"]) == Decimal("400.00")

    revenue = client.get("/api/analytics/revenue?start=2026-01-01&end=2026-12-31").get_json()
    assert Decimal(revenue["revenue"]) == Decimal("0.00")

    assert client.get("/api/analytics/revenue?start=yesterday").status_code == 400


def test_health(client):
    assert client.get("/health").get_json() == {"status": "healthy"}
