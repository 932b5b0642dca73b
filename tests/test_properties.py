"""Tests for property management endpoints."""

from __future__ import annotations

import json
from pathlib import Path

from fastapi.testclient import TestClient

from conftest import PNG_BYTES, property_form
from estateshare.core.config import get_settings


def test_create_property(client: TestClient, create_property) -> None:
    """Test creating a property with an uploaded image."""
    prop = create_property(total_value="250000", total_tokens="1000")

    assert prop["status"] == "listed"
    assert prop["token_price"] == 250.0
    assert prop["location"]["city"] == "Bristol"
    assert prop["crowdfunding"] is None
    assert len(prop["images"]) == 1
    assert prop["images"][0].startswith("/uploads/")

    stored = Path(get_settings().upload_dir) / prop["images"][0].rsplit("/", 1)[1]
    assert stored.read_bytes() == PNG_BYTES
    assert client.get(prop["images"][0]).status_code == 200


def test_create_property_requires_image(client: TestClient, admin_headers) -> None:
    response = client.post("/api/properties", data=property_form(), headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "At least one property image is required"


def test_create_property_rejects_non_images(client: TestClient, admin_headers) -> None:
    response = client.post(
        "/api/properties",
        data=property_form(),
        files=[("images", ("notes.txt", b"hello", "text/plain"))],
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_create_property_validates_fields(client: TestClient, admin_headers) -> None:
    incomplete_location = json.dumps({"address": "1 Quay Street", "city": "Bristol"})
    response = client.post(
        "/api/properties",
        data=property_form(location=incomplete_location, total_tokens="0"),
        files=[("images", ("front.png", PNG_BYTES, "image/png"))],
        headers=admin_headers,
    )
    assert response.status_code == 400
    failed = {tuple(error["loc"]) for error in response.json()["detail"]}
    assert ("total_tokens",) in failed


def test_create_property_requires_admin(client: TestClient, register_user) -> None:
    headers, _ = register_user()
    response = client.post(
        "/api/properties",
        data=property_form(),
        files=[("images", ("front.png", PNG_BYTES, "image/png"))],
        headers=headers,
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Admin privileges required"


def test_list_and_filter_properties(client: TestClient, create_property, start_funding) -> None:
    """Test listing properties newest first and filtering by status."""
    first = create_property(name="First Street Lofts")
    second = create_property(name="Second Avenue Homes")
    start_funding(second["id"])

    listed = client.get("/api/properties").json()
    assert [prop["id"] for prop in listed] == [second["id"], first["id"]]

    crowdfunding = client.get("/api/properties/status/crowdfunding").json()
    assert [prop["id"] for prop in crowdfunding] == [second["id"]]
    assert crowdfunding[0]["crowdfunding"]["available_tokens"] == 1000

    assert client.get("/api/properties/status/bogus").status_code == 400


def test_admin_properties_lists_own(client: TestClient, create_property, admin_headers) -> None:
    create_property()
    response = client.get("/api/properties/admin/properties", headers=admin_headers)
    assert response.status_code == 200
    assert len(response.json()) == 1


def test_get_property_not_found(client: TestClient) -> None:
    response = client.get("/api/properties/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404


def test_update_property_recomputes_token_price(client: TestClient, create_property, admin_headers) -> None:
    prop = create_property()

    response = client.put(
        f"/api/properties/{prop['id']}",
        data={"total_value": "5000"},
        files=[("images", ("side.jpg", PNG_BYTES, "image/jpeg"))],
        headers=admin_headers,
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["total_value"] == 5000.0
    assert updated["token_price"] == 5.0
    assert len(updated["images"]) == 2
    assert updated["name"] == prop["name"]


def test_update_rejected_once_crowdfunding(client: TestClient, create_property, start_funding, admin_headers) -> None:
    prop = create_property()
    start_funding(prop["id"])

    response = client.put(f"/api/properties/{prop['id']}", data={"name": "Renamed"}, headers=admin_headers)
    assert response.status_code == 400


def test_remove_image_keeps_at_least_one(client: TestClient, create_property, admin_headers) -> None:
    prop = create_property()
    client.put(
        f"/api/properties/{prop['id']}",
        files=[("images", ("side.png", PNG_BYTES, "image/png"))],
        headers=admin_headers,
    ).raise_for_status()

    out_of_range = client.delete(f"/api/properties/{prop['id']}/images/5", headers=admin_headers)
    assert out_of_range.status_code == 400
    assert out_of_range.json()["detail"] == "Invalid image index"

    removed = client.delete(f"/api/properties/{prop['id']}/images/0", headers=admin_headers)
    assert removed.status_code == 200
    assert len(removed.json()["images"]) == 1

    last = client.delete(f"/api/properties/{prop['id']}/images/0", headers=admin_headers)
    assert last.status_code == 400
    assert last.json()["detail"] == "A property must keep at least one image"


def test_delete_property(client: TestClient, create_property, admin_headers) -> None:
    prop = create_property()

    response = client.delete(f"/api/properties/{prop['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert client.get(f"/api/properties/{prop['id']}").status_code == 404


def test_delete_property_with_transactions_is_rejected(
    client: TestClient, create_property, admin_headers, register_user
) -> None:
    prop = create_property()
    headers, _ = register_user()
    client.post(f"/api/properties/{prop['id']}/purchase", headers=headers).raise_for_status()

    response = client.delete(f"/api/properties/{prop['id']}", headers=admin_headers)
    assert response.status_code == 400
