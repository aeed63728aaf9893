"""Tests for god and animation category routes."""

from idolmedia.services.catalog import slugify


def test_slugify():
    assert slugify("Aarti Flames") == "aarti_flames"
    assert slugify("  Diya & Lamps!! ") == "diya_lamps"


def test_create_and_get_god(client):
    response = client.post(
        "/api/v1/gods", json={"name": "Shiva", "image": "shiva.png", "description": "Mahadev"}
    )

    assert response.status_code == 201
    god = response.json()["data"]
    assert god["name"] == "Shiva"
    assert god["isActive"] is True

    fetched = client.get(f"/api/v1/gods/{god['id']}").json()["data"]
    assert fetched == god


def test_duplicate_god_name(client, god):
    response = client.post("/api/v1/gods", json={"name": god["name"], "image": "x.png"})

    assert response.status_code == 409


def test_invalid_god_payload(client):
    response = client.post("/api/v1/gods", json={"name": "", "image": "x.png"})

    assert response.status_code == 400
    assert response.json()["data"] is None


def test_category_slug_and_listing(client, category):
    assert category["slug"] == "aarti_flames"

    client.post(
        "/api/v1/animation-categories", json={"name": "Bells", "icon": "bell.png", "order": -1}
    )
    listed = client.get("/api/v1/animation-categories").json()["data"]

    assert [c["name"] for c in listed] == ["Bells", "Aarti Flames"]


def test_unknown_category(client):
    response = client.get(f"/api/v1/animation-categories/{'d' * 24}")

    assert response.status_code == 404
    assert response.json()["message"] == "Animation category not found"
