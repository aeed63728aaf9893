"""Tests for god idol routes."""

from unittest.mock import patch

from idolmedia.metadata.store import ANIMATIONS, DuplicateKeyError

VIDEO = b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 64
MISSING_ID = "b" * 24


def create_idol(client, god_id, filename="idol.mp4"):
    return client.post(
        "/api/v1/god-idol",
        data={"godId": god_id, "isActive": "true"},
        files={"video": (filename, VIDEO, "video/mp4")},
    )


def test_create_god_idol(client, god, stored_keys):
    response = create_idol(client, god["id"])

    assert response.status_code == 201
    idol = response.json()["data"]
    assert idol["godId"] == god["id"]
    assert idol["isActive"] is True
    assert idol["video"]["key"].startswith("god-idol/")
    assert idol["video"]["signedUrl"]
    assert stored_keys() == [idol["video"]["key"]]


def test_create_requires_existing_god(client, stored_keys):
    response = create_idol(client, MISSING_ID)

    assert response.status_code == 404
    assert response.json()["message"] == "God not found with the provided godId"
    assert stored_keys() == []


def test_create_rejects_malformed_god_id(client, stored_keys):
    response = create_idol(client, "123")

    assert response.status_code == 400
    assert stored_keys() == []


def test_second_idol_for_god_conflicts(client, god, stored_keys):
    first = create_idol(client, god["id"]).json()["data"]

    response = create_idol(client, god["id"], filename="again.mp4")

    assert response.status_code == 409
    assert response.json()["message"] == "Idol video already exists for this god"
    assert stored_keys() == [first["video"]["key"]]


def test_get_by_god(client, god):
    idol = create_idol(client, god["id"]).json()["data"]

    response = client.get(f"/api/v1/god-idol/god/{god['id']}")

    assert response.status_code == 200
    assert response.json()["data"]["id"] == idol["id"]
    assert client.get(f"/api/v1/god-idol/god/{MISSING_ID}").status_code == 404


def test_create_with_animation(client, god, category, stored_keys):
    response = client.post(
        "/api/v1/god-idol/with-animation",
        data={
            "godId": god["id"],
            "categoryId": category["id"],
            "title": "Evening aarti",
            "order": "2",
        },
        files={
            "godIdolVideo": ("idol.mp4", VIDEO, "video/mp4"),
            "animationVideo": ("aarti.mp4", VIDEO + b"anim", "video/mp4"),
        },
    )

    assert response.status_code == 201
    data = response.json()["data"]
    idol, animation = data["godIdol"], data["animation"]
    assert animation["godIdolId"] == idol["id"]
    assert animation["categoryId"] == category["id"]
    assert animation["title"] == "Evening aarti"
    assert animation["order"] == 2
    assert animation["totalImages"] == 0
    assert idol["video"]["key"].startswith("god-idol/")
    assert animation["video"]["key"].startswith("animations/")
    assert sorted(stored_keys()) == sorted([idol["video"]["key"], animation["video"]["key"]])

    listed = client.get(f"/api/v1/animations/god-idol/{idol['id']}").json()["data"]
    assert [a["id"] for a in listed] == [animation["id"]]


def test_create_with_animation_missing_category_rolls_back(client, god, stored_keys):
    response = client.post(
        "/api/v1/god-idol/with-animation",
        data={"godId": god["id"], "categoryId": MISSING_ID},
        files={
            "godIdolVideo": ("idol.mp4", VIDEO, "video/mp4"),
            "animationVideo": ("aarti.mp4", VIDEO, "video/mp4"),
        },
    )

    assert response.status_code == 404
    assert stored_keys() == []
    assert client.get("/api/v1/god-idol").json()["data"] == []


def test_create_with_animation_requires_both_videos(client, god, category, stored_keys):
    response = client.post(
        "/api/v1/god-idol/with-animation",
        data={"godId": god["id"], "categoryId": category["id"]},
        files={"godIdolVideo": ("idol.mp4", VIDEO, "video/mp4")},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Animation video is required"
    assert stored_keys() == []


def test_update_replaces_video(client, god, stored_keys):
    idol = create_idol(client, god["id"]).json()["data"]

    response = client.put(
        f"/api/v1/god-idol/{idol['id']}",
        data={"isActive": "false"},
        files={"video": ("new.mp4", VIDEO + b"v2", "video/mp4")},
    )

    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["isActive"] is False
    assert stored_keys() == [updated["video"]["key"]]


def test_active_list_and_toggle(client, god):
    idol = create_idol(client, god["id"]).json()["data"]

    response = client.patch(f"/api/v1/god-idol/{idol['id']}/toggle")

    assert response.json()["message"] == "God idol deactivated"
    assert client.get("/api/v1/god-idol/active").json()["data"] == []
    assert len(client.get("/api/v1/god-idol").json()["data"]) == 1


def test_delete(client, god, stored_keys):
    idol = create_idol(client, god["id"]).json()["data"]

    response = client.delete(f"/api/v1/god-idol/{idol['id']}")

    assert response.status_code == 200
    assert stored_keys() == []
    assert client.get(f"/api/v1/god-idol/{idol['id']}").status_code == 404


def test_create_without_is_active_is_inactive(client, god):
    response = client.post(
        "/api/v1/god-idol",
        data={"godId": god["id"]},
        files={"video": ("idol.mp4", VIDEO, "video/mp4")},
    )

    assert response.status_code == 201
    assert response.json()["data"]["isActive"] is False


def test_with_animation_write_failure_undoes_idol(client, services, god, category, stored_keys):
    store = services.store
    real_create = store.create

    async def create(collection, doc, session=None):
        if collection == ANIMATIONS:
            raise DuplicateKeyError(
                ANIMATIONS, ("god_idol_id", "category_id"), (doc.get("god_idol_id"), doc["category_id"])
            )
        return await real_create(collection, doc, session=session)

    with patch.object(store, "create", side_effect=create):
        response = client.post(
            "/api/v1/god-idol/with-animation",
            data={"godId": god["id"], "categoryId": category["id"]},
            files={
                "godIdolVideo": ("idol.mp4", VIDEO, "video/mp4"),
                "animationVideo": ("aarti.mp4", VIDEO, "video/mp4"),
            },
        )

    assert response.status_code == 409
    assert response.json()["statusCode"] == 409
    assert client.get("/api/v1/god-idol").json()["data"] == []
    assert client.get("/api/v1/animations").json()["data"] == []
    assert stored_keys() == []
