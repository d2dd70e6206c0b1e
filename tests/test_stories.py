"""API tests for stories, categories and tags."""
from uuid import uuid4

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from storybook.main import app
from storybook.models import EventLog, Notification, ReadingRecord, Story, Tag
from storybook.services import recommendation_engine


def _story_payload(**overrides) -> dict:
    payload = {
        "title": {"en": "The Brave Little Fox", "ar": "الثعلب الشجاع"},
        "description": {"en": "A fox learns courage."},
        "available_languages": ["en", "ar"],
        "cover_image": "http://cdn.example.com/fox.png",
        "tags": "animals, courage",
    }
    payload.update(overrides)
    return payload


def test_list_stories_filters(client, make_story):
    make_story("Sea Turtle", category_label="English", tags=["sea"])
    make_story("Desert Camel", category_label="Arabic", tags=["desert"])

    assert len(client.get("/api/stories").json()) == 2

    by_category = client.get("/api/stories", params={"category": "Arabic"}).json()
    assert [s["title"]["en"] for s in by_category] == ["Desert Camel"]

    by_tag = client.get("/api/stories", params={"tag": "sea"}).json()
    assert [s["title"]["en"] for s in by_tag] == ["Sea Turtle"]

    by_title = client.get("/api/stories", params={"q": "camel"}).json()
    assert [s["title"]["en"] for s in by_title] == ["Desert Camel"]


def test_get_story_404(client):
    response = client.get(f"/api/stories/{uuid4()}")
    assert response.status_code == 404
    assert response.json()["detail"] == "Story not found"


def test_create_story_requires_admin(client, user_headers):
    assert client.post("/api/stories", json=_story_payload()).status_code == 401
    assert client.post("/api/stories", json=_story_payload(), headers=user_headers).status_code == 403


def test_create_story_syncs_tags_and_notifies_users(client, db: Session, user, admin_headers):
    response = client.post("/api/stories", json=_story_payload(), headers=admin_headers)

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["tags"] == ["animals", "courage"]
    assert body["cover_image"] == "https://cdn.example.com/fox.png"
    assert body["age_group"] == "3-5"
    assert body["category_label"] == "English"
    assert body["views"] == 0

    assert {tag.name: tag.count for tag in db.query(Tag).all()} == {"animals": 1, "courage": 1}

    announced = db.query(Notification).filter(Notification.user_id == user.id, Notification.type == "story").all()
    assert len(announced) == 1
    assert announced[0].target_id == body["id"]


def test_create_story_without_category(client, db: Session, admin_headers):
    response = client.post("/api/stories", json=_story_payload(category_label=None), headers=admin_headers)

    assert response.status_code == 201, response.text
    assert response.json()["category_label"] is None
    assert db.query(Story).one().category_label is None


def test_update_story_rejects_null_for_required_fields(client, db: Session, make_story, admin_headers):
    story = make_story("Original")

    response = client.put(
        f"/api/stories/{story.id}",
        json={"title": None, "cover_image": None},
        headers=admin_headers,
    )

    assert response.status_code == 422
    db.refresh(story)
    assert story.title["en"] == "Original"

    cleared = client.put(f"/api/stories/{story.id}", json={"category_label": None}, headers=admin_headers)
    assert cleared.status_code == 200, cleared.text
    assert cleared.json()["category_label"] is None


def test_update_story_keeps_counters_and_resyncs_tags(client, db: Session, make_story, admin_headers):
    story = make_story(tags=["animals"], views=12, downloads=3)

    response = client.put(
        f"/api/stories/{story.id}",
        json={"age_group": "6-8", "tags": ["sea"]},
        headers=admin_headers,
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["age_group"] == "6-8"
    assert body["views"] == 12
    assert body["downloads"] == 3
    assert body["tags"] == ["sea"]
    assert {tag.name: tag.count for tag in db.query(Tag).all()} == {"animals": 0, "sea": 1}


def test_update_story_without_tags_leaves_them(client, make_story, admin_headers):
    story = make_story(tags=["animals"])

    response = client.put(f"/api/stories/{story.id}", json={"views": 99}, headers=admin_headers)

    assert response.json()["tags"] == ["animals"]
    assert response.json()["views"] == 99


def test_delete_story_cascades_reading_records(client, db: Session, user, make_story, admin_headers):
    story = make_story(tags=["animals"])
    db.add(ReadingRecord(user_id=user.id, story_id=story.id, times_read=1))
    db.commit()
    story_id = story.id

    response = client.delete(f"/api/stories/{story_id}", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"id": str(story_id)}
    assert db.get(Story, story_id) is None
    assert db.query(ReadingRecord).count() == 0
    assert db.query(Tag).filter(Tag.name == "animals").one().count == 0


def test_view_and_download_counters(client, make_story):
    story = make_story(views=1)

    assert client.patch(f"/api/stories/{story.id}/view").json()["views"] == 2
    assert client.patch(f"/api/stories/{story.id}/download").json()["downloads"] == 1
    assert client.patch(f"/api/stories/{uuid4()}/view").status_code == 404


def test_recommendations_require_auth(client):
    assert client.get("/api/stories/recommendations").status_code == 401


def test_recommendations_for_new_reader_are_trending(client, db: Session, user, user_headers, make_story):
    for views in (1, 2, 3, 4, 5, 6):
        make_story(views=views)

    response = client.get("/api/stories/recommendations", headers=user_headers)

    assert response.status_code == 200, response.text
    assert [s["views"] for s in response.json()] == [6, 5, 4, 3, 2]

    event = db.query(EventLog).filter(EventLog.event_name == "recommendations_impression").one()
    assert event.user_id == user.id
    assert event.properties["story_ids"] == [s["id"] for s in response.json()]


def test_recommendations_survive_event_log_failure(client, engine, db: Session, user_headers, make_story):
    make_story(views=3)
    EventLog.__table__.drop(engine)

    response = client.get("/api/stories/recommendations", headers=user_headers)

    assert response.status_code == 200, response.text
    assert [s["views"] for s in response.json()] == [3]


def test_recommendations_follow_reading_history(client, db: Session, user, user_headers, make_story):
    read = make_story(category_label="Arabic", tags=["space"])
    db.add(ReadingRecord(user_id=user.id, story_id=read.id, times_read=2))
    db.commit()
    matches = [make_story(category_label="Arabic", views=v) for v in (30, 20, 10)]
    make_story(category_label="French", views=500)

    response = client.get("/api/stories/recommendations", headers=user_headers)

    assert [s["id"] for s in response.json()] == [str(s.id) for s in matches]


def test_similar_stories(client, make_story):
    seed = make_story(category_label="Arabic", tags=["moon"])
    related = {str(make_story(category_label="Arabic").id) for _ in range(6)}
    make_story(category_label="French")

    response = client.get(f"/api/stories/{seed.id}/similar")

    assert response.status_code == 200
    ids = [s["id"] for s in response.json()]
    assert len(ids) == 4
    assert str(seed.id) not in ids
    assert set(ids) <= related


def test_similar_unknown_seed_is_404(client):
    response = client.get(f"/api/stories/{uuid4()}/similar")
    assert response.status_code == 404
    assert response.json()["detail"] == "Story not found"


def test_tags_endpoint(client, make_story):
    make_story(tags=["sea", "animals"])
    make_story(tags=["sea"])

    body = client.get("/api/tags").json()

    assert [(t["name"], t["count"]) for t in body] == [("sea", 2), ("animals", 1)]


def test_category_crud(client, admin_headers, user_headers):
    created = client.post(
        "/api/categories",
        json={"name": "Animals", "description": {"en": "Furry friends", "ar": "حيوانات"}},
        headers=admin_headers,
    )
    assert created.status_code == 201, created.text
    category = created.json()
    assert category["name"] == {"en": "Animals", "ar": "Animals"}

    assert client.post("/api/categories", json={"name": "X"}, headers=user_headers).status_code == 403

    updated = client.put(
        f"/api/categories/{category['id']}",
        json={"name": 5},
        headers=admin_headers,
    ).json()
    assert updated["name"] == {}
    assert updated["description"] == {"en": "Furry friends", "ar": "حيوانات"}

    assert len(client.get("/api/categories").json()) == 1
    assert client.delete(f"/api/categories/{category['id']}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/categories/{category['id']}", headers=admin_headers).status_code == 404


def test_store_failure_is_a_500(db: Session, client, user_headers, monkeypatch):
    def _broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is down"))

    monkeypatch.setattr(recommendation_engine, "get_recommendations", _broken)
    response = TestClient(app, raise_server_exceptions=False).get(
        "/api/stories/recommendations", headers=user_headers
    )

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal Server Error"}
