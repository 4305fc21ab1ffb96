from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

import database
from database import USERS, page_params, parse_object_id, serialize, to_naive_utc
from errors import NotFound


def test_serialize_renames_id_and_hides_password():
    oid, ref = ObjectId(), ObjectId()
    doc = {
        "_id": oid,
        "password": "hash",
        "organizer": ref,
        "when": datetime(2030, 1, 2, 3, 4, 5),
        "attendees": [{"user": ref}],
    }
    out = serialize(doc)
    assert out == {
        "id": str(oid),
        "organizer": str(ref),
        "when": "2030-01-02T03:04:05+00:00",
        "attendees": [{"user": str(ref)}],
    }


def test_page_params_clamps():
    assert page_params(0, 0) == {"page": 1, "limit": 10, "skip": 0}
    assert page_params(-2, -5) == {"page": 1, "limit": 1, "skip": 0}
    assert page_params(3, 500) == {"page": 3, "limit": 100, "skip": 200}


def test_parse_object_id():
    oid = ObjectId()
    assert parse_object_id(str(oid)) == oid
    with pytest.raises(NotFound):
        parse_object_id("nope", "Event")


def test_to_naive_utc():
    aware = datetime(2030, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))
    assert to_naive_utc(aware) == datetime(2030, 1, 1, 6, 30)
    assert to_naive_utc(None) is None


def test_health_and_unknown_route(client):
    assert client.get("/api/health").json()["success"] is True
    resp = client.get("/api/nowhere")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Route not found", "code": "HTTP_404"}


def test_connection_check_route(client, db, make_user, monkeypatch):
    monkeypatch.setattr(database, "db", None)
    body = client.get("/test").json()
    assert body["backend"] == "✅ Running"
    assert body["database"] == "⚠️  Available but not initialized"
    assert body["database_url"] == "❌ Not Set"

    make_user()
    monkeypatch.setattr(database, "db", db)
    body = client.get("/test").json()
    assert body["database"] == "✅ Connected & Working"
    assert body["connection_status"] == "Connected"
    assert USERS in body["collections"]
