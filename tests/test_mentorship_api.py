import pytest
from bson import ObjectId

from database import MENTORSHIP

REQUEST_BODY = {
    "subject": "Backend career advice",
    "message": "I would like guidance on moving into backend engineering roles.",
    "mentorshipArea": "technical-skills",
    "preferredMeetingType": "video-call",
    "preferredTimeSlots": [{"day": "monday", "timeSlot": "evening"}],
    "tags": ["Backend", " Career "],
}


@pytest.fixture
def create(client, auth):
    def _create(mentee, mentor, **overrides):
        body = {**REQUEST_BODY, "mentor": str(mentor["_id"]), **overrides}
        return client.post("/api/mentorship", json=body, headers=auth(mentee))

    return _create


@pytest.fixture
def pending(create, mentee, mentor):
    resp = create(mentee, mentor)
    assert resp.status_code == 201
    return resp.json()["request"]


@pytest.fixture
def accepted(client, auth, mentor, pending):
    resp = client.put(f"/api/mentorship/{pending['id']}/respond", json={"status": "accepted"}, headers=auth(mentor))
    assert resp.status_code == 200
    return resp.json()["request"]


def stored(db, request_id):
    return db[MENTORSHIP].find_one({"_id": ObjectId(request_id)})


class TestCreate:
    def test_creates_pending_request(self, pending, mentor, mentee):
        assert pending["status"] == "pending"
        assert pending["requestedAt"]
        assert pending.get("respondedAt") is None
        assert pending["mentor"]["id"] == str(mentor["_id"])
        assert pending["mentee"]["id"] == str(mentee["_id"])
        assert pending["tags"] == ["backend", "career"]

    def test_second_pending_to_same_mentor_conflicts(self, create, pending, mentee, mentor):
        resp = create(mentee, mentor)
        assert resp.status_code == 400
        assert resp.json()["code"] == "CONFLICT"

    def test_other_mentee_may_request_same_mentor(self, create, pending, make_user, mentor):
        assert create(make_user(role="student"), mentor).status_code == 201

    def test_self_request_rejected(self, create, mentor):
        resp = create(mentor, mentor)
        assert resp.status_code == 400
        assert "yourself" in resp.json()["message"]

    def test_non_mentor_rejected(self, create, mentee, make_user):
        resp = create(mentee, make_user(is_mentor=False))
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid mentor or mentor is not available"

    def test_inactive_mentor_rejected(self, create, mentee, make_user):
        assert create(mentee, make_user(is_mentor=True, is_active=False)).status_code == 400

    def test_unknown_mentor_rejected(self, create, mentee):
        assert create(mentee, {"_id": ObjectId()}).status_code == 400

    def test_field_validation(self, create, mentee, mentor):
        resp = create(mentee, mentor, message="too short", mentorshipArea="astrology")
        assert resp.status_code == 400
        fields = {e["field"] for e in resp.json()["errors"]}
        assert {"message", "mentorshipArea"} <= fields

    def test_requires_authentication(self, client, mentor):
        resp = client.post("/api/mentorship", json={**REQUEST_BODY, "mentor": str(mentor["_id"])})
        assert resp.status_code == 401


class TestRespond:
    def test_decline_then_request_again(self, client, db, auth, create, mentor, mentee, pending):
        url = f"/api/mentorship/{pending['id']}/respond"
        resp = client.put(url, json={"status": "declined", "mentorResponse": "busy"}, headers=auth(mentor))
        assert resp.status_code == 200
        declined = resp.json()["request"]
        assert declined["status"] == "declined"
        assert declined["mentorResponse"] == "busy"
        responded_at = stored(db, pending["id"])["respondedAt"]
        assert responded_at is not None

        again = client.put(url, json={"status": "accepted"}, headers=auth(mentor))
        assert again.status_code == 400
        assert again.json()["code"] == "CONFLICT"
        assert stored(db, pending["id"])["status"] == "declined"
        assert stored(db, pending["id"])["respondedAt"] == responded_at

        assert create(mentee, mentor).status_code == 201

    def test_only_mentor_can_respond(self, client, auth, mentee, admin, make_user, pending):
        url = f"/api/mentorship/{pending['id']}/respond"
        for caller in (mentee, admin, make_user()):
            resp = client.put(url, json={"status": "accepted"}, headers=auth(caller))
            assert resp.status_code == 403

    def test_invalid_status(self, client, auth, mentor, pending):
        resp = client.put(f"/api/mentorship/{pending['id']}/respond", json={"status": "completed"}, headers=auth(mentor))
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_FAILED"

    def test_unknown_request(self, client, auth, mentor):
        resp = client.put(f"/api/mentorship/{ObjectId()}/respond", json={"status": "accepted"}, headers=auth(mentor))
        assert resp.status_code == 404
        resp = client.put("/api/mentorship/not-an-id/respond", json={"status": "accepted"}, headers=auth(mentor))
        assert resp.status_code == 404


class TestSchedule:
    def test_pending_cannot_be_scheduled(self, client, auth, mentee, pending):
        resp = client.put(
            f"/api/mentorship/{pending['id']}/schedule",
            json={"dateTime": "2030-03-01T10:00:00Z"},
            headers=auth(mentee),
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "PRECONDITION_FAILED"

    def test_either_party_overwrites_meeting(self, client, db, auth, mentor, mentee, accepted):
        url = f"/api/mentorship/{accepted['id']}/schedule"
        first = client.put(url, json={"dateTime": "2030-03-01T10:00:00Z", "agenda": "Intro"}, headers=auth(mentee))
        assert first.status_code == 200
        second = client.put(url, json={"dateTime": "2030-03-02T15:30:00Z", "location": "Library"}, headers=auth(mentor))
        assert second.status_code == 200
        meeting = stored(db, accepted["id"])["scheduledMeeting"]
        assert meeting["location"] == "Library"
        assert meeting["agenda"] is None
        assert meeting["dateTime"].day == 2
        assert stored(db, accepted["id"])["status"] == "accepted"

    def test_outsider_cannot_schedule(self, client, auth, make_user, accepted):
        resp = client.put(
            f"/api/mentorship/{accepted['id']}/schedule",
            json={"dateTime": "2030-03-01T10:00:00Z"},
            headers=auth(make_user()),
        )
        assert resp.status_code == 403


class TestComplete:
    def test_completes_only_after_both_ratings(self, client, db, auth, mentor, mentee, accepted):
        url = f"/api/mentorship/{accepted['id']}/complete"

        resp = client.put(url, json={"rating": 5, "feedback": "Great mentee"}, headers=auth(mentor))
        assert resp.status_code == 200
        assert resp.json()["request"]["status"] == "accepted"

        resp = client.put(url, json={"rating": 4}, headers=auth(mentee))
        assert resp.status_code == 200
        assert resp.json()["request"]["status"] == "completed"
        doc = stored(db, accepted["id"])
        assert doc["rating"]["mentorRating"] == 5
        assert doc["rating"]["menteeRating"] == 4

        # Re-rating after completion overwrites but keeps the status
        resp = client.put(url, json={"rating": 3}, headers=auth(mentor))
        assert resp.status_code == 200
        doc = stored(db, accepted["id"])
        assert doc["status"] == "completed"
        assert doc["rating"]["mentorRating"] == 3
        assert doc["rating"]["menteeRating"] == 4

    def test_same_role_twice_does_not_complete(self, client, db, auth, mentee, accepted):
        url = f"/api/mentorship/{accepted['id']}/complete"
        client.put(url, json={"rating": 2}, headers=auth(mentee))
        client.put(url, json={"rating": 5}, headers=auth(mentee))
        doc = stored(db, accepted["id"])
        assert doc["status"] == "accepted"
        assert doc["rating"]["menteeRating"] == 5

    def test_pending_cannot_be_completed(self, client, auth, mentor, pending):
        resp = client.put(f"/api/mentorship/{pending['id']}/complete", json={"rating": 5}, headers=auth(mentor))
        assert resp.status_code == 400

    def test_rating_out_of_range(self, client, auth, mentor, accepted):
        resp = client.put(f"/api/mentorship/{accepted['id']}/complete", json={"rating": 9}, headers=auth(mentor))
        assert resp.status_code == 400

    def test_outsider_cannot_rate(self, client, auth, admin, accepted):
        resp = client.put(f"/api/mentorship/{accepted['id']}/complete", json={"rating": 5}, headers=auth(admin))
        assert resp.status_code == 403


class TestNotes:
    def test_notes_append_in_order(self, client, db, auth, mentor, mentee, pending):
        url = f"/api/mentorship/{pending['id']}/notes"
        first = client.post(url, json={"note": "  Looking forward to it "}, headers=auth(mentee))
        assert first.status_code == 201
        assert first.json()["note"]["note"] == "Looking forward to it"
        assert first.json()["note"]["addedBy"]["id"] == str(mentee["_id"])
        assert client.post(url, json={"note": "Me too"}, headers=auth(mentor)).status_code == 201

        notes = stored(db, pending["id"])["followUpNotes"]
        assert [n["note"] for n in notes] == ["Looking forward to it", "Me too"]
        assert notes[1]["addedBy"] == mentor["_id"]
        assert stored(db, pending["id"])["status"] == "pending"

    def test_blank_note(self, client, auth, mentee, pending):
        resp = client.post(f"/api/mentorship/{pending['id']}/notes", json={"note": "   "}, headers=auth(mentee))
        assert resp.status_code == 400

    def test_outsider_cannot_add_note(self, client, auth, make_user, pending):
        resp = client.post(f"/api/mentorship/{pending['id']}/notes", json={"note": "hi"}, headers=auth(make_user()))
        assert resp.status_code == 403


class TestRead:
    def test_parties_and_admin_can_view(self, client, auth, mentor, mentee, admin, make_user, pending):
        url = f"/api/mentorship/{pending['id']}"
        for caller in (mentor, mentee, admin):
            assert client.get(url, headers=auth(caller)).status_code == 200
        assert client.get(url, headers=auth(make_user())).status_code == 403

    def test_list_scopes_to_caller(self, client, auth, create, make_user, mentor, mentee, admin, pending):
        other_mentee = make_user(role="student")
        create(other_mentee, mentor)

        mine = client.get("/api/mentorship", headers=auth(mentee)).json()
        assert mine["total"] == 1
        assert mine["requests"][0]["id"] == pending["id"]

        as_mentor = client.get("/api/mentorship?role=mentor", headers=auth(mentor)).json()
        assert as_mentor["total"] == 2

        as_mentee = client.get("/api/mentorship?role=mentee", headers=auth(mentor)).json()
        assert as_mentee["total"] == 0

        everything = client.get("/api/mentorship", headers=auth(admin)).json()
        assert everything["total"] == 2

    def test_list_filters_and_pagination(self, client, auth, create, make_user, mentor, admin):
        for area in ("networking", "networking", "entrepreneurship"):
            create(make_user(role="student"), mentor, mentorshipArea=area)

        resp = client.get("/api/mentorship?area=networking&limit=1&page=2", headers=auth(admin)).json()
        assert resp["total"] == 2
        assert resp["count"] == 1
        assert resp["page"] == 2
        assert resp["pages"] == 2

        assert client.get("/api/mentorship?status=accepted", headers=auth(admin)).json()["total"] == 0

    def test_stats_admin_only(self, client, auth, mentor, mentee, admin, accepted):
        url = f"/api/mentorship/{accepted['id']}/complete"
        client.put(url, json={"rating": 5}, headers=auth(mentor))
        client.put(url, json={"rating": 4}, headers=auth(mentee))

        assert client.get("/api/mentorship/admin/stats", headers=auth(mentee)).status_code == 403
        stats = client.get("/api/mentorship/admin/stats", headers=auth(admin)).json()["stats"]
        assert stats["totalRequests"] == 1
        assert stats["completedRequests"] == 1
        assert stats["pendingRequests"] == 0
        assert stats["requestsByArea"] == [{"_id": "technical-skills", "count": 1}]
        assert stats["averageRatings"] == {"avgMentorRating": 5, "avgMenteeRating": 4}
