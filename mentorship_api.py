"""
Mentorship request endpoints. Transition rules live in `mentorship`; this
module loads documents, applies the planned updates atomically and shapes
the responses.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pymongo import DESCENDING, ReturnDocument

import mentorship as machine
from database import MENTORSHIP, USERS, get_db, paginate, parse_object_id, serialize, to_naive_utc, touch, utcnow
from errors import Conflict, Forbidden, NotFound, PreconditionFailed
from guard import authorize, get_current_user, is_admin
from schemas import CompleteBody, MentorshipCreateBody, MentorshipRequest as MentorshipSchema, NoteBody, RespondBody, ScheduleBody
from users import user_summaries

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mentorship", tags=["mentorship"])


def request_to_public(db, request: dict, people: Optional[Dict[str, dict]] = None) -> dict:
    if people is None:
        people = user_summaries(db, _people_ids(request))
    public = serialize(request)
    public["mentor"] = people.get(str(request.get("mentor"))) or public.get("mentor")
    public["mentee"] = people.get(str(request.get("mentee"))) or public.get("mentee")
    for note in public.get("followUpNotes", []):
        note["addedBy"] = people.get(note["addedBy"]) or note["addedBy"]
    return public


def _people_ids(request: dict):
    yield request.get("mentor")
    yield request.get("mentee")
    for note in request.get("followUpNotes") or []:
        yield note.get("addedBy")


def load_request(db, request_id: str) -> dict:
    request = db[MENTORSHIP].find_one({"_id": parse_object_id(request_id, "Mentorship request")})
    if not request:
        raise NotFound("Mentorship request not found")
    return request


def apply_guarded(db, request: dict, update: dict) -> dict:
    """Apply `update` only if the request is still in the status it was planned against."""
    updated = db[MENTORSHIP].find_one_and_update(
        {"_id": request["_id"], "status": request.get("status")},
        touch(update),
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise Conflict("This request was changed by someone else, please reload it")
    return updated


def build_request_filter(user: dict, role: Optional[str] = None, status: Optional[str] = None, area: Optional[str] = None) -> dict:
    query: Dict[str, Any] = {}
    if role == machine.MENTOR:
        query["mentor"] = user["_id"]
    elif role == machine.MENTEE:
        query["mentee"] = user["_id"]
    elif not is_admin(user):
        query["$or"] = [{"mentor": user["_id"]}, {"mentee": user["_id"]}]
    if status:
        query["status"] = status
    if area:
        query["mentorshipArea"] = area
    return query


def create_request(db, mentee: dict, body: MentorshipCreateBody) -> dict:
    mentor_id = parse_object_id(body.mentor, "Mentor")
    mentor = db[USERS].find_one({"_id": mentor_id})
    has_pending = db[MENTORSHIP].find_one(
        {"mentor": mentor_id, "mentee": mentee["_id"], "status": machine.PENDING}
    ) is not None
    machine.check_new_request(mentor, mentee["_id"], has_pending)

    now = utcnow()
    doc = MentorshipSchema(
        mentee=mentee["_id"],
        requestedAt=now,
        **{**body.model_dump(), "mentor": mentor_id},
    ).model_dump(by_alias=True)
    doc.update(createdAt=now, updatedAt=now)
    inserted = db[MENTORSHIP].insert_one(doc)
    logger.info("Mentorship request %s created: mentee %s -> mentor %s", inserted.inserted_id, mentee["_id"], mentor_id)
    return db[MENTORSHIP].find_one({"_id": inserted.inserted_id})


def respond(db, request: dict, actor: dict, body: RespondBody) -> dict:
    update = machine.plan_respond(request, actor["_id"], body.status, body.mentorResponse, utcnow())
    updated = apply_guarded(db, request, update)
    logger.info("Mentorship request %s %s by mentor %s", request["_id"], body.status, actor["_id"])
    return updated


def schedule(db, request: dict, actor: dict, body: ScheduleBody) -> dict:
    meeting = body.model_dump()
    meeting["dateTime"] = to_naive_utc(body.dateTime)
    update = machine.plan_schedule(request, actor["_id"], meeting)
    return apply_guarded(db, request, update)


def complete(db, request: dict, actor: dict, body: CompleteBody) -> dict:
    role, update = machine.plan_rating(request, actor["_id"], body.rating, body.feedback)
    result = db[MENTORSHIP].update_one(
        {"_id": request["_id"], "status": {"$in": sorted(machine.RATEABLE)}},
        touch(update),
    )
    if result.matched_count == 0:
        raise PreconditionFailed("Can only complete accepted requests")
    # Promote only once both halves are stored; either party's write may be the second
    promoted = db[MENTORSHIP].update_one(
        machine.completion_filter(request["_id"]),
        touch({"$set": {"status": machine.COMPLETED}}),
    )
    if promoted.modified_count:
        logger.info("Mentorship request %s completed", request["_id"])
    logger.info("Mentorship request %s rated by %s %s", request["_id"], role, actor["_id"])
    return db[MENTORSHIP].find_one({"_id": request["_id"]})


def add_note(db, request: dict, actor: dict, body: NoteBody) -> dict:
    note, update = machine.plan_note(request, actor["_id"], body.note, utcnow())
    db[MENTORSHIP].update_one({"_id": request["_id"]}, touch(update))
    return note


def mentorship_stats(db) -> Dict[str, Any]:
    requests = db[MENTORSHIP]
    by_area = requests.aggregate([
        {"$group": {"_id": "$mentorshipArea", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ])
    averages: List[dict] = list(requests.aggregate([
        {"$match": {"status": machine.COMPLETED}},
        {"$group": {
            "_id": None,
            "avgMentorRating": {"$avg": "$rating.mentorRating"},
            "avgMenteeRating": {"$avg": "$rating.menteeRating"},
        }},
    ]))
    average = averages[0] if averages else {"avgMentorRating": 0, "avgMenteeRating": 0}
    average.pop("_id", None)
    return {
        "totalRequests": requests.count_documents({}),
        "pendingRequests": requests.count_documents({"status": machine.PENDING}),
        "acceptedRequests": requests.count_documents({"status": machine.ACCEPTED}),
        "completedRequests": requests.count_documents({"status": machine.COMPLETED}),
        "requestsByArea": list(by_area),
        "averageRatings": average,
    }


# Mentorship Endpoints
@router.get("")
def get_requests(
    page: int = 1,
    limit: int = 10,
    role: Optional[str] = None,
    status: Optional[str] = None,
    area: Optional[str] = None,
    current=Depends(get_current_user),
    db=Depends(get_db),
):
    query = build_request_filter(current, role, status, area)
    result = paginate(db[MENTORSHIP], query, [("requestedAt", DESCENDING)], page, limit)
    items = result.pop("items")
    people = user_summaries(db, (pid for r in items for pid in _people_ids(r)))
    return {"success": True, **result, "requests": [request_to_public(db, r, people) for r in items]}


@router.get("/admin/stats")
def get_mentorship_stats(current=Depends(authorize("admin")), db=Depends(get_db)):
    return {"success": True, "stats": mentorship_stats(db)}


@router.get("/{request_id}")
def get_request(request_id: str, current=Depends(get_current_user), db=Depends(get_db)):
    request = load_request(db, request_id)
    if not is_admin(current) and machine.party_role(request, current["_id"]) is None:
        raise Forbidden("Not authorized to view this request")
    return {"success": True, "request": request_to_public(db, request)}


@router.post("", status_code=201)
def create_mentorship_request(body: MentorshipCreateBody, current=Depends(get_current_user), db=Depends(get_db)):
    request = create_request(db, current, body)
    return {
        "success": True,
        "message": "Mentorship request created successfully",
        "request": request_to_public(db, request),
    }


@router.put("/{request_id}/respond")
def respond_to_request(request_id: str, body: RespondBody, current=Depends(get_current_user), db=Depends(get_db)):
    request = respond(db, load_request(db, request_id), current, body)
    return {
        "success": True,
        "message": f"Request {body.status} successfully",
        "request": request_to_public(db, request),
    }


@router.put("/{request_id}/schedule")
def schedule_meeting(request_id: str, body: ScheduleBody, current=Depends(get_current_user), db=Depends(get_db)):
    request = schedule(db, load_request(db, request_id), current, body)
    return {
        "success": True,
        "message": "Meeting scheduled successfully",
        "scheduledMeeting": serialize(request.get("scheduledMeeting")),
    }


@router.post("/{request_id}/notes", status_code=201)
def add_follow_up_note(request_id: str, body: NoteBody, current=Depends(get_current_user), db=Depends(get_db)):
    note = add_note(db, load_request(db, request_id), current, body)
    public = serialize(note)
    public["addedBy"] = user_summaries(db, [note["addedBy"]]).get(str(note["addedBy"])) or public["addedBy"]
    return {"success": True, "message": "Follow-up note added successfully", "note": public}


@router.put("/{request_id}/complete")
def complete_mentorship(request_id: str, body: CompleteBody, current=Depends(get_current_user), db=Depends(get_db)):
    request = complete(db, load_request(db, request_id), current, body)
    return {
        "success": True,
        "message": "Rating submitted successfully",
        "request": request_to_public(db, request),
    }
