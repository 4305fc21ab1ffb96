"""
Events: listing, organizer-owned edits, RSVPs, comments and statistics.
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo import ASCENDING, DESCENDING

from database import EVENTS, get_db, paginate, parse_object_id, serialize, same_id, to_naive_utc, touch, utcnow
from errors import Conflict, NotFound, PreconditionFailed, ValidationFailed
from guard import authorize, ensure_owner_or_admin, get_current_user
from schemas import CommentBody, Event as EventSchema, EventCreateBody, EventUpdateBody
from users import user_summaries

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])

LINK_RE = re.compile(r"^https?://.+")
MAX_COMMENT_LENGTH = 500


def attendee_count(event: dict) -> int:
    return sum(1 for a in event.get("attendees") or [] if a.get("status") == "registered")


def is_registration_open(event: dict, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    deadline = to_naive_utc(event.get("registrationDeadline") or event.get("eventDate"))
    if not event.get("isActive", True) or deadline is None or now >= deadline:
        return False
    capacity = event.get("maxAttendees")
    return not capacity or attendee_count(event) < capacity


def check_event_consistency(event: Dict[str, Any]) -> None:
    if event.get("isVirtual") and not event.get("virtualLink"):
        raise ValidationFailed("Virtual events must have a meeting link")
    link = event.get("virtualLink")
    if link and not LINK_RE.match(link):
        raise ValidationFailed("Please provide a valid virtual meeting link")
    deadline, event_date = event.get("registrationDeadline"), event.get("eventDate")
    if deadline and event_date and to_naive_utc(deadline) > to_naive_utc(event_date):
        raise ValidationFailed("Registration deadline must be before event date")


def check_future(event_date: datetime) -> None:
    if to_naive_utc(event_date) <= utcnow():
        raise ValidationFailed("Event date must be in the future")


def event_to_public(db, event: dict, people: Optional[Dict[str, dict]] = None) -> dict:
    if people is None:
        people = user_summaries(db, _people_ids(event))
    public = serialize(event)
    public["attendeeCount"] = attendee_count(event)
    public["isRegistrationOpen"] = is_registration_open(event)
    public["organizer"] = people.get(str(event.get("organizer"))) or public.get("organizer")
    for attendee in public.get("attendees", []):
        attendee["user"] = people.get(attendee["user"]) or attendee["user"]
    for comment in public.get("comments", []):
        comment["user"] = people.get(comment["user"]) or comment["user"]
    return public


def _people_ids(event: dict):
    yield event.get("organizer")
    for a in event.get("attendees") or []:
        yield a.get("user")
    for c in event.get("comments") or []:
        yield c.get("user")


def build_event_filter(
    event_type: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    upcoming: bool = True,
    search: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    query: Dict[str, Any] = {"isActive": True}
    if event_type:
        query["eventType"] = event_type
    date_range: Dict[str, Any] = {}
    if from_date:
        date_range["$gte"] = to_naive_utc(from_date)
    if to_date:
        date_range["$lte"] = to_naive_utc(to_date)
    if upcoming:
        # Upcoming overrides an explicit lower bound, as the directory always did
        date_range["$gte"] = now or utcnow()
    if date_range:
        query["eventDate"] = date_range
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {"title": pattern},
            {"description": pattern},
            {"location": pattern},
            {"tags": pattern},
        ]
    return query


def load_event(db, event_id: str) -> dict:
    event = db[EVENTS].find_one({"_id": parse_object_id(event_id, "Event")})
    if not event:
        raise NotFound("Event not found")
    return event


def event_stats(db) -> Dict[str, Any]:
    events = db[EVENTS]
    by_type = events.aggregate([
        {"$match": {"isActive": True}},
        {"$group": {"_id": "$eventType", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ])
    attendees = list(events.aggregate([
        {"$match": {"isActive": True}},
        {"$unwind": "$attendees"},
        {"$group": {"_id": None, "total": {"$sum": 1}}},
    ]))
    return {
        "totalEvents": events.count_documents({"isActive": True}),
        "upcomingEvents": events.count_documents({"isActive": True, "eventDate": {"$gte": utcnow()}}),
        "eventsByType": list(by_type),
        "totalAttendees": attendees[0]["total"] if attendees else 0,
    }


# Events Endpoints
@router.get("")
def get_events(
    page: int = 1,
    limit: int = 10,
    eventType: Optional[str] = None,
    fromDate: Optional[datetime] = None,
    toDate: Optional[datetime] = None,
    upcoming: bool = True,
    search: Optional[str] = None,
    current=Depends(get_current_user),
    db=Depends(get_db),
):
    query = build_event_filter(eventType, fromDate, toDate, upcoming, search)
    sort = [("eventDate", ASCENDING if upcoming else DESCENDING)]
    result = paginate(db[EVENTS], query, sort, page, limit)
    items = result.pop("items")
    people = user_summaries(db, (pid for e in items for pid in _people_ids(e)))
    return {"success": True, **result, "events": [event_to_public(db, e, people) for e in items]}


@router.get("/admin/stats")
def get_event_stats(current=Depends(authorize("admin")), db=Depends(get_db)):
    return {"success": True, "stats": event_stats(db)}


@router.get("/{event_id}")
def get_event(event_id: str, current=Depends(get_current_user), db=Depends(get_db)):
    return {"success": True, "event": event_to_public(db, load_event(db, event_id))}


@router.post("", status_code=201)
def create_event(body: EventCreateBody, current=Depends(authorize("admin", "alumni")), db=Depends(get_db)):
    check_future(body.eventDate)
    data = body.model_dump(exclude_none=True)
    data["eventDate"] = to_naive_utc(body.eventDate)
    if body.registrationDeadline:
        data["registrationDeadline"] = to_naive_utc(body.registrationDeadline)
    check_event_consistency(data)

    event_doc = EventSchema(organizer=current["_id"], **data).model_dump(by_alias=True, exclude_none=True)
    now = utcnow()
    event_doc.update(createdAt=now, updatedAt=now)
    inserted = db[EVENTS].insert_one(event_doc)
    logger.info("User %s created event %s", current["_id"], inserted.inserted_id)
    event = db[EVENTS].find_one({"_id": inserted.inserted_id})
    return {"success": True, "message": "Event created successfully", "event": event_to_public(db, event)}


@router.put("/{event_id}")
def update_event(event_id: str, body: EventUpdateBody, current=Depends(authorize("admin", "alumni")), db=Depends(get_db)):
    event = load_event(db, event_id)
    ensure_owner_or_admin(current, event.get("organizer"), "Not authorized to update this event")

    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    if "eventDate" in fields:
        check_future(fields["eventDate"])
        fields["eventDate"] = to_naive_utc(fields["eventDate"])
    if "registrationDeadline" in fields:
        fields["registrationDeadline"] = to_naive_utc(fields["registrationDeadline"])
    check_event_consistency({**event, **fields})

    if fields:
        db[EVENTS].update_one({"_id": event["_id"]}, touch({"$set": fields}))
    event = db[EVENTS].find_one({"_id": event["_id"]})
    return {"success": True, "message": "Event updated successfully", "event": event_to_public(db, event)}


@router.delete("/{event_id}")
def delete_event(event_id: str, current=Depends(authorize("admin", "alumni")), db=Depends(get_db)):
    event = load_event(db, event_id)
    ensure_owner_or_admin(current, event.get("organizer"), "Not authorized to delete this event")
    db[EVENTS].update_one({"_id": event["_id"]}, touch({"$set": {"isActive": False}}))
    logger.info("User %s deactivated event %s", current["_id"], event["_id"])
    return {"success": True, "message": "Event deleted successfully"}


@router.post("/{event_id}/rsvp")
def rsvp_event(event_id: str, current=Depends(get_current_user), db=Depends(get_db)):
    event = load_event(db, event_id)
    user_id = current["_id"]

    if any(same_id(a.get("user"), user_id) for a in event.get("attendees") or []):
        raise Conflict("You are already registered for this event")
    capacity = event.get("maxAttendees")
    if capacity and attendee_count(event) >= capacity:
        raise Conflict("Event is full")
    if not is_registration_open(event):
        raise PreconditionFailed("Registration is closed for this event")

    attendee = {"user": user_id, "registeredAt": utcnow(), "status": "registered"}
    guard = {"_id": event["_id"], "attendees.user": {"$ne": user_id}}
    if capacity:
        # Seat count was checked against this attendee list; only push onto the same list
        guard["attendees"] = event.get("attendees") or []
    result = db[EVENTS].update_one(guard, touch({"$push": {"attendees": attendee}}))
    if result.modified_count == 0:
        raise Conflict("Event is full" if capacity else "You are already registered for this event")
    logger.info("User %s registered for event %s", user_id, event["_id"])
    return {"success": True, "message": "Successfully registered for event"}


@router.delete("/{event_id}/rsvp")
def cancel_rsvp(event_id: str, current=Depends(get_current_user), db=Depends(get_db)):
    event = load_event(db, event_id)
    result = db[EVENTS].update_one(
        {"_id": event["_id"], "attendees.user": current["_id"]},
        touch({"$pull": {"attendees": {"user": current["_id"]}}}),
    )
    if result.modified_count == 0:
        raise PreconditionFailed("You are not registered for this event")
    logger.info("User %s cancelled registration for event %s", current["_id"], event["_id"])
    return {"success": True, "message": "Successfully cancelled registration"}


@router.post("/{event_id}/comments", status_code=201)
def add_comment(event_id: str, body: CommentBody, current=Depends(get_current_user), db=Depends(get_db)):
    text = (body.comment or "").strip()
    if not text:
        raise ValidationFailed("Comment is required")
    if len(text) > MAX_COMMENT_LENGTH:
        raise ValidationFailed(f"Comment cannot be more than {MAX_COMMENT_LENGTH} characters")
    event = load_event(db, event_id)

    comment = {"_id": ObjectId(), "user": current["_id"], "comment": text, "createdAt": utcnow()}
    db[EVENTS].update_one({"_id": event["_id"]}, touch({"$push": {"comments": comment}}))
    public = serialize(comment)
    public["user"] = user_summaries(db, [current["_id"]]).get(str(current["_id"]))
    return {"success": True, "message": "Comment added successfully", "comment": public}
