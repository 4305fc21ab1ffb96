"""
Mentorship request lifecycle.

    pending --respond--> accepted | declined
    accepted --both parties rate--> completed

declined, completed and cancelled are terminal. Nothing in the API moves a
request to cancelled yet; the status exists so stored documents stay valid.

Every function here is pure: it checks who is acting and what state the
request is in, then returns the MongoDB update to apply. Nothing is written
when a check fails. The caller applies the update with a filter on the
status it was planned against, so a concurrent transition turns into a
Conflict instead of a lost update.
"""
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from bson import ObjectId

from database import same_id
from errors import Conflict, Forbidden, PreconditionFailed, ValidationFailed

PENDING = "pending"
ACCEPTED = "accepted"
DECLINED = "declined"
COMPLETED = "completed"
CANCELLED = "cancelled"

STATUSES = (PENDING, ACCEPTED, DECLINED, COMPLETED, CANCELLED)
TERMINAL = frozenset({DECLINED, COMPLETED, CANCELLED})
RESPONSES = (ACCEPTED, DECLINED)

TRANSITIONS = {
    PENDING: frozenset({ACCEPTED, DECLINED}),
    ACCEPTED: frozenset({COMPLETED}),
    DECLINED: frozenset(),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}

# Ratings may still be revised after completion; the status stays completed.
RATEABLE = frozenset({ACCEPTED, COMPLETED})

MENTOR = "mentor"
MENTEE = "mentee"

MAX_NOTE_LENGTH = 500


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def party_role(request: Dict[str, Any], actor_id: Any) -> Optional[str]:
    """Which side of the request `actor_id` is on, if any."""
    if same_id(request.get("mentor"), actor_id):
        return MENTOR
    if same_id(request.get("mentee"), actor_id):
        return MENTEE
    return None


def require_party(request: Dict[str, Any], actor_id: Any, action: str) -> str:
    role = party_role(request, actor_id)
    if role is None:
        raise Forbidden(f"Not authorized to {action} this request")
    return role


def check_new_request(mentor: Optional[dict], mentee_id: Any, has_pending: bool) -> None:
    """Guards for creating a request from `mentee_id` to `mentor`."""
    if not mentor or not mentor.get("isMentor") or not mentor.get("isActive", True):
        raise ValidationFailed("Invalid mentor or mentor is not available")
    if same_id(mentor.get("_id"), mentee_id):
        raise ValidationFailed("You cannot request mentorship from yourself")
    if has_pending:
        raise Conflict("You already have a pending request with this mentor")


def plan_respond(
    request: Dict[str, Any],
    actor_id: Any,
    status: str,
    mentor_response: Optional[str],
    now: datetime,
) -> Dict[str, Any]:
    if status not in RESPONSES:
        raise ValidationFailed('Status must be either "accepted" or "declined"')
    if not same_id(request.get("mentor"), actor_id):
        raise Forbidden("Only the mentor can respond to this request")
    if not can_transition(request.get("status"), status):
        raise Conflict("This request has already been responded to")

    update: Dict[str, Any] = {"status": status, "mentorResponse": mentor_response}
    if not request.get("respondedAt"):
        update["respondedAt"] = now
    return {"$set": update}


def plan_schedule(request: Dict[str, Any], actor_id: Any, meeting: Dict[str, Any]) -> Dict[str, Any]:
    require_party(request, actor_id, "schedule meetings for")
    if request.get("status") != ACCEPTED:
        raise PreconditionFailed("Can only schedule meetings for accepted requests")
    return {"$set": {"scheduledMeeting": meeting}}


def plan_rating(
    request: Dict[str, Any],
    actor_id: Any,
    rating: int,
    feedback: Optional[str],
) -> Tuple[str, Dict[str, Any]]:
    """Write the caller's half of the rating. Returns (role, update)."""
    role = require_party(request, actor_id, "complete")
    if request.get("status") not in RATEABLE:
        raise PreconditionFailed("Can only complete accepted requests")
    if not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationFailed("Rating must be between 1 and 5")
    return role, {
        "$set": {
            f"rating.{role}Rating": rating,
            f"rating.{role}Feedback": feedback,
        }
    }


def completion_filter(request_id: ObjectId) -> Dict[str, Any]:
    """Matches an accepted request once both ratings are present."""
    return {
        "_id": request_id,
        "status": ACCEPTED,
        "rating.mentorRating": {"$ne": None},
        "rating.menteeRating": {"$ne": None},
    }


def plan_note(request: Dict[str, Any], actor_id: Any, note: Optional[str], now: datetime) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Append-only follow-up note. Returns (note, update)."""
    require_party(request, actor_id, "add notes to")
    text = (note or "").strip()
    if not text:
        raise ValidationFailed("Note is required")
    if len(text) > MAX_NOTE_LENGTH:
        raise ValidationFailed(f"Note cannot be more than {MAX_NOTE_LENGTH} characters")
    entry = {"_id": ObjectId(), "note": text, "addedBy": request_party_id(request, actor_id), "addedAt": now}
    return entry, {"$push": {"followUpNotes": entry}}


def request_party_id(request: Dict[str, Any], actor_id: Any) -> ObjectId:
    role = party_role(request, actor_id)
    return request[role] if role else ObjectId(str(actor_id))
