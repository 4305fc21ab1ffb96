"""
Alumni directory: account lookups, listing, admin edits and statistics.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from database import USERS, get_db, paginate, parse_object_id, serialize, touch
from errors import Conflict, NotFound
from guard import authorize, get_current_user
from schemas import AdminUserUpdateBody

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])

SUMMARY_FIELDS = ("firstName", "lastName", "email", "role", "graduationYear", "department", "currentJob", "profilePicture")


def user_to_public(u: Optional[dict]) -> Optional[dict]:
    if not u:
        return u
    public = serialize(u)
    public["fullName"] = f"{u.get('firstName', '')} {u.get('lastName', '')}".strip()
    return public


def get_user_by_email(db, email: str) -> Optional[dict]:
    return db[USERS].find_one({"email": email.lower()})


def get_user_by_id(db, user_id: Any) -> Optional[dict]:
    try:
        oid = parse_object_id(user_id, "User")
    except NotFound:
        return None
    return db[USERS].find_one({"_id": oid})


def user_summaries(db, ids: Iterable[Any]) -> Dict[str, dict]:
    """Short public profiles keyed by id, for embedding in other documents."""
    oids = list({i for i in ids if i is not None})
    if not oids:
        return {}
    projection = {field: 1 for field in SUMMARY_FIELDS}
    return {str(u["_id"]): user_to_public(u) for u in db[USERS].find({"_id": {"$in": oids}}, projection)}


def _contains(text: str):
    return {"$regex": re.escape(text), "$options": "i"}


def build_user_filter(
    search: Optional[str] = None,
    department: Optional[str] = None,
    graduation_year: Optional[int] = None,
    role: Optional[str] = None,
    mentors_only: bool = False,
) -> dict:
    query: Dict[str, Any] = {"isActive": True}
    if search:
        pattern = _contains(search)
        query["$or"] = [
            {"firstName": pattern},
            {"lastName": pattern},
            {"department": pattern},
            {"currentJob.company": pattern},
        ]
    if department:
        query["department"] = _contains(department)
    if graduation_year is not None:
        query["graduationYear"] = graduation_year
    if role:
        query["role"] = role
    if mentors_only:
        query["isMentor"] = True
    return query


def build_mentor_filter(area: Optional[str] = None, search: Optional[str] = None) -> dict:
    query: Dict[str, Any] = {"isMentor": True, "isActive": True}
    if area:
        query["mentorshipAreas"] = _contains(area)
    if search:
        pattern = _contains(search)
        query["$or"] = [
            {"firstName": pattern},
            {"lastName": pattern},
            {"department": pattern},
            {"currentJob.company": pattern},
            {"mentorshipAreas": pattern},
        ]
    return query


NAME_SORT = [("firstName", ASCENDING), ("lastName", ASCENDING)]


def apply_user_update(db, user_id, fields: Dict[str, Any]) -> dict:
    """Update profile fields on an account and return the fresh document."""
    if "email" in fields:
        clash = db[USERS].find_one({"email": fields["email"], "_id": {"$ne": user_id}})
        if clash:
            raise Conflict("User already exists with this email")
    if fields:
        try:
            db[USERS].update_one({"_id": user_id}, touch({"$set": fields}))
        except DuplicateKeyError:
            # Unique email index caught a concurrent claim after the pre-check
            raise Conflict("User already exists with this email")
    return db[USERS].find_one({"_id": user_id})


def user_stats(db) -> Dict[str, Any]:
    users = db[USERS]
    by_year = users.aggregate([
        {"$match": {"isActive": True, "graduationYear": {"$exists": True, "$ne": None}}},
        {"$group": {"_id": "$graduationYear", "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ])
    by_department = users.aggregate([
        {"$match": {"isActive": True, "department": {"$exists": True, "$nin": ["", None]}}},
        {"$group": {"_id": "$department", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ])
    return {
        "totalUsers": users.count_documents({"isActive": True}),
        "totalAlumni": users.count_documents({"role": "alumni", "isActive": True}),
        "totalStudents": users.count_documents({"role": "student", "isActive": True}),
        "totalMentors": users.count_documents({"isMentor": True, "isActive": True}),
        "usersByYear": list(by_year),
        "usersByDepartment": list(by_department),
    }


# Users Endpoints
@router.get("")
def get_users(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    department: Optional[str] = None,
    graduationYear: Optional[int] = None,
    role: Optional[str] = None,
    mentorsOnly: bool = False,
    current=Depends(get_current_user),
    db=Depends(get_db),
):
    query = build_user_filter(search, department, graduationYear, role, mentorsOnly)
    result = paginate(db[USERS], query, NAME_SORT, page, limit)
    users: List[dict] = [user_to_public(u) for u in result.pop("items")]
    return {"success": True, **result, "users": users}


@router.get("/mentors")
def get_mentors(
    page: int = 1,
    limit: int = 10,
    area: Optional[str] = None,
    search: Optional[str] = None,
    current=Depends(get_current_user),
    db=Depends(get_db),
):
    result = paginate(db[USERS], build_mentor_filter(area, search), NAME_SORT, page, limit)
    mentors = [user_to_public(u) for u in result.pop("items")]
    return {"success": True, **result, "mentors": mentors}


@router.get("/admin/stats")
def get_user_stats(current=Depends(authorize("admin")), db=Depends(get_db)):
    return {"success": True, "stats": user_stats(db)}


@router.get("/{user_id}")
def get_user(user_id: str, current=Depends(get_current_user), db=Depends(get_db)):
    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFound("User not found")
    return {"success": True, "user": user_to_public(user)}


@router.put("/{user_id}")
def update_user(user_id: str, body: AdminUserUpdateBody, current=Depends(authorize("admin")), db=Depends(get_db)):
    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFound("User not found")
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    updated = apply_user_update(db, user["_id"], fields)
    logger.info("Admin %s updated user %s (%s)", current["_id"], user["_id"], ", ".join(sorted(fields)))
    return {"success": True, "message": "User updated successfully", "user": user_to_public(updated)}


@router.delete("/{user_id}")
def delete_user(user_id: str, current=Depends(authorize("admin")), db=Depends(get_db)):
    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFound("User not found")
    db[USERS].update_one({"_id": user["_id"]}, touch({"$set": {"isActive": False}}))
    logger.info("Admin %s deactivated user %s", current["_id"], user["_id"])
    return {"success": True, "message": "User deactivated successfully"}
