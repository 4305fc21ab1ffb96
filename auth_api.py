"""
Registration, login and self-service profile endpoints.
"""
import logging

from fastapi import APIRouter, Depends
from pymongo.errors import DuplicateKeyError

from database import USERS, create_document, get_db, parse_object_id, touch
from errors import Conflict, Unauthenticated, ValidationFailed
from guard import get_current_user
from schemas import LoginBody, PasswordChangeBody, ProfileUpdateBody, RegisterBody, User as UserSchema
from security import hash_password, token_for_user, verify_password
from users import apply_user_update, get_user_by_email, user_to_public

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# Auth Endpoints
@router.post("/register", status_code=201)
def register(body: RegisterBody, db=Depends(get_db)):
    if get_user_by_email(db, body.email):
        raise Conflict("User already exists with this email")

    profile = body.model_dump(exclude={"password"}, exclude_none=True)
    profile["isMentor"] = body.isMentor or False
    profile["mentorshipAreas"] = body.mentorshipAreas or []
    user_doc = UserSchema(password=hash_password(body.password), **profile).model_dump(exclude_none=True)

    try:
        inserted_id = create_document(USERS, user_doc, database=db)
    except DuplicateKeyError:
        raise Conflict("User already exists with this email")

    user = db[USERS].find_one({"_id": parse_object_id(inserted_id)})
    logger.info("Registered %s account %s", user["role"], inserted_id)
    return {
        "success": True,
        "message": "User registered successfully",
        "token": token_for_user(user),
        "user": user_to_public(user),
    }


@router.post("/login")
def login(body: LoginBody, db=Depends(get_db)):
    user = get_user_by_email(db, body.email)
    if not user:
        logger.warning("Login refused: unknown email")
        raise Unauthenticated("Invalid credentials")
    if not user.get("isActive", True):
        logger.warning("Login refused: account %s deactivated", user["_id"])
        raise Unauthenticated("Account has been deactivated")
    if not verify_password(body.password, user.get("password", "")):
        logger.warning("Login refused: bad password for %s", user["_id"])
        raise Unauthenticated("Invalid credentials")

    logger.info("User %s logged in", user["_id"])
    return {
        "success": True,
        "message": "Login successful",
        "token": token_for_user(user),
        "user": user_to_public(user),
    }


@router.get("/me")
def get_me(current=Depends(get_current_user)):
    return {"success": True, "user": user_to_public(current)}


@router.put("/profile")
def update_profile(body: ProfileUpdateBody, current=Depends(get_current_user), db=Depends(get_db)):
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    user = apply_user_update(db, current["_id"], fields)
    return {"success": True, "message": "Profile updated successfully", "user": user_to_public(user)}


@router.put("/password")
def change_password(body: PasswordChangeBody, current=Depends(get_current_user), db=Depends(get_db)):
    if not verify_password(body.currentPassword, current.get("password", "")):
        raise ValidationFailed("Current password is incorrect")
    db[USERS].update_one({"_id": current["_id"]}, touch({"$set": {"password": hash_password(body.newPassword)}}))
    logger.info("User %s changed password", current["_id"])
    return {"success": True, "message": "Password changed successfully"}
