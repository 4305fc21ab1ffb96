"""
Request guards: resolve the caller from a bearer token and check roles and
ownership before any business logic runs.

The guard only reads. It never writes to the database.
"""
import logging
from typing import Any, Callable, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from database import USERS, get_db, same_id
from errors import Forbidden, Unauthenticated
from security import TokenError, decode_access_token

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def resolve_identity(token: Optional[str], db) -> dict:
    if not token:
        raise Unauthenticated("Not authorized, no token")
    try:
        subject = decode_access_token(token)
        user_id = ObjectId(subject)
    except (TokenError, InvalidId, TypeError):
        raise Unauthenticated("Not authorized, token failed")

    user = db[USERS].find_one({"_id": user_id})
    if user is None:
        raise Unauthenticated("Not authorized, user not found")
    if not user.get("isActive", True):
        raise Unauthenticated("Account has been deactivated")
    return user


def get_current_user(request: Request, token: Optional[str] = Depends(oauth2_scheme), db=Depends(get_db)):
    user = resolve_identity(token, db)
    request.state.user = user
    return user


def authorize(*roles: str) -> Callable[..., Any]:
    """Dependency factory: the current user must hold one of `roles`."""

    def role_checker(current=Depends(get_current_user)):
        if current.get("role") not in roles:
            logger.info("Role %s refused, needs one of %s", current.get("role"), roles)
            raise Forbidden(f"User role {current.get('role')} is not authorized to access this route")
        return current

    return role_checker


def is_admin(user: dict) -> bool:
    return user.get("role") == "admin"


def ensure_owner_or_admin(user: dict, owner_id: Any, message: str = "Not authorized") -> None:
    if is_admin(user) or same_id(user.get("_id"), owner_id):
        return
    raise Forbidden(message)
