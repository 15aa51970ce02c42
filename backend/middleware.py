from fastapi import Request, HTTPException, status
from typing import Optional
import logging
from auth import decode_access_token, firebase_enabled, verify_firebase_token
from models import User, AuthProvider, AuditAction
from database import database

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"

def _extract_token(request: Request) -> Optional[str]:
    """Bearer header wins over the session cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1].strip()
        return token or None
    return request.cookies.get(SESSION_COOKIE) or None

async def ensure_firebase_user(claims: dict) -> dict:
    """Find or create the local user record for a Firebase identity."""
    db = database.get_db()
    uid = claims.get("uid")
    user = await db.users.find_one({"firebase_uid": uid}, {"_id": 0})
    if user:
        return user

    email = claims.get("email") or f"{uid}@users.firebase"
    user_obj = User(
        username=email.split("@")[0],
        email=email,
        full_name=claims.get("name"),
        auth_provider=AuthProvider.FIREBASE,
        firebase_uid=uid,
    )
    doc = user_obj.model_dump(mode="json")
    await db.users.insert_one(doc)
    doc.pop("_id", None)

    from services.notification_preferences import get_or_create_preferences
    await get_or_create_preferences(user_obj.user_id)

    logger.info(f"Provisioned user {user_obj.user_id} for Firebase uid {uid}")
    return doc

async def get_current_user(request: Request) -> Optional[dict]:
    """Resolve the caller to {"user_id", "username"} or None."""
    token = _extract_token(request)
    if not token:
        return None

    payload = decode_access_token(token)
    if payload and payload.get("user_id"):
        return payload

    if firebase_enabled():
        claims = verify_firebase_token(token)
        if claims:
            user = await ensure_firebase_user(claims)
            return {"user_id": user["user_id"], "username": user["username"]}

    return None

async def require_auth(request: Request) -> dict:
    """Require valid authentication."""
    user = await get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
    return user

async def ensure_owner(user: dict, resource: Optional[dict], resource_type: str, resource_id: str) -> dict:
    """The one ownership policy: the resource must exist and belong to the caller.

    Raises 404 when missing and 403 when owned by someone else.
    """
    if not resource:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource_type} not found"
        )

    if resource.get("user_id") != user["user_id"]:
        from utils.audit import create_audit_log

        logger.warning(f"User {user['user_id']} denied access to {resource_type} {resource_id}")
        await create_audit_log(
            action=AuditAction.OWNERSHIP_DENIED,
            actor_id=user["user_id"],
            resource_type=resource_type,
            resource_id=resource_id,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden"
        )
    return resource

async def require_owned_unit(user: dict, unit_id: str) -> dict:
    """Load an AC unit and apply the ownership policy."""
    db = database.get_db()
    unit = await db.ac_units.find_one({"unit_id": unit_id}, {"_id": 0})
    return await ensure_owner(user, unit, "AC unit", unit_id)
