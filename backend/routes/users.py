"""User Routes
Lets the signed-in user update their own account.
"""
from fastapi import APIRouter, HTTPException, Request, status
from database import database
from middleware import require_auth
from models import UpdateUserRequest, AuditAction
from auth import hash_password
from routes.auth import public_user
from utils.audit import create_audit_log
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/users", tags=["users"])

AUDITED_FIELDS = ("username", "email", "full_name", "phone")

@router.patch("/me")
async def update_me(request: Request, data: UpdateUserRequest):
    """Partial update; a new password is re-hashed before storage."""
    user = await require_auth(request)
    db = database.get_db()

    try:
        current = await db.users.find_one({"user_id": user["user_id"]}, {"_id": 0})
        if not current:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

        changes = data.model_dump(exclude_unset=True)

        for field in ("username", "email"):
            value = changes.get(field)
            if value is not None and value != current.get(field):
                taken = await db.users.find_one({field: value}, {"_id": 0, "user_id": 1})
                if taken and taken["user_id"] != user["user_id"]:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"{field.capitalize()} already exists"
                    )

        password = changes.pop("password", None)
        if password:
            changes["password_hash"] = hash_password(password)

        if changes:
            await db.users.update_one({"user_id": user["user_id"]}, {"$set": changes})

        updated = {**current, **changes}

        await create_audit_log(
            action=AuditAction.USER_UPDATED,
            actor_id=user["user_id"],
            resource_type="user",
            resource_id=user["user_id"],
            before_state={k: current.get(k) for k in AUDITED_FIELDS},
            after_state={k: updated.get(k) for k in AUDITED_FIELDS},
            metadata={"password_changed": bool(password)}
        )

        return public_user(updated)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"User update error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )
