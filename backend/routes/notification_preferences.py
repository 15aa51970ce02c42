"""Notification Preference Routes
Email/SMS toggles and the reminder lead time (1-30 days).
"""
from fastapi import APIRouter, HTTPException, Request, status
from middleware import require_auth
from models import NotificationPreferencesRequest, AuditAction
from services.notification_preferences import get_or_create_preferences, update_preferences, to_response
from utils.audit import create_audit_log
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/notification-preferences", tags=["notification-preferences"])

@router.get("")
async def get_notification_preferences(request: Request):
    """Current preferences; defaults are created on first read."""
    user = await require_auth(request)

    try:
        prefs = await get_or_create_preferences(user["user_id"])
        return to_response(prefs)
    except Exception as e:
        logger.error(f"Get notification preferences error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )

@router.patch("")
async def update_notification_preferences(request: Request, data: NotificationPreferencesRequest):
    user = await require_auth(request)

    try:
        changes = data.model_dump(exclude_none=True)
        prefs = await update_preferences(user["user_id"], changes)

        await create_audit_log(
            action=AuditAction.PREFERENCES_UPDATED,
            actor_id=user["user_id"],
            resource_type="notification_preferences",
            resource_id=user["user_id"],
            metadata={"changes": changes}
        )

        return to_response(prefs)
    except Exception as e:
        logger.error(f"Update notification preferences error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )
