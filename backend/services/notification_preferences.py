"""Notification preferences - CoolTrack

Single home for reminder defaults. Registration, the preferences API and the
daily reminder job all go through here.
"""
from database import database
from models import NotificationPreferences, utc_now
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES = {
    "email_enabled": True,
    "sms_enabled": False,
    "days_before_service": 7,
}


def to_response(prefs: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "userId": prefs["user_id"],
        "emailEnabled": prefs.get("email_enabled", DEFAULT_PREFERENCES["email_enabled"]),
        "smsEnabled": prefs.get("sms_enabled", DEFAULT_PREFERENCES["sms_enabled"]),
        "daysBeforeService": prefs.get("days_before_service", DEFAULT_PREFERENCES["days_before_service"]),
    }


async def get_preferences(user_id: str) -> Dict[str, Any]:
    """Stored preferences, or defaults without persisting them."""
    db = database.get_db()
    prefs = await db.notification_preferences.find_one({"user_id": user_id}, {"_id": 0})
    if prefs:
        return prefs
    return {"user_id": user_id, **DEFAULT_PREFERENCES}


async def get_or_create_preferences(user_id: str) -> Dict[str, Any]:
    db = database.get_db()
    prefs = await db.notification_preferences.find_one({"user_id": user_id}, {"_id": 0})
    if prefs:
        return prefs

    doc = NotificationPreferences(user_id=user_id, **DEFAULT_PREFERENCES).model_dump(mode="json")
    await db.notification_preferences.insert_one(doc)
    doc.pop("_id", None)
    logger.info(f"Default notification preferences created for user {user_id}")
    return doc


async def update_preferences(user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Apply a partial update, creating the document from defaults if absent."""
    db = database.get_db()
    existing = await get_or_create_preferences(user_id)

    if changes:
        update = dict(changes)
        update["updated_at"] = utc_now().isoformat()
        await db.notification_preferences.update_one({"user_id": user_id}, {"$set": update})
        existing = {**existing, **update}

    return existing
