"""Reminder Routes
Send a reminder for a unit now, browse reminder history, and list the units
that need attention under the user's lead time.
"""
from fastapi import APIRouter, HTTPException, Query, Request, status
from database import database
from middleware import require_auth, require_owned_unit
from models import ReminderStatus
from routes.ac_units import unit_response
from services.notification_preferences import get_preferences
from services.reminder_service import send_service_reminder, to_response
from services.service_status import needs_attention
from utils.dates import today_utc
from typing import Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["reminders"])

@router.post("/ac-units/{unit_id}/reminders", status_code=status.HTTP_201_CREATED)
async def send_unit_reminder(request: Request, unit_id: str):
    """Send a reminder for one unit immediately.

    Returns the recorded reminder; delivery failure is reported through its
    status rather than an error response.
    """
    user = await require_auth(request)
    unit = await require_owned_unit(user, unit_id)
    db = database.get_db()

    user_doc = await db.users.find_one({"user_id": user["user_id"]}, {"_id": 0})
    if not user_doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    try:
        reminder = await send_service_reminder(user_doc, unit)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        logger.error(f"Send reminder error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )

    body = to_response(reminder)
    if reminder["status"] == ReminderStatus.SENT.value:
        body["message"] = "Reminder sent"
    else:
        body["message"] = "Failed to send reminder. Please try again later."
    return body

@router.get("/reminders")
async def list_reminders(
    request: Request,
    unit_id: Optional[str] = Query(default=None, alias="unitId"),
    limit: int = Query(default=100, ge=1, le=500),
):
    """Reminder history, newest first."""
    user = await require_auth(request)
    db = database.get_db()

    query = {"user_id": user["user_id"]}
    if unit_id:
        query["unit_id"] = unit_id

    try:
        reminders = await db.reminders.find(query, {"_id": 0}).sort("sent_at", -1).to_list(limit)
        return [to_response(r) for r in reminders]
    except Exception as e:
        logger.error(f"List reminders error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )

@router.get("/reminders/attention")
async def units_needing_attention(request: Request):
    """Units overdue or due within the user's lead time, soonest first."""
    user = await require_auth(request)
    db = database.get_db()

    try:
        prefs = await get_preferences(user["user_id"])
        lead_days = prefs.get("days_before_service", 7)
        units = await db.ac_units.find({"user_id": user["user_id"]}, {"_id": 0}).to_list(None)
    except Exception as e:
        logger.error(f"Attention list error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )

    today = today_utc()
    results = [unit_response(u, today) for u in units]
    results = [
        r for r in results
        if r["daysRemaining"] is not None and needs_attention(r["daysRemaining"], lead_days)
    ]
    results.sort(key=lambda r: r["daysRemaining"])
    return {"daysBeforeService": lead_days, "units": results}
