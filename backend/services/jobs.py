"""Background jobs for service reminders - CoolTrack"""
from database import database
from models import ReminderStatus, ReminderTrigger
from services.notification_preferences import get_preferences
from services.reminder_service import send_service_reminder
from services.service_status import days_between, needs_attention
from utils.dates import today_utc
from datetime import date
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


async def _already_reminded(db, unit_id: str, today: date) -> bool:
    existing = await db.reminders.find_one(
        {
            "unit_id": unit_id,
            "trigger": ReminderTrigger.SCHEDULED.value,
            "reminder_date": today.isoformat(),
            "status": ReminderStatus.SENT.value,
        },
        {"_id": 0, "reminder_id": 1}
    )
    return existing is not None


async def _remind_user(db, user: Dict[str, Any], today: date) -> int:
    prefs = await get_preferences(user["user_id"])
    wants_email = prefs.get("email_enabled", True)
    wants_sms = prefs.get("sms_enabled", False) and bool(user.get("phone"))
    if not wants_email and not wants_sms:
        logger.info(f"Skipping reminders for user {user['user_id']} - disabled in preferences")
        return 0

    lead_days = prefs.get("days_before_service", 7)
    units = await db.ac_units.find({"user_id": user["user_id"]}, {"_id": 0}).to_list(None)

    sent = 0
    for unit in units:
        try:
            days = days_between(unit["next_service_date"], today)
        except (KeyError, ValueError) as e:
            logger.warning(f"Unit {unit.get('unit_id')} has an unreadable next_service_date: {e}")
            continue

        if not needs_attention(days, lead_days):
            continue
        if await _already_reminded(db, unit["unit_id"], today):
            continue

        reminder = await send_service_reminder(
            user, unit,
            trigger=ReminderTrigger.SCHEDULED,
            preferences=prefs,
            today=today,
        )
        if reminder["status"] == ReminderStatus.SENT.value:
            sent += 1
    return sent


async def send_daily_reminders(today: Optional[date] = None) -> int:
    """Remind every user about units that are overdue or inside their lead time.

    Each unit is reminded at most once per day. A failure for one user is
    logged and does not stop the run.
    """
    logger.info("Running daily reminder job...")
    db = database.get_db()
    today = today or today_utc()

    reminder_count = 0
    async for user in db.users.find({}, {"_id": 0}):
        try:
            reminder_count += await _remind_user(db, user, today)
        except Exception as e:
            logger.error(f"Daily reminders failed for user {user.get('user_id')}: {e}", exc_info=True)

    logger.info(f"Daily reminder job complete. Sent {reminder_count} reminders.")
    return reminder_count
