"""Service reminders - CoolTrack

Delivers a reminder for one AC unit and records it in the reminders
collection, whether delivery succeeded or not.
"""
from database import database
from models import Reminder, ReminderChannel, ReminderStatus, ReminderTrigger, AuditAction
from services.email_service import email_service
from services.notification_preferences import get_preferences
from services.service_status import classify
from services.sms_service import sms_service
from utils.audit import create_audit_log
from utils.dates import format_date_for_email, parse_service_date, today_utc
from datetime import date
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


def display_name(user: Dict[str, Any]) -> str:
    full_name = (user.get("full_name") or "").strip()
    return full_name or user["email"].split("@")[0]


def _sms_text(location: str, service_date: str, days_remaining: int) -> str:
    if days_remaining < 0:
        return f"CoolTrack: service for {location} was due {service_date} ({abs(days_remaining)} day(s) overdue)."
    return f"CoolTrack: service for {location} is due {service_date} ({days_remaining} day(s))."


async def send_service_reminder(
    user: Dict[str, Any],
    unit: Dict[str, Any],
    trigger: ReminderTrigger = ReminderTrigger.MANUAL,
    preferences: Optional[Dict[str, Any]] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Send a reminder for a unit and persist the outcome.

    Manual reminders always go out by email. Scheduled reminders follow the
    user's email preference. SMS is added when the user enabled it and has a
    phone number on file.
    """
    db = database.get_db()
    today = today or today_utc()
    prefs = preferences or await get_preferences(user["user_id"])

    service_date = parse_service_date(unit["next_service_date"])
    result = classify(service_date, today)
    formatted_date = format_date_for_email(service_date)

    channels: List[ReminderChannel] = []
    errors: List[str] = []

    if trigger == ReminderTrigger.MANUAL or prefs.get("email_enabled", True):
        message_log = await email_service.send_service_reminder_email(
            recipient=user["email"],
            user_name=display_name(user),
            ac_location=unit["location"],
            service_date=formatted_date,
            days_remaining=result.days_remaining,
            user_id=user["user_id"],
        )
        if message_log.status == "sent":
            channels.append(ReminderChannel.EMAIL)
        else:
            errors.append(f"email: {message_log.error_message}")

    if prefs.get("sms_enabled") and user.get("phone"):
        sms_result = await sms_service.send_sms(
            user["phone"],
            _sms_text(unit["location"], formatted_date, result.days_remaining),
            user_id=user["user_id"],
        )
        if sms_result.get("success"):
            channels.append(ReminderChannel.SMS)
        else:
            errors.append(f"sms: {sms_result.get('error')}")

    if not channels and not errors:
        errors.append("no delivery channel enabled")

    reminder = Reminder(
        user_id=user["user_id"],
        unit_id=unit["unit_id"],
        unit_location=unit["location"],
        service_date=service_date,
        reminder_date=today,
        sent_to=user["email"],
        channels=channels,
        trigger=trigger,
        status=ReminderStatus.SENT if channels else ReminderStatus.FAILED,
        error_message="; ".join(errors) or None,
    )
    doc = reminder.model_dump(mode="json")
    await db.reminders.insert_one(doc)
    doc.pop("_id", None)

    await create_audit_log(
        action=AuditAction.REMINDER_SENT if channels else AuditAction.REMINDER_FAILED,
        actor_id=user["user_id"],
        resource_type="AC unit",
        resource_id=unit["unit_id"],
        metadata={"trigger": trigger.value, "channels": [c.value for c in channels], "errors": errors},
    )

    logger.info(
        f"Reminder {reminder.reminder_id} for unit {unit['unit_id']} "
        f"({trigger.value}) {reminder.status.value} via {[c.value for c in channels]}"
    )
    return doc


def to_response(reminder: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "reminderId": reminder["reminder_id"],
        "unitId": reminder["unit_id"],
        "unitLocation": reminder["unit_location"],
        "serviceDate": reminder["service_date"],
        "reminderDate": reminder["reminder_date"],
        "sentTo": reminder["sent_to"],
        "channels": reminder.get("channels", []),
        "trigger": reminder["trigger"],
        "status": reminder["status"],
        "errorMessage": reminder.get("error_message"),
        "sentAt": reminder["sent_at"],
    }
