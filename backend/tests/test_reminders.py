"""
Service reminders: manual sends, history, the attention list and the
daily scheduled job.

Postmark and Twilio are never contacted; without credentials the email
service runs in dev mode and the SMS service reports itself disabled.
"""
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from models import ReminderTrigger
from services.email_service import email_service
from services.jobs import send_daily_reminders
from services.notification_preferences import get_preferences
from services.reminder_service import send_service_reminder
from services.sms_service import sms_service
from utils.dates import today_utc

TODAY = date(2025, 6, 15)


def _in_days(n, base=None):
    return ((base or today_utc()) + timedelta(days=n)).isoformat()


def _add_unit(client, location, next_days):
    response = client.post("/api/ac-units", json={"location": location, "nextServiceDate": _in_days(next_days)})
    assert response.status_code == 201
    return response.json()


async def _seed_user(db, user_id="u1", email_enabled=True, sms_enabled=False, lead=7, phone=None):
    await db.users.insert_one({
        "user_id": user_id,
        "username": user_id,
        "email": f"{user_id}@example.com",
        "full_name": None,
        "phone": phone,
    })
    await db.notification_preferences.insert_one({
        "user_id": user_id,
        "email_enabled": email_enabled,
        "sms_enabled": sms_enabled,
        "days_before_service": lead,
    })


async def _seed_unit(db, unit_id, next_days, user_id="u1"):
    await db.ac_units.insert_one({
        "unit_id": unit_id,
        "user_id": user_id,
        "location": f"Location {unit_id}",
        "next_service_date": _in_days(next_days, TODAY),
    })


# ============================================================================
# API
# ============================================================================

def test_manual_reminder_is_recorded(auth_client, fake_db):
    unit = _add_unit(auth_client, "Garage", 3)

    response = auth_client.post(f"/api/ac-units/{unit['unitId']}/reminders")
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "sent"
    assert body["channels"] == ["email"]
    assert body["trigger"] == "manual"
    assert body["unitLocation"] == "Garage"
    assert body["sentTo"] == "alice@example.com"
    assert body["message"] == "Reminder sent"

    reminder_emails = [m for m in fake_db.message_logs.docs if m["template_alias"] == "service-reminder"]
    assert len(reminder_emails) == 1


def test_manual_reminder_for_overdue_unit_uses_overdue_template(auth_client, fake_db):
    unit = _add_unit(auth_client, "Attic", -4)
    assert auth_client.post(f"/api/ac-units/{unit['unitId']}/reminders").status_code == 201
    assert any(m["template_alias"] == "overdue-reminder" for m in fake_db.message_logs.docs)


def test_manual_reminder_sent_even_when_email_disabled(auth_client):
    auth_client.patch("/api/notification-preferences", json={"emailEnabled": False})
    unit = _add_unit(auth_client, "Garage", 3)
    body = auth_client.post(f"/api/ac-units/{unit['unitId']}/reminders").json()
    assert body["status"] == "sent"


def test_manual_reminder_delivery_failure_is_reported(auth_client):
    unit = _add_unit(auth_client, "Garage", 3)
    failing = MagicMock()
    failing.emails.send.side_effect = RuntimeError("postmark down")

    with patch.object(email_service, "client", failing):
        response = auth_client.post(f"/api/ac-units/{unit['unitId']}/reminders")

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "failed"
    assert "postmark down" in body["errorMessage"]
    assert body["message"] == "Failed to send reminder. Please try again later."


def test_manual_reminder_for_other_users_unit_is_forbidden(auth_client, make_client, register_user):
    unit = _add_unit(auth_client, "Garage", 3)
    bob = make_client()
    register_user(bob, "bob")
    assert bob.post(f"/api/ac-units/{unit['unitId']}/reminders").status_code == 403
    assert bob.post("/api/ac-units/missing/reminders").status_code == 404


def test_reminder_history_newest_first_and_filterable(auth_client):
    first = _add_unit(auth_client, "First", 2)
    second = _add_unit(auth_client, "Second", 4)
    auth_client.post(f"/api/ac-units/{first['unitId']}/reminders")
    auth_client.post(f"/api/ac-units/{second['unitId']}/reminders")

    history = auth_client.get("/api/reminders").json()
    assert [r["unitLocation"] for r in history] == ["Second", "First"]

    only_first = auth_client.get("/api/reminders", params={"unitId": first["unitId"]}).json()
    assert [r["unitId"] for r in only_first] == [first["unitId"]]


def test_reminder_history_is_private(auth_client, make_client, register_user):
    unit = _add_unit(auth_client, "Garage", 2)
    auth_client.post(f"/api/ac-units/{unit['unitId']}/reminders")

    bob = make_client()
    register_user(bob, "bob")
    assert bob.get("/api/reminders").json() == []


def test_attention_list_uses_lead_time(auth_client):
    auth_client.patch("/api/notification-preferences", json={"daysBeforeService": 10})
    _add_unit(auth_client, "Overdue", -2)
    _add_unit(auth_client, "Inside", 10)
    _add_unit(auth_client, "Outside", 11)

    body = auth_client.get("/api/reminders/attention").json()
    assert body["daysBeforeService"] == 10
    assert [u["location"] for u in body["units"]] == ["Overdue", "Inside"]


# ============================================================================
# Reminder service / daily job
# ============================================================================

@pytest.mark.asyncio
async def test_sms_added_when_enabled_and_phone_on_file(fake_db):
    await _seed_user(fake_db, sms_enabled=True, phone="+15550001111")
    await _seed_unit(fake_db, "a", 3)
    user = await fake_db.users.find_one({"user_id": "u1"}, {"_id": 0})
    unit = await fake_db.ac_units.find_one({"unit_id": "a"}, {"_id": 0})

    with patch.object(sms_service, "send_sms", new=AsyncMock(return_value={"success": True, "message_sid": "SM1"})) as send_sms:
        reminder = await send_service_reminder(user, unit, trigger=ReminderTrigger.SCHEDULED, today=TODAY)

    send_sms.assert_awaited_once()
    assert send_sms.await_args.args[0] == "+15550001111"
    assert reminder["channels"] == ["email", "sms"]
    assert reminder["status"] == "sent"


@pytest.mark.asyncio
async def test_daily_job_reminds_inside_lead_time_only(fake_db):
    await _seed_user(fake_db, lead=7)
    await _seed_unit(fake_db, "overdue", -3)
    await _seed_unit(fake_db, "today", 0)
    await _seed_unit(fake_db, "edge", 7)
    await _seed_unit(fake_db, "later", 8)

    count = await send_daily_reminders(today=TODAY)

    assert count == 3
    reminded = sorted(r["unit_id"] for r in fake_db.reminders.docs)
    assert reminded == ["edge", "overdue", "today"]
    assert all(r["trigger"] == "scheduled" for r in fake_db.reminders.docs)
    assert all(r["reminder_date"] == TODAY.isoformat() for r in fake_db.reminders.docs)


@pytest.mark.asyncio
async def test_daily_job_runs_once_per_unit_per_day(fake_db):
    await _seed_user(fake_db)
    await _seed_unit(fake_db, "a", 2)

    assert await send_daily_reminders(today=TODAY) == 1
    assert await send_daily_reminders(today=TODAY) == 0
    assert len(fake_db.reminders.docs) == 1

    # Next day it goes out again
    assert await send_daily_reminders(today=TODAY + timedelta(days=1)) == 1


@pytest.mark.asyncio
async def test_daily_job_skips_users_with_everything_disabled(fake_db):
    await _seed_user(fake_db, email_enabled=False, sms_enabled=False)
    await _seed_unit(fake_db, "a", 1)

    assert await send_daily_reminders(today=TODAY) == 0
    assert fake_db.reminders.docs == []


@pytest.mark.asyncio
async def test_daily_job_users_without_stored_preferences_get_defaults(fake_db):
    await fake_db.users.insert_one({"user_id": "u2", "username": "u2", "email": "u2@example.com"})
    await _seed_unit(fake_db, "b", 5, user_id="u2")
    await _seed_unit(fake_db, "c", 9, user_id="u2")

    assert await send_daily_reminders(today=TODAY) == 1
    assert [r["unit_id"] for r in fake_db.reminders.docs] == ["b"]


@pytest.mark.asyncio
async def test_daily_job_failed_delivery_is_retried_later_the_same_day(fake_db):
    await _seed_user(fake_db)
    await _seed_unit(fake_db, "a", 1)

    failing = MagicMock()
    failing.emails.send.side_effect = RuntimeError("timeout")
    with patch.object(email_service, "client", failing):
        assert await send_daily_reminders(today=TODAY) == 0
    assert fake_db.reminders.docs[0]["status"] == "failed"

    assert await send_daily_reminders(today=TODAY) == 1


@pytest.mark.asyncio
async def test_daily_job_continues_after_one_user_fails(fake_db):
    await _seed_user(fake_db, user_id="broken")
    await _seed_user(fake_db, user_id="ok")
    await _seed_unit(fake_db, "x", 1, user_id="broken")
    await _seed_unit(fake_db, "y", 1, user_id="ok")

    async def flaky(user_id):
        if user_id == "broken":
            raise RuntimeError("boom")
        return await get_preferences(user_id)

    with patch("services.jobs.get_preferences", side_effect=flaky):
        assert await send_daily_reminders(today=TODAY) == 1

    assert [r["unit_id"] for r in fake_db.reminders.docs] == ["y"]


@pytest.mark.asyncio
async def test_job_runner_reports_count(fake_db):
    from job_runner import run_daily_reminders

    with patch("services.jobs.send_daily_reminders", new=AsyncMock(return_value=4)):
        result = await run_daily_reminders()
    assert result == {"message": "Daily reminders sent: 4", "count": 4}


# ============================================================================
# SMS delivery failures
# ============================================================================

def _twilio(create_side_effect=None):
    client = MagicMock()
    if create_side_effect is not None:
        client.messages.create.side_effect = create_side_effect
    else:
        client.messages.create.return_value = MagicMock(sid="SM42", status="queued")
    return patch.multiple(sms_service, client=client, from_number="+15550000000")


@pytest.mark.asyncio
async def test_sms_network_error_is_recorded_not_raised(fake_db):
    await _seed_user(fake_db, sms_enabled=True, phone="+15550001111")
    await _seed_unit(fake_db, "a", 3)
    user = await fake_db.users.find_one({"user_id": "u1"}, {"_id": 0})
    unit = await fake_db.ac_units.find_one({"unit_id": "a"}, {"_id": 0})

    with patch("services.sms_service.SMS_ENABLED", True), _twilio(ConnectionError("twilio unreachable")):
        reminder = await send_service_reminder(user, unit, trigger=ReminderTrigger.SCHEDULED, today=TODAY)

    assert reminder["status"] == "sent"
    assert reminder["channels"] == ["email"]
    assert "twilio unreachable" in reminder["error_message"]
    assert len(fake_db.reminders.docs) == 1


@pytest.mark.asyncio
async def test_daily_job_does_not_resend_after_sms_error(fake_db):
    await _seed_user(fake_db, sms_enabled=True, phone="+15550001111")
    await _seed_unit(fake_db, "a", 1)

    with patch("services.sms_service.SMS_ENABLED", True), _twilio(ConnectionError("twilio unreachable")):
        assert await send_daily_reminders(today=TODAY) == 1
        assert await send_daily_reminders(today=TODAY) == 0

    assert len([m for m in fake_db.message_logs.docs if m["template_alias"] == "service-reminder"]) == 1


@pytest.mark.asyncio
async def test_sms_log_write_failure_still_reports_delivery(fake_db):
    with patch("services.sms_service.SMS_ENABLED", True), _twilio(), \
            patch.object(fake_db.sms_logs, "insert_one", new=AsyncMock(side_effect=RuntimeError("db down"))):
        result = await sms_service.send_sms("+15550001111", "hello", user_id="u1")

    assert result["success"] is True
    assert result["message_sid"] == "SM42"


def test_manual_reminder_with_sms_error_returns_record(auth_client, fake_db):
    auth_client.patch("/api/users/me", json={"phone": "+15550001111"})
    auth_client.patch("/api/notification-preferences", json={"smsEnabled": True})
    unit = _add_unit(auth_client, "Garage", 3)

    with patch("services.sms_service.SMS_ENABLED", True), _twilio(ConnectionError("twilio unreachable")):
        response = auth_client.post(f"/api/ac-units/{unit['unitId']}/reminders")

    assert response.status_code == 201
    assert response.json()["channels"] == ["email"]
    assert len(fake_db.reminders.docs) == 1
