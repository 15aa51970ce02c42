"""SMS Service - Twilio integration for service reminders.
Feature flagged: nothing is sent unless SMS_ENABLED=true and Twilio is configured.
"""
from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException
from database import database
from models import utc_now
import os
import logging
from typing import Optional

logger = logging.getLogger(__name__)

SMS_ENABLED = os.getenv("SMS_ENABLED", "false").lower() == "true"

class SMSService:
    def __init__(self):
        self.account_sid = os.getenv("TWILIO_ACCOUNT_SID")
        self.auth_token = os.getenv("TWILIO_AUTH_TOKEN")
        self.from_number = os.getenv("TWILIO_PHONE_NUMBER")

        self.client = None
        if self.account_sid and self.auth_token:
            self.client = Client(self.account_sid, self.auth_token)
            logger.info("Twilio client initialized")

    def is_enabled(self) -> bool:
        """SMS feature flag is on and Twilio is configured."""
        return SMS_ENABLED and bool(self.client and self.from_number)

    async def send_sms(
        self,
        to_number: str,
        message: str,
        user_id: Optional[str] = None
    ) -> dict:
        """Send an SMS message.

        Args:
            to_number: Phone number, E.164 preferred (a missing "+" is added)
            message: Message body
            user_id: Optional user ID for logging

        Returns:
            dict with success flag and message_sid or error
        """
        if not self.is_enabled():
            logger.warning("SMS is not enabled or configured")
            return {"success": False, "error": "SMS not enabled"}

        if not to_number.startswith("+"):
            to_number = f"+{to_number}"

        try:
            message_obj = self.client.messages.create(
                body=message,
                from_=self.from_number,
                to=to_number
            )
        except TwilioRestException as e:
            logger.error(f"Twilio error sending SMS: {e.code} - {e.msg}")
            return {"success": False, "error": str(e.msg), "code": e.code}
        except Exception as e:
            logger.error(f"Error sending SMS: {e}")
            return {"success": False, "error": str(e)}

        try:
            db = database.get_db()
            await db.sms_logs.insert_one({
                "message_sid": message_obj.sid,
                "to_number": to_number,
                "message_preview": message[:50] + "..." if len(message) > 50 else message,
                "status": message_obj.status,
                "user_id": user_id,
                "created_at": utc_now().isoformat()
            })
        except Exception as e:
            # Already delivered
            logger.error(f"Failed to log SMS {message_obj.sid}: {e}")

        logger.info(f"SMS sent to {to_number[:7]}***: {message_obj.sid}")
        return {"success": True, "message_sid": message_obj.sid, "status": message_obj.status}

sms_service = SMSService()
