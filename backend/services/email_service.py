from postmarker.core import PostmarkClient
from database import database
from models import MessageLog, EmailTemplateAlias, AuditAction, utc_now
from utils.audit import create_audit_log
import html
import os
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)

DEFAULT_SENDER = os.getenv("EMAIL_SENDER", "reminders@cooltrack.app")
APP_URL = os.getenv("APP_URL", "http://localhost:5173")

class EmailService:
    def __init__(self):
        postmark_token = os.getenv("POSTMARK_SERVER_TOKEN")
        if not postmark_token:
            logger.warning("POSTMARK_SERVER_TOKEN not set - emails will be logged but not sent")
            self.client = None
        else:
            self.client = PostmarkClient(server_token=postmark_token)
            logger.info("Postmark email client initialized")

    async def send_email(
        self,
        recipient: str,
        template_alias: EmailTemplateAlias,
        template_model: Dict[str, Any],
        user_id: Optional[str] = None,
        subject: str = "CoolTrack"
    ) -> MessageLog:
        """Send an email with a built-in template and record the outcome.

        Delivery failures are captured on the returned MessageLog
        (status "failed"), not raised.
        """
        db = database.get_db()

        message_log = MessageLog(
            user_id=user_id,
            recipient=recipient,
            template_alias=template_alias,
            subject=subject,
            status="queued"
        )

        try:
            if self.client:
                response = self.client.emails.send(
                    From=DEFAULT_SENDER,
                    To=recipient,
                    Subject=subject,
                    HtmlBody=self._build_html_body(template_alias, template_model),
                    TextBody=self._build_text_body(template_alias, template_model),
                    TrackOpens=True,
                    Tag=template_alias.value
                )
                message_log.postmark_message_id = response["MessageID"]
                logger.info(f"Email sent to {recipient}: {response['MessageID']}")
            else:
                # Dev mode - just log
                logger.info(f"[DEV MODE] Email logged (not sent) to {recipient}: {subject}")

            message_log.status = "sent"
            message_log.sent_at = utc_now()

        except Exception as e:
            message_log.status = "failed"
            message_log.error_message = str(e)
            message_log.provider_error_type = type(e).__name__
            logger.error(f"Failed to send email to {recipient}: {e}")

        await db.message_logs.insert_one(message_log.model_dump(mode="json"))

        await create_audit_log(
            action=AuditAction.EMAIL_SENT if message_log.status == "sent" else AuditAction.EMAIL_FAILED,
            actor_id=user_id,
            metadata={
                "template": template_alias.value,
                "status": message_log.status,
                "postmark_id": message_log.postmark_message_id,
                "error": message_log.error_message,
            }
        )

        return message_log

    def _build_html_body(self, template_alias: EmailTemplateAlias, model: Dict[str, Any]) -> str:
        """Build HTML email body based on template type."""
        # User-entered values are escaped
        name = html.escape(str(model.get('user_name', 'there')))
        location = html.escape(str(model.get('ac_location', 'your air conditioner')))
        service_date = html.escape(str(model.get('service_date', 'soon')))
        dashboard_link = model.get('dashboard_link', APP_URL)

        if template_alias == EmailTemplateAlias.OVERDUE_REMINDER:
            heading = "AC Service Overdue"
            color = "#dc2626"
            message = (
                f"The scheduled service for <strong>{location}</strong> was due on "
                f"<strong>{service_date}</strong> and is now {model.get('days_overdue', 0)} day(s) overdue."
            )
        elif template_alias == EmailTemplateAlias.SERVICE_REMINDER:
            heading = "Upcoming AC Service"
            color = "#f59e0b"
            message = (
                f"Your <strong>{location}</strong> unit is due for service on "
                f"<strong>{service_date}</strong>, in {model.get('days_until_service', 'a few')} day(s)."
            )
        else:
            heading = "Welcome to CoolTrack"
            color = "#0284c7"
            message = "Your account is ready. Add your AC units to start tracking their service dates."

        return f"""
        <html>
        <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <div style="background-color: {color}; padding: 20px; border-radius: 8px 8px 0 0;">
                <h1 style="color: white; margin: 0;">{heading}</h1>
            </div>
            <div style="padding: 20px; border: 1px solid #e2e8f0; border-top: none; border-radius: 0 0 8px 8px;">
                <p>Hello {name},</p>
                <p>{message}</p>
                <p style="margin: 30px 0;">
                    <a href="{dashboard_link}"
                       style="background-color: {color}; color: white; padding: 12px 24px;
                              text-decoration: none; border-radius: 6px; display: inline-block;">
                        Open Dashboard
                    </a>
                </p>
                <p style="color: #64748b; font-size: 13px;">
                    You can change reminder settings from the Reminders page.
                </p>
            </div>
        </body>
        </html>
        """

    def _build_text_body(self, template_alias: EmailTemplateAlias, model: Dict[str, Any]) -> str:
        """Build plain text email body based on template type."""
        name = model.get('user_name', 'there')
        location = model.get('ac_location', 'your air conditioner')
        service_date = model.get('service_date', 'soon')

        if template_alias == EmailTemplateAlias.OVERDUE_REMINDER:
            body = (
                f"The scheduled service for {location} was due on {service_date} "
                f"and is now {model.get('days_overdue', 0)} day(s) overdue."
            )
        elif template_alias == EmailTemplateAlias.SERVICE_REMINDER:
            body = (
                f"Your {location} unit is due for service on {service_date}, "
                f"in {model.get('days_until_service', 'a few')} day(s)."
            )
        else:
            body = "Your account is ready. Add your AC units to start tracking their service dates."

        return f"""
Hello {name},

{body}

Open your dashboard: {model.get('dashboard_link', APP_URL)}
        """

    async def send_service_reminder_email(
        self,
        recipient: str,
        user_name: str,
        ac_location: str,
        service_date: str,
        days_remaining: int,
        user_id: Optional[str] = None
    ) -> MessageLog:
        """Reminder for one unit; overdue units get the overdue template."""
        if days_remaining < 0:
            alias = EmailTemplateAlias.OVERDUE_REMINDER
            subject = f"Overdue: AC service for {ac_location}"
        else:
            alias = EmailTemplateAlias.SERVICE_REMINDER
            subject = f"Reminder: AC service for {ac_location} on {service_date}"

        return await self.send_email(
            recipient=recipient,
            template_alias=alias,
            template_model={
                "user_name": user_name,
                "ac_location": ac_location,
                "service_date": service_date,
                "days_until_service": max(days_remaining, 0),
                "days_overdue": abs(min(days_remaining, 0)),
                "dashboard_link": APP_URL,
            },
            user_id=user_id,
            subject=subject
        )

    async def send_welcome_email(self, recipient: str, user_name: str, user_id: Optional[str] = None) -> MessageLog:
        return await self.send_email(
            recipient=recipient,
            template_alias=EmailTemplateAlias.WELCOME,
            template_model={"user_name": user_name, "dashboard_link": APP_URL},
            user_id=user_id,
            subject="Welcome to CoolTrack"
        )

email_service = EmailService()
