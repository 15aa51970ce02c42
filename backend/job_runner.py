"""
Shared job runner for scheduled background jobs.
Used by the server scheduler; each run_* returns a dict with "message" and "count".
"""
import logging

logger = logging.getLogger(__name__)


async def run_daily_reminders():
    try:
        from services.jobs import send_daily_reminders
        count = await send_daily_reminders()
        logger.info(f"Daily reminders job completed: {count} reminders sent")
        return {"message": f"Daily reminders sent: {count}", "count": count}
    except Exception as e:
        logger.error(f"Daily reminders job failed: {e}")
        raise
