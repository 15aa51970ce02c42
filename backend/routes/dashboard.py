from fastapi import APIRouter, HTTPException, Request, status
from database import database
from middleware import require_auth
from services.service_status import aggregate
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

@router.get("/stats")
async def dashboard_stats(request: Request):
    """Counts for the dashboard tiles: total, upcoming (30 days), overdue, completed."""
    user = await require_auth(request)
    db = database.get_db()

    try:
        units = await db.ac_units.find(
            {"user_id": user["user_id"]},
            {"_id": 0, "unit_id": 1, "next_service_date": 1, "last_service_date": 1}
        ).to_list(None)
        return aggregate(units).to_dict()
    except Exception as e:
        logger.error(f"Dashboard stats error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )
