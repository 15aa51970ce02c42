"""AC Unit Routes
CRUD for the signed-in user's AC units. Every unit in a response carries its
card-level service status.
"""
from fastapi import APIRouter, HTTPException, Query, Request, Response, status
from database import database
from middleware import require_auth, require_owned_unit
from models import AcUnit, CreateAcUnitRequest, UpdateAcUnitRequest, ServiceStatus, AuditAction, utc_now
from services.service_status import classify
from utils.audit import create_audit_log
from utils.dates import today_utc
from datetime import date
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/ac-units", tags=["ac-units"])

# sort parameter -> (stored field, descending)
SORT_OPTIONS = {
    "nextServiceDate": ("next_service_date", False),
    "-nextServiceDate": ("next_service_date", True),
    "location": ("location", False),
    "-location": ("location", True),
    "createdAt": ("created_at", False),
    "-createdAt": ("created_at", True),
}

AUDITED_FIELDS = ("location", "last_service_date", "next_service_date", "notes")

def unit_response(unit: Dict[str, Any], today: Optional[date] = None) -> Dict[str, Any]:
    body = {
        "unitId": unit["unit_id"],
        "userId": unit["user_id"],
        "location": unit["location"],
        "lastServiceDate": unit.get("last_service_date"),
        "nextServiceDate": unit.get("next_service_date"),
        "notes": unit.get("notes"),
        "createdAt": unit.get("created_at"),
        "updatedAt": unit.get("updated_at"),
    }
    try:
        body.update(classify(unit["next_service_date"], today or today_utc()).to_dict())
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Unit {unit['unit_id']} has an unreadable next_service_date: {e}")
        body.update({"status": None, "daysRemaining": None, "statusLabel": None})
    return body

def _sort_value(unit: Dict[str, Any], field: str):
    value = unit.get(field) or ""
    return value.lower() if field == "location" else value

@router.get("")
async def list_ac_units(
    request: Request,
    search: Optional[str] = None,
    status_filter: Optional[ServiceStatus] = Query(default=None, alias="status"),
    sort: str = "nextServiceDate",
):
    """List the caller's units.

    search matches location case-insensitively; status filters on the
    card-level status; sort is one of SORT_OPTIONS.
    """
    user = await require_auth(request)

    if sort not in SORT_OPTIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid sort '{sort}'. Use one of: {', '.join(SORT_OPTIONS)}"
        )

    db = database.get_db()
    try:
        units = await db.ac_units.find({"user_id": user["user_id"]}, {"_id": 0}).to_list(None)
    except Exception as e:
        logger.error(f"List AC units error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )

    if search:
        needle = search.strip().lower()
        units = [u for u in units if needle in (u.get("location") or "").lower()]

    field, descending = SORT_OPTIONS[sort]
    units.sort(key=lambda u: _sort_value(u, field), reverse=descending)

    today = today_utc()
    results = [unit_response(u, today) for u in units]
    if status_filter:
        results = [r for r in results if r["status"] == status_filter.value]
    return results

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_ac_unit(request: Request, data: CreateAcUnitRequest):
    user = await require_auth(request)
    db = database.get_db()

    try:
        unit_obj = AcUnit(user_id=user["user_id"], **data.model_dump())
        unit_doc = unit_obj.model_dump(mode="json")
        await db.ac_units.insert_one(unit_doc)
        unit_doc.pop("_id", None)

        await create_audit_log(
            action=AuditAction.AC_UNIT_CREATED,
            actor_id=user["user_id"],
            resource_type="AC unit",
            resource_id=unit_obj.unit_id,
            metadata={"location": unit_obj.location}
        )
        logger.info(f"AC unit created by user {user['user_id']}: {unit_obj.unit_id}")

        return unit_response(unit_doc)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"AC unit creation error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )

@router.get("/{unit_id}")
async def get_ac_unit(request: Request, unit_id: str):
    user = await require_auth(request)
    unit = await require_owned_unit(user, unit_id)
    return unit_response(unit)

@router.patch("/{unit_id}")
async def update_ac_unit(request: Request, unit_id: str, data: UpdateAcUnitRequest):
    user = await require_auth(request)
    unit = await require_owned_unit(user, unit_id)
    db = database.get_db()

    try:
        changes = data.model_dump(exclude_unset=True, mode="json")
        if not changes:
            return unit_response(unit)

        changes["updated_at"] = utc_now().isoformat()
        result = await db.ac_units.update_one({"unit_id": unit_id}, {"$set": changes})
        if result.matched_count == 0:
            # Deleted between the ownership check and the update
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="AC unit not found"
            )

        updated = {**unit, **changes}

        await create_audit_log(
            action=AuditAction.AC_UNIT_UPDATED,
            actor_id=user["user_id"],
            resource_type="AC unit",
            resource_id=unit_id,
            before_state={k: unit.get(k) for k in AUDITED_FIELDS},
            after_state={k: updated.get(k) for k in AUDITED_FIELDS}
        )

        return unit_response(updated)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"AC unit update error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )

@router.delete("/{unit_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ac_unit(request: Request, unit_id: str):
    user = await require_auth(request)
    unit = await require_owned_unit(user, unit_id)
    db = database.get_db()

    try:
        await db.ac_units.delete_one({"unit_id": unit_id})

        await create_audit_log(
            action=AuditAction.AC_UNIT_DELETED,
            actor_id=user["user_id"],
            resource_type="AC unit",
            resource_id=unit_id,
            before_state={k: unit.get(k) for k in AUDITED_FIELDS}
        )
        logger.info(f"AC unit deleted by user {user['user_id']}: {unit_id}")

        return Response(status_code=status.HTTP_204_NO_CONTENT)

    except Exception as e:
        logger.error(f"AC unit delete error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )
