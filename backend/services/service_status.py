"""Service-due status engine - CoolTrack

Classifies AC units by days remaining until their next service and folds a
user's units into dashboard counts.

Two windows are in use, one per call site:
- Card level (per-unit status): due within CARD_UPCOMING_DAYS -> UPCOMING
- Dashboard level (aggregate): due within DASHBOARD_UPCOMING_DAYS -> upcoming

A unit due in 20 days is therefore NORMAL on its card but counted in the
dashboard's upcomingServices.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, Mapping, Optional
import logging

from models import ServiceStatus
from utils.dates import DateLike, parse_service_date, today_utc

logger = logging.getLogger(__name__)

CARD_UPCOMING_DAYS = 7
DASHBOARD_UPCOMING_DAYS = 30


@dataclass(frozen=True)
class StatusResult:
    status: ServiceStatus
    days_remaining: int
    label: str

    @property
    def is_overdue(self) -> bool:
        return self.status == ServiceStatus.OVERDUE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "daysRemaining": self.days_remaining,
            "statusLabel": self.label,
        }


@dataclass(frozen=True)
class DashboardStats:
    total_units: int = 0
    upcoming_services: int = 0
    overdue_services: int = 0
    services_completed: int = 0
    due_today: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalUnits": self.total_units,
            "upcomingServices": self.upcoming_services,
            "overdueServices": self.overdue_services,
            "servicesCompleted": self.services_completed,
            "dueToday": self.due_today,
        }


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_service_date(value)


def days_between(next_service_date: DateLike, now: Optional[DateLike] = None) -> int:
    """Whole calendar days from now until next_service_date (negative when past)."""
    today = _as_date(now) if now is not None else today_utc()
    return (_as_date(next_service_date) - today).days


def status_label(days_remaining: int) -> str:
    if days_remaining < 0:
        overdue = abs(days_remaining)
        return f"Overdue by {overdue} day{'s' if overdue != 1 else ''}"
    if days_remaining == 0:
        return "Due today"
    return f"{days_remaining} day{'s' if days_remaining != 1 else ''} remaining"


def classify_days(days_remaining: int) -> ServiceStatus:
    if days_remaining < 0:
        return ServiceStatus.OVERDUE
    if days_remaining <= CARD_UPCOMING_DAYS:
        return ServiceStatus.UPCOMING
    return ServiceStatus.NORMAL


def classify(next_service_date: DateLike, now: Optional[DateLike] = None) -> StatusResult:
    """Card-level status for a unit's next service date."""
    days = days_between(next_service_date, now)
    return StatusResult(status=classify_days(days), days_remaining=days, label=status_label(days))


def needs_attention(days_remaining: int, lead_days: int) -> bool:
    """True when a unit is overdue or inside the user's reminder lead time."""
    return days_remaining <= lead_days


def aggregate(units: Iterable[Mapping[str, Any]], now: Optional[DateLike] = None) -> DashboardStats:
    """Fold stored unit documents into dashboard counts.

    upcomingServices counts 0 < days <= 30, overdueServices counts days < 0,
    and a unit due today lands in neither; it is reported as dueToday.
    servicesCompleted counts units serviced on/before today whose next
    service is still ahead.
    """
    today = _as_date(now) if now is not None else today_utc()

    total = upcoming = overdue = completed = due_today = 0
    for unit in units:
        total += 1
        try:
            next_service = _as_date(unit["next_service_date"])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping unit {unit.get('unit_id')} in stats: bad next_service_date ({e})")
            continue

        days = (next_service - today).days
        if days < 0:
            overdue += 1
        elif days == 0:
            due_today += 1
        elif days <= DASHBOARD_UPCOMING_DAYS:
            upcoming += 1

        last_raw = unit.get("last_service_date")
        if last_raw:
            try:
                last_service = _as_date(last_raw)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring bad last_service_date on unit {unit.get('unit_id')}")
                continue
            if last_service <= today and next_service > today:
                completed += 1

    return DashboardStats(
        total_units=total,
        upcoming_services=upcoming,
        overdue_services=overdue,
        services_completed=completed,
        due_today=due_today,
    )
