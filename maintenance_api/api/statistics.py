"""
Dashboard statistics for administrators and technicians.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from maintenance_api.api.deps import get_current_user, staff_only
from maintenance_api.core.config import settings
from maintenance_api.core.db import get_db
from maintenance_api.models.catalog import User
from maintenance_api.models.enums import TicketStatus
from maintenance_api.schemas.statistics import CountBreakdown, MonthlyCounts, TicketStatistics
from maintenance_api.services.statistics import TicketStatisticsService

router = APIRouter(prefix="/statistics", tags=["Statistics"])


@router.get("", response_model=TicketStatistics)
def get_ticket_statistics(db: Session = Depends(get_db), current_user: User = Depends(staff_only)):
    return TicketStatisticsService(db).get_statistics()


@router.get("/by-status", response_model=CountBreakdown)
def get_count_by_status(db: Session = Depends(get_db), current_user: User = Depends(staff_only)):
    return CountBreakdown(counts=TicketStatisticsService(db).get_ticket_count_by_status())


@router.get("/by-priority", response_model=CountBreakdown)
def get_count_by_priority(db: Session = Depends(get_db), current_user: User = Depends(staff_only)):
    return CountBreakdown(counts=TicketStatisticsService(db).get_ticket_count_by_priority())


@router.get("/by-category", response_model=CountBreakdown)
def get_count_by_category(db: Session = Depends(get_db), current_user: User = Depends(staff_only)):
    return CountBreakdown(counts=TicketStatisticsService(db).get_ticket_count_by_category())


@router.get("/monthly", response_model=MonthlyCounts)
def get_monthly_count(
    months: Optional[int] = Query(None, ge=1, le=60),
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_only),
):
    """
    Tickets created per month over the trailing window, oldest month first.
    Months without tickets are reported as 0.
    """
    months = months or settings.STATS_DEFAULT_MONTHS
    return MonthlyCounts(months=months, counts=TicketStatisticsService(db).get_monthly_ticket_count(months))


@router.get("/me")
def get_my_counts(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """
    Ticket counters for the caller's own dashboard: reported and assigned, per status.
    """
    service = TicketStatisticsService(db)
    return {
        "reported": service.count_by_reporter(current_user.id),
        "assigned": service.count_by_assignee(current_user.id),
        "reported_by_status": {
            s.value: service.count_by_reporter(current_user.id, s) for s in TicketStatus
        },
        "assigned_by_status": {
            s.value: service.count_by_assignee(current_user.id, s) for s in TicketStatus
        },
    }
