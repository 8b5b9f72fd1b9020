"""
Aggregated ticket statistics for the admin dashboard.

Count breakdowns and monthly series are read through the stats cache;
overdue and unassigned totals depend on the clock or on live assignment and
are always recomputed.
"""
from collections import Counter
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from maintenance_api.core.exceptions import ValidationError
from maintenance_api.core.timeutils import month_label, trailing_months, utcnow
from maintenance_api.models.catalog import TicketCategory
from maintenance_api.models.enums import WORKING_STATUSES, TicketStatus
from maintenance_api.models.ticket import Ticket
from maintenance_api.schemas.statistics import TicketStatistics
from maintenance_api.services.cache import StatsCache, stats_cache


class TicketStatisticsService:
    def __init__(self, db: Session, cache: Optional[StatsCache] = None):
        self.db = db
        self.cache = cache if cache is not None else stats_cache

    def _count_grouped(self, column) -> Dict[str, int]:
        rows = self.db.query(column, func.count(Ticket.id)).group_by(column).all()
        return {(key.value if hasattr(key, "value") else key): count for key, count in rows}

    def get_ticket_count_by_status(self) -> Dict[str, int]:
        return dict(self.cache.get_or_load("count_by_status", lambda: self._count_grouped(Ticket.status)))

    def get_ticket_count_by_priority(self) -> Dict[str, int]:
        return dict(self.cache.get_or_load("count_by_priority", lambda: self._count_grouped(Ticket.priority)))

    def get_ticket_count_by_category(self) -> Dict[str, int]:
        def load() -> Dict[str, int]:
            rows = (
                self.db.query(TicketCategory.name, func.count(Ticket.id))
                .join(Ticket, Ticket.category_id == TicketCategory.id)
                .group_by(TicketCategory.name)
                .all()
            )
            return {name: count for name, count in rows}

        return dict(self.cache.get_or_load("count_by_category", load))

    def get_monthly_ticket_count(self, months: int, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Tickets created per calendar month over the trailing window, current
        month last. Every month in the window is present, zero when empty.
        """
        if months < 1:
            raise ValidationError("months must be at least 1", field="months")
        now = now or utcnow()
        window = trailing_months(months, now)
        first_year, first_month = window[0]

        def load() -> Dict[str, int]:
            start = datetime(first_year, first_month, 1)
            created = self.db.query(Ticket.created_at).filter(Ticket.created_at >= start).all()
            per_month = Counter((created_at.year, created_at.month) for (created_at,) in created)

            return {month_label(year, month): per_month.get((year, month), 0) for year, month in window}

        # Keyed on the window's first month so a new month never reads a stale series.
        return dict(self.cache.get_or_load(("monthly", months, first_year, first_month), load))

    def count_all_tickets(self) -> int:
        return self.db.query(func.count(Ticket.id)).scalar() or 0

    def count_overdue_tickets(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        return (
            self.db.query(func.count(Ticket.id))
            .filter(
                Ticket.status.in_(WORKING_STATUSES),
                Ticket.estimated_completion.isnot(None),
                Ticket.estimated_completion < now,
            )
            .scalar()
            or 0
        )

    def count_unassigned_tickets(self) -> int:
        return (
            self.db.query(func.count(Ticket.id))
            .filter(Ticket.assignee_id.is_(None), Ticket.status == TicketStatus.OPEN)
            .scalar()
            or 0
        )

    def count_by_reporter(self, reporter_id: int, status: Optional[TicketStatus] = None) -> int:
        query = self.db.query(func.count(Ticket.id)).filter(Ticket.reporter_id == reporter_id)
        if status is not None:
            query = query.filter(Ticket.status == status)
        return query.scalar() or 0

    def count_by_assignee(self, assignee_id: int, status: Optional[TicketStatus] = None) -> int:
        query = self.db.query(func.count(Ticket.id)).filter(Ticket.assignee_id == assignee_id)
        if status is not None:
            query = query.filter(Ticket.status == status)
        return query.scalar() or 0

    def get_statistics(self) -> TicketStatistics:
        by_status = self.get_ticket_count_by_status()
        return TicketStatistics(
            total=self.count_all_tickets(),
            open=by_status.get(TicketStatus.OPEN.value, 0),
            in_progress=by_status.get(TicketStatus.IN_PROGRESS.value, 0),
            on_hold=by_status.get(TicketStatus.ON_HOLD.value, 0),
            resolved=by_status.get(TicketStatus.RESOLVED.value, 0),
            closed=by_status.get(TicketStatus.CLOSED.value, 0),
            overdue=self.count_overdue_tickets(),
            unassigned=self.count_unassigned_tickets(),
        )
