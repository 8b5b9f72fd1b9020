from typing import Dict

from pydantic import BaseModel


class TicketStatistics(BaseModel):
    total: int
    open: int
    in_progress: int
    on_hold: int
    resolved: int
    closed: int
    overdue: int
    unassigned: int


class CountBreakdown(BaseModel):
    counts: Dict[str, int]


class MonthlyCounts(BaseModel):
    months: int
    counts: Dict[str, int]
