from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from maintenance_api.api.deps import staff_only
from maintenance_api.core.db import get_db
from maintenance_api.models.catalog import User
from maintenance_api.models.enums import TicketStatus
from maintenance_api.models.ticket import TicketStatusHistory
from maintenance_api.schemas.ticket import StatusHistoryResponse
from maintenance_api.services.tickets import TicketService

router = APIRouter(tags=["History"])


@router.get("/tickets/{ticket_id}/history", response_model=List[StatusHistoryResponse])
def get_ticket_history(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_only),
):
    """
    The status history of one ticket, oldest entry first.
    """
    return TicketService(db).get_history(ticket_id)


@router.get("/history", response_model=List[StatusHistoryResponse])
def get_history(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ticket_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    new_status: Optional[TicketStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_only),
):
    """
    Retrieve status-history entries across tickets with optional filtering, newest first.
    """
    query = db.query(TicketStatusHistory)

    if ticket_id is not None:
        query = query.filter(TicketStatusHistory.ticket_id == ticket_id)
    if actor_id is not None:
        query = query.filter(TicketStatusHistory.actor_id == actor_id)
    if new_status is not None:
        query = query.filter(TicketStatusHistory.new_status == new_status)

    return (
        query.order_by(TicketStatusHistory.created_at.desc(), TicketStatusHistory.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
