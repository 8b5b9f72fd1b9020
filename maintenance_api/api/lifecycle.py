from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from maintenance_api.api.deps import staff_only
from maintenance_api.core.db import get_db
from maintenance_api.models.catalog import User
from maintenance_api.schemas.ticket import TicketAssignment, TicketResponse, TicketStatusUpdate
from maintenance_api.services.tickets import TicketService

router = APIRouter(prefix="/tickets", tags=["Lifecycle"])


@router.patch("/{ticket_id}/status", response_model=TicketResponse)
def update_ticket_status(
    ticket_id: int,
    request: TicketStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_only),
):
    """
    Move a ticket to any status. Every call is logged in the status history,
    including calls that leave the status unchanged.
    """
    return TicketService(db).update_ticket_status(ticket_id, request.status, current_user.id, request.reason)


@router.patch("/{ticket_id}/assign", response_model=TicketResponse)
def assign_ticket(
    ticket_id: int,
    request: TicketAssignment,
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_only),
):
    return TicketService(db).assign_ticket(ticket_id, request.assignee_id, current_user.id)


@router.patch("/{ticket_id}/unassign", response_model=TicketResponse)
def unassign_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_only),
):
    return TicketService(db).unassign_ticket(ticket_id, current_user.id)
