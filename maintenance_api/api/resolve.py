from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from maintenance_api.api.deps import staff_only
from maintenance_api.core.db import get_db
from maintenance_api.models.catalog import User
from maintenance_api.schemas.ticket import ResolutionRequest, TicketResponse
from maintenance_api.services.tickets import TicketService

router = APIRouter(prefix="/tickets", tags=["Resolution"])


@router.post("/{ticket_id}/resolve", response_model=TicketResponse, status_code=status.HTTP_200_OK)
def resolve_ticket(
    ticket_id: int,
    request: ResolutionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_only),
):
    """
    Record the resolution notes and move the ticket to RESOLVED.
    Actual completion is stamped only the first time a ticket is resolved.
    """
    return TicketService(db).resolve_ticket(
        ticket_id,
        actor_id=current_user.id,
        resolution_notes=request.resolution_notes,
        reason=request.reason,
    )
