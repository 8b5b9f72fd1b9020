from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from maintenance_api.api.deps import admin_only, get_current_user, require_roles, staff_only
from maintenance_api.core.db import get_db
from maintenance_api.models.catalog import User
from maintenance_api.models.enums import Priority, Role, TicketStatus
from maintenance_api.schemas.ticket import TicketCreate, TicketDetailResponse, TicketResponse, TicketUpdate
from maintenance_api.services.tickets import TicketService

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
def create_ticket(
    ticket_in: TicketCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Report a new maintenance issue. The caller becomes the reporter.
    Priority falls back to the category default and status to OPEN; the
    creation history entry is written in the same transaction.
    """
    return TicketService(db).create_ticket(ticket_in, reporter_id=current_user.id)


@router.get("", response_model=List[TicketResponse])
def get_tickets(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    status: Optional[TicketStatus] = None,
    priority: Optional[Priority] = None,
    category_id: Optional[int] = None,
    building_id: Optional[int] = None,
    room_id: Optional[int] = None,
    reporter_id: Optional[int] = None,
    assignee_id: Optional[int] = None,
    q: Optional[str] = Query(None, description="Search in title and description"),
    date_start: Optional[datetime] = None,
    date_end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_only),
):
    """
    Retrieve a list of tickets with optional filtering.
    """
    return TicketService(db).list_tickets(
        status=status,
        priority=priority,
        category_id=category_id,
        building_id=building_id,
        room_id=room_id,
        reporter_id=reporter_id,
        assignee_id=assignee_id,
        search=q,
        created_from=date_start,
        created_to=date_end,
        skip=skip,
        limit=limit,
    )


@router.get("/my", response_model=List[TicketResponse])
def get_my_tickets(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return TicketService(db).list_tickets(reporter_id=current_user.id, skip=skip, limit=limit)


@router.get("/assigned", response_model=List[TicketResponse])
def get_assigned_tickets(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(Role.TECHNICIAN, Role.ADMIN)),
):
    return TicketService(db).list_tickets(assignee_id=current_user.id, skip=skip, limit=limit)


@router.get("/overdue", response_model=List[TicketResponse])
def get_overdue_tickets(
    assignee_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_only),
):
    service = TicketService(db)
    if assignee_id is not None:
        return service.find_overdue_tickets_by_assignee(assignee_id)
    return service.find_overdue_tickets()


@router.get("/due-soon", response_model=List[TicketResponse])
def get_tickets_due_soon(
    days: Optional[int] = Query(None, ge=0, le=365),
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_only),
):
    return TicketService(db).find_tickets_due_soon(days)


@router.get("/unassigned", response_model=List[TicketResponse])
def get_unassigned_tickets(db: Session = Depends(get_db), current_user: User = Depends(staff_only)):
    return TicketService(db).find_unassigned_tickets()


@router.get("/recent", response_model=List[TicketResponse])
def get_recent_tickets(
    limit: int = Query(10, ge=1, le=100),
    updated: bool = Query(False, description="Order by last update within the recent window instead of creation"),
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_only),
):
    service = TicketService(db)
    if updated:
        return service.find_recently_updated(limit)
    return service.find_recent_tickets(limit)


@router.get("/{ticket_id}", response_model=TicketDetailResponse)
def get_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Retrieve a specific ticket by ID, including its status history.
    """
    return TicketService(db).get_ticket(ticket_id)


@router.put("/{ticket_id}", response_model=TicketResponse)
def update_ticket(
    ticket_id: int,
    ticket_in: TicketUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_only),
):
    """
    Replace the editable fields of a ticket. Assignment goes through
    /assign and /unassign; a status change here is logged as "Status updated".
    """
    return TicketService(db).update_ticket(ticket_id, ticket_in, actor_id=current_user.id)


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    TicketService(db).delete_ticket(ticket_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
