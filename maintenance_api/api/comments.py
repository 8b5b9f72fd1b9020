from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from maintenance_api.api.deps import get_current_user
from maintenance_api.core.db import get_db
from maintenance_api.models.catalog import User
from maintenance_api.models.enums import Role
from maintenance_api.schemas.ticket import AttachmentCreate, AttachmentResponse, CommentCreate, CommentResponse
from maintenance_api.services.tickets import TicketService

router = APIRouter(prefix="/tickets", tags=["Comments"])


@router.post("/{ticket_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
def add_comment(
    ticket_id: int,
    comment_in: CommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if current_user.role == Role.TENANT:
        # Tenants cannot write staff-only notes.
        comment_in = comment_in.model_copy(update={"is_internal": False})
    return TicketService(db).add_comment(ticket_id, current_user.id, comment_in)


@router.get("/{ticket_id}/comments", response_model=List[CommentResponse])
def list_comments(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return TicketService(db).list_comments(ticket_id, include_internal=current_user.role != Role.TENANT)


@router.post("/{ticket_id}/attachments", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED)
def add_attachment(
    ticket_id: int,
    attachment_in: AttachmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Register metadata for a file already uploaded to storage.
    """
    return TicketService(db).add_attachment(ticket_id, current_user.id, attachment_in)


@router.get("/{ticket_id}/attachments", response_model=List[AttachmentResponse])
def list_attachments(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return TicketService(db).list_attachments(ticket_id)
