"""
Ticket lifecycle engine.

Every mutating operation runs as one unit of work: the ticket change and the
status-history row it produces are committed together or not at all. The
aggregate cache is invalidated only after a successful commit.
"""
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from maintenance_api.core.config import settings
from maintenance_api.core.exceptions import NotFoundError, ValidationError
from maintenance_api.core.fsm import TicketStateMachine
from maintenance_api.core.logging_config import logger
from maintenance_api.core.timeutils import to_naive_utc, utcnow
from maintenance_api.models.catalog import TicketCategory
from maintenance_api.models.enums import WORKING_STATUSES, Priority, TicketStatus
from maintenance_api.models.ticket import Attachment, Comment, Ticket, TicketStatusHistory
from maintenance_api.schemas.ticket import AttachmentCreate, CommentCreate, TicketCreate, TicketUpdate
from maintenance_api.services.cache import StatsCache, stats_cache
from maintenance_api.services.catalog import CatalogService


class TicketService:
    def __init__(self, db: Session, cache: Optional[StatsCache] = None):
        self.db = db
        self.fsm = TicketStateMachine(db)
        self.catalog = CatalogService(db)
        self.cache = cache if cache is not None else stats_cache

    @contextmanager
    def _unit_of_work(self, description: str) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"Rolled back {description}", exc_info=True)
            raise
        self.cache.invalidate()

    def get_ticket(self, ticket_id: int) -> Ticket:
        ticket = self.db.get(Ticket, ticket_id)
        if ticket is None:
            raise NotFoundError.for_entity("Ticket", ticket_id)
        return ticket

    def _resolve_location(self, category_id: int, building_id: int, room_id: Optional[int]) -> TicketCategory:
        category = self.catalog.get_category(category_id)
        self.catalog.get_building(building_id)
        if room_id is not None:
            room = self.catalog.get_room(room_id)
            if room.building_id != building_id:
                raise ValidationError(
                    f"Room {room_id} does not belong to building {building_id}", field="room_id"
                )
        return category

    # --- Lifecycle operations ---

    def create_ticket(self, data: TicketCreate, reporter_id: int) -> Ticket:
        logger.info(f"Creating new ticket: {data.title}")
        category = self._resolve_location(data.category_id, data.building_id, data.room_id)
        self.catalog.get_user(reporter_id)

        ticket = Ticket(
            title=data.title,
            description=data.description,
            category_id=category.id,
            priority=data.priority or category.default_priority,
            status=data.status or TicketStatus.OPEN,
            reporter_id=reporter_id,
            building_id=data.building_id,
            room_id=data.room_id,
            estimated_completion=data.estimated_completion,
        )
        if ticket.status == TicketStatus.RESOLVED:
            ticket.actual_completion = utcnow()

        with self._unit_of_work(f"creation of ticket '{data.title}'"):
            self.db.add(ticket)
            self.db.flush()
            self.fsm.record(ticket, None, ticket.status, reporter_id, "Ticket created")

        self.db.refresh(ticket)
        return ticket

    def update_ticket(self, ticket_id: int, data: TicketUpdate, actor_id: int) -> Ticket:
        """
        Replace the editable fields of a ticket. A history row is written only
        when the status changes; the actor is whoever the caller says made the edit.
        """
        logger.info(f"Updating ticket with id: {ticket_id}")
        ticket = self.get_ticket(ticket_id)
        self._resolve_location(data.category_id, data.building_id, data.room_id)
        self.catalog.get_user(actor_id)

        old_status = ticket.status
        with self._unit_of_work(f"update of ticket {ticket_id}"):
            ticket.title = data.title
            ticket.description = data.description
            ticket.category_id = data.category_id
            ticket.priority = data.priority
            ticket.building_id = data.building_id
            ticket.room_id = data.room_id
            ticket.estimated_completion = data.estimated_completion
            ticket.resolution_notes = data.resolution_notes
            self.fsm.apply_status(ticket, data.status)
            self.db.flush()

            if ticket.status != old_status:
                self.fsm.record(ticket, old_status, ticket.status, actor_id, "Status updated")

        self.db.refresh(ticket)
        return ticket

    def update_ticket_status(
        self, ticket_id: int, new_status: TicketStatus, actor_id: int, reason: Optional[str] = None
    ) -> Ticket:
        new_status = self.fsm.validate_transition(None, new_status)
        logger.info(f"Updating ticket {ticket_id} status to {new_status.value}")
        ticket = self.get_ticket(ticket_id)
        self.catalog.get_user(actor_id)

        with self._unit_of_work(f"status change of ticket {ticket_id}"):
            self.fsm.transition(ticket, new_status, actor_id, reason)

        self.db.refresh(ticket)
        return ticket

    def resolve_ticket(
        self, ticket_id: int, actor_id: int, resolution_notes: str, reason: Optional[str] = None
    ) -> Ticket:
        logger.info(f"Resolving ticket {ticket_id}")
        ticket = self.get_ticket(ticket_id)
        self.catalog.get_user(actor_id)

        with self._unit_of_work(f"resolution of ticket {ticket_id}"):
            ticket.resolution_notes = resolution_notes
            self.fsm.transition(ticket, TicketStatus.RESOLVED, actor_id, reason or "Ticket resolved")

        self.db.refresh(ticket)
        return ticket

    def assign_ticket(self, ticket_id: int, assignee_id: int, actor_id: int) -> Ticket:
        """Set the assignee. The assignee's role is not checked here."""
        logger.info(f"Assigning ticket {ticket_id} to user {assignee_id}")
        ticket = self.get_ticket(ticket_id)
        assignee = self.catalog.get_user(assignee_id)
        self.catalog.get_user(actor_id)

        with self._unit_of_work(f"assignment of ticket {ticket_id}"):
            ticket.assignee_id = assignee.id
            self.db.flush()
            self.fsm.record(ticket, ticket.status, ticket.status, actor_id, f"Ticket assigned to {assignee.full_name}")

        self.db.refresh(ticket)
        return ticket

    def unassign_ticket(self, ticket_id: int, actor_id: int) -> Ticket:
        logger.info(f"Unassigning ticket {ticket_id}")
        ticket = self.get_ticket(ticket_id)
        self.catalog.get_user(actor_id)

        previous_assignee = ticket.assignee
        if previous_assignee is not None:
            reason = f"Ticket unassigned from {previous_assignee.full_name}"
        else:
            reason = "Ticket unassigned"

        with self._unit_of_work(f"unassignment of ticket {ticket_id}"):
            ticket.assignee_id = None
            self.db.flush()
            self.fsm.record(ticket, ticket.status, ticket.status, actor_id, reason)

        self.db.refresh(ticket)
        return ticket

    def delete_ticket(self, ticket_id: int) -> None:
        logger.info(f"Deleting ticket with id: {ticket_id}")
        ticket = self.get_ticket(ticket_id)
        with self._unit_of_work(f"deletion of ticket {ticket_id}"):
            self.db.delete(ticket)

    # --- Comments & attachments ---

    def add_comment(self, ticket_id: int, author_id: int, data: CommentCreate) -> Comment:
        ticket = self.get_ticket(ticket_id)
        self.catalog.get_user(author_id)
        comment = Comment(ticket_id=ticket.id, author_id=author_id, content=data.content, is_internal=data.is_internal)
        with self._unit_of_work(f"comment on ticket {ticket_id}"):
            self.db.add(comment)
        self.db.refresh(comment)
        return comment

    def list_comments(self, ticket_id: int, include_internal: bool = True) -> List[Comment]:
        self.get_ticket(ticket_id)
        query = self.db.query(Comment).filter(Comment.ticket_id == ticket_id)
        if not include_internal:
            query = query.filter(Comment.is_internal.is_(False))
        return query.order_by(Comment.created_at, Comment.id).all()

    def add_attachment(self, ticket_id: int, uploader_id: int, data: AttachmentCreate) -> Attachment:
        ticket = self.get_ticket(ticket_id)
        self.catalog.get_user(uploader_id)
        attachment = Attachment(ticket_id=ticket.id, uploaded_by_id=uploader_id, **data.model_dump())
        with self._unit_of_work(f"attachment on ticket {ticket_id}"):
            self.db.add(attachment)
        self.db.refresh(attachment)
        return attachment

    def list_attachments(self, ticket_id: int) -> List[Attachment]:
        self.get_ticket(ticket_id)
        return self.db.query(Attachment).filter(Attachment.ticket_id == ticket_id).order_by(Attachment.id).all()

    # --- Queries ---

    def get_history(self, ticket_id: int) -> List[TicketStatusHistory]:
        self.get_ticket(ticket_id)
        return (
            self.db.query(TicketStatusHistory)
            .filter(TicketStatusHistory.ticket_id == ticket_id)
            .order_by(TicketStatusHistory.created_at, TicketStatusHistory.id)
            .all()
        )

    def list_tickets(
        self,
        *,
        status: Optional[TicketStatus] = None,
        priority: Optional[Priority] = None,
        category_id: Optional[int] = None,
        building_id: Optional[int] = None,
        room_id: Optional[int] = None,
        reporter_id: Optional[int] = None,
        assignee_id: Optional[int] = None,
        search: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Ticket]:
        query = self.db.query(Ticket)

        if status is not None:
            query = query.filter(Ticket.status == status)
        if priority is not None:
            query = query.filter(Ticket.priority == priority)
        if category_id is not None:
            query = query.filter(Ticket.category_id == category_id)
        if building_id is not None:
            query = query.filter(Ticket.building_id == building_id)
        if room_id is not None:
            query = query.filter(Ticket.room_id == room_id)
        if reporter_id is not None:
            query = query.filter(Ticket.reporter_id == reporter_id)
        if assignee_id is not None:
            query = query.filter(Ticket.assignee_id == assignee_id)
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(Ticket.title.ilike(like), Ticket.description.ilike(like)))
        if created_from is not None:
            query = query.filter(Ticket.created_at >= to_naive_utc(created_from))
        if created_to is not None:
            query = query.filter(Ticket.created_at <= to_naive_utc(created_to))

        return query.order_by(Ticket.created_at.desc(), Ticket.id.desc()).offset(skip).limit(limit).all()

    def find_recent_tickets(self, limit: int = 10) -> List[Ticket]:
        return self.db.query(Ticket).order_by(Ticket.created_at.desc(), Ticket.id.desc()).limit(limit).all()

    def find_recently_updated(self, limit: int = 10, days: Optional[int] = None) -> List[Ticket]:
        since = utcnow() - timedelta(days=days if days is not None else settings.RECENT_UPDATE_DAYS)
        return (
            self.db.query(Ticket)
            .filter(Ticket.updated_at >= since)
            .order_by(Ticket.updated_at.desc(), Ticket.id.desc())
            .limit(limit)
            .all()
        )

    def _overdue_query(self, now: datetime):
        return self.db.query(Ticket).filter(
            Ticket.status.in_(WORKING_STATUSES),
            Ticket.estimated_completion.isnot(None),
            Ticket.estimated_completion < now,
        )

    def find_overdue_tickets(self, now: Optional[datetime] = None) -> List[Ticket]:
        """Recomputed on every call against the current clock; nothing about overdue state is stored."""
        return self._overdue_query(now or utcnow()).order_by(Ticket.estimated_completion).all()

    def find_overdue_tickets_by_assignee(self, assignee_id: int, now: Optional[datetime] = None) -> List[Ticket]:
        return (
            self._overdue_query(now or utcnow())
            .filter(Ticket.assignee_id == assignee_id)
            .order_by(Ticket.estimated_completion)
            .all()
        )

    def find_tickets_due_soon(self, days: Optional[int] = None, now: Optional[datetime] = None) -> List[Ticket]:
        if days is not None and days < 0:
            raise ValidationError("days must not be negative", field="days")
        now = now or utcnow()
        until = now + timedelta(days=days if days is not None else settings.DUE_SOON_DAYS)
        return (
            self.db.query(Ticket)
            .filter(
                Ticket.status.in_(WORKING_STATUSES),
                Ticket.estimated_completion >= now,
                Ticket.estimated_completion <= until,
            )
            .order_by(Ticket.estimated_completion)
            .all()
        )

    def find_unassigned_tickets(self) -> List[Ticket]:
        """OPEN tickets without an assignee. Unassigned tickets in any other status are not included."""
        return (
            self.db.query(Ticket)
            .filter(Ticket.assignee_id.is_(None), Ticket.status == TicketStatus.OPEN)
            .order_by(Ticket.created_at, Ticket.id)
            .all()
        )
