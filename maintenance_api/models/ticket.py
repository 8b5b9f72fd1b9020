from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from maintenance_api.core.db import Base
from maintenance_api.core.timeutils import utcnow
from maintenance_api.models.catalog import Building, Room, TicketCategory, User
from maintenance_api.models.enums import WORKING_STATUSES, Priority, TicketStatus

StatusColumn = Enum(TicketStatus, name="ticket_status", native_enum=False, length=20)


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category_id = Column(Integer, ForeignKey("ticket_categories.id"), nullable=False, index=True)
    priority = Column(Enum(Priority, name="priority", native_enum=False, length=20), nullable=False, index=True)
    status = Column(StatusColumn, nullable=False, default=TicketStatus.OPEN, index=True)
    reporter_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assignee_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    building_id = Column(Integer, ForeignKey("buildings.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True, index=True)
    estimated_completion = Column(DateTime, nullable=True, index=True)
    actual_completion = Column(DateTime, nullable=True)
    resolution_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    category = relationship(TicketCategory)
    reporter = relationship(User, foreign_keys=[reporter_id])
    assignee = relationship(User, foreign_keys=[assignee_id])
    building = relationship(Building)
    room = relationship(Room)

    # The ticket owns these collections; deleting it removes them.
    status_history = relationship(
        "TicketStatusHistory", back_populates="ticket", cascade="all, delete-orphan",
        order_by="TicketStatusHistory.id",
    )
    comments = relationship(
        "Comment", back_populates="ticket", cascade="all, delete-orphan", order_by="Comment.id",
    )
    attachments = relationship("Attachment", back_populates="ticket", cascade="all, delete-orphan")

    def overdue_at(self, now: datetime) -> bool:
        if self.estimated_completion is None:
            return False
        return self.status in WORKING_STATUSES and self.estimated_completion < now

    @property
    def is_overdue(self) -> bool:
        return self.overdue_at(utcnow())

    @property
    def is_assigned(self) -> bool:
        return self.assignee_id is not None

    @property
    def location(self) -> str:
        if self.room is not None:
            return self.room.building_and_room
        if self.building is not None:
            return self.building.name
        return "Unknown Location"


class TicketStatusHistory(Base):
    """
    Append-only audit record of a lifecycle operation on a ticket.
    old_status is NULL only for the entry written when the ticket is created.
    """
    __tablename__ = "ticket_status_history"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(StatusColumn, nullable=True)
    new_status = Column(StatusColumn, nullable=False)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    ticket = relationship("Ticket", back_populates="status_history")
    actor = relationship(User)

    @property
    def actor_name(self) -> str:
        return self.actor.full_name if self.actor is not None else "Unknown User"


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    is_internal = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    ticket = relationship("Ticket", back_populates="comments")
    author = relationship(User)

    @property
    def author_name(self) -> str:
        return self.author.full_name if self.author is not None else "Unknown Author"


class Attachment(Base):
    """File metadata only; the bytes live in external storage under file_path."""
    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    original_file_name = Column(String(255), nullable=False)
    file_type = Column(String(100), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    file_path = Column(String(500), nullable=False)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    uploaded_at = Column(DateTime, default=utcnow)

    ticket = relationship("Ticket", back_populates="attachments")
    uploaded_by = relationship(User)

    @property
    def is_image(self) -> bool:
        return self.file_type is not None and self.file_type.startswith("image/")
