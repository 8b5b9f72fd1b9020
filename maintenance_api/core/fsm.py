from typing import Dict, FrozenSet, Optional

from sqlalchemy.orm import Session

from maintenance_api.core.exceptions import ValidationError
from maintenance_api.core.timeutils import utcnow
from maintenance_api.models.enums import TicketStatus
from maintenance_api.models.ticket import Ticket, TicketStatusHistory

# Every status is reachable from every other, CLOSED -> OPEN included.
VALID_TRANSITIONS: Dict[TicketStatus, FrozenSet[TicketStatus]] = {
    status: frozenset(TicketStatus) for status in TicketStatus
}

MAX_REASON_LENGTH = 1000


class TicketStateMachine:
    def __init__(self, db: Session):
        self.db = db

    def validate_transition(self, current_status: Optional[TicketStatus], new_status) -> TicketStatus:
        try:
            new_status = TicketStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown ticket status: {new_status}", field="status")
        if current_status is not None and new_status not in VALID_TRANSITIONS[TicketStatus(current_status)]:
            raise ValidationError(
                f"Transition from {TicketStatus(current_status).value} to {new_status.value} is not permitted.",
                field="status",
            )
        return new_status

    def record(
        self,
        ticket: Ticket,
        old_status: Optional[TicketStatus],
        new_status: TicketStatus,
        actor_id: int,
        reason: Optional[str] = None,
    ) -> TicketStatusHistory:
        """
        Append one status-history row for the ticket to the session.
        Does NOT commit. The caller owns the transaction.
        """
        if reason is not None and len(reason) > MAX_REASON_LENGTH:
            raise ValidationError(f"Reason must not exceed {MAX_REASON_LENGTH} characters", field="reason")

        entry = TicketStatusHistory(
            ticket_id=ticket.id,
            old_status=old_status,
            new_status=new_status,
            actor_id=actor_id,
            reason=reason,
            created_at=utcnow(),
        )
        self.db.add(entry)
        return entry

    def apply_status(self, ticket: Ticket, new_status: TicketStatus) -> Optional[TicketStatus]:
        """
        Set the status and stamp actual completion on the first entry into RESOLVED.
        Returns the previous status.
        """
        previous_status = ticket.status
        new_status = self.validate_transition(previous_status, new_status)

        ticket.status = new_status
        if new_status == TicketStatus.RESOLVED and ticket.actual_completion is None:
            ticket.actual_completion = utcnow()
        return previous_status

    def transition(
        self,
        ticket: Ticket,
        new_status: TicketStatus,
        actor_id: int,
        reason: Optional[str] = None,
    ) -> Ticket:
        """
        Transition a ticket and record the history row within the session.
        A row is written even when the status does not change.
        Does NOT commit. The caller must commit the transaction.
        """
        previous_status = self.apply_status(ticket, new_status)
        self.db.flush()
        self.record(ticket, previous_status, ticket.status, actor_id, reason)
        return ticket
