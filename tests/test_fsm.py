from datetime import timedelta

import pytest

from maintenance_api.core.exceptions import ValidationError
from maintenance_api.core.fsm import TicketStateMachine
from maintenance_api.core.timeutils import utcnow
from maintenance_api.models.enums import TicketStatus
from maintenance_api.models.ticket import Ticket, TicketStatusHistory


def _ticket(**fields):
    data = {"status": TicketStatus.OPEN, "estimated_completion": None}
    data.update(fields)
    return Ticket(**data)


def test_fsm_transition_records_history(db_session, make_ticket, seed):
    ticket = make_ticket()

    fsm = TicketStateMachine(db_session)
    updated_ticket = fsm.transition(
        ticket=ticket,
        new_status=TicketStatus.IN_PROGRESS,
        actor_id=seed.technician.id,
        reason="Taking ownership",
    )
    db_session.commit()

    assert updated_ticket.status == TicketStatus.IN_PROGRESS

    entry = (
        db_session.query(TicketStatusHistory)
        .filter_by(ticket_id=ticket.id)
        .order_by(TicketStatusHistory.id.desc())
        .first()
    )
    assert entry.old_status == TicketStatus.OPEN
    assert entry.new_status == TicketStatus.IN_PROGRESS
    assert entry.actor_id == seed.technician.id
    assert entry.reason == "Taking ownership"


def test_fsm_allows_reopening_a_closed_ticket(db_session, make_ticket, seed):
    # The transition graph is deliberately permissive: CLOSED -> OPEN is allowed.
    ticket = make_ticket(status=TicketStatus.CLOSED)

    fsm = TicketStateMachine(db_session)
    fsm.transition(ticket, TicketStatus.OPEN, seed.admin.id, "Issue came back")
    db_session.commit()

    assert ticket.status == TicketStatus.OPEN


@pytest.mark.parametrize("source", list(TicketStatus))
@pytest.mark.parametrize("target", list(TicketStatus))
def test_every_status_is_reachable_from_every_other(db_session, source, target):
    fsm = TicketStateMachine(db_session)
    assert fsm.validate_transition(source, target) == target


def test_fsm_rejects_unknown_status(db_session):
    fsm = TicketStateMachine(db_session)
    with pytest.raises(ValidationError) as exc:
        fsm.validate_transition(TicketStatus.OPEN, "REOPENED")
    assert exc.value.field == "status"


def test_apply_status_stamps_actual_completion_once(db_session):
    fsm = TicketStateMachine(db_session)
    ticket = _ticket()

    fsm.apply_status(ticket, TicketStatus.RESOLVED)
    first = ticket.actual_completion
    assert first is not None

    fsm.apply_status(ticket, TicketStatus.IN_PROGRESS)
    fsm.apply_status(ticket, TicketStatus.RESOLVED)
    assert ticket.actual_completion == first


def test_apply_status_leaves_actual_completion_unset_for_other_statuses(db_session):
    fsm = TicketStateMachine(db_session)
    ticket = _ticket()
    for status in (TicketStatus.IN_PROGRESS, TicketStatus.ON_HOLD, TicketStatus.CLOSED):
        fsm.apply_status(ticket, status)
    assert ticket.actual_completion is None


def test_record_rejects_overlong_reason(db_session, make_ticket, seed):
    ticket = make_ticket()
    fsm = TicketStateMachine(db_session)
    with pytest.raises(ValidationError):
        fsm.record(ticket, TicketStatus.OPEN, TicketStatus.OPEN, seed.admin.id, "x" * 1001)


@pytest.mark.parametrize("status", [TicketStatus.OPEN, TicketStatus.IN_PROGRESS])
def test_overdue_when_working_and_estimate_passed(status):
    now = utcnow()
    ticket = _ticket(status=status, estimated_completion=now - timedelta(days=1))
    assert ticket.overdue_at(now) is True
    assert ticket.is_overdue is True


@pytest.mark.parametrize("status", [TicketStatus.ON_HOLD, TicketStatus.RESOLVED, TicketStatus.CLOSED])
def test_not_overdue_outside_working_statuses(status):
    now = utcnow()
    ticket = _ticket(status=status, estimated_completion=now - timedelta(days=1))
    assert ticket.overdue_at(now) is False


@pytest.mark.parametrize("status", list(TicketStatus))
def test_not_overdue_without_estimate(status):
    assert _ticket(status=status).overdue_at(utcnow()) is False


def test_overdue_requires_estimate_strictly_before_now():
    now = utcnow()
    assert _ticket(estimated_completion=now).overdue_at(now) is False
    assert _ticket(estimated_completion=now + timedelta(hours=1)).overdue_at(now) is False
