from datetime import datetime, timedelta

import pytest

from maintenance_api.core.exceptions import ValidationError
from maintenance_api.core.timeutils import trailing_months, utcnow
from maintenance_api.models.enums import Priority, TicketStatus
from maintenance_api.schemas.ticket import TicketCreate
from maintenance_api.services.cache import StatsCache
from maintenance_api.services.statistics import TicketStatisticsService
from maintenance_api.services.tickets import TicketService


@pytest.fixture
def cache():
    return StatsCache(enabled=True)


@pytest.fixture
def stats(db_session, cache):
    return TicketStatisticsService(db_session, cache=cache)


def _created_on(db_session, ticket, when):
    ticket.created_at = when
    db_session.commit()
    return ticket


def test_trailing_months_cross_year_boundary():
    assert trailing_months(4, datetime(2026, 2, 10)) == [(2025, 11), (2025, 12), (2026, 1), (2026, 2)]


def test_monthly_count_is_zero_filled_and_ordered(db_session, stats, make_ticket):
    now = datetime(2026, 3, 15, 12, 0)
    _created_on(db_session, make_ticket(title="March one"), datetime(2026, 3, 1, 8, 0))
    _created_on(db_session, make_ticket(title="March two"), datetime(2026, 3, 14, 23, 59))
    _created_on(db_session, make_ticket(title="January"), datetime(2026, 1, 20))
    _created_on(db_session, make_ticket(title="Too old"), datetime(2025, 9, 30))

    counts = stats.get_monthly_ticket_count(6, now=now)

    assert list(counts.items()) == [
        ("Oct 2025", 0),
        ("Nov 2025", 0),
        ("Dec 2025", 0),
        ("Jan 2026", 1),
        ("Feb 2026", 0),
        ("Mar 2026", 2),
    ]


def test_monthly_count_keeps_years_apart(db_session, stats, make_ticket):
    # Same calendar month a year earlier must not be counted in the current bucket.
    _created_on(db_session, make_ticket(title="Last January"), datetime(2025, 1, 10))
    _created_on(db_session, make_ticket(title="This January"), datetime(2026, 1, 10))

    counts = stats.get_monthly_ticket_count(13, now=datetime(2026, 1, 31))

    assert len(counts) == 13
    assert counts["Jan 2025"] == 1
    assert counts["Jan 2026"] == 1
    assert sum(counts.values()) == 2


def test_monthly_count_single_month_with_no_tickets(stats, seed):
    assert stats.get_monthly_ticket_count(1, now=datetime(2026, 7, 4)) == {"Jul 2026": 0}


@pytest.mark.parametrize("months", [0, -3])
def test_monthly_count_rejects_non_positive_window(stats, months):
    with pytest.raises(ValidationError) as exc:
        stats.get_monthly_ticket_count(months)
    assert exc.value.field == "months"


def test_count_breakdowns(db_session, stats, make_ticket, seed):
    service = TicketService(db_session)
    make_ticket()
    make_ticket(category_id=seed.plumbing.id)
    closed = make_ticket(category_id=seed.plumbing.id, priority=Priority.LOW)
    service.update_ticket_status(closed.id, TicketStatus.CLOSED, seed.admin.id)

    assert stats.get_ticket_count_by_status() == {"OPEN": 2, "CLOSED": 1}
    assert stats.get_ticket_count_by_priority() == {"HIGH": 1, "MEDIUM": 1, "LOW": 1}
    assert stats.get_ticket_count_by_category() == {"HVAC": 1, "Plumbing": 2}


def test_count_breakdowns_are_empty_without_tickets(stats, seed):
    assert stats.get_ticket_count_by_status() == {}
    assert stats.get_ticket_count_by_category() == {}


def test_cached_counts_are_invalidated_by_lifecycle_operations(db_session, cache, stats, seed):
    service = TicketService(db_session, cache=cache)
    first = service.create_ticket(_payload(seed), reporter_id=seed.tenant.id)

    assert stats.get_ticket_count_by_status() == {"OPEN": 1}
    assert "count_by_status" in cache

    stats.get_ticket_count_by_status()
    assert cache.hits == 1

    service.update_ticket_status(first.id, TicketStatus.IN_PROGRESS, seed.technician.id)
    assert "count_by_status" not in cache
    assert stats.get_ticket_count_by_status() == {"IN_PROGRESS": 1}


def test_failed_operation_leaves_cache_intact(db_session, cache, stats, seed):
    service = TicketService(db_session, cache=cache)
    service.create_ticket(_payload(seed), reporter_id=seed.tenant.id)
    stats.get_ticket_count_by_status()

    with pytest.raises(ValidationError):
        service.create_ticket(_payload(seed, room_id=seed.other_room.id), reporter_id=seed.tenant.id)

    assert "count_by_status" in cache


def test_disabled_cache_always_loads(db_session, make_ticket, seed):
    cache = StatsCache(enabled=False)
    stats = TicketStatisticsService(db_session, cache=cache)
    make_ticket()

    stats.get_ticket_count_by_status()
    assert len(cache) == 0
    make_ticket()
    assert stats.get_ticket_count_by_status() == {"OPEN": 2}


def test_get_statistics(db_session, stats, make_ticket, seed):
    service = TicketService(db_session)
    make_ticket(estimated_completion=utcnow() - timedelta(days=3))
    assigned = make_ticket()
    service.assign_ticket(assigned.id, seed.technician.id, seed.admin.id)
    resolved = make_ticket()
    service.resolve_ticket(resolved.id, seed.technician.id, "Fixed")

    summary = stats.get_statistics()

    assert summary.total == 3
    assert summary.open == 2
    assert summary.resolved == 1
    assert summary.in_progress == summary.on_hold == summary.closed == 0
    assert summary.overdue == 1
    assert summary.unassigned == 1


def test_counts_by_reporter_and_assignee(db_session, stats, make_ticket, seed):
    service = TicketService(db_session)
    make_ticket(reporter=seed.tenant)
    make_ticket(reporter=seed.tenant, status=TicketStatus.ON_HOLD)
    mine = make_ticket(reporter=seed.admin)
    service.assign_ticket(mine.id, seed.technician.id, seed.admin.id)

    assert stats.count_by_reporter(seed.tenant.id) == 2
    assert stats.count_by_reporter(seed.tenant.id, TicketStatus.ON_HOLD) == 1
    assert stats.count_by_reporter(seed.technician.id) == 0
    assert stats.count_by_assignee(seed.technician.id) == 1
    assert stats.count_by_assignee(seed.technician.id, TicketStatus.CLOSED) == 0


def _payload(seed, **fields):
    data = {
        "title": "Broken window",
        "description": "Window on the second floor is cracked.",
        "category_id": seed.plumbing.id,
        "building_id": seed.building.id,
    }
    data.update(fields)
    return TicketCreate(**data)


def test_load_interrupted_by_invalidation_is_not_stored(cache):
    def load():
        # A lifecycle commit lands while the aggregate query is running.
        cache.invalidate()
        return {"OPEN": 1}

    assert cache.get_or_load("count_by_status", load) == {"OPEN": 1}
    assert "count_by_status" not in cache
    assert len(cache) == 0

    assert cache.get_or_load("count_by_status", lambda: {"OPEN": 2}) == {"OPEN": 2}
    assert "count_by_status" in cache
