import asyncio
from datetime import date, time

import pytest

from dineflow.domain import ReservationStatus, TableStatus
from dineflow.errors import Conflict, InvalidRequest, InvalidTransition, NotFound

pytestmark = pytest.mark.anyio

TODAY = date(2024, 6, 1)
TOMORROW = date(2024, 6, 2)


async def _book(app, session, table_id=None, on=TODAY, at=time(19, 0), party=2, **kw):
    return await app.scheduler.create_reservation(
        session, "cust-1", on, at, party_size=party, table_id=table_id, **kw
    )


async def test_confirmed_window_blocks_overlap_but_not_adjacent(app, session):
    t5 = await app.tables.create_table(session, number=5, capacity=4)
    first = await _book(app, session, t5.id, at=time(19, 0), party=4, duration_mins=60)
    await app.scheduler.update_status(session, first.id, ReservationStatus.CONFIRMED)
    assert (await app.tables.get_table(session, t5.id)).status == TableStatus.RESERVED

    with pytest.raises(Conflict) as exc_info:
        await _book(app, session, t5.id, at=time(19, 30), party=2, duration_mins=60)
    details = exc_info.value.details
    assert details["conflicting_reservation"] == first.id
    assert details["conflicting_window"].startswith("2024-06-01T19:00:00")

    second = await _book(app, session, t5.id, at=time(20, 0), party=2, duration_mins=60)
    assert second.status == ReservationStatus.PENDING
    assert second.table_id == t5.id


async def test_auto_select_prefers_smallest_fitting_table(app, session):
    await app.tables.create_table(session, number=1, capacity=2)
    t3 = await app.tables.create_table(session, number=3, capacity=4)
    t2 = await app.tables.create_table(session, number=2, capacity=4)
    t4 = await app.tables.create_table(session, number=4, capacity=6)

    picked = [(await _book(app, session, party=3)).table_id for _ in range(3)]
    assert picked == [t2.id, t3.id, t4.id]

    with pytest.raises(Conflict) as exc_info:
        await _book(app, session, party=3)
    assert exc_info.value.message == "no table available"


async def test_auto_select_skips_tables_not_available(app, session):
    t1 = await app.tables.create_table(session, number=1, capacity=4)
    t2 = await app.tables.create_table(session, number=2, capacity=4)
    await app.tables.set_status(session, t1.id, TableStatus.MAINTENANCE)
    assert (await _book(app, session)).table_id == t2.id


async def test_party_larger_than_any_table_writes_nothing(app, session):
    await app.tables.create_table(session, number=1, capacity=4)
    with pytest.raises(InvalidRequest):
        await _book(app, session, party=7)
    assert await app.scheduler.list_reservations(session) == []


async def test_explicit_table_rejections(app, session):
    table = await app.tables.create_table(session, number=1, capacity=2)
    with pytest.raises(InvalidRequest):
        await _book(app, session, table.id, party=3)
    await app.tables.set_status(session, table.id, TableStatus.MAINTENANCE)
    with pytest.raises(Conflict):
        await _book(app, session, table.id, party=2)
    with pytest.raises(NotFound):
        await app.scheduler.get_reservation(session, table.id)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"at": time(11, 0)},
        {"on": date(2024, 5, 31)},
        {"party": 0},
        {"duration_mins": 0},
    ],
)
async def test_invalid_booking_input(app, session, kwargs):
    await app.tables.create_table(session, number=1, capacity=4)
    with pytest.raises(InvalidRequest):
        await _book(app, session, **kwargs)
    assert await app.scheduler.list_reservations(session) == []


async def test_default_duration_applies(app, session):
    await app.tables.create_table(session, number=1, capacity=4)
    booked = await _book(app, session)
    assert booked.duration_mins == app.settings.default_duration_mins


async def test_window_crossing_midnight_conflicts_with_next_day(app, session):
    table = await app.tables.create_table(session, number=1, capacity=4)
    await _book(app, session, table.id, at=time(23, 30), duration_mins=60)
    with pytest.raises(Conflict):
        await _book(app, session, table.id, on=TOMORROW, at=time(0, 15))
    await _book(app, session, table.id, on=TOMORROW, at=time(0, 30))


async def test_multi_day_window_blocks_later_dates(app, session):
    table = await app.tables.create_table(session, number=1, capacity=4)
    long_stay = await _book(
        app, session, table.id, on=TOMORROW, at=time(18, 0), duration_mins=3 * 24 * 60
    )

    with pytest.raises(Conflict) as exc_info:
        await _book(app, session, table.id, on=date(2024, 6, 4), at=time(12, 0))
    assert exc_info.value.details["conflicting_reservation"] == long_stay.id
    assert exc_info.value.details["conflicting_window"] == (
        "2024-06-02T18:00:00+00:00/2024-06-05T18:00:00+00:00"
    )

    await _book(app, session, table.id, on=date(2024, 6, 5), at=time(18, 0))
    assert len(await app.scheduler.list_reservations(session, table_id=table.id)) == 2


async def test_multi_day_request_blocked_by_later_booking(app, session):
    table = await app.tables.create_table(session, number=1, capacity=4)
    later = await _book(app, session, table.id, on=date(2024, 6, 10), at=time(12, 0))

    with pytest.raises(Conflict) as exc_info:
        await _book(
            app, session, table.id, on=date(2024, 6, 8), at=time(12, 0), duration_mins=3 * 24 * 60
        )
    assert exc_info.value.details["conflicting_reservation"] == later.id


async def test_cancel_frees_the_window(app, session):
    table = await app.tables.create_table(session, number=1, capacity=4)
    first = await _book(app, session, table.id)
    cancelled = await app.scheduler.cancel_reservation(session, first.id)
    assert cancelled.status == ReservationStatus.CANCELLED
    rebooked = await _book(app, session, table.id)
    assert rebooked.id != first.id


async def test_find_overlapping_and_list_filters(app, session):
    table = await app.tables.create_table(session, number=1, capacity=4)
    r1 = await _book(app, session, table.id, at=time(18, 0))
    await app.scheduler.create_reservation(
        session, "cust-2", TOMORROW, time(18, 0), party_size=2, table_id=table.id
    )

    hits = await app.scheduler.find_overlapping(session, table.id, TODAY, time(18, 30), 30)
    assert [r.id for r in hits] == [r1.id]
    assert await app.scheduler.find_overlapping(
        session, table.id, TODAY, time(18, 30), 30, exclude=r1.id
    ) == []

    mine = await app.scheduler.list_reservations(session, customer_id="cust-1")
    assert [r.id for r in mine] == [r1.id]
    assert len(await app.scheduler.list_reservations(session, on=TOMORROW)) == 1
    assert len(await app.scheduler.list_reservations(session, status="pending")) == 2


@pytest.mark.parametrize(
    "path, illegal",
    [
        ([], ReservationStatus.SEATED),
        ([], ReservationStatus.COMPLETED),
        ([ReservationStatus.CANCELLED], ReservationStatus.CONFIRMED),
        ([ReservationStatus.CANCELLED], ReservationStatus.PENDING),
        ([ReservationStatus.CONFIRMED], ReservationStatus.PENDING),
        ([ReservationStatus.CONFIRMED], ReservationStatus.COMPLETED),
    ],
)
async def test_illegal_transition_leaves_state_unchanged(app, session, path, illegal):
    table = await app.tables.create_table(session, number=1, capacity=4)
    booked = await _book(app, session, table.id)
    for step in path:
        await app.scheduler.update_status(session, booked.id, step)
    before = await app.scheduler.get_reservation(session, booked.id)
    table_before = await app.tables.get_table(session, table.id)

    with pytest.raises(InvalidTransition) as exc_info:
        await app.scheduler.update_status(session, booked.id, illegal)
    assert exc_info.value.details["to"] == illegal.value

    assert (await app.scheduler.get_reservation(session, booked.id)).status == before.status
    assert (await app.tables.get_table(session, table.id)).status == table_before.status


async def test_seating_depends_on_the_clock(app, session, clock):
    table = await app.tables.create_table(session, number=1, capacity=4)
    booked = await _book(app, session, table.id)
    await app.scheduler.update_status(session, booked.id, "confirmed")

    with pytest.raises(InvalidTransition):
        await app.scheduler.update_status(session, booked.id, "seated")

    clock.advance(hours=7, minutes=5)
    seated = await app.scheduler.update_status(session, booked.id, "seated")
    assert seated.status == ReservationStatus.SEATED
    assert (await app.tables.get_table(session, table.id)).status == TableStatus.OCCUPIED

    done = await app.scheduler.update_status(session, booked.id, "completed")
    assert done.status == ReservationStatus.COMPLETED
    assert (await app.tables.get_table(session, table.id)).status == TableStatus.AVAILABLE


async def test_confirm_after_start_is_rejected(app, session, clock):
    table = await app.tables.create_table(session, number=1, capacity=4)
    booked = await _book(app, session, table.id, at=time(13, 0))
    clock.advance(hours=1, minutes=10)
    with pytest.raises(InvalidTransition):
        await app.scheduler.update_status(session, booked.id, "confirmed")


async def test_confirm_for_another_day_keeps_table_available(app, session):
    table = await app.tables.create_table(session, number=1, capacity=4)
    booked = await _book(app, session, table.id, on=TOMORROW)
    await app.scheduler.update_status(session, booked.id, "confirmed")
    assert (await app.tables.get_table(session, table.id)).status == TableStatus.AVAILABLE


async def test_release_hands_table_to_next_confirmed_guest(app, session, clock):
    table = await app.tables.create_table(session, number=1, capacity=4)
    lunch = await _book(app, session, table.id, at=time(13, 0))
    dinner = await _book(app, session, table.id, at=time(19, 0))
    await app.scheduler.update_status(session, lunch.id, "confirmed")
    await app.scheduler.update_status(session, dinner.id, "confirmed")

    clock.advance(hours=1)
    await app.scheduler.update_status(session, lunch.id, "seated")
    assert (await app.tables.get_table(session, table.id)).status == TableStatus.OCCUPIED

    await app.scheduler.update_status(session, lunch.id, "completed")
    assert (await app.tables.get_table(session, table.id)).status == TableStatus.RESERVED

    await app.scheduler.cancel_reservation(session, dinner.id)
    assert (await app.tables.get_table(session, table.id)).status == TableStatus.AVAILABLE


async def test_cancelling_seated_guest_frees_the_table(app, session, clock):
    table = await app.tables.create_table(session, number=1, capacity=4)
    booked = await _book(app, session, table.id, at=time(13, 0))
    await app.scheduler.update_status(session, booked.id, "confirmed")
    clock.advance(hours=1, minutes=5)
    await app.scheduler.update_status(session, booked.id, "seated")
    assert (await app.tables.get_table(session, table.id)).status == TableStatus.OCCUPIED

    cancelled = await app.scheduler.cancel_reservation(session, booked.id, actor="staff")
    assert cancelled.status == ReservationStatus.CANCELLED
    assert (await app.tables.get_table(session, table.id)).status == TableStatus.AVAILABLE


async def test_release_leaves_maintenance_alone(app, session, clock):
    table = await app.tables.create_table(session, number=1, capacity=4)
    booked = await _book(app, session, table.id, at=time(13, 0))
    await app.scheduler.update_status(session, booked.id, "confirmed")
    await app.tables.set_status(session, table.id, TableStatus.MAINTENANCE)
    await app.scheduler.cancel_reservation(session, booked.id)
    assert (await app.tables.get_table(session, table.id)).status == TableStatus.MAINTENANCE


async def test_status_changes_publish_events(app, session, bus):
    created = bus.subscribe("reservation.created")
    changed = bus.subscribe("reservation.status")
    table = await app.tables.create_table(session, number=1, capacity=4)
    booked = await _book(app, session, table.id)
    await app.scheduler.cancel_reservation(session, booked.id)

    assert created.get_nowait()["id"] == str(booked.id)
    assert changed.get_nowait() == {
        "reservation_id": str(booked.id),
        "table_id": str(table.id),
        "from": "pending",
        "to": "cancelled",
    }


async def test_concurrent_bookings_for_one_window(app, session, session_maker):
    table = await app.tables.create_table(session, number=1, capacity=4)

    async def attempt(customer):
        async with session_maker() as own:
            return await app.scheduler.create_reservation(
                own, customer, TODAY, time(19, 0), party_size=2, table_id=table.id
            )

    results = await asyncio.gather(
        attempt("cust-a"), attempt("cust-b"), return_exceptions=True
    )
    booked = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(booked) == 1
    assert len(rejected) == 1 and isinstance(rejected[0], Conflict)
    assert len(await app.scheduler.list_reservations(session)) == 1
