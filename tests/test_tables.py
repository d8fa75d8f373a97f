import uuid
from datetime import date, time

import pytest

from dineflow.domain import TableStatus
from dineflow.errors import Conflict, InvalidRequest, NotFound

pytestmark = pytest.mark.anyio


async def test_create_and_list_tables_ordered_by_number(app, session):
    await app.tables.create_table(session, number=7, capacity=2, location="window")
    await app.tables.create_table(session, number=3, capacity=6)
    tables = await app.tables.list_tables(session)
    assert [t.number for t in tables] == [3, 7]
    assert all(t.status == TableStatus.AVAILABLE for t in tables)
    assert tables[1].location == "window"


async def test_table_number_is_unique(app, session):
    await app.tables.create_table(session, number=1, capacity=2)
    with pytest.raises(Conflict) as exc_info:
        await app.tables.create_table(session, number=1, capacity=4)
    assert exc_info.value.details["number"] == 1
    assert len(await app.tables.list_tables(session)) == 1


@pytest.mark.parametrize("capacity", [0, -2])
async def test_capacity_must_be_positive(app, session, capacity):
    with pytest.raises(InvalidRequest):
        await app.tables.create_table(session, number=1, capacity=capacity)


async def test_get_missing_table(app, session):
    with pytest.raises(NotFound):
        await app.tables.get_table(session, uuid.uuid4())
    with pytest.raises(NotFound):
        await app.tables.set_status(session, uuid.uuid4(), TableStatus.MAINTENANCE)


async def test_status_filter_and_idempotent_write(app, session, bus):
    queue = bus.subscribe("table.status")
    t1 = await app.tables.create_table(session, number=1, capacity=2)
    await app.tables.create_table(session, number=2, capacity=2)

    await app.tables.set_status(session, t1.id, TableStatus.MAINTENANCE)
    await app.tables.set_status(session, t1.id, "maintenance")

    in_maintenance = await app.tables.list_tables(session, TableStatus.MAINTENANCE)
    assert [t.number for t in in_maintenance] == [1]
    # the second write changed nothing and published nothing
    assert queue.qsize() == 1
    assert queue.get_nowait()["to"] == "maintenance"


async def test_update_table_rejects_duplicate_number(app, session):
    t1 = await app.tables.create_table(session, number=1, capacity=2)
    await app.tables.create_table(session, number=2, capacity=2)
    with pytest.raises(Conflict):
        await app.tables.update_table(session, t1.id, number=2)
    updated = await app.tables.update_table(session, t1.id, capacity=5, location="patio")
    assert (updated.number, updated.capacity, updated.location) == (1, 5, "patio")


async def test_delete_table_blocked_by_active_reservation(app, session):
    table = await app.tables.create_table(session, number=1, capacity=4)
    reservation = await app.scheduler.create_reservation(
        session, "cust-1", date(2024, 6, 2), time(19, 0), party_size=2, table_id=table.id
    )
    with pytest.raises(Conflict):
        await app.tables.delete_table(session, table.id)

    await app.scheduler.cancel_reservation(session, reservation.id)
    await app.tables.delete_table(session, table.id)
    assert await app.tables.list_tables(session) == []


async def test_status_input_is_parsed(app, session):
    table = await app.tables.create_table(session, number=1, capacity=2)

    with pytest.raises(InvalidRequest) as exc_info:
        await app.tables.set_status(session, table.id, "closed")
    assert exc_info.value.details["status"] == "closed"
    with pytest.raises(InvalidRequest):
        await app.tables.list_tables(session, "closed")

    await app.tables.set_status(session, table.id, "MAINTENANCE")
    assert [t.number for t in await app.tables.list_tables(session, "maintenance")] == [1]
    updated = await app.tables.set_status(session, table.id, "AVAILABLE")
    assert updated.status == TableStatus.AVAILABLE
