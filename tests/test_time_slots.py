from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.api.v1.time_slots import service
from schooltime.api.v1.time_slots.schemas import TimeSlotUsage
from schooltime.core.exceptions import SlotInUseError
from schooltime.core.models import AuditLog, TimeSlot, Timetable


@pytest.mark.asyncio
async def test_list_time_slots_in_sequence_order(client: AsyncClient, seed, auth_headers) -> None:
    response = await client.get("/api/v1/time-slots", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert [s["name"] for s in data] == ["Period 1", "Period 2", "Tea Break", "Period 3"]
    assert [s["sequence_order"] for s in data] == [1, 2, 3, 4]
    assert data[0]["start_time"] == "08:00"
    assert data[0]["end_time"] == "08:40"


@pytest.mark.asyncio
async def test_list_lesson_slots_only(client: AsyncClient, seed, auth_headers) -> None:
    response = await client.get("/api/v1/time-slots", params={"slot_type": "lesson"}, headers=auth_headers)
    assert response.status_code == 200
    assert [s["name"] for s in response.json()] == ["Period 1", "Period 2", "Period 3"]


@pytest.mark.asyncio
async def test_requires_bearer_token(client: AsyncClient, seed) -> None:
    response = await client.get("/api/v1/time-slots")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_assigns_next_sequence_order(client: AsyncClient, seed, auth_headers) -> None:
    payload = {"name": "Period 4", "start_time": "10:20", "end_time": "11:00"}
    response = await client.post("/api/v1/time-slots", json=payload, headers=auth_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["sequence_order"] == 5
    assert data["slot_type"] == "lesson"
    assert data["applies_to"] == "all"


@pytest.mark.asyncio
async def test_create_with_taken_sequence_order_conflicts(client: AsyncClient, seed, auth_headers) -> None:
    payload = {"name": "Period 4", "start_time": "10:20", "end_time": "11:00", "sequence_order": 2}
    response = await client.post("/api/v1/time-slots", json=payload, headers=auth_headers)
    assert response.status_code == 409
    assert "Period 2" in response.json()["detail"]


@pytest.mark.asyncio
async def test_overlapping_lesson_slot_rejected(client: AsyncClient, seed, auth_headers) -> None:
    payload = {"name": "Extra", "start_time": "08:20", "end_time": "09:00"}
    response = await client.post("/api/v1/time-slots", json=payload, headers=auth_headers)
    assert response.status_code == 400
    assert "overlaps" in response.json()["detail"]


@pytest.mark.asyncio
async def test_assembly_may_overlap_lessons(client: AsyncClient, seed, auth_headers) -> None:
    payload = {"name": "Assembly", "start_time": "08:00", "end_time": "08:20", "slot_type": "assembly"}
    response = await client.post("/api/v1/time-slots", json=payload, headers=auth_headers)
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_lesson_overlap_allowed_across_scopes(client: AsyncClient, seed, auth_headers) -> None:
    payload = {"name": "Boarders Prep", "start_time": "08:20", "end_time": "09:00", "applies_to": "boarding"}
    response = await client.post("/api/v1/time-slots", json=payload, headers=auth_headers)
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_end_time_must_follow_start_time(client: AsyncClient, seed, auth_headers) -> None:
    payload = {"name": "Backwards", "start_time": "12:00", "end_time": "11:00"}
    response = await client.post("/api/v1/time-slots", json=payload, headers=auth_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_time_slot(client: AsyncClient, seed, auth_headers) -> None:
    response = await client.put(
        f"/api/v1/time-slots/{seed.period3.id}",
        json={"name": "Period 3 (short)", "end_time": "10:10"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Period 3 (short)"
    assert data["start_time"] == "09:40"
    assert data["end_time"] == "10:10"


@pytest.mark.asyncio
async def test_usage_counts_entries_across_timetables(
    client: AsyncClient, db_session: AsyncSession, seed, auth_headers, make_entry
) -> None:
    term2 = Timetable(institution_id=seed.institution.id, name="Term 2 Draft", timetable_type="main")
    db_session.add(term2)
    await db_session.commit()
    await make_entry()
    await make_entry(timetable_id=term2.id)

    response = await client.get(f"/api/v1/time-slots/{seed.period1.id}/usage", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"count": 2, "timetables": ["Term 1 Main", "Term 2 Draft"]}


@pytest.mark.asyncio
async def test_delete_blocked_while_slot_in_use(client: AsyncClient, seed, auth_headers, make_entry) -> None:
    await make_entry()

    response = await client.delete(f"/api/v1/time-slots/{seed.period1.id}", headers=auth_headers)
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["count"] == 1
    assert detail["timetables"] == ["Term 1 Main"]

    response = await client.get(f"/api/v1/time-slots/{seed.period1.id}", headers=auth_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_delete_unused_slot(client: AsyncClient, db_session: AsyncSession, seed, auth_headers) -> None:
    response = await client.get(f"/api/v1/time-slots/{seed.period3.id}/usage", headers=auth_headers)
    assert response.json()["count"] == 0

    response = await client.delete(f"/api/v1/time-slots/{seed.period3.id}", headers=auth_headers)
    assert response.status_code == 204

    response = await client.get(f"/api/v1/time-slots/{seed.period3.id}", headers=auth_headers)
    assert response.status_code == 404

    audit = await db_session.execute(select(AuditLog).where(AuditLog.entity_id == seed.period3.id))
    assert audit.scalar_one().action == "DELETED"


@pytest.mark.asyncio
async def test_delete_rechecked_by_foreign_key(db_session: AsyncSession, seed, make_entry, monkeypatch) -> None:
    """An entry placed after the usage check still blocks the delete."""
    await make_entry()
    institution_id, slot_id = seed.institution.id, seed.period1.id
    real_usage = service.get_time_slot_usage
    calls = []

    async def stale_usage(db, institution_id, slot_id):
        calls.append(slot_id)
        if len(calls) == 1:
            return TimeSlotUsage(count=0, timetables=[])
        return await real_usage(db, institution_id, slot_id)

    monkeypatch.setattr(service, "get_time_slot_usage", stale_usage)

    with pytest.raises(SlotInUseError) as exc_info:
        await service.delete_time_slot(db_session, institution_id, slot_id)
    assert exc_info.value.count == 1
    assert exc_info.value.timetable_names == ["Term 1 Main"]

    still_there = await db_session.execute(select(TimeSlot).where(TimeSlot.id == slot_id))
    assert still_there.scalar_one_or_none() is not None


@pytest.mark.asyncio
async def test_move_up_swaps_with_previous_slot(client: AsyncClient, seed, auth_headers) -> None:
    response = await client.post(
        f"/api/v1/time-slots/{seed.period2.id}/move",
        json={"direction": "up"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert [s["name"] for s in data] == ["Period 2", "Period 1", "Tea Break", "Period 3"]
    assert [s["sequence_order"] for s in data] == [1, 2, 3, 4]

    listed = await client.get("/api/v1/time-slots", headers=auth_headers)
    assert [s["name"] for s in listed.json()] == ["Period 2", "Period 1", "Tea Break", "Period 3"]


@pytest.mark.asyncio
async def test_move_down_leaves_other_slots_alone(client: AsyncClient, seed, auth_headers) -> None:
    response = await client.post(
        f"/api/v1/time-slots/{seed.tea_break.id}/move",
        json={"direction": "down"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert [s["name"] for s in response.json()] == ["Period 1", "Period 2", "Period 3", "Tea Break"]


@pytest.mark.asyncio
async def test_move_first_slot_up_is_a_no_op(client: AsyncClient, seed, auth_headers) -> None:
    response = await client.post(
        f"/api/v1/time-slots/{seed.period1.id}/move",
        json={"direction": "up"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert [s["name"] for s in response.json()] == ["Period 1", "Period 2", "Tea Break", "Period 3"]


@pytest.mark.asyncio
async def test_move_unknown_slot(client: AsyncClient, seed, auth_headers) -> None:
    response = await client.post(
        f"/api/v1/time-slots/{uuid4()}/move",
        json={"direction": "down"},
        headers=auth_headers,
    )
    assert response.status_code == 404
