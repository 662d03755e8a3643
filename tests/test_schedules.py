from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.core.models import Timetable


@pytest.mark.asyncio
async def test_teacher_schedule_uses_published_timetable(
    client: AsyncClient, db_session: AsyncSession, seed, auth_headers, make_entry
) -> None:
    draft = Timetable(institution_id=seed.institution.id, name="Term 2 Draft", timetable_type="main")
    db_session.add(draft)
    await db_session.commit()
    await make_entry()
    await make_entry(class_id=seed.form2.id, subject_id=seed.english.id, day_of_week=2, time_slot_id=seed.period2.id)
    await make_entry(class_id=seed.form2.id, teacher_id=seed.kamau.id, day_of_week=3)
    await make_entry(timetable_id=draft.id, day_of_week=4)
    await client.post(f"/api/v1/timetables/{seed.timetable.id}/publish", headers=auth_headers)

    response = await client.get(f"/api/v1/schedules/teachers/{seed.otieno.id}", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["teacher_name"] == "Grace Otieno"
    assert data["timetable"]["name"] == "Term 1 Main"
    assert [(e["day_of_week"], e["slot_name"]) for e in data["entries"]] == [(1, "Period 1"), (2, "Period 2")]
    assert data["stats"] == {"total_lessons": 2, "unique_classes": 2, "unique_subjects": 2}


@pytest.mark.asyncio
async def test_teacher_schedule_for_requested_timetable(
    client: AsyncClient, db_session: AsyncSession, seed, auth_headers, make_entry
) -> None:
    draft = Timetable(institution_id=seed.institution.id, name="Term 2 Draft", timetable_type="main")
    db_session.add(draft)
    await db_session.commit()
    await make_entry(timetable_id=draft.id, day_of_week=4)

    response = await client.get(
        f"/api/v1/schedules/teachers/{seed.otieno.id}",
        params={"timetable_id": str(draft.id)},
        headers=auth_headers,
    )
    data = response.json()
    assert data["timetable"]["name"] == "Term 2 Draft"
    assert data["stats"]["total_lessons"] == 1


@pytest.mark.asyncio
async def test_teacher_schedule_falls_back_to_latest_timetable(
    client: AsyncClient, seed, auth_headers, make_entry
) -> None:
    await make_entry()

    response = await client.get(f"/api/v1/schedules/teachers/{seed.otieno.id}", headers=auth_headers)
    data = response.json()
    assert data["timetable"]["status"] == "draft"
    assert data["stats"]["total_lessons"] == 1


@pytest.mark.asyncio
async def test_unknown_teacher_or_timetable(client: AsyncClient, seed, auth_headers) -> None:
    response = await client.get(f"/api/v1/schedules/teachers/{uuid4()}", headers=auth_headers)
    assert response.status_code == 404

    response = await client.get(
        f"/api/v1/schedules/teachers/{seed.otieno.id}",
        params={"timetable_id": str(uuid4())},
        headers=auth_headers,
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Timetable not found"


@pytest.mark.asyncio
async def test_room_schedule_and_utilization(client: AsyncClient, seed, auth_headers, make_entry) -> None:
    await make_entry(room_id=seed.lab.id)
    await make_entry(room_id=seed.lab.id, day_of_week=2)
    await make_entry(room_id=seed.lab.id, class_id=seed.form2.id, teacher_id=seed.kamau.id, time_slot_id=seed.period3.id)
    await make_entry(room_id=seed.hall.id, class_id=seed.form2.id, teacher_id=seed.kamau.id, day_of_week=5)

    response = await client.get(f"/api/v1/schedules/rooms/{seed.lab.id}", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["room_name"] == "Lab 1"
    assert len(data["entries"]) == 3
    # 3 bookings over 3 lesson slots x 5 teaching days
    assert data["utilization"] == 20


@pytest.mark.asyncio
async def test_room_schedule_empty(client: AsyncClient, seed, auth_headers) -> None:
    response = await client.get(f"/api/v1/schedules/rooms/{seed.hall.id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["entries"] == []
    assert response.json()["utilization"] == 0

    response = await client.get(f"/api/v1/schedules/rooms/{uuid4()}", headers=auth_headers)
    assert response.status_code == 404
