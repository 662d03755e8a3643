import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.core.models import TimetableEntry


async def _create_timetable(client: AsyncClient, auth_headers, name: str = "Term 2 Main") -> dict:
    response = await client.post(
        "/api/v1/timetables",
        json={"name": name, "timetable_type": "main", "term": "Term 2"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_create_timetable_starts_as_draft(client: AsyncClient, seed, auth_headers) -> None:
    data = await _create_timetable(client, auth_headers)
    assert data["status"] == "draft"
    assert data["published_at"] is None

    response = await client.get("/api/v1/timetables", headers=auth_headers)
    assert [t["name"] for t in response.json()] == ["Term 2 Main", "Term 1 Main"]


@pytest.mark.asyncio
async def test_effective_dates_validated(client: AsyncClient, seed, auth_headers) -> None:
    response = await client.post(
        "/api/v1/timetables",
        json={"name": "Bad dates", "effective_from": "2025-05-01", "effective_to": "2025-04-01"},
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_publish_archives_previously_published(client: AsyncClient, seed, auth_headers) -> None:
    first = await client.post(f"/api/v1/timetables/{seed.timetable.id}/publish", headers=auth_headers)
    assert first.status_code == 200
    assert first.json()["status"] == "published"
    assert first.json()["published_at"] is not None

    second = await _create_timetable(client, auth_headers)
    response = await client.post(f"/api/v1/timetables/{second['id']}/publish", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "published"

    published = await client.get("/api/v1/timetables", params={"status": "published"}, headers=auth_headers)
    assert [t["id"] for t in published.json()] == [second["id"]]

    previous = await client.get(f"/api/v1/timetables/{seed.timetable.id}", headers=auth_headers)
    assert previous.json()["status"] == "archived"


@pytest.mark.asyncio
async def test_illegal_status_changes(client: AsyncClient, seed, auth_headers) -> None:
    tt_id = seed.timetable.id

    response = await client.post(f"/api/v1/timetables/{tt_id}/archive", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["detail"] == "Cannot change timetable status from draft to archived"

    await client.post(f"/api/v1/timetables/{tt_id}/publish", headers=auth_headers)
    response = await client.post(f"/api/v1/timetables/{tt_id}/publish", headers=auth_headers)
    assert response.status_code == 409

    response = await client.post(f"/api/v1/timetables/{tt_id}/archive", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "archived"

    response = await client.post(f"/api/v1/timetables/{tt_id}/publish", headers=auth_headers)
    assert response.status_code == 409

    response = await client.put(f"/api/v1/timetables/{tt_id}", json={"name": "Renamed"}, headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_status_changes_are_audited(client: AsyncClient, seed, auth_headers) -> None:
    created = await _create_timetable(client, auth_headers)
    await client.post(f"/api/v1/timetables/{created['id']}/publish", headers=auth_headers)

    response = await client.get("/api/v1/audit-logs", params={"entity_id": created["id"]}, headers=auth_headers)
    trail = response.json()
    assert [a["action"] for a in trail] == ["CREATED", "PUBLISHED"]
    assert trail[1]["from_status"] == "draft"
    assert trail[1]["to_status"] == "published"


@pytest.mark.asyncio
async def test_update_timetable(client: AsyncClient, seed, auth_headers) -> None:
    response = await client.put(
        f"/api/v1/timetables/{seed.timetable.id}",
        json={"name": "Term 1 Main (rev)", "notes": "Swapped PE and Art"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Term 1 Main (rev)"
    assert response.json()["notes"] == "Swapped PE and Art"
    assert response.json()["term"] == "Term 1"


@pytest.mark.asyncio
async def test_published_timetable_cannot_be_deleted(client: AsyncClient, seed, auth_headers) -> None:
    await client.post(f"/api/v1/timetables/{seed.timetable.id}/publish", headers=auth_headers)

    response = await client.delete(f"/api/v1/timetables/{seed.timetable.id}", headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_delete_draft_removes_its_entries(
    client: AsyncClient, db_session: AsyncSession, seed, auth_headers, make_entry
) -> None:
    await make_entry()
    await make_entry(day_of_week=2)
    tt_id = seed.timetable.id

    response = await client.delete(f"/api/v1/timetables/{tt_id}", headers=auth_headers)
    assert response.status_code == 204

    remaining = await db_session.scalar(
        select(func.count(TimetableEntry.id)).where(TimetableEntry.timetable_id == tt_id)
    )
    assert remaining == 0

    response = await client.get(f"/api/v1/timetables/{tt_id}", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_grid_rows_are_slots_and_columns_are_days(
    client: AsyncClient, seed, auth_headers, make_entry
) -> None:
    await make_entry()
    await make_entry(class_id=seed.form2.id, teacher_id=seed.kamau.id, subject_id=seed.english.id, day_of_week=3)

    response = await client.get(f"/api/v1/timetables/{seed.timetable.id}/grid", headers=auth_headers)
    assert response.status_code == 200
    grid = response.json()
    assert grid["days"] == [1, 2, 3, 4, 5]
    assert [row["slot"]["name"] for row in grid["rows"]] == ["Period 1", "Period 2", "Tea Break", "Period 3"]

    first_row = grid["rows"][0]["cells"]
    assert [c["day_of_week"] for c in first_row] == [1, 2, 3, 4, 5]
    assert [e["subject_name"] for e in first_row[0]["entries"]] == ["Mathematics"]
    assert [e["subject_name"] for e in first_row[2]["entries"]] == ["English"]
    assert first_row[1]["entries"] == []

    response = await client.get(
        f"/api/v1/timetables/{seed.timetable.id}/grid",
        params={"class_id": str(seed.form1.id)},
        headers=auth_headers,
    )
    first_row = response.json()["rows"][0]["cells"]
    assert first_row[2]["entries"] == []


@pytest.mark.asyncio
async def test_grid_shows_weekend_day_that_has_lessons(
    client: AsyncClient, seed, auth_headers, make_entry
) -> None:
    await make_entry(day_of_week=6)

    response = await client.get(f"/api/v1/timetables/{seed.timetable.id}/grid", headers=auth_headers)
    assert response.json()["days"] == [1, 2, 3, 4, 5, 6]


@pytest.mark.asyncio
async def test_summary_counts(client: AsyncClient, seed, auth_headers) -> None:
    await _create_timetable(client, auth_headers)
    await client.post(f"/api/v1/timetables/{seed.timetable.id}/publish", headers=auth_headers)

    response = await client.get("/api/v1/timetables/summary", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {
        "published_timetables": 1,
        "draft_timetables": 1,
        "active_rooms": 2,
        "lesson_slots": 3,
    }
