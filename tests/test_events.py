from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient

from greekdash.models import AuditLog, Event, EventRSVP


def _event_payload(**overrides) -> dict:
    start = datetime.utcnow() + timedelta(days=10)
    payload = {
        "title": "Spring Formal",
        "description": "Annual spring formal at the Grand Hotel",
        "location": "Grand Hotel",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(hours=4)).isoformat(),
        "capacity": 0,
        "is_public": False,
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_event(client: AsyncClient, db_session, admin_headers):
    response = await client.post("/api/v1/chapters/alpha/events/", headers=admin_headers, json=_event_payload())

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "UPCOMING"
    assert data["capacity"] is None
    assert data["rsvp_counts"] == {"going": 0, "not_going": 0, "maybe": 0}
    assert db_session.query(AuditLog).filter(AuditLog.action == "EVENT_CREATED").count() == 1


@pytest.mark.asyncio
async def test_create_event_requires_admin(client: AsyncClient, member_headers):
    response = await client.post("/api/v1/chapters/alpha/events/", headers=member_headers, json=_event_payload())

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_event_in_the_past(client: AsyncClient, owner_headers):
    past = datetime.utcnow() - timedelta(days=1)

    response = await client.post(
        "/api/v1/chapters/alpha/events/",
        headers=owner_headers,
        json=_event_payload(start_date=past.isoformat(), end_date=(past + timedelta(hours=1)).isoformat()),
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_event_end_before_start(client: AsyncClient, owner_headers):
    start = datetime.utcnow() + timedelta(days=2)

    response = await client.post(
        "/api/v1/chapters/alpha/events/",
        headers=owner_headers,
        json=_event_payload(start_date=start.isoformat(), end_date=(start - timedelta(hours=1)).isoformat()),
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_events_upcoming(client: AsyncClient, chapter, member_headers, make_event):
    make_event(chapter, title="Later", start_date=datetime.utcnow() + timedelta(days=9),
               end_date=datetime.utcnow() + timedelta(days=9, hours=1))
    make_event(chapter, title="Sooner")
    past = datetime.utcnow() - timedelta(days=2)
    make_event(chapter, title="Done", start_date=past, end_date=past + timedelta(hours=1), status="COMPLETED")

    everything = await client.get("/api/v1/chapters/alpha/events/", headers=member_headers)
    upcoming = await client.get("/api/v1/chapters/alpha/events/", headers=member_headers, params={"upcoming": True})

    assert everything.json()["total"] == 3
    assert [e["title"] for e in upcoming.json()["items"]] == ["Sooner", "Later"]


@pytest.mark.asyncio
async def test_update_event_checks_merged_dates(client: AsyncClient, chapter, owner_headers, make_event):
    event = make_event(chapter)
    too_early = event.start_date - timedelta(hours=1)

    bad = await client.put(
        f"/api/v1/chapters/alpha/events/{event.id}",
        headers=owner_headers,
        json={"end_date": too_early.isoformat()},
    )
    assert bad.status_code == 400
    assert bad.json()["detail"] == "End date must be after start date"

    good = await client.put(
        f"/api/v1/chapters/alpha/events/{event.id}",
        headers=owner_headers,
        json={"title": "Renamed Meeting", "capacity": 25},
    )
    assert good.status_code == 200
    assert good.json()["title"] == "Renamed Meeting"
    assert good.json()["capacity"] == 25


@pytest.mark.asyncio
async def test_event_from_other_chapter_not_found(client: AsyncClient, db_session, owner_headers, make_event):
    from greekdash.models import Chapter

    other = Chapter(name="Other", slug="other", join_code="OTHER001")
    db_session.add(other)
    db_session.commit()
    foreign = make_event(other)

    response = await client.get(f"/api/v1/chapters/alpha/events/{foreign.id}", headers=owner_headers)

    assert response.status_code == 404
    assert response.json()["code"] == "EVENT_NOT_FOUND"
    assert response.json()["detail"] == "Event not found"


# ============== RSVP ==============

@pytest.mark.asyncio
async def test_rsvp_and_change_answer(client: AsyncClient, db_session, chapter, member, member_headers, make_event):
    event = make_event(chapter)

    going = await client.post(
        f"/api/v1/chapters/alpha/events/{event.id}/rsvp",
        headers=member_headers,
        json={"status": "GOING"},
    )
    maybe = await client.post(
        f"/api/v1/chapters/alpha/events/{event.id}/rsvp",
        headers=member_headers,
        json={"status": "MAYBE"},
    )

    assert going.status_code == 200
    assert maybe.json()["status"] == "MAYBE"
    assert db_session.query(EventRSVP).filter(EventRSVP.user_id == member.id).count() == 1

    detail = await client.get(f"/api/v1/chapters/alpha/events/{event.id}", headers=member_headers)
    assert detail.json()["user_rsvp"] == "MAYBE"
    assert detail.json()["rsvp_counts"]["maybe"] == 1


@pytest.mark.asyncio
async def test_rsvp_capacity(client: AsyncClient, chapter, member_headers, admin_headers, make_event):
    event = make_event(chapter, capacity=1)

    first = await client.post(
        f"/api/v1/chapters/alpha/events/{event.id}/rsvp",
        headers=member_headers,
        json={"status": "GOING"},
    )
    assert first.status_code == 200

    full = await client.post(
        f"/api/v1/chapters/alpha/events/{event.id}/rsvp",
        headers=admin_headers,
        json={"status": "GOING"},
    )
    assert full.status_code == 400
    assert full.json()["detail"] == "Event has reached capacity"

    # Une réponse GOING déjà enregistrée reste acceptée
    again = await client.post(
        f"/api/v1/chapters/alpha/events/{event.id}/rsvp",
        headers=member_headers,
        json={"status": "GOING"},
    )
    assert again.status_code == 200

    maybe = await client.post(
        f"/api/v1/chapters/alpha/events/{event.id}/rsvp",
        headers=admin_headers,
        json={"status": "MAYBE"},
    )
    assert maybe.status_code == 200


@pytest.mark.asyncio
async def test_rsvp_canceled_event(client: AsyncClient, chapter, member_headers, make_event):
    event = make_event(chapter, status="CANCELED")

    response = await client.post(
        f"/api/v1/chapters/alpha/events/{event.id}/rsvp",
        headers=member_headers,
        json={"status": "GOING"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Event is no longer accepting RSVPs"


@pytest.mark.asyncio
async def test_list_rsvps(client: AsyncClient, chapter, member_headers, admin_headers, make_event):
    event = make_event(chapter)
    await client.post(f"/api/v1/chapters/alpha/events/{event.id}/rsvp", headers=member_headers, json={"status": "GOING"})
    await client.post(f"/api/v1/chapters/alpha/events/{event.id}/rsvp", headers=admin_headers, json={"status": "NOT_GOING"})

    everyone = await client.get(f"/api/v1/chapters/alpha/events/{event.id}/rsvps", headers=member_headers)
    going = await client.get(
        f"/api/v1/chapters/alpha/events/{event.id}/rsvps",
        headers=member_headers,
        params={"status": "GOING"},
    )

    assert everyone.json()["total"] == 2
    assert [r["user_email"] for r in going.json()["items"]] == ["member@example.com"]


@pytest.mark.asyncio
async def test_delete_event_removes_rsvps(client: AsyncClient, db_session, chapter, member_headers, owner_headers, make_event):
    event = make_event(chapter)
    event_id = event.id
    await client.post(f"/api/v1/chapters/alpha/events/{event_id}/rsvp", headers=member_headers, json={"status": "GOING"})

    response = await client.delete(f"/api/v1/chapters/alpha/events/{event_id}", headers=owner_headers)

    assert response.status_code == 204
    assert db_session.query(Event).filter(Event.id == event_id).first() is None
    assert db_session.query(EventRSVP).filter(EventRSVP.event_id == event_id).count() == 0
