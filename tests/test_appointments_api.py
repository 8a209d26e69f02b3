"""Tests for the appointment and scheduling access endpoints."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from quiro_agenda.core.security import create_professional_token, decode_access_token


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test health check endpoint."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data

    response = await client.get("/api/v1/ping")
    assert response.json() == {"message": "pong"}


@pytest.mark.asyncio
async def test_book_appointment(client: AsyncClient, auth_headers: dict, booking_payload: dict) -> None:
    response = await client.post("/api/v1/appointments", json=booking_payload, headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    assert isinstance(data["id"], int)
    start = datetime.fromisoformat(data["start_at_utc"].replace("Z", "+00:00"))
    assert start == datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_conflict_envelope_is_localized(
    client: AsyncClient,
    auth_headers: dict,
    booking_payload: dict,
) -> None:
    await client.post("/api/v1/appointments", json=booking_payload, headers=auth_headers)

    response = await client.post(
        "/api/v1/appointments",
        json={**booking_payload, "patient": {"private_patient_id": 99}},
        headers=auth_headers,
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "CONFLICT"
    assert body["message"] == "O horário 09:00 do dia 10/03/2025 já está agendado para Ana Souza."
    assert body["details"]["conflicts"] == [
        {"date": "2025-03-10", "time": "09:00", "patient_name": "Ana Souza"}
    ]


@pytest.mark.asyncio
async def test_recurring_conflicts_are_counted(
    client: AsyncClient,
    auth_headers: dict,
    booking_payload: dict,
) -> None:
    for day in ("2025-03-17", "2025-03-24"):
        await client.post("/api/v1/appointments", json={**booking_payload, "date": day}, headers=auth_headers)

    response = await client.post(
        "/api/v1/appointments/recurring",
        json={**booking_payload, "recurrence_type": "weekly", "weekly_count": 4},
        headers=auth_headers,
    )

    assert response.status_code == 409
    body = response.json()
    assert body["message"].startswith("2 horário(s) já está(ão) ocupado(s)")
    assert len(body["details"]["conflicts"]) == 2


@pytest.mark.asyncio
async def test_book_recurring(client: AsyncClient, auth_headers: dict, booking_payload: dict) -> None:
    response = await client.post(
        "/api/v1/appointments/recurring",
        json={**booking_payload, "recurrence_type": "monthly", "occurrences": 3, "recurrence_interval": 1},
        headers=auth_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["count"] == 3
    assert len(data["appointments"]) == 3
    assert data["group_id"]


@pytest.mark.asyncio
async def test_no_scheduling_access(client: AsyncClient, booking_payload: dict, make_auth_headers) -> None:
    response = await client.post(
        "/api/v1/appointments",
        json={**booking_payload, "patient": {"private_patient_id": 50}},
        headers=make_auth_headers(8),
    )

    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "NO_SCHEDULING_ACCESS"
    assert body["message"].startswith("Acesso à agenda não autorizado")
    assert body["details"] == {"has_access": False}


@pytest.mark.asyncio
async def test_scheduling_access_status(client: AsyncClient, auth_headers: dict, make_auth_headers) -> None:
    response = await client.get("/api/v1/scheduling-access", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["has_access"] is True

    response = await client.get("/api/v1/scheduling-access", headers=make_auth_headers(8))
    assert response.status_code == 200
    assert response.json() == {"has_access": False, "expires_at": None, "reason": None}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "patient",
    [
        {"member_id": 1, "private_patient_id": 42},
        {},
        {"private_patient_id": 0},
    ],
)
async def test_patient_reference_must_name_exactly_one_patient(
    client: AsyncClient,
    auth_headers: dict,
    booking_payload: dict,
    patient: dict,
) -> None:
    response = await client.post(
        "/api/v1/appointments",
        json={**booking_payload, "patient": patient},
        headers=auth_headers,
    )

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "INVALID_REQUEST"
    assert body["details"]["errors"]


@pytest.mark.asyncio
async def test_invalid_local_date(client: AsyncClient, auth_headers: dict, booking_payload: dict) -> None:
    response = await client.post(
        "/api/v1/appointments",
        json={**booking_payload, "date": "2025-02-30"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_last_calendar_day_is_rejected_with_envelope(
    client: AsyncClient,
    auth_headers: dict,
    booking_payload: dict,
) -> None:
    response = await client.post(
        "/api/v1/appointments",
        json={**booking_payload, "date": "9999-12-31", "time": "22:00"},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"

    response = await client.get(
        "/api/v1/appointments/agenda",
        params={"from_date": "9999-12-31", "to_date": "9999-12-31"},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_missing_service(client: AsyncClient, auth_headers: dict, booking_payload: dict) -> None:
    response = await client.post(
        "/api/v1/appointments",
        json={**booking_payload, "service_id": 999},
        headers=auth_headers,
    )

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_cancel_complete_and_agenda(
    client: AsyncClient,
    auth_headers: dict,
    booking_payload: dict,
) -> None:
    first = (await client.post("/api/v1/appointments", json=booking_payload, headers=auth_headers)).json()
    second = (
        await client.post(
            "/api/v1/appointments",
            json={**booking_payload, "time": "10:00"},
            headers=auth_headers,
        )
    ).json()

    response = await client.post(
        f"/api/v1/appointments/{first['id']}/cancel",
        json={"reason": "paciente faltou"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    cancelled = response.json()
    assert cancelled["status"] == "cancelled"
    assert cancelled["cancelled_by"] == 7
    assert cancelled["cancellation_reason"] == "paciente faltou"
    assert cancelled["patient"] == {"private_patient_id": 42}

    response = await client.post(f"/api/v1/appointments/{second['id']}/complete", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    response = await client.post(f"/api/v1/appointments/{second['id']}/complete", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "ILLEGAL_TRANSITION"

    response = await client.get(
        "/api/v1/appointments/agenda",
        params={"from_date": "2025-03-10", "to_date": "2025-03-10"},
        headers=auth_headers,
    )
    assert [a["id"] for a in response.json()] == [second["id"]]

    response = await client.get(
        "/api/v1/appointments/agenda",
        params={"from_date": "2025-03-10", "to_date": "2025-03-10", "include_cancelled": "true"},
        headers=auth_headers,
    )
    assert [a["id"] for a in response.json()] == [first["id"], second["id"]]


@pytest.mark.asyncio
async def test_cancel_without_body(client: AsyncClient, auth_headers: dict, booking_payload: dict) -> None:
    booked = (await client.post("/api/v1/appointments", json=booking_payload, headers=auth_headers)).json()

    response = await client.post(f"/api/v1/appointments/{booked['id']}/cancel", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["cancellation_reason"] is None


@pytest.mark.asyncio
async def test_reschedule(client: AsyncClient, auth_headers: dict, booking_payload: dict) -> None:
    booked = (await client.post("/api/v1/appointments", json=booking_payload, headers=auth_headers)).json()

    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}/schedule",
        json={"date": "2025-03-11", "time": "14:30"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    start = datetime.fromisoformat(response.json()["start_at"].replace("Z", "+00:00"))
    assert start == datetime(2025, 3, 11, 17, 30, tzinfo=UTC)


@pytest.mark.asyncio
async def test_edit_notes_through_schedule_endpoint(
    client: AsyncClient,
    auth_headers: dict,
    booking_payload: dict,
) -> None:
    booked = (await client.post("/api/v1/appointments", json=booking_payload, headers=auth_headers)).json()

    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}/schedule",
        json={"notes": "trazer exames", "value": "90.00"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["notes"] == "trazer exames"
    assert Decimal(data["value"]) == Decimal("90")
    assert datetime.fromisoformat(data["start_at"].replace("Z", "+00:00")) == datetime(2025, 3, 10, 12, 0, tzinfo=UTC)

    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}/schedule",
        json={"date": "2025-03-11"},
        headers=auth_headers,
    )
    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_agenda_rejects_reversed_range(client: AsyncClient, auth_headers: dict) -> None:
    response = await client.get(
        "/api/v1/appointments/agenda",
        params={"from_date": "2025-03-11", "to_date": "2025-03-10"},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient, booking_payload: dict) -> None:
    response = await client.post("/api/v1/appointments", json=booking_payload)
    assert response.status_code in (401, 403)
    assert response.json()["code"] == "UNAUTHORIZED"

    response = await client.post(
        "/api/v1/appointments",
        json=booking_payload,
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_is_rejected(client: AsyncClient, booking_payload: dict) -> None:
    token = create_professional_token(7, expires_delta=timedelta(minutes=-1))

    response = await client.post(
        "/api/v1/appointments",
        json=booking_payload,
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"
    assert decode_access_token(create_professional_token(7))["sub"] == "7"
