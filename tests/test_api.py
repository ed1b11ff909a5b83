"""
End-to-end tests through the FastAPI routes.

The session dependency is bound to the per-test SQLite database and the
notifier dependency is replaced with a recorder, so no background delivery
or SMTP happens.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.deps import get_notifier
from app.core.db import get_session
from app.core.security import create_access_token
from app.main import app
from app.models.appointment import AppointmentStatus
from app.models.notification import Notification, NotificationType
from tests.conftest import at, future_day, make_appointment


def auth(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, role=user.role.value)}"}


@pytest.fixture
async def client(session_maker, notifier):
    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


class TestAuthRoutes:
    """Signup, login and the current user."""

    @pytest.mark.asyncio
    async def test_signup_login_me(self, client):
        response = await client.post(
            "/api/v1/auth/signup",
            json={
                "email": "new.doc@example.com",
                "password": "s3cret-pass",
                "name": "New Doc",
                "role": "provider",
                "specialization": "Psychiatry",
            },
        )
        assert response.status_code == 201

        response = await client.post(
            "/api/v1/auth/login", json={"email": "new.doc@example.com", "password": "s3cret-pass"}
        )
        assert response.status_code == 200
        token = response.json()["access_token"]

        me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["role"] == "provider"
        assert me.json()["full_name"] == "New Doc"

    @pytest.mark.asyncio
    async def test_duplicate_signup(self, client, patient):
        response = await client.post(
            "/api/v1/auth/signup", json={"email": "pat@example.com", "password": "whatever"}
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_bad_password(self, client):
        await client.post("/api/v1/auth/signup", json={"email": "a@example.com", "password": "right"})

        response = await client.post("/api/v1/auth/login", json={"email": "a@example.com", "password": "wrong"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401


class TestSlotRoutes:
    """Public availability lookup."""

    @pytest.mark.asyncio
    async def test_lists_slots_with_booked_flag(self, client, session, patient, provider):
        day = future_day()
        await make_appointment(session, patient, provider, at(day, "09:00"), AppointmentStatus.CONFIRMED)

        response = await client.get(
            "/api/v1/slots/available",
            params={"provider_id": provider.id, "date": day.isoformat(), "start_time": "09:00", "end_time": "10:00"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["date"] == day.isoformat()
        assert [(s["time"], s["available"]) for s in body["slots"]] == [("09:00", False), ("09:30", True)]

    @pytest.mark.asyncio
    async def test_unknown_provider(self, client):
        response = await client.get(
            "/api/v1/slots/available", params={"provider_id": 999, "date": future_day().isoformat()}
        )

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_malformed_time(self, client, provider):
        response = await client.get(
            "/api/v1/slots/available",
            params={"provider_id": provider.id, "date": future_day().isoformat(), "start_time": "nine"},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestAppointmentRoutes:
    """Booking and lifecycle over HTTP."""

    @pytest.mark.asyncio
    async def test_book_confirm_complete(self, client, patient, provider, notifier):
        when = at(future_day(), "11:00")

        booked = await client.post(
            "/api/v1/appointments",
            json={"provider_id": provider.id, "appointment_datetime": when.isoformat(), "reason": "Checkup"},
            headers=auth(patient),
        )
        assert booked.status_code == 201
        appointment_id = booked.json()["id"]
        assert booked.json()["status"] == "PENDING"

        confirmed = await client.put(
            f"/api/v1/appointments/{appointment_id}/status",
            json={"status": "CONFIRMED"},
            headers=auth(provider),
        )
        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "CONFIRMED"

        slots = await client.get(
            "/api/v1/slots/available",
            params={"provider_id": provider.id, "date": when.date().isoformat()},
        )
        taken = {s["time"]: s["available"] for s in slots.json()["slots"]}
        assert taken["11:00"] is False

        completed = await client.put(
            f"/api/v1/appointments/{appointment_id}/complete",
            json={"notes": "Fine", "follow_up_datetime": at(future_day(21), "09:00").isoformat()},
            headers=auth(provider),
        )
        assert completed.status_code == 200
        assert completed.json()["appointment"]["status"] == "COMPLETED"
        assert completed.json()["follow_up"]["type"] == "FOLLOW_UP"

        assert [n.type for n in notifier.sent] == [
            NotificationType.APPOINTMENT_REQUESTED,
            NotificationType.APPOINTMENT_CONFIRMED,
            NotificationType.APPOINTMENT_COMPLETED,
            NotificationType.APPOINTMENT_FOLLOW_UP,
        ]

        mine = await client.get("/api/v1/appointments/patient", headers=auth(patient))
        assert len(mine.json()) == 2

    @pytest.mark.asyncio
    async def test_invalid_transition_is_conflict(self, client, session, patient, provider):
        appointment = await make_appointment(session, patient, provider, at(future_day(), "10:00"))

        response = await client.put(
            f"/api/v1/appointments/{appointment.id}/status",
            json={"status": "COMPLETED"},
            headers=auth(provider),
        )

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

    @pytest.mark.asyncio
    async def test_reschedule_round_trip(self, client, session, patient, provider):
        appointment = await make_appointment(
            session, patient, provider, at(future_day(), "10:00"), AppointmentStatus.CONFIRMED
        )
        proposed = at(future_day(10), "16:00")

        response = await client.put(
            f"/api/v1/appointments/{appointment.id}/status",
            json={"status": "RESCHEDULED", "new_datetime": proposed.isoformat()},
            headers=auth(provider),
        )
        assert response.json()["status"] == "RESCHEDULED"

        response = await client.put(
            f"/api/v1/appointments/{appointment.id}/respond-reschedule",
            json={"action": "accept"},
            headers=auth(patient),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "CONFIRMED"
        assert response.json()["appointment_datetime"].startswith(proposed.isoformat())

    @pytest.mark.asyncio
    async def test_booking_taken_slot(self, client, session, patient, other_patient, provider):
        when = at(future_day(), "10:00")
        await make_appointment(session, other_patient, provider, when, AppointmentStatus.CONFIRMED)

        response = await client.post(
            "/api/v1/appointments",
            json={"provider_id": provider.id, "appointment_datetime": when.isoformat()},
            headers=auth(patient),
        )

        assert response.status_code == 409
        assert response.json()["code"] == "SLOT_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_role_guards(self, client, session, patient, provider):
        appointment = await make_appointment(session, patient, provider, at(future_day(), "10:00"))

        as_patient = await client.put(
            f"/api/v1/appointments/{appointment.id}/status", json={"status": "CONFIRMED"}, headers=auth(patient)
        )
        as_provider = await client.post(
            "/api/v1/appointments",
            json={"provider_id": provider.id, "appointment_datetime": at(future_day(), "12:00").isoformat()},
            headers=auth(provider),
        )

        assert as_patient.status_code == 403
        assert as_provider.status_code == 403

    @pytest.mark.asyncio
    async def test_other_provider_forbidden(self, client, session, patient, provider, psychiatrist):
        appointment = await make_appointment(session, patient, provider, at(future_day(), "10:00"))

        response = await client.put(
            f"/api/v1/appointments/{appointment.id}/status",
            json={"status": "CONFIRMED"},
            headers=auth(psychiatrist),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_video_call_flags(self, client, session, patient, psychiatrist):
        appointment = await make_appointment(
            session, patient, psychiatrist, at(future_day(), "10:00"), AppointmentStatus.CONFIRMED,
            is_video_call=True,
        )

        started = await client.post(f"/api/v1/appointments/{appointment.id}/start-call", headers=auth(psychiatrist))
        ended = await client.post(f"/api/v1/appointments/{appointment.id}/end-call", headers=auth(psychiatrist))

        assert started.json()["is_call_active"] is True
        assert ended.json()["is_call_active"] is False


class TestScheduleRoutes:
    """Provider-managed hours and blocked time."""

    @pytest.mark.asyncio
    async def test_update_and_read_schedule(self, client, provider):
        response = await client.put(
            "/api/v1/schedule",
            json={
                "day_availabilities": [
                    {"day_of_week": "monday", "enabled": True, "start_time": "08:00", "end_time": "12:00"}
                ],
                "appointment_duration_minutes": 20,
            },
            headers=auth(provider),
        )
        assert response.status_code == 200

        schedule = await client.get("/api/v1/schedule", headers=auth(provider))
        assert schedule.json()["appointment_duration_minutes"] == 20
        assert schedule.json()["day_availabilities"][0]["start_time"] == "08:00"

    @pytest.mark.asyncio
    async def test_block_and_unblock(self, client, provider):
        day = future_day()

        created = await client.post(
            "/api/v1/schedule/blocked-slots",
            json={"blocked_date": day.isoformat(), "start_time": "09:00", "end_time": "10:00", "reason": "Meeting"},
            headers=auth(provider),
        )
        assert created.status_code == 201

        slots = await client.get(
            "/api/v1/slots/available",
            params={"provider_id": provider.id, "date": day.isoformat(), "start_time": "09:00", "end_time": "11:00"},
        )
        assert [s["available"] for s in slots.json()["slots"]] == [False, False, True, True]

        deleted = await client.delete(
            f"/api/v1/schedule/blocked-slots/{created.json()['id']}", headers=auth(provider)
        )
        assert deleted.status_code == 204
        listed = await client.get("/api/v1/schedule/blocked-slots", headers=auth(provider))
        assert listed.json() == []

    @pytest.mark.asyncio
    async def test_patients_cannot_manage_schedule(self, client, patient):
        response = await client.get("/api/v1/schedule", headers=auth(patient))
        assert response.status_code == 403


class TestNotificationRoutes:
    """The signed-in user's inbox."""

    @pytest.mark.asyncio
    async def test_list_and_mark_read(self, client, session, patient):
        notification = Notification(
            recipient_id=patient.id, type=NotificationType.APPOINTMENT_CONFIRMED, message="Confirmed"
        )
        session.add(notification)
        await session.commit()

        listed = await client.get("/api/v1/notifications", params={"unread_only": True}, headers=auth(patient))
        assert [n["id"] for n in listed.json()] == [notification.id]

        read = await client.put(f"/api/v1/notifications/{notification.id}/read", headers=auth(patient))
        assert read.json()["is_read"] is True

        unread = await client.get("/api/v1/notifications", params={"unread_only": True}, headers=auth(patient))
        assert unread.json() == []


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
