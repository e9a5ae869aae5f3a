"""
Tests for role-scoped appointment updates.
"""

from datetime import date, datetime, timedelta, timezone
from itertools import combinations

from sqlmodel import Session, select

from app.models.appointment import Appointment
from app.services.overlap import overlaps

FUTURE_DAY = date(2030, 6, 10)

OLENA = "olena@wellness.test"
TARAS = "taras@wellness.test"
ADMIN = "admin@wellness.test"
IRYNA = "iryna@wellness.test"
PETRO = "petro@wellness.test"


def _iso(hour, minute=0, day=FUTURE_DAY):
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc).isoformat()


def book(client, headers, service_id, specialist_id=None, hour=10, minute=0):
    body = {"service_id": service_id, "start_time": _iso(hour, minute)}
    if specialist_id is not None:
        body["specialist_id"] = specialist_id
    response = client.post("/appointments/", json=body, headers=headers)
    assert response.status_code == 201, response.json()
    return response.json()


def put(client, headers, appointment_id, body):
    return client.put(f"/appointments/{appointment_id}", json=body, headers=headers)


class TestClientCancel:
    def test_client_cancels_own_appointment(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        response = put(client, auth(OLENA), appt["id"], {"status": "cancelled_by_client"})

        assert response.status_code == 200
        assert response.json() == {"id": appt["id"], "status": "cancelled_by_client"}

    def test_client_cancels_confirmed_appointment(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)
        put(client, auth(ADMIN), appt["id"], {"status": "confirmed"})

        response = put(client, auth(OLENA), appt["id"], {"status": "cancelled_by_client"})

        assert response.status_code == 200

    def test_cannot_cancel_another_clients_appointment(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        response = put(client, auth(TARAS), appt["id"], {"status": "cancelled_by_client"})

        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

    def test_cannot_cancel_completed_appointment(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)
        put(client, auth(IRYNA), appt["id"], {"status": "completed"})

        response = put(client, auth(OLENA), appt["id"], {"status": "cancelled_by_client"})

        assert response.status_code == 403

    def test_client_cannot_confirm(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        response = put(client, auth(OLENA), appt["id"], {"status": "confirmed"})

        assert response.status_code == 403

    def test_client_cannot_edit_other_fields(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        response = put(
            client, auth(OLENA), appt["id"],
            {"status": "cancelled_by_client", "client_notes": "running late"},
        )

        assert response.status_code == 403


class TestSpecialistUpdates:
    def test_assigned_specialist_completes(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        response = put(client, auth(IRYNA), appt["id"], {"status": "completed", "admin_notes": "went well"})

        assert response.status_code == 200
        assert response.json() == {
            "id": appt["id"],
            "admin_notes": "went well",
            "status": "completed",
        }

    def test_assigned_specialist_marks_no_show(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        assert put(client, auth(IRYNA), appt["id"], {"status": "no_show"}).status_code == 200

    def test_specialist_edits_notes_only(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        response = put(client, auth(IRYNA), appt["id"], {"admin_notes": "prefers lavender oil"})

        assert response.status_code == 200
        detail = client.get(f"/appointments/{appt['id']}", headers=auth(OLENA)).json()
        assert detail["admin_notes"] == "prefers lavender oil"
        assert detail["status"] == "pending"

    def test_specialist_cannot_confirm(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        assert put(client, auth(IRYNA), appt["id"], {"status": "confirmed"}).status_code == 403

    def test_other_specialist_is_forbidden(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        assert put(client, auth(PETRO), appt["id"], {"status": "completed"}).status_code == 403

    def test_specialist_cannot_reschedule(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        response = put(client, auth(IRYNA), appt["id"], {"start_time": _iso(15)})

        assert response.status_code == 403


class TestAdminUpdates:
    def test_admin_confirms(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        response = put(client, auth(ADMIN), appt["id"], {"status": "confirmed"})

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"

    def test_empty_patch_is_rejected(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        response = put(client, auth(ADMIN), appt["id"], {})

        assert response.status_code == 400

    def test_unknown_status_is_rejected(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        response = put(client, auth(ADMIN), appt["id"], {"status": "archived"})

        assert response.status_code == 400

    def test_status_cannot_be_cleared(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        assert put(client, auth(ADMIN), appt["id"], {"status": None}).status_code == 400

    def test_missing_appointment_is_not_found(self, client, auth, seeded):
        assert put(client, auth(ADMIN), 4242, {"status": "confirmed"}).status_code == 404

    def test_reschedule_to_free_time(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna, hour=10)

        response = put(client, auth(ADMIN), appt["id"], {"start_time": _iso(14)})

        assert response.status_code == 200
        assert datetime.fromisoformat(response.json()["start_time"]) == datetime.fromisoformat(_iso(14))

    def test_reschedule_within_own_slot_is_allowed(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna, hour=10)

        response = put(client, auth(ADMIN), appt["id"], {"start_time": _iso(10, 15)})

        assert response.status_code == 200

    def test_reschedule_into_overlap_is_a_conflict(self, client, auth, seeded):
        book(client, auth(OLENA), seeded.massage, seeded.iryna, hour=10)
        other = book(client, auth(TARAS), seeded.massage, seeded.iryna, hour=12)

        response = put(client, auth(ADMIN), other["id"], {"start_time": _iso(10, 15)})

        assert response.status_code == 409
        detail = client.get(f"/appointments/{other['id']}", headers=auth(ADMIN)).json()
        assert datetime.fromisoformat(detail["start_time"]) == datetime.fromisoformat(_iso(12))

    def test_reassign_to_busy_specialist_is_a_conflict(self, client, auth, seeded):
        book(client, auth(OLENA), seeded.massage, seeded.iryna, hour=10)
        other = book(client, auth(TARAS), seeded.massage, seeded.petro, hour=10)

        response = put(client, auth(ADMIN), other["id"], {"specialist_id": seeded.iryna})

        assert response.status_code == 409

    def test_reassign_requires_specialist_to_provide_service(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.deep_tissue, seeded.iryna)

        response = put(client, auth(ADMIN), appt["id"], {"specialist_id": seeded.petro})

        assert response.status_code == 400

    def test_change_service_recopies_duration(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna, hour=10)

        response = put(client, auth(ADMIN), appt["id"], {"service_id": seeded.deep_tissue})

        assert response.status_code == 200
        assert response.json() == {
            "id": appt["id"],
            "duration_minutes": 60,
            "service_id": seeded.deep_tissue,
        }

    def test_longer_service_into_next_booking_is_a_conflict(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna, hour=10)
        book(client, auth(TARAS), seeded.massage, seeded.iryna, hour=10, minute=30)

        response = put(client, auth(ADMIN), appt["id"], {"service_id": seeded.deep_tissue})

        assert response.status_code == 409

    def test_inactive_service_is_rejected(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        assert put(client, auth(ADMIN), appt["id"], {"service_id": seeded.hot_stone}).status_code == 400

    def test_reopening_cancelled_booking_into_overlap_is_a_conflict(self, client, auth, seeded):
        first = book(client, auth(OLENA), seeded.massage, seeded.iryna, hour=10)
        put(client, auth(OLENA), first["id"], {"status": "cancelled_by_client"})
        book(client, auth(TARAS), seeded.massage, seeded.iryna, hour=10)

        response = put(client, auth(ADMIN), first["id"], {"status": "pending"})

        assert response.status_code == 409

    def test_assigning_unassigned_booking_checks_overlap(self, client, auth, seeded):
        book(client, auth(OLENA), seeded.massage, seeded.iryna, hour=10)
        unassigned = book(client, auth(TARAS), seeded.massage, hour=10)

        assert put(client, auth(ADMIN), unassigned["id"], {"specialist_id": seeded.iryna}).status_code == 409
        assert put(client, auth(ADMIN), unassigned["id"], {"specialist_id": seeded.petro}).status_code == 200

    def test_admin_moves_appointment_to_another_client(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        response = put(client, auth(ADMIN), appt["id"], {"client_id": seeded.taras, "client_notes": "moved"})

        assert response.status_code == 200
        mine = client.get("/appointments/my", headers=auth(TARAS)).json()
        assert [a["id"] for a in mine] == [appt["id"]]
        assert mine[0]["client_notes"] == "moved"

    def test_unknown_client_is_rejected(self, client, auth, seeded):
        appt = book(client, auth(OLENA), seeded.massage, seeded.iryna)

        assert put(client, auth(ADMIN), appt["id"], {"client_id": 4242}).status_code == 400


class TestNoOverlapInvariant:
    def test_no_two_active_bookings_intersect(self, client, auth, engine, seeded, settings):
        attempts = [
            (OLENA, seeded.massage, 9, 0),
            (TARAS, seeded.deep_tissue, 9, 0),
            (TARAS, seeded.deep_tissue, 9, 30),
            (OLENA, seeded.deep_tissue, 10, 0),
            (TARAS, seeded.massage, 10, 30),
            (OLENA, seeded.massage, 11, 0),
            (TARAS, seeded.massage, 11, 0),
        ]
        for email, service_id, hour, minute in attempts:
            client.post(
                "/appointments/",
                json={"service_id": service_id, "specialist_id": seeded.iryna, "start_time": _iso(hour, minute)},
                headers=auth(email),
            )
        ids = [a["id"] for a in client.get("/appointments/", headers=auth(ADMIN)).json()]
        for appointment_id in ids:
            put(client, auth(ADMIN), appointment_id, {"start_time": _iso(9, 15)})

        with Session(engine) as session:
            active = session.exec(
                select(Appointment).where(
                    Appointment.specialist_id == seeded.iryna,
                    Appointment.status.not_in(list(settings.overlap_ignored_statuses)),
                )
            ).all()

        assert len(active) >= 3
        for a, b in combinations(active, 2):
            assert not overlaps(
                a.start_time, a.start_time + timedelta(minutes=a.duration_minutes),
                b.start_time, b.start_time + timedelta(minutes=b.duration_minutes),
            )
