from datetime import timedelta

from medschedule.models.schedule import Schedule, Slot
from medschedule.services.working_hours_service import generate_schedules


def test_list_schedules(client, doctor, generated, monday):
    response = client.get("/api/schedules", params={"doctor_id": doctor.id})

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["schedules"][0]["date"] == monday.isoformat()
    assert data["schedules"][0]["is_auto_generated"] is True

    response = client.get("/api/schedules", params={"start_date": (monday + timedelta(days=1)).isoformat()})
    assert response.json()["total"] == 0

    response = client.get("/api/schedules", params={"start_date": "tomorrow"})
    assert response.status_code == 400


def test_get_schedule_with_slots(client, generated):
    response = client.get(f"/api/schedules/{generated.id}")

    assert response.status_code == 200
    data = response.json()
    assert [(s["start_time"], s["end_time"]) for s in data["slots"]] == [
        ("09:00", "10:00"),
        ("10:00", "11:00"),
        ("11:00", "12:00"),
    ]
    assert data["slots"][0]["local_start_time"] is None


def test_get_schedule_in_local_time(client, generated):
    response = client.get(f"/api/schedules/{generated.id}", params={"timezone": "Asia/Karachi"})

    data = response.json()
    assert data["local_start_time"] == "14:00"
    assert data["local_end_time"] == "17:00"
    assert data["slots"][0]["start_time"] == "09:00"
    assert data["slots"][0]["local_start_time"] == "14:00"


def test_get_missing_schedule(client):
    response = client.get("/api/schedules/999")
    assert response.status_code == 404
    assert response.json() == {"detail": "Schedule not found"}


def test_available_slots(client, doctor, generated, monday, book_slot):
    book_slot(generated.slots[1])

    response = client.get("/api/schedules/available-slots", params={
        "doctor_id": doctor.id,
        "date": monday.isoformat(),
    })

    assert response.status_code == 200
    data = response.json()
    assert data["date"] == monday.isoformat()
    assert data["timezone"] is None
    assert data["utc_offset"] is None
    assert len(data["schedules"]) == 1
    assert [s["start_time"] for s in data["available_slots"]] == ["09:00", "11:00"]


def test_available_slots_in_local_time(client, doctor, generated, monday):
    response = client.get("/api/schedules/available-slots", params={
        "doctor_id": doctor.id,
        "date": monday.isoformat(),
        "timezone": "Asia/Kolkata",
    })

    data = response.json()
    assert data["timezone"] == "Asia/Kolkata"
    assert data["utc_offset"] == "+05:30"
    assert data["available_slots"][0]["local_start_time"] == "14:30"


def test_available_slots_min_duration(client, db, doctor, make_rule, monday):
    make_rule(doctor, 1, "09:00", "10:00", slot_duration=25)
    generate_schedules(db, doctor.id, monday.isoformat(), (monday + timedelta(days=1)).isoformat())

    response = client.get("/api/schedules/available-slots", params={
        "doctor_id": doctor.id,
        "date": monday.isoformat(),
        "min_duration": 20,
    })

    assert [(s["start_time"], s["end_time"]) for s in response.json()["available_slots"]] == [
        ("09:00", "09:25"),
        ("09:25", "09:50"),
    ]


def test_available_slots_keep_overnight_order(client, db, doctor, make_rule, monday):
    make_rule(doctor, 1, "22:00", "02:00", slot_duration=60)
    generate_schedules(db, doctor.id, monday.isoformat(), (monday + timedelta(days=1)).isoformat())

    response = client.get("/api/schedules/available-slots", params={
        "doctor_id": doctor.id,
        "date": monday.isoformat(),
    })

    assert [s["start_time"] for s in response.json()["available_slots"]] == ["22:00", "23:00", "00:00", "01:00"]


def test_available_slots_errors(client, doctor, monday):
    params = {"doctor_id": doctor.id, "date": monday.isoformat()}

    response = client.get("/api/schedules/available-slots", params=dict(params, timezone="Atlantis/Capital"))
    assert response.status_code == 400

    response = client.get("/api/schedules/available-slots", params=dict(params, date="12/23/2024"))
    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid date. Use YYYY-MM-DD format"}

    response = client.get("/api/schedules/available-slots", params=dict(params, doctor_id=999))
    assert response.status_code == 404

    response = client.get("/api/schedules/available-slots", params={"doctor_id": doctor.id})
    assert response.status_code == 422

    response = client.get("/api/schedules/available-slots", params=params)
    assert response.status_code == 200
    assert response.json()["available_slots"] == []


def test_delete_schedule(client, db, generated):
    schedule_id = generated.id

    response = client.delete(f"/api/schedules/{schedule_id}")

    assert response.status_code == 200
    assert response.json() == {"message": "Schedule deleted successfully"}
    assert db.query(Schedule).count() == 0
    assert db.query(Slot).count() == 0
    assert client.delete(f"/api/schedules/{schedule_id}").status_code == 404


def test_delete_booked_schedule_is_refused(client, db, generated, book_slot):
    book_slot(generated.slots[0])

    response = client.delete(f"/api/schedules/{generated.id}")

    assert response.status_code == 412
    assert response.json() == {"detail": "Cannot delete schedule with existing appointments"}
    assert db.query(Schedule).count() == 1


def test_utc_offset_matches_rendered_local_times(client, doctor, generated, monday):
    response = client.get("/api/schedules/available-slots", params={
        "doctor_id": doctor.id,
        "date": monday.isoformat(),
        "timezone": "America/New_York",
    })

    data = response.json()
    # Local times use the summer offset whatever the current date is
    assert data["utc_offset"] == "-04:00"
    assert data["available_slots"][0]["local_start_time"] == "05:00"


def test_invalid_timezone_is_rejected_on_empty_pages(client):
    for path in ("/api/schedules", "/api/working-hours"):
        response = client.get(path, params={"timezone": "Europe"})
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid timezone: Europe"}

    response = client.get("/api/schedules/999", params={"timezone": "Nowhere/City"})
    assert response.status_code == 400
