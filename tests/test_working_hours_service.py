from datetime import date

import pytest

from medschedule.core.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    PreconditionFailedError,
)
from medschedule.models.schedule import Schedule, Slot
from medschedule.models.working_hours import WorkingHours
from medschedule.schemas import (
    WorkingHoursCreate,
    WorkingHoursCreateMultiple,
    WorkingHoursDay,
    WorkingHoursUpdate,
)
from medschedule.services import working_hours_service

TODAY = date(2024, 12, 1)


def payload(doctor, **overrides):
    fields = {
        "doctor_id": doctor.id,
        "day_of_week": 1,
        "start_time": "09:00",
        "end_time": "17:00",
        "slot_duration": 30,
        "break_duration": 0,
    }
    fields.update(overrides)
    return WorkingHoursCreate(**fields)


def test_create_stores_utc_times(db, doctor):
    wh = working_hours_service.create_working_hours(db, payload(doctor, timezone="Asia/Karachi"))

    assert (wh.start_time, wh.end_time) == ("04:00", "12:00")
    assert wh.day_of_week == 1
    assert wh.is_active is True


def test_create_allows_local_range_that_crosses_utc_midnight(db, doctor):
    wh = working_hours_service.create_working_hours(
        db, payload(doctor, start_time="10:00", end_time="19:00", timezone="America/Los_Angeles")
    )

    assert (wh.start_time, wh.end_time) == ("17:00", "02:00")


def test_create_without_timezone_normalizes_times(db, doctor):
    wh = working_hours_service.create_working_hours(db, payload(doctor, start_time="8:00", end_time="16:30"))

    assert (wh.start_time, wh.end_time) == ("08:00", "16:30")


def test_create_rejects_second_rule_for_same_day(db, doctor):
    working_hours_service.create_working_hours(db, payload(doctor))

    with pytest.raises(ConflictError):
        working_hours_service.create_working_hours(db, payload(doctor, start_time="10:00"))
    assert db.query(WorkingHours).count() == 1


@pytest.mark.parametrize("start, end", [("9am", "17:00"), ("09:00", "24:00"), ("", "17:00")])
def test_create_rejects_bad_time_format(db, doctor, start, end):
    with pytest.raises(InvalidInputError, match="HH:MM"):
        working_hours_service.create_working_hours(db, payload(doctor, start_time=start, end_time=end))


def test_create_rejects_unknown_timezone(db, doctor):
    with pytest.raises(InvalidInputError, match="Invalid timezone"):
        working_hours_service.create_working_hours(db, payload(doctor, timezone="Mars/Olympus"))


def test_create_for_unknown_or_unavailable_doctor(db, make_doctor, patient):
    with pytest.raises(NotFoundError):
        working_hours_service.create_working_hours(db, payload(patient))

    away = make_doctor(is_active=False)
    with pytest.raises(InvalidInputError, match="not available"):
        working_hours_service.create_working_hours(db, payload(away))

    assert db.query(WorkingHours).count() == 0


def test_create_multiple(db, doctor):
    data = WorkingHoursCreateMultiple(
        doctor_id=doctor.id,
        timezone="Europe/Istanbul",
        working_hours=[
            WorkingHoursDay(day_of_week=1, start_time="09:00", end_time="17:00", slot_duration=30),
            WorkingHoursDay(day_of_week=3, start_time="13:00", end_time="18:00", slot_duration=20, break_duration=5),
        ],
    )

    created = working_hours_service.create_multiple_working_hours(db, data)

    assert [(wh.day_of_week, wh.start_time, wh.end_time) for wh in created] == [
        (1, "06:00", "14:00"),
        (3, "10:00", "15:00"),
    ]


def test_create_multiple_rejects_duplicate_days(db, doctor):
    data = WorkingHoursCreateMultiple(
        doctor_id=doctor.id,
        working_hours=[
            WorkingHoursDay(day_of_week=2, start_time="09:00", end_time="12:00", slot_duration=30),
            WorkingHoursDay(day_of_week=2, start_time="13:00", end_time="17:00", slot_duration=30),
        ],
    )

    with pytest.raises(InvalidInputError, match="Duplicate days"):
        working_hours_service.create_multiple_working_hours(db, data)
    assert db.query(WorkingHours).count() == 0


def test_create_multiple_is_all_or_nothing(db, doctor, make_rule):
    make_rule(doctor, 4, "09:00", "12:00")
    data = WorkingHoursCreateMultiple(
        doctor_id=doctor.id,
        working_hours=[
            WorkingHoursDay(day_of_week=2, start_time="09:00", end_time="12:00", slot_duration=30),
            WorkingHoursDay(day_of_week=4, start_time="13:00", end_time="17:00", slot_duration=30),
        ],
    )

    with pytest.raises(ConflictError, match="4"):
        working_hours_service.create_multiple_working_hours(db, data)
    assert db.query(WorkingHours).count() == 1


def test_create_multiple_validates_every_day_first(db, doctor):
    data = WorkingHoursCreateMultiple(
        doctor_id=doctor.id,
        working_hours=[
            WorkingHoursDay(day_of_week=1, start_time="09:00", end_time="12:00", slot_duration=30),
            WorkingHoursDay(day_of_week=5, start_time="25:00", end_time="12:00", slot_duration=30),
        ],
    )

    with pytest.raises(InvalidInputError, match="for day 5"):
        working_hours_service.create_multiple_working_hours(db, data)
    assert db.query(WorkingHours).count() == 0


def test_list_filters_and_pages(db, make_doctor, make_rule):
    first, second = make_doctor(), make_doctor()
    for day in (1, 2, 3):
        make_rule(first, day, "09:00", "12:00", is_active=day != 3)
    make_rule(second, 1, "09:00", "12:00")

    items, total = working_hours_service.list_working_hours(db, doctor_id=first.id)
    assert total == 3
    assert [wh.day_of_week for wh in items] == [1, 2, 3]

    items, total = working_hours_service.list_working_hours(db, day_of_week=1)
    assert total == 2

    items, total = working_hours_service.list_working_hours(db, doctor_id=first.id, is_active=False)
    assert [wh.day_of_week for wh in items] == [3]

    items, total = working_hours_service.list_working_hours(db, page=2, limit=3)
    assert total == 4
    assert len(items) == 1


def test_get_missing_rule(db):
    with pytest.raises(NotFoundError):
        working_hours_service.get_working_hours(db, 42)


def test_update_converts_times_and_keeps_other_fields(db, doctor, make_rule):
    rule = make_rule(doctor, 1, "09:00", "12:00", slot_duration=30)

    updated = working_hours_service.update_working_hours(
        db, rule.id, WorkingHoursUpdate(start_time="10:00", end_time="15:00", timezone="Asia/Karachi")
    )

    assert (updated.start_time, updated.end_time) == ("05:00", "10:00")
    assert updated.slot_duration == 30

    updated = working_hours_service.update_working_hours(db, rule.id, WorkingHoursUpdate(is_active=False))
    assert updated.is_active is False
    assert updated.start_time == "05:00"


def test_update_rejects_bad_input(db, doctor, make_rule):
    rule = make_rule(doctor, 1, "09:00", "12:00", slot_duration=30)

    with pytest.raises(InvalidInputError, match="start time"):
        working_hours_service.update_working_hours(db, rule.id, WorkingHoursUpdate(start_time="9.30"))
    with pytest.raises(InvalidInputError, match="cannot be null"):
        working_hours_service.update_working_hours(
            db, rule.id, WorkingHoursUpdate(slot_duration=45, is_active=None)
        )

    db.refresh(rule)
    assert rule.slot_duration == 30
    assert rule.is_active is True


def test_update_missing_rule(db):
    with pytest.raises(NotFoundError):
        working_hours_service.update_working_hours(db, 42, WorkingHoursUpdate(is_active=False))


def test_delete_removes_generated_schedules(db, doctor, make_rule):
    rule = make_rule(doctor, 1, "09:00", "12:00")
    working_hours_service.generate_schedules(db, doctor.id, "2024-12-23", "2024-12-31", today=TODAY)
    assert db.query(Schedule).count() == 2

    working_hours_service.delete_working_hours(db, rule.id)

    assert db.query(WorkingHours).count() == 0
    assert db.query(Schedule).count() == 0
    assert db.query(Slot).count() == 0


def test_delete_refuses_when_slots_are_booked(db, doctor, make_rule, book_slot):
    rule = make_rule(doctor, 1, "09:00", "12:00")
    result = working_hours_service.generate_schedules(db, doctor.id, "2024-12-23", "2024-12-31", today=TODAY)
    book_slot(result.generated[1].slots[2])

    with pytest.raises(PreconditionFailedError):
        working_hours_service.delete_working_hours(db, rule.id)

    assert db.query(WorkingHours).count() == 1
    assert db.query(Schedule).count() == 2


def test_delete_missing_rule(db):
    with pytest.raises(NotFoundError):
        working_hours_service.delete_working_hours(db, 42)
