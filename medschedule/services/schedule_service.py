import logging
from datetime import date
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from medschedule.core.exceptions import ConflictError, InvalidInputError, NotFoundError, PreconditionFailedError
from medschedule.core.slot_generator import SlotWindow, period_contains, periods_overlap, working_period
from medschedule.core.time_utils import (
    ClockTime,
    date_string_to_utc,
    is_date_in_past,
    is_valid_time_format,
    normalize_time,
)
from medschedule.models.appointment import Appointment, AppointmentStatus
from medschedule.models.schedule import Schedule, Slot
from medschedule.models.user import User
from medschedule.schemas import ScheduleCreate, ScheduleUpdate, SlotCreate, SlotUpdate

logger = logging.getLogger(__name__)


def get_schedulable_doctor(db: Session, doctor_id: int) -> User:
    doctor = db.query(User).filter(
        User.id == doctor_id,
        User.is_doctor == True
    ).first()

    if not doctor:
        raise NotFoundError("Doctor not found")
    if not doctor.is_active or not doctor.is_available:
        raise InvalidInputError("Doctor is not available for scheduling")

    return doctor


def has_booked_slots(db: Session, schedule_ids: Iterable[int]) -> bool:
    """True if any slot of the given schedules carries a live appointment."""
    schedule_ids = list(schedule_ids)
    if not schedule_ids:
        return False

    booked = db.query(Appointment.id).join(
        Slot, Appointment.slot_id == Slot.id
    ).filter(
        Slot.schedule_id.in_(schedule_ids),
        Appointment.status != AppointmentStatus.CANCELLED
    ).first()
    return booked is not None


def parse_date(value: str, label: str) -> date:
    try:
        return date_string_to_utc(value).date()
    except ValueError:
        raise InvalidInputError(f"Invalid {label}. Use YYYY-MM-DD format")


def get_schedule(db: Session, schedule_id: int) -> Schedule:
    schedule = db.query(Schedule).options(
        selectinload(Schedule.slots)
    ).filter(Schedule.id == schedule_id).first()

    if not schedule:
        raise NotFoundError("Schedule not found")

    return schedule


def list_schedules(
    db: Session,
    doctor_id: Optional[int] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    is_available: Optional[bool] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Schedule], int]:
    query = db.query(Schedule)

    if doctor_id is not None:
        query = query.filter(Schedule.doctor_id == doctor_id)
    if is_available is not None:
        query = query.filter(Schedule.is_available == is_available)
    if start_date:
        query = query.filter(Schedule.date >= parse_date(start_date, "start date"))
    if end_date:
        query = query.filter(Schedule.date <= parse_date(end_date, "end date"))

    total = query.count()
    schedules = query.order_by(
        Schedule.date.asc(),
        Schedule.start_time.asc()
    ).offset((page - 1) * limit).limit(limit).all()

    return schedules, total


def delete_schedule(db: Session, schedule_id: int) -> None:
    # Lock the row so the booked check and the delete see the same state
    schedule = db.query(Schedule).filter(Schedule.id == schedule_id).with_for_update().first()

    if not schedule:
        raise NotFoundError("Schedule not found")

    if has_booked_slots(db, [schedule.id]):
        db.rollback()
        raise PreconditionFailedError("Cannot delete schedule with existing appointments")

    doctor_id, schedule_date = schedule.doctor_id, schedule.date
    db.delete(schedule)
    db.commit()
    logger.info("Deleted schedule %s for doctor %s on %s", schedule_id, doctor_id, schedule_date)


def get_available_slots(
    db: Session,
    doctor_id: int,
    date_str: str,
    min_duration: Optional[int] = None,
) -> Tuple[List[Schedule], List[Slot]]:
    get_schedulable_doctor(db, doctor_id)
    target_date = parse_date(date_str, "date")

    schedules = db.query(Schedule).options(
        selectinload(Schedule.slots)
    ).filter(
        Schedule.doctor_id == doctor_id,
        Schedule.date == target_date,
        Schedule.is_available == True
    ).order_by(Schedule.start_time.asc()).all()

    available_slots = []
    for schedule in schedules:
        # Slots keep generation order, which runs through midnight for overnight shifts
        for slot in schedule.slots:
            if not slot.is_available:
                continue
            if min_duration:
                duration = ClockTime.parse(slot.end_time).minutes - ClockTime.parse(slot.start_time).minutes
                if duration < min_duration:
                    continue
            available_slots.append(slot)

    return schedules, available_slots


def _check_time_format(value, message: str) -> str:
    if not is_valid_time_format(value):
        raise InvalidInputError(message)
    return normalize_time(value)


def _same_day_window(start_time: str, end_time: str) -> SlotWindow:
    window = SlotWindow(ClockTime.parse(start_time), ClockTime.parse(end_time))
    if window.start_time >= window.end_time:
        raise InvalidInputError("Start time must be before end time")
    return window


def _slot_window(slot: Slot) -> SlotWindow:
    return SlotWindow(ClockTime.parse(slot.start_time), ClockTime.parse(slot.end_time))


def _doctor_schedules_on(db: Session, doctor_id: int, day: date, exclude_id: Optional[int] = None) -> List[Schedule]:
    query = db.query(Schedule).filter(Schedule.doctor_id == doctor_id, Schedule.date == day)
    if exclude_id is not None:
        query = query.filter(Schedule.id != exclude_id)
    return query.all()


def create_schedule(db: Session, data: ScheduleCreate, today: Optional[date] = None) -> Schedule:
    """Manually add a schedule outside of working-hours generation."""
    get_schedulable_doctor(db, data.doctor_id)
    day = parse_date(data.date, "date")
    if is_date_in_past(data.date, today):
        raise InvalidInputError("Schedule date cannot be in the past")

    start_time = _check_time_format(data.start_time, "Invalid time format. Use HH:MM format")
    end_time = _check_time_format(data.end_time, "Invalid time format. Use HH:MM format")
    _same_day_window(start_time, end_time)

    period = working_period(start_time, end_time)
    for other in _doctor_schedules_on(db, data.doctor_id, day):
        if periods_overlap(period, working_period(other.start_time, other.end_time)):
            raise ConflictError("Schedule conflicts with existing schedule")

    schedule = Schedule(
        doctor_id=data.doctor_id,
        date=day,
        start_time=start_time,
        end_time=end_time,
        is_available=True,
        max_appointments=data.max_appointments,
        is_auto_generated=False
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    logger.info("Created manual schedule %s for doctor %s on %s", schedule.id, schedule.doctor_id, day)
    return schedule


def update_schedule(db: Session, schedule_id: int, data: ScheduleUpdate) -> Schedule:
    schedule = get_schedule(db, schedule_id)
    updates = data.model_dump(exclude_unset=True)

    null_fields = [key for key, value in updates.items() if value is None]
    if null_fields:
        raise InvalidInputError(f"Fields cannot be null: {', '.join(null_fields)}")

    if "start_time" in updates or "end_time" in updates:
        if "start_time" in updates:
            updates["start_time"] = _check_time_format(
                updates["start_time"], "Invalid start time format. Use HH:MM format"
            )
        if "end_time" in updates:
            updates["end_time"] = _check_time_format(
                updates["end_time"], "Invalid end time format. Use HH:MM format"
            )
        # Generated schedules may run past midnight, so any pair of times is a valid period
        period = working_period(
            updates.get("start_time", schedule.start_time),
            updates.get("end_time", schedule.end_time)
        )

        for other in _doctor_schedules_on(db, schedule.doctor_id, schedule.date, exclude_id=schedule.id):
            if periods_overlap(period, working_period(other.start_time, other.end_time)):
                raise ConflictError("Updated schedule conflicts with existing schedule")

        if not all(period_contains(period, _slot_window(slot)) for slot in schedule.slots):
            raise InvalidInputError("Existing slots fall outside the updated schedule time")

    for key, value in updates.items():
        setattr(schedule, key, value)

    db.commit()
    db.refresh(schedule)
    return schedule


def get_slot(db: Session, slot_id: int) -> Slot:
    slot = db.query(Slot).filter(Slot.id == slot_id).first()
    if not slot:
        raise NotFoundError("Slot not found")
    return slot


def is_slot_booked(db: Session, slot_id: int) -> bool:
    booked = db.query(Appointment.id).filter(
        Appointment.slot_id == slot_id,
        Appointment.status != AppointmentStatus.CANCELLED
    ).first()
    return booked is not None


def _check_slot_window(
    schedule: Schedule, window: SlotWindow, conflict_message: str, exclude_id: Optional[int] = None
) -> None:
    if not period_contains(working_period(schedule.start_time, schedule.end_time), window):
        raise InvalidInputError("Slot time must be within schedule time")
    for sibling in schedule.slots:
        if sibling.id != exclude_id and window.overlaps(_slot_window(sibling)):
            raise ConflictError(conflict_message)


def create_slot(db: Session, data: SlotCreate) -> Slot:
    schedule = get_schedule(db, data.schedule_id)
    start_time = _check_time_format(data.start_time, "Invalid time format. Use HH:MM format")
    end_time = _check_time_format(data.end_time, "Invalid time format. Use HH:MM format")
    window = _same_day_window(start_time, end_time)
    _check_slot_window(schedule, window, "Slot conflicts with existing slot")

    slot = Slot(schedule_id=schedule.id, start_time=start_time, end_time=end_time, is_available=True)
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


def update_slot(db: Session, slot_id: int, data: SlotUpdate) -> Slot:
    slot = db.query(Slot).filter(Slot.id == slot_id).with_for_update().first()
    if not slot:
        raise NotFoundError("Slot not found")

    updates = data.model_dump(exclude_unset=True)
    null_fields = [key for key, value in updates.items() if value is None]
    if null_fields:
        raise InvalidInputError(f"Fields cannot be null: {', '.join(null_fields)}")

    moves = "start_time" in updates or "end_time" in updates
    # A booked slot may still be closed, but not moved or reopened
    if (moves or updates.get("is_available") is True) and is_slot_booked(db, slot.id):
        db.rollback()
        raise PreconditionFailedError("Cannot modify slot with existing appointment")

    if moves:
        if "start_time" in updates:
            updates["start_time"] = _check_time_format(
                updates["start_time"], "Invalid start time format. Use HH:MM format"
            )
        if "end_time" in updates:
            updates["end_time"] = _check_time_format(
                updates["end_time"], "Invalid end time format. Use HH:MM format"
            )
        window = _same_day_window(
            updates.get("start_time", slot.start_time),
            updates.get("end_time", slot.end_time)
        )
        _check_slot_window(slot.schedule, window, "Updated slot conflicts with existing slot", exclude_id=slot.id)

    for key, value in updates.items():
        setattr(slot, key, value)

    db.commit()
    db.refresh(slot)
    return slot


def delete_slot(db: Session, slot_id: int) -> None:
    slot = db.query(Slot).filter(Slot.id == slot_id).with_for_update().first()
    if not slot:
        raise NotFoundError("Slot not found")

    if is_slot_booked(db, slot.id):
        db.rollback()
        raise PreconditionFailedError("Cannot delete slot with existing appointment")

    db.delete(slot)
    db.commit()
    logger.info("Deleted slot %s", slot_id)
