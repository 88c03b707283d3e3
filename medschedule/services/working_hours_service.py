import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from medschedule import config
from medschedule.core.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    PreconditionFailedError,
    SchedulingError,
)
from medschedule.core.slot_generator import generate_slots, working_period
from medschedule.core.time_utils import (
    is_date_in_past,
    is_valid_time_format,
    is_valid_time_range,
    iter_utc_dates,
    normalize_time,
    to_iso_date_string,
    utc_day_of_week,
)
from medschedule.core.timezone_converter import is_valid_timezone, local_time_to_utc
from medschedule.models.schedule import Schedule, Slot
from medschedule.models.working_hours import WorkingHours
from medschedule.schemas import (
    WorkingHoursCreate,
    WorkingHoursCreateMultiple,
    WorkingHoursUpdate,
)
from medschedule.services.schedule_service import get_schedulable_doctor, has_booked_slots, parse_date

logger = logging.getLogger(__name__)


def _check_timezone(timezone: Optional[str]) -> Optional[str]:
    """Return the zone to convert from, or None when times are already UTC."""
    if not timezone or timezone == "UTC":
        return None
    if not is_valid_timezone(timezone):
        raise InvalidInputError(f"Invalid timezone: {timezone}")
    return timezone


def _to_utc(time_string: str, timezone: Optional[str]) -> str:
    if timezone is None:
        return normalize_time(time_string)
    return local_time_to_utc(time_string, timezone)


def _resolve_times(start_time: str, end_time: str, timezone: Optional[str], label: str = "") -> Tuple[str, str]:
    if not is_valid_time_format(start_time) or not is_valid_time_format(end_time):
        raise InvalidInputError(f"Invalid time format{label}. Use HH:MM format")

    # A local range can land across UTC midnight, e.g. 10:00-19:00 CST is 16:00-01:00 UTC
    if not is_valid_time_range(start_time, end_time, allow_midnight_crossover=True):
        raise InvalidInputError(f"Invalid time range{label}")

    utc_start, utc_end = _to_utc(start_time, timezone), _to_utc(end_time, timezone)
    if timezone:
        logger.info(
            "Working hours%s converted from %s: %s-%s -> %s-%s UTC",
            label, timezone, start_time, end_time, utc_start, utc_end
        )
    return utc_start, utc_end


def create_working_hours(db: Session, data: WorkingHoursCreate) -> WorkingHours:
    get_schedulable_doctor(db, data.doctor_id)
    timezone = _check_timezone(data.timezone)
    start_time, end_time = _resolve_times(data.start_time, data.end_time, timezone)

    existing = db.query(WorkingHours).filter(
        WorkingHours.doctor_id == data.doctor_id,
        WorkingHours.day_of_week == data.day_of_week
    ).first()
    if existing:
        raise ConflictError("Working hours already exist for this day")

    db_working_hours = WorkingHours(
        doctor_id=data.doctor_id,
        day_of_week=data.day_of_week,
        start_time=start_time,
        end_time=end_time,
        slot_duration=data.slot_duration,
        break_duration=data.break_duration,
        is_active=data.is_active
    )

    db.add(db_working_hours)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Working hours already exist for this day")
    db.refresh(db_working_hours)
    return db_working_hours


def create_multiple_working_hours(db: Session, data: WorkingHoursCreateMultiple) -> List[WorkingHours]:
    get_schedulable_doctor(db, data.doctor_id)
    timezone = _check_timezone(data.timezone)

    days = [wh.day_of_week for wh in data.working_hours]
    duplicates = sorted({day for day in days if days.count(day) > 1})
    if duplicates:
        raise InvalidInputError(f"Duplicate days in request: {', '.join(map(str, duplicates))}")

    # Validate everything before touching the database
    resolved = []
    for wh in data.working_hours:
        label = f" for day {wh.day_of_week}"
        resolved.append((wh, _resolve_times(wh.start_time, wh.end_time, timezone, label)))

    existing = db.query(WorkingHours).filter(
        WorkingHours.doctor_id == data.doctor_id,
        WorkingHours.day_of_week.in_(days)
    ).all()
    if existing:
        existing_days = sorted(wh.day_of_week for wh in existing)
        raise ConflictError(f"Working hours already exist for days: {', '.join(map(str, existing_days))}")

    created = []
    for wh, (start_time, end_time) in resolved:
        db_working_hours = WorkingHours(
            doctor_id=data.doctor_id,
            day_of_week=wh.day_of_week,
            start_time=start_time,
            end_time=end_time,
            slot_duration=wh.slot_duration,
            break_duration=wh.break_duration,
            is_active=wh.is_active
        )
        db.add(db_working_hours)
        created.append(db_working_hours)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Working hours already exist for one of the requested days")

    for db_working_hours in created:
        db.refresh(db_working_hours)
    return created


def get_working_hours(db: Session, working_hours_id: int) -> WorkingHours:
    working_hours = db.query(WorkingHours).filter(WorkingHours.id == working_hours_id).first()
    if not working_hours:
        raise NotFoundError("Working hours not found")
    return working_hours


def list_working_hours(
    db: Session,
    doctor_id: Optional[int] = None,
    day_of_week: Optional[int] = None,
    is_active: Optional[bool] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[WorkingHours], int]:
    query = db.query(WorkingHours)

    if doctor_id is not None:
        query = query.filter(WorkingHours.doctor_id == doctor_id)
    if day_of_week is not None:
        query = query.filter(WorkingHours.day_of_week == day_of_week)
    if is_active is not None:
        query = query.filter(WorkingHours.is_active == is_active)

    total = query.count()
    working_hours = query.order_by(
        WorkingHours.doctor_id.asc(),
        WorkingHours.day_of_week.asc()
    ).offset((page - 1) * limit).limit(limit).all()

    return working_hours, total


def update_working_hours(db: Session, working_hours_id: int, data: WorkingHoursUpdate) -> WorkingHours:
    db_working_hours = get_working_hours(db, working_hours_id)
    timezone = _check_timezone(data.timezone)

    updates = data.model_dump(exclude_unset=True, exclude={"timezone"})

    for key in ("start_time", "end_time"):
        if key in updates:
            if updates[key] is None or not is_valid_time_format(updates[key]):
                raise InvalidInputError(f"Invalid {key.replace('_', ' ')} format. Use HH:MM format")
            updates[key] = _to_utc(updates[key], timezone)

    null_fields = [key for key, value in updates.items() if value is None]
    if null_fields:
        raise InvalidInputError(f"Fields cannot be null: {', '.join(null_fields)}")

    for key, value in updates.items():
        setattr(db_working_hours, key, value)

    db.commit()
    db.refresh(db_working_hours)
    return db_working_hours


def delete_working_hours(db: Session, working_hours_id: int) -> None:
    db_working_hours = db.query(WorkingHours).filter(
        WorkingHours.id == working_hours_id
    ).with_for_update().first()

    if not db_working_hours:
        raise NotFoundError("Working hours not found")

    schedules = list(db_working_hours.generated_schedules)
    if has_booked_slots(db, [schedule.id for schedule in schedules]):
        db.rollback()
        raise PreconditionFailedError("Cannot delete working hours with existing appointments")

    # Schedules, their slots and the rule go in one transaction
    for schedule in schedules:
        db.delete(schedule)
    db.delete(db_working_hours)
    db.commit()
    logger.info("Deleted working hours %s with %d generated schedules", working_hours_id, len(schedules))


@dataclass
class DateFailure:
    date: date
    reason: str


@dataclass
class GenerationResult:
    generated: List[Schedule] = field(default_factory=list)
    skipped: List[date] = field(default_factory=list)
    failures: List[DateFailure] = field(default_factory=list)

    @property
    def total_generated(self) -> int:
        return len(self.generated)


def _generate_for_date(
    db: Session,
    doctor_id: int,
    rule: WorkingHours,
    day: date,
    regenerate_existing: bool,
) -> Optional[Schedule]:
    """Create one schedule and its slots; None when the date is already covered."""
    existing = db.query(Schedule).filter(
        Schedule.doctor_id == doctor_id,
        Schedule.date == day,
        Schedule.working_hours_id == rule.id
    ).with_for_update().first()

    if existing:
        if not regenerate_existing:
            return None
        if has_booked_slots(db, [existing.id]):
            raise PreconditionFailedError("Existing schedule has booked appointments")
        db.delete(existing)
        db.flush()

    period = working_period(rule.start_time, rule.end_time)
    windows = generate_slots(period.start, period.end, rule.slot_duration, rule.break_duration)
    if period.crosses_midnight:
        logger.info(
            "Day %s: working hours %s-%s cross UTC midnight, %d slots on one schedule",
            rule.day_of_week, rule.start_time, rule.end_time, len(windows)
        )

    schedule = Schedule(
        doctor_id=doctor_id,
        working_hours_id=rule.id,
        date=day,
        start_time=rule.start_time,
        end_time=rule.end_time,
        is_available=True,
        max_appointments=config.DEFAULT_MAX_APPOINTMENTS,
        is_auto_generated=True,
        slots=[
            Slot(start_time=str(window.start_time), end_time=str(window.end_time), is_available=True)
            for window in windows
        ]
    )
    db.add(schedule)
    db.commit()
    return schedule


def generate_schedules(
    db: Session,
    doctor_id: int,
    start_date: str,
    end_date: str,
    regenerate_existing: bool = False,
    today: Optional[date] = None,
) -> GenerationResult:
    """
    Expand the doctor's active weekly rules into dated schedules and slots.

    Dates are checked before any query. Each date is committed on its own;
    a date that fails is rolled back and reported in ``failures`` while the
    rest of the range carries on.
    """
    start = parse_date(start_date, "start date")
    end = parse_date(end_date, "end date")
    if start >= end:
        raise InvalidInputError("Start date must be before end date")
    if is_date_in_past(start_date, today):
        raise InvalidInputError("Start date cannot be in the past")
    if (end - start).days >= config.MAX_GENERATION_DAYS:
        raise InvalidInputError(f"Date range cannot exceed {config.MAX_GENERATION_DAYS} days")

    get_schedulable_doctor(db, doctor_id)

    rules: Dict[int, WorkingHours] = {
        wh.day_of_week: wh
        for wh in db.query(WorkingHours).filter(
            WorkingHours.doctor_id == doctor_id,
            WorkingHours.is_active == True
        ).order_by(WorkingHours.day_of_week.asc()).all()
    }
    if not rules:
        raise InvalidInputError("No active working hours found for this doctor")

    logger.info(
        "Generating schedules for doctor %s from %s to %s (regenerate=%s)",
        doctor_id, start_date, end_date, regenerate_existing
    )

    result = GenerationResult()
    for day in iter_utc_dates(start, end):
        rule = rules.get(utc_day_of_week(day))
        if rule is None:
            continue

        try:
            schedule = _generate_for_date(db, doctor_id, rule, day, regenerate_existing)
        except IntegrityError:
            # Lost a race against a concurrent generation for the same date
            db.rollback()
            logger.info("Schedule for %s was created concurrently, skipping", to_iso_date_string(day))
            result.skipped.append(day)
            continue
        except (SchedulingError, SQLAlchemyError, ValueError) as e:
            db.rollback()
            reason = e.message if isinstance(e, SchedulingError) else str(e)
            logger.warning("Error generating schedule for %s: %s", to_iso_date_string(day), reason)
            result.failures.append(DateFailure(date=day, reason=reason))
            continue

        if schedule is None:
            logger.debug("Schedule already exists for %s, skipping", to_iso_date_string(day))
            result.skipped.append(day)
        else:
            result.generated.append(schedule)

    logger.info(
        "Generated %d schedules for doctor %s (%d skipped, %d failed)",
        result.total_generated, doctor_id, len(result.skipped), len(result.failures)
    )
    return result
