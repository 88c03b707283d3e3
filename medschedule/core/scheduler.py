import logging
from datetime import date, timedelta
from typing import Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from medschedule import config
from medschedule.core.exceptions import SchedulingError
from medschedule.core.time_utils import to_iso_date_string, today_utc
from medschedule.database import SessionLocal
from medschedule.models.user import User
from medschedule.models.working_hours import WorkingHours
from medschedule.services.working_hours_service import generate_schedules

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(timezone="UTC")


def extend_doctor_schedules(
    db: Session,
    today: Optional[date] = None,
    horizon_days: Optional[int] = None,
) -> Dict[int, int]:
    """
    Keep every schedulable doctor's calendar generated ``horizon_days`` ahead.

    Existing dates are left alone, so running this repeatedly only fills in
    the days that have rolled into the horizon.
    """
    today = today or today_utc()
    horizon_days = horizon_days if horizon_days is not None else config.SCHEDULE_HORIZON_DAYS
    start_date = to_iso_date_string(today)
    end_date = to_iso_date_string(today + timedelta(days=horizon_days))

    doctor_ids = [
        doctor_id for (doctor_id,) in db.query(User.id).join(
            WorkingHours, WorkingHours.doctor_id == User.id
        ).filter(
            User.is_doctor == True,
            User.is_active == True,
            User.is_available == True,
            WorkingHours.is_active == True
        ).distinct().order_by(User.id).all()
    ]

    generated = {}
    for doctor_id in doctor_ids:
        try:
            result = generate_schedules(db, doctor_id, start_date, end_date, today=today)
        except SchedulingError as e:
            logger.warning("Skipping schedule extension for doctor %s: %s", doctor_id, e.message)
            continue
        generated[doctor_id] = result.total_generated

    logger.info(
        "Extended schedules for %d doctors through %s (%d new schedules)",
        len(generated), end_date, sum(generated.values())
    )
    return generated


def run_schedule_extension():
    db = SessionLocal()
    try:
        extend_doctor_schedules(db)
    finally:
        db.close()


def start_scheduler():
    # Extend every doctor's generated schedules once a day
    scheduler.add_job(
        run_schedule_extension,
        trigger=CronTrigger(hour=config.SCHEDULE_EXTEND_HOUR, minute=0, timezone="UTC"),
        id="extend_schedules",
        replace_existing=True
    )
    scheduler.start()
    logger.info("Schedule extension job registered at %02d:00 UTC", config.SCHEDULE_EXTEND_HOUR)


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
