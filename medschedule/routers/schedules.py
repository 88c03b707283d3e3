from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from medschedule.core.timezone_converter import reference_offset
from medschedule.database import get_db
from medschedule.routers.working_hours import localized, validate_timezone
from medschedule.schemas import (
    AvailableSlotsResponse,
    ScheduleCreate,
    ScheduleListResponse,
    ScheduleResponse,
    ScheduleUpdate,
    ScheduleWithDoctorResponse,
    ScheduleWithSlotsResponse,
    SlotCreate,
    SlotResponse,
    SlotUpdate,
    SlotWithScheduleResponse,
)
from medschedule.services import schedule_service

router = APIRouter(prefix="/api/schedules", tags=["schedules"])

@router.post("", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    schedule: ScheduleCreate,
    db: Session = Depends(get_db)
):
    return schedule_service.create_schedule(db, schedule)

@router.get("", response_model=ScheduleListResponse)
async def list_schedules(
    doctor_id: Optional[int] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    is_available: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    timezone: Optional[str] = None,
    db: Session = Depends(get_db)
):
    validate_timezone(timezone)
    schedules, total = schedule_service.list_schedules(
        db,
        doctor_id=doctor_id,
        start_date=start_date,
        end_date=end_date,
        is_available=is_available,
        page=page,
        limit=limit
    )
    return {
        "schedules": [localized(schedule, ScheduleResponse, timezone) for schedule in schedules],
        "total": total,
        "page": page,
        "limit": limit,
    }

@router.get("/available-slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    doctor_id: int,
    date_str: str = Query(..., alias="date"),
    min_duration: Optional[int] = Query(None, ge=1),
    timezone: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """
    Returns the bookable slots of a doctor on one UTC date.
    """
    validate_timezone(timezone)
    schedules, slots = schedule_service.get_available_slots(
        db, doctor_id=doctor_id, date_str=date_str, min_duration=min_duration
    )
    return {
        "doctor_id": doctor_id,
        "date": date_str,
        "timezone": timezone,
        # Same offset the local times below were rendered with
        "utc_offset": reference_offset(timezone) if timezone else None,
        "schedules": [localized(schedule, ScheduleResponse, timezone) for schedule in schedules],
        "available_slots": [localized(slot, SlotResponse, timezone) for slot in slots],
    }

@router.post("/slots", response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
async def create_slot(
    slot: SlotCreate,
    db: Session = Depends(get_db)
):
    return schedule_service.create_slot(db, slot)

@router.get("/slots/{slot_id}", response_model=SlotResponse)
async def get_slot(
    slot_id: int,
    timezone: Optional[str] = None,
    db: Session = Depends(get_db)
):
    validate_timezone(timezone)
    return localized(schedule_service.get_slot(db, slot_id), SlotResponse, timezone)

@router.get("/slots/{slot_id}/schedule-info", response_model=SlotWithScheduleResponse)
async def get_slot_with_schedule(
    slot_id: int,
    db: Session = Depends(get_db)
):
    return schedule_service.get_slot(db, slot_id)

@router.put("/slots/{slot_id}", response_model=SlotResponse)
async def update_slot(
    slot_id: int,
    slot: SlotUpdate,
    db: Session = Depends(get_db)
):
    return schedule_service.update_slot(db, slot_id, slot)

@router.delete("/slots/{slot_id}")
async def delete_slot(
    slot_id: int,
    db: Session = Depends(get_db)
):
    schedule_service.delete_slot(db, slot_id)
    return {"message": "Slot deleted successfully"}

@router.get("/{schedule_id}", response_model=ScheduleWithSlotsResponse)
async def get_schedule(
    schedule_id: int,
    timezone: Optional[str] = None,
    db: Session = Depends(get_db)
):
    validate_timezone(timezone)
    schedule = schedule_service.get_schedule(db, schedule_id)
    response = localized(schedule, ScheduleWithSlotsResponse, timezone)
    if timezone:
        response.slots = [localized(slot, SlotResponse, timezone) for slot in schedule.slots]
    return response

@router.get("/{schedule_id}/slots", response_model=List[SlotResponse])
async def get_schedule_slots(
    schedule_id: int,
    timezone: Optional[str] = None,
    db: Session = Depends(get_db)
):
    validate_timezone(timezone)
    schedule = schedule_service.get_schedule(db, schedule_id)
    return [localized(slot, SlotResponse, timezone) for slot in schedule.slots]

@router.get("/{schedule_id}/doctor-info", response_model=ScheduleWithDoctorResponse)
async def get_schedule_with_doctor(
    schedule_id: int,
    db: Session = Depends(get_db)
):
    return schedule_service.get_schedule(db, schedule_id)

@router.put("/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    schedule_id: int,
    schedule: ScheduleUpdate,
    db: Session = Depends(get_db)
):
    return schedule_service.update_schedule(db, schedule_id, schedule)

@router.delete("/{schedule_id}")
async def delete_schedule(
    schedule_id: int,
    db: Session = Depends(get_db)
):
    schedule_service.delete_schedule(db, schedule_id)
    return {"message": "Schedule deleted successfully"}
