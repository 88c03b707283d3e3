from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from medschedule.core.exceptions import InvalidInputError
from medschedule.core.timezone_converter import is_valid_timezone, utc_to_local_time
from medschedule.database import get_db
from medschedule.schemas import (
    GenerateSchedulesRequest,
    GenerateSchedulesResponse,
    WorkingHoursCreate,
    WorkingHoursCreateMultiple,
    WorkingHoursListResponse,
    WorkingHoursResponse,
    WorkingHoursUpdate,
    WorkingHoursWithDoctorResponse,
)
from medschedule.services import working_hours_service

router = APIRouter(prefix="/api/working-hours", tags=["working-hours"])

def validate_timezone(timezone: Optional[str]) -> None:
    if timezone and not is_valid_timezone(timezone):
        raise InvalidInputError(f"Invalid timezone: {timezone}")

def localized(item, model, timezone: Optional[str]):
    """Build ``model`` from an ORM row, adding local renderings of its UTC times."""
    response = model.model_validate(item)
    if not timezone:
        return response
    validate_timezone(timezone)
    return response.model_copy(update={
        "local_start_time": utc_to_local_time(item.start_time, timezone),
        "local_end_time": utc_to_local_time(item.end_time, timezone),
    })

@router.post("", response_model=WorkingHoursResponse, status_code=status.HTTP_201_CREATED)
async def create_working_hours(
    working_hours: WorkingHoursCreate,
    db: Session = Depends(get_db)
):
    return working_hours_service.create_working_hours(db, working_hours)

@router.post("/multiple", response_model=List[WorkingHoursResponse], status_code=status.HTTP_201_CREATED)
async def create_multiple_working_hours(
    working_hours: WorkingHoursCreateMultiple,
    db: Session = Depends(get_db)
):
    return working_hours_service.create_multiple_working_hours(db, working_hours)

@router.post("/generate-schedules", response_model=GenerateSchedulesResponse)
async def generate_schedules(
    request: GenerateSchedulesRequest,
    db: Session = Depends(get_db)
):
    result = working_hours_service.generate_schedules(
        db,
        doctor_id=request.doctor_id,
        start_date=request.start_date,
        end_date=request.end_date,
        regenerate_existing=request.regenerate_existing
    )
    return {
        "doctor_id": request.doctor_id,
        "start_date": request.start_date,
        "end_date": request.end_date,
        "total_generated": result.total_generated,
        "generated_schedules": result.generated,
        "skipped_dates": result.skipped,
        "failed_dates": result.failures,
    }

@router.get("", response_model=WorkingHoursListResponse)
async def list_working_hours(
    doctor_id: Optional[int] = None,
    day_of_week: Optional[int] = Query(None, ge=0, le=6),
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    timezone: Optional[str] = None,
    db: Session = Depends(get_db)
):
    validate_timezone(timezone)
    working_hours, total = working_hours_service.list_working_hours(
        db, doctor_id=doctor_id, day_of_week=day_of_week, is_active=is_active, page=page, limit=limit
    )
    return {
        "working_hours": [localized(wh, WorkingHoursResponse, timezone) for wh in working_hours],
        "total": total,
        "page": page,
        "limit": limit,
    }

@router.get("/{working_hours_id}", response_model=WorkingHoursResponse)
async def get_working_hours(
    working_hours_id: int,
    timezone: Optional[str] = None,
    db: Session = Depends(get_db)
):
    validate_timezone(timezone)
    working_hours = working_hours_service.get_working_hours(db, working_hours_id)
    return localized(working_hours, WorkingHoursResponse, timezone)

@router.get("/{working_hours_id}/doctor-info", response_model=WorkingHoursWithDoctorResponse)
async def get_working_hours_with_doctor(
    working_hours_id: int,
    db: Session = Depends(get_db)
):
    return working_hours_service.get_working_hours(db, working_hours_id)

@router.put("/{working_hours_id}", response_model=WorkingHoursResponse)
async def update_working_hours(
    working_hours_id: int,
    working_hours: WorkingHoursUpdate,
    db: Session = Depends(get_db)
):
    return working_hours_service.update_working_hours(db, working_hours_id, working_hours)

@router.delete("/{working_hours_id}")
async def delete_working_hours(
    working_hours_id: int,
    db: Session = Depends(get_db)
):
    working_hours_service.delete_working_hours(db, working_hours_id)
    return {"message": "Working hours deleted successfully"}
