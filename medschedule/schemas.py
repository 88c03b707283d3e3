from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class WorkingHoursDay(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday, 1=Monday, ..., 6=Saturday")
    start_time: str = Field(..., examples=["08:00"])
    end_time: str = Field(..., examples=["16:00"])
    slot_duration: int = Field(..., ge=15, le=60, description="Minutes per appointment slot")
    break_duration: int = Field(0, ge=0, le=30, description="Minutes between consecutive slots")
    is_active: bool = True


class WorkingHoursCreate(WorkingHoursDay):
    doctor_id: int
    # IANA zone the submitted times are expressed in; omitted means UTC
    timezone: Optional[str] = None


class WorkingHoursCreateMultiple(BaseModel):
    doctor_id: int
    timezone: Optional[str] = None
    working_hours: List[WorkingHoursDay] = Field(..., min_length=1)


class WorkingHoursUpdate(BaseModel):
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    slot_duration: Optional[int] = Field(None, ge=15, le=60)
    break_duration: Optional[int] = Field(None, ge=0, le=30)
    is_active: Optional[bool] = None
    timezone: Optional[str] = None


class WorkingHoursResponse(BaseModel):
    id: int
    doctor_id: int
    day_of_week: int
    start_time: str
    end_time: str
    slot_duration: int
    break_duration: int
    is_active: bool
    local_start_time: Optional[str] = None
    local_end_time: Optional[str] = None

    class Config:
        from_attributes = True


class WorkingHoursListResponse(BaseModel):
    working_hours: List[WorkingHoursResponse]
    total: int
    page: int
    limit: int


class GenerateSchedulesRequest(BaseModel):
    doctor_id: int
    start_date: str = Field(..., examples=["2024-12-23"])
    end_date: str = Field(..., examples=["2024-12-31"])
    regenerate_existing: bool = False


class SlotResponse(BaseModel):
    id: int
    schedule_id: int
    start_time: str
    end_time: str
    is_available: bool
    local_start_time: Optional[str] = None
    local_end_time: Optional[str] = None

    class Config:
        from_attributes = True


class ScheduleResponse(BaseModel):
    id: int
    doctor_id: int
    working_hours_id: Optional[int] = None
    date: date
    start_time: str
    end_time: str
    is_available: bool
    max_appointments: int
    is_auto_generated: bool
    local_start_time: Optional[str] = None
    local_end_time: Optional[str] = None

    class Config:
        from_attributes = True


class ScheduleWithSlotsResponse(ScheduleResponse):
    slots: List[SlotResponse] = []


class ScheduleListResponse(BaseModel):
    schedules: List[ScheduleResponse]
    total: int
    page: int
    limit: int


class DateFailureResponse(BaseModel):
    date: date
    reason: str

    class Config:
        from_attributes = True


class GenerateSchedulesResponse(BaseModel):
    doctor_id: int
    start_date: str
    end_date: str
    total_generated: int
    generated_schedules: List[ScheduleWithSlotsResponse]
    skipped_dates: List[date]
    failed_dates: List[DateFailureResponse]


class AvailableSlotsResponse(BaseModel):
    doctor_id: int
    date: str
    timezone: Optional[str] = None
    utc_offset: Optional[str] = None
    schedules: List[ScheduleResponse]
    available_slots: List[SlotResponse]


class ScheduleCreate(BaseModel):
    doctor_id: int
    date: str = Field(..., examples=["2024-12-25"])
    start_time: str = Field(..., examples=["09:00"])
    end_time: str = Field(..., examples=["17:00"])
    max_appointments: int = Field(10, ge=1, le=50)


class ScheduleUpdate(BaseModel):
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    max_appointments: Optional[int] = Field(None, ge=1, le=50)
    is_available: Optional[bool] = None


class SlotCreate(BaseModel):
    schedule_id: int
    start_time: str = Field(..., examples=["09:00"])
    end_time: str = Field(..., examples=["09:30"])


class SlotUpdate(BaseModel):
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_available: Optional[bool] = None


class DoctorSummary(BaseModel):
    id: int
    full_name: Optional[str] = None
    email: Optional[str] = None

    class Config:
        from_attributes = True


class ScheduleSummary(BaseModel):
    id: int
    doctor_id: int
    date: date

    class Config:
        from_attributes = True


class ScheduleWithDoctorResponse(ScheduleResponse):
    doctor: DoctorSummary


class SlotWithScheduleResponse(SlotResponse):
    schedule: ScheduleSummary


class WorkingHoursWithDoctorResponse(WorkingHoursResponse):
    doctor: DoctorSummary
