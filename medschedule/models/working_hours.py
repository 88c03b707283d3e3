from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from medschedule.database import Base

class WorkingHours(Base):
    __tablename__ = "working_hours"
    __table_args__ = (
        UniqueConstraint("doctor_id", "day_of_week", name="uq_working_hours_doctor_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0-6 (Sunday-Saturday)
    # "HH:MM" in UTC; end <= start means the shift runs past UTC midnight
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    slot_duration = Column(Integer, nullable=False)  # minutes
    break_duration = Column(Integer, nullable=False, default=0)  # minutes
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    doctor = relationship("User", back_populates="working_hours")
    generated_schedules = relationship("Schedule", back_populates="working_hours")
