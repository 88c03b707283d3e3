from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from medschedule.database import Base

class Schedule(Base):
    __tablename__ = "schedules"
    __table_args__ = (
        UniqueConstraint("doctor_id", "date", "working_hours_id", name="uq_schedules_doctor_date_rule"),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    working_hours_id = Column(Integer, ForeignKey("working_hours.id"), nullable=True, index=True)
    date = Column(Date, nullable=False, index=True)  # UTC calendar date
    # Copied from the originating rule, UTC
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_available = Column(Boolean, default=True)
    max_appointments = Column(Integer, default=10)
    is_auto_generated = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    doctor = relationship("User", back_populates="schedules")
    working_hours = relationship("WorkingHours", back_populates="generated_schedules")
    slots = relationship(
        "Slot",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="Slot.id",
    )

class Slot(Base):
    __tablename__ = "slots"

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False, index=True)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    # Flipped by the booking layer, never by the generator
    is_available = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    schedule = relationship("Schedule", back_populates="slots")
    appointments = relationship("Appointment", back_populates="slot")
