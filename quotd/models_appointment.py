"""
Appointment Model for Technician Dispatch
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models import generate_id


class Appointment(Base):
    """A scheduled commitment of one technician's time to one job"""

    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_appointments_window"),
        CheckConstraint(
            "(status = 'tentative') = (hold_expires_at IS NOT NULL)",
            name="ck_appointments_hold_only_when_tentative",
        ),
        Index("ix_appointments_technician_window", "technician_id", "start_time", "end_time"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    job_id = Column(String(36), ForeignKey("jobs.id"), nullable=False, index=True)
    technician_id = Column(String(255), nullable=False, index=True)

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)

    # Status workflow: tentative → confirmed → completed
    # tentative: slot is held until hold_expires_at, then canceled by the expiry sweep
    # confirmed: committed; eligible for the reminder sweep
    # canceled / completed: terminal, never participate in conflict checks
    status = Column(String(20), nullable=False, index=True)
    hold_expires_at = Column(DateTime, nullable=True, index=True)

    # Flips false → true once, when the 24h reminder has been delivered
    reminder_sent = Column(Boolean, default=False, nullable=False)

    notes = Column(Text, nullable=True)
    created_by = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    job = relationship("Job", back_populates="appointments")
