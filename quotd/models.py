import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate a UUID string primary key"""
    return str(uuid.uuid4())


class Team(Base):
    """Tenant boundary - technicians, jobs and appointments are partitioned by team"""

    __tablename__ = "teams"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=True)
    company_phone = Column(String(50), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")
    jobs = relationship("Job", back_populates="team")


class TeamMember(Base):
    """Team membership; user_id is the identity-provider uid and doubles as the technician id"""

    __tablename__ = "team_members"
    __table_args__ = (UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    team_id = Column(String(36), ForeignKey("teams.id"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    role = Column(String(20), default="member", nullable=False)  # owner, admin, member
    email = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    team = relationship("Team", back_populates="members")


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=generate_id)
    team_id = Column(String(36), ForeignKey("teams.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class ServicePreset(Base):
    """Catalog entry mapping a service name to a default price and duration"""

    __tablename__ = "service_presets"

    id = Column(String(36), primary_key=True, default=generate_id)
    team_id = Column(String(36), ForeignKey("teams.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    default_price = Column(Float, nullable=True)
    default_duration_minutes = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Job(Base):
    """Unit of work to be scheduled"""

    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True, default=generate_id)
    team_id = Column(String(36), ForeignKey("teams.id"), nullable=False, index=True)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=True)
    title = Column(String(255), nullable=True)

    # Status workflow: pending → scheduled → in_progress → completed (or canceled)
    # pending → scheduled is driven by appointment creation; the rest is manual
    status = Column(String(20), default="pending", nullable=False, index=True)

    # Service location
    address = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    estimated_duration_minutes = Column(Integer, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    team = relationship("Team", back_populates="jobs")
    customer = relationship("Customer")
    line_items = relationship(
        "JobLineItem",
        back_populates="job",
        order_by="JobLineItem.position",
        cascade="all, delete-orphan",
    )
    appointments = relationship("Appointment", back_populates="job")


class JobLineItem(Base):
    __tablename__ = "job_line_items"

    id = Column(String(36), primary_key=True, default=generate_id)
    job_id = Column(String(36), ForeignKey("jobs.id"), nullable=False, index=True)
    position = Column(Integer, default=0, nullable=False)
    label = Column(String(255), nullable=False)
    quantity = Column(Float, default=1, nullable=False)
    service_preset_id = Column(String(36), ForeignKey("service_presets.id"), nullable=True)

    job = relationship("Job", back_populates="line_items")
