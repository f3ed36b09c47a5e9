from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from quotd import models, models_appointment  # noqa: F401
from quotd.database import Base
from quotd.domain.scheduling.schemas import Location, TravelEstimate, TravelStatus

NOW = datetime(2025, 3, 10, 12, 0)

SITE_X = Location(latitude=40.7128, longitude=-74.0060)
SITE_Y = Location(latitude=40.7306, longitude=-73.9352)


class FakeTravelProvider:
    """Fixed drive time between any two points; records every lookup"""

    def __init__(self, minutes=20, status=TravelStatus.OK, geocoded=None):
        self.minutes = minutes
        self.status = status
        self.geocoded = geocoded
        self.calls = []
        self.geocode_calls = []

    async def travel_time(self, origin, destination, departure_time=None):
        self.calls.append((origin, destination, departure_time))
        if self.status != TravelStatus.OK:
            return TravelEstimate.fallback(self.status, "unavailable")
        return TravelEstimate(duration_minutes=self.minutes, status=TravelStatus.OK)

    async def geocode(self, address):
        self.geocode_calls.append(address)
        return self.geocoded


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def team(db):
    team = models.Team(name="Sparkle Cleaning", company_phone="555-0100")
    db.add(team)
    db.commit()
    return team


@pytest.fixture
def technician(db, team):
    member = models.TeamMember(
        team_id=team.id, user_id="tech-a", role="member", email="a@sparkle.test"
    )
    db.add(member)
    db.commit()
    return member


@pytest.fixture
def owner(db, team):
    member = models.TeamMember(team_id=team.id, user_id="owner-1", role="owner")
    db.add(member)
    db.commit()
    return member


@pytest.fixture
def customer(db, team):
    customer = models.Customer(team_id=team.id, name="Dana Reyes", email="dana@example.com")
    db.add(customer)
    db.commit()
    return customer


def make_job(db, team, customer=None, location=SITE_Y, **fields):
    fields.setdefault("title", "Deep clean")
    job = models.Job(
        team_id=team.id,
        customer_id=customer.id if customer else None,
        latitude=location.latitude if location else None,
        longitude=location.longitude if location else None,
        **fields,
    )
    db.add(job)
    db.commit()
    return job


def make_appointment(db, job, technician_id, start, end, status="confirmed", **fields):
    if status == "tentative":
        fields.setdefault("hold_expires_at", start)
    appointment = models_appointment.Appointment(
        job_id=job.id,
        technician_id=technician_id,
        start_time=start,
        end_time=end,
        status=status,
        **fields,
    )
    db.add(appointment)
    db.commit()
    return appointment
