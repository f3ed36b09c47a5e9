"""Team availability - open slots for customer self-scheduling"""

from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from .errors import InvalidWindowError
from .repository import SchedulingRepository
from .schemas import AvailableSlot

WORK_START = time(8, 0)
WORK_END = time(18, 0)
SLOT_INTERVAL = timedelta(minutes=30)


def get_available_slots(
    db: Session,
    team_id: str,
    day: date,
    duration_minutes: int,
    now: datetime,
) -> list[AvailableSlot]:
    """
    Open slots on a day, every 30 minutes within working hours (08:00-18:00).

    A slot is open when it ends by closing time, starts after `now`, and does
    not overlap a confirmed appointment or a tentative hold that has not yet
    lapsed on the team's jobs.
    """
    if not duration_minutes or duration_minutes <= 0:
        raise InvalidWindowError("Duration must be a positive number of minutes.")

    duration = timedelta(minutes=duration_minutes)
    day_start = datetime.combine(day, time.min)
    day_end = datetime.combine(day, time.max)

    blocked = [
        (appt.start_time, appt.end_time)
        for appt in SchedulingRepository.get_team_appointments_between(
            db, team_id, day_start, day_end, now
        )
    ]

    slots = []
    slot_start = datetime.combine(day, WORK_START)
    closing = datetime.combine(day, WORK_END)

    while slot_start < closing:
        slot_end = slot_start + duration
        if slot_end > closing:
            break

        overlaps = any(slot_start < end and slot_end > start for start, end in blocked)
        if not overlaps and slot_start >= now:
            slots.append(AvailableSlot(start_time=slot_start, end_time=slot_end))

        slot_start += SLOT_INTERVAL

    return slots
