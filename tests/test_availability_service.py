from datetime import date, datetime, timedelta

import pytest
from conftest import NOW, make_appointment, make_job

from quotd.domain.scheduling.availability_service import get_available_slots
from quotd.domain.scheduling.errors import InvalidWindowError

DAY = date(2025, 3, 11)


def at(hour, minute=0):
    return datetime(2025, 3, 11, hour, minute)


def test_empty_day_offers_every_half_hour_that_fits(db, team):
    slots = get_available_slots(db, team.id, DAY, 60, NOW)

    assert slots[0].start_time == at(8)
    assert slots[-1].start_time == at(17)
    assert slots[-1].end_time == at(18)
    assert len(slots) == 19


def test_booked_time_is_excluded(db, team):
    job = make_job(db, team, status="scheduled")
    make_appointment(db, job, "tech-a", at(10), at(11))

    starts = [s.start_time for s in get_available_slots(db, team.id, DAY, 60, NOW)]

    assert at(9, 30) not in starts
    assert at(10) not in starts
    assert at(10, 30) not in starts
    assert at(9) in starts
    assert at(11) in starts


def test_canceled_appointments_do_not_block(db, team):
    job = make_job(db, team, status="scheduled")
    make_appointment(db, job, "tech-a", at(10), at(11), status="canceled")

    starts = [s.start_time for s in get_available_slots(db, team.id, DAY, 60, NOW)]

    assert at(10) in starts


def test_past_slots_are_skipped(db, team):
    slots = get_available_slots(db, team.id, DAY, 30, now=at(12, 10))

    assert slots[0].start_time == at(12, 30)


def test_non_positive_duration_is_rejected(db, team):
    with pytest.raises(InvalidWindowError):
        get_available_slots(db, team.id, DAY, 0, NOW)


def test_lapsed_hold_leaves_its_slot_open(db, team):
    lapsed_job = make_job(db, team, status="scheduled")
    live_job = make_job(db, team, status="scheduled")
    make_appointment(
        db, lapsed_job, "tech-a", at(10), at(11), status="tentative",
        hold_expires_at=NOW - timedelta(minutes=5),
    )
    make_appointment(
        db, live_job, "tech-b", at(14), at(15), status="tentative",
        hold_expires_at=NOW + timedelta(hours=2),
    )

    starts = [s.start_time for s in get_available_slots(db, team.id, DAY, 60, NOW)]

    assert at(10) in starts
    assert at(14) not in starts
