import asyncio
from datetime import datetime, timedelta

from conftest import NOW, make_appointment, make_job

from quotd import models
from quotd.domain.scheduling.reminder_sweep import send_due_reminders

IN_WINDOW = NOW + timedelta(hours=24, minutes=30)


class RecordingNotifier:
    def __init__(self, fail_for=(), raise_for=()):
        self.fail_for = set(fail_for)
        self.raise_for = set(raise_for)
        self.sent = []

    async def __call__(self, to, team_name, appointment_time, job_title, company_phone=None):
        if to in self.raise_for:
            raise RuntimeError("smtp down")
        if to in self.fail_for:
            return {"success": False, "error": "rejected"}
        self.sent.append(
            {
                "to": to,
                "team_name": team_name,
                "appointment_time": appointment_time,
                "job_title": job_title,
                "company_phone": company_phone,
            }
        )
        return {"success": True, "error": None}


def sweep(db, notifier, now=NOW):
    return asyncio.run(send_due_reminders(db, now, notifier=notifier))


def customer_job(db, team, email, title="Deep clean"):
    customer = models.Customer(team_id=team.id, name=email, email=email)
    db.add(customer)
    db.commit()
    return make_job(db, team, customer, title=title, status="scheduled")


def test_reminder_sent_once_across_runs(db, team, technician, customer):
    job = make_job(db, team, customer, status="scheduled")
    appointment = make_appointment(db, job, "tech-a", IN_WINDOW, IN_WINDOW + timedelta(hours=1))
    notifier = RecordingNotifier()

    first = sweep(db, notifier)
    second = sweep(db, notifier, now=NOW + timedelta(minutes=10))

    assert (first.sent, first.failed, first.skipped) == (1, 0, 0)
    assert second.sent == 0
    assert notifier.sent == [
        {
            "to": "dana@example.com",
            "team_name": "Sparkle Cleaning",
            "appointment_time": IN_WINDOW.isoformat(),
            "job_title": "Deep clean",
            "company_phone": "555-0100",
        }
    ]
    db.refresh(appointment)
    assert appointment.reminder_sent is True


def test_window_is_half_open(db, team, technician):
    window_start = NOW + timedelta(hours=24)
    at_start = customer_job(db, team, "start@example.com")
    at_end = customer_job(db, team, "end@example.com")
    too_soon = customer_job(db, team, "soon@example.com")
    make_appointment(db, at_start, "tech-a", window_start, window_start + timedelta(minutes=30))
    make_appointment(
        db, at_end, "tech-a", window_start + timedelta(hours=1), window_start + timedelta(hours=2)
    )
    make_appointment(
        db, too_soon, "tech-b", NOW + timedelta(hours=2), NOW + timedelta(hours=3)
    )
    notifier = RecordingNotifier()

    result = sweep(db, notifier)

    assert result.sent == 1
    assert [m["to"] for m in notifier.sent] == ["start@example.com"]


def test_only_confirmed_appointments_get_reminders(db, team, technician, customer):
    job = make_job(db, team, customer, status="scheduled")
    make_appointment(
        db, job, "tech-a", IN_WINDOW, IN_WINDOW + timedelta(hours=1),
        status="tentative", hold_expires_at=NOW + timedelta(hours=24),
    )
    canceled_job = make_job(db, team, customer, status="scheduled")
    make_appointment(
        db, canceled_job, "tech-b", IN_WINDOW, IN_WINDOW + timedelta(hours=1), status="canceled"
    )

    result = sweep(db, RecordingNotifier())

    assert (result.sent, result.failed, result.skipped) == (0, 0, 0)


def test_missing_customer_email_is_skipped(db, team, technician):
    customer = models.Customer(team_id=team.id, name="No Email")
    db.add(customer)
    db.commit()
    job = make_job(db, team, customer, status="scheduled")
    appointment = make_appointment(db, job, "tech-a", IN_WINDOW, IN_WINDOW + timedelta(hours=1))

    result = sweep(db, RecordingNotifier())

    assert result.skipped == 1
    assert result.sent == 0
    db.refresh(appointment)
    assert appointment.reminder_sent is False


def test_failures_do_not_stop_the_sweep(db, team, technician):
    jobs = [
        customer_job(db, team, "raises@example.com"),
        customer_job(db, team, "rejected@example.com"),
        customer_job(db, team, "ok@example.com"),
    ]
    for offset, job in enumerate(jobs):
        start = IN_WINDOW + timedelta(minutes=offset)
        make_appointment(db, job, f"tech-{offset}", start, start + timedelta(hours=1))
    notifier = RecordingNotifier(
        raise_for={"raises@example.com"}, fail_for={"rejected@example.com"}
    )

    result = sweep(db, notifier)

    assert (result.sent, result.failed, result.skipped) == (1, 2, 0)
    assert len(result.errors) == 2
    assert [m["to"] for m in notifier.sent] == ["ok@example.com"]

    # failed appointments stay eligible for the next run inside the window
    retry = sweep(db, RecordingNotifier(), now=NOW + timedelta(minutes=5))
    assert retry.sent == 2


def test_no_due_appointments(db, team):
    result = sweep(db, RecordingNotifier(), now=datetime(2030, 1, 1))

    assert (result.sent, result.failed, result.skipped, result.errors) == (0, 0, 0, [])
