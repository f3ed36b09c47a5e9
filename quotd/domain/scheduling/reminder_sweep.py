"""
Appointment reminder sweep.

Invoked hourly by an external trigger. Each run picks up confirmed appointments
starting 24-25 hours after `now`, so under an hourly cadence every appointment
falls into exactly one run's window.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...email_service import send_appointment_reminder
from .repository import SchedulingRepository
from .schemas import ReminderSweepResult

logger = logging.getLogger(__name__)

REMINDER_LEAD_TIME = timedelta(hours=24)
REMINDER_WINDOW = timedelta(hours=1)


async def send_due_reminders(
    db: Session, now: datetime, notifier=send_appointment_reminder
) -> ReminderSweepResult:
    """
    Send 24h reminders for confirmed appointments and mark them sent.

    A failure on one appointment is recorded and the sweep moves on.
    If the notification goes out but marking it sent fails, the appointment is
    retried on the next run only while it is still inside the window.

    Args:
        db: Database session
        now: Current time (naive UTC)
        notifier: async callable(to, team_name, appointment_time, job_title, company_phone)
            returning {"success": bool, "error": str | None}

    Returns:
        ReminderSweepResult with sent/failed/skipped counts and error messages
    """
    repo = SchedulingRepository()
    results = ReminderSweepResult()

    window_start = now + REMINDER_LEAD_TIME
    appointments = repo.get_due_reminders(db, window_start, window_start + REMINDER_WINDOW)

    if not appointments:
        logger.info("ℹ️ No appointments need reminders at this time")
        return results

    logger.info(f"📋 Found {len(appointments)} appointment(s) needing reminders")

    for appointment in appointments:
        # Plain values up front; a rollback below expires ORM state
        appointment_id = appointment.id
        start_time = appointment.start_time
        job = appointment.job
        customer = job.customer if job else None
        team = job.team if job else None

        customer_email = customer.email if customer else None
        team_name = team.name if team else None
        job_title = job.title if job else None

        if not customer_email or not team_name or not job_title:
            logger.warning(f"⚠️ Skipping appointment {appointment_id}: missing required data")
            results.skipped += 1
            continue

        try:
            send_result = await notifier(
                to=customer_email,
                team_name=team_name,
                appointment_time=start_time.isoformat(),
                job_title=job_title,
                company_phone=team.company_phone,
            )
        except Exception as e:
            logger.error(f"❌ Error processing appointment {appointment_id}: {e}")
            results.errors.append(f"Error processing appointment {appointment_id}: {e}")
            results.failed += 1
            continue

        if not send_result.get("success"):
            error = send_result.get("error")
            logger.error(f"❌ Failed to send reminder for appointment {appointment_id}: {error}")
            results.errors.append(
                f"Failed to send email for appointment {appointment_id}: {error}"
            )
            results.failed += 1
            continue

        try:
            repo.mark_reminder_sent(db, appointment_id)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Error updating appointment {appointment_id}: {e}")
            results.errors.append(f"Failed to update appointment {appointment_id}")
            results.failed += 1
            continue

        logger.info(f"✅ Reminder sent for appointment {appointment_id} to {customer_email}")
        results.sent += 1

    logger.info(
        f"📊 Reminder sweep complete: sent={results.sent} failed={results.failed} "
        f"skipped={results.skipped}"
    )
    return results
