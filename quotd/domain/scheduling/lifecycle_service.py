"""Appointment lifecycle - creation with slot validation, and state transitions"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...models_appointment import Appointment
from .duration_estimator import estimate_duration
from .errors import (
    ConflictError,
    DispatchError,
    ForbiddenError,
    InvalidStateError,
    InvalidWindowError,
    NotFoundError,
)
from .repository import SchedulingRepository, job_location
from .schemas import AppointmentStatus, SlotDecision, to_naive_utc
from .slot_validator import validate_slot

logger = logging.getLogger(__name__)

HOLD_DURATION = timedelta(hours=24)

# How far around a proposed window to look for neighbors that could need travel time
NEIGHBOR_LOOKAROUND = timedelta(hours=12)

# Allowed transitions: target status -> statuses it may be entered from
TRANSITIONS = {
    AppointmentStatus.CONFIRMED.value: (AppointmentStatus.TENTATIVE.value,),
    AppointmentStatus.CANCELED.value: (
        AppointmentStatus.TENTATIVE.value,
        AppointmentStatus.CONFIRMED.value,
    ),
    AppointmentStatus.COMPLETED.value: (AppointmentStatus.CONFIRMED.value,),
}


class AppointmentService:
    """Service layer for appointment dispatch"""

    def __init__(self, db: Session, travel_provider):
        self.db = db
        self.travel_provider = travel_provider
        self.repo = SchedulingRepository()

    def _load_job_and_technician(self, team_id: str, job_id: str, technician_id: str):
        job = self.repo.get_job_for_team(self.db, job_id, team_id)
        if not job:
            raise NotFoundError("Job not found.")

        if not self.repo.get_team_member(self.db, team_id, technician_id):
            raise ForbiddenError("Technician is not a member of this team.")
        return job

    def _default_end(self, job, team_id: str, start: datetime) -> datetime:
        if job.line_items or not job.estimated_duration_minutes:
            presets = self.repo.get_team_presets(self.db, team_id)
            minutes = estimate_duration(job.line_items, presets).total_minutes
        else:
            minutes = job.estimated_duration_minutes
        return start + timedelta(minutes=minutes)

    async def _check_slot(
        self, job, technician_id: str, start: datetime, end: datetime
    ) -> SlotDecision:
        neighbors = self.repo.get_technician_schedule(
            self.db,
            technician_id,
            start - NEIGHBOR_LOOKAROUND,
            end + NEIGHBOR_LOOKAROUND,
        )
        location = job_location(job)
        if location is None and job.address:
            location = await self.travel_provider.geocode(job.address)

        return await validate_slot(
            technician_id,
            start,
            end,
            neighbors,
            self.travel_provider,
            proposed_location=location,
        )

    async def check_slot(
        self,
        team_id: str,
        job_id: str,
        technician_id: str,
        start: datetime,
        end: datetime,
    ) -> SlotDecision:
        """Dry-run validation for the dispatch screen; writes nothing"""
        start, end = to_naive_utc(start), to_naive_utc(end)
        job = self._load_job_and_technician(team_id, job_id, technician_id)
        return await self._check_slot(job, technician_id, start, end)

    async def create(
        self,
        team_id: str,
        job_id: str,
        technician_id: str,
        start: datetime,
        end: Optional[datetime],
        initial_status: str,
        now: datetime,
        notes: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Appointment:
        """
        Book a technician for a job.

        Args:
            team_id: Requesting team
            job_id: Job to schedule (must belong to the team)
            technician_id: Technician user id (must be a member of the team)
            start: Proposed start (naive UTC)
            end: Proposed end; derived from the job's line items when None
            initial_status: "tentative" (24h hold) or "confirmed"
            now: Current time, used for the hold expiry
            notes: Optional free-text notes
            created_by: User creating the appointment

        Returns:
            The persisted Appointment

        Raises:
            NotFoundError, ForbiddenError, InvalidWindowError, ConflictError
        """
        if initial_status not in (
            AppointmentStatus.TENTATIVE.value,
            AppointmentStatus.CONFIRMED.value,
        ):
            raise InvalidStateError(f"Appointments cannot be created as '{initial_status}'.")

        start, end, now = to_naive_utc(start), to_naive_utc(end), to_naive_utc(now)

        job = self._load_job_and_technician(team_id, job_id, technician_id)

        if end is None:
            end = self._default_end(job, team_id, start)
        if end <= start:
            raise InvalidWindowError("End time must be after start time.")

        try:
            # Held until commit/rollback so concurrent bookings for this technician queue up
            self.repo.get_team_member(self.db, team_id, technician_id, lock=True)

            existing = self.repo.get_active_appointment_for_job(self.db, job_id)
            if existing:
                raise ConflictError(
                    "Job already has an active appointment.",
                    reason="job_already_scheduled",
                    conflicting_appointment_id=existing.id,
                )

            decision = await self._check_slot(job, technician_id, start, end)
            if not decision.accepted:
                if decision.reason == "invalid_window":
                    raise InvalidWindowError(decision.message)
                raise ConflictError(
                    decision.message,
                    reason=decision.reason,
                    conflicting_appointment_id=decision.conflicting_appointment_id,
                )

            hold_expires_at = (
                now + HOLD_DURATION
                if initial_status == AppointmentStatus.TENTATIVE.value
                else None
            )
            appointment = self.repo.add_appointment(
                self.db,
                job_id=job_id,
                technician_id=technician_id,
                start_time=start,
                end_time=end,
                status=initial_status,
                hold_expires_at=hold_expires_at,
                reminder_sent=False,
                notes=notes,
                created_by=created_by,
            )
            self.repo.mark_job_scheduled(self.db, job_id)
            self.db.commit()
        except DispatchError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Appointment insert rejected by storage constraint: {e}")
            raise ConflictError(
                "This time slot is no longer available.", reason="time_conflict"
            ) from e
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"❌ Failed to create appointment for job {job_id}")
            raise

        self.db.refresh(appointment)
        logger.info(
            f"✅ Appointment {appointment.id} created for job {job_id}: "
            f"tech={technician_id} {start:%Y-%m-%d %H:%M}-{end:%H:%M} ({initial_status})"
        )
        return appointment

    def _transition(
        self, appointment_id: str, to_status: str, team_id: Optional[str]
    ) -> Appointment:
        from_statuses = TRANSITIONS[to_status]
        changed = self.repo.transition_status(
            self.db, appointment_id, from_statuses, to_status, team_id=team_id
        )

        if not changed:
            self.db.rollback()
            appointment = self.repo.get_appointment(self.db, appointment_id, team_id=team_id)
            if not appointment:
                raise NotFoundError("Appointment not found.")
            raise InvalidStateError(
                f"Cannot move appointment from {appointment.status} to {to_status}."
            )

        self.db.commit()
        appointment = self.repo.get_appointment(self.db, appointment_id)
        self.db.refresh(appointment)
        logger.info(f"✅ Appointment {appointment_id} transitioned → {to_status}")
        return appointment

    def confirm(self, appointment_id: str, team_id: Optional[str] = None) -> Appointment:
        """tentative → confirmed; releases the hold timestamp"""
        return self._transition(appointment_id, AppointmentStatus.CONFIRMED.value, team_id)

    def cancel(self, appointment_id: str, team_id: Optional[str] = None) -> Appointment:
        """tentative/confirmed → canceled"""
        return self._transition(appointment_id, AppointmentStatus.CANCELED.value, team_id)

    def complete(self, appointment_id: str, team_id: Optional[str] = None) -> Appointment:
        """confirmed → completed"""
        return self._transition(appointment_id, AppointmentStatus.COMPLETED.value, team_id)


def expire_stale_holds(db: Session, now: datetime) -> list[str]:
    """
    Cancel tentative appointments whose hold has lapsed.
    Should be run as a scheduled job; re-running is a no-op for rows already canceled.

    Returns:
        Ids of the appointments canceled by this run
    """
    repo = SchedulingRepository()
    expired = []

    try:
        for appointment_id in repo.get_stale_hold_ids(db, now):
            changed = repo.transition_status(
                db,
                appointment_id,
                (AppointmentStatus.TENTATIVE.value,),
                AppointmentStatus.CANCELED.value,
            )
            if changed:
                expired.append(appointment_id)
                logger.info(f"✅ Appointment {appointment_id} hold expired: tentative → canceled")

        if expired:
            db.commit()
            logger.info(f"📊 Hold expiry summary: {len(expired)} appointment(s) canceled")
        else:
            logger.debug("ℹ️ No stale holds to expire")
        return expired

    except Exception as e:
        logger.error(f"❌ Error expiring stale holds: {str(e)}")
        db.rollback()
        raise
