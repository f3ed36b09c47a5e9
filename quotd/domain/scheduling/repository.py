"""Scheduling repository - Database operations for jobs and appointments"""

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, joinedload

from ...models import Job, ServicePreset, TeamMember
from ...models_appointment import Appointment
from .schemas import ACTIVE_STATUSES, AppointmentStatus, JobStatus, Location, ScheduledAppointment


def job_location(job: Optional[Job]) -> Optional[Location]:
    """Coordinates of a job's service location, if geocoded"""
    if job is None or job.latitude is None or job.longitude is None:
        return None
    return Location(latitude=job.latitude, longitude=job.longitude)


class SchedulingRepository:
    """Repository for dispatch database operations"""

    @staticmethod
    def get_job_for_team(db: Session, job_id: str, team_id: str) -> Optional[Job]:
        """Get a job only if it belongs to the team"""
        return (
            db.query(Job)
            .options(joinedload(Job.line_items))
            .filter(Job.id == job_id, Job.team_id == team_id)
            .first()
        )

    @staticmethod
    def get_team_member(
        db: Session, team_id: str, user_id: str, lock: bool = False
    ) -> Optional[TeamMember]:
        """
        Get a membership row. With lock=True the row is held FOR UPDATE until the
        transaction ends, serializing concurrent bookings for the same technician.
        """
        query = db.query(TeamMember).filter(
            TeamMember.team_id == team_id, TeamMember.user_id == user_id
        )
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_primary_membership(db: Session, user_id: str) -> Optional[TeamMember]:
        """Earliest membership of a user - their primary team"""
        return (
            db.query(TeamMember)
            .filter(TeamMember.user_id == user_id)
            .order_by(TeamMember.created_at.asc(), TeamMember.id.asc())
            .first()
        )

    @staticmethod
    def get_team_presets(db: Session, team_id: str) -> list[ServicePreset]:
        return db.query(ServicePreset).filter(ServicePreset.team_id == team_id).all()

    @staticmethod
    def get_active_appointment_for_job(db: Session, job_id: str) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .filter(Appointment.job_id == job_id, Appointment.status.in_(ACTIVE_STATUSES))
            .first()
        )

    @staticmethod
    def get_technician_schedule(
        db: Session, technician_id: str, range_start: datetime, range_end: datetime
    ) -> list[ScheduledAppointment]:
        """Active appointments of a technician overlapping [range_start, range_end)"""
        rows = (
            db.query(Appointment)
            .options(joinedload(Appointment.job))
            .filter(
                Appointment.technician_id == technician_id,
                Appointment.status.in_(ACTIVE_STATUSES),
                Appointment.start_time < range_end,
                Appointment.end_time > range_start,
            )
            .order_by(Appointment.start_time.asc())
            .all()
        )
        return [
            ScheduledAppointment(
                id=row.id,
                technician_id=row.technician_id,
                start_time=row.start_time,
                end_time=row.end_time,
                status=row.status,
                location=job_location(row.job),
            )
            for row in rows
        ]

    @staticmethod
    def get_team_appointments_between(
        db: Session, team_id: str, range_start: datetime, range_end: datetime, now: datetime
    ) -> list[Appointment]:
        """
        Appointments on any of the team's jobs starting within the range that still hold
        their time: confirmed, or tentative with an unexpired hold
        """
        return (
            db.query(Appointment)
            .join(Job, Appointment.job_id == Job.id)
            .filter(
                Job.team_id == team_id,
                or_(
                    Appointment.status == AppointmentStatus.CONFIRMED.value,
                    and_(
                        Appointment.status == AppointmentStatus.TENTATIVE.value,
                        Appointment.hold_expires_at > now,
                    ),
                ),
                Appointment.start_time >= range_start,
                Appointment.start_time <= range_end,
            )
            .all()
        )

    @staticmethod
    def add_appointment(db: Session, **appointment_data) -> Appointment:
        """Stage a new appointment in the current transaction (caller commits)"""
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def mark_job_scheduled(db: Session, job_id: str) -> int:
        """pending → scheduled; a no-op if another writer already moved the job on"""
        return (
            db.query(Job)
            .filter(Job.id == job_id, Job.status == JobStatus.PENDING.value)
            .update({Job.status: JobStatus.SCHEDULED.value}, synchronize_session=False)
        )

    @staticmethod
    def get_appointment(
        db: Session, appointment_id: str, team_id: Optional[str] = None
    ) -> Optional[Appointment]:
        query = db.query(Appointment).filter(Appointment.id == appointment_id)
        if team_id is not None:
            query = query.join(Job, Appointment.job_id == Job.id).filter(Job.team_id == team_id)
        return query.first()

    @staticmethod
    def transition_status(
        db: Session,
        appointment_id: str,
        from_statuses: Iterable[str],
        to_status: str,
        team_id: Optional[str] = None,
    ) -> int:
        """
        Conditionally move an appointment between statuses.
        Returns the number of rows changed (0 when absent or not in from_statuses).
        The hold timestamp only survives on tentative rows, so it is always cleared here.
        """
        query = db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.status.in_(list(from_statuses)),
        )
        if team_id is not None:
            query = query.filter(
                Appointment.job_id.in_(select(Job.id).where(Job.team_id == team_id))
            )
        return query.update(
            {Appointment.status: to_status, Appointment.hold_expires_at: None},
            synchronize_session=False,
        )

    @staticmethod
    def get_stale_hold_ids(db: Session, now: datetime) -> list[str]:
        rows = (
            db.query(Appointment.id)
            .filter(
                Appointment.status == AppointmentStatus.TENTATIVE.value,
                Appointment.hold_expires_at < now,
            )
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def get_due_reminders(
        db: Session, window_start: datetime, window_end: datetime
    ) -> list[Appointment]:
        """Confirmed, not-yet-reminded appointments starting in [window_start, window_end)"""
        return (
            db.query(Appointment)
            .options(
                joinedload(Appointment.job).joinedload(Job.customer),
                joinedload(Appointment.job).joinedload(Job.team),
            )
            .filter(
                Appointment.status == AppointmentStatus.CONFIRMED.value,
                Appointment.reminder_sent.is_(False),
                Appointment.start_time >= window_start,
                Appointment.start_time < window_end,
            )
            .order_by(Appointment.start_time.asc())
            .all()
        )

    @staticmethod
    def mark_reminder_sent(db: Session, appointment_id: str) -> int:
        """false → true, only for confirmed appointments; 0 rows if already sent"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.id == appointment_id,
                Appointment.status == AppointmentStatus.CONFIRMED.value,
                Appointment.reminder_sent.is_(False),
            )
            .update({Appointment.reminder_sent: True}, synchronize_session=False)
        )
