"""Dispatch router - FastAPI endpoints for technician appointments"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import get_current_member
from ...config import CRON_SECRET
from ...database import get_db
from ...models import TeamMember
from ...models_appointment import Appointment
from .availability_service import get_available_slots
from .duration_estimator import estimate_duration, format_duration
from .errors import DispatchError
from .lifecycle_service import AppointmentService, expire_stale_holds
from .reminder_sweep import send_due_reminders
from .repository import SchedulingRepository
from .schemas import AppointmentCreate, AppointmentResponse, SlotCheckRequest
from .travel_time import get_travel_time_provider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dispatch", tags=["Dispatch"])
cron_router = APIRouter(prefix="/cron", tags=["Cron"])

ERROR_STATUS_CODES = {
    "invalid_window": 400,
    "not_found": 404,
    "forbidden": 403,
    "conflict": 409,
    "invalid_state": 409,
}


def get_appointment_service(
    db: Session = Depends(get_db),
    travel_provider=Depends(get_travel_time_provider),
) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db, travel_provider)


def _http_error(err: DispatchError) -> HTTPException:
    return HTTPException(status_code=ERROR_STATUS_CODES.get(err.code, 400), detail=err.to_dict())


def _to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        jobId=appointment.job_id,
        techId=appointment.technician_id,
        startTime=appointment.start_time,
        endTime=appointment.end_time,
        status=appointment.status,
        holdExpiresAt=appointment.hold_expires_at,
        reminderSent=bool(appointment.reminder_sent),
        notes=appointment.notes,
        createdBy=appointment.created_by,
        createdAt=appointment.created_at,
    )


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.post("/appointments", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    current_member: TeamMember = Depends(get_current_member),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book a technician for one of the team's jobs"""
    try:
        appointment = await service.create(
            team_id=current_member.team_id,
            job_id=data.jobId,
            technician_id=data.techId,
            start=data.startTime,
            end=data.endTime,
            initial_status=data.status,
            now=datetime.utcnow(),
            notes=data.notes,
            created_by=current_member.user_id,
        )
    except DispatchError as err:
        logger.info(f"ℹ️ Appointment for job {data.jobId} rejected: {err.code} - {err.message}")
        raise _http_error(err) from err

    return _to_response(appointment)


@router.post("/appointments/validate")
async def validate_appointment_slot(
    data: SlotCheckRequest,
    current_member: TeamMember = Depends(get_current_member),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Check a proposed slot without booking it"""
    try:
        decision = await service.check_slot(
            current_member.team_id, data.jobId, data.techId, data.startTime, data.endTime
        )
    except DispatchError as err:
        raise _http_error(err) from err

    return {
        "accepted": decision.accepted,
        "reason": decision.reason,
        "message": decision.message,
        "conflictingAppointmentId": decision.conflicting_appointment_id,
        "warnings": [
            {
                "type": w.type,
                "message": w.message,
                "requiredMinutes": w.required_minutes,
                "availableMinutes": w.available_minutes,
                "appointmentId": w.appointment_id,
            }
            for w in decision.warnings
        ],
    }


@router.post("/appointments/{appointment_id}/confirm", response_model=AppointmentResponse)
async def confirm_appointment(
    appointment_id: str,
    current_member: TeamMember = Depends(get_current_member),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        appointment = service.confirm(appointment_id, team_id=current_member.team_id)
    except DispatchError as err:
        raise _http_error(err) from err
    return _to_response(appointment)


@router.post("/appointments/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: str,
    current_member: TeamMember = Depends(get_current_member),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        appointment = service.cancel(appointment_id, team_id=current_member.team_id)
    except DispatchError as err:
        raise _http_error(err) from err
    return _to_response(appointment)


@router.post("/appointments/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: str,
    current_member: TeamMember = Depends(get_current_member),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        appointment = service.complete(appointment_id, team_id=current_member.team_id)
    except DispatchError as err:
        raise _http_error(err) from err
    return _to_response(appointment)


# ============================================================================
# PLANNING HELPERS
# ============================================================================


@router.get("/jobs/{job_id}/duration-estimate")
async def get_duration_estimate(
    job_id: str,
    current_member: TeamMember = Depends(get_current_member),
    db: Session = Depends(get_db),
):
    """Estimated on-site time for a job, from its line items and the team's presets"""
    job = SchedulingRepository.get_job_for_team(db, job_id, current_member.team_id)
    if not job:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Job not found."})

    presets = SchedulingRepository.get_team_presets(db, current_member.team_id)
    estimate = estimate_duration(job.line_items, presets)

    return {
        "jobId": job.id,
        "totalMinutes": estimate.total_minutes,
        "formatted": format_duration(estimate.total_minutes),
        "bufferMinutes": estimate.buffer_minutes,
        "breakdown": [item.model_dump() for item in estimate.breakdown],
    }


@router.get("/availability")
async def get_availability(
    day: date = Query(..., alias="date"),
    duration_minutes: int = Query(..., alias="durationMinutes"),
    current_member: TeamMember = Depends(get_current_member),
    db: Session = Depends(get_db),
):
    """Open slots on a given day for the caller's team"""
    try:
        slots = get_available_slots(
            db, current_member.team_id, day, duration_minutes, now=datetime.utcnow()
        )
    except DispatchError as err:
        raise _http_error(err) from err

    return {
        "date": day.isoformat(),
        "durationMinutes": duration_minutes,
        "slots": [{"start": s.start_time, "end": s.end_time} for s in slots],
    }


# ============================================================================
# CRON TRIGGERS
# ============================================================================


def verify_cron_secret(authorization: Optional[str] = Header(None)):
    """External schedulers authenticate with Authorization: Bearer <CRON_SECRET>"""
    if not CRON_SECRET or authorization != f"Bearer {CRON_SECRET}":
        logger.warning("⚠️ Unauthorized cron request")
        raise HTTPException(status_code=401, detail="Unauthorized")


@cron_router.get("/send-appointment-reminders", dependencies=[Depends(verify_cron_secret)])
async def send_appointment_reminders(db: Session = Depends(get_db)):
    """Hourly trigger for the 24h reminder sweep"""
    results = await send_due_reminders(db, now=datetime.utcnow())
    return {
        "success": True,
        "message": f"Processed {results.sent + results.failed + results.skipped} appointments",
        "results": results.model_dump(),
    }


@cron_router.get("/expire-holds", dependencies=[Depends(verify_cron_secret)])
async def expire_holds(db: Session = Depends(get_db)):
    """Cancel tentative appointments whose 24h hold has lapsed"""
    expired = expire_stale_holds(db, now=datetime.utcnow())
    return {"success": True, "expired": len(expired), "appointmentIds": expired}
