"""
Slot validation for technician dispatch.

A proposed window conflicts with an existing tentative/confirmed appointment of
the same technician when the two overlap after padding the neighbor with the
drive time between the job sites:

    neighbor before the proposal:  neighbor.end   + travel(neighbor -> proposed)
    neighbor after the proposal:   neighbor.start - travel(proposed -> neighbor)

The validator reads nothing but its arguments and the travel provider, so it
is safe to re-run inside a storage retry loop.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from .schemas import (
    ACTIVE_STATUSES,
    Location,
    ScheduledAppointment,
    SlotDecision,
    TravelEstimate,
    TravelStatus,
    TravelWarning,
)

logger = logging.getLogger(__name__)

TIGHT_SCHEDULE_BUFFER_MINUTES = 15


def _minutes_between(earlier: datetime, later: datetime) -> int:
    return int((later - earlier).total_seconds() // 60)


async def _travel_between(
    travel_provider,
    origin: Optional[Location],
    destination: Optional[Location],
    departure_time: datetime,
) -> TravelEstimate:
    if origin is None or destination is None:
        return TravelEstimate.fallback(
            TravelStatus.NOT_FOUND, "Location coordinates not available"
        )
    return await travel_provider.travel_time(origin, destination, departure_time)


async def validate_slot(
    technician_id: str,
    proposed_start: datetime,
    proposed_end: datetime,
    existing_appointments: Iterable[ScheduledAppointment],
    travel_provider,
    proposed_location: Optional[Location] = None,
) -> SlotDecision:
    """
    Decide whether a technician can take the proposed window.

    Args:
        technician_id: Technician being assigned
        proposed_start: Start of the proposed window
        proposed_end: End of the proposed window
        existing_appointments: Appointments to check against (any technician/status)
        travel_provider: Object exposing async travel_time(origin, destination, departure_time)
        proposed_location: Coordinates of the job being scheduled, if known

    Returns:
        SlotDecision - accepted, or rejected with invalid_window / time_conflict
    """
    if proposed_end <= proposed_start:
        return SlotDecision(
            accepted=False,
            reason="invalid_window",
            message="End time must be after start time.",
        )

    candidates = sorted(
        (
            appt
            for appt in existing_appointments
            if appt.technician_id == technician_id and appt.status in ACTIVE_STATUSES
        ),
        key=lambda appt: appt.start_time,
    )

    # A raw overlap is a conflict no matter the travel time
    for appt in candidates:
        if appt.start_time < proposed_end and appt.end_time > proposed_start:
            return SlotDecision(
                accepted=False,
                reason="time_conflict",
                message=f"Technician is already booked from {appt.start_time:%H:%M} to {appt.end_time:%H:%M}.",
                conflicting_appointment_id=appt.id,
            )

    estimates = await asyncio.gather(
        *(
            _travel_between(travel_provider, appt.location, proposed_location, appt.end_time)
            if appt.start_time < proposed_start
            else _travel_between(travel_provider, proposed_location, appt.location, proposed_end)
            for appt in candidates
        )
    )

    warnings = []
    for appt, estimate in zip(candidates, estimates):
        travel = timedelta(minutes=estimate.duration_minutes)
        if estimate.is_fallback:
            logger.info(
                f"Travel estimate for appointment {appt.id} fell back to "
                f"{estimate.duration_minutes} min ({estimate.status.value}: {estimate.error})"
            )

        if appt.start_time < proposed_start:
            padded_start, padded_end = appt.start_time, appt.end_time + travel
            available = _minutes_between(appt.end_time, proposed_start)
            direction = "after"
        else:
            padded_start, padded_end = appt.start_time - travel, appt.end_time
            available = _minutes_between(proposed_end, appt.start_time)
            direction = "before"

        if padded_start < proposed_end and padded_end > proposed_start:
            return SlotDecision(
                accepted=False,
                reason="time_conflict",
                message=(
                    f"Not enough travel time {direction} appointment {appt.id} "
                    f"(requires {estimate.duration_minutes} mins, only {available} mins available)."
                ),
                conflicting_appointment_id=appt.id,
            )

        if available < estimate.duration_minutes + TIGHT_SCHEDULE_BUFFER_MINUTES:
            warnings.append(
                TravelWarning(
                    message=(
                        f"Tight schedule: only {available - estimate.duration_minutes} minutes "
                        f"buffer {direction} appointment {appt.id} after travel time"
                    ),
                    required_minutes=estimate.duration_minutes,
                    available_minutes=available,
                    appointment_id=appt.id,
                )
            )

    return SlotDecision(accepted=True, warnings=warnings)
