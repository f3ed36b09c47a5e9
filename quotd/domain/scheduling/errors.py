"""Typed dispatch errors - each carries a stable code the API layer maps to a status"""

from typing import Optional


class DispatchError(Exception):
    """Base class for classified scheduling failures"""

    code = "dispatch_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidWindowError(DispatchError):
    code = "invalid_window"


class NotFoundError(DispatchError):
    code = "not_found"


class ForbiddenError(DispatchError):
    code = "forbidden"


class InvalidStateError(DispatchError):
    code = "invalid_state"


class ConflictError(DispatchError):
    """Slot rejected; reason is the validator's reason (time_conflict, job_already_scheduled)"""

    code = "conflict"

    def __init__(
        self,
        message: str,
        reason: str,
        conflicting_appointment_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.conflicting_appointment_id = conflicting_appointment_id

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["reason"] = self.reason
        data["conflictingAppointmentId"] = self.conflicting_appointment_id
        return data
