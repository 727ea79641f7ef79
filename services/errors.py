from __future__ import annotations


class InterviewError(Exception):
    """Base for every named outcome the interview core can fail with."""

    error_code = "interview_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict[str, str]:
        return {"error": self.error_code, "message": self.message}


class NotFound(InterviewError):
    error_code = "not_found"
    status_code = 404


class Expired(InterviewError):
    error_code = "expired"
    status_code = 410


class AlreadyCompleted(InterviewError):
    error_code = "already_completed"
    status_code = 409


class InvalidTransition(InterviewError):
    error_code = "invalid_transition"
    status_code = 409

    def __init__(self, action: str, current_status: str) -> None:
        super().__init__(f"Cannot '{action}' a session in status '{current_status}'")
        self.action = action
        self.current_status = current_status

    def to_detail(self) -> dict[str, str]:
        detail = super().to_detail()
        detail["action"] = self.action
        detail["current_status"] = self.current_status
        return detail


class InvalidAction(InterviewError):
    error_code = "invalid_action"
    status_code = 400


class Unauthorized(InterviewError):
    error_code = "unauthorized"
    status_code = 401


class VoiceServiceUnavailable(InterviewError):
    error_code = "voice_service_unavailable"
    status_code = 503


class StorageUnavailable(InterviewError):
    """Transient store failure. Safe for the caller to retry."""

    error_code = "storage_unavailable"
    status_code = 503


class ConcurrentUpdate(StorageUnavailable):
    error_code = "concurrent_update"
