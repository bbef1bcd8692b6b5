"""Error taxonomy for the guardian-link workflow.

Every error here is a caller-facing, recoverable failure. Services raise them
and never retry; the API layer renders them through a single exception
handler registered in ``backend.app.main``.
"""

from fastapi import status


class GuardianLinkError(Exception):
    kind = "guardian_link_error"
    status_code = status.HTTP_400_BAD_REQUEST
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"detail": self.message, "error": self.kind, "retryable": self.retryable}


class InvalidTransition(GuardianLinkError):
    kind = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current_status, event: str):
        current = getattr(current_status, "value", current_status)
        super().__init__(f"Cannot {event} a request that is {current}")
        self.current_status = current
        self.event = event

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["current_status"] = self.current_status
        payload["event"] = self.event
        return payload


class DuplicatePendingRequest(GuardianLinkError):
    kind = "duplicate_pending_request"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, guardian_id: str, student_id: str):
        super().__init__(
            f"Guardian {guardian_id} already has an open link request for student {student_id}"
        )
        self.guardian_id = guardian_id
        self.student_id = student_id


class ConfirmationExpired(GuardianLinkError):
    kind = "expired"
    status_code = status.HTTP_410_GONE

    def __init__(self, message: str = "Confirmation has expired"):
        super().__init__(message)


class ConfirmationInvalid(GuardianLinkError):
    kind = "invalid"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Invalid confirmation code"):
        super().__init__(message)


class RetentionExpired(GuardianLinkError):
    kind = "retention_expired"
    status_code = status.HTTP_410_GONE

    def __init__(self, message: str = "Retention window has closed; the link can no longer be recovered"):
        super().__init__(message)


class AlreadyRelinked(GuardianLinkError):
    kind = "already_relinked"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "A newer link already exists for this guardian and student"):
        super().__init__(message)


class ValidationError(GuardianLinkError):
    kind = "validation_error"
    status_code = 422


class NotFound(GuardianLinkError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ActionNotPermitted(GuardianLinkError):
    kind = "action_not_permitted"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, role, event: str):
        role_value = getattr(role, "value", role)
        super().__init__(f"Role {role_value} may not {event} guardian links")
        self.role = role_value
        self.event = event


class ConcurrentModification(GuardianLinkError):
    kind = "concurrent_modification"
    status_code = status.HTTP_409_CONFLICT
    retryable = True

    def __init__(self, message: str = "The record was modified by another request; reload and retry"):
        super().__init__(message)
