from __future__ import annotations


class DomainError(Exception):
    """Base for errors that are surfaced to the caller as-is."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    kind = "not_found"
    status_code = 404


class ForbiddenError(DomainError):
    kind = "forbidden"
    status_code = 403


class InvalidStateError(DomainError):
    kind = "invalid_state"
    status_code = 400


class LocationRequiredError(DomainError):
    kind = "location_required"
    status_code = 422
