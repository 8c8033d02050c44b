# app/core/exceptions.py
"""
Error taxonomy shared by the booking, settlement, rating and search services.

Services raise these; app.main turns any ServiceError into a JSON response
with the matching status code. DependencyError is the only kind that is
expected to be caught and logged instead of reaching the caller.
"""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Malformed or missing input."""
    status_code = 400


class NotFoundError(ServiceError):
    """Referenced entity is absent or not visible to the caller."""
    status_code = 404


class ForbiddenError(ServiceError):
    """Authenticated actor has no rights over the entity."""
    status_code = 403


class InvalidStateError(ServiceError):
    """Operation is not legal in the entity's current lifecycle state."""
    status_code = 400


class ConflictError(ServiceError):
    """Idempotency or uniqueness violation, e.g. settling twice."""
    status_code = 409


class DependencyError(ServiceError):
    """A best-effort collaborator (notification delivery) failed."""
    status_code = 502
