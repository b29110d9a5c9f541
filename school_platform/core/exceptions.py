"""
Error taxonomy shared by the access engine, the data store and the routes.

Translated to HTTP responses by the exception handlers registered in main.py:
Unauthenticated -> 401, AccessDenied -> 403, NotFoundError -> 404, StoreError -> 500.
"""


class PlatformError(Exception):
    """Base class for errors raised by the platform core"""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)


class Unauthenticated(PlatformError):
    status_code = 401
    message = "Authentication required"


class AccessDenied(PlatformError):
    status_code = 403
    message = "Insufficient permissions"


class NotFoundError(PlatformError):
    status_code = 404

    def __init__(self, entity: str = "Resource"):
        self.entity = entity
        super().__init__(f"{entity} not found")


class InvalidRequest(PlatformError):
    """Request refers to something that cannot be used (e.g. a tenant that does not exist)"""

    status_code = 400
    message = "Invalid request"


class StoreError(PlatformError):
    """Backing store failure; never retried."""

    status_code = 500
    message = "Data store failure"
