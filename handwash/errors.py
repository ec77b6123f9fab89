"""Domain error taxonomy.

Services raise these; the API layer maps them to HTTP status codes
(see the exception handlers in ``handwash.main``).
"""


class HandwashError(Exception):
    status_code = 500

    def __init__(self, message: str = "internal error"):
        super().__init__(message)
        self.message = message


class InvalidArgument(HandwashError):
    status_code = 400


class Forbidden(HandwashError):
    status_code = 403


class NotFound(HandwashError):
    status_code = 404


class Conflict(HandwashError):
    status_code = 409


class Internal(HandwashError):
    status_code = 500


class ConditionFailed(Exception):
    """A conditional write found an existing record at the target key."""

    def __init__(self, pk: str, sk: str):
        super().__init__(f"record already exists: {pk} {sk}")
        self.pk = pk
        self.sk = sk
