"""Queue error taxonomy.

Routes never catch these individually; ``main.py`` registers a handler that
maps each class to its ``status_code`` with a ``{"detail": message}`` body.
"""


class QueueError(Exception):
    """Base class for queue operation failures."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(QueueError):
    """Raised when name, phone, party size or status input is malformed."""

    status_code = 422


class NotFoundError(QueueError):
    """Raised when an id or phone has no entry in the searched partitions."""

    status_code = 404


class InvalidTransitionError(QueueError):
    """Raised when a requested status change is not allowed."""

    status_code = 409

    def __init__(self, status: str, message: str = ""):
        self.status = status
        super().__init__(message or f"Invalid status: {status}")


class StoreTimeoutError(QueueError):
    """Raised when the realtime store does not answer in time.

    Only the wait is abandoned. A Firebase write already handed to the SDK
    may still commit afterwards; ``QueueService.join`` checks for its own
    entry before reporting the timeout.
    """

    status_code = 504

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"Realtime store did not answer '{operation}' within {timeout:g}s")
