"""Error taxonomy for ledger operations.

Services raise these exceptions; the app-level handlers registered in
`khata.__init__` turn them into the `Result` envelope so callers always
receive `{success, message, data, error}` instead of a traceback.

- `ValidationError`: bad input, caller-fixable, never retried.
- `NotFoundError`: missing customer or a customer owned by someone else.
  The message never reveals which of the two it was.
- `ConflictBusy`: the customer row lock could not be taken in time. Safe
  to retry with backoff.
- `StorageError`: the database failed. Logged with context by the
  service, surfaced with an opaque message.
"""

from enum import Enum
from fastapi import status


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    CONFLICT_BUSY = "conflict_busy"
    STORAGE = "storage_error"


class LedgerError(Exception):
    kind: ErrorKind = ErrorKind.STORAGE
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable: bool = False
    default_message: str = "internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(LedgerError):
    kind = ErrorKind.VALIDATION
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "invalid input"


class NotFoundError(LedgerError):
    kind = ErrorKind.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Customer not found"


class ConflictBusy(LedgerError):
    kind = ErrorKind.CONFLICT_BUSY
    status_code = status.HTTP_409_CONFLICT
    retryable = True
    default_message = "customer ledger is busy, retry shortly"


class StorageError(LedgerError):
    kind = ErrorKind.STORAGE
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "internal server error"
