"""
Simple exception classes for the application.
"""

from typing import Optional

from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Raised when input validation fails."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=message
        )


class NotFoundError(HTTPException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource_type} {resource_id} not found"
        )


class ConflictError(HTTPException):
    """Raised when there's a conflict with existing data."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=message
        )


class DatabaseError(HTTPException):
    """Raised when database operations fail."""

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=message
        )


class ExternalServiceError(HTTPException):
    """Raised when external service calls fail."""

    def __init__(self, service_name: str, message: str):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{service_name} service error: {message}"
        )
        self.service_name = service_name
        self.message = message


# Specific domain exceptions
class FetchError(ExternalServiceError):
    """Raised when the mail provider cannot be reached or rejects our credentials."""

    def __init__(self, message: str, code: str = "UNKNOWN"):
        super().__init__("Gmail", message)
        self.code = code

    @property
    def is_auth_error(self) -> bool:
        return self.code in ("TOKEN_EXPIRED", "INVALID_TOKEN")


class PostingFailure(ExternalServiceError):
    """Raised when the ledger refuses an approved transaction."""

    def __init__(self, transaction_id: int, reason: str):
        super().__init__("Ledger", f"could not post transaction {transaction_id}: {reason}")
        self.transaction_id = transaction_id
        self.reason = reason


class LedgerRejectedError(Exception):
    """Raised by the ledger store when an entry fails validation."""


class ConcurrentRunRejected(ConflictError):
    """Raised when a sync is triggered while another one is running."""

    def __init__(self, owner_id: int):
        super().__init__("Sync already in progress")
        self.owner_id = owner_id


class AlreadyProcessedError(ConflictError):
    """Raised when a transaction has already been approved or rejected."""

    def __init__(self, transaction_id: int):
        super().__init__(f"Transaction {transaction_id} has already been processed")
        self.transaction_id = transaction_id


class SettingsVersionConflict(ConflictError):
    """Raised when a settings patch was built against a stale version."""

    def __init__(self, expected: int, actual: Optional[int]):
        super().__init__(
            f"Sync settings changed (expected version {expected}, found {actual})"
        )
        self.expected = expected
        self.actual = actual


class SyncDisabledError(HTTPException):
    """Raised when a sync is requested for an owner whose sync is switched off."""

    def __init__(self, owner_id: int):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Gmail sync is not enabled. Please connect your Gmail account first.",
        )
        self.owner_id = owner_id


class TransactionNotFoundError(NotFoundError):
    """Raised when an imported transaction is not found."""

    def __init__(self, transaction_id: int):
        super().__init__("Transaction", transaction_id)
