"""Domain errors raised by the billing and payroll services.

Each error carries the HTTP status the API layer answers with; the
handler registered in ``agencydesk.main`` does the translation.
"""

from fastapi import status


class ServiceError(Exception):
    """Base class for recoverable domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ClientNotFoundError(NotFoundError):
    def __init__(self, client_id: object) -> None:
        super().__init__(f"Client {client_id} not found")
        self.client_id = client_id


class TeamMemberNotFoundError(NotFoundError):
    def __init__(self, member_id: object) -> None:
        super().__init__(f"Team member {member_id} not found")
        self.member_id = member_id


class DuplicatePaymentError(ServiceError):
    """A completed payment already covers this due date."""

    status_code = status.HTTP_409_CONFLICT


class InvalidPostCountError(ServiceError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ReconciliationError(ServiceError):
    """Tier/count reconciliation could not be persisted. Safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class BillingModeError(ServiceError):
    """Operation does not apply to the client's billing mode."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ClientArchivedError(BillingModeError):
    """Schedule changes on an archived client must go through unarchive."""
