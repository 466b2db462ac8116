"""Exception hierarchy for payout operations."""

from __future__ import annotations

from uuid import UUID


class PayoutError(Exception):
    """Base class for all payout engine errors."""


class ValidationError(PayoutError):
    """Raised when input to a payout operation is malformed."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = errors
        super().__init__("; ".join(errors))


class InvalidStateError(PayoutError):
    """Raised when a lifecycle transition is not allowed from the current status."""

    def __init__(
        self,
        from_status: str,
        to_status: str,
        transaction_id: UUID | None = None,
        reason: str | None = None,
    ):
        self.from_status = from_status
        self.to_status = to_status
        self.transaction_id = transaction_id
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if transaction_id is not None:
            msg += f" for transaction {transaction_id}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class UnsupportedMethodError(PayoutError):
    """Raised when a payment method has no registered backend."""

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Unsupported payment method: {method}")


class RemoteStoreError(PayoutError):
    """Raised when the underlying data store fails."""


class NotFoundError(RemoteStoreError):
    """Raised when a record does not exist."""

    def __init__(self, entity: str, entity_id: UUID | str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConcurrentUpdateError(RemoteStoreError):
    """Raised when a row was modified by another writer since it was loaded."""


class PaymentDispatchError(PayoutError):
    """Raised by a payment backend when it rejects a payment."""

    def __init__(self, method: str, reason: str):
        self.method = method
        self.reason = reason
        super().__init__(f"{method} payment failed: {reason}")
