"""
Domain exceptions for the quota ledger, reconciliation and distribution flows
"""

from typing import Optional
from uuid import UUID


class BolaoError(Exception):
    """Base exception for all domain errors."""
    pass


class ContestNotFound(BolaoError):
    """Raised when a contest cannot be found."""
    def __init__(self, contest_id: UUID):
        self.contest_id = contest_id
        super().__init__(f"Contest {contest_id} not found")


class ContestNotOpen(BolaoError):
    """Raised when a purchase targets a contest that is not accepting quotas."""
    def __init__(self, contest_id: UUID, status: str):
        self.contest_id = contest_id
        self.status = status
        super().__init__(f"Contest {contest_id} is not open for participation (status: {status})")


class InsufficientCapacity(BolaoError):
    """Raised when a purchase or grant would exceed the contest capacity."""
    def __init__(self, contest_id: UUID, requested: int, available: int):
        self.contest_id = contest_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Only {available} quotas available in contest {contest_id}, requested {requested}"
        )


class InvalidNumbers(BolaoError):
    """Raised when a ticket does not hold exactly 6 distinct numbers in range."""
    pass


class InvalidStatusTransition(BolaoError):
    """Raised when a contest status change would move backwards or skip a step."""
    def __init__(self, contest_id: UUID, current: str, target: str):
        self.contest_id = contest_id
        self.current = current
        self.target = target
        super().__init__(f"Contest {contest_id} cannot move from {current} to {target}")


class PaymentNotFound(BolaoError):
    """Raised when no payment record matches a checkout session."""
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Payment record for checkout session {session_id} not found")


class ParticipationNotFound(BolaoError):
    """Raised when a participation cannot be found."""
    def __init__(self, participation_id: UUID):
        self.participation_id = participation_id
        super().__init__(f"Participation {participation_id} not found")


class GatewayUnavailable(BolaoError):
    """Transient gateway failure. Safe to retry; never changes payment state."""
    def __init__(self, message: str, retry_after: Optional[int] = None):
        self.retry_after = retry_after
        super().__init__(message)


class GatewayError(BolaoError):
    """Non-retriable rejection returned by the payment gateway."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class LedgerIntegrityError(BolaoError):
    """Raised when a contest ledger is inconsistent and blocked from automatic mutation."""
    def __init__(self, contest_id: UUID, message: Optional[str] = None):
        self.contest_id = contest_id
        super().__init__(
            message or f"Contest {contest_id} is locked pending manual ledger correction"
        )


class OperatorPurchaseNotAllowed(BolaoError):
    """The operator account receives house quotas through admin grants, never checkout."""
    pass
