"""Domain-specific exceptions"""

from typing import List


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidAmountError(DomainException):
    """Amount is zero, negative, or would drive a balance below zero"""

    pass


class NoActiveLoanError(DomainException):
    """Member has nothing owed on principal or interest"""

    pass


class MissingStartDateError(DomainException):
    """Loan balance is positive but no disbursement date is recorded"""

    pass


class MemberNotFoundError(DomainException):
    """No member exists with the given identifier"""

    pass


class DuplicateMemberError(DomainException):
    """Member number is already assigned to another member"""

    pass


class ApplicationNotFoundError(DomainException):
    """No loan application exists with the given identifier"""

    pass


class ApplicationStateError(DomainException):
    """Loan application is not in a state that allows the requested action"""

    pass


class StaleMemberError(DomainException):
    """Member record changed since it was read; re-read and retry"""

    pass


class LoanIneligibleError(DomainException):
    """Member fails one or more loan eligibility checks"""

    def __init__(self, reasons: List[str]):
        super().__init__("; ".join(reasons))
        self.reasons = reasons


class LoanLimitExceededError(DomainException):
    """Requested amount is above the member's maximum loan amount"""

    pass
