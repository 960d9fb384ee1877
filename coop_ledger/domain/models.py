"""Domain models - pure Python dataclasses representing cooperative ledger entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

ZERO = Decimal("0")
DEFAULT_MONTHLY_RATE = Decimal("1.5")
DEFAULT_DURATION_MONTHS = 12

# Ledger entry types
LOAN_DISBURSEMENT = "loan_disbursement"
LOAN_PAYMENT = "loan_payment"
INTEREST_CHARGE = "interest_charge"
INTEREST_PAYMENT = "interest_payment"
SHARES_DEPOSIT = "shares_deposit"
SHARES_WITHDRAWAL = "shares_withdrawal"
SAVINGS_DEPOSIT = "savings_deposit"
SAVINGS_WITHDRAWAL = "savings_withdrawal"

# Loan application statuses
PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"

# Derived loan statuses
LOAN_NONE = "none"
LOAN_ACTIVE = "active"
LOAN_OVERDUE = "overdue"


@dataclass
class Member:
    """Cooperative member with share, savings and loan balances"""

    id: str
    member_number: str
    first_name: str
    last_name: str
    email: str
    date_joined: date
    status: str = "active"  # "active", "inactive" or "suspended"
    shares_balance: Decimal = ZERO
    savings_balance: Decimal = ZERO
    loan_balance: Decimal = ZERO
    interest_balance: Decimal = ZERO
    loan_start_date: Optional[date] = None
    loan_duration_months: int = DEFAULT_DURATION_MONTHS
    loan_interest_rate: Decimal = DEFAULT_MONTHLY_RATE  # Monthly percentage
    last_interest_calculation_date: Optional[date] = None
    loan_eligibility_override: bool = False
    version: int = 1

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class LoanAccount:
    """View over a member's loan-related fields"""

    principal: Decimal
    accrued_interest: Decimal
    start_date: Optional[date]
    duration_months: int = DEFAULT_DURATION_MONTHS
    base_monthly_rate_percent: Decimal = DEFAULT_MONTHLY_RATE
    last_accrual_date: Optional[date] = None

    @classmethod
    def from_member(cls, member: Member) -> "LoanAccount":
        return cls(
            principal=member.loan_balance,
            accrued_interest=member.interest_balance,
            start_date=member.loan_start_date,
            duration_months=member.loan_duration_months,
            base_monthly_rate_percent=member.loan_interest_rate,
            last_accrual_date=member.last_interest_calculation_date,
        )


@dataclass(frozen=True)
class AccrualLine:
    """Interest charged for one month of an accrual batch"""

    month: int
    balance: Decimal
    rate: Decimal
    interest: Decimal


@dataclass
class AccrualResult:
    """Outcome of accruing interest up to a given date"""

    months_to_calculate: int
    total_interest: Decimal
    new_interest_balance: Decimal
    breakdown: List[AccrualLine] = field(default_factory=list)


@dataclass
class PaymentSplit:
    """Allocation of a payment between interest, principal and overpayment"""

    interest_paid: Decimal
    principal_paid: Decimal
    excess: Decimal
    new_interest_balance: Decimal
    new_principal: Decimal


@dataclass
class EligibilityResult:
    """Loan eligibility with every failing reason"""

    eligible: bool
    reasons: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class LoanPolicy:
    """Society-wide lending settings"""

    base_monthly_rate_percent: Decimal = DEFAULT_MONTHLY_RATE
    standard_term_months: int = DEFAULT_DURATION_MONTHS
    minimum_membership_months: int = 6
    loan_multiplier: Decimal = Decimal("2")


@dataclass
class LoanSummary:
    """Read-only snapshot of an active loan for display"""

    status: str
    loan_balance: Decimal
    interest_balance: Decimal
    total_owed: Decimal
    months_since_disbursement: int
    current_monthly_rate: Decimal
    is_penalty_rate: bool
    next_month_interest: Decimal
    months_overdue: int
    months_remaining: int
    loan_end_date: Optional[date]
    next_interest_due_date: Optional[date]


@dataclass
class InterestPreview:
    """Interest that will be charged on the next due date"""

    due_date: date
    rate: Decimal
    amount: Decimal
    message: str


@dataclass
class LedgerEntry:
    """Append-only record of a financial event"""

    member_id: str
    type: str
    amount: Decimal
    balance_after: Decimal
    description: str
    reference: str
    processed_by: str = "system"
    created_at: Optional[datetime] = None
    id: Optional[str] = None


@dataclass
class LoanApplication:
    """Member's request for a new loan"""

    id: str
    member_id: str
    amount: Decimal
    purpose: str
    duration_months: int
    status: str = PENDING
    applied_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    review_notes: Optional[str] = None
    disbursed_at: Optional[datetime] = None
