"""Loan accrual engine - interest accrual, penalty escalation and payment allocation"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from coop_ledger.domain.exceptions import InvalidAmountError, MissingStartDateError
from coop_ledger.domain.models import (
    ZERO,
    AccrualLine,
    AccrualResult,
    EligibilityResult,
    InterestPreview,
    LoanAccount,
    LoanPolicy,
    LoanSummary,
    Member,
    PaymentSplit,
    LOAN_ACTIVE,
    LOAN_NONE,
    LOAN_OVERDUE,
)
from coop_ledger.utils.date_utils import (
    add_months,
    complete_months_between,
    first_of_next_month,
    months_between,
)

CENT = Decimal("0.01")
PENALTY_MULTIPLIER = Decimal("2")


def to_money(value: Decimal) -> Decimal:
    """Quantize to whole cents, rounding half up"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    return f"{to_money(value):,.2f}"


def format_rate(rate: Decimal) -> str:
    return f"{Decimal(rate).normalize():f}%"


def current_monthly_rate(account: LoanAccount, now: date) -> Decimal:
    """
    Monthly interest rate (percent) that applies at `now`.

    The base rate holds while the loan is within its nominal term; once more than
    `duration_months` calendar months have passed since disbursement the rate doubles.
    Closed loans and loans without a start date carry no rate.
    """
    if account.principal <= 0 or account.start_date is None:
        return ZERO

    months_since_start = months_between(account.start_date, now)
    if months_since_start <= account.duration_months:
        return account.base_monthly_rate_percent
    return account.base_monthly_rate_percent * PENALTY_MULTIPLIER


def monthly_interest(principal: Decimal, rate_percent: Decimal) -> Decimal:
    return to_money(principal * rate_percent / 100)


def accrue(account: LoanAccount, now: date) -> AccrualResult:
    """
    Compute interest owed for every whole month since the last accrual.

    Requirements:
    - One breakdown line per month, each charged on the unchanged principal
      (interest never compounds into principal)
    - Each month's rate is looked up at that month's own point in time, so a batch
      that crosses the end of the term switches to the penalty rate partway through
    - Pure: the caller persists `new_interest_balance` and moves `last_accrual_date`

    Raises:
        MissingStartDateError: principal is positive but no disbursement date exists
    """
    if account.principal <= 0:
        return _zero_effect(account)

    if account.start_date is None:
        raise MissingStartDateError("Loan balance is positive but loan start date is missing")

    last_accrual = account.last_accrual_date or account.start_date
    months_to_charge = max(months_between(last_accrual, now), 0)
    if months_to_charge == 0:
        return _zero_effect(account)

    breakdown: List[AccrualLine] = []
    for month in range(1, months_to_charge + 1):
        charge_point = add_months(last_accrual, month)
        rate = current_monthly_rate(account, charge_point)
        breakdown.append(
            AccrualLine(
                month=month,
                balance=account.principal,
                rate=rate,
                interest=monthly_interest(account.principal, rate),
            )
        )

    total_interest = sum((line.interest for line in breakdown), ZERO)

    return AccrualResult(
        months_to_calculate=months_to_charge,
        total_interest=total_interest,
        new_interest_balance=account.accrued_interest + total_interest,
        breakdown=breakdown,
    )


def _zero_effect(account: LoanAccount) -> AccrualResult:
    return AccrualResult(
        months_to_calculate=0,
        total_interest=ZERO,
        new_interest_balance=account.accrued_interest,
        breakdown=[],
    )


def allocate_payment(account: LoanAccount, payment_amount: Decimal) -> PaymentSplit:
    """
    Split a payment interest-first, then principal.

    Anything beyond the total owed is returned as `excess` (a refundable overpayment)
    and is never applied to either balance.

    Raises:
        InvalidAmountError: payment_amount is zero or negative
    """
    if payment_amount <= 0:
        raise InvalidAmountError("Payment amount must be greater than zero")

    interest_paid = min(payment_amount, max(account.accrued_interest, ZERO))
    remaining = payment_amount - interest_paid

    principal_paid = min(remaining, max(account.principal, ZERO))
    excess = remaining - principal_paid

    return PaymentSplit(
        interest_paid=interest_paid,
        principal_paid=principal_paid,
        excess=excess,
        new_interest_balance=account.accrued_interest - interest_paid,
        new_principal=account.principal - principal_paid,
    )


def eligible_for_new_loan(member: Member, policy: LoanPolicy, today: date) -> EligibilityResult:
    """
    Check every loan eligibility rule and collect all failures.

    Rules:
    - Membership tenure of at least `policy.minimum_membership_months`
      (waived when the member's eligibility override is set)
    - No outstanding loan principal
    - No outstanding interest
    """
    reasons: List[str] = []

    tenure = complete_months_between(member.date_joined, today)
    if tenure < policy.minimum_membership_months and not member.loan_eligibility_override:
        wait = policy.minimum_membership_months - tenure
        reasons.append(
            f"You must be a member for at least {policy.minimum_membership_months} months "
            f"before applying for a loan. You need to wait {wait} more month{'s' if wait != 1 else ''}."
        )

    if member.loan_balance > 0:
        reasons.append(
            "You cannot apply for a new loan while you have an outstanding loan balance "
            f"of {format_money(member.loan_balance)}"
        )

    if member.interest_balance > 0:
        reasons.append(
            f"Please clear your outstanding interest balance of {format_money(member.interest_balance)} "
            "before applying for a new loan"
        )

    return EligibilityResult(eligible=not reasons, reasons=reasons)


def max_loan_amount(
    shares_balance: Decimal,
    savings_balance: Decimal,
    multiplier: Decimal = Decimal("2"),
) -> Decimal:
    """Largest loan a member may request: a multiple of shares plus savings"""
    if shares_balance < 0 or savings_balance < 0 or multiplier < 0:
        raise InvalidAmountError("Balances and multiplier must not be negative")
    return (shares_balance + savings_balance) * multiplier


def loan_status(account: LoanAccount, now: date) -> str:
    if account.principal <= 0:
        return LOAN_NONE
    if account.start_date is not None and months_between(account.start_date, now) > account.duration_months:
        return LOAN_OVERDUE
    return LOAN_ACTIVE


def next_interest_due_date(account: LoanAccount, now: date) -> Optional[date]:
    """Interest is charged on the first day of each month following disbursement"""
    if account.principal <= 0 or account.start_date is None:
        return None
    return first_of_next_month(max(account.start_date, now))


def next_month_interest_preview(account: LoanAccount, now: date) -> Optional[InterestPreview]:
    """Interest that the next due date will charge, with a message for the member"""
    due_date = next_interest_due_date(account, now)
    if due_date is None:
        return None

    rate = current_monthly_rate(account, due_date)
    amount = monthly_interest(account.principal, rate)
    month_name = due_date.strftime("%B %Y")
    prefix = "First interest" if due_date == first_of_next_month(account.start_date) else "Interest"

    return InterestPreview(
        due_date=due_date,
        rate=rate,
        amount=amount,
        message=(
            f"{prefix} of {format_money(amount)} will be charged on "
            f"{due_date.isoformat()} for {month_name}"
        ),
    )


def loan_summary(account: LoanAccount, now: date) -> Optional[LoanSummary]:
    """Snapshot of an active loan; None once the principal is repaid"""
    if account.principal <= 0:
        return None

    months_since = months_between(account.start_date, now) if account.start_date else 0
    rate = current_monthly_rate(account, now)

    return LoanSummary(
        status=loan_status(account, now),
        loan_balance=account.principal,
        interest_balance=account.accrued_interest,
        total_owed=account.principal + account.accrued_interest,
        months_since_disbursement=months_since,
        current_monthly_rate=rate,
        is_penalty_rate=rate > account.base_monthly_rate_percent,
        next_month_interest=monthly_interest(account.principal, rate),
        months_overdue=max(0, months_since - account.duration_months),
        months_remaining=max(0, account.duration_months - months_since),
        loan_end_date=(
            add_months(account.start_date, account.duration_months) if account.start_date else None
        ),
        next_interest_due_date=next_interest_due_date(account, now),
    )
