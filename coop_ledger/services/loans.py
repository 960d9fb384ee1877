"""Loan servicing - applies engine results to member balances and the ledger"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from coop_ledger.domain.accrual import (
    accrue,
    allocate_payment,
    eligible_for_new_loan,
    format_money,
    format_rate,
    loan_status,
    max_loan_amount,
    to_money,
)
from coop_ledger.domain.exceptions import (
    ApplicationStateError,
    InvalidAmountError,
    LoanIneligibleError,
    LoanLimitExceededError,
    MissingStartDateError,
    NoActiveLoanError,
    StaleMemberError,
)
from coop_ledger.domain.models import (
    ZERO,
    AccrualResult,
    EligibilityResult,
    LedgerEntry,
    LoanAccount,
    LoanApplication,
    LoanPolicy,
    Member,
    PaymentSplit,
    APPROVED,
    INTEREST_CHARGE,
    INTEREST_PAYMENT,
    LOAN_DISBURSEMENT,
    LOAN_OVERDUE,
    LOAN_PAYMENT,
    PENDING,
    REJECTED,
    SAVINGS_DEPOSIT,
    SAVINGS_WITHDRAWAL,
    SHARES_DEPOSIT,
    SHARES_WITHDRAWAL,
)
from coop_ledger.infrastructure.clients.notifications import (
    Notification,
    loan_approved_notification,
    loan_rejected_notification,
)
from coop_ledger.infrastructure.observability.logging import log_interest_posted, log_payment_processed
from coop_ledger.infrastructure.observability.metrics import (
    record_interest_posted,
    record_loan_decision,
    record_payment,
    stale_update_counter,
)
from coop_ledger.infrastructure.store import StoreSession

logger = logging.getLogger(__name__)


def new_reference(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"


# Balance field -> (entry type when it grows, entry type when it shrinks, reference suffix)
ADJUSTMENT_ENTRY_TYPES = {
    "shares_balance": (SHARES_DEPOSIT, SHARES_WITHDRAWAL, "SH"),
    "savings_balance": (SAVINGS_DEPOSIT, SAVINGS_WITHDRAWAL, "SV"),
    "loan_balance": (LOAN_DISBURSEMENT, LOAN_PAYMENT, "LN"),
    "interest_balance": (INTEREST_CHARGE, INTEREST_PAYMENT, "INT"),
}


@dataclass
class InterestPosting:
    """Accrual computed for one member and the ledger entry it produced, if any"""

    member_id: str
    member_name: str
    loan_balance: Decimal
    previous_interest_balance: Decimal
    result: AccrualResult
    entry: Optional[LedgerEntry] = None


@dataclass
class InterestRun:
    """Outcome of posting interest across all members with active loans"""

    processed_members: int
    total_interest_charged: Decimal
    postings: List[InterestPosting] = field(default_factory=list)
    skipped_member_ids: List[str] = field(default_factory=list)
    failed_members: Dict[str, str] = field(default_factory=dict)  # member_id -> reason


@dataclass
class PaymentReceipt:
    member_id: str
    split: PaymentSplit
    entries: List[LedgerEntry] = field(default_factory=list)


@dataclass
class EligibilityCheck:
    result: EligibilityResult
    max_loan_amount: Decimal


@dataclass
class LoanDecision:
    """Reviewed application plus the message to send to the member"""

    application: LoanApplication
    member: Member
    notification: Notification


@dataclass
class BalanceAdjustment:
    """Member after an admin adjustment and one ledger entry per changed balance"""

    member: Member
    entries: List[LedgerEntry] = field(default_factory=list)


@dataclass
class PortfolioSummary:
    total_members: int
    active_loans: int
    overdue_loans: int
    pending_applications: int
    total_shares: Decimal
    total_savings: Decimal
    total_loans: Decimal
    total_interest_outstanding: Decimal

    @property
    def total_with_organization(self) -> Decimal:
        return self.total_shares + self.total_savings


class LoanService:
    """
    Read-compute-write orchestration around the accrual engine.

    Every balance write carries the version the member was read at, so a concurrent
    request that already changed the member makes this one fail with StaleMemberError
    instead of charging or crediting twice. Committing is left to the caller.
    """

    def __init__(self, store: StoreSession, policy: LoanPolicy):
        self.store = store
        self.policy = policy

    def register_member(self, member: Member) -> Member:
        if member.shares_balance < 0 or member.savings_balance < 0:
            raise InvalidAmountError("Opening balances must not be negative")
        if not member.member_number:
            member.member_number = f"MEM{len(self.store.members.list_all()) + 1:04d}"
        return self.store.members.create(member)

    # Interest

    def preview_interest(self, member_id: str, today: Optional[date] = None) -> AccrualResult:
        member = self.store.members.get(member_id)
        return accrue(LoanAccount.from_member(member), today or date.today())

    def post_interest(
        self,
        member_id: str,
        today: Optional[date] = None,
        processed_by: str = "system",
    ) -> InterestPosting:
        """Charge all months owed since the last calculation; no-op when nothing is owed"""
        today = today or date.today()
        member = self.store.members.get(member_id)
        result = accrue(LoanAccount.from_member(member), today)

        posting = InterestPosting(
            member_id=member.id,
            member_name=member.full_name,
            loan_balance=member.loan_balance,
            previous_interest_balance=member.interest_balance,
            result=result,
        )
        if result.months_to_calculate == 0:
            return posting

        # Move the calculation date together with the balance so a retry finds nothing owed
        self._update_member(
            member,
            interest_balance=result.new_interest_balance,
            last_interest_calculation_date=today,
        )

        rates = []
        for line in result.breakdown:
            if line.rate not in rates:
                rates.append(line.rate)
        rate_text = "/".join(format_rate(rate) for rate in rates)

        reference = new_reference("INT")
        posting.entry = self.store.transactions.append(
            LedgerEntry(
                member_id=member.id,
                type=INTEREST_CHARGE,
                amount=result.total_interest,
                balance_after=result.new_interest_balance,
                description=(
                    f"Monthly interest charge - {result.months_to_calculate} month(s) "
                    f"at {rate_text} per month"
                ),
                reference=reference,
                processed_by=processed_by,
            )
        )

        self.store.after_commit(
            lambda: log_interest_posted(
                member.id, result.months_to_calculate, result.total_interest, result.new_interest_balance, reference
            )
        )
        self.store.after_commit(lambda: record_interest_posted(result.total_interest))
        return posting

    def run_interest(self, today: Optional[date] = None, processed_by: str = "system") -> InterestRun:
        """
        Post interest for every member with an active loan.

        A member that cannot be charged is reported in the run and does not stop the
        others: stale reads land in skipped_member_ids, inconsistent loan data
        in failed_members.
        """
        today = today or date.today()
        run = InterestRun(processed_members=0, total_interest_charged=ZERO)

        for member in self.store.members.list_with_active_loans():
            try:
                posting = self.post_interest(member.id, today, processed_by)
            except StaleMemberError:
                logger.warning(f"Skipped member {member.id}: modified during interest run")
                run.skipped_member_ids.append(member.id)
                continue
            except MissingStartDateError as e:
                logger.error(f"Interest not posted for member {member.id}: {e}", extra={"member_id": member.id})
                run.failed_members[member.id] = str(e)
                continue

            if posting.entry is not None:
                run.processed_members += 1
                run.total_interest_charged += posting.result.total_interest
                run.postings.append(posting)

        return run

    # Payments

    def preview_payment(self, member_id: str, amount: Decimal) -> PaymentSplit:
        member = self.store.members.get(member_id)
        return allocate_payment(LoanAccount.from_member(member), to_money(amount))

    def process_payment(
        self,
        member_id: str,
        amount: Decimal,
        note: str = "",
        processed_by: str = "admin",
    ) -> PaymentReceipt:
        """
        Apply a payment interest-first, then to principal.

        Writes one ledger entry per component actually paid. Overpayment is reported
        in the split and left for the caller to refund.
        """
        member = self.store.members.get(member_id)
        if member.loan_balance <= 0 and member.interest_balance <= 0:
            raise NoActiveLoanError(f"Member {member_id} has no outstanding loan or interest")

        split = allocate_payment(LoanAccount.from_member(member), to_money(amount))

        changes = {
            "interest_balance": split.new_interest_balance,
            "loan_balance": split.new_principal,
        }
        if split.new_principal <= 0 and split.new_interest_balance <= 0:
            # Fully repaid: the loan is closed
            changes["loan_start_date"] = None
            changes["last_interest_calculation_date"] = None
        self._update_member(member, **changes)

        suffix = f": {note}" if note else ""
        receipt = PaymentReceipt(member_id=member.id, split=split)
        if split.interest_paid > 0:
            receipt.entries.append(
                self.store.transactions.append(
                    LedgerEntry(
                        member_id=member.id,
                        type=INTEREST_PAYMENT,
                        amount=split.interest_paid,
                        balance_after=split.new_interest_balance,
                        description=f"Interest payment{suffix}",
                        reference=new_reference("IP"),
                        processed_by=processed_by,
                    )
                )
            )
        if split.principal_paid > 0:
            receipt.entries.append(
                self.store.transactions.append(
                    LedgerEntry(
                        member_id=member.id,
                        type=LOAN_PAYMENT,
                        amount=split.principal_paid,
                        balance_after=split.new_principal,
                        description=f"Loan payment{suffix}",
                        reference=new_reference("LP"),
                        processed_by=processed_by,
                    )
                )
            )

        self.store.after_commit(
            lambda: log_payment_processed(member.id, split.interest_paid, split.principal_paid, split.excess)
        )
        self.store.after_commit(lambda: record_payment(split.interest_paid, split.principal_paid))
        return receipt

    # Loan applications

    def check_eligibility(self, member_id: str, today: Optional[date] = None) -> EligibilityCheck:
        member = self.store.members.get(member_id)
        return EligibilityCheck(
            result=eligible_for_new_loan(member, self.policy, today or date.today()),
            max_loan_amount=max_loan_amount(
                member.shares_balance, member.savings_balance, self.policy.loan_multiplier
            ),
        )

    def apply_for_loan(
        self,
        member_id: str,
        amount: Decimal,
        purpose: str,
        duration_months: Optional[int] = None,
        today: Optional[date] = None,
    ) -> LoanApplication:
        """
        File a loan application after checking eligibility and the loan limit.

        Raises:
            InvalidAmountError: amount is not positive
            LoanIneligibleError: one or more eligibility checks failed (all reasons attached)
            LoanLimitExceededError: amount is above (shares + savings) * multiplier
            ApplicationStateError: member already has a pending application
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmountError("Loan amount must be greater than 0")

        check = self.check_eligibility(member_id, today)
        if not check.result.eligible:
            raise LoanIneligibleError(check.result.reasons)

        if amount > check.max_loan_amount:
            raise LoanLimitExceededError(
                f"Loan amount cannot exceed {format_money(check.max_loan_amount)} "
                f"({self.policy.loan_multiplier}x your total shares and savings)"
            )

        if any(a.member_id == member_id for a in self.store.applications.list_pending()):
            raise ApplicationStateError(f"Member {member_id} already has a pending loan application")

        return self.store.applications.create(
            LoanApplication(
                id="",
                member_id=member_id,
                amount=amount,
                purpose=purpose,
                duration_months=duration_months or self.policy.standard_term_months,
            )
        )

    def loan_queue(self) -> List[LoanApplication]:
        """Pending applications, first come first served"""
        return self.store.applications.list_pending()

    def approve_loan(
        self,
        application_id: str,
        reviewer: str = "admin",
        notes: str = "",
        today: Optional[date] = None,
    ) -> LoanDecision:
        """
        Disburse an approved loan: principal grows and the accrual clock starts today.

        The application leaves PENDING before any balance moves, so of two reviewers
        approving the same application only one disburses; the other gets
        ApplicationStateError and writes nothing.
        """
        today = today or date.today()
        application = self._pending_application(application_id)

        reviewed_at = datetime.now(timezone.utc)
        application = self.store.applications.transition(
            application.id,
            PENDING,
            status=APPROVED,
            reviewed_at=reviewed_at,
            reviewed_by=reviewer,
            review_notes=notes or None,
            disbursed_at=reviewed_at,
        )

        member = self.store.members.get(application.member_id)
        new_balance = member.loan_balance + application.amount
        member = self._update_member(
            member,
            loan_balance=new_balance,
            loan_start_date=today,
            loan_duration_months=application.duration_months,
            loan_interest_rate=self.policy.base_monthly_rate_percent,
            last_interest_calculation_date=today,
        )

        self.store.transactions.append(
            LedgerEntry(
                member_id=member.id,
                type=LOAN_DISBURSEMENT,
                amount=application.amount,
                balance_after=new_balance,
                description=f"Loan approved and disbursed - {application.purpose}",
                reference=new_reference("LN"),
                processed_by=reviewer,
            )
        )

        self.store.after_commit(lambda: record_loan_decision(approved=True))
        self.store.after_commit(
            lambda: logger.info(
                "Loan approved",
                extra={"member_id": member.id, "application_id": application.id, "amount": str(application.amount)},
            )
        )
        return LoanDecision(application, member, loan_approved_notification(member, application))

    def reject_loan(self, application_id: str, reviewer: str = "admin", notes: str = "") -> LoanDecision:
        application = self._pending_application(application_id)
        member = self.store.members.get(application.member_id)

        application = self.store.applications.transition(
            application.id,
            PENDING,
            status=REJECTED,
            reviewed_at=datetime.now(timezone.utc),
            reviewed_by=reviewer,
            review_notes=notes or None,
        )
        self.store.after_commit(lambda: record_loan_decision(approved=False))
        self.store.after_commit(
            lambda: logger.info("Loan rejected", extra={"member_id": member.id, "application_id": application.id})
        )
        return LoanDecision(application, member, loan_rejected_notification(member, application))

    # Balance adjustments

    def adjust_balances(
        self,
        member_id: str,
        reason: str,
        processed_by: str = "admin",
        shares_balance: Optional[Decimal] = None,
        savings_balance: Optional[Decimal] = None,
        loan_balance: Optional[Decimal] = None,
        interest_balance: Optional[Decimal] = None,
        today: Optional[date] = None,
    ) -> BalanceAdjustment:
        """
        Set a member's balances to admin-supplied values.

        Each balance left as None keeps its current value. Every balance that changes
        gets its own ledger entry for the difference, typed by component and direction.
        A loan raised from nothing starts its accrual clock today; a loan and interest
        both brought to zero close the loan.

        Raises:
            InvalidAmountError: a resulting balance would be negative
        """
        today = today or date.today()
        member = self.store.members.get(member_id)

        targets = {
            "shares_balance": shares_balance,
            "savings_balance": savings_balance,
            "loan_balance": loan_balance,
            "interest_balance": interest_balance,
        }
        changes = {}
        for name, value in targets.items():
            if value is None:
                continue
            value = to_money(value)
            if value < 0:
                raise InvalidAmountError("Balances cannot be negative")
            if value != getattr(member, name):
                changes[name] = value

        adjustment = BalanceAdjustment(member=member)
        if not changes:
            return adjustment

        new_loan = changes.get("loan_balance", member.loan_balance)
        new_interest = changes.get("interest_balance", member.interest_balance)
        if new_loan > 0 and member.loan_start_date is None:
            changes["loan_start_date"] = today
            changes["last_interest_calculation_date"] = today
        elif new_loan <= 0 and new_interest <= 0:
            changes["loan_start_date"] = None
            changes["last_interest_calculation_date"] = None

        adjustment.member = self._update_member(member, **changes)

        reference = new_reference("ADJ")
        for name, (increase_type, decrease_type, suffix) in ADJUSTMENT_ENTRY_TYPES.items():
            if name not in changes:
                continue
            difference = changes[name] - getattr(member, name)
            adjustment.entries.append(
                self.store.transactions.append(
                    LedgerEntry(
                        member_id=member.id,
                        type=increase_type if difference > 0 else decrease_type,
                        amount=abs(difference),
                        balance_after=changes[name],
                        description=f"Admin adjustment: {reason}",
                        reference=f"{reference}-{suffix}",
                        processed_by=processed_by,
                    )
                )
            )

        self.store.after_commit(
            lambda: logger.info(
                "Balances adjusted",
                extra={
                    "member_id": member.id,
                    "step": "balance_adjusted",
                    "reference": reference,
                    "components": sorted(name for name in changes if name in ADJUSTMENT_ENTRY_TYPES),
                },
            )
        )
        return adjustment

    # Reporting

    def portfolio_summary(self, today: Optional[date] = None) -> PortfolioSummary:
        today = today or date.today()
        members = self.store.members.list_all()
        statuses = [loan_status(LoanAccount.from_member(m), today) for m in members]

        return PortfolioSummary(
            total_members=len(members),
            active_loans=sum(1 for m in members if m.loan_balance > 0),
            overdue_loans=statuses.count(LOAN_OVERDUE),
            pending_applications=len(self.store.applications.list_pending()),
            total_shares=sum((m.shares_balance for m in members), ZERO),
            total_savings=sum((m.savings_balance for m in members), ZERO),
            total_loans=sum((m.loan_balance for m in members), ZERO),
            total_interest_outstanding=sum((m.interest_balance for m in members), ZERO),
        )

    def _pending_application(self, application_id: str) -> LoanApplication:
        application = self.store.applications.get(application_id)
        if application.status != PENDING:
            raise ApplicationStateError(f"Loan application {application_id} is already {application.status}")
        return application

    def _update_member(self, member: Member, **changes) -> Member:
        try:
            return self.store.members.update(member.id, member.version, **changes)
        except StaleMemberError:
            stale_update_counter.inc()
            raise
