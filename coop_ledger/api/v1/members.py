"""Member endpoints: registration, balances with loan summary, ledger and eligibility"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from coop_ledger.api.dependencies import get_loan_service, get_request_id
from coop_ledger.api.errors import domain_errors
from coop_ledger.api.v1.schemas import (
    AdjustmentRequest,
    AdjustmentResponse,
    EligibilityResponse,
    InterestPreviewSchema,
    LedgerEntrySchema,
    LoanSummarySchema,
    MemberCreate,
    MemberResponse,
    TransactionsResponse,
)
from coop_ledger.domain.accrual import loan_summary, next_month_interest_preview
from coop_ledger.domain.models import LoanAccount, Member
from coop_ledger.services.loans import LoanService

router = APIRouter()


def to_member_response(member: Member, today: date) -> MemberResponse:
    account = LoanAccount.from_member(member)
    summary = loan_summary(account, today)
    preview = next_month_interest_preview(account, today)

    response = MemberResponse.model_validate(member)
    response.loan_summary = LoanSummarySchema.model_validate(summary) if summary else None
    response.next_interest = InterestPreviewSchema.model_validate(preview) if preview else None
    return response


@router.post("/members", response_model=MemberResponse, status_code=201)
def create_member(
    request_body: MemberCreate,
    request: Request,
    service: LoanService = Depends(get_loan_service),
):
    """Register a member with opening share and savings balances"""
    today = date.today()
    with domain_errors(service.store, get_request_id(request)):
        member = service.register_member(
            Member(
                id="",
                member_number=request_body.member_number or "",
                first_name=request_body.first_name,
                last_name=request_body.last_name,
                email=request_body.email,
                date_joined=request_body.date_joined or today,
                shares_balance=request_body.shares_balance,
                savings_balance=request_body.savings_balance,
                loan_eligibility_override=request_body.loan_eligibility_override,
                loan_interest_rate=service.policy.base_monthly_rate_percent,
                loan_duration_months=service.policy.standard_term_months,
            )
        )
        service.store.commit()
    return to_member_response(member, today)


@router.get("/members/{member_id}", response_model=MemberResponse)
def get_member(
    member_id: str,
    request: Request,
    as_of: Optional[date] = Query(None, description="Date the loan summary is computed for"),
    service: LoanService = Depends(get_loan_service),
):
    """
    Retrieve a member's balances.

    Includes the active loan summary (status, rate, penalty flag, months remaining)
    and a preview of the next interest charge.
    """
    with domain_errors(service.store, get_request_id(request)):
        member = service.store.members.get(member_id)
    return to_member_response(member, as_of or date.today())


@router.get("/members/{member_id}/transactions", response_model=TransactionsResponse)
def get_transactions(
    member_id: str,
    request: Request,
    limit: int = Query(50, gt=0, le=500),
    service: LoanService = Depends(get_loan_service),
):
    """Ledger entries for a member, newest first"""
    with domain_errors(service.store, get_request_id(request)):
        member = service.store.members.get(member_id)
        entries = service.store.transactions.list_for_member(member.id, limit=limit)

    return TransactionsResponse(
        member_id=member.id,
        transactions=[LedgerEntrySchema.model_validate(entry) for entry in entries],
    )


@router.get("/members/{member_id}/eligibility", response_model=EligibilityResponse)
def get_eligibility(
    member_id: str,
    request: Request,
    service: LoanService = Depends(get_loan_service),
):
    """Complete loan eligibility checklist plus the member's maximum loan amount"""
    with domain_errors(service.store, get_request_id(request)):
        check = service.check_eligibility(member_id)

    return EligibilityResponse(
        member_id=member_id,
        eligible=check.result.eligible,
        reasons=check.result.reasons,
        max_loan_amount=check.max_loan_amount,
    )


@router.post("/members/{member_id}/adjustments", response_model=AdjustmentResponse)
def adjust_balances(
    member_id: str,
    request_body: AdjustmentRequest,
    request: Request,
    service: LoanService = Depends(get_loan_service),
):
    """
    Correct a member's share, savings, loan or interest balances.

    Each changed balance is recorded in the ledger with the given reason.
    A balance that would end up negative is rejected with 422.
    """
    today = date.today()
    with domain_errors(service.store, get_request_id(request)):
        adjustment = service.adjust_balances(
            member_id,
            request_body.reason,
            processed_by=request_body.processed_by,
            shares_balance=request_body.shares_balance,
            savings_balance=request_body.savings_balance,
            loan_balance=request_body.loan_balance,
            interest_balance=request_body.interest_balance,
            today=today,
        )
        service.store.commit()

    return AdjustmentResponse(
        member=to_member_response(adjustment.member, today),
        transactions=[LedgerEntrySchema.model_validate(entry) for entry in adjustment.entries],
    )
