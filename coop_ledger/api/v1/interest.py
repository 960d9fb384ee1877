"""Interest endpoints: per-member preview and posting, and the batch run"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from coop_ledger.api.dependencies import get_loan_service, get_request_id
from coop_ledger.api.errors import domain_errors
from coop_ledger.api.v1.schemas import (
    AccrualLineSchema,
    AccrualResponse,
    InterestPostingSchema,
    InterestRunResponse,
)
from coop_ledger.domain.models import AccrualResult
from coop_ledger.services.loans import LoanService

router = APIRouter()


def to_accrual_response(member_id: str, result: AccrualResult, reference: Optional[str] = None) -> AccrualResponse:
    return AccrualResponse(
        member_id=member_id,
        months_to_calculate=result.months_to_calculate,
        total_interest=result.total_interest,
        new_interest_balance=result.new_interest_balance,
        breakdown=[AccrualLineSchema.model_validate(line) for line in result.breakdown],
        reference=reference,
    )


@router.get("/members/{member_id}/interest", response_model=AccrualResponse)
def preview_interest(
    member_id: str,
    request: Request,
    as_of: Optional[date] = Query(None, description="Accrue up to this date (default today)"),
    service: LoanService = Depends(get_loan_service),
):
    """Month-by-month interest owed since the last calculation, without charging it"""
    with domain_errors(service.store, get_request_id(request)):
        result = service.preview_interest(member_id, as_of)
    return to_accrual_response(member_id, result)


@router.post("/members/{member_id}/interest", response_model=AccrualResponse)
def post_interest(
    member_id: str,
    request: Request,
    as_of: Optional[date] = Query(None, description="Accrue up to this date (default today)"),
    processed_by: str = Query("admin"),
    service: LoanService = Depends(get_loan_service),
):
    """
    Charge outstanding months of interest to the member.

    Returns months_to_calculate = 0 and writes nothing when no whole month is owed.
    """
    with domain_errors(service.store, get_request_id(request)):
        posting = service.post_interest(member_id, as_of, processed_by)
        service.store.commit()

    reference = posting.entry.reference if posting.entry else None
    return to_accrual_response(member_id, posting.result, reference)


@router.post("/interest/run", response_model=InterestRunResponse)
def run_interest(
    request: Request,
    as_of: Optional[date] = Query(None, description="Accrue up to this date (default today)"),
    processed_by: str = Query("system"),
    service: LoanService = Depends(get_loan_service),
):
    """Post interest for every member with an active loan"""
    with domain_errors(service.store, get_request_id(request)):
        run = service.run_interest(as_of, processed_by)
        service.store.commit()

    return InterestRunResponse(
        processed_members=run.processed_members,
        total_interest_charged=run.total_interest_charged,
        postings=[
            InterestPostingSchema(
                member_id=p.member_id,
                member_name=p.member_name,
                loan_balance=p.loan_balance,
                previous_interest_balance=p.previous_interest_balance,
                new_interest_balance=p.result.new_interest_balance,
                interest_charged=p.result.total_interest,
                months=p.result.months_to_calculate,
                reference=p.entry.reference if p.entry else None,
            )
            for p in run.postings
        ],
        skipped_member_ids=run.skipped_member_ids,
        failed_members=run.failed_members,
    )
