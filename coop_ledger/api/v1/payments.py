"""Payment endpoints: interest-first split preview and processing"""

from fastapi import APIRouter, Depends, Request

from coop_ledger.api.dependencies import get_loan_service, get_request_id
from coop_ledger.api.errors import domain_errors
from coop_ledger.api.v1.schemas import PaymentRequest, PaymentResponse
from coop_ledger.services.loans import LoanService

router = APIRouter()


@router.post("/members/{member_id}/payments/preview", response_model=PaymentResponse)
def preview_payment(
    member_id: str,
    request_body: PaymentRequest,
    request: Request,
    service: LoanService = Depends(get_loan_service),
):
    """Show how a payment would be split before committing it"""
    with domain_errors(service.store, get_request_id(request)):
        split = service.preview_payment(member_id, request_body.amount)

    return PaymentResponse(
        member_id=member_id,
        interest_paid=split.interest_paid,
        principal_paid=split.principal_paid,
        excess=split.excess,
        new_interest_balance=split.new_interest_balance,
        new_principal=split.new_principal,
    )


@router.post("/members/{member_id}/payments", response_model=PaymentResponse)
def process_payment(
    member_id: str,
    request_body: PaymentRequest,
    request: Request,
    service: LoanService = Depends(get_loan_service),
):
    """
    Apply a payment: outstanding interest first, then principal.

    Any excess over the total owed is returned in the response and not applied.
    """
    with domain_errors(service.store, get_request_id(request)):
        receipt = service.process_payment(
            member_id,
            request_body.amount,
            note=request_body.note,
            processed_by=request_body.processed_by,
        )
        service.store.commit()

    split = receipt.split
    return PaymentResponse(
        member_id=member_id,
        interest_paid=split.interest_paid,
        principal_paid=split.principal_paid,
        excess=split.excess,
        new_interest_balance=split.new_interest_balance,
        new_principal=split.new_principal,
        references=[entry.reference for entry in receipt.entries],
    )
