"""Loan application endpoints: apply, FIFO review queue, approve and reject"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from coop_ledger.api.dependencies import get_loan_service, get_notification_sink, get_request_id
from coop_ledger.api.errors import domain_errors
from coop_ledger.api.v1.schemas import (
    LoanApplicationRequest,
    LoanApplicationSchema,
    LoanQueueResponse,
    ReviewRequest,
)
from coop_ledger.services.loans import LoanService

router = APIRouter()


@router.post("/loan-applications", response_model=LoanApplicationSchema, status_code=201)
def apply_for_loan(
    request_body: LoanApplicationRequest,
    request: Request,
    service: LoanService = Depends(get_loan_service),
):
    """
    File a loan application.

    Rejected with 422 (listing every failed check) when the member is not eligible,
    or when the amount exceeds the multiple of shares plus savings.
    """
    with domain_errors(service.store, get_request_id(request)):
        application = service.apply_for_loan(
            request_body.member_id,
            request_body.amount,
            request_body.purpose,
            request_body.duration_months,
        )
        service.store.commit()
    return LoanApplicationSchema.model_validate(application)


@router.get("/loan-applications/queue", response_model=LoanQueueResponse)
def loan_queue(request: Request, service: LoanService = Depends(get_loan_service)):
    """Pending applications in the order they were filed"""
    with domain_errors(service.store, get_request_id(request)):
        applications = service.loan_queue()
    return LoanQueueResponse(
        applications=[LoanApplicationSchema.model_validate(a) for a in applications]
    )


@router.post("/loan-applications/{application_id}/approve", response_model=LoanApplicationSchema)
def approve_loan(
    application_id: str,
    request_body: ReviewRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    service: LoanService = Depends(get_loan_service),
    notification_sink=Depends(get_notification_sink),
):
    """
    Approve and disburse a pending application.

    Flow:
    1. Add the amount to the member's loan balance and start the accrual clock
    2. Record the disbursement in the ledger
    3. Mark the application approved
    4. Commit, then notify the member in the background
    """
    with domain_errors(service.store, get_request_id(request)):
        decision = service.approve_loan(application_id, request_body.reviewer, request_body.notes)
        service.store.commit()

    background_tasks.add_task(notification_sink.send, decision.notification)
    return LoanApplicationSchema.model_validate(decision.application)


@router.post("/loan-applications/{application_id}/reject", response_model=LoanApplicationSchema)
def reject_loan(
    application_id: str,
    request_body: ReviewRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    service: LoanService = Depends(get_loan_service),
    notification_sink=Depends(get_notification_sink),
):
    """Reject a pending application and notify the member"""
    with domain_errors(service.store, get_request_id(request)):
        decision = service.reject_loan(application_id, request_body.reviewer, request_body.notes)
        service.store.commit()

    background_tasks.add_task(notification_sink.send, decision.notification)
    return LoanApplicationSchema.model_validate(decision.application)
