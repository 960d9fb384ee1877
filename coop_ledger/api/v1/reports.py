"""GET /v1/reports/summary - Society-wide balances for the admin dashboard"""

from fastapi import APIRouter, Depends, Request

from coop_ledger.api.dependencies import get_loan_service, get_request_id
from coop_ledger.api.errors import domain_errors
from coop_ledger.api.v1.schemas import SummaryResponse
from coop_ledger.services.loans import LoanService

router = APIRouter()


@router.get("/reports/summary", response_model=SummaryResponse)
def get_summary(request: Request, service: LoanService = Depends(get_loan_service)):
    with domain_errors(service.store, get_request_id(request)):
        summary = service.portfolio_summary()
    return SummaryResponse.model_validate(summary)
