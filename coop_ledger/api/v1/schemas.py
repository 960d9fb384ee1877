"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional


class MemberCreate(BaseModel):
    """Request body for POST /v1/members"""

    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    member_number: Optional[str] = Field(None, description="Generated when omitted")
    date_joined: Optional[date] = Field(None, description="Defaults to today")
    shares_balance: Decimal = Field(Decimal("0"), ge=0)
    savings_balance: Decimal = Field(Decimal("0"), ge=0)
    loan_eligibility_override: bool = False


class LoanSummarySchema(BaseModel):
    """Active loan snapshot"""

    model_config = ConfigDict(from_attributes=True)

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
    loan_end_date: Optional[date] = None
    next_interest_due_date: Optional[date] = None


class InterestPreviewSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    due_date: date
    rate: Decimal
    amount: Decimal
    message: str


class MemberResponse(BaseModel):
    """Response for member endpoints"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    member_number: str
    first_name: str
    last_name: str
    email: str
    date_joined: date
    status: str
    shares_balance: Decimal
    savings_balance: Decimal
    loan_balance: Decimal
    interest_balance: Decimal
    loan_start_date: Optional[date] = None
    loan_duration_months: int
    loan_interest_rate: Decimal
    last_interest_calculation_date: Optional[date] = None
    loan_eligibility_override: bool
    loan_summary: Optional[LoanSummarySchema] = None
    next_interest: Optional[InterestPreviewSchema] = None


class LedgerEntrySchema(BaseModel):
    """Single ledger entry"""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    type: str
    amount: Decimal
    balance_after: Decimal
    description: str
    reference: str
    processed_by: str
    created_at: Optional[datetime] = None


class TransactionsResponse(BaseModel):
    """Response for GET /v1/members/{member_id}/transactions"""

    member_id: str
    transactions: List[LedgerEntrySchema]


class AccrualLineSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    month: int
    balance: Decimal
    rate: Decimal
    interest: Decimal


class AccrualResponse(BaseModel):
    """Response for interest preview and posting"""

    member_id: str
    months_to_calculate: int
    total_interest: Decimal
    new_interest_balance: Decimal
    breakdown: List[AccrualLineSchema]
    reference: Optional[str] = None


class InterestPostingSchema(BaseModel):
    member_id: str
    member_name: str
    loan_balance: Decimal
    previous_interest_balance: Decimal
    new_interest_balance: Decimal
    interest_charged: Decimal
    months: int
    reference: Optional[str] = None


class InterestRunResponse(BaseModel):
    """Response for POST /v1/interest/run"""

    processed_members: int
    total_interest_charged: Decimal
    postings: List[InterestPostingSchema]
    skipped_member_ids: List[str]
    failed_members: Dict[str, str]


class PaymentRequest(BaseModel):
    """Request body for payment preview and processing"""

    amount: Decimal = Field(..., gt=0, description="Amount received from the member")
    note: str = ""
    processed_by: str = "admin"


class PaymentResponse(BaseModel):
    """Interest-first split of a payment"""

    member_id: str
    interest_paid: Decimal
    principal_paid: Decimal
    excess: Decimal
    new_interest_balance: Decimal
    new_principal: Decimal
    references: List[str] = []


class EligibilityResponse(BaseModel):
    """Response for GET /v1/members/{member_id}/eligibility"""

    member_id: str
    eligible: bool
    reasons: List[str]
    max_loan_amount: Decimal


class LoanApplicationRequest(BaseModel):
    """Request body for POST /v1/loan-applications"""

    member_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    purpose: str = Field(..., min_length=1)
    duration_months: Optional[int] = Field(None, gt=0, le=120)


class LoanApplicationSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    member_id: str
    amount: Decimal
    purpose: str
    duration_months: int
    status: str
    applied_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    review_notes: Optional[str] = None
    disbursed_at: Optional[datetime] = None


class LoanQueueResponse(BaseModel):
    """Pending applications, oldest first"""

    applications: List[LoanApplicationSchema]


class ReviewRequest(BaseModel):
    """Request body for approve/reject"""

    reviewer: str = "admin"
    notes: str = ""


class SummaryResponse(BaseModel):
    """Response for GET /v1/reports/summary"""

    model_config = ConfigDict(from_attributes=True)

    total_members: int
    active_loans: int
    overdue_loans: int
    pending_applications: int
    total_shares: Decimal
    total_savings: Decimal
    total_with_organization: Decimal
    total_loans: Decimal
    total_interest_outstanding: Decimal


class AdjustmentRequest(BaseModel):
    """Request body for POST /v1/members/{member_id}/adjustments; omitted balances stay as they are"""

    reason: str = Field(..., min_length=1, description="Why the balances are being corrected")
    processed_by: str = "admin"
    shares_balance: Optional[Decimal] = None
    savings_balance: Optional[Decimal] = None
    loan_balance: Optional[Decimal] = None
    interest_balance: Optional[Decimal] = None


class AdjustmentResponse(BaseModel):
    """Member after the adjustment and the ledger entries it wrote"""

    member: MemberResponse
    transactions: List[LedgerEntrySchema]
