"""Unit tests for loan eligibility checks"""

from datetime import date
from decimal import Decimal
from coop_ledger.domain.accrual import eligible_for_new_loan
from coop_ledger.domain.models import LoanPolicy


TODAY = date(2024, 7, 1)


def test_eligible_member_has_no_reasons(make_member):
    member = make_member(date_joined=date(2023, 1, 1))
    result = eligible_for_new_loan(member, LoanPolicy(), TODAY)

    assert result.eligible is True
    assert result.reasons == []


def test_all_failing_reasons_are_reported(make_member):
    """3 months tenure with principal and interest outstanding → every reason listed"""
    member = make_member(
        date_joined=date(2024, 4, 1),
        loan_balance=Decimal("200"),
        interest_balance=Decimal("50"),
    )
    result = eligible_for_new_loan(member, LoanPolicy(), TODAY)

    assert result.eligible is False
    assert len(result.reasons) == 3
    assert "at least 6 months" in result.reasons[0]
    assert "wait 3 more months" in result.reasons[0]
    assert "outstanding loan balance of 200.00" in result.reasons[1]
    assert "outstanding interest balance of 50.00" in result.reasons[2]


def test_tenure_counts_complete_months_only(make_member):
    """Joined Jan 15: on Jul 1 only 5 complete months have passed"""
    member = make_member(date_joined=date(2024, 1, 15))
    result = eligible_for_new_loan(member, LoanPolicy(), TODAY)

    assert result.eligible is False
    assert "wait 1 more month." in result.reasons[0]


def test_override_waives_tenure_only(make_member):
    member = make_member(
        date_joined=date(2024, 6, 1),
        loan_balance=Decimal("10"),
        loan_eligibility_override=True,
    )
    result = eligible_for_new_loan(member, LoanPolicy(), TODAY)

    assert result.eligible is False
    assert len(result.reasons) == 1
    assert "outstanding loan balance" in result.reasons[0]


def test_minimum_months_comes_from_policy(make_member):
    member = make_member(date_joined=date(2024, 4, 1))
    result = eligible_for_new_loan(member, LoanPolicy(minimum_membership_months=3), TODAY)

    assert result.eligible is True
