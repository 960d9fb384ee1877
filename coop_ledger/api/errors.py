"""Translate domain exceptions into HTTP responses, rolling back the unit of work"""

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException

from coop_ledger.domain.exceptions import (
    ApplicationNotFoundError,
    ApplicationStateError,
    DuplicateMemberError,
    InvalidAmountError,
    LoanIneligibleError,
    LoanLimitExceededError,
    MemberNotFoundError,
    MissingStartDateError,
    NoActiveLoanError,
    StaleMemberError,
)
from coop_ledger.infrastructure.store import StoreSession


@contextmanager
def domain_errors(store: StoreSession, request_id: str) -> Iterator[None]:
    """
    Wrap one request's work.

    Any exception rolls the store back before it is mapped:
    - not found → 404
    - invalid amount, ineligible, over limit → 422
    - stale member, duplicate member number, no active loan, wrong application state,
      missing start date → 409
    - anything else → 500
    """
    try:
        yield

    except HTTPException:
        store.rollback()
        raise

    except (MemberNotFoundError, ApplicationNotFoundError) as e:
        store.rollback()
        logging.warning(f"Not found: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=404, detail=str(e))

    except LoanIneligibleError as e:
        store.rollback()
        logging.warning(f"Loan ineligible: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail={"message": "Not eligible for a loan", "reasons": e.reasons})

    except (InvalidAmountError, LoanLimitExceededError) as e:
        store.rollback()
        logging.warning(f"Rejected amount: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except StaleMemberError as e:
        store.rollback()
        logging.warning(f"Concurrent update: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail="Member was updated by another request, please try again")

    except (NoActiveLoanError, ApplicationStateError, DuplicateMemberError) as e:
        store.rollback()
        logging.warning(f"Conflict: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))

    except MissingStartDateError as e:
        store.rollback()
        logging.error(f"Loan data inconsistent: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))

    except Exception as e:
        store.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
