"""Data access layer for members, ledger entries and loan applications"""

import uuid
from datetime import datetime, timezone
from typing import Any, List
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from coop_ledger.infrastructure.database.models import MemberRecord, LedgerEntryRecord, LoanApplicationRecord
from coop_ledger.infrastructure.store import MemberStore, TransactionLog, LoanApplicationStore, StoreSession
from coop_ledger.domain.exceptions import (
    ApplicationNotFoundError,
    ApplicationStateError,
    DuplicateMemberError,
    MemberNotFoundError,
    StaleMemberError,
)
from coop_ledger.domain.models import LedgerEntry, LoanApplication, Member, PENDING


def _parse_id(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _to_member(row: MemberRecord) -> Member:
    return Member(
        id=str(row.id),
        member_number=row.member_number,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        date_joined=row.date_joined,
        status=row.status,
        shares_balance=row.shares_balance,
        savings_balance=row.savings_balance,
        loan_balance=row.loan_balance,
        interest_balance=row.interest_balance,
        loan_start_date=row.loan_start_date,
        loan_duration_months=row.loan_duration_months,
        loan_interest_rate=row.loan_interest_rate,
        last_interest_calculation_date=row.last_interest_calculation_date,
        loan_eligibility_override=row.loan_eligibility_override,
        version=row.version,
    )


def _to_entry(row: LedgerEntryRecord) -> LedgerEntry:
    return LedgerEntry(
        id=str(row.id),
        member_id=str(row.member_id),
        type=row.type,
        amount=row.amount,
        balance_after=row.balance_after,
        description=row.description,
        reference=row.reference,
        processed_by=row.processed_by,
        created_at=row.created_at,
    )


def _to_application(row: LoanApplicationRecord) -> LoanApplication:
    return LoanApplication(
        id=str(row.id),
        member_id=str(row.member_id),
        amount=row.amount,
        purpose=row.purpose,
        duration_months=row.duration_months,
        status=row.status,
        applied_at=row.applied_at,
        reviewed_at=row.reviewed_at,
        reviewed_by=row.reviewed_by,
        review_notes=row.review_notes,
        disbursed_at=row.disbursed_at,
    )


class MemberRepository(MemberStore):
    """Repository for members"""

    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, member_id: str) -> MemberRecord:
        pk = _parse_id(member_id)
        row = self.db.get(MemberRecord, pk, populate_existing=True) if pk else None
        if row is None:
            raise MemberNotFoundError(f"Member {member_id} not found")
        return row

    def get(self, member_id: str) -> Member:
        return _to_member(self._get_row(member_id))

    def list_all(self) -> List[Member]:
        rows = self.db.query(MemberRecord).order_by(MemberRecord.member_number).all()
        return [_to_member(row) for row in rows]

    def list_with_active_loans(self) -> List[Member]:
        rows = (
            self.db.query(MemberRecord)
            .filter(MemberRecord.loan_balance > 0)
            .order_by(MemberRecord.member_number)
            .all()
        )
        return [_to_member(row) for row in rows]

    def create(self, member: Member) -> Member:
        """Persist a new member; the unique member_number column settles concurrent inserts"""
        taken = self.db.query(MemberRecord.id).filter(MemberRecord.member_number == member.member_number).first()
        if taken is not None:
            raise DuplicateMemberError(f"Member number {member.member_number} is already in use")

        row = MemberRecord(
            id=_parse_id(member.id) or uuid.uuid4(),
            member_number=member.member_number,
            first_name=member.first_name,
            last_name=member.last_name,
            email=member.email,
            date_joined=member.date_joined,
            status=member.status,
            shares_balance=member.shares_balance,
            savings_balance=member.savings_balance,
            loan_balance=member.loan_balance,
            interest_balance=member.interest_balance,
            loan_start_date=member.loan_start_date,
            loan_duration_months=member.loan_duration_months,
            loan_interest_rate=member.loan_interest_rate,
            last_interest_calculation_date=member.last_interest_calculation_date,
            loan_eligibility_override=member.loan_eligibility_override,
            version=member.version,
        )
        self.db.add(row)
        try:
            self.db.flush()  # Get ID without committing
        except IntegrityError as e:
            raise DuplicateMemberError(f"Member number {member.member_number} is already in use") from e
        return _to_member(row)

    def update(self, member_id: str, expected_version: int, **changes: Any) -> Member:
        """Conditional UPDATE keyed on id and version; zero rows matched means a stale read"""
        row = self._get_row(member_id)
        result = self.db.execute(
            update(MemberRecord)
            .where(MemberRecord.id == row.id, MemberRecord.version == expected_version)
            .values(**changes, version=MemberRecord.version + 1)
            .execution_options(synchronize_session=False)
        )
        # The identity map is refreshed by the populate_existing read below
        if result.rowcount == 0:
            raise StaleMemberError(f"Member {member_id} was modified concurrently")
        return self.get(member_id)


class LedgerRepository(TransactionLog):
    """Repository for ledger entries"""

    def __init__(self, db: Session):
        self.db = db

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        row = LedgerEntryRecord(
            member_id=_parse_id(entry.member_id),
            type=entry.type,
            amount=entry.amount,
            balance_after=entry.balance_after,
            description=entry.description,
            reference=entry.reference,
            processed_by=entry.processed_by,
            created_at=entry.created_at or datetime.now(timezone.utc),
        )
        self.db.add(row)
        self.db.flush()
        return _to_entry(row)

    def list_for_member(self, member_id: str, limit: int = 50) -> List[LedgerEntry]:
        """Fetch recent ledger entries for a member"""
        pk = _parse_id(member_id)
        if pk is None:
            return []
        rows = (
            self.db.query(LedgerEntryRecord)
            .filter(LedgerEntryRecord.member_id == pk)
            .order_by(LedgerEntryRecord.created_at.desc())
            .limit(limit)
            .all()
        )
        return [_to_entry(row) for row in rows]


class LoanApplicationRepository(LoanApplicationStore):
    """Repository for loan applications"""

    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, application_id: str) -> LoanApplicationRecord:
        pk = _parse_id(application_id)
        row = self.db.get(LoanApplicationRecord, pk, populate_existing=True) if pk else None
        if row is None:
            raise ApplicationNotFoundError(f"Loan application {application_id} not found")
        return row

    def create(self, application: LoanApplication) -> LoanApplication:
        row = LoanApplicationRecord(
            id=_parse_id(application.id) or uuid.uuid4(),
            member_id=_parse_id(application.member_id),
            amount=application.amount,
            purpose=application.purpose,
            duration_months=application.duration_months,
            status=application.status,
            applied_at=application.applied_at or datetime.now(timezone.utc),
        )
        self.db.add(row)
        self.db.flush()
        return _to_application(row)

    def get(self, application_id: str) -> LoanApplication:
        return _to_application(self._get_row(application_id))

    def list_pending(self) -> List[LoanApplication]:
        rows = (
            self.db.query(LoanApplicationRecord)
            .filter(LoanApplicationRecord.status == PENDING)
            .order_by(LoanApplicationRecord.applied_at.asc())
            .all()
        )
        return [_to_application(row) for row in rows]

    def transition(self, application_id: str, from_status: str, **changes: Any) -> LoanApplication:
        """Conditional UPDATE keyed on id and status; only one reviewer can move an application"""
        row = self._get_row(application_id)
        result = self.db.execute(
            update(LoanApplicationRecord)
            .where(LoanApplicationRecord.id == row.id, LoanApplicationRecord.status == from_status)
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ApplicationStateError(f"Loan application {application_id} is no longer {from_status}")
        return self.get(application_id)


class DatabaseStoreSession(StoreSession):
    """Store session backed by one SQLAlchemy session"""

    def __init__(self, db: Session):
        super().__init__()
        self.db = db
        self.members = MemberRepository(db)
        self.transactions = LedgerRepository(db)
        self.applications = LoanApplicationRepository(db)

    def commit(self) -> None:
        self.db.commit()
        self._run_after_commit()

    def rollback(self) -> None:
        self.db.rollback()
        self._discard_after_commit()
