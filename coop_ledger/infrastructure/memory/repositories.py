"""In-process fallback storage used when no database is configured"""

import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List

from coop_ledger.domain.exceptions import (
    ApplicationNotFoundError,
    ApplicationStateError,
    DuplicateMemberError,
    MemberNotFoundError,
    StaleMemberError,
)
from coop_ledger.domain.models import LedgerEntry, LoanApplication, Member, PENDING
from coop_ledger.infrastructure.store import LoanApplicationStore, MemberStore, StoreSession, TransactionLog


@dataclass
class MemoryState:
    """Shared state behind every in-memory store session"""

    members: Dict[str, Member] = field(default_factory=dict)
    entries: List[LedgerEntry] = field(default_factory=list)
    applications: Dict[str, LoanApplication] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)


class InMemoryMemberStore(MemberStore):
    def __init__(self, state: MemoryState):
        self.state = state

    def get(self, member_id: str) -> Member:
        member = self.state.members.get(member_id)
        if member is None:
            raise MemberNotFoundError(f"Member {member_id} not found")
        return replace(member)

    def list_all(self) -> List[Member]:
        return sorted((replace(m) for m in self.state.members.values()), key=lambda m: m.member_number)

    def list_with_active_loans(self) -> List[Member]:
        return [m for m in self.list_all() if m.loan_balance > 0]

    def create(self, member: Member) -> Member:
        stored = replace(member, id=member.id or str(uuid.uuid4()))
        with self.state.lock:
            if any(m.member_number == stored.member_number for m in self.state.members.values()):
                raise DuplicateMemberError(f"Member number {stored.member_number} is already in use")
            self.state.members[stored.id] = stored
        return replace(stored)

    def update(self, member_id: str, expected_version: int, **changes: Any) -> Member:
        with self.state.lock:
            current = self.state.members.get(member_id)
            if current is None:
                raise MemberNotFoundError(f"Member {member_id} not found")
            if current.version != expected_version:
                raise StaleMemberError(f"Member {member_id} was modified concurrently")
            updated = replace(current, **changes, version=current.version + 1)
            self.state.members[member_id] = updated
        return replace(updated)


class InMemoryTransactionLog(TransactionLog):
    def __init__(self, state: MemoryState):
        self.state = state

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        stored = replace(
            entry,
            id=entry.id or str(uuid.uuid4()),
            created_at=entry.created_at or datetime.now(timezone.utc),
        )
        with self.state.lock:
            self.state.entries.append(stored)
        return replace(stored)

    def list_for_member(self, member_id: str, limit: int = 50) -> List[LedgerEntry]:
        # Appends are chronological, so reversing gives newest first
        matching = [replace(e) for e in reversed(self.state.entries) if e.member_id == member_id]
        return matching[:limit]


class InMemoryLoanApplicationStore(LoanApplicationStore):
    def __init__(self, state: MemoryState):
        self.state = state

    def create(self, application: LoanApplication) -> LoanApplication:
        stored = replace(
            application,
            id=application.id or str(uuid.uuid4()),
            applied_at=application.applied_at or datetime.now(timezone.utc),
        )
        with self.state.lock:
            self.state.applications[stored.id] = stored
        return replace(stored)

    def get(self, application_id: str) -> LoanApplication:
        application = self.state.applications.get(application_id)
        if application is None:
            raise ApplicationNotFoundError(f"Loan application {application_id} not found")
        return replace(application)

    def list_pending(self) -> List[LoanApplication]:
        # dicts keep insertion order, and the sort is stable for equal timestamps
        pending = [replace(a) for a in self.state.applications.values() if a.status == PENDING]
        return sorted(pending, key=lambda a: a.applied_at)

    def transition(self, application_id: str, from_status: str, **changes: Any) -> LoanApplication:
        with self.state.lock:
            current = self.state.applications.get(application_id)
            if current is None:
                raise ApplicationNotFoundError(f"Loan application {application_id} not found")
            if current.status != from_status:
                raise ApplicationStateError(f"Loan application {application_id} is no longer {from_status}")
            updated = replace(current, **changes)
            self.state.applications[application_id] = updated
        return replace(updated)


class InMemoryStoreSession(StoreSession):
    """Writes land immediately; commit only runs the after-commit callbacks"""

    def __init__(self, state: MemoryState):
        super().__init__()
        self.members = InMemoryMemberStore(state)
        self.transactions = InMemoryTransactionLog(state)
        self.applications = InMemoryLoanApplicationStore(state)

    def commit(self) -> None:
        self._run_after_commit()

    def rollback(self) -> None:
        self._discard_after_commit()
