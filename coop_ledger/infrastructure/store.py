"""Storage interfaces shared by the database and in-memory backends"""

from abc import ABC, abstractmethod
from typing import Any, Callable, List

from coop_ledger.domain.models import LedgerEntry, LoanApplication, Member


class MemberStore(ABC):
    """Members and their balances"""

    @abstractmethod
    def get(self, member_id: str) -> Member:
        """Raises MemberNotFoundError"""

    @abstractmethod
    def list_all(self) -> List[Member]:
        ...

    @abstractmethod
    def list_with_active_loans(self) -> List[Member]:
        ...

    @abstractmethod
    def create(self, member: Member) -> Member:
        """Raises DuplicateMemberError when the member number is taken"""

    @abstractmethod
    def update(self, member_id: str, expected_version: int, **changes: Any) -> Member:
        """
        Apply field changes only if the stored version still equals expected_version.

        The version is incremented on success.

        Raises:
            MemberNotFoundError: member does not exist
            StaleMemberError: member changed since it was read
        """


class TransactionLog(ABC):
    """Append-only ledger of financial events"""

    @abstractmethod
    def append(self, entry: LedgerEntry) -> LedgerEntry:
        ...

    @abstractmethod
    def list_for_member(self, member_id: str, limit: int = 50) -> List[LedgerEntry]:
        """Newest first"""


class LoanApplicationStore(ABC):
    """Loan applications awaiting or past review"""

    @abstractmethod
    def create(self, application: LoanApplication) -> LoanApplication:
        ...

    @abstractmethod
    def get(self, application_id: str) -> LoanApplication:
        """Raises ApplicationNotFoundError"""

    @abstractmethod
    def list_pending(self) -> List[LoanApplication]:
        """Oldest first"""

    @abstractmethod
    def transition(self, application_id: str, from_status: str, **changes: Any) -> LoanApplication:
        """
        Apply changes only while the stored status still equals from_status.

        Raises:
            ApplicationNotFoundError: application does not exist
            ApplicationStateError: application already left from_status
        """


class StoreSession(ABC):
    """One unit of work over all three stores"""

    members: MemberStore
    transactions: TransactionLog
    applications: LoanApplicationStore

    def __init__(self):
        self._after_commit: List[Callable[[], None]] = []

    def after_commit(self, callback: Callable[[], None]) -> None:
        """Run callback once the current unit of work commits; dropped on rollback"""
        self._after_commit.append(callback)

    def _run_after_commit(self) -> None:
        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            callback()

    def _discard_after_commit(self) -> None:
        self._after_commit = []

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...
