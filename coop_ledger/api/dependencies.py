"""Dependency injection for FastAPI endpoints"""

from typing import Iterator

from fastapi import Depends, Request
from coop_ledger.config import settings
from coop_ledger.infrastructure.clients.notifications import build_notification_sink
from coop_ledger.infrastructure.database.repositories import DatabaseStoreSession
from coop_ledger.infrastructure.database.session import SessionLocal
from coop_ledger.infrastructure.memory.repositories import InMemoryStoreSession, MemoryState
from coop_ledger.infrastructure.store import StoreSession
from coop_ledger.services.loans import LoanService

# Backing state for storage_backend="memory"; lives as long as the process
memory_state = MemoryState()


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_store() -> Iterator[StoreSession]:
    """Store session for the configured backend, one per request"""
    if settings.storage_backend == "memory":
        yield InMemoryStoreSession(memory_state)
        return

    db = SessionLocal()
    try:
        yield DatabaseStoreSession(db)
    finally:
        db.close()


def get_loan_service(store: StoreSession = Depends(get_store)) -> LoanService:
    return LoanService(store, settings.loan_policy())


def get_notification_sink():
    """Provide the notification sink selected by configuration"""
    return build_notification_sink()
