"""SQLAlchemy ORM models for members, ledger entries and loan applications"""

import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Date, Integer, ForeignKey, Text, Numeric
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

MONEY = Numeric(14, 2)


class MemberRecord(Base):
    """Cooperative member with financial balances"""

    __tablename__ = "member"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_number = Column(String(32), nullable=False, unique=True)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, index=True)
    date_joined = Column(Date, nullable=False)
    status = Column(Text, nullable=False, default="active")

    shares_balance = Column(MONEY, nullable=False, default=0)
    savings_balance = Column(MONEY, nullable=False, default=0)
    loan_balance = Column(MONEY, nullable=False, default=0)
    interest_balance = Column(MONEY, nullable=False, default=0)

    loan_start_date = Column(Date, nullable=True)
    loan_duration_months = Column(Integer, nullable=False, default=12)
    loan_interest_rate = Column(Numeric(6, 3), nullable=False, default=1.5)  # Monthly percentage
    last_interest_calculation_date = Column(Date, nullable=True)
    loan_eligibility_override = Column(Boolean, nullable=False, default=False)

    # Bumped on every balance update; guards read-compute-write against double application
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    entries = relationship("LedgerEntryRecord", back_populates="member", cascade="all, delete-orphan")
    loan_applications = relationship("LoanApplicationRecord", back_populates="member", cascade="all, delete-orphan")


class LedgerEntryRecord(Base):
    """Append-only financial event for a member"""

    __tablename__ = "ledger_entry"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(UUID(as_uuid=True), ForeignKey("member.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Text, nullable=False)
    amount = Column(MONEY, nullable=False)
    balance_after = Column(MONEY, nullable=False)
    description = Column(Text, nullable=False)
    reference = Column(String(64), nullable=False, unique=True)
    processed_by = Column(Text, nullable=False, default="system")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    member = relationship("MemberRecord", back_populates="entries")


class LoanApplicationRecord(Base):
    """Member's loan request and its review outcome"""

    __tablename__ = "loan_application"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(UUID(as_uuid=True), ForeignKey("member.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    purpose = Column(Text, nullable=False)
    duration_months = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, default="pending", index=True)
    applied_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(Text, nullable=True)
    review_notes = Column(Text, nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)

    member = relationship("MemberRecord", back_populates="loan_applications")
