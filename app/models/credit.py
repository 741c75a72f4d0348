"""Credit-related database models."""

from datetime import datetime, UTC
from enum import Enum
from sqlalchemy import Column, Integer, String, Date, DateTime, CheckConstraint

from app.core.base_model import Base


class TransactionStatus(str, Enum):
    """Status of a persisted payment transaction. Only fulfilled charges are stored."""
    SUCCESS = "success"


class UserCreditAccount(Base):
    """
    Per-user ledger of AI generation credits.

    ``free_credits`` is the daily allowance and is refilled lazily on the first
    read or consumption of a new calendar day. ``purchased_credits`` never
    expires and is only increased by payment fulfillment.
    """
    __tablename__ = "user_credit_accounts"
    __table_args__ = (
        CheckConstraint("free_credits >= 0", name="ck_user_credit_accounts_free_non_negative"),
        CheckConstraint("purchased_credits >= 0", name="ck_user_credit_accounts_purchased_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    free_credits = Column(Integer, nullable=False, default=0)
    purchased_credits = Column(Integer, nullable=False, default=0)
    last_reset_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    def __repr__(self):
        return (
            f"<UserCreditAccount(user_id='{self.user_id}', free={self.free_credits}, "
            f"purchased={self.purchased_credits}, last_reset_date={self.last_reset_date})>"
        )


class TransactionRecord(Base):
    """
    A fulfilled payment. The primary key on ``reference`` is the idempotency
    barrier: at most one row per provider reference, never updated.
    """
    __tablename__ = "transaction_records"

    reference = Column(String(100), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    credits_granted = Column(Integer, nullable=False)
    amount_minor_units = Column(Integer, nullable=False)
    plan_id = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default=TransactionStatus.SUCCESS.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    def __repr__(self):
        return f"<TransactionRecord(reference='{self.reference}', user_id='{self.user_id}', credits={self.credits_granted})>"
