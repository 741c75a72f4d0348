# app/models/__init__.py
from app.models.credit import UserCreditAccount, TransactionRecord, TransactionStatus

__all__ = [
    'UserCreditAccount',
    'TransactionRecord',
    'TransactionStatus',
    ]
