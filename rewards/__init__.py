"""
Referral Rewards Ledger

This package provides:
- Session-scoped store for a user's points, referrals and transactions
- Referral lifecycle: pending → in_process → completed, points credited once
- Withdrawal validation: minimum, balance cap, UPI destination
- Mocked phone + OTP session gateway
- FastAPI adapter for the presentation layer
"""

from .config import Settings, get_settings
from .exceptions import (
    AlreadyAuthenticatedError,
    BelowMinimumError,
    InsufficientBalanceError,
    InvalidTransitionError,
    LedgerError,
    LedgerValidationError,
    NotAuthenticatedError,
    ReferralNotFoundError,
)
from .lifecycle import TransitionPlan, plan_transition
from .models import (
    LedgerState,
    LedgerStats,
    Referral,
    ReferralStatus,
    Session,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
)
from .session import SessionGateway
from .store import LedgerStore
from .withdrawal import WithdrawalValidator

__all__ = [
    "Settings",
    "get_settings",
    "LedgerError",
    "LedgerValidationError",
    "InvalidTransitionError",
    "BelowMinimumError",
    "InsufficientBalanceError",
    "ReferralNotFoundError",
    "AlreadyAuthenticatedError",
    "NotAuthenticatedError",
    "TransitionPlan",
    "plan_transition",
    "LedgerState",
    "LedgerStats",
    "Referral",
    "ReferralStatus",
    "Session",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "User",
    "SessionGateway",
    "LedgerStore",
    "WithdrawalValidator",
]
