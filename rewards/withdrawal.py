from datetime import date
from typing import Optional

from .config import Settings, get_settings
from .exceptions import BelowMinimumError, InsufficientBalanceError, LedgerValidationError
from .models import Transaction, TransactionStatus, TransactionType, WithdrawalOptions


class WithdrawalValidator:
    """Checks a cash-out request against the user's balance. Never touches state."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def min_withdrawal(self) -> int:
        return self.settings.min_withdrawal

    def max_withdrawal(self, total_points: int) -> int:
        step = self.settings.withdrawal_step
        return (max(total_points, 0) // step) * step

    def validate(
        self,
        amount: int,
        total_points: int,
        upi_id: Optional[str],
        *,
        transaction_id: str,
        on_date: date,
    ) -> Transaction:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise LedgerValidationError(f"Withdrawal amount must be a whole number, got {amount!r}")

        if amount < self.min_withdrawal:
            raise BelowMinimumError(
                f"Minimum withdrawal is {self.min_withdrawal}, requested {amount}"
            )

        max_amount = self.max_withdrawal(total_points)
        if amount > max_amount:
            raise InsufficientBalanceError(
                f"Requested {amount} exceeds the available maximum of {max_amount}"
            )

        if not upi_id or not upi_id.strip():
            raise LedgerValidationError("UPI ID is required for a withdrawal")

        return Transaction(
            id=transaction_id,
            type=TransactionType.WITHDRAWAL,
            amount=amount,
            points=amount,
            description="UPI Withdrawal",
            status=TransactionStatus.PENDING,
            date=on_date,
            upi_id=upi_id.strip(),
        )

    def options(self, total_points: int) -> WithdrawalOptions:
        max_amount = self.max_withdrawal(total_points)
        return WithdrawalOptions(
            available_points=total_points,
            min_withdrawal=self.min_withdrawal,
            max_withdrawal=max_amount,
            quick_amounts=[a for a in self.settings.quick_withdrawal_amounts if a <= max_amount],
            points_to_unlock=max(self.min_withdrawal - total_points, 0),
        )
