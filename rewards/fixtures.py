from dataclasses import dataclass, field
from datetime import date
from typing import Protocol

from .models import (
    Referral,
    ReferralStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
)


@dataclass
class FixtureBundle:
    user: User
    referrals: list[Referral] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)


class FixtureProvider(Protocol):
    def load(self, phone: str) -> FixtureBundle: ...


class DemoFixtureProvider:
    """Stand-in for the identity backend. Returns the same demo account for any phone."""

    def load(self, phone: str) -> FixtureBundle:
        user = User(
            id="1",
            name="Rajesh Kumar",
            email="rajesh@example.com",
            phone=phone,
            state="Karnataka",
            district="Bangalore",
            profile_picture="https://images.pexels.com/photos/2379004/pexels-photo-2379004.jpeg?auto=compress&cs=tinysrgb&w=150&h=150&dpr=2",
            referral_code="URZA-RK-2024",
            total_points=1250,
            joined_date=date(2024, 1, 15),
            is_kyc_verified=True,
        )
        referrals = [
            Referral(
                id="1", customer_name="Priya Sharma", customer_phone="9876543211",
                location="Mumbai, Maharashtra", status=ReferralStatus.COMPLETED, points=100,
                submitted_date=date(2024, 1, 20), updated_date=date(2024, 1, 25),
            ),
            Referral(
                id="2", customer_name="Amit Singh", customer_phone="9876543212",
                location="Delhi, NCR", status=ReferralStatus.IN_PROCESS, points=100,
                submitted_date=date(2024, 1, 22), updated_date=date(2024, 1, 24),
            ),
            Referral(
                id="3", customer_name="Sunita Patel", customer_phone="9876543213",
                location="Ahmedabad, Gujarat", status=ReferralStatus.PENDING, points=100,
                submitted_date=date(2024, 1, 25), updated_date=date(2024, 1, 25),
            ),
        ]
        transactions = [
            Transaction(
                id="1", type=TransactionType.EARNED, amount=100, points=100,
                description="Referral: Priya Sharma", status=TransactionStatus.COMPLETED,
                date=date(2024, 1, 25),
            ),
            Transaction(
                id="2", type=TransactionType.WITHDRAWAL, amount=500, points=500,
                description="UPI Withdrawal", status=TransactionStatus.COMPLETED,
                date=date(2024, 1, 20), upi_id="rajesh@paytm",
            ),
        ]
        return FixtureBundle(user=user, referrals=referrals, transactions=transactions)
