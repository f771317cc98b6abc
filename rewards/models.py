import re
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Optional
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator


PHONE_PATTERN = re.compile(r"^\d{10}$")
OTP_PATTERN = re.compile(r"^\d{6}$")
# Account phones carry the dialing prefix, e.g. "+91 9876543210".
ACCOUNT_PHONE_PATTERN = re.compile(r"^\+\d{1,3} \d{10}$")

CLEARABLE_PROFILE_FIELDS = frozenset({"profile_picture"})


def check_local_phone(value: str) -> str:
    if not PHONE_PATTERN.match(value):
        raise ValueError("customer_phone must be exactly 10 digits")
    return value


LocalPhone = Annotated[str, AfterValidator(check_local_phone)]


class ReferralStatus(str, Enum):
    PENDING = "pending"
    IN_PROCESS = "in_process"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    ReferralStatus.PENDING: 0,
    ReferralStatus.IN_PROCESS: 1,
    ReferralStatus.COMPLETED: 2,
}


class TransactionType(str, Enum):
    EARNED = "earned"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class User(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    state: str
    district: str
    profile_picture: Optional[str] = None
    referral_code: str
    total_points: int = Field(default=0, ge=0)
    joined_date: date
    is_kyc_verified: bool = False

    model_config = ConfigDict(frozen=True)


class Referral(BaseModel):
    id: str
    customer_name: str
    customer_phone: LocalPhone
    location: str
    status: ReferralStatus = ReferralStatus.PENDING
    points: int = Field(default=100, ge=0)
    submitted_date: date
    updated_date: date

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_dates(self) -> "Referral":
        if self.updated_date < self.submitted_date:
            raise ValueError("updated_date cannot precede submitted_date")
        return self


class Transaction(BaseModel):
    id: str
    type: TransactionType
    amount: int
    points: int
    description: str
    status: TransactionStatus
    date: date
    upi_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class Session(BaseModel):
    session_id: str
    user_id: str
    started_at: datetime

    model_config = ConfigDict(frozen=True)


class LedgerState(BaseModel):
    """Snapshot of everything the store owns. Replaced wholesale on each commit."""

    session: Optional[Session] = None
    user: Optional[User] = None
    referrals: tuple[Referral, ...] = ()
    transactions: tuple[Transaction, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


class AddReferralRequest(BaseModel):
    customer_name: str = Field(..., min_length=1)
    customer_phone: LocalPhone = Field(..., description="10 digit local number")
    location: str = Field(..., min_length=1)

    model_config = ConfigDict(str_strip_whitespace=True, json_schema_extra={
        "example": {
            "customer_name": "Priya Sharma",
            "customer_phone": "9876543211",
            "location": "Mumbai, Maharashtra",
        }
    })


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    profile_picture: Optional[str] = None
    is_kyc_verified: Optional[bool] = None

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not ACCOUNT_PHONE_PATTERN.match(value):
            raise ValueError("phone must be a dialing prefix and 10 digits, e.g. +91 9876543210")
        return value

    @model_validator(mode="after")
    def check_nulls(self) -> "ProfileUpdate":
        for name in sorted(self.model_fields_set - CLEARABLE_PROFILE_FIELDS):
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self


class ReferralStatusUpdate(BaseModel):
    status: ReferralStatus


class WithdrawalRequest(BaseModel):
    amount: int
    upi_id: str = ""

    model_config = ConfigDict(json_schema_extra={
        "example": {"amount": 500, "upi_id": "user@upi"}
    })


class OtpRequest(BaseModel):
    phone: str


class OtpVerifyRequest(BaseModel):
    phone: str
    code: str


class OtpChallenge(BaseModel):
    phone: str
    issued_at: datetime
    code_length: int = 6


class ReferralCounts(BaseModel):
    all: int = 0
    pending: int = 0
    in_process: int = 0
    completed: int = 0


class LedgerStats(BaseModel):
    referrals: ReferralCounts
    total_earned: int
    total_withdrawn: int
    total_points: int


class WithdrawalOptions(BaseModel):
    available_points: int
    min_withdrawal: int
    max_withdrawal: int
    quick_amounts: list[int]
    points_to_unlock: int

    @property
    def can_withdraw(self) -> bool:
        return self.points_to_unlock == 0


class ReferralInvite(BaseModel):
    referral_code: str
    text: str
    url: str
