from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from .config import Settings, get_settings
from .exceptions import (
    AlreadyAuthenticatedError,
    LedgerError,
    LedgerValidationError,
    NotAuthenticatedError,
    ReferralNotFoundError,
)
from .lifecycle import plan_transition
from .log import bind_session_id, clear_session_context, get_logger
from .models import (
    AddReferralRequest,
    LedgerState,
    LedgerStats,
    ProfileUpdate,
    Referral,
    ReferralCounts,
    ReferralInvite,
    ReferralStatus,
    Session,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    WithdrawalOptions,
)
from .withdrawal import WithdrawalValidator


logger = get_logger(__name__)

PROTECTED_USER_FIELDS = frozenset({"id", "referral_code", "total_points"})


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def new_id() -> str:
    return str(uuid4())


def _describe(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error["loc"])
    return f"{location}: {error['msg']}" if location else error["msg"]


def _coerce(enum: type[Enum], value: Any) -> Any:
    try:
        return enum(value)
    except ValueError:
        raise LedgerValidationError(f"Unknown {enum.__name__} value: {value!r}")


def _ensure_unique_ids(items: Iterable[BaseModel], kind: str) -> None:
    seen: set[str] = set()
    for item in items:
        if item.id in seen:
            raise LedgerValidationError(f"Duplicate {kind} id {item.id}")
        seen.add(item.id)


class LedgerStore:
    """
    Owns the session's user, referrals and transactions.

    Every command validates first, then builds a new ``LedgerState`` and swaps it
    in with a single assignment, so a failed command leaves nothing behind and a
    reader never sees half of an update. Collections are kept most-recent-first.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        initial_state: Optional[LedgerState] = None,
        clock: Optional[Callable[[], date]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.settings = settings or get_settings()
        self.clock = clock or utc_today
        self.id_factory = id_factory or new_id
        self.withdrawals = WithdrawalValidator(self.settings)
        self._state = initial_state or LedgerState()

    @property
    def state(self) -> LedgerState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._state.session

    @property
    def user(self) -> Optional[User]:
        return self._state.user

    @property
    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    @property
    def referrals(self) -> list[Referral]:
        return list(self._state.referrals)

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._state.transactions)

    # -- session -----------------------------------------------------------

    def login(
        self,
        user: User,
        referrals: Iterable[Referral] = (),
        transactions: Iterable[Transaction] = (),
    ) -> Session:
        if self._state.is_authenticated:
            logger.warning("login_rejected", reason="already_authenticated", user_id=self._state.user.id)
            raise AlreadyAuthenticatedError("A session is already active; log out first")

        referrals = tuple(referrals)
        transactions = tuple(transactions)
        _ensure_unique_ids(referrals, "referral")
        _ensure_unique_ids(transactions, "transaction")

        session = Session(
            session_id=self.id_factory(),
            user_id=user.id,
            started_at=datetime.now(timezone.utc),
        )
        self._state = LedgerState(
            session=session,
            user=user,
            referrals=referrals,
            transactions=transactions,
        )
        bind_session_id(session.session_id)
        logger.info(
            "session_started",
            user_id=user.id,
            referrals=len(referrals),
            transactions=len(transactions),
        )
        return session

    def logout(self) -> None:
        session = self._state.session
        self._state = LedgerState()
        logger.info("session_ended", ended_session=session.session_id if session else None)
        clear_session_context()

    # -- commands ----------------------------------------------------------

    def update_profile(self, changes: Union[ProfileUpdate, dict[str, Any]]) -> User:
        user = self._require_user()
        if not isinstance(changes, ProfileUpdate):
            protected = sorted(PROTECTED_USER_FIELDS.intersection(changes))
            if protected:
                raise LedgerValidationError(
                    f"Fields cannot be changed through the profile: {', '.join(protected)}"
                )
            changes = self._parse(ProfileUpdate, changes)

        fields = changes.model_dump(exclude_unset=True)
        updated = user.model_copy(update=fields)
        self._commit(user=updated)
        logger.info("profile_updated", fields=sorted(fields))
        return updated

    def add_referral(self, customer_name: str, customer_phone: str, location: str) -> Referral:
        self._require_user()
        request = self._parse(AddReferralRequest, {
            "customer_name": customer_name,
            "customer_phone": customer_phone,
            "location": location,
        })

        today = self.clock()
        referral = Referral(
            id=self._next_id(r.id for r in self._state.referrals),
            customer_name=request.customer_name,
            customer_phone=request.customer_phone,
            location=request.location,
            status=ReferralStatus.PENDING,
            points=self.settings.referral_points,
            submitted_date=today,
            updated_date=today,
        )
        self._commit(referrals=(referral,) + self._state.referrals)
        logger.info("referral_added", referral_id=referral.id, points=referral.points)
        return referral

    def advance_referral_status(self, referral_id: str, status: Union[ReferralStatus, str]) -> Referral:
        user = self._require_user()
        index, referral = self._find_referral(referral_id)

        try:
            plan = plan_transition(referral.status, status)
        except LedgerError as exc:
            logger.warning(
                "referral_transition_rejected",
                referral_id=referral_id,
                current=referral.status.value,
                requested=str(getattr(status, "value", status)),
                code=exc.code,
            )
            raise

        if plan.is_noop:
            logger.debug("referral_status_unchanged", referral_id=referral_id, status=referral.status.value)
            return referral

        today = max(self.clock(), referral.submitted_date)
        updated = referral.model_copy(update={"status": plan.requested, "updated_date": today})
        referrals = list(self._state.referrals)
        referrals[index] = updated
        changes: dict[str, Any] = {"referrals": tuple(referrals)}

        if plan.awards_points:
            changes["user"] = user.model_copy(
                update={"total_points": user.total_points + referral.points}
            )
            earned = Transaction(
                id=self._next_id(t.id for t in self._state.transactions),
                type=TransactionType.EARNED,
                amount=referral.points,
                points=referral.points,
                description=f"Referral: {referral.customer_name}",
                status=TransactionStatus.COMPLETED,
                date=today,
            )
            changes["transactions"] = (earned,) + self._state.transactions

        self._commit(**changes)
        logger.info(
            "referral_status_advanced",
            referral_id=referral_id,
            from_status=plan.current.value,
            to_status=plan.requested.value,
            points_awarded=referral.points if plan.awards_points else 0,
        )
        return updated

    def record_transaction(self, transaction: Transaction) -> Transaction:
        self._require_user()
        if transaction.amount != transaction.points:
            raise LedgerValidationError("Transaction amount must equal its points")
        if transaction.amount <= 0:
            raise LedgerValidationError("Transaction amount must be positive")
        if transaction.type == TransactionType.WITHDRAWAL:
            if not transaction.upi_id or not transaction.upi_id.strip():
                raise LedgerValidationError("Withdrawal transactions require a UPI ID")
        elif transaction.upi_id is not None:
            raise LedgerValidationError("Only withdrawal transactions carry a UPI ID")
        if any(t.id == transaction.id for t in self._state.transactions):
            raise LedgerValidationError(f"Transaction {transaction.id} already recorded")

        self._commit(transactions=(transaction,) + self._state.transactions)
        logger.info(
            "transaction_recorded",
            transaction_id=transaction.id,
            type=transaction.type.value,
            amount=transaction.amount,
            status=transaction.status.value,
        )
        return transaction

    def request_withdrawal(self, amount: int, upi_id: Optional[str]) -> Transaction:
        user = self._require_user()
        try:
            draft = self.withdrawals.validate(
                amount,
                user.total_points,
                upi_id,
                transaction_id=self._next_id(t.id for t in self._state.transactions),
                on_date=self.clock(),
            )
        except LedgerError as exc:
            logger.warning("withdrawal_rejected", amount=amount, code=exc.code)
            raise
        # Points are not deducted here; the balance only ever grows by referral credits.
        return self.record_transaction(draft)

    # -- queries -----------------------------------------------------------

    def derived_stats(self) -> LedgerStats:
        counts = {status.value: 0 for status in ReferralStatus}
        for referral in self._state.referrals:
            counts[referral.status.value] += 1

        total_earned = 0
        total_withdrawn = 0
        for transaction in self._state.transactions:
            if transaction.status != TransactionStatus.COMPLETED:
                continue
            if transaction.type == TransactionType.EARNED:
                total_earned += transaction.amount
            else:
                total_withdrawn += transaction.amount

        user = self._state.user
        return LedgerStats(
            referrals=ReferralCounts(all=len(self._state.referrals), **counts),
            total_earned=total_earned,
            total_withdrawn=total_withdrawn,
            total_points=user.total_points if user else 0,
        )

    def get_referral(self, referral_id: str) -> Referral:
        return self._find_referral(referral_id)[1]

    def search_referrals(
        self,
        term: str = "",
        status: Optional[Union[ReferralStatus, str]] = None,
    ) -> list[Referral]:
        needle = (term or "").strip().lower()
        wanted = _coerce(ReferralStatus, status) if status else None
        results = []
        for referral in self._state.referrals:
            if wanted and referral.status != wanted:
                continue
            if needle and not (
                needle in referral.customer_name.lower()
                or needle in referral.customer_phone
                or needle in referral.location.lower()
            ):
                continue
            results.append(referral)
        return results

    def recent_referrals(self, limit: int = 5) -> list[Referral]:
        return list(self._state.referrals[:max(limit, 0)])

    def filter_transactions(
        self,
        transaction_type: Optional[Union[TransactionType, str]] = None,
    ) -> list[Transaction]:
        if not transaction_type:
            return self.transactions
        wanted = _coerce(TransactionType, transaction_type)
        return [t for t in self._state.transactions if t.type == wanted]

    def withdrawal_options(self) -> WithdrawalOptions:
        return self.withdrawals.options(self._require_user().total_points)

    def referral_invite(self) -> ReferralInvite:
        code = self._require_user().referral_code
        return ReferralInvite(
            referral_code=code,
            text=f"Use my referral code {code} to join {self.settings.app_name} and start earning!",
            url=f"{self.settings.invite_base_url.rstrip('/')}/{code}",
        )

    def days_since_joined(self) -> int:
        return max((self.clock() - self._require_user().joined_date).days, 0)

    # -- internals ---------------------------------------------------------

    def _commit(self, **changes: Any) -> LedgerState:
        self._state = self._state.model_copy(update=changes)
        return self._state

    def _require_user(self) -> User:
        if self._state.user is None:
            raise NotAuthenticatedError("No active session")
        return self._state.user

    def _find_referral(self, referral_id: str) -> tuple[int, Referral]:
        for index, referral in enumerate(self._state.referrals):
            if referral.id == referral_id:
                return index, referral
        raise ReferralNotFoundError(f"Referral {referral_id} not found")

    def _next_id(self, taken: Iterable[str]) -> str:
        taken = set(taken)
        candidate = self.id_factory()
        while candidate in taken:
            candidate = self.id_factory()
        return candidate

    @staticmethod
    def _parse(model: type[BaseModel], data: dict[str, Any]) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise LedgerValidationError(_describe(exc)) from exc
