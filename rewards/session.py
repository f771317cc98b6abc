from datetime import datetime, timezone
from typing import Optional

from .config import Settings
from .exceptions import LedgerValidationError
from .fixtures import DemoFixtureProvider, FixtureProvider
from .log import get_logger
from .models import OTP_PATTERN, PHONE_PATTERN, OtpChallenge, Session
from .store import LedgerStore


logger = get_logger(__name__)


class SessionGateway:
    """
    Mocked phone + one-time-code login in front of a ``LedgerStore``.

    No code is actually sent and any well-formed code is accepted; the only
    checks are the digit counts and that a code was requested for the phone.
    """

    def __init__(
        self,
        store: LedgerStore,
        fixtures: Optional[FixtureProvider] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.fixtures = fixtures or DemoFixtureProvider()
        self.settings = settings or store.settings
        self._challenge: Optional[OtpChallenge] = None

    @property
    def pending_challenge(self) -> Optional[OtpChallenge]:
        return self._challenge

    def request_otp(self, phone: str) -> OtpChallenge:
        phone = (phone or "").strip()
        if not PHONE_PATTERN.match(phone):
            raise LedgerValidationError("Phone number must be exactly 10 digits")

        self._challenge = OtpChallenge(phone=phone, issued_at=datetime.now(timezone.utc))
        logger.info("otp_issued", phone_suffix=phone[-4:])
        return self._challenge

    def verify_otp(self, phone: str, code: str) -> Session:
        phone = (phone or "").strip()
        code = (code or "").strip()
        if not OTP_PATTERN.match(code):
            raise LedgerValidationError("One-time code must be exactly 6 digits")
        if self._challenge is None or self._challenge.phone != phone:
            raise LedgerValidationError("Request a one-time code for this phone first")

        bundle = self.fixtures.load(f"{self.settings.phone_prefix} {phone}")
        session = self.store.login(bundle.user, bundle.referrals, bundle.transactions)
        self._challenge = None
        logger.info("otp_verified", user_id=session.user_id)
        return session

    def logout(self) -> None:
        self._challenge = None
        self.store.logout()
