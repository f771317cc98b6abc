from datetime import date
from itertools import count

import pytest

from rewards.config import Settings
from rewards.fixtures import DemoFixtureProvider, FixtureBundle
from rewards.store import LedgerStore


TODAY = date(2024, 2, 1)
PHONE = "+91 9876543210"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        otp_send_delay=0,
        otp_verify_delay=0,
        referral_submit_delay=0,
        withdrawal_delay=0,
    )


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def demo_bundle() -> FixtureBundle:
    return DemoFixtureProvider().load(PHONE)


@pytest.fixture
def id_factory():
    counter = count(100)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def store(settings, id_factory) -> LedgerStore:
    return LedgerStore(settings, clock=lambda: TODAY, id_factory=id_factory)


@pytest.fixture
def logged_in_store(store) -> LedgerStore:
    bundle = DemoFixtureProvider().load(PHONE)
    store.login(bundle.user, bundle.referrals, bundle.transactions)
    return store


@pytest.fixture
def login_with_points(store):
    """Log the demo user in with an overridden balance."""

    def _login(points: int) -> LedgerStore:
        bundle = DemoFixtureProvider().load(PHONE)
        user = bundle.user.model_copy(update={"total_points": points})
        store.login(user, bundle.referrals, bundle.transactions)
        return store

    return _login
