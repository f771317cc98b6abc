"""
Referral status state machine.

    pending (0) -> in_process (1) -> completed (2)

Any move to a higher rank is allowed, including pending -> completed.
Re-asserting the current status is a no-op. Moving to a lower rank is rejected.
Points are awarded only on the move into ``completed``, so the referral's own
status is what prevents a second credit.
"""

from dataclasses import dataclass

from .exceptions import InvalidTransitionError, LedgerValidationError
from .models import ReferralStatus


@dataclass(frozen=True)
class TransitionPlan:
    current: ReferralStatus
    requested: ReferralStatus

    @property
    def is_noop(self) -> bool:
        return self.current == self.requested

    @property
    def awards_points(self) -> bool:
        return self.requested == ReferralStatus.COMPLETED and self.current != ReferralStatus.COMPLETED


def plan_transition(current: ReferralStatus, requested: ReferralStatus) -> TransitionPlan:
    current = ReferralStatus(current)
    try:
        requested = ReferralStatus(requested)
    except ValueError:
        raise LedgerValidationError(f"Unknown referral status: {requested!r}")
    if requested.rank < current.rank:
        raise InvalidTransitionError(
            f"Cannot move referral from {current.value} back to {requested.value}"
        )
    return TransitionPlan(current=current, requested=requested)
