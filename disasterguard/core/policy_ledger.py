"""
Policy Ledger
=============

Creates, reads and cancels parametric policies and owns premium accounting.

Pricing is flat: premium = coverage x base rate (500 bps by default),
computed once at creation and never recomputed. Anything paid above the
premium stays with the treasury. Cancelling refunds a fixed share of the
premium (5000 bps by default); the rest is forfeited.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Iterator, List, Optional

from .errors import (
    InsufficientPremium, InvalidCoverage, NotPolicyholder, PolicyNotActive, UnknownPolicy
)
from .models import DisasterType, Policy
from .notifications import Notifier
from .treasury import PayoutCapability

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10_000
DEFAULT_BASE_RATE_BPS = 500
DEFAULT_CANCEL_REFUND_BPS = 5000
DEFAULT_POLICY_DURATION_BLOCKS = 200_000


def calculate_premium(coverage_amount: int, base_rate_bps: int = DEFAULT_BASE_RATE_BPS) -> int:
    """Premium in the smallest currency unit (floor division)."""
    return coverage_amount * base_rate_bps // BPS_DENOMINATOR


class PolicyLedger:
    """
    Thread-safe policy store.

    Policy ids come from a ledger-wide lock. Every state change on an
    existing policy (cancel here, payout in ClaimSettlement) runs under that
    policy's own lock, so "check active, deactivate, pay" is one step.
    """

    def __init__(self,
                 treasury: PayoutCapability,
                 clock,
                 base_rate_bps: int = DEFAULT_BASE_RATE_BPS,
                 cancel_refund_bps: int = DEFAULT_CANCEL_REFUND_BPS,
                 policy_duration_blocks: int = DEFAULT_POLICY_DURATION_BLOCKS,
                 notifier: Optional[Notifier] = None):
        self.treasury = treasury
        self.clock = clock
        self.base_rate_bps = base_rate_bps
        self.cancel_refund_bps = cancel_refund_bps
        self.policy_duration_blocks = policy_duration_blocks
        self.notifier = notifier or Notifier()

        self._policies: List[Policy] = []
        self._policy_locks: List[threading.Lock] = []
        self._lock = threading.Lock()

    def premium_for(self, coverage_amount: int) -> int:
        return calculate_premium(coverage_amount, self.base_rate_bps)

    def create(self,
               holder: str,
               coverage_amount: int,
               location: str,
               disaster_type,
               paid_amount: int) -> int:
        """
        Open a new policy.

        Args:
            holder: Policyholder identity; the only party allowed to cancel or claim
            coverage_amount: Payout on a matching validated event (> 0)
            location: Location name, matched exactly at settlement
            disaster_type: DisasterType or its name/code
            paid_amount: Funds sent with the request; must cover the premium

        Returns:
            The new policy id
        """
        if isinstance(coverage_amount, bool) or not isinstance(coverage_amount, int) \
                or coverage_amount <= 0:
            raise InvalidCoverage(f"Coverage must be a positive integer, got {coverage_amount!r}")
        disaster_type = DisasterType.parse(disaster_type)

        premium = self.premium_for(coverage_amount)
        if paid_amount < premium:
            logger.warning(f"Policy for {holder} rejected: paid {paid_amount} < premium {premium}")
            raise InsufficientPremium(f"Premium is {premium}, received {paid_amount}")

        self.treasury.deposit(holder, paid_amount)

        start_block = self.clock.block_number()
        with self._lock:
            policy_id = len(self._policies)
            policy = Policy(
                policy_id=policy_id,
                holder=holder,
                coverage_amount=coverage_amount,
                premium=premium,
                start_block=start_block,
                end_block=start_block + self.policy_duration_blocks,
                location=location,
                disaster_type=disaster_type,
                active=True,
                created_at=self.clock.timestamp(),
            )
            self._policies.append(policy)
            self._policy_locks.append(threading.Lock())

        logger.info(
            f"Policy {policy_id} created for {holder}: {disaster_type.value} at {location!r}, "
            f"coverage {coverage_amount}, premium {premium}"
        )
        self.notifier.emit('policy_created', policy.to_dict())
        return policy_id

    def cancel(self, policy_id: int, requester: str) -> int:
        """
        Cancel an active policy and refund part of its premium.

        Returns:
            The refunded amount
        """
        with self.locked_policy(policy_id) as policy:
            if policy.holder != requester:
                logger.warning(f"Cancel of policy {policy_id} by non-holder {requester} rejected")
                raise NotPolicyholder(f"{requester} does not hold policy {policy_id}")
            if not policy.active:
                raise PolicyNotActive(f"Policy {policy_id} is not active")

            refund = policy.premium * self.cancel_refund_bps // BPS_DENOMINATOR
            policy.active = False
            try:
                self.treasury.transfer(policy.holder, refund)
            except Exception:
                policy.active = True
                raise
            snapshot = policy.to_dict()

        logger.info(f"Policy {policy_id} cancelled, refunded {refund}")
        self.notifier.emit('policy_cancelled', {**snapshot, 'refund': refund})
        return refund

    # ---------------- Reads ----------------
    def get_policy(self, policy_id: int) -> Policy:
        """Copy of the stored policy."""
        with self.locked_policy(policy_id) as policy:
            return replace(policy)

    def policies(self, active: Optional[bool] = None) -> List[Policy]:
        with self._lock:
            ids = range(len(self._policies))
        out = [self.get_policy(i) for i in ids]
        if active is not None:
            out = [p for p in out if p.active == active]
        return out

    def policies_for(self, holder: str) -> List[Policy]:
        return [p for p in self.policies() if p.holder == holder]

    def policy_count(self) -> int:
        with self._lock:
            return len(self._policies)

    @contextmanager
    def locked_policy(self, policy_id: int) -> Iterator[Policy]:
        """
        Hold the policy's lock and yield the stored (mutable) record.

        Only ledger-side components (cancel, settlement) mutate through this.
        """
        with self._lock:
            if not isinstance(policy_id, int) or not 0 <= policy_id < len(self._policies):
                raise UnknownPolicy(f"Unknown policy id: {policy_id}")
            policy = self._policies[policy_id]
            policy_lock = self._policy_locks[policy_id]
        with policy_lock:
            yield policy
