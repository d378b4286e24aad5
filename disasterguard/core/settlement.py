"""
Claim Settlement
================

Binary settlement: a validated event that matches an active policy's
location and disaster type pays the full coverage amount, once. Severity
and the advisory risk/impact estimates play no part in the payout.
"""

import logging
from typing import Optional

from .errors import (
    DisasterTypeMismatch, EventNotValidated, LocationMismatch, NotPolicyholder, PolicyNotActive
)
from .event_registry import DisasterEventRegistry
from .notifications import Notifier
from .policy_ledger import PolicyLedger
from .treasury import PayoutCapability

logger = logging.getLogger(__name__)


class ClaimSettlement:
    """Cross-checks a policy against a validated event and pays out."""

    def __init__(self,
                 ledger: PolicyLedger,
                 registry: DisasterEventRegistry,
                 treasury: PayoutCapability,
                 notifier: Optional[Notifier] = None):
        self.ledger = ledger
        self.registry = registry
        self.treasury = treasury
        self.notifier = notifier or ledger.notifier

    def process(self, policy_id: int, event_id: int, requester: str) -> int:
        """
        Settle `policy_id` against `event_id`.

        The whole check-deactivate-pay sequence runs under the policy's lock;
        a second call on the same policy fails with PolicyNotActive.

        Returns:
            The payout amount (the policy's full coverage)
        """
        with self.ledger.locked_policy(policy_id) as policy:
            event = self.registry.get_event(event_id)

            if not policy.active:
                raise PolicyNotActive(f"Policy {policy_id} is not active")
            if not event.validated:
                raise EventNotValidated(f"Event {event_id} has not reached quorum")
            if policy.holder != requester:
                logger.warning(f"Claim on policy {policy_id} by non-holder {requester} rejected")
                raise NotPolicyholder(f"{requester} does not hold policy {policy_id}")
            if policy.location != event.location:
                raise LocationMismatch(
                    f"Policy location {policy.location!r} != event location {event.location!r}"
                )
            if policy.disaster_type != event.disaster_type:
                raise DisasterTypeMismatch(
                    f"Policy covers {policy.disaster_type.value}, "
                    f"event is {event.disaster_type.value}"
                )

            payout = policy.coverage_amount
            policy.active = False
            try:
                self.treasury.transfer(policy.holder, payout)
            except Exception:
                policy.active = True
                raise
            snapshot = policy.to_dict()

        logger.info(f"Policy {policy_id} settled against event {event_id}: paid {payout}")
        self.notifier.emit('claim_paid', {**snapshot, 'event_id': event_id, 'payout': payout})
        return payout
