import pytest

from disasterguard.core.errors import (
    InsufficientPremium, InvalidCoverage, NotPolicyholder, PolicyNotActive, UnknownPolicy
)
from disasterguard.core.models import DisasterType
from disasterguard.core.policy_ledger import PolicyLedger, calculate_premium
from disasterguard.core.treasury import InMemoryTreasury

from conftest import BLOCK0, T0, UNIT


@pytest.fixture
def treasury():
    return InMemoryTreasury()


@pytest.fixture
def ledger(treasury, clock):
    return PolicyLedger(treasury, clock)


@pytest.mark.parametrize("coverage", [1, 19, 20, 19_999, 10 ** 6, UNIT, 7 * UNIT + 3])
def test_premium_is_five_percent_floor(ledger, coverage):
    premium = coverage * 500 // 10000
    policy_id = ledger.create("alice", coverage, "Miami", DisasterType.FLOOD, premium)
    policy = ledger.get_policy(policy_id)
    assert policy.premium == premium
    assert policy.active is True


def test_calculate_premium_custom_rate():
    assert calculate_premium(UNIT, 1000) == UNIT // 10
    assert calculate_premium(19_999) == 999


def test_create_records_policy_fields(ledger, clock):
    policy_id = ledger.create("alice", UNIT, "San Francisco", "earthquake", UNIT)
    policy = ledger.get_policy(policy_id)
    assert policy.policy_id == 0
    assert policy.holder == "alice"
    assert policy.coverage_amount == UNIT
    assert policy.location == "San Francisco"
    assert policy.disaster_type == DisasterType.EARTHQUAKE
    assert policy.start_block == BLOCK0
    assert policy.end_block == BLOCK0 + 200_000
    assert policy.created_at == T0


def test_ids_are_monotonic(ledger):
    ids = [ledger.create("alice", 1000, "Miami", "FLOOD", 50) for _ in range(3)]
    assert ids == [0, 1, 2]
    assert ledger.policy_count() == 3


@pytest.mark.parametrize("coverage", [0, -1, -UNIT])
def test_non_positive_coverage_rejected(ledger, coverage):
    with pytest.raises(InvalidCoverage):
        ledger.create("alice", coverage, "Miami", "FLOOD", UNIT)
    assert ledger.policy_count() == 0


def test_insufficient_premium_leaves_no_state(ledger, treasury):
    with pytest.raises(InsufficientPremium):
        ledger.create("alice", UNIT, "Miami", "FLOOD", UNIT * 5 // 100 - 1)
    assert ledger.policy_count() == 0
    assert treasury.balance == 0


def test_surplus_is_retained_by_treasury(ledger, treasury):
    ledger.create("alice", UNIT, "Miami", "FLOOD", UNIT * 105 // 100)
    assert treasury.balance == UNIT * 105 // 100
    assert treasury.paid_to("alice") == 0


def test_cancel_refunds_half_premium(ledger, treasury):
    policy_id = ledger.create("alice", UNIT, "Miami", "HURRICANE", UNIT // 20)
    refund = ledger.cancel(policy_id, "alice")

    assert refund == UNIT // 40
    assert treasury.paid_to("alice") == UNIT // 40
    assert treasury.balance == UNIT // 20 - UNIT // 40
    assert ledger.get_policy(policy_id).active is False


def test_cancel_odd_premium_rounds_down(ledger, treasury):
    policy_id = ledger.create("alice", 660, "Miami", "FLOOD", 33)
    assert ledger.cancel(policy_id, "alice") == 16


def test_cancel_twice_fails(ledger):
    policy_id = ledger.create("alice", UNIT, "Miami", "FLOOD", UNIT)
    ledger.cancel(policy_id, "alice")
    with pytest.raises(PolicyNotActive):
        ledger.cancel(policy_id, "alice")


def test_cancel_by_other_party_fails(ledger):
    policy_id = ledger.create("alice", UNIT, "Miami", "FLOOD", UNIT)
    with pytest.raises(NotPolicyholder):
        ledger.cancel(policy_id, "mallory")
    assert ledger.get_policy(policy_id).active is True


@pytest.mark.parametrize("policy_id", [0, 5, -1])
def test_unknown_policy(ledger, policy_id):
    with pytest.raises(UnknownPolicy):
        ledger.get_policy(policy_id)
    with pytest.raises(UnknownPolicy):
        ledger.cancel(policy_id, "alice")


def test_get_policy_returns_copy(ledger):
    policy_id = ledger.create("alice", UNIT, "Miami", "FLOOD", UNIT)
    copy = ledger.get_policy(policy_id)
    copy.active = False
    copy.coverage_amount = 1
    stored = ledger.get_policy(policy_id)
    assert stored.active is True
    assert stored.coverage_amount == UNIT


def test_configured_rates(treasury, clock):
    ledger = PolicyLedger(treasury, clock, base_rate_bps=1000, cancel_refund_bps=2500,
                          policy_duration_blocks=10)
    policy_id = ledger.create("alice", 10_000, "Miami", "FLOOD", 1000)
    policy = ledger.get_policy(policy_id)
    assert policy.premium == 1000
    assert policy.end_block - policy.start_block == 10
    assert ledger.cancel(policy_id, "alice") == 250


def test_failed_refund_transfer_keeps_policy_active(clock):
    class BrokenTreasury(InMemoryTreasury):
        def transfer(self, recipient, amount):
            raise RuntimeError("transfer unavailable")

    ledger = PolicyLedger(BrokenTreasury(), clock)
    policy_id = ledger.create("alice", UNIT, "Miami", "FLOOD", UNIT)
    with pytest.raises(RuntimeError):
        ledger.cancel(policy_id, "alice")
    assert ledger.get_policy(policy_id).active is True


def test_policies_filters(ledger):
    ledger.create("alice", 1000, "Miami", "FLOOD", 50)
    second = ledger.create("bob", 1000, "Tokyo", "EARTHQUAKE", 50)
    ledger.cancel(second, "bob")
    assert [p.policy_id for p in ledger.policies(active=True)] == [0]
    assert [p.policy_id for p in ledger.policies_for("bob")] == [1]
