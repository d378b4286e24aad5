from concurrent.futures import ThreadPoolExecutor

import pytest

from disasterguard.core.errors import (
    AlreadyValidated, DuplicateAttestation, InvalidSignature, UnknownEvent
)
from disasterguard.core.event_registry import DisasterEventRegistry, summarize_attestations
from disasterguard.config import ProtocolConfig
from disasterguard.core.models import DisasterType, EventState
from disasterguard.core.protocol import InsuranceProtocol
from disasterguard.core.signatures import (
    AcceptAllVerifier, attestation_message_hash, event_digest, sign_message,
    to_signed_message_hash
)

from conftest import BLOCK0, OPERATORS, T0


@pytest.fixture
def registry(verifier, clock):
    return DisasterEventRegistry(verifier, clock)


def _sig(registry, event_id, operator):
    return sign_message(OPERATORS[operator], registry.message_hash_for(event_id))


def test_report_initial_state(registry):
    event_id = registry.report("San Francisco", DisasterType.EARTHQUAKE, 70)
    event = registry.get_event(event_id)
    assert event_id == 0
    assert event.validated is False
    assert event.state == EventState.REPORTED
    assert event.attestation_count == 0
    assert event.report_block == BLOCK0
    assert event.timestamp == T0


def test_report_ids_monotonic(registry):
    assert [registry.report("Miami", "FLOOD", s) for s in (10, 20, 30)] == [0, 1, 2]
    assert registry.event_count() == 3


def test_quorum_edge(registry):
    event_id = registry.report("San Francisco", "EARTHQUAKE", 70)

    assert registry.attest(event_id, "op-1", _sig(registry, event_id, "op-1")) is False
    assert registry.attest(event_id, "op-2", _sig(registry, event_id, "op-2")) is False
    assert registry.is_validated(event_id) is False
    assert registry.attestation_count(event_id) == 2

    assert registry.attest(event_id, "op-3", _sig(registry, event_id, "op-3")) is True
    event = registry.get_event(event_id)
    assert event.validated is True
    assert event.state == EventState.VALIDATED


def test_attestation_after_quorum_rejected_by_default(registry):
    event_id = registry.report("San Francisco", "EARTHQUAKE", 70)
    for op in ("op-1", "op-2", "op-3"):
        registry.attest(event_id, op, _sig(registry, event_id, op))

    with pytest.raises(AlreadyValidated):
        registry.attest(event_id, "op-4", _sig(registry, event_id, "op-4"))
    assert registry.attestation_count(event_id) == 3
    assert registry.is_validated(event_id) is True


def test_late_attestation_recorded_when_enabled(verifier, clock):
    registry = DisasterEventRegistry(verifier, clock, accept_late_attestations=True)
    validated = []
    registry.notifier.subscribe(lambda name, payload: validated.append(name) if name == 'validated' else None)

    event_id = registry.report("San Francisco", "EARTHQUAKE", 70)
    for op in ("op-1", "op-2", "op-3"):
        registry.attest(event_id, op, _sig(registry, event_id, op))

    assert registry.attest(event_id, "op-4", _sig(registry, event_id, "op-4")) is False
    assert registry.attestation_count(event_id) == 4
    assert registry.is_validated(event_id) is True
    assert validated == ['validated']

    with pytest.raises(DuplicateAttestation):
        registry.attest(event_id, "op-4", _sig(registry, event_id, "op-4"))


def test_quorum_edge_with_late_attestations_recorded(verifier, clock):
    protocol = InsuranceProtocol(config=ProtocolConfig(accept_late_attestations=True),
                                 clock=clock, verifier=verifier)
    registry = protocol.registry
    event_id = registry.report("San Francisco", "EARTHQUAKE", 70)

    results = [registry.attest(event_id, op, _sig(registry, event_id, op))
               for op in ("op-1", "op-2")]
    assert results == [False, False]
    assert registry.is_validated(event_id) is False

    assert registry.attest(event_id, "op-3", _sig(registry, event_id, "op-3")) is True
    assert registry.is_validated(event_id) is True

    assert registry.attest(event_id, "op-4", _sig(registry, event_id, "op-4")) is False
    assert registry.attestation_count(event_id) == 4
    assert registry.get_event(event_id).state == EventState.VALIDATED


def test_duplicate_attestation(registry):
    event_id = registry.report("Miami", "HURRICANE", 40)
    registry.attest(event_id, "op-1", _sig(registry, event_id, "op-1"))
    with pytest.raises(DuplicateAttestation):
        registry.attest(event_id, "op-1", _sig(registry, event_id, "op-1"))
    assert registry.attestation_count(event_id) == 1
    assert registry.has_attested(event_id, "op-1") is True
    assert registry.has_attested(event_id, "op-2") is False


def test_wrong_secret_rejected(registry):
    event_id = registry.report("Miami", "HURRICANE", 40)
    forged = sign_message(OPERATORS["op-2"], registry.message_hash_for(event_id))
    with pytest.raises(InvalidSignature):
        registry.attest(event_id, "op-1", forged)
    assert registry.attestation_count(event_id) == 0
    assert registry.has_attested(event_id, "op-1") is False


def test_unregistered_operator_rejected(registry):
    event_id = registry.report("Miami", "HURRICANE", 40)
    signature = sign_message(b"not-registered", registry.message_hash_for(event_id))
    with pytest.raises(InvalidSignature):
        registry.attest(event_id, "intruder", signature)


def test_signature_bound_to_stored_event(registry):
    weak = registry.report("Miami", "HURRICANE", 10)
    strong = registry.report("Miami", "HURRICANE", 90)
    signature_for_strong = _sig(registry, strong, "op-1")
    with pytest.raises(InvalidSignature):
        registry.attest(weak, "op-1", signature_for_strong)


def test_message_hash_rebuilt_from_stored_fields(registry, clock):
    event_id = registry.report("Tokyo", "EARTHQUAKE", 65)
    expected = to_signed_message_hash(
        event_digest("Tokyo", DisasterType.EARTHQUAKE, 65, BLOCK0)
    )
    assert registry.message_hash_for(event_id) == expected
    assert attestation_message_hash(registry.get_event(event_id)) == expected


@pytest.mark.parametrize("event_id", [0, 3, -1])
def test_unknown_event(registry, event_id):
    with pytest.raises(UnknownEvent):
        registry.attest(event_id, "op-1", b"")
    with pytest.raises(UnknownEvent):
        registry.get_event(event_id)


def test_unknown_event_checked_before_signature(registry):
    registry.report("Miami", "FLOOD", 40)
    with pytest.raises(UnknownEvent):
        registry.attest(1, "op-1", b"garbage")


def test_configurable_quorum(verifier, clock):
    registry = DisasterEventRegistry(verifier, clock, quorum_threshold=5)
    event_id = registry.report("London", "FLOOD", 50)
    for i, op in enumerate(["op-1", "op-2", "op-3", "op-4", "op-5"], start=1):
        crossed = registry.attest(event_id, op, _sig(registry, event_id, op))
        assert crossed is (i == 5)


def test_invalid_quorum(verifier, clock):
    with pytest.raises(ValueError):
        DisasterEventRegistry(verifier, clock, quorum_threshold=0)


def test_notifications(registry):
    seen = []
    registry.notifier.subscribe(lambda name, payload: seen.append((name, payload)))

    event_id = registry.report("Miami", "FLOOD", 40)
    for op in ("op-1", "op-2", "op-3"):
        registry.attest(event_id, op, _sig(registry, event_id, op))

    names = [name for name, _ in seen]
    assert names == ['reported', 'attested', 'attested', 'attested', 'validated']
    assert seen[-1][1]['validated'] is True


def test_failing_listener_does_not_undo_attestation(registry):
    def broken(name, payload):
        raise RuntimeError("listener down")

    registry.notifier.subscribe(broken)
    event_id = registry.report("Miami", "FLOOD", 40)
    registry.attest(event_id, "op-1", _sig(registry, event_id, "op-1"))
    assert registry.attestation_count(event_id) == 1


def test_concurrent_attestations_cross_quorum_once(clock):
    registry = DisasterEventRegistry(AcceptAllVerifier(), clock, quorum_threshold=3)
    crossings = []
    registry.notifier.subscribe(lambda name, payload: crossings.append(name) if name == 'validated' else None)
    event_id = registry.report("Tokyo", "EARTHQUAKE", 80)

    def attempt(i):
        try:
            return registry.attest(event_id, f"node-{i}", b"sig")
        except AlreadyValidated:
            return None

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(32)))

    assert results.count(True) == 1
    assert results.count(False) == 2
    assert registry.attestation_count(event_id) == 3
    assert crossings == ['validated']


def test_summarize_attestations(registry):
    validated = registry.report("Miami", "FLOOD", 40)
    registry.report("Miami", "FLOOD", 20)
    for op in ("op-1", "op-2", "op-3"):
        registry.attest(validated, op, _sig(registry, validated, op))
    assert summarize_attestations(registry) == {'total_events': 2, 'validated': 1, 'pending': 1}
    assert [e.event_id for e in registry.events(validated=False)] == [1]
