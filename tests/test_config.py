import pytest
import yaml

from disasterguard.config import CONFIG_ENV_VAR, ProtocolConfig, load_config
from disasterguard.core.models import DisasterType
from disasterguard.core.protocol import InsuranceProtocol, verifier_from_config
from disasterguard.core.signatures import (
    Eip191SignatureVerifier, HmacSignatureVerifier, sign_message
)


def _write(tmp_path, data):
    path = tmp_path / "disasterguard.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


def test_defaults(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    config = load_config()
    assert config.base_rate_bps == 500
    assert config.cancel_refund_bps == 5000
    assert config.policy_duration_blocks == 200_000
    assert config.quorum_threshold == 3
    assert config.accept_late_attestations is False
    assert config.seasonal_month_mode == 'epoch30'
    assert len(config.fault_zones) == 2
    assert config.verifier == 'eip191'
    assert config.allow_accept_all is False
    assert config.operators == {}


def test_partial_override(tmp_path):
    path = _write(tmp_path, {
        'policy': {'base_rate_bps': 750},
        'events': {'quorum_threshold': 5, 'late_attestations': 'record'},
        'risk': {'seasonal_month_mode': 'calendar', 'history_limit': None},
    })
    config = load_config(path)
    assert config.base_rate_bps == 750
    assert config.cancel_refund_bps == 5000
    assert config.quorum_threshold == 5
    assert config.accept_late_attestations is True
    assert config.seasonal_month_mode == 'calendar'
    assert config.risk_history_limit is None
    assert config.impact_history_limit == 1000


def test_env_var(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV_VAR, _write(tmp_path, {'chain': {'block_time_seconds': 2}}))
    assert load_config().block_time_seconds == 2


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))


def test_non_mapping_file(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(str(path)) == ProtocolConfig()


@pytest.mark.parametrize("overrides", [
    {'policy': {'base_rate_bps': 10_001}},
    {'policy': {'cancel_refund_bps': -1}},
    {'events': {'quorum_threshold': 0}},
    {'events': {'late_attestations': 'maybe'}},
    {'risk': {'seasonal_month_mode': 'lunar'}},
    {'risk': {'fault_zones': [[1, 2, 3]]}},
    {'chain': {'block_time_seconds': 0}},
    {'operators': {'verifier': 'rsa'}},
    {'operators': {'verifier': 'accept_all'}},
    {'operators': {'verifier': 'hmac', 'members': {'node-1': ''}}},
])
def test_invalid_values(tmp_path, overrides):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, overrides))


def test_custom_fault_zone_changes_base_score(tmp_path, clock):
    path = _write(tmp_path, {'risk': {'fault_zones': [[51_000_000, 52_000_000, -1_000_000, 0]]}})
    protocol = InsuranceProtocol.from_config(path, clock=clock)
    london = protocol.risk_engine.parameters_for("London")
    san_francisco = protocol.risk_engine.parameters_for("San Francisco")
    assert protocol.risk_engine.calculate_base_score(london, DisasterType.EARTHQUAKE) == 80
    assert protocol.risk_engine.calculate_base_score(san_francisco, DisasterType.EARTHQUAKE) == 20


def test_protocol_uses_configured_rates(tmp_path, clock):
    path = _write(tmp_path, {'policy': {'base_rate_bps': 1000, 'duration_blocks': 50}})
    protocol = InsuranceProtocol.from_config(path, clock=clock)
    policy_id = protocol.ledger.create("alice", 10_000, "Miami", "FLOOD", 1000)
    policy = protocol.ledger.get_policy(policy_id)
    assert policy.premium == 1000
    assert policy.end_block - policy.start_block == 50


def test_default_protocol_verifies_signatures(monkeypatch, clock):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    protocol = InsuranceProtocol.from_config(clock=clock)
    assert isinstance(protocol.verifier, Eip191SignatureVerifier)
    assert len(protocol.verifier) == 0

    event_id = protocol.registry.report("Miami", "FLOOD", 40)
    assert not protocol.verifier.is_valid_signature(
        "nobody-0", protocol.registry.message_hash_for(event_id), b"\x00"
    )


def test_operators_section_builds_eip191_verifier(tmp_path, clock):
    address = "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4"
    path = _write(tmp_path, {'operators': {'members': {'node-1': address.lower()}}})
    protocol = InsuranceProtocol.from_config(path, clock=clock)
    assert protocol.verifier.address_for('node-1') == address


def test_operators_section_builds_hmac_verifier(tmp_path, clock):
    path = _write(tmp_path, {'operators': {
        'verifier': 'hmac', 'members': {'node-1': 'alpha', 'node-2': 'beta'},
    }})
    protocol = InsuranceProtocol.from_config(path, clock=clock)
    assert isinstance(protocol.verifier, HmacSignatureVerifier)

    event_id = protocol.registry.report("Miami", "FLOOD", 40)
    message = protocol.registry.message_hash_for(event_id)
    assert protocol.verifier.is_valid_signature('node-1', message, sign_message(b"alpha", message))
    assert not protocol.verifier.is_valid_signature('node-2', message, sign_message(b"alpha", message))


def test_invalid_operator_address_fails_protocol_build(tmp_path, clock):
    path = _write(tmp_path, {'operators': {'members': {'node-1': 'not-an-address'}}})
    with pytest.raises(ValueError):
        InsuranceProtocol.from_config(path, clock=clock)


def test_accept_all_needs_explicit_flag(tmp_path):
    with pytest.raises(ValueError):
        ProtocolConfig(verifier='accept_all')

    path = _write(tmp_path, {'operators': {'verifier': 'accept_all', 'allow_accept_all': True}})
    config = load_config(path)
    assert verifier_from_config(config).is_valid_signature("anyone", b"\x00" * 32, b"")
