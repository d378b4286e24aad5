"""
DisasterGuard Configuration
===========================

Protocol constants live here instead of being compiled in. Defaults match
the reference deployment (5% premium, 50% cancellation refund, quorum of 3,
~30 day policies); a YAML file can override any of them:

    policy:
      base_rate_bps: 500
      cancel_refund_bps: 5000
      duration_blocks: 200000
    events:
      quorum_threshold: 3
      late_attestations: reject   # or: record
    risk:
      seasonal_month_mode: epoch30   # or: calendar
      history_limit: 1000
    impact:
      history_limit: 1000
    chain:
      block_time_seconds: 13
    operators:
      verifier: eip191            # or: hmac
      members:
        node-1: "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4"

With `eip191` members map operator ids to Ethereum addresses; with `hmac`
they map to shared secrets. `accept_all` skips verification and is refused
unless `allow_accept_all: true` is also set (tests and demos only).
"""

import copy
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = 'DISASTERGUARD_CONFIG'

BPS_DENOMINATOR = 10_000
SEASONAL_MONTH_MODES = ('epoch30', 'calendar')
LATE_ATTESTATION_MODES = ('reject', 'record')
VERIFIER_MODES = ('eip191', 'hmac', 'accept_all')

# (min_lat, max_lat, min_lon, max_lon) in micro-degrees
FaultZone = Tuple[int, int, int, int]

DEFAULT_CONFIG = {
    'policy': {
        'base_rate_bps': 500,
        'cancel_refund_bps': 5000,
        'duration_blocks': 200_000,
    },
    'events': {
        'quorum_threshold': 3,
        'late_attestations': 'reject',
    },
    'risk': {
        'seasonal_month_mode': 'epoch30',
        'history_limit': 1000,
        'fault_zones': [
            [32_000_000, 42_000_000, -125_000_000, -114_000_000],  # San Andreas system
            [30_000_000, 46_000_000, 129_000_000, 146_000_000],    # Japan trench
        ],
    },
    'impact': {
        'history_limit': 1000,
    },
    'chain': {
        'block_time_seconds': 13,
    },
    'operators': {
        'verifier': 'eip191',
        'allow_accept_all': False,
        'members': {},
    },
}


@dataclass
class ProtocolConfig:
    base_rate_bps: int = 500
    cancel_refund_bps: int = 5000
    policy_duration_blocks: int = 200_000
    quorum_threshold: int = 3
    accept_late_attestations: bool = False
    seasonal_month_mode: str = 'epoch30'
    risk_history_limit: Optional[int] = 1000
    impact_history_limit: Optional[int] = 1000
    block_time_seconds: int = 13
    fault_zones: List[FaultZone] = field(
        default_factory=lambda: [tuple(z) for z in DEFAULT_CONFIG['risk']['fault_zones']]
    )
    verifier: str = 'eip191'
    allow_accept_all: bool = False
    # operator id -> address (eip191) or shared secret (hmac)
    operators: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        for name in ('base_rate_bps', 'cancel_refund_bps'):
            value = getattr(self, name)
            if not 0 <= value <= BPS_DENOMINATOR:
                raise ValueError(f"{name} must be within 0..{BPS_DENOMINATOR}, got {value}")
        if self.quorum_threshold < 1:
            raise ValueError("quorum_threshold must be at least 1")
        if self.policy_duration_blocks < 0:
            raise ValueError("policy_duration_blocks must not be negative")
        if self.block_time_seconds < 1:
            raise ValueError("block_time_seconds must be at least 1")
        if self.seasonal_month_mode not in SEASONAL_MONTH_MODES:
            raise ValueError(
                f"seasonal_month_mode must be one of {SEASONAL_MONTH_MODES}, "
                f"got {self.seasonal_month_mode!r}"
            )
        for zone in self.fault_zones:
            if len(zone) != 4:
                raise ValueError(f"fault zone needs 4 bounds, got {zone!r}")
        if self.verifier not in VERIFIER_MODES:
            raise ValueError(f"verifier must be one of {VERIFIER_MODES}, got {self.verifier!r}")
        if self.verifier == 'accept_all' and not self.allow_accept_all:
            raise ValueError("verifier 'accept_all' requires allow_accept_all: true")
        for operator, credential in self.operators.items():
            if not credential:
                raise ValueError(f"operator {operator!r} has no address or secret")

    @classmethod
    def from_dict(cls, data: dict) -> 'ProtocolConfig':
        """Build from a nested dict shaped like DEFAULT_CONFIG."""
        merged = _merge(DEFAULT_CONFIG, data or {})
        late_mode = str(merged['events']['late_attestations'])
        if late_mode not in LATE_ATTESTATION_MODES:
            raise ValueError(
                f"late_attestations must be one of {LATE_ATTESTATION_MODES}, got {late_mode!r}"
            )
        return cls(
            base_rate_bps=int(merged['policy']['base_rate_bps']),
            cancel_refund_bps=int(merged['policy']['cancel_refund_bps']),
            policy_duration_blocks=int(merged['policy']['duration_blocks']),
            quorum_threshold=int(merged['events']['quorum_threshold']),
            accept_late_attestations=late_mode == 'record',
            seasonal_month_mode=str(merged['risk']['seasonal_month_mode']),
            risk_history_limit=_optional_int(merged['risk']['history_limit']),
            impact_history_limit=_optional_int(merged['impact']['history_limit']),
            block_time_seconds=int(merged['chain']['block_time_seconds']),
            fault_zones=[tuple(int(v) for v in zone) for zone in merged['risk']['fault_zones']],
            verifier=str(merged['operators']['verifier']),
            allow_accept_all=bool(merged['operators']['allow_accept_all']),
            operators={str(k): str(v) for k, v in (merged['operators']['members'] or {}).items()},
        )


def load_config(config_path: Optional[str] = None) -> ProtocolConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: YAML path; falls back to $DISASTERGUARD_CONFIG, then defaults.

    Returns:
        Validated ProtocolConfig
    """
    config_path = config_path or os.environ.get(CONFIG_ENV_VAR)
    loaded = {}

    if config_path:
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Config file not found: {config_path}")
        with open(config_path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file must hold a mapping: {config_path}")
        logger.info(f"Loaded configuration from {config_path}")

    return ProtocolConfig.from_dict(loaded)


def _merge(defaults: dict, overrides: dict) -> dict:
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _optional_int(value) -> Optional[int]:
    return None if value is None else int(value)
