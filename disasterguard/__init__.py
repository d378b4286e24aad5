"""
DisasterGuard - Parametric Disaster Insurance Settlement
"""

__version__ = "1.0.0"
__author__ = "DisasterGuard Team"
__description__ = "Quorum-attested parametric disaster insurance with risk and impact scoring"

from .config import ProtocolConfig, load_config
from .core.errors import DisasterGuardError
from .core.models import (
    DisasterType,
    Policy,
    DisasterEvent,
    RiskScore,
    ImpactPrediction,
    WeatherData,
    ManualClock,
    SystemClock
)
from .core.event_registry import DisasterEventRegistry
from .core.policy_ledger import PolicyLedger
from .core.settlement import ClaimSettlement
from .core.risk_engine import RiskScoringEngine, RiskTier
from .core.impact_engine import ImpactPredictionEngine
from .core.signatures import (
    SignatureVerifier,
    Eip191SignatureVerifier,
    HmacSignatureVerifier,
    AcceptAllVerifier,
    OperatorRegistry,
    sign_eip191,
    sign_message
)
from .core.protocol import InsuranceProtocol

__all__ = [
    # Core Classes
    'InsuranceProtocol',
    'DisasterEventRegistry',
    'PolicyLedger',
    'ClaimSettlement',
    'RiskScoringEngine',
    'ImpactPredictionEngine',

    # Signatures
    'SignatureVerifier',
    'Eip191SignatureVerifier',
    'HmacSignatureVerifier',
    'AcceptAllVerifier',
    'OperatorRegistry',
    'sign_eip191',
    'sign_message',

    # Data Classes
    'DisasterType',
    'Policy',
    'DisasterEvent',
    'RiskScore',
    'RiskTier',
    'ImpactPrediction',
    'WeatherData',
    'ManualClock',
    'SystemClock',

    # Config / errors
    'ProtocolConfig',
    'load_config',
    'DisasterGuardError',
]
