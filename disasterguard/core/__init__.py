"""
DisasterGuard Core Module
Policy ledger, attestation quorum, settlement and scoring engines
"""

from .errors import DisasterGuardError
from .models import DisasterType, Policy, DisasterEvent, ManualClock, SystemClock
from .event_registry import DisasterEventRegistry
from .policy_ledger import PolicyLedger
from .settlement import ClaimSettlement
from .risk_engine import RiskScoringEngine, RiskTier
from .impact_engine import ImpactPredictionEngine
from .weather import WeatherFeed
from .protocol import InsuranceProtocol

__all__ = [
    'DisasterGuardError',
    'DisasterType',
    'Policy',
    'DisasterEvent',
    'ManualClock',
    'SystemClock',
    'DisasterEventRegistry',
    'PolicyLedger',
    'ClaimSettlement',
    'RiskScoringEngine',
    'RiskTier',
    'ImpactPredictionEngine',
    'WeatherFeed',
    'InsuranceProtocol'
]
