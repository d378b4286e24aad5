"""
DisasterGuard Protocol
======================

Wires the ledger, event registry, settlement and the two advisory engines
around shared collaborators (clock, signature verifier, treasury, weather
feed). Each instance owns its own stores; nothing here is process-global.
"""

import logging
from typing import Any, Dict, Optional

from .event_registry import DisasterEventRegistry
from .impact_engine import ImpactPredictionEngine
from .models import SystemClock
from .notifications import Notifier
from .oracles import (
    ClaimsReviewOracle, FraudDetectionOracle, MockClaimsReviewOracle, MockFraudDetectionOracle
)
from .policy_ledger import PolicyLedger
from .risk_engine import RiskScoringEngine
from .settlement import ClaimSettlement
from .signatures import (
    AcceptAllVerifier, Eip191SignatureVerifier, HmacSignatureVerifier, OperatorRegistry,
    SignatureVerifier
)
from .treasury import InMemoryTreasury, PayoutCapability
from .weather import WeatherFeed
from disasterguard.config import ProtocolConfig, load_config
from disasterguard.utils.locations import (
    DEFAULT_MODEL_PARAMETERS, DEFAULT_RISK_PARAMETERS, MONITORED_CITIES
)

logger = logging.getLogger(__name__)


def verifier_from_config(config: ProtocolConfig) -> SignatureVerifier:
    """
    Build the operator verifier named by `config.verifier`.

    With no members configured every attestation is rejected, so events can
    never validate until operators are registered.
    """
    if config.verifier == 'hmac':
        return HmacSignatureVerifier(OperatorRegistry(config.operators))
    if config.verifier == 'accept_all':
        if not config.allow_accept_all:
            raise ValueError("accept_all verifier requires allow_accept_all")
        logger.warning("Operator signatures are NOT verified (accept_all)")
        return AcceptAllVerifier()
    verifier = Eip191SignatureVerifier(config.operators)
    if not config.operators:
        logger.warning("No operators configured; attestations will be rejected")
    return verifier


class InsuranceProtocol:
    """
    One deployment of the insurance protocol.

    Args:
        config: Protocol constants (defaults if omitted)
        clock: Time source with timestamp() and block_number()
        verifier: Operator signature capability (built from config if omitted)
        treasury: Payout capability
        seed_reference_data: Register the monitored cities with the weather
            feed and both engines
    """

    def __init__(self,
                 config: Optional[ProtocolConfig] = None,
                 clock=None,
                 verifier: Optional[SignatureVerifier] = None,
                 treasury: Optional[PayoutCapability] = None,
                 claims_oracle: Optional[ClaimsReviewOracle] = None,
                 fraud_oracle: Optional[FraudDetectionOracle] = None,
                 seed_reference_data: bool = True):
        self.config = config or ProtocolConfig()
        self.clock = clock or SystemClock(self.config.block_time_seconds)
        self.verifier = verifier or verifier_from_config(self.config)
        self.treasury = treasury or InMemoryTreasury()
        self.notifier = Notifier()

        self.weather_feed = WeatherFeed(self.clock)
        self.ledger = PolicyLedger(
            self.treasury,
            self.clock,
            base_rate_bps=self.config.base_rate_bps,
            cancel_refund_bps=self.config.cancel_refund_bps,
            policy_duration_blocks=self.config.policy_duration_blocks,
            notifier=self.notifier,
        )
        self.registry = DisasterEventRegistry(
            self.verifier,
            self.clock,
            quorum_threshold=self.config.quorum_threshold,
            accept_late_attestations=self.config.accept_late_attestations,
            notifier=self.notifier,
        )
        self.settlement = ClaimSettlement(self.ledger, self.registry, self.treasury, self.notifier)
        self.claims_oracle = claims_oracle or MockClaimsReviewOracle(
            lambda policy_id: self.ledger.get_policy(policy_id).coverage_amount
        )
        self.fraud_oracle = fraud_oracle or MockFraudDetectionOracle()
        self.risk_engine = RiskScoringEngine(
            self.weather_feed,
            self.clock,
            fault_zones=self.config.fault_zones,
            seasonal_month_mode=self.config.seasonal_month_mode,
            history_limit=self.config.risk_history_limit,
        )
        self.impact_engine = ImpactPredictionEngine(
            self.clock,
            history_limit=self.config.impact_history_limit,
        )

        if seed_reference_data:
            self.seed_reference_data()

        logger.info(
            f"InsuranceProtocol ready: quorum {self.config.quorum_threshold}, "
            f"premium {self.config.base_rate_bps} bps"
        )

    @classmethod
    def from_config(cls, config_path: Optional[str] = None, **kwargs) -> 'InsuranceProtocol':
        return cls(config=load_config(config_path), **kwargs)

    def seed_reference_data(self) -> None:
        for name, (country, latitude, longitude) in MONITORED_CITIES.items():
            self.weather_feed.add_location(name, latitude, longitude, country)
        for name, params in DEFAULT_RISK_PARAMETERS.items():
            self.risk_engine.register_location(name, params)
        for name, params in DEFAULT_MODEL_PARAMETERS.items():
            self.impact_engine.register_location(name, params)

    def advise_claim(self,
                     policy_id: int,
                     event_id: int,
                     claimant: str,
                     evidence: str = "",
                     data: Optional[Dict[str, Any]] = None) -> Dict[str, Dict]:
        """
        Advisory review and fraud analysis for a prospective claim.

        Checks that both ids exist but does not gate or trigger settlement.
        """
        self.ledger.get_policy(policy_id)
        self.registry.get_event(event_id)

        review = self.claims_oracle.review_claim(policy_id, event_id, evidence)
        fraud = self.fraud_oracle.analyze_claim(policy_id, event_id, claimant, data or {})
        return {'review': review.to_dict(), 'fraud': fraud.to_dict()}
