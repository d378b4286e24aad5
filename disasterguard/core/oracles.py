"""
Claims review and fraud analysis oracles.

Both are advisory: nothing in settlement reads them. The bundled
implementations return fixed responses so the API surface and callers can
be exercised without a real review service.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, List, Optional


@dataclass
class ClaimReview:
    approved: bool
    validity_score: int         # 0-100
    reason: str
    recommended_payout: int

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class FraudAnalysis:
    suspicious: bool
    fraud_score: int            # 0-100
    indicators: List[str] = field(default_factory=list)
    confidence: int = 0         # 0-100

    def to_dict(self) -> Dict:
        return asdict(self)


class ClaimsReviewOracle:
    def review_claim(self, policy_id: int, event_id: int, evidence: str) -> ClaimReview:
        raise NotImplementedError


class FraudDetectionOracle:
    def analyze_claim(self, policy_id: int, event_id: int, claimant: str,
                      data: Dict[str, Any]) -> FraudAnalysis:
        raise NotImplementedError


class MockClaimsReviewOracle(ClaimsReviewOracle):
    """
    Approves every claim with a fixed validity score.

    The recommended payout is the policy's coverage when a lookup is given,
    otherwise 0.
    """

    def __init__(self, coverage_lookup: Optional[Callable[[int], int]] = None):
        self.coverage_lookup = coverage_lookup

    def review_claim(self, policy_id: int, event_id: int, evidence: str) -> ClaimReview:
        payout = self.coverage_lookup(policy_id) if self.coverage_lookup else 0
        return ClaimReview(
            approved=True,
            validity_score=85,
            reason="Claim evidence consistent with reported event",
            recommended_payout=payout,
        )


class MockFraudDetectionOracle(FraudDetectionOracle):
    """Reports every claim as low risk."""

    def analyze_claim(self, policy_id: int, event_id: int, claimant: str,
                      data: Dict[str, Any]) -> FraudAnalysis:
        return FraudAnalysis(
            suspicious=False,
            fraud_score=15,
            indicators=[],
            confidence=90,
        )
