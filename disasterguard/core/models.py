"""
DisasterGuard Data Model
========================

Records shared by the ledger, the event registry and the two scoring
engines. All amounts, scores and multipliers are integers: coverage and
premiums in the smallest currency unit, multipliers in basis points where
100 means 1.0x, coordinates in micro-degrees.
"""

import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional, Tuple


class DisasterType(Enum):
    """Insurable disaster types."""
    EARTHQUAKE = "EARTHQUAKE"
    FLOOD = "FLOOD"
    HURRICANE = "HURRICANE"

    @property
    def code(self) -> int:
        """Stable integer code used in signed attestation messages."""
        return _DISASTER_CODES[self]

    @classmethod
    def parse(cls, value) -> 'DisasterType':
        """Accept an enum member, its name (any case) or its integer code."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            for member, code in _DISASTER_CODES.items():
                if code == value:
                    return member
            raise ValueError(f"Unknown disaster type code: {value}")
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown disaster type: {value}") from None


_DISASTER_CODES = {
    DisasterType.EARTHQUAKE: 0,
    DisasterType.FLOOD: 1,
    DisasterType.HURRICANE: 2,
}


class EventState(Enum):
    """Lifecycle of a reported disaster event. There is no rejected state."""
    REPORTED = "reported"
    VALIDATED = "validated"


# ==========================================
# Clocks
# ==========================================

class SystemClock:
    """
    Wall-clock time source.

    Block numbers are derived from elapsed seconds at a fixed block time so
    that validity windows expressed in blocks keep their meaning off-chain.
    """

    def __init__(self, block_time_seconds: int = 13):
        self.block_time_seconds = block_time_seconds

    def timestamp(self) -> int:
        return int(time.time())

    def block_number(self) -> int:
        return self.timestamp() // self.block_time_seconds


class ManualClock:
    """Deterministic clock for tests, demos and replays."""

    def __init__(self, timestamp: int = 0, block_number: int = 0):
        self._timestamp = timestamp
        self._block_number = block_number

    def timestamp(self) -> int:
        return self._timestamp

    def block_number(self) -> int:
        return self._block_number

    def advance(self, seconds: int = 0, blocks: int = 0) -> None:
        self._timestamp += seconds
        self._block_number += blocks

    def set(self, timestamp: Optional[int] = None, block_number: Optional[int] = None) -> None:
        if timestamp is not None:
            self._timestamp = timestamp
        if block_number is not None:
            self._block_number = block_number


# ==========================================
# Ledger records
# ==========================================

@dataclass
class Policy:
    """One insurance policy. Inactive policies are kept for audit."""
    policy_id: int
    holder: str
    coverage_amount: int
    premium: int
    start_block: int
    end_block: int
    location: str
    disaster_type: DisasterType
    active: bool = True
    created_at: int = 0

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['disaster_type'] = self.disaster_type.value
        return data


@dataclass
class DisasterEvent:
    """A reported disaster awaiting (or past) operator quorum."""
    event_id: int
    location: str
    disaster_type: DisasterType
    severity: int
    report_block: int
    timestamp: int
    reporter: Optional[str] = None
    validated: bool = False
    attestation_count: int = 0

    @property
    def state(self) -> EventState:
        return EventState.VALIDATED if self.validated else EventState.REPORTED

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['disaster_type'] = self.disaster_type.value
        data['state'] = self.state.value
        return data


# ==========================================
# Reference data
# ==========================================

@dataclass(frozen=True)
class RiskParameters:
    """Static geography used for the base risk score."""
    latitude: int       # micro-degrees
    longitude: int      # micro-degrees
    elevation: int      # metres above sea level


@dataclass(frozen=True)
class ModelParameters:
    """Static demographics used by the impact model."""
    population_density: int         # people per km²
    building_density: int           # buildings per km²
    average_property_value: int     # USD
    infrastructure_score: int       # 0-100, higher = more fragile
    critical_infrastructure: Tuple[str, ...] = ()


@dataclass
class WeatherData:
    """
    Latest weather observation for a location.

    Scaled the way the weather oracle stores it: temperature in tenths of a
    degree, wind speed in tenths of m/s, rainfall in tenths of mm.
    """
    temperature: int
    humidity: int
    pressure: int
    wind_speed: int
    rainfall: int
    timestamp: int = 0
    wind_deg: int = 0
    cloudiness: int = 0
    weather_main: str = ""
    weather_desc: str = ""

    def to_dict(self) -> Dict:
        return asdict(self)


# ==========================================
# Engine outputs
# ==========================================

@dataclass(frozen=True)
class HistoricalEvent:
    disaster_type: DisasterType
    severity: int
    damage_amount: int
    timestamp: int


@dataclass
class RiskScore:
    """Latest risk snapshot for a location."""
    location: str
    disaster_type: DisasterType
    base_score: int
    weather_multiplier: int
    seasonal_multiplier: int
    historical_multiplier: int
    final_score: int
    risk_tier: str
    timestamp: int

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['disaster_type'] = self.disaster_type.value
        return data


@dataclass
class ImpactPrediction:
    """Damage and disruption estimate for one hypothetical or reported event."""
    location: str
    disaster_type: DisasterType
    severity: int
    affected_area_km2: int
    population_affected: int
    buildings_affected: int
    damage_multiplier: int
    estimated_damage_usd: int
    infrastructure_risk: int
    economic_disruption_days: int
    affected_facilities: List[str] = field(default_factory=list)
    confidence: int = 0
    timestamp: int = 0

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['disaster_type'] = self.disaster_type.value
        return data
