"""
DisasterGuard Risk Scoring Engine
=================================

Scores how exposed a location currently is to a given disaster type.
Advisory only: scores inform pricing and underwriting, never settlement.

The final score is the product of four integer factors:
1. Base score (0-100) from static geography
2. Weather multiplier (bps, 100 = 1.0x) from the latest observation
3. Seasonal multiplier (bps) from a per-month table
4. Historical multiplier (bps) from same-type events in the last 365 days

    final = base x weather x seasonal x historical // 1,000,000
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
from enum import Enum
import logging
import threading

import numpy as np
import pandas as pd

from .errors import DisasterGuardError, NoDataAvailable, UnsupportedLocation
from .models import DisasterType, HistoricalEvent, RiskParameters, RiskScore, WeatherData
from .weather import WeatherFeed
from disasterguard.config import FaultZone, ProtocolConfig
from disasterguard.utils.history import LocationHistory
from disasterguard.utils.locations import location_key

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

MULTIPLIER_BASE = 100
CONDITION_BUMP = 50
HISTORICAL_BUMP = 25
SCALE_DIVISOR = 1_000_000

SECONDS_PER_DAY = 86_400
EPOCH_MONTH_SECONDS = 30 * SECONDS_PER_DAY
HISTORY_WINDOW_SECONDS = 365 * SECONDS_PER_DAY

# Coastal hurricane band, either hemisphere (micro-degrees)
HURRICANE_BAND_MIN_LAT = 10_000_000
HURRICANE_BAND_MAX_LAT = 35_000_000

# Month (1-12) -> multiplier in bps
SEASONAL_TABLE: Dict[DisasterType, Sequence[int]] = {
    DisasterType.EARTHQUAKE: (100, 100, 100, 100, 100, 100, 100, 100, 100, 100, 100, 100),
    DisasterType.HURRICANE: (100, 100, 100, 100, 110, 130, 180, 250, 250, 180, 130, 100),
    DisasterType.FLOOD: (100, 120, 160, 200, 160, 120, 100, 100, 160, 200, 160, 120),
}


class RiskTier(Enum):
    """Underwriting tier for a final score."""
    TIER_1_MINIMAL = "minimal"      # Score 0-20
    TIER_2_LOW = "low"              # Score 21-40
    TIER_3_MODERATE = "moderate"    # Score 41-60
    TIER_4_ELEVATED = "elevated"    # Score 61-80
    TIER_5_SEVERE = "severe"        # Score 81+


def classify_risk_tier(score: int) -> RiskTier:
    if score <= 20:
        return RiskTier.TIER_1_MINIMAL
    elif score <= 40:
        return RiskTier.TIER_2_LOW
    elif score <= 60:
        return RiskTier.TIER_3_MODERATE
    elif score <= 80:
        return RiskTier.TIER_4_ELEVATED
    return RiskTier.TIER_5_SEVERE


def month_from_timestamp(timestamp: int, mode: str = 'epoch30') -> int:
    """
    Month number (1-12) used for the seasonal lookup.

    'epoch30' treats every month as 30 days since the Unix epoch, which
    drifts about 5 days a year from the calendar. It is the default because
    it reproduces the reference scores exactly. 'calendar' uses the UTC
    calendar month.
    """
    if mode == 'calendar':
        return datetime.fromtimestamp(timestamp, tz=timezone.utc).month
    return (timestamp // EPOCH_MONTH_SECONDS) % 12 + 1


class RiskScoringEngine:
    """
    Location risk scorer.

    Owns three location-keyed tables: static risk parameters, the latest
    RiskScore snapshot, and a bounded log of historical events.
    """

    def __init__(self,
                 weather_feed: WeatherFeed,
                 clock,
                 risk_parameters: Optional[Dict[str, RiskParameters]] = None,
                 fault_zones: Optional[List[FaultZone]] = None,
                 seasonal_month_mode: str = 'epoch30',
                 history_limit: Optional[int] = 1000):
        self.weather_feed = weather_feed
        self.clock = clock
        self.fault_zones = [tuple(z) for z in (fault_zones if fault_zones is not None
                                               else ProtocolConfig().fault_zones)]
        self.seasonal_month_mode = seasonal_month_mode

        self._parameters: Dict[str, RiskParameters] = {}
        self._snapshots: Dict[str, RiskScore] = {}
        self._history: LocationHistory[HistoricalEvent] = LocationHistory(history_limit)
        self._lock = threading.Lock()

        for name, params in (risk_parameters or {}).items():
            self.register_location(name, params)

        logger.info(f"RiskScoringEngine initialized with {len(self._parameters)} locations")

    def register_location(self, location: str, params: RiskParameters) -> None:
        """Seed static parameters. They cannot be changed afterwards."""
        key = location_key(location)
        with self._lock:
            if key in self._parameters:
                raise ValueError(f"Risk parameters already registered for {location}")
            self._parameters[key] = params

    def parameters_for(self, location: str) -> RiskParameters:
        with self._lock:
            params = self._parameters.get(location_key(location))
        if params is None:
            raise UnsupportedLocation(f"No risk parameters for {location}")
        return params

    # ---------------- Factors ----------------
    def calculate_base_score(self, params: RiskParameters, disaster_type: DisasterType) -> int:
        """
        Geographic base score (0-100).

        Earthquake: inside a fault-zone box or not. Flood: lower is worse.
        Hurricane: low-lying sites in the coastal latitude band are worst.
        """
        if disaster_type == DisasterType.EARTHQUAKE:
            for min_lat, max_lat, min_lon, max_lon in self.fault_zones:
                if min_lat <= params.latitude <= max_lat and min_lon <= params.longitude <= max_lon:
                    return 80
            return 20

        if disaster_type == DisasterType.FLOOD:
            if params.elevation < 10:
                return 80
            elif params.elevation < 50:
                return 50
            return 20

        in_band = HURRICANE_BAND_MIN_LAT <= abs(params.latitude) <= HURRICANE_BAND_MAX_LAT
        if in_band and params.elevation < 10:
            return 90
        elif in_band:
            return 50
        return 10

    def calculate_weather_multiplier(self, weather: WeatherData, disaster_type: DisasterType) -> int:
        multiplier = MULTIPLIER_BASE

        if disaster_type == DisasterType.HURRICANE:
            if weather.wind_speed > 100:
                multiplier += CONDITION_BUMP
            if weather.pressure < 990:
                multiplier += CONDITION_BUMP
        elif disaster_type == DisasterType.FLOOD:
            if weather.rainfall > 100:
                multiplier += CONDITION_BUMP
            if weather.humidity > 85:
                multiplier += CONDITION_BUMP

        return multiplier

    def calculate_seasonal_multiplier(self, disaster_type: DisasterType,
                                      timestamp: Optional[int] = None) -> int:
        if timestamp is None:
            timestamp = self.clock.timestamp()
        month = month_from_timestamp(timestamp, self.seasonal_month_mode)
        return SEASONAL_TABLE[disaster_type][month - 1]

    def calculate_historical_multiplier(self, location: str, disaster_type: DisasterType,
                                        now: Optional[int] = None) -> int:
        """+25 bps per same-type event in the trailing 365 days, uncapped."""
        if now is None:
            now = self.clock.timestamp()
        recent = sum(
            1 for event in self._history.items(location)
            if event.disaster_type == disaster_type
            and now - event.timestamp <= HISTORY_WINDOW_SECONDS
        )
        return MULTIPLIER_BASE + HISTORICAL_BUMP * recent

    # ---------------- Operations ----------------
    def calculate(self, location: str, disaster_type) -> int:
        """
        Compute and store the current risk score for a location.

        Raises UnsupportedLocation without risk parameters, NoDataAvailable
        without a weather observation.

        Returns:
            The final score
        """
        disaster_type = DisasterType.parse(disaster_type)
        params = self.parameters_for(location)
        weather = self.weather_feed.get_latest_weather_data(location)
        now = self.clock.timestamp()

        base_score = self.calculate_base_score(params, disaster_type)
        weather_multiplier = self.calculate_weather_multiplier(weather, disaster_type)
        seasonal_multiplier = self.calculate_seasonal_multiplier(disaster_type, now)
        historical_multiplier = self.calculate_historical_multiplier(location, disaster_type, now)

        final_score = (
            base_score * weather_multiplier * seasonal_multiplier * historical_multiplier
            // SCALE_DIVISOR
        )

        snapshot = RiskScore(
            location=location,
            disaster_type=disaster_type,
            base_score=base_score,
            weather_multiplier=weather_multiplier,
            seasonal_multiplier=seasonal_multiplier,
            historical_multiplier=historical_multiplier,
            final_score=final_score,
            risk_tier=classify_risk_tier(final_score).value,
            timestamp=now,
        )
        with self._lock:
            self._snapshots[location_key(location)] = snapshot

        logger.info(
            f"Risk for {location!r} ({disaster_type.value}): {final_score} "
            f"[base {base_score}, weather {weather_multiplier}, "
            f"seasonal {seasonal_multiplier}, historical {historical_multiplier}]"
        )
        return final_score

    calculate_risk_score = calculate

    def record_historical_event(self, location: str, disaster_type, severity: int,
                                damage_amount: int) -> HistoricalEvent:
        """Append to the location's event log. No cross-check against the registry."""
        event = HistoricalEvent(
            disaster_type=DisasterType.parse(disaster_type),
            severity=int(severity),
            damage_amount=int(damage_amount),
            timestamp=self.clock.timestamp(),
        )
        self._history.append(location, event)
        logger.info(f"Historical {event.disaster_type.value} recorded for {location!r}")
        return event

    def historical_events(self, location: str, limit: Optional[int] = None) -> List[HistoricalEvent]:
        return self._history.items(location, limit)

    def get_risk_score(self, location: str) -> RiskScore:
        with self._lock:
            snapshot = self._snapshots.get(location_key(location))
        if snapshot is None:
            raise NoDataAvailable(f"No risk score computed for {location}")
        return snapshot


# Export functions for batch processing
def process_location_batch(engine: RiskScoringEngine,
                           requests: List[Dict]) -> pd.DataFrame:
    """
    Score a batch of {'location', 'disaster_type'} requests.

    Failed rows are kept with the error name so one bad location does not
    sink the batch.
    """
    rows = []
    for request in requests:
        location = request['location']
        disaster_type = request['disaster_type']
        try:
            engine.calculate(location, disaster_type)
            rows.append({**engine.get_risk_score(location).to_dict(), 'error': None})
        except (DisasterGuardError, ValueError) as e:
            code = e.code if isinstance(e, DisasterGuardError) else type(e).__name__
            logger.error(f"Risk scoring failed for {location!r}: {code}")
            rows.append({'location': location,
                         'disaster_type': getattr(disaster_type, 'value', disaster_type),
                         'final_score': None, 'error': code})
    return pd.DataFrame(rows)


def summarize_scores(scores: Sequence[int]) -> Dict:
    """Aggregate statistics and tier distribution for a set of final scores."""
    if len(scores) == 0:
        return {'count': 0, 'mean_score': 0.0, 'max_score': 0, 'min_score': 0,
                'tier_distribution': {}}

    values = np.asarray(scores, dtype=np.int64)
    tier_counts: Dict[str, int] = {}
    for score in values:
        tier = classify_risk_tier(int(score)).value
        tier_counts[tier] = tier_counts.get(tier, 0) + 1

    return {
        'count': int(values.size),
        'mean_score': float(values.mean()),
        'max_score': int(values.max()),
        'min_score': int(values.min()),
        'tier_distribution': tier_counts,
    }
