"""
DisasterGuard Impact Prediction Engine
======================================

Estimates the damage footprint of a disaster at a seeded location:
affected area, people and buildings, dollar damage, infrastructure risk,
days of economic disruption, which named facilities are hit, and how much
confidence the estimate deserves.

Every step is integer arithmetic on (disaster type, severity) plus the
location's static ModelParameters, so identical inputs always give
identical predictions.
"""

from typing import Dict, List, Optional
import logging
import threading

import pandas as pd

from .errors import UnsupportedLocation
from .models import DisasterType, ImpactPrediction, ModelParameters, WeatherData
from disasterguard.utils.history import LocationHistory
from disasterguard.utils.locations import location_key

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

BASE_DAMAGE_MULTIPLIER = 10
BASE_CONFIDENCE = 70

# Severity tier bonuses added to the base infrastructure score:
# (above 30, above 50, above 70)
INFRASTRUCTURE_TIER_BONUS = {
    DisasterType.EARTHQUAKE: (10, 25, 40),
    DisasterType.HURRICANE: (10, 20, 35),
    DisasterType.FLOOD: (5, 15, 30),
}


def _clamp(value: int, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, value))


def affected_area(disaster_type: DisasterType, severity: int) -> int:
    """km² affected."""
    if disaster_type == DisasterType.EARTHQUAKE:
        return severity * severity // 10
    if disaster_type == DisasterType.HURRICANE:
        return 3 * severity * severity // 10
    return 4 * severity // 10


def damage_multiplier(disaster_type: DisasterType, severity: int) -> int:
    if disaster_type == DisasterType.EARTHQUAKE:
        return BASE_DAMAGE_MULTIPLIER + severity * severity // 100
    if disaster_type == DisasterType.HURRICANE:
        return BASE_DAMAGE_MULTIPLIER + severity // 2
    return BASE_DAMAGE_MULTIPLIER + severity // 3


def infrastructure_risk(disaster_type: DisasterType, severity: int, base_score: int) -> int:
    low, mid, high = INFRASTRUCTURE_TIER_BONUS[disaster_type]
    if severity > 70:
        bonus = high
    elif severity > 50:
        bonus = mid
    elif severity > 30:
        bonus = low
    else:
        bonus = 0
    return _clamp(base_score + bonus)


def economic_disruption_days(infra_risk: int, estimated_damage: int, population: int) -> int:
    # One day per 5 points of infrastructure risk, per 1e9 of damage,
    # and per 10,000 people affected
    return infra_risk // 5 + estimated_damage // 1_000_000_000 + population // 10_000


def affected_facilities(critical_infrastructure, severity: int) -> List[str]:
    """Leading share of the facility list, by severity tier. Order matters."""
    if severity < 30:
        pct = 0
    elif severity < 50:
        pct = 50
    elif severity <= 70:
        pct = 75
    else:
        pct = 100
    count = len(critical_infrastructure) * pct // 100
    return list(critical_infrastructure[:count])


def prediction_confidence(disaster_type: DisasterType, severity: int,
                          weather: Optional[WeatherData]) -> int:
    """
    Confidence (0-100) in a prediction.

    Corroborating weather raises it; extreme severities lower it since they
    sit outside most of the calibration data.
    """
    confidence = BASE_CONFIDENCE

    if weather is not None:
        if disaster_type == DisasterType.HURRICANE:
            if weather.wind_speed > 100:
                confidence += 15
            if weather.pressure < 990:
                confidence += 10
        elif disaster_type == DisasterType.FLOOD:
            if weather.rainfall > 100:
                confidence += 15
            if weather.humidity > 85:
                confidence += 10

    if severity > 70:
        confidence -= 10
    elif severity < 30:
        confidence += 10

    return _clamp(confidence)


class ImpactPredictionEngine:
    """
    Impact model over a registry of per-location ModelParameters.

    Predictions are appended to a bounded per-location history.
    """

    def __init__(self,
                 clock,
                 model_parameters: Optional[Dict[str, ModelParameters]] = None,
                 history_limit: Optional[int] = 1000):
        self.clock = clock
        self._parameters: Dict[str, ModelParameters] = {}
        self._history: LocationHistory[ImpactPrediction] = LocationHistory(history_limit)
        self._lock = threading.Lock()

        for name, params in (model_parameters or {}).items():
            self.register_location(name, params)

        logger.info(f"ImpactPredictionEngine initialized with {len(self._parameters)} locations")

    def register_location(self, location: str, params: ModelParameters) -> None:
        key = location_key(location)
        with self._lock:
            if key in self._parameters:
                raise ValueError(f"Model parameters already registered for {location}")
            self._parameters[key] = params

    def parameters_for(self, location: str) -> ModelParameters:
        with self._lock:
            params = self._parameters.get(location_key(location))
        if params is None:
            raise UnsupportedLocation(f"No model parameters for {location}")
        return params

    def predict(self,
                location: str,
                disaster_type,
                severity: int,
                weather: Optional[WeatherData] = None) -> ImpactPrediction:
        """
        Predict the impact of a disaster at `location`.

        Args:
            location: Seeded location name
            disaster_type: DisasterType or its name/code
            severity: Type-specific severity (e.g. Richter x 10)
            weather: Latest observation, used only for confidence

        Returns:
            The ImpactPrediction, also appended to the location's history
        """
        disaster_type = DisasterType.parse(disaster_type)
        if severity < 0:
            raise ValueError("severity must be non-negative")
        params = self.parameters_for(location)

        area = affected_area(disaster_type, severity)
        population = area * params.population_density
        buildings = area * params.building_density
        multiplier = damage_multiplier(disaster_type, severity)
        damage = buildings * params.average_property_value * multiplier // 100
        infra_risk = infrastructure_risk(disaster_type, severity, params.infrastructure_score)

        prediction = ImpactPrediction(
            location=location,
            disaster_type=disaster_type,
            severity=severity,
            affected_area_km2=area,
            population_affected=population,
            buildings_affected=buildings,
            damage_multiplier=multiplier,
            estimated_damage_usd=damage,
            infrastructure_risk=infra_risk,
            economic_disruption_days=economic_disruption_days(infra_risk, damage, population),
            affected_facilities=affected_facilities(params.critical_infrastructure, severity),
            confidence=prediction_confidence(disaster_type, severity, weather),
            timestamp=self.clock.timestamp(),
        )
        self._history.append(location, prediction)

        logger.info(
            f"Impact for {location!r} ({disaster_type.value}, severity {severity}): "
            f"damage ${damage:,}, {population:,} people, confidence {prediction.confidence}"
        )
        return prediction

    def prediction_history(self, location: str, limit: Optional[int] = None) -> List[ImpactPrediction]:
        return self._history.items(location, limit)


def predictions_to_dataframe(predictions: List[ImpactPrediction]) -> pd.DataFrame:
    """Flatten predictions for CSV export; facilities are joined with '; '."""
    rows = []
    for p in predictions:
        row = p.to_dict()
        row['affected_facilities'] = '; '.join(p.affected_facilities)
        rows.append(row)
    return pd.DataFrame(rows)
