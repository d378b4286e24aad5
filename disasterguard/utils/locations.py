"""
Location Keys and Seeded Reference Data
=======================================

Location-keyed tables (risk, impact, weather) are indexed by the Keccak-256
hash of the exact location string. Matching is case-sensitive: "Miami" and
"miami" are different locations.

Reference parameters below cover the cities monitored by the weather
oracle. Coordinates are micro-degrees (degrees x 1e6), as the oracle
stores them.
"""

from typing import Dict

from Crypto.Hash import keccak

from disasterguard.core.models import ModelParameters, RiskParameters


def location_key(location: str) -> str:
    """Canonical table key for a location name."""
    return keccak.new(digest_bits=256, data=location.encode('utf-8')).hexdigest()


# City -> (country, latitude, longitude) as registered with the weather feed
MONITORED_CITIES = {
    'San Francisco': ('US', 37_774_900, -122_419_400),
    'Miami': ('US', 25_761_700, -80_191_800),
    'New York': ('US', 40_712_800, -74_006_000),
    'Tokyo': ('JP', 35_676_200, 139_650_300),
    'London': ('GB', 51_507_400, -127_800),
}


DEFAULT_RISK_PARAMETERS: Dict[str, RiskParameters] = {
    'San Francisco': RiskParameters(latitude=37_774_900, longitude=-122_419_400, elevation=16),
    'Miami': RiskParameters(latitude=25_761_700, longitude=-80_191_800, elevation=2),
    'New York': RiskParameters(latitude=40_712_800, longitude=-74_006_000, elevation=10),
    'Tokyo': RiskParameters(latitude=35_676_200, longitude=139_650_300, elevation=40),
    'London': RiskParameters(latitude=51_507_400, longitude=-127_800, elevation=11),
}


DEFAULT_MODEL_PARAMETERS: Dict[str, ModelParameters] = {
    'San Francisco': ModelParameters(
        population_density=7_200,
        building_density=1_500,
        average_property_value=1_200_000,
        infrastructure_score=45,
        critical_infrastructure=(
            'Golden Gate Bridge',
            'Bay Bridge',
            'SFO Airport',
            'Port of San Francisco',
            'BART Transbay Tube',
            'Hetch Hetchy Water System',
        ),
    ),
    'Miami': ModelParameters(
        population_density=4_900,
        building_density=1_100,
        average_property_value=550_000,
        infrastructure_score=55,
        critical_infrastructure=(
            'Miami International Airport',
            'PortMiami',
            'Turkey Point Power Plant',
            'Jackson Memorial Hospital',
        ),
    ),
    'New York': ModelParameters(
        population_density=11_300,
        building_density=2_600,
        average_property_value=900_000,
        infrastructure_score=40,
        critical_infrastructure=(
            'JFK Airport',
            'LaGuardia Airport',
            'Holland Tunnel',
            'Brooklyn Bridge',
            'Con Edison Grid',
            'MTA Subway',
            'Port Newark',
            'Croton Aqueduct',
        ),
    ),
    'Tokyo': ModelParameters(
        population_density=6_400,
        building_density=1_900,
        average_property_value=650_000,
        infrastructure_score=25,
        critical_infrastructure=(
            'Haneda Airport',
            'Port of Tokyo',
            'Tokaido Shinkansen',
            'Tokyo Metro',
        ),
    ),
    'London': ModelParameters(
        population_density=5_700,
        building_density=1_300,
        average_property_value=850_000,
        infrastructure_score=35,
        critical_infrastructure=(
            'Thames Barrier',
            'Heathrow Airport',
            'London Underground',
            'Port of Tilbury',
        ),
    ),
}
