"""
DisasterGuard Utils Module
"""

from .locations import (
    location_key,
    MONITORED_CITIES,
    DEFAULT_RISK_PARAMETERS,
    DEFAULT_MODEL_PARAMETERS
)
from .history import LocationHistory

__all__ = [
    'location_key',
    'MONITORED_CITIES',
    'DEFAULT_RISK_PARAMETERS',
    'DEFAULT_MODEL_PARAMETERS',
    'LocationHistory'
]
