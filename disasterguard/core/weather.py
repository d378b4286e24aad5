"""
Weather Feed
============

Latest-observation store the risk engine reads from. Locations are
registered once with their coordinates; observations overwrite the previous
one for that location.

Values are scaled the way the weather oracle publishes them:
- temperature: tenths of a degree C
- wind speed: tenths of m/s
- rainfall: tenths of mm over the last 3h
- humidity %, pressure hPa, wind direction degrees, cloudiness %
"""

import logging
import math
import threading
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from .errors import NoDataAvailable, UnsupportedLocation
from .models import WeatherData
from disasterguard.utils.locations import location_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisteredLocation:
    name: str
    latitude: int       # micro-degrees
    longitude: int      # micro-degrees
    country: str


class WeatherFeed:
    """In-process weather oracle keyed by location hash."""

    def __init__(self, clock):
        self.clock = clock
        self._locations: Dict[str, RegisteredLocation] = {}
        self._latest: Dict[str, WeatherData] = {}
        self._lock = threading.Lock()

    def add_location(self, name: str, latitude: int, longitude: int, country: str) -> None:
        key = location_key(name)
        with self._lock:
            if key in self._locations:
                raise ValueError(f"Location already registered: {name}")
            self._locations[key] = RegisteredLocation(name, int(latitude), int(longitude), country)
        logger.info(f"Registered {name}, {country}")

    def get_location(self, name: str) -> RegisteredLocation:
        with self._lock:
            registered = self._locations.get(location_key(name))
        if registered is None:
            raise UnsupportedLocation(f"Location not registered: {name}")
        return registered

    def locations(self) -> List[RegisteredLocation]:
        with self._lock:
            return list(self._locations.values())

    def update_weather(self,
                       location: str,
                       temperature: int,
                       humidity: int,
                       pressure: int,
                       wind_speed: int,
                       rainfall: int,
                       wind_deg: int = 0,
                       cloudiness: int = 0,
                       weather_main: str = "",
                       weather_desc: str = "") -> WeatherData:
        """Store a new observation, stamped with the feed clock."""
        key = location_key(location)
        observation = WeatherData(
            temperature=int(temperature),
            humidity=int(humidity),
            pressure=int(pressure),
            wind_speed=int(wind_speed),
            rainfall=int(rainfall),
            timestamp=self.clock.timestamp(),
            wind_deg=int(wind_deg),
            cloudiness=int(cloudiness),
            weather_main=weather_main,
            weather_desc=weather_desc,
        )
        with self._lock:
            if key not in self._locations:
                raise UnsupportedLocation(f"Location not registered: {location}")
            self._latest[key] = observation
        logger.info(f"Updated weather data for {location}")
        return replace(observation)

    def publish(self, location: str, observation: WeatherData) -> WeatherData:
        """Store an already-built observation (e.g. from weather_from_openweather)."""
        return self.update_weather(
            location,
            temperature=observation.temperature,
            humidity=observation.humidity,
            pressure=observation.pressure,
            wind_speed=observation.wind_speed,
            rainfall=observation.rainfall,
            wind_deg=observation.wind_deg,
            cloudiness=observation.cloudiness,
            weather_main=observation.weather_main,
            weather_desc=observation.weather_desc,
        )

    def get_latest_weather_data(self, location: str) -> WeatherData:
        with self._lock:
            observation = self._latest.get(location_key(location))
        if observation is None:
            raise NoDataAvailable(f"No weather data for {location}")
        return replace(observation)


def _round_tenths(value: float) -> int:
    # Half-up rounding, matching the oracle service
    return int(math.floor(value * 10 + 0.5))


def weather_from_openweather(payload: dict, timestamp: Optional[int] = None) -> WeatherData:
    """
    Convert an OpenWeatherMap current-weather document (metric units).

    Missing rain is treated as 0; missing wind direction and cloud cover as 0.
    """
    main = payload['main']
    wind = payload.get('wind') or {}
    rain = payload.get('rain') or {}
    conditions = (payload.get('weather') or [{}])[0]

    return WeatherData(
        temperature=_round_tenths(main['temp']),
        humidity=int(main['humidity']),
        pressure=int(main['pressure']),
        wind_speed=_round_tenths(wind.get('speed', 0)),
        rainfall=_round_tenths(rain.get('3h', 0) or 0),
        timestamp=int(timestamp if timestamp is not None else payload.get('dt', 0)),
        wind_deg=int(wind.get('deg', 0)),
        cloudiness=int((payload.get('clouds') or {}).get('all', 0)),
        weather_main=conditions.get('main', ''),
        weather_desc=conditions.get('description', ''),
    )
