import pytest

from disasterguard.config import ProtocolConfig
from disasterguard.core.models import ManualClock, WeatherData
from disasterguard.core.protocol import InsuranceProtocol
from disasterguard.core.signatures import HmacSignatureVerifier, OperatorRegistry, sign_message

UNIT = 10 ** 18

# 2024-08-20 00:00 UTC: month 6 by 30-day epoch months, month 8 by calendar
T0 = 1_724_112_000
BLOCK0 = 20_000_000

OPERATORS = {f"op-{i}": f"secret-{i}".encode() for i in range(1, 6)}

CALM_WEATHER = dict(temperature=172, humidity=60, pressure=1015, wind_speed=40, rainfall=0)
STORM_WEATHER = dict(temperature=294, humidity=91, pressure=982, wind_speed=146, rainfall=183)


@pytest.fixture
def clock():
    return ManualClock(timestamp=T0, block_number=BLOCK0)


@pytest.fixture
def operator_registry():
    return OperatorRegistry(OPERATORS)


@pytest.fixture
def verifier(operator_registry):
    return HmacSignatureVerifier(operator_registry)


@pytest.fixture
def config():
    return ProtocolConfig()


@pytest.fixture
def protocol(config, clock, verifier):
    return InsuranceProtocol(config=config, clock=clock, verifier=verifier)


@pytest.fixture
def sign(protocol):
    """sign(event_id, operator) -> valid signature for that operator."""
    def _sign(event_id, operator, registry=None):
        registry = registry or protocol.registry
        return sign_message(OPERATORS[operator], registry.message_hash_for(event_id))
    return _sign


def storm():
    return WeatherData(timestamp=T0, **STORM_WEATHER)


def calm():
    return WeatherData(timestamp=T0, **CALM_WEATHER)
