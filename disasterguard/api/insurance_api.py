"""
DisasterGuard Insurance API
===========================

REST API over one InsuranceProtocol instance.

Endpoints:
- POST /policies - Buy a policy
- GET /policies/{id} - Policy details
- POST /policies/{id}/cancel - Cancel with partial refund
- POST /policies/{id}/claim - Settle against a validated event
- POST /events - Report a disaster
- GET /events/{id} - Event and quorum state
- GET /events/{id}/message-hash - Event digest and the EIP-191 hash operators sign
- POST /events/{id}/attestations - Operator attestation
- PUT /weather/{location} - Publish a weather observation
- POST /weather/{location}/openweather - Publish an OpenWeatherMap document
- GET /weather/{location} - Latest observation
- POST /risk/score - Compute current risk score
- POST /risk/batch - Score several locations
- GET /risk/{location} - Latest risk snapshot
- POST /risk/history - Record a historical event
- POST /impact/predict - Impact prediction
- GET /impact/{location}/history - Past predictions
- POST /claims/advice - Advisory claim review and fraud analysis
- GET /portfolio/analytics - Exposure summary
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator

from disasterguard import __version__
from disasterguard.core.errors import DisasterGuardError, NoDataAvailable
from disasterguard.core.event_registry import summarize_attestations
from disasterguard.core.models import DisasterType, WeatherData
from disasterguard.core.portfolio import generate_portfolio_analytics
from disasterguard.core.protocol import InsuranceProtocol
from disasterguard.core.risk_engine import process_location_batch, summarize_scores
from disasterguard.core.weather import weather_from_openweather

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# ==========================================
# Pydantic Models
# ==========================================

class PolicyCreateInput(BaseModel):
    """Policy purchase request. Amounts are in the smallest currency unit."""
    holder: str = Field(..., min_length=1, description="Policyholder identity")
    coverage_amount: int = Field(..., description="Payout on a matching validated event")
    location: str = Field(..., min_length=1, description="Covered location (exact match)")
    disaster_type: DisasterType
    paid_amount: int = Field(..., ge=0, description="Funds sent; must cover the premium")


class RequesterInput(BaseModel):
    requester: str = Field(..., min_length=1)


class ClaimInput(BaseModel):
    event_id: int = Field(..., ge=0)
    requester: str = Field(..., min_length=1)


class EventReportInput(BaseModel):
    location: str = Field(..., min_length=1)
    disaster_type: DisasterType
    severity: int = Field(..., ge=0, description="Type-specific scale, e.g. Richter x 10")
    reporter: Optional[str] = None


class AttestationInput(BaseModel):
    operator: str = Field(..., min_length=1)
    signature: str = Field(..., description="Hex-encoded signature over the event message hash")

    @field_validator('signature')
    @classmethod
    def signature_is_hex(cls, v: str) -> str:
        v = v[2:] if v.startswith('0x') else v
        try:
            bytes.fromhex(v)
        except ValueError:
            raise ValueError("signature must be hex encoded")
        return v


class WeatherInput(BaseModel):
    """Observation in oracle units (tenths of °C, m/s and mm)."""
    temperature: int
    humidity: int = Field(..., ge=0, le=100)
    pressure: int = Field(..., ge=0)
    wind_speed: int = Field(..., ge=0)
    rainfall: int = Field(0, ge=0)
    wind_deg: int = Field(0, ge=0, le=360)
    cloudiness: int = Field(0, ge=0, le=100)
    weather_main: str = ""
    weather_desc: str = ""


class RiskScoreInput(BaseModel):
    location: str
    disaster_type: DisasterType


class RiskBatchInput(BaseModel):
    requests: List[RiskScoreInput]


class HistoricalEventInput(BaseModel):
    location: str
    disaster_type: DisasterType
    severity: int = Field(..., ge=0)
    damage_amount: int = Field(0, ge=0)


class ImpactInput(BaseModel):
    location: str
    disaster_type: DisasterType
    severity: int = Field(..., ge=0)
    weather: Optional[WeatherInput] = None
    use_latest_weather: bool = Field(True, description="Fall back to the weather feed")


class ClaimAdviceInput(BaseModel):
    policy_id: int = Field(..., ge=0)
    event_id: int = Field(..., ge=0)
    claimant: str
    evidence: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)


class PolicyOutput(BaseModel):
    policy_id: int
    holder: str
    coverage_amount: int
    premium: int
    start_block: int
    end_block: int
    location: str
    disaster_type: str
    active: bool
    created_at: int


def _http_error(e: DisasterGuardError) -> HTTPException:
    logger.warning(f"Request rejected: {e.code} - {e.message}")
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


def _unexpected(context: str, e: Exception) -> HTTPException:
    logger.error(f"{context} error: {e}")
    return HTTPException(status_code=500, detail=str(e))


# ==========================================
# App factory
# ==========================================

def create_app(protocol: Optional[InsuranceProtocol] = None) -> FastAPI:
    """Build the API around `protocol` (one is loaded from config if omitted)."""
    protocol = protocol or InsuranceProtocol.from_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("DisasterGuard API starting up...")
        logger.info("Available endpoints: /docs, /policies, /events, /risk, /impact")
        yield
        logger.info("DisasterGuard API shutting down...")

    app = FastAPI(
        title="DisasterGuard API",
        description="Parametric disaster insurance with quorum-attested events",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.protocol = protocol

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------------- Service ----------------
    @app.get("/")
    async def root():
        return {
            "service": "DisasterGuard API",
            "version": __version__,
            "description": "Parametric disaster insurance settlement",
            "documentation": "/docs"
        }

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "quorum_threshold": protocol.registry.quorum_threshold,
            "policies": protocol.ledger.policy_count(),
            "events": summarize_attestations(protocol.registry),
        }

    # ---------------- Policies ----------------
    @app.post("/policies", response_model=PolicyOutput, status_code=201)
    async def create_policy(input_data: PolicyCreateInput):
        try:
            policy_id = protocol.ledger.create(
                holder=input_data.holder,
                coverage_amount=input_data.coverage_amount,
                location=input_data.location,
                disaster_type=input_data.disaster_type,
                paid_amount=input_data.paid_amount,
            )
            return protocol.ledger.get_policy(policy_id).to_dict()
        except DisasterGuardError as e:
            raise _http_error(e)

    @app.get("/policies/{policy_id}", response_model=PolicyOutput)
    async def get_policy(policy_id: int):
        try:
            return protocol.ledger.get_policy(policy_id).to_dict()
        except DisasterGuardError as e:
            raise _http_error(e)

    @app.post("/policies/{policy_id}/cancel")
    async def cancel_policy(policy_id: int, input_data: RequesterInput):
        try:
            refund = protocol.ledger.cancel(policy_id, input_data.requester)
            return {"policy_id": policy_id, "refund": refund, "active": False}
        except DisasterGuardError as e:
            raise _http_error(e)

    @app.post("/policies/{policy_id}/claim")
    async def process_claim(policy_id: int, input_data: ClaimInput):
        """
        Settle a policy against a validated event.

        Pays the full coverage amount once; the policy becomes inactive.
        """
        try:
            payout = protocol.settlement.process(
                policy_id, input_data.event_id, input_data.requester
            )
            return {"policy_id": policy_id, "event_id": input_data.event_id,
                    "payout": payout, "active": False}
        except DisasterGuardError as e:
            raise _http_error(e)

    # ---------------- Events ----------------
    @app.post("/events", status_code=201)
    async def report_event(input_data: EventReportInput):
        event_id = protocol.registry.report(
            input_data.location,
            input_data.disaster_type,
            input_data.severity,
            reporter=input_data.reporter,
        )
        return protocol.registry.get_event(event_id).to_dict()

    @app.get("/events/{event_id}")
    async def get_event(event_id: int):
        try:
            return protocol.registry.get_event(event_id).to_dict()
        except DisasterGuardError as e:
            raise _http_error(e)

    @app.get("/events/{event_id}/message-hash")
    async def get_message_hash(event_id: int):
        try:
            return {"event_id": event_id,
                    "digest": protocol.registry.digest_for(event_id).hex(),
                    "message_hash": protocol.registry.message_hash_for(event_id).hex()}
        except DisasterGuardError as e:
            raise _http_error(e)

    @app.post("/events/{event_id}/attestations")
    async def attest_event(event_id: int, input_data: AttestationInput):
        try:
            protocol.registry.attest(
                event_id, input_data.operator, bytes.fromhex(input_data.signature)
            )
            event = protocol.registry.get_event(event_id)
            return {
                "event_id": event_id,
                "operator": input_data.operator,
                "attestation_count": event.attestation_count,
                "quorum_threshold": protocol.registry.quorum_threshold,
                "validated": event.validated,
            }
        except DisasterGuardError as e:
            raise _http_error(e)

    # ---------------- Weather ----------------
    @app.put("/weather/{location}")
    async def publish_weather(location: str, input_data: WeatherInput):
        try:
            return protocol.weather_feed.update_weather(location, **input_data.model_dump()).to_dict()
        except DisasterGuardError as e:
            raise _http_error(e)

    @app.post("/weather/{location}/openweather")
    async def publish_openweather(location: str, payload: Dict[str, Any]):
        try:
            observation = weather_from_openweather(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise HTTPException(status_code=422, detail=f"Malformed OpenWeatherMap document: {e}")
        try:
            return protocol.weather_feed.publish(location, observation).to_dict()
        except DisasterGuardError as e:
            raise _http_error(e)

    @app.get("/weather/{location}")
    async def get_weather(location: str):
        try:
            return protocol.weather_feed.get_latest_weather_data(location).to_dict()
        except DisasterGuardError as e:
            raise _http_error(e)

    # ---------------- Risk ----------------
    @app.post("/risk/score")
    async def score_risk(input_data: RiskScoreInput):
        """
        Compute the current risk score for a location.

        Returns the full snapshot: base score, the three multipliers,
        final score and risk tier.
        """
        try:
            protocol.risk_engine.calculate(input_data.location, input_data.disaster_type)
            return protocol.risk_engine.get_risk_score(input_data.location).to_dict()
        except DisasterGuardError as e:
            raise _http_error(e)

    @app.post("/risk/batch")
    async def score_risk_batch(input_data: RiskBatchInput):
        try:
            df = process_location_batch(
                protocol.risk_engine,
                [{'location': r.location, 'disaster_type': r.disaster_type}
                 for r in input_data.requests],
            )
            reports = df.astype(object).where(df.notna(), None).to_dict(orient='records')
            scores = [r['final_score'] for r in reports if r.get('final_score') is not None]
            return {
                "total_locations": len(reports),
                "reports": reports,
                "aggregate_stats": summarize_scores(scores),
            }
        except Exception as e:
            raise _unexpected("Batch risk scoring", e)

    @app.get("/risk/{location}")
    async def get_risk(location: str):
        try:
            return protocol.risk_engine.get_risk_score(location).to_dict()
        except DisasterGuardError as e:
            raise _http_error(e)

    @app.post("/risk/history", status_code=201)
    async def record_history(input_data: HistoricalEventInput):
        event = protocol.risk_engine.record_historical_event(
            input_data.location,
            input_data.disaster_type,
            input_data.severity,
            input_data.damage_amount,
        )
        return {
            "location": input_data.location,
            "disaster_type": event.disaster_type.value,
            "severity": event.severity,
            "damage_amount": event.damage_amount,
            "timestamp": event.timestamp,
        }

    # ---------------- Impact ----------------
    @app.post("/impact/predict")
    async def predict_impact(input_data: ImpactInput):
        weather = None
        if input_data.weather is not None:
            weather = WeatherData(**input_data.weather.model_dump())
        elif input_data.use_latest_weather:
            try:
                weather = protocol.weather_feed.get_latest_weather_data(input_data.location)
            except NoDataAvailable:
                weather = None

        try:
            prediction = protocol.impact_engine.predict(
                input_data.location,
                input_data.disaster_type,
                input_data.severity,
                weather,
            )
            return prediction.to_dict()
        except DisasterGuardError as e:
            raise _http_error(e)

    @app.get("/impact/{location}/history")
    async def impact_history(location: str, limit: Optional[int] = None):
        predictions = protocol.impact_engine.prediction_history(location, limit)
        return {"location": location, "count": len(predictions),
                "predictions": [p.to_dict() for p in predictions]}

    # ---------------- Claims / portfolio ----------------
    @app.post("/claims/advice")
    async def claim_advice(input_data: ClaimAdviceInput):
        """Advisory only; settlement never consults these results."""
        try:
            return protocol.advise_claim(
                input_data.policy_id,
                input_data.event_id,
                input_data.claimant,
                input_data.evidence,
                input_data.data,
            )
        except DisasterGuardError as e:
            raise _http_error(e)

    @app.get("/portfolio/analytics")
    async def portfolio_analytics():
        try:
            return generate_portfolio_analytics(protocol.ledger).to_dict()
        except Exception as e:
            raise _unexpected("Portfolio analytics", e)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
