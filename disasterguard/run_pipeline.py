#!/usr/bin/env python3
"""
DisasterGuard Pipeline Runner
=============================

Command-line entry point.

Modes:
1. Demo: End-to-end policy -> event -> quorum -> payout walkthrough
2. Risk: Score locations from a CSV (location, disaster_type)
3. Impact: Predict impacts from a CSV (location, disaster_type, severity)
4. Serve: Run the HTTP API

Usage:
    disasterguard --mode demo
    disasterguard --mode risk --input locations.csv --weather weather.json
    disasterguard --mode impact --input scenarios.csv --output-dir ./reports
    disasterguard --mode serve --config protocol.yaml
"""

import os
import argparse
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import pandas as pd
from eth_account import Account

from disasterguard.core.errors import DisasterGuardError, NoDataAvailable
from disasterguard.core.impact_engine import predictions_to_dataframe
from disasterguard.core.models import DisasterType, ManualClock
from disasterguard.core.portfolio import generate_portfolio_analytics
from disasterguard.core.protocol import InsuranceProtocol
from disasterguard.core.risk_engine import process_location_batch, summarize_scores
from disasterguard.core.signatures import Eip191SignatureVerifier, keccak256, sign_eip191
from disasterguard.core.weather import weather_from_openweather
from disasterguard.config import CONFIG_ENV_VAR, load_config

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger('DisasterGuard')

UNIT = 10 ** 18

# 2024-08-20 00:00 UTC
DEMO_TIMESTAMP = 1_724_112_000
DEMO_BLOCK = 20_000_000

DEMO_WEATHER = {
    'San Francisco': {'main': {'temp': 17.2, 'humidity': 72, 'pressure': 1014},
                      'wind': {'speed': 5.1, 'deg': 270}, 'clouds': {'all': 20},
                      'weather': [{'main': 'Clouds', 'description': 'few clouds'}]},
    'Miami': {'main': {'temp': 29.4, 'humidity': 91, 'pressure': 982},
              'wind': {'speed': 14.6, 'deg': 110}, 'rain': {'3h': 18.3}, 'clouds': {'all': 100},
              'weather': [{'main': 'Rain', 'description': 'heavy intensity rain'}]},
}


class DisasterGuardPipeline:
    """
    Batch orchestrator around one InsuranceProtocol.

    Loads weather documents into the feed, scores and predicts from CSV
    inputs, and writes CSV/JSON outputs.
    """

    def __init__(self,
                 output_dir: str = 'disasterguard_outputs',
                 config_path: Optional[str] = None,
                 protocol: Optional[InsuranceProtocol] = None):
        """
        Initialize the pipeline.

        Args:
            output_dir: Directory for output files
            config_path: Optional YAML configuration file
            protocol: Pre-built protocol (built from config if omitted)
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.protocol = protocol or InsuranceProtocol(config=load_config(config_path))

        logger.info(f"Output directory: {self.output_dir}")

    def load_weather(self, documents: Dict[str, dict]) -> int:
        """Publish OpenWeatherMap documents keyed by city. Returns how many were accepted."""
        loaded = 0
        for city, payload in documents.items():
            try:
                observation = weather_from_openweather(payload, self.protocol.clock.timestamp())
                self.protocol.weather_feed.publish(city, observation)
                loaded += 1
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Malformed weather document for {city}: {e}")
            except DisasterGuardError as e:
                logger.error(f"Weather for {city} rejected: {e.code}")
        return loaded

    def load_weather_file(self, weather_path: str) -> int:
        with open(weather_path, 'r') as f:
            return self.load_weather(json.load(f))

    def score_locations(self, input_csv: str) -> pd.DataFrame:
        """
        Score every (location, disaster_type) row of a CSV.

        Returns:
            DataFrame of risk snapshots (failed rows carry an error name)
        """
        logger.info(f"Scoring locations from {input_csv}")
        requests_df = pd.read_csv(input_csv)
        requests_df.rename(columns={'type': 'disaster_type', 'city': 'location'}, inplace=True)

        scores_df = process_location_batch(
            self.protocol.risk_engine,
            requests_df[['location', 'disaster_type']].to_dict(orient='records'),
        )
        output_path = str(self.output_dir / 'risk_scores.csv')
        scores_df.to_csv(output_path, index=False)
        logger.info(f"Saved {len(scores_df)} risk scores to {output_path}")
        return scores_df

    def predict_impacts(self, input_csv: str) -> pd.DataFrame:
        """Predict the impact of every (location, disaster_type, severity) row of a CSV."""
        logger.info(f"Predicting impacts from {input_csv}")
        scenarios_df = pd.read_csv(input_csv)

        predictions = []
        for row in scenarios_df.itertuples(index=False):
            try:
                weather = self.protocol.weather_feed.get_latest_weather_data(row.location)
            except NoDataAvailable:
                weather = None
            try:
                predictions.append(self.protocol.impact_engine.predict(
                    row.location, row.disaster_type, int(row.severity), weather
                ))
            except (DisasterGuardError, ValueError) as e:
                logger.error(f"Impact prediction failed for {row.location!r}: {e}")

        predictions_df = predictions_to_dataframe(predictions)
        output_path = str(self.output_dir / 'impact_predictions.csv')
        predictions_df.to_csv(output_path, index=False)
        logger.info(f"Saved {len(predictions_df)} impact predictions to {output_path}")
        return predictions_df


def run_demo(output_dir: str, config_path: Optional[str] = None) -> dict:
    """
    Walk one San Francisco earthquake policy through its full lifecycle.

    Uses a manual clock and three EIP-191 operator keys derived from fixed
    seeds so the run is reproducible.
    """
    operators = {f"operator-{i}": Account.from_key(keccak256(f"demo-operator-{i}".encode()))
                 for i in range(1, 4)}
    protocol = InsuranceProtocol(
        config=load_config(config_path),
        clock=ManualClock(timestamp=DEMO_TIMESTAMP, block_number=DEMO_BLOCK),
        verifier=Eip191SignatureVerifier(
            {operator: account.address for operator, account in operators.items()}
        ),
    )
    pipeline = DisasterGuardPipeline(output_dir=output_dir, protocol=protocol)
    pipeline.load_weather(DEMO_WEATHER)

    holder = "0xPolicyholder"
    policy_id = protocol.ledger.create(
        holder, UNIT, "San Francisco", DisasterType.EARTHQUAKE, UNIT * 105 // 100
    )
    policy = protocol.ledger.get_policy(policy_id)
    print(f"\nPolicy {policy_id}: coverage {policy.coverage_amount / UNIT} "
          f"premium {policy.premium / UNIT} active={policy.active}")

    risk = protocol.risk_engine.calculate("San Francisco", DisasterType.EARTHQUAKE)
    print(f"Current earthquake risk score: {risk}")

    protocol.clock.advance(seconds=3600, blocks=300)
    event_id = protocol.registry.report("San Francisco", DisasterType.EARTHQUAKE, 70)
    print(f"Event {event_id} reported, validated={protocol.registry.is_validated(event_id)}")

    digest = protocol.registry.digest_for(event_id)
    for operator, account in operators.items():
        protocol.registry.attest(event_id, operator, sign_eip191(account.key, digest))
        print(f"  {operator} attested "
              f"({protocol.registry.attestation_count(event_id)}/"
              f"{protocol.registry.quorum_threshold})")
    print(f"Event {event_id} validated={protocol.registry.is_validated(event_id)}")

    impact = protocol.impact_engine.predict("San Francisco", DisasterType.EARTHQUAKE, 70)
    print(f"Predicted damage: ${impact.estimated_damage_usd:,} "
          f"({impact.population_affected:,} people, confidence {impact.confidence})")

    payout = protocol.settlement.process(policy_id, event_id, holder)
    policy = protocol.ledger.get_policy(policy_id)
    print(f"Payout {payout / UNIT} to {holder}; policy active={policy.active}")

    results = {
        'run_at': datetime.now().isoformat(),
        'policy': policy.to_dict(),
        'event': protocol.registry.get_event(event_id).to_dict(),
        'risk_score': protocol.risk_engine.get_risk_score("San Francisco").to_dict(),
        'impact': impact.to_dict(),
        'payout': payout,
        'portfolio': generate_portfolio_analytics(protocol.ledger).to_dict(),
    }
    results_path = str(Path(output_dir) / 'demo_results.json')
    with open(results_path, 'w') as f:
        json.dump(results, f, indent=2, default=str)
    logger.info(f"Demo complete. Results saved to {results_path}")
    return results


def main():
    parser = argparse.ArgumentParser(
        description="DisasterGuard parametric insurance pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  End-to-end walkthrough:
    disasterguard --mode demo

  Risk scores for a CSV of locations, with OpenWeatherMap documents:
    disasterguard --mode risk --input locations.csv --weather weather.json

  Impact predictions:
    disasterguard --mode impact --input scenarios.csv --output-dir ./reports

  HTTP API:
    disasterguard --mode serve --port 8000
        """
    )

    parser.add_argument('--mode', required=True,
                        choices=['demo', 'risk', 'impact', 'serve'],
                        help='Pipeline execution mode')
    parser.add_argument('--input', help='Input CSV path')
    parser.add_argument('--weather', help='JSON file of OpenWeatherMap documents keyed by city')
    parser.add_argument('--output-dir', default='disasterguard_outputs',
                        help='Output directory for results')
    parser.add_argument('--config', help='Configuration YAML file')
    parser.add_argument('--host', default='0.0.0.0')
    parser.add_argument('--port', type=int, default=8000)

    args = parser.parse_args()

    if args.mode == 'demo':
        run_demo(args.output_dir, args.config)

    elif args.mode in ('risk', 'impact'):
        if not args.input:
            parser.error(f"--input required for {args.mode} mode")

        pipeline = DisasterGuardPipeline(output_dir=args.output_dir, config_path=args.config)
        if args.weather:
            loaded = pipeline.load_weather_file(args.weather)
            logger.info(f"Loaded weather for {loaded} locations")
        elif args.mode == 'risk':
            logger.warning("No --weather given; locations without observations will fail")

        if args.mode == 'risk':
            scores_df = pipeline.score_locations(args.input)
            print(f"\n=== Scored {len(scores_df)} Locations ===")
            print(scores_df[['location', 'disaster_type', 'final_score', 'error']].to_string())
            valid = scores_df['final_score'].dropna().astype(int).tolist()
            print(json.dumps(summarize_scores(valid), indent=2))
        else:
            predictions_df = pipeline.predict_impacts(args.input)
            print(f"\n=== Predicted {len(predictions_df)} Impacts ===")
            if not predictions_df.empty:
                print(predictions_df[['location', 'disaster_type', 'severity',
                                      'estimated_damage_usd', 'confidence']].to_string())

    elif args.mode == 'serve':
        import uvicorn
        if args.config:
            os.environ[CONFIG_ENV_VAR] = args.config
        uvicorn.run("disasterguard.api.insurance_api:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
