"""
Portfolio Analytics
===================

Exposure summary over the policy ledger for treasury and reinsurance
planning: how much active coverage sits on each location and disaster type,
and what the largest single-location hit would cost.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List

import pandas as pd

from .policy_ledger import PolicyLedger


@dataclass
class PortfolioAnalytics:
    analysis_date: str
    total_policies: int
    active_policies: int
    total_active_coverage: int
    total_premiums_written: int

    exposure_by_location: Dict[str, int] = field(default_factory=dict)
    exposure_by_type: Dict[str, int] = field(default_factory=dict)
    concentration_zones: List[Dict] = field(default_factory=list)
    max_location_exposure: int = 0

    def to_dict(self) -> Dict:
        return {k: v for k, v in self.__dict__.items()}


def policies_to_dataframe(ledger: PolicyLedger) -> pd.DataFrame:
    columns = ['policy_id', 'holder', 'coverage_amount', 'premium', 'start_block',
               'end_block', 'location', 'disaster_type', 'active', 'created_at']
    df = pd.DataFrame([p.to_dict() for p in ledger.policies()], columns=columns)
    # Amounts are in the smallest unit and overflow int64 when summed
    for column in ('coverage_amount', 'premium'):
        df[column] = df[column].astype(object)
    df['active'] = df['active'].astype(bool)
    return df


def generate_portfolio_analytics(ledger: PolicyLedger, top_n: int = 5) -> PortfolioAnalytics:
    """
    Aggregate the ledger into a PortfolioAnalytics snapshot.

    Premiums count every policy ever written; exposure counts active
    policies only.
    """
    df = policies_to_dataframe(ledger)
    analytics = PortfolioAnalytics(
        analysis_date=datetime.now().isoformat(),
        total_policies=len(df),
        active_policies=0,
        total_active_coverage=0,
        total_premiums_written=int(df['premium'].sum()) if len(df) else 0,
    )
    if df.empty:
        return analytics

    active = df[df['active']]
    analytics.active_policies = len(active)
    analytics.total_active_coverage = int(active['coverage_amount'].sum())
    if active.empty:
        return analytics

    by_location = active.groupby('location')['coverage_amount'].sum().sort_values(ascending=False)
    by_type = active.groupby('disaster_type')['coverage_amount'].sum()

    analytics.exposure_by_location = {k: int(v) for k, v in by_location.items()}
    analytics.exposure_by_type = {k: int(v) for k, v in by_type.items()}
    analytics.max_location_exposure = int(by_location.iloc[0])

    zones = active.groupby(['location', 'disaster_type']).agg(
        policies=('policy_id', 'count'),
        coverage=('coverage_amount', 'sum'),
    ).reset_index().sort_values('coverage', ascending=False).head(top_n)
    analytics.concentration_zones = [
        {
            'location': row.location,
            'disaster_type': row.disaster_type,
            'policies': int(row.policies),
            'coverage': int(row.coverage),
        }
        for row in zones.itertuples(index=False)
    ]
    return analytics
