"""
Shared pytest fixtures for the grain marketing test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema and migrations applied. Created anew for each test that requests it.
  - ``app_config``: Default ``AppConfig`` (no TOML, no env).
  - Factories for market contexts, marketing positions and evaluation
    inputs, so signal tests only spell out the numbers they care about.
  - ``seeded_business``: One business with an entity, a corn farm, a
    production estimate and a front-month quote, for engine/stage tests.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timezone
from typing import Any, Callable, Generator

import pytest

from grain_marketing.config import AppConfig, SignalConfig
from grain_marketing.db.migrations import run_migrations
from grain_marketing.db.schema import apply_schema
from grain_marketing.models.costs import FarmRecord, OtherCost, ProductionEstimate
from grain_marketing.models.market import (
    BasisObservation,
    FuturesQuote,
    MarketContext,
    TrendAnalysis,
)
from grain_marketing.models.position import MarketingPosition
from grain_marketing.models.preferences import MarketingPreferences
from grain_marketing.signals.crop_year import CropYearInfo
from grain_marketing.signals.evaluation import EvaluationInput
from grain_marketing.taxonomy.marketing_taxonomy import Commodity, OtherCostType, TrendDirection

NOW = datetime(2025, 6, 2, 12, 0, 0, tzinfo=timezone.utc)
AS_OF = date(2025, 6, 2)


def corn_basis_history() -> list[BasisObservation]:
    """Flat basis on ``AS_OF``; two of the four past-year readings are weaker (50th pct)."""
    readings = [
        (date(2025, 3, 3), -0.10),
        (date(2025, 4, 1), -0.05),
        (date(2025, 5, 1), 0.05),
        (AS_OF, 0.0),
    ]
    return [
        BasisObservation(commodity=Commodity.CORN, observed_on=day, basis=basis)
        for day, basis in readings
    ]


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied.

    Foreign key enforcement is ON. Connection is closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    run_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig()


# ── Domain object factories ───────────────────────────────────────────────────

@pytest.fixture
def make_market() -> Callable[..., MarketContext]:
    """Build a ``MarketContext``; defaults are a quiet DEC25 corn market at $5.00."""

    def _make(**overrides: Any) -> MarketContext:
        trend_kwargs = {
            "direction": overrides.pop("trend", TrendDirection.NEUTRAL),
            "rsi": overrides.pop("rsi", 50.0),
            "volatility": overrides.pop("volatility", 0.02),
        }
        fields: dict[str, Any] = {
            "commodity": Commodity.CORN,
            "as_of": AS_OF,
            "futures_price": 5.00,
            "contract_month": "DEC",
            "contract_year": 2025,
            "basis": 0.0,
            "has_basis": True,
            "trend": TrendAnalysis(**trend_kwargs),
        }
        fields.update(overrides)
        return MarketContext(**fields)

    return _make


@pytest.fixture
def make_position() -> Callable[..., MarketingPosition]:
    """100,000 bu projected, 20 % sold, pre-harvest, 50 % target."""

    def _make(**overrides: Any) -> MarketingPosition:
        fields: dict[str, Any] = {
            "commodity": Commodity.CORN,
            "year": 2025,
            "total_projected": 100_000.0,
            "total_sold": 20_000.0,
            "remaining_bushels": 80_000.0,
            "percent_sold": 0.20,
            "target_fraction": 0.50,
            "bushels_to_target": 30_000.0,
            "harvest_complete": False,
        }
        fields.update(overrides)
        return MarketingPosition(**fields)

    return _make


@pytest.fixture
def make_input(make_market, make_position) -> Callable[..., EvaluationInput]:
    """Build an ``EvaluationInput`` for new-crop corn, break-even $5.00.

    ``market`` may be a ``MarketContext`` or a dict of ``make_market`` overrides.
    """

    def _make(**overrides: Any) -> EvaluationInput:
        market = overrides.pop("market", {})
        if isinstance(market, dict):
            market = make_market(**market)
        prefs = overrides.pop("preferences", None) or MarketingPreferences(business_id=1)
        fields: dict[str, Any] = {
            "business_id": 1,
            "commodity": market.commodity,
            "market": market,
            "crop": CropYearInfo(crop_year=2025, is_new_crop=True),
            "preferences": prefs,
            "config": SignalConfig(),
            "now": NOW,
            "break_even": 5.00,
            "position": make_position(),
        }
        fields.update(overrides)
        return EvaluationInput(**fields)

    return _make


@pytest.fixture
def sample_farm() -> FarmRecord:
    """500 acres of corn at 180 bu/acre costing $900/acre ($450,000 total)."""
    return FarmRecord(
        farm_id=1,
        name="Home Quarter",
        primary_entity_id=1,
        commodity=Commodity.CORN,
        year=2025,
        acres=500.0,
        projected_yield=180.0,
        other_costs=[
            OtherCost(description="Cash rent", cost_type=OtherCostType.LAND_RENT, amount=300.0),
            OtherCost(description="Inputs", cost_type=OtherCostType.OTHER, amount=600.0),
        ],
    )


@pytest.fixture
def seeded_business(in_memory_db, sample_farm) -> dict[str, int]:
    """Business 1 / entity 1 with the sample farm, an estimate and a DEC25 quote.

    Break-even is $5.00/bu; the quote on ``AS_OF`` is $5.75 with a flat basis
    sitting at the 50th percentile of its past year.
    """
    from grain_marketing.db.repositories.cost_repo import CostRepository
    from grain_marketing.db.repositories.market_repo import MarketRepository

    costs = CostRepository(in_memory_db)
    business_id = costs.insert_business("Prairie Farms")
    entity_id = costs.insert_entity(business_id, "Prairie Farms LLC")
    costs.save_farm(business_id, sample_farm.model_copy(update={"primary_entity_id": entity_id}))
    costs.upsert_production_estimate(
        ProductionEstimate(
            entity_id=entity_id,
            commodity=Commodity.CORN,
            year=2025,
            acres=500.0,
            bushels_per_acre=180.0,
        )
    )
    market = MarketRepository(in_memory_db)
    market.upsert_quote(
        FuturesQuote(
            commodity=Commodity.CORN,
            quote_date=AS_OF,
            contract_month="DEC",
            contract_year=2025,
            price=5.75,
        )
    )
    for obs in corn_basis_history():
        market.upsert_basis(obs)
    in_memory_db.commit()
    return {"business_id": business_id, "entity_id": entity_id}
