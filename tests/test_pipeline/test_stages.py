"""
Tests for the pipeline stages against a file-backed SQLite database.

What we test
------------
PipelineStage.run():
  - Successful runs are recorded with status 'success' and rows processed.
  - A failing _execute() is recorded as 'failed' and re-raised.

GenerateSignalsStage:
  - Seeded business → three signals; unknown business_id → failed run.
ExpireSignalsStage:
  - Signals past their expiry are swept; fresh ones are left ACTIVE.
ProcessAccumulatorsStage:
  - A trading day with a settlement processes the contract.
  - Weekends are a no-op.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from grain_marketing.config import AppConfig, DatabaseConfig
from grain_marketing.db.connection import get_connection, init_database
from grain_marketing.db.repositories.accumulator_repo import AccumulatorRepository
from grain_marketing.db.repositories.cost_repo import CostRepository
from grain_marketing.db.repositories.market_repo import MarketRepository
from grain_marketing.db.repositories.run_repo import RunMetadataRepository
from grain_marketing.db.repositories.signal_repo import SignalRepository
from grain_marketing.models.accumulator import AccumulatorContract
from grain_marketing.models.costs import FarmRecord, OtherCost, ProductionEstimate
from grain_marketing.models.market import BasisObservation, FuturesQuote
from grain_marketing.models.meta import RunMetadata
from grain_marketing.pipeline.base import PipelineStage
from grain_marketing.pipeline.expire_signals import ExpireSignalsStage
from grain_marketing.pipeline.generate_signals import GenerateSignalsStage
from grain_marketing.pipeline.process_accumulators import ProcessAccumulatorsStage
from grain_marketing.taxonomy.marketing_taxonomy import Commodity, SignalStatus

AS_OF = date(2025, 6, 2)  # Monday
NOW = datetime(2025, 6, 2, 12, 0, 0, tzinfo=timezone.utc)

# Flat basis on AS_OF at the 50th percentile of the past year
BASIS_READINGS = [
    (date(2025, 3, 3), -0.10),
    (date(2025, 4, 1), -0.05),
    (date(2025, 5, 1), 0.05),
    (AS_OF, 0.0),
]


@pytest.fixture
def config(tmp_path) -> AppConfig:
    config = AppConfig(database=DatabaseConfig(db_path=str(tmp_path / "db" / "test.db")))
    init_database(config.database)
    return config


@pytest.fixture
def business_id(config) -> int:
    """Corn business at $5.00 break-even with a $5.75 DEC25 quote on AS_OF."""
    with get_connection(config.database.db_path) as conn:
        costs = CostRepository(conn)
        bid = costs.insert_business("Prairie Farms")
        entity_id = costs.insert_entity(bid, "Prairie Farms LLC")
        costs.save_farm(
            bid,
            FarmRecord(
                farm_id=1, name="Home Quarter", primary_entity_id=entity_id,
                commodity=Commodity.CORN, year=2025, acres=500.0, projected_yield=180.0,
                other_costs=[OtherCost(amount=900.0)],
            ),
        )
        costs.upsert_production_estimate(
            ProductionEstimate(entity_id=entity_id, commodity=Commodity.CORN, year=2025,
                               acres=500.0, bushels_per_acre=180.0)
        )
        market = MarketRepository(conn)
        market.upsert_quote(
            FuturesQuote(commodity=Commodity.CORN, quote_date=AS_OF, contract_month="DEC",
                         contract_year=2025, price=5.75)
        )
        for day, basis in BASIS_READINGS:
            market.upsert_basis(
                BasisObservation(commodity=Commodity.CORN, observed_on=day, basis=basis)
            )
    return bid


def _stored_run(config, run: RunMetadata) -> RunMetadata:
    with get_connection(config.database.db_path) as conn:
        return RunMetadataRepository(conn).get_run_by_slug(run.run_slug)


class _Broken(PipelineStage):
    stage_name = "expire_signals"

    def _execute(self, run, **kwargs):
        raise RuntimeError("disk on fire")


class TestPipelineStage:
    def test_failure_recorded_and_raised(self, config):
        stage = _Broken(config)
        with pytest.raises(RuntimeError, match="disk on fire"):
            stage.run()

        with get_connection(config.database.db_path) as conn:
            [run] = RunMetadataRepository(conn).get_recent_runs("expire_signals")
        assert run.status == "failed"
        assert run.error_message == "disk on fire"
        assert run.finished_at is not None

    def test_db_path_override(self, config, tmp_path):
        stage = ExpireSignalsStage(config, db_path=str(tmp_path / "other.db"))
        assert stage.db_path.endswith("other.db")


class TestGenerateSignalsStage:
    def test_generates_for_all_businesses(self, config, business_id):
        run = GenerateSignalsStage(config).run(as_of=AS_OF, now=NOW)

        assert run.status == "success"
        assert run.rows_processed == 3
        stored = _stored_run(config, run)
        assert stored.status == "success"
        assert stored.config_snapshot["signals"]["dedup_window_hours"] == 24
        with get_connection(config.database.db_path) as conn:
            assert len(SignalRepository(conn).list_active(business_id)) == 3

    def test_unknown_business(self, config, business_id):
        with pytest.raises(ValueError, match="Unknown business_id"):
            GenerateSignalsStage(config).run(business_id=999, as_of=AS_OF, now=NOW)


class TestExpireSignalsStage:
    def test_sweeps_lapsed(self, config, business_id):
        GenerateSignalsStage(config).run(as_of=AS_OF, now=NOW)

        # basis expires after 5 days; cash sale and inquiry after 7
        run = ExpireSignalsStage(config).run(now=NOW + timedelta(days=6))

        assert run.rows_processed == 1
        with get_connection(config.database.db_path) as conn:
            statuses = sorted(s.status for s in SignalRepository(conn).list_signals(business_id))
        assert statuses.count(SignalStatus.EXPIRED) == 1
        assert statuses.count(SignalStatus.ACTIVE) == 2


class TestProcessAccumulatorsStage:
    def _add_contract(self, config, business_id) -> int:
        with get_connection(config.database.db_path) as conn:
            return AccumulatorRepository(conn).insert_contract(
                AccumulatorContract(
                    business_id=business_id, commodity=Commodity.CORN,
                    start_date=date(2025, 5, 1), end_date=date(2025, 8, 29),
                    total_bushels=50_000.0, base_price=6.00, knockout_price=4.50,
                    double_up_price=5.50, daily_bushels=1_000.0,
                )
            )

    def test_trading_day(self, config, business_id):
        contract_id = self._add_contract(config, business_id)

        run = ProcessAccumulatorsStage(config).run(day=AS_OF)

        assert run.rows_processed == 1
        assert run.error_message is None
        with get_connection(config.database.db_path) as conn:
            state = AccumulatorRepository(conn).get_state(contract_id)
        assert state.total_bushels_marketed == pytest.approx(1_000)
        assert state.last_processed_date == AS_OF

    def test_weekend_noop(self, config, business_id):
        contract_id = self._add_contract(config, business_id)

        run = ProcessAccumulatorsStage(config).run(day=date(2025, 6, 7))

        assert run.rows_processed == 0
        with get_connection(config.database.db_path) as conn:
            assert AccumulatorRepository(conn).get_state(contract_id).last_processed_date is None
