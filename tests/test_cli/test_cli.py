"""
Tests for the typer CLI, driven through ``typer.testing.CliRunner``.

Every invocation passes ``--config`` pointing at a TOML file under
``tmp_path`` so the database and log file never touch the working tree.
"""

from __future__ import annotations

import logging
from datetime import date

import pytest
from typer.testing import CliRunner

from grain_marketing.cli import app
from grain_marketing.db.connection import get_connection
from grain_marketing.db.repositories.cost_repo import CostRepository
from grain_marketing.db.repositories.market_repo import MarketRepository
from grain_marketing.models.costs import FarmRecord, OtherCost, ProductionEstimate
from grain_marketing.models.market import BasisObservation, FuturesQuote
from grain_marketing.taxonomy.marketing_taxonomy import Commodity

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def paths(tmp_path) -> dict[str, str]:
    db_path = tmp_path / "db" / "cli.db"
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        f'[database]\ndb_path = "{db_path.as_posix()}"\n\n'
        f'[logging]\nlevel = "WARNING"\nlog_file = "{(tmp_path / "cli.log").as_posix()}"\n',
        encoding="utf-8",
    )
    return {"db": str(db_path), "config": str(config_path)}


def _invoke(paths, *args):
    return runner.invoke(app, [*args, "--config", paths["config"]])


@pytest.fixture
def seeded(paths) -> dict[str, str]:
    assert _invoke(paths, "init-db").exit_code == 0
    with get_connection(paths["db"]) as conn:
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
            FuturesQuote(commodity=Commodity.CORN, quote_date=date(2025, 6, 2),
                         contract_month="DEC", contract_year=2025, price=5.75)
        )
        # flat basis at the 50th percentile of the past year
        for day, basis in [(date(2025, 3, 3), -0.10), (date(2025, 4, 1), -0.05),
                           (date(2025, 5, 1), 0.05), (date(2025, 6, 2), 0.0)]:
            market.upsert_basis(
                BasisObservation(commodity=Commodity.CORN, observed_on=day, basis=basis)
            )
    return paths


class TestConfigCommands:
    def test_validate_config(self, paths):
        result = _invoke(paths, "validate-config", "--full")
        assert result.exit_code == 0
        assert "Configuration validated successfully." in result.output
        assert "corn, soybeans, wheat" in result.output
        assert '"dedup_window_hours": 24' in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["validate-config", "--config", str(tmp_path / "nope.toml")])
        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_init_db(self, paths):
        result = _invoke(paths, "init-db")
        assert result.exit_code == 0
        assert "Tables: 26" in result.output
        assert "[OK] Database ready." in result.output


class TestSignalCommands:
    def test_generate_and_list(self, seeded):
        result = _invoke(seeded, "generate-signals", "--as-of", "2025-06-02")
        assert result.exit_code == 0, result.output
        assert "rows=3" in result.output

        listing = _invoke(seeded, "list-signals", "--business", "1")
        assert listing.exit_code == 0
        assert "cash_sale" in listing.output
        assert "accumulator_inquiry" in listing.output

    def test_bad_date(self, seeded):
        result = _invoke(seeded, "generate-signals", "--as-of", "06/02/2025")
        assert result.exit_code == 1
        assert "--as-of must be YYYY-MM-DD" in result.output

    def test_unknown_business(self, seeded):
        result = _invoke(seeded, "generate-signals", "--business", "42", "--as-of", "2025-06-02")
        assert result.exit_code == 1
        assert "Unknown business_id 42" in result.output

    def test_list_bad_status(self, seeded):
        result = _invoke(seeded, "list-signals", "--status", "pending")
        assert result.exit_code == 1

    def test_list_empty(self, seeded):
        result = _invoke(seeded, "list-signals", "--status", "all")
        assert result.exit_code == 0
        assert "No signals found." in result.output

    def test_dismiss_then_act_fails(self, seeded):
        _invoke(seeded, "generate-signals", "--as-of", "2025-06-02")

        dismissed = _invoke(seeded, "dismiss-signal", "1", "--reason", "already sold")
        assert dismissed.exit_code == 0
        assert "Signal 1 dismissed" in dismissed.output

        acted = _invoke(seeded, "act-on-signal", "1", "--action", "sold 5000 bu")
        assert acted.exit_code == 1
        assert "only ACTIVE" in acted.output

    def test_dismiss_unknown(self, seeded):
        result = _invoke(seeded, "dismiss-signal", "999")
        assert result.exit_code == 1

    def test_expire(self, seeded):
        result = _invoke(seeded, "expire-signals")
        assert result.exit_code == 0
        assert "[OK] Signal expiration complete." in result.output


class TestReportingCommands:
    def test_break_even(self, seeded):
        result = _invoke(seeded, "break-even", "--business", "1", "--year", "2025", "--by-entity")
        assert result.exit_code == 0
        assert "corn" in result.output
        assert "5.00" in result.output
        assert "By entity:" in result.output

    def test_break_even_no_farms(self, seeded):
        result = _invoke(seeded, "break-even", "--business", "1", "--year", "2019")
        assert result.exit_code == 0
        assert "No farms on record" in result.output

    def test_break_even_unknown_business(self, seeded):
        result = _invoke(seeded, "break-even", "--business", "9", "--year", "2025")
        assert result.exit_code == 1

    def test_learn_thresholds_without_sales(self, seeded):
        result = _invoke(seeded, "learn-thresholds", "--business", "1")
        assert result.exit_code == 0
        assert "sales=0" in result.output
        assert "Not enough sales" in result.output

    def test_process_accumulators_weekend(self, seeded):
        result = _invoke(seeded, "process-accumulators", "--date", "2025-06-07")
        assert result.exit_code == 0
        assert "rows=0" in result.output
