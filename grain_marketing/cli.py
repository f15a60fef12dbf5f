"""
Grain Marketing Engine: CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (DB init, pipeline stage, signal transition, etc.).
  5. Report result to stdout.

Install and run::

    pip install -e .
    grain-marketing --help
    grain-marketing init-db
    grain-marketing validate-config
    grain-marketing generate-signals --business 1
    grain-marketing expire-signals
    grain-marketing process-accumulators --date 2025-03-14
    grain-marketing list-signals --business 1 --status active
    grain-marketing dismiss-signal 42 --reason "already sold"
    grain-marketing act-on-signal 42 --action "sold 5000 bu"
    grain-marketing break-even --business 1 --year 2025
    grain-marketing learn-thresholds --business 1
    grain-marketing start-scheduler
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="grain-marketing",
    help="Grain marketing decision engine: break-evens, signals and accumulators.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from grain_marketing.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from grain_marketing.utils.logging import configure_logging
    configure_logging(config.logging)


def _parse_date_or_exit(value: Optional[str], flag: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        typer.echo(f"[ERROR] {flag} must be YYYY-MM-DD, got '{value}'.", err=True)
        raise typer.Exit(code=1)


def _open_db(config, db_path: Optional[str]):
    from grain_marketing.db.connection import get_connection

    return get_connection(
        db_path or config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    )


def _run_stage(stage, label: str, **kwargs) -> None:
    """Run a pipeline stage, echo its outcome, exit 1 on failure."""
    try:
        run = stage.run(**kwargs)
    except Exception as exc:
        typer.echo(f"[ERROR] {label} failed: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"  status={run.status} | rows={run.rows_processed} | run={run.run_slug}")
    if run.error_message:
        typer.echo(f"  warning: {run.error_message}", err=True)
    typer.echo(f"[OK] {label} complete.")


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Initialize the SQLite database and apply the full schema.

    Safe to run multiple times; all DDL uses IF NOT EXISTS.
    Also runs pending schema migrations.
    """
    from grain_marketing.db.migrations import run_migrations
    from grain_marketing.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with _open_db(config, db_path) as conn:
        apply_schema(conn)
        migrations_applied = run_migrations(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo(f"  Migrations applied: {migrations_applied}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:     {config.database.db_path}")
    typer.echo(f"  Commodities:       {', '.join(c.value for c in config.signals.commodities)}")
    typer.echo(f"  Dedup window:      {config.signals.dedup_window_hours} h")
    typer.echo(f"  Weak basis cutoff: {config.signals.weak_basis_cutoff:+.2f}")
    typer.echo(f"  Signal interval:   {config.scheduler.signal_interval_minutes} min")
    typer.echo(f"  Accumulator run:   {config.scheduler.accumulator_time}")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Debug mode:        {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(mode="json"), indent=2, default=str))

    typer.echo("")


@app.command("generate-signals")
def generate_signals(
    business: Optional[int] = typer.Option(
        None,
        "--business",
        help="Business id to evaluate. Evaluates every business if omitted.",
    ),
    as_of: Optional[str] = typer.Option(
        None,
        "--as-of",
        help="Market date to evaluate (YYYY-MM-DD, default: today UTC).",
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Score every enabled instrument and upsert the resulting signals.

    \b
    Per commodity:
      new crop  cash sale, basis, HTA, call option, accumulator inquiry,
                accumulator strategy, trade policy, breaking news
      old crop  old-crop cash sale, basis, accumulator strategy,
                trade policy, breaking news
    """
    from grain_marketing.pipeline.generate_signals import GenerateSignalsStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    as_of_date = _parse_date_or_exit(as_of, "--as-of")

    scope = f"business={business}" if business is not None else "all businesses"
    typer.echo(f"generate-signals | {scope} | as_of={as_of_date or 'today'}")
    _run_stage(
        GenerateSignalsStage(config=config, db_path=db_path),
        "Signal generation",
        business_id=business,
        as_of=as_of_date,
    )


@app.command("expire-signals")
def expire_signals(
    business: Optional[int] = typer.Option(None, "--business", help="Limit to one business."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Move ACTIVE signals past their expiration to EXPIRED."""
    from grain_marketing.pipeline.expire_signals import ExpireSignalsStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    typer.echo("expire-signals")
    _run_stage(
        ExpireSignalsStage(config=config, db_path=db_path),
        "Signal expiration",
        business_id=business,
    )


@app.command("process-accumulators")
def process_accumulators(
    day: Optional[str] = typer.Option(
        None,
        "--date",
        help="Trading day to process (YYYY-MM-DD, default: today UTC).",
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Apply one day's settlement to every active accumulator.

    Re-running a day with the same settlement leaves contract state unchanged.
    """
    from grain_marketing.pipeline.process_accumulators import ProcessAccumulatorsStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    target_day = _parse_date_or_exit(day, "--date")

    typer.echo(f"process-accumulators | date={target_day or 'today'}")
    _run_stage(
        ProcessAccumulatorsStage(config=config, db_path=db_path),
        "Accumulator processing",
        day=target_day,
    )


@app.command("list-signals")
def list_signals(
    business: Optional[int] = typer.Option(None, "--business", help="Filter by business id."),
    status: Optional[str] = typer.Option(
        "active",
        "--status",
        help="active, triggered, dismissed, expired or 'all'.",
    ),
    limit: int = typer.Option(20, "--limit", help="Maximum rows to show."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Print stored signals, newest first."""
    from grain_marketing.db.repositories.signal_repo import SignalRepository
    from grain_marketing.taxonomy.marketing_taxonomy import SignalStatus

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    status_filter: Optional[SignalStatus] = None
    if status and status.lower() != "all":
        try:
            status_filter = SignalStatus(status.lower())
        except ValueError:
            valid = ", ".join(s.value for s in SignalStatus)
            typer.echo(f"[ERROR] --status must be one of: {valid}, all.", err=True)
            raise typer.Exit(code=1)

    with _open_db(config, db_path) as conn:
        signals = SignalRepository(conn).list_signals(business, status_filter, limit)

    if not signals:
        typer.echo("No signals found.")
        return

    typer.echo(
        f"{'ID':>5}  {'BIZ':>4}  {'COMMODITY':<9}  {'TYPE':<20}  {'STRENGTH':<10}  "
        f"{'PRICE':>7}  {'BUSHELS':>9}  {'STATUS':<9}  TITLE"
    )
    for s in signals:
        bushels = f"{s.recommended_bushels:,.0f}" if s.recommended_bushels is not None else "-"
        typer.echo(
            f"{s.signal_id:>5}  {s.business_id:>4}  {s.commodity.value:<9}  "
            f"{s.signal_type.value:<20}  {s.strength.value:<10}  "
            f"{s.current_price:>7.2f}  {bushels:>9}  {s.status.value:<9}  {s.title}"
        )


@app.command("dismiss-signal")
def dismiss_signal(
    signal_id: int = typer.Argument(..., help="Signal id to dismiss."),
    reason: Optional[str] = typer.Option(None, "--reason", help="Why the signal was rejected."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Mark an ACTIVE signal as DISMISSED."""
    from grain_marketing.db.repositories.signal_repo import SignalRepository
    from grain_marketing.signals.lifecycle import SignalLifecycleManager, SignalTransitionError
    from grain_marketing.utils.time_utils import utcnow

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        with _open_db(config, db_path) as conn:
            manager = SignalLifecycleManager(
                SignalRepository(conn), config.signals.dedup_window_hours
            )
            manager.dismiss(signal_id, reason, utcnow())
    except (KeyError, SignalTransitionError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"[OK] Signal {signal_id} dismissed.")


@app.command("act-on-signal")
def act_on_signal(
    signal_id: int = typer.Argument(..., help="Signal id that was acted on."),
    action: str = typer.Option(..., "--action", help="What was done, e.g. 'sold 5000 bu'."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Record the action taken on an ACTIVE signal and mark it TRIGGERED."""
    from grain_marketing.db.repositories.signal_repo import SignalRepository
    from grain_marketing.signals.lifecycle import SignalLifecycleManager, SignalTransitionError
    from grain_marketing.utils.time_utils import utcnow

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        with _open_db(config, db_path) as conn:
            manager = SignalLifecycleManager(
                SignalRepository(conn), config.signals.dedup_window_hours
            )
            manager.record_action(signal_id, action, utcnow())
    except (KeyError, SignalTransitionError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"[OK] Signal {signal_id} marked triggered.")


@app.command("break-even")
def break_even(
    business: int = typer.Option(..., "--business", help="Business id."),
    year: int = typer.Option(..., "--year", help="Crop year."),
    by_entity: bool = typer.Option(False, "--by-entity", help="Also print per-entity rollups."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Print the operation's break-even price per commodity for a crop year."""
    from grain_marketing.costs.aggregator import CostAggregator
    from grain_marketing.db.repositories.cost_repo import CostRepository

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_db(config, db_path) as conn:
        costs = CostRepository(conn)
        if not costs.business_exists(business):
            typer.echo(f"[ERROR] Unknown business id {business}.", err=True)
            raise typer.Exit(code=1)
        farms = costs.get_farms(business, year)
        snapshot = CostAggregator(config.costs.default_yields).build(
            year,
            farms,
            loans=costs.get_loan_allocations(business, year, farms),
            estimates=costs.get_production_estimates(business, year),
        )

    if not snapshot.by_commodity:
        typer.echo(f"No farms on record for business {business} in {year}.")
        return

    typer.echo(f"Break-even | business={business} | year={year}")
    typer.echo(
        f"  {'COMMODITY':<9}  {'FARMS':>5}  {'ACRES':>9}  {'TOTAL COST':>13}  "
        f"{'BUSHELS':>11}  {'$/ACRE':>8}  {'$/BU':>6}"
    )
    for commodity, r in sorted(snapshot.by_commodity.items()):
        typer.echo(
            f"  {commodity.value:<9}  {r.farm_count:>5}  {r.acres:>9,.1f}  "
            f"{r.total_cost:>13,.2f}  {r.expected_bushels:>11,.0f}  "
            f"{r.cost_per_acre:>8.2f}  {r.break_even_price:>6.2f}"
        )

    if by_entity:
        typer.echo("")
        typer.echo("  By entity:")
        for r in snapshot.by_entity:
            typer.echo(
                f"    entity={r.entity_id}  {r.commodity.value:<9}  acres={r.acres:,.1f}  "
                f"cost={r.total_cost:,.2f}  be={r.break_even_price:.2f}"
            )


@app.command("learn-thresholds")
def learn_thresholds(
    business: int = typer.Option(..., "--business", help="Business id."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Relearn personalized cash-sale thresholds and risk score from sale history."""
    from grain_marketing.db.repositories.cost_repo import CostRepository
    from grain_marketing.signals.learning import ThresholdLearner

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_db(config, db_path) as conn:
        if not CostRepository(conn).business_exists(business):
            typer.echo(f"[ERROR] Unknown business id {business}.", err=True)
            raise typer.Exit(code=1)
        result = ThresholdLearner(conn, config).learn(business)

    typer.echo(f"learn-thresholds | business={business} | sales={result.sales_used}")
    for t in result.thresholds:
        typer.echo(
            f"  {t.commodity.value:<9}  buy={t.buy_threshold:+.3f}  "
            f"strong={t.strong_buy_threshold:+.3f}  n={t.data_points}  "
            f"confidence={t.confidence:.0f}%"
        )
    if result.risk_score is not None:
        typer.echo(
            f"  risk score={result.risk_score:.0f}  confidence={result.risk_confidence:.0f}%"
        )
    else:
        typer.echo("  Not enough sales to learn a risk score.")
    typer.echo("[OK] Learning complete.")


@app.command("start-scheduler")
def start_scheduler(
    interval: Optional[int] = typer.Option(
        None,
        "--interval",
        help="Minutes between signal runs (default: scheduler.signal_interval_minutes).",
    ),
    accumulator_time: Optional[str] = typer.Option(
        None,
        "--accumulator-time",
        help="Local HH:MM for the daily accumulator sweep.",
    ),
    skip_initial: bool = typer.Option(
        False,
        "--skip-initial",
        help="Wait one interval before the first signal run.",
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Run signal generation on an interval and accumulators once a day.

    Blocks until Ctrl-C (or SIGTERM on Linux/macOS).
    """
    from grain_marketing.scheduler import SchedulerDaemon

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        daemon = SchedulerDaemon(
            db_path=db_path or config.database.db_path,
            interval_minutes=interval or config.scheduler.signal_interval_minutes,
            accumulator_time=accumulator_time or config.scheduler.accumulator_time,
            skip_initial_signals=skip_initial,
            config_path=config_path,
        )
    except (RuntimeError, ValueError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    daemon.start()


if __name__ == "__main__":
    app()
