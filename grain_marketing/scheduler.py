"""Scheduler daemon for automated signal and accumulator runs.

No external scheduler library is required: uses stdlib ``time``,
``signal``, and ``subprocess`` only.

Typical usage via the CLI::

    grain-marketing start-scheduler --interval 30 --accumulator-time 17:30

Or import directly::

    from grain_marketing.scheduler import SchedulerDaemon
    daemon = SchedulerDaemon(db_path="data/db/grain_marketing.db")
    daemon.start()  # blocks until Ctrl-C

Jobs executed:
  - **Signals**    : ``generate-signals`` then ``expire-signals``,
                      every *interval_minutes*.
  - **Accumulators**: ``process-accumulators`` once per day at
                      *accumulator_time* (local HH:MM clock), after the
                      day's settlements are in.

Each job is invoked as a subprocess (the installed CLI), so each run has
its own process, logging, and exit code. A failure in one run is logged
but does not stop the daemon.
"""

from __future__ import annotations

import logging
import platform
import signal
import subprocess
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

CMD_TIMEOUT_SECONDS = 3600
TICK_SECONDS = 30


# ── Helpers ───────────────────────────────────────────────────────────────────


def _find_cli_exe() -> str:
    """Locate the grain-marketing CLI executable inside the active virtual env.

    Adds ``.exe`` suffix on Windows. Raises ``RuntimeError`` if not found.
    """
    scripts_dir = Path(sys.executable).parent
    candidates = (
        ["grain-marketing.exe", "grain-marketing"]
        if platform.system() == "Windows"
        else ["grain-marketing"]
    )
    for name in candidates:
        candidate = scripts_dir / name
        if candidate.exists():
            return str(candidate)
    raise RuntimeError(
        f"Could not find grain-marketing executable in {scripts_dir}. "
        "Run: pip install -e ."
    )


def _next_daily_run(daily_time: str, now: Optional[datetime] = None) -> datetime:
    """Return the next local datetime matching *daily_time* (``HH:MM``)."""
    hour, minute = (int(p) for p in daily_time.split(":"))
    now = now or datetime.now()
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


# ── Daemon ────────────────────────────────────────────────────────────────────


class SchedulerDaemon:
    """Runs the signal jobs on an interval and the accumulator sweep daily.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file, forwarded to every sub-command.
    interval_minutes:
        Minutes between signal runs. Defaults to 60.
    accumulator_time:
        Local 24-hour ``HH:MM`` time to fire ``process-accumulators``.
    skip_initial_signals:
        When *True*, wait one interval before the first signal run instead
        of running immediately on start.
    config_path:
        TOML config forwarded to sub-commands, if not the default.
    cli_exe:
        Full path to the CLI executable. Auto-detected from the active
        virtual environment when *None*.
    """

    def __init__(
        self,
        db_path: str,
        interval_minutes: int = 60,
        accumulator_time: str = "17:30",
        skip_initial_signals: bool = False,
        config_path: Optional[str] = None,
        cli_exe: Optional[str] = None,
    ) -> None:
        if interval_minutes < 1:
            raise ValueError(f"interval_minutes must be >= 1, got {interval_minutes}.")
        self.db_path = db_path
        self.interval = timedelta(minutes=interval_minutes)
        self.accumulator_time = accumulator_time
        self.skip_initial_signals = skip_initial_signals
        self.config_path = config_path
        self.cli_exe = cli_exe or _find_cli_exe()
        self._running = False

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _common_args(self) -> list[str]:
        args = ["--db-path", self.db_path]
        if self.config_path:
            args += ["--config", self.config_path]
        return args

    def _run_cmd(self, args: list[str], label: str) -> bool:
        """Run a CLI sub-command.  Returns ``True`` on success (exit code 0).

        Output from the sub-process goes straight to stdout/stderr.
        Timeout is 3600 s per step.
        """
        cmd = [self.cli_exe] + args
        log.info("[%s] Running: %s", label, " ".join(cmd))
        try:
            result = subprocess.run(cmd, timeout=CMD_TIMEOUT_SECONDS)
            if result.returncode == 0:
                log.info("[%s] Completed successfully (exit 0).", label)
                return True
            log.error("[%s] Exited with code %d.", label, result.returncode)
            return False
        except subprocess.TimeoutExpired:
            log.error("[%s] Timed out after %d s.", label, CMD_TIMEOUT_SECONDS)
            return False
        except Exception as exc:
            log.error("[%s] Unexpected error: %s", label, exc, exc_info=True)
            return False

    # ── Jobs ──────────────────────────────────────────────────────────────────

    def run_signals(self) -> None:
        """Generate signals for every business, then expire lapsed ones.

        Expiration runs even when generation fails.
        """
        log.info(
            "=== Signal run starting at %s ===",
            datetime.now().isoformat(timespec="seconds"),
        )
        ok = self._run_cmd(["generate-signals", *self._common_args()], "generate-signals")
        if not ok:
            log.warning("generate-signals failed; still expiring lapsed signals.")
        self._run_cmd(["expire-signals", *self._common_args()], "expire-signals")

    def run_accumulators(self) -> None:
        """Process today's settlement for every active accumulator."""
        log.info(
            "=== Accumulator sweep starting at %s ===",
            datetime.now().isoformat(timespec="seconds"),
        )
        self._run_cmd(
            ["process-accumulators", *self._common_args()],
            "process-accumulators",
        )

    # ── Main loop ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the daemon.  Blocks until Ctrl-C (or SIGTERM on Linux/macOS)."""
        next_signals: datetime = (
            datetime.now() + self.interval
            if self.skip_initial_signals
            else datetime.now()
        )
        next_accumulators: datetime = _next_daily_run(self.accumulator_time)

        log.info(
            "Scheduler started.  interval=%s  accumulator_time=%s  db=%s",
            self.interval,
            self.accumulator_time,
            self.db_path,
        )
        log.info(
            "Next signals: %s  |  Next accumulators: %s",
            next_signals.isoformat(timespec="seconds"),
            next_accumulators.isoformat(timespec="seconds"),
        )

        self._running = True

        def _shutdown(signum, frame):  # noqa: ANN001
            log.info("Signal %d received; stopping scheduler.", signum)
            self._running = False

        signal.signal(signal.SIGINT, _shutdown)
        if platform.system() != "Windows":
            signal.signal(signal.SIGTERM, _shutdown)

        while self._running:
            now = datetime.now()

            if now >= next_signals:
                self.run_signals()
                next_signals = datetime.now() + self.interval
                log.info(
                    "Next signals scheduled: %s",
                    next_signals.isoformat(timespec="seconds"),
                )

            if now >= next_accumulators:
                self.run_accumulators()
                next_accumulators = _next_daily_run(self.accumulator_time)
                log.info(
                    "Next accumulators scheduled: %s",
                    next_accumulators.isoformat(timespec="seconds"),
                )

            time.sleep(TICK_SECONDS)

        log.info("Scheduler stopped.")
