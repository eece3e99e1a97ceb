"""
Monitoring Configuration

Engine timings and provider mode. Values come from the environment (a local
.env file is loaded first when present) and fall back to the defaults below.

Environment variables:
- PREROUTE_MODE: "live" (provider latency + background traffic ticks),
  "demo" or "test" (no artificial latency)
- PREROUTE_POLL_INTERVAL_SECONDS
- PREROUTE_MAX_POLLS_PER_JOB
- PREROUTE_ALERT_COOLDOWN_MINUTES
- PREROUTE_QUIET_HOURS_GRANULARITY_MINUTES
- PREROUTE_SIMULATOR_TICK_SECONDS
- PREROUTE_TRIP_SCAN_INTERVAL_SECONDS
- PREROUTE_ALERT_RECHECK_INTERVAL_SECONDS
- PREROUTE_RANDOM_SEED
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent

MODE_LIVE = "live"
MODE_DEMO = "demo"
MODE_TEST = "test"
MODES = {MODE_LIVE, MODE_DEMO, MODE_TEST}


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class MonitoringConfig:
    """Timing knobs for the monitoring engine."""
    poll_interval_seconds: float = 120.0  # 2 minutes between polls
    max_polls_per_job: int = 15  # ~30 minutes of coverage
    alert_cooldown_minutes: float = 15.0
    quiet_hours_granularity_minutes: int = 1
    simulator_tick_seconds: float = 30.0
    trip_scan_interval_seconds: float = 60.0
    alert_recheck_interval_seconds: float = 300.0
    monitoring_lead_minutes: int = 30  # start watching this long before the window opens
    recent_alerts_limit: int = 10
    mode: str = MODE_LIVE
    random_seed: Optional[int] = None

    def __post_init__(self):
        if self.mode not in MODES:
            raise ValueError(f"mode must be one of {sorted(MODES)}, got {self.mode!r}")
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be > 0")
        if self.max_polls_per_job < 1:
            raise ValueError("max_polls_per_job must be >= 1")
        if self.alert_cooldown_minutes < 0:
            raise ValueError("alert_cooldown_minutes must be >= 0")
        if self.quiet_hours_granularity_minutes < 1:
            raise ValueError("quiet_hours_granularity_minutes must be >= 1")
        if self.simulator_tick_seconds <= 0:
            raise ValueError("simulator_tick_seconds must be > 0")
        if self.trip_scan_interval_seconds <= 0 or self.alert_recheck_interval_seconds <= 0:
            raise ValueError("orchestrator intervals must be > 0")
        if self.recent_alerts_limit < 1:
            raise ValueError("recent_alerts_limit must be >= 1")

    @property
    def simulate_latency(self) -> bool:
        """Only live mode adds artificial provider latency."""
        return self.mode == MODE_LIVE

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "MonitoringConfig":
        """
        Build configuration from environment variables.

        Args:
            env_file: Optional .env path (default: backend/.env)

        Raises:
            ValueError: If a variable is set but malformed
        """
        load_dotenv(env_file or ROOT_DIR / ".env")
        defaults = cls()
        return cls(
            poll_interval_seconds=_env_float(
                "PREROUTE_POLL_INTERVAL_SECONDS", defaults.poll_interval_seconds
            ),
            max_polls_per_job=_env_int(
                "PREROUTE_MAX_POLLS_PER_JOB", defaults.max_polls_per_job
            ),
            alert_cooldown_minutes=_env_float(
                "PREROUTE_ALERT_COOLDOWN_MINUTES", defaults.alert_cooldown_minutes
            ),
            quiet_hours_granularity_minutes=_env_int(
                "PREROUTE_QUIET_HOURS_GRANULARITY_MINUTES",
                defaults.quiet_hours_granularity_minutes,
            ),
            simulator_tick_seconds=_env_float(
                "PREROUTE_SIMULATOR_TICK_SECONDS", defaults.simulator_tick_seconds
            ),
            trip_scan_interval_seconds=_env_float(
                "PREROUTE_TRIP_SCAN_INTERVAL_SECONDS", defaults.trip_scan_interval_seconds
            ),
            alert_recheck_interval_seconds=_env_float(
                "PREROUTE_ALERT_RECHECK_INTERVAL_SECONDS",
                defaults.alert_recheck_interval_seconds,
            ),
            mode=os.environ.get("PREROUTE_MODE", defaults.mode).lower(),
            random_seed=_env_int("PREROUTE_RANDOM_SEED", defaults.random_seed),
        )
