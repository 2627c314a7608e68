"""Client configuration for fleetsync."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from fleetsync._constants import BASE_URL, DEFAULT_MAX_DISTANCE_KM, DEFAULT_MIN_BATTERY
from fleetsync.exceptions import FleetSyncConfigError


def _env_float(env: Mapping[str, str], key: str) -> float | None:
    value = env.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise FleetSyncConfigError(f"{key} must be a number, got {value!r}") from exc


def _env_int(env: Mapping[str, str], key: str) -> int | None:
    value = env.get(key)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise FleetSyncConfigError(f"{key} must be an integer, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters for the sync queue.

    Parameters
    ----------
    max_attempts : int
        Remote attempts per queued item before it is dead-lettered.
    base_delay : float
        Delay in seconds after the first failure.
    max_delay : float
        Upper bound for a single delay in seconds.
    jitter : float
        Relative jitter applied to each delay (``0.2`` = ±20%).
    """

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0
    jitter: float = 0.2

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise FleetSyncConfigError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise FleetSyncConfigError("backoff delays must be non-negative")
        if not 0 <= self.jitter < 1:
            raise FleetSyncConfigError("jitter must be in [0, 1)")


@dataclasses.dataclass(frozen=True)
class ScoringWeights:
    """Tunable weights of the vehicle fitness score.

    The four weights are relative; they are normalized by their sum.
    """

    distance: float = 0.35
    battery: float = 0.35
    maintenance: float = 0.15
    utilization: float = 0.15
    battery_floor: float = 20.0
    maintenance_horizon_days: float = 90.0

    def __post_init__(self) -> None:
        weights = (self.distance, self.battery, self.maintenance, self.utilization)
        if any(w < 0 for w in weights) or sum(weights) <= 0:
            raise FleetSyncConfigError("scoring weights must be non-negative and not all zero")
        if not 0 <= self.battery_floor < 100:
            raise FleetSyncConfigError("battery_floor must be in [0, 100)")
        if self.maintenance_horizon_days <= 0:
            raise FleetSyncConfigError("maintenance_horizon_days must be positive")

    @property
    def total(self) -> float:
        return self.distance + self.battery + self.maintenance + self.utilization


@dataclasses.dataclass(frozen=True)
class FleetSyncConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        Base URL of the remote authority (no trailing slash).
    api_token : str or None
        Bearer token supplied by the external auth collaborator.
    request_timeout : float
        Seconds allowed for a single remote attempt. A timeout is
        handled exactly like a network failure.
    store_path : Path or None
        File backing the durable sync store. ``None`` keeps state in
        memory only (tests, throwaway sessions).
    retry : RetryPolicy
        Backoff and dead-letter ceiling for queued mutations.
    replay_concurrency : int
        Maximum number of entities replayed in parallel.
    replay_interval : float
        Seconds between scheduled replay passes.
    min_battery : float
        Default minimum battery percentage for candidate vehicles.
    max_distance_km : float
        Default search radius for candidate vehicles.
    default_booking_duration_minutes : int
        Interval length assumed for bookings without a duration when
        checking for conflicts.
    scoring : ScoringWeights
        Vehicle fitness weights.
    """

    base_url: str = BASE_URL
    api_token: str | None = None
    request_timeout: float = 10.0
    store_path: Path | None = None
    retry: RetryPolicy = dataclasses.field(default_factory=RetryPolicy)
    replay_concurrency: int = 4
    replay_interval: float = 30.0
    min_battery: float = DEFAULT_MIN_BATTERY
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM
    default_booking_duration_minutes: int = 60
    scoring: ScoringWeights = dataclasses.field(default_factory=ScoringWeights)

    def __post_init__(self) -> None:
        if self.request_timeout <= 0:
            raise FleetSyncConfigError("request_timeout must be positive")
        if self.replay_concurrency < 1:
            raise FleetSyncConfigError("replay_concurrency must be >= 1")
        if self.replay_interval <= 0:
            raise FleetSyncConfigError("replay_interval must be positive")
        if self.default_booking_duration_minutes <= 0:
            raise FleetSyncConfigError("default_booking_duration_minutes must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> FleetSyncConfig:
        """Create configuration from environment variables.

        Reads ``FLEETSYNC_BASE_URL``, ``FLEETSYNC_API_TOKEN``,
        ``FLEETSYNC_STORE_PATH`` and the numeric ``FLEETSYNC_*`` tunables.
        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        FleetSyncConfig
            Populated configuration.
        """
        env = os.environ

        retry_kwargs: dict[str, Any] = {}
        _ENV_RETRY_MAP = {
            "FLEETSYNC_MAX_ATTEMPTS": ("max_attempts", _env_int),
            "FLEETSYNC_BACKOFF_BASE": ("base_delay", _env_float),
            "FLEETSYNC_BACKOFF_CAP": ("max_delay", _env_float),
            "FLEETSYNC_BACKOFF_JITTER": ("jitter", _env_float),
        }
        for env_key, (field_name, parse) in _ENV_RETRY_MAP.items():
            val = parse(env, env_key)
            if val is not None:
                retry_kwargs[field_name] = val

        # Allow overriding retry fields via a nested dict
        retry_overrides = overrides.pop("retry", None)
        if isinstance(retry_overrides, dict):
            retry_kwargs.update(retry_overrides)
        elif isinstance(retry_overrides, RetryPolicy):
            retry_kwargs = dataclasses.asdict(retry_overrides)

        config_kwargs: dict[str, Any] = {"retry": RetryPolicy(**retry_kwargs)}

        _ENV_CONFIG_MAP = {
            "FLEETSYNC_BASE_URL": "base_url",
            "FLEETSYNC_API_TOKEN": "api_token",
        }
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        store_env = env.get("FLEETSYNC_STORE_PATH")
        if store_env:
            config_kwargs["store_path"] = Path(store_env)

        _ENV_NUMERIC_MAP = {
            "FLEETSYNC_REQUEST_TIMEOUT": ("request_timeout", _env_float),
            "FLEETSYNC_REPLAY_CONCURRENCY": ("replay_concurrency", _env_int),
            "FLEETSYNC_REPLAY_INTERVAL": ("replay_interval", _env_float),
            "FLEETSYNC_MIN_BATTERY": ("min_battery", _env_float),
            "FLEETSYNC_MAX_DISTANCE_KM": ("max_distance_km", _env_float),
            "FLEETSYNC_BOOKING_DURATION_MINUTES": ("default_booking_duration_minutes", _env_int),
        }
        for env_key, (field_name, parse) in _ENV_NUMERIC_MAP.items():
            if field_name in overrides:
                continue
            val = parse(env, env_key)
            if val is not None:
                config_kwargs[field_name] = val

        scoring_overrides = overrides.pop("scoring", None)
        if isinstance(scoring_overrides, dict):
            config_kwargs["scoring"] = ScoringWeights(**scoring_overrides)
        elif isinstance(scoring_overrides, ScoringWeights):
            config_kwargs["scoring"] = scoring_overrides

        if "store_path" in overrides and overrides["store_path"] is not None:
            overrides["store_path"] = Path(overrides["store_path"])

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
