"""Service configuration for livetrack."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from livetrack._constants import (
    INCREMENTAL_UPDATE_SEC,
    LIVE_RETENTION_SEC,
    LOG_CAPACITY,
    REQUEST_FRESHNESS_SEC,
    SAVE_BATCH_SIZE,
    SAVE_MAX_ATTEMPTS,
)
from livetrack.exceptions import LiveTrackConfigError
from livetrack.models.fix import TRACKER_PROVIDERS, Provider


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env: Mapping[str, str], key: str, cast: type[int] | type[float]) -> int | float | None:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        return cast(raw)
    except ValueError as exc:
        raise LiveTrackConfigError(f"{key} must be a number, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class ProviderSettings:
    """Polling policy of one provider.

    Parameters
    ----------
    enabled : bool
        Whether the provider is polled at all.
    interval_sec : float
        An account is due when its last fetch is older than this.
    batch_limit : int or None
        Maximum number of accounts fetched per refresh, oldest first.
    """

    enabled: bool = True
    interval_sec: float = 120.0
    batch_limit: int | None = None


_DEFAULT_PROVIDERS: dict[Provider, ProviderSettings] = {
    Provider.INREACH: ProviderSettings(interval_sec=120.0, batch_limit=100),
    Provider.SPOT: ProviderSettings(interval_sec=180.0),
    Provider.SKYLINES: ProviderSettings(interval_sec=60.0),
    Provider.FLYME: ProviderSettings(interval_sec=60.0),
}


def _default_providers() -> dict[Provider, ProviderSettings]:
    return dict(_DEFAULT_PROVIDERS)


@dataclasses.dataclass(frozen=True)
class LiveTrackConfig:
    """Service configuration.

    Parameters
    ----------
    retention_sec : int
        Maximum age of a fix kept in canonical tracks.
    incremental_sec : int
        Age threshold of the incremental snapshot.
    batch_size : int
        Number of entities written per transaction.
    max_attempts : int
        Transaction attempts per batch before it is reported as failed.
    request_freshness_sec : float
        A refresh only runs when a client requested data this recently.
    http_timeout : float
        Total timeout of one provider HTTP request, in seconds.
    fetch_concurrency : int
        Maximum concurrent account fetches per provider.
    log_capacity : int
        Length of the capped per-provider operator logs.
    providers : dict of Provider to ProviderSettings
        Polling policy per provider.
    """

    retention_sec: int = LIVE_RETENTION_SEC
    incremental_sec: int = INCREMENTAL_UPDATE_SEC
    batch_size: int = SAVE_BATCH_SIZE
    max_attempts: int = SAVE_MAX_ATTEMPTS
    request_freshness_sec: float = REQUEST_FRESHNESS_SEC
    http_timeout: float = 30.0
    fetch_concurrency: int = 8
    log_capacity: int = LOG_CAPACITY
    providers: dict[Provider, ProviderSettings] = dataclasses.field(default_factory=_default_providers)

    def __post_init__(self) -> None:
        if self.retention_sec <= 0 or self.incremental_sec <= 0:
            raise LiveTrackConfigError("retention_sec and incremental_sec must be positive")
        if self.incremental_sec > self.retention_sec:
            raise LiveTrackConfigError("incremental_sec cannot exceed retention_sec")
        if self.batch_size <= 0:
            raise LiveTrackConfigError("batch_size must be positive")
        if self.max_attempts <= 0:
            raise LiveTrackConfigError("max_attempts must be positive")
        if self.fetch_concurrency <= 0:
            raise LiveTrackConfigError("fetch_concurrency must be positive")

    def provider(self, provider: Provider) -> ProviderSettings:
        return self.providers.get(provider, ProviderSettings(enabled=False))

    @classmethod
    def from_env(cls, **overrides: Any) -> LiveTrackConfig:
        """Create configuration from environment variables.

        Reads ``LIVETRACK_*`` variables; per-provider settings use
        ``LIVETRACK_<PROVIDER>_ENABLED``, ``LIVETRACK_<PROVIDER>_INTERVAL_SEC``
        and ``LIVETRACK_<PROVIDER>_BATCH_LIMIT``. Explicit keyword arguments
        override environment values.

        Returns
        -------
        LiveTrackConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "LIVETRACK_RETENTION_SEC": ("retention_sec", int),
            "LIVETRACK_INCREMENTAL_SEC": ("incremental_sec", int),
            "LIVETRACK_BATCH_SIZE": ("batch_size", int),
            "LIVETRACK_MAX_ATTEMPTS": ("max_attempts", int),
            "LIVETRACK_REQUEST_FRESHNESS_SEC": ("request_freshness_sec", float),
            "LIVETRACK_HTTP_TIMEOUT": ("http_timeout", float),
            "LIVETRACK_FETCH_CONCURRENCY": ("fetch_concurrency", int),
            "LIVETRACK_LOG_CAPACITY": ("log_capacity", int),
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, (field_name, cast) in _ENV_CONFIG_MAP.items():
            if field_name in overrides:
                continue
            value = _env_number(env, env_key, cast)
            if value is not None:
                config_kwargs[field_name] = value

        if "providers" not in overrides:
            providers: dict[Provider, ProviderSettings] = {}
            for provider in TRACKER_PROVIDERS:
                prefix = f"LIVETRACK_{provider.name}_"
                base = _DEFAULT_PROVIDERS.get(provider, ProviderSettings())
                interval = _env_number(env, prefix + "INTERVAL_SEC", float)
                limit = _env_number(env, prefix + "BATCH_LIMIT", int)
                providers[provider] = dataclasses.replace(
                    base,
                    enabled=_env_bool(env.get(prefix + "ENABLED"), base.enabled),
                    interval_sec=float(interval) if interval is not None else base.interval_sec,
                    batch_limit=int(limit) if limit is not None else base.batch_limit,
                )
            config_kwargs["providers"] = providers

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
