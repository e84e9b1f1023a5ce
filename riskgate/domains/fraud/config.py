"""Fraud prevention configuration with sensible defaults.

The configuration is immutable once built. Changing it at runtime means
building a new ``FraudConfig`` (``from_mapping``) and swapping it in through
``ConfigStore.reload``.
"""

import ipaddress
import os
from dataclasses import dataclass, field, fields, replace
from datetime import time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


@dataclass(frozen=True)
class RiskThresholds:
    """Inclusive lower bound of each risk level on the 0-1 scale."""

    low: float = 0.0
    medium: float = 0.2
    high: float = 0.5

    def __post_init__(self) -> None:
        if not 0.0 <= self.low <= self.medium <= self.high <= 1.0:
            raise ValueError(
                "risk thresholds must satisfy 0 <= low <= medium <= high <= 1, "
                f"got low={self.low} medium={self.medium} high={self.high}"
            )


@dataclass(frozen=True)
class TimeWindow:
    """Local wall-clock window; wraps midnight when start > end."""

    start: time = time(22, 0)
    end: time = time(6, 0)

    def contains(self, moment: time) -> bool:
        if self.start <= self.end:
            return self.start <= moment < self.end
        return moment >= self.start or moment < self.end


@dataclass(frozen=True)
class GatewayRateLimit:
    window_ms: int = 15 * 60 * 1000
    max: int = 100

    def __post_init__(self) -> None:
        if self.window_ms < 1000 or self.max < 1:
            raise ValueError("gateway rate limit needs window_ms >= 1000 and max >= 1")

    @property
    def window_seconds(self) -> int:
        return max(self.window_ms // 1000, 1)


@dataclass(frozen=True)
class AmountSettings:
    small_amount_threshold: float = 10.0
    round_amount_unit: float = 1_000.0
    approach_ratio: float = 0.8

    def __post_init__(self) -> None:
        if self.small_amount_threshold < 0 or self.round_amount_unit <= 0:
            raise ValueError("amount thresholds must be positive")
        _check_ratio("amount.approach_ratio", self.approach_ratio)


@dataclass(frozen=True)
class FrequencySettings:
    approach_ratio: float = 0.8
    burst_min_count: int = 4

    def __post_init__(self) -> None:
        _check_ratio("frequency.approach_ratio", self.approach_ratio)
        if self.burst_min_count < 1:
            raise ValueError("frequency.burst_min_count must be >= 1")


@dataclass(frozen=True)
class DeviceSettings:
    max_identities_per_device: int = 3
    association_ttl_seconds: int = 30 * 24 * 3600
    anonymizing_networks: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.max_identities_per_device < 1 or self.association_ttl_seconds < 1:
            raise ValueError("device limits must be >= 1")
        if isinstance(self.anonymizing_networks, str):
            raise ValueError("device.anonymizing_networks must be a list of CIDR ranges")
        for cidr in self.anonymizing_networks:
            try:
                ipaddress.ip_network(cidr, strict=False)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"invalid anonymizing network: {cidr!r}") from exc


@dataclass(frozen=True)
class BehaviorSettings:
    timezone: str = "Africa/Johannesburg"
    new_account_days: int = 7
    recent_account_days: int = 30
    kyc_required_amount: float = 5_000.0
    kyc_discount: float = 0.5

    def __post_init__(self) -> None:
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, OSError, TypeError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {self.timezone!r}") from exc
        if not 0 <= self.new_account_days <= self.recent_account_days:
            raise ValueError("behavior account ages must satisfy 0 <= new <= recent")
        if self.kyc_required_amount < 0:
            raise ValueError("behavior.kyc_required_amount must be >= 0")
        _check_ratio("behavior.kyc_discount", self.kyc_discount)


@dataclass(frozen=True)
class FraudConfig:
    daily_txn_count_limit: int = 10
    daily_amount_limit: float = 50_000.0
    single_txn_ceiling: float = 10_000.0
    risk_thresholds: RiskThresholds = field(default_factory=RiskThresholds)
    allowed_countries: tuple[str, ...] = ("ZA", "ZW", "BW", "LS", "SZ", "NA")
    high_risk_countries: tuple[str, ...] = ("KP", "IR", "MM")
    suspicious_time_window: TimeWindow = field(default_factory=TimeWindow)
    max_devices_per_identity: int = 3
    screened_paths: tuple[str, ...] = (
        "/api/transactions/create",
        "/api/payments/process",
        "/api/beneficiaries/add",
        "/api/kyc/upload",
    )
    auth_exempt_paths: tuple[str, ...] = ("/api/auth",)
    gateway_rate_limit: GatewayRateLimit = field(default_factory=GatewayRateLimit)

    amount: AmountSettings = field(default_factory=AmountSettings)
    frequency: FrequencySettings = field(default_factory=FrequencySettings)
    device: DeviceSettings = field(default_factory=DeviceSettings)
    behavior: BehaviorSettings = field(default_factory=BehaviorSettings)

    velocity_timeout_seconds: float = 1.0
    recent_events_capacity: int = 1000

    def __post_init__(self) -> None:
        if self.daily_txn_count_limit < 1:
            raise ValueError("daily_txn_count_limit must be >= 1")
        if self.daily_amount_limit <= 0 or self.single_txn_ceiling <= 0:
            raise ValueError("amount limits must be positive")
        if self.max_devices_per_identity < 1:
            raise ValueError("max_devices_per_identity must be >= 1")
        if self.recent_events_capacity < 1:
            raise ValueError("recent_events_capacity must be >= 1")
        if self.velocity_timeout_seconds <= 0:
            raise ValueError("velocity_timeout_seconds must be positive")
        for country in (*self.allowed_countries, *self.high_risk_countries):
            if len(country) != 2 or not country.isalpha():
                raise ValueError(f"invalid country code: {country!r}")
        for path in (*self.screened_paths, *self.auth_exempt_paths):
            if not path.startswith("/") or len(path) < 2:
                raise ValueError(f"invalid path prefix: {path!r}")

    @classmethod
    def from_env(cls) -> "FraudConfig":
        """Load config with env var overrides. Env vars use FRAUD_ prefix."""
        config = cls()
        overrides: dict = {}

        if v := os.getenv("FRAUD_DAILY_TXN_COUNT_LIMIT"):
            overrides["daily_txn_count_limit"] = int(v)
        if v := os.getenv("FRAUD_DAILY_AMOUNT_LIMIT"):
            overrides["daily_amount_limit"] = float(v)
        if v := os.getenv("FRAUD_SINGLE_TXN_CEILING"):
            overrides["single_txn_ceiling"] = float(v)
        if v := os.getenv("FRAUD_ALLOWED_COUNTRIES"):
            overrides["allowed_countries"] = _split_upper(v)
        if v := os.getenv("FRAUD_HIGH_RISK_COUNTRIES"):
            overrides["high_risk_countries"] = _split_upper(v)
        if v := os.getenv("FRAUD_MAX_DEVICES_PER_IDENTITY"):
            overrides["max_devices_per_identity"] = int(v)
        if v := os.getenv("FRAUD_SCREENED_PATHS"):
            overrides["screened_paths"] = tuple(p.strip() for p in v.split(",") if p.strip())

        # Thresholds
        low = os.getenv("FRAUD_RISK_THRESHOLD_LOW")
        medium = os.getenv("FRAUD_RISK_THRESHOLD_MEDIUM")
        high = os.getenv("FRAUD_RISK_THRESHOLD_HIGH")
        if low or medium or high:
            overrides["risk_thresholds"] = RiskThresholds(
                low=float(low) if low else config.risk_thresholds.low,
                medium=float(medium) if medium else config.risk_thresholds.medium,
                high=float(high) if high else config.risk_thresholds.high,
            )

        # Suspicious time window, HH:MM
        start = os.getenv("FRAUD_SUSPICIOUS_WINDOW_START")
        end = os.getenv("FRAUD_SUSPICIOUS_WINDOW_END")
        if start or end:
            overrides["suspicious_time_window"] = TimeWindow(
                start=time.fromisoformat(start) if start else config.suspicious_time_window.start,
                end=time.fromisoformat(end) if end else config.suspicious_time_window.end,
            )

        # Gateway rate limit
        window_ms = os.getenv("FRAUD_RATE_LIMIT_WINDOW_MS")
        max_requests = os.getenv("FRAUD_RATE_LIMIT_MAX")
        if window_ms or max_requests:
            overrides["gateway_rate_limit"] = GatewayRateLimit(
                window_ms=int(window_ms) if window_ms else config.gateway_rate_limit.window_ms,
                max=int(max_requests) if max_requests else config.gateway_rate_limit.max,
            )

        if v := os.getenv("FRAUD_TIMEZONE"):
            overrides["behavior"] = replace(config.behavior, timezone=v)
        if v := os.getenv("FRAUD_VELOCITY_TIMEOUT_SECONDS"):
            overrides["velocity_timeout_seconds"] = float(v)

        return replace(config, **overrides) if overrides else config

    @classmethod
    def from_mapping(cls, data: dict, base: "FraudConfig | None" = None) -> "FraudConfig":
        """Build a config from a camelCase or snake_case mapping over ``base``.

        Unknown keys raise ``ValueError`` so a typo never silently keeps the
        previous value.
        """
        base = base or cls()
        known = {f.name for f in fields(cls)}
        overrides: dict = {}

        for raw_key, value in data.items():
            key = _snake(raw_key)
            if key not in known:
                raise ValueError(f"Unknown fraud config option: {raw_key}")

            current = getattr(base, key)
            if isinstance(current, tuple):
                value = _as_list(raw_key, value)
            elif not isinstance(current, (int, float)):
                value = _as_object(raw_key, value)

            if key == "suspicious_time_window":
                overrides[key] = TimeWindow(
                    start=_as_time(value.get("start", current.start)),
                    end=_as_time(value.get("end", current.end)),
                )
            elif key == "risk_thresholds":
                overrides[key] = replace(current, **{k: float(v) for k, v in value.items()})
            elif key == "gateway_rate_limit":
                overrides[key] = replace(
                    current, **{_snake(k): int(v) for k, v in value.items()}
                )
            elif key in ("amount", "frequency", "device", "behavior"):
                sub = {_snake(k): v for k, v in value.items()}
                if "anonymizing_networks" in sub:
                    sub["anonymizing_networks"] = tuple(
                        _as_list("anonymizingNetworks", sub["anonymizing_networks"])
                    )
                overrides[key] = replace(current, **sub)
            elif key in ("allowed_countries", "high_risk_countries"):
                overrides[key] = tuple(str(c).upper() for c in value)
            elif isinstance(current, tuple):
                overrides[key] = tuple(value)
            else:
                overrides[key] = type(current)(value)

        return replace(base, **overrides)

    def to_dict(self) -> dict:
        """camelCase view for the admin API."""
        return {
            "dailyTxnCountLimit": self.daily_txn_count_limit,
            "dailyAmountLimit": self.daily_amount_limit,
            "singleTxnCeiling": self.single_txn_ceiling,
            "riskThresholds": {
                "low": self.risk_thresholds.low,
                "medium": self.risk_thresholds.medium,
                "high": self.risk_thresholds.high,
            },
            "allowedCountries": list(self.allowed_countries),
            "highRiskCountries": list(self.high_risk_countries),
            "suspiciousTimeWindow": {
                "start": self.suspicious_time_window.start.strftime("%H:%M"),
                "end": self.suspicious_time_window.end.strftime("%H:%M"),
            },
            "maxDevicesPerIdentity": self.max_devices_per_identity,
            "screenedPaths": list(self.screened_paths),
            "authExemptPaths": list(self.auth_exempt_paths),
            "gatewayRateLimit": {
                "windowMs": self.gateway_rate_limit.window_ms,
                "max": self.gateway_rate_limit.max,
            },
            "velocityTimeoutSeconds": self.velocity_timeout_seconds,
            "recentEventsCapacity": self.recent_events_capacity,
        }


def _check_ratio(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be between 0 and 1, got {value}")


def _as_list(name: str, value) -> list:
    # A bare string would otherwise be split into characters
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{name} must be a list")
    if not all(isinstance(item, str) for item in value):
        raise ValueError(f"{name} must contain only strings")
    return list(value)


def _as_object(name: str, value) -> dict:
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be an object")
    return value


def _split_upper(value: str) -> tuple[str, ...]:
    return tuple(c.strip().upper() for c in value.split(",") if c.strip())


def _snake(name: str) -> str:
    out = []
    for ch in name:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out).lstrip("_")


def _as_time(value) -> time:
    if isinstance(value, time):
        return value
    return time.fromisoformat(str(value))


# Module-level default instance
default_config = FraudConfig()


class ConfigStore:
    """Holds the active ``FraudConfig``; replaced whole, never edited in place."""

    def __init__(self, config: FraudConfig | None = None) -> None:
        self._config = config or FraudConfig.from_env()

    @property
    def current(self) -> FraudConfig:
        return self._config

    def reload(self, config: FraudConfig) -> FraudConfig:
        previous = self._config
        self._config = config
        return previous
