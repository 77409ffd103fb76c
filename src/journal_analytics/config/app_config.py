from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    import tomli as tomllib

OUTSIDE_TRADING_HOURS = "Outside Trading Hours"


@dataclass(frozen=True)
class AppSettings:
    host: str
    port: int
    reload: bool
    log_level: str


@dataclass(frozen=True)
class AnalyticsSettings:
    day_timezone: str
    slot_timezone: str
    broker_timezone: str
    matching_policy: str
    currency_symbol: str
    # name -> (start_minute, end_minute), end exclusive
    slots: dict[str, tuple[int, int]]


@dataclass(frozen=True)
class AppConfig:
    app: AppSettings
    analytics: AnalyticsSettings


def load_app_config(path: Path | None = None) -> AppConfig:
    config_path = path or Path("config/app.toml")
    raw: Mapping[str, Any] = {}
    if config_path.exists():
        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))
    return config_from_mapping(raw)


def default_app_config() -> AppConfig:
    return config_from_mapping({})


def config_from_mapping(raw: Mapping[str, Any]) -> AppConfig:
    app_raw = _section(raw, "app")
    analytics_raw = _section(raw, "analytics")

    app = AppSettings(
        host=str(app_raw.get("host", "127.0.0.1")),
        port=int(app_raw.get("port", 8000)),
        reload=bool(app_raw.get("reload", False)),
        log_level=str(app_raw.get("log_level", "INFO")).strip().upper() or "INFO",
    )

    slots = _parse_slot_windows(analytics_raw.get("slots"))
    if not slots:
        slots = default_slot_windows()

    analytics = AnalyticsSettings(
        day_timezone=_text(analytics_raw.get("day_timezone"), "UTC"),
        slot_timezone=_text(analytics_raw.get("slot_timezone"), "Asia/Kolkata"),
        broker_timezone=_text(analytics_raw.get("broker_timezone"), "Asia/Kolkata"),
        matching_policy=_text(analytics_raw.get("matching_policy"), "weighted_average").lower(),
        currency_symbol=str(analytics_raw.get("currency_symbol", "₹")),
        slots=slots,
    )

    return AppConfig(app=app, analytics=analytics)


def default_analytics_settings() -> AnalyticsSettings:
    return default_app_config().analytics


def default_slot_windows() -> dict[str, tuple[int, int]]:
    # Indian cash-market hours; 13:16-13:44 falls outside every slot.
    return {
        "Morning Session": (_minutes("09:15"), _minutes("11:15", inclusive_end=True)),
        "Middle Session": (_minutes("11:16"), _minutes("13:15", inclusive_end=True)),
        "Afternoon Session": (_minutes("13:45"), _minutes("15:30", inclusive_end=True)),
    }


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if isinstance(value, Mapping):
        return value
    return {}


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _parse_slot_windows(raw: Any) -> dict[str, tuple[int, int]]:
    if not isinstance(raw, Mapping):
        return {}
    output: dict[str, tuple[int, int]] = {}
    for name, value in raw.items():
        label = str(name).strip()
        if not label:
            continue
        window = _parse_time_window(value)
        if window is None:
            continue
        if window[0] >= window[1]:
            continue
        output[label] = window
    return output


def _parse_time_window(value: Any) -> tuple[int, int] | None:
    if isinstance(value, Mapping):
        start = value.get("start")
        end = value.get("end")
        if isinstance(start, str) and isinstance(end, str):
            return _window(start, end)
        return None
    if isinstance(value, (list, tuple)) and len(value) == 2:
        start, end = value
        if isinstance(start, str) and isinstance(end, str):
            return _window(start, end)
        return None
    if isinstance(value, str) and "-" in value:
        start, end = value.split("-", 1)
        return _window(start, end)
    return None


def _window(start: str, end: str) -> tuple[int, int] | None:
    try:
        return _minutes(start.strip()), _minutes(end.strip(), inclusive_end=True)
    except ValueError:
        return None


def _minutes(value: str, *, inclusive_end: bool = False) -> int:
    match = re.match(r"^(\d{1,2}):(\d{2})$", value.strip())
    if not match:
        raise ValueError(f"Invalid time value: {value}")
    hour = int(match.group(1))
    minute = int(match.group(2))
    if hour < 0 or hour > 23 or minute < 0 or minute > 59:
        raise ValueError(f"Invalid time value: {value}")
    total = hour * 60 + minute
    if inclusive_end:
        total += 1
    return total
