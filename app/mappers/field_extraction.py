"""Ordered-fallback extraction of fields from provider conversation payloads.

The provider reports the same value under different keys depending on the
endpoint and call type. Each ``*_KEYS`` tuple lists the candidates in
priority order; the first present, non-empty value wins.
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

CALL_ID_KEYS = ("conversation_id", "id", "call_id")
PHONE_KEYS = ("to_number", "customer_phone_number", "phone_number")
START_TIME_KEYS = ("start_time", "started_at", "start_timestamp", "start_time_unix_secs")
END_TIME_KEYS = ("end_time", "ended_at", "completed_at", "end_timestamp")
DURATION_KEYS = ("duration_seconds", "duration", "call_duration_secs")

UNKNOWN_PHONE = "unknown"

# Epoch values above this are milliseconds (year ~5138 in seconds).
_MILLIS_THRESHOLD = 1e11


def first_present(data: dict, keys: Iterable[str]) -> Any | None:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a datetime, unix seconds/millis or ISO-8601 string. Naive values are taken as UTC."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        try:
            value = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > _MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def extract_call_id(data: dict) -> str | None:
    value = first_present(data, CALL_ID_KEYS)
    return str(value) if value is not None else None


def extract_phone_number(data: dict) -> str:
    value = first_present(data, PHONE_KEYS)
    return str(value) if value is not None else UNKNOWN_PHONE


def _extract_time(data: dict, keys: Iterable[str], now: datetime | None) -> datetime:
    parsed = parse_timestamp(first_present(data, keys))
    if parsed is not None:
        return parsed
    return now or datetime.now(timezone.utc)


def extract_started_at(data: dict, now: datetime | None = None) -> datetime:
    return _extract_time(data, START_TIME_KEYS, now)


def extract_ended_at(data: dict, now: datetime | None = None) -> datetime:
    return _extract_time(data, END_TIME_KEYS, now)


def extract_duration_seconds(data: dict) -> int | None:
    value = first_present(data, DURATION_KEYS)
    if value is None:
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def extract_client_data(data: dict) -> dict:
    """Client payload attached when the call was initiated, else metadata."""
    for key in ("conversation_initiation_client_data", "metadata"):
        value = data.get(key)
        if isinstance(value, dict) and value:
            return value
    return {}


def client_value(client_data: dict, key: str) -> str | None:
    """Read ``key`` from the client payload or its ``dynamic_variables``."""
    value = client_data.get(key)
    if value in (None, ""):
        dynamic = client_data.get("dynamic_variables")
        if isinstance(dynamic, dict):
            value = dynamic.get(key)
    if value in (None, ""):
        return None
    return str(value)
