"""Daily rollup engine — pre-aggregates raw events by nine dimensions (batch layer)."""

import math
from typing import Any, Iterable, Sequence

import pandas as pd

from bankingtelemetry.utils.logging import setup_logging
from bankingtelemetry.utils.schemas import DailyRollup

logger = setup_logging("rollup-engine")

# Dimensions read straight off the raw record; event_group is derived.
ROLLUP_DIMENSIONS = (
    "day",
    "source",
    "platform",
    "app_id",
    "app_version",
    "release_channel",
    "country",
    "device_tier",
)
ROLLUP_KEY = ROLLUP_DIMENSIONS + ("event_group",)
PERCENTILES = {"p50_duration_ms": 0.5, "p90_duration_ms": 0.9, "p99_duration_ms": 0.99}

FRAME_COLUMNS = ROLLUP_DIMENSIONS + ("user_pseudo_id", "session_id", "duration_ms", "status_code")


def event_group(record: dict[str, Any]) -> str:
    source = record.get("source")
    if source == "performance":
        return f"performance:{record.get('event_name')}"
    if source == "analytics":
        return f"analytics:{record.get('analytics_event')}"
    return f"crash:{'fatal' if record.get('is_fatal') else 'nonfatal'}"


def rollup_key(record: dict[str, Any]) -> tuple:
    return tuple(record.get(dim) for dim in ROLLUP_DIMENSIONS) + (event_group(record),)


def percentile(sorted_values: Sequence[float], q: float) -> float:
    """Index-based percentile: ``sorted_values[floor(n * q)]``, clamped to the last index."""
    if not sorted_values:
        raise ValueError("percentile of an empty sequence")
    index = min(math.floor(len(sorted_values) * q), len(sorted_values) - 1)
    return sorted_values[index]


def rollup_frame(records: Iterable[dict[str, Any]]) -> pd.DataFrame:
    """Flat records as a DataFrame carrying every column the rollups read, plus ``event_group``."""
    records = list(records)
    frame = pd.DataFrame.from_records(records)
    for column in FRAME_COLUMNS:
        if column not in frame.columns:
            frame[column] = None
    frame["event_group"] = [event_group(r) for r in records]
    frame["http_error"] = pd.to_numeric(frame["status_code"], errors="coerce").ge(400)
    return frame


def _mean(values: pd.Series) -> float:
    values = values.dropna()
    return float(round(float(values.mean()))) if len(values) else math.nan


def _percentile_agg(q: float):
    def agg(values: pd.Series) -> float:
        ordered = sorted(values.dropna())
        return float(percentile(ordered, q)) if ordered else math.nan

    agg.__name__ = f"p{round(q * 100)}"
    return agg


def _optional_int(value) -> int | None:
    return None if pd.isna(value) else int(value)


def _to_rollup(row: dict[str, Any]) -> DailyRollup:
    fields = {dim: row[dim] for dim in ROLLUP_KEY}
    fields.update(
        events_count=int(row["events_count"]),
        users_count=int(row["users_count"]),
        sessions_count=int(row["sessions_count"]),
        avg_duration_ms=_optional_int(row["avg_duration_ms"]),
    )
    for name in PERCENTILES:
        fields[name] = _optional_int(row[name])

    if row["http_total"]:
        fields["http_error_rate"] = float(row["http_errors"]) / float(row["http_total"])

    if fields["source"] == "crash":
        fields["crash_rate_per_1k_sessions"] = (
            fields["events_count"] / fields["sessions_count"] * 1000
        )

    return DailyRollup(**fields)


def generate_daily_rollups(records: Iterable[dict[str, Any]]) -> list[DailyRollup]:
    """Group raw event records by the rollup key and summarize each group.

    Rows come out in the order each group is first seen in ``records``.
    """
    frame = rollup_frame(records)
    if frame.empty:
        logger.info("rollups_generated", groups=0)
        return []

    summary = (
        frame.groupby(list(ROLLUP_KEY), sort=False, dropna=False)
        .agg(
            events_count=("event_group", "size"),
            users_count=("user_pseudo_id", "nunique"),
            sessions_count=("session_id", "nunique"),
            avg_duration_ms=("duration_ms", _mean),
            **{name: ("duration_ms", _percentile_agg(q)) for name, q in PERCENTILES.items()},
            http_total=("status_code", "count"),
            http_errors=("http_error", "sum"),
        )
        .reset_index()
    )

    rollups = [_to_rollup(row) for row in summary.to_dict("records")]
    logger.info("rollups_generated", groups=len(rollups))
    return rollups
