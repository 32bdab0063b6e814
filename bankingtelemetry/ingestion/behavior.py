"""Behavioral models — timestamps, version adoption, crash likelihood, latency."""

import math
import random
from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple

from bankingtelemetry.ingestion.sampling import log_normal, uniform, weighted_choice
from bankingtelemetry.utils.reference import ReferenceData
from bankingtelemetry.utils.schemas import AppVersion

# Relative session volume per UTC hour; peaks 09-11 and 14-16 banking hours
HOUR_WEIGHTS = [
    1, 1, 1, 1, 1, 2, 4, 8, 12, 18, 15, 12, 8, 10, 16, 12, 8, 6, 4, 3, 2, 1, 1, 1,
]

BASE_CRASH_PROBABILITY = 0.002

CHANNEL_CRASH_FACTORS = {"dev": 4.0, "uat": 2.5, "pilot": 1.8, "prod": 1.0}
TIER_CRASH_FACTORS = {"low": 1.6, "mid": 1.0, "high": 0.7}
RELEASE_SPIKE_DAYS = 7

BASE_DURATIONS_MS = {"http": 1200, "screen": 1800, "trace": 800, "app_start": 3000}
DURATION_STDDEV = 0.6
MIN_DURATION_MS = 100

# (low, high) multiplier ranges
NETWORK_LATENCY = {"wifi": (0.8, 1.2), "cellular": (1.5, 2.3), "offline": (2.0, 3.0)}
TIER_LATENCY = {"low": (1.4, 1.8), "mid": (1.0, 1.3), "high": (0.8, 1.0)}
REGIONAL_LATENCY = {
    "SS": (1.3, 1.8),
    "DRC": (1.3, 1.8),
    "UG": (1.1, 1.3),
    "TZ": (1.1, 1.3),
}


class EventTime(NamedTuple):
    timestamp: datetime
    day: str
    hour: int


def session_date(day_offset: int, today: date) -> date:
    return today - timedelta(days=day_offset)


def generate_timestamp(
    day_offset: int, rng: random.Random, today: date
) -> EventTime:
    """Timestamp within the UTC day ``day_offset`` days before ``today``."""
    hour = weighted_choice(range(24), lambda h: HOUR_WEIGHTS[h], rng)
    ts = datetime.combine(
        session_date(day_offset, today),
        time(
            hour,
            int(rng.random() * 60),
            int(rng.random() * 60),
            int(rng.random() * 1000) * 1000,
        ),
        tzinfo=timezone.utc,
    )
    return EventTime(ts, ts.date().isoformat(), ts.hour)


# ── Version adoption ─────────────────────────────────────────────────

def adoption_weight(days_since_release: int) -> float:
    """Slow ramp-up, peak adoption, then decline as users move to newer builds."""
    if days_since_release <= 3:
        return 0.1
    if days_since_release <= 7:
        return 0.4
    if days_since_release <= 14:
        return 0.8
    if days_since_release <= 30:
        return 1.0
    return 0.6


def choose_version(
    reference: ReferenceData,
    app_id: str,
    platform: str,
    channel: str,
    current_date: date,
    rng: random.Random,
) -> AppVersion:
    candidates = reference.version_candidates(app_id, channel, platform)
    if not candidates:
        return reference.fallback_version
    return weighted_choice(
        candidates,
        lambda v: adoption_weight(v.days_since_release(current_date)),
        rng,
    )


# ── Crash likelihood ─────────────────────────────────────────────────

def release_spike(days_since_release: int) -> float:
    """Crash multiplier decaying from 3x at release to ~1x by day 7."""
    if days_since_release > RELEASE_SPIKE_DAYS:
        return 1.0
    return 1.0 + 2.0 * math.exp(-max(days_since_release, 0) / 3.0)


def crash_probability(
    version: AppVersion, device_tier: str, channel: str, current_date: date
) -> float:
    probability = (
        BASE_CRASH_PROBABILITY
        * CHANNEL_CRASH_FACTORS.get(channel, 1.0)
        * TIER_CRASH_FACTORS.get(device_tier, 1.0)
        * release_spike(version.days_since_release(current_date))
    )
    return min(probability, 1.0)


def should_crash(
    version: AppVersion,
    device_tier: str,
    channel: str,
    current_date: date,
    rng: random.Random,
) -> bool:
    return rng.random() < crash_probability(version, device_tier, channel, current_date)


# ── Latency ──────────────────────────────────────────────────────────

def calculate_duration(
    base_ms: float,
    platform: str,
    device_tier: str,
    network_type: str,
    country: str,
    rng: random.Random,
) -> int:
    # platform carries no latency factor
    multiplier = 1.0
    for table, key in (
        (NETWORK_LATENCY, network_type),
        (TIER_LATENCY, device_tier),
        (REGIONAL_LATENCY, country),
    ):
        if key in table:
            multiplier *= uniform(*table[key], rng=rng)

    return max(
        MIN_DURATION_MS,
        round(log_normal(base_ms * multiplier, DURATION_STDDEV, rng)),
    )
