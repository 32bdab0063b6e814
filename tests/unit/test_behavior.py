"""Tests for timestamp, adoption, crash, and latency models."""

import math
import random
import statistics
from collections import Counter
from datetime import date, timedelta, timezone

import pytest

from bankingtelemetry.ingestion.behavior import (
    adoption_weight,
    calculate_duration,
    choose_version,
    crash_probability,
    generate_timestamp,
    release_spike,
    should_crash,
)
from bankingtelemetry.utils.schemas import AppVersion


class TestGenerateTimestamp:
    def test_day_and_hour_derive_from_timestamp(self, rng, today):
        for offset in (0, 1, 17, 59):
            ts, day, hour = generate_timestamp(offset, rng, today)
            assert ts.tzinfo == timezone.utc
            assert day == ts.date().isoformat()
            assert hour == ts.hour
            assert ts.date() == today - timedelta(days=offset)

    def test_banking_hours_dominate(self, rng, today):
        hours = Counter(generate_timestamp(0, rng, today).hour for _ in range(5000))
        night = sum(hours[h] for h in range(0, 5))
        assert hours[9] > night
        assert hours[14] > hours[3] * 5

    def test_millisecond_precision(self, rng, today):
        ts = generate_timestamp(0, rng, today).timestamp
        assert ts.microsecond % 1000 == 0


class TestAdoption:
    @pytest.mark.parametrize(
        "days,weight",
        [(-2, 0.1), (0, 0.1), (3, 0.1), (4, 0.4), (7, 0.4), (8, 0.8), (14, 0.8), (15, 1.0), (30, 1.0), (31, 0.6)],
    )
    def test_step_function(self, days, weight):
        assert adoption_weight(days) == weight

    def test_fallback_when_catalog_has_no_candidates(self, reference, rng, today):
        version = choose_version(reference, "eabank_branch", "ios", "dev", today, rng)
        assert version == reference.fallback_version
        assert version.version == "1.0.0"

    def test_fallback_for_unknown_app(self, reference, rng, today):
        version = choose_version(reference, "unknown_app", "web", "prod", today, rng)
        assert version == reference.fallback_version

    def test_picks_from_catalog(self, reference, rng, today):
        candidates = reference.version_candidates("eabank_main", "prod", "ios")
        picks = {choose_version(reference, "eabank_main", "ios", "prod", today, rng) for _ in range(500)}
        assert picks <= set(candidates)
        assert len(picks) > 1

    def test_fresh_release_is_under_adopted(self, rng):
        fresh = AppVersion(version="2.0.0", build_number="200", release_date=date(2025, 7, 20))
        mature = AppVersion(version="1.9.0", build_number="190", release_date=date(2025, 6, 30))

        class _Catalog:
            fallback_version = fresh

            def version_candidates(self, app_id, channel, platform):
                return (fresh, mature)

        picks = Counter(
            choose_version(_Catalog(), "app", "ios", "prod", date(2025, 7, 21), rng).version
            for _ in range(4000)
        )
        # weights 0.1 vs 1.0
        assert picks["1.9.0"] > picks["2.0.0"] * 5


class TestCrashModel:
    def _version(self, released):
        return AppVersion(version="3.4.0-dev.1", build_number="1", release_date=released)

    def test_release_spike_decays(self):
        assert release_spike(0) == pytest.approx(3.0)
        assert release_spike(7) == pytest.approx(1 + 2 * math.exp(-7 / 3))
        assert release_spike(8) == 1.0
        assert release_spike(3) > release_spike(6)

    def test_prerelease_days_count_as_release_day(self):
        assert release_spike(-5) == pytest.approx(3.0)

    def test_probability_factors(self, today):
        version = self._version(today - timedelta(days=60))
        assert crash_probability(version, "mid", "prod", today) == pytest.approx(0.002)
        assert crash_probability(version, "low", "dev", today) == pytest.approx(0.002 * 4 * 1.6)
        assert crash_probability(version, "high", "uat", today) == pytest.approx(0.002 * 2.5 * 0.7)
        assert crash_probability(version, "mid", "pilot", today) == pytest.approx(0.002 * 1.8)

    def test_probability_is_clamped(self, today, monkeypatch):
        monkeypatch.setattr("bankingtelemetry.ingestion.behavior.BASE_CRASH_PROBABILITY", 0.5)
        assert crash_probability(self._version(today), "low", "dev", today) == 1.0

    def test_risky_context_crashes_more(self, today):
        rng = random.Random(99)
        trials = 20000
        risky_version = self._version(today)
        stable_version = self._version(today - timedelta(days=30))
        risky = sum(should_crash(risky_version, "low", "dev", today, rng) for _ in range(trials))
        stable = sum(should_crash(stable_version, "high", "prod", today, rng) for _ in range(trials))
        assert risky > stable


class TestDuration:
    def test_floor_and_integer(self, rng):
        for _ in range(2000):
            d = calculate_duration(120, "ios", "high", "wifi", "KE", rng)
            assert isinstance(d, int)
            assert d >= 100

    def test_poor_conditions_are_slower(self, rng):
        fast = [calculate_duration(1200, "web", "high", "wifi", "KE", rng) for _ in range(3000)]
        slow = [calculate_duration(1200, "android", "low", "offline", "SS", rng) for _ in range(3000)]
        assert statistics.median(slow) > statistics.median(fast) * 3

    def test_unknown_dimensions_leave_multiplier_neutral(self, rng):
        draws = [calculate_duration(1000, "web", "?", "?", "?", rng) for _ in range(5000)]
        assert 900 < statistics.median(draws) < 1100
