"""Tests for the daily rollup engine."""

import random

import pytest

from bankingtelemetry.batch.rollups import (
    event_group,
    generate_daily_rollups,
    percentile,
    rollup_frame,
    rollup_key,
)
from bankingtelemetry.ingestion.generator import SessionGenerator
from bankingtelemetry.storage.artifacts import to_records


def _record(**overrides):
    record = {
        "day": "2025-07-21",
        "source": "performance",
        "platform": "android",
        "app_id": "eabank_main",
        "app_version": "3.2.1",
        "release_channel": "prod",
        "country": "KE",
        "device_tier": "low",
        "event_name": "api_call",
        "perf_type": "http",
        "session_id": "s1",
        "user_pseudo_id": "u1",
    }
    record.update(overrides)
    return record


class TestEventGroup:
    def test_groups_by_source_subtype(self):
        assert event_group(_record()) == "performance:api_call"
        assert event_group(_record(event_name="screen")) == "performance:screen"
        assert (
            event_group(_record(source="analytics", analytics_event="login_failed"))
            == "analytics:login_failed"
        )
        assert event_group(_record(source="crash", is_fatal=1)) == "crash:fatal"
        assert event_group(_record(source="crash", is_fatal=0)) == "crash:nonfatal"

    def test_key_has_nine_dimensions(self):
        key = rollup_key(_record())
        assert len(key) == 9
        assert key[-1] == "performance:api_call"


class TestPercentile:
    def test_index_based(self):
        values = list(range(1, 11))
        assert percentile(values, 0.5) == 6
        assert percentile(values, 0.9) == 10
        assert percentile(values, 0.99) == 10

    def test_single_value(self):
        assert percentile([420], 0.99) == 420

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            percentile([], 0.5)


class TestGenerateDailyRollups:
    def test_http_group_statistics(self):
        records = [
            _record(duration_ms=100, status_code=200, session_id="s1", user_pseudo_id="u1"),
            _record(duration_ms=300, status_code=500, session_id="s1", user_pseudo_id="u1"),
            _record(duration_ms=200, status_code=401, session_id="s2", user_pseudo_id="u1"),
            _record(duration_ms=400, status_code=200, session_id="s3", user_pseudo_id="u2"),
        ]
        [rollup] = generate_daily_rollups(records)

        assert rollup.events_count == 4
        assert rollup.users_count == 2
        assert rollup.sessions_count == 3
        assert rollup.avg_duration_ms == 250
        assert rollup.p50_duration_ms == 300
        assert rollup.p90_duration_ms == 400
        assert rollup.p99_duration_ms == 400
        assert rollup.http_error_rate == pytest.approx(0.5)
        assert rollup.crash_rate_per_1k_sessions is None

    def test_analytics_group_has_no_duration_stats(self):
        records = [
            _record(source="analytics", analytics_event="balance_check", event_name="balance_check"),
        ]
        [rollup] = generate_daily_rollups(records)
        record = rollup.to_record()
        assert "avg_duration_ms" not in record
        assert "http_error_rate" not in record
        assert rollup.event_group == "analytics:balance_check"

    def test_crash_rate_per_thousand_sessions(self):
        records = [
            _record(source="crash", is_fatal=0, session_id="s1"),
            _record(source="crash", is_fatal=0, session_id="s1"),
            _record(source="crash", is_fatal=0, session_id="s2"),
        ]
        [rollup] = generate_daily_rollups(records)
        assert rollup.crash_rate_per_1k_sessions == pytest.approx(1500.0)
        assert rollup.event_group == "crash:nonfatal"

    def test_each_dimension_splits_groups(self):
        records = [
            _record(),
            _record(day="2025-07-20"),
            _record(country="UG"),
            _record(device_tier="high"),
            _record(event_name="trace"),
        ]
        rollups = generate_daily_rollups(records)
        assert len(rollups) == 5
        assert all(r.events_count == 1 for r in rollups)

    def test_empty_input(self):
        assert generate_daily_rollups([]) == []

    def test_rows_follow_first_seen_order(self):
        records = [_record(country="UG"), _record(), _record(country="UG")]
        rollups = generate_daily_rollups(records)
        assert [r.country for r in rollups] == ["UG", "KE"]
        assert [r.events_count for r in rollups] == [2, 1]


class TestRollupFrame:
    def test_adds_event_group_and_missing_columns(self):
        frame = rollup_frame([_record(source="analytics", analytics_event="login_success")])
        assert list(frame["event_group"]) == ["analytics:login_success"]
        assert frame["duration_ms"].isna().all()
        assert not frame["http_error"].any()

    def test_flags_http_errors(self):
        frame = rollup_frame([_record(status_code=200), _record(status_code=503)])
        assert list(frame["http_error"]) == [False, True]


class TestRollupsOnGeneratedCorpus:
    @pytest.fixture(autouse=True)
    def _corpus(self, settings, reference, today):
        generator = SessionGenerator(settings, reference, rng=random.Random(21), today=today)
        self.records = to_records(generator.generate_corpus())

    def test_counts_cover_corpus(self):
        rollups = generate_daily_rollups(self.records)
        assert sum(r.events_count for r in rollups) == len(self.records)

    def test_idempotent(self):
        first = generate_daily_rollups(self.records)
        second = generate_daily_rollups(self.records)
        summary = lambda rollups: {
            (r.day, r.source, r.platform, r.app_id, r.app_version, r.release_channel,
             r.country, r.device_tier, r.event_group): (r.events_count, r.users_count, r.sessions_count)
            for r in rollups
        }
        assert summary(first) == summary(second)

    def test_percentiles_monotonic(self):
        for rollup in generate_daily_rollups(self.records):
            if rollup.p50_duration_ms is not None:
                assert rollup.p50_duration_ms <= rollup.p90_duration_ms <= rollup.p99_duration_ms
                assert rollup.p50_duration_ms >= 100

    def test_only_crash_groups_carry_crash_rate(self):
        for rollup in generate_daily_rollups(self.records):
            assert (rollup.crash_rate_per_1k_sessions is not None) == (rollup.source == "crash")
