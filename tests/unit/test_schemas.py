"""Tests for telemetry record schemas."""

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from bankingtelemetry.utils.schemas import (
    AnalyticsPayload,
    CrashPayload,
    DailyRollup,
    PerformancePayload,
    RawEvent,
    ValidationResult,
)


def _event(payload, **overrides):
    fields = dict(
        id="evt_test",
        timestamp=datetime(2025, 7, 21, 9, 15, 30, 250000, tzinfo=timezone.utc),
        day="2025-07-21",
        hour=9,
        app_id="eabank_main",
        app_name="EABank Mobile",
        platform="android",
        release_channel="prod",
        app_version="3.2.1",
        build_number="32100",
        os_version="Android 12",
        device_model="Tecno Spark 10",
        device_tier="low",
        country="KE",
        locale="SW",
        network_type="wifi",
        session_id="s_banking_abc",
        user_pseudo_id="u_ke_customer_42",
        payload=payload,
    )
    fields.update(overrides)
    return RawEvent(**fields)


class TestRawEvent:
    def test_http_record_is_flat_and_sparse(self):
        payload = PerformancePayload(
            event_name="api_call",
            perf_type="http",
            duration_ms=1500,
            success=False,
            http_method="POST",
            url_path="v3/transfer/domestic",
            status_code=401,
            ttfb_ms=600,
            payload_bytes=9000,
            screen="TransferMoney",
        )
        record = _event(payload).to_record()

        assert record["source"] == "performance"
        assert record["status_code"] == 401
        assert record["count"] == 1
        assert record["is_crash"] == 0
        assert "payload" not in record
        assert "carrier" not in record
        assert "fps_avg" not in record
        assert "crash_type" not in record
        assert None not in record.values()

    def test_timestamp_serializes_as_utc_milliseconds(self):
        payload = AnalyticsPayload(event_name="balance_check", analytics_event="balance_check", screen="Dashboard")
        record = _event(payload).to_record()
        assert record["timestamp"] == "2025-07-21T09:15:30.250Z"
        assert json.loads(json.dumps(record)) == record

    def test_crash_event_flags(self):
        payload = CrashPayload(
            crash_type="anr",
            exception_type="ANRException",
            crash_group_id="cg_ui_thread_block",
            is_fatal=0,
            foreground=True,
        )
        event = _event(payload, network_type="cellular", carrier="Safaricom")
        assert event.is_crash == 1
        assert event.source == "crash"
        assert event.to_record()["carrier"] == "Safaricom"

    def test_from_record_restores_payload_variant(self):
        payload = AnalyticsPayload(
            event_name="transaction_completed",
            analytics_event="transaction_completed",
            screen="TransferConfirmation",
            transaction_type="mobile_money",
            value_num=31000,
            currency="KES",
        )
        original = _event(payload)
        restored = RawEvent.from_record(original.to_record())
        assert isinstance(restored.payload, AnalyticsPayload)
        assert restored == original

    def test_payload_must_match_declared_source(self):
        with pytest.raises(ValidationError):
            _event({"source": "crash", "event_name": "crash", "duration_ms": 10})

    def test_hour_range_enforced(self):
        payload = AnalyticsPayload(event_name="login_success", analytics_event="login_success", screen="Login")
        with pytest.raises(ValidationError):
            _event(payload, hour=24)

    def test_events_are_immutable(self):
        payload = AnalyticsPayload(event_name="login_success", analytics_event="login_success", screen="Login")
        event = _event(payload)
        with pytest.raises(ValidationError):
            event.country = "UG"


class TestDailyRollup:
    def test_optional_statistics_omitted(self):
        rollup = DailyRollup(
            day="2025-07-21",
            source="analytics",
            platform="ios",
            app_id="eabank_main",
            app_version="3.2.1",
            release_channel="prod",
            country="KE",
            device_tier="mid",
            event_group="analytics:login_success",
            events_count=3,
            users_count=2,
            sessions_count=2,
        )
        record = rollup.to_record()
        assert record["events_count"] == 3
        assert record["revenue_usd"] == 0
        assert "p50_duration_ms" not in record
        assert "crash_rate_per_1k_sessions" not in record


class TestValidationResult:
    def test_report_uses_is_valid_alias(self):
        result = ValidationResult()
        result.warn("drift")
        record = result.finalize().to_record()
        assert record["isValid"] is True
        assert record["warnings"] == ["drift"]

    def test_any_error_invalidates(self):
        result = ValidationResult()
        result.error("broken")
        assert result.finalize().is_valid is False
