"""Source-specific payload builders for analytics, performance, and crash events."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from bankingtelemetry.ingestion.behavior import BASE_DURATIONS_MS, calculate_duration
from bankingtelemetry.ingestion.sampling import log_normal, random_choice, weighted_choice
from bankingtelemetry.utils.reference import ReferenceData
from bankingtelemetry.utils.schemas import (
    AnalyticsPayload,
    CrashPayload,
    CrashType,
    PerformancePayload,
    PerfType,
)

if TYPE_CHECKING:
    from bankingtelemetry.ingestion.generator import SessionContext

TRANSACTION_COMPLETED = "transaction_completed"
ACCOUNT_OPENED = "customer_account_opened"

HTTP_METHODS = ["GET", "POST", "PUT"]
HTTP_ERROR_RATE = 0.125
FATAL_CRASH_RATE = 0.12
FOREGROUND_RATE = 0.9

TRANSACTION_VALUE_ANCHOR = 25000
TRANSACTION_VALUE_STDDEV = 1.2

FPS_TIER_PENALTY = {"low": 30, "mid": 15, "high": 8}


class PayloadFactory:
    """Builds the category payload for one event slot of a session."""

    def __init__(self, reference: ReferenceData, rng: random.Random):
        self.reference = reference
        self.rng = rng

    # ── Analytics ────────────────────────────────────────────────────

    def analytics(
        self, session: SessionContext, force_transaction: bool = False
    ) -> AnalyticsPayload:
        if session.is_branch:
            return self._branch_analytics(session)
        return self._customer_analytics(session, force_transaction)

    def _branch_analytics(self, session: SessionContext) -> AnalyticsPayload:
        ref, rng = self.reference, self.rng
        event = random_choice(ref.branch_events, rng)
        opened = event == ACCOUNT_OPENED
        return AnalyticsPayload(
            event_name=event,
            analytics_event=event,
            screen=random_choice(ref.branch_screens, rng),
            account_type=random_choice(ref.account_types, rng) if opened else None,
            branch_code=self.branch_code(session.country),
            value_num=1 if opened else None,
        )

    def _customer_analytics(
        self, session: SessionContext, force_transaction: bool
    ) -> AnalyticsPayload:
        ref, rng = self.reference, self.rng
        event = (
            TRANSACTION_COMPLETED
            if force_transaction
            else random_choice(ref.customer_events, rng)
        )
        screen = random_choice(ref.mobile_screens, rng)
        if event != TRANSACTION_COMPLETED:
            return AnalyticsPayload(event_name=event, analytics_event=event, screen=screen)

        return AnalyticsPayload(
            event_name=event,
            analytics_event=event,
            screen=screen,
            transaction_type=random_choice(ref.transaction_types, rng),
            value_num=round(
                log_normal(TRANSACTION_VALUE_ANCHOR, TRANSACTION_VALUE_STDDEV, rng)
            ),
            currency=ref.currency_for(session.country),
        )

    def branch_code(self, country: str) -> str:
        area = random_choice(self.reference.branch_areas, self.rng)
        return f"{country}_{area}_{int(self.rng.random() * 999) + 1:03d}"

    # ── Performance ──────────────────────────────────────────────────

    def performance(self, session: SessionContext) -> PerformancePayload:
        ref, rng = self.reference, self.rng
        perf_type = random_choice(list(PerfType), rng)
        duration = calculate_duration(
            BASE_DURATIONS_MS[perf_type.value],
            session.platform,
            session.device_tier,
            session.network_type,
            session.country,
            rng,
        )
        screens = ref.branch_screens if session.is_branch else ref.mobile_screens
        fields = {
            "event_name": "api_call" if perf_type is PerfType.HTTP else perf_type.value,
            "perf_type": perf_type,
            "duration_ms": duration,
            "success": True,
        }

        if perf_type is PerfType.HTTP:
            endpoints = ref.branch_endpoints if session.is_branch else ref.api_endpoints
            status_code = self.http_status()
            fields.update(
                http_method=random_choice(HTTP_METHODS, rng),
                url_path=random_choice(endpoints, rng),
                status_code=status_code,
                success=status_code < 400,
                ttfb_ms=round(duration * 0.4),
                payload_bytes=round(log_normal(8000, 0.8, rng)),
                screen=random_choice(screens, rng),
            )
        elif perf_type is PerfType.SCREEN:
            fields.update(
                screen=random_choice(screens, rng),
                fps_avg=max(
                    20,
                    round(60 - FPS_TIER_PENALTY[session.device_tier] + rng.random() * 10),
                ),
            )
        elif perf_type is PerfType.TRACE:
            traces = ref.branch_traces if session.is_branch else ref.customer_traces
            fields.update(
                trace_name=f"banking:{random_choice(traces, rng)}",
                cpu_ms=round(duration * 0.8),
                memory_mb=round(log_normal(80, 0.4, rng)),
            )

        return PerformancePayload(**fields)

    def http_status(self) -> int:
        rng = self.rng
        if rng.random() >= HTTP_ERROR_RATE:
            return 200
        if rng.random() < 0.6:
            return 400
        if rng.random() < 0.7:
            return 401
        return 500

    # ── Crash ────────────────────────────────────────────────────────

    def crash(self, session: SessionContext) -> CrashPayload:
        rng = self.rng
        group = weighted_choice(self.reference.crash_groups, rng=rng)
        is_fatal = rng.random() < FATAL_CRASH_RATE
        if is_fatal:
            crash_type = CrashType.FATAL
        else:
            nonfatal = [CrashType.NONFATAL]
            if session.platform == "android":
                nonfatal.append(CrashType.ANR)
            crash_type = random_choice(nonfatal, rng)

        return CrashPayload(
            crash_type=crash_type,
            exception_type=group.exception_type,
            crash_group_id=group.id,
            is_fatal=1 if is_fatal else 0,
            foreground=rng.random() < FOREGROUND_RATE,
        )
