"""Data-quality validator for a generated corpus and its rollups."""

from collections import Counter, defaultdict
from datetime import datetime
from typing import Any, Sequence

import pandas as pd

from bankingtelemetry.batch.rollups import ROLLUP_KEY, rollup_frame
from bankingtelemetry.utils.logging import setup_logging
from bankingtelemetry.utils.reference import GeneratorSettings, ReferenceData
from bankingtelemetry.utils.schemas import DailyRollup, ValidationResult

logger = setup_logging("data-validator")

SCHEMA_SAMPLE_SIZE = 1000
ROLLUP_SAMPLE_SIZE = 10

REQUIRED_FIELDS = ("id", "source", "timestamp", "day", "hour", "app_id", "country", "platform")

# Fields owned by each source; a record may only carry its own source's fields.
SOURCE_FIELDS = {
    "analytics": {
        "analytics_event",
        "transaction_type",
        "value_num",
        "currency",
        "account_type",
        "branch_code",
    },
    "performance": {
        "perf_type",
        "duration_ms",
        "success",
        "http_method",
        "url_path",
        "status_code",
        "ttfb_ms",
        "payload_bytes",
        "fps_avg",
        "trace_name",
        "cpu_ms",
        "memory_mb",
    },
    "crash": {"crash_type", "exception_type", "crash_group_id", "is_fatal", "foreground"},
}

RATIO_TOLERANCE = 0.1
CRASH_RATIO_TOLERANCE = 0.02
COUNTRY_TOLERANCE = 0.1
MAX_SESSION_CRASH_RATE = 0.1
DATE_SPAN_TOLERANCE_DAYS = 5
MAX_WEEKEND_SHARE = 0.8
MAX_PRERELEASE_SHARE = 0.3

WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def parse_timestamp(value: str) -> datetime:
    """Parse an offset-carrying ISO-8601 timestamp; anything else raises."""
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be a string, got {type(value).__name__}")
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        raise ValueError(f"timestamp has no UTC offset: {value}")
    return ts


def _missing(record: dict[str, Any], field: str) -> bool:
    return record.get(field) is None


class DataValidator:
    """Runs every check against one corpus and collects a single result.

    Errors mark invariant violations a correct generator never produces;
    warnings mark statistical drift beyond tolerance.
    """

    def __init__(
        self,
        records: Sequence[dict[str, Any]],
        rollups: Sequence[DailyRollup],
        settings: GeneratorSettings,
        reference: ReferenceData,
    ):
        self.records = records
        self.rollups = rollups
        self.settings = settings
        self.reference = reference

    def validate_all(self) -> ValidationResult:
        result = ValidationResult()
        for check in (
            self.validate_schema,
            self.validate_business_logic,
            self.validate_distributions,
            self.validate_time_series,
            self.validate_rollup_accuracy,
            self.validate_release_logic,
        ):
            errors, warnings = len(result.errors), len(result.warnings)
            check(result)
            logger.info(
                "validation_check_completed",
                check=check.__name__,
                errors=len(result.errors) - errors,
                warnings=len(result.warnings) - warnings,
            )
        return result.finalize()

    # ── Schema ───────────────────────────────────────────────────────

    def validate_schema(self, result: ValidationResult) -> None:
        schema_errors = 0
        for record in self.records[:SCHEMA_SAMPLE_SIZE]:
            problems = self._schema_problems(record)
            schema_errors += len(problems)
            for problem in problems:
                result.error(f"Event {record.get('id')} {problem}")
        result.stats["schemaErrors"] = schema_errors

    def _schema_problems(self, record: dict[str, Any]) -> list[str]:
        problems = [
            f"missing required field: {field}"
            for field in REQUIRED_FIELDS
            if _missing(record, field)
        ]

        hour = record.get("hour")
        if not isinstance(hour, int) or isinstance(hour, bool) or not 0 <= hour <= 23:
            problems.append(f"invalid hour: {hour}")
        if record.get("count") != 1:
            problems.append(f"count should be 1, got: {record.get('count')}")

        source = record.get("source")
        if (source == "crash") != (record.get("is_crash") == 1):
            problems.append(f"is_crash={record.get('is_crash')} inconsistent with source={source}")
        if source == "performance" and not record.get("duration_ms"):
            problems.append("performance event missing duration_ms")
        if source == "analytics" and not record.get("analytics_event"):
            problems.append("analytics event missing analytics_event")
        if source == "crash" and any(
            _missing(record, f) for f in ("crash_type", "exception_type", "crash_group_id", "is_fatal")
        ):
            problems.append("crash event missing crash fields")

        foreign = sorted(
            field
            for other, fields in SOURCE_FIELDS.items()
            if other != source
            for field in fields
            if field in record
        )
        if foreign:
            problems.append(f"{source} event carries foreign fields: {', '.join(foreign)}")

        if (record.get("network_type") == "cellular") == _missing(record, "carrier"):
            problems.append(
                f"carrier presence inconsistent with network_type={record.get('network_type')}"
            )

        if record.get("perf_type") == "http":
            if any(_missing(record, f) for f in ("status_code", "http_method", "url_path")):
                problems.append("http event missing HTTP fields")
            elif record.get("success") != (record["status_code"] < 400):
                problems.append(
                    f"http success={record.get('success')} inconsistent with "
                    f"status_code={record['status_code']}"
                )

        if record.get("currency") is not None and record.get("analytics_event") != "transaction_completed":
            problems.append("currency set on a non-transaction event")
        return problems

    # ── Business logic ───────────────────────────────────────────────

    def validate_business_logic(self, result: ValidationResult) -> None:
        apps = {app.id: app for app in self.reference.apps}
        violations = sum(
            1
            for r in self.records
            if r.get("app_id") in apps and r.get("country") not in apps[r["app_id"]].countries
        )
        if violations:
            result.error(f"{violations} events have app-country mismatches")

        currency_mismatches = sum(
            1
            for r in self.records
            if r.get("currency") is not None
            and r["currency"] != self.reference.currency_for(r.get("country"))
        )
        if currency_mismatches:
            result.error(f"{currency_mismatches} transactions have a currency not matching their country")

        dev_mislabelled = sum(
            1
            for r in self.records
            if r.get("release_channel") == "dev" and "dev" not in (r.get("app_version") or "")
        )
        if dev_mislabelled:
            result.warn(f"{dev_mislabelled} dev channel events without 'dev' in version")

        sessions = {r.get("session_id") for r in self.records}
        crashing = {r.get("session_id") for r in self.records if r.get("is_crash") == 1}
        crash_rate = len(crashing) / len(sessions) if sessions else 0.0
        if crash_rate > MAX_SESSION_CRASH_RATE:
            result.warn(f"High overall crash rate: {crash_rate * 100:.2f}%")

        result.stats["crashRate"] = crash_rate
        result.stats["appCountryViolations"] = violations

    # ── Distributions ────────────────────────────────────────────────

    def validate_distributions(self, result: ValidationResult) -> None:
        total = len(self.records)
        sources = Counter(r.get("source") for r in self.records)
        countries = Counter(r.get("country") for r in self.records)
        locales = Counter(r.get("locale") for r in self.records)

        if total:
            expected = (
                ("analytics", self.settings.analytics_ratio, RATIO_TOLERANCE, "Analytics"),
                ("performance", self.settings.performance_ratio, RATIO_TOLERANCE, "Performance"),
                ("crash", self.settings.crash_ratio, CRASH_RATIO_TOLERANCE, "Crash"),
            )
            for source, ratio, tolerance, label in expected:
                actual = sources.get(source, 0) / total
                if abs(actual - ratio) > tolerance:
                    result.warn(f"{label} ratio {actual:.3f} differs from expected {ratio}")

            for country in self.reference.countries:
                actual = countries.get(country.code, 0) / total
                if abs(actual - country.weight) > COUNTRY_TOLERANCE:
                    result.warn(
                        f"Country {country.code} ratio {actual:.2f} differs from expected {country.weight}"
                    )

        invalid_locales = sorted(
            str(code) for code in locales if code not in self.reference.valid_locales
        )
        if invalid_locales:
            result.error(f"Invalid locales found: {', '.join(invalid_locales)}")

        result.stats["distributions"] = {
            "sources": dict(sources),
            "countries": dict(countries),
            "locales": dict(locales),
        }

    # ── Time series ──────────────────────────────────────────────────

    def validate_time_series(self, result: ValidationResult) -> None:
        stamps = []
        inconsistencies = 0
        for record in self.records:
            try:
                ts = parse_timestamp(record["timestamp"])
            except (KeyError, TypeError, ValueError):
                inconsistencies += 1
                continue
            stamps.append(ts)
            if ts.hour != record.get("hour") or ts.date().isoformat() != record.get("day"):
                inconsistencies += 1

        if inconsistencies:
            result.error(f"{inconsistencies} events have timestamp-day-hour inconsistencies")

        if not stamps:
            result.stats["timeSeries"] = {"timeInconsistencies": inconsistencies}
            return

        first, last = min(stamps), max(stamps)
        day_span = (last - first).total_seconds() / 86400
        if day_span > self.settings.date_range_days + DATE_SPAN_TOLERANCE_DAYS:
            result.warn(
                f"Date range {day_span:.0f} days exceeds expected {self.settings.date_range_days}"
            )

        weekdays = Counter(ts.weekday() for ts in stamps)
        weekday_avg = sum(weekdays.get(d, 0) for d in range(5)) / 5
        weekend_avg = sum(weekdays.get(d, 0) for d in (5, 6)) / 2
        if weekday_avg and weekend_avg > weekday_avg * MAX_WEEKEND_SHARE:
            result.warn(
                f"Weekend activity too high: {weekend_avg:.0f} vs weekday {weekday_avg:.0f}"
            )

        result.stats["timeSeries"] = {
            "dateRange": {"min": first.date().isoformat(), "max": last.date().isoformat()},
            "daySpan": day_span,
            "timeInconsistencies": inconsistencies,
            "dayOfWeekStats": {WEEKDAY_NAMES[d]: weekdays.get(d, 0) for d in range(7)},
        }

    # ── Rollup accuracy ──────────────────────────────────────────────

    def validate_rollup_accuracy(self, result: ValidationResult) -> None:
        frame = rollup_frame(self.records)
        keys = list(ROLLUP_KEY)
        rollup_errors = 0
        for rollup in self.rollups[:ROLLUP_SAMPLE_SIZE]:
            dims = pd.Series({dim: getattr(rollup, dim) for dim in keys})
            matching = frame.loc[frame[keys].eq(dims).all(axis=1)]
            label = "|".join(map(str, dims))

            expected = (
                ("events_count", len(matching), rollup.events_count),
                ("users_count", matching["user_pseudo_id"].nunique(), rollup.users_count),
                ("sessions_count", matching["session_id"].nunique(), rollup.sessions_count),
            )
            for field, actual, reported in expected:
                if actual != reported:
                    result.warn(
                        f"Rollup {label} {field} mismatch: expected {actual}, got {reported}"
                    )
                    rollup_errors += 1

        result.stats["rollupErrors"] = rollup_errors

    # ── Release logic ────────────────────────────────────────────────

    def validate_release_logic(self, result: ValidationResult) -> None:
        """Pre-release (dev/uat) builds should not dominate their cohort."""
        cohorts: dict[str, Counter] = defaultdict(Counter)
        for r in self.records:
            key = f"{r.get('app_id')}-{r.get('platform')}-{r.get('release_channel')}"
            cohorts[key][r.get("app_version") or ""] += 1

        days = self.settings.date_range_days
        issues = []
        for cohort, versions in cohorts.items():
            cohort_daily = sum(versions.values()) / days
            for version, count in versions.items():
                if "dev" not in version and "uat" not in version:
                    continue
                if count / days > cohort_daily * MAX_PRERELEASE_SHARE:
                    issues.append(f"{cohort} version {version} has unexpectedly high adoption")

        if issues:
            result.warn(f"Release adoption issues: {'; '.join(issues)}")
        result.stats["releaseAdoptionIssues"] = len(issues)


def validate_generated_data(
    records: Sequence[dict[str, Any]],
    rollups: Sequence[DailyRollup],
    settings: GeneratorSettings,
    reference: ReferenceData,
) -> ValidationResult:
    return DataValidator(records, rollups, settings, reference).validate_all()


def log_summary(
    result: ValidationResult,
    records: Sequence[dict[str, Any]],
    rollups: Sequence[DailyRollup],
) -> None:
    """Report the validation outcome and headline corpus statistics."""
    logger.info(
        "validation_summary",
        valid=result.is_valid,
        errors=len(result.errors),
        warnings=len(result.warnings),
    )
    for error in result.errors:
        logger.error("validation_error", detail=error)
    for warning in result.warnings:
        logger.warning("validation_warning", detail=warning)

    total = len(records) or 1
    date_range = result.stats.get("timeSeries", {}).get("dateRange", {})
    logger.info(
        "corpus_stats",
        total_events=len(records),
        total_rollups=len(rollups),
        unique_sessions=len({r.get("session_id") for r in records}),
        unique_users=len({r.get("user_pseudo_id") for r in records}),
        date_range=f"{date_range.get('min')} to {date_range.get('max')}",
        crash_rate=f"{result.stats.get('crashRate', 0.0) * 100:.2f}%",
    )

    def shares(counts: dict, top: int | None = None) -> str:
        ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:top]
        return ", ".join(f"{k}: {v / total * 100:.1f}%" for k, v in ranked)

    distributions = result.stats.get("distributions")
    if distributions:
        logger.info(
            "distribution_summary",
            sources=shares(distributions["sources"]),
            top_countries=shares(distributions["countries"], 3),
            locales=shares(distributions["locales"]),
            apps=shares(Counter(r.get("app_id") for r in records)),
        )
