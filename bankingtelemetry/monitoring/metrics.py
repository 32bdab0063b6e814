"""Prometheus metrics for a generation run, exported through the textfile collector."""

from pathlib import Path

from prometheus_client import CollectorRegistry, Counter, Gauge, write_to_textfile

REGISTRY = CollectorRegistry()

EVENTS_GENERATED = Counter(
    "banking_telemetry_events_generated_total",
    "Raw events synthesized before truncation",
    ["source"],
    registry=REGISTRY,
)
SESSIONS_GENERATED = Counter(
    "banking_telemetry_sessions_total",
    "Sessions synthesized, by outcome",
    ["outcome"],
    registry=REGISTRY,
)
CORPUS_EVENTS = Gauge(
    "banking_telemetry_corpus_events",
    "Raw events kept in the written corpus",
    registry=REGISTRY,
)
ROLLUPS_PRODUCED = Gauge(
    "banking_telemetry_rollups",
    "Daily rollup rows produced",
    registry=REGISTRY,
)
VALIDATION_FINDINGS = Gauge(
    "banking_telemetry_validation_findings",
    "Validation findings of the last run",
    ["severity"],
    registry=REGISTRY,
)


def record_run(events: int, rollups: int, errors: int, warnings: int) -> None:
    CORPUS_EVENTS.set(events)
    ROLLUPS_PRODUCED.set(rollups)
    VALIDATION_FINDINGS.labels(severity="error").set(errors)
    VALIDATION_FINDINGS.labels(severity="warning").set(warnings)


def write_metrics(path: str | Path) -> None:
    write_to_textfile(str(path), REGISTRY)
