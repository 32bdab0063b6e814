"""Generation pipeline entry point: generate, roll up, validate, write artifacts."""

import random
import sys
from dataclasses import dataclass
from datetime import date
from typing import Any

import click

from bankingtelemetry.batch.rollups import generate_daily_rollups
from bankingtelemetry.ingestion.generator import SessionGenerator
from bankingtelemetry.monitoring.metrics import record_run, write_metrics
from bankingtelemetry.storage.artifacts import ArtifactStore, to_records
from bankingtelemetry.utils.config import get_generator_settings, get_reference_data, utc_today
from bankingtelemetry.utils.logging import setup_logging
from bankingtelemetry.utils.reference import GeneratorSettings, ReferenceData
from bankingtelemetry.utils.schemas import DailyRollup, ValidationResult
from bankingtelemetry.validation.validator import log_summary, validate_generated_data

logger = setup_logging("telemetry-pipeline")


@dataclass
class PipelineRun:
    records: list[dict[str, Any]]
    rollups: list[DailyRollup]
    result: ValidationResult


def run_pipeline(
    settings: GeneratorSettings,
    reference: ReferenceData,
    rng: random.Random | None = None,
    today: date | None = None,
) -> PipelineRun:
    """Generate the corpus, roll it up, and validate both. No I/O."""
    generator = SessionGenerator(settings, reference, rng=rng, today=today)
    records = to_records(generator.generate_corpus())
    rollups = generate_daily_rollups(records)
    result = validate_generated_data(records, rollups, settings, reference)
    return PipelineRun(records, rollups, result)


@click.group()
def cli():
    """Banking app telemetry synthesizer."""


@cli.command()
@click.option("--events", type=int, default=None, help="Total raw events to keep")
@click.option("--days", type=int, default=None, help="Days of history to simulate")
@click.option("--output-dir", default=None, help="Directory for the JSON artifacts")
@click.option("--seed", type=int, default=None, help="RNG seed for a reproducible run")
@click.option("--metrics-file", default=None, help="Write Prometheus textfile metrics here")
def generate(events, days, output_dir, seed, metrics_file):
    """Generate raw events and rollups, then validate them."""
    settings = get_generator_settings(
        total_events_target=events, date_range_days=days, output_dir=output_dir
    )
    today = utc_today()
    reference = get_reference_data(settings, today)
    logger.info(
        "generation_started",
        target=settings.total_events_target,
        days=settings.date_range_days,
        seed=seed,
    )

    run = run_pipeline(settings, reference, rng=random.Random(seed), today=today)

    store = ArtifactStore(settings.output_dir)
    store.write_raw_events(run.records)
    store.write_rollups(run.rollups)
    store.write_report(run.result)
    log_summary(run.result, run.records, run.rollups)

    if metrics_file:
        record_run(
            len(run.records), len(run.rollups), len(run.result.errors), len(run.result.warnings)
        )
        write_metrics(metrics_file)

    _exit_on_failure(run.result)
    logger.info("generation_complete", output_dir=settings.output_dir)


@cli.command()
@click.option("--input-dir", default=None, help="Directory holding previously written artifacts")
def validate(input_dir):
    """Re-validate artifacts from a previous run and rewrite the report."""
    settings = get_generator_settings(output_dir=input_dir)
    store = ArtifactStore(settings.output_dir)
    records = store.read_raw_events()
    rollups = store.read_rollups()
    reference = get_reference_data(settings)

    result = validate_generated_data(records, rollups, settings, reference)
    store.write_report(result)
    log_summary(result, records, rollups)
    _exit_on_failure(result)


def _exit_on_failure(result: ValidationResult) -> None:
    if not result.is_valid:
        logger.error("data_validation_failed", errors=len(result.errors))
        sys.exit(1)
    logger.info("data_validation_passed", warnings=len(result.warnings))


if __name__ == "__main__":
    cli()
