"""Centralized configuration loader for the telemetry synthesizer."""

import os
from datetime import date, datetime, timezone
from pathlib import Path
from functools import lru_cache

import yaml

from bankingtelemetry.utils.reference import GeneratorSettings, ReferenceData


CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


@lru_cache(maxsize=1)
def load_config(config_path: str | None = None) -> dict:
    """Load generator configuration and reference tables from YAML."""
    path = Path(config_path) if config_path else CONFIG_DIR / "generator.yml"
    with open(path) as f:
        config = yaml.safe_load(f)

    # Allow environment variable overrides
    overrides = {
        "generator.total_events_target": os.getenv("TELEMETRY_TOTAL_EVENTS"),
        "generator.date_range_days": os.getenv("TELEMETRY_DATE_RANGE_DAYS"),
        "generator.output_dir": os.getenv("TELEMETRY_OUTPUT_DIR"),
    }
    for dotted_key, value in overrides.items():
        if value is not None:
            keys = dotted_key.split(".")
            d = config
            for k in keys[:-1]:
                d = d[k]
            if value.isdigit():
                d[keys[-1]] = int(value)
            else:
                d[keys[-1]] = value

    return config


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def get_generator_settings(**overrides) -> GeneratorSettings:
    """Generator run constants, with keyword overrides applied on top of the file."""
    cfg = {**load_config()["generator"]}
    cfg.update({k: v for k, v in overrides.items() if v is not None})
    return GeneratorSettings.model_validate(cfg)


def get_reference_data(
    settings: GeneratorSettings | None = None, today: date | None = None
) -> ReferenceData:
    """Reference tables, with release dates rebased onto ``today`` when configured."""
    reference = _load_reference_data()
    settings = settings or get_generator_settings()
    if settings.rebase_release_dates:
        return reference.rebased(today or utc_today())
    return reference


@lru_cache(maxsize=1)
def _load_reference_data() -> ReferenceData:
    return ReferenceData.model_validate(load_config()["reference"])
