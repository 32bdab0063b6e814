"""Artifact storage for the generated JSON documents."""

import json
from pathlib import Path
from typing import Any

from bankingtelemetry.utils.logging import setup_logging
from bankingtelemetry.utils.schemas import DailyRollup, RawEvent, ValidationResult

logger = setup_logging("artifact-store")

RAW_EVENTS_FILE = "raw_events.json"
DAILY_ROLLUPS_FILE = "daily_rollups.json"
VALIDATION_REPORT_FILE = "validation_report.json"


class ArtifactError(Exception):
    """Raised when a stored artifact cannot be read back."""


class ArtifactStore:
    """Manages the output directory holding the three run artifacts."""

    def __init__(self, output_dir: str | Path):
        self.output_dir = Path(output_dir)

    def path(self, name: str) -> Path:
        return self.output_dir / name

    def _write(self, name: str, document: Any) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.path(name)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
        logger.info("artifact_written", path=str(path))
        return path

    def _read(self, name: str) -> Any:
        path = self.path(name)
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ArtifactError(f"cannot read {path}: {e}") from e

    def write_raw_events(self, records: list[dict[str, Any]]) -> Path:
        return self._write(RAW_EVENTS_FILE, records)

    def write_rollups(self, rollups: list[DailyRollup]) -> Path:
        return self._write(DAILY_ROLLUPS_FILE, [r.to_record() for r in rollups])

    def write_report(self, result: ValidationResult) -> Path:
        return self._write(VALIDATION_REPORT_FILE, result.to_record())

    def read_raw_events(self) -> list[dict[str, Any]]:
        records = self._read(RAW_EVENTS_FILE)
        if not isinstance(records, list):
            raise ArtifactError(f"{RAW_EVENTS_FILE} must hold a JSON array")
        return records

    def read_rollups(self) -> list[DailyRollup]:
        rows = self._read(DAILY_ROLLUPS_FILE)
        if not isinstance(rows, list):
            raise ArtifactError(f"{DAILY_ROLLUPS_FILE} must hold a JSON array")
        return [DailyRollup.model_validate(row) for row in rows]


def to_records(events: list[RawEvent]) -> list[dict[str, Any]]:
    return [event.to_record() for event in events]
