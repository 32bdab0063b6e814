"""Telemetry record schemas shared by generation, rollups and validation."""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_serializer
import uuid as _uuid


class Source(str, Enum):
    ANALYTICS = "analytics"
    PERFORMANCE = "performance"
    CRASH = "crash"


class Platform(str, Enum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


class ReleaseChannel(str, Enum):
    DEV = "dev"
    UAT = "uat"
    PILOT = "pilot"
    PROD = "prod"


class DeviceTier(str, Enum):
    LOW = "low"
    MID = "mid"
    HIGH = "high"


class NetworkType(str, Enum):
    WIFI = "wifi"
    CELLULAR = "cellular"
    OFFLINE = "offline"


class PerfType(str, Enum):
    HTTP = "http"
    SCREEN = "screen"
    TRACE = "trace"
    APP_START = "app_start"


class CrashType(str, Enum):
    FATAL = "fatal"
    NONFATAL = "nonfatal"
    ANR = "anr"


class AppVersion(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str
    build_number: str
    release_date: date

    def days_since_release(self, current_date: date) -> int:
        return (current_date - self.release_date).days


# ── Event payloads (one per source) ──────────────────────────────────


class AnalyticsPayload(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    source: Literal["analytics"] = "analytics"
    event_name: str
    analytics_event: str
    screen: str
    transaction_type: Optional[str] = None
    value_num: Optional[int] = None
    currency: Optional[str] = None
    account_type: Optional[str] = None
    branch_code: Optional[str] = None


class PerformancePayload(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    source: Literal["performance"] = "performance"
    event_name: str
    perf_type: PerfType
    duration_ms: int
    success: bool = True
    # http
    http_method: Optional[str] = None
    url_path: Optional[str] = None
    status_code: Optional[int] = None
    ttfb_ms: Optional[int] = None
    payload_bytes: Optional[int] = None
    # http / screen
    screen: Optional[str] = None
    # screen
    fps_avg: Optional[int] = None
    # trace
    trace_name: Optional[str] = None
    cpu_ms: Optional[int] = None
    memory_mb: Optional[int] = None


class CrashPayload(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    source: Literal["crash"] = "crash"
    event_name: str = "crash"
    crash_type: CrashType
    exception_type: str
    crash_group_id: str
    is_fatal: Literal[0, 1]
    foreground: bool


EventPayload = Annotated[
    Union[AnalyticsPayload, PerformancePayload, CrashPayload],
    Field(discriminator="source"),
]


class RawEvent(BaseModel):
    """One simulated telemetry record.

    Shared session context lives on the event itself; the source-specific
    fields live in ``payload``. ``to_record`` flattens both into the
    serialized form, omitting every field the payload does not carry.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    id: str = Field(default_factory=lambda: f"evt_{_uuid.uuid4()}")
    timestamp: datetime
    day: str
    hour: int = Field(ge=0, le=23)
    app_id: str
    app_name: str
    platform: Platform
    release_channel: ReleaseChannel
    app_version: str
    build_number: str
    os_version: str
    device_model: str
    device_tier: DeviceTier
    country: str
    locale: str
    network_type: NetworkType
    carrier: Optional[str] = None
    session_id: str
    user_pseudo_id: str
    payload: EventPayload

    @computed_field
    @property
    def source(self) -> str:
        return self.payload.source

    @computed_field
    @property
    def count(self) -> int:
        return 1

    @computed_field
    @property
    def is_crash(self) -> int:
        return 1 if self.payload.source == Source.CRASH.value else 0

    @field_serializer("timestamp")
    def _serialize_timestamp(self, ts: datetime) -> str:
        return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def to_record(self) -> dict[str, Any]:
        record = self.model_dump(mode="json", exclude={"payload"}, exclude_none=True)
        record.update(self.payload.model_dump(mode="json", exclude_none=True))
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "RawEvent":
        derived = set(cls.model_computed_fields) - {"source"}
        context_fields = set(cls.model_fields) - {"payload"}
        context = {k: v for k, v in record.items() if k in context_fields}
        payload = {
            k: v
            for k, v in record.items()
            if k not in context_fields and k not in derived
        }
        return cls.model_validate({**context, "payload": payload})


class DailyRollup(BaseModel):
    """One aggregate row keyed by the nine rollup dimensions."""

    day: str
    source: str
    platform: str
    app_id: str
    app_version: str
    release_channel: str
    country: str
    device_tier: str
    event_group: str
    events_count: int
    users_count: int
    sessions_count: int
    avg_duration_ms: Optional[int] = None
    p50_duration_ms: Optional[int] = None
    p90_duration_ms: Optional[int] = None
    p99_duration_ms: Optional[int] = None
    http_error_rate: Optional[float] = None
    crash_rate_per_1k_sessions: Optional[float] = None
    revenue_usd: float = 0
    purchase_count: int = 0

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ValidationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_valid: bool = Field(True, alias="isValid")
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    stats: dict[str, Any] = Field(default_factory=dict)

    def error(self, message: str) -> None:
        self.errors.append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def finalize(self) -> "ValidationResult":
        self.is_valid = not self.errors
        return self

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
