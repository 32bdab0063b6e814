"""Static reference tables shared by the generator and the validator."""

from datetime import date, timedelta

from pydantic import BaseModel, ConfigDict, Field

from bankingtelemetry.utils.schemas import AppVersion, DeviceTier


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class App(_Frozen):
    id: str
    name: str
    countries: tuple[str, ...]
    is_branch_app: bool = False


class Locale(_Frozen):
    code: str
    weight: float
    name: str


class Country(_Frozen):
    code: str
    weight: float
    carriers: tuple[str, ...]
    locales: tuple[Locale, ...]


class Device(_Frozen):
    model: str
    tier: DeviceTier
    weight: float


class CrashGroup(_Frozen):
    id: str
    exception_type: str
    weight: float


# app_id -> release channel -> platform -> candidates
VersionCatalog = dict[str, dict[str, dict[str, tuple[AppVersion, ...]]]]


class ReferenceData(_Frozen):
    apps: tuple[App, ...]
    countries: tuple[Country, ...]
    valid_locales: tuple[str, ...]
    currencies: dict[str, str]
    default_currency: str = "USD"
    devices: dict[str, tuple[Device, ...]]
    fallback_version: AppVersion
    versions: VersionCatalog
    mobile_screens: tuple[str, ...]
    branch_screens: tuple[str, ...]
    api_endpoints: tuple[str, ...]
    branch_endpoints: tuple[str, ...]
    crash_groups: tuple[CrashGroup, ...]
    branch_events: tuple[str, ...]
    customer_events: tuple[str, ...]
    transaction_types: tuple[str, ...]
    account_types: tuple[str, ...]
    branch_areas: tuple[str, ...]
    branch_traces: tuple[str, ...]
    customer_traces: tuple[str, ...]

    def country(self, code: str) -> Country | None:
        return next((c for c in self.countries if c.code == code), None)

    def currency_for(self, country_code: str) -> str:
        return self.currencies.get(country_code, self.default_currency)

    def version_candidates(
        self, app_id: str, channel: str, platform: str
    ) -> tuple[AppVersion, ...]:
        return self.versions.get(app_id, {}).get(channel, {}).get(platform, ())

    def newest_release_date(self) -> date | None:
        dates = [
            v.release_date
            for channels in self.versions.values()
            for platforms in channels.values()
            for candidates in platforms.values()
            for v in candidates
        ]
        return max(dates) if dates else None

    def rebased(self, today: date) -> "ReferenceData":
        """Shift every catalog release date so the newest one falls on ``today - 1``.

        The fallback version keeps its date; it stands for an old, long-adopted build.
        """
        newest = self.newest_release_date()
        if newest is None:
            return self
        shift = (today - timedelta(days=1)) - newest

        versions = {
            app_id: {
                channel: {
                    platform: tuple(
                        v.model_copy(update={"release_date": v.release_date + shift})
                        for v in candidates
                    )
                    for platform, candidates in platforms.items()
                }
                for channel, platforms in channels.items()
            }
            for app_id, channels in self.versions.items()
        }
        return self.model_copy(update={"versions": versions})


class GeneratorSettings(_Frozen):
    """Run constants for one generation batch."""

    total_events_target: int = Field(45000, gt=0)
    date_range_days: int = Field(60, gt=0)
    analytics_ratio: float = 0.65
    performance_ratio: float = 0.30
    crash_ratio: float = 0.05
    sessions_per_day: int = Field(1200, gt=0)
    sessions_reference_target: int = Field(45000, gt=0)
    events_per_session_avg: float = 5.2
    rebase_release_dates: bool = True
    output_dir: str = "data"

    @property
    def base_sessions_per_day(self) -> int:
        return round(
            self.sessions_per_day * self.total_events_target / self.sessions_reference_target
        )

    @property
    def analytics_share(self) -> float:
        """Probability a non-crash event is analytics rather than performance."""
        return self.analytics_ratio / (self.analytics_ratio + self.performance_ratio)
