"""Banking session generator — simulates sessions and assembles the raw event corpus."""

import random
import uuid
from dataclasses import dataclass
from datetime import date

from bankingtelemetry.ingestion.behavior import (
    choose_version,
    generate_timestamp,
    session_date,
    should_crash,
)
from bankingtelemetry.ingestion.payloads import PayloadFactory
from bankingtelemetry.ingestion.sampling import random_choice, uniform, weighted_choice
from bankingtelemetry.monitoring.metrics import EVENTS_GENERATED, SESSIONS_GENERATED
from bankingtelemetry.utils.config import utc_today
from bankingtelemetry.utils.logging import setup_logging
from bankingtelemetry.utils.reference import App, GeneratorSettings, ReferenceData
from bankingtelemetry.utils.schemas import AppVersion, RawEvent

logger = setup_logging("session-generator")

PLATFORMS = ["ios", "android", "web"]

BRANCH_SESSION_RATE = 0.15
BRANCH_WEB_RATE = 0.8
TRANSACTION_SESSION_RATE = 0.3
WEEKEND_FACTOR = 0.3
MIN_EVENTS_PER_SESSION = 2


@dataclass(frozen=True)
class SessionContext:
    """Context shared by every event of one session."""

    session_id: str
    user_pseudo_id: str
    country: str
    locale: str
    is_branch: bool
    app: App
    platform: str
    device_model: str
    device_tier: str
    release_channel: str
    version: AppVersion
    network_type: str
    carrier: str | None
    os_version: str
    current_date: date


class SessionGenerator:
    """Generates banking app sessions with configurable distributions."""

    def __init__(
        self,
        settings: GeneratorSettings,
        reference: ReferenceData,
        rng: random.Random | None = None,
        today: date | None = None,
    ):
        self.settings = settings
        self.reference = reference
        self.rng = rng or random.Random()
        self.today = today or utc_today()
        self.payloads = PayloadFactory(reference, self.rng)

    # ── Session context ──────────────────────────────────────────────

    def choose_release_channel(self) -> str:
        """Nested gates: prod 0.7, then pilot 0.6, uat 0.5, else dev."""
        rng = self.rng
        if rng.random() < 0.7:
            return "prod"
        if rng.random() < 0.6:
            return "pilot"
        if rng.random() < 0.5:
            return "uat"
        return "dev"

    def choose_network_type(self) -> str:
        rng = self.rng
        if rng.random() < 0.4:
            return "wifi"
        if rng.random() < 0.9:
            return "cellular"
        return "offline"

    def os_version_for(self, platform: str) -> str:
        rng = self.rng
        if platform == "ios":
            return f"iOS {16 + int(rng.random() * 2)}.{int(rng.random() * 6)}"
        if platform == "android":
            return f"Android {11 + int(rng.random() * 3)}"
        return "Web"

    def build_context(self, day_offset: int) -> SessionContext | None:
        """Draw the shared session context, or None if no app serves the draw."""
        ref, rng = self.reference, self.rng
        current_date = session_date(day_offset, self.today)

        country = weighted_choice(ref.countries, rng=rng)
        locale = weighted_choice(country.locales, rng=rng)

        is_branch = rng.random() < BRANCH_SESSION_RATE
        apps = [
            a
            for a in ref.apps
            if country.code in a.countries and a.is_branch_app == is_branch
        ]
        if not apps:
            return None

        app = random_choice(apps, rng)
        if is_branch and rng.random() < BRANCH_WEB_RATE:
            platform = "web"
        else:
            platform = random_choice(PLATFORMS, rng)
        device = weighted_choice(ref.devices[platform], rng=rng)

        channel = self.choose_release_channel()
        version = choose_version(ref, app.id, platform, channel, current_date, rng)

        network_type = self.choose_network_type()
        carrier = random_choice(country.carriers, rng) if network_type == "cellular" else None

        role = "staff" if is_branch else "customer"
        return SessionContext(
            session_id=f"s_banking_{rng.getrandbits(48):012x}",
            user_pseudo_id=f"u_{country.code.lower()}_{role}_{int(rng.random() * 10000)}",
            country=country.code,
            locale=locale.code,
            is_branch=is_branch,
            app=app,
            platform=platform,
            device_model=device.model,
            device_tier=device.tier.value,
            release_channel=channel,
            version=version,
            network_type=network_type,
            carrier=carrier,
            os_version=self.os_version_for(platform),
            current_date=current_date,
        )

    # ── Events ───────────────────────────────────────────────────────

    def event_count(self) -> int:
        avg = self.settings.events_per_session_avg
        return max(MIN_EVENTS_PER_SESSION, round(avg + uniform(-2, 2, self.rng)))

    def generate_session(self, day_offset: int) -> list[RawEvent]:
        session = self.build_context(day_offset)
        if session is None:
            SESSIONS_GENERATED.labels(outcome="abandoned").inc()
            logger.debug("session_abandoned", day_offset=day_offset)
            return []

        count = self.event_count()
        has_transaction = not session.is_branch and self.rng.random() < TRANSACTION_SESSION_RATE
        events = [
            self.generate_event(session, day_offset, has_transaction and i == count - 1)
            for i in range(count)
        ]
        SESSIONS_GENERATED.labels(outcome="completed").inc()
        return events

    def generate_event(
        self, session: SessionContext, day_offset: int, force_transaction: bool = False
    ) -> RawEvent:
        rng = self.rng
        event_time = generate_timestamp(day_offset, rng, self.today)

        if should_crash(
            session.version,
            session.device_tier,
            session.release_channel,
            session.current_date,
            rng,
        ):
            payload = self.payloads.crash(session)
        elif rng.random() < self.settings.analytics_share:
            payload = self.payloads.analytics(session, force_transaction)
        else:
            payload = self.payloads.performance(session)

        EVENTS_GENERATED.labels(source=payload.source).inc()
        return RawEvent(
            id=f"evt_{uuid.UUID(int=rng.getrandbits(128), version=4)}",
            timestamp=event_time.timestamp,
            day=event_time.day,
            hour=event_time.hour,
            app_id=session.app.id,
            app_name=session.app.name,
            platform=session.platform,
            release_channel=session.release_channel,
            app_version=session.version.version,
            build_number=session.version.build_number,
            os_version=session.os_version,
            device_model=session.device_model,
            device_tier=session.device_tier,
            country=session.country,
            locale=session.locale,
            network_type=session.network_type,
            carrier=session.carrier,
            session_id=session.session_id,
            user_pseudo_id=session.user_pseudo_id,
            payload=payload,
        )

    # ── Corpus ───────────────────────────────────────────────────────

    def daily_session_count(self, day_offset: int) -> int:
        weekday = session_date(day_offset, self.today).weekday()
        weekend_factor = WEEKEND_FACTOR if weekday in (5, 6) else 1.0
        return round(
            self.settings.base_sessions_per_day * weekend_factor * uniform(0.8, 1.2, self.rng)
        )

    def generate_corpus(self) -> list[RawEvent]:
        """All sessions over the date window, shuffled and truncated to the target."""
        events: list[RawEvent] = []
        for day_offset in range(self.settings.date_range_days - 1, -1, -1):
            for _ in range(self.daily_session_count(day_offset)):
                events.extend(self.generate_session(day_offset))

        self.shuffle(events)
        logger.info(
            "corpus_generated",
            generated=len(events),
            target=self.settings.total_events_target,
            days=self.settings.date_range_days,
        )
        return events[: self.settings.total_events_target]

    def shuffle(self, events: list) -> None:
        """In-place Fisher-Yates permutation."""
        for i in range(len(events) - 1, 0, -1):
            j = int(self.rng.random() * (i + 1))
            events[i], events[j] = events[j], events[i]
