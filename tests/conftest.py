"""Shared fixtures: a fixed calendar day, seeded RNGs, and small run settings."""

import random
from datetime import date

import pytest

from bankingtelemetry.utils.config import get_generator_settings, get_reference_data

# A Monday; the catalog's newest release is rebased onto the day before.
TODAY = date(2025, 7, 21)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def settings():
    return get_generator_settings(total_events_target=2000, date_range_days=21)


@pytest.fixture
def reference(settings):
    return get_reference_data(settings, TODAY)
