"""Shared fixtures for journeyflow tests."""

from __future__ import annotations

import pytest

from journeyflow.config import JourneyConfig
from tests.helpers import make_config


@pytest.fixture
def config() -> JourneyConfig:
    return make_config()
