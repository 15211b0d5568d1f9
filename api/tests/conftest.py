"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Tokens from a developer's shell or .env must not leak into tests.
_ENV_KEYS = (
    "GITHUB_TOKEN",
    "GH_TOKEN",
    "GITHUB_USERNAME",
    "NETLIFY_TOKEN",
    "VERCEL_TOKEN",
    "RENDER_TOKEN",
    "LOG_FILE",
    "ONLY_SAVE_LINKS",
)


@pytest.fixture(autouse=True)
def _clean_env() -> None:
    for key in _ENV_KEYS:
        os.environ.pop(key, None)


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
