"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any settings import so every test
runs against the in-memory store.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["STORE_BACKEND"] = "memory"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")

from typing import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ratings_api.adapters.store import InMemoryAggregateStore
from ratings_api.core.app_factory import create_app
from ratings_api.core.config import AppSettings, Settings
from ratings_api.core.rate_limit import RateAdmission


class FakeClock:
    """Deterministic clock returning UNIX seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryAggregateStore:
    """Store preloaded with two companies."""
    return InMemoryAggregateStore(
        {
            "Acme": {"worthItCount": 2, "generalRating": 4.0, "generalRatingCount": 1},
            "Globex": {"displayName": "Globex Corp."},
        }
    )


@pytest.fixture
def app_settings() -> Settings:
    return Settings(app=AppSettings(rate_limit_enabled=True))


@pytest.fixture
def app(app_settings: Settings, store: InMemoryAggregateStore, fake_clock: FakeClock) -> FastAPI:
    admission = RateAdmission.from_settings(app_settings.app, clock=fake_clock)
    return create_app(app_settings, store=store, rate_admission=admission)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
