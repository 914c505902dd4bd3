"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Sample farm boundaries
- Sample Sentinel Hub responses
- Mock Sentinel Hub client
- FastAPI test client
"""
import os

# Retries must not sleep and the rate limit must not trip during tests
os.environ.setdefault("RETRY_MIN_WAIT", "0")
os.environ.setdefault("RETRY_MAX_WAIT", "0")
os.environ.setdefault("RATE_LIMIT_REQUESTS", "100000")

import pytest
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from agripay.main import app
from agripay.domain.models import Point
from agripay.infrastructure.sentinel_hub_client import SentinelHubClient


# ============================================================
# Sample Data Fixtures
# ============================================================

@pytest.fixture
def sample_points() -> list[Point]:
    """A rectangular farm boundary, not closed."""
    return [
        Point(lat=30.1201, lng=72.4501),
        Point(lat=30.1201, lng=72.4562),
        Point(lat=30.1248, lng=72.4562),
        Point(lat=30.1248, lng=72.4501),
    ]


@pytest.fixture
def sample_points_payload(sample_points) -> list[dict]:
    return [p.model_dump() for p in sample_points]


@pytest.fixture
def sample_catalog_response() -> dict:
    """Catalog search response with two scenes on the same day."""
    return {
        "type": "FeatureCollection",
        "features": [
            {"properties": {"datetime": "2026-09-10T05:56:21Z", "eo:cloud_cover": 42.37}},
            {"properties": {"datetime": "2026-09-10T05:56:35Z", "eo:cloud_cover": 12.04}},
            {"properties": {"datetime": "2026-09-15T05:56:19Z", "eo:cloud_cover": 3.0}},
            {"properties": {"datetime": "2026-09-05T05:56:19Z"}},
        ],
    }


def make_interval(output_id: str, start: str, mean, percentiles=None) -> dict:
    """One Statistical API interval for a single output."""
    return {
        "interval": {"from": start, "to": start.replace("T00:00:00Z", "T23:59:59Z")},
        "outputs": {
            output_id: {
                "bands": {
                    "B0": {
                        "stats": {
                            "min": 0.1,
                            "max": 0.9,
                            "mean": mean,
                            "stDev": 0.05,
                            "percentiles": percentiles or {"p25": 0.4, "p50": 0.5, "p75": 0.6},
                        }
                    }
                }
            }
        },
    }


@pytest.fixture
def statistics_response_factory():
    """Build a Statistical API response with one interval per (start, mean)."""
    def factory(output_id: str, intervals: list[tuple[str, float]]) -> dict:
        return {
            "data": [make_interval(output_id, start, mean) for start, mean in intervals],
            "status": "OK",
        }
    return factory


# ============================================================
# Mock API Client Fixtures
# ============================================================

@pytest.fixture
def mock_sentinel_client() -> AsyncMock:
    """A configured Sentinel Hub client with no network access."""
    mock_client = AsyncMock(spec=SentinelHubClient)
    mock_client.ensure_configured.return_value = None
    return mock_client


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client() -> TestClient:
    """Create a synchronous test client for FastAPI."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    yield
    app.dependency_overrides.clear()
