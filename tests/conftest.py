# mgnrega-ingest/tests/conftest.py
#
# Test bootstrap for pytest: put the repository root on sys.path so tests can
# import `mgnrega_ingest` without an editable install, route loguru to stderr,
# and provide shared fixtures (fake clock, sample payloads, mock upstream).
#
from __future__ import annotations

import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
from loguru import logger


_repo_root = Path(__file__).resolve().parents[1]
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

from mgnrega_ingest.config.loader import reload_config  # noqa: E402
from mgnrega_ingest.config.schemas import (  # noqa: E402
    PipelineConfig,
    StoreConfig,
    UpstreamConfig,
)


logger.remove()
logger.configure(extra={"stage": "-", "run_id": "-"})
logger.add(
    sys.stderr,
    level="INFO",
    format="{time:YYYY-MM-DD HH:mm:ss} {level} {name}: {message}",
)


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "fast: Fast unit tests that should complete in < 1 second",
    )
    config.addinivalue_line(
        "markers",
        "integration: Tests that wire several real components together",
    )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockUpstream:
    """Records every request and answers from a list of canned responses.

    Each response is either an httpx.Response, a dict (served as JSON 200) or
    an exception instance to raise. The last response repeats once the list
    is exhausted.
    """

    def __init__(self, responses: list[Any] | None = None):
        self.responses = list(responses or [{"records": []}])
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, text=json.dumps(response))

    @property
    def calls(self) -> int:
        return len(self.requests)

    def params(self, index: int = -1) -> dict[str, str]:
        return dict(self.requests[index].url.params)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def repo_root() -> Path:
    return _repo_root


@pytest.fixture
def config_dir(repo_root: Path) -> Path:
    return repo_root / "config"


@pytest.fixture(autouse=True)
def _fresh_config():
    """Each test sees configuration loaded from scratch."""
    reload_config()
    yield
    reload_config()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_upstream_factory() -> Callable[..., MockUpstream]:
    return MockUpstream


@pytest.fixture
def upstream_config() -> UpstreamConfig:
    """Upstream settings with a key and no backoff delay."""
    return UpstreamConfig(
        api_key="test-key",  # pragma: allowlist secret
        max_retries=2,
        retry_backoff_seconds=0,
    )


@pytest.fixture
def pipeline_config(upstream_config: UpstreamConfig) -> PipelineConfig:
    return PipelineConfig(
        upstream=upstream_config,
        store=StoreConfig(enabled=True, database_path=":memory:"),
    )


@pytest.fixture
def up_entries() -> list[dict[str, Any]]:
    """Two Uttar Pradesh rows using upstream (not canonical) field names."""
    return [
        {
            "fin_year": "2024-2025",
            "month": "Dec",
            "state_name": "UTTAR PRADESH",
            "district_name": "AGRA",
            "Total_Households_Worked": "1,23,456",
            "Persondays_of_Central_Liability_so_far": "2,500,000",
            "Women_Persondays": "1,000,000",
            "Number_of_Ongoing_Works": "3,210",
            "Number_of_Completed_Works": "1,045",
            "Average_Wage_rate_per_day_per_person": "237.5",
            "Wages": "59,375.25",
        },
        {
            "fin_year": "2024-2025",
            "month": "Nov",
            "state_name": "UTTAR PRADESH",
            "district_name": "ALIGARH",
            "Total_Households_Worked": "98,765",
            "Total_Persondays_Generated": "1,800,000",
            "Women_Persondays_Percent": "41.2",
            "Ongoing_Works": "2,001",
            "Completed_Works": "998",
            "Average_Wage_Rate": "236",
        },
    ]


@pytest.fixture
def up_payload(up_entries: list[dict[str, Any]]) -> dict[str, Any]:
    return {"records": up_entries, "total": len(up_entries), "count": len(up_entries)}
