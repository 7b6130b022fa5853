"""Pytest configuration and fixtures."""

import asyncio
from typing import Callable, List, Optional

import httpx
import pytest

from upgrade_advisor.config import Settings
from upgrade_advisor.schemas import AnalysisSubject, ModelDescriptor

# Every env alias Settings reads, so a developer's shell or .env never leaks into tests
SETTINGS_ENV_VARS = [field.alias for field in Settings.model_fields.values() if field.alias]


@pytest.fixture
def make_settings(monkeypatch) -> Callable[..., Settings]:
    """Build Settings from explicit env-style overrides only (no .env, no ambient env)."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    def _make(**overrides) -> Settings:
        return Settings(_env_file=None, **overrides)

    return _make


class SleepRecorder:
    """Stand-in for asyncio.sleep that records backoff delays instead of waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def mock_client():
    """httpx.AsyncClient whose requests are answered by `handler`; records every request."""
    clients = []

    def _make(handler) -> httpx.AsyncClient:
        seen: List[httpx.Request] = []

        async def _handle(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            result = handler(request)
            if asyncio.iscoroutine(result):
                result = await result
            return result

        client = httpx.AsyncClient(transport=httpx.MockTransport(_handle))
        client.requests = seen
        clients.append(client)
        return client

    return _make


@pytest.fixture
def subject() -> AnalysisSubject:
    return AnalysisSubject(
        name="Git",
        package_id="Git.Git",
        current_version="2.44.0",
        available_version="2.45.1",
    )


class FakeDiscovery:
    """Discovery backend returning canned models (or raising) and counting calls."""

    def __init__(self, settings: Settings, models: Optional[List[ModelDescriptor]] = None, error: Exception = None):
        self.settings = settings
        self.models = models or []
        self.error = error
        self.calls: List[str] = []

    async def list_foundation_models(self, region: str, cancel_event=None) -> List[ModelDescriptor]:
        self.calls.append(region)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return list(self.models)

    async def aclose(self) -> None:
        pass


@pytest.fixture
def fake_discovery(make_settings):
    def _make(models=None, error=None, settings=None) -> FakeDiscovery:
        return FakeDiscovery(settings or make_settings(), models, error)
    return _make


def model_summary(model_id: str, name: str, vendor: str, **extra) -> dict:
    """One entry of Bedrock's modelSummaries list."""
    summary = {
        "modelId": model_id,
        "modelName": name,
        "providerName": vendor,
        "inputModalities": ["TEXT"],
        "outputModalities": ["TEXT"],
        "responseStreamingSupported": True,
        "modelLifecycle": {"status": "ACTIVE"},
    }
    summary.update(extra)
    return summary
