from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from backend.app.core import config
from backend.app.core.config import Settings
from backend.app.main import create_app
from backend.app.schemas.verify import AssessmentResult

TEST_API_KEY = "test-api-key-12345"


class FakeClock:
    """Manually advanced replacement for ``time.monotonic``."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAssessor:
    def __init__(
        self,
        result: AssessmentResult | None = None,
        error: Exception | None = None,
    ) -> None:
        self.result = result or AssessmentResult(valid=True, score=0.9, action="login")
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    async def assess(self, token: str, action: str | None = None) -> AssessmentResult:
        self.calls.append((token, action))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


@pytest.fixture()
def build_settings() -> Callable[..., Settings]:
    def _build(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "APP_API_KEY": TEST_API_KEY,
            "GOOGLE_RECAPTCHA_API_KEY": "google-api-key",
            "GOOGLE_RECAPTCHA_PROJECT_ID": "demo-project",
            "GOOGLE_RECAPTCHA_SITE_KEY": "site-key",
            "RATE_LIMIT_REQUESTS": 3,
            "RATE_LIMIT_WINDOW_SECONDS": 60,
            "VERSION": "1.0.0-test",
        }
        values.update(overrides)
        version = values.pop("VERSION")
        return Settings(_env_file=None, version=version, **values)

    return _build


@pytest.fixture()
def settings(build_settings: Callable[..., Settings]) -> Settings:
    return build_settings()


@pytest.fixture()
def fake_assessor() -> FakeAssessor:
    return FakeAssessor()


@pytest.fixture()
def test_client(
    settings: Settings,
    fake_assessor: FakeAssessor,
) -> Generator[TestClient, None, None]:
    app = create_app(settings)
    with TestClient(app) as client:
        app.state.recaptcha_service = fake_assessor
        yield client
