# ABOUTME: Shared pytest fixtures for bibgate tests.
# ABOUTME: Provides the test translator catalog, canned pages, a fake runner, and a test client.

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from bibgate.config import GatewayConfig
from bibgate.http import HttpFetcher
from bibgate.server import create_app
from bibgate.services import GatewayServices
from bibgate.translators import TranslatorRegistry, load_catalog
from tests.fixtures import pages
from tests.fixtures.runner import FakeTranslationRunner

TEST_MAX_RESPONSE_SIZE = 1024


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def translators_dir(fixtures_dir: Path) -> Path:
    """Directory holding the test translator sources."""
    return fixtures_dir / "translators"


@pytest.fixture
def registry(translators_dir: Path) -> TranslatorRegistry:
    """Registry loaded with the test translators and no remote feed."""
    registry = TranslatorRegistry()
    registry.init(load_catalog(translators_dir))
    return registry


@pytest.fixture
def fetcher() -> HttpFetcher:
    """Fetcher serving the canned test pages."""
    return HttpFetcher(
        transport=pages.transport(), max_response_size=TEST_MAX_RESPONSE_SIZE
    )


@pytest.fixture
def fake_runner() -> FakeTranslationRunner:
    return FakeTranslationRunner()


@pytest.fixture
def gateway_config(translators_dir: Path) -> GatewayConfig:
    return GatewayConfig(
        translators_dir=translators_dir,
        max_response_size=TEST_MAX_RESPONSE_SIZE,
    )


@pytest.fixture
def services(
    gateway_config: GatewayConfig,
    registry: TranslatorRegistry,
    fetcher: HttpFetcher,
    fake_runner: FakeTranslationRunner,
) -> GatewayServices:
    return GatewayServices.from_config(
        gateway_config, registry=registry, fetcher=fetcher, runner=fake_runner
    )


@pytest.fixture
def client(services: GatewayServices) -> Iterator[TestClient]:
    """Test client kept open across requests so suspended sessions survive."""
    with TestClient(create_app(services=services)) as client:
        yield client
