import pytest

from mitr.infrastructure.data.cache import AnalysisCache
from mitr.pipeline.orchestrator import MitrOrchestrator
from mitr.pipeline.testing import MockLLMClient, create_mock_responses


@pytest.fixture
def mock_responses():
    return create_mock_responses()


@pytest.fixture
def mock_client(mock_responses):
    return MockLLMClient(mock_responses)


@pytest.fixture
def orchestrator(mock_client):
    return MitrOrchestrator(mock_client)


@pytest.fixture
def cached_orchestrator(mock_client):
    return MitrOrchestrator(mock_client, analysis_cache=AnalysisCache())
