"""
HTTP surface tests over the mock LLM client.
"""
import pytest
from fastapi.testclient import TestClient

from mitr import __version__
from mitr.api import create_app
from mitr.config import CRISIS_RESOURCES
from mitr.errors import ModelCallError
from mitr.pipeline.orchestrator import MitrOrchestrator
from mitr.pipeline.testing import MockLLMClient


def make_client(mock_responses):
    return TestClient(create_app(orchestrator=MitrOrchestrator(MockLLMClient(mock_responses))))


@pytest.fixture
def client(mock_responses):
    return make_client(mock_responses)


def test_health_returns_200(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": "mitr", "version": __version__}


def test_fast_returns_camel_case_response(client):
    resp = client.post("/v1/fast", json={"userMessage": "Hi there"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["response"] == "I'm here with you. What's been on your mind?"
    assert data["safetyAssessment"]["riskLevel"] == "low"
    assert data["requiresImmediateAlert"] is False
    assert "dataQuality" in data["metadata"]


def test_comprehensive_returns_merged_response(client):
    resp = client.post("/v1/comprehensive", json={"userMessage": "Work is stressing me out"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["emotionAnalysis"]["primary"] == "anxious"
    assert data["contextualInsights"]["therapeuticIntent"] == "anxiety_management"
    assert data["healthAnalysis"]["wellnessScore"] == 75


def test_missing_field_is_422(client):
    resp = client.post("/v1/comprehensive", json={"conversationHistory": []})
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"
    assert resp.json()["field"] == "userMessage"


def test_non_object_body_is_422(client):
    resp = client.post("/v1/fast", json="hello")
    assert resp.status_code == 422
    assert resp.json()["field"] == "(root)"


def test_critical_failure_is_503_with_resources(mock_responses):
    mock_responses["safety_assessment"] = ModelCallError("timeout")
    client = make_client(mock_responses)

    resp = client.post("/v1/comprehensive", json={"userMessage": "I want to end my life"})

    assert resp.status_code == 503
    data = resp.json()
    assert data["stage"] == "safety_assessment"
    assert data["crisisResources"] == CRISIS_RESOURCES
    assert data["crisisScreen"]["riskFloor"] == "critical"


def test_critical_failure_without_crisis_language_has_no_resources(mock_responses):
    mock_responses["therapeutic_response"] = ModelCallError("timeout")
    client = make_client(mock_responses)

    resp = client.post("/v1/comprehensive", json={"userMessage": "Long week"})

    assert resp.status_code == 503
    assert resp.json()["stage"] == "response_generation"
    assert resp.json()["crisisResources"] == []


def test_single_purpose_failure_is_502(mock_responses):
    mock_responses["wearables_analysis"] = ModelCallError("timeout")
    client = make_client(mock_responses)

    resp = client.post("/v1/wearables", json={"timestamp": "2024-05-01T10:00:00Z"})

    assert resp.status_code == 502
    assert resp.json()["error"] == "model_call_error"


def test_emotions_route(client):
    resp = client.post("/v1/emotions", json={"textContent": "I'm nervous"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["fusedEmotions"]["primary"] == "anxious"
    assert "facialEmotions" not in data


def test_emotions_route_survives_failed_modality(mock_responses):
    mock_responses["text_emotion"] = ModelCallError("timeout")
    client = make_client(mock_responses)

    resp = client.post("/v1/emotions", json={"textContent": "I feel off today"})

    assert resp.status_code == 200
    assert resp.json()["fusedEmotions"]["primary"] == "neutral"


def test_context_route(client):
    resp = client.post("/v1/context", json={"currentMessage": "I keep having panic attacks"})
    assert resp.status_code == 200
    assert resp.json()["knowledgeBaseMatches"][0]["topic"] == "Anxiety Management"


def test_avatar_route(client):
    resp = client.post("/v1/avatar", json={"prompt": "a calm face"})
    assert resp.status_code == 200
    assert resp.json()["imageDataUri"].startswith("data:image/png")


def test_sentiment_route(client):
    resp = client.post("/v1/sentiment", json={"text": "I'm so anxious and worried"})
    assert resp.status_code == 200
    data = resp.json()
    assert set(data) == {"primary", "confidence", "distress_level", "wellness_score", "stress_level", "alliance"}


def test_metrics_count_requests(client):
    client.post("/v1/fast", json={"userMessage": "hello"})
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert resp.json()["requests_completed"] == 1
