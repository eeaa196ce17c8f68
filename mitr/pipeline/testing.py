"""
Testing infrastructure: a mock LLM client and sample data for the pipeline.
"""
import copy
from typing import Any, Dict, List, Optional

from ..errors import ModelCallError
from .models import RiskLevel
from .schemas import ConversationTurn, TherapeuticResponse


class MockLLMClient:
    """
    Mock LLM client for testing.

    Responses are routed by prompt name. A value may be a dict (returned
    every time), a list (consumed in order, the last item repeating) or an
    exception instance (raised).
    """

    def __init__(self, mock_responses: Optional[Dict[str, Any]] = None):
        self.mock_responses = dict(mock_responses or {})
        self.request_history: List[Dict[str, Any]] = []

    def _next(self, name: str) -> Any:
        if name not in self.mock_responses:
            raise ModelCallError(f"No mock response configured for {name}")
        value = self.mock_responses[name]
        if isinstance(value, list):
            value = value.pop(0) if len(value) > 1 else value[0]
        if isinstance(value, BaseException):
            raise value
        return copy.deepcopy(value)

    def _record(self, name: str, prompt: str, **kwargs) -> None:
        self.request_history.append({"name": name, "prompt": prompt, **kwargs})

    async def agenerate_json(self, prompt: str, images: Optional[List[str]] = None,
                             temperature: Optional[float] = None, name: str = "json") -> Dict[str, Any]:
        self._record(name, prompt, images=images, temperature=temperature)
        return self._next(name)

    async def agenerate_text(self, prompt: str, temperature: Optional[float] = None, name: str = "text") -> str:
        self._record(name, prompt, temperature=temperature)
        value = self._next(name)
        return value["response"] if isinstance(value, dict) else str(value)

    async def agenerate_image(self, prompt: str, name: str = "image") -> str:
        self._record(name, prompt)
        return self._next(name)

    def prompts_for(self, name: str) -> List[str]:
        """Every prompt sent under ``name``, oldest first."""
        return [entry["prompt"] for entry in self.request_history if entry["name"] == name]

    def call_count(self, name: Optional[str] = None) -> int:
        if name is None:
            return len(self.request_history)
        return len(self.prompts_for(name))


def create_mock_responses() -> Dict[str, Any]:
    """A well-formed response for every prompt the pipeline issues."""
    return {
        "facial_emotion": {
            "primary": "sad", "confidence": 0.7,
            "emotions": {"sad": 0.7, "neutral": 0.2}, "arousal": 0.3, "valence": 0.2,
        },
        "voice_emotion": {
            "primary": "tired", "confidence": 0.6,
            "emotions": {"tired": 0.6, "calm": 0.3}, "stress": 0.5, "energy": 0.2,
        },
        "text_emotion": {
            "primary": "anxious", "confidence": 0.8,
            "emotions": {"anxious": 0.8, "overwhelmed": 0.5}, "sentiment": -0.4, "intensity": 0.7,
        },
        "multimodal_fusion": {
            "primary": "anxious", "confidence": 0.75,
            "emotions": {"anxious": 0.75, "sad": 0.4},
            "arousal": 0.6, "valence": 0.3, "distressLevel": 0.55,
            "recommendations": ["Slow breathing", "Name the worry", "Short walk"],
            "avatarExpression": {"expression": "concerned", "intensity": 0.6, "duration": 4},
        },
        "intent_classification": {
            "primary": "anxiety_management", "secondary": ["emotional_support"], "confidence": 0.82,
        },
        "context_analysis": {
            "relevantContext": [
                {"content": "Mentioned work deadlines last session", "relevanceScore": 0.7, "source": "conversation"},
            ],
            "therapeuticIntent": {"primary": "small_talk", "secondary": [], "confidence": 0.2},
            "responseStrategy": {
                "approach": "validation then grounding", "tone": "warm",
                "techniques": ["reflective listening", "grounding"], "avoidances": ["minimising"],
            },
            "contextualFactors": {
                "emotionalState": "anxious", "urgencyLevel": "medium",
                "sessionPhase": "exploration", "therapeuticAlliance": 72,
            },
            "knowledgeBaseMatches": [],
            "adaptivePrompt": "Acknowledge the pressure before offering a technique.",
        },
        "safety_assessment": {
            "riskLevel": "low", "concerns": [], "actions": ["Continue supportive conversation"],
            "followUp": False,
        },
        "therapeutic_response": {
            "response": "That sounds like a lot to carry. What feels heaviest right now?",
            "interventions": {
                "immediate": ["Three slow breaths"],
                "session": ["Map the sources of stress"],
                "longTerm": ["Build a wind-down routine"],
            },
            "safetyAssessment": {"riskLevel": "low", "concerns": [], "actions": [], "followUp": False},
        },
        "fast_therapist": {"response": "I'm here with you. What's been on your mind?"},
        "context_aware_response": {"response": "It makes sense that you'd feel that way."},
        "wearables_analysis": {
            "overallWellness": {"score": 62, "trend": "declining", "primaryConcerns": ["short sleep"]},
            "physicalHealth": {
                "cardiovascularHealth": 78, "sleepQuality": 45, "activityLevel": 55, "recoveryStatus": "fair",
            },
            "mentalHealth": {
                "stressLevel": 68, "fatigueLevel": 70,
                "moodIndicators": {"calm": 0.3, "energetic": 0.2}, "cognitiveLoad": 60,
            },
            "recommendations": {
                "immediate": ["Step outside for five minutes"],
                "shortTerm": ["Keep a consistent bedtime"],
                "longTerm": ["Add two cardio sessions a week"],
            },
            "therapeuticInsights": {
                "emotionalState": "strained", "stressFactors": ["sleep debt"],
                "copingCapacity": 55, "interventionNeeded": True,
            },
            "alerts": [
                {"type": "sleep", "severity": "medium", "message": "Sleep under 5 hours", "action": "Rest"},
            ],
        },
        "avatar": "data:image/png;base64,iVBORw0KGgo=",
    }


def create_test_conversation(turns: int = 3) -> List[ConversationTurn]:
    """Alternating user/agent turns, oldest first."""
    lines = [
        ("user", "I've been stressed about work lately."),
        ("agent", "That sounds hard. What part of work feels most stressful?"),
        ("user", "Mostly the deadlines, they never stop."),
        ("agent", "Constant deadlines can be exhausting. How are you sleeping?"),
        ("user", "Not great, maybe five hours a night."),
        ("agent", "That's not much rest. What happens when you try to wind down?"),
        ("user", "My mind keeps racing about tomorrow."),
        ("agent", "A racing mind at night is really common under pressure."),
    ]
    result = []
    for i in range(turns):
        speaker, message = lines[i % len(lines)]
        result.append(ConversationTurn(
            speaker=speaker,
            message=f"{message} (turn {i + 1})",
            timestamp=f"2024-05-01T10:{i:02d}:00Z",
        ))
    return result


class TherapeuticResponseChecks:
    """Helper for validating merged responses."""

    @staticmethod
    def validate_response(response: TherapeuticResponse) -> List[str]:
        """
        Validate a merged response and return the problems found.

        Returns:
            List of validation error messages (empty if valid)
        """
        issues = []

        if not response.response.strip():
            issues.append("Empty response text")

        emotion = response.emotion_analysis
        if not 0.0 <= emotion.confidence <= 1.0:
            issues.append(f"Emotion confidence out of range: {emotion.confidence}")
        if not 0.0 <= emotion.distress_level <= 1.0:
            issues.append(f"Distress level out of range: {emotion.distress_level}")

        alliance = response.contextual_insights.therapeutic_alliance
        if not 0.0 <= alliance <= 100.0:
            issues.append(f"Therapeutic alliance out of range: {alliance}")

        if not 0.0 <= response.metadata.confidence_score <= 1.0:
            issues.append(f"Confidence score out of range: {response.metadata.confidence_score}")

        safety = response.safety_assessment
        if safety.risk_level.rank >= RiskLevel.HIGH.rank and not response.crisis_resources:
            issues.append(f"No crisis resources for {safety.risk_level.value} risk")

        return issues

    @staticmethod
    def assert_valid_response(response: TherapeuticResponse) -> None:
        """Assert that a merged response is valid, raising AssertionError if not."""
        issues = TherapeuticResponseChecks.validate_response(response)
        if issues:
            raise AssertionError(f"Invalid therapeutic response: {'; '.join(issues)}")
