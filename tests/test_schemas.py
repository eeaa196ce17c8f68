"""Input validation and output normalisation."""
import pytest
from pydantic import ValidationError as PydanticValidationError

from mitr.errors import ValidationError
from mitr.pipeline.models import RiskLevel, SessionPhase, Speaker
from mitr.pipeline.prompts import MitrPrompts, PromptFormatter
from mitr.pipeline.schemas import (
    ComprehensiveMitrInput, ContextGuidance, ContextualFactors, ConversationTurn, FastMitrInput,
    FacialEmotionRecord, FusedEmotionRecord, GeneratedResponse, SafetyAssessment, TextEmotionRecord, TherapeuticIntent,
    WearablesData, validate_input,
)
from mitr.pipeline import defaults


def test_fast_input_accepts_camel_case():
    request = validate_input(FastMitrInput, {
        "userMessage": "hello",
        "conversationHistory": [
            {"speaker": "user", "message": "hi", "timestamp": "2024-01-01T00:00:00Z"},
        ],
    })
    assert request.user_message == "hello"
    assert request.conversation_history[0].speaker == Speaker.USER


def test_missing_user_message_names_field():
    with pytest.raises(ValidationError) as excinfo:
        validate_input(FastMitrInput, {"conversationHistory": []})
    assert excinfo.value.field == "userMessage"


def test_blank_user_message_rejected():
    with pytest.raises(ValidationError) as excinfo:
        validate_input(FastMitrInput, {"userMessage": "   "})
    assert excinfo.value.field == "userMessage"


def test_wrong_primitive_type_rejected():
    with pytest.raises(ValidationError) as excinfo:
        validate_input(FastMitrInput, {"userMessage": ["not", "a", "string"]})
    assert excinfo.value.field == "userMessage"


def test_wearables_timestamp_required():
    with pytest.raises(ValidationError) as excinfo:
        validate_input(ComprehensiveMitrInput, {
            "userMessage": "hi",
            "wearablesData": {"heartRate": {"current": 80}},
        })
    assert excinfo.value.field == "wearablesData.timestamp"


def test_blood_pressure_needs_both_readings():
    with pytest.raises(ValidationError) as excinfo:
        validate_input(WearablesData, {
            "timestamp": "2024-01-01T00:00:00Z",
            "biometrics": {"bloodPressure": {"systolic": 120}},
        })
    assert excinfo.value.field == "biometrics.bloodPressure.diastolic"


def test_non_mapping_input_rejected():
    with pytest.raises(ValidationError) as excinfo:
        validate_input(FastMitrInput, "hello")
    assert excinfo.value.field == "(root)"


def test_unknown_fields_ignored():
    request = validate_input(FastMitrInput, {"userMessage": "hi", "somethingElse": 42})
    assert not hasattr(request, "somethingElse")


def test_validation_error_is_value_error():
    with pytest.raises(ValueError):
        validate_input(FastMitrInput, {})


def test_speaker_aliases_normalised():
    turn = ConversationTurn(speaker="Assistant", message="hi", timestamp="t")
    assert turn.speaker == Speaker.AGENT
    assert turn.as_line() == "agent: hi"


def test_unknown_speaker_rejected():
    with pytest.raises(ValidationError) as excinfo:
        validate_input(FastMitrInput, {
            "userMessage": "hi",
            "conversationHistory": [{"speaker": "narrator", "message": "x", "timestamp": "t"}],
        })
    assert excinfo.value.field == "conversationHistory.0.speaker"


def test_emotion_record_normalised_onto_vocabulary():
    record = FacialEmotionRecord.model_validate({
        "primary": "Joyful",
        "confidence": 1.4,
        "emotions": {"HAPPY": 2.0, "bogus": 0.1, "sad": None},
        "arousal": -1,
    })
    assert record.primary == "neutral"
    assert record.confidence == 1.0
    assert record.emotions == {"happy": 1.0, "neutral": 1.0}
    assert record.arousal == 0.0


def test_primary_inserted_into_emotions():
    record = TextEmotionRecord.model_validate({
        "primary": "Lonely", "confidence": 0.6, "emotions": {"sad": 0.4}, "sentiment": -3,
    })
    assert record.primary == "lonely"
    assert record.emotions["lonely"] == 0.6
    assert record.sentiment == -1.0


def test_fused_record_requires_distress_level():
    with pytest.raises(PydanticValidationError):
        FusedEmotionRecord.model_validate({"primary": "sad", "confidence": 0.5})


def test_neutral_fused_emotions_satisfy_invariants():
    fused = defaults.neutral_fused_emotions()
    assert fused.primary in fused.emotions
    assert 0.0 <= fused.confidence <= 1.0


def test_intent_labels_normalised():
    intent = TherapeuticIntent.model_validate({
        "primary": "Made Up",
        "secondary": ["Anxiety_Management", "nonsense", "emotional_support", "anxiety_management"],
        "confidence": 3,
    })
    assert intent.primary == "emotional_support"
    assert intent.secondary == ["anxiety_management"]
    assert intent.confidence == 1.0


def test_risk_level_parsing():
    assert SafetyAssessment.model_validate({"riskLevel": " High "}).risk_level == RiskLevel.HIGH
    assert SafetyAssessment.model_validate({"riskLevel": "severe"}).risk_level == RiskLevel.LOW
    assert RiskLevel.highest(RiskLevel.MEDIUM, RiskLevel.CRITICAL, RiskLevel.LOW) == RiskLevel.CRITICAL


def test_contextual_factors_clamped_and_parsed():
    factors = ContextualFactors.model_validate({
        "urgencyLevel": "CRITICAL", "sessionPhase": "wrap-up", "therapeuticAlliance": 150,
    })
    assert factors.urgency_level == RiskLevel.CRITICAL
    assert factors.session_phase == SessionPhase.EXPLORATION
    assert factors.therapeutic_alliance == 100


def test_empty_guidance_serialises_into_response_prompt():
    guidance = ContextGuidance.model_validate({
        "relevantContext": [],
        "responseStrategy": {"techniques": [], "avoidances": []},
        "knowledgeBaseMatches": [],
        "adaptivePrompt": None,
    })
    assert guidance.adaptive_prompt == ""
    serialised = PromptFormatter.to_json(guidance)
    prompt = MitrPrompts.therapeutic_response("hi", "{}", serialised, "{}")
    assert serialised in prompt


def test_requires_immediate_alert_serialised(orchestrator):
    response = orchestrator.merge(
        generated=GeneratedResponse(response="ok"),
        emotion=None, health=None, guidance=None,
        safety=SafetyAssessment(risk_level="critical", concerns=["x"]),
    )
    dumped = response.model_dump(by_alias=True)
    assert dumped["requiresImmediateAlert"] is True
    assert dumped["safetyAssessment"]["riskLevel"] == "critical"