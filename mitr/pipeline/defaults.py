"""
Default values for every field of the merged response.

The no-upstream-data path is defined here and nowhere else: the orchestrator
substitutes these when a stage was degraded or returned nothing, and the fast
flow uses the static block wholesale.
"""
from .models import RiskLevel, SessionPhase, UrgencyLevel, DEFAULT_INTENT
from .schemas import (
    AvatarControl, AvatarExpression, ContextualInsights, DataQuality, EmotionSummary,
    FusedEmotionRecord, HealthRecommendations, HealthSummary, Interventions,
    MentalHealth, OverallWellness, PhysicalHealth, SafetyAssessment,
    TherapeuticInsights, WearablesAnalysis,
)
from .prompts import MitrPrompts

_MESSAGES = MitrPrompts.fallback_messages()

# Comprehensive flow
RESPONSE_TEXT = _MESSAGES["comprehensive_response"]

EMOTION_PRIMARY = "neutral"
EMOTION_CONFIDENCE = 0.5
EMOTION_DISTRESS = 0.3

THERAPEUTIC_INTENT = DEFAULT_INTENT
URGENCY_LEVEL = UrgencyLevel.LOW
SESSION_PHASE = SessionPhase.EXPLORATION
THERAPEUTIC_ALLIANCE = 70.0

AVATAR_EXPRESSION = "empathetic"
AVATAR_INTENSITY = 0.7
AVATAR_DURATION = 5.0
AVATAR_EMOTIONAL_STATE = "supportive"

INTERVENTIONS_IMMEDIATE = ["Take a deep breath", "Ground yourself in the present moment"]
INTERVENTIONS_SESSION = ["Explore your feelings", "Practice mindfulness"]
INTERVENTIONS_LONG_TERM = ["Develop coping strategies", "Build emotional resilience"]

RISK_LEVEL = RiskLevel.LOW

INTENT_CONFIDENCE = 0.5

# Data quality per modality: (present, absent)
EMOTIONAL_QUALITY = (0.8, 0.3)
HEALTH_QUALITY = (0.9, 0.0)
CONTEXTUAL_QUALITY = (0.8, 0.5)


def default_or(value, default):
    """Substitute ``default`` only when ``value`` is missing; 0 and [] survive."""
    return default if value is None else value


def default_emotion_summary() -> EmotionSummary:
    return EmotionSummary(
        primary=EMOTION_PRIMARY,
        confidence=EMOTION_CONFIDENCE,
        distress_level=EMOTION_DISTRESS,
        recommendations=[],
    )


def default_contextual_insights() -> ContextualInsights:
    return ContextualInsights(
        therapeutic_intent=THERAPEUTIC_INTENT,
        urgency_level=URGENCY_LEVEL,
        session_phase=SESSION_PHASE,
        therapeutic_alliance=THERAPEUTIC_ALLIANCE,
    )


def default_avatar_control() -> AvatarControl:
    return AvatarControl(
        expression=AVATAR_EXPRESSION,
        intensity=AVATAR_INTENSITY,
        duration=AVATAR_DURATION,
        emotional_state=AVATAR_EMOTIONAL_STATE,
    )


def default_interventions() -> Interventions:
    return Interventions(
        immediate=list(INTERVENTIONS_IMMEDIATE),
        session=list(INTERVENTIONS_SESSION),
        long_term=list(INTERVENTIONS_LONG_TERM),
    )


def default_safety() -> SafetyAssessment:
    return SafetyAssessment(risk_level=RISK_LEVEL, concerns=[], actions=[], follow_up=False)


def neutral_fused_emotions() -> FusedEmotionRecord:
    """Best-effort record when no modality produced a reading."""
    return FusedEmotionRecord(
        primary=EMOTION_PRIMARY,
        confidence=0.3,
        emotions={EMOTION_PRIMARY: 0.3},
        arousal=0.5,
        valence=0.5,
        distress_level=EMOTION_DISTRESS,
        recommendations=[],
        avatar_expression=AvatarExpression(
            expression=AVATAR_EXPRESSION, intensity=AVATAR_INTENSITY, duration=AVATAR_DURATION,
        ),
    )


def minimal_health_analysis() -> WearablesAnalysis:
    """Static health summary used by the comprehensive flow instead of a model call."""
    return WearablesAnalysis(
        overall_wellness=OverallWellness(score=75, trend="stable", primary_concerns=[]),
        physical_health=PhysicalHealth(
            cardiovascular_health=80, sleep_quality=70, activity_level=65, recovery_status="good",
        ),
        mental_health=MentalHealth(
            stress_level=35,
            fatigue_level=40,
            mood_indicators={"calm": 0.7, "energetic": 0.6, "focused": 0.7},
            cognitive_load=50,
        ),
        recommendations=HealthRecommendations(
            immediate=["Take a deep breath", "Stay hydrated"],
            short_term=["Maintain regular sleep schedule"],
            long_term=["Build consistent exercise routine"],
        ),
        therapeutic_insights=TherapeuticInsights(
            emotional_state="calm", stress_factors=[], coping_capacity=80, intervention_needed=False,
        ),
        alerts=[],
    )


# Fast flow: one model call, everything else static
FAST_RESPONSE_TEXT = _MESSAGES["fast_response"]


def fast_emotion_summary() -> EmotionSummary:
    return EmotionSummary(
        primary="neutral",
        confidence=0.8,
        distress_level=0.3,
        recommendations=["Focus on the present", "Express your feelings"],
    )


def fast_health_summary() -> HealthSummary:
    return HealthSummary(
        wellness_score=75,
        stress_level=35,
        alerts=[],
        recommendations=["Take regular breaks", "Stay hydrated"],
    )


def fast_contextual_insights() -> ContextualInsights:
    return ContextualInsights(
        therapeutic_intent="supportive_listening",
        urgency_level=UrgencyLevel.LOW,
        session_phase=SessionPhase.EXPLORATION,
        therapeutic_alliance=75,
    )


def fast_avatar_control() -> AvatarControl:
    return AvatarControl(expression="empathetic", intensity=0.7, duration=3, emotional_state="attentive")


def fast_interventions() -> Interventions:
    return Interventions(
        immediate=list(INTERVENTIONS_IMMEDIATE),
        session=["Express your feelings", "Practice mindfulness"],
        long_term=list(INTERVENTIONS_LONG_TERM),
    )


FAST_CONFIDENCE = 0.8


def fast_data_quality() -> DataQuality:
    return DataQuality(emotional=0.7, health=0.7, contextual=0.7)
