"""
Structured data models and schemas for the therapeutic pipeline.

Every request and response structure is a pydantic model with camelCase
aliases, so payloads round-trip with the JSON the web client sends while
Python code uses snake_case attributes. Model-produced records normalise
themselves on validation (scores clamped, labels mapped onto their
vocabularies) so downstream stages never see out-of-range values.
"""
from collections.abc import Mapping
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import (
    BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator,
    ValidationError as PydanticValidationError,
)
from pydantic.alias_generators import to_camel

from ..errors import ValidationError
from .models import (
    RiskLevel, UrgencyLevel, SessionPhase, Speaker, SPEAKER_ALIASES,
    FACIAL_EMOTIONS, VOICE_EMOTIONS, TEXT_EMOTIONS, FUSED_EMOTIONS,
    INTENT_CATEGORIES, DEFAULT_INTENT,
)

M = TypeVar("M", bound=BaseModel)


def _clamp(value: Optional[float], low: float = 0.0, high: float = 1.0) -> Optional[float]:
    if value is None:
        return None
    return max(low, min(high, float(value)))


class MitrModel(BaseModel):
    """Base model: camelCase aliases, populate by either name, ignore unknown fields."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# INPUTS
# =============================================================================

class ConversationTurn(MitrModel):
    speaker: Speaker
    message: str
    timestamp: str
    emotions: Optional[Dict[str, float]] = None
    intent: Optional[str] = None

    @field_validator("speaker", mode="before")
    @classmethod
    def _normalise_speaker(cls, value):
        if isinstance(value, str):
            speaker = SPEAKER_ALIASES.get(value.strip().lower())
            if speaker is None:
                raise ValueError("speaker must be 'user' or 'agent'")
            return speaker
        return value

    def as_line(self) -> str:
        return f"{self.speaker.value}: {self.message}"


class AudioFeatures(MitrModel):
    pitch: Optional[float] = None
    energy: Optional[float] = None
    spectral_centroid: Optional[float] = None
    mfcc: Optional[List[float]] = None
    duration: Optional[float] = None


class HeartRateData(MitrModel):
    current: Optional[float] = None
    resting: Optional[float] = None
    max: Optional[float] = None
    variability: Optional[float] = None
    trend: Optional[List[float]] = None


class SleepData(MitrModel):
    duration: Optional[float] = None
    quality: Optional[float] = None
    deep_sleep: Optional[float] = None
    rem_sleep: Optional[float] = None
    efficiency: Optional[float] = None
    disturbances: Optional[float] = None


class ActivityData(MitrModel):
    steps: Optional[float] = None
    calories: Optional[float] = None
    active_minutes: Optional[float] = None
    sedentary_minutes: Optional[float] = None
    exercise_type: Optional[str] = None
    intensity: Optional[str] = None


class StressData(MitrModel):
    level: Optional[float] = None
    trend: Optional[List[float]] = None
    recovery_time: Optional[float] = None
    stress_events: Optional[float] = None


class EnvironmentData(MitrModel):
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    air_quality: Optional[float] = None
    noise_level: Optional[float] = None
    light_exposure: Optional[float] = None


class BloodPressure(MitrModel):
    systolic: float
    diastolic: float


class BiometricData(MitrModel):
    blood_oxygen: Optional[float] = None
    skin_temperature: Optional[float] = None
    respiratory_rate: Optional[float] = None
    blood_pressure: Optional[BloodPressure] = None


class WearablesData(MitrModel):
    heart_rate: Optional[HeartRateData] = None
    sleep: Optional[SleepData] = None
    activity: Optional[ActivityData] = None
    stress: Optional[StressData] = None
    environment: Optional[EnvironmentData] = None
    biometrics: Optional[BiometricData] = None
    timestamp: str
    device_type: Optional[str] = None


class UserProfile(MitrModel):
    therapeutic_goals: Optional[List[str]] = None
    triggers: Optional[List[str]] = None
    coping_strategies: Optional[List[str]] = None
    preferences: Optional[Dict[str, Any]] = None
    session_history: Optional[List[str]] = None


class SessionContext(MitrModel):
    session_id: Optional[str] = None
    session_phase: Optional[str] = None
    duration: Optional[float] = None


class FastMitrInput(MitrModel):
    """Input for the single-call fast flow."""
    user_message: str
    conversation_history: List[ConversationTurn] = Field(default_factory=list)

    @field_validator("user_message")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


class ComprehensiveMitrInput(FastMitrInput):
    """Input for the full multimodal flow."""
    image_data: Optional[str] = None
    audio_features: Optional[AudioFeatures] = None
    wearables_data: Optional[WearablesData] = None
    user_profile: Optional[UserProfile] = None
    session_context: Optional[SessionContext] = None


class EmotionAnalysisInput(MitrModel):
    image_data: Optional[str] = None
    audio_features: Optional[AudioFeatures] = None
    text_content: Optional[str] = None
    conversation_history: Optional[str] = None


class EmotionalContext(MitrModel):
    current_emotion: Optional[str] = None
    emotion_intensity: Optional[float] = None
    emotion_trend: Optional[str] = None
    distress_level: Optional[float] = None


class HealthContext(MitrModel):
    wellness_score: Optional[float] = None
    stress_level: Optional[float] = None
    sleep_quality: Optional[float] = None
    activity_level: Optional[float] = None


class ContextManagementInput(MitrModel):
    current_message: str
    conversation_history: List[ConversationTurn] = Field(default_factory=list)
    user_profile: Optional[UserProfile] = None
    emotional_context: Optional[EmotionalContext] = None
    health_context: Optional[HealthContext] = None


class ContextAwareResponseInput(MitrModel):
    conversation_history: str
    user_input: str


class GenerateAvatarInput(MitrModel):
    prompt: str


# =============================================================================
# MODEL OUTPUTS
# =============================================================================

class EmotionRecord(MitrModel):
    """Emotion scores for one modality, normalised onto its vocabulary."""
    VOCABULARY: ClassVar[Tuple[str, ...]] = TEXT_EMOTIONS

    primary: str
    confidence: float
    emotions: Dict[str, Optional[float]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _normalise_emotions(self):
        vocabulary = self.VOCABULARY
        emotions: Dict[str, float] = {}
        for label, score in self.emotions.items():
            key = str(label).strip().lower()
            if key in vocabulary and score is not None:
                emotions[key] = _clamp(score)

        primary = (self.primary or "").strip().lower()
        if primary not in vocabulary:
            primary = "neutral"

        self.confidence = _clamp(self.confidence)
        if primary not in emotions:
            emotions[primary] = self.confidence

        self.primary = primary
        self.emotions = emotions
        return self


class FacialEmotionRecord(EmotionRecord):
    VOCABULARY: ClassVar[Tuple[str, ...]] = FACIAL_EMOTIONS

    arousal: float = 0.5
    valence: float = 0.5

    @field_validator("arousal", "valence")
    @classmethod
    def _unit(cls, value: float) -> float:
        return _clamp(value)


class VoiceEmotionRecord(EmotionRecord):
    VOCABULARY: ClassVar[Tuple[str, ...]] = VOICE_EMOTIONS

    stress: float = 0.5
    energy: float = 0.5

    @field_validator("stress", "energy")
    @classmethod
    def _unit(cls, value: float) -> float:
        return _clamp(value)


class TextEmotionRecord(EmotionRecord):
    VOCABULARY: ClassVar[Tuple[str, ...]] = TEXT_EMOTIONS

    sentiment: float = 0.0
    intensity: float = 0.5

    @field_validator("sentiment")
    @classmethod
    def _signed(cls, value: float) -> float:
        return _clamp(value, -1.0, 1.0)

    @field_validator("intensity")
    @classmethod
    def _unit(cls, value: float) -> float:
        return _clamp(value)


class AvatarExpression(MitrModel):
    expression: str = "empathetic"
    intensity: float = 0.7
    duration: float = 5

    @field_validator("intensity")
    @classmethod
    def _unit(cls, value: float) -> float:
        return _clamp(value)

    @field_validator("duration")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        return max(0.0, float(value))


class FusedEmotionRecord(EmotionRecord):
    """Fused emotion across modalities plus therapeutic directives."""
    VOCABULARY: ClassVar[Tuple[str, ...]] = FUSED_EMOTIONS

    arousal: float = 0.5
    valence: float = 0.5
    distress_level: float
    recommendations: List[str] = Field(default_factory=list)
    avatar_expression: AvatarExpression = Field(default_factory=AvatarExpression)

    @field_validator("arousal", "valence", "distress_level")
    @classmethod
    def _unit(cls, value: float) -> float:
        return _clamp(value)


class EmotionAnalysisOutput(MitrModel):
    facial_emotions: Optional[FacialEmotionRecord] = None
    voice_emotions: Optional[VoiceEmotionRecord] = None
    text_emotions: Optional[TextEmotionRecord] = None
    fused_emotions: FusedEmotionRecord


class TherapeuticIntent(MitrModel):
    primary: str
    secondary: List[str] = Field(default_factory=list)
    confidence: float

    @model_validator(mode="after")
    def _normalise_intents(self):
        primary = (self.primary or "").strip().lower()
        self.primary = primary if primary in INTENT_CATEGORIES else DEFAULT_INTENT
        secondary = []
        for label in self.secondary:
            key = str(label).strip().lower()
            if key in INTENT_CATEGORIES and key != self.primary and key not in secondary:
                secondary.append(key)
        self.secondary = secondary
        self.confidence = _clamp(self.confidence)
        return self


class ContextItem(MitrModel):
    content: str
    relevance_score: float = 0.5
    source: str = "conversation"
    timestamp: Optional[str] = None

    @field_validator("relevance_score")
    @classmethod
    def _unit(cls, value: float) -> float:
        return _clamp(value)


class ResponseStrategy(MitrModel):
    approach: str = ""
    tone: str = ""
    techniques: List[str] = Field(default_factory=list)
    avoidances: List[str] = Field(default_factory=list)


class ContextualFactors(MitrModel):
    emotional_state: str = "neutral"
    urgency_level: UrgencyLevel = UrgencyLevel.LOW
    session_phase: SessionPhase = SessionPhase.EXPLORATION
    therapeutic_alliance: float = 70

    @field_validator("urgency_level", mode="before")
    @classmethod
    def _urgency(cls, value):
        return UrgencyLevel.parse(value)

    @field_validator("session_phase", mode="before")
    @classmethod
    def _phase(cls, value):
        return SessionPhase.parse(value)

    @field_validator("therapeutic_alliance")
    @classmethod
    def _alliance(cls, value: float) -> float:
        return _clamp(value, 0.0, 100.0)


class KnowledgeMatch(MitrModel):
    topic: str
    content: str
    relevance_score: float
    category: str


class ContextGuidance(MitrModel):
    relevant_context: List[ContextItem] = Field(default_factory=list)
    therapeutic_intent: TherapeuticIntent = Field(
        default_factory=lambda: TherapeuticIntent(primary=DEFAULT_INTENT, confidence=0.5)
    )
    response_strategy: ResponseStrategy = Field(default_factory=ResponseStrategy)
    contextual_factors: ContextualFactors = Field(default_factory=ContextualFactors)
    knowledge_base_matches: List[KnowledgeMatch] = Field(default_factory=list)
    adaptive_prompt: str = ""

    @field_validator("adaptive_prompt", mode="before")
    @classmethod
    def _prompt(cls, value):
        return value or ""


class SafetyAssessment(MitrModel):
    risk_level: RiskLevel
    concerns: List[str] = Field(default_factory=list)
    actions: List[str] = Field(default_factory=list)
    follow_up: bool = False
    urgent_intervention: Optional[bool] = None

    @field_validator("risk_level", mode="before")
    @classmethod
    def _risk(cls, value):
        return RiskLevel.parse(value)

    @field_validator("follow_up", mode="before")
    @classmethod
    def _follow_up(cls, value):
        return bool(value) if value is not None else False


class Interventions(MitrModel):
    immediate: List[str] = Field(default_factory=list)
    session: List[str] = Field(default_factory=list)
    long_term: List[str] = Field(default_factory=list)


class GeneratedResponse(MitrModel):
    """What the response-generation call returns."""
    response: str
    interventions: Optional[Interventions] = None
    # Echo only; the dedicated safety assessment is authoritative
    safety_assessment: Optional[SafetyAssessment] = None


class OverallWellness(MitrModel):
    score: float
    trend: str = "stable"
    primary_concerns: List[str] = Field(default_factory=list)

    @field_validator("score")
    @classmethod
    def _score(cls, value: float) -> float:
        return _clamp(value, 0.0, 100.0)


class PhysicalHealth(MitrModel):
    cardiovascular_health: float
    sleep_quality: float
    activity_level: float
    recovery_status: str = "good"

    @field_validator("cardiovascular_health", "sleep_quality", "activity_level")
    @classmethod
    def _score(cls, value: float) -> float:
        return _clamp(value, 0.0, 100.0)


class MentalHealth(MitrModel):
    stress_level: float
    fatigue_level: float
    mood_indicators: Dict[str, float] = Field(default_factory=dict)
    cognitive_load: float

    @field_validator("stress_level", "fatigue_level", "cognitive_load")
    @classmethod
    def _score(cls, value: float) -> float:
        return _clamp(value, 0.0, 100.0)


class HealthRecommendations(MitrModel):
    immediate: List[str] = Field(default_factory=list)
    short_term: List[str] = Field(default_factory=list)
    long_term: List[str] = Field(default_factory=list)


class TherapeuticInsights(MitrModel):
    emotional_state: str
    stress_factors: List[str] = Field(default_factory=list)
    coping_capacity: float
    intervention_needed: bool = False

    @field_validator("coping_capacity")
    @classmethod
    def _score(cls, value: float) -> float:
        return _clamp(value, 0.0, 100.0)


class HealthAlert(MitrModel):
    type: str
    severity: str
    message: str
    action: str = ""


class WearablesAnalysis(MitrModel):
    overall_wellness: OverallWellness
    physical_health: PhysicalHealth
    mental_health: MentalHealth
    recommendations: HealthRecommendations
    therapeutic_insights: TherapeuticInsights
    alerts: List[HealthAlert] = Field(default_factory=list)


class ContextAwareResponseOutput(MitrModel):
    response: str


class GenerateAvatarOutput(MitrModel):
    image_data_uri: str


# =============================================================================
# FINAL RESPONSE
# =============================================================================

class EmotionSummary(MitrModel):
    primary: str
    confidence: float
    distress_level: float
    recommendations: List[str] = Field(default_factory=list)


class HealthSummary(MitrModel):
    wellness_score: float
    stress_level: float
    alerts: List[HealthAlert] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class ContextualInsights(MitrModel):
    therapeutic_intent: str
    urgency_level: UrgencyLevel
    session_phase: SessionPhase
    therapeutic_alliance: float


class AvatarControl(MitrModel):
    expression: str
    intensity: float
    duration: float
    emotional_state: str


class DataQuality(MitrModel):
    emotional: float
    health: float
    contextual: float


class ResponseMetadata(MitrModel):
    analysis_timestamp: str
    confidence_score: float
    data_quality: DataQuality


class TherapeuticResponse(MitrModel):
    """The merged result returned by the fast and comprehensive flows."""
    response: str
    emotion_analysis: EmotionSummary
    health_analysis: Optional[HealthSummary] = None
    contextual_insights: ContextualInsights
    avatar_control: AvatarControl
    interventions: Interventions
    safety_assessment: SafetyAssessment
    metadata: ResponseMetadata
    crisis_resources: List[str] = Field(default_factory=list)

    @computed_field(alias="requiresImmediateAlert")
    @property
    def requires_immediate_alert(self) -> bool:
        safety = self.safety_assessment
        return safety.risk_level == RiskLevel.CRITICAL or bool(safety.urgent_intervention)


# =============================================================================
# VALIDATION
# =============================================================================

def _error_field(loc: Tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc) or "(root)"


def validate_input(model_cls: Type[M], data: Any) -> M:
    """
    Validate a raw request mapping against ``model_cls``.

    Raises:
        ValidationError: naming the first offending field (camelCase dotted path)
    """
    if isinstance(data, model_cls):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    if not isinstance(data, Mapping):
        raise ValidationError("(root)", f"expected an object, got {type(data).__name__}")
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        raise ValidationError(_error_field(first["loc"]), first["msg"]) from e
