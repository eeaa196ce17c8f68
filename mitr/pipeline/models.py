"""
Vocabularies and enumerations for the therapeutic pipeline.
"""
from enum import Enum
from typing import Dict, Optional, Tuple


class RiskLevel(str, Enum):
    """Ordered risk / urgency levels: low < medium < high < critical."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    @classmethod
    def parse(cls, value, default: "RiskLevel" = None) -> "RiskLevel":
        """Lenient conversion of model output ('High', ' critical ') to a level."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return default if default is not None else cls.LOW

    @classmethod
    def highest(cls, *levels: "RiskLevel") -> "RiskLevel":
        return max(levels, key=lambda level: level.rank)


_LEVEL_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]

# Urgency shares the risk scale
UrgencyLevel = RiskLevel


class SessionPhase(str, Enum):
    OPENING = "opening"
    EXPLORATION = "exploration"
    INTERVENTION = "intervention"
    CLOSURE = "closure"

    @classmethod
    def parse(cls, value, default: Optional["SessionPhase"] = None) -> "SessionPhase":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return default or cls.EXPLORATION


class Speaker(str, Enum):
    USER = "user"
    AGENT = "agent"


SPEAKER_ALIASES: Dict[str, Speaker] = {
    "user": Speaker.USER,
    "human": Speaker.USER,
    "agent": Speaker.AGENT,
    "ai": Speaker.AGENT,
    "assistant": Speaker.AGENT,
    "mitr": Speaker.AGENT,
    "model": Speaker.AGENT,
}


# Emotion vocabularies per modality
FACIAL_EMOTIONS: Tuple[str, ...] = (
    "happy", "sad", "angry", "fearful", "surprised", "disgusted", "neutral",
    "contempt", "excited", "frustrated", "confused", "anxious", "calm", "stressed",
)

VOICE_EMOTIONS: Tuple[str, ...] = (
    "happy", "sad", "angry", "fearful", "surprised", "neutral", "excited",
    "frustrated", "anxious", "calm", "stressed", "tired", "confident",
)

TEXT_EMOTIONS: Tuple[str, ...] = (
    "happy", "sad", "angry", "fearful", "surprised", "disgusted", "neutral",
    "excited", "frustrated", "confused", "anxious", "hopeful", "disappointed",
    "grateful", "lonely", "overwhelmed",
)

# Fusion reports on the text vocabulary
FUSED_EMOTIONS = TEXT_EMOTIONS


# Therapeutic intent categories and what they mean
INTENT_CATEGORIES: Dict[str, str] = {
    "emotional_support": "Seeking comfort, validation, empathy",
    "problem_solving": "Looking for solutions, strategies, advice",
    "self_reflection": "Exploring thoughts, feelings, behaviors",
    "crisis_intervention": "Immediate help, safety concerns",
    "goal_setting": "Establishing objectives, planning",
    "skill_building": "Learning coping strategies, techniques",
    "relationship_issues": "Interpersonal problems, communication",
    "trauma_processing": "Dealing with past traumatic experiences",
    "anxiety_management": "Handling worry, fear, panic",
    "depression_support": "Addressing sadness, hopelessness",
    "stress_management": "Coping with pressure, overwhelm",
    "behavioral_change": "Modifying habits, patterns",
    "mindfulness_practice": "Present-moment awareness, meditation",
    "grief_processing": "Dealing with loss, bereavement",
    "identity_exploration": "Understanding self, values, purpose",
    "information_seeking": "Asking questions, learning",
    "session_management": "Opening, closing, scheduling",
    "small_talk": "Casual conversation, rapport building",
}

DEFAULT_INTENT = "emotional_support"
