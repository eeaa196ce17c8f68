"""
Local keyword sentiment analysis for instant metrics (no model call).
"""
from dataclasses import dataclass, asdict
from typing import Dict, Optional, Tuple


EMOTION_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "happy": ("happy", "joy", "great", "excited", "wonderful", "awesome", "good"),
    "sad": ("sad", "upset", "unhappy", "depressed", "down", "hurt", "pain"),
    "angry": ("angry", "frustrated", "mad", "annoyed", "irritated", "furious"),
    "anxious": ("anxious", "worried", "nervous", "scared", "afraid", "stressed"),
    "neutral": ("okay", "fine", "alright", "normal", "regular"),
    "grateful": ("grateful", "thankful", "blessed", "appreciative"),
    "hopeful": ("hope", "looking forward", "optimistic", "better", "improve"),
    "overwhelmed": ("overwhelmed", "too much", "exhausted", "cant handle", "can't handle"),
}

DISTRESS_EMOTIONS = ("sad", "angry", "anxious", "overwhelmed")
POSITIVE_EMOTIONS = ("happy", "grateful", "hopeful")

ALLIANCE_POSITIVE = (
    "thank", "helps", "understand", "good", "better",
    "appreciate", "support", "listen", "care", "right",
)
ALLIANCE_NEGATIVE = (
    "dont understand", "don't understand", "unhelpful",
    "wrong", "bad", "waste", "useless", "stupid",
)
ALLIANCE_BASE = 75


@dataclass
class SentimentMetrics:
    primary: str
    confidence: float
    distress_level: float
    wellness_score: float
    stress_level: float
    alliance: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class SentimentAnalyzer:
    """
    Counts keyword hits per emotion; substring matching, one hit per keyword.

    Constructed explicitly and injected wherever instant metrics are shown.
    """

    def __init__(self,
                 emotion_keywords: Optional[Dict[str, Tuple[str, ...]]] = None,
                 alliance_base: float = ALLIANCE_BASE):
        self.emotion_keywords = emotion_keywords or EMOTION_KEYWORDS
        self.alliance_base = alliance_base

    def emotion_scores(self, text: str) -> Dict[str, int]:
        lower = text.lower()
        return {
            emotion: sum(1 for keyword in keywords if keyword in lower)
            for emotion, keywords in self.emotion_keywords.items()
        }

    def analyze_text(self, text: str) -> SentimentMetrics:
        scores = self.emotion_scores(text or "")

        primary, best = "neutral", 0
        for emotion, score in scores.items():
            if score > best:
                primary, best = emotion, score

        distress = sum(scores.get(e, 0) for e in DISTRESS_EMOTIONS)
        positive = sum(scores.get(e, 0) for e in POSITIVE_EMOTIONS)
        distress_level = min(1.0, distress / 5)

        return SentimentMetrics(
            primary=primary,
            confidence=min(1.0, best / 3),
            distress_level=distress_level,
            wellness_score=_clamp(50 + positive * 10 - distress * 10, 0, 100),
            stress_level=_clamp(distress_level * 100, 0, 100),
            alliance=self.estimate_alliance(text or ""),
        )

    def estimate_alliance(self, text: str) -> float:
        lower = text.lower()
        positive = sum(1 for marker in ALLIANCE_POSITIVE if marker in lower)
        negative = sum(1 for marker in ALLIANCE_NEGATIVE if marker in lower)
        return _clamp(self.alliance_base + positive * 5 - negative * 10, 0, 100)
