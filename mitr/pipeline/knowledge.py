"""
Therapeutic knowledge base and keyword matcher.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..config import KNOWLEDGE_TOP_N
from .schemas import KnowledgeMatch


@dataclass(frozen=True)
class KnowledgeEntry:
    """A curated therapeutic technique."""
    topic: str
    content: str
    category: str
    keywords: Tuple[str, ...]


THERAPEUTIC_KNOWLEDGE_BASE: Tuple[KnowledgeEntry, ...] = (
    KnowledgeEntry(
        topic="Active Listening",
        content="Reflect back what you hear, validate emotions, ask open-ended questions, avoid judgment",
        category="communication_techniques",
        keywords=("listening", "validation", "empathy", "understanding"),
    ),
    KnowledgeEntry(
        topic="Cognitive Behavioral Therapy",
        content="Help identify thought patterns, challenge negative thinking, explore behavior-emotion connections",
        category="therapeutic_approaches",
        keywords=("thoughts", "thinking", "behavior", "patterns", "negative"),
    ),
    KnowledgeEntry(
        topic="Mindfulness Techniques",
        content="Guide breathing exercises, present-moment awareness, body scans, non-judgmental observation",
        category="coping_strategies",
        keywords=("mindfulness", "breathing", "present", "awareness", "meditation"),
    ),
    KnowledgeEntry(
        topic="Crisis Intervention",
        content="Assess safety, provide immediate support, connect to resources, create safety plan",
        category="crisis_management",
        keywords=("crisis", "safety", "emergency", "harm", "suicide", "danger"),
    ),
    KnowledgeEntry(
        topic="Anxiety Management",
        content="Teach grounding techniques, progressive muscle relaxation, exposure therapy principles",
        category="anxiety_support",
        keywords=("anxiety", "worry", "fear", "panic", "nervous", "stressed"),
    ),
    KnowledgeEntry(
        topic="Depression Support",
        content="Validate feelings, encourage small steps, behavioral activation, hope instillation",
        category="depression_support",
        keywords=("depression", "sad", "hopeless", "empty", "worthless", "tired"),
    ),
    KnowledgeEntry(
        topic="Trauma-Informed Care",
        content="Create safety, avoid re-traumatization, respect autonomy, build trust gradually",
        category="trauma_support",
        keywords=("trauma", "abuse", "ptsd", "flashbacks", "triggers", "safety"),
    ),
    KnowledgeEntry(
        topic="Motivational Interviewing",
        content="Explore ambivalence, enhance motivation, support self-efficacy, avoid confrontation",
        category="change_facilitation",
        keywords=("motivation", "change", "ambivalence", "goals", "commitment"),
    ),
)

# Current emotion -> knowledge keywords it should pull in
EMOTION_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "anxious": ("anxiety", "worry", "fear"),
    "sad": ("depression", "sad", "hopeless"),
    "angry": ("anger", "frustration", "irritation"),
    "stressed": ("stress", "overwhelm", "pressure"),
    "confused": ("confusion", "uncertainty", "clarity"),
    "hopeful": ("hope", "optimism", "positive"),
}

EMOTION_ONLY_SCORE = 0.5


class KnowledgeMatcher:
    """
    Keyword-overlap lookup over a fixed, read-only table.

    Entries are ranked by overlap count (keyword hits in the message, plus one
    when the current emotion maps onto the entry), ties broken by table order.
    """

    def __init__(self,
                 entries: Tuple[KnowledgeEntry, ...] = THERAPEUTIC_KNOWLEDGE_BASE,
                 emotion_keywords: Optional[Dict[str, Tuple[str, ...]]] = None,
                 top_n: int = KNOWLEDGE_TOP_N):
        self.entries = entries
        self.emotion_keywords = emotion_keywords if emotion_keywords is not None else EMOTION_KEYWORDS
        self.top_n = top_n

    def find(self, message: str, current_emotion: Optional[str] = None) -> List[KnowledgeMatch]:
        message_lower = (message or "").lower()
        emotion_keys = self.emotion_keywords.get((current_emotion or "").strip().lower(), ())

        scored = []
        for order, entry in enumerate(self.entries):
            hits = sum(1 for keyword in entry.keywords if keyword in message_lower)
            emotion_hit = any(key in entry.keywords for key in emotion_keys)
            if not hits and not emotion_hit:
                continue
            overlap = hits + (1 if emotion_hit else 0)
            relevance = hits / len(entry.keywords) if hits else EMOTION_ONLY_SCORE
            scored.append((-overlap, order, entry, relevance))

        # Each entry is scored once, so the result is already de-duplicated
        scored.sort(key=lambda item: (item[0], item[1]))
        return [
            KnowledgeMatch(
                topic=entry.topic,
                content=entry.content,
                relevance_score=round(relevance, 3),
                category=entry.category,
            )
            for _, _, entry, relevance in scored[:self.top_n]
        ]
