"""
Safety assessment: a dedicated model call backed by a local crisis-language screen.

The screen is pure pattern matching and runs on every message. Its result is
a risk floor: the model's assessment stays authoritative but can never be
lower than what the text itself shows.

False negatives (missing a crisis) are much worse than false positives.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Tuple

from ..config import (
    CRISIS_CRITICAL_THRESHOLD, CRISIS_HIGH_THRESHOLD, CRISIS_MEDIUM_THRESHOLD,
    CRISIS_RESOURCES, SAFETY_HISTORY_WINDOW,
)
from .engine import StructuredPromptEngine
from .models import RiskLevel
from .prompts import MitrPrompts, PromptFormatter
from .schemas import ConversationTurn, SafetyAssessment

logger = logging.getLogger("safety_assessor")


# Crisis patterns with severity weights
CRISIS_PATTERNS: List[Tuple[str, float]] = [
    # Direct suicide / self-harm
    (r"\b(kill myself|end my life|take my life)\b", 1.0),
    (r"\b(want to die|wanna die|ready to die)\b", 1.0),
    (r"\bsuicid(e|al|ing)\b", 1.0),
    (r"\b(shouldn'?t be alive|should not be alive)\b", 1.0),
    (r"\b(don'?t want to live|do not want to live)\b", 1.0),
    (r"\bbetter off dead\b", 1.0),
    (r"\b(end it all|ending it all)\b", 0.95),
    (r"\b(no point in living|no reason to live)\b", 0.95),
    (r"\boff myself\b", 0.95),

    # Euphemisms
    (r"\b(unalive|un-alive)\b", 1.0),
    (r"\b(kms|kys)\b", 1.0),
    (r"\b(not wake up|never wake up|sleep forever)\b", 0.9),
    (r"\b(disappear forever|cease to exist)\b", 0.85),

    # Self-harm
    (r"\b(cut myself|cutting myself|hurt myself|hurting myself)\b", 0.9),
    (r"\b(burn myself|starve myself)\b", 0.9),

    # Methods
    (r"\b(jump off|hang myself|shoot myself|overdose)\b", 1.0),
    (r"\b(slit|slitting)\s*(my\s*)?(wrists?|throat)\b", 1.0),

    # Hopelessness with intent
    (r"\b(nothing to live for|no future)\b", 0.9),
    (r"\bburden to everyone\b", 0.9),
    (r"\b(world|everyone)\b.*\b(better|fine)\b.*\bwithout me\b", 0.9),
    (r"\bwish i (was|were) dead\b", 0.85),

    # Severe distress
    (r"\b(hopeless|no hope|lost all hope)\b", 0.8),
    (r"\b(can'?t|cannot) go on\b", 0.75),
    (r"\b(can'?t|cannot) (do|take) (this|it) anymore\b", 0.75),
    (r"\b(give up|giving up) on (life|everything|myself)\b", 0.8),
    (r"\bno one would miss\b", 0.8),
    (r"\b(tired of living|tired of life)\b", 0.75),
    (r"\bworthless\b", 0.7),
    (r"\b(everyone hates me|nobody cares)\b", 0.7),

    # Notable distress
    (r"\bdon'?t want to be here\b", 0.65),
    (r"\bhate (my life|myself)\b", 0.6),
]

# Protective context slightly reduces the score
PROTECTIVE_PATTERNS: List[str] = [
    r"\bbut i (won'?t|wouldn'?t)\b",
    r"\b(joking|just kidding|jk)\b",
    r"\b(in the past|used to|years ago)\b",
    r"\b(hypothetically|hypothetical)\b",
    r"\b(movie|book|song|character|story|game)\b",
]


@dataclass
class CrisisScreenResult:
    """Outcome of screening one message."""
    score: float
    risk_floor: RiskLevel
    matched: List[str] = field(default_factory=list)
    protective_factors: int = 0
    escalation: bool = False

    @property
    def flagged(self) -> bool:
        return self.risk_floor != RiskLevel.LOW

    def to_dict(self):
        return {
            "score": self.score,
            "riskFloor": self.risk_floor.value,
            "matched": list(self.matched),
            "protectiveFactors": self.protective_factors,
            "escalation": self.escalation,
        }


def risk_for_score(score: float) -> RiskLevel:
    if score >= CRISIS_CRITICAL_THRESHOLD:
        return RiskLevel.CRITICAL
    if score >= CRISIS_HIGH_THRESHOLD:
        return RiskLevel.HIGH
    if score >= CRISIS_MEDIUM_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


class CrisisScreen:
    """Pattern-based crisis language screen. Stateless and side-effect free."""

    def __init__(self,
                 patterns: Optional[List[Tuple[str, float]]] = None,
                 protective_patterns: Optional[List[str]] = None):
        self.patterns: List[Tuple[Pattern, float]] = [
            (re.compile(p, re.IGNORECASE), w) for p, w in (patterns or CRISIS_PATTERNS)
        ]
        self.protective: List[Pattern] = [
            re.compile(p, re.IGNORECASE) for p in (protective_patterns or PROTECTIVE_PATTERNS)
        ]

    def _raw_score(self, text: str) -> Tuple[float, List[str]]:
        matched = []
        score = 0.0
        for pattern, weight in self.patterns:
            match = pattern.search(text)
            if match:
                matched.append(match.group(0))
                score = max(score, weight)
        return score, matched

    def screen(self, text: str, recent_messages: Optional[List[str]] = None) -> CrisisScreenResult:
        """
        Score ``text`` (0..1) and map it to a risk floor.

        ``recent_messages`` are earlier user messages; sustained distress
        across them followed by a stronger message counts as escalation.
        """
        if not text:
            return CrisisScreenResult(score=0.0, risk_floor=RiskLevel.LOW)

        text_lower = text.lower()
        score, matched = self._raw_score(text_lower)

        escalation = False
        if recent_messages and len(recent_messages) >= 2 and score > 0:
            previous = [self._raw_score(m.lower())[0] for m in recent_messages[-3:]]
            if all(s > 0.3 for s in previous) and score > previous[-1]:
                escalation = True
                score = min(1.0, score + 0.1)

        protective = sum(1 for p in self.protective if p.search(text_lower))
        reduction = min(0.1, protective * 0.03)
        if score >= CRISIS_HIGH_THRESHOLD:
            # Serious matches never drop below medium
            score = max(CRISIS_MEDIUM_THRESHOLD, score - reduction)
        else:
            score = max(0.0, score - reduction)

        return CrisisScreenResult(
            score=round(score, 3),
            risk_floor=risk_for_score(score),
            matched=matched,
            protective_factors=protective,
            escalation=escalation,
        )


class SafetyAssessor:
    """Dedicated safety call, floored by the crisis screen."""

    def __init__(self,
                 prompt_engine: StructuredPromptEngine,
                 crisis_screen: Optional[CrisisScreen] = None,
                 history_window: int = SAFETY_HISTORY_WINDOW):
        self.prompt_engine = prompt_engine
        self.crisis_screen = crisis_screen or CrisisScreen()
        self.history_window = history_window

    def screen(self, message: str, history: Optional[List[ConversationTurn]] = None) -> CrisisScreenResult:
        recent = [t.message for t in (history or []) if t.speaker.value == "user"]
        result = self.crisis_screen.screen(message, recent)
        if result.flagged:
            logger.warning("Crisis screen flagged message: floor=%s score=%.2f matched=%s",
                           result.risk_floor.value, result.score, result.matched)
        return result

    def build_prompt(self,
                     message: str,
                     emotion_data: str,
                     history: Optional[List[ConversationTurn]] = None,
                     health_data: Optional[str] = None) -> str:
        return MitrPrompts.safety_assessment(
            user_message=message,
            emotion_data=emotion_data,
            health_data=health_data,
            conversation_history=PromptFormatter.format_history(history or [], self.history_window),
        )

    async def assess(self,
                     message: str,
                     emotion_data: str,
                     history: Optional[List[ConversationTurn]] = None,
                     health_data: Optional[str] = None) -> SafetyAssessment:
        """
        Ask the model for a risk assessment. No fallback: failures propagate.
        """
        prompt = self.build_prompt(message, emotion_data, history, health_data)
        return await self.prompt_engine.generate("safety_assessment", prompt, SafetyAssessment)

    @staticmethod
    def apply_floor(assessment: SafetyAssessment, screen: CrisisScreenResult) -> SafetyAssessment:
        """
        Raise the assessment to the screen's floor; never lower it.

        A flagged screen also guarantees at least one concern is listed.
        """
        raised = screen.risk_floor.rank > assessment.risk_level.rank
        missing_concern = screen.flagged and not assessment.concerns
        if not raised and not missing_concern:
            return assessment

        concerns = list(assessment.concerns)
        concerns.append(f"Crisis language screen flagged: {', '.join(screen.matched)}")
        if not raised:
            return assessment.model_copy(update={"concerns": concerns})

        logger.warning("Raising model risk %s to screen floor %s",
                       assessment.risk_level.value, screen.risk_floor.value)
        actions = list(assessment.actions)
        if screen.risk_floor.rank >= RiskLevel.HIGH.rank:
            actions.append("Share crisis resources and check on immediate safety")

        urgent = assessment.urgent_intervention
        if screen.risk_floor == RiskLevel.CRITICAL:
            urgent = True

        return assessment.model_copy(update={
            "risk_level": screen.risk_floor,
            "concerns": concerns,
            "actions": actions,
            "follow_up": True,
            "urgent_intervention": urgent,
        })

    @staticmethod
    def from_screen(screen: CrisisScreenResult) -> SafetyAssessment:
        """A safety block built from the screen alone (no model call)."""
        if not screen.flagged:
            return SafetyAssessment(risk_level=RiskLevel.LOW)
        actions = ["Check in about immediate safety"]
        if screen.risk_floor.rank >= RiskLevel.HIGH.rank:
            actions.append("Share crisis resources")
        return SafetyAssessment(
            risk_level=screen.risk_floor,
            concerns=[f"Crisis language screen flagged: {', '.join(screen.matched)}"],
            actions=actions,
            follow_up=True,
            urgent_intervention=screen.risk_floor == RiskLevel.CRITICAL,
        )

    @staticmethod
    def resources_for(level: RiskLevel) -> List[str]:
        return list(CRISIS_RESOURCES) if level.rank >= RiskLevel.HIGH.rank else []
