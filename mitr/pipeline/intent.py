"""
Therapeutic intent classification.
"""
import logging
from typing import List, Optional

from ..config import INTENT_HISTORY_WINDOW
from .engine import StructuredPromptEngine
from .prompts import MitrPrompts, PromptFormatter
from .schemas import ConversationTurn, TherapeuticIntent

logger = logging.getLogger("intent_classifier")


class IntentClassifier:
    """Maps a message plus its trailing history onto the intent vocabulary."""

    def __init__(self, prompt_engine: StructuredPromptEngine, history_window: int = INTENT_HISTORY_WINDOW):
        self.prompt_engine = prompt_engine
        self.history_window = history_window

    def build_prompt(self, message: str, history: Optional[List[ConversationTurn]] = None) -> str:
        # Only the trailing window is sent
        context = PromptFormatter.format_history(history or [], self.history_window)
        return MitrPrompts.intent_classification(message, context)

    async def classify(self, message: str, history: Optional[List[ConversationTurn]] = None) -> TherapeuticIntent:
        """
        Classify the message. The model's ranking is authoritative.

        Raises:
            ModelCallError: the call failed or returned a malformed result
        """
        intent = await self.prompt_engine.generate(
            "intent_classification", self.build_prompt(message, history), TherapeuticIntent
        )
        logger.debug("Intent: %s (%.2f) secondary=%s", intent.primary, intent.confidence, intent.secondary)
        return intent
