"""
Context management: composes history, profile and emotional/health context
into therapeutic guidance for the response stage.
"""
import asyncio
import logging

from .engine import StructuredPromptEngine
from .intent import IntentClassifier
from .knowledge import KnowledgeMatcher
from .prompts import MitrPrompts, PromptFormatter
from .schemas import ContextGuidance, ContextManagementInput

logger = logging.getLogger("context_manager")


def _dump(model):
    return model.model_dump(by_alias=True, exclude_none=True) if model else None


class ContextManager:
    """
    One model call for the guidance structure, one for intent, and a local
    knowledge lookup. Intent and knowledge results replace whatever the
    composition call proposed for those fields.

    This stage has no fallback of its own: any failure propagates.
    """

    def __init__(self,
                 prompt_engine: StructuredPromptEngine,
                 intent_classifier: IntentClassifier,
                 knowledge_matcher: KnowledgeMatcher):
        self.prompt_engine = prompt_engine
        self.intent_classifier = intent_classifier
        self.knowledge_matcher = knowledge_matcher

    def build_prompt(self, data: ContextManagementInput) -> str:
        return MitrPrompts.context_analysis(
            current_message=data.current_message,
            history_lines=PromptFormatter.format_history_detailed(data.conversation_history),
            profile=_dump(data.user_profile),
            emotional_context=_dump(data.emotional_context),
            health_context=_dump(data.health_context),
        )

    async def manage(self, data: ContextManagementInput) -> ContextGuidance:
        """Produce :class:`ContextGuidance` for the current message."""
        composition = self.prompt_engine.generate("context_analysis", self.build_prompt(data), ContextGuidance)
        classification = self.intent_classifier.classify(data.current_message, data.conversation_history)

        guidance, intent = await asyncio.gather(composition, classification, return_exceptions=True)
        for result in (guidance, intent):
            if isinstance(result, BaseException):
                raise result

        current_emotion = data.emotional_context.current_emotion if data.emotional_context else None
        guidance.knowledge_base_matches = self.knowledge_matcher.find(data.current_message, current_emotion)
        guidance.therapeutic_intent = intent

        logger.debug("Guidance: intent=%s urgency=%s phase=%s matches=%d",
                     intent.primary,
                     guidance.contextual_factors.urgency_level.value,
                     guidance.contextual_factors.session_phase.value,
                     len(guidance.knowledge_base_matches))
        return guidance
