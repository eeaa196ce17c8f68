"""
Response generation: the final therapeutic reply and the single-call variants.
"""
import logging
from typing import List, Optional

from ..config import FAST_HISTORY_WINDOW
from .engine import StructuredPromptEngine
from .prompts import MitrPrompts, PromptFormatter
from .schemas import ContextAwareResponseOutput, ConversationTurn, GeneratedResponse

logger = logging.getLogger("response_generator")


class ResponseGenerator:
    """Builds the reply text. None of these calls has a local fallback."""

    def __init__(self, prompt_engine: StructuredPromptEngine, fast_history_window: int = FAST_HISTORY_WINDOW):
        self.prompt_engine = prompt_engine
        self.fast_history_window = fast_history_window

    async def generate(self,
                       message: str,
                       emotion_analysis: str,
                       contextual_guidance: str,
                       safety_factors: str,
                       health_analysis: Optional[str] = None) -> GeneratedResponse:
        """
        Synthesize the reply from every upstream artifact, serialised as text.

        Any safety block the model restates is an echo; callers keep the
        dedicated assessment.
        """
        prompt = MitrPrompts.therapeutic_response(
            user_message=message,
            emotion_analysis=emotion_analysis,
            contextual_guidance=contextual_guidance,
            safety_factors=safety_factors,
            health_analysis=health_analysis,
        )
        return await self.prompt_engine.generate("therapeutic_response", prompt, GeneratedResponse)

    async def generate_fast(self, message: str, history: Optional[List[ConversationTurn]] = None) -> str:
        prompt = MitrPrompts.fast_therapist(
            message, PromptFormatter.format_history(history or [], self.fast_history_window)
        )
        result = await self.prompt_engine.generate("fast_therapist", prompt, ContextAwareResponseOutput)
        return result.response

    async def context_aware(self, conversation_history: str, user_input: str) -> ContextAwareResponseOutput:
        prompt = MitrPrompts.context_aware_response(conversation_history, user_input)
        return await self.prompt_engine.generate("context_aware_response", prompt, ContextAwareResponseOutput)
