"""
Interactive text chat session over the orchestrator.
"""
import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..config import CRISIS_RESOURCES
from ..errors import CriticalStageFailure, MitrError
from ..infrastructure.data.cache import MessageCache
from .models import RiskLevel, Speaker
from .orchestrator import MitrOrchestrator
from .prompts import MitrPrompts
from .schemas import ComprehensiveMitrInput, ConversationTurn, FastMitrInput, TherapeuticResponse
from .sentiment import SentimentAnalyzer

logger = logging.getLogger("chat_session")

EXIT_COMMANDS = ("quit", "exit", "bye")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ChatSession:
    """
    A terminal conversation: keeps the history, shows instant local metrics
    for each message and prints the pipeline's reply.
    """

    def __init__(self,
                 orchestrator: MitrOrchestrator,
                 sentiment_analyzer: SentimentAnalyzer,
                 message_cache: Optional[MessageCache] = None,
                 fast: bool = False,
                 input_fn: Callable[[str], str] = input,
                 output_fn: Callable[[str], None] = print):
        self.orchestrator = orchestrator
        self.sentiment_analyzer = sentiment_analyzer
        self.message_cache = message_cache if message_cache is not None else MessageCache()
        self.fast = fast
        self.input_fn = input_fn
        self.output_fn = output_fn
        self.history: List[ConversationTurn] = []
        self.session_id = uuid.uuid4().hex[:8]

    def _remember(self, speaker: Speaker, message: str) -> ConversationTurn:
        turn = ConversationTurn(speaker=speaker, message=message, timestamp=_timestamp())
        self.history.append(turn)
        message_id = f"{self.session_id}_{len(self.history)}"
        self.message_cache.store_message(message_id, turn.model_dump(mode="json", by_alias=True))
        return turn

    def show_instant_metrics(self, text: str) -> None:
        metrics = self.sentiment_analyzer.analyze_text(text)
        self.output_fn(
            f"   📊 {metrics.primary} ({metrics.confidence:.0%}) | distress {metrics.distress_level:.0%}"
            f" | wellness {metrics.wellness_score:.0f} | alliance {metrics.alliance:.0f}"
        )

    def show_response(self, response: TherapeuticResponse) -> None:
        self.output_fn(f"🤖 Mitr: {response.response}")
        safety = response.safety_assessment
        if response.requires_immediate_alert:
            self.output_fn("🚨 It sounds like you may be in danger. Please reach out for help right now:")
        elif safety.risk_level.rank >= RiskLevel.HIGH.rank:
            self.output_fn("⚠️  You don't have to go through this alone:")
        for resource in response.crisis_resources:
            self.output_fn(f"   • {resource}")

    def show_failure(self, error: CriticalStageFailure) -> None:
        self.output_fn(f"🤖 Mitr: {MitrPrompts.fallback_messages()['request_failed']}")
        screen = error.crisis_screen
        if screen is not None and screen.flagged:
            for resource in CRISIS_RESOURCES:
                self.output_fn(f"   • {resource}")

    async def handle_message(self, text: str) -> Optional[TherapeuticResponse]:
        """Send one user message through the pipeline and print the result."""
        text = text.strip()
        if not text:
            return None

        self.show_instant_metrics(text)
        history = list(self.history)
        self._remember(Speaker.USER, text)

        try:
            if self.fast:
                request = FastMitrInput(user_message=text, conversation_history=history)
                response = await self.orchestrator.process_fast(request)
            else:
                request = ComprehensiveMitrInput(user_message=text, conversation_history=history)
                response = await self.orchestrator.process_comprehensive(request)
        except CriticalStageFailure as e:
            logger.error("Message failed at %s: %s", e.stage, e)
            self.show_failure(e)
            return None
        except MitrError as e:
            logger.error("Message failed: %s", e)
            self.output_fn(f"🤖 Mitr: {MitrPrompts.fallback_messages()['request_failed']}")
            return None

        self._remember(Speaker.AGENT, response.response)
        self.show_response(response)
        return response

    async def run(self) -> None:
        """Read messages until the user exits or input ends."""
        mode = "fast" if self.fast else "comprehensive"
        self.output_fn(f"\n💬 Mitr chat ({mode} mode) - type 'quit' to leave")
        self.output_fn("=" * 50)

        while True:
            try:
                text = await asyncio.to_thread(self.input_fn, "You: ")
            except (EOFError, KeyboardInterrupt):
                break
            if text.strip().lower() in EXIT_COMMANDS:
                break
            await self.handle_message(text)

        self.output_fn("👋 Take care. Goodbye!")
        logger.info("Chat session %s ended after %d messages", self.session_id, len(self.history))
