"""
Main orchestrator for the Mitr therapeutic pipeline.

Sequences the analysis stages for each flow, substitutes defaults for the
stages that may degrade, and merges everything into one typed result.
"""
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, List, Optional, Tuple, TypeVar

from ..config import INTENT_HISTORY_WINDOW
from ..errors import MitrError, AnalyzerFailure, CriticalStageFailure
from ..infrastructure.data.cache import AnalysisCache, make_cache_key
from ..infrastructure.llm.client import VertexRestClient
from .context import ContextManager
from .emotion import EmotionAnalyzer
from .engine import StructuredPromptEngine
from .events import (
    PipelineEventBus, EventLogger, PipelineMetrics,
    RequestStartedEvent, RequestCompletedEvent, RequestFailedEvent,
    StageCompletedEvent, StageDegradedEvent, StageSkippedEvent,
    CriticalRiskDetectedEvent, CacheHitEvent,
)
from .intent import IntentClassifier
from .knowledge import KnowledgeMatcher
from .prompts import MitrPrompts, PromptFormatter
from .response import ResponseGenerator
from .safety import CrisisScreen, CrisisScreenResult, SafetyAssessor
from .schemas import (
    AvatarControl, ComprehensiveMitrInput, ContextAwareResponseInput, ContextAwareResponseOutput,
    ContextGuidance, ContextManagementInput, ContextualInsights, DataQuality, EmotionAnalysisInput,
    EmotionAnalysisOutput, EmotionalContext, EmotionSummary, FastMitrInput, GenerateAvatarInput,
    GenerateAvatarOutput, GeneratedResponse, Interventions, ResponseMetadata, SafetyAssessment,
    TherapeuticResponse, WearablesAnalysis, WearablesData, validate_input,
)
from .wearables import WearablesAnalyzer
from . import defaults

logger = logging.getLogger("orchestrator")

R = TypeVar("R")

_MESSAGES = MitrPrompts.fallback_messages()


def _new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MitrOrchestrator:
    """
    Runs the fast, comprehensive and single-purpose flows.

    Every flow accepts either a raw request mapping (camelCase or snake_case
    keys) or an already validated input model. Malformed input raises
    :class:`~mitr.errors.ValidationError` before any model call is made.
    """

    def __init__(self,
                 llm_client,
                 analysis_cache: Optional[AnalysisCache] = None,
                 event_bus: Optional[PipelineEventBus] = None,
                 knowledge_matcher: Optional[KnowledgeMatcher] = None,
                 crisis_screen: Optional[CrisisScreen] = None,
                 analyze_wearables: bool = False):
        """
        Args:
            llm_client: Anything exposing ``agenerate_json`` and ``agenerate_image``
            analysis_cache: Optional cache for fast/comprehensive results
            event_bus: Shared event bus; a private one is created when omitted
            knowledge_matcher: Therapeutic knowledge lookup
            crisis_screen: Local crisis-language screen used as a risk floor
            analyze_wearables: Run the real wearables analysis inside the
                comprehensive flow instead of the static health summary
        """
        # Event system
        self.event_bus = event_bus or PipelineEventBus()
        self.event_logger = EventLogger()
        self.metrics = PipelineMetrics()
        self.event_bus.subscribe_all(self.event_logger.handle_event)
        self.event_bus.subscribe_all(self.metrics.handle_event)

        self.llm_client = llm_client
        self.analysis_cache = analysis_cache
        self.analyze_wearables_enabled = analyze_wearables

        # Stages
        self.prompt_engine = StructuredPromptEngine(llm_client)
        self.emotion_analyzer = EmotionAnalyzer(self.prompt_engine, self.event_bus)
        self.intent_classifier = IntentClassifier(self.prompt_engine)
        self.knowledge_matcher = knowledge_matcher or KnowledgeMatcher()
        self.context_manager = ContextManager(self.prompt_engine, self.intent_classifier, self.knowledge_matcher)
        self.safety_assessor = SafetyAssessor(self.prompt_engine, crisis_screen)
        self.wearables_analyzer = WearablesAnalyzer(self.prompt_engine)
        self.response_generator = ResponseGenerator(self.prompt_engine)

    @classmethod
    def from_config(cls, config, **kwargs) -> "MitrOrchestrator":
        """Build an orchestrator talking to Vertex AI, with a response cache."""
        kwargs.setdefault("analysis_cache", AnalysisCache())
        kwargs.setdefault("analyze_wearables", config.analyze_wearables)
        return cls(VertexRestClient.from_config(config), **kwargs)

    def get_metrics(self):
        return self.metrics.get_metrics()

    # ------------------------------------------------------------------
    # Flow bookkeeping
    # ------------------------------------------------------------------

    async def _tracked(self, flow: str, request_id: str, work: Awaitable[R],
                       modalities: Optional[List[str]] = None) -> R:
        """Await ``work`` between request started/completed (or failed) events."""
        self.event_bus.emit(RequestStartedEvent(request_id, flow, modalities))
        started = time.perf_counter()
        try:
            result = await work
        except Exception as e:
            self.event_bus.emit(RequestFailedEvent(
                request_id, flow, _elapsed_ms(started), getattr(e, "stage", None),
                type(e).__name__, str(e)
            ))
            if isinstance(e, MitrError):
                logger.error("%s flow failed (request %s): %s", flow, request_id, e)
            else:
                logger.exception("%s flow crashed (request %s)", flow, request_id)
            raise

        safety = getattr(result, "safety_assessment", None)
        risk_level = safety.risk_level.value if safety else None
        self.event_bus.emit(RequestCompletedEvent(request_id, flow, _elapsed_ms(started), risk_level))
        return result

    async def _stage(self, request_id: str, stage: str, work: Awaitable[R]) -> R:
        started = time.perf_counter()
        result = await work
        self.event_bus.emit(StageCompletedEvent(request_id, stage, _elapsed_ms(started)))
        return result

    def _degrade(self, request_id: str, stage: str, error: MitrError) -> None:
        failure = error if isinstance(error, AnalyzerFailure) else AnalyzerFailure(stage, error)
        logger.warning("%s; continuing with defaults (request %s)", failure, request_id)
        self.event_bus.emit(StageDegradedEvent(request_id, stage, type(error).__name__, str(error)))

    def _cache_lookup(self, flow: str, request: FastMitrInput,
                      request_id: str) -> Tuple[Optional[TherapeuticResponse], Optional[str]]:
        if self.analysis_cache is None:
            return None, None
        context = request.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"user_message"})
        key = make_cache_key(request.user_message, context, prefix=flow)
        cached = self.analysis_cache.get(key)
        if cached is None:
            return None, key

        logger.info("Serving %s response from cache (request %s)", flow, request_id)
        self.event_bus.emit(RequestStartedEvent(request_id, flow))
        self.event_bus.emit(CacheHitEvent(request_id, flow, key))
        self.event_bus.emit(RequestCompletedEvent(
            request_id, flow, 0.0, cached.safety_assessment.risk_level.value, cache_hit=True
        ))
        return cached.model_copy(deep=True), key

    def _cache_store(self, key: Optional[str], response: TherapeuticResponse) -> None:
        if self.analysis_cache is not None and key:
            self.analysis_cache.set(key, response.model_copy(deep=True))

    def _alert_if_needed(self, request_id: str, response: TherapeuticResponse,
                         screen: CrisisScreenResult) -> None:
        if not response.requires_immediate_alert:
            return
        safety = response.safety_assessment
        source = "crisis_screen" if screen.risk_floor == safety.risk_level else "safety_assessment"
        logger.critical("Immediate alert required (request %s): risk=%s concerns=%s",
                        request_id, safety.risk_level.value, safety.concerns)
        self.event_bus.emit(CriticalRiskDetectedEvent(
            request_id, safety.risk_level.value, list(safety.concerns), source
        ))

    # ------------------------------------------------------------------
    # Fast flow
    # ------------------------------------------------------------------

    async def process_fast(self, data: Any) -> TherapeuticResponse:
        """
        One model call for the reply; every analytical field is static.

        The crisis screen still runs locally and replaces the static safety
        block when it flags the message.

        Raises:
            ValidationError: malformed input
            CriticalStageFailure: the reply could not be generated
        """
        request = validate_input(FastMitrInput, data)
        request_id = _new_request_id()

        cached, key = self._cache_lookup("fast", request, request_id)
        if cached is not None:
            return cached

        response = await self._tracked("fast", request_id, self._run_fast(request, request_id), ["text"])
        self._cache_store(key, response)
        return response

    async def _run_fast(self, request: FastMitrInput, request_id: str) -> TherapeuticResponse:
        screen = self.safety_assessor.screen(request.user_message, request.conversation_history)

        try:
            text = await self._stage(
                request_id, "response_generation",
                self.response_generator.generate_fast(request.user_message, request.conversation_history)
            )
        except MitrError as e:
            logger.error("Fast response generation failed: %s", e)
            raise CriticalStageFailure("response_generation", e, screen) from e

        safety = SafetyAssessor.from_screen(screen)
        response = TherapeuticResponse(
            response=text.strip() or defaults.FAST_RESPONSE_TEXT,
            emotion_analysis=defaults.fast_emotion_summary(),
            health_analysis=defaults.fast_health_summary(),
            contextual_insights=defaults.fast_contextual_insights(),
            avatar_control=defaults.fast_avatar_control(),
            interventions=defaults.fast_interventions(),
            safety_assessment=safety,
            metadata=ResponseMetadata(
                analysis_timestamp=_now(),
                confidence_score=defaults.FAST_CONFIDENCE,
                data_quality=defaults.fast_data_quality(),
            ),
            crisis_resources=SafetyAssessor.resources_for(safety.risk_level),
        )
        self._alert_if_needed(request_id, response, screen)
        return response

    # ------------------------------------------------------------------
    # Comprehensive flow
    # ------------------------------------------------------------------

    async def process_comprehensive(self, data: Any) -> TherapeuticResponse:
        """
        Full pipeline: emotion analysis, health summary, context management,
        safety assessment and response generation, in that order.

        Emotion analysis and context management degrade to defaults on
        failure. Safety assessment and response generation do not.

        Raises:
            ValidationError: malformed input
            CriticalStageFailure: safety assessment or response generation failed
        """
        request = validate_input(ComprehensiveMitrInput, data)
        request_id = _new_request_id()

        cached, key = self._cache_lookup("comprehensive", request, request_id)
        if cached is not None:
            return cached

        modalities = ["text"]
        if request.image_data:
            modalities.append("image")
        if request.audio_features:
            modalities.append("audio")
        if request.wearables_data:
            modalities.append("wearables")

        response = await self._tracked(
            "comprehensive", request_id, self._run_comprehensive(request, request_id), modalities
        )
        self._cache_store(key, response)
        return response

    async def _run_comprehensive(self, request: ComprehensiveMitrInput, request_id: str) -> TherapeuticResponse:
        message = request.user_message
        history = request.conversation_history
        screen = self.safety_assessor.screen(message, history)

        emotion = await self._emotion_stage(request, request_id)
        fused = emotion.fused_emotions if emotion else None

        health, health_is_real = await self._health_stage(request, request_id)
        guidance = await self._context_stage(request, emotion, health, request_id)

        # Critical stages: no local recovery
        to_json = PromptFormatter.to_json
        try:
            assessment = await self._stage(
                request_id, "safety_assessment",
                self.safety_assessor.assess(
                    message,
                    to_json(fused) if fused else _MESSAGES["no_emotion_data"],
                    history,
                    to_json(health) if health_is_real else None,
                )
            )
        except MitrError as e:
            logger.error("Safety assessment failed: %s", e)
            raise CriticalStageFailure("safety_assessment", e, screen) from e
        safety = SafetyAssessor.apply_floor(assessment, screen)

        try:
            generated = await self._stage(
                request_id, "response_generation",
                self.response_generator.generate(
                    message,
                    to_json(emotion) if emotion else _MESSAGES["no_emotion_analysis"],
                    to_json(guidance) if guidance else _MESSAGES["no_contextual_guidance"],
                    to_json(safety),
                    to_json(health) if health_is_real else None,
                )
            )
        except MitrError as e:
            logger.error("Response generation failed: %s", e)
            raise CriticalStageFailure("response_generation", e, screen) from e

        response = self.merge(generated, emotion, health, guidance, safety, request.wearables_data is not None)
        self._alert_if_needed(request_id, response, screen)
        return response

    async def _emotion_stage(self, request: ComprehensiveMitrInput,
                             request_id: str) -> Optional[EmotionAnalysisOutput]:
        data = EmotionAnalysisInput(
            image_data=request.image_data,
            audio_features=request.audio_features,
            text_content=request.user_message,
            conversation_history=PromptFormatter.format_history(request.conversation_history, INTENT_HISTORY_WINDOW),
        )
        try:
            analysis = await self.emotion_analyzer.analyze(data, request_id)
        except MitrError as e:
            self._degrade(request_id, "emotion_analysis", e)
            return None

        # The message is always supplied, so no reading at all means every call failed
        if analysis.facial_emotions is None and analysis.voice_emotions is None \
                and analysis.text_emotions is None:
            self._degrade(request_id, "emotion_analysis", AnalyzerFailure("emotion_analysis"))
            return None
        return analysis

    async def _health_stage(self, request: ComprehensiveMitrInput,
                            request_id: str) -> Tuple[WearablesAnalysis, bool]:
        """The real analysis when enabled and data was sent, else the static summary."""
        if self.analyze_wearables_enabled and request.wearables_data:
            try:
                analysis = await self._stage(
                    request_id, "wearables_analysis", self.wearables_analyzer.analyze(request.wearables_data)
                )
                return analysis, True
            except MitrError as e:
                self._degrade(request_id, "wearables_analysis", e)
        else:
            self.event_bus.emit(StageSkippedEvent(request_id, "wearables_analysis", "using static health summary"))
        return defaults.minimal_health_analysis(), False

    async def _context_stage(self, request: ComprehensiveMitrInput, emotion: Optional[EmotionAnalysisOutput],
                             health: WearablesAnalysis, request_id: str) -> Optional[ContextGuidance]:
        emotional_context = None
        if emotion:
            fused = emotion.fused_emotions
            trend = None
            if emotion.text_emotions and emotion.text_emotions.sentiment != 0:
                trend = "positive" if emotion.text_emotions.sentiment > 0 else "negative"
            emotional_context = EmotionalContext(
                current_emotion=fused.primary,
                emotion_intensity=fused.confidence,
                emotion_trend=trend,
                distress_level=fused.distress_level,
            )

        data = ContextManagementInput(
            current_message=request.user_message,
            conversation_history=request.conversation_history,
            user_profile=request.user_profile,
            emotional_context=emotional_context,
            health_context=WearablesAnalyzer.to_health_context(health),
        )
        try:
            return await self._stage(request_id, "context_management", self.context_manager.manage(data))
        except MitrError as e:
            self._degrade(request_id, "context_management", e)
            return None

    @staticmethod
    def merge(generated: GeneratedResponse,
              emotion: Optional[EmotionAnalysisOutput],
              health: Optional[WearablesAnalysis],
              guidance: Optional[ContextGuidance],
              safety: Optional[SafetyAssessment],
              wearables_supplied: bool = False) -> TherapeuticResponse:
        """
        Merge stage outputs into the final response.

        A default is substituted only where the upstream value is missing.
        The safety block passed in is authoritative; any safety block echoed
        in ``generated`` is ignored.
        """
        default_or = defaults.default_or
        fused = emotion.fused_emotions if emotion else None

        if fused:
            emotion_summary = EmotionSummary(
                primary=default_or(fused.primary, defaults.EMOTION_PRIMARY),
                confidence=default_or(fused.confidence, defaults.EMOTION_CONFIDENCE),
                distress_level=default_or(fused.distress_level, defaults.EMOTION_DISTRESS),
                recommendations=list(fused.recommendations),
            )
            expression = fused.avatar_expression
            avatar = AvatarControl(
                expression=default_or(expression.expression, defaults.AVATAR_EXPRESSION),
                intensity=default_or(expression.intensity, defaults.AVATAR_INTENSITY),
                duration=default_or(expression.duration, defaults.AVATAR_DURATION),
                emotional_state=defaults.AVATAR_EMOTIONAL_STATE,
            )
        else:
            emotion_summary = defaults.default_emotion_summary()
            avatar = defaults.default_avatar_control()

        if guidance:
            factors = guidance.contextual_factors
            insights = ContextualInsights(
                therapeutic_intent=default_or(guidance.therapeutic_intent.primary, defaults.THERAPEUTIC_INTENT),
                urgency_level=default_or(factors.urgency_level, defaults.URGENCY_LEVEL),
                session_phase=default_or(factors.session_phase, defaults.SESSION_PHASE),
                therapeutic_alliance=default_or(factors.therapeutic_alliance, defaults.THERAPEUTIC_ALLIANCE),
            )
        else:
            insights = defaults.default_contextual_insights()

        fallback = defaults.default_interventions()
        proposed = generated.interventions
        if proposed is None:
            interventions = fallback
        else:
            interventions = Interventions(
                immediate=default_or(proposed.immediate, fallback.immediate),
                session=default_or(proposed.session, fallback.session),
                long_term=default_or(proposed.long_term, fallback.long_term),
            )

        safety = safety or defaults.default_safety()

        emotion_confidence = fused.confidence if fused else defaults.EMOTION_CONFIDENCE
        intent_confidence = guidance.therapeutic_intent.confidence if guidance else defaults.INTENT_CONFIDENCE

        def quality(pair, present):
            return pair[0] if present else pair[1]

        return TherapeuticResponse(
            response=(generated.response or "").strip() or defaults.RESPONSE_TEXT,
            emotion_analysis=emotion_summary,
            health_analysis=WearablesAnalyzer.summarize(health) if health else None,
            contextual_insights=insights,
            avatar_control=avatar,
            interventions=interventions,
            safety_assessment=safety,
            metadata=ResponseMetadata(
                analysis_timestamp=_now(),
                confidence_score=(emotion_confidence + intent_confidence) / 2,
                data_quality=DataQuality(
                    emotional=quality(defaults.EMOTIONAL_QUALITY, emotion is not None),
                    health=quality(defaults.HEALTH_QUALITY, wearables_supplied),
                    contextual=quality(defaults.CONTEXTUAL_QUALITY, guidance is not None),
                ),
            ),
            crisis_resources=SafetyAssessor.resources_for(safety.risk_level),
        )

    # ------------------------------------------------------------------
    # Single-purpose flows
    # ------------------------------------------------------------------

    async def analyze_emotions(self, data: Any) -> EmotionAnalysisOutput:
        """Emotion-only flow: per-modality analysis plus fusion."""
        request = validate_input(EmotionAnalysisInput, data)
        request_id = _new_request_id()
        modalities = [name for name, value in (("image", request.image_data),
                                               ("audio", request.audio_features),
                                               ("text", request.text_content)) if value]
        return await self._tracked(
            "emotions", request_id, self.emotion_analyzer.analyze(request, request_id), modalities
        )

    async def analyze_wearables(self, data: Any) -> WearablesAnalysis:
        """Wearables-only flow. Failures propagate."""
        request = validate_input(WearablesData, data)
        request_id = _new_request_id()
        return await self._tracked(
            "wearables", request_id,
            self._stage(request_id, "wearables_analysis", self.wearables_analyzer.analyze(request)),
            ["wearables"],
        )

    async def manage_context(self, data: Any) -> ContextGuidance:
        """Context-only flow. Failures propagate."""
        request = validate_input(ContextManagementInput, data)
        request_id = _new_request_id()
        return await self._tracked(
            "context", request_id,
            self._stage(request_id, "context_management", self.context_manager.manage(request)),
            ["text"],
        )

    async def context_aware_response(self, data: Any) -> ContextAwareResponseOutput:
        request = validate_input(ContextAwareResponseInput, data)
        request_id = _new_request_id()
        return await self._tracked(
            "context_aware_response", request_id,
            self.response_generator.context_aware(request.conversation_history, request.user_input),
            ["text"],
        )

    async def generate_avatar(self, data: Any) -> GenerateAvatarOutput:
        request = validate_input(GenerateAvatarInput, data)
        request_id = _new_request_id()
        image = await self._tracked(
            "avatar", request_id, self.prompt_engine.generate_image("avatar", request.prompt)
        )
        return GenerateAvatarOutput(image_data_uri=image)
