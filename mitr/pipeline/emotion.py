"""
Per-modality emotion analyzers and multimodal fusion.
"""
import asyncio
import logging
import time
from typing import Optional, Type

from ..errors import MitrError, AnalyzerFailure
from .engine import StructuredPromptEngine
from .events import PipelineEventBus, StageCompletedEvent, StageDegradedEvent, StageSkippedEvent
from .prompts import MitrPrompts, PromptFormatter
from .schemas import (
    EmotionAnalysisInput, EmotionAnalysisOutput, EmotionRecord, FacialEmotionRecord,
    FusedEmotionRecord, TextEmotionRecord, VoiceEmotionRecord,
)
from . import defaults

logger = logging.getLogger("emotion_analyzer")


class EmotionAnalyzer:
    """
    Runs facial, voice and text analysis concurrently, then fuses the results.

    A modality whose input is absent is skipped; one whose call fails is
    logged and left unset. With no reading at all, fusion returns a neutral
    low-confidence record. Only a failed fusion call raises.
    """

    def __init__(self, prompt_engine: StructuredPromptEngine, event_bus: Optional[PipelineEventBus] = None):
        self.prompt_engine = prompt_engine
        self.event_bus = event_bus

    def _emit(self, event) -> None:
        if self.event_bus:
            self.event_bus.emit(event)

    async def analyze(self, data: EmotionAnalysisInput, request_id: str = "") -> EmotionAnalysisOutput:
        """
        Analyze every supplied modality and fuse them into one record.

        Raises:
            ModelCallError: the fusion call failed
        """
        facial_task = self._facial(data, request_id)
        voice_task = self._voice(data, request_id)
        text_task = self._text(data, request_id)
        facial, voice, text = await asyncio.gather(facial_task, voice_task, text_task)

        fused = await self.fuse(facial, voice, text, request_id)
        return EmotionAnalysisOutput(
            facial_emotions=facial,
            voice_emotions=voice,
            text_emotions=text,
            fused_emotions=fused,
        )

    async def _facial(self, data: EmotionAnalysisInput, request_id: str) -> Optional[FacialEmotionRecord]:
        if not data.image_data:
            self._emit(StageSkippedEvent(request_id, "facial_emotion", "no image supplied"))
            return None
        return await self._run_modality(
            "facial_emotion", MitrPrompts.facial_emotion(), FacialEmotionRecord, request_id,
            images=[data.image_data],
        )

    async def _voice(self, data: EmotionAnalysisInput, request_id: str) -> Optional[VoiceEmotionRecord]:
        if not data.audio_features:
            self._emit(StageSkippedEvent(request_id, "voice_emotion", "no audio features supplied"))
            return None
        features = data.audio_features.model_dump(by_alias=True)
        return await self._run_modality(
            "voice_emotion", MitrPrompts.voice_emotion(features), VoiceEmotionRecord, request_id,
        )

    async def _text(self, data: EmotionAnalysisInput, request_id: str) -> Optional[TextEmotionRecord]:
        if not data.text_content or not data.text_content.strip():
            self._emit(StageSkippedEvent(request_id, "text_emotion", "no text supplied"))
            return None
        prompt = MitrPrompts.text_emotion(data.text_content, data.conversation_history)
        return await self._run_modality("text_emotion", prompt, TextEmotionRecord, request_id)

    async def _run_modality(self, stage: str, prompt: str, model: Type[EmotionRecord],
                            request_id: str, images=None) -> Optional[EmotionRecord]:
        started = time.perf_counter()
        try:
            record = await self.prompt_engine.generate(stage, prompt, model, images=images)
        except MitrError as e:
            failure = AnalyzerFailure(stage, e)
            logger.warning("%s", failure)
            self._emit(StageDegradedEvent(request_id, stage, type(e).__name__, str(e)))
            return None
        self._emit(StageCompletedEvent(request_id, stage, (time.perf_counter() - started) * 1000))
        return record

    async def fuse(self,
                   facial: Optional[FacialEmotionRecord],
                   voice: Optional[VoiceEmotionRecord],
                   text: Optional[TextEmotionRecord],
                   request_id: str = "") -> FusedEmotionRecord:
        """
        Fuse whichever modality records are present.

        With no modality at all this returns a neutral low-confidence record
        without calling the model.
        """
        if facial is None and voice is None and text is None:
            logger.info("No modality produced a reading; using neutral fused emotions")
            self._emit(StageSkippedEvent(request_id, "multimodal_fusion", "no modality readings"))
            return defaults.neutral_fused_emotions()

        to_json = PromptFormatter.to_json
        prompt = MitrPrompts.multimodal_fusion(
            to_json(facial) if facial else None,
            to_json(voice) if voice else None,
            to_json(text) if text else None,
        )
        started = time.perf_counter()
        fused = await self.prompt_engine.generate("multimodal_fusion", prompt, FusedEmotionRecord)
        self._emit(StageCompletedEvent(request_id, "multimodal_fusion", (time.perf_counter() - started) * 1000))
        return fused
