"""
Wearables health analysis.
"""
import logging

from .engine import StructuredPromptEngine
from .prompts import MitrPrompts
from .schemas import HealthContext, HealthSummary, WearablesAnalysis, WearablesData

logger = logging.getLogger("wearables_analyzer")


class WearablesAnalyzer:
    """One model call over the supplied sensor readings. Failures propagate."""

    def __init__(self, prompt_engine: StructuredPromptEngine):
        self.prompt_engine = prompt_engine

    def build_prompt(self, data: WearablesData) -> str:
        return MitrPrompts.wearables_analysis(data.model_dump(by_alias=True, exclude_none=True))

    async def analyze(self, data: WearablesData) -> WearablesAnalysis:
        analysis = await self.prompt_engine.generate("wearables_analysis", self.build_prompt(data), WearablesAnalysis)
        if analysis.alerts:
            logger.info("Wearables analysis raised %d alert(s): %s",
                        len(analysis.alerts), [a.severity for a in analysis.alerts])
        return analysis

    @staticmethod
    def summarize(analysis: WearablesAnalysis) -> HealthSummary:
        """The slice of an analysis that goes into the merged response."""
        return HealthSummary(
            wellness_score=analysis.overall_wellness.score,
            stress_level=analysis.mental_health.stress_level,
            alerts=list(analysis.alerts),
            recommendations=list(analysis.recommendations.immediate),
        )

    @staticmethod
    def to_health_context(analysis: WearablesAnalysis) -> HealthContext:
        """The scalars the context manager reads."""
        return HealthContext(
            wellness_score=analysis.overall_wellness.score,
            stress_level=analysis.mental_health.stress_level,
            sleep_quality=analysis.physical_health.sleep_quality,
            activity_level=analysis.physical_health.activity_level,
        )
