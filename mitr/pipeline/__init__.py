"""Therapeutic pipeline components.

This module contains the analysis stages, their orchestration, and the
structured schemas and events they share.
"""

# Core orchestrator class
from .orchestrator import MitrOrchestrator

# Structured schemas
from .schemas import (
    ConversationTurn, FastMitrInput, ComprehensiveMitrInput, EmotionAnalysisInput,
    EmotionAnalysisOutput, ContextManagementInput, ContextGuidance, SafetyAssessment,
    WearablesData, WearablesAnalysis, TherapeuticResponse, validate_input,
)
from .models import RiskLevel, SessionPhase, Speaker

# Stages
from .engine import StructuredPromptEngine
from .emotion import EmotionAnalyzer
from .intent import IntentClassifier
from .knowledge import KnowledgeMatcher
from .context import ContextManager
from .safety import CrisisScreen, SafetyAssessor
from .wearables import WearablesAnalyzer
from .response import ResponseGenerator
from .sentiment import SentimentAnalyzer
from .session import ChatSession

# Event system
from .events import (
    PipelineEventBus, EventLogger, PipelineMetrics, EventType, PipelineEvent,
)

__all__ = [
    "MitrOrchestrator",
    "ConversationTurn", "FastMitrInput", "ComprehensiveMitrInput", "EmotionAnalysisInput",
    "EmotionAnalysisOutput", "ContextManagementInput", "ContextGuidance", "SafetyAssessment",
    "WearablesData", "WearablesAnalysis", "TherapeuticResponse", "validate_input",
    "RiskLevel", "SessionPhase", "Speaker",
    "StructuredPromptEngine", "EmotionAnalyzer", "IntentClassifier", "KnowledgeMatcher",
    "ContextManager", "CrisisScreen", "SafetyAssessor", "WearablesAnalyzer",
    "ResponseGenerator", "SentimentAnalyzer", "ChatSession",
    "PipelineEventBus", "EventLogger", "PipelineMetrics", "EventType", "PipelineEvent",
]
