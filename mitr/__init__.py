"""
Mitr: multimodal therapeutic chat pipeline.

Takes a user message plus optional image, audio, wearable and profile
signals and produces one therapeutic response by orchestrating several
independent LLM prompt calls on Vertex AI.
"""

__version__ = "1.0.0"

# Main entry points
from .pipeline.orchestrator import MitrOrchestrator
from .pipeline.schemas import TherapeuticResponse, FastMitrInput, ComprehensiveMitrInput

__all__ = ["MitrOrchestrator", "TherapeuticResponse", "FastMitrInput", "ComprehensiveMitrInput"]
