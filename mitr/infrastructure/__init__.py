"""Infrastructure components for the Mitr pipeline.

Low-level technical components (model client, in-process caches) that the
therapeutic pipeline builds on.
"""

# LLM infrastructure
from .llm import VertexRestClient

# Caches
from .data import TTLStore, AnalysisCache, MessageCache, make_cache_key

__all__ = [
    "VertexRestClient",
    "TTLStore", "AnalysisCache", "MessageCache", "make_cache_key",
]
