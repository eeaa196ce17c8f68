"""
Data infrastructure: in-process TTL caches.
"""

from .cache import TTLStore, AnalysisCache, MessageCache, make_cache_key

__all__ = [
    'TTLStore',
    'AnalysisCache',
    'MessageCache',
    'make_cache_key',
]
