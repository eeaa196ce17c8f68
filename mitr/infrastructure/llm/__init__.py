"""LLM infrastructure: the Vertex AI Gemini REST client."""

from .client import VertexRestClient, split_image_data

__all__ = ["VertexRestClient", "split_image_data"]
