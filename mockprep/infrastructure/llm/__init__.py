"""LLM access for question generation, scoring and follow-ups."""

from .client import VertexRestClient, strip_code_fences

__all__ = ["VertexRestClient", "strip_code_fences"]
