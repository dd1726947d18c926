"""Clients for external services."""

from paperdraft.apis.generation import GenerationClient, GenerationError

__all__ = ["GenerationClient", "GenerationError"]
