"""Enrichment providers."""

from .base import (
    EmbeddingProvider,
    ProviderRegistry,
    SummarizationProvider,
    TaggingProvider,
    get_registry,
)

__all__ = [
    "EmbeddingProvider",
    "ProviderRegistry",
    "SummarizationProvider",
    "TaggingProvider",
    "get_registry",
]
