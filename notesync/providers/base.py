"""
Base provider protocols.

These define the interfaces that enrichment backends must implement.
Using Protocol for structural subtyping - no explicit inheritance required.

Providers are synchronous and may raise on any failure; the enrichment
engine runs them off the event loop and substitutes the offline algorithm
for whichever output failed.
"""

from typing import Protocol, runtime_checkable


# Shared system prompts for LLM-backed providers
SUMMARIZATION_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates concise, professional summaries. "
    "Create a summary of the given text in approximately {max_length} characters or less. "
    "Focus on the main points and key information. "
    "Return only the summary without any additional text or formatting."
)

TAGGING_SYSTEM_PROMPT = (
    "You are a helpful assistant that generates relevant tags for content. "
    "Generate up to {max_tags} relevant, concise tags for the given text. "
    "Return only the tags as a comma-separated list, no additional text. "
    "Tags should be single words or short phrases, relevant to the content."
)


@runtime_checkable
class SummarizationProvider(Protocol):
    """
    Generates a concise summary of plain text.

    Example implementation:
        class OpenAISummarization:
            def summarize(self, text: str, *, max_length: int = 150) -> str:
                response = self._client.chat.completions.create(...)
                return response.choices[0].message.content.strip()
    """

    def summarize(self, text: str, *, max_length: int = 150) -> str:
        """
        Args:
            text: Normalized plain text
            max_length: Approximate maximum summary length in characters

        Returns:
            The summary text
        """
        ...


@runtime_checkable
class TaggingProvider(Protocol):
    """Generates a list of short tags for plain text."""

    def tag(self, text: str, *, max_tags: int = 5) -> list[str]:
        """
        Args:
            text: Normalized plain text
            max_tags: Maximum number of tags to return

        Returns:
            Tags, most relevant first
        """
        ...


@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Generates vector embeddings from text.

    The dimension must match the corpus-wide embedding dimension, otherwise
    the vector cannot be compared with stored embeddings.
    """

    @property
    def dimension(self) -> int:
        """The dimensionality of the embedding vectors."""
        ...

    def embed(self, text: str) -> list[float]:
        """Generate an embedding vector for the given text."""
        ...


# -----------------------------------------------------------------------------
# Provider Registry
# -----------------------------------------------------------------------------

class ProviderRegistry:
    """
    Registry for discovering and instantiating providers by name.

    Example:
        registry = get_registry()
        summarizer = registry.create_summarization("openai", {"model": "gpt-4o-mini"})
    """

    def __init__(self):
        self._summarization_providers: dict[str, type] = {}
        self._tagging_providers: dict[str, type] = {}
        self._embedding_providers: dict[str, type] = {}
        self._lazy_loaded = False

    def _ensure_providers_loaded(self) -> None:
        """Lazily import provider modules so they register themselves."""
        if self._lazy_loaded:
            return
        self._lazy_loaded = True
        from . import llm  # noqa: F401

    def register_summarization(self, name: str, provider_class: type) -> None:
        self._summarization_providers[name] = provider_class

    def register_tagging(self, name: str, provider_class: type) -> None:
        self._tagging_providers[name] = provider_class

    def register_embedding(self, name: str, provider_class: type) -> None:
        self._embedding_providers[name] = provider_class

    @staticmethod
    def _create_provider(kind: str, name: str, providers: dict, params: dict | None):
        """Shared factory logic for all provider types."""
        if name not in providers:
            available = ", ".join(providers.keys()) or "none"
            raise ValueError(
                f"Unknown {kind} provider: '{name}'. "
                f"Available providers: {available}."
            )
        try:
            return providers[name](**(params or {}))
        except Exception as e:
            raise RuntimeError(
                f"Failed to create {kind} provider '{name}': {e}"
            ) from e

    def create_summarization(self, name: str, params: dict | None = None) -> SummarizationProvider:
        self._ensure_providers_loaded()
        return self._create_provider("summarization", name, self._summarization_providers, params)

    def create_tagging(self, name: str, params: dict | None = None) -> TaggingProvider:
        self._ensure_providers_loaded()
        return self._create_provider("tagging", name, self._tagging_providers, params)

    def create_embedding(self, name: str, params: dict | None = None) -> EmbeddingProvider:
        self._ensure_providers_loaded()
        return self._create_provider("embedding", name, self._embedding_providers, params)

    def list_summarization_providers(self) -> list[str]:
        self._ensure_providers_loaded()
        return list(self._summarization_providers.keys())

    def list_tagging_providers(self) -> list[str]:
        self._ensure_providers_loaded()
        return list(self._tagging_providers.keys())

    def list_embedding_providers(self) -> list[str]:
        self._ensure_providers_loaded()
        return list(self._embedding_providers.keys())


# Global registry instance
# Concrete providers register themselves on import
_registry = ProviderRegistry()


def get_registry() -> ProviderRegistry:
    """Get the global provider registry."""
    return _registry
