"""
Summarization, tagging and embedding providers using OpenAI.

Errors propagate to the caller; the enrichment engine decides on fallback.
"""

import os

from .base import (
    SUMMARIZATION_SYSTEM_PROMPT,
    TAGGING_SYSTEM_PROMPT,
    get_registry,
)

# Inputs beyond this are cut before being sent
MAX_INPUT_CHARS = 20000


def _openai_client(api_key: str | None, base_url: str | None = None, timeout: float = 30.0):
    try:
        from openai import OpenAI
    except ImportError:
        raise RuntimeError("OpenAI providers require the 'openai' library")

    key = api_key or os.environ.get("NOTESYNC_OPENAI_API_KEY") or os.environ.get("OPENAI_API_KEY")
    if not key:
        raise ValueError(
            "OpenAI API key required. Set NOTESYNC_OPENAI_API_KEY or OPENAI_API_KEY"
        )
    return OpenAI(api_key=key, base_url=base_url, timeout=timeout, max_retries=1)


class OpenAISummarization:
    """
    Summarization provider using OpenAI's chat API.

    Requires: NOTESYNC_OPENAI_API_KEY or OPENAI_API_KEY environment variable.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        self.model = model
        self._client = _openai_client(api_key, base_url)

    def summarize(self, text: str, *, max_length: int = 150) -> str:
        """Generate a summary using OpenAI."""
        response = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SUMMARIZATION_SYSTEM_PROMPT.format(max_length=max_length)},
                {"role": "user", "content": f"Please summarize this text: {text[:MAX_INPUT_CHARS]}"},
            ],
            # Rough characters-per-token estimate
            max_tokens=max(16, -(-max_length // 3)),
            temperature=0.3,
        )
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise ValueError("Empty summary in response")
        return content.strip()


class OpenAITagging:
    """
    Tagging provider using OpenAI's chat API.

    The model answers with a comma-separated list; tags are lower-cased and
    de-duplicated here.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        self.model = model
        self._client = _openai_client(api_key, base_url)

    def tag(self, text: str, *, max_tags: int = 5) -> list[str]:
        """Generate tags using OpenAI."""
        response = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": TAGGING_SYSTEM_PROMPT.format(max_tags=max_tags)},
                {"role": "user", "content": f"Generate tags for this text: {text[:MAX_INPUT_CHARS]}"},
            ],
            max_tokens=100,
            temperature=0.3,
        )
        content = response.choices[0].message.content or ""
        return parse_tag_list(content, max_tags)


class OpenAIEmbedding:
    """Embedding provider using OpenAI's embeddings API."""

    def __init__(
        self,
        model: str = "text-embedding-ada-002",
        dimension: int = 1536,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        self.model = model
        self._dimension = dimension
        self._client = _openai_client(api_key, base_url)

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str) -> list[float]:
        """Generate an embedding using OpenAI."""
        response = self._client.embeddings.create(
            model=self.model,
            input=text[:MAX_INPUT_CHARS],
        )
        return list(response.data[0].embedding)


def parse_tag_list(raw: str, max_tags: int) -> list[str]:
    """Parse "a, B, a , c" into ["a", "b", "c"], capped at max_tags."""
    tags = [t.strip().strip("#").lower() for t in raw.split(",")]
    return list(dict.fromkeys(t for t in tags if t))[:max_tags]


# Register providers
_registry = get_registry()
_registry.register_summarization("openai", OpenAISummarization)
_registry.register_tagging("openai", OpenAITagging)
_registry.register_embedding("openai", OpenAIEmbedding)
