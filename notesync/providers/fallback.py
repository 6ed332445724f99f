"""
Deterministic offline enrichment.

Used when no enrichment backend is configured, and per output whenever a
backend call fails. Same input always gives the same output, which is what
lets semantic search run fully offline and in tests.
"""

import math
import re

NO_CONTENT_SUMMARY = "No content to summarize"

# Matches OpenAI text-embedding-ada-002, so fallback and backend vectors
# share one corpus-wide dimension
DEFAULT_EMBEDDING_DIMENSION = 1536

COMMON_TAGS = (
    "note", "idea", "project", "work", "personal", "important", "draft", "research",
)

STOP_WORDS = frozenset({
    "about", "above", "after", "again", "against", "because", "before", "being",
    "below", "between", "both", "could", "doing", "during", "each", "every",
    "further", "having", "here", "itself", "might", "other", "ought", "ourselves",
    "over", "really", "same", "should", "since", "some", "such", "than", "that",
    "their", "theirs", "them", "themselves", "then", "there", "these", "they",
    "this", "those", "through", "under", "until", "very", "were", "what", "when",
    "where", "which", "while", "whom", "with", "would", "your", "yours",
    "yourself", "yourselves", "also", "just", "like", "into", "only", "still",
    "thing", "things", "something", "anything", "everything", "going", "think",
})

# (keywords, summary) pairs, checked in order; first match wins
SUMMARY_TEMPLATES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("recipe", "ingredient"),
     "A recipe listing its ingredients and preparation steps."),
    (("meeting", "agenda", "action item", "minutes"),
     "Meeting notes covering the discussion and agreed action items."),
    (("itinerary", "flight", "hotel", "travel"),
     "Travel plans with itinerary and booking details."),
    (("lecture", "course", "exam", "syllabus"),
     "Study notes summarizing key concepts to review."),
    (("budget", "expense", "invoice", "finance"),
     "Financial notes tracking budget and expenses."),
    (("workout", "exercise", "symptom", "diet"),
     "Health and fitness notes with routines and observations."),
    (("programming", "software", "function", "debug", "code"),
     "Technical notes on software development."),
    (("roadmap", "milestone", "deadline", "deliverable"),
     "Project planning notes with milestones and deadlines."),
)

_TEMPLATE_PATTERNS = tuple(
    (re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")(?:s|es)?\b"), summary)
    for keywords, summary in SUMMARY_TEMPLATES
)

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_NON_WORD_RE = re.compile(r"\W+")


def match_template(text: str) -> str | None:
    """Return the topical template summary for text, if any keyword is present."""
    lowered = text.lower()
    for pattern, summary in _TEMPLATE_PATTERNS:
        if pattern.search(lowered):
            return summary
    return None


def content_words(text: str, limit: int = 3) -> list[str]:
    """First `limit` distinct words longer than 4 characters that are not stop words."""
    found: list[str] = []
    for word in _NON_WORD_RE.split(text.lower()):
        if len(word) > 4 and word not in STOP_WORDS and not word.isdigit() and word not in found:
            found.append(word)
            if len(found) == limit:
                break
    return found


def _join_topics(topics: list[str]) -> str:
    if len(topics) == 1:
        return topics[0]
    return ", ".join(topics[:-1]) + " and " + topics[-1]


def fallback_summary(text: str, max_length: int = 150) -> str:
    """
    Summarize plain text without a model.

    Order of preference: the text itself when short enough, a topical
    template, the first sentence, a "covering topics" sentence built from
    content words, and finally word truncation with an ellipsis.
    """
    if not text or len(text) < 10:
        return NO_CONTENT_SUMMARY

    if len(text) <= max_length:
        return text

    template = match_template(text)
    if template:
        return template

    sentences = [s.strip() for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
    if sentences and len(sentences[0]) <= max_length:
        return sentences[0] + "."

    topics = content_words(text, limit=3)
    if topics:
        return f"A note covering topics such as {_join_topics(topics)}."

    words = text.split()
    target_words = max(1, max_length // 6)
    summary = " ".join(words[:target_words])
    return summary + ("..." if len(words) > target_words else "")


def fallback_tags(text: str, max_tags: int = 5) -> list[str]:
    """
    Tag plain text without a model.

    Half the slots (rounded down) go to the first distinct words of the
    text longer than 3 characters, the rest to common tags.
    """
    if max_tags <= 0:
        return []
    words = [w for w in _NON_WORD_RE.split(text.lower()) if len(w) > 3]
    unique_words = list(dict.fromkeys(words))
    tags = unique_words[: max_tags // 2] + list(COMMON_TAGS[: math.ceil(max_tags / 2)])
    return list(dict.fromkeys(tags))[:max_tags]


def text_hash(text: str) -> int:
    """
    32-bit signed rolling hash: h = h * 31 + code_unit.

    Iterates UTF-16 code units so characters outside the BMP contribute
    their surrogate pair, matching the JavaScript String hash.
    """
    data = text.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        h = (h * 31 + int.from_bytes(data[i:i + 2], "little")) & 0xFFFFFFFF
    return h - 0x100000000 if h >= 0x80000000 else h


def fallback_embedding(text: str, dimension: int = DEFAULT_EMBEDDING_DIMENSION) -> list[float]:
    """
    Deterministic pseudo-embedding of `dimension` floats in [-1, 1].

    Element i is (sin(h + i) + cos(2 * (h + i))) / 2 where h = text_hash(text).
    """
    h = text_hash(text)
    return [(math.sin(h + i) + math.cos(2 * (h + i))) / 2 for i in range(dimension)]
