"""Context assembler - re-score, select and concatenate retrieved chunks."""

import re
from typing import Protocol

from askdocs.models.retrieval import AssembledContext, RetrievalResult

# First match wins
QUESTION_TYPE_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("number", re.compile(r"\b(number|license|stn|bl)\b")),
    ("age", re.compile(r"\b(age|years?|old)\b")),
    ("date", re.compile(r"\b(date|when|period|time|year|month)\b")),
    ("location", re.compile(r"\b(where|location|facility|manufacturing)\b")),
    ("requirement", re.compile(r"\b(must|submit|require|before|report)\b")),
    ("factual", re.compile(r"\b(what|which|name)\b")),
]

# Chunk text hints that a chunk can answer a given question type
_CHUNK_BOOST_PATTERNS: dict[str, re.Pattern[str]] = {
    "number": re.compile(r"\b\d+[.,]?\d*\b|number|license|stn|bl\s*\d+", re.IGNORECASE),
    "age": re.compile(r"\b\d+\s*years?\b|age|pediatric|children|adult", re.IGNORECASE),
    "date": re.compile(r"\b\d{4}\b|date|month|year|period|completion", re.IGNORECASE),
    # Case-sensitive: looks for proper-noun place names like "Springfield, IL"
    "location": re.compile(r"\b[A-Z][a-z]+,?\s*[A-Z][A-Z]?\b|facility|manufacturing|location"),
    "requirement": re.compile(r"must|shall|require|submit|report|before", re.IGNORECASE),
}

_SNIPPET_PATTERNS: dict[str, re.Pattern[str]] = {
    "number": re.compile(r"\b(number|license|stn|bl)\s*:?\s*\d+", re.IGNORECASE),
    "age": re.compile(r"\b\d+\s*years?\s*(of\s*age|old)", re.IGNORECASE),
    "date": re.compile(r"\b\d+\s*months?\b", re.IGNORECASE),
}

STOPWORDS = frozenset(
    {
        "what", "which", "when", "where", "who", "how", "why", "was", "were", "is", "are",
        "the", "and", "or", "but", "to", "for", "of", "in", "on", "at", "by", "under", "with",
    }
)  # fmt: skip

MAX_KEYWORDS = 8
MAX_KEY_INFO = 5
KEYWORD_BOOST = 0.1
TYPE_BOOST = 0.15
SNIPPET_BONUS = 2

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_NON_WORD = re.compile(r"[^\w\s]")


def classify_question(question: str) -> str:
    """Classify a question into number/age/date/location/requirement/factual/general."""
    lowered = question.lower()
    for question_type, pattern in QUESTION_TYPE_PATTERNS:
        if pattern.search(lowered):
            return question_type
    return "general"


def extract_keywords(question: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Lowercased content words longer than two characters, stopwords removed."""
    words = _NON_WORD.sub(" ", question.lower()).split()
    return [w for w in words if len(w) > 2 and w not in STOPWORDS][:limit]


class QuestionScorer(Protocol):
    """Pluggable question heuristics used by the assembler."""

    def classify(self, question: str) -> str:
        """Return the question type."""
        ...

    def keywords(self, question: str) -> list[str]:
        """Return the key terms of the question."""
        ...

    def score_chunk(
        self, result: RetrievalResult, question_type: str, keywords: list[str]
    ) -> float:
        """Return the boosted relevance of one retrieved chunk."""
        ...

    def score_sentence(self, sentence: str, question_type: str, keywords: list[str]) -> int:
        """Return the key-info score of one sentence."""
        ...


class PatternQuestionScorer:
    """Regex and keyword heuristics (no external calls)."""

    def classify(self, question: str) -> str:
        return classify_question(question)

    def keywords(self, question: str) -> list[str]:
        return extract_keywords(question)

    def score_chunk(
        self, result: RetrievalResult, question_type: str, keywords: list[str]
    ) -> float:
        lowered = result.text.lower()
        score = result.similarity

        for keyword in keywords:
            score += lowered.count(keyword) * KEYWORD_BOOST

        pattern = _CHUNK_BOOST_PATTERNS.get(question_type)
        if pattern and pattern.search(result.text):
            score += TYPE_BOOST

        return score

    def score_sentence(self, sentence: str, question_type: str, keywords: list[str]) -> int:
        lowered = sentence.lower()
        score = sum(1 for keyword in keywords if keyword in lowered)

        pattern = _SNIPPET_PATTERNS.get(question_type)
        if pattern and pattern.search(sentence):
            score += SNIPPET_BONUS

        return score


def _render(result: RetrievalResult, position: int) -> str:
    label = "Org Source" if result.source_type == "organization" else "Personal"
    return f"[{label} {position}]: {result.text}"


def _extract_key_info(
    results: list[RetrievalResult],
    question_type: str,
    keywords: list[str],
    scorer: QuestionScorer,
) -> list[str]:
    snippets: list[tuple[int, str]] = []
    seen: set[str] = set()

    for result in results:
        for raw in _SENTENCE_SPLIT.split(result.text):
            sentence = raw.strip()
            if len(sentence) <= 10 or sentence in seen:
                continue
            seen.add(sentence)
            score = scorer.score_sentence(sentence, question_type, keywords)
            if score >= 2:
                snippets.append((score, sentence))

    # Stable sort keeps document order among equal scores
    snippets.sort(key=lambda s: -s[0])
    return [sentence for _, sentence in snippets[:MAX_KEY_INFO]]


def assemble_context(
    results: list[RetrievalResult],
    question: str,
    scorer: QuestionScorer | None = None,
    *,
    max_chunks: int = 6,
    max_chars: int = 4000,
) -> AssembledContext:
    """Build a bounded prompt context from verified retrieval results.

    Args:
        results: Verified retrieval results
        question: User question
        scorer: Question heuristics (PatternQuestionScorer by default)
        max_chunks: Maximum chunks included in the context
        max_chars: Context length limit; rendering stops before exceeding it

    Returns:
        AssembledContext with context text, key info, quality score and
        source breakdown over all results
    """
    scorer = scorer or PatternQuestionScorer()
    question_type = scorer.classify(question)
    keywords = scorer.keywords(question)

    breakdown = {"personal": 0, "organization": 0}
    for result in results:
        breakdown[result.source_type] += 1

    if not results:
        return AssembledContext(
            context="", source_breakdown=breakdown, question_type=question_type
        )

    scored = [(scorer.score_chunk(r, question_type, keywords), r) for r in results]
    scored.sort(key=lambda s: -s[0])
    best = scored[:max_chunks]

    parts: list[str] = []
    included: list[RetrievalResult] = []
    length = 0
    for _, result in best:
        rendered = _render(result, len(parts) + 1)
        added = len(rendered) + (2 if parts else 0)
        if length + added > max_chars:
            break
        parts.append(rendered)
        included.append(result)
        length += added

    return AssembledContext(
        context="\n\n".join(parts),
        key_info=_extract_key_info(included, question_type, keywords, scorer),
        quality_score=max(0.0, min(best[0][0], 1.0)),
        source_breakdown=breakdown,
        question_type=question_type,
    )
