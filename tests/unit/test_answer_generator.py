"""Tests for tiered answer generation.

All tests are deterministic and do not make real network calls.
"""

import asyncio

import pytest

from askdocs.errors import GenerationBackendError
from askdocs.llm.answer import (
    FALLBACK_ANSWER,
    AnswerGenerator,
    PatternExtractionStrategy,
    PrimaryModelStrategy,
    SecondaryModelStrategy,
    SentenceScoringStrategy,
    build_answer_generator,
    build_primary_prompt,
    clean_generated_text,
)
from askdocs.llm.client import GenerationParams
from askdocs.config import Settings


class FakeBackend:
    """Backend returning a canned reply (or raising) and recording prompts."""

    def __init__(self, reply: str | None = None, error: Exception | None = None) -> None:
        self.name = "fake"
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def generate(self, prompt: str, params: GenerationParams) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply or ""


class SlowBackend:
    name = "slow"

    async def generate(self, prompt: str, params: GenerationParams) -> str:
        await asyncio.sleep(5)
        return "never returned in time"


class ExplodingStrategy:
    tier = "exploding"

    async def attempt(self, context: str, question: str, key_info: list[str]) -> str | None:
        raise RuntimeError("boom")


class NoneStrategy:
    tier = "none"

    async def attempt(self, context: str, question: str, key_info: list[str]) -> str | None:
        return None


CONTEXT = (
    "[Org Source 1]: The vaccine is manufactured under U.S. License No. 2079. "
    "It is indicated for individuals 18 years of age and older. "
    "The dating period for the vaccine shall be 24 months from the date of manufacture. "
    "Trials NCT04470427 and NCT04860297 supported approval. "
    "You must submit final study reports before December 2027."
)


def test_primary_prompt_includes_key_info_block() -> None:
    """Test that key info snippets are appended to the primary prompt."""
    prompt = build_primary_prompt("ctx", "question?", ["snippet one", "snippet two"])

    assert "KEY INFORMATION SNIPPETS:\nsnippet one\nsnippet two" in prompt
    assert "QUESTION: question?" in prompt
    assert prompt.rstrip().endswith("PRECISE ANSWER:")


def test_clean_generated_text_strips_prefix_and_adds_period() -> None:
    """Test cleanup of secondary model output."""
    cleaned = clean_generated_text("Answer: 24 months from manufacture")
    assert cleaned == "24 months from manufacture."
    assert clean_generated_text("Based on the context: it is fine!") == "it is fine!"


@pytest.mark.asyncio
async def test_primary_strategy_accepts_specific_answer() -> None:
    """Test that a specific primary answer is returned."""
    backend = FakeBackend(reply="U.S. License No. 2079")
    strategy = PrimaryModelStrategy(backend)

    answer = await strategy.attempt(CONTEXT, "What is the license number?", [])

    assert answer == "U.S. License No. 2079"
    assert "CONTEXT:\n" + CONTEXT in backend.prompts[0]


@pytest.mark.asyncio
async def test_primary_strategy_rejects_not_available_reply() -> None:
    """Test that the canned not-available reply falls through."""
    backend = FakeBackend(reply="Information not available in the provided documents")

    assert await PrimaryModelStrategy(backend).attempt(CONTEXT, "q?", []) is None


@pytest.mark.asyncio
async def test_primary_strategy_times_out() -> None:
    """Test that a slow backend is bounded by the timeout."""
    strategy = PrimaryModelStrategy(SlowBackend(), timeout_seconds=0.01)

    with pytest.raises(asyncio.TimeoutError):
        await strategy.attempt(CONTEXT, "q?", [])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("question", "expected"),
    [
        ("What is the license number?", "U.S. License No. 2079"),
        ("What age group is it for, in years of age?", "18 years of age and older"),
        ("What is the dating period?", "24 months from the date of manufacture"),
        ("Which NCT clinical trial numbers?", "NCT04470427 and NCT04860297"),
        ("What must I submit?", "final study reports before December 2027"),
    ],
)
async def test_pattern_strategy_extracts_regulatory_facts(question: str, expected: str) -> None:
    """Test the regex extractors for common regulatory questions."""
    answer = await PatternExtractionStrategy().attempt(CONTEXT, question, [])

    assert answer == expected


@pytest.mark.asyncio
async def test_pattern_strategy_finds_two_manufacturing_locations() -> None:
    """Test that two distinct manufacturing locations are joined."""
    context = (
        "Drug substance is produced at Pfizer Manufacturing Belgium NV in Puurs. "
        "Finished product is filled at Pharmacia LLC in Kalamazoo."
    )

    answer = await PatternExtractionStrategy().attempt(
        context, "What are the manufacturing locations?", []
    )

    assert answer == (
        "Drug substance is produced at Pfizer Manufacturing Belgium NV in Puurs"
        " and Pharmacia LLC in Kalamazoo"
    )


@pytest.mark.asyncio
async def test_pattern_strategy_falls_back_to_key_info() -> None:
    """Test that the best key-info snippet is used when no regex matches."""
    answer = await PatternExtractionStrategy().attempt(
        "Unrelated context.", "Describe the product", ["The product is a sterile suspension"]
    )

    assert answer == "The product is a sterile suspension"


@pytest.mark.asyncio
async def test_pattern_strategy_returns_none_without_match() -> None:
    """Test that nothing usable yields None."""
    assert await PatternExtractionStrategy().attempt("Unrelated.", "Describe it", ["short"]) is None


@pytest.mark.asyncio
async def test_secondary_strategy_tries_models_in_order() -> None:
    """Test that a failing first model falls through to the next."""
    first = FakeBackend(error=GenerationBackendError("503"))
    second = FakeBackend(reply="Answer: Store between 2 and 8 degrees")
    strategy = SecondaryModelStrategy([first, second])

    answer = await strategy.attempt("x" * 5000, "How to store?", [])

    assert answer == "Store between 2 and 8 degrees."
    assert len(first.prompts) == 1
    # Context is truncated for small models
    assert "x" * 1201 not in second.prompts[0]
    assert "x" * 1200 in second.prompts[0]


@pytest.mark.asyncio
async def test_sentence_strategy_picks_best_sentences() -> None:
    """Test keyword-overlap sentence extraction."""
    answer = await SentenceScoringStrategy().attempt(
        CONTEXT, "What is the dating period for the vaccine?", []
    )

    assert answer is not None
    assert answer.startswith("The dating period for the vaccine shall be 24 months")


@pytest.mark.asyncio
async def test_sentence_strategy_returns_none_without_overlap() -> None:
    """Test that no keyword overlap yields None."""
    assert await SentenceScoringStrategy().attempt(CONTEXT, "zebra giraffe?", []) is None


@pytest.mark.asyncio
async def test_generator_returns_first_usable_tier() -> None:
    """Test that later tiers are not consulted after a usable answer."""
    backend = FakeBackend(reply="A perfectly specific answer.")
    later = FakeBackend(reply="should not be used")
    generator = AnswerGenerator(
        [PrimaryModelStrategy(backend), SecondaryModelStrategy([later])]
    )

    answer = await generator.generate(CONTEXT, "q?", [])

    assert answer.text == "A perfectly specific answer."
    assert answer.tier == "primary"
    assert later.prompts == []


@pytest.mark.asyncio
async def test_generator_falls_through_failing_tiers() -> None:
    """Test that exceptions and empty answers move on to the next tier."""
    generator = AnswerGenerator(
        [
            ExplodingStrategy(),
            PrimaryModelStrategy(FakeBackend(error=GenerationBackendError("down"))),
            NoneStrategy(),
            PatternExtractionStrategy(),
        ]
    )

    answer = await generator.generate(CONTEXT, "What is the license number?", [])

    assert answer.tier == "pattern"
    assert answer.text == "U.S. License No. 2079"


@pytest.mark.asyncio
async def test_generator_returns_fallback_when_all_tiers_fail() -> None:
    """Test that exhaustion produces the fixed fallback answer instead of raising."""
    generator = AnswerGenerator(
        [
            ExplodingStrategy(),
            PrimaryModelStrategy(FakeBackend(reply="")),
            SecondaryModelStrategy([FakeBackend(error=GenerationBackendError("down"))]),
            NoneStrategy(),
        ]
    )

    answer = await generator.generate(CONTEXT, "q?", [])

    assert answer.text == FALLBACK_ANSWER
    assert answer.tier == "fallback"


def test_build_answer_generator_omits_tiers_without_credentials() -> None:
    """Test that tiers for unconfigured backends are omitted."""
    settings = Settings(
        _env_file=None,
        primary_llm_provider="gemini",
        gemini_api_key=None,
        huggingface_api_key=None,
    )

    generator = build_answer_generator(settings)

    assert generator.tiers == ["pattern", "sentence"]


def test_build_answer_generator_with_all_credentials() -> None:
    """Test the full tier order when every backend is configured."""
    settings = Settings(
        _env_file=None,
        primary_llm_provider="gemini",
        gemini_api_key="g-key",
        huggingface_api_key="hf-key",
    )

    generator = build_answer_generator(settings)

    assert generator.tiers == ["primary", "pattern", "secondary", "sentence"]
