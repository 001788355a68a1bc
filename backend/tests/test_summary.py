import pytest

from screener.interview.models import Difficulty, Question
from screener.interview.summary import build_transcript, fallback_summary, generate_summary


def test_fallback_summary_tiers():
    assert "strong" in fallback_summary(71)
    assert "developing" in fallback_summary(70)
    assert "developing" in fallback_summary(41)
    assert "introductory" in fallback_summary(40)
    assert fallback_summary(55).startswith("Fallback summary based on score 55.")


def test_transcript_lists_every_question():
    questions = [
        Question(difficulty=Difficulty.EASY, prompt="Q one", time_limit_sec=20, answer="A one", score=40),
        Question(difficulty=Difficulty.EASY, prompt="Q two", time_limit_sec=20),
    ]

    transcript = build_transcript(questions)

    assert transcript == "Q: Q one\nA: A one\nScore: 40\n---\nQ: Q two\nA: \nScore: 0"


@pytest.mark.asyncio
async def test_ai_summary_whitespace_is_collapsed(scripted_llm):
    calls = scripted_llm("  Strong candidate.\n\nGood grasp   of React.  ")

    result = await generate_summary("Q: ...", 80)

    assert result.summary == "Strong candidate. Good grasp of React."
    assert result.source == "ai"
    assert calls[0]["temperature"] == 0.5


@pytest.mark.asyncio
async def test_unavailable_provider_uses_template():
    result = await generate_summary("Q: ...", 30)

    assert result.source == "fallback"
    assert result.summary == fallback_summary(30)
