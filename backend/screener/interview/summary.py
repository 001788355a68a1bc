import logging
from dataclasses import dataclass

from screener.ai import llm
from screener.interview.models import Question
from screener.interview.prompts import build_summary_messages
from screener.interview.scorer import score_tier
from screener.system_metrics import increment_metric

logger = logging.getLogger("screener.interview.summary")


@dataclass
class GeneratedSummary:
    summary: str
    source: str = "ai"


def build_transcript(questions: list[Question]) -> str:
    return "\n---\n".join(
        f"Q: {q.prompt}\nA: {q.answer or ''}\nScore: {q.score or 0}"
        for q in questions
    )


def fallback_summary(average_score: int) -> str:
    return (
        f"Fallback summary based on score {average_score}. "
        f"Candidate shows {score_tier(average_score)} knowledge."
    )


async def generate_summary(transcript: str, average_score: int) -> GeneratedSummary:
    content = await llm.call_llm(
        build_summary_messages(transcript, average_score),
        temperature=0.5,
        max_tokens=120,
    )
    normalized = " ".join(str(content or "").split())
    if not normalized:
        increment_metric("summary_fallbacks")
        logger.info("generate_summary fallback | average=%s", average_score)
        return GeneratedSummary(summary=fallback_summary(average_score), source="fallback")

    return GeneratedSummary(summary=normalized, source="ai")
