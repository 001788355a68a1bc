import json
import logging
import math
import re
from dataclasses import dataclass

from screener.ai import llm
from screener.interview.prompts import build_score_messages
from screener.interview.scorer import round_half_up
from screener.system_metrics import increment_metric

logger = logging.getLogger("screener.interview.evaluator")

FALLBACK_FEEDBACK = "Fallback heuristic score (AI unavailable)."
UNPARSED_FEEDBACK = "Unable to parse AI response"


@dataclass
class AnswerScore:
    score: int
    feedback: str
    source: str = "ai"


def heuristic_score(answer: str) -> int:
    return min(100, round_half_up(len(str(answer or "")) / 4))


def _extract_json_dict(text: str) -> dict | None:
    text = (text or "").strip()
    if not text:
        return None

    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else None
    except Exception:
        pass

    fenced = re.search(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", text, re.IGNORECASE)
    if fenced:
        try:
            parsed = json.loads(fenced.group(1))
            return parsed if isinstance(parsed, dict) else None
        except Exception:
            pass

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        try:
            parsed = json.loads(text[start:end + 1])
            return parsed if isinstance(parsed, dict) else None
        except Exception:
            return None

    return None


def parse_score_payload(text: str) -> AnswerScore | None:
    """Strict {score: number, feedback: string} decode; anything else is None."""
    data = _extract_json_dict(text)
    if data is None:
        return None

    score = data.get("score")
    feedback = data.get("feedback")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return None
    if not math.isfinite(score):
        return None
    if not isinstance(feedback, str):
        return None

    return AnswerScore(
        score=max(0, min(100, round_half_up(score))),
        feedback=feedback.strip() or "No feedback",
        source="ai",
    )


async def score_answer(question: str, answer: str) -> AnswerScore:
    """Never raises: unavailable provider -> heuristic, unusable payload -> 0."""
    content = await llm.call_llm(
        build_score_messages(question, answer),
        temperature=0.2,
        max_tokens=120,
    )
    if content is None:
        increment_metric("score_fallbacks")
        return AnswerScore(score=heuristic_score(answer), feedback=FALLBACK_FEEDBACK, source="fallback")

    parsed = parse_score_payload(content)
    if parsed is None:
        increment_metric("score_unparsed")
        logger.warning("score_answer unparsable payload | length=%s", len(content))
        return AnswerScore(score=0, feedback=UNPARSED_FEEDBACK, source="unparsed")

    return parsed
