import logging
import random
import time
import uuid
from dataclasses import dataclass

from core.config import INTERVIEW_ROLE
from screener.ai import llm
from screener.interview.models import Difficulty
from screener.interview.prompts import build_question_messages
from screener.system_metrics import increment_metric

logger = logging.getLogger("screener.interview.questions")

MAX_GENERATION_ATTEMPTS = 3


# ---------- STATIC FALLBACK POOL ----------

FALLBACK_PROMPTS: dict[Difficulty, list[str]] = {
    Difficulty.EASY: [
        "Explain the difference between var, let, and const in JavaScript.",
        "What is JSX and why is it used in React?",
        "How do you create a REST endpoint with Express?",
        "What is the purpose of package.json in a Node.js project?",
    ],
    Difficulty.MEDIUM: [
        "Describe how React reconciliation works and why keys are important.",
        "Explain event loop and microtasks vs macrotasks in Node.js.",
        "How would you structure a scalable folder architecture for a full-stack app?",
        "How do you handle authentication between a React client and a Node API?",
    ],
    Difficulty.HARD: [
        "Design a high-level architecture for a real-time collaborative editor (React frontend, Node backend).",
        "Optimize a React + Node application experiencing memory leaks under load. Outline steps & tools.",
        "Explain how you would implement server-side rendering with data hydration for a complex dashboard.",
        "How would you roll out a breaking API change to a Node service with many React clients in production?",
    ],
}


@dataclass
class GeneratedQuestion:
    prompt: str
    difficulty: Difficulty
    source: str = "ai"


def _clean_prompt(text: str) -> str:
    cleaned = str(text or "").strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in {'"', "'"}:
        cleaned = cleaned[1:-1].strip()
    return cleaned


def _uniqueness_token() -> str:
    # millisecond stamp keeps tokens ordered; the uuid part separates same-ms calls
    return f"{int(time.time() * 1000) % 100000:05d}-{uuid.uuid4().hex[:12]}"


def fallback_question(difficulty: Difficulty, exclude: set[str], rng: random.Random | None = None) -> GeneratedQuestion:
    chooser = rng or random
    pool = FALLBACK_PROMPTS[difficulty]
    available = [prompt for prompt in pool if prompt not in exclude]
    if available:
        return GeneratedQuestion(prompt=chooser.choice(available), difficulty=difficulty, source="fallback")

    # pool exhausted: uniqueness comes from the suffix, not from the exclusion check
    base = chooser.choice(pool)
    return GeneratedQuestion(
        prompt=f"{base} (variant {_uniqueness_token()})",
        difficulty=difficulty,
        source="suffixed",
    )


# ---------- AI QUESTIONS ----------

async def generate_question(
    difficulty: Difficulty,
    exclude: set[str] | None = None,
    rng: random.Random | None = None,
) -> GeneratedQuestion:
    """
    Asks the provider for one question at the requested difficulty, rejecting
    prompts already used for this candidate. Falls back to the static pool
    when the provider is unavailable or keeps repeating itself.
    """
    excluded = {str(item).strip() for item in (exclude or set()) if str(item).strip()}

    for attempt in range(MAX_GENERATION_ATTEMPTS):
        content = await llm.call_llm(
            build_question_messages(INTERVIEW_ROLE, difficulty.value, sorted(excluded)),
            temperature=0.8,
            max_tokens=120,
        )
        if content is None:
            break

        prompt = _clean_prompt(content)
        if prompt and prompt not in excluded:
            return GeneratedQuestion(prompt=prompt, difficulty=difficulty, source="ai")

        logger.info("generate_question duplicate | attempt=%s difficulty=%s", attempt + 1, difficulty.value)

    increment_metric("question_fallbacks")
    logger.info("generate_question fallback | difficulty=%s excluded=%s", difficulty.value, len(excluded))
    return fallback_question(difficulty, excluded, rng=rng)
