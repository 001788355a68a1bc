import asyncio
import logging
import time

from openai import AsyncOpenAI
from core.config import AI_RETRIES, AI_TIMEOUT_SEC, MODEL_NAME, OPENAI_API_KEY
from screener.system_metrics import increment_metric, observe_ai_latency_ms

logger = logging.getLogger("screener.ai.llm")

# None means no credential: every call reports "unavailable".
client = AsyncOpenAI(api_key=OPENAI_API_KEY) if OPENAI_API_KEY else None


async def call_llm(
    messages: list[dict],
    temperature: float = 0.7,
    max_tokens: int = 256,
    timeout_sec: float | None = None,
    retries: int | None = None,
) -> str | None:
    """
    Sends chat messages to the provider and returns the trimmed reply text.
    Returns None when the provider is unavailable (no credential, transport
    failure, timeout, non-2xx or empty reply); callers fall back locally.
    """
    if client is None:
        increment_metric("ai_unavailable")
        return None
    if not messages:
        return None

    budget = float(timeout_sec if timeout_sec is not None else AI_TIMEOUT_SEC)
    attempts = max(0, int(retries if retries is not None else AI_RETRIES)) + 1

    last_error: Exception | None = None
    for attempt in range(attempts):
        increment_metric("ai_calls_total")
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=MODEL_NAME,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
                timeout=budget,
            )
            observe_ai_latency_ms((time.monotonic() - started) * 1000.0)
            content = str(response.choices[0].message.content or "").strip()
            return content or None
        except asyncio.TimeoutError as exc:
            last_error = exc
            logger.warning("call_llm timeout | attempt=%s", attempt + 1)
        except Exception as exc:
            last_error = exc
            logger.warning("call_llm failure | attempt=%s err=%s", attempt + 1, exc)

        increment_metric("ai_calls_failed")
        if attempt < attempts - 1:
            await asyncio.sleep(0.35 * (attempt + 1))

    logger.warning("call_llm unavailable after %s attempts | err=%s", attempts, last_error)
    increment_metric("ai_unavailable")
    return None
