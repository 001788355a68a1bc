import threading
import time
from typing import Any


_lock = threading.Lock()
_metrics: dict[str, float] = {
    "ai_calls_total": 0.0,
    "ai_calls_failed": 0.0,
    "ai_unavailable": 0.0,
    "question_fallbacks": 0.0,
    "score_fallbacks": 0.0,
    "score_unparsed": 0.0,
    "summary_fallbacks": 0.0,
    "questions_added": 0.0,
    "answers_accepted": 0.0,
    "answers_ignored": 0.0,
    "answers_time_expired": 0.0,
    "stale_writes_dropped": 0.0,
    "candidates_completed": 0.0,
    "ai_latency_total_ms": 0.0,
    "ai_latency_samples": 0.0,
}


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = float(_metrics.get(key, 0.0)) + float(amount)


def observe_ai_latency_ms(value_ms: float) -> None:
    latency = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["ai_latency_total_ms"] = float(_metrics.get("ai_latency_total_ms", 0.0)) + latency
        _metrics["ai_latency_samples"] = float(_metrics.get("ai_latency_samples", 0.0)) + 1.0


def reset_metrics() -> None:
    with _lock:
        for key in list(_metrics.keys()):
            _metrics[key] = 0.0


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)

    latency_samples = max(1.0, float(data.get("ai_latency_samples") or 0.0))

    payload: dict[str, Any] = {
        "generated_at": time.time(),
        "avg_ai_latency_ms": round(float(data.get("ai_latency_total_ms") or 0.0) / latency_samples, 2),
    }
    for key, value in data.items():
        if key == "ai_latency_total_ms":
            payload[key] = float(value or 0.0)
        else:
            payload[key] = int(value or 0.0)

    if extra:
        payload.update(extra)
    return payload
