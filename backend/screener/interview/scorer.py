def _safe_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except Exception:
        return default


def round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; scores use the schoolbook rule.
    return int(float(value) + 0.5) if value >= 0 else -int(-float(value) + 0.5)


def clamp_score(value, default: int = 0) -> int:
    return max(0, min(100, _safe_int(value, default)))


def average_score(scores) -> int:
    values = [clamp_score(item) if item is not None else 0 for item in list(scores or [])]
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def score_tier(average: float) -> str:
    if average > 70:
        return "strong"
    if average > 40:
        return "developing"
    return "introductory"
