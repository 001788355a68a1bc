def build_question_messages(role: str, difficulty: str, exclude: list[str]) -> list[dict]:
    avoid = " | ".join(exclude)
    instruction = f"Provide ONE {difficulty} difficulty question."
    if avoid:
        instruction += f" Avoid these duplicates: {avoid}."
    instruction += " Just the question text."
    return [
        {
            "role": "system",
            "content": f"You generate concise single interview questions for a {role}.",
        },
        {
            "role": "user",
            "content": instruction,
        },
    ]


def build_score_messages(question: str, answer: str) -> list[dict]:
    return [
        {
            "role": "system",
            "content": 'You are an interview evaluator. Respond ONLY with JSON: {"score":0-100,"feedback":"short"}',
        },
        {
            "role": "user",
            "content": f"Question: {question}\nAnswer: {answer}\nEvaluate.",
        },
    ]


def build_summary_messages(transcript: str, average_score: int) -> list[dict]:
    """
    Build the messages used to generate the final candidate summary.
    This is called ONCE per candidate, at finalization.
    """
    return [
        {
            "role": "system",
            "content": "You create concise candidate summaries (<=60 words). Output plain text only.",
        },
        {
            "role": "user",
            "content": f"Average Score: {average_score}. Transcript: {transcript}\nProvide summary.",
        },
    ]
