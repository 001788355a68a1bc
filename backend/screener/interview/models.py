from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


TIME_LIMITS_SEC: dict[Difficulty, int] = {
    Difficulty.EASY: 20,
    Difficulty.MEDIUM: 60,
    Difficulty.HARD: 120,
}

CONTACT_FIELDS = ("name", "email", "phone")
TIME_EXPIRED_ANSWER = "(No answer provided - time expired)"


def difficulty_for_index(index: int) -> Difficulty:
    if index < 2:
        return Difficulty.EASY
    if index < 4:
        return Difficulty.MEDIUM
    return Difficulty.HARD


def _new_id() -> str:
    return str(uuid.uuid4())


def _optional_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _optional_int(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class ChatEntry:
    role: str
    content: str
    ts: float

    @classmethod
    def from_dict(cls, data: dict) -> "ChatEntry":
        return cls(
            role=str(data.get("role") or "system"),
            content=str(data.get("content") or ""),
            ts=float(data.get("ts") or 0.0),
        )


@dataclass
class Question:
    difficulty: Difficulty
    prompt: str
    time_limit_sec: int
    id: str = field(default_factory=_new_id)
    answer: Optional[str] = None
    score: Optional[int] = None
    feedback: Optional[str] = None
    started_at: Optional[float] = None
    answered_at: Optional[float] = None
    evaluating: bool = False

    @property
    def deadline(self) -> Optional[float]:
        if self.started_at is None:
            return None
        return self.started_at + self.time_limit_sec

    @property
    def answered(self) -> bool:
        return self.answer is not None

    @property
    def scored(self) -> bool:
        return self.score is not None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["difficulty"] = self.difficulty.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        difficulty = Difficulty(str(data.get("difficulty") or Difficulty.EASY.value))
        return cls(
            id=str(data.get("id") or _new_id()),
            difficulty=difficulty,
            prompt=str(data.get("prompt") or ""),
            time_limit_sec=int(data.get("time_limit_sec") or TIME_LIMITS_SEC[difficulty]),
            answer=data.get("answer"),
            score=_optional_int(data.get("score")),
            feedback=data.get("feedback"),
            started_at=_optional_float(data.get("started_at")),
            answered_at=_optional_float(data.get("answered_at")),
            evaluating=bool(data.get("evaluating", False)),
        )


@dataclass
class Candidate:
    created_at: float
    id: str = field(default_factory=_new_id)
    name: str = ""
    email: str = ""
    phone: str = ""
    resume_file_name: Optional[str] = None
    completed: bool = False
    final_score: Optional[int] = None
    summary: Optional[str] = None
    questions: list[Question] = field(default_factory=list)
    chat: list[ChatEntry] = field(default_factory=list)

    def missing_fields(self) -> list[str]:
        return [name for name in CONTACT_FIELDS if not str(getattr(self, name) or "").strip()]

    @property
    def profile_complete(self) -> bool:
        return not self.missing_fields()

    @property
    def current_question(self) -> Optional[Question]:
        return self.questions[-1] if self.questions else None

    def find_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def used_prompts(self) -> set[str]:
        return {question.prompt.strip() for question in self.questions}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "resume_file_name": self.resume_file_name,
            "created_at": self.created_at,
            "completed": self.completed,
            "final_score": self.final_score,
            "summary": self.summary,
            "questions": [question.to_dict() for question in self.questions],
            "chat": [asdict(entry) for entry in self.chat],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Candidate":
        return cls(
            id=str(data.get("id") or _new_id()),
            name=str(data.get("name") or ""),
            email=str(data.get("email") or ""),
            phone=str(data.get("phone") or ""),
            resume_file_name=data.get("resume_file_name"),
            created_at=float(data.get("created_at") or 0.0),
            completed=bool(data.get("completed", False)),
            final_score=_optional_int(data.get("final_score")),
            summary=data.get("summary"),
            questions=[Question.from_dict(item) for item in data.get("questions") or [] if isinstance(item, dict)],
            chat=[ChatEntry.from_dict(item) for item in data.get("chat") or [] if isinstance(item, dict)],
        )
