from __future__ import annotations

import copy
import json
import logging
import time
from pathlib import Path
from threading import Lock
from typing import Any, Callable

from screener.interview.models import CONTACT_FIELDS, Candidate, ChatEntry, Question

logger = logging.getLogger("screener.interview.store")

AI_STATUSES = {"idle", "loading", "degraded"}


class CandidateStore:
    """
    Single source of truth for candidates and their question history.

    Reads hand out deep copies; every write goes through a named mutation and
    is a no-op when the candidate or question id is unknown.
    """

    def __init__(self, path: str | Path | None = None, clock: Callable[[], float] = time.time):
        self._lock = Lock()
        self._clock = clock
        self._path = Path(path) if path else None
        self._candidates: dict[str, Candidate] = {}
        self._active_id: str | None = None
        self._ai_status = "idle"
        self._ai_error: str | None = None
        self._last_active_at: float | None = None
        self._welcome_back_shown = False
        self._restored = False

    # ========================================
    # Reads
    # ========================================

    @property
    def active_id(self) -> str | None:
        with self._lock:
            return self._active_id

    def get(self, candidate_id: str) -> Candidate | None:
        with self._lock:
            candidate = self._candidates.get(candidate_id)
            return copy.deepcopy(candidate) if candidate else None

    def candidate_ids(self) -> list[str]:
        with self._lock:
            return list(self._candidates.keys())

    def list_candidates(self, search: str = "") -> list[Candidate]:
        needle = str(search or "").strip().lower()
        with self._lock:
            items = [
                copy.deepcopy(candidate)
                for candidate in self._candidates.values()
                if not needle or needle in candidate.name.lower() or needle in candidate.email.lower()
            ]
        return sorted(items, key=lambda c: c.final_score or 0, reverse=True)

    def ai_status(self) -> dict:
        with self._lock:
            return {"status": self._ai_status, "error": self._ai_error}

    def session_info(self) -> dict:
        with self._lock:
            active = self._candidates.get(self._active_id or "")
            return {
                "last_active_at": self._last_active_at,
                "welcome_back_shown": self._welcome_back_shown,
                "welcome_back": bool(self._restored and active and not active.completed and not self._welcome_back_shown),
            }

    # ========================================
    # Mutations
    # ========================================

    def create(
        self,
        name: str = "",
        email: str = "",
        phone: str = "",
        resume_file_name: str | None = None,
    ) -> Candidate:
        with self._lock:
            candidate = Candidate(
                created_at=self._clock(),
                name=str(name or "").strip(),
                email=str(email or "").strip(),
                phone=str(phone or "").strip(),
                resume_file_name=resume_file_name,
            )
            self._candidates[candidate.id] = candidate
            self._active_id = candidate.id
            self._welcome_back_shown = False
            self._restored = False
            self._persist_locked()
            return copy.deepcopy(candidate)

    def set_active(self, candidate_id: str | None) -> None:
        with self._lock:
            if candidate_id is not None and candidate_id not in self._candidates:
                return
            self._active_id = candidate_id
            self._persist_locked()

    def reset_active(self) -> str | None:
        with self._lock:
            previous = self._active_id
            self._active_id = None
            self._persist_locked()
            return previous

    def patch_contact(self, candidate_id: str, patch: dict) -> Candidate | None:
        with self._lock:
            candidate = self._candidates.get(candidate_id)
            if candidate is None:
                return None
            for key in CONTACT_FIELDS:
                value = (patch or {}).get(key)
                if value is None:
                    continue
                setattr(candidate, key, str(value).strip())
            self._persist_locked()
            return copy.deepcopy(candidate)

    def append_chat(self, candidate_id: str, role: str, content: str) -> bool:
        with self._lock:
            candidate = self._candidates.get(candidate_id)
            if candidate is None:
                return False
            candidate.chat.append(ChatEntry(role=role, content=str(content or ""), ts=self._clock()))
            self._persist_locked()
            return True

    def append_question(self, candidate_id: str, question: Question, expected_index: int) -> int | None:
        """Appends only if the question would land at expected_index; returns the new count."""
        with self._lock:
            candidate = self._candidates.get(candidate_id)
            if candidate is None or candidate.completed:
                return None
            if len(candidate.questions) != expected_index:
                return None
            candidate.questions.append(copy.deepcopy(question))
            self._persist_locked()
            return len(candidate.questions)

    def answer_question(
        self,
        candidate_id: str,
        question_id: str,
        answer: str,
        answered_at: float,
        evaluating: bool = True,
    ) -> Question | None:
        """First write wins: returns the answered question, or None if nothing changed."""
        with self._lock:
            candidate = self._candidates.get(candidate_id)
            if candidate is None or candidate.completed:
                return None
            question = candidate.find_question(question_id)
            if question is None or question.answered:
                return None
            question.answer = str(answer)
            question.answered_at = float(answered_at)
            question.evaluating = bool(evaluating)
            self._persist_locked()
            return copy.deepcopy(question)

    def apply_score(self, candidate_id: str, question_id: str, score: int, feedback: str) -> bool:
        with self._lock:
            candidate = self._candidates.get(candidate_id)
            if candidate is None or candidate.completed:
                return False
            question = candidate.find_question(question_id)
            if question is None or not question.answered or question.scored:
                return False
            question.score = max(0, min(100, int(score)))
            question.feedback = str(feedback or "")
            question.evaluating = False
            self._persist_locked()
            return True

    def complete(self, candidate_id: str, summary: str, final_score: int) -> bool:
        with self._lock:
            candidate = self._candidates.get(candidate_id)
            if candidate is None or candidate.completed:
                return False
            candidate.summary = str(summary or "")
            candidate.final_score = int(final_score)
            candidate.completed = True
            self._persist_locked()
            return True

    def set_ai_status(self, status: str, error: str | None = None) -> None:
        if status not in AI_STATUSES:
            return
        with self._lock:
            self._ai_status = status
            self._ai_error = error
            # not persisted

    def mark_activity(self) -> None:
        with self._lock:
            self._last_active_at = self._clock()
            self._persist_locked()

    def acknowledge_welcome_back(self) -> None:
        with self._lock:
            self._welcome_back_shown = True
            self._persist_locked()

    # ========================================
    # Snapshot / persistence
    # ========================================

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> dict[str, Any]:
        return {
            "candidates": {
                "list": [candidate.to_dict() for candidate in self._candidates.values()],
                "active_candidate_id": self._active_id,
                "ai_status": self._ai_status,
                "ai_error": self._ai_error,
            },
            "session": {
                "welcome_back_shown": self._welcome_back_shown,
                "last_active_at": self._last_active_at,
            },
        }

    def load_snapshot(self, payload: Any) -> None:
        section = payload.get("candidates") if isinstance(payload, dict) else None
        section = section if isinstance(section, dict) else {}
        session = payload.get("session") if isinstance(payload, dict) else None
        session = session if isinstance(session, dict) else {}

        loaded: dict[str, Candidate] = {}
        for item in section.get("list") or []:
            if not isinstance(item, dict):
                continue
            candidate = Candidate.from_dict(item)
            loaded[candidate.id] = candidate

        active_id = section.get("active_candidate_id")
        with self._lock:
            self._candidates = loaded
            self._active_id = active_id if active_id in loaded else None
            self._ai_status = "idle"
            self._ai_error = None
            self._last_active_at = session.get("last_active_at")
            # a reload is a fresh visit
            self._welcome_back_shown = False
            self._restored = True

    def load(self) -> bool:
        if self._path is None or not self._path.exists():
            return False
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("candidate store unreadable | path=%s err=%s", self._path, exc)
            return False
        self.load_snapshot(payload)
        return True

    def save(self) -> None:
        with self._lock:
            self._persist_locked()

    def _persist_locked(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(self._snapshot_locked(), ensure_ascii=False), encoding="utf-8")
        temp_path.replace(self._path)
