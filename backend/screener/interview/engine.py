from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Awaitable, Callable

from core.config import INTERVIEW_LENGTH
from core.logger import log_event
from core.state import SessionStage
from screener.interview.evaluator import FALLBACK_FEEDBACK, AnswerScore, heuristic_score, score_answer
from screener.interview.latch import AdvanceLock, OneShotLatch
from screener.interview.models import (
    TIME_EXPIRED_ANSWER,
    TIME_LIMITS_SEC,
    Candidate,
    Difficulty,
    Question,
    difficulty_for_index,
)
from screener.interview.questions import GeneratedQuestion, fallback_question, generate_question
from screener.interview.scorer import average_score, score_tier
from screener.interview.store import CandidateStore
from screener.interview.summary import GeneratedSummary, build_transcript, fallback_summary, generate_summary
from screener.system_metrics import increment_metric

logger = logging.getLogger("screener.interview.engine")

EXPIRED_FEEDBACK = "No answer provided before the time limit."

QuestionFn = Callable[[Difficulty, set[str]], Awaitable[GeneratedQuestion]]
ScoreFn = Callable[[str, str], Awaitable[AnswerScore]]
SummaryFn = Callable[[str, int], Awaitable[GeneratedSummary]]


@dataclass
class SessionControl:
    first_question: OneShotLatch
    advance: AdvanceLock
    finalizing: bool = False
    scoring: dict[str, asyncio.Task] = field(default_factory=dict)


class InterviewEngine:
    """
    Drives each candidate through intake, six timed questions and finalization.

    Intents (start_intake, update_contact, submit_answer, tick, reset_active)
    return immediately; AI work runs as background tasks that write back
    through the CandidateStore. wait_idle() awaits everything in flight.
    """

    def __init__(
        self,
        store: CandidateStore,
        question_fn: QuestionFn = generate_question,
        score_fn: ScoreFn = score_answer,
        summary_fn: SummaryFn = generate_summary,
        clock: Callable[[], float] = time.time,
        interview_length: int = INTERVIEW_LENGTH,
    ):
        self.store = store
        self._question_fn = question_fn
        self._score_fn = score_fn
        self._summary_fn = summary_fn
        self._clock = clock
        self.interview_length = max(1, int(interview_length))
        self._controls_lock = Lock()
        self._controls: dict[str, SessionControl] = {}
        self._tasks: set[asyncio.Task] = set()

    # ========================================
    # Derived state
    # ========================================

    def control(self, candidate_id: str) -> SessionControl:
        with self._controls_lock:
            control = self._controls.get(candidate_id)
            if control is None:
                control = SessionControl(
                    first_question=OneShotLatch(f"{candidate_id}:first_question"),
                    advance=AdvanceLock(candidate_id),
                )
                self._controls[candidate_id] = control
            return control

    def _peek_control(self, candidate_id: str) -> SessionControl | None:
        with self._controls_lock:
            return self._controls.get(candidate_id)

    def stage(self, candidate_id: str) -> SessionStage | None:
        candidate = self.store.get(candidate_id)
        if candidate is None:
            return None
        if candidate.completed:
            return SessionStage.COMPLETED

        control = self._peek_control(candidate_id)
        if control and control.finalizing:
            return SessionStage.FINALIZING
        if not candidate.profile_complete:
            return SessionStage.COLLECTING_MISSING_FIELDS

        current = candidate.current_question
        if current is None:
            if control and control.first_question.fired:
                return SessionStage.AWAITING_QUESTION
            return SessionStage.INTAKE
        if not current.answered:
            return SessionStage.ANSWERING
        if control and control.advance.held:
            return SessionStage.AWAITING_QUESTION
        if current.evaluating:
            return SessionStage.AWAITING_SCORE
        if len(candidate.questions) >= self.interview_length:
            return SessionStage.FINALIZING
        return SessionStage.AWAITING_QUESTION

    def remaining_seconds(self, candidate_id: str, now: float | None = None) -> int | None:
        candidate = self.store.get(candidate_id)
        if candidate is None or candidate.completed:
            return None
        return self._remaining_for(candidate, self._clock() if now is None else now)

    @staticmethod
    def _remaining_for(candidate: Candidate, now: float) -> int | None:
        current = candidate.current_question
        if current is None or current.answered or current.deadline is None:
            return None
        # derived from the stored start time, never from a running countdown
        return max(0, math.ceil(current.deadline - now))

    def describe(self, candidate_id: str) -> dict | None:
        candidate = self.store.get(candidate_id)
        if candidate is None:
            return None
        stage = self.stage(candidate_id)
        view = candidate.to_dict()
        view.update({
            "stage": stage.value if stage else None,
            "missing_fields": candidate.missing_fields(),
            "question_index": len(candidate.questions),
            "interview_length": self.interview_length,
            "remaining_sec": self._remaining_for(candidate, self._clock()) if not candidate.completed else None,
            "verdict": score_tier(candidate.final_score) if candidate.final_score is not None else None,
        })
        return view

    # ========================================
    # Intents
    # ========================================

    async def start_intake(
        self,
        name: str = "",
        email: str = "",
        phone: str = "",
        resume_file_name: str | None = None,
    ) -> Candidate:
        candidate = self.store.create(name=name, email=email, phone=phone, resume_file_name=resume_file_name)
        self.store.mark_activity()
        missing = candidate.missing_fields()
        log_event("engine", "intake", candidate.id, missing=missing, resume_file_name=resume_file_name)

        if missing:
            self.store.append_chat(candidate.id, "system", f"Please provide the missing details: {', '.join(missing)}.")
        else:
            self.store.append_chat(candidate.id, "system", "Profile complete. The interview is starting.")
            self._maybe_start(candidate.id)

        return self.store.get(candidate.id) or candidate

    async def update_contact(self, candidate_id: str, patch: dict) -> Candidate | None:
        candidate = self.store.patch_contact(candidate_id, patch)
        if candidate is None:
            return None
        self.store.mark_activity()
        if candidate.profile_complete:
            self._maybe_start(candidate_id)
        return self.store.get(candidate_id)

    async def submit_answer(self, candidate_id: str, question_id: str, text: str) -> bool:
        self.store.mark_activity()
        candidate = self.store.get(candidate_id)
        current = candidate.current_question if candidate else None
        if current is not None and current.id == question_id and self._remaining_for(candidate, self._clock()) == 0:
            # past the deadline the answer slot belongs to the expiry path
            increment_metric("answers_ignored")
            log_event("engine", "answer_late", candidate_id, question_id=question_id, answer=str(text or ""))
            self._expire(candidate_id, candidate)
            return False
        return self._record_answer(candidate_id, question_id, str(text or ""), auto=False)

    async def tick(self, candidate_id: str | None = None) -> int | None:
        """Runs the timer of the active candidate; any other candidate is left untouched."""
        active_id = self.store.active_id
        target = candidate_id or active_id
        if not target or target != active_id:
            return None
        candidate = self.store.get(target)
        if candidate is None or candidate.completed:
            return None

        remaining = self._remaining_for(candidate, self._clock())
        if remaining is None:
            current = candidate.current_question
            if current is not None and current.answered and not self.control(target).advance.held:
                # picks up an advance whose fetch died without landing a question
                self._request_advance(target, "tick")
            return None
        if remaining <= 0:
            self._expire(target, candidate)
        return remaining

    async def tick_all(self) -> None:
        await self.tick()

    async def reset_active(self) -> str | None:
        previous = self.store.reset_active()
        log_event("engine", "reset", previous or "")
        return previous

    async def resume_pending(self) -> None:
        """Re-derives outstanding work after a reload; only the active candidate advances."""
        active_id = self.store.active_id
        for candidate_id in self.store.candidate_ids():
            candidate = self.store.get(candidate_id)
            if candidate is None or candidate.completed:
                continue
            for question in candidate.questions:
                if question.answered and not question.scored:
                    self._schedule_score(candidate_id, question)
            if candidate_id != active_id:
                continue
            if candidate.questions:
                self._request_advance(candidate_id, "resume")
            else:
                self._maybe_start(candidate_id)

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ========================================
    # Transitions
    # ========================================

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("background task failed | name=%s", task.get_name(), exc_info=exc)

    def _maybe_start(self, candidate_id: str) -> bool:
        candidate = self.store.get(candidate_id)
        if candidate is None or candidate.completed or not candidate.profile_complete or candidate.questions:
            return False
        control = self.control(candidate_id)
        if not control.first_question.try_fire():
            return False
        if not control.advance.try_acquire("first_question", 0):
            return False
        log_event("engine", "question_requested", candidate_id, index=0, reason="first_question")
        self._spawn(self._fetch_question(candidate_id, 0), name=f"question:{candidate_id}:0")
        return True

    def _expire(self, candidate_id: str, candidate: Candidate) -> bool:
        current = candidate.current_question
        if current is None or not self._record_answer(candidate_id, current.id, TIME_EXPIRED_ANSWER, auto=True):
            return False
        increment_metric("answers_time_expired")
        log_event("engine", "time_expired", candidate_id, question_id=current.id, index=len(candidate.questions) - 1)
        return True

    def _record_answer(self, candidate_id: str, question_id: str, text: str, auto: bool) -> bool:
        answered = self.store.answer_question(
            candidate_id,
            question_id,
            text,
            answered_at=self._clock(),
            evaluating=not auto,
        )
        if answered is None:
            increment_metric("answers_ignored")
            log_event("engine", "answer_ignored", candidate_id, question_id=question_id, auto=auto)
            return False

        increment_metric("answers_accepted")
        log_event("engine", "answer_accepted", candidate_id, question_id=question_id, auto=auto, answer=text)
        self.store.append_chat(candidate_id, "user", text)

        if auto:
            self.store.apply_score(candidate_id, question_id, 0, EXPIRED_FEEDBACK)
        else:
            self._schedule_score(candidate_id, answered)

        self._request_advance(candidate_id, "timeout" if auto else "submit")
        return True

    def _request_advance(self, candidate_id: str, reason: str) -> bool:
        candidate = self.store.get(candidate_id)
        if candidate is None or candidate.completed:
            return False
        current = candidate.current_question
        if current is None or not current.answered:
            return False

        count = len(candidate.questions)
        if count >= self.interview_length:
            return self._begin_finalize(candidate_id, reason, candidate)

        control = self.control(candidate_id)
        if not control.advance.try_acquire(reason, count):
            return False
        log_event("engine", "question_requested", candidate_id, index=count, reason=reason)
        self._spawn(self._fetch_question(candidate_id, count), name=f"question:{candidate_id}:{count}")
        return True

    def _begin_finalize(self, candidate_id: str, reason: str, candidate: Candidate) -> bool:
        control = self.control(candidate_id)
        if not control.advance.try_acquire(f"finalize:{reason}", len(candidate.questions)):
            return False
        control.finalizing = True
        all_scored = all(question.scored for question in candidate.questions)
        # completion is written only when the summary lands; all_scored is informational
        log_event("engine", "finalize_started", candidate_id, reason=reason, all_scored=all_scored)
        self._spawn(self._finalize(candidate_id), name=f"finalize:{candidate_id}")
        return True

    def _schedule_score(self, candidate_id: str, question: Question) -> None:
        control = self.control(candidate_id)
        if question.id in control.scoring:
            return
        task = self._spawn(
            self._score(candidate_id, question.id, question.prompt, question.answer or ""),
            name=f"score:{candidate_id}:{question.id}",
        )
        control.scoring[question.id] = task

    # ========================================
    # Background work
    # ========================================

    async def _fetch_question(self, candidate_id: str, index: int) -> None:
        control = self.control(candidate_id)
        try:
            candidate = self.store.get(candidate_id)
            if candidate is None:
                return

            difficulty = difficulty_for_index(index)
            used = candidate.used_prompts()
            self.store.set_ai_status("loading")
            try:
                generated = await self._question_fn(difficulty, used)
            except Exception as exc:
                logger.warning("question generation failed | candidate=%s err=%s", candidate_id, exc)
                self.store.set_ai_status("degraded", str(exc))
                generated = fallback_question(difficulty, used)
            else:
                self._settle_ai_status(generated.source)

            question = Question(
                difficulty=difficulty,
                prompt=generated.prompt,
                time_limit_sec=TIME_LIMITS_SEC[difficulty],
                started_at=self._clock(),
            )
            count = self.store.append_question(candidate_id, question, expected_index=index)
            if count is None:
                increment_metric("stale_writes_dropped")
                log_event("engine", "question_dropped", candidate_id, index=index)
                return

            increment_metric("questions_added")
            self.store.append_chat(candidate_id, "assistant", question.prompt)
            log_event(
                "engine",
                "question_added",
                candidate_id,
                index=index,
                difficulty=difficulty.value,
                source=generated.source,
                prompt=question.prompt,
            )
        finally:
            # the lock never outlives this fetch, whether or not a question landed
            stored = self.store.get(candidate_id)
            if not control.advance.observe_count(len(stored.questions) if stored else index):
                control.advance.release("fetch_ended")

    async def _score(self, candidate_id: str, question_id: str, prompt: str, answer: str) -> None:
        control = self.control(candidate_id)
        try:
            self.store.set_ai_status("loading")
            try:
                result = await self._score_fn(prompt, answer)
            except Exception as exc:
                logger.warning("answer scoring failed | candidate=%s err=%s", candidate_id, exc)
                self.store.set_ai_status("degraded", str(exc))
                result = AnswerScore(score=heuristic_score(answer), feedback=FALLBACK_FEEDBACK, source="fallback")
            else:
                self._settle_ai_status(result.source)

            if self.store.apply_score(candidate_id, question_id, result.score, result.feedback):
                log_event("engine", "score_applied", candidate_id, question_id=question_id, score=result.score, source=result.source)
            else:
                increment_metric("stale_writes_dropped")
                log_event("engine", "score_dropped", candidate_id, question_id=question_id)
        finally:
            control.scoring.pop(question_id, None)

    async def _finalize(self, candidate_id: str) -> None:
        control = self.control(candidate_id)
        try:
            pending = list(control.scoring.values())
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

            candidate = self.store.get(candidate_id)
            if candidate is None:
                return

            average = average_score(question.score for question in candidate.questions)
            transcript = build_transcript(candidate.questions)
            self.store.set_ai_status("loading")
            try:
                result = await self._summary_fn(transcript, average)
            except Exception as exc:
                logger.warning("summary generation failed | candidate=%s err=%s", candidate_id, exc)
                self.store.set_ai_status("degraded", str(exc))
                result = GeneratedSummary(summary=fallback_summary(average), source="fallback")
            else:
                self._settle_ai_status(result.source)

            if self.store.complete(candidate_id, result.summary, average):
                increment_metric("candidates_completed")
                self.store.append_chat(candidate_id, "system", "Interview complete. Thank you!")
                log_event("engine", "completed", candidate_id, final_score=average, source=result.source, summary=result.summary)
        finally:
            control.finalizing = False
            control.advance.release("finalized")

    def _settle_ai_status(self, source: str) -> None:
        if source == "ai":
            self.store.set_ai_status("idle")
        else:
            self.store.set_ai_status("degraded", f"{source} result used")
