# backend/core/state.py

from enum import Enum

class SessionStage(str, Enum):
    INTAKE = "intake"
    COLLECTING_MISSING_FIELDS = "collecting_missing_fields"
    AWAITING_QUESTION = "awaiting_question"
    ANSWERING = "answering"
    AWAITING_SCORE = "awaiting_score"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
