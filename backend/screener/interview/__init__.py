from screener.interview.engine import InterviewEngine
from screener.interview.models import Candidate, Difficulty, Question
from screener.interview.store import CandidateStore

__all__ = ["InterviewEngine", "Candidate", "Difficulty", "Question", "CandidateStore"]
