import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=True)

OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
MODEL_NAME = str(os.getenv("MODEL_NAME") or "gpt-4.1-mini").strip()
AI_TIMEOUT_SEC = max(0.5, float(os.getenv("AI_TIMEOUT_SEC", "12")))
AI_RETRIES = max(0, int(os.getenv("AI_RETRIES", "1")))

INTERVIEW_ROLE = str(os.getenv("INTERVIEW_ROLE") or "React + Node full stack engineer").strip()
INTERVIEW_LENGTH = max(1, int(os.getenv("INTERVIEW_LENGTH", "6")))
TICK_INTERVAL_SEC = max(0.1, float(os.getenv("TICK_INTERVAL_SEC", "1.0")))

CANDIDATE_STORE_PATH = str(os.getenv("CANDIDATE_STORE_PATH") or "").strip()
