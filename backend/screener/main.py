from fastapi import FastAPI, UploadFile, File, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import logging
import os

from screener.schemas import AnswerRequest, AnswerResponse, IntakeRequest, ProfilePatch, TickResponse
from screener.resume.parser import is_supported, parse_resume
from screener.interview.engine import InterviewEngine
from screener.interview.store import CandidateStore
from screener.system_metrics import get_metrics_snapshot
from core.config import CANDIDATE_STORE_PATH, TICK_INTERVAL_SEC

logging.basicConfig(
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    level=logging.INFO,
)

app = FastAPI(title="Interview Screener")
logger = logging.getLogger("screener.main")


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


_allowed_origins = _get_allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

candidate_store = CandidateStore(path=CANDIDATE_STORE_PATH or None)
interview_engine = InterviewEngine(candidate_store)
_tick_task: asyncio.Task | None = None


def _view_or_404(candidate_id: str) -> dict:
    view = interview_engine.describe(candidate_id)
    if view is None:
        raise HTTPException(status_code=404, detail="Candidate not found")
    return view


@app.on_event("startup")
async def startup_banner():
    global _tick_task
    if candidate_store.load():
        logger.info("[SYSTEM] candidate store loaded path=%s", CANDIDATE_STORE_PATH)
        await interview_engine.resume_pending()
    logger.info("[SYSTEM] CORS allow_origins=%s", _allowed_origins)
    logger.info("[SYSTEM] tick interval_sec=%s", TICK_INTERVAL_SEC)

    async def _tick_loop():
        while True:
            await asyncio.sleep(TICK_INTERVAL_SEC)
            try:
                await interview_engine.tick_all()
            except Exception as exc:
                logger.warning("[SYSTEM] tick failed: %s", exc)

    _tick_task = asyncio.create_task(_tick_loop())


@app.on_event("shutdown")
async def shutdown_handler():
    global _tick_task
    if _tick_task is not None:
        _tick_task.cancel()
        try:
            await _tick_task
        except asyncio.CancelledError:
            pass
        finally:
            _tick_task = None
    candidate_store.save()
    logger.info("[SYSTEM] shutdown complete")


@app.get("/healthz")
async def healthz():
    return {"status": "ok", "service": "screener"}


@app.post("/api/resume/upload")
async def upload_resume(file: UploadFile = File(...)):
    if not is_supported(file.filename):
        raise HTTPException(status_code=400, detail="Only PDF or DOCX files are supported")
    try:
        content = await file.read()
        intake = parse_resume(file.filename, content)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        logger.warning("resume parsing failed | file=%s err=%s", file.filename, exc)
        raise HTTPException(status_code=400, detail="Failed to parse file")

    candidate = await interview_engine.start_intake(resume_file_name=file.filename, **intake.contact_fields())
    return _view_or_404(candidate.id)


@app.post("/api/intake")
async def start_intake(req: IntakeRequest):
    candidate = await interview_engine.start_intake(
        name=req.name or "",
        email=req.email or "",
        phone=req.phone or "",
    )
    return _view_or_404(candidate.id)


@app.patch("/api/candidates/{candidate_id}/profile")
async def update_profile(candidate_id: str, req: ProfilePatch):
    candidate = await interview_engine.update_contact(candidate_id, req.model_dump(exclude_none=True))
    if candidate is None:
        raise HTTPException(status_code=404, detail="Candidate not found")
    return _view_or_404(candidate_id)


@app.post("/api/candidates/{candidate_id}/questions/{question_id}/answer", response_model=AnswerResponse)
async def submit_answer(candidate_id: str, question_id: str, req: AnswerRequest):
    _view_or_404(candidate_id)
    accepted = await interview_engine.submit_answer(candidate_id, question_id, req.answer)
    stage = interview_engine.stage(candidate_id)
    return AnswerResponse(accepted=accepted, stage=stage.value if stage else None)


@app.post("/api/candidates/{candidate_id}/tick", response_model=TickResponse)
async def tick(candidate_id: str):
    _view_or_404(candidate_id)
    remaining = await interview_engine.tick(candidate_id)
    stage = interview_engine.stage(candidate_id)
    return TickResponse(remaining_sec=remaining, stage=stage.value if stage else None)


@app.get("/api/candidates/{candidate_id}")
async def get_candidate(candidate_id: str):
    return _view_or_404(candidate_id)


@app.get("/api/candidates")
async def list_candidates(search: str = ""):
    items = []
    for candidate in candidate_store.list_candidates(search):
        items.append({
            "id": candidate.id,
            "name": candidate.name,
            "email": candidate.email,
            "phone": candidate.phone,
            "final_score": candidate.final_score,
            "completed": candidate.completed,
            "created_at": candidate.created_at,
        })
    return {"items": items}


@app.get("/api/active")
async def get_active():
    active_id = candidate_store.active_id
    return {"candidate": interview_engine.describe(active_id) if active_id else None}


@app.post("/api/interview/reset")
async def reset_interview():
    previous = await interview_engine.reset_active()
    return {"status": "reset", "previous_candidate_id": previous}


@app.get("/api/session")
async def session_info():
    return candidate_store.session_info()


@app.post("/api/session/welcome-back")
async def acknowledge_welcome_back():
    candidate_store.acknowledge_welcome_back()
    return candidate_store.session_info()


@app.get("/api/system/metrics")
async def system_metrics():
    return get_metrics_snapshot(extra={"ai": candidate_store.ai_status()})
