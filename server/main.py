import logging
import time
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Request, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from asyncpg.pool import Pool
from typing import Annotated

from utils.config import AppConfig, CacheConfig
from utils.logging import focus_logger, log_ai_request, log_timer_event, get_logging_stats
from utils.request_middleware import RequestLoggingMiddleware, PerformanceLoggingMiddleware
from utils.cache import cache

from db.postgres_client import get_db_pool
from db.history_repository import HistoryRepository, HistoryStoreError
from auth.auth_dependencies import CurrentUser
from auth.auth_utils import validate_auth_config

from agents.coach_agent import CoachAgent
from agents.planner_agent import PlannerAgent
from models.plan_models import StudyPlan, StudySession
from models.api_models import (
    ChatRequest, ChatResponse, MessagesResponse,
    PlanParseRequest, PlanResponse, PlanGenerateRequest,
    StartPlanSessionRequest, ActiveSessionResponse, SessionEndResponse, PomodoroResponse,
    HistoryCreateRequest, HistoryResponse, StreakResponse, TrackerStatsResponse,
    AlertsResponse, VoiceEventRequest, TranscriptResponse
)
from services.session_manager import (
    NoActiveSessionError, PlanSubjectNotFoundError, SessionAlreadyActiveError, StudySessionManager
)
from services.session_timer import SESSIONS_PER_CYCLE, TimerStateError
from services.tracker_stats import build_tracker_stats
from services.workspace import StudyWorkspace, WorkspaceRegistry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        for issue in validate_auth_config():
            logger.warning(f"Auth configuration: {issue}")

        await cache.initialize()
        logger.info("Cache system initialized")

        db_pool: Pool = await get_db_pool()
        app.state.db_pool = db_pool
        app.state.registry = WorkspaceRegistry(
            HistoryRepository(db_pool),
            CoachAgent,
            tick_interval=AppConfig.TIMER_TICK_SECONDS,
        )
        app.state.planner = PlannerAgent()
        logger.info("Database pool, HistoryRepository, and WorkspaceRegistry initialized")
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    yield

    try:
        await app.state.registry.close()
        logger.info("Workspaces closed")

        await cache.close()
        logger.info("Cache system closed")

        await app.state.db_pool.close()
        logger.info("Database pool closed")
    except Exception as e:
        logger.error(f"Shutdown cleanup failed: {e}")


app = FastAPI(
    title="FocusFlow Study Coach API",
    description="Study plans from an AI coach, focus timers, and a streak-aware study tracker",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(PerformanceLoggingMiddleware, slow_request_threshold_ms=1000)
app.add_middleware(RequestLoggingMiddleware, log_periodic_stats_interval=300)

app.add_middleware(
    CORSMiddleware,
    allow_origins=AppConfig.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_registry(request: Request) -> WorkspaceRegistry:
    return request.app.state.registry

def get_planner(request: Request) -> PlannerAgent:
    return request.app.state.planner

async def get_workspace(
    current_user: CurrentUser,
    registry: WorkspaceRegistry = Depends(get_registry)
) -> StudyWorkspace:
    return await registry.get(current_user.user_id)

Workspace = Annotated[StudyWorkspace, Depends(get_workspace)]


def _plan_response(plan: StudyPlan) -> PlanResponse:
    if not plan:
        return PlanResponse(study_plan=None)
    return PlanResponse(
        study_plan=plan,
        completed_count=plan.completed_count,
        progress_percent=plan.progress_percent,
    )

def _active_response(manager: StudySessionManager) -> ActiveSessionResponse:
    timer = manager.active_timer
    if timer is None:
        return ActiveSessionResponse(active=False)
    return ActiveSessionResponse(
        active=True,
        session=timer.snapshot(),
        state=timer.state.value,
        progress=timer.progress,
    )

def _pomodoro_response(manager: StudySessionManager) -> PomodoroResponse:
    pomodoro = manager.pomodoro
    return PomodoroResponse(
        mode=pomodoro.mode.value,
        label=pomodoro.label,
        time_left=pomodoro.time_left,
        is_active=pomodoro.is_active,
        sessions_completed=pomodoro.sessions_completed,
        cycle_progress=f"{pomodoro.cycle_progress}/{SESSIONS_PER_CYCLE}",
        progress=pomodoro.progress,
        message=pomodoro.message,
    )


# Chat

@app.post("/chat", response_model=ChatResponse)
async def send_chat_message(req: ChatRequest, workspace: Workspace):
    start_time = time.time()
    replies = await workspace.chat.handle_message(req.message)

    duration_ms = (time.time() - start_time) * 1000
    log_ai_request("coach_agent", req.message[:40], duration_ms, workspace.manager.owner_id)

    return ChatResponse(replies=replies, study_plan=workspace.manager.plan)

@app.get("/chat/messages", response_model=MessagesResponse)
async def get_chat_messages(workspace: Workspace):
    return MessagesResponse(messages=workspace.chat.messages)


# Study plan

@app.get("/plan", response_model=PlanResponse)
async def get_plan(workspace: Workspace):
    return _plan_response(workspace.manager.plan)

@app.post("/plan/parse", response_model=PlanResponse)
async def parse_plan(req: PlanParseRequest, workspace: Workspace):
    plan = workspace.manager.apply_chat_response(req.text)
    if not plan:
        raise HTTPException(status_code=422, detail="No daily study plan found in the text")
    return _plan_response(plan)

@app.post("/plan/generate", response_model=PlanResponse)
async def generate_plan(
    req: PlanGenerateRequest,
    workspace: Workspace,
    planner: PlannerAgent = Depends(get_planner)
):
    start_time = time.time()
    owner_id = workspace.manager.owner_id

    try:
        plan = await planner.generate_study_plan(
            subjects=req.subjects,
            available_hours=req.available_hours,
            priorities=req.priorities,
        )
    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        focus_logger.log_error(e, "generate_plan", owner_id, {
            "subjects": req.subjects,
            "available_hours": req.available_hours,
            "duration_ms": duration_ms
        })
        raise HTTPException(status_code=502, detail=f"Failed to generate study plan: {str(e)}")

    duration_ms = (time.time() - start_time) * 1000
    log_ai_request("planner_agent", ", ".join(req.subjects), duration_ms, owner_id)

    workspace.manager.set_plan(plan)
    return _plan_response(plan)


# Plan-driven sessions

@app.post("/plan/sessions/start", response_model=ActiveSessionResponse)
async def start_plan_session(req: StartPlanSessionRequest, workspace: Workspace):
    manager = workspace.manager
    try:
        session = manager.start_plan_session(req.subject_index)
    except SessionAlreadyActiveError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PlanSubjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    log_timer_event("plan", "start", session.subject, session.time_left, manager.owner_id)
    return _active_response(manager)

@app.post("/plan/sessions/pause", response_model=ActiveSessionResponse)
async def pause_plan_session(workspace: Workspace):
    manager = workspace.manager
    try:
        session = manager.pause_plan_session()
    except NoActiveSessionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TimerStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    log_timer_event("plan", "pause", session.subject, session.time_left, manager.owner_id)
    return _active_response(manager)

@app.post("/plan/sessions/resume", response_model=ActiveSessionResponse)
async def resume_plan_session(workspace: Workspace):
    manager = workspace.manager
    try:
        session = manager.resume_plan_session()
    except NoActiveSessionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TimerStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    log_timer_event("plan", "resume", session.subject, session.time_left, manager.owner_id)
    return _active_response(manager)

@app.post("/plan/sessions/stop", response_model=SessionEndResponse)
async def stop_plan_session(workspace: Workspace):
    manager = workspace.manager
    try:
        outcome = manager.stop_plan_session()
    except NoActiveSessionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TimerStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    log_timer_event("plan", "stop", outcome.subject, outcome.time_left, manager.owner_id)
    return SessionEndResponse(
        completed=outcome.completed,
        time_left=outcome.time_left,
        logged=outcome.logged,
        elapsed_hours=outcome.elapsed_hours,
    )

@app.get("/plan/sessions/active", response_model=ActiveSessionResponse)
async def get_active_session(workspace: Workspace):
    return _active_response(workspace.manager)


# Pomodoro

@app.get("/timer/pomodoro", response_model=PomodoroResponse)
async def get_pomodoro(workspace: Workspace):
    return _pomodoro_response(workspace.manager)

@app.post("/timer/pomodoro/start", response_model=PomodoroResponse)
async def start_pomodoro(workspace: Workspace):
    manager = workspace.manager
    manager.start_pomodoro()
    log_timer_event("pomodoro", "start", manager.pomodoro.label, manager.pomodoro.time_left, manager.owner_id)
    return _pomodoro_response(manager)

@app.post("/timer/pomodoro/pause", response_model=PomodoroResponse)
async def pause_pomodoro(workspace: Workspace):
    manager = workspace.manager
    manager.pause_pomodoro()
    log_timer_event("pomodoro", "pause", manager.pomodoro.label, manager.pomodoro.time_left, manager.owner_id)
    return _pomodoro_response(manager)

@app.post("/timer/pomodoro/reset", response_model=PomodoroResponse)
async def reset_pomodoro(workspace: Workspace):
    manager = workspace.manager
    manager.reset_pomodoro()
    log_timer_event("pomodoro", "reset", manager.pomodoro.label, manager.pomodoro.time_left, manager.owner_id)
    return _pomodoro_response(manager)


# History and tracker

@app.get("/history", response_model=HistoryResponse)
async def get_history(
    workspace: Workspace,
    refresh: bool = Query(False, description="Reload the history from the database")
):
    manager = workspace.manager
    if refresh:
        await manager.load_history()
    return HistoryResponse(
        sessions=manager.history,
        total_count=len(manager.history),
        db_error=manager.db_error,
    )

@app.post("/history", response_model=StudySession)
async def log_study_session(req: HistoryCreateRequest, workspace: Workspace):
    try:
        return await workspace.manager.log_session(
            req.subject,
            req.duration_minutes / 60,
            completed=req.completed,
            on=req.date,
        )
    except HistoryStoreError as e:
        logger.error(f"Failed to log session for {workspace.manager.owner_id}: {e}")
        raise HTTPException(status_code=503, detail=f"Failed to save your session: {str(e)}")

@app.get("/streak", response_model=StreakResponse)
async def get_streak(workspace: Workspace):
    manager = workspace.manager
    return StreakResponse(current_streak=manager.streak, longest_streak=manager.longest_streak)

@app.get("/tracker/stats", response_model=TrackerStatsResponse)
async def get_tracker_stats(workspace: Workspace):
    manager = workspace.manager
    return build_tracker_stats(manager.history, manager.streak, today=manager.today())

@app.get("/alerts", response_model=AlertsResponse)
async def get_alerts(workspace: Workspace):
    return AlertsResponse(alerts=workspace.manager.pop_alerts())


# Voice transcript

@app.post("/voice/events", response_model=TranscriptResponse)
async def post_voice_event(req: VoiceEventRequest, workspace: Workspace):
    transcript = workspace.transcript
    transcript.handle_event(
        input_transcription=req.input_transcription,
        output_transcription=req.output_transcription,
        turn_complete=req.turn_complete,
    )
    return TranscriptResponse(
        entries=transcript.history,
        pending_user=transcript.pending_user,
        pending_agent=transcript.pending_agent,
    )

@app.get("/voice/transcript", response_model=TranscriptResponse)
async def get_voice_transcript(workspace: Workspace):
    transcript = workspace.transcript
    return TranscriptResponse(
        entries=transcript.history,
        pending_user=transcript.pending_user,
        pending_agent=transcript.pending_agent,
    )


@app.get("/logs/stats")
async def get_logs_stats():
    """Get logging and cache statistics"""
    return {
        "logging_stats": get_logging_stats(),
        "cache_performance": cache.stats(),
        "config": {
            "history_cache_ttl": CacheConfig.HISTORY_CACHE_TTL,
            "memory_cache_size": CacheConfig.MAX_MEMORY_CACHE_SIZE,
            "redis_connected": cache.redis_cache.connected
        }
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy", "message": "FocusFlow Study Coach API is running"}

@app.get("/")
async def root():
    return {
        "message": "FocusFlow Study Coach API",
        "version": "1.0.0",
        "docs": "/docs",
        "openapi": "/openapi.json"
    }


if __name__ == "__main__":
    uvicorn.run("server.main:app", host="0.0.0.0", port=8000, reload=True)
