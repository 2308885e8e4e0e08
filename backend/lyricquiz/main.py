from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .db import settings
from .events import event_store
from .leaderboard import Leaderboard
from .lrclib import CachedLyricsProvider, LrclibClient, LyricsCache, LyricsProvider
from .progression import ProgressStore, calculate_xp_gain, level_info
from .questions import NoQuestionsError, generate_questions, require_questions
from .schemas import (
    AwardXPIn,
    GenerateQuestionsIn,
    GenerateQuestionsOut,
    ProgressOut,
    SubmitScoreIn,
)


app = FastAPI(title="Lyric Quiz API")

origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
origin_regex = settings.CORS_ORIGIN_REGEX or None

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_origin_regex=origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

leaderboard = Leaderboard()
progress_store = ProgressStore()
_lyrics_provider = CachedLyricsProvider(LrclibClient(), LyricsCache())


def get_lyrics_provider() -> LyricsProvider:
    return _lyrics_provider


@app.post("/api/questions", response_model=GenerateQuestionsOut)
async def create_questions(payload: GenerateQuestionsIn, provider: LyricsProvider = Depends(get_lyrics_provider)):
    checked = 0

    def on_progress(current: int, total: int):
        nonlocal checked
        checked = current

    game_tracks = await generate_questions(
        payload.tracks, payload.mode, payload.count, on_progress, provider=provider
    )
    try:
        require_questions(game_tracks, checked)
    except NoQuestionsError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return GenerateQuestionsOut(game_tracks=game_tracks, checked=checked)


@app.post("/api/leaderboard/submit")
async def submit_score(payload: SubmitScoreIn):
    try:
        entry = await leaderboard.submit_score(
            payload.user_id,
            payload.username,
            payload.score,
            payload.total_questions,
            game_mode=payload.game_mode,
            source_type=payload.source_type,
            avatar_url=payload.avatar_url,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"success": True, "entry": entry.model_dump()}


@app.get("/api/leaderboard/top")
async def top_players(limit: int = 10, offset: int = 0):
    return await leaderboard.top_players(limit=limit, offset=offset)


@app.get("/api/leaderboard/user/{user_id}")
async def user_scores(user_id: str, game_mode: str | None = None):
    history = await leaderboard.user_history(user_id)
    stats = await leaderboard.user_stats(user_id, game_mode)
    return {"history": [h.model_dump() for h in history], "stats": stats}


@app.get("/api/progress/{user_id}", response_model=ProgressOut)
async def get_progress(user_id: str, username: str = "Anonymous"):
    progress = await progress_store.get_or_create(user_id, username)
    return ProgressOut(progress=progress, level=level_info(progress.total_xp))


@app.post("/api/progress/xp")
async def award_xp(payload: AwardXPIn):
    gain = await progress_store.award_xp(
        payload.user_id, payload.username, calculate_xp_gain(payload.correct_answers)
    )
    return gain.model_dump()


@app.get("/api/session/{session_id}/events")
async def list_events(session_id: str, after: int | None = None, limit: int = 200):
    events = await event_store.list(session_id, after=after, limit=limit)
    latest_seq = events[-1]["seq"] if events else after
    return {"events": events, "latest_seq": latest_seq}
