from pydantic import BaseModel, Field
from typing import List, Optional
from .models import GameMode, GameTrack, LevelInfo, PlayerProgress, Track


class GenerateQuestionsIn(BaseModel):
    tracks: List[Track]
    mode: GameMode = "lyrics-quiz"
    count: int = Field(default=5, ge=1, le=50)


class GenerateQuestionsOut(BaseModel):
    game_tracks: List[GameTrack]
    checked: int


class SubmitScoreIn(BaseModel):
    user_id: str
    username: str
    avatar_url: Optional[str] = None
    score: int
    total_questions: int
    game_mode: GameMode = "lyrics-quiz"
    source_type: str = "random"


class AwardXPIn(BaseModel):
    user_id: str
    username: str
    correct_answers: int = Field(ge=0)


class ProgressOut(BaseModel):
    progress: PlayerProgress
    level: LevelInfo
