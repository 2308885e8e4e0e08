from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime

GameMode = Literal["lyrics-quiz", "blind-test-title", "blind-test-artist", "survival"]
QuestionType = Literal["lyrics", "title", "artist"]

OPTION_COUNT = 4
UNKNOWN_ARTIST = "Unknown Artist"


class Artist(BaseModel):
    name: str


class AlbumImage(BaseModel):
    url: str
    height: Optional[int] = None
    width: Optional[int] = None


class Album(BaseModel):
    name: str = ""
    images: List[AlbumImage] = Field(default_factory=list)


class Track(BaseModel):
    id: str
    name: str
    artists: List[Artist] = Field(default_factory=list)
    album: Album = Field(default_factory=Album)
    duration_ms: int = Field(ge=0)
    uri: str = ""

    @property
    def primary_artist(self) -> str:
        return self.artists[0].name if self.artists else UNKNOWN_ARTIST

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000


class LyricLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: float = Field(ge=0)  # seconds
    text: str


class _BaseQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    track: Track
    options: List[str]
    correct_answer: str

    @model_validator(mode="after")
    def _check_options(self):
        if len(self.options) != OPTION_COUNT:
            raise ValueError(f"a question needs exactly {OPTION_COUNT} options, got {len(self.options)}")
        if self.correct_answer not in self.options:
            raise ValueError("options must contain the correct answer")
        return self


class LyricsQuestion(_BaseQuestion):
    type: Literal["lyrics"] = "lyrics"
    lyrics: List[LyricLine]
    hidden_lyric: LyricLine


class TitleQuestion(_BaseQuestion):
    type: Literal["title"] = "title"
    start_time: float = Field(ge=0)  # seconds into the track


class ArtistQuestion(_BaseQuestion):
    type: Literal["artist"] = "artist"
    start_time: float = Field(ge=0)


Question = Annotated[Union[LyricsQuestion, TitleQuestion, ArtistQuestion], Field(discriminator="type")]


class GameTrack(BaseModel):
    model_config = ConfigDict(frozen=True)

    track: Track
    question: Question


class RoundResult(BaseModel):
    track_name: str
    artist: str
    album_name: str
    correct: bool
    user_answer: str
    correct_answer: str
    question_type: QuestionType
    time_to_answer: float  # seconds


class GameStats(BaseModel):
    correct_answers: int = 0
    total_questions: int = 0
    average_time: float = 0.0
    combo: int = 0
    max_combo: int = 0


class PlayerProgress(BaseModel):
    user_id: str
    username: str
    level: int = 1
    current_xp: int = 0
    total_xp: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class XPGain(BaseModel):
    xp_earned: int
    new_total_xp: int
    old_level: int
    new_level: int
    leveled_up: bool


class LevelInfo(BaseModel):
    current_level: int
    current_xp: int
    xp_for_next_level: int
    progress: float  # 0..1


class ScoreEntry(BaseModel):
    id: str
    user_id: str
    username: str
    avatar_url: Optional[str] = None
    score: int
    total_questions: int
    game_mode: str = "lyrics-quiz"
    source_type: str = "random"
    created_at: datetime = Field(default_factory=datetime.utcnow)
