from __future__ import annotations

import logging
import time
from typing import Callable, List, Literal, NamedTuple, Optional

from .models import GameStats, GameTrack, RoundResult
from .utils import normalize_answer

logger = logging.getLogger(__name__)

TIMED_OUT_ANSWER = "(Time's up)"

EngineState = Literal["idle", "active", "over"]
GameEndCallback = Callable[[List[RoundResult], GameStats], None]


class InvalidStateError(ValueError):
    pass


class AnswerOutcome(NamedTuple):
    is_game_over: bool
    is_correct: bool


# States: idle -> active -> over; initialize_game re-arms from idle or over
class RoundEngine:
    """Round-by-round state of one game session.

    The engine is owned by the caller and holds no global state, so several
    sessions (or tests) can run side by side.
    """

    def __init__(self, on_game_end: Optional[GameEndCallback] = None, clock: Callable[[], float] = time.monotonic):
        self._on_game_end = on_game_end
        self._clock = clock
        self._reset()

    def _reset(self):
        self.state: EngineState = "idle"
        self._game_tracks: List[GameTrack] = []
        self._current_index = 0
        self._results: List[RoundResult] = []
        self._stats = GameStats()
        self._answer_started_at: Optional[float] = None

    @property
    def game_tracks(self) -> List[GameTrack]:
        return list(self._game_tracks)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def results(self) -> List[RoundResult]:
        return list(self._results)

    @property
    def stats(self) -> GameStats:
        return self._stats.model_copy()

    @property
    def current_track(self) -> Optional[GameTrack]:
        if self.state == "idle" or not self._game_tracks:
            return None
        return self._game_tracks[self._current_index]

    def initialize_game(self, tracks: List[GameTrack]):
        if self.state == "active":
            raise InvalidStateError("A game is already in progress")
        if not tracks:
            raise InvalidStateError("Cannot start a game without questions")

        self._reset()
        self._game_tracks = list(tracks)
        self.state = "active"

    def start_answer_timer(self):
        self._answer_started_at = self._clock()

    def submit_answer(self, user_answer: str, is_survival: bool = False) -> AnswerOutcome:
        if self.state != "active":
            raise InvalidStateError(f"Cannot submit an answer while {self.state}")

        game_track = self._game_tracks[self._current_index]
        question = game_track.question

        if self._answer_started_at is None:
            time_to_answer = 0.0
        else:
            time_to_answer = max(0.0, self._clock() - self._answer_started_at)
        self._answer_started_at = None

        is_correct = normalize_answer(user_answer) == normalize_answer(question.correct_answer)

        self._results.append(
            RoundResult(
                track_name=game_track.track.name,
                artist=game_track.track.primary_artist if game_track.track.artists else "",
                album_name=game_track.track.album.name,
                correct=is_correct,
                user_answer=user_answer or TIMED_OUT_ANSWER,
                correct_answer=question.correct_answer,
                question_type=question.type,
                time_to_answer=time_to_answer,
            )
        )

        s = self._stats
        combo = s.combo + 1 if is_correct else 0
        self._stats = GameStats(
            correct_answers=s.correct_answers + (1 if is_correct else 0),
            total_questions=s.total_questions + 1,
            average_time=(s.average_time * s.total_questions + time_to_answer) / (s.total_questions + 1),
            combo=combo,
            max_combo=max(s.max_combo, combo),
        )

        if is_survival and not is_correct:
            is_game_over = True
        else:
            is_game_over = self._current_index + 1 >= len(self._game_tracks)

        if is_game_over:
            self._finish()
        return AnswerOutcome(is_game_over=is_game_over, is_correct=is_correct)

    def next_track(self):
        if self.state != "active":
            raise InvalidStateError(f"Cannot advance while {self.state}")
        self._current_index = min(self._current_index + 1, len(self._game_tracks) - 1)

    def reset_game(self):
        self._reset()

    def _finish(self):
        self.state = "over"
        logger.info(
            "Game over: %d/%d correct, max combo %d",
            self._stats.correct_answers,
            self._stats.total_questions,
            self._stats.max_combo,
        )
        if self._on_game_end is not None:
            self._on_game_end(self.results, self.stats)
