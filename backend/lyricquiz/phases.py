"""Playback-driven round flow.

A round goes loading -> playing -> answering -> revealing. The switch from
playing to answering is driven by polling the player's position against the
question's cue point: the hidden lyric's timestamp, or the end of the listening
window for blind tests.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Literal, Optional

from .db import Settings, settings as default_settings
from .events import EventStore
from .game import AnswerOutcome, InvalidStateError, RoundEngine
from .models import GameMode, GameStats, LyricsQuestion, Question, RoundResult
from .playback import PlaybackError, Player, start_track

logger = logging.getLogger(__name__)

Phase = Literal["idle", "loading", "playing", "answering", "revealing", "finished", "failed"]
Recorder = Callable[[List[RoundResult], GameStats], Awaitable[Any]]

END_MARGIN_SECONDS = 1.0


class PhaseTrigger:
    """Fires the playing -> answering transition exactly once per round."""

    def __init__(self, question: Question, listen_window: float = 15.0, lead_in: float = 5.0):
        self.question = question
        self.listen_window = listen_window
        self.lead_in = lead_in
        self.phase: Literal["playing", "answering"] = "playing"

    @property
    def track_end_seconds(self) -> float:
        return self.question.track.duration_seconds

    @property
    def cue_seconds(self) -> float:
        if isinstance(self.question, LyricsQuestion):
            return self.question.hidden_lyric.time
        cue = self.question.start_time + self.listen_window
        if self.track_end_seconds > 0:
            # a cue past the end of the track is never reached
            cue = min(cue, max(self.question.start_time, self.track_end_seconds - END_MARGIN_SECONDS))
        return cue

    @property
    def lead_in_seconds(self) -> float:
        """Where to seek before playing so the player hears some context."""
        if isinstance(self.question, LyricsQuestion):
            return max(0.0, self.question.hidden_lyric.time - self.lead_in)
        return self.question.start_time

    def check(self, position_seconds: float) -> bool:
        # ">=" rather than "==": polls can be late or skipped
        if self.phase != "playing":
            return False
        if position_seconds >= self.cue_seconds:
            self.phase = "answering"
            return True
        return False


class AnswerCountdown:
    def __init__(self, seconds: int):
        self.remaining = max(0, seconds)
        self.expired = False

    def tick(self) -> bool:
        """Advance one second; True only on the tick that runs out the clock."""
        if self.expired:
            return False
        self.remaining = max(0, self.remaining - 1)
        if self.remaining == 0:
            self.expired = True
            return True
        return False


def _clamp_time_limit(value: int, cfg: Settings) -> int:
    return min(cfg.MAX_TIME_LIMIT_SECONDS, max(cfg.MIN_TIME_LIMIT_SECONDS, value))


class RoundRunner:
    """Plays a loaded :class:`RoundEngine` session to the end on a player."""

    def __init__(
        self,
        engine: RoundEngine,
        player: Player,
        *,
        mode: GameMode,
        time_limit: Optional[int] = None,
        settings: Optional[Settings] = None,
        events: Optional[EventStore] = None,
        session_id: Optional[str] = None,
        recorder: Optional[Recorder] = None,
    ):
        self.engine = engine
        self.player = player
        self.mode = mode
        self.settings = settings or default_settings
        self.time_limit = _clamp_time_limit(time_limit, self.settings) if time_limit is not None else None
        self.events = events
        self.session_id = session_id
        self.recorder = recorder

        self.phase: Phase = "idle"
        self.trigger: Optional[PhaseTrigger] = None
        self.countdown: Optional[AnswerCountdown] = None
        self._answer: Optional[asyncio.Future] = None

    @property
    def is_survival(self) -> bool:
        return self.mode == "survival"

    @property
    def listen_window(self) -> float:
        return float(self.time_limit) if self.time_limit is not None else self.settings.LISTEN_WINDOW_SECONDS

    def answer_seconds(self, question: Question) -> int:
        if isinstance(question, LyricsQuestion):
            return self.settings.LYRICS_ANSWER_SECONDS
        return self.time_limit or _clamp_time_limit(self.settings.DEFAULT_TIME_LIMIT_SECONDS, self.settings)

    @property
    def awaiting_answer(self) -> bool:
        return self.phase == "answering" and self._answer is not None and not self._answer.done()

    def answer(self, option: str) -> bool:
        """Submit the player's choice; only the first answer of a round counts."""
        if not self.awaiting_answer:
            return False
        self._answer.set_result(option or "")
        return True

    async def run(self) -> List[RoundResult]:
        if self.engine.state != "active":
            raise InvalidStateError("Initialise the engine before running rounds")

        while True:
            await self.load_round()
            await self.wait_for_cue()
            user_answer = await self.collect_answer()
            outcome = self.engine.submit_answer(user_answer, self.is_survival)
            await self.reveal(outcome)

            if outcome.is_game_over:
                await self.finish()
                return self.engine.results

            await self.player.pause()
            self.engine.next_track()

    async def load_round(self):
        game_track = self.engine.current_track
        self.trigger = PhaseTrigger(game_track.question, self.listen_window, self.settings.LEAD_IN_SECONDS)
        self.phase = "loading"

        try:
            await start_track(self.player, game_track.track.uri, self.settings)
        except PlaybackError:
            self.phase = "failed"
            logger.exception("Failed to load track %s", game_track.track.name)
            raise

        await self.player.seek(int(self.trigger.lead_in_seconds * 1000))
        self.phase = "playing"
        await self._publish(
            {
                "type": "round_started",
                "index": self.engine.current_index,
                "total": len(self.engine.game_tracks),
                "track_id": game_track.track.id,
                "question_type": game_track.question.type,
            }
        )

    async def wait_for_cue(self):
        while True:
            position = self.player.position / 1000
            # a device that stopped at the end of the track counts as at the cue
            paused = self.player.is_paused
            stopped_at_end = paused and position >= self.trigger.track_end_seconds - END_MARGIN_SECONDS
            if (not paused or stopped_at_end) and self.trigger.check(position):
                break
            await asyncio.sleep(self.settings.POLL_INTERVAL_SECONDS)

        await self.player.pause()
        self.engine.start_answer_timer()
        self.countdown = AnswerCountdown(self.answer_seconds(self.trigger.question))
        self._answer = asyncio.get_running_loop().create_future()
        self.phase = "answering"
        await self._publish({"type": "answering", "index": self.engine.current_index})

    async def collect_answer(self) -> str:
        while not self._answer.done():
            done, _ = await asyncio.wait({self._answer}, timeout=self.settings.COUNTDOWN_TICK_SECONDS)
            if not done and self.countdown.tick():
                # time ran out; an answer landing on this same tick already won
                self.answer("")
        return self._answer.result()

    async def reveal(self, outcome: AnswerOutcome):
        self.phase = "revealing"
        result = self.engine.results[-1]
        await self.player.resume()
        await self._publish(
            {
                "type": "reveal",
                "index": self.engine.current_index,
                "correct": outcome.is_correct,
                "correct_answer": result.correct_answer,
                "stats": self.engine.stats.model_dump(),
            }
        )
        await asyncio.sleep(self.settings.REVEAL_SECONDS)

    async def finish(self):
        await self.player.pause()
        self.phase = "finished"
        results, stats = self.engine.results, self.engine.stats
        await self._publish({"type": "game_over", "stats": stats.model_dump()})

        if self.recorder is not None:
            try:
                await self.recorder(results, stats)
            except Exception:
                logger.exception("Error recording finished game")

    async def _publish(self, payload: dict):
        if self.events is None or self.session_id is None:
            return
        try:
            await self.events.append(self.session_id, payload)
        except Exception:
            logger.exception("Error publishing %s event", payload.get("type"))
