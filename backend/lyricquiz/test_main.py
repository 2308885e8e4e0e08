from __future__ import annotations

import uuid
from unittest import TestCase

from fastapi.testclient import TestClient

from .lrclib import LyricsData
from .main import app, get_lyrics_provider


def track_payload(i: int) -> dict:
    return {
        "id": f"t{i}",
        "name": f"Song {i}",
        "artists": [{"name": f"Artist {i}"}],
        "album": {"name": "Album", "images": []},
        "duration_ms": 180_000,
        "uri": f"spotify:track:t{i}",
    }


class _StaticProvider:
    def __init__(self, synced: str | None):
        self.synced = synced

    async def fetch_lyrics(self, track_name, artist_name, duration_seconds):
        return LyricsData(syncedLyrics=self.synced) if self.synced else None


LRC = "\n".join(f"[00:{10 + i * 4:02d}.00]line {i}" for i in range(6))


class ApiTests(TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)
        self.user_id = uuid.uuid4().hex

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_generate_lyrics_questions(self):
        app.dependency_overrides[get_lyrics_provider] = lambda: _StaticProvider(LRC)

        resp = self.client.post(
            "/api/questions",
            json={"tracks": [track_payload(i) for i in range(4)], "mode": "lyrics-quiz", "count": 2},
        )

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(len(body["game_tracks"]), 2)
        question = body["game_tracks"][0]["question"]
        self.assertEqual(question["type"], "lyrics")
        self.assertEqual(len(question["options"]), 4)

    def test_no_playable_questions_is_a_client_error(self):
        app.dependency_overrides[get_lyrics_provider] = lambda: _StaticProvider(None)

        resp = self.client.post(
            "/api/questions",
            json={"tracks": [track_payload(1)], "mode": "survival", "count": 1},
        )

        self.assertEqual(resp.status_code, 400)
        self.assertIn("No playable questions", resp.json()["detail"])

    def test_blind_test_questions(self):
        resp = self.client.post(
            "/api/questions",
            json={"tracks": [track_payload(i) for i in range(5)], "mode": "blind-test-artist", "count": 3},
        )

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(all(g["question"]["type"] == "artist" for g in resp.json()["game_tracks"]))

    def test_submit_and_read_scores(self):
        resp = self.client.post(
            "/api/leaderboard/submit",
            json={"user_id": self.user_id, "username": "Ana", "score": 4, "total_questions": 5},
        )
        self.assertEqual(resp.status_code, 200)

        bad = self.client.post(
            "/api/leaderboard/submit",
            json={"user_id": self.user_id, "username": "Ana", "score": 7, "total_questions": 5},
        )
        self.assertEqual(bad.status_code, 400)

        user = self.client.get(f"/api/leaderboard/user/{self.user_id}").json()
        self.assertEqual(user["stats"]["total_games"], 1)
        self.assertEqual(user["history"][0]["score"], 4)

        top = self.client.get("/api/leaderboard/top", params={"limit": 100}).json()
        self.assertIn(self.user_id, [row["user_id"] for row in top["leaderboard"]])

    def test_progress_and_xp(self):
        resp = self.client.post(
            "/api/progress/xp",
            json={"user_id": self.user_id, "username": "Ana", "correct_answers": 22},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["new_level"], 3)
        self.assertTrue(resp.json()["leveled_up"])

        progress = self.client.get(f"/api/progress/{self.user_id}").json()
        self.assertEqual(progress["progress"]["total_xp"], 220)
        self.assertEqual(progress["level"]["current_level"], 3)
        self.assertEqual(progress["level"]["xp_for_next_level"], 144)

    def test_session_events_empty(self):
        resp = self.client.get(f"/api/session/{self.user_id}/events")

        self.assertEqual(resp.json(), {"events": [], "latest_seq": None})
