import time


def now_ts() -> float:
    return time.time()


def normalize_answer(answer: str) -> str:
    return (answer or "").strip().lower()


def sort_leaderboard(rows: list[dict]) -> list[dict]:
    return sorted(rows, key=lambda r: (-r.get("total_score", 0), r["username"].lower()))
