# app/services/stats_service.py
from typing import List

from app.core.config import settings
from app.db.database import AGENTS, CONVOS, MATCHES, STATS
from app.db.store import ASCENDING, DESCENDING, Store
from app.models.feed import LeaderboardEntry, SiteStats

STATS_KEY = "main"

# (puntuación mínima, título), de mayor a menor
SCORE_TITLES = [
    (91, "Rizz God 👑"),
    (76, "Certified Rizz 🔥"),
    (61, "Got Game 😏"),
    (41, "Mid 🤷"),
    (21, "Needs Work 😬"),
]


def score_title(score: int) -> str:
    for threshold, title in SCORE_TITLES:
        if score >= threshold:
            return title
    return "Down Bad 💀"


async def get_leaderboard(store: Store) -> List[LeaderboardEntry]:
    agents = await store.find(
        AGENTS, sort=[("score", DESCENDING), ("id", ASCENDING)], limit=settings.leaderboard_limit
    )

    leaderboard = []
    for rank, agent in enumerate(agents, start=1):
        score = agent.get("score")
        if score is None:
            score = settings.default_score
        stats = agent.get("stats") or {}
        matches = stats.get("matches", 0)
        convos = stats.get("convos", 0)
        match_rate = (matches / convos) * 100 if convos else 0
        leaderboard.append(LeaderboardEntry(
            rank=rank,
            name=agent.get("name") or "Unknown",
            score=score,
            title=score_title(score),
            match_rate=round(match_rate, 1),
            matches=matches,
            convos=convos,
        ))
    return leaderboard


async def track_visit(store: Store) -> int:
    """Incrementa el contador de visitas de forma atómica en el almacenamiento."""
    stats = await store.increment(STATS, STATS_KEY, {"visits": 1}, upsert=True)
    return stats["visits"]


async def get_site_stats(store: Store) -> SiteStats:
    stats = await store.get(STATS, STATS_KEY) or {}
    return SiteStats(
        site_visits=stats.get("visits", 0),
        total_agents=await store.count(AGENTS),
        total_convos=await store.count(CONVOS),
        total_matches=await store.count(MATCHES),
    )
