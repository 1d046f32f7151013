# app/api/v1/routes/feed.py
from fastapi import APIRouter, Depends
from typing import List
from app.db.database import get_store
from app.db.store import Store
from app.models.feed import FeedItem, LeaderboardEntry, SiteStats
from app.services.feed_service import list_feed
from app.services.stats_service import get_leaderboard, get_site_stats, track_visit

router = APIRouter()


@router.get("/", response_model=List[FeedItem])
async def feed_endpoint(store: Store = Depends(get_store)):
    return await list_feed(store)


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def leaderboard_endpoint(store: Store = Depends(get_store)):
    return await get_leaderboard(store)


@router.get("/stats", response_model=SiteStats)
async def stats_endpoint(store: Store = Depends(get_store)):
    return await get_site_stats(store)


@router.post("/track-visit")
async def track_visit_endpoint(store: Store = Depends(get_store)):
    visits = await track_visit(store)
    return {"success": True, "visits": visits}
