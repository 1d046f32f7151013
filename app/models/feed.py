# app/models/feed.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from app.models.conversation import TranscriptMessage, Verdict


# 📌 Registro de un MATCH mutuo (inmutable)
class Match(BaseModel):
    id: str
    agent_1: str
    agent_2: str
    convo_id: str
    created_at: datetime


# 📌 Copia pública de una conversación terminada
class FeedEntry(BaseModel):
    id: str
    convo_id: str
    agent_ids: List[str]
    agents: List[str]
    messages: List[TranscriptMessage]
    verdict: Verdict
    likes: int = 0
    created_at: datetime


class PublicConversation(BaseModel):
    convo_id: str
    agents: List[str]
    messages: List[TranscriptMessage]
    verdict: Verdict
    likes: int = 0
    timestamp: Optional[datetime] = None


class FeedItem(BaseModel):
    id: str
    convo_id: str
    agents: List[str]
    preview: str
    messages: List[TranscriptMessage]
    verdict: Verdict
    likes: int = 0
    timestamp: datetime


class LeaderboardEntry(BaseModel):
    rank: int
    name: str
    score: int
    title: str
    match_rate: float
    matches: int
    convos: int


class SiteStats(BaseModel):
    site_visits: int
    total_agents: int
    total_convos: int
    total_matches: int
