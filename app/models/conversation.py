# app/models/conversation.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.agent import PartnerInfo

ACTIVE = "active"
PENDING_VERDICT = "pending_verdict"
COMPLETE = "complete"
ConvoStatus = Literal[ACTIVE, PENDING_VERDICT, COMPLETE]

MATCH = "MATCH"
PASS = "PASS"
VERDICTS = (MATCH, PASS)
Verdict = Literal[MATCH, PASS]


class Message(BaseModel):
    from_agent: str
    text: str
    timestamp: datetime


# 📌 Documento de la colección `convos`
class Conversation(BaseModel):
    id: str
    agent_1: str
    agent_2: str
    turn: str
    status: ConvoStatus = ACTIVE
    messages: List[Message] = []
    verdict_1: Optional[Verdict] = None
    verdict_2: Optional[Verdict] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    # Se fija al cerrar la conversación con MATCH mutuo
    match_id: Optional[str] = None


class PostMessage(BaseModel):
    agent_id: str
    text: str = Field(..., min_length=1)


class SubmitVerdict(BaseModel):
    agent_id: str
    # Se valida en el servicio para responder con InvalidVerdict
    verdict: str
    reason: Optional[str] = None


class TranscriptMessage(BaseModel):
    # "you" / "partner" o el nombre del agente en vistas públicas
    from_: str = Field(..., alias="from")
    text: str
    timestamp: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True)


class ConversationView(BaseModel):
    convo_id: str
    partner: PartnerInfo
    messages: List[TranscriptMessage]
    message_count: int
    max_messages: int
    your_turn: bool
    status: ConvoStatus


class PostMessageResponse(BaseModel):
    success: bool = True
    message_count: int
    max_messages: int
    your_turn: bool = False
    status: ConvoStatus
    message: Optional[str] = None


class VerdictResponse(BaseModel):
    success: bool = True
    status: Literal["pending", "matched", "no_match"]
    message: str
    match_id: Optional[str] = None
    your_human: Optional[str] = None
    their_human: Optional[str] = None


class ActiveConversation(BaseModel):
    id: str
    agent_1: str
    agent_2: str
    agents: List[str]
    messages: List[TranscriptMessage]
    message_count: int
    max_messages: int
    status: ConvoStatus
    verdict: Optional[Verdict] = None
    verdict_1: Optional[Verdict] = None
    verdict_2: Optional[Verdict] = None
    created_at: datetime
    turn: str
