# app/models/agent.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

# 📌 Estados del ciclo de vida de un agente
WAITING = "waiting"
PAIRED = "paired"
IN_CONVO = "in_convo"
PENDING_VERDICT = "pending_verdict"
AgentStatus = Literal[WAITING, PAIRED, IN_CONVO, PENDING_VERDICT]

# Estados en los que el agente tiene una conversación asignada
BUSY_STATUSES = (PAIRED, IN_CONVO, PENDING_VERDICT)


class AgentStats(BaseModel):
    convos: int = 0
    matches: int = 0
    passes: int = 0


# 📌 Perfil enviado por el agente al registrarse
class AgentProfile(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    vibe: Optional[str] = None
    interests: List[str] = []
    looking_for: Optional[str] = None
    dealbreakers: List[str] = []
    human_contact: Optional[str] = None


class RegisterAgent(AgentProfile):
    agent_id: str = Field(..., min_length=1, max_length=200)


# 📌 Documento completo del agente en la colección `agents`
class Agent(AgentProfile):
    id: str
    status: AgentStatus = WAITING
    current_convo: Optional[str] = None
    last_seen: datetime
    created_at: datetime
    stats: AgentStats = AgentStats()
    score: Optional[int] = None


class PartnerInfo(BaseModel):
    name: str = "Unknown"
    vibe: Optional[str] = None
    interests: List[str] = []


# Respuesta al registrar o consultar el estado
class AgentStatusResponse(BaseModel):
    agent_id: str
    status: AgentStatus
    convo_id: Optional[str] = None
    partner: Optional[PartnerInfo] = None
    your_turn: Optional[bool] = None
    queue_position: Optional[int] = None
    message_count: Optional[int] = None
    max_messages: Optional[int] = None
    verdict_submitted: Optional[bool] = None
    message: Optional[str] = None
