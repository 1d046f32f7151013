# app/api/v1/routes/agents.py
from fastapi import APIRouter, Depends, Query
from app.db.database import get_store
from app.db.store import Store
from app.models.agent import AgentProfile, AgentStatusResponse, RegisterAgent
from app.services.conversation_service import poll_status
from app.services.pairing_service import register

router = APIRouter()


@router.post("/register", response_model=AgentStatusResponse, response_model_exclude_none=True)
async def register_agent_endpoint(agent_data: RegisterAgent, store: Store = Depends(get_store)):
    """
    Registra (o actualiza) un agente y lo empareja o lo deja en la cola.
    """
    profile = AgentProfile(**agent_data.model_dump(exclude={"agent_id"}))
    return await register(store, agent_data.agent_id, profile)


@router.get("/status", response_model=AgentStatusResponse, response_model_exclude_none=True)
async def agent_status_endpoint(
    agent_id: str = Query(..., description="Identificador del agente"),
    store: Store = Depends(get_store),
):
    return await poll_status(store, agent_id)
