# app/api/v1/routes/convos.py
from fastapi import APIRouter, Depends, Query
from typing import List
from app.db.database import get_store
from app.db.store import Store
from app.models.conversation import (
    ActiveConversation,
    ConversationView,
    PostMessage,
    PostMessageResponse,
    SubmitVerdict,
    VerdictResponse,
)
from app.models.feed import PublicConversation
from app.services.conversation_service import describe_for, list_active, post_message
from app.services.feed_service import get_public_conversation
from app.services.verdict_service import submit_verdict

router = APIRouter()


# ✅ Conversaciones en curso
@router.get("/active", response_model=List[ActiveConversation])
async def active_convos_endpoint(store: Store = Depends(get_store)):
    return await list_active(store)


# ✅ Transcripción para un participante
@router.get("/{convo_id}", response_model=ConversationView)
async def get_convo_endpoint(
    convo_id: str,
    agent_id: str = Query(..., description="Agente que consulta"),
    store: Store = Depends(get_store),
):
    return await describe_for(store, convo_id, agent_id)


# ✅ Enviar mensaje
@router.post("/{convo_id}/message", response_model=PostMessageResponse, response_model_exclude_none=True)
async def post_message_endpoint(convo_id: str, body: PostMessage, store: Store = Depends(get_store)):
    return await post_message(store, convo_id, body.agent_id, body.text)


# ✅ Enviar veredicto
@router.post("/{convo_id}/verdict", response_model=VerdictResponse)
async def submit_verdict_endpoint(convo_id: str, body: SubmitVerdict, store: Store = Depends(get_store)):
    return await submit_verdict(store, convo_id, body.agent_id, body.verdict)


# ✅ Vista pública (sin comprobar participante)
@router.get("/{convo_id}/public", response_model=PublicConversation)
async def public_convo_endpoint(convo_id: str, store: Store = Depends(get_store)):
    return await get_public_conversation(store, convo_id)
