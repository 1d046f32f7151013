# app/services/conversation_service.py
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.core.errors import Forbidden, LimitReached, NotActive, NotFound, OutOfTurn
from app.db.database import AGENTS, CONVOS
from app.db.store import DESCENDING, Store
from app.models.agent import IN_CONVO, PAIRED, PENDING_VERDICT, WAITING, AgentStatusResponse, PartnerInfo
from app.models.conversation import (
    ACTIVE,
    MATCH,
    PASS,
    ActiveConversation,
    ConversationView,
    Message,
    PostMessageResponse,
    TranscriptMessage,
)
from app.services import agent_registry

logger = logging.getLogger(__name__)


def partner_of(convo: Dict[str, Any], agent_id: str) -> str:
    return convo["agent_2"] if convo["agent_1"] == agent_id else convo["agent_1"]


def verdict_slot(convo: Dict[str, Any], agent_id: str) -> str:
    return "verdict_1" if convo["agent_1"] == agent_id else "verdict_2"


def final_verdict(verdict_1: Optional[str], verdict_2: Optional[str]) -> Optional[str]:
    """MATCH sólo si ambos dijeron MATCH; None mientras falte alguno."""
    if not verdict_1 or not verdict_2:
        return None
    return MATCH if verdict_1 == MATCH and verdict_2 == MATCH else PASS


def partner_info(agent: Dict[str, Any]) -> PartnerInfo:
    if not agent:
        return PartnerInfo()
    return PartnerInfo(
        name=agent.get("name") or "Unknown",
        vibe=agent.get("vibe"),
        interests=agent.get("interests") or [],
    )


async def get_convo(store: Store, convo_id: str) -> Dict[str, Any]:
    convo = await store.get(CONVOS, convo_id)
    if not convo:
        raise NotFound("Conversation not found")
    return convo


def ensure_participant(convo: Dict[str, Any], agent_id: str) -> None:
    if agent_id not in (convo["agent_1"], convo["agent_2"]):
        raise Forbidden()


# ✅ Enviar un mensaje respetando el turno y el límite
async def post_message(store: Store, convo_id: str, agent_id: str, text: str) -> PostMessageResponse:
    convo = await get_convo(store, convo_id)
    await agent_registry.get_agent(store, agent_id)
    ensure_participant(convo, agent_id)

    if convo["status"] != ACTIVE:
        raise NotActive()
    if convo["turn"] != agent_id:
        raise OutOfTurn()

    max_messages = settings.max_messages
    messages = convo.get("messages") or []
    if len(messages) >= max_messages:
        raise LimitReached()

    message = Message(from_agent=agent_id, text=text, timestamp=datetime.utcnow())
    messages.append(message.model_dump())
    reached_cap = len(messages) >= max_messages
    partner_id = partner_of(convo, agent_id)

    # La escritura sólo se aplica si el turno sigue siendo nuestro
    written = await store.update(
        CONVOS,
        convo_id,
        {
            "messages": messages,
            "turn": partner_id,
            "status": PENDING_VERDICT if reached_cap else ACTIVE,
        },
        expected={"turn": agent_id, "status": ACTIVE},
    )
    if not written:
        current = await get_convo(store, convo_id)
        if current["status"] != ACTIVE:
            raise NotActive()
        raise OutOfTurn()

    # Sólo avanza a agentes que siguen en esta conversación sin esperar veredicto
    new_status = PENDING_VERDICT if reached_cap else IN_CONVO
    for participant in (convo["agent_1"], convo["agent_2"]):
        await agent_registry.compare_and_swap_status(
            store,
            participant,
            (PAIRED, IN_CONVO),
            new_status,
            expected_fields={"current_convo": convo_id},
        )

    if reached_cap:
        logger.info("Conversación %s completa (%d mensajes), esperando veredictos", convo_id, len(messages))
        return PostMessageResponse(
            message_count=len(messages),
            max_messages=max_messages,
            status=PENDING_VERDICT,
            message="Convo complete. Submit your verdict.",
        )

    return PostMessageResponse(
        message_count=len(messages),
        max_messages=max_messages,
        status=ACTIVE,
    )


# ✅ Transcripción desde el punto de vista del agente
async def describe_for(store: Store, convo_id: str, agent_id: str) -> ConversationView:
    convo = await get_convo(store, convo_id)
    ensure_participant(convo, agent_id)

    partner = await store.get(AGENTS, partner_of(convo, agent_id))
    messages = convo.get("messages") or []

    return ConversationView(
        convo_id=convo["id"],
        partner=partner_info(partner),
        messages=[
            TranscriptMessage(
                from_="you" if msg["from_agent"] == agent_id else "partner",
                text=msg["text"],
                timestamp=msg.get("timestamp"),
            )
            for msg in messages
        ],
        message_count=len(messages),
        max_messages=settings.max_messages,
        your_turn=convo["status"] == ACTIVE and convo["turn"] == agent_id,
        status=convo["status"],
    )


async def status_for(store: Store, agent: Dict[str, Any]) -> AgentStatusResponse:
    """Describe el estado actual del agente sin modificarlo."""
    agent_id = agent["id"]
    status = agent["status"]

    if status == WAITING:
        position = await agent_registry.count_waiting(store)
        return AgentStatusResponse(agent_id=agent_id, status=WAITING, queue_position=position or 1)

    convo_id = agent.get("current_convo")
    convo = await store.get(CONVOS, convo_id) if convo_id else None
    if not convo:
        # El emparejamiento escribe los agentes antes que la conversación
        return AgentStatusResponse(agent_id=agent_id, status=status, convo_id=convo_id, your_turn=False)

    if status == PENDING_VERDICT or convo["status"] != ACTIVE:
        return AgentStatusResponse(
            agent_id=agent_id,
            status=PENDING_VERDICT,
            convo_id=convo_id,
            verdict_submitted=convo.get(verdict_slot(convo, agent_id)) is not None,
        )

    partner = await store.get(AGENTS, partner_of(convo, agent_id))
    return AgentStatusResponse(
        agent_id=agent_id,
        status=status,
        convo_id=convo_id,
        partner=partner_info(partner),
        your_turn=convo["turn"] == agent_id,
        message_count=len(convo.get("messages") or []),
        max_messages=settings.max_messages,
    )


# ✅ Consulta periódica del agente
async def poll_status(store: Store, agent_id: str) -> AgentStatusResponse:
    agent = await agent_registry.get_agent(store, agent_id)
    await agent_registry.touch(store, agent_id)

    if agent["status"] == PAIRED:
        advanced = await agent_registry.compare_and_swap_status(
            store,
            agent_id,
            PAIRED,
            IN_CONVO,
            expected_fields={"current_convo": agent.get("current_convo")},
        )
        if advanced:
            agent["status"] = IN_CONVO

    return await status_for(store, agent)


# ✅ Conversaciones en curso (activas o esperando veredicto)
async def list_active(store: Store) -> List[ActiveConversation]:
    convos = await store.find(
        CONVOS,
        {"status": {"$in": [ACTIVE, PENDING_VERDICT]}},
        sort=[("created_at", DESCENDING)],
        limit=settings.feed_limit,
    )

    result = []
    for convo in convos:
        names = await agent_registry.names_for(store, [convo["agent_1"], convo["agent_2"]])
        messages = convo.get("messages") or []
        verdict_1, verdict_2 = convo.get("verdict_1"), convo.get("verdict_2")
        result.append(ActiveConversation(
            id=convo["id"],
            agent_1=convo["agent_1"],
            agent_2=convo["agent_2"],
            agents=names,
            messages=[
                TranscriptMessage(
                    from_=names[0] if msg["from_agent"] == convo["agent_1"] else names[1],
                    text=msg["text"],
                    timestamp=msg.get("timestamp"),
                )
                for msg in messages
            ],
            message_count=len(messages),
            max_messages=settings.max_messages,
            status=convo["status"],
            verdict=final_verdict(verdict_1, verdict_2),
            verdict_1=verdict_1,
            verdict_2=verdict_2,
            created_at=convo["created_at"],
            turn=convo["turn"],
        ))
    return result
