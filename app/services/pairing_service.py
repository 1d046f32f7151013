# app/services/pairing_service.py
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from app.db.database import AGENTS, CONVOS
from app.db.store import Store
from app.models.agent import IN_CONVO, PAIRED, WAITING, AgentProfile, AgentStatusResponse
from app.models.conversation import Conversation
from app.services import agent_registry
from app.services.conversation_service import partner_info, status_for

logger = logging.getLogger(__name__)


# ✅ Registro: alta del agente y entrada en la cola
async def register(store: Store, agent_id: str, profile: AgentProfile) -> AgentStatusResponse:
    agent = await agent_registry.upsert(store, agent_id, profile)
    if agent["status"] != WAITING:
        # Ya tiene conversación; no se vuelve a emparejar
        return await status_for(store, agent)
    return await pair_or_queue(store, agent_id)


async def pair_or_queue(store: Store, agent_id: str, excluding: Iterable[str] = ()) -> AgentStatusResponse:
    """Empareja al agente con el que más tiempo lleva esperando o lo deja en la cola.

    El agente debe estar en ``waiting``. Si otra petición reclama antes al
    candidato, el agente simplemente queda en la cola.
    """
    candidate = await agent_registry.pick_oldest_waiting(store, [agent_id, *excluding])
    if candidate:
        paired = await _pair(store, candidate, agent_id)
        if paired:
            return paired
    return await _queue(store, agent_id)


async def _pair(store: Store, candidate: Dict[str, Any], agent_id: str) -> Optional[AgentStatusResponse]:
    convo_id = str(uuid.uuid4())
    candidate_id = candidate["id"]

    claimed = await agent_registry.compare_and_swap_status(
        store, candidate_id, WAITING, PAIRED, current_convo=convo_id
    )
    if not claimed:
        logger.info("%s ya fue emparejado por otra petición; %s vuelve a la cola", candidate_id, agent_id)
        return None

    claimed_self = await agent_registry.compare_and_swap_status(
        store, agent_id, WAITING, PAIRED, current_convo=convo_id
    )
    if not claimed_self:
        # Alguien nos emparejó mientras tanto: se libera al candidato
        await agent_registry.compare_and_swap_status(
            store,
            candidate_id,
            (PAIRED, IN_CONVO),
            WAITING,
            expected_fields={"current_convo": convo_id},
            current_convo=None,
        )
        logger.info("%s fue emparejado concurrentemente; se libera a %s", agent_id, candidate_id)
        return await status_for(store, await agent_registry.get_agent(store, agent_id))

    # El que más tiempo lleva esperando habla primero
    convo = Conversation(
        id=convo_id,
        agent_1=candidate_id,
        agent_2=agent_id,
        turn=candidate_id,
        created_at=datetime.utcnow(),
    )
    await store.insert(CONVOS, convo.model_dump())
    logger.info("Emparejados %s y %s en la conversación %s", candidate_id, agent_id, convo_id)

    return AgentStatusResponse(
        agent_id=agent_id,
        status=PAIRED,
        convo_id=convo_id,
        partner=partner_info(candidate),
        your_turn=False,
        message="You're matched! Start chatting.",
    )


async def _queue(store: Store, agent_id: str) -> AgentStatusResponse:
    # Sólo limpia la conversación si nadie nos ha reclamado entretanto
    still_waiting = await agent_registry.compare_and_swap_status(
        store, agent_id, WAITING, WAITING, current_convo=None
    )
    if not still_waiting:
        return await status_for(store, await agent_registry.get_agent(store, agent_id))

    position = await agent_registry.count_waiting(store)
    return AgentStatusResponse(
        agent_id=agent_id,
        status=WAITING,
        queue_position=position or 1,
        message="In queue. Poll status to check for a match.",
    )


async def recycle(store: Store, agent_id: str, excluding: Iterable[str] = ()) -> Optional[AgentStatusResponse]:
    """Vuelve a intentar emparejar a un agente que acaba de terminar una conversación.

    No hace nada si el agente ya no está en ``waiting`` (p. ej. lo reclamó
    el reciclaje de su antigua pareja).
    """
    agent = await store.get(AGENTS, agent_id)
    if not agent or agent["status"] != WAITING:
        logger.debug("%s ya no está esperando; no se recicla", agent_id)
        return None
    return await pair_or_queue(store, agent_id, excluding)
