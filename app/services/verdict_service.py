# app/services/verdict_service.py
import logging
import uuid
from datetime import datetime
from typing import Any, Dict

from app.core.errors import AlreadySubmitted, InvalidVerdict, NotActive
from app.db.database import AGENTS, CONVOS
from app.db.store import Store
from app.models.agent import BUSY_STATUSES, WAITING
from app.models.conversation import COMPLETE, MATCH, PENDING_VERDICT, VERDICTS, VerdictResponse
from app.services import agent_registry, feed_service, pairing_service
from app.services.conversation_service import (
    ensure_participant,
    final_verdict,
    get_convo,
    partner_of,
    verdict_slot,
)

logger = logging.getLogger(__name__)


# ✅ Registrar el veredicto de un agente
async def submit_verdict(store: Store, convo_id: str, agent_id: str, verdict: str) -> VerdictResponse:
    if verdict not in VERDICTS:
        raise InvalidVerdict()

    convo = await get_convo(store, convo_id)
    ensure_participant(convo, agent_id)

    slot = verdict_slot(convo, agent_id)
    if convo.get(slot):
        raise AlreadySubmitted()
    if convo["status"] != PENDING_VERDICT:
        raise NotActive("Conversation is not waiting for verdicts")

    # Sólo se escribe si la casilla sigue vacía
    written = await store.update(
        CONVOS, convo_id, {slot: verdict}, expected={slot: None, "status": PENDING_VERDICT}
    )
    if not written:
        current = await get_convo(store, convo_id)
        if current.get(slot):
            raise AlreadySubmitted()
        raise NotActive("Conversation is not waiting for verdicts")

    convo = await get_convo(store, convo_id)
    outcome = final_verdict(convo.get("verdict_1"), convo.get("verdict_2"))
    if outcome is None:
        return VerdictResponse(status="pending", message="Waiting on partner's verdict...")

    # Sólo una de las dos peticiones consigue cerrar la conversación; el id
    # del Match queda fijado en esa misma escritura
    match_id = str(uuid.uuid4()) if outcome == MATCH else None
    completed = await store.update(
        CONVOS,
        convo_id,
        {"status": COMPLETE, "completed_at": datetime.utcnow(), "match_id": match_id},
        expected={"status": PENDING_VERDICT},
    )
    if completed:
        convo["match_id"] = match_id
        await _finalize(store, convo, outcome)
    else:
        match_id = (await get_convo(store, convo_id)).get("match_id")

    if outcome != MATCH:
        return VerdictResponse(status="no_match", message="Not this time. Back to the pool.")

    you = await store.get(AGENTS, agent_id) or {}
    partner = await store.get(AGENTS, partner_of(convo, agent_id)) or {}
    return VerdictResponse(
        status="matched",
        message="💕 IT'S A MATCH!",
        match_id=match_id,
        your_human=you.get("human_contact"),
        their_human=partner.get("human_contact"),
    )


async def _finalize(store: Store, convo: Dict[str, Any], outcome: str) -> None:
    convo_id = convo["id"]
    agent_ids = [convo["agent_1"], convo["agent_2"]]
    logger.info("Conversación %s cerrada con %s", convo_id, outcome)

    for agent_id in agent_ids:
        own_verdict = convo.get(verdict_slot(convo, agent_id))
        await agent_registry.record_outcome(store, agent_id, own_verdict == MATCH)

    await feed_service.record_outcome(store, convo, outcome)

    # Ambos vuelven a la cola antes de intentar emparejarlos de nuevo, estén
    # en el estado ocupado que estén mientras sigan ligados a esta conversación
    now = datetime.utcnow()
    for agent_id in agent_ids:
        await agent_registry.compare_and_swap_status(
            store,
            agent_id,
            BUSY_STATUSES,
            WAITING,
            expected_fields={"current_convo": convo_id},
            current_convo=None,
            last_seen=now,
        )

    for agent_id in agent_ids:
        await pairing_service.recycle(store, agent_id, excluding=[partner_of(convo, agent_id)])
