# app/services/feed_service.py
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.core.errors import NotFound
from app.db.database import CONVOS, FEED, MATCHES
from app.db.store import DESCENDING, Store
from app.models.conversation import COMPLETE, MATCH, TranscriptMessage
from app.models.feed import FeedEntry, FeedItem, Match, PublicConversation
from app.services import agent_registry
from app.services.conversation_service import final_verdict

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


def _named_transcript(convo: Dict[str, Any], names: List[str]) -> List[TranscriptMessage]:
    # Sustituye el id del agente por su nombre
    return [
        TranscriptMessage(
            from_=names[0] if msg["from_agent"] == convo["agent_1"] else names[1],
            text=msg["text"],
            timestamp=msg.get("timestamp"),
        )
        for msg in convo.get("messages") or []
    ]


async def record_outcome(store: Store, convo: Dict[str, Any], verdict: str) -> Optional[str]:
    """Publica la conversación en el feed y, si hubo MATCH mutuo, crea el Match.

    Usa el ``match_id`` fijado al cerrar la conversación si lo hay.
    Devuelve el id del Match o None.
    """
    now = datetime.utcnow()
    agent_ids = [convo["agent_1"], convo["agent_2"]]
    names = await agent_registry.names_for(store, agent_ids)

    match_id = None
    if verdict == MATCH:
        match = Match(
            id=convo.get("match_id") or str(uuid.uuid4()),
            agent_1=convo["agent_1"],
            agent_2=convo["agent_2"],
            convo_id=convo["id"],
            created_at=now,
        )
        await store.insert(MATCHES, match.model_dump())
        match_id = match.id
        logger.info("💕 Match entre %s y %s", *agent_ids)

    entry = FeedEntry(
        id=str(uuid.uuid4()),
        convo_id=convo["id"],
        agent_ids=agent_ids,
        agents=names,
        messages=_named_transcript(convo, names),
        verdict=verdict,
        created_at=now,
    )
    await store.insert(FEED, entry.model_dump(by_alias=True))
    return match_id


# ✅ Vista pública de una conversación terminada
async def get_public_conversation(store: Store, convo_id: str) -> PublicConversation:
    entry = await store.find_one(FEED, {"convo_id": convo_id})
    if entry:
        return PublicConversation(
            convo_id=entry["convo_id"],
            agents=entry.get("agents") or [],
            messages=entry.get("messages") or [],
            verdict=entry["verdict"],
            likes=entry.get("likes") or 0,
            timestamp=entry.get("created_at"),
        )

    # Si aún no está en el feed, sólo se muestra si ya terminó
    convo = await store.get(CONVOS, convo_id)
    if not convo or convo["status"] != COMPLETE:
        raise NotFound("Conversation not found")

    names = await agent_registry.names_for(store, [convo["agent_1"], convo["agent_2"]])
    return PublicConversation(
        convo_id=convo["id"],
        agents=names,
        messages=_named_transcript(convo, names),
        verdict=final_verdict(convo.get("verdict_1"), convo.get("verdict_2")),
        timestamp=convo.get("completed_at") or convo.get("created_at"),
    )


async def list_feed(store: Store) -> List[FeedItem]:
    entries = await store.find(FEED, sort=[("created_at", DESCENDING)], limit=settings.feed_limit)

    items = []
    for entry in entries:
        messages = entry.get("messages") or []
        preview = ""
        if messages:
            first = messages[0]["text"]
            preview = first[:PREVIEW_LENGTH] + ("..." if len(first) > PREVIEW_LENGTH else "")
        items.append(FeedItem(
            id=entry["id"],
            convo_id=entry["convo_id"],
            agents=entry.get("agents") or [],
            preview=preview,
            messages=messages,
            verdict=entry["verdict"],
            likes=entry.get("likes") or 0,
            timestamp=entry["created_at"],
        ))
    return items
