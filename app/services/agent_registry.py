# app/services/agent_registry.py
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from app.core.config import settings
from app.core.errors import NotFound
from app.db.database import AGENTS
from app.db.store import ASCENDING, DuplicateKey, Store
from app.models.agent import WAITING, Agent, AgentProfile

logger = logging.getLogger(__name__)

# Orden FIFO de la cola: el agente visto hace más tiempo primero, desempate por id
QUEUE_ORDER = [("last_seen", ASCENDING), ("id", ASCENDING)]


async def get_agent(store: Store, agent_id: str) -> Dict[str, Any]:
    agent = await store.get(AGENTS, agent_id)
    if not agent:
        raise NotFound("Agent not found")
    return agent


async def upsert(store: Store, agent_id: str, profile: AgentProfile) -> Dict[str, Any]:
    """Crea el agente en la cola si es nuevo; si ya existe sólo actualiza su perfil."""
    now = datetime.utcnow()
    profile_fields = profile.model_dump(include=set(AgentProfile.model_fields))

    existing = await store.get(AGENTS, agent_id)
    if not existing:
        new_agent = Agent(
            id=agent_id,
            last_seen=now,
            created_at=now,
            score=settings.default_score,
            **profile_fields,
        )
        try:
            await store.insert(AGENTS, new_agent.model_dump())
            logger.info("Nuevo agente registrado: %s", agent_id)
            return new_agent.model_dump()
        except DuplicateKey:
            # Otra petición lo insertó primero; seguimos por la rama de actualización
            logger.debug("Registro concurrente del agente %s", agent_id)

    # El estado no se toca: el agente puede estar en plena conversación
    await store.update(AGENTS, agent_id, {**profile_fields, "last_seen": now})
    return await get_agent(store, agent_id)


async def touch(store: Store, agent_id: str) -> None:
    await store.update(AGENTS, agent_id, {"last_seen": datetime.utcnow()})


async def transition(store: Store, agent_id: str, status: str, **fields) -> bool:
    """Cambia el estado y los campos asociados en una sola escritura."""
    return await store.update(AGENTS, agent_id, {"status": status, **fields})


async def compare_and_swap_status(
    store: Store,
    agent_id: str,
    expected: Union[str, Sequence[str]],
    status: str,
    expected_fields: Dict[str, Any] = None,
    **fields,
) -> bool:
    """Igual que ``transition`` pero sólo si el estado guardado sigue siendo ``expected``
    (o uno de ellos, si se pasa una lista).

    Es la primitiva que evita emparejar dos veces al mismo agente. Los
    valores de ``expected_fields`` (p. ej. ``current_convo``) también
    deben coincidir.
    """
    if not isinstance(expected, str):
        expected = {"$in": list(expected)}
    return await store.update(
        AGENTS,
        agent_id,
        {"status": status, **fields},
        expected={"status": expected, **(expected_fields or {})},
    )


async def pick_oldest_waiting(store: Store, excluding: Iterable[str] = ()) -> Optional[Dict[str, Any]]:
    return await store.find_one(
        AGENTS,
        {"status": WAITING, "id": {"$nin": list(excluding)}},
        sort=QUEUE_ORDER,
    )


async def count_waiting(store: Store) -> int:
    return await store.count(AGENTS, {"status": WAITING})


async def record_outcome(store: Store, agent_id: str, verdict_is_match: bool) -> None:
    """Actualiza las estadísticas del agente según su propio veredicto."""
    counter = "stats.matches" if verdict_is_match else "stats.passes"
    await store.increment(AGENTS, agent_id, {"stats.convos": 1, counter: 1})


async def names_for(store: Store, agent_ids: List[str]) -> List[str]:
    """Nombres en el mismo orden que ``agent_ids``; 'Unknown' si falta alguno."""
    agents = await store.find(AGENTS, {"id": {"$in": list(agent_ids)}})
    names = {agent["id"]: agent.get("name") for agent in agents}
    return [names.get(agent_id) or "Unknown" for agent_id in agent_ids]
