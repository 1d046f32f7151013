"""
Fixtures comunes: almacenamiento en memoria, un límite de mensajes corto y
ayudantes que llevan a los agentes por el ciclo registro → chat → veredicto.
"""

import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.db.database import AGENTS, CONVOS, get_store
from app.db.store import InMemoryStore
from app.main import app
from app.models.agent import AgentProfile
from app.services.conversation_service import post_message
from app.services.pairing_service import register

MAX_MESSAGES = 4


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture(autouse=True)
def short_convos(monkeypatch):
    """Conversaciones cortas para llegar al límite enseguida."""
    monkeypatch.setattr(settings, "max_messages", MAX_MESSAGES)
    return MAX_MESSAGES


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def join(store):
    """Registra un agente con un perfil mínimo."""

    async def _join(agent_id, **profile):
        profile.setdefault("name", agent_id.title())
        return await register(store, agent_id, AgentProfile(**profile))

    return _join


@pytest.fixture
def chat_to_cap(store):
    """Intercambia mensajes hasta que la conversación llega al límite."""

    async def _chat(convo_id):
        convo = await store.get(CONVOS, convo_id)
        speaker, other = convo["agent_1"], convo["agent_2"]
        response = None
        for i in range(MAX_MESSAGES):
            response = await post_message(store, convo_id, speaker, f"message {i}")
            speaker, other = other, speaker
        return response

    return _chat


@pytest.fixture
def agent_doc(store):
    async def _get(agent_id):
        return await store.get(AGENTS, agent_id)

    return _get
