"""
Motor de conversación: turnos, límite de mensajes y transcripción desde el
punto de vista de cada participante.
"""

import asyncio

import pytest

from app.core.errors import Forbidden, LimitReached, NotActive, NotFound, OutOfTurn
from app.core.config import settings
from app.db.database import CONVOS
from app.models.agent import IN_CONVO, PENDING_VERDICT, WAITING, AgentProfile
from app.models.conversation import ACTIVE
from app.services import agent_registry
from app.services.conversation_service import describe_for, list_active, poll_status, post_message


@pytest.fixture
def paired(join):
    async def _paired():
        await join("agent-a")
        response = await join("agent-b")
        return response.convo_id

    return _paired


@pytest.mark.asyncio
async def test_turn_alternates(store, paired):
    convo_id = await paired()

    response = await post_message(store, convo_id, "agent-a", "hi")
    assert response.message_count == 1
    assert response.status == ACTIVE
    assert response.max_messages == settings.max_messages

    convo = await store.get(CONVOS, convo_id)
    assert convo["turn"] == "agent-b"
    assert convo["messages"][0]["from_agent"] == "agent-a"
    assert convo["messages"][0]["text"] == "hi"

    with pytest.raises(OutOfTurn):
        await post_message(store, convo_id, "agent-a", "hello again")

    await post_message(store, convo_id, "agent-b", "hey")
    assert (await store.get(CONVOS, convo_id))["turn"] == "agent-a"


@pytest.mark.asyncio
async def test_newcomer_cannot_speak_first(store, paired):
    convo_id = await paired()
    with pytest.raises(OutOfTurn):
        await post_message(store, convo_id, "agent-b", "me first")


@pytest.mark.asyncio
async def test_post_updates_agent_statuses(store, paired, agent_doc):
    convo_id = await paired()
    await post_message(store, convo_id, "agent-a", "hi")

    assert (await agent_doc("agent-a"))["status"] == IN_CONVO
    assert (await agent_doc("agent-b"))["status"] == IN_CONVO


@pytest.mark.asyncio
async def test_reaching_cap_moves_to_pending_verdict(store, paired, chat_to_cap, agent_doc):
    convo_id = await paired()

    response = await chat_to_cap(convo_id)

    assert response.status == PENDING_VERDICT
    assert response.message_count == settings.max_messages
    convo = await store.get(CONVOS, convo_id)
    assert convo["status"] == PENDING_VERDICT
    assert len(convo["messages"]) == settings.max_messages
    for agent_id in ("agent-a", "agent-b"):
        agent = await agent_doc(agent_id)
        assert agent["status"] == PENDING_VERDICT
        assert agent["current_convo"] == convo_id

    next_speaker = convo["turn"]
    with pytest.raises(NotActive):
        await post_message(store, convo_id, next_speaker, "one more")


@pytest.mark.asyncio
async def test_limit_reached_is_double_checked(store, paired):
    convo_id = await paired()
    filler = [{"from_agent": "agent-a", "text": "x", "timestamp": None}] * settings.max_messages
    await store.update(CONVOS, convo_id, {"messages": filler})

    with pytest.raises(LimitReached):
        await post_message(store, convo_id, "agent-a", "overflow")


@pytest.mark.asyncio
async def test_errors_for_unknown_and_outsiders(store, paired):
    convo_id = await paired()
    await agent_registry.upsert(store, "agent-z", AgentProfile(name="Z"))

    with pytest.raises(NotFound):
        await post_message(store, "nope", "agent-a", "hi")
    with pytest.raises(NotFound):
        await post_message(store, convo_id, "ghost", "hi")
    with pytest.raises(Forbidden):
        await post_message(store, convo_id, "agent-z", "hi")
    with pytest.raises(Forbidden):
        await describe_for(store, convo_id, "agent-z")


@pytest.mark.asyncio
async def test_racing_posts_from_same_agent_only_one_lands(store, paired):
    convo_id = await paired()

    results = await asyncio.gather(
        post_message(store, convo_id, "agent-a", "first"),
        post_message(store, convo_id, "agent-a", "second"),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, OutOfTurn)) == 1
    assert len((await store.get(CONVOS, convo_id))["messages"]) == 1


@pytest.mark.asyncio
async def test_describe_for_labels_messages(store, paired):
    convo_id = await paired()
    await post_message(store, convo_id, "agent-a", "hi")
    await post_message(store, convo_id, "agent-b", "hey")

    view = await describe_for(store, convo_id, "agent-b")

    assert [m.from_ for m in view.messages] == ["partner", "you"]
    assert view.partner.name == "Agent-A"
    assert view.your_turn is False
    assert view.message_count == 2
    assert view.max_messages == settings.max_messages


@pytest.mark.asyncio
async def test_poll_status_through_lifecycle(store, join, chat_to_cap):
    await join("agent-a")
    waiting = await poll_status(store, "agent-a")
    assert waiting.status == WAITING
    assert waiting.queue_position == 1

    paired = await join("agent-b")
    first = await poll_status(store, "agent-a")
    assert first.status == IN_CONVO
    assert first.convo_id == paired.convo_id
    assert first.your_turn is True
    assert first.message_count == 0
    assert first.partner.name == "Agent-B"

    await chat_to_cap(paired.convo_id)
    pending = await poll_status(store, "agent-b")
    assert pending.status == PENDING_VERDICT
    assert pending.verdict_submitted is False


@pytest.mark.asyncio
async def test_poll_unknown_agent(store):
    with pytest.raises(NotFound):
        await poll_status(store, "ghost")


@pytest.mark.asyncio
async def test_list_active_includes_names(store, paired):
    convo_id = await paired()
    await post_message(store, convo_id, "agent-a", "hi")

    active = await list_active(store)

    assert len(active) == 1
    assert active[0].agents == ["Agent-A", "Agent-B"]
    assert active[0].messages[0].from_ == "Agent-A"
    assert active[0].verdict is None
    assert active[0].turn == "agent-b"
