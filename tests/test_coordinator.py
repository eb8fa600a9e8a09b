"""Tests for the session coordinator."""

import pytest

from copilot.catalog.facets import FACET_DEFINITIONS, FacetKey
from copilot.config import settings
from copilot.conversation.coordinator import SessionCoordinator
from copilot.conversation.orchestrator import NotReadyError
from copilot.schemas.conversation_schema import MessageVariant, Sender
from tests.conftest import FailingStore, fake_link_builder, texts

CATEGORY_QUESTION = FACET_DEFINITIONS[FacetKey.CATEGORY].question


@pytest.fixture
def coordinator(store, extractor, clock):
    return SessionCoordinator(store, extractor, link_builder=fake_link_builder, clock=clock)


class TestOpen:
    @pytest.mark.asyncio
    async def test_new_session_is_created_and_stored(self, coordinator, store):
        orchestrator = await coordinator.open("visitor-1")
        await orchestrator.flush()

        assert texts(orchestrator) == [CATEGORY_QUESTION]
        stored = await store.load_session("visitor-1")
        assert stored is not None
        assert [m.text for m in stored.messages] == [CATEGORY_QUESTION]

    @pytest.mark.asyncio
    async def test_reopen_returns_same_orchestrator(self, coordinator):
        first = await coordinator.open("visitor-1")
        assert await coordinator.open("visitor-1") is first
        assert coordinator.get("visitor-1") is first

    @pytest.mark.asyncio
    async def test_default_session_id(self, coordinator):
        orchestrator = await coordinator.open()
        assert orchestrator.session.session_id == settings.chat.default_session_id

    @pytest.mark.asyncio
    async def test_sessions_have_independent_configurations(self, coordinator):
        first = await coordinator.open("visitor-1")
        second = await coordinator.open("visitor-2")
        first.select_option(FacetKey.CATEGORY, "door")
        assert second.configuration.assignment[FacetKey.CATEGORY] is None

    @pytest.mark.asyncio
    async def test_legacy_session_restored_without_repeating_question(self, coordinator, store):
        store.seed(
            "legacy",
            [
                {"sender": "bot", "text": CATEGORY_QUESTION, "timestamp": 1_700_000_000_000},
                {"sender": "user", "text": "hi", "timestamp": {"seconds": 1_700_000_100, "nanoseconds": 0}},
                {"sender": "bot", "text": CATEGORY_QUESTION, "timestamp": "2023-11-14T22:20:00+00:00"},
            ],
            summary={"sessionId": "legacy", "createdAt": 1_700_000_000, "userName": "Ana"},
        )
        orchestrator = await coordinator.open("legacy")

        assert texts(orchestrator) == [CATEGORY_QUESTION, "hi", CATEGORY_QUESTION]
        assert orchestrator.messages[0].sender == Sender.ASSISTANT
        assert orchestrator.messages[1].variant == MessageVariant.OUTGOING
        assert orchestrator.session.user_name == "Ana"

    @pytest.mark.asyncio
    async def test_failing_store_starts_fresh(self, extractor, clock):
        coordinator = SessionCoordinator(FailingStore(), extractor, clock=clock)
        orchestrator = await coordinator.open("visitor-1")
        await orchestrator.flush()
        assert texts(orchestrator) == [CATEGORY_QUESTION]


class TestLookup:
    @pytest.mark.asyncio
    async def test_unknown_session_raises(self, coordinator):
        with pytest.raises(NotReadyError):
            coordinator.get("missing")

    @pytest.mark.asyncio
    async def test_restart(self, coordinator):
        orchestrator = await coordinator.open("visitor-1")
        orchestrator.select_option(FacetKey.CATEGORY, "window")
        snapshot = coordinator.restart("visitor-1")
        assert snapshot.current_question.facet == FacetKey.CATEGORY
        assert texts(orchestrator)[-1] == CATEGORY_QUESTION

    @pytest.mark.asyncio
    async def test_list_sessions(self, coordinator):
        for sid in ("visitor-1", "visitor-2"):
            orchestrator = await coordinator.open(sid)
            await orchestrator.flush()
        sessions = await coordinator.list_sessions()
        assert {s.session_id for s in sessions} == {"visitor-1", "visitor-2"}

    @pytest.mark.asyncio
    async def test_list_sessions_with_failing_store(self, extractor):
        coordinator = SessionCoordinator(FailingStore(), extractor)
        assert await coordinator.list_sessions() == []

    @pytest.mark.asyncio
    async def test_close_forgets_sessions(self, coordinator):
        await coordinator.open("visitor-1")
        await coordinator.close()
        with pytest.raises(NotReadyError):
            coordinator.get("visitor-1")
