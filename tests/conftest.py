"""Shared test fixtures and helpers."""

from collections import deque
from typing import Any, Optional, Union

import pytest

from copilot.conversation.orchestrator import ConversationOrchestrator
from copilot.conversation.state_machine import OrchestratorStateMachine
from copilot.engine.configuration_state import ConfigurationState
from copilot.schemas.conversation_schema import Session
from copilot.schemas.extraction_schema import ExtractedFacets
from copilot.tools.extraction import ExtractionClient
from copilot.tools.message_store import InMemoryMessageStore, StoreError

SESSION_ID = "test-session"


class FakeClock:
    """Monotonic clock advancing one second per call."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


class ScriptedExtractor(ExtractionClient):
    """Returns queued results in order; an empty result once the script runs out.

    Queue an exception instance to make the next call raise it.
    """

    def __init__(self) -> None:
        self.calls: list[str] = []
        self._script: deque[Union[ExtractedFacets, BaseException]] = deque()

    def queue(self, **fields: Any) -> None:
        self._script.append(ExtractedFacets.model_validate(fields))

    def queue_error(self, error: BaseException) -> None:
        self._script.append(error)

    async def extract(self, text: str) -> ExtractedFacets:
        self.calls.append(text)
        if not self._script:
            return ExtractedFacets()
        item = self._script.popleft()
        if isinstance(item, BaseException):
            raise item
        return item


class FailingStore(InMemoryMessageStore):
    """A store whose every read and write fails."""

    def _read_summary(self, session_id: str) -> Optional[dict[str, Any]]:
        raise StoreError("store offline")

    def _read_messages(self, session_id: str) -> list[dict[str, Any]]:
        raise StoreError("store offline")

    def _write_summary(self, session_id: str, record: dict[str, Any]) -> None:
        raise StoreError("store offline")

    def _append_message(self, session_id: str, record: dict[str, Any]) -> None:
        raise StoreError("store offline")

    def _all_summaries(self) -> list[dict[str, Any]]:
        raise StoreError("store offline")


def fake_link_builder(name: Optional[str] = None, facets: Optional[list[str]] = None, **_: Any) -> str:
    return f"https://wa.me/000?name={name or ''}&facets={','.join(facets or [])}"


@pytest.fixture
def state_machine():
    return OrchestratorStateMachine()


@pytest.fixture
def configuration():
    return ConfigurationState()


@pytest.fixture
def store():
    return InMemoryMessageStore()


@pytest.fixture
def extractor():
    return ScriptedExtractor()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_orchestrator(extractor, store, clock):
    """Factory for a booted orchestrator. Call it inside a running event loop."""

    def _make(
        session: Optional[Session] = None,
        boot: bool = True,
        **kwargs: Any,
    ) -> ConversationOrchestrator:
        kwargs.setdefault("link_builder", fake_link_builder)
        orchestrator = ConversationOrchestrator(
            kwargs.pop("configuration", None) or ConfigurationState(),
            kwargs.pop("extractor", None) or extractor,
            kwargs.pop("store", None) or store,
            clock=clock,
            **kwargs,
        )
        if boot:
            orchestrator.boot(
                session or Session(session_id=SESSION_ID, created_at=clock.now, updated_at=clock.now)
            )
        return orchestrator

    return _make


def texts(orchestrator: ConversationOrchestrator) -> list[str]:
    """Visible timeline texts, in order."""
    return [message.text for message in orchestrator.messages]
