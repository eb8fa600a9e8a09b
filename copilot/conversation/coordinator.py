"""
Session coordinator: owns every live session and its orchestrator.

Each session gets its own ConfigurationState and ConversationOrchestrator,
built here and injected together, so nothing session-scoped lives in
module-level state.
"""

import time
from typing import Callable, Optional, Sequence

from copilot.catalog.products import PRODUCT_CATALOG
from copilot.config import settings
from copilot.conversation.orchestrator import ConversationOrchestrator, NotReadyError
from copilot.conversation.reply_rules import LinkBuilder
from copilot.engine.configuration_state import ConfigurationSnapshot, ConfigurationState
from copilot.logging_context import get_session_logger, set_session_id
from copilot.schemas.conversation_schema import Session
from copilot.schemas.product_schema import Product
from copilot.tools.extraction import ExtractionClient
from copilot.tools.handover import build_whatsapp_link
from copilot.tools.message_store import MessageStore, StoreError

logger = get_session_logger(__name__)


class SessionCoordinator:
    """Creates, boots, and looks up per-session orchestrators."""

    def __init__(
        self,
        store: MessageStore,
        extractor: ExtractionClient,
        catalog: Sequence[Product] = PRODUCT_CATALOG,
        link_builder: LinkBuilder = build_whatsapp_link,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._extractor = extractor
        self._catalog = catalog
        self._link_builder = link_builder
        self._clock = clock
        self._orchestrators: dict[str, ConversationOrchestrator] = {}

    async def load_or_create(self, session_id: str) -> Session:
        """Load a stored session, or start a fresh one when none exists or the store fails."""
        try:
            session = await self._store.load_session(session_id)
        except (StoreError, OSError) as exc:
            logger.warning("Could not load session; starting fresh: %s", exc)
            session = None

        if session is not None:
            return session

        now = self._clock()
        session = Session(session_id=session_id, created_at=now, updated_at=now)
        try:
            await self._store.save_session(session)
        except (StoreError, OSError) as exc:
            logger.warning("Could not create session record: %s", exc)
        logger.info("New session created")
        return session

    async def open(self, session_id: Optional[str] = None) -> ConversationOrchestrator:
        """Return the session's orchestrator, booting it on first use."""
        sid = session_id or settings.chat.default_session_id
        existing = self._orchestrators.get(sid)
        if existing is not None:
            return existing

        set_session_id(sid)
        orchestrator = ConversationOrchestrator(
            ConfigurationState(self._catalog),
            self._extractor,
            self._store,
            link_builder=self._link_builder,
            clock=self._clock,
        )
        self._orchestrators[sid] = orchestrator
        session = await self.load_or_create(sid)
        orchestrator.boot(session)
        return orchestrator

    def get(self, session_id: str) -> ConversationOrchestrator:
        """
        Raises:
            NotReadyError: If the session was never opened.
        """
        orchestrator = self._orchestrators.get(session_id)
        if orchestrator is None:
            raise NotReadyError(f"Session '{session_id}' has not been opened")
        return orchestrator

    def restart(self, session_id: str) -> ConfigurationSnapshot:
        """The configurator's restart button: clear all facets and ask again."""
        return self.get(session_id).restart()

    async def list_sessions(self) -> list[Session]:
        """Stored session summaries, most recently updated first."""
        try:
            return await self._store.list_sessions()
        except (StoreError, OSError) as exc:
            logger.warning("Could not list sessions: %s", exc)
            return []

    async def close(self) -> None:
        for orchestrator in self._orchestrators.values():
            await orchestrator.close()
        self._orchestrators.clear()
