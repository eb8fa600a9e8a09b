"""
Conversation orchestrator: owns one session's message timeline.

It turns visitor utterances into extraction calls, merges the results
through the reply rules, and posts engine questions published by the
configuration container. The store is a best-effort mirror: writes run
as background tasks and never delay the visible timeline.

Usage:
    orchestrator = ConversationOrchestrator(ConfigurationState(), extractor, store)
    orchestrator.boot(Session(session_id="abc"))
    await orchestrator.handle_send_message("a sliding window with no blind")
"""

import asyncio
import itertools
import time
from typing import Awaitable, Callable, Optional, Sequence, Union

from copilot.catalog.facets import FacetKey
from copilot.catalog.labels import filled_facet_labels
from copilot.config import settings
from copilot.conversation.reply_rules import (
    LinkBuilder,
    ReplyBranch,
    ReplyContext,
    evaluate_reply_rules,
)
from copilot.conversation.state_machine import (
    OrchestratorState,
    OrchestratorStateMachine,
    TransitionTrigger,
)
from copilot.engine.configuration_state import ConfigurationSnapshot, ConfigurationState
from copilot.engine.decision_engine import EngineStatus
from copilot.logging_context import get_session_logger, set_session_id
from copilot.prompts.reply_templates import (
    ASK_NAME_PROMPT,
    EXTRACTION_ERROR_REPLY,
    INPUT_TOO_LONG_REPLY,
    LOADING_TEXT,
    NO_MATCH_REPLY,
)
from copilot.schemas.conversation_schema import Message, MessageVariant, Sender, Session
from copilot.schemas.extraction_schema import ExtractedFacets
from copilot.tools.extraction import ExtractionClient, ExtractionError
from copilot.tools.handover import build_whatsapp_link
from copilot.tools.message_store import MessageStore, StoreError

logger = get_session_logger(__name__)

_BRANCH_TRIGGERS = {
    ReplyBranch.HANDOVER: TransitionTrigger.HANDOVER,
    ReplyBranch.CONTINUATION: TransitionTrigger.HANDOVER,
    ReplyBranch.FOLLOW_UP: TransitionTrigger.FOLLOW_UP,
}


class NotReadyError(RuntimeError):
    """Raised when an operation arrives before the session has booted."""


class ConversationOrchestrator:
    """
    Per-session coordinator of the timeline and extraction-result merging.

    All timeline updates are synchronous steps on the event loop; the only
    suspension point inside a turn is the extraction call, so every merge
    reads the session as it is when the result arrives.
    """

    def __init__(
        self,
        configuration: ConfigurationState,
        extractor: ExtractionClient,
        store: MessageStore,
        link_builder: LinkBuilder = build_whatsapp_link,
        clock: Callable[[], float] = time.time,
        max_input_length: Optional[int] = None,
    ) -> None:
        self._configuration = configuration
        self._extractor = extractor
        self._store = store
        self._link_builder = link_builder
        self._clock = clock
        self._max_input_length = max_input_length or settings.chat.max_input_length
        self._machine = OrchestratorStateMachine()
        self._session: Optional[Session] = None
        self._turns_in_flight = 0
        self._ids = itertools.count(1)
        self._background: set[asyncio.Task] = set()
        self._unsubscribe = configuration.subscribe(self._on_configuration_update)

    @property
    def session(self) -> Session:
        if self._session is None:
            raise NotReadyError("Session has not been loaded yet")
        return self._session

    @property
    def configuration(self) -> ConfigurationState:
        return self._configuration

    @property
    def messages(self) -> list[Message]:
        return list(self._session.messages) if self._session else []

    @property
    def state(self) -> OrchestratorState:
        return self._machine.current_state

    @property
    def state_machine(self) -> OrchestratorStateMachine:
        return self._machine

    @property
    def is_ready(self) -> bool:
        return self._machine.is_ready and self._session is not None

    def boot(self, session: Session) -> None:
        """Attach the loaded session and publish the current question."""
        set_session_id(session.session_id)
        self._session = session
        self._machine.transition(TransitionTrigger.BOOTED)
        logger.info("Session booted with %d messages", len(session.messages))
        self._on_configuration_update(self._configuration.snapshot)

    def _require_ready(self) -> Session:
        if not self.is_ready:
            raise NotReadyError("Session is still booting; try again shortly")
        set_session_id(self._session.session_id)
        return self._session

    # --- Visitor input ---

    async def handle_send_message(self, text: str) -> list[Message]:
        """
        Process one visitor utterance and return the replies posted for it.

        Raises:
            NotReadyError: If the session has not finished booting.
        """
        session = self._require_ready()
        trimmed = (text or "").strip()
        if not trimmed:
            logger.debug("Ignoring empty message")
            return []

        self._machine.transition(TransitionTrigger.USER_MESSAGE)
        self._turns_in_flight += 1

        now = self._clock()
        outgoing = self._new_message(Sender.USER, trimmed, MessageVariant.OUTGOING, now)
        loading = self._new_message(Sender.ASSISTANT, LOADING_TEXT, MessageVariant.LOADING, now)
        session.messages = [*session.messages, outgoing, loading]
        self._mirror_message(outgoing)

        if len(trimmed) > self._max_input_length:
            logger.info("Rejected message of %d characters", len(trimmed))
            return self._end_turn(
                TransitionTrigger.INPUT_REJECTED, loading.id,
                [(INPUT_TOO_LONG_REPLY, MessageVariant.INCOMING)],
            )

        try:
            extracted = await self._extractor.extract(trimmed)
        except ExtractionError as exc:
            logger.error("Extraction failed: %s", exc)
            return self._fail_turn(loading.id)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Extraction client raised an unexpected error")
            return self._fail_turn(loading.id)

        set_session_id(session.session_id)
        return self._apply_result(extracted, loading.id)

    def select_option(self, facet: Union[FacetKey, str], value: str) -> ConfigurationSnapshot:
        """Manual click on a question option. Must run inside the event loop."""
        self._require_ready()
        return self._configuration.set_facet(facet, value)

    def restart(self) -> ConfigurationSnapshot:
        """Reset the configuration and ask the first question again."""
        session = self._require_ready()
        session.last_posted_question = None
        session.active_prompt_fired = False
        session.handover_active = False
        logger.info("Configuration restarted")
        snapshot = self._configuration.reset()
        self._persist_session()
        return snapshot

    def _apply_result(self, extracted: ExtractedFacets, loading_id: str) -> list[Message]:
        session = self.session
        context = ReplyContext(
            extracted=extracted,
            contact=session.contact(),
            handover_active=session.handover_active,
            last_assistant_text=self._last_assistant_text(),
            facet_labels=tuple(filled_facet_labels(self._configuration.assignment)),
            link_builder=self._link_builder,
        )
        plan = evaluate_reply_rules(context)

        now = self._clock()
        written = session.merge_contact(plan.new_contact, now)
        if written:
            logger.info("Captured contact fields: %s", sorted(written))
            self._spawn(
                "contact update", self._store.update_session_contact(session.session_id, written, now)
            )
        session.handover_active = plan.handover_active
        if plan.mark_active_prompt_fired:
            session.active_prompt_fired = True

        trigger = _BRANCH_TRIGGERS.get(plan.branch, TransitionTrigger.ANSWER)
        posted = self._end_turn(trigger, loading_id, plan.messages, finish=False)

        if plan.apply_facets:
            self._configuration.apply_extracted(extracted)
        else:
            logger.debug("Skipping facet application (branch=%s)", plan.branch)

        self._persist_session()
        self._machine.finish_turn(self._turns_in_flight)
        return posted

    def _fail_turn(self, loading_id: str) -> list[Message]:
        set_session_id(self.session.session_id)
        return self._end_turn(
            TransitionTrigger.EXTRACTION_FAILED, loading_id,
            [(EXTRACTION_ERROR_REPLY, MessageVariant.INCOMING)],
        )

    def _end_turn(
        self,
        trigger: TransitionTrigger,
        loading_id: str,
        replies: Sequence[tuple[str, MessageVariant]],
        finish: bool = True,
    ) -> list[Message]:
        self._turns_in_flight -= 1
        self._machine.transition(trigger)
        posted = self._replace_loading(loading_id, replies)
        if finish:
            self._machine.finish_turn(self._turns_in_flight)
        return posted

    # --- Timeline ---

    def _new_message(
        self, sender: Sender, text: str, variant: MessageVariant, timestamp: Optional[float] = None
    ) -> Message:
        ts = self._clock() if timestamp is None else timestamp
        return Message(
            id=f"{int(ts * 1000)}-{next(self._ids)}",
            sender=sender,
            text=text,
            timestamp=ts,
            variant=variant,
        )

    def _replace_loading(
        self, loading_id: str, replies: Sequence[tuple[str, MessageVariant]]
    ) -> list[Message]:
        """Swap this turn's placeholder for its replies in one timeline update."""
        session = self.session
        now = self._clock()
        posted = [
            self._new_message(Sender.ASSISTANT, text, variant, now)
            for text, variant in replies
        ]
        session.messages = [m for m in session.messages if m.id != loading_id] + posted
        for message in posted:
            self._mirror_message(message)
        if posted:
            session.last_posted_question = posted[-1].text
            session.updated_at = now
        return posted

    def _last_assistant_text(self) -> Optional[str]:
        for message in reversed(self.session.messages):
            if message.sender == Sender.ASSISTANT and not message.is_loading:
                return message.text
        return None

    def _post_unique(self, text: str) -> Optional[Message]:
        """Append an assistant message unless it would repeat the latest one."""
        session = self.session
        latest = session.messages[-1] if session.messages else None
        if latest is not None and latest.is_loading:
            return None
        if text == session.last_posted_question or (latest is not None and latest.text == text):
            return None
        message = self._new_message(Sender.ASSISTANT, text, MessageVariant.INCOMING)
        session.messages = [*session.messages, message]
        session.last_posted_question = text
        self._mirror_message(message)
        self._persist_session()
        return message

    # --- Configuration listener ---

    def _on_configuration_update(self, snapshot: ConfigurationSnapshot) -> None:
        if not self.is_ready:
            return
        session = self.session
        if session.handover_active:
            return

        if snapshot.final_products:
            self._maybe_fire_active_prompt()
            return
        if snapshot.status == EngineStatus.NO_MATCH:
            self._post_unique(NO_MATCH_REPLY)
            return
        if snapshot.current_question is not None:
            if self._post_unique(snapshot.current_question.question):
                logger.debug("Posted question for '%s'", snapshot.current_question.facet.value)

    def _maybe_fire_active_prompt(self) -> None:
        session = self.session
        if session.active_prompt_fired or session.user_name:
            return
        if self._post_unique(ASK_NAME_PROMPT) is None:
            return
        session.active_prompt_fired = True
        logger.info("Product found; asked the visitor for their name")

    # --- Store mirroring ---

    def _mirror_message(self, message: Message) -> None:
        self._spawn("message save", self._store.save_message(self.session.session_id, message))

    def _persist_session(self) -> None:
        self._spawn("session save", self._store.save_session(self.session))

    def _spawn(self, operation: str, write: Awaitable[None]) -> None:
        task = asyncio.get_running_loop().create_task(self._best_effort(operation, write))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _best_effort(self, operation: str, write: Awaitable[None]) -> None:
        try:
            await write
        except (StoreError, OSError) as exc:
            logger.warning("Store %s failed; continuing in memory: %s", operation, exc)

    async def flush(self) -> None:
        """Wait for every pending store write."""
        while self._background:
            await asyncio.gather(*list(self._background))

    async def close(self) -> None:
        self._unsubscribe()
        await self.flush()
