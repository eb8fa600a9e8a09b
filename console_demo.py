"""
Offline console demo: runs a configurator chat without any API keys.

Uses the real decision engine, configuration container, orchestrator,
keyword extraction client, and in-memory store. No LLM and no network
calls. Typing a number picks that option of the current question (the
same path as clicking it in the configurator).

Usage:
    python console_demo.py
    python console_demo.py --scenario handover
    python console_demo.py --scenario questions
"""

import argparse
import asyncio
from typing import Optional

from copilot.catalog.labels import compose_label
from copilot.config import settings
from copilot.conversation.coordinator import SessionCoordinator
from copilot.conversation.orchestrator import ConversationOrchestrator
from copilot.engine.configuration_state import InvalidSelectionError
from copilot.schemas.conversation_schema import Message, MessageVariant, Sender
from copilot.tools.extraction import ExtractionClient, KeywordExtractionClient
from copilot.tools.message_store import InMemoryMessageStore, MessageStore, create_store

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


class ConsoleSession:
    """Drives one chat session in the terminal."""

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "configure": [
            "Hi, I need a window",
            "sliding please",
            "2",
            "glass",
            "4 panels",
            "my name is Ana",
            "ana@example.com",
            "+55 11 98888-7777",
        ],
        "handover": [
            "I'm looking for a hinged door",
            "Can I talk to a specialist?",
            "sure, my WhatsApp is 11 97777-6666",
            "solid please",
        ],
        "questions": [
            "How long does delivery take?",
            "a sliding window with no blind",
            "What warranty do the products have?",
        ],
    }

    def __init__(
        self,
        store: Optional[MessageStore] = None,
        session_id: Optional[str] = None,
        extractor: Optional[ExtractionClient] = None,
    ) -> None:
        self.coordinator = SessionCoordinator(
            store=store or InMemoryMessageStore(),
            extractor=extractor or KeywordExtractionClient(),
        )
        self.session_id = session_id or settings.chat.default_session_id
        self._shown = 0

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _print_message(self, message: Message) -> None:
        if message.sender == Sender.USER:
            print(f"\n{BLUE}[Visitor] {RESET}{message.text}")
        elif message.variant == MessageVariant.LINK_ACTION:
            print(f"{YELLOW}{BOLD}[Co-pilot]{RESET} {YELLOW}Talk to a specialist: {message.text}{RESET}")
        else:
            print(f"{GREEN}{BOLD}[Co-pilot]{RESET} {GREEN}{message.text}{RESET}")

    def _print_new(self, orchestrator: ConversationOrchestrator) -> None:
        messages = orchestrator.messages
        for message in messages[self._shown:]:
            if not message.is_loading:
                self._print_message(message)
        self._shown = len(messages)

    def _print_status(self, orchestrator: ConversationOrchestrator) -> None:
        snapshot = orchestrator.configuration.snapshot
        label = snapshot.composed_label or "-"
        self.system_log(f"State: {orchestrator.state.value} | Product: {label}")
        question = snapshot.current_question
        if question is not None and not orchestrator.session.handover_active:
            choices = ", ".join(
                f"{index}) {option.label}" for index, option in enumerate(question.options, start=1)
            )
            self.system_log(f"Options: {choices}")
        if snapshot.final_products:
            product = snapshot.final_products[0]
            self.system_log(
                f"Result: {compose_label(snapshot.assignment)} [{product.sku}] {snapshot.product_link}"
            )

    async def _process_input(self, orchestrator: ConversationOrchestrator, text: str) -> None:
        question = orchestrator.configuration.current_question
        if text.isdigit() and question is not None:
            index = int(text) - 1
            if not 0 <= index < len(question.options):
                print(f"{RED}Pick a number between 1 and {len(question.options)}.{RESET}")
                return
            option = question.options[index]
            print(f"\n{BLUE}[Visitor clicked] {RESET}{option.label}")
            try:
                orchestrator.select_option(question.facet, option.value)
            except InvalidSelectionError as exc:
                print(f"{RED}{exc}{RESET}")
            self._print_new(orchestrator)
            return

        await orchestrator.handle_send_message(text)
        self._print_new(orchestrator)

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  CONFIGURATOR CO-PILOT - {title}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        orchestrator = await self.coordinator.open(self.session_id)
        self._print_new(orchestrator)
        self._print_status(orchestrator)

        for step in steps:
            await self._process_input(orchestrator, step)
            self._print_status(orchestrator)

        await self.coordinator.close()
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{DIM}  State trace: {' -> '.join(orchestrator.state_machine.get_state_trace())}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run(self) -> None:
        self._banner("Console Demo")
        print(f"{BOLD}  Type a message, a number to pick an option, 'restart', or 'quit'{RESET}")
        orchestrator = await self.coordinator.open(self.session_id)
        self._print_new(orchestrator)
        self._print_status(orchestrator)

        while True:
            user_input = input(f"\n{BLUE}[Visitor] {RESET}").strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                break
            if user_input.lower() == "restart":
                self.coordinator.restart(self.session_id)
                self._print_new(orchestrator)
            else:
                await self._process_input(orchestrator, user_input)
            self._print_status(orchestrator)

        await self.coordinator.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    parser.add_argument(
        "--persist",
        action="store_true",
        help="Use the configured JSON chat store instead of memory",
    )
    args = parser.parse_args()

    store = create_store(settings.store.path, settings.store.max_sessions) if args.persist else None
    session = ConsoleSession(store=store)
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
