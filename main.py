"""
Configurator co-pilot entry point.

Runs the chat against the OpenAI extraction model, the offline console
demo, or the admin views over the configured chat store.

Usage:
    Live chat:      python main.py chat [session_id]
    Console mode:   python main.py console
    List sessions:  python main.py sessions
    Transcript:     python main.py show <session_id>
"""

import asyncio
import logging
import sys
from datetime import datetime

from copilot.config import settings
from copilot.logging_context import session_scope
from copilot.tools.message_store import MessageStore, create_store

logger = logging.getLogger(__name__)


def _format_ts(value: float) -> str:
    return datetime.fromtimestamp(value).strftime("%Y-%m-%d %H:%M")


def _build_store() -> MessageStore:
    if not settings.store.path:
        logger.warning("CHAT_STORE_PATH is not set; sessions will not outlive this process")
    return create_store(settings.store.path, settings.store.max_sessions)


async def _list_sessions(store: MessageStore) -> None:
    """Admin view: one line per stored session, newest first."""
    sessions = await store.list_sessions()
    if not sessions:
        print("No sessions stored.")
        return
    for session in sessions:
        who = session.user_name or "(anonymous)"
        email = session.user_email or "-"
        print(f"{_format_ts(session.updated_at)}  {session.session_id}  {who}  {email}")


async def _show_session(store: MessageStore, session_id: str) -> None:
    with session_scope(session_id):
        session = await store.load_session(session_id)
    if session is None:
        print(f"Session '{session_id}' not found.")
        return
    print(f"Session {session.session_id} (created {_format_ts(session.created_at)})")
    print(f"Contact: {session.user_name or '-'} / {session.user_email or '-'} / {session.user_phone or '-'}")
    for message in session.messages:
        print(f"[{_format_ts(message.timestamp)}] {message.sender.value:>9}: {message.text}")


async def _run_chat(session_id: str) -> None:
    """Interactive chat using the OpenAI extraction model (requires OPENAI_API_KEY)."""
    from console_demo import ConsoleSession
    from copilot.tools.extraction import OpenAIExtractionClient

    console = ConsoleSession(
        store=_build_store(), session_id=session_id, extractor=OpenAIExtractionClient()
    )
    await console.run()


def _run_console_mode() -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import ConsoleSession

    asyncio.run(ConsoleSession().run())


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else "chat"
    if command == "console":
        _run_console_mode()
    elif command == "sessions":
        asyncio.run(_list_sessions(_build_store()))
    elif command == "show" and len(sys.argv) > 2:
        asyncio.run(_show_session(_build_store(), sys.argv[2]))
    elif command == "chat":
        sid = sys.argv[2] if len(sys.argv) > 2 else settings.chat.default_session_id
        asyncio.run(_run_chat(sid))
    else:
        print(__doc__)
        sys.exit(2)
