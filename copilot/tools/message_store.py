"""
Durable chat store: append-only message records plus one session summary.

The orchestrator treats the store as a best-effort mirror of the visible
timeline. Two implementations share one record codec:
- InMemoryMessageStore keeps raw dict records (tests, console demo).
- JsonFileMessageStore persists the same records to a single JSON file.

The read path tolerates legacy records: a missing ``variant`` is derived
from the sender role, the old ``"bot"`` sender reads as assistant, and
timestamps may be datetimes, ``{"seconds", "nanoseconds"}`` mappings,
epoch seconds, epoch milliseconds, or ISO strings.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, TypeVar

from copilot.logging_context import get_session_logger
from copilot.schemas.conversation_schema import Message, MessageVariant, Sender, Session

logger = get_session_logger(__name__)

T = TypeVar("T")

# Epoch values above this are milliseconds (1e11 s is year 5138).
_MILLISECONDS_THRESHOLD = 1e11

_LEGACY_VARIANTS = {"whatsapp-link": MessageVariant.LINK_ACTION}

_LEGACY_SUMMARY_KEYS = {
    "sessionId": "session_id",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "userName": "user_name",
    "userEmail": "user_email",
    "userPhone": "user_phone",
}


class StoreError(Exception):
    """Raised when the underlying storage cannot be read or written."""


def normalize_timestamp(value: Any) -> float:
    """Convert any stored timestamp representation to epoch seconds."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
        if isinstance(seconds, (int, float)):
            return float(seconds) + float(nanos) / 1e9
        return time.time()
    if isinstance(value, bool):
        return time.time()
    if isinstance(value, (int, float)):
        number = float(value)
        return number / 1000.0 if number > _MILLISECONDS_THRESHOLD else number
    if isinstance(value, str):
        try:
            return normalize_timestamp(float(value))
        except ValueError:
            pass
        try:
            return normalize_timestamp(datetime.fromisoformat(value))
        except ValueError:
            return time.time()
    return time.time()


def _decode_sender(raw: Any) -> Sender:
    return Sender.USER if raw == Sender.USER.value else Sender.ASSISTANT


def _decode_variant(raw: Any, sender: Sender) -> MessageVariant:
    if isinstance(raw, str):
        if raw in _LEGACY_VARIANTS:
            return _LEGACY_VARIANTS[raw]
        try:
            return MessageVariant(raw)
        except ValueError:
            pass
    return MessageVariant.OUTGOING if sender == Sender.USER else MessageVariant.INCOMING


def decode_message_record(record: Mapping[str, Any], fallback_id: str) -> Message:
    sender = _decode_sender(record.get("sender"))
    return Message(
        id=str(record.get("id") or fallback_id),
        sender=sender,
        text=str(record.get("text") or ""),
        timestamp=normalize_timestamp(record.get("timestamp")),
        variant=_decode_variant(record.get("variant"), sender),
    )


def encode_message_record(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "sender": message.sender.value,
        "text": message.text,
        "timestamp": message.timestamp,
        "variant": message.variant.value,
    }


def decode_session_record(
    record: Mapping[str, Any], messages: Optional[list[Message]] = None
) -> Session:
    data = {_LEGACY_SUMMARY_KEYS.get(key, key): value for key, value in record.items()}
    data.pop("messages", None)
    for key in ("created_at", "updated_at"):
        if key in data:
            data[key] = normalize_timestamp(data[key])
    return Session.model_validate({**data, "messages": messages or []})


class MessageStore(ABC):
    """
    Async store interface built on a few synchronous record primitives.

    Primitives run in a worker thread so file I/O never blocks the event
    loop. One lock serializes them, which keeps every summary
    read-modify-write atomic and preserves the order writes were issued in.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @abstractmethod
    def _read_summary(self, session_id: str) -> Optional[dict[str, Any]]: ...

    @abstractmethod
    def _read_messages(self, session_id: str) -> list[dict[str, Any]]: ...

    @abstractmethod
    def _write_summary(self, session_id: str, record: dict[str, Any]) -> None: ...

    @abstractmethod
    def _append_message(self, session_id: str, record: dict[str, Any]) -> None: ...

    @abstractmethod
    def _all_summaries(self) -> list[dict[str, Any]]: ...

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        async with self._lock:
            return await asyncio.to_thread(func, *args)

    def _read_session(
        self, session_id: str
    ) -> tuple[Optional[dict[str, Any]], list[dict[str, Any]]]:
        return self._read_summary(session_id), self._read_messages(session_id)

    def _summary_or_new(self, session_id: str, timestamp: float) -> dict[str, Any]:
        summary = self._read_summary(session_id)
        if summary is None:
            summary = Session(
                session_id=session_id, created_at=timestamp, updated_at=timestamp
            ).summary_record()
        return summary

    def _append_and_touch(self, session_id: str, record: dict[str, Any]) -> None:
        self._append_message(session_id, record)
        summary = self._summary_or_new(session_id, record["timestamp"])
        summary["updated_at"] = max(normalize_timestamp(summary.get("updated_at")), record["timestamp"])
        self._write_summary(session_id, summary)

    def _merge_summary(self, session_id: str, fields: dict[str, str], timestamp: float) -> None:
        summary = self._summary_or_new(session_id, timestamp)
        summary.update({key: value for key, value in fields.items() if value})
        summary["updated_at"] = timestamp
        self._write_summary(session_id, summary)

    async def load_session(self, session_id: str) -> Optional[Session]:
        """Load a session with its ordered messages, or None if nothing is stored."""
        summary, records = await self._run(self._read_session, session_id)
        if summary is None and not records:
            return None

        messages = [
            decode_message_record(record, fallback_id=f"{session_id}-{index}")
            for index, record in enumerate(records)
        ]
        messages = [m for m in messages if not m.is_loading]
        messages.sort(key=lambda m: m.timestamp)

        if summary is None:
            summary = {
                "session_id": session_id,
                "created_at": messages[0].timestamp,
                "updated_at": messages[-1].timestamp,
            }
        summary = {**summary, "session_id": session_id}
        logger.info("Loaded session with %d messages", len(messages))
        return decode_session_record(summary, messages)

    async def save_session(self, session: Session) -> None:
        """Create or overwrite the session summary record."""
        await self._run(self._write_summary, session.session_id, session.summary_record())

    async def save_message(self, session_id: str, message: Message) -> None:
        """Append a message record. Loading placeholders are never stored."""
        if message.is_loading:
            return
        await self._run(self._append_and_touch, session_id, encode_message_record(message))

    async def update_session_contact(
        self, session_id: str, fields: Mapping[str, str], timestamp: Optional[float] = None
    ) -> None:
        """Merge contact fields into the summary record, stamped with ``timestamp``."""
        stamp = time.time() if timestamp is None else timestamp
        await self._run(self._merge_summary, session_id, dict(fields), stamp)

    async def list_sessions(self) -> list[Session]:
        """Session summaries (without messages), most recently updated first."""
        records = await self._run(self._all_summaries)
        sessions = [decode_session_record(record) for record in records]
        return sorted(sessions, key=lambda s: s.updated_at, reverse=True)


class InMemoryMessageStore(MessageStore):
    """Keeps raw records in dictionaries."""

    def __init__(self) -> None:
        super().__init__()
        self._summaries: dict[str, dict[str, Any]] = {}
        self._messages: dict[str, list[dict[str, Any]]] = {}

    def seed(
        self,
        session_id: str,
        messages: list[dict[str, Any]],
        summary: Optional[dict[str, Any]] = None,
    ) -> None:
        """Insert raw records as-is, e.g. legacy data written by older clients."""
        self._messages.setdefault(session_id, []).extend(dict(m) for m in messages)
        if summary is not None:
            self._summaries[session_id] = dict(summary)

    def _read_summary(self, session_id: str) -> Optional[dict[str, Any]]:
        summary = self._summaries.get(session_id)
        return dict(summary) if summary is not None else None

    def _read_messages(self, session_id: str) -> list[dict[str, Any]]:
        return [dict(record) for record in self._messages.get(session_id, [])]

    def _write_summary(self, session_id: str, record: dict[str, Any]) -> None:
        self._summaries[session_id] = dict(record)

    def _append_message(self, session_id: str, record: dict[str, Any]) -> None:
        self._messages.setdefault(session_id, []).append(dict(record))

    def _all_summaries(self) -> list[dict[str, Any]]:
        return [dict(record) for record in self._summaries.values()]


class JsonFileMessageStore(InMemoryMessageStore):
    """Persists the in-memory records to a JSON file after every write."""

    def __init__(self, path: Path, max_sessions: int = 0) -> None:
        super().__init__()
        self._path = Path(path)
        self._max_sessions = max_sessions
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Chat store at %s is not valid JSON; starting empty", self._path)
            return
        except OSError as exc:
            raise StoreError(f"Cannot read chat store {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            logger.warning("Chat store at %s has no top-level object; starting empty", self._path)
            return

        summaries = data.get("sessions", {})
        messages = data.get("messages", {})
        if isinstance(summaries, dict):
            self._summaries = {sid: rec for sid, rec in summaries.items() if isinstance(rec, dict)}
        if isinstance(messages, dict):
            self._messages = {sid: recs for sid, recs in messages.items() if isinstance(recs, list)}
        if self._prune_sessions():
            self._persist()

    def _persist(self) -> None:
        payload = {"sessions": self._summaries, "messages": self._messages}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2, default=str),
                encoding="utf-8",
            )
        except OSError as exc:
            raise StoreError(f"Cannot write chat store {self._path}: {exc}") from exc

    def _prune_sessions(self) -> bool:
        """Drop the least recently updated sessions above max_sessions."""
        if self._max_sessions <= 0 or len(self._summaries) <= self._max_sessions:
            return False
        ranked = sorted(
            self._summaries.items(),
            key=lambda item: normalize_timestamp(item[1].get("updated_at")),
            reverse=True,
        )
        keep = {sid for sid, _ in ranked[: self._max_sessions]}
        removed = [sid for sid in list(self._summaries) if sid not in keep]
        for sid in removed:
            self._summaries.pop(sid, None)
            self._messages.pop(sid, None)
        return bool(removed)

    def _write_summary(self, session_id: str, record: dict[str, Any]) -> None:
        super()._write_summary(session_id, record)
        self._prune_sessions()
        self._persist()

    def _append_message(self, session_id: str, record: dict[str, Any]) -> None:
        super()._append_message(session_id, record)
        self._persist()


def create_store(path: str = "", max_sessions: int = 0) -> MessageStore:
    """Build the configured store: a JSON file when a path is given, else in-memory."""
    if path:
        return JsonFileMessageStore(Path(path), max_sessions=max_sessions)
    return InMemoryMessageStore()
