"""Chat timeline and session schemas."""

import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from copilot.schemas.extraction_schema import ContactInfo


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class MessageVariant(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"
    LOADING = "loading"
    LINK_ACTION = "link-action"


class Message(BaseModel):
    """A single timeline entry. Never mutated; replaced by filtering and appending."""

    model_config = ConfigDict(frozen=True)

    id: str
    sender: Sender
    text: str
    timestamp: float
    variant: MessageVariant

    @property
    def is_loading(self) -> bool:
        return self.variant == MessageVariant.LOADING


class Session(BaseModel):
    """Visitor session with captured contact details and flow flags.

    ``messages`` is the in-memory timeline; the store keeps messages as
    separate append-only records next to one summary record.
    """

    session_id: str
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_phone: Optional[str] = None
    handover_active: bool = False
    active_prompt_fired: bool = False
    last_posted_question: Optional[str] = None
    messages: list[Message] = Field(default_factory=list)
    meta: dict[str, Any] = Field(default_factory=lambda: {"version": 1, "device": "web"})

    def contact(self) -> ContactInfo:
        return ContactInfo(name=self.user_name, email=self.user_email, phone=self.user_phone)

    def merge_contact(self, contact: ContactInfo, now: Optional[float] = None) -> dict[str, str]:
        """Merge supplied contact fields; existing values are never cleared.

        Returns the store-level fields that were written.
        """
        written = {}
        for field_name, value in contact.supplied().items():
            attr = f"user_{field_name}"
            setattr(self, attr, value)
            written[attr] = value
        if written:
            self.updated_at = time.time() if now is None else now
        return written

    def summary_record(self) -> dict[str, Any]:
        """The mutable session summary as stored (no messages)."""
        return self.model_dump(mode="json", exclude={"messages"})
