"""
Human handover link builder.

Builds a WhatsApp click-to-chat URL with a pre-filled message so the
specialist sees who is writing and what they were configuring.
"""

from typing import Optional, Sequence
from urllib.parse import quote

from copilot.config import settings
from copilot.utils import clean_optional_text

WHATSAPP_BASE_URL = "https://wa.me/"


def build_handover_message(
    name: Optional[str] = None,
    product_label: Optional[str] = None,
    facets: Optional[Sequence[str]] = None,
) -> str:
    """Compose the pre-filled text. A product label wins over a facet list."""
    parts = ["Hello!"]
    name = clean_optional_text(name)
    if name:
        parts.append(f"My name is {name}.")

    label = clean_optional_text(product_label)
    filled = [item for item in (facets or []) if clean_optional_text(item)]
    if label:
        parts.append(f"I'm interested in the product: {label}.")
    elif filled:
        parts.append(f"I'm interested in: {', '.join(filled)}.")
    else:
        parts.append("I'd like to talk to a specialist.")
    return " ".join(parts)


def build_whatsapp_link(
    name: Optional[str] = None,
    product_label: Optional[str] = None,
    facets: Optional[Sequence[str]] = None,
    number: Optional[str] = None,
) -> str:
    """Return the click-to-chat URL for the configured handover number."""
    target = (number or settings.business.whatsapp_number).lstrip("+")
    text = build_handover_message(name=name, product_label=product_label, facets=facets)
    return f"{WHATSAPP_BASE_URL}{target}?text={quote(text)}"
