"""Fixed assistant replies used by the conversation orchestrator."""

from typing import Optional

LOADING_TEXT = "..."

EXTRACTION_ERROR_REPLY = "Sorry, I couldn't reach the assistant right now. Please try again."
INPUT_TOO_LONG_REPLY = "That was quite long. Could you keep it a bit shorter for me?"
NO_MATCH_REPLY = (
    "I couldn't find a product with that combination. "
    "Try changing one of your choices, or restart the configurator."
)

ASK_NAME_PROMPT = "I found your product! To save this quote, who am I talking to?"
ASK_EMAIL_PROMPT = "Thanks! What's your best email?"
ASK_PHONE_PROMPT = "Perfect. And finally, what's your WhatsApp or phone number?"
CONTACT_COMPLETE_REPLY = "All set! I've got your details."

HANDOVER_CONTACT_PROMPT = (
    "Sure, I can put you in touch with a specialist. "
    "What's your WhatsApp number? Or do you prefer email?"
)
HANDOVER_DECLINED_REPLY = (
    "Understood. If you change your mind, just ask to talk to a specialist."
)

# (prompt just posted, contact field it asks for, prompt to post next)
CONTACT_PROMPT_SEQUENCE: tuple[tuple[str, str, str], ...] = (
    (ASK_NAME_PROMPT, "name", ASK_EMAIL_PROMPT),
    (ASK_EMAIL_PROMPT, "email", ASK_PHONE_PROMPT),
    (ASK_PHONE_PROMPT, "phone", CONTACT_COMPLETE_REPLY),
)


def build_acknowledgement(name: Optional[str]) -> str:
    """Thank the visitor after contact details arrive."""
    if name:
        return f"Thanks, {name}!"
    return "Thanks, I've got your details!"
