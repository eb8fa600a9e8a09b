"""
Reply policy: an ordered list of guard -> action rules.

Rules are evaluated top-to-bottom against one extraction result. A rule
whose guard passes runs its action; a terminal rule then stops the walk.
Contact capture is the only non-terminal rule, so it can combine with any
of the others.

Usage:
    plan = evaluate_reply_rules(ReplyContext(extracted=result, contact=session.contact()))
    for text, variant in plan.messages:
        ...
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from copilot.prompts.reply_templates import (
    CONTACT_PROMPT_SEQUENCE,
    HANDOVER_CONTACT_PROMPT,
    HANDOVER_DECLINED_REPLY,
    build_acknowledgement,
)
from copilot.schemas.conversation_schema import MessageVariant
from copilot.schemas.extraction_schema import ContactInfo, ExtractedFacets
from copilot.tools.handover import build_whatsapp_link
from copilot.utils import normalize_phone

logger = logging.getLogger(__name__)

LinkBuilder = Callable[..., str]


class ReplyBranch:
    """Names of the terminal rules, recorded on the plan."""

    HANDOVER = "handover_request"
    CONTINUATION = "handover_continuation"
    FOLLOW_UP = "guided_follow_up"
    ANSWER = "kb_answer"


@dataclass(frozen=True)
class ReplyContext:
    """Inputs for one turn, read at the moment the extraction result arrives."""

    extracted: ExtractedFacets
    contact: ContactInfo = field(default_factory=ContactInfo)
    handover_active: bool = False
    last_assistant_text: Optional[str] = None
    facet_labels: tuple[str, ...] = ()
    link_builder: LinkBuilder = build_whatsapp_link


@dataclass
class ReplyPlan:
    """What the orchestrator should do for this turn."""

    messages: list[tuple[str, MessageVariant]] = field(default_factory=list)
    new_contact: ContactInfo = field(default_factory=ContactInfo)
    handover_active: bool = False
    mark_active_prompt_fired: bool = False
    branch: Optional[str] = None

    @property
    def apply_facets(self) -> bool:
        """Facets are forwarded only when no handover or follow-up consumed the turn."""
        return self.branch in (None, ReplyBranch.ANSWER) and not self.handover_active

    def queue(self, text: str, variant: MessageVariant = MessageVariant.INCOMING) -> None:
        self.messages.append((text, variant))


@dataclass(frozen=True)
class ReplyRule:
    name: str
    guard: Callable[[ReplyContext, ReplyPlan], bool]
    action: Callable[[ReplyContext, ReplyPlan], None]
    terminal: bool = True


def normalize_contact(contact: ContactInfo) -> ContactInfo:
    """Trim fields, lower-case the email, and strip phone formatting."""
    email = contact.email.strip().lower() if contact.email else None
    phone = normalize_phone(contact.phone) if contact.phone else None
    return ContactInfo(
        name=contact.name.strip() if contact.name else None,
        email=email or None,
        phone=phone or None,
    )


def _merged_contact(context: ReplyContext, plan: ReplyPlan) -> ContactInfo:
    merged = context.contact.model_dump()
    merged.update(plan.new_contact.supplied())
    return ContactInfo(**merged)


def _queue_link(context: ReplyContext, plan: ReplyPlan) -> None:
    contact = _merged_contact(context, plan)
    link = context.link_builder(name=contact.name, facets=list(context.facet_labels))
    plan.queue(link, MessageVariant.LINK_ACTION)
    plan.handover_active = False
    logger.info("Handover link posted")


# --- Contact capture ---

def _fresh_contact(context: ReplyContext) -> ContactInfo:
    """Normalized fields from this turn that are usable and not already on file."""
    known = context.contact.supplied()
    fresh = {
        key: value
        for key, value in normalize_contact(context.extracted.contact()).supplied().items()
        if known.get(key) != value
    }
    return ContactInfo(**fresh)


def _has_contact(context: ReplyContext, plan: ReplyPlan) -> bool:
    return bool(_fresh_contact(context).supplied())


def _capture_contact(context: ReplyContext, plan: ReplyPlan) -> None:
    plan.new_contact = _fresh_contact(context)
    name = plan.new_contact.name or context.contact.name
    plan.queue(build_acknowledgement(name))


# --- Handover request ---

def _wants_human(context: ReplyContext, plan: ReplyPlan) -> bool:
    return context.extracted.wants_human is True


def _start_handover(context: ReplyContext, plan: ReplyPlan) -> None:
    plan.branch = ReplyBranch.HANDOVER
    plan.handover_active = True
    if _merged_contact(context, plan).has_channel:
        _queue_link(context, plan)
    else:
        plan.queue(HANDOVER_CONTACT_PROMPT)
        logger.info("Handover requested without a contact channel; asking for one")


# --- Handover continuation ---

def _handover_pending(context: ReplyContext, plan: ReplyPlan) -> bool:
    return context.handover_active


def _continue_handover(context: ReplyContext, plan: ReplyPlan) -> None:
    plan.branch = ReplyBranch.CONTINUATION
    if plan.new_contact.supplied():
        _queue_link(context, plan)
        plan.mark_active_prompt_fired = True
    else:
        plan.queue(HANDOVER_DECLINED_REPLY)
        plan.handover_active = False
        logger.info("Handover reply carried no contact details; handover closed")


# --- Guided follow-up ---

def _next_contact_prompt(context: ReplyContext, plan: ReplyPlan) -> Optional[str]:
    if context.extracted.answer or not context.last_assistant_text:
        return None
    supplied = plan.new_contact.supplied()
    for prompt, field_name, next_prompt in CONTACT_PROMPT_SEQUENCE:
        if prompt in context.last_assistant_text and field_name in supplied:
            return next_prompt
    return None


def _follow_up_due(context: ReplyContext, plan: ReplyPlan) -> bool:
    return _next_contact_prompt(context, plan) is not None


def _post_follow_up(context: ReplyContext, plan: ReplyPlan) -> None:
    plan.branch = ReplyBranch.FOLLOW_UP
    plan.queue(_next_contact_prompt(context, plan))


# --- Knowledge-base answer ---

def _has_answer(context: ReplyContext, plan: ReplyPlan) -> bool:
    return bool(context.extracted.answer)


def _post_answer(context: ReplyContext, plan: ReplyPlan) -> None:
    plan.branch = ReplyBranch.ANSWER
    plan.queue(context.extracted.answer)


REPLY_RULES: tuple[ReplyRule, ...] = (
    ReplyRule("contact_capture", _has_contact, _capture_contact, terminal=False),
    ReplyRule(ReplyBranch.HANDOVER, _wants_human, _start_handover),
    ReplyRule(ReplyBranch.CONTINUATION, _handover_pending, _continue_handover),
    ReplyRule(ReplyBranch.FOLLOW_UP, _follow_up_due, _post_follow_up),
    ReplyRule(ReplyBranch.ANSWER, _has_answer, _post_answer),
)


def evaluate_reply_rules(
    context: ReplyContext, rules: Sequence[ReplyRule] = REPLY_RULES
) -> ReplyPlan:
    """Walk the rules in order and build the turn's plan."""
    plan = ReplyPlan(handover_active=context.handover_active)
    for rule in rules:
        if not rule.guard(context, plan):
            continue
        logger.debug("Reply rule fired: %s", rule.name)
        rule.action(context, plan)
        if rule.terminal:
            break
    return plan
