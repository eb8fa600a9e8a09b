"""
System prompt for the structured-extraction model.

The valid facet options are generated from the facet schema so the model
is never told about values the catalog does not have. Knowledge-base
content is loaded from the co-located YAML file.
"""

import logging
from pathlib import Path
from typing import Any, Optional, TypedDict

import yaml

from copilot.catalog.facets import FACET_DEFINITIONS, FACET_ORDER
from copilot.config import settings
from copilot.schemas.extraction_schema import WIRE_KEYS

logger = logging.getLogger(__name__)

KNOWLEDGE_BASE_PATH = Path(__file__).with_name("knowledge_base.yaml")
KNOWLEDGE_BASE_UNAVAILABLE = "Knowledge base is unavailable."


class FaqEntry(TypedDict):
    """One knowledge-base question with its answer and match keywords."""

    question: str
    answer: str
    keywords: list[str]


def _read_knowledge_base(path: Optional[Path]) -> Optional[dict[str, Any]]:
    kb_path = path or KNOWLEDGE_BASE_PATH
    try:
        data = yaml.safe_load(kb_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Could not read knowledge base %s: %s", kb_path, exc)
        return None
    if not isinstance(data, dict):
        logger.error("Knowledge base %s has no top-level mapping", kb_path)
        return None
    return data


def load_faq_entries(path: Optional[Path] = None) -> list[FaqEntry]:
    """Return the FAQ entries, skipping malformed ones."""
    data = _read_knowledge_base(path)
    if data is None:
        return []
    entries: list[FaqEntry] = []
    for raw in data.get("faq") or []:
        if not isinstance(raw, dict) or not raw.get("question") or not raw.get("answer"):
            continue
        entries.append({
            "question": str(raw["question"]),
            "answer": str(raw["answer"]),
            "keywords": [str(k).lower() for k in raw.get("keywords") or []],
        })
    return entries


def load_knowledge_base(path: Optional[Path] = None) -> str:
    """Load the knowledge base and render it as plain text for the prompt."""
    data = _read_knowledge_base(path)
    if data is None:
        return KNOWLEDGE_BASE_UNAVAILABLE

    lines = []
    company = data.get("company") or {}
    if company.get("about"):
        lines.append(f"About {company.get('name', settings.business.name)}: {company['about']}")
    for entry in load_faq_entries(path):
        lines.append(f"Q: {entry['question']}")
        lines.append(f"A: {entry['answer']}")
    return "\n".join(lines) or KNOWLEDGE_BASE_UNAVAILABLE


def _facet_options_block() -> str:
    lines = []
    for facet, wire_key in zip(FACET_ORDER, WIRE_KEYS):
        definition = FACET_DEFINITIONS[facet]
        lines.append(f'- "{wire_key}":')
        for option in definition.options:
            lines.append(f'  - "{option.value}" ({option.label})')
    return "\n".join(lines)


def build_extraction_prompt(knowledge_base: Optional[str] = None) -> str:
    kb = load_knowledge_base() if knowledge_base is None else knowledge_base
    keys = "\n".join(f'   "{key}"' for key in WIRE_KEYS)
    return f"""
You are the chat co-pilot for {settings.business.name}. You have four tasks.
Reply ONLY with a JSON object.

TASK 1: FACET EXTRACTION
- Extract product attributes mentioned in the visitor's message.
- Use ONLY the values listed under VALID OPTIONS below.
- If the visitor does not mention a facet, use "null".

TASK 2: QUESTIONS AND ANSWERS
- If the visitor asks a factual question (warranty, delivery, etc.), answer it
  in "knowledgeBaseAnswer" using ONLY the KNOWLEDGE BASE below.
- If there is no factual question, "knowledgeBaseAnswer" is "null".

TASK 3: CONTACT EXTRACTION
- Extract the visitor's name, email and phone/WhatsApp into "userName",
  "userEmail" and "userPhone". Use "null" when not mentioned.

TASK 4: HANDOVER INTENT
- Set "wantsHuman" to true if the visitor clearly asks for a human, an agent,
  a specialist or a salesperson. Otherwise "null".

---
KNOWLEDGE BASE (use ONLY this data to answer):
{kb}
---

OUTPUT RULES:
1. Always return a JSON object with exactly these 11 keys:
{keys}
2. Fill every key, using "null" for anything not found.
3. If "wantsHuman" is true, "knowledgeBaseAnswer" MUST be "null". Do not answer
   the question and do not confirm the handover; the application replies.

---
VALID OPTIONS (TASK 1):
{_facet_options_block()}
""".strip()
