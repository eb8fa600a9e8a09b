"""
Extraction collaborator: free text -> ExtractedFacets.

Two clients share one async interface:
- OpenAIExtractionClient asks a chat model for a JSON object with the
  eleven fixed keys.
- KeywordExtractionClient matches phrases and patterns locally. It needs
  no network and backs the console demo and tests.

Every failure surfaces as ExtractionError; callers never see partial results.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import openai
from pydantic import ValidationError

from copilot.catalog.facets import FacetKey
from copilot.config import settings
from copilot.prompts.system_prompts import FaqEntry, build_extraction_prompt, load_faq_entries
from copilot.schemas.extraction_schema import WIRE_KEYS, ExtractedFacets
from copilot.utils import normalize_phone

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """Raised when the extraction collaborator cannot produce a result."""


class ExtractionClient(ABC):
    """Turns one visitor utterance into structured facts."""

    @abstractmethod
    async def extract(self, text: str) -> ExtractedFacets:
        """
        Raises:
            ExtractionError: On any transport, parse, or schema failure.
        """


def parse_extraction_payload(raw: str) -> ExtractedFacets:
    """Validate the model's JSON text into ExtractedFacets."""
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ExtractionError(f"Extraction returned invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ExtractionError("Extraction returned a non-object JSON value")

    missing = [key for key in WIRE_KEYS if key not in payload]
    if missing:
        logger.debug("Extraction payload missing keys %s; treating them as null", missing)
    try:
        return ExtractedFacets.model_validate(payload)
    except ValidationError as exc:
        raise ExtractionError(f"Extraction payload failed validation: {exc}") from exc


class OpenAIExtractionClient(ExtractionClient):
    """Structured extraction through an OpenAI chat model in JSON mode."""

    def __init__(
        self,
        client: Optional[openai.AsyncOpenAI] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        system_prompt: Optional[str] = None,
    ) -> None:
        if client is None:
            client = openai.AsyncOpenAI(
                base_url=settings.model.llm_base_url or None,
                timeout=settings.model.extraction_timeout_sec,
            )
        self._client = client
        self._model = model or settings.model.llm_model
        self._temperature = (
            settings.model.llm_temperature if temperature is None else temperature
        )
        self._system_prompt = system_prompt or build_extraction_prompt()

    async def extract(self, text: str) -> ExtractedFacets:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                temperature=self._temperature,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": self._system_prompt},
                    {"role": "user", "content": text},
                ],
            )
        except openai.OpenAIError as exc:
            logger.error("Extraction request failed: %s", exc)
            raise ExtractionError(f"Extraction request failed: {exc}") from exc

        if not response.choices:
            raise ExtractionError("Extraction response had no choices")
        content = response.choices[0].message.content
        result = parse_extraction_payload(content or "")
        logger.debug("Extraction result: %s", result.to_wire())
        return result


# Longest phrases first so "glass and louver" wins over "glass".
_FACET_PHRASES: dict[FacetKey, list[tuple[str, str]]] = {
    FacetKey.CATEGORY: [
        ("door", "door"),
        ("window", "window"),
    ],
    FacetKey.SYSTEM: [
        ("sliding", "sliding"),
        ("slide", "sliding"),
        ("hinged", "hinged"),
        ("casement", "hinged"),
        ("awning", "awning"),
    ],
    FacetKey.BLIND: [
        ("without blind", "no"),
        ("without a blind", "no"),
        ("no blind", "no"),
        ("with blind", "yes"),
        ("with a blind", "yes"),
        ("integrated blind", "yes"),
    ],
    FacetKey.BLIND_MOTORIZATION: [
        ("motorized", "motorized"),
        ("motorised", "motorized"),
        ("electric", "motorized"),
        ("manual", "manual"),
    ],
    FacetKey.MATERIAL: [
        ("glass and louver", "glass-louver"),
        ("glass-louver", "glass-louver"),
        ("glass and solid", "glass-solid"),
        ("glass-solid", "glass-solid"),
        ("louver", "louver"),
        ("solid", "solid"),
        ("glass", "glass"),
    ],
}

_NUMBER_WORDS = {"one": "1", "two": "2", "three": "3", "four": "4", "six": "6"}
_PANEL_PATTERN = re.compile(
    r"\b(\d|one|two|three|four|six)[\s-]*(?:panels?|leaf|leaves|sheets?)\b", re.IGNORECASE
)
_EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_PHONE_PATTERN = re.compile(r"\+?\d[\d\s().-]{7,}\d")
_NAME_PATTERN = re.compile(
    r"\b(?:my name is|call me|i am called)\s+([A-Za-z][A-Za-z'-]+)", re.IGNORECASE
)
_HANDOVER_PHRASES = (
    "human",
    "specialist",
    "salesperson",
    "sales rep",
    "attendant",
    "real person",
    "talk to someone",
    "speak to someone",
)


class KeywordExtractionClient(ExtractionClient):
    """Offline extraction using phrase tables and regular expressions."""

    def __init__(self, faq: Optional[Sequence[FaqEntry]] = None) -> None:
        self._faq = list(faq) if faq is not None else load_faq_entries()

    async def extract(self, text: str) -> ExtractedFacets:
        lowered = text.lower()
        payload: dict[str, object] = {}

        for facet, phrases in _FACET_PHRASES.items():
            for phrase, value in phrases:
                if phrase in lowered:
                    payload[facet.value] = value
                    break

        panels = _PANEL_PATTERN.search(text)
        if panels:
            count = panels.group(1).lower()
            payload[FacetKey.PANEL_COUNT.value] = _NUMBER_WORDS.get(count, count)

        email = _EMAIL_PATTERN.search(text)
        if email:
            payload["user_email"] = email.group(0)
        phone = _PHONE_PATTERN.search(_EMAIL_PATTERN.sub(" ", text))
        if phone:
            payload["user_phone"] = normalize_phone(phone.group(0))
        name = _NAME_PATTERN.search(text)
        if name:
            payload["user_name"] = name.group(1).capitalize()

        wants_human = any(phrase in lowered for phrase in _HANDOVER_PHRASES)
        if wants_human:
            payload["wants_human"] = True
        elif lowered.rstrip().endswith("?"):
            payload["knowledge_base_answer"] = self._answer(lowered)

        return ExtractedFacets.model_validate(payload)

    def _answer(self, lowered: str) -> Optional[str]:
        words = set(re.findall(r"[a-z]+", lowered))
        for entry in self._faq:
            if words.intersection(entry["keywords"]):
                return entry["answer"]
        return None
