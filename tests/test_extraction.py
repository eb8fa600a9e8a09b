"""Tests for the extraction result model and extraction clients."""

import json
from types import SimpleNamespace

import openai
import pytest

from copilot.catalog.facets import FacetKey
from copilot.schemas.extraction_schema import WIRE_KEYS, ExtractedFacets
from copilot.tools.extraction import (
    ExtractionError,
    KeywordExtractionClient,
    OpenAIExtractionClient,
    parse_extraction_payload,
)

FAQ = [
    {"question": "Delivery?", "answer": "Ships in 7 business days.", "keywords": ["delivery", "ship"]},
    {"question": "Warranty?", "answer": "5-year warranty.", "keywords": ["warranty"]},
]


def _wire(**overrides):
    payload = {key: "null" for key in WIRE_KEYS}
    payload.update(overrides)
    return payload


class TestExtractedFacets:
    def test_all_null_sentinels(self):
        result = ExtractedFacets.model_validate(_wire())
        assert result.facet_values() == {}
        assert result.contact().supplied() == {}
        assert result.answer is None
        assert result.wants_human is None

    def test_camel_case_keys(self):
        result = ExtractedFacets.model_validate(_wire(panelCount="2", blindMotorization="manual"))
        assert result.panel_count == "2"
        assert result.blind_motorization == "manual"

    def test_unknown_option_dropped(self):
        result = ExtractedFacets.model_validate(_wire(material="wood", category="window"))
        assert result.material is None
        assert result.category == "window"

    @pytest.mark.parametrize("raw, expected", [(True, True), ("true", True), ("false", False), ("null", None)])
    def test_wants_human_coercion(self, raw, expected):
        assert ExtractedFacets.model_validate(_wire(wantsHuman=raw)).wants_human is expected

    def test_to_wire_uses_eleven_keys(self):
        assert set(ExtractedFacets().to_wire()) == set(WIRE_KEYS)
        assert len(WIRE_KEYS) == 11

    def test_contact_has_channel(self):
        result = ExtractedFacets.model_validate(_wire(userEmail="a@b.co"))
        assert result.contact().has_channel


class TestParsePayload:
    def test_valid_payload(self):
        result = parse_extraction_payload(json.dumps(_wire(category="door")))
        assert result.category == "door"

    def test_missing_keys_treated_as_null(self):
        assert parse_extraction_payload('{"category": "door"}').system is None

    def test_invalid_json(self):
        with pytest.raises(ExtractionError, match="invalid JSON"):
            parse_extraction_payload("not json")

    def test_non_object_json(self):
        with pytest.raises(ExtractionError, match="non-object"):
            parse_extraction_payload("[1, 2]")

    def test_schema_violation(self):
        with pytest.raises(ExtractionError, match="validation"):
            parse_extraction_payload(json.dumps(_wire(wantsHuman=[1])))


class _FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


class TestOpenAIExtractionClient:
    @pytest.mark.asyncio
    async def test_requests_json_object(self):
        completions = _FakeCompletions(content=json.dumps(_wire(category="window")))
        client = OpenAIExtractionClient(client=_client(completions), model="test-model", system_prompt="SYS")
        result = await client.extract("a window please")
        assert result.category == "window"
        assert completions.kwargs["response_format"] == {"type": "json_object"}
        assert completions.kwargs["model"] == "test-model"
        assert completions.kwargs["messages"][0] == {"role": "system", "content": "SYS"}
        assert completions.kwargs["messages"][1]["content"] == "a window please"

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self):
        completions = _FakeCompletions(error=openai.OpenAIError("boom"))
        client = OpenAIExtractionClient(client=_client(completions), system_prompt="SYS")
        with pytest.raises(ExtractionError, match="boom"):
            await client.extract("hi")

    @pytest.mark.asyncio
    async def test_empty_content_is_error(self):
        client = OpenAIExtractionClient(client=_client(_FakeCompletions(content=None)), system_prompt="SYS")
        with pytest.raises(ExtractionError):
            await client.extract("hi")


class TestKeywordExtractionClient:
    def setup_method(self):
        self.client = KeywordExtractionClient(faq=FAQ)

    @pytest.mark.asyncio
    async def test_facets_from_phrases(self):
        result = await self.client.extract("A sliding window with no blind, two panels")
        assert result.facet_values() == {
            FacetKey.CATEGORY: "window",
            FacetKey.SYSTEM: "sliding",
            FacetKey.BLIND: "no",
            FacetKey.PANEL_COUNT: "2",
        }

    @pytest.mark.asyncio
    async def test_combined_material_wins(self):
        result = await self.client.extract("glass and louver please")
        assert result.material == "glass-louver"

    @pytest.mark.asyncio
    async def test_contact_details(self):
        result = await self.client.extract("my name is ana, ana@example.com, +55 11 98888-7777")
        assert result.user_name == "Ana"
        assert result.user_email == "ana@example.com"
        assert result.user_phone == "+5511988887777"

    @pytest.mark.asyncio
    async def test_handover_phrase(self):
        result = await self.client.extract("Can I talk to a specialist about delivery?")
        assert result.wants_human is True
        assert result.answer is None

    @pytest.mark.asyncio
    async def test_faq_answer_for_question(self):
        result = await self.client.extract("How long does delivery take?")
        assert result.answer == "Ships in 7 business days."

    @pytest.mark.asyncio
    async def test_statement_gets_no_answer(self):
        result = await self.client.extract("delivery to Lisbon")
        assert result.answer is None

    @pytest.mark.asyncio
    async def test_nothing_recognized(self):
        result = await self.client.extract("hello there")
        assert result == ExtractedFacets()
