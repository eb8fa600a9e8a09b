"""Structured-extraction result model.

The extraction service returns eleven fixed keys, any of which may be
JSON null or the literal string "null". Input is untrusted: facet values
outside the schema's option set are dropped during validation.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from copilot.catalog.facets import FACET_ORDER, FacetKey, is_valid_value
from copilot.utils import clean_optional_text

WIRE_KEYS: tuple[str, ...] = (
    "category",
    "system",
    "blind",
    "blindMotorization",
    "material",
    "panelCount",
    "knowledgeBaseAnswer",
    "userName",
    "userEmail",
    "userPhone",
    "wantsHuman",
)


class ContactInfo(BaseModel):
    """Contact fields supplied by the visitor."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    def supplied(self) -> dict[str, str]:
        return {key: value for key, value in self.model_dump().items() if value}

    @property
    def has_channel(self) -> bool:
        return bool(self.email or self.phone)


class ExtractedFacets(BaseModel):
    """One extraction result, as returned for a single utterance."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    category: Optional[str] = None
    system: Optional[str] = None
    blind: Optional[str] = None
    blind_motorization: Optional[str] = None
    material: Optional[str] = None
    panel_count: Optional[str] = None
    knowledge_base_answer: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_phone: Optional[str] = None
    wants_human: Optional[bool] = Field(default=None)

    @field_validator(
        "category", "system", "blind", "blind_motorization", "material", "panel_count",
        "knowledge_base_answer", "user_name", "user_email", "user_phone",
        mode="before",
    )
    @classmethod
    def _null_sentinel_to_none(cls, value: Any) -> Optional[str]:
        return clean_optional_text(value)

    @field_validator("category", "system", "blind", "blind_motorization", "material", "panel_count")
    @classmethod
    def _drop_unknown_option(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if value is None:
            return None
        facet = FacetKey(info.field_name)
        return value if is_valid_value(facet, value) else None

    @field_validator("wants_human", mode="before")
    @classmethod
    def _coerce_wants_human(cls, value: Any) -> Optional[bool]:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("true", "yes", "1"):
                return True
            if lowered in ("false", "no", "0"):
                return False
            return None
        return value

    def facet_values(self) -> dict[FacetKey, str]:
        """Recognized facet values present in this result, in facet order."""
        values = {}
        for facet in FACET_ORDER:
            value = getattr(self, facet.value)
            if value is not None:
                values[facet] = value
        return values

    def contact(self) -> ContactInfo:
        return ContactInfo(name=self.user_name, email=self.user_email, phone=self.user_phone)

    @property
    def answer(self) -> Optional[str]:
        return self.knowledge_base_answer

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
