"""
Static facet schema: question order, valid options, and applicability rules.

Pure data. The order of FACET_ORDER defines the default question sequence
and which earlier answers a later facet may depend on.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional


class FacetKey(str, Enum):
    """Configurable product dimensions, in question order."""

    CATEGORY = "category"
    SYSTEM = "system"
    BLIND = "blind"
    BLIND_MOTORIZATION = "blind_motorization"
    MATERIAL = "material"
    PANEL_COUNT = "panel_count"


Assignment = dict[FacetKey, Optional[str]]

BLIND_YES = "yes"
BLIND_NO = "no"


@dataclass(frozen=True)
class Option:
    """A selectable answer for a facet."""

    value: str
    label: str
    image: Optional[str] = None


@dataclass(frozen=True)
class FacetDefinition:
    """Schema for a single facet question."""

    key: FacetKey
    question: str
    options: tuple[Option, ...]
    applies: Optional[Callable[[Mapping[FacetKey, Optional[str]]], bool]] = None

    @property
    def values(self) -> frozenset[str]:
        return frozenset(option.value for option in self.options)

    def label_for(self, value: str) -> str:
        for option in self.options:
            if option.value == value:
                return option.label
        return value

    def is_applicable(self, assignment: Mapping[FacetKey, Optional[str]]) -> bool:
        return self.applies is None or self.applies(assignment)


def _blind_selected(assignment: Mapping[FacetKey, Optional[str]]) -> bool:
    return assignment.get(FacetKey.BLIND) == BLIND_YES


FACET_ORDER: tuple[FacetKey, ...] = tuple(FacetKey)

FACET_DEFINITIONS: dict[FacetKey, FacetDefinition] = {
    FacetKey.CATEGORY: FacetDefinition(
        key=FacetKey.CATEGORY,
        question="Are you looking for a door or a window?",
        options=(
            Option("door", "Door", "options/category-door.webp"),
            Option("window", "Window", "options/category-window.webp"),
        ),
    ),
    FacetKey.SYSTEM: FacetDefinition(
        key=FacetKey.SYSTEM,
        question="Which opening system do you prefer?",
        options=(
            Option("sliding", "Sliding", "options/system-sliding.webp"),
            Option("hinged", "Hinged", "options/system-hinged.webp"),
            Option("awning", "Awning", "options/system-awning.webp"),
        ),
    ),
    FacetKey.BLIND: FacetDefinition(
        key=FacetKey.BLIND,
        question="Would you like an integrated blind?",
        options=(
            Option(BLIND_YES, "With blind", "options/blind-yes.webp"),
            Option(BLIND_NO, "No blind", "options/blind-no.webp"),
        ),
    ),
    FacetKey.BLIND_MOTORIZATION: FacetDefinition(
        key=FacetKey.BLIND_MOTORIZATION,
        question="Should the blind be motorized or manual?",
        options=(
            Option("motorized", "Motorized", "options/blind-motorized.webp"),
            Option("manual", "Manual", "options/blind-manual.webp"),
        ),
        applies=_blind_selected,
    ),
    FacetKey.MATERIAL: FacetDefinition(
        key=FacetKey.MATERIAL,
        question="Which panel material do you want?",
        options=(
            Option("glass", "Glass", "options/material-glass.webp"),
            Option("glass-louver", "Glass + Louver", "options/material-glass-louver.webp"),
            Option("solid", "Solid Panel", "options/material-solid.webp"),
            Option("louver", "Louver", "options/material-louver.webp"),
            Option("glass-solid", "Glass + Solid Panel", "options/material-glass-solid.webp"),
        ),
    ),
    FacetKey.PANEL_COUNT: FacetDefinition(
        key=FacetKey.PANEL_COUNT,
        question="How many panels?",
        options=(
            Option("1", "1 Panel", "options/panels-1.webp"),
            Option("2", "2 Panels", "options/panels-2.webp"),
            Option("3", "3 Panels", "options/panels-3.webp"),
            Option("4", "4 Panels", "options/panels-4.webp"),
            Option("6", "6 Panels", "options/panels-6.webp"),
        ),
    ),
}

# Composed-label overrides: an empty string contributes nothing.
LABEL_OVERRIDES: dict[tuple[FacetKey, str], str] = {
    (FacetKey.BLIND, BLIND_YES): "Blind",
    (FacetKey.BLIND, BLIND_NO): "",
}


def empty_assignment() -> Assignment:
    """Return an assignment with every facet unanswered."""
    return {facet: None for facet in FACET_ORDER}


def get_definition(facet: FacetKey) -> FacetDefinition:
    return FACET_DEFINITIONS[facet]


def parse_facet_key(name: str) -> Optional[FacetKey]:
    """Resolve a facet key from "panel_count", "PANEL_COUNT" or "panelCount"."""
    snake = re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower() if not name.isupper() else name.lower()
    try:
        return FacetKey(snake)
    except ValueError:
        return None


def is_valid_value(facet: FacetKey, value: str) -> bool:
    return value in FACET_DEFINITIONS[facet].values


def applicable_facets(assignment: Mapping[FacetKey, Optional[str]]) -> list[FacetKey]:
    """Facets whose applicability predicate holds under the assignment."""
    return [
        facet for facet in FACET_ORDER
        if FACET_DEFINITIONS[facet].is_applicable(assignment)
    ]


def effective_assignment(assignment: Mapping[FacetKey, Optional[str]]) -> Assignment:
    """Copy of the assignment with non-applicable facets blanked out."""
    applicable = set(applicable_facets(assignment))
    return {
        facet: (assignment.get(facet) if facet in applicable else None)
        for facet in FACET_ORDER
    }
