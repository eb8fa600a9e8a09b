"""Display-label formatting for a (partial) facet assignment."""

from typing import Mapping, Optional

from copilot.catalog.facets import (
    FACET_DEFINITIONS,
    FACET_ORDER,
    LABEL_OVERRIDES,
    FacetKey,
    effective_assignment,
)


def facet_label(facet: FacetKey, value: str) -> str:
    """Label a single answer contributes to the composed product name."""
    override = LABEL_OVERRIDES.get((facet, value))
    if override is not None:
        return override
    return FACET_DEFINITIONS[facet].label_for(value)


def filled_facet_labels(assignment: Mapping[FacetKey, Optional[str]]) -> list[str]:
    """Labels of every applicable, answered facet in facet order."""
    effective = effective_assignment(assignment)
    labels = []
    for facet in FACET_ORDER:
        value = effective[facet]
        if value is None:
            continue
        label = facet_label(facet, value)
        if label:
            labels.append(label)
    return labels


def compose_label(assignment: Mapping[FacetKey, Optional[str]]) -> str:
    """Human-readable product name, e.g. "Window Sliding Blind Motorized"."""
    return " ".join(filled_facet_labels(assignment))
