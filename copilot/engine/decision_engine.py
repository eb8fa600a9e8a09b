"""
Decision engine: partial facet assignment -> next question or final products.

Pure and deterministic. The same assignment always yields an equal
NextState; no state is kept between calls.

Usage:
    state = compute_next_state(empty_assignment())
    assert state.status == EngineStatus.QUESTION
    assert state.question.facet == FacetKey.CATEGORY
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Sequence

from copilot.catalog.facets import (
    FACET_DEFINITIONS,
    FACET_ORDER,
    FacetKey,
    Option,
    effective_assignment,
)
from copilot.catalog.products import PRODUCT_CATALOG, match_products, options_for
from copilot.schemas.product_schema import Product

logger = logging.getLogger(__name__)


class EngineStatus(str, Enum):
    """Outcome of a decision-engine evaluation."""

    QUESTION = "question"
    COMPLETE = "complete"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class QuestionState:
    """The next facet to ask about, with only reachable options."""

    facet: FacetKey
    question: str
    options: tuple[Option, ...]


@dataclass(frozen=True)
class NextState:
    """Result of compute_next_state.

    Exactly one of ``question`` / ``final_products`` is set unless the
    status is NO_MATCH, which flags an assignment no product satisfies.
    """

    status: EngineStatus
    question: Optional[QuestionState] = None
    final_products: Optional[tuple[Product, ...]] = None
    blocked_facet: Optional[FacetKey] = None

    @property
    def is_complete(self) -> bool:
        return self.status == EngineStatus.COMPLETE


def compute_next_state(
    assignment: Mapping[FacetKey, Optional[str]],
    catalog: Sequence[Product] = PRODUCT_CATALOG,
) -> NextState:
    """Walk the facets in order and decide what happens next.

    Non-applicable facets are skipped. The first applicable facet without
    a value becomes the question, with options pruned to those that still
    match a product. When every applicable facet is answered, the matching
    products (in catalog order) are the final result.
    """
    effective = effective_assignment(assignment)

    for facet in FACET_ORDER:
        definition = FACET_DEFINITIONS[facet]
        if not definition.is_applicable(effective):
            continue
        if effective[facet] is not None:
            continue

        options = options_for(facet, effective, catalog)
        if not options:
            logger.warning(
                "No reachable option for facet '%s' under %s",
                facet.value, _describe(effective),
            )
            return NextState(status=EngineStatus.NO_MATCH, blocked_facet=facet)
        return NextState(
            status=EngineStatus.QUESTION,
            question=QuestionState(
                facet=facet,
                question=definition.question,
                options=tuple(options),
            ),
        )

    products = match_products(effective, catalog)
    if not products:
        logger.warning("Complete assignment matches no product: %s", _describe(effective))
        return NextState(status=EngineStatus.NO_MATCH)

    if len(products) > 1:
        logger.debug("%d products match; first entry is displayed", len(products))
    return NextState(status=EngineStatus.COMPLETE, final_products=tuple(products))


def _describe(assignment: Mapping[FacetKey, Optional[str]]) -> str:
    return ", ".join(
        f"{facet.value}={value}" for facet, value in assignment.items() if value is not None
    ) or "<empty>"
