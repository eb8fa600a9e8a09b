"""
Configuration state container: owns the canonical facet assignment.

Two mutation paths feed the same recompute-and-publish step:
- set_facet: a manual click; clears every facet ordered after it.
- apply_extracted: a batch of facts from one chat utterance; overwrites
  only the facets it mentions and leaves the rest alone.

Usage:
    config = ConfigurationState()
    config.subscribe(lambda snapshot: print(snapshot.composed_label))
    config.set_facet(FacetKey.CATEGORY, "window")
    config.apply_extracted({"panelCount": "2", "blind": "null"})
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from copilot.catalog.facets import (
    FACET_ORDER,
    Assignment,
    FacetKey,
    empty_assignment,
    is_valid_value,
    parse_facet_key,
)
from copilot.catalog.labels import compose_label
from copilot.catalog.products import PRODUCT_CATALOG, product_url
from copilot.engine.decision_engine import (
    EngineStatus,
    NextState,
    QuestionState,
    compute_next_state,
)
from copilot.schemas.extraction_schema import ExtractedFacets
from copilot.schemas.product_schema import Product
from copilot.utils import clean_optional_text

logger = logging.getLogger(__name__)


class InvalidSelectionError(ValueError):
    """Raised when a manual selection names an unknown facet or value."""


@dataclass(frozen=True)
class ConfigurationSnapshot:
    """Everything published after a mutation."""

    assignment: Mapping[FacetKey, Optional[str]]
    next_state: NextState
    composed_label: str

    @property
    def status(self) -> EngineStatus:
        return self.next_state.status

    @property
    def current_question(self) -> Optional[QuestionState]:
        return self.next_state.question

    @property
    def final_products(self) -> Optional[tuple[Product, ...]]:
        return self.next_state.final_products

    @property
    def product_link(self) -> Optional[str]:
        if not self.final_products:
            return None
        return product_url(self.final_products[0])


Listener = Callable[[ConfigurationSnapshot], None]


class ConfigurationState:
    """
    Holds the facet assignment and republishes the engine's output.

    Recomputation happens before the assignment is swapped in, so a
    failing computation leaves the previous state untouched.
    """

    def __init__(self, catalog: Sequence[Product] = PRODUCT_CATALOG) -> None:
        self._catalog = catalog
        self._assignment: Assignment = empty_assignment()
        self._listeners: list[Listener] = []
        self._snapshot = self._build_snapshot(self._assignment)

    @property
    def assignment(self) -> Assignment:
        return dict(self._assignment)

    @property
    def snapshot(self) -> ConfigurationSnapshot:
        return self._snapshot

    @property
    def current_question(self) -> Optional[QuestionState]:
        return self._snapshot.current_question

    @property
    def final_products(self) -> Optional[tuple[Product, ...]]:
        return self._snapshot.final_products

    @property
    def composed_label(self) -> str:
        return self._snapshot.composed_label

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after every mutation. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_facet(self, facet: Union[FacetKey, str], value: str) -> ConfigurationSnapshot:
        """
        Record a manual selection and clear every later facet.

        Raises:
            InvalidSelectionError: If the facet or value is not part of the schema.
        """
        key = facet if isinstance(facet, FacetKey) else parse_facet_key(str(facet))
        if key is None:
            raise InvalidSelectionError(f"Unknown facet: {facet!r}")
        if not isinstance(value, str) or not is_valid_value(key, value):
            raise InvalidSelectionError(f"Invalid value {value!r} for facet '{key.value}'")

        updated = dict(self._assignment)
        updated[key] = value
        position = FACET_ORDER.index(key)
        for later in FACET_ORDER[position + 1:]:
            updated[later] = None

        logger.debug("Facet '%s' set to '%s'", key.value, value)
        return self._commit(updated)

    def apply_extracted(
        self, partial: Union[ExtractedFacets, Mapping[Any, Any]]
    ) -> list[FacetKey]:
        """
        Overwrite facets named in an extraction result.

        Unknown keys, null or "null" values, and values outside a facet's
        option set are ignored. Facets the result does not mention keep
        their current values.

        Returns:
            The facets that were written, in facet order.
        """
        items = partial.facet_values() if isinstance(partial, ExtractedFacets) else partial

        updated = dict(self._assignment)
        applied: list[FacetKey] = []
        for raw_key, raw_value in items.items():
            key = raw_key if isinstance(raw_key, FacetKey) else parse_facet_key(str(raw_key))
            if key is None:
                continue
            value = clean_optional_text(raw_value)
            if value is None:
                continue
            if not is_valid_value(key, value):
                logger.debug("Ignoring unrecognized value %r for facet '%s'", value, key.value)
                continue
            updated[key] = value
            applied.append(key)

        applied.sort(key=FACET_ORDER.index)
        if applied:
            logger.info("Applied extracted facets: %s", [key.value for key in applied])
        self._commit(updated)
        return applied

    def reset(self) -> ConfigurationSnapshot:
        """Clear the whole assignment and republish the first question."""
        logger.info("Configuration reset")
        return self._commit(empty_assignment())

    def _build_snapshot(self, assignment: Assignment) -> ConfigurationSnapshot:
        return ConfigurationSnapshot(
            assignment=dict(assignment),
            next_state=compute_next_state(assignment, self._catalog),
            composed_label=compose_label(assignment),
        )

    def _commit(self, assignment: Assignment) -> ConfigurationSnapshot:
        snapshot = self._build_snapshot(assignment)
        self._assignment = assignment
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot
