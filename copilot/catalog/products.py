"""
Product catalog index with facet filtering.

Every product is tagged with a value for each facet that applies to it
(blind motorization only exists on products with a blind). Filtering
ignores facets whose applicability predicate is false.
"""

import logging
from typing import Mapping, Optional, Sequence

from copilot.catalog.facets import (
    FACET_DEFINITIONS,
    FacetKey,
    Option,
    effective_assignment,
)
from copilot.config import settings
from copilot.schemas.product_schema import Product

logger = logging.getLogger(__name__)


def _product(
    sku: str,
    category: str,
    system: str,
    blind: str,
    material: str,
    panels: str,
    motorization: Optional[str] = None,
) -> Product:
    facets = {
        FacetKey.CATEGORY: category,
        FacetKey.SYSTEM: system,
        FacetKey.BLIND: blind,
        FacetKey.MATERIAL: material,
        FacetKey.PANEL_COUNT: panels,
    }
    if motorization is not None:
        facets[FacetKey.BLIND_MOTORIZATION] = motorization
    slug = "-".join(facets[key] for key in facets)
    return Product(sku=sku, slug=slug, image=f"products/{slug}.webp", facets=facets)


PRODUCT_CATALOG: tuple[Product, ...] = (
    # --- Sliding windows ---
    _product("WSL-G2", "window", "sliding", "no", "glass", "2"),
    _product("WSL-G4", "window", "sliding", "no", "glass", "4"),
    _product("WSL-GL3", "window", "sliding", "no", "glass-louver", "3"),
    _product("WSL-GL6", "window", "sliding", "no", "glass-louver", "6"),
    _product("WSL-GL3-BM", "window", "sliding", "yes", "glass-louver", "3", "motorized"),
    _product("WSL-GL3-BH", "window", "sliding", "yes", "glass-louver", "3", "manual"),
    _product("WSL-G2-BM", "window", "sliding", "yes", "glass", "2", "motorized"),
    _product("WSL-G4-BM", "window", "sliding", "yes", "glass", "4", "motorized"),
    _product("WSL-G2-BH", "window", "sliding", "yes", "glass", "2", "manual"),
    # --- Awning windows ---
    _product("WAW-G1", "window", "awning", "no", "glass", "1"),
    _product("WAW-G2", "window", "awning", "no", "glass", "2"),
    # --- Hinged windows ---
    _product("WHG-G1", "window", "hinged", "no", "glass", "1"),
    _product("WHG-G2", "window", "hinged", "no", "glass", "2"),
    _product("WHG-L2", "window", "hinged", "no", "louver", "2"),
    # --- Sliding doors ---
    _product("DSL-G2", "door", "sliding", "no", "glass", "2"),
    _product("DSL-G3", "door", "sliding", "no", "glass", "3"),
    _product("DSL-G4", "door", "sliding", "no", "glass", "4"),
    _product("DSL-GS2", "door", "sliding", "no", "glass-solid", "2"),
    # --- Hinged doors ---
    _product("DHG-S1", "door", "hinged", "no", "solid", "1"),
    _product("DHG-S2", "door", "hinged", "no", "solid", "2"),
    _product("DHG-GS1", "door", "hinged", "no", "glass-solid", "1"),
    _product("DHG-L1", "door", "hinged", "no", "louver", "1"),
    _product("DHG-G2", "door", "hinged", "no", "glass", "2"),
)


def match_products(
    assignment: Mapping[FacetKey, Optional[str]],
    catalog: Sequence[Product] = PRODUCT_CATALOG,
) -> list[Product]:
    """Return every product agreeing with all applicable, answered facets.

    Results keep catalog order; callers that need a single product take
    the first entry.
    """
    constraints = {
        facet: value
        for facet, value in effective_assignment(assignment).items()
        if value is not None
    }
    return [
        product
        for product in catalog
        if all(product.value_for(facet) == value for facet, value in constraints.items())
    ]


def options_for(
    facet: FacetKey,
    assignment: Mapping[FacetKey, Optional[str]],
    catalog: Sequence[Product] = PRODUCT_CATALOG,
) -> list[Option]:
    """Options of a facet that still lead to at least one product.

    An option is dropped when no catalog product matches the current
    assignment with that option added.
    """
    reachable = []
    for option in FACET_DEFINITIONS[facet].options:
        trial = dict(assignment)
        trial[facet] = option.value
        if match_products(trial, catalog):
            reachable.append(option)
    return reachable


def product_url(product: Product, base_url: Optional[str] = None) -> str:
    """Build the external product page link from the product slug."""
    base = settings.business.base_product_url if base_url is None else base_url
    return f"{base}{product.slug}"
