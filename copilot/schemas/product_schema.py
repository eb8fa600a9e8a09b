"""Product catalog data models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from copilot.catalog.facets import FacetKey


class Product(BaseModel):
    """Immutable catalog record tagged with a value per facet."""

    model_config = ConfigDict(frozen=True)

    sku: str
    slug: str
    image: Optional[str] = None
    facets: dict[FacetKey, str] = Field(default_factory=dict)

    def value_for(self, facet: FacetKey) -> Optional[str]:
        return self.facets.get(facet)
