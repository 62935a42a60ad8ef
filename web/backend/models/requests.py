#!/usr/bin/env python3
"""
Request models for API endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional


class OfferSearchQuery(BaseModel):
    """
    Type-validated search parameters.

    Field aliases are the public query parameter names. Cross-field rules
    (price range, coordinates required for distance sort, page size bounds)
    are checked by the filter compiler.
    """
    model_config = ConfigDict(populate_by_name=True)

    category: Optional[str] = Field(None, alias="categoria", max_length=100)
    subcategory: Optional[str] = Field(None, alias="subcategoria", max_length=100)
    person_type: Optional[str] = Field(None, alias="tipoPessoa", description="PF or PJ")
    price_min: Optional[float] = Field(None, alias="precoMin")
    price_max: Optional[float] = Field(None, alias="precoMax")
    city: Optional[str] = Field(None, alias="cidade", max_length=100)
    state: List[str] = Field(default_factory=list, alias="estado", description="2-letter state codes")
    search: Optional[str] = Field(None, alias="busca", max_length=200)
    with_media: bool = Field(False, alias="comMidia")
    lat: Optional[float] = None
    lng: Optional[float] = None
    sort: Optional[str] = Field(None, description="relevancia, preco_menor, preco_maior, avaliacao, recente, distancia")
    page: int = 1
    limit: Optional[int] = None

    @field_validator("state", mode="before")
    @classmethod
    def split_states(cls, value):
        """Accept repeated params and comma-separated lists."""
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        states = []
        for item in value:
            states.extend(part.strip() for part in str(item).split(",") if part.strip())
        return states
