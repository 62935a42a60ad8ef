#!/usr/bin/env python3
"""
Response models for API endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any


class ProviderSummary(BaseModel):
    """Public provider fields shown with an offer."""
    id: str
    name: str
    avatar: Optional[str] = None
    rating: float = Field(ge=0, le=5)
    person_type: str


class LocationSummary(BaseModel):
    city: str
    state: str
    address: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)


class OfferSummary(BaseModel):
    """An offer as returned by search and lookup endpoints."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "title": "Aulas de violão",
                "description": "Aulas para iniciantes e intermediários",
                "price": 80.0,
                "price_unit": "aula",
                "category": "Educação",
                "subcategory": "Música",
                "provider": {
                    "id": "6ba7b810-9dad-11d1-80b4-00c04fd430c8",
                    "name": "Maria Souza",
                    "avatar": None,
                    "rating": 4.8,
                    "person_type": "PF"
                },
                "location": {"city": "Campinas", "state": "SP", "lat": -22.9, "lng": -47.06},
                "status": "ativo",
                "images": ["https://cdn.example.com/violao.jpg"],
                "tags": ["violao", "musica"],
                "score": 12.43,
                "created_at": "2026-10-01T12:00:00+00:00"
            }
        }
    )

    id: str
    title: str
    description: str
    price: float = Field(ge=0)
    price_unit: str
    category: str
    subcategory: Optional[str] = None
    provider: ProviderSummary
    location: LocationSummary
    status: str
    images: List[str] = Field(default_factory=list)
    videos: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    availability: Dict[str, Any] = Field(default_factory=dict)
    view_count: int = 0
    favorite_count: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    # Present only on the strategy that computed them
    score: Optional[float] = None
    score_components: Optional[Dict[str, Any]] = None
    distance_m: Optional[float] = None


class OfferSearchResponse(BaseModel):
    """Response for offer search."""
    success: bool
    items: List[OfferSummary]
    total: int = Field(ge=0)
    page: int = Field(ge=1)
    total_pages: int = Field(ge=0)


class OfferDetailResponse(BaseModel):
    """Response for a single offer."""
    success: bool
    offer: OfferSummary


class ProviderOffersResponse(BaseModel):
    """Response for a provider's offer listing."""
    success: bool
    provider_id: str
    count: int
    offers: List[OfferSummary]


class HealthResponse(BaseModel):
    status: str
    service: str
