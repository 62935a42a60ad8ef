#!/usr/bin/env python3
"""
Result Assembler - shapes matched offers for callers.

Two separately named read paths keep the consistency contract visible:

1. snapshot_result(): reads the provider snapshot embedded in the offer row.
   Rating and person type always come from here, because they are the filter
   and sort keys the query just used.
2. enrich_provider_display(): live lookup against the authoritative provider
   record, refreshing only name and avatar so stale snapshots never reach the
   UI for those two fields.

Credentials and email are never part of an assembled result.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from core.search.strategies import OfferHit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderDisplay:
    name: Optional[str]
    avatar: Optional[str]


class ProviderDirectory(ABC):
    """Live provider lookup used for display enrichment."""

    @abstractmethod
    def fetch_display_profiles(self, provider_ids: Iterable[Any]) -> Dict[Any, ProviderDisplay]:
        """Return current display attributes keyed by provider id."""


@dataclass(frozen=True)
class ProviderInfo:
    id: str
    name: str
    avatar: Optional[str]
    rating: float
    person_type: str


@dataclass(frozen=True)
class LocationInfo:
    city: str
    state: str
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


@dataclass(frozen=True)
class OfferResult:
    id: str
    title: str
    description: str
    price: float
    price_unit: str
    category: str
    subcategory: Optional[str]
    provider: ProviderInfo
    location: LocationInfo
    status: str
    images: List[str] = field(default_factory=list)
    videos: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    availability: Dict[str, Any] = field(default_factory=dict)
    view_count: int = 0
    favorite_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    score: Optional[float] = None
    score_components: Dict[str, Any] = field(default_factory=dict)
    distance_m: Optional[float] = None


@dataclass(frozen=True)
class SearchPage:
    items: List[OfferResult]
    total: int
    page: int
    total_pages: int


def _as_float(value: Any, default: float = 0.0) -> float:
    return float(value) if value is not None else default


def snapshot_result(hit: OfferHit) -> OfferResult:
    """Copy an offer row (and the strategy's extras) into a detached result.

    Must run while the row's session is still open.
    """
    offer = hit.offer
    coordinates_present = offer.latitude is not None and offer.longitude is not None

    return OfferResult(
        id=str(offer.id),
        title=offer.title,
        description=offer.description,
        price=_as_float(offer.price),
        price_unit=offer.price_unit,
        category=offer.category,
        subcategory=offer.subcategory,
        provider=ProviderInfo(
            id=str(offer.provider_id),
            name=offer.provider_name,
            avatar=offer.provider_avatar,
            rating=_as_float(offer.provider_rating),
            person_type=offer.provider_person_type,
        ),
        location=LocationInfo(
            city=offer.city,
            state=offer.state,
            address=offer.address,
            lat=offer.latitude if coordinates_present else None,
            lng=offer.longitude if coordinates_present else None,
        ),
        status=offer.status,
        images=list(offer.images or []),
        videos=list(offer.videos or []),
        tags=list(offer.tags or []),
        availability=dict(offer.availability or {}),
        view_count=offer.view_count or 0,
        favorite_count=offer.favorite_count or 0,
        created_at=offer.created_at,
        updated_at=offer.updated_at,
        score=hit.score,
        score_components=dict(hit.score_components),
        distance_m=hit.distance_m,
    )


def enrich_provider_display(results: List[OfferResult], directory: ProviderDirectory) -> List[OfferResult]:
    """Refresh provider name and avatar from the live provider record.

    Providers missing from the directory keep their snapshot values.
    """
    if not results:
        return results

    profiles = directory.fetch_display_profiles({r.provider.id for r in results})
    profiles = {str(k): v for k, v in profiles.items()}

    missing = {r.provider.id for r in results} - set(profiles)
    if missing:
        logger.debug(f"No live provider record for {len(missing)} provider(s); keeping snapshot display fields")

    enriched = []
    for result in results:
        profile = profiles.get(result.provider.id)
        if profile is None:
            enriched.append(result)
            continue
        provider = replace(
            result.provider,
            name=profile.name or result.provider.name,
            avatar=profile.avatar,
        )
        enriched.append(replace(result, provider=provider))
    return enriched
