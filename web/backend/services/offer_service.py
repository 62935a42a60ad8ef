#!/usr/bin/env python3
"""
Offer service - maps search engine results to API response models.
"""

import logging
import threading
from typing import List, Optional

from core.search.assembler import OfferResult
from core.search.engine import OfferSearchEngine
from ..models.requests import OfferSearchQuery
from ..models.responses import (
    LocationSummary,
    OfferSearchResponse,
    OfferSummary,
    ProviderSummary,
)
from ..utils import safe_float, safe_datetime_iso
from ..exceptions import OfferNotFoundException

logger = logging.getLogger(__name__)


def to_offer_summary(result: OfferResult) -> OfferSummary:
    """Convert an assembled search result to its API representation."""
    return OfferSummary(
        id=result.id,
        title=result.title,
        description=result.description,
        price=safe_float(result.price),
        price_unit=result.price_unit,
        category=result.category,
        subcategory=result.subcategory,
        provider=ProviderSummary(
            id=result.provider.id,
            name=result.provider.name,
            avatar=result.provider.avatar,
            rating=safe_float(result.provider.rating),
            person_type=result.provider.person_type,
        ),
        location=LocationSummary(
            city=result.location.city,
            state=result.location.state,
            address=result.location.address,
            lat=result.location.lat,
            lng=result.location.lng,
        ),
        status=result.status,
        images=result.images,
        videos=result.videos,
        tags=result.tags,
        availability=result.availability,
        view_count=result.view_count,
        favorite_count=result.favorite_count,
        created_at=safe_datetime_iso(result.created_at),
        updated_at=safe_datetime_iso(result.updated_at),
        score=round(result.score, 6) if result.score is not None else None,
        score_components=result.score_components or None,
        distance_m=round(result.distance_m, 2) if result.distance_m is not None else None,
    )


class OfferService:
    """Service for offer search and lookup."""

    def __init__(self, engine: OfferSearchEngine):
        self.engine = engine

    def search(
        self,
        query: OfferSearchQuery,
        cancel_event: Optional[threading.Event] = None
    ) -> OfferSearchResponse:
        """
        Search offers.

        Args:
            query: Type-validated query parameters.
            cancel_event: Set when the client goes away.

        Returns:
            One page of offers with pagination metadata.
        """
        page = self.engine.search(query, cancel_event=cancel_event)
        return OfferSearchResponse(
            success=True,
            items=[to_offer_summary(item) for item in page.items],
            total=page.total,
            page=page.page,
            total_pages=page.total_pages,
        )

    def get_offer(self, offer_id: str) -> OfferSummary:
        result = self.engine.get_by_id(offer_id)
        if result is None:
            raise OfferNotFoundException(f"Offer {offer_id} not found")
        return to_offer_summary(result)

    def list_provider_offers(self, provider_id: str) -> List[OfferSummary]:
        return [to_offer_summary(r) for r in self.engine.list_by_provider(provider_id)]
