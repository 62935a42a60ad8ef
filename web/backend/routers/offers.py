#!/usr/bin/env python3
"""
Offer endpoints - search, lookup and provider listings.
"""

import asyncio
import logging
import threading
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from core.search.engine import OfferSearchEngine
from ..config import get_config
from ..dependencies import get_search_engine
from ..services.offer_service import OfferService
from ..models.requests import OfferSearchQuery
from ..models.responses import (
    OfferDetailResponse,
    OfferSearchResponse,
    ProviderOffersResponse,
)
from ..utils import etag_matches, weak_etag

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/api/offers", tags=["offers"])

DISCONNECT_POLL_SECONDS = 0.25


def add_rate_limit_handlers(app):
    """Add rate limit exception handlers to the FastAPI app."""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


async def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": f"Rate limit exceeded: {exc.detail}",
            "type": "RateLimitExceeded"
        }
    )


def _search_rate_limit() -> str:
    return get_config().search.rate_limit


def _cache_control() -> str:
    max_age = get_config().search.cache_max_age_seconds
    return f"private, max-age={max_age}, stale-while-revalidate={max_age}"


async def _run_cancellable(request: Request, fn, *args):
    """
    Run a blocking search call in the threadpool, setting its cancel event
    if the client disconnects before it finishes.
    """
    cancel_event = threading.Event()
    task = asyncio.ensure_future(run_in_threadpool(fn, *args, cancel_event=cancel_event))
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if not cancel_event.is_set() and await request.is_disconnected():
                logger.info(f"Client disconnected from {request.url.path}; cancelling search")
                cancel_event.set()
    except asyncio.CancelledError:
        cancel_event.set()
        raise


def _cached_json(request: Request, body: str) -> Response:
    """JSON response carrying a weak ETag; 304 when the client copy is current."""
    etag = weak_etag(request.url.query, body)
    headers = {"ETag": etag, "Cache-Control": _cache_control()}
    if etag_matches(request.headers.get("if-none-match"), etag):
        return Response(status_code=304, headers=headers)
    return Response(content=body, media_type="application/json", headers=headers)


@router.get("", response_model=OfferSearchResponse)
@limiter.limit(_search_rate_limit)
async def search_offers(
    request: Request,
    category: Optional[str] = Query(default=None, alias="categoria", description="Category (accents and case are normalized)"),
    subcategory: Optional[str] = Query(default=None, alias="subcategoria", description="Subcategory"),
    person_type: Optional[str] = Query(default=None, alias="tipoPessoa", description="Provider person type: PF or PJ"),
    price_min: Optional[float] = Query(default=None, alias="precoMin", description="Minimum price (inclusive)"),
    price_max: Optional[float] = Query(default=None, alias="precoMax", description="Maximum price (inclusive)"),
    city: Optional[str] = Query(default=None, alias="cidade", description="City (exact match)"),
    state: Optional[List[str]] = Query(default=None, alias="estado", description="State code(s); repeat or comma-separate"),
    search: Optional[str] = Query(default=None, alias="busca", description="Free-text search term"),
    with_media: bool = Query(default=False, alias="comMidia", description="Only offers with images or videos"),
    lat: Optional[float] = Query(default=None, description="Reference latitude"),
    lng: Optional[float] = Query(default=None, description="Reference longitude"),
    sort: Optional[str] = Query(default=None, description="relevancia, preco_menor, preco_maior, avaliacao, recente, distancia"),
    page: int = Query(default=1, description="Page number (1-based)"),
    limit: Optional[int] = Query(default=None, description="Page size"),
    engine: OfferSearchEngine = Depends(get_search_engine)
):
    """
    Search active and paused offers.

    Results are ordered by the requested sort mode; relevance ordering uses
    the composite score (text match, media, provider rating and recency)
    when a search term is given and most-recent-first otherwise.
    """
    query = OfferSearchQuery(
        category=category,
        subcategory=subcategory,
        person_type=person_type,
        price_min=price_min,
        price_max=price_max,
        city=city,
        state=state,
        search=search,
        with_media=with_media,
        lat=lat,
        lng=lng,
        sort=sort,
        page=page,
        limit=limit,
    )
    service = OfferService(engine)
    result = await _run_cancellable(request, service.search, query)
    return _cached_json(request, result.model_dump_json())


@router.get("/provider/{provider_id}", response_model=ProviderOffersResponse)
def get_provider_offers(
    provider_id: str,
    engine: OfferSearchEngine = Depends(get_search_engine)
):
    """
    List a provider's offers, newest first. Inactive offers are not listed.
    """
    service = OfferService(engine)
    offers = service.list_provider_offers(provider_id)

    return ProviderOffersResponse(
        success=True,
        provider_id=provider_id,
        count=len(offers),
        offers=offers
    )


@router.get("/{offer_id}", response_model=OfferDetailResponse)
def get_offer(
    offer_id: str,
    request: Request,
    engine: OfferSearchEngine = Depends(get_search_engine)
):
    """
    Get one offer by id, whatever its status.
    """
    service = OfferService(engine)
    offer = service.get_offer(offer_id)
    body = OfferDetailResponse(success=True, offer=offer).model_dump_json()
    return _cached_json(request, body)
