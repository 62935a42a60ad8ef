"""
PostgreSQL implementations of the offer query strategies.

Full-text relevance uses the trigger-maintained ``search_vector`` column
(title weight A, description B, tags D) with ``websearch_to_tsquery``.
Geospatial ordering uses the PostGIS ``geo_point`` geography column, which
is not mapped on the Offer model and is referenced here as raw SQL.
"""

import logging
from typing import Any, List, Optional, Sequence

from sqlalchemy import select, func, case, cast, extract, literal, literal_column, Float, REAL
from sqlalchemy.dialects.postgresql import ARRAY, REGCONFIG, array

from database.models import Offer, OfferStatus
from core.search.filters import FilterSet, SortMode
from core.search.pagination import PageRequest
from core.search.scoring import ScoringWeights, SECONDS_PER_DAY, MAX_RATING
from core.search.strategies import ExecutionState, OfferHit, QueryStrategy, StoreBackend

logger = logging.getLogger(__name__)

GEO_POINT = literal_column('offer.geo_point')

_FIELD_ORDERING = {
    SortMode.PRICE_ASC: [Offer.price.asc()],
    SortMode.PRICE_DESC: [Offer.price.desc()],
    SortMode.RATING: [Offer.provider_rating.desc()],
    SortMode.RECENT: [],
}

# Appended to every ordering so pages are stable across requests
TIE_BREAKERS = [Offer.created_at.desc(), Offer.id.desc()]


class PostgresQueryStrategy(QueryStrategy):
    """Shared predicate building for the PostgreSQL strategies."""

    def __init__(self, text_search_config: str = 'portuguese', weights: Optional[ScoringWeights] = None):
        self.text_search_config = text_search_config
        self.weights = weights or ScoringWeights()

    def tsquery(self, term: str):
        return func.websearch_to_tsquery(cast(literal(self.text_search_config), REGCONFIG), term)

    def text_match(self, term: str):
        return Offer.search_vector.op('@@')(self.tsquery(term))

    def base_conditions(self, filters: FilterSet, include_text: bool = True) -> List[Any]:
        conditions = [Offer.status != OfferStatus.INACTIVE.value]

        if filters.category:
            conditions.append(Offer.category == filters.category)
        if filters.subcategory:
            conditions.append(Offer.subcategory == filters.subcategory)
        if filters.person_type is not None:
            conditions.append(Offer.provider_person_type == filters.person_type.value)
        if filters.price_min is not None:
            conditions.append(Offer.price >= filters.price_min)
        if filters.price_max is not None:
            conditions.append(Offer.price <= filters.price_max)
        if filters.city:
            conditions.append(Offer.city == filters.city)
        if len(filters.states) == 1:
            conditions.append(Offer.state == filters.states[0])
        elif filters.states:
            conditions.append(Offer.state.in_(filters.states))
        if filters.with_media:
            conditions.append(
                (func.cardinality(Offer.images) > 0) | (func.cardinality(Offer.videos) > 0)
            )
        if include_text and filters.has_search_term:
            conditions.append(self.text_match(filters.search))

        return conditions

    def count(self, session, filters: FilterSet, candidates: Optional[Sequence[Any]] = None) -> int:
        stmt = select(func.count()).select_from(Offer).where(*self.base_conditions(filters))
        return int(session.execute(stmt).scalar_one())


class PostgresFieldSortStrategy(PostgresQueryStrategy):
    """Single-field ordering: price, provider rating or creation time."""

    state = ExecutionState.FIELD_SORT

    def fetch_page(self, session, filters: FilterSet, page: PageRequest, candidates=None) -> List[OfferHit]:
        ordering = _FIELD_ORDERING.get(filters.sort, []) + TIE_BREAKERS
        stmt = (
            select(Offer)
            .where(*self.base_conditions(filters))
            .order_by(*ordering)
            .offset(page.skip)
            .limit(page.limit)
        )
        return [OfferHit(offer=offer) for offer in session.execute(stmt).scalars().all()]


class PostgresRelevanceStrategy(PostgresQueryStrategy):
    """
    Composite score ordering, computed in SQL.

    Without a search term there is nothing to score and the neutral
    most-recent-first ordering is used instead.
    """

    state = ExecutionState.RELEVANCE_SORT

    def score_columns(self, term: str):
        rank_weights, scale = self.weights.text.rank_weights()
        weights_array = cast(array(rank_weights), ARRAY(REAL))

        text_score = cast(func.ts_rank(weights_array, Offer.search_vector, self.tsquery(term)), Float) * scale
        media = case((func.cardinality(Offer.images) > 0, 1.0), else_=0.0)
        rating = func.least(func.greatest(cast(Offer.provider_rating, Float), 0.0), MAX_RATING)
        days = cast(
            extract('epoch', func.now() - func.coalesce(Offer.updated_at, Offer.created_at)),
            Float,
        ) / SECONDS_PER_DAY
        recency = self.weights.recency_max / func.greatest(1.0, days)

        score = (
            text_score
            + media * self.weights.media_weight
            + rating * self.weights.rating_weight
            + recency
        )
        return (
            score.label('score'),
            text_score.label('text_score'),
            media.label('media_boost'),
            rating.label('rating_boost'),
            recency.label('recency_boost'),
        )

    def fetch_page(self, session, filters: FilterSet, page: PageRequest, candidates=None) -> List[OfferHit]:
        if not filters.has_search_term:
            stmt = (
                select(Offer)
                .where(*self.base_conditions(filters))
                .order_by(*TIE_BREAKERS)
                .offset(page.skip)
                .limit(page.limit)
            )
            return [OfferHit(offer=offer) for offer in session.execute(stmt).scalars().all()]

        score, text_score, media, rating, recency = self.score_columns(filters.search)
        stmt = (
            select(Offer, score, text_score, media, rating, recency)
            .where(*self.base_conditions(filters))
            .order_by(score.desc(), *TIE_BREAKERS)
            .offset(page.skip)
            .limit(page.limit)
        )

        hits = []
        for row in session.execute(stmt).all():
            components = {
                'text_score': float(row.text_score),
                'media_boost': float(row.media_boost),
                'rating_boost': float(row.rating_boost),
                'recency_boost': float(row.recency_boost),
                'score': float(row.score),
            }
            hits.append(OfferHit(offer=row[0], score=float(row.score), score_components=components))
        return hits


class PostgresDistanceStrategy(PostgresQueryStrategy):
    """
    Nearest-first ordering by geodesic distance from the reference point.

    With a search term the text predicate and the other filters are resolved
    first into a candidate ID set of located, non-inactive offers, and the
    proximity query is then restricted to those IDs. Offers without
    coordinates never appear in distance results.
    """

    state = ExecutionState.DISTANCE_SORT
    two_phase = True

    def reference_point(self, filters: FilterSet):
        return func.ST_GeogFromText(f"SRID=4326;POINT({filters.geo.lng:.8f} {filters.geo.lat:.8f})")

    def proximity_conditions(self, filters: FilterSet, candidates: Optional[Sequence[Any]]) -> List[Any]:
        conditions = self.base_conditions(filters, include_text=False)
        conditions.append(GEO_POINT.isnot(None))
        if candidates is not None:
            conditions.append(Offer.id.in_(list(candidates)))
        return conditions

    def resolve_candidates(self, session, filters: FilterSet) -> Optional[Sequence[Any]]:
        if not filters.has_search_term:
            return None
        stmt = select(Offer.id).where(*self.base_conditions(filters), GEO_POINT.isnot(None))
        candidates = session.execute(stmt).scalars().all()
        logger.debug(f"Text phase resolved {len(candidates)} candidate offers for distance sort")
        return candidates

    def fetch_page(self, session, filters: FilterSet, page: PageRequest, candidates=None) -> List[OfferHit]:
        if candidates is not None and len(candidates) == 0:
            return []

        reference = self.reference_point(filters)
        # <-> is the GiST-assisted nearest-neighbour operator; on geography it
        # measures on the sphere, so the projected distance uses the sphere too
        distance = func.ST_Distance(GEO_POINT, reference, False).label('distance_m')
        stmt = (
            select(Offer, distance)
            .where(*self.proximity_conditions(filters, candidates))
            .order_by(GEO_POINT.op('<->')(reference).asc(), Offer.id.asc())
            .offset(page.skip)
            .limit(page.limit)
        )
        return [
            OfferHit(offer=row[0], distance_m=float(row.distance_m))
            for row in session.execute(stmt).all()
        ]

    def count(self, session, filters, candidates=None) -> int:
        if candidates is not None and len(candidates) == 0:
            return 0
        stmt = select(func.count()).select_from(Offer).where(*self.proximity_conditions(filters, candidates))
        return int(session.execute(stmt).scalar_one())


class PostgresOfferStore(StoreBackend):
    """StoreBackend for PostgreSQL with PostGIS."""

    def __init__(self, text_search_config: str = 'portuguese', weights: Optional[ScoringWeights] = None):
        self._strategies = {
            ExecutionState.DISTANCE_SORT: PostgresDistanceStrategy(text_search_config, weights),
            ExecutionState.RELEVANCE_SORT: PostgresRelevanceStrategy(text_search_config, weights),
            ExecutionState.FIELD_SORT: PostgresFieldSortStrategy(text_search_config, weights),
        }

    def strategy_for(self, state: ExecutionState) -> QueryStrategy:
        return self._strategies[state]
