#!/usr/bin/env python3
"""
Query Strategy Selector - picks one execution state per request.

| State          | Entry condition                          | Ordering                         |
|----------------|------------------------------------------|----------------------------------|
| DISTANCE_SORT  | sort=distancia and coordinates present   | nearest first                    |
| RELEVANCE_SORT | sort=relevancia (default)                | composite score, or most recent  |
| FIELD_SORT     | preco_menor/preco_maior/avaliacao/recente| single field                     |

Store-specific operators (text relevance, geospatial proximity, push-down
scoring) live behind the QueryStrategy interface; each storage backend
provides its own implementations through a StoreBackend.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from core.search.filters import FilterSet, SortMode
from core.search.pagination import PageRequest

logger = logging.getLogger(__name__)


class ExecutionState(str, Enum):
    DISTANCE_SORT = "distance_sort"
    RELEVANCE_SORT = "relevance_sort"
    FIELD_SORT = "field_sort"


FIELD_SORT_MODES = frozenset({
    SortMode.PRICE_ASC,
    SortMode.PRICE_DESC,
    SortMode.RATING,
    SortMode.RECENT,
})


def select_execution_state(filters: FilterSet) -> ExecutionState:
    """Choose the execution state for a compiled FilterSet.

    The compiler guarantees that DISTANCE always carries coordinates; the geo
    check is repeated so a hand-built FilterSet cannot reach the proximity
    query without a reference point.
    """
    if filters.sort == SortMode.DISTANCE and filters.geo is not None:
        return ExecutionState.DISTANCE_SORT
    if filters.sort in FIELD_SORT_MODES:
        return ExecutionState.FIELD_SORT
    return ExecutionState.RELEVANCE_SORT


@dataclass
class OfferHit:
    """One matched offer plus whatever the strategy computed for it."""
    offer: Any
    score: Optional[float] = None
    score_components: Dict[str, Any] = field(default_factory=dict)
    distance_m: Optional[float] = None


class QueryStrategy(ABC):
    """One way of executing a search against a store."""

    state: ExecutionState
    # When True, resolve_candidates runs before count and fetch_page
    two_phase: bool = False

    def resolve_candidates(self, session, filters: FilterSet) -> Optional[Sequence[Any]]:
        """
        Optional first phase. Returns the IDs later phases are restricted to,
        or None when the strategy runs in a single phase.
        """
        return None

    @abstractmethod
    def fetch_page(
        self,
        session,
        filters: FilterSet,
        page: PageRequest,
        candidates: Optional[Sequence[Any]] = None,
    ) -> List[OfferHit]:
        """Return one ordered page of hits."""

    @abstractmethod
    def count(self, session, filters: FilterSet, candidates: Optional[Sequence[Any]] = None) -> int:
        """Count every offer matching the same predicate as fetch_page."""


class StoreBackend(ABC):
    """Maps execution states to a backend's strategy implementations."""

    @abstractmethod
    def strategy_for(self, state: ExecutionState) -> QueryStrategy:
        """Return the strategy implementing the given state."""

    def select(self, filters: FilterSet) -> QueryStrategy:
        state = select_execution_state(filters)
        strategy = self.strategy_for(state)
        logger.debug(f"Selected {state.value} strategy ({type(strategy).__name__}) for sort={filters.sort.value}")
        return strategy
