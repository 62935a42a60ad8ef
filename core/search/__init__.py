"""
Offer search: filter compilation, strategy selection, scoring and result assembly.

The orchestrating OfferSearchEngine lives in core.search.engine and is wired
to the PostgreSQL store in web.backend.dependencies.
"""

from core.search.errors import (
    SearchError,
    FilterValidationError,
    StoreError,
    SearchTimeoutError,
    SearchCancelledError,
)
from core.search.filters import FilterSet, GeoPoint, SortMode, compile_filters, normalize_category
from core.search.pagination import PageRequest, total_pages
from core.search.scoring import ScoringWeights, TextWeights, composite_score
from core.search.strategies import ExecutionState, OfferHit, QueryStrategy, StoreBackend, select_execution_state
from core.search.assembler import (
    OfferResult,
    ProviderDirectory,
    ProviderDisplay,
    SearchPage,
    enrich_provider_display,
    snapshot_result,
)

__all__ = [
    'SearchError',
    'FilterValidationError',
    'StoreError',
    'SearchTimeoutError',
    'SearchCancelledError',
    'FilterSet',
    'GeoPoint',
    'SortMode',
    'compile_filters',
    'normalize_category',
    'PageRequest',
    'total_pages',
    'ScoringWeights',
    'TextWeights',
    'composite_score',
    'ExecutionState',
    'OfferHit',
    'QueryStrategy',
    'StoreBackend',
    'select_execution_state',
    'OfferResult',
    'ProviderDirectory',
    'ProviderDisplay',
    'SearchPage',
    'enrich_provider_display',
    'snapshot_result',
]
