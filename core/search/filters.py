#!/usr/bin/env python3
"""
Filter Compiler - normalizes raw search parameters into a canonical FilterSet.

Input is assumed to be type-validated already (see the HTTP request model);
this module only normalizes values and performs cross-field semantic checks:

- price_min > price_max is rejected
- sort=distancia requires both coordinates, and coordinates must be in range
- unknown sort values fall back to relevance with a warning
- an empty state list means "no state filter"

Both English parameter names and the public wire names (categoria, precoMin,
busca, ...) are accepted.
"""

import logging
import unicodedata
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from database.models import CATEGORIES, PersonType
from core.search.errors import FilterValidationError

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 50


class SortMode(str, Enum):
    RELEVANCE = "relevancia"
    PRICE_ASC = "preco_menor"
    PRICE_DESC = "preco_maior"
    RATING = "avaliacao"
    RECENT = "recente"
    DISTANCE = "distancia"


_SORT_ALIASES = {
    "relevance": SortMode.RELEVANCE,
    "price_asc": SortMode.PRICE_ASC,
    "price_desc": SortMode.PRICE_DESC,
    "rating": SortMode.RATING,
    "recent": SortMode.RECENT,
    "distance": SortMode.DISTANCE,
}

_PERSON_TYPE_ALIASES = {
    "pf": PersonType.INDIVIDUAL,
    "individual": PersonType.INDIVIDUAL,
    "pj": PersonType.ORGANIZATION,
    "organization": PersonType.ORGANIZATION,
}

# Public wire names -> canonical parameter names
_PARAM_ALIASES = {
    "categoria": "category",
    "subcategoria": "subcategory",
    "tipoPessoa": "person_type",
    "precoMin": "price_min",
    "precoMax": "price_max",
    "cidade": "city",
    "estado": "state",
    "states": "state",
    "busca": "search",
    "comMidia": "with_media",
    "latitude": "lat",
    "longitude": "lng",
}


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float


@dataclass(frozen=True)
class FilterSet:
    """Canonical, validated representation of one search request."""
    category: Optional[str] = None
    subcategory: Optional[str] = None
    person_type: Optional[PersonType] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    city: Optional[str] = None
    states: Tuple[str, ...] = ()
    search: Optional[str] = None
    with_media: bool = False
    geo: Optional[GeoPoint] = None
    sort: SortMode = SortMode.RELEVANCE
    page: int = 1
    limit: int = DEFAULT_LIMIT

    @property
    def has_search_term(self) -> bool:
        return bool(self.search)

    def log_context(self) -> Dict[str, Any]:
        """Filter summary safe for logs: coordinates are coarsened to ~1km."""
        context = asdict(self)
        context['sort'] = self.sort.value
        context['person_type'] = self.person_type.value if self.person_type else None
        if self.geo is not None:
            context['geo'] = {'lat': round(self.geo.lat, 2), 'lng': round(self.geo.lng, 2)}
        return {k: v for k, v in context.items() if v is not None and v is not False and v != ()}


def _strip_accents(value: str) -> str:
    normalized = unicodedata.normalize('NFD', value)
    return ''.join(ch for ch in normalized if unicodedata.category(ch) != 'Mn')


_CATEGORY_LOOKUP = {_strip_accents(c).lower(): c for c in CATEGORIES}


def normalize_category(value: Optional[str]) -> Optional[str]:
    """Map slugs and unaccented/case variants ('saude', 'SAUDE') to the canonical name."""
    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    return _CATEGORY_LOOKUP.get(_strip_accents(trimmed).lower(), trimmed)


def _canonical_params(raw: Any) -> Dict[str, Any]:
    if raw is None:
        return {}
    if hasattr(raw, 'model_dump'):
        raw = raw.model_dump(exclude_none=True)
    if not isinstance(raw, Mapping):
        raise TypeError(f"Unsupported filter input type: {type(raw).__name__}")

    params: Dict[str, Any] = {}
    for key, value in raw.items():
        params[_PARAM_ALIASES.get(key, key)] = value
    return params


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_float(field: str, value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise FilterValidationError(field, f"{field} must be a number")


def _to_int(field: str, value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise FilterValidationError(field, f"{field} must be an integer")


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _parse_states(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, Iterable):
        raise FilterValidationError("state", "state must be a 2-letter code or a list of codes")

    states = []
    for item in value:
        code = _clean_str(item)
        if code is None:
            continue
        code = code.upper()
        if len(code) != 2:
            raise FilterValidationError("state", f"Invalid state code '{code}': must have 2 letters")
        if code not in states:
            states.append(code)
    return tuple(states)


def _parse_person_type(value: Any) -> Optional[PersonType]:
    text = _clean_str(value)
    if text is None:
        return None
    person_type = _PERSON_TYPE_ALIASES.get(text.lower())
    if person_type is None:
        raise FilterValidationError("person_type", f"Invalid person type '{text}': expected PF or PJ")
    return person_type


def _parse_sort(value: Any) -> SortMode:
    text = _clean_str(value)
    if text is None:
        return SortMode.RELEVANCE
    try:
        return SortMode(text)
    except ValueError:
        pass
    alias = _SORT_ALIASES.get(text.lower())
    if alias is not None:
        return alias
    logger.warning(f"Invalid sort parameter '{text}', falling back to '{SortMode.RELEVANCE.value}'")
    return SortMode.RELEVANCE


def _parse_geo(lat: Optional[float], lng: Optional[float]) -> Optional[GeoPoint]:
    if lat is not None and not -90.0 <= lat <= 90.0:
        raise FilterValidationError("lat", "lat must be between -90 and 90")
    if lng is not None and not -180.0 <= lng <= 180.0:
        raise FilterValidationError("lng", "lng must be between -180 and 180")
    if lat is None or lng is None:
        return None
    return GeoPoint(lat=lat, lng=lng)


def compile_filters(
    raw: Any,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> FilterSet:
    """
    Compile raw search parameters into a FilterSet.

    Args:
        raw: Mapping or pydantic model with search parameters.
        default_limit: Page size used when none is given.
        max_limit: Largest accepted page size.

    Returns:
        The canonical FilterSet.

    Raises:
        FilterValidationError: On an invalid filter combination.
    """
    params = _canonical_params(raw)

    price_min = _to_float("price_min", params.get("price_min"))
    price_max = _to_float("price_max", params.get("price_max"))
    if price_min is not None and price_min < 0:
        raise FilterValidationError("price_min", "price_min must be >= 0")
    if price_max is not None and price_max < 0:
        raise FilterValidationError("price_max", "price_max must be >= 0")
    if price_min is not None and price_max is not None and price_min > price_max:
        raise FilterValidationError("price_min", "price_min cannot be greater than price_max")

    sort = _parse_sort(params.get("sort"))
    lat = _to_float("lat", params.get("lat"))
    lng = _to_float("lng", params.get("lng"))
    geo = _parse_geo(lat, lng)
    if sort == SortMode.DISTANCE and geo is None:
        raise FilterValidationError("lat", "lat and lng are required when sort=distancia")

    page = _to_int("page", params.get("page"), 1)
    if page < 1:
        raise FilterValidationError("page", "page must be >= 1")
    limit = _to_int("limit", params.get("limit"), default_limit)
    if not 1 <= limit <= max_limit:
        raise FilterValidationError("limit", f"limit must be between 1 and {max_limit}")

    return FilterSet(
        category=normalize_category(params.get("category")),
        subcategory=_clean_str(params.get("subcategory")),
        person_type=_parse_person_type(params.get("person_type")),
        price_min=price_min,
        price_max=price_max,
        city=_clean_str(params.get("city")),
        states=_parse_states(params.get("state")),
        search=_clean_str(params.get("search")),
        with_media=_to_bool(params.get("with_media", False)),
        geo=geo,
        sort=sort,
        page=page,
        limit=limit,
    )
