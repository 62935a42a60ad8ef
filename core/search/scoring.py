#!/usr/bin/env python3
"""
Scoring Engine - composite relevance score for text searches.

Formula:
    score = text_score
          + media_boost  * media_weight   (0.2)
          + rating_boost * rating_weight  (0.1)
          + recency_boost

- text_score: store-native text relevance, fields weighted title:10,
  description:5, tags:1
- media_boost: 1 when the offer has at least one image, else 0. Video-only
  listings get no credit.
- rating_boost: provider rating clamped to [0, 5]
- recency_boost: recency_max / max(1, days since last update), using
  updated_at and falling back to created_at. Always in (0, recency_max].

The store computes this as a push-down expression (see
database/repositories/offer_search.py). The functions here are the reference
implementation, used for explainability and to keep the SQL honest in tests.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

SECONDS_PER_DAY = 86400.0
MAX_RATING = 5.0


@dataclass(frozen=True)
class TextWeights:
    """Per-field text relevance weights."""
    title: float = 10.0
    description: float = 5.0
    tags: float = 1.0

    def rank_weights(self) -> Tuple[List[float], float]:
        """
        Express the field weights as a PostgreSQL ts_rank weight array.

        ts_rank takes weights in [0, 1] ordered {D, C, B, A}; title is stored
        as class A, description as B and tags as D. The returned scale
        restores the absolute weights after ranking.

        Returns:
            (weights array, scale factor)
        """
        scale = max(self.title, self.description, self.tags) or 1.0
        return [self.tags / scale, 0.0, self.description / scale, self.title / scale], scale


@dataclass(frozen=True)
class ScoringWeights:
    media_weight: float = 0.2
    rating_weight: float = 0.1
    recency_max: float = 0.5
    text: TextWeights = field(default_factory=TextWeights)


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def media_boost(images: Optional[Sequence[str]]) -> float:
    return 1.0 if images and len(images) > 0 else 0.0


def rating_boost(rating: Optional[float]) -> float:
    if rating is None:
        return 0.0
    return _clamp(float(rating), 0.0, MAX_RATING)


def recency_boost(
    updated_at: Optional[datetime],
    created_at: Optional[datetime],
    now: Optional[datetime] = None,
    recency_max: float = 0.5,
) -> float:
    last_change = updated_at or created_at
    if last_change is None:
        return 0.0
    now = now or datetime.now(timezone.utc)
    if last_change.tzinfo is None:
        last_change = last_change.replace(tzinfo=timezone.utc)
    days = (now - last_change).total_seconds() / SECONDS_PER_DAY
    return recency_max / max(1.0, days)


def composite_score(
    text_score: float,
    images: Optional[Sequence[str]],
    rating: Optional[float],
    updated_at: Optional[datetime],
    created_at: Optional[datetime],
    weights: ScoringWeights = ScoringWeights(),
    now: Optional[datetime] = None,
) -> Tuple[float, Dict[str, Any]]:
    """
    Calculate the composite relevance score for one offer.

    Returns:
        Tuple of (score, score_components_dict)
    """
    media = media_boost(images)
    rating_value = rating_boost(rating)
    recency = recency_boost(updated_at, created_at, now=now, recency_max=weights.recency_max)

    score = (
        float(text_score)
        + media * weights.media_weight
        + rating_value * weights.rating_weight
        + recency
    )

    score_components = {
        'text_score': float(text_score),
        'media_boost': media,
        'rating_boost': rating_value,
        'recency_boost': recency,
        'score': score,
    }
    return score, score_components
