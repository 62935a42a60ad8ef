"""Business logic services."""

from .offer_service import OfferService
