from .base import Base
from .user import User
from .offer import (
    Offer,
    OfferStatus,
    PersonType,
    PriceUnit,
    CATEGORIES,
)

__all__ = [
    'Base',
    'User',
    'Offer',
    'OfferStatus',
    'PersonType',
    'PriceUnit',
    'CATEGORIES',
]
