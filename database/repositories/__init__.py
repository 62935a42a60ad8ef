from database.repositories.base import BaseRepository
from database.repositories.offer import OfferRepository
from database.repositories.user import UserRepository
from database.repositories.offer_search import PostgresOfferStore

__all__ = [
    'BaseRepository',
    'OfferRepository',
    'UserRepository',
    'PostgresOfferStore',
]
