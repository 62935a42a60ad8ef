import logging
from typing import Any, Dict, Iterable

from sqlalchemy import select

from database.models import User
from database.repositories.base import BaseRepository
from core.search.assembler import ProviderDirectory, ProviderDisplay

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository, ProviderDirectory):
    """Live reads against the authoritative users table."""

    def fetch_display_profiles(self, provider_ids: Iterable[Any]) -> Dict[Any, ProviderDisplay]:
        """
        Fetch current display name and avatar for the given providers.

        Only display columns are selected; credentials and email never leave
        the table through this path.
        """
        ids = {pid for pid in (self.parse_id(p) for p in provider_ids) if pid is not None}
        if not ids:
            return {}

        stmt = (
            select(User.id, User.display_name, User.avatar_url)
            .where(User.id.in_(ids), User.deleted_at.is_(None))
        )
        rows = self.db.execute(stmt).all()
        return {
            row.id: ProviderDisplay(name=row.display_name, avatar=row.avatar_url)
            for row in rows
        }
