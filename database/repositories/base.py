import uuid
from typing import Any, Optional

from sqlalchemy.orm import Session


class BaseRepository:
    def __init__(self, db: Session):
        self.db = db

    def flush(self) -> None:
        self.db.flush()

    @staticmethod
    def parse_id(value: Any) -> Optional[uuid.UUID]:
        """Return value as a UUID, or None when it is malformed."""
        if isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(str(value))
        except (TypeError, ValueError, AttributeError):
            return None
