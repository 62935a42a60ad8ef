import contextlib
import logging

from database.database import SessionLocal
from database.repositories.offer import OfferRepository

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def offer_uow():
    """Per-unit-of-work transaction scope.

    Yields an OfferRepository bound to a fresh Session. Commits on success,
    rolls back on exception, always closes.

    Usage:
        with offer_uow() as repo:
            offer = repo.get_by_id(offer_id)
        # commit happens automatically on successful exit
    """
    session = SessionLocal()
    try:
        repo = OfferRepository(session)
        yield repo
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
