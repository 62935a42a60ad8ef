import logging
from sqlalchemy import text
from tenacity import retry, stop_after_attempt, wait_fixed

from core.config_loader import load_config
from database.database import engine
from database.models import Base
from database.search_schema import search_support_statements

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@retry(stop=stop_after_attempt(5), wait=wait_fixed(2))
def init_db(bind=None, text_search_config: str = None):
    bind = bind or engine
    if text_search_config is None:
        text_search_config = load_config().search.text_search_config

    logger.info("Initializing database...")
    try:
        # Create extensions if they don't exist
        with bind.connect() as connection:
            connection.execute(text("CREATE EXTENSION IF NOT EXISTS postgis;"))
            connection.commit()
            logger.info("Checked/Created 'postgis' extension.")

        # Create tables
        Base.metadata.create_all(bind=bind)
        logger.info("Tables created or verified.")

        # Geography column, GiST index and the search field sync trigger
        with bind.connect() as connection:
            for statement in search_support_statements(text_search_config):
                connection.execute(statement)
            connection.commit()
            logger.info(f"Search support installed (text search config '{text_search_config}').")

    except Exception as e:
        logger.error(f"Error initializing DB: {e}")
        raise


if __name__ == "__main__":
    init_db()
