"""
Database initialization script.
"""
import logging
from collecte.db.session import SessionLocal, init_db
from collecte.services.fee_config_service import ensure_default_fee_config

logger = logging.getLogger(__name__)


def bootstrap():
    """Create tables and make sure the default fee configuration row exists."""
    init_db()
    db = SessionLocal()
    try:
        ensure_default_fee_config(db)
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    logger.info("Initializing database...")
    bootstrap()
    logger.info("Database initialized successfully!")
