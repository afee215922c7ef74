"""
Database connection handling for the customer analytics pipeline.
"""
import logging
from sqlalchemy import create_engine
from sqlalchemy.engine import URL
from sqlalchemy.orm import sessionmaker
from config import Config

logger = logging.getLogger(__name__)

DRIVERS = {
    'sqlite': 'sqlite',
    'postgres': 'postgresql+psycopg2',
    'postgresql': 'postgresql+psycopg2',
}


def build_connection_url(db_config):
    """
    SQLAlchemy URL for the DATABASE section. Credentials are escaped by URL.create.
    """
    driver = DRIVERS.get(db_config['type'])
    if driver is None:
        raise ValueError(f"Unsupported database type: {db_config['type']}")

    if driver == 'sqlite':
        return URL.create(driver, database=db_config['name'] or None)

    return URL.create(
        driver,
        username=db_config['user'] or None,
        password=db_config['password'] or None,
        host=db_config['host'] or None,
        port=int(db_config['port']) if db_config['port'] else None,
        database=db_config['name'] or None
    )


def create_db_engine(config=None):
    """
    Create the engine for the configured customer store.

    SQLite connections may be used from the sync worker threads.
    """
    try:
        if config is None:
            config = Config()

        db_config = config.get_database_config()
        url = build_connection_url(db_config)

        connect_args = {'check_same_thread': False} if url.get_backend_name() == 'sqlite' else {}
        engine = create_engine(url, connect_args=connect_args)
        logger.info(f"Database connection created for {db_config['type']}")
        return engine
    except Exception as e:
        logger.error(f"Failed to create database connection: {str(e)}")
        raise


def create_session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine, base):
    """
    Create the customer tables if they do not exist.
    """
    base.metadata.create_all(engine)
    logger.info("Database tables initialized")
