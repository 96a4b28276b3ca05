# database.py - engine, sessions and table bootstrap
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
import time
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_with_retry(database_url, max_retries=5, retry_delay=2) -> Engine:
    """Create database engine with connection retry logic"""
    is_sqlite = database_url.startswith("sqlite")

    if is_sqlite:
        # Sessions are handed to worker threads, one at a time
        engine_kwargs = {"connect_args": {"check_same_thread": False}}
    else:
        engine_kwargs = {
            "pool_pre_ping": True,  # Verify connections before use
            "pool_recycle": 300,    # Recycle connections every 5 minutes
            "pool_size": 5,
            "max_overflow": 10,
        }

    for attempt in range(max_retries):
        try:
            engine = create_engine(database_url, echo=False, **engine_kwargs)
            if is_sqlite:
                event.listen(engine, "connect", _enable_sqlite_foreign_keys)

            # Test the connection
            with engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()

            logger.info(f"Database engine created successfully on attempt {attempt + 1}")
            return engine

        except Exception as e:
            logger.warning(f"Database connection attempt {attempt + 1} failed: {e}")
            if attempt < max_retries - 1:
                logger.info(f"Retrying in {retry_delay} seconds...")
                time.sleep(retry_delay)
            else:
                logger.error("All database connection attempts failed")
                raise


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


def create_tables(engine: Engine) -> bool:
    """Create all tables"""
    # Registers the mapped classes on Base.metadata
    import model  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified successfully")
        return True
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        return False


def test_connection(engine: Engine) -> bool:
    """Test database connection"""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
            return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
