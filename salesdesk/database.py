"""Database configuration and initialization."""
import logging

from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Create SQLAlchemy base
Base = declarative_base()

# Global session and engine
engine = None
db_session = None


def _engine_options(database_uri: str, echo: bool) -> dict:
    """Pool settings per backend (SQLite has no connection pool to size)."""
    if database_uri.startswith('sqlite'):
        return {
            'echo': echo,
            'connect_args': {'check_same_thread': False},
            'poolclass': StaticPool,
        }
    return {
        'echo': echo,
        'pool_pre_ping': True,  # Enable connection health checks
        'pool_size': 10,
        'max_overflow': 20,
    }


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine = create_engine(
        database_uri,
        **_engine_options(database_uri, app.config.get('SQLALCHEMY_ECHO', False))
    )

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )

    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def init_schema():
    """Create all tables and their declared indexes."""
    # Models must be imported so their tables are registered on Base.metadata
    import salesdesk.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"Schema ready: {', '.join(sorted(Base.metadata.tables))}")


def drop_schema():
    """Drop all tables (used by the test suite)."""
    import salesdesk.models  # noqa: F401

    Base.metadata.drop_all(bind=engine)


def get_declared_indexes() -> dict:
    """Index names declared on the models, per table."""
    import salesdesk.models  # noqa: F401

    return {
        name: sorted(index.name for index in table.indexes)
        for name, table in Base.metadata.tables.items()
    }


def get_existing_indexes() -> dict:
    """Index names present in the live database, per table."""
    inspector = inspect(engine)
    return {
        table: sorted(idx['name'] for idx in inspector.get_indexes(table) if idx.get('name'))
        for table in inspector.get_table_names()
    }


def get_session():
    """Get database session."""
    return db_session
