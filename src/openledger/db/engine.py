"""Engine creation and schema setup for SQLite and PostgreSQL."""

from pathlib import Path

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine, make_url

from .tables import SCHEMA_VERSION, metadata, schema_version, settings

SUPPORTED_DIALECTS = ("sqlite", "postgresql")


def database_url(target: str | Path) -> str:
    """Turn a file path or URL into a SQLAlchemy URL string.

    Examples:
        ./instance/ledger.db          -> sqlite:///./instance/ledger.db
        postgres://u:p@host/ledger    -> postgresql://u:p@host/ledger
        postgresql+psycopg://...      -> unchanged
    """
    if isinstance(target, Path) or "://" not in target:
        return f"sqlite:///{target}"
    if target.startswith("postgres://"):
        return "postgresql://" + target[len("postgres://"):]
    return target


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(target: str | Path) -> Engine:
    """Create an engine for a ledger database.

    Args:
        target: SQLite file path, or a sqlite:// or postgresql:// URL.

    Raises:
        ValueError: For any other database backend.
    """
    url = database_url(target)
    backend = make_url(url).get_backend_name()
    if backend not in SUPPORTED_DIALECTS:
        raise ValueError(f"Unsupported database dialect: {backend}")

    if backend == "sqlite":
        engine = create_engine(url, connect_args={"check_same_thread": False})
        # SQLite checks foreign keys only when asked, per connection
        event.listen(engine, "connect", _enable_foreign_keys)
        return engine

    return create_engine(url, pool_size=5, max_overflow=10, pool_pre_ping=True)


def initialize_schema(engine: Engine, seed_settings: dict | None = None) -> None:
    """Create missing tables, record the schema version and seed settings.

    Args:
        engine: SQLAlchemy engine.
        seed_settings: Column values for the settings row. Used only when
            the row does not exist yet, so a live counter is never reset.
    """
    metadata.create_all(engine)

    with engine.begin() as conn:
        recorded = conn.execute(
            select(schema_version.c.version).where(schema_version.c.version == SCHEMA_VERSION)
        ).first()
        if recorded is None:
            conn.execute(schema_version.insert().values(version=SCHEMA_VERSION))

        if conn.execute(select(settings.c.id).where(settings.c.id == 1)).first() is None:
            conn.execute(settings.insert().values(id=1, **(seed_settings or {})))


def get_dialect(engine: Engine) -> str:
    """Dialect name of an engine (sqlite, postgresql)."""
    return engine.dialect.name
