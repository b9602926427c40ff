"""
Module: approval_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities, held in explicit handles rather than
    module-level globals.
Architecture position: Kernel > DB.  May import from db/base.py and
    logging_config.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - One Database handle per tenant.  Services receive a handle (or a
      session produced by one) through their constructor; nothing reads a
      process-wide connection map.
    - session_scope() commits on success and rolls back on any exception.
    - TenantDatabases.close_all() disposes every engine it opened.

Failure modes:
    - KeyError if a tenant is requested that was never registered and no
      URL template is configured.
    - Connection pool exhaustion if pool_size + max_overflow is exceeded
      (PostgreSQL only; SQLite uses SQLAlchemy's default pool).
"""

import threading
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from approval_kernel.logging_config import get_logger

logger = get_logger("db.engine")


class Database:
    """
    Lifecycle-managed handle around one SQLAlchemy engine.

    Contract:
        Created from a URL, disposed with ``dispose()``.  In-memory SQLite
        URLs share a single connection so every session sees the same data.
    """

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 5,
        pool_pre_ping: bool = True,
    ) -> None:
        self.url = database_url
        if database_url.startswith("sqlite"):
            kwargs: dict = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in database_url or database_url == "sqlite://":
                kwargs["poolclass"] = StaticPool
            self._engine: Engine = create_engine(database_url, echo=echo, **kwargs)
        else:
            self._engine = create_engine(
                database_url,
                echo=echo,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=pool_pre_ping,
                isolation_level="READ COMMITTED",
            )
        self._session_factory = sessionmaker(
            bind=self._engine, expire_on_commit=False,
        )
        logger.info(
            "engine_initialized",
            extra={"dialect": self._engine.dialect.name, "echo": echo},
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory

    def session(self) -> Session:
        """Get a new session bound to this database."""
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Postconditions: On normal exit, session is committed and closed.
            On exception, session is rolled back and closed, and the
            exception is re-raised.
        """
        session = self.session()
        logger.debug("transaction_started")
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed")
        except Exception:
            session.rollback()
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """Create all tables for the approval kernel models."""
        from approval_kernel.db.base import Base
        import approval_kernel.models  # noqa: F401  (registers tables)

        Base.metadata.create_all(self._engine)

    def drop_tables(self) -> None:
        """Drop all tables. Use with caution - primarily for testing."""
        from approval_kernel.db.base import Base

        Base.metadata.drop_all(self._engine)

    def dispose(self) -> None:
        self._engine.dispose()
        logger.info("engine_disposed", extra={"dialect": self._engine.dialect.name})


class TenantDatabases:
    """
    Registry of per-tenant Database handles.

    Contract:
        - ``register()`` binds a tenant to an explicit URL.
        - ``get()`` returns the tenant's handle, opening it lazily from
          ``url_template`` (``{tenant_id}`` placeholder) when configured.
        - ``close_all()`` disposes every handle; the registry is reusable
          afterwards.
    """

    def __init__(self, url_template: str | None = None, echo: bool = False):
        self._url_template = url_template
        self._echo = echo
        self._databases: dict[str, Database] = {}
        self._lock = threading.Lock()

    def register(self, tenant_id: str, database_url: str) -> Database:
        with self._lock:
            existing = self._databases.pop(tenant_id, None)
            if existing is not None:
                existing.dispose()
            db = Database(database_url, echo=self._echo)
            self._databases[tenant_id] = db
            return db

    def add(self, tenant_id: str, database: Database) -> None:
        """Register an already-built handle (tests, embedding hosts)."""
        with self._lock:
            self._databases[tenant_id] = database

    def get(self, tenant_id: str) -> Database:
        with self._lock:
            db = self._databases.get(tenant_id)
            if db is not None:
                return db
            if self._url_template is None:
                raise KeyError(f"Unknown tenant: {tenant_id}")
            db = Database(
                self._url_template.format(tenant_id=tenant_id), echo=self._echo,
            )
            self._databases[tenant_id] = db
            return db

    def tenant_ids(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._databases))

    def close_all(self) -> None:
        with self._lock:
            for db in self._databases.values():
                db.dispose()
            self._databases.clear()
