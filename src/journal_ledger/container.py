"""Dependency injection container for Journal Ledger.

Provides centralized dependency management using a simple container pattern.
The configured store (SQLite or PostgreSQL), its repositories and the
posting service are built lazily on first access and cached.

Usage:
    from journal_ledger.container import Container, get_container

    # Get container singleton
    container = get_container()

    # Access services
    store = container.database
    posting = container.posting_service
"""

from functools import cached_property, lru_cache
from typing import TYPE_CHECKING

from journal_ledger.config import DatabaseType, Settings, get_settings
from journal_ledger.logging_config import get_logger

if TYPE_CHECKING:
    from journal_ledger.repositories.interfaces import (
        AccountBalanceRepository,
        AccountRepository,
        JournalDocumentRepository,
        JournalEntryRepository,
        JournalEventRepository,
        TransactionalStore,
    )
    from journal_ledger.services.interfaces import PostingService

logger = get_logger(__name__)


class Container:
    """Dependency injection container.

    The container can be configured with custom settings for testing:

        test_settings = Settings(database_type=DatabaseType.SQLITE, sqlite_path=":memory:")
        container = Container(settings=test_settings)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the container.

        Args:
            settings: Application settings. If None, loads from environment.
        """
        self._settings = settings or get_settings()
        logger.debug(
            "container_created",
            database_type=self._settings.database_type.value,
            environment=self._settings.environment.value,
        )

    @property
    def settings(self) -> Settings:
        """Get application settings."""
        return self._settings

    @property
    def is_postgres(self) -> bool:
        return self._settings.database_type == DatabaseType.POSTGRES

    @cached_property
    def database(self) -> "TransactionalStore":
        """Get the transactional store, initialized on first access."""
        if self.is_postgres:
            return self._create_postgres_database()
        return self._create_sqlite_database()

    def _create_sqlite_database(self) -> "TransactionalStore":
        from journal_ledger.repositories.sqlite import SQLiteDatabase

        db_path = str(self._settings.sqlite_path)
        logger.info("initializing_sqlite_database", path=db_path)

        # API requests run on worker threads; access is serialized by the store's lock
        db = SQLiteDatabase(db_path, check_same_thread=False)
        db.initialize()
        return db

    def _create_postgres_database(self) -> "TransactionalStore":
        from journal_ledger.repositories.postgres import PostgresDatabase

        url = self._settings.database_url
        if not url:
            raise ValueError(
                "database_url must be set when database_type is postgres"
            )

        logger.info(
            "initializing_postgres_database",
            # Don't log the full URL as it may contain credentials
            host=url.split("@")[-1].split("/")[0] if "@" in url else "localhost",
        )

        db = PostgresDatabase(url)
        db.initialize()
        return db

    @cached_property
    def account_repository(self) -> "AccountRepository":
        if self.is_postgres:
            from journal_ledger.repositories.postgres import PostgresAccountRepository

            return PostgresAccountRepository(self.database)  # type: ignore[arg-type]
        from journal_ledger.repositories.sqlite import SQLiteAccountRepository

        return SQLiteAccountRepository(self.database)  # type: ignore[arg-type]

    @cached_property
    def document_repository(self) -> "JournalDocumentRepository":
        if self.is_postgres:
            from journal_ledger.repositories.postgres import (
                PostgresJournalDocumentRepository,
            )

            return PostgresJournalDocumentRepository(self.database)  # type: ignore[arg-type]
        from journal_ledger.repositories.sqlite import SQLiteJournalDocumentRepository

        return SQLiteJournalDocumentRepository(self.database)  # type: ignore[arg-type]

    @cached_property
    def entry_repository(self) -> "JournalEntryRepository":
        if self.is_postgres:
            from journal_ledger.repositories.postgres import (
                PostgresJournalEntryRepository,
            )

            return PostgresJournalEntryRepository(self.database)  # type: ignore[arg-type]
        from journal_ledger.repositories.sqlite import SQLiteJournalEntryRepository

        return SQLiteJournalEntryRepository(self.database)  # type: ignore[arg-type]

    @cached_property
    def balance_repository(self) -> "AccountBalanceRepository":
        if self.is_postgres:
            from journal_ledger.repositories.postgres import (
                PostgresAccountBalanceRepository,
            )

            return PostgresAccountBalanceRepository(self.database)  # type: ignore[arg-type]
        from journal_ledger.repositories.sqlite import SQLiteAccountBalanceRepository

        return SQLiteAccountBalanceRepository(self.database)  # type: ignore[arg-type]

    @cached_property
    def event_repository(self) -> "JournalEventRepository":
        if self.is_postgres:
            from journal_ledger.repositories.postgres import (
                PostgresJournalEventRepository,
            )

            return PostgresJournalEventRepository(self.database)  # type: ignore[arg-type]
        from journal_ledger.repositories.sqlite import SQLiteJournalEventRepository

        return SQLiteJournalEventRepository(self.database)  # type: ignore[arg-type]

    @cached_property
    def posting_service(self) -> "PostingService":
        """Get the posting service for journal create/edit/delete."""
        from journal_ledger.services.posting import PostingServiceImpl

        return PostingServiceImpl(
            store=self.database,
            account_repo=self.account_repository,
            document_repo=self.document_repository,
            entry_repo=self.entry_repository,
            balance_repo=self.balance_repository,
            event_repo=self.event_repository,
            strict_lines=self._settings.strict_journal_lines,
            record_history=self._settings.enable_journal_history,
        )

    def close(self) -> None:
        """Close all resources held by the container.

        Should be called during application shutdown.
        """
        if "database" in self.__dict__:
            logger.info("closing_database_connection")
            self.database.close()

    def __enter__(self) -> "Container":
        """Enter context manager."""
        return self

    def __exit__(self, *args: object) -> None:
        """Exit context manager, closing resources."""
        self.close()


# Module-level container instance
_container: Container | None = None


@lru_cache
def get_container() -> Container:
    """Get the global container singleton.

    For testing, create a Container directly with custom settings instead
    of using this function.
    """
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Reset the global container.

    Used primarily for testing to ensure a fresh container state.
    """
    global _container
    if _container is not None:
        _container.close()
        _container = None
    get_container.cache_clear()


# FastAPI dependency functions
def get_account_repository() -> "AccountRepository":
    """FastAPI dependency for account access."""
    return get_container().account_repository


def get_posting_service() -> "PostingService":
    """FastAPI dependency for the posting service.

    Usage in routes:
        @router.post("/manual-journals")
        def create(service: PostingService = Depends(get_posting_service)):
            ...
    """
    return get_container().posting_service
