# bookshelf/main.py
import logging
from typing import NoReturn, Optional

from fastapi import FastAPI

from .catalog import books_router
from .catalog.datastore_store import DatastoreBookStore
from .catalog.sql_store import DbBookStore
from .config import BOOK_STORE_CHOICES, AppConfig, load_config
from .storage import BookStore


logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s | %(message)s",
    )


def halt(message: str) -> NoReturn:
    """Stop startup: configuration problems are not recoverable."""
    logger.critical(message)
    raise SystemExit(-1)


def _add_sql_server(config: AppConfig) -> BookStore:
    connection_string = config.data.sql_server.connection_string
    if not connection_string or not connection_string.strip():
        halt("Set the configuration variable data.sql_server.connection_string.")
    store = DbBookStore(connection_string)
    store.create_schema()
    return store


def _add_datastore(config: AppConfig) -> BookStore:
    project_id = config.google_project_id
    if not project_id or not project_id.strip():
        halt("Set the configuration variable GOOGLE_PROJECT_ID.")
    return DatastoreBookStore(project_id)


def create_book_store(config: AppConfig) -> BookStore:
    """Choose a backend to store the books."""
    choice = (config.data.book_store or "").strip().lower()
    if choice == "sqlserver":
        store = _add_sql_server(config)
        logger.info("Storing book data in SQL Server.")
    elif choice == "datastore":
        store = _add_datastore(config)
        logger.info("Storing book data in Datastore.")
    else:
        halt(
            "No bookstore backend selected.\n"
            "Set the configuration variable data.book_store to "
            f"one of the following: {', '.join(BOOK_STORE_CHOICES)}."
        )
    return store


def create_app(config: Optional[AppConfig] = None, store: Optional[BookStore] = None) -> FastAPI:
    """Build the web application.

    Run it with ``uvicorn --factory bookshelf.main:create_app``.
    """
    if config is None:
        config = load_config()
        configure_logging(config.log_level)
    if store is None:
        store = create_book_store(config)

    app = FastAPI(
        title="Bookshelf",
        description="Sample catalogue of books stored in Datastore or SQL Server.",
        version="1.0.0",
    )
    app.state.config = config
    app.state.book_store = store

    @app.get("/")
    def home():
        return {"message": "Bookshelf", "books": "/books"}

    @app.get("/_ah/health")
    def health_check():
        return {"status": "ok"}

    app.include_router(books_router)
    return app
