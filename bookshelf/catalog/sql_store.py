"""
Relational backend for the bookshelf, built on SQLAlchemy.

Any database SQLAlchemy can reach works; production deployments point the
connection string at SQL Server (``mssql+pyodbc://...``), the tests use
SQLite. Listing uses keyset pagination on the primary key, so the page
token is simply the last id of the previous page.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import BigInteger, DateTime, Engine, Integer, Text, create_engine, delete, select, update
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from ..models import Book, BookList
from ..storage import BookStore, InvalidPageToken


logger = logging.getLogger(__name__)

MAX_BOOK_ID = 2**63 - 1


class Base(DeclarativeBase):
    pass


class BookRecord(Base):
    __tablename__ = "Books"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    author: Mapped[str | None] = mapped_column(Text, nullable=True)
    published_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(Text, nullable=True)


COLUMNS = (
    "title",
    "author",
    "published_date",
    "image_url",
    "description",
    "created_by",
    "created_by_id",
)


def _to_book(record: BookRecord) -> Book:
    published = record.published_date
    # SQLite hands back naive datetimes; they were written as UTC.
    if published is not None and published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    fields = {name: getattr(record, name) for name in COLUMNS}
    fields["published_date"] = published
    return Book(id=int(record.id), **fields)


def _values(book: Book) -> dict:
    return {name: getattr(book, name) for name in COLUMNS}


def _last_id(token: str) -> int:
    try:
        last_id = int(token.strip())
    except ValueError as exc:
        raise InvalidPageToken(f"Malformed page token: {token!r}") from exc
    if not 0 <= last_id <= MAX_BOOK_ID:
        raise InvalidPageToken(f"Page token out of range: {token!r}")
    return last_id


class DbBookStore(BookStore):
    """Book store backed by a relational table.

    Parameters
    ----------
    engine : Union[Engine, str]
        A SQLAlchemy engine or a database URL to build one from.
    """

    def __init__(self, engine: Union[Engine, str]):
        self.engine = create_engine(engine) if isinstance(engine, str) else engine
        self._sessionmaker = sessionmaker(self.engine, expire_on_commit=False)

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def _session(self) -> Session:
        return self._sessionmaker()

    def create(self, book: Book) -> None:
        record = BookRecord(**_values(book))
        if book.id:
            record.id = book.id
        with self._session() as session:
            session.add(record)
            session.commit()
            book.id = int(record.id)
        logger.debug("Created book %s", book.id)

    def read(self, book_id: int) -> Optional[Book]:
        with self._session() as session:
            record = session.get(BookRecord, book_id)
            return None if record is None else _to_book(record)

    def update(self, book: Book) -> None:
        with self._session() as session:
            result = session.execute(
                update(BookRecord).where(BookRecord.id == book.id).values(**_values(book))
            )
            session.commit()
        logger.debug("Updated book %s (%s rows)", book.id, result.rowcount)

    def delete(self, book_id: int) -> None:
        with self._session() as session:
            session.execute(delete(BookRecord).where(BookRecord.id == book_id))
            session.commit()
        logger.debug("Deleted book %s", book_id)

    def list(self, page_size: int, next_page_token: Optional[str] = None) -> BookList:
        stmt = select(BookRecord).order_by(BookRecord.id)
        if next_page_token and next_page_token.strip():
            stmt = stmt.where(BookRecord.id > _last_id(next_page_token))
        # Fetch one extra row to learn whether another page exists.
        stmt = stmt.limit(page_size + 1)

        with self._session() as session:
            records = list(session.scalars(stmt))

        more = len(records) > page_size
        books = [_to_book(record) for record in records[:page_size]]
        token = str(books[-1].id) if books and len(books) == page_size and more else None
        return BookList(books=books, next_page_token=token)
