# bookshelf/storage.py
from abc import ABC, abstractmethod
from typing import Optional

from .models import Book, BookList


class InvalidPageToken(ValueError):
    """A page token that no store could have handed out."""


class BookStore(ABC):
    """Operations every book backend provides.

    Implementations let backend errors propagate as they are raised; there
    is no retry or translation layer here.
    """

    @abstractmethod
    def create(self, book: Book) -> None:
        """Persist ``book`` and write the id the store assigned back into it."""

    @abstractmethod
    def read(self, book_id: int) -> Optional[Book]:
        """Return the book stored under ``book_id`` or ``None``."""

    @abstractmethod
    def update(self, book: Book) -> None:
        """Overwrite the record at ``book.id``.

        There is no existence check; what happens for an unknown id is up to
        the backend. This is not an upsert.
        """

    @abstractmethod
    def delete(self, book_id: int) -> None:
        """Remove the record at ``book_id``. Deleting a missing id is not an error."""

    @abstractmethod
    def list(self, page_size: int, next_page_token: Optional[str] = None) -> BookList:
        """Return up to ``page_size`` books starting at ``next_page_token``.

        Raises :class:`InvalidPageToken` when the token cannot be parsed.

        The returned token is ``None`` whenever the page is short, even if
        the backend could hand out another cursor.
        """
