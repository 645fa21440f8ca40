# bookshelf/models.py
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Book(BaseModel):
    """A single catalogue record.

    ``id`` is 0 until a store assigns one on create. Every other field is
    optional and stays ``None`` when absent.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: int = 0
    title: Optional[str] = None
    author: Optional[str] = None
    published_date: Optional[datetime] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    created_by: Optional[str] = None
    created_by_id: Optional[str] = None

    @field_validator("published_date")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Stores keep timestamps in UTC; naive values are taken as UTC.
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class BookList(BaseModel):
    """One page of books plus the cursor for the next page."""

    books: List[Book] = Field(default_factory=list)
    next_page_token: Optional[str] = None


class BookForm(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None
    published_date: Optional[datetime] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    created_by: Optional[str] = None
    created_by_id: Optional[str] = None

    def to_book(self, book_id: int = 0) -> Book:
        return Book(id=book_id, **self.model_dump())
