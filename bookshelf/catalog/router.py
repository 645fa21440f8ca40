"""
Route definitions for the bookshelf API.

Endpoints under /books:
- GET    /books             : one page of books, continue with ``next_page_token``
- GET    /books/{book_id}   : a single book
- POST   /books             : add a book, the store assigns its id
- PUT    /books/{book_id}   : replace the fields of an existing book
- DELETE /books/{book_id}   : remove a book
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, Response, status

from ..models import Book, BookForm, BookList
from ..storage import BookStore, InvalidPageToken


router = APIRouter(prefix="/books", tags=["books"])

MAX_BOOK_ID = 2**63 - 1


def get_book_store(request: Request) -> BookStore:
    return request.app.state.book_store


def _page_size(request: Request) -> int:
    return request.app.state.config.page_size


@router.get("", response_model=BookList)
def list_books(
    next_page_token: Optional[str] = Query(default=None, description="Token from the previous page"),
    page_size: int = Depends(_page_size),
    store: BookStore = Depends(get_book_store),
) -> BookList:
    try:
        return store.list(page_size, next_page_token)
    except InvalidPageToken as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/{book_id}", response_model=Book)
def get_book(
    book_id: int = Path(..., ge=1, le=MAX_BOOK_ID),
    store: BookStore = Depends(get_book_store),
) -> Book:
    book = store.read(book_id)
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


@router.post("", response_model=Book, status_code=status.HTTP_201_CREATED)
def create_book(form: BookForm, store: BookStore = Depends(get_book_store)) -> Book:
    book = form.to_book()
    store.create(book)
    return book


@router.put("/{book_id}", response_model=Book)
def update_book(
    form: BookForm,
    book_id: int = Path(..., ge=1, le=MAX_BOOK_ID),
    store: BookStore = Depends(get_book_store),
) -> Book:
    # Stores do not check existence on update, so do it here.
    if store.read(book_id) is None:
        raise HTTPException(status_code=404, detail="Book not found")
    book = form.to_book(book_id)
    store.update(book)
    return book


@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_book(
    book_id: int = Path(..., ge=1, le=MAX_BOOK_ID),
    store: BookStore = Depends(get_book_store),
) -> Response:
    store.delete(book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
