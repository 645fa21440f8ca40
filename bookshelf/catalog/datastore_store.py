"""
Google Cloud Datastore backend for the bookshelf.

Books are stored as entities of kind ``Book`` whose key is a single path
element carrying the numeric book id. This module contains the
marshalling between :class:`~bookshelf.models.Book` and the native
``datastore_v1`` key/entity types, and :class:`DatastoreBookStore`, which
talks to Datastore through the low level ``DatastoreClient`` (commit,
lookup and run_query).

Fields that are ``None`` on a book are not written at all. When an entity
is read back, a missing property therefore decodes to ``None`` rather than
to an empty string.
"""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timezone
from typing import Optional

import google.auth
from google.cloud import datastore_v1
from google.protobuf import timestamp_pb2

from ..models import Book, BookList
from ..storage import BookStore, InvalidPageToken


logger = logging.getLogger(__name__)

KIND = "Book"
DATASTORE_SCOPE = "https://www.googleapis.com/auth/datastore"

# Book attribute -> Datastore property name.
STRING_PROPERTIES = {
    "title": "Title",
    "author": "Author",
    "image_url": "ImageUrl",
    "description": "Description",
    "created_by": "CreatedBy",
    "created_by_id": "CreateById",
}
TIMESTAMP_PROPERTIES = {
    "published_date": "PublishedDate",
}


def encode_key(book_id: int) -> datastore_v1.Key:
    """Make a Datastore key for a book id.

    An id of 0 produces an incomplete key so that Datastore allocates
    the id when the entity is inserted.
    """
    element = datastore_v1.Key.PathElement(kind=KIND)
    if book_id != 0:
        element.id = book_id
    return datastore_v1.Key(path=[element])


def decode_key(key: datastore_v1.Key) -> int:
    """Return the book id held by the first path element of ``key``."""
    if not key.path:
        raise ValueError("Datastore key has no path")
    element = key.path[0]
    if "id" not in element:
        raise ValueError(f"Datastore key for kind {element.kind!r} has no numeric id")
    return int(element.id)


def _string_value(value: Optional[str]) -> Optional[datastore_v1.Value]:
    return None if value is None else datastore_v1.Value(string_value=value)


def _timestamp_value(value: Optional[datetime]) -> Optional[datastore_v1.Value]:
    if value is None:
        return None
    ts = timestamp_pb2.Timestamp()
    # FromDatetime expects naive UTC.
    ts.FromDatetime(value.astimezone(timezone.utc).replace(tzinfo=None))
    return datastore_v1.Value(timestamp_value=ts)


def _read_string(properties, name: str) -> Optional[str]:
    if name not in properties:
        return None
    value = properties[name]
    if "string_value" not in value:
        return None
    return value.string_value


def _read_timestamp(properties, name: str) -> Optional[datetime]:
    if name not in properties:
        return None
    value = properties[name]
    if "timestamp_value" not in value:
        return None
    ts = datastore_v1.Value.pb(value).timestamp_value
    return ts.ToDatetime().replace(tzinfo=timezone.utc)


def encode_entity(book: Book) -> datastore_v1.Entity:
    """Create a Datastore entity with the same values as ``book``."""
    properties = {}
    for attr, name in STRING_PROPERTIES.items():
        value = _string_value(getattr(book, attr))
        if value is not None:
            properties[name] = value
    for attr, name in TIMESTAMP_PROPERTIES.items():
        value = _timestamp_value(getattr(book, attr))
        if value is not None:
            properties[name] = value
    return datastore_v1.Entity(key=encode_key(book.id), properties=properties)


def decode_entity(entity: datastore_v1.Entity) -> Book:
    """Unpack a book from an entity retrieved from Datastore."""
    properties = entity.properties
    fields = {attr: _read_string(properties, name) for attr, name in STRING_PROPERTIES.items()}
    for attr, name in TIMESTAMP_PROPERTIES.items():
        fields[attr] = _read_timestamp(properties, name)
    return Book(id=decode_key(entity.key), **fields)


def encode_cursor(cursor: bytes) -> str:
    return base64.urlsafe_b64encode(cursor).decode("ascii")


def decode_cursor(token: str) -> bytes:
    try:
        return base64.b64decode(token.strip().encode("ascii"), altchars=b"-_", validate=True)
    except (UnicodeEncodeError, binascii.Error) as exc:
        raise InvalidPageToken(f"Malformed page token: {token!r}") from exc


def _default_client() -> datastore_v1.DatastoreClient:
    # Application Default Credentials, scoped to Datastore.
    credentials, _ = google.auth.default(scopes=[DATASTORE_SCOPE])
    return datastore_v1.DatastoreClient(credentials=credentials)


class DatastoreBookStore(BookStore):
    """Book store backed by Google Cloud Datastore.

    Parameters
    ----------
    project_id : str
        The Google Cloud project that owns the Datastore database.
    client : Optional[datastore_v1.DatastoreClient]
        A ready client. When omitted one is created from Application
        Default Credentials. The client is shared by every request.
    """

    def __init__(self, project_id: str, client: Optional[datastore_v1.DatastoreClient] = None):
        self._project_id = project_id
        self._datastore = client if client is not None else _default_client()

    def _commit_mutation(self, mutation: datastore_v1.Mutation) -> datastore_v1.CommitResponse:
        """Commit a single mutation, outside of any transaction."""
        request = datastore_v1.CommitRequest(
            project_id=self._project_id,
            mode=datastore_v1.CommitRequest.Mode.NON_TRANSACTIONAL,
            mutations=[mutation],
        )
        return self._datastore.commit(request=request)

    def create(self, book: Book) -> None:
        result = self._commit_mutation(datastore_v1.Mutation(insert=encode_entity(book)))
        book.id = decode_key(result.mutation_results[0].key)
        logger.debug("Created book %s", book.id)

    def read(self, book_id: int) -> Optional[Book]:
        keys = [encode_key(book_id)]
        # Deferred keys were not looked up yet and must be requested again.
        while keys:
            request = datastore_v1.LookupRequest(project_id=self._project_id, keys=keys)
            response = self._datastore.lookup(request=request)
            if response.found:
                return decode_entity(response.found[0].entity)
            keys = list(response.deferred)
        return None

    def update(self, book: Book) -> None:
        self._commit_mutation(datastore_v1.Mutation(update=encode_entity(book)))
        logger.debug("Updated book %s", book.id)

    def delete(self, book_id: int) -> None:
        self._commit_mutation(datastore_v1.Mutation(delete=encode_key(book_id)))
        logger.debug("Deleted book %s", book_id)

    def list(self, page_size: int, next_page_token: Optional[str] = None) -> BookList:
        query = datastore_v1.Query(
            kind=[datastore_v1.KindExpression(name=KIND)],
            limit=page_size,
        )
        if next_page_token and next_page_token.strip():
            query.start_cursor = decode_cursor(next_page_token)

        request = datastore_v1.RunQueryRequest(project_id=self._project_id, query=query)
        batch = self._datastore.run_query(request=request).batch
        books = [decode_entity(result.entity) for result in batch.entity_results]

        more = batch.more_results == datastore_v1.QueryResultBatch.MoreResultsType.MORE_RESULTS_AFTER_LIMIT
        token = encode_cursor(batch.end_cursor) if len(books) == page_size and more else None
        return BookList(books=books, next_page_token=token)
