from __future__ import annotations

from pathlib import Path

import pytest
from google.api_core.exceptions import NotFound
from google.cloud import datastore_v1

from bookshelf.catalog.datastore_store import DatastoreBookStore
from bookshelf.catalog.sql_store import DbBookStore


AFTER_LIMIT = datastore_v1.QueryResultBatch.MoreResultsType.MORE_RESULTS_AFTER_LIMIT
NO_MORE = datastore_v1.QueryResultBatch.MoreResultsType.NO_MORE_RESULTS


class FakeDatastoreClient:
    """In-memory stand-in for the commit/lookup/run_query calls of DatastoreClient.

    Entities are kept in key order. Like the real service, a batch that
    fills its limit reports MORE_RESULTS_AFTER_LIMIT without checking
    whether anything follows. Set ``always_more`` to report it on every
    batch.
    """

    def __init__(self) -> None:
        self.entities: dict[int, datastore_v1.Entity] = {}
        self.commits: list[datastore_v1.CommitRequest] = []
        self.always_more = False
        self._next_id = 1000

    def _store(self, entity: datastore_v1.Entity, book_id: int) -> datastore_v1.Key:
        key = datastore_v1.Key(path=[datastore_v1.Key.PathElement(kind="Book", id=book_id)])
        stored = datastore_v1.Entity.deserialize(datastore_v1.Entity.serialize(entity))
        stored.key = key
        self.entities[book_id] = stored
        return key

    def commit(self, request: datastore_v1.CommitRequest) -> datastore_v1.CommitResponse:
        self.commits.append(request)
        results = []
        for mutation in request.mutations:
            if "insert" in mutation:
                element = mutation.insert.key.path[0]
                if "id" in element:
                    book_id = element.id
                else:
                    self._next_id += 7
                    book_id = self._next_id
                results.append(datastore_v1.MutationResult(key=self._store(mutation.insert, book_id)))
            elif "update" in mutation:
                book_id = mutation.update.key.path[0].id
                if book_id not in self.entities:
                    raise NotFound("no entity to update")
                self._store(mutation.update, book_id)
                results.append(datastore_v1.MutationResult())
            elif "delete" in mutation:
                self.entities.pop(mutation.delete.path[0].id, None)
                results.append(datastore_v1.MutationResult())
        return datastore_v1.CommitResponse(mutation_results=results)

    def lookup(self, request: datastore_v1.LookupRequest) -> datastore_v1.LookupResponse:
        found = []
        for key in request.keys:
            entity = self.entities.get(key.path[0].id)
            if entity is not None:
                found.append(datastore_v1.EntityResult(entity=entity))
        return datastore_v1.LookupResponse(found=found)

    def run_query(self, request: datastore_v1.RunQueryRequest) -> datastore_v1.RunQueryResponse:
        query = request.query
        ordered = [self.entities[book_id] for book_id in sorted(self.entities)]
        start = int(query.start_cursor.decode("ascii")) if query.start_cursor else 0
        page = ordered[start:start + query.limit]
        end = start + len(page)
        more = AFTER_LIMIT if self.always_more or len(page) == query.limit else NO_MORE
        batch = datastore_v1.QueryResultBatch(
            entity_results=[datastore_v1.EntityResult(entity=entity) for entity in page],
            end_cursor=str(end).encode("ascii"),
            more_results=more,
        )
        return datastore_v1.RunQueryResponse(batch=batch)


@pytest.fixture()
def fake_datastore() -> FakeDatastoreClient:
    return FakeDatastoreClient()


@pytest.fixture()
def datastore_store(fake_datastore: FakeDatastoreClient) -> DatastoreBookStore:
    return DatastoreBookStore("test-project", client=fake_datastore)


@pytest.fixture()
def sql_store(tmp_path: Path) -> DbBookStore:
    store = DbBookStore(f"sqlite:///{(tmp_path / 'books.db').as_posix()}")
    store.create_schema()
    return store


@pytest.fixture(params=["datastore_store", "sql_store"])
def book_store(request):
    """Each BookStore implementation in turn."""
    return request.getfixturevalue(request.param)
