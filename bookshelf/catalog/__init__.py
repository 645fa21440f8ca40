"""
Catalog package for the bookshelf.

It holds the two book backends (Google Cloud Datastore and a relational
table through SQLAlchemy) and the routes that expose them as a small REST
API: list with page tokens, read, create, update and delete.
"""

from .router import router as books_router  # noqa: F401
