"""Per-backend error taxonomies.

Each module exposes ``classify(exc, ...) -> ClientError`` and a ``BACKEND``
name. Transport-level signals always classify as ``TransportFailure`` before
any backend mapping runs.
"""

from . import document, http, keyvalue, queue, sql

__all__ = ["document", "http", "keyvalue", "queue", "sql"]
