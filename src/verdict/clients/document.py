"""Document store client over a MongoDB-shaped async driver.

The driver surface matches PyMongo's async API: ``find`` returns a cursor
with ``to_list``, writes return objects carrying ``inserted_id``,
``matched_count`` and friends. Identifiers are reported as strings.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any, Literal, Protocol

from verdict.attempt import Outcome, run_attempt
from verdict.clients.base import BaseClient
from verdict.config import DocumentClientConfig
from verdict.errors import ConfigurationError
from verdict.result import Result
from verdict.sequence import Rows
from verdict.taxonomy import document as taxonomy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping, Sequence

    from verdict.options import CallOptions

logger = logging.getLogger(__name__)

Document = dict[str, Any]
SortOrder = Literal[1, -1]


class DocumentCursor(Protocol):
    async def to_list(self, length: int | None = None) -> list[Document]: ...


class DocumentCollection(Protocol):
    """One collection as exposed by the driver."""

    def find(self, query: Mapping[str, Any], **kwargs: Any) -> DocumentCursor: ...

    async def find_one(
        self, query: Mapping[str, Any], **kwargs: Any
    ) -> Document | None: ...

    async def insert_one(self, document: Mapping[str, Any]) -> Any: ...

    async def insert_many(self, documents: Sequence[Mapping[str, Any]]) -> Any: ...

    async def update_one(
        self, query: Mapping[str, Any], update: Mapping[str, Any], **kwargs: Any
    ) -> Any: ...

    async def update_many(
        self, query: Mapping[str, Any], update: Mapping[str, Any], **kwargs: Any
    ) -> Any: ...

    async def delete_one(self, query: Mapping[str, Any]) -> Any: ...

    async def delete_many(self, query: Mapping[str, Any]) -> Any: ...

    async def aggregate(
        self, pipeline: Sequence[Mapping[str, Any]]
    ) -> DocumentCursor: ...

    async def count_documents(self, query: Mapping[str, Any]) -> int: ...


class DocumentDriver(Protocol):
    """Connected driver handle."""

    def collection(self, database: str, name: str) -> DocumentCollection: ...

    async def close(self) -> None: ...


@dataclass(frozen=True)
class DocumentFindResult(Result):
    """Documents matched by a query, or produced by a pipeline."""

    docs: Rows[Document] | None = None


@dataclass(frozen=True)
class DocumentFindOneResult(Result):
    """Single-document lookup; ``doc`` is None when nothing matched."""

    doc: Document | None = None


@dataclass(frozen=True)
class DocumentInsertOneResult(Result):
    inserted_id: str | None = None


@dataclass(frozen=True)
class DocumentInsertManyResult(Result):
    inserted_ids: tuple[str, ...] | None = None
    inserted_count: int | None = None


@dataclass(frozen=True)
class DocumentUpdateResult(Result):
    matched_count: int | None = None
    modified_count: int | None = None
    #: Set only when an upsert inserted a document.
    upserted_id: str | None = None


@dataclass(frozen=True)
class DocumentDeleteResult(Result):
    deleted_count: int | None = None


@dataclass(frozen=True)
class DocumentCountResult(Result):
    count: int | None = None


def _id(value: Any) -> str | None:
    return None if value is None else str(value)


def _interpret_docs(docs: list[Document]) -> Outcome:
    return Outcome(payload={"docs": Rows(docs, noun="documents")})


def _interpret_insert_one(reply: Any) -> Outcome:
    return Outcome(payload={"inserted_id": _id(reply.inserted_id)})


def _interpret_insert_many(reply: Any) -> Outcome:
    ids = tuple(str(i) for i in reply.inserted_ids)
    return Outcome(payload={"inserted_ids": ids, "inserted_count": len(ids)})


def _interpret_update(reply: Any) -> Outcome:
    return Outcome(
        payload={
            "matched_count": reply.matched_count,
            "modified_count": reply.modified_count,
            "upserted_id": _id(getattr(reply, "upserted_id", None)),
        }
    )


def _interpret_delete(reply: Any) -> Outcome:
    return Outcome(payload={"deleted_count": reply.deleted_count})


def _interpret_count(count: int) -> Outcome:
    return Outcome(payload={"count": count})


class CollectionClient:
    """Operations on one collection; obtained from ``DocumentClient.collection``."""

    def __init__(self, owner: DocumentClient, name: str) -> None:
        self._owner = owner
        self.name = name

    def _collection(self) -> DocumentCollection:
        self._owner._ensure_open()
        return self._owner._driver.collection(self._owner.database, self.name)

    async def _run(
        self,
        kind: str,
        call: Callable[[], Awaitable[Any]],
        options: CallOptions | None,
        *,
        result_type: type[Any],
        interpret: Callable[[Any], Outcome],
    ) -> Any:
        operation = self._owner._operation(kind, options)
        result = await run_attempt(
            operation,
            call,
            result_type=result_type,
            classify=taxonomy.classify,
            interpret=interpret,
        )
        logger.debug(
            "%s %s.%s finished state=%s duration=%.1fms",
            kind,
            self._owner.database,
            self.name,
            result.state,
            result.duration,
        )
        return result

    async def find(
        self,
        query: Mapping[str, Any] | None = None,
        *,
        sort: Mapping[str, SortOrder] | None = None,
        limit: int | None = None,
        skip: int | None = None,
        projection: Mapping[str, Literal[0, 1]] | None = None,
        options: CallOptions | None = None,
    ) -> DocumentFindResult:
        """Return every document matching *query*, in cursor order."""
        if limit is not None and limit < 0:
            raise ConfigurationError(f"limit must be >= 0, got {limit}")
        kwargs: dict[str, Any] = {}
        if sort:
            kwargs["sort"] = list(sort.items())
        if limit:
            kwargs["limit"] = limit
        if skip:
            kwargs["skip"] = skip
        if projection is not None:
            kwargs["projection"] = dict(projection)
        collection = self._collection()

        async def call() -> list[Document]:
            cursor = collection.find(dict(query or {}), **kwargs)
            return await cursor.to_list(None)

        return await self._run(
            "document:find",
            call,
            options,
            result_type=DocumentFindResult,
            interpret=_interpret_docs,
        )

    async def find_one(
        self,
        query: Mapping[str, Any] | None = None,
        *,
        projection: Mapping[str, Literal[0, 1]] | None = None,
        required: bool = False,
        options: CallOptions | None = None,
    ) -> DocumentFindOneResult:
        """Return the first document matching *query*.

        With ``required=True`` a miss settles as a ``not-found`` error
        instead of a success with ``doc=None``.
        """
        kwargs: dict[str, Any] = {}
        if projection is not None:
            kwargs["projection"] = dict(projection)
        collection = self._collection()
        name = self.name

        def interpret(doc: Document | None) -> Outcome:
            if doc is None and required:
                return Outcome(
                    error=taxonomy.not_found(f"No document in {name} matched the query")
                )
            return Outcome(payload={"doc": doc})

        return await self._run(
            "document:find-one",
            lambda: collection.find_one(dict(query or {}), **kwargs),
            options,
            result_type=DocumentFindOneResult,
            interpret=interpret,
        )

    async def insert_one(
        self, document: Mapping[str, Any], *, options: CallOptions | None = None
    ) -> DocumentInsertOneResult:
        """Insert one document."""
        collection = self._collection()
        return await self._run(
            "document:insert-one",
            lambda: collection.insert_one(dict(document)),
            options,
            result_type=DocumentInsertOneResult,
            interpret=_interpret_insert_one,
        )

    async def insert_many(
        self,
        documents: Sequence[Mapping[str, Any]],
        *,
        options: CallOptions | None = None,
    ) -> DocumentInsertManyResult:
        """Insert several documents in one call."""
        if not documents:
            raise ConfigurationError(
                "insert_many needs at least one document",
                hint="Skip the call when there is nothing to insert.",
            )
        collection = self._collection()
        return await self._run(
            "document:insert-many",
            lambda: collection.insert_many([dict(d) for d in documents]),
            options,
            result_type=DocumentInsertManyResult,
            interpret=_interpret_insert_many,
        )

    async def update_one(
        self,
        query: Mapping[str, Any],
        update: Mapping[str, Any],
        *,
        upsert: bool = False,
        options: CallOptions | None = None,
    ) -> DocumentUpdateResult:
        """Update the first document matching *query*."""
        collection = self._collection()
        return await self._run(
            "document:update",
            lambda: collection.update_one(dict(query), dict(update), upsert=upsert),
            options,
            result_type=DocumentUpdateResult,
            interpret=_interpret_update,
        )

    async def update_many(
        self,
        query: Mapping[str, Any],
        update: Mapping[str, Any],
        *,
        upsert: bool = False,
        options: CallOptions | None = None,
    ) -> DocumentUpdateResult:
        """Update every document matching *query*."""
        collection = self._collection()
        return await self._run(
            "document:update",
            lambda: collection.update_many(dict(query), dict(update), upsert=upsert),
            options,
            result_type=DocumentUpdateResult,
            interpret=_interpret_update,
        )

    async def delete_one(
        self, query: Mapping[str, Any], *, options: CallOptions | None = None
    ) -> DocumentDeleteResult:
        """Delete the first document matching *query*."""
        collection = self._collection()
        return await self._run(
            "document:delete",
            lambda: collection.delete_one(dict(query)),
            options,
            result_type=DocumentDeleteResult,
            interpret=_interpret_delete,
        )

    async def delete_many(
        self, query: Mapping[str, Any], *, options: CallOptions | None = None
    ) -> DocumentDeleteResult:
        """Delete every document matching *query*."""
        collection = self._collection()
        return await self._run(
            "document:delete",
            lambda: collection.delete_many(dict(query)),
            options,
            result_type=DocumentDeleteResult,
            interpret=_interpret_delete,
        )

    async def aggregate(
        self,
        pipeline: Sequence[Mapping[str, Any]],
        *,
        options: CallOptions | None = None,
    ) -> DocumentFindResult:
        """Run an aggregation pipeline and collect its output."""
        collection = self._collection()
        stages = [dict(stage) for stage in pipeline]

        async def call() -> list[Document]:
            cursor = await collection.aggregate(stages)
            return await cursor.to_list(None)

        return await self._run(
            "document:aggregate",
            call,
            options,
            result_type=DocumentFindResult,
            interpret=_interpret_docs,
        )

    async def count(
        self,
        query: Mapping[str, Any] | None = None,
        *,
        options: CallOptions | None = None,
    ) -> DocumentCountResult:
        """Count documents matching *query*."""
        collection = self._collection()
        return await self._run(
            "document:count",
            lambda: collection.count_documents(dict(query or {})),
            options,
            result_type=DocumentCountResult,
            interpret=_interpret_count,
        )


class DocumentClient(BaseClient):
    """Tri-state document store client bound to one database.

    Example:
        async with DocumentClient(driver, DocumentClientConfig(database="app")) as db:
            users = db.collection("users")
            res = await users.find({"active": True}, limit=10)
    """

    backend = "document"

    def __init__(self, driver: DocumentDriver, config: DocumentClientConfig) -> None:
        super().__init__(config.defaults())
        self.config = config
        self._driver = driver
        logger.debug("DocumentClient created config=%r", config)

    @property
    def database(self) -> str:
        return self.config.database

    def collection(self, name: str) -> CollectionClient:
        """Return the operations for collection *name*."""
        if not name:
            raise ConfigurationError("Collection name must be non-empty")
        return CollectionClient(self, name)

    async def _release(self) -> None:
        await self._driver.close()
