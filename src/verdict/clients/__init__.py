"""Client implementations, one per backend."""

from .base import BaseClient
from .document import CollectionClient, DocumentClient, DocumentDriver
from .http import HttpClient
from .keyvalue import KeyValueClient, KeyValueDriver
from .queue import MessageAttribute, OutgoingMessage, QueueClient, QueueDriver
from .sql import SqlClient, SqlHandle, SqlPool, SqlTransaction, StatementReply

__all__ = [
    "BaseClient",
    "CollectionClient",
    "DocumentClient",
    "DocumentDriver",
    "HttpClient",
    "KeyValueClient",
    "KeyValueDriver",
    "MessageAttribute",
    "OutgoingMessage",
    "QueueClient",
    "QueueDriver",
    "SqlClient",
    "SqlHandle",
    "SqlPool",
    "SqlTransaction",
    "StatementReply",
]
