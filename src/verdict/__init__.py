"""Verdict: tri-state results for asynchronous backend clients.

Public API:
    - HttpClient, SqlClient, QueueClient, DocumentClient, KeyValueClient
    - CallOptions: per-call deadline, abort signal and throw policy
    - AbortController: external cancellation for in-flight calls
    - Result, BatchResult, HttpResponse: settled outcomes
"""

from __future__ import annotations

import logging

from verdict.batch import BatchEntry, BatchItemOutcome, BatchResult
from verdict.cancellation import AbortController, AbortSignal
from verdict.clients import (
    DocumentClient,
    HttpClient,
    KeyValueClient,
    QueueClient,
    SqlClient,
)
from verdict.config import (
    DocumentClientConfig,
    HttpClientConfig,
    HttpConnection,
    KeyValueClientConfig,
    QueueClientConfig,
    SqlClientConfig,
    SqlConnection,
)
from verdict.envelope import HttpResponse
from verdict.errors import (
    ClientClosedError,
    ClientError,
    ConfigurationError,
    InternalError,
    OperationError,
    TransportFailure,
    VerdictError,
)
from verdict.options import CallOptions
from verdict.result import Result, ValueResult
from verdict.retry import RetryPolicy
from verdict.sequence import EmptySequenceError, Rows

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("verdict-clients")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("verdict").addHandler(logging.NullHandler())

__all__ = [
    "AbortController",
    "AbortSignal",
    "BatchEntry",
    "BatchItemOutcome",
    "BatchResult",
    "CallOptions",
    "ClientClosedError",
    "ClientError",
    "ConfigurationError",
    "DocumentClient",
    "DocumentClientConfig",
    "EmptySequenceError",
    "HttpClient",
    "HttpClientConfig",
    "HttpConnection",
    "HttpResponse",
    "InternalError",
    "KeyValueClient",
    "KeyValueClientConfig",
    "OperationError",
    "QueueClient",
    "QueueClientConfig",
    "Result",
    "RetryPolicy",
    "Rows",
    "SqlClient",
    "SqlClientConfig",
    "SqlConnection",
    "TransportFailure",
    "ValueResult",
    "VerdictError",
]
