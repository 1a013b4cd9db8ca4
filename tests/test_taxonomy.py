"""Backend error classification: native signal to tagged ClientError."""

from __future__ import annotations

import asyncio
import socket

import httpx
import pytest

from tests.helpers import (
    ConnectionFailure,
    DuplicateKeyError,
    EndpointConnectionError,
    ErrnoConnectionRefused,
    MySqlDriverError,
    OperationFailure,
    PgDriverError,
    QueueServiceError,
    RedisConnectionError,
    ResponseError,
    ServerSelectionTimeoutError,
)
from verdict.errors import (
    OperationError,
    TransportFailure,
    connection_error,
    timeout_error,
)
from verdict.taxonomy import document, http, keyvalue, queue, sql

pytestmark = pytest.mark.unit

ALL_CLASSIFIERS = [
    pytest.param(http.classify, id="http"),
    pytest.param(sql.classify, id="sql"),
    pytest.param(queue.classify, id="queue"),
    pytest.param(document.classify, id="document"),
    pytest.param(keyvalue.classify, id="keyvalue"),
]


# =============================================================================
# Shared preamble
# =============================================================================


@pytest.mark.parametrize("classify", ALL_CLASSIFIERS)
def test_cancellation_is_reraised(classify) -> None:
    with pytest.raises(asyncio.CancelledError):
        classify(asyncio.CancelledError())


@pytest.mark.parametrize("classify", ALL_CLASSIFIERS)
def test_already_classified_transport_failure_passes_through(classify) -> None:
    err = timeout_error("op", 50)

    assert classify(err) is err


@pytest.mark.parametrize("classify", ALL_CLASSIFIERS)
def test_socket_refusal_is_a_connection_failure(classify) -> None:
    err = classify(ErrnoConnectionRefused())

    assert isinstance(err, TransportFailure)
    assert err.kind == "connection"
    assert err.tier == "transport"


@pytest.mark.parametrize("classify", ALL_CLASSIFIERS)
def test_connection_signal_anywhere_in_chain_wins(classify) -> None:
    """A wrapped DNS failure is transport even if the wrapper looks protocol."""
    wrapper = MySqlDriverError(1045, "Access denied")
    wrapper.__cause__ = socket.gaierror(-2, "Name or service not known")

    err = classify(wrapper)

    assert err.tier == "transport"
    assert err.kind == "connection"


@pytest.mark.parametrize("classify", ALL_CLASSIFIERS)
def test_unrecognised_signal_falls_back_to_unknown(classify) -> None:
    err = classify(ValueError("strange"))

    assert isinstance(err, OperationError)
    assert err.kind == "unknown"
    assert isinstance(err.cause, ValueError)


def test_other_backend_protocol_error_is_reclassified() -> None:
    foreign = OperationError("dup", kind="duplicate-key", backend="document")

    err = sql.classify(foreign)

    assert err.backend == "sql"
    assert err.kind == "unknown"


def test_same_backend_protocol_error_passes_through() -> None:
    err = OperationError("dup", kind="constraint-violation", backend="sql")

    assert sql.classify(err) is err


def test_classified_transport_failure_keeps_identity() -> None:
    err = connection_error("refused", backend="queue")

    assert keyvalue.classify(err) is err


@pytest.mark.parametrize("classify", ALL_CLASSIFIERS)
@pytest.mark.parametrize(
    "native",
    [
        ServerSelectionTimeoutError(
            "localhost:27017: [Errno 111] Connection refused, Timeout: 30s"
        ),
        RedisConnectionError("Error 111 connecting to localhost:6379."),
        EndpointConnectionError('Could not connect to "http://localhost:4566/"'),
    ],
    ids=["pymongo", "redis", "botocore"],
)
def test_driver_connection_errors_are_transport(classify, native) -> None:
    err = classify(native)

    assert isinstance(err, TransportFailure)
    assert (err.tier, err.kind) == ("transport", "connection")
    assert err.cause is native


def test_wrapped_driver_connection_error_is_transport() -> None:
    wrapper = RuntimeError("insert failed")
    wrapper.__cause__ = ConnectionFailure("connection closed")

    assert document.classify(wrapper).tier == "transport"


def test_driver_class_names_only_match_their_package() -> None:
    lookalike = type("ConnectionFailure", (Exception,), {})

    err = document.classify(lookalike("not a driver error"))

    assert err.tier == "protocol"
    assert err.kind == "unknown"


# =============================================================================
# HTTP
# =============================================================================


@pytest.mark.parametrize(
    ("status", "kind"),
    [
        (400, "bad-request"),
        (401, "unauthorized"),
        (403, "forbidden"),
        (404, "not-found"),
        (409, "conflict"),
        (429, "too-many-requests"),
        (500, "internal-server-error"),
        (502, "http-status"),
        (418, "http-status"),
    ],
)
def test_status_kinds(status: int, kind: str) -> None:
    err = http.status_error(status, "Reason")

    assert err.kind == kind
    assert err.status == status
    assert err.status_text == "Reason"


def test_status_error_message_includes_pretty_json_body() -> None:
    err = http.status_error(404, "Not Found", '{"error":"missing"}')

    assert str(err).startswith("404: Not Found\n\n")
    assert '  {\n    "error": "missing"\n  }' in str(err)


def test_status_error_message_includes_plain_body() -> None:
    err = http.status_error(500, "Internal Server Error", "oops")

    assert str(err) == "500: Internal Server Error\n\n  oops"


def test_httpx_connect_error_is_connection_failure() -> None:
    request = httpx.Request("GET", "http://api.test/")
    err = http.classify(httpx.ConnectError("refused", request=request))

    assert isinstance(err, TransportFailure)
    assert err.kind == "connection"


def test_httpx_timeout_is_transport_timeout() -> None:
    request = httpx.Request(
        "GET",
        "http://api.test/",
        extensions={"timeout": {"connect": 1.0, "read": 2.5}},
    )
    err = http.classify(httpx.ReadTimeout("slow", request=request))

    assert err.kind == "timeout"
    assert err.tier == "transport"
    assert err.timeout_ms == 2500


def test_httpx_status_error_maps_to_status_kind() -> None:
    request = httpx.Request("GET", "http://api.test/")
    response = httpx.Response(403, request=request, text="nope")
    exc = httpx.HTTPStatusError("forbidden", request=request, response=response)

    err = http.classify(exc)

    assert err.kind == "forbidden"
    assert err.status == 403


# =============================================================================
# SQL
# =============================================================================


@pytest.mark.parametrize(
    ("code", "kind"),
    [
        (1062, "constraint-violation"),
        (1451, "constraint-violation"),
        (1213, "deadlock"),
        (1064, "syntax-error"),
        (1045, "access-denied"),
        (1040, "connection-refused"),
        (1130, "connection-refused"),
        (9999, "unknown"),
    ],
)
def test_mysql_errno_kinds(code: int, kind: str) -> None:
    err = sql.classify(MySqlDriverError(code, "message"))

    assert err.kind == kind
    assert err.tier == "protocol"
    assert err.errno == code


@pytest.mark.parametrize("code", [2002, 2003, 2005])
def test_mysql_client_connection_errnos_are_transport(code: int) -> None:
    err = sql.classify(MySqlDriverError(code, "Can't connect to MySQL server"))

    assert isinstance(err, TransportFailure)
    assert err.kind == "connection"


def test_duplicate_entry_names_the_constraint() -> None:
    err = sql.classify(
        MySqlDriverError(1062, "Duplicate entry 'a@b' for key 'users.email'")
    )

    assert err.kind == "constraint-violation"
    assert err.constraint == "users.email"
    assert str(err) == "Duplicate entry 'a@b' for key 'users.email'"


@pytest.mark.parametrize(
    ("sqlstate", "kind"),
    [
        ("23505", "constraint-violation"),
        ("40P01", "deadlock"),
        ("42601", "syntax-error"),
        ("28P01", "access-denied"),
        ("XX000", "unknown"),
    ],
)
def test_sqlstate_fallback(sqlstate: str, kind: str) -> None:
    err = sql.classify(PgDriverError("driver said no", sqlstate))

    assert err.kind == kind
    assert err.sqlstate == sqlstate


# =============================================================================
# Queue
# =============================================================================


@pytest.mark.parametrize(
    ("code", "kind"),
    [
        ("AWS.SimpleQueueService.NonExistentQueue", "queue-not-found"),
        ("QueueDoesNotExist", "queue-not-found"),
        ("ReceiptHandleIsInvalid", "message-not-found"),
        ("InvalidParameterValue", "command-error"),
    ],
)
def test_queue_service_codes(code: str, kind: str) -> None:
    err = queue.classify(
        QueueServiceError(code, "service said no"),
        operation="queue:send",
        queue_url="https://sqs.test/1/q",
    )

    assert err.kind == kind
    assert err.code == code


def test_queue_not_found_records_queue_url() -> None:
    err = queue.classify(
        QueueServiceError("QueueDoesNotExist", "gone"), queue_url="https://sqs.test/q"
    )

    assert err.queue_url == "https://sqs.test/q"


def test_message_too_large_reports_size_and_limit() -> None:
    err = queue.message_too_large(300_000)

    assert err.kind == "message-too-large"
    assert err.size == 300_000
    assert err.limit == queue.MAX_MESSAGE_SIZE
    assert "300000" in str(err)


# =============================================================================
# Document
# =============================================================================


def test_duplicate_key_code() -> None:
    err = document.classify(DuplicateKeyError("E11000 duplicate key error"))

    assert err.kind == "duplicate-key"
    assert err.code == 11000
    assert err.code_name == "DuplicateKey"


@pytest.mark.parametrize(
    ("code", "kind"),
    [
        (121, "validation"),
        (112, "write-conflict"),
        (13, "access-denied"),
        (2, "command-error"),
    ],
)
def test_document_server_codes(code: int, kind: str) -> None:
    assert document.classify(OperationFailure("x", code=code)).kind == kind


def test_document_not_found_helper() -> None:
    err = document.not_found("No document matched")

    assert err.kind == "not-found"
    assert err.backend == "document"


# =============================================================================
# Key-value
# =============================================================================


@pytest.mark.parametrize(
    ("reply", "kind"),
    [
        ("WRONGTYPE Operation against a key holding the wrong value", "wrong-type"),
        ("NOAUTH Authentication required.", "auth"),
        ("NOSCRIPT No matching script.", "script-error"),
        ("READONLY You can't write against a read only replica.", "read-only"),
        ("ERR unknown command 'FOO'", "command-error"),
    ],
)
def test_reply_prefix_kinds(reply: str, kind: str) -> None:
    err = keyvalue.classify(ResponseError(reply), command="GET")

    assert err.kind == kind
    assert err.command == "GET"


def test_class_name_fallback_when_prefix_is_stripped() -> None:
    err = keyvalue.classify(ResponseError("something odd"))

    assert err.kind == "command-error"
    assert err.prefix is None
