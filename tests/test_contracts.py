"""Architectural contract tests.

These tests verify machine-checkable invariants that span modules. If a test
here fails, investigate the architecture; don't adjust the assertion.

Contracts are grouped by subsystem:
- ResultContracts: tri-state shape of every result type
- TaxonomyContracts: closed error-kind sets per backend
- ClientContracts: lifecycle shared by every client
- LayeringContracts: which modules may log
"""

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

import verdict
from verdict.batch import BatchResult
from verdict.clients.document import (
    DocumentCountResult,
    DocumentDeleteResult,
    DocumentFindOneResult,
    DocumentFindResult,
    DocumentInsertManyResult,
    DocumentInsertOneResult,
    DocumentUpdateResult,
)
from verdict.clients.keyvalue import (
    KeyValueArrayResult,
    KeyValueCountResult,
    KeyValueGetResult,
    KeyValueHashResult,
    KeyValueSetResult,
)
from verdict.clients.queue import (
    QueueDeleteResult,
    QueueReceiveResult,
    QueueSendResult,
)
from verdict.clients.sql import SqlQueryResult
from verdict.envelope import HttpResponse
from verdict.errors import PROTOCOL_KINDS, OperationError, connection_error
from verdict.result import Result, ValueResult, build_result, payload_fields
from verdict.taxonomy import document, http, keyvalue, sql

pytestmark = pytest.mark.contract

RESULT_TYPES: list[type[Result]] = [
    ValueResult,
    BatchResult,
    HttpResponse,
    SqlQueryResult,
    QueueSendResult,
    QueueReceiveResult,
    QueueDeleteResult,
    DocumentFindResult,
    DocumentFindOneResult,
    DocumentInsertOneResult,
    DocumentInsertManyResult,
    DocumentUpdateResult,
    DocumentDeleteResult,
    DocumentCountResult,
    KeyValueGetResult,
    KeyValueSetResult,
    KeyValueCountResult,
    KeyValueArrayResult,
    KeyValueHashResult,
]

SRC = Path(verdict.__file__).parent


# =============================================================================
# Result Contracts
# =============================================================================


class TestResultContracts:
    """Every result type settles into exactly one of three states."""

    @pytest.mark.parametrize("result_type", RESULT_TYPES, ids=lambda t: t.__name__)
    def test_result_types_are_frozen_dataclasses(
        self, result_type: type[Result]
    ) -> None:
        assert dataclasses.is_dataclass(result_type)
        assert result_type.__dataclass_params__.frozen  # type: ignore[attr-defined]

    @pytest.mark.parametrize("result_type", RESULT_TYPES, ids=lambda t: t.__name__)
    def test_failure_keeps_only_retained_payload(
        self, result_type: type[Result]
    ) -> None:
        """Contract: payload fields not retained on failure are None, not absent."""
        result = build_result(
            result_type, kind="x", duration=0, error=connection_error("refused")
        )

        assert result.state == "failure"
        for name in payload_fields(result_type):
            assert hasattr(result, name)
            if name not in result_type.retained_on_failure:
                assert getattr(result, name) is None

    @pytest.mark.parametrize("result_type", RESULT_TYPES, ids=lambda t: t.__name__)
    def test_retained_fields_are_payload_fields(
        self, result_type: type[Result]
    ) -> None:
        names = set(payload_fields(result_type))

        assert result_type.retained_on_error <= names
        assert result_type.retained_on_failure <= names

    def test_results_are_immutable(self) -> None:
        result = build_result(ValueResult, kind="x", duration=0, payload={"value": 1})

        with pytest.raises(dataclasses.FrozenInstanceError):
            result.value = 2  # type: ignore[misc]


# =============================================================================
# Taxonomy Contracts
# =============================================================================


class TestTaxonomyContracts:
    """Classifiers only ever produce kinds from their backend's closed set."""

    @pytest.mark.parametrize(
        ("backend", "kinds"),
        [
            ("http", set(http._STATUS_KINDS.values()) | {"http-status"}),
            ("sql", set(sql._ERRNO_KINDS.values())),
            ("document", set(document._CODE_KINDS.values()) | {"command-error"}),
            (
                "keyvalue",
                set(keyvalue._PREFIX_KINDS.values())
                | set(keyvalue._CLASS_KINDS.values()),
            ),
        ],
        ids=["http", "sql", "document", "keyvalue"],
    )
    def test_mapping_tables_stay_inside_closed_sets(
        self, backend: str, kinds: set[str]
    ) -> None:
        assert kinds <= PROTOCOL_KINDS[backend]

    def test_every_backend_has_a_taxonomy(self) -> None:
        assert set(PROTOCOL_KINDS) == {"http", "sql", "queue", "document", "keyvalue"}

    def test_protocol_errors_are_tagged_with_their_backend(self) -> None:
        err = OperationError("x", kind="unknown", backend="queue")

        assert (err.tier, err.backend) == ("protocol", "queue")


# =============================================================================
# Client Contracts
# =============================================================================


class TestClientContracts:
    """Lifecycle shared by every client."""

    @pytest.mark.parametrize(
        "client_type",
        [
            verdict.HttpClient,
            verdict.SqlClient,
            verdict.QueueClient,
            verdict.DocumentClient,
            verdict.KeyValueClient,
        ],
        ids=lambda t: t.__name__,
    )
    def test_clients_share_the_base_lifecycle(self, client_type: type) -> None:
        assert issubclass(client_type, verdict.clients.BaseClient)
        assert client_type.backend in PROTOCOL_KINDS
        assert "_release" in vars(client_type)

    def test_public_exports_resolve(self) -> None:
        for name in verdict.__all__:
            assert getattr(verdict, name) is not None, name


# =============================================================================
# Layering Contracts
# =============================================================================


class TestLayeringContracts:
    """Core modules stay silent; only clients log."""

    @pytest.mark.parametrize(
        "module",
        [
            "attempt.py",
            "batch.py",
            "cancellation.py",
            "result.py",
            "sequence.py",
            "session.py",
            "envelope.py",
            "taxonomy/_common.py",
            "taxonomy/http.py",
            "taxonomy/sql.py",
            "taxonomy/queue.py",
            "taxonomy/document.py",
            "taxonomy/keyvalue.py",
        ],
    )
    def test_core_modules_do_not_log(self, module: str) -> None:
        source = (SRC / module).read_text()

        assert "import logging" not in source

    def test_clients_log_under_the_package_namespace(self) -> None:
        for path in (SRC / "clients").glob("*.py"):
            if path.name == "__init__.py":
                continue
            assert "logging.getLogger(__name__)" in path.read_text(), path.name
