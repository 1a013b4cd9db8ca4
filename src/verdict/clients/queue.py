"""Message queue client over an SQS-shaped driver.

The driver mirrors the request/response dictionaries of the SQS API (for
example an aiobotocore ``sqs`` client). Batch calls reconcile the service's
separate ``Successful``/``Failed`` lists back into input order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Any, Literal, Protocol

from verdict.attempt import Outcome, run_attempt
from verdict.batch import BatchEntry, BatchResult, align, reconcile
from verdict.clients.base import BaseClient
from verdict.config import QueueClientConfig
from verdict.errors import ConfigurationError
from verdict.result import Result
from verdict.sequence import Rows
from verdict.taxonomy import queue as taxonomy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping, Sequence

    from verdict.options import CallOptions

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = taxonomy.MAX_BATCH_ENTRIES


class QueueDriver(Protocol):
    """SQS-shaped driver; every method takes and returns API dictionaries."""

    async def send_message(self, **kwargs: Any) -> dict[str, Any]: ...

    async def send_message_batch(self, **kwargs: Any) -> dict[str, Any]: ...

    async def receive_message(self, **kwargs: Any) -> dict[str, Any]: ...

    async def delete_message(self, **kwargs: Any) -> dict[str, Any]: ...

    async def delete_message_batch(self, **kwargs: Any) -> dict[str, Any]: ...

    async def purge_queue(self, **kwargs: Any) -> dict[str, Any]: ...

    async def close(self) -> None: ...


@dataclass(frozen=True)
class MessageAttribute:
    """A typed message attribute."""

    data_type: Literal["String", "Number", "Binary"]
    string_value: str | None = None
    binary_value: bytes | None = None


@dataclass(frozen=True)
class OutgoingMessage:
    """A message to send, with optional delivery settings."""

    body: str
    delay_seconds: int | None = None
    message_attributes: Mapping[str, MessageAttribute] | None = None
    #: FIFO queues only.
    group_id: str | None = None
    deduplication_id: str | None = None

    @property
    def size(self) -> int:
        """Body size in bytes as the service counts it."""
        return len(self.body.encode("utf-8"))


@dataclass(frozen=True)
class QueueMessage:
    """A received message."""

    message_id: str
    body: str
    receipt_handle: str
    md5_of_body: str
    attributes: Mapping[str, str] = field(default_factory=dict)
    message_attributes: Mapping[str, MessageAttribute] | None = None


@dataclass(frozen=True)
class QueueSendResult(Result):
    """Result of sending one message."""

    message_id: str | None = None
    md5_of_body: str | None = None
    #: FIFO queues only; None on standard queues.
    sequence_number: str | None = None


@dataclass(frozen=True)
class QueueReceiveResult(Result):
    """Result of one receive call."""

    messages: Rows[QueueMessage] | None = None


@dataclass(frozen=True)
class QueueDeleteResult(Result):
    """Result of a delete or purge call; carries no payload."""


def _to_api_attributes(
    attrs: Mapping[str, MessageAttribute] | None,
) -> dict[str, dict[str, Any]] | None:
    if not attrs:
        return None
    converted: dict[str, dict[str, Any]] = {}
    for name, attr in attrs.items():
        value: dict[str, Any] = {"DataType": attr.data_type}
        if attr.string_value is not None:
            value["StringValue"] = attr.string_value
        if attr.binary_value is not None:
            value["BinaryValue"] = attr.binary_value
        converted[name] = value
    return converted


def _from_api_attributes(
    attrs: Mapping[str, Mapping[str, Any]] | None,
) -> dict[str, MessageAttribute] | None:
    if not attrs:
        return None
    return {
        name: MessageAttribute(
            data_type=value.get("DataType", "String"),
            string_value=value.get("StringValue"),
            binary_value=value.get("BinaryValue"),
        )
        for name, value in attrs.items()
    }


def _message_params(message: OutgoingMessage) -> dict[str, Any]:
    params: dict[str, Any] = {"MessageBody": message.body}
    if message.delay_seconds is not None:
        params["DelaySeconds"] = message.delay_seconds
    attributes = _to_api_attributes(message.message_attributes)
    if attributes:
        params["MessageAttributes"] = attributes
    if message.group_id is not None:
        params["MessageGroupId"] = message.group_id
    if message.deduplication_id is not None:
        params["MessageDeduplicationId"] = message.deduplication_id
    return params


def _check_size(message: OutgoingMessage) -> None:
    size = message.size
    if size > taxonomy.MAX_MESSAGE_SIZE:
        raise taxonomy.message_too_large(size)


def _as_message(payload: str | OutgoingMessage) -> OutgoingMessage:
    return payload if isinstance(payload, OutgoingMessage) else OutgoingMessage(payload)


def _failures(response: Mapping[str, Any]) -> dict[str, tuple[str, str]]:
    return {
        entry["Id"]: (entry.get("Code", "unknown"), entry.get("Message", ""))
        for entry in response.get("Failed") or ()
    }


def _interpret_send(response: Mapping[str, Any]) -> Outcome:
    return Outcome(
        payload={
            "message_id": response.get("MessageId"),
            "md5_of_body": response.get("MD5OfMessageBody"),
            "sequence_number": response.get("SequenceNumber"),
        }
    )


def _interpret_receive(response: Mapping[str, Any]) -> Outcome:
    messages = [
        QueueMessage(
            message_id=msg["MessageId"],
            body=msg.get("Body", ""),
            receipt_handle=msg["ReceiptHandle"],
            md5_of_body=msg.get("MD5OfBody", ""),
            attributes=dict(msg.get("Attributes") or {}),
            message_attributes=_from_api_attributes(msg.get("MessageAttributes")),
        )
        for msg in response.get("Messages") or ()
    ]
    return Outcome(payload={"messages": Rows(messages, noun="messages")})


def _interpret_empty(response: Any) -> Outcome:
    del response
    return Outcome()


class QueueClient(BaseClient):
    """Tri-state message queue client bound to one queue URL."""

    backend = "queue"

    def __init__(
        self, driver: QueueDriver, config: QueueClientConfig | None = None
    ) -> None:
        self.config = config or QueueClientConfig()
        super().__init__(self.config.defaults())
        self._driver = driver
        logger.debug("QueueClient created queue_url=%s", self.config.queue_url)

    @property
    def queue_url(self) -> str:
        """The queue every call targets."""
        return str(self.config.queue_url)

    async def _run(
        self,
        kind: str,
        call: Callable[[], Awaitable[Any]],
        options: CallOptions | None,
        *,
        result_type: type[Any],
        interpret: Callable[[Any], Outcome],
    ) -> Any:
        operation = self._operation(kind, options)
        queue_url = self.queue_url
        result = await run_attempt(
            operation,
            call,
            result_type=result_type,
            classify=lambda exc: taxonomy.classify(
                exc, operation=kind, queue_url=queue_url
            ),
            interpret=interpret,
        )
        logger.debug(
            "%s finished state=%s duration=%.1fms",
            kind,
            result.state,
            result.duration,
        )
        return result

    async def send(
        self,
        message: str | OutgoingMessage,
        *,
        options: CallOptions | None = None,
    ) -> QueueSendResult:
        """Send one message.

        Bodies over the service limit settle as ``message-too-large`` without
        being dispatched.
        """
        outgoing = _as_message(message)
        driver = self._driver
        queue_url = self.queue_url

        async def call() -> dict[str, Any]:
            _check_size(outgoing)
            return await driver.send_message(
                QueueUrl=queue_url, **_message_params(outgoing)
            )

        return await self._run(
            "queue:send",
            call,
            options,
            result_type=QueueSendResult,
            interpret=_interpret_send,
        )

    async def send_batch(
        self,
        entries: Sequence[BatchEntry[str | OutgoingMessage]],
        *,
        options: CallOptions | None = None,
    ) -> BatchResult:
        """Send up to ten messages in one call.

        The result is ``ok`` once the service accepts the call, even when
        some entries were rejected; see ``failed``. Each successful item's
        payload is the service-assigned message id. A batch the service
        refuses as a whole settles as ``command-error`` without being
        dispatched, with the service's reason in ``error.code``.
        """
        messages = [(entry.id, _as_message(entry.payload)) for entry in entries]
        driver = self._driver
        queue_url = self.queue_url

        async def call() -> dict[str, Any]:
            taxonomy.check_batch(
                [entry.id for entry in entries], operation="queue:send-batch"
            )
            for _, outgoing in messages:
                _check_size(outgoing)
            return await driver.send_message_batch(
                QueueUrl=queue_url,
                Entries=[
                    {"Id": entry_id, **_message_params(outgoing)}
                    for entry_id, outgoing in messages
                ],
            )

        def interpret(response: Mapping[str, Any]) -> Outcome:
            successes = {
                entry["Id"]: entry.get("MessageId")
                for entry in response.get("Successful") or ()
            }
            return _partitioned(entries, successes, _failures(response))

        return await self._run(
            "queue:send-batch",
            call,
            options,
            result_type=BatchResult,
            interpret=interpret,
        )

    async def receive(
        self,
        *,
        max_messages: int | None = None,
        visibility_timeout: int | None = None,
        wait_time_seconds: int | None = None,
        attribute_names: Sequence[str] | None = None,
        message_attribute_names: Sequence[str] | None = None,
        options: CallOptions | None = None,
    ) -> QueueReceiveResult:
        """Receive up to *max_messages* messages.

        With *wait_time_seconds* the service long-polls; that wait is one
        awaited call and is subject to the call's deadline.
        """
        if max_messages is not None and not 1 <= max_messages <= MAX_BATCH_SIZE:
            raise ConfigurationError(
                f"max_messages must be between 1 and {MAX_BATCH_SIZE}, "
                f"got {max_messages}"
            )
        if wait_time_seconds is not None and not 0 <= wait_time_seconds <= 20:
            raise ConfigurationError(
                f"wait_time_seconds must be between 0 and 20, got {wait_time_seconds}"
            )
        params: dict[str, Any] = {"QueueUrl": self.queue_url}
        if max_messages is not None:
            params["MaxNumberOfMessages"] = max_messages
        if visibility_timeout is not None:
            params["VisibilityTimeout"] = visibility_timeout
        if wait_time_seconds is not None:
            params["WaitTimeSeconds"] = wait_time_seconds
        if attribute_names:
            params["AttributeNames"] = list(attribute_names)
        if message_attribute_names:
            params["MessageAttributeNames"] = list(message_attribute_names)
        driver = self._driver

        return await self._run(
            "queue:receive",
            lambda: driver.receive_message(**params),
            options,
            result_type=QueueReceiveResult,
            interpret=_interpret_receive,
        )

    async def delete(
        self, receipt_handle: str, *, options: CallOptions | None = None
    ) -> QueueDeleteResult:
        """Delete one received message by its receipt handle."""
        driver = self._driver
        queue_url = self.queue_url
        return await self._run(
            "queue:delete",
            lambda: driver.delete_message(
                QueueUrl=queue_url, ReceiptHandle=receipt_handle
            ),
            options,
            result_type=QueueDeleteResult,
            interpret=_interpret_empty,
        )

    async def delete_batch(
        self,
        receipt_handles: Sequence[str],
        *,
        options: CallOptions | None = None,
    ) -> BatchResult:
        """Delete several messages; entry ids are the handles' positions."""
        entries = [
            BatchEntry(str(index), handle)
            for index, handle in enumerate(receipt_handles)
        ]
        driver = self._driver
        queue_url = self.queue_url

        async def call() -> dict[str, Any]:
            taxonomy.check_batch(
                [entry.id for entry in entries], operation="queue:delete-batch"
            )
            return await driver.delete_message_batch(
                QueueUrl=queue_url,
                Entries=[
                    {"Id": entry.id, "ReceiptHandle": entry.payload}
                    for entry in entries
                ],
            )

        def interpret(response: Mapping[str, Any]) -> Outcome:
            by_id = {entry.id: entry.payload for entry in entries}
            successes = {
                entry["Id"]: by_id.get(entry["Id"])
                for entry in response.get("Successful") or ()
            }
            return _partitioned(entries, successes, _failures(response))

        return await self._run(
            "queue:delete-batch",
            call,
            options,
            result_type=BatchResult,
            interpret=interpret,
        )

    async def purge(self, *, options: CallOptions | None = None) -> QueueDeleteResult:
        """Delete every message in the queue."""
        driver = self._driver
        queue_url = self.queue_url
        return await self._run(
            "queue:purge",
            lambda: driver.purge_queue(QueueUrl=queue_url),
            options,
            result_type=QueueDeleteResult,
            interpret=_interpret_empty,
        )

    async def _release(self) -> None:
        await self._driver.close()


def _partitioned(
    entries: Sequence[BatchEntry[Any]],
    successes: Mapping[str, Any],
    failures: Mapping[str, tuple[str, str]],
) -> Outcome:
    partition = reconcile(align(entries, successes, failures))
    return Outcome(
        payload={"successful": partition.successful, "failed": partition.failed}
    )
