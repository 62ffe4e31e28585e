"""Confirmed write of one mutation task to the remote store."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from attendsync._transport import Transport
from attendsync.exceptions import DeliveryRejectedError, SyncTransportError, TransientDeliveryError
from attendsync.models.remote import WriteResult
from attendsync.models.task import MutationTask

_logger = logging.getLogger(__name__)


async def deliver_task(transport: Transport, url: str, task: MutationTask) -> WriteResult:
    """POST *task*'s payload as a form and verify the response envelope.

    A write counts as delivered only when the transport succeeds with a 2xx
    status, the body is a JSON object, and its ``result`` is ``"success"``.

    Raises
    ------
    TransientDeliveryError
        For every failed check.  :class:`DeliveryRejectedError` when the
        remote store answered but did not accept the write.
    """
    endpoint = url.strip()
    try:
        body = await transport.post_form(endpoint, task.payload.to_form())
    except SyncTransportError as exc:
        raise TransientDeliveryError(f"Delivery of task {task.id} failed: {exc}", task_id=task.id) from exc

    if not isinstance(body, dict):
        raise TransientDeliveryError(
            f"Delivery of task {task.id} got a {type(body).__name__} instead of a result envelope",
            task_id=task.id,
        )
    try:
        result = WriteResult.model_validate(body)
    except ValidationError as exc:
        raise TransientDeliveryError(f"Delivery of task {task.id} got a malformed envelope", task_id=task.id) from exc

    if not result.accepted:
        raise DeliveryRejectedError(
            f"Remote store rejected task {task.id}: result={result.result!r} message={result.message!r}",
            task_id=task.id,
            remote_message=result.message,
        )

    _logger.debug("Task %s accepted by remote store", task.id)
    return result
