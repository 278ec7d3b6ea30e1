"""Logging of the active and previous blocking operations."""

from __future__ import annotations

from typing import Any

from kubegres.operation import BlockingOperation
from kubegres.status import KubegresBlockingOperation, KubegresContext


def operation_key_values(operation: KubegresBlockingOperation) -> list[Any]:
    """Return the flat key/value list describing a blocking operation."""
    key_values: list[Any] = [
        "OperationId", operation.operation_id,
        "StepId", operation.step_id,
        "HasTimedOut", operation.has_timed_out,
    ]
    instance_index = operation.statefulset_operation.instance_index
    if instance_index != 0:
        key_values += ["StatefulSetInstanceIndex", instance_index]
    spec_differences = operation.statefulset_spec_update_operation.spec_differences
    if spec_differences:
        key_values += ["StatefulSetSpecDifferences", spec_differences]
    return key_values


class BlockingOperationLogger:
    """Writes the state of the blocking operations to the context's log."""

    def __init__(self, context: KubegresContext, blocking_operation: BlockingOperation) -> None:
        self._context = context
        self._blocking_operation = blocking_operation

    def log(self) -> None:
        self._log_active_operation()
        self._log_previous_operation()

    def _log_active_operation(self) -> None:
        active = self._blocking_operation.active_operation
        if not active.operation_id:
            self._context.log.info("Active Blocking-Operation: None")
            return
        key_values = operation_key_values(active)
        key_values += [
            "NbreSecondsLeftBeforeTimeOut",
            self._blocking_operation.seconds_left_before_timeout(),
        ]
        self._context.log.info("Active Blocking-Operation ", *key_values)

    def _log_previous_operation(self) -> None:
        previous = self._blocking_operation.previously_active_operation
        if not previous.operation_id:
            self._context.log.info("Previous Blocking-Operation: None")
            return
        self._context.log.info("Previous Blocking-Operation ", *operation_key_values(previous))