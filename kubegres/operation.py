"""Blocking operations: at most one long-running operation active at a time."""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from kubegres.status import (
    KubegresBlockingOperation,
    KubegresContext,
    StatefulSetOperation,
    StatefulSetSpecUpdateOperation,
)

TRANSITION_OPERATION_STEP_ID = (
    "Transition step: waiting either for the next step to start or for the operation to be removed ..."
)

OPERATION_ID_BASE_CONFIG_COUNT_SPEC_ENFORCEMENT = "Base config count spec enforcement"
OPERATION_STEP_ID_BASE_CONFIG_DEPLOYING = "Base config is deploying"

OPERATION_ID_PRIMARY_DB_COUNT_SPEC_ENFORCEMENT = "Primary DB count spec enforcement"
OPERATION_STEP_ID_PRIMARY_DB_DEPLOYING = "Primary DB is deploying"
OPERATION_STEP_ID_PRIMARY_DB_WAITING_BEFORE_FAILING_OVER = (
    "Waiting few seconds before failing over by promoting a Replica DB as a Primary DB"
)
OPERATION_STEP_ID_PRIMARY_DB_FAILING_OVER = "Failing over by promoting a Replica DB as a Primary DB"

OPERATION_ID_REPLICA_DB_COUNT_SPEC_ENFORCEMENT = "Replica DB count spec enforcement"
OPERATION_STEP_ID_REPLICA_DB_DEPLOYING = "Replica DB is deploying"
OPERATION_STEP_ID_REPLICA_DB_UNDEPLOYING = "Replica DB is undeploying"

OPERATION_ID_STATEFULSET_SPEC_ENFORCING = "Enforcing StatefulSet's Spec"
OPERATION_STEP_ID_STATEFULSET_SPEC_UPDATING = "StatefulSet's spec is updating"
OPERATION_STEP_ID_STATEFULSET_POD_SPEC_UPDATING = "StatefulSet Pod's spec is updating"
OPERATION_STEP_ID_STATEFULSET_WAITING_ON_STUCK_POD = "Attempting to fix a stuck Pod by recreating it"

MAX_REQUEUE_SECONDS = 20

CompletionChecker = Callable[[KubegresBlockingOperation], bool]


@dataclass(frozen=True)
class BlockingOperationConfig:
    """How a given operation step times out and how its completion is detected.

    Once a step completes it is removed and becomes the previous operation,
    unless ``after_completion_move_to_transition_step`` is set: the operation
    then stays active in the transition step, keeping other operations from
    starting. A step with a completion checker that times out stays active
    until it is removed explicitly.
    """

    operation_id: str
    step_id: str
    timeout_seconds: int = 0
    completion_checker: Optional[CompletionChecker] = None
    after_completion_move_to_transition_step: bool = False


_NO_CONFIG = BlockingOperationConfig(operation_id="", step_id="")


class BlockingErrorReason(Enum):
    ALREADY_ACTIVE = (
        "There is already an active operation which is running. "
        "We cannot have more than 1 active operation running."
    )
    NO_ASSOCIATED_CONFIG = (
        "The given operationId has not an associated config. "
        "Please associate it by calling the method BlockingOperation.add_config()."
    )


class BlockingOperationError(Exception):
    """Raised when a blocking operation cannot be activated."""

    def __init__(self, reason: BlockingErrorReason, operation_id: str) -> None:
        self.reason = reason
        self.operation_id = operation_id
        super().__init__(
            "Cannot active a blocking operation. Reason: "
            f"OperationId: '{operation_id}' - {reason.value}"
        )

    @property
    def there_is_already_an_active_operation(self) -> bool:
        return self.reason is BlockingErrorReason.ALREADY_ACTIVE

    @property
    def operation_id_has_no_associated_config(self) -> bool:
        return self.reason is BlockingErrorReason.NO_ASSOCIATED_CONFIG


class BlockingOperation:
    """Tracks the active blocking operation stored in the Kubegres status."""

    def __init__(self, context: KubegresContext, clock: Callable[[], float] = time.time) -> None:
        self._context = context
        self._clock = clock
        self._configs: dict[str, BlockingOperationConfig] = {}
        self._active = KubegresBlockingOperation()
        self._previous = KubegresBlockingOperation()

    @property
    def active_operation(self) -> KubegresBlockingOperation:
        return self._active

    @property
    def previously_active_operation(self) -> KubegresBlockingOperation:
        return self._previous

    def add_config(self, config: BlockingOperationConfig) -> None:
        self._configs[self._config_key(config.operation_id, config.step_id)] = config

    def load_active_operation(self) -> int:
        """Load the operation from the status, retire it if done, and return
        the seconds to wait before the next reconciliation (at most 20)."""
        status = self._context.status
        self._active = status.blocking_operation
        self._previous = status.previous_blocking_operation
        self._remove_operation_if_not_active()
        return min(self.seconds_left_before_timeout(), MAX_REQUEUE_SECONDS)

    def is_active_operation_id_different_of(self, operation_id: str) -> bool:
        return self._is_there_active_operation() and self._active.operation_id != operation_id

    def is_active_operation_in_transition(self, operation_id: str) -> bool:
        return (
            self._active.operation_id == operation_id
            and self._active.step_id == TRANSITION_OPERATION_STEP_ID
        )

    def has_active_operation_id_timed_out(self, operation_id: str) -> bool:
        return self._active.operation_id == operation_id and self._active.has_timed_out

    def activate_operation(self, operation_id: str, step_id: str) -> None:
        self._activate(KubegresBlockingOperation(operation_id=operation_id, step_id=step_id))

    def activate_operation_on_statefulset(
        self, operation_id: str, step_id: str, instance_index: int
    ) -> None:
        self._activate(
            KubegresBlockingOperation(
                operation_id=operation_id,
                step_id=step_id,
                statefulset_operation=self._statefulset_operation(instance_index),
            )
        )

    def activate_operation_on_statefulset_spec_update(
        self, operation_id: str, step_id: str, instance_index: int, spec_differences: str
    ) -> None:
        self._activate(
            KubegresBlockingOperation(
                operation_id=operation_id,
                step_id=step_id,
                statefulset_operation=self._statefulset_operation(instance_index),
                statefulset_spec_update_operation=StatefulSetSpecUpdateOperation(spec_differences),
            )
        )

    def remove_active_operation(self) -> None:
        self._remove_active(has_timed_out=False)

    def seconds_since_operation_started(self) -> int:
        timeout = self._config_of(self._active).timeout_seconds
        return timeout - self.seconds_left_before_timeout()

    def seconds_left_before_timeout(self) -> int:
        if self._active.time_out_epoc_in_seconds == 0:
            return 0
        return max(self._active.time_out_epoc_in_seconds - self._now(), 0)

    def seconds_since_timed_out(self) -> int:
        return self._now() - self._active.time_out_epoc_in_seconds

    def _now(self) -> int:
        return int(self._clock())

    @staticmethod
    def _config_key(operation_id: str, step_id: str) -> str:
        return f"{operation_id}_{step_id}"

    def _config_of(self, operation: KubegresBlockingOperation) -> BlockingOperationConfig:
        return self._configs.get(self._config_key(operation.operation_id, operation.step_id), _NO_CONFIG)

    def _statefulset_operation(self, instance_index: int) -> StatefulSetOperation:
        return StatefulSetOperation(
            instance_index=instance_index,
            name=self._context.statefulset_name(instance_index),
        )

    def _is_there_active_operation(self) -> bool:
        return self._active.operation_id != ""

    def _is_in_transition(self) -> bool:
        return self._active.step_id == TRANSITION_OPERATION_STEP_ID

    def _activate(self, operation: KubegresBlockingOperation) -> None:
        if self._is_there_active_operation() and self._active.operation_id != operation.operation_id:
            raise BlockingOperationError(BlockingErrorReason.ALREADY_ACTIVE, operation.operation_id)
        config = self._config_of(operation)
        if config.operation_id != operation.operation_id:
            raise BlockingOperationError(BlockingErrorReason.NO_ASSOCIATED_CONFIG, operation.operation_id)
        operation = replace(operation, time_out_epoc_in_seconds=self._now() + config.timeout_seconds)
        self._active = operation
        self._context.status.blocking_operation = operation

    def _remove_active(self, has_timed_out: bool) -> None:
        if not self._is_in_transition():
            self._previous = replace(self._active, has_timed_out=has_timed_out)
            self._context.status.previous_blocking_operation = self._previous
        self._active = KubegresBlockingOperation()
        self._context.status.blocking_operation = self._active

    def _set_in_transition(self, has_timed_out: bool) -> None:
        self._previous = replace(self._active, has_timed_out=has_timed_out)
        self._context.status.previous_blocking_operation = self._previous
        self._active = replace(
            self._active,
            step_id=TRANSITION_OPERATION_STEP_ID,
            has_timed_out=False,
            time_out_epoc_in_seconds=0,
        )
        self._context.status.blocking_operation = self._active

    def _finish(self, has_timed_out: bool) -> None:
        if self._config_of(self._active).after_completion_move_to_transition_step:
            self._set_in_transition(has_timed_out)
        else:
            self._remove_active(has_timed_out)

    def _remove_operation_if_not_active(self) -> None:
        if not self._is_there_active_operation() or self._is_in_transition():
            return

        has_timed_out = self._active.time_out_epoc_in_seconds - self._now() <= 0
        config = self._config_of(self._active)
        log = self._context.log

        if has_timed_out:
            self._active = replace(self._active, has_timed_out=True)
            if config.completion_checker is None:
                self._finish(has_timed_out)
            else:
                log.info_event(
                    "BlockingOperationTimedOut",
                    "Blocking-Operation timed-out.",
                    "OperationId", self._active.operation_id,
                    "StepId", self._active.step_id,
                )
        elif config.completion_checker is not None and config.completion_checker(self._active):
            log.info_event(
                "BlockingOperationCompleted",
                "Blocking-Operation is successfully completed.",
                "OperationId", self._active.operation_id,
                "StepId", self._active.step_id,
            )
            self._finish(has_timed_out)