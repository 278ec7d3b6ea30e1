"""Status records of a Kubegres resource and the context shared by the controllers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"


@dataclass(frozen=True)
class StatefulSetOperation:
    """The StatefulSet a blocking operation is acting on."""

    instance_index: int = 0
    name: str = ""


@dataclass(frozen=True)
class StatefulSetSpecUpdateOperation:
    """Details of a spec update carried by a blocking operation."""

    spec_differences: str = ""


@dataclass(frozen=True)
class KubegresBlockingOperation:
    """A blocking operation as stored in the status of a Kubegres resource."""

    operation_id: str = ""
    step_id: str = ""
    time_out_epoc_in_seconds: int = 0
    has_timed_out: bool = False
    statefulset_operation: StatefulSetOperation = field(default_factory=StatefulSetOperation)
    statefulset_spec_update_operation: StatefulSetSpecUpdateOperation = field(
        default_factory=StatefulSetSpecUpdateOperation
    )


@dataclass
class KubegresStatus:
    """Mutable status of a Kubegres resource which is persisted only when it changed."""

    blocking_operation: KubegresBlockingOperation = field(default_factory=KubegresBlockingOperation)
    previous_blocking_operation: KubegresBlockingOperation = field(
        default_factory=KubegresBlockingOperation
    )
    enforced_replicas: int = 0
    last_created_instance_index: int = 0
    persist: Optional[Callable[["KubegresStatus"], None]] = field(
        default=None, repr=False, compare=False
    )
    _saved: tuple = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._saved = self._snapshot()

    def _snapshot(self) -> tuple:
        return (
            self.blocking_operation,
            self.previous_blocking_operation,
            self.enforced_replicas,
            self.last_created_instance_index,
        )

    def update_status_if_changed(self) -> bool:
        """Persist the status if it differs from the last persisted state.

        Returns True when a change was persisted. Errors raised by the
        persist callback propagate and leave the status marked as changed.
        """
        current = self._snapshot()
        if current == self._saved:
            return False
        if self.persist is not None:
            self.persist(self)
        self._saved = current
        return True


@dataclass(frozen=True)
class EventRecord:
    """An event emitted about a Kubegres resource."""

    event_type: str
    reason: str
    message: str


def _format_key_values(args: tuple[Any, ...]) -> str:
    pairs = [args[i : i + 2] for i in range(0, len(args), 2)]
    parts = []
    for pair in pairs:
        if len(pair) == 2:
            parts.append(f"{pair[0]}={pair[1]!r}")
        else:
            parts.append(f"{pair[0]}=<missing>")
    return (" " + " ".join(parts)) if parts else ""


class EventLog:
    """Logs messages with key/value pairs and records emitted events."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("kubegres")
        self.events: list[EventRecord] = []

    def info(self, message: str, *args: Any) -> None:
        self._logger.info("%s%s", message, _format_key_values(args))

    def info_event(self, reason: str, message: str, *args: Any) -> None:
        self.info(message, *args)
        self.events.append(EventRecord(EVENT_TYPE_NORMAL, reason, message))

    def error_event(self, reason: str, error: BaseException, message: str, *args: Any) -> None:
        self._logger.error("%s%s error=%s", message, _format_key_values(args), error)
        self.events.append(EventRecord(EVENT_TYPE_WARNING, reason, message))


@dataclass
class KubegresContext:
    """What the controllers know about the Kubegres resource being reconciled."""

    name: str
    namespace: str = "default"
    status: KubegresStatus = field(default_factory=KubegresStatus)
    log: EventLog = field(default_factory=EventLog)
    backup_pvc_name: str = ""

    def statefulset_name(self, instance_index: int) -> str:
        return f"{self.name}-{instance_index}"