"""Reconciliation loop moving a Kubegres cluster towards its desired state."""

from __future__ import annotations

import contextlib
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from kubegres.backup_states import Resource
from kubegres.operation import BlockingOperation
from kubegres.status import KubegresContext

KIND_KUBEGRES = "Kubegres"


@dataclass(frozen=True)
class ReconcileResult:
    """Whether and when the resource should be reconciled again."""

    requeue: bool = False
    requeue_after: float = 0


class _Loggable(Protocol):
    def log(self) -> None: ...


class _Enforcer(Protocol):
    def enforce_spec(self) -> None: ...


class _SpecChecker(Protocol):
    def check_spec(self) -> Any: ...


class _Client(Protocol):
    def get(self, kind: str, namespace: str, name: str) -> Resource: ...


@dataclass
class ReconcileComponents:
    """The collaborators needed to reconcile one Kubegres resource."""

    context: KubegresContext
    blocking_operation: BlockingOperation
    blocking_operation_logger: _Loggable
    resources_states_logger: _Loggable
    spec_checker: _SpecChecker
    resources_count_spec_enforcer: _Enforcer
    all_statefulsets_spec_enforcer: _Enforcer


ComponentsFactory = Callable[[Resource], ReconcileComponents]


class KubegresReconciler:
    """Reconciles Kubegres resources read through a client."""

    def __init__(
        self,
        client: _Client,
        components_factory: ComponentsFactory,
        logger: Optional[logging.Logger] = None,
        settle_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._components_factory = components_factory
        self._logger = logger or logging.getLogger("kubegres")
        self._settle_seconds = settle_seconds
        self._sleep = sleep

    def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        self._logger.info("=" * 55)
        self._logger.info("=" * 55)

        kubegres = self._fetch_kubegres(namespace, name)
        if kubegres is None:
            self._logger.info("Kubegres resource does not exist")
            return ReconcileResult()

        components = self._components_factory(kubegres)
        status = components.context.status
        try:
            result = self._run(components)
        except Exception:
            with contextlib.suppress(Exception):
                status.update_status_if_changed()
            raise
        status.update_status_if_changed()
        return result

    def _fetch_kubegres(self, namespace: str, name: str) -> Optional[Resource]:
        # Give the API server time to settle so the latest version is read.
        self._sleep(self._settle_seconds)
        try:
            return self._client.get(KIND_KUBEGRES, namespace, name)
        except Exception:
            self._logger.info("Kubegres resource does not exist")
            return None

    @staticmethod
    def _run(components: ReconcileComponents) -> ReconcileResult:
        seconds_left = components.blocking_operation.load_active_operation()
        components.blocking_operation_logger.log()
        components.resources_states_logger.log()

        if seconds_left > 0:
            return ReconcileResult(requeue=True, requeue_after=seconds_left)

        check = components.spec_checker.check_spec()
        if check.has_spec_fatal_error:
            return ReconcileResult()

        components.resources_count_spec_enforcer.enforce_spec()
        components.all_statefulsets_spec_enforcer.enforce_spec()
        return ReconcileResult()