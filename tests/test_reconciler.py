from dataclasses import dataclass

import pytest

from kubegres.backup_states import InMemoryClient
from kubegres.operation import BlockingOperation
from kubegres.operation_logger import BlockingOperationLogger
from kubegres.reconciler import KubegresReconciler, ReconcileComponents, ReconcileResult
from kubegres.status import KubegresBlockingOperation, KubegresContext, KubegresStatus

NOW = 1000


@dataclass
class _CheckResult:
    has_spec_fatal_error: bool


class _Recorder:
    def __init__(self):
        self.calls = []


class _SpecChecker:
    def __init__(self, recorder, fatal=False):
        self.recorder = recorder
        self.fatal = fatal

    def check_spec(self):
        self.recorder.calls.append("check")
        return _CheckResult(self.fatal)


class _Enforcer:
    def __init__(self, recorder, label, context=None, error=None):
        self.recorder = recorder
        self.label = label
        self.context = context
        self.error = error

    def enforce_spec(self):
        self.recorder.calls.append(self.label)
        if self.context is not None:
            self.context.status.enforced_replicas += 1
        if self.error is not None:
            raise self.error


class _NullLogger:
    def log(self):
        pass


def _kubegres(name="mypostgres"):
    return {"kind": "Kubegres", "metadata": {"name": name, "namespace": "default"}}


def _setup(fatal=False, count_error=None, persist=None, active=None):
    recorder = _Recorder()
    status = KubegresStatus(persist=persist)
    if active is not None:
        status.blocking_operation = active
    context = KubegresContext(name="mypostgres", status=status)
    operation = BlockingOperation(context, clock=lambda: NOW)
    components = ReconcileComponents(
        context=context,
        blocking_operation=operation,
        blocking_operation_logger=BlockingOperationLogger(context, operation),
        resources_states_logger=_NullLogger(),
        spec_checker=_SpecChecker(recorder, fatal),
        resources_count_spec_enforcer=_Enforcer(recorder, "count", context, count_error),
        all_statefulsets_spec_enforcer=_Enforcer(recorder, "statefulsets"),
    )
    received = []

    def factory(resource):
        received.append(resource)
        return components

    client = InMemoryClient()
    client.create(_kubegres())
    sleeps = []
    reconciler = KubegresReconciler(client, factory, sleep=sleeps.append)
    return reconciler, recorder, received, sleeps


def test_missing_resource_is_not_an_error():
    reconciler, recorder, received, sleeps = _setup()
    assert reconciler.reconcile("default", "absent") == ReconcileResult()
    assert received == []
    assert sleeps == [1.0]


def test_enforces_spec_in_order():
    persisted = []
    reconciler, recorder, received, _ = _setup(persist=persisted.append)
    assert reconciler.reconcile("default", "mypostgres") == ReconcileResult()
    assert received == [_kubegres()]
    assert recorder.calls == ["check", "count", "statefulsets"]
    assert len(persisted) == 1


def test_fatal_spec_error_stops_enforcement():
    reconciler, recorder, _, _ = _setup(fatal=True)
    assert reconciler.reconcile("default", "mypostgres") == ReconcileResult()
    assert recorder.calls == ["check"]


@pytest.mark.parametrize("seconds_left, expected", [(15, 15), (45, 20)])
def test_active_operation_requeues(seconds_left, expected):
    active = KubegresBlockingOperation(
        operation_id="op", step_id="step", time_out_epoc_in_seconds=NOW + seconds_left
    )
    reconciler, recorder, _, _ = _setup(active=active)
    result = reconciler.reconcile("default", "mypostgres")
    assert result == ReconcileResult(requeue=True, requeue_after=expected)
    assert recorder.calls == []


def test_enforcer_error_propagates_and_status_is_persisted():
    persisted = []
    reconciler, recorder, _, _ = _setup(
        count_error=RuntimeError("boom"), persist=persisted.append
    )
    with pytest.raises(RuntimeError, match="boom"):
        reconciler.reconcile("default", "mypostgres")
    assert recorder.calls == ["check", "count"]
    assert persisted[0].enforced_replicas == 1


def test_status_update_error_is_raised_when_nothing_else_failed():
    def persist(status):
        raise ConnectionError("status update failed")

    reconciler, _, _, _ = _setup(persist=persist)
    with pytest.raises(ConnectionError):
        reconciler.reconcile("default", "mypostgres")


def test_original_error_wins_over_status_update_error():
    def persist(status):
        raise ConnectionError("status update failed")

    reconciler, _, _, _ = _setup(count_error=KeyError("enforce"), persist=persist)
    with pytest.raises(KeyError):
        reconciler.reconcile("default", "mypostgres")


def test_factory_error_propagates():
    def factory(resource):
        raise ValueError("bad resource")

    client = InMemoryClient()
    client.create(_kubegres())
    reconciler = KubegresReconciler(client, factory, sleep=lambda seconds: None)
    with pytest.raises(ValueError, match="bad resource"):
        reconciler.reconcile("default", "mypostgres")