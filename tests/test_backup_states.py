import pytest

from kubegres.backup_states import (
    BackUpStates,
    InMemoryClient,
    NotFoundError,
    load_backup_states,
)
from kubegres.status import EVENT_TYPE_WARNING, KubegresContext


def _cronjob(name, volumes, status=None):
    return {
        "kind": "CronJob",
        "metadata": {"name": name, "namespace": "default"},
        "spec": {"jobTemplate": {"spec": {"template": {"spec": {"volumes": volumes}}}}},
        "status": status or {},
    }


def _pvc(name):
    return {"kind": "PersistentVolumeClaim", "metadata": {"name": name, "namespace": "default"}}


class _FailingClient:
    def get(self, kind, namespace, name):
        raise RuntimeError("connection refused")


def test_client_round_trip_returns_copies():
    client = InMemoryClient()
    pvc = _pvc("my-pvc")
    client.create(pvc)
    fetched = client.get("PersistentVolumeClaim", "default", "my-pvc")
    assert fetched == pvc
    fetched["metadata"]["name"] = "changed"
    assert client.get("PersistentVolumeClaim", "default", "my-pvc") == pvc


def test_client_missing_and_duplicate():
    client = InMemoryClient()
    with pytest.raises(NotFoundError):
        client.get("PersistentVolumeClaim", "default", "absent")
    client.create(_pvc("a"))
    with pytest.raises(ValueError):
        client.create(_pvc("a"))
    client.delete(_pvc("a"))
    with pytest.raises(NotFoundError):
        client.delete(_pvc("a"))


def test_nothing_deployed():
    context = KubegresContext(name="mypostgres", backup_pvc_name="backup-pvc")
    states = load_backup_states(context, InMemoryClient())
    assert states == BackUpStates()
    assert context.log.events == []


def test_cronjob_and_pvc_deployed():
    client = InMemoryClient()
    volumes = [
        {"name": "backup-volume", "persistentVolumeClaim": {"claimName": "backup-pvc"}},
        {"name": "postgres-config", "configMap": {"name": "base-kubegres-config"}},
    ]
    client.create(
        _cronjob("backup-mypostgres", volumes, {"lastScheduleTime": "2021-05-01T10:00:00Z"})
    )
    client.create(_pvc("backup-pvc"))
    context = KubegresContext(name="mypostgres", backup_pvc_name="backup-pvc")

    states = load_backup_states(context, client)

    assert states.is_cronjob_deployed
    assert states.is_pvc_deployed
    assert states.config_map == "base-kubegres-config"
    assert states.cronjob_last_schedule_time == "2021-05-01T10:00:00Z"
    assert states.deployed_cronjob["metadata"]["name"] == "backup-mypostgres"


def test_cronjob_with_single_volume_has_no_config_map():
    client = InMemoryClient()
    client.create(_cronjob("backup-mypostgres", [{"name": "backup-volume"}]))
    context = KubegresContext(name="mypostgres", backup_pvc_name="backup-pvc")
    states = load_backup_states(context, client)
    assert states.is_cronjob_deployed
    assert states.config_map == ""
    assert states.cronjob_last_schedule_time == ""
    assert not states.is_pvc_deployed


def test_loading_error_is_logged_and_raised():
    context = KubegresContext(name="mypostgres", backup_pvc_name="backup-pvc")
    with pytest.raises(RuntimeError):
        load_backup_states(context, _FailingClient())
    assert len(context.log.events) == 1
    event = context.log.events[0]
    assert event.reason == "BackUpCronJobLoadingErr"
    assert event.event_type == EVENT_TYPE_WARNING