"""State of the backup resources deployed for a Kubegres resource."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from kubegres.status import KubegresContext

CRON_JOB_NAME_PREFIX = "backup-"
KIND_CRON_JOB = "CronJob"
KIND_PVC = "PersistentVolumeClaim"

Resource = dict[str, Any]


class NotFoundError(LookupError):
    """Raised when a requested resource does not exist."""

    def __init__(self, kind: str, namespace: str, name: str) -> None:
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f"{kind} '{namespace}/{name}' not found")


def _resource_key(resource: Resource) -> tuple[str, str, str]:
    metadata = resource.get("metadata", {})
    return resource["kind"], metadata.get("namespace", "default"), metadata["name"]


class InMemoryClient:
    """A resource store keyed by kind, namespace and name."""

    def __init__(self) -> None:
        self._resources: dict[tuple[str, str, str], Resource] = {}

    def get(self, kind: str, namespace: str, name: str) -> Resource:
        try:
            return copy.deepcopy(self._resources[(kind, namespace, name)])
        except KeyError:
            raise NotFoundError(kind, namespace, name) from None

    def create(self, resource: Resource) -> None:
        key = _resource_key(resource)
        if key in self._resources:
            raise ValueError(f"{key[0]} '{key[1]}/{key[2]}' already exists")
        self._resources[key] = copy.deepcopy(resource)

    def delete(self, resource: Resource) -> None:
        key = _resource_key(resource)
        if key not in self._resources:
            raise NotFoundError(*key)
        del self._resources[key]


class _Client(Protocol):
    def get(self, kind: str, namespace: str, name: str) -> Resource: ...


@dataclass
class BackUpStates:
    """Whether the backup CronJob and its PersistentVolumeClaim are deployed."""

    is_cronjob_deployed: bool = False
    is_pvc_deployed: bool = False
    config_map: str = ""
    cronjob_last_schedule_time: str = ""
    deployed_cronjob: Optional[Resource] = field(default=None, repr=False)


def _find(
    context: KubegresContext, client: _Client, kind: str, name: str, reason: str, label: str
) -> Optional[Resource]:
    try:
        return client.get(kind, context.namespace, name)
    except NotFoundError:
        return None
    except Exception as error:
        context.log.error_event(
            reason, error, f"Unable to load any deployed BackUp {kind}.", label, name
        )
        raise


def load_backup_states(context: KubegresContext, client: _Client) -> BackUpStates:
    """Read the deployed backup CronJob and PVC of the given Kubegres resource."""
    states = BackUpStates()

    cronjob_name = CRON_JOB_NAME_PREFIX + context.name
    cronjob = _find(
        context, client, KIND_CRON_JOB, cronjob_name, "BackUpCronJobLoadingErr", "CronJob name"
    )
    if cronjob is not None:
        states.deployed_cronjob = cronjob
        states.is_cronjob_deployed = True
        volumes = (
            cronjob.get("spec", {})
            .get("jobTemplate", {})
            .get("spec", {})
            .get("template", {})
            .get("spec", {})
            .get("volumes", [])
        )
        if len(volumes) >= 2:
            states.config_map = volumes[1].get("configMap", {}).get("name", "")
        last_schedule_time = cronjob.get("status", {}).get("lastScheduleTime")
        if last_schedule_time is not None:
            states.cronjob_last_schedule_time = str(last_schedule_time)

    pvc = _find(
        context,
        client,
        KIND_PVC,
        context.backup_pvc_name,
        "BackUpPersistentVolumeClaimLoadingErr",
        "PersistentVolumeClaim name",
    )
    states.is_pvc_deployed = pvc is not None
    return states