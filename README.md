# kubegres

The reconciliation core of an operator that runs a PostgreSQL cluster made of
one primary, some replicas and an optional backup job.

All cluster state is held in plain Python objects. The package has no
dependencies. It reads resources through a client object, and it ships
`InMemoryClient`, a dictionary-backed store, for local use and tests.

## Modules

### `kubegres.status`

- `KubegresBlockingOperation`, `StatefulSetOperation` and
  `StatefulSetSpecUpdateOperation` are frozen dataclasses. They describe a
  blocking operation as it is stored in a resource's status.
- `KubegresStatus` holds the current and previous blocking operation,
  `enforced_replicas` and `last_created_instance_index`.
  `update_status_if_changed()` compares the status with the last saved
  snapshot. When they differ it calls the optional `persist` callback and
  returns `True`. When nothing changed it returns `False`.
- `EventLog` writes messages with key/value pairs to a `logging.Logger`.
  `info_event` and `error_event` also add an `EventRecord` to `events`, with
  event type `"Normal"` or `"Warning"` respectively.
- `KubegresContext` groups a resource's name, namespace, status, log and
  backup PVC name. `statefulset_name(i)` returns `"<name>-<i>"`.

### `kubegres.operation`

`BlockingOperation` keeps at most one long-running operation active at a time.

- Each operation/step pair needs a `BlockingOperationConfig`, registered with
  `add_config`. A config gives the timeout in seconds and an optional
  completion checker. It can also say that a completed step moves into the
  transition step (`TRANSITION_OPERATION_STEP_ID`) instead of being removed.
- Three methods activate an operation: `activate_operation`,
  `activate_operation_on_statefulset` and
  `activate_operation_on_statefulset_spec_update`. Each records the operation
  in the context's status, with a timeout measured from the injectable
  `clock`.
- Activation raises `BlockingOperationError` when a different operation is
  already active, or when no config is registered for the pair.
- `load_active_operation()` reads the operation back from the status and
  retires it if it has completed or timed out. It returns the number of
  seconds to wait before the next pass, capped at 20.
- Timing is reported by `seconds_left_before_timeout()`,
  `seconds_since_operation_started()` and `seconds_since_timed_out()`.

The module also defines the operation and step identifiers that the cluster
uses, such as `OPERATION_ID_PRIMARY_DB_COUNT_SPEC_ENFORCEMENT`.

### `kubegres.operation_logger`

`BlockingOperationLogger(context, blocking_operation).log()` writes the active
and the previously active operation to the context's log.
`operation_key_values(op)` returns the flat key/value list used for those log
lines.

### `kubegres.backup_states`

`load_backup_states(context, client)` looks up two resources: the CronJob named
`backup-<name>` and the PVC named by `context.backup_pvc_name`. It returns a
`BackUpStates` with the fields `is_cronjob_deployed`, `is_pvc_deployed`,
`config_map`, `cronjob_last_schedule_time` and `deployed_cronjob`.

- A `NotFoundError` from the client counts as "not deployed".
- Any other error is recorded as a warning event and then re-raised.

`InMemoryClient` stores resources as dictionaries keyed by kind, namespace and
name:

- `get` raises `NotFoundError` for a missing resource.
- `create` raises `ValueError` if the resource already exists.
- `delete` raises `NotFoundError` if the resource is missing.

### `kubegres.reconciler`

`KubegresReconciler(client, components_factory).reconcile(namespace, name)`
runs one reconcile pass and returns a `ReconcileResult`:

1. It sleeps for `settle_seconds`, then reads the `Kubegres` resource. If the
   read fails, it returns a result without requeue.
2. It builds `ReconcileComponents` from the resource through
   `components_factory`.
3. It loads the active blocking operation and logs the state. If seconds remain
   before the operation times out, it returns a result with `requeue=True` and
   `requeue_after` set to those seconds.
4. It calls the spec checker. If the result has `has_spec_fatal_error`, the
   pass stops there.
5. Otherwise it runs the resources-count enforcer, then the StatefulSets spec
   enforcer.

The status is saved with `update_status_if_changed()` at the end of every pass
that reached step 2, including passes that raise.

## Installing

```
pip install .
```

Tests:

```
pip install .[test]
pytest
```

## Example

```python
from kubegres.backup_states import InMemoryClient, load_backup_states
from kubegres.operation import (
    OPERATION_ID_PRIMARY_DB_COUNT_SPEC_ENFORCEMENT,
    OPERATION_STEP_ID_PRIMARY_DB_DEPLOYING,
    BlockingOperation,
    BlockingOperationConfig,
)
from kubegres.status import KubegresContext

context = KubegresContext(name="mydb", backup_pvc_name="mydb-backup")

ops = BlockingOperation(context)
ops.add_config(BlockingOperationConfig(
    operation_id=OPERATION_ID_PRIMARY_DB_COUNT_SPEC_ENFORCEMENT,
    step_id=OPERATION_STEP_ID_PRIMARY_DB_DEPLOYING,
    timeout_seconds=300,
))
ops.activate_operation_on_statefulset(
    OPERATION_ID_PRIMARY_DB_COUNT_SPEC_ENFORCEMENT,
    OPERATION_STEP_ID_PRIMARY_DB_DEPLOYING,
    1,
)
print(context.status.blocking_operation.statefulset_operation.name)  # mydb-1

client = InMemoryClient()
client.create({
    "kind": "PersistentVolumeClaim",
    "metadata": {"name": "mydb-backup", "namespace": "default"},
})
states = load_backup_states(context, client)
print(states.is_pvc_deployed, states.is_cronjob_deployed)  # True False
```

## What this package does not do

- It does not connect to a real cluster. There is no client for a cluster API
  here; `InMemoryClient` is the only client included.
- It has no command-line program, no controller manager and no watch loop.
  `reconcile` runs a single pass when you call it.
- It does not include a spec checker, resource templates, or enforcers for
  primaries, replicas, services, backup CronJobs or StatefulSet specs. The
  reconciler takes these as collaborators through `ReconcileComponents`.
- It stores the status only through the `persist` callback you pass to
  `KubegresStatus`.