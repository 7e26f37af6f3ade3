# addonmgr

Tools for managing the lifecycle of Kubernetes addons through Argo
workflows. An addon is a mapping that describes a package (`pkgName`,
`pkgVersion`, `pkgType`, ...), its parameters and a workflow template for
each lifecycle step: `prereqs`, `install`, `validate` and `delete`. This
package turns those templates into ready-to-submit workflows, submits them
through a resource client, maps workflow phases to addon phases, and
includes helpers for creating addons and CRDs from manifest files.

## Installation

```
pip install addonmgr
```

For running the test suite:

```
pip install "addonmgr[test]"
pytest
```

## Modules

- `addonmgr.common` – the enums `LifecycleStep`, `ApplicationAssemblyPhase`
  and `WorkflowPhase`, the abstract `Validator` interface, and helpers
  `contains_string`, `remove_string`, `current_timestamp_ms`, `is_expired`,
  `convert_workflow_phase_to_addon_phase` and
  `extract_checksum_and_lifecycle_step`.
- `addonmgr.kube` – resource identifiers (`GroupVersionResource`,
  `addon_gvr()`, `crd_gvr()`, `secret_gvr()`, `workflow_gvr()`),
  `workflow_type()`, `to_unstructured()`, and two resource clients with the
  same `get`/`create`/`update`/`delete`/`list` methods:
  `InMemoryResourceClient`, which keeps objects in memory, and
  `KubectlClient`, which runs `kubectl`. Missing and duplicate objects raise
  `NotFoundError` and `AlreadyExistsError`.
- `addonmgr.workflow_builder` – `WorkflowBuilder` assembles an install or
  delete workflow from Python scripts and resource manifests;
  `workflow_to_yaml()` renders a workflow as YAML.
- `addonmgr.workflow` – `WorkflowProxy` and `WorkflowLifecycle`.
  `WorkflowLifecycle.install()` parses a workflow template, adds the addon's
  namespace, package fields, cluster context, additional configs and data
  as workflow parameters, labels every embedded resource manifest (and adds
  an IAM role annotation when the workflow type has a `role`), sets a
  default TTL of 72 hours and an active deadline of 300 seconds when none
  is given, adds the controller instance-id label, sets the addon as owner
  and creates the workflow. If the workflow already exists its phase is
  converted to an addon phase instead. `WorkflowLifecycle.delete()` removes
  a workflow by name.
- `addonmgr.resources` – read Addon and CustomResourceDefinition manifests
  (`parse_addon_yaml`, `parse_crd_yaml`, `parse_custom_resource_yaml`) and
  create, update or delete them through a resource client (`create_addon`,
  `delete_addon`, `create_load_test_addon`, `create_crd`, `delete_crd`,
  `crd_exists`); `kubectl_apply()` runs `kubectl apply -f` on a file.
- `addonmgr.version` – `to_string()` returns the version, commit and build
  date as a JSON object.

## Examples

Work out which lifecycle step and checksum a workflow belongs to:

```python
from addonmgr.common import extract_checksum_and_lifecycle_step

checksum, step = extract_checksum_and_lifecycle_step("my-addon-install-1234567890-wf")
```

A name that does not end in `-wf`, or names an unknown step, raises
`ValueError`.

Build a workflow that applies a set of manifests:

```python
from addonmgr.workflow_builder import WorkflowBuilder, workflow_to_yaml

manifest = "apiVersion: v1\nkind: Namespace\nmetadata:\n  name: demo\n"
workflow = WorkflowBuilder().resources([manifest]).build()
print(workflow_to_yaml(workflow))
```

Submit an addon's install workflow to an in-memory client:

```python
from addonmgr.common import LifecycleStep
from addonmgr.kube import InMemoryResourceClient, workflow_gvr
from addonmgr.workflow import WorkflowLifecycle, WorkflowProxy

addon = {
    "metadata": {"name": "demo", "namespace": "default"},
    "spec": {"pkgName": "demo", "pkgVersion": "1.0.0", "params": {"namespace": "demo-ns"}},
}
template = """
apiVersion: argoproj.io/v1alpha1
kind: Workflow
spec:
  entrypoint: entry
  templates:
  - name: entry
"""
client = InMemoryResourceClient()
lifecycle = WorkflowLifecycle(client, addon)
phase = lifecycle.install(
    WorkflowProxy("demo-install-abc-wf", {"template": template}, LifecycleStep.INSTALL)
)
print(phase, client.get(workflow_gvr(), "default", "demo-install-abc-wf")["spec"])
```

An invalid template raises `ValueError`; a failure to look up or create
the workflow raises `RuntimeError`.

## Load test

`addonmgr-loadtest` uses `KubectlClient` to create, from ten threads, many
uniquely named copies of the Addon in `docs/examples/eventrouter.yaml`
(relative to the working directory), and waits for each to receive a
status. It reads these environment variables:

- `LOADTEST_START_NUMBER`, `LOADTEST_END_NUMBER` – printed at start-up.
- `MANAGER_PID`, `WFCTRL_PID` – process ids of the addon manager and the
  workflow controller, whose CPU and memory use is sampled every two
  minutes.

Samples, together with the number of lines `kubectl get addons` prints in
the `addon-manager-system` namespace, are written to `summary.txt` in the
working directory, which is replaced on each run. `kubectl` and `ps` must
be on the `PATH`.

```
addonmgr-loadtest
```

## What this package does not do

There is no controller here that watches addons and reconciles them
continuously, and no command-line tool for managing addons: the package
builds and submits workflows when called, and leaves running them to a
workflow controller in the cluster. `KubectlClient` talks to a cluster only
through the `kubectl` program.