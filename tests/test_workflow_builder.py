import yaml

from addonmgr.workflow_builder import (
    DEFAULT_SUBMIT_CONTAINER_IMAGE,
    WorkflowBuilder,
    workflow_to_yaml,
)


def test_default_workflow():
    wf = WorkflowBuilder().build()
    assert wf["apiVersion"] == "argoproj.io/v1alpha1"
    assert wf["kind"] == "Workflow"
    assert wf["metadata"]["generateName"] == "-"

    spec = wf["spec"]
    assert spec["entrypoint"] == "entry"
    assert spec["serviceAccountName"] == "addon-manager-workflow-installer-sa"

    templates = spec["templates"]
    assert len(templates) == 2
    assert templates[0]["name"] == "entry"
    assert templates[1]["name"] == "submit"

    container = templates[1]["container"]
    assert container["args"] == ["kubectl apply -f /tmp/doc"]
    assert container["command"] == ["sh", "-c"]
    assert container["image"] == DEFAULT_SUBMIT_CONTAINER_IMAGE

    inputs = templates[1]["inputs"]
    assert inputs["parameters"] == []
    assert inputs["artifacts"] == []


def test_delete_workflow():
    wf = WorkflowBuilder().delete().build()
    assert wf["apiVersion"] == "argoproj.io/v1alpha1"
    assert wf["kind"] == "Workflow"
    assert wf["metadata"]["generateName"] == "-"

    spec = wf["spec"]
    assert spec["entrypoint"] == "entry"
    assert spec["serviceAccountName"] == "addon-manager-workflow-installer-sa"

    templates = spec["templates"]
    assert len(templates) == 2
    assert templates[0]["name"] == "delete-wf"
    assert templates[1]["name"] == "delete-ns"

    steps = templates[0]["steps"]
    assert steps[0][0]["name"] == "delete-ns"
    assert steps[0][0]["template"] == "delete-ns"

    container = templates[1]["container"]
    assert container["args"] == ["kubectl delete all -n {{workflow.parameters.namespace}} --all"]
    assert container["command"] == ["sh", "-c"]
    assert container["image"] == DEFAULT_SUBMIT_CONTAINER_IMAGE


def test_delete_does_not_leak_to_other_builders():
    WorkflowBuilder().delete().build()
    assert WorkflowBuilder().build()["spec"]["templates"][0]["name"] == "entry"


def test_resources_joined_into_artifact():
    wf = WorkflowBuilder().resources(["kind: A", "kind: B\n"]).build()
    entry, submit = wf["spec"]["templates"]
    artifact = submit["inputs"]["artifacts"][0]
    assert artifact["name"] == "doc"
    assert artifact["path"] == "/tmp/doc"
    assert artifact["raw"]["data"] == "kind: A\n---\nkind: B\n---\n"
    assert entry["steps"][0][0]["name"] == "install"
    assert entry["steps"][0][0]["template"] == "submit"


def test_scripts_add_templates_and_parameters():
    wf = WorkflowBuilder().scripts({"gen.py": "print(1)"}).resources(["kind: A\n"]).build()
    templates = wf["spec"]["templates"]
    assert [t["name"] for t in templates] == ["gen", "entry", "submit"]
    assert templates[0]["script"]["source"] == "print(1)"
    steps = templates[1]["steps"][0]
    assert [s["name"] for s in steps] == ["gen", "install"]
    assert steps[1]["arguments"]["parameters"] == [
        {"name": "gen", "value": "{{steps.gen.outputs.result}}"}
    ]
    assert templates[2]["inputs"]["parameters"] == [{"name": "gen"}]


def test_build_twice_does_not_duplicate_templates():
    builder = WorkflowBuilder().resources(["kind: A\n"])
    builder.build()
    second = builder.build()
    templates = second["spec"]["templates"]
    assert [t["name"] for t in templates] == ["entry", "submit"]
    assert len(templates[1]["inputs"]["artifacts"]) == 1
    assert [s["name"] for s in templates[0]["steps"][0]] == ["install"]


def test_yaml_round_trip():
    wf = WorkflowBuilder().resources(["kind: A\n"]).build()
    assert yaml.safe_load(workflow_to_yaml(wf)) == wf