"""Builds install and delete workflows from scripts and resources."""

from __future__ import annotations

import copy

import yaml

DEFAULT_PYTHON3_SCRIPT_IMAGE = "python:3"
DEFAULT_SUBMIT_CONTAINER_IMAGE = "expert360/kubectl-awscli:v1.11.2"
SERVICE_ACCOUNT_NAME = "addon-manager-workflow-installer-sa"


class WorkflowBuilder:
    """Accumulates templates and steps into an unstructured workflow."""

    def __init__(self):
        self._templates: list[dict] = []
        self._entry_steps: list[dict] = []
        self._submit_step = {
            "name": "install",
            "arguments": {"parameters": [], "artifacts": []},
            "template": "submit",
        }
        self._submit_template = {
            "name": "submit",
            "inputs": {"parameters": [], "artifacts": []},
            "container": {
                "image": DEFAULT_SUBMIT_CONTAINER_IMAGE,
                "command": ["sh", "-c"],
                "args": ["kubectl apply -f /tmp/doc"],
            },
        }
        self._delete = False

    def scripts(self, scripts) -> "WorkflowBuilder":
        """Add a script template and step for each name and source."""
        for name, source in scripts.items():
            template_name = name.removesuffix(".py")
            self._templates.append(
                {
                    "name": template_name,
                    "script": {
                        "image": DEFAULT_PYTHON3_SCRIPT_IMAGE,
                        "command": ["python"],
                        "source": source,
                    },
                }
            )
            self._entry_steps.append({"name": template_name, "template": template_name})
            self._submit_step["arguments"]["parameters"].append(
                {"name": template_name, "value": f"{{{{steps.{template_name}.outputs.result}}}}"}
            )
            self._submit_template["inputs"]["parameters"].append({"name": template_name})
        return self

    def resources(self, resources) -> "WorkflowBuilder":
        """Add the manifests as one artifact applied by the submit step."""
        data = "".join(
            resource + ("---\n" if resource.endswith("\n") else "\n---\n") for resource in resources
        )
        self._submit_template["inputs"]["artifacts"].append(
            {"name": "doc", "path": "/tmp/doc", "raw": {"data": data}}
        )
        self._entry_steps.append(self._submit_step)
        return self

    def delete(self) -> "WorkflowBuilder":
        """Build a delete workflow instead of an install workflow."""
        self._delete = True
        return self

    def build(self) -> dict:
        """Return the unstructured workflow."""
        if self._delete:
            extra = [
                {
                    "name": "delete-wf",
                    "steps": [[{"name": "delete-ns", "template": "delete-ns"}]],
                },
                {
                    "name": "delete-ns",
                    "container": {
                        "image": DEFAULT_SUBMIT_CONTAINER_IMAGE,
                        "command": ["sh", "-c"],
                        "args": ["kubectl delete all -n {{workflow.parameters.namespace}} --all"],
                    },
                },
            ]
        else:
            extra = [{"name": "entry", "steps": [self._entry_steps]}, self._submit_template]
        workflow = {
            "spec": {
                "entrypoint": "entry",
                "serviceAccountName": SERVICE_ACCOUNT_NAME,
                "templates": self._templates + extra,
            },
            "apiVersion": "argoproj.io/v1alpha1",
            "kind": "Workflow",
            "metadata": {"generateName": "-"},
        }
        return copy.deepcopy(workflow)


def workflow_to_yaml(workflow) -> str:
    """Render an unstructured workflow as YAML."""
    return yaml.safe_dump(workflow, sort_keys=True, default_flow_style=False)