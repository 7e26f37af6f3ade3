"""Submits and deletes the workflows that carry out addon lifecycle steps."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import yaml

from addonmgr.common import (
    ApplicationAssemblyPhase,
    LifecycleStep,
    WorkflowPhase,
    convert_workflow_phase_to_addon_phase,
)
from addonmgr.kube import AlreadyExistsError, NotFoundError, workflow_gvr

WF_INSTANCE_ID_LABEL_KEY = "workflows.argoproj.io/controller-instanceid"
WF_INSTANCE_ID = "addon-manager-workflow-controller"
WF_DEFAULT_ACTIVE_DEADLINE_SECONDS = 300
WF_DEFAULT_TTL_SECONDS = 72 * 3600

ADDON_GROUP = "addonmgr.keikoproj.io"
ADDON_API_VERSION = f"{ADDON_GROUP}/v1alpha1"
RESOURCE_DEFAULT_OWN_LABEL = "app.kubernetes.io/name"
RESOURCE_DEFAULT_VERSION_LABEL = "app.kubernetes.io/version"
RESOURCE_DEFAULT_PART_LABEL = "app.kubernetes.io/part-of"
RESOURCE_DEFAULT_MANAGE_BY_LABEL = "app.kubernetes.io/managed-by"
ROLE_ANNOTATION = "iam.amazonaws.com/role"

DOCUMENT_SEPARATOR = "---\n"

_PACKAGE_STRING_FIELDS = ("pkgName", "pkgVersion", "pkgType", "pkgDescription", "pkgChannel")
_CONTEXT_STRING_FIELDS = ("clusterName", "clusterRegion")

Recorder = Callable[[Mapping[str, Any], str, str, str], None]


@dataclass
class WorkflowProxy:
    """A workflow to submit: its name, the addon's workflow type and the lifecycle step.

    ``template`` is the addon's lifecycle entry, a mapping with the keys
    ``template`` (the workflow YAML), and optionally ``role`` and ``namePrefix``.
    """

    name: str
    template: Mapping[str, Any]
    lifecycle: LifecycleStep


def _nested_get(obj: Any, *path: str) -> tuple[Any, bool]:
    current = obj
    for depth, key in enumerate(path):
        if not isinstance(current, dict):
            where = ".".join(path[:depth])
            raise ValueError(
                f"{where} accessor error: {current!r} is of the type "
                f"{type(current).__name__}, expected map"
            )
        if key not in current:
            return None, False
        current = current[key]
    return current, True


def _nested_set(obj: dict, value: Any, *path: str) -> None:
    current = obj
    for depth, key in enumerate(path[:-1]):
        if key in current:
            child = current[key]
            if not isinstance(child, dict):
                where = ".".join(path[: depth + 1])
                raise ValueError(
                    f"value cannot be set because {where} is not a map, "
                    f"it is {type(child).__name__}"
                )
            current = child
        else:
            current[key] = {}
            current = current[key]
    current[path[-1]] = value


def _nested_int(obj: Any, *path: str) -> tuple[int, bool]:
    value, found = _nested_get(obj, *path)
    if not found:
        return 0, False
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(
            f"{'.'.join(path)} accessor error: {value!r} is of the type "
            f"{type(value).__name__}, expected int64"
        )
    return value, True


def _nested_string(obj: Any, *path: str) -> str:
    value, found = _nested_get(obj, *path)
    if not found:
        return ""
    if not isinstance(value, str):
        raise ValueError(
            f"{'.'.join(path)} accessor error: {value!r} is of the type "
            f"{type(value).__name__}, expected string"
        )
    return value


def _metadata(obj: dict) -> dict:
    metadata = obj.get("metadata")
    if metadata is None:
        metadata = obj["metadata"] = {}
    if not isinstance(metadata, dict):
        raise ValueError("metadata is not a map")
    return metadata


class WorkflowLifecycle:
    """Runs addon lifecycle steps as workflows through a resource client."""

    def __init__(
        self,
        client,
        addon: Mapping[str, Any],
        recorder: Recorder | None = None,
        logger: logging.Logger | None = None,
    ):
        self.client = client
        self.addon = addon
        self.recorder = recorder
        self.log = logger or logging.getLogger(__name__)

    @property
    def _addon_name(self) -> str:
        return (self.addon.get("metadata") or {}).get("name", "")

    @property
    def _addon_namespace(self) -> str:
        return (self.addon.get("metadata") or {}).get("namespace", "")

    @property
    def _addon_spec(self) -> Mapping[str, Any]:
        return self.addon.get("spec") or {}

    def install(self, proxy: WorkflowProxy) -> ApplicationAssemblyPhase | None:
        """Build the workflow for ``proxy`` and submit it unless it already exists.

        Returns the addon phase. Raises ValueError for an invalid workflow and
        RuntimeError when the workflow cannot be looked up or created.
        """
        try:
            workflow = self._parse(proxy.template, proxy.name)
        except ValueError as err:
            raise ValueError(f"invalid workflow. {err}") from err

        try:
            self._configure_global_parameters(workflow)
        except ValueError as err:
            raise ValueError("invalid workflow parameter") from err

        self._configure_workflow_artifacts(workflow, proxy.template)
        self._inject_ttls(workflow)
        self._inject_active_deadline_seconds(workflow)
        self._inject_instance_id(workflow)
        return self._submit(workflow, proxy.lifecycle)

    def delete(self, name: str) -> None:
        """Delete the named workflow in the addon's namespace."""
        self.client.delete(workflow_gvr(), self._addon_namespace, name)

    def _parse(self, workflow_type: Mapping[str, Any], name: str) -> dict:
        raw = workflow_type.get("template") or ""
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as err:
            raise ValueError(f"invalid workflow yaml spec passed. {err}") from err
        if data is not None and not isinstance(data, dict):
            raise ValueError("invalid workflow yaml spec passed. not a mapping")
        if not data or not data.get("kind"):
            raise ValueError("invalid workflow, unable to unmarshal to workflow")

        workflow = copy.deepcopy(data)
        workflow["apiVersion"] = "argoproj.io/v1alpha1"
        workflow["kind"] = "Workflow"
        metadata = _metadata(workflow)
        metadata["namespace"] = self._addon_namespace
        metadata["name"] = name

        if "spec" not in workflow:
            raise ValueError("invalid workflow, missing spec")
        return workflow

    def _configure_global_parameters(self, workflow: dict) -> None:
        spec = workflow.get("spec")
        if not isinstance(spec, dict):
            raise ValueError("workflow spec is not a map")
        if spec.get("arguments") is None:
            spec["arguments"] = {}
        arguments = spec["arguments"]
        if not isinstance(arguments, dict):
            raise ValueError("workflow arguments is not a map")
        if arguments.get("parameters") is None:
            arguments["parameters"] = []
        existing = arguments["parameters"]
        if not isinstance(existing, list):
            raise ValueError("workflow parameters is not a list")

        addon_spec = self._addon_spec
        params = addon_spec.get("params") or {}
        context = params.get("context") or {}

        parameters = list(existing)
        parameters.append({"name": "namespace", "value": params.get("namespace") or ""})
        parameters.extend(
            {"name": field, "value": str(addon_spec.get(field) or "")}
            for field in _PACKAGE_STRING_FIELDS
        )
        parameters.extend(
            {"name": field, "value": str(context.get(field) or "")}
            for field in _CONTEXT_STRING_FIELDS
        )
        parameters.extend(
            {"name": name, "value": str(value)}
            for name, value in (context.get("additionalConfigs") or {}).items()
        )
        parameters.extend(
            {"name": name, "value": str(value)}
            for name, value in (params.get("data") or {}).items()
        )
        _nested_set(workflow, parameters, "spec", "arguments", "parameters")

    def _configure_workflow_artifacts(self, workflow: dict, workflow_type) -> None:
        spec, _ = _nested_get(workflow, "spec")
        self._process_workflow_resources(spec, workflow_type)

        templates, found = _nested_get(workflow, "spec", "templates")
        if not found or not isinstance(templates, list):
            raise ValueError("invalid workflow, spec.templates must be a list")
        for template in templates:
            self._process_workflow_resources(template, workflow_type)
            all_steps, found = _nested_get(template, "steps")
            if not found:
                continue
            if not isinstance(all_steps, list):
                raise ValueError("invalid workflow, template steps must be a list")
            for steps in all_steps:
                if not isinstance(steps, list):
                    raise ValueError("invalid workflow, step group must be a list")
                for step in steps:
                    self._process_workflow_resources(step, workflow_type)

    def _process_workflow_resources(self, step_object, workflow_type) -> None:
        artifacts, found = _nested_get(step_object, "arguments", "artifacts")
        if found:
            if not isinstance(artifacts, list):
                raise ValueError("invalid workflow, artifacts must be a list")
            for artifact in artifacts:
                if not isinstance(artifact, dict):
                    raise ValueError("invalid workflow, artifact must be a map")
                data = _nested_string(artifact, "raw", "data")
                _nested_set(
                    artifact, self._process_documents(data, workflow_type), "raw", "data"
                )
            return

        manifest, found = _nested_get(step_object, "resource", "manifest")
        if found:
            if not isinstance(manifest, str):
                raise ValueError("invalid workflow, resource manifest must be a string")
            _nested_set(
                step_object,
                self._process_documents(manifest, workflow_type),
                "resource",
                "manifest",
            )

    def _process_documents(self, text: str, workflow_type) -> str:
        return DOCUMENT_SEPARATOR.join(
            self._process_artifact(document, workflow_type)
            for document in text.split(DOCUMENT_SEPARATOR)
        )

    def _process_artifact(self, document: str, workflow_type) -> str:
        document = document.strip()
        if not document:
            return document
        try:
            resource = yaml.safe_load(document)
        except yaml.YAMLError as err:
            raise ValueError(f"unable to unmarshall artifact: {document}. {err}") from err
        if resource is None:
            resource = {}
        if not isinstance(resource, dict):
            raise ValueError(f"unable to unmarshall artifact: {document}. not a mapping")

        self._add_default_labels(resource)
        self._add_role_annotation(resource, workflow_type)
        return yaml.safe_dump(resource, sort_keys=True, default_flow_style=False)

    def _add_default_labels(self, resource: dict) -> None:
        metadata = _metadata(resource)
        labels = dict(metadata.get("labels") or {})
        labels[RESOURCE_DEFAULT_OWN_LABEL] = self._addon_name
        labels[RESOURCE_DEFAULT_VERSION_LABEL] = str(self._addon_spec.get("pkgVersion") or "")
        labels[RESOURCE_DEFAULT_PART_LABEL] = self._addon_name
        labels[RESOURCE_DEFAULT_MANAGE_BY_LABEL] = ADDON_GROUP
        metadata["labels"] = labels

    @staticmethod
    def _add_role_annotation(resource: dict, workflow_type) -> None:
        metadata = _metadata(resource)
        annotations = dict(metadata.get("annotations") or {})
        role = workflow_type.get("role") or ""
        if role:
            annotations[ROLE_ANNOTATION] = role
        metadata["annotations"] = annotations

    @staticmethod
    def _inject_ttls(workflow: dict) -> None:
        value, found = _nested_int(workflow, "spec", "ttlStrategy", "secondsAfterCompletion")
        if not found or value == 0:
            _nested_set(
                workflow, WF_DEFAULT_TTL_SECONDS, "spec", "ttlStrategy", "secondsAfterCompletion"
            )

    @staticmethod
    def _inject_active_deadline_seconds(workflow: dict) -> None:
        value, found = _nested_int(workflow, "spec", "activeDeadlineSeconds")
        if not found or value == 0:
            _nested_set(
                workflow, WF_DEFAULT_ACTIVE_DEADLINE_SECONDS, "spec", "activeDeadlineSeconds"
            )

    @staticmethod
    def _inject_instance_id(workflow: dict) -> None:
        metadata = _metadata(workflow)
        labels = dict(metadata.get("labels") or {})
        labels[WF_INSTANCE_ID_LABEL_KEY] = WF_INSTANCE_ID
        metadata["labels"] = labels

    def _find_workflow(self, namespace: str, name: str) -> dict | None:
        try:
            return self.client.get(workflow_gvr(), namespace, name)
        except NotFoundError:
            return None
        except Exception as err:
            raise RuntimeError(f"error finding wf by name {namespace}/{name} err {err}") from err

    def _set_controller_reference(self, workflow: dict) -> None:
        owner = {
            "apiVersion": ADDON_API_VERSION,
            "kind": "Addon",
            "name": self._addon_name,
            "uid": (self.addon.get("metadata") or {}).get("uid", ""),
            "controller": True,
            "blockOwnerDeletion": True,
        }
        metadata = _metadata(workflow)
        references = []
        for ref in metadata.get("ownerReferences") or []:
            same_owner = (
                ref.get("kind") == owner["kind"]
                and ref.get("name") == owner["name"]
                and str(ref.get("apiVersion", "")).split("/")[0] == ADDON_GROUP
            )
            if same_owner:
                continue
            if ref.get("controller"):
                raise ValueError(
                    f"Object {metadata.get('namespace')}/{metadata.get('name')} is already "
                    f"owned by another {ref.get('kind')} controller {ref.get('name')}"
                )
            references.append(ref)
        references.append(owner)
        metadata["ownerReferences"] = references

    def _submit(self, workflow: dict, lifecycle: LifecycleStep) -> ApplicationAssemblyPhase | None:
        metadata = _metadata(workflow)
        name, namespace = metadata["name"], metadata.get("namespace", "")
        qualified = f"{namespace}/{name}"

        existing = self._find_workflow(namespace, name)
        if existing is not None:
            raw_phase = (existing.get("status") or {}).get("phase") or ""
            try:
                phase = WorkflowPhase(raw_phase)
            except ValueError:
                phase = WorkflowPhase.UNKNOWN
            return convert_workflow_phase_to_addon_phase(lifecycle, phase)

        self._set_controller_reference(workflow)

        try:
            self.client.create(workflow_gvr(), namespace, workflow)
        except AlreadyExistsError:
            self.log.info("Workflow already exists. workflow=%s", qualified)
            return ApplicationAssemblyPhase.PENDING
        except Exception as err:
            message = f"failed creating wf {name} err {err}"
            self.log.error(message)
            raise RuntimeError(message) from err

        if self.recorder is not None:
            self.recorder(self.addon, "Normal", "Created", f"Created Workflow {qualified}")
        return ApplicationAssemblyPhase.PENDING