"""Resource schemas and clients for the cluster API."""

from __future__ import annotations

import copy
import itertools
import json
import subprocess
from dataclasses import dataclass


@dataclass(frozen=True)
class GroupVersionResource:
    """Identifies a kind of API resource."""

    group: str
    version: str
    resource: str

    @property
    def group_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version


class NotFoundError(LookupError):
    """The requested object does not exist."""


class AlreadyExistsError(ValueError):
    """An object with the same name already exists."""


def addon_gvr() -> GroupVersionResource:
    return GroupVersionResource("addonmgr.keikoproj.io", "v1alpha1", "addons")


def crd_gvr() -> GroupVersionResource:
    return GroupVersionResource("apiextensions.k8s.io", "v1beta1", "customresourcedefinitions")


def secret_gvr() -> GroupVersionResource:
    return GroupVersionResource("", "v1", "secrets")


def workflow_gvr() -> GroupVersionResource:
    return GroupVersionResource("argoproj.io", "v1alpha1", "workflows")


def workflow_type() -> dict:
    """Return an empty unstructured workflow object."""
    return {"apiVersion": "argoproj.io/v1alpha1", "kind": "Workflow"}


def to_unstructured(obj) -> dict:
    """Return a copy of a workflow mapping with its kind and apiVersion set."""
    un = copy.deepcopy(dict(obj))
    un["kind"] = "Workflow"
    un["apiVersion"] = "argoproj.io/v1alpha1"
    return un


def _name_of(obj) -> str:
    name = obj.get("metadata", {}).get("name")
    if not name:
        raise ValueError("object has no metadata.name")
    return name


class InMemoryResourceClient:
    """A resource client that keeps objects in memory."""

    def __init__(self):
        self._objects: dict[tuple[GroupVersionResource, str, str], dict] = {}
        self._versions = itertools.count(1)

    def get(self, gvr, namespace, name):
        try:
            return copy.deepcopy(self._objects[(gvr, namespace or "", name)])
        except KeyError:
            raise NotFoundError(f'{gvr.resource} "{name}" not found') from None

    def _store(self, gvr, namespace, obj) -> dict:
        stored = copy.deepcopy(obj)
        metadata = stored.setdefault("metadata", {})
        if namespace:
            metadata.setdefault("namespace", namespace)
        metadata["resourceVersion"] = str(next(self._versions))
        self._objects[(gvr, namespace or "", metadata["name"])] = stored
        return copy.deepcopy(stored)

    def create(self, gvr, namespace, obj):
        name = _name_of(obj)
        if (gvr, namespace or "", name) in self._objects:
            raise AlreadyExistsError(f'{gvr.resource} "{name}" already exists')
        return self._store(gvr, namespace, obj)

    def update(self, gvr, namespace, obj):
        name = _name_of(obj)
        if (gvr, namespace or "", name) not in self._objects:
            raise NotFoundError(f'{gvr.resource} "{name}" not found')
        return self._store(gvr, namespace, obj)

    def delete(self, gvr, namespace, name):
        try:
            del self._objects[(gvr, namespace or "", name)]
        except KeyError:
            raise NotFoundError(f'{gvr.resource} "{name}" not found') from None

    def list(self, gvr, namespace=None):
        """List objects of a resource, in all namespaces when ``namespace`` is None."""
        return [
            copy.deepcopy(obj)
            for (kind, ns, _), obj in sorted(
                self._objects.items(), key=lambda item: (item[0][1], item[0][2])
            )
            if kind == gvr and (namespace is None or ns == namespace)
        ]


class KubectlClient:
    """A resource client that runs kubectl."""

    def __init__(self, kubectl="kubectl", kubeconfig=None, context=None):
        self.kubectl = kubectl
        self.kubeconfig = kubeconfig
        self.context = context

    @staticmethod
    def _resource(gvr) -> str:
        return f"{gvr.resource}.{gvr.version}.{gvr.group}" if gvr.group else gvr.resource

    def _run(self, args, namespace=None, stdin=None) -> str:
        command = [self.kubectl]
        if self.kubeconfig:
            command += ["--kubeconfig", self.kubeconfig]
        if self.context:
            command += ["--context", self.context]
        if namespace:
            command += ["-n", namespace]
        command += args
        result = subprocess.run(command, input=stdin, capture_output=True, text=True, check=False)
        if result.returncode != 0:
            message = (result.stderr or "").strip()
            if "(NotFound)" in message:
                raise NotFoundError(message)
            if "(AlreadyExists)" in message:
                raise AlreadyExistsError(message)
            raise RuntimeError(message or f"kubectl exited with status {result.returncode}")
        return result.stdout

    def get(self, gvr, namespace, name):
        return json.loads(self._run(["get", self._resource(gvr), name, "-o", "json"], namespace))

    def create(self, gvr, namespace, obj):
        out = self._run(["create", "-f", "-", "-o", "json"], namespace, json.dumps(obj))
        return json.loads(out)

    def update(self, gvr, namespace, obj):
        out = self._run(["replace", "-f", "-", "-o", "json"], namespace, json.dumps(obj))
        return json.loads(out)

    def delete(self, gvr, namespace, name):
        self._run(["delete", self._resource(gvr), name], namespace)

    def list(self, gvr, namespace=None):
        args = ["get", self._resource(gvr), "-o", "json"]
        if namespace is None:
            args.append("--all-namespaces")
        return json.loads(self._run(args, namespace))["items"]