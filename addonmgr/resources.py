"""Create and remove addons and custom resource definitions from manifest files."""

from __future__ import annotations

import os
import shutil
import subprocess
from typing import Any

import yaml

from addonmgr.kube import NotFoundError, addon_gvr, crd_gvr

ADDON_KIND = "Addon"
CRD_KIND = "CustomResourceDefinition"
LOAD_TEST_NAMESPACE_PREFIX = "addon-event-router-ns"


def read_file(path) -> bytes:
    """Return the raw content of the file at ``path``."""
    try:
        with open(path, "rb") as handle:
            return handle.read()
    except OSError:
        print(f"failed to read file {path}", end="")
        raise


def _find_document(text: str, kind: str) -> dict[str, Any] | None:
    """Return the first YAML or JSON document of ``kind`` in ``text``."""
    try:
        for document in yaml.safe_load_all(text):
            if document is None:
                continue
            if not isinstance(document, dict):
                raise ValueError(f"manifest document is not an object: {document!r}")
            if document.get("kind") == kind:
                return document
    except yaml.YAMLError as err:
        raise ValueError(f"malformed YAML in manifest: {err}") from err
    return None


def _read_text(path) -> str:
    return read_file(path).decode("utf-8")


def parse_addon_yaml(path) -> dict[str, Any] | None:
    """Return the first Addon in the manifest at ``path``, or None if there is none.

    Raises OSError when the file cannot be read and ValueError for malformed YAML.
    """
    return _find_document(_read_text(path), ADDON_KIND)


def parse_crd_yaml(path) -> dict[str, Any]:
    """Return the first CustomResourceDefinition in the manifest at ``path``.

    An empty mapping is returned when the manifest holds none.
    """
    return _find_document(_read_text(path), CRD_KIND) or {}


def _metadata(obj: dict) -> dict:
    metadata = obj.get("metadata")
    if metadata is None:
        metadata = obj["metadata"] = {}
    return metadata


def _load_addon(path, name_suffix: str) -> dict[str, Any]:
    addon = parse_addon_yaml(path)
    if addon is None:
        raise ValueError(f"no {ADDON_KIND} found in {path}")
    if name_suffix:
        metadata = _metadata(addon)
        metadata["name"] = f"{metadata.get('name', '')}{name_suffix}"
    return addon


def _apply_addon(client, addon: dict[str, Any]) -> None:
    """Update the addon if it already exists in the cluster, create it otherwise."""
    metadata = _metadata(addon)
    name, namespace = metadata.get("name", ""), metadata.get("namespace", "")
    try:
        existing = client.get(addon_gvr(), namespace, name)
    except NotFoundError:
        client.create(addon_gvr(), namespace, addon)
        return
    resource_version = (existing.get("metadata") or {}).get("resourceVersion")
    if resource_version is not None:
        metadata["resourceVersion"] = resource_version
    client.update(addon_gvr(), namespace, addon)


def create_addon(client, path, name_suffix: str = "") -> dict[str, Any]:
    """Submit the Addon from ``path``, its name extended by ``name_suffix``, and return it."""
    addon = _load_addon(path, name_suffix)
    _apply_addon(client, addon)
    return addon


def delete_addon(client, path) -> dict[str, Any]:
    """Delete the Addon named in the manifest at ``path`` and return the parsed Addon."""
    addon = _load_addon(path, "")
    metadata = _metadata(addon)
    client.delete(addon_gvr(), metadata.get("namespace", ""), metadata.get("name", ""))
    return addon


def create_load_test_addon(lock, client, path, name_suffix: str) -> dict[str, Any]:
    """Submit a uniquely named copy of the Addon at ``path`` for load testing.

    The package name, package version and target namespace are derived from
    the suffix so that every copy installs independently.
    """
    with lock:
        addon = _load_addon(path, name_suffix)
        spec = addon.get("spec")
        if spec is None:
            spec = addon["spec"] = {}
        spec["pkgName"] = _metadata(addon).get("name", "")
        spec["pkgVersion"] = f"v{name_suffix}"
        params = spec.get("params")
        if params is None:
            params = spec["params"] = {}
        params["namespace"] = f"{LOAD_TEST_NAMESPACE_PREFIX}{name_suffix}"
        _apply_addon(client, addon)
        return addon


def create_crd(client, path) -> None:
    """Create the CRD from ``path``, or apply the manifest when the CRD already exists."""
    crd = parse_crd_yaml(path)
    name = _metadata(crd).get("name", "")
    try:
        client.get(crd_gvr(), "", name)
    except NotFoundError:
        client.create(crd_gvr(), "", crd)
        return
    kubectl_apply(path)


def delete_crd(client, path) -> None:
    """Delete the CRD named in the manifest at ``path``."""
    crd = parse_crd_yaml(path)
    client.delete(crd_gvr(), "", _metadata(crd).get("name", ""))


def kubectl_apply(path) -> None:
    """Run ``kubectl apply -f`` on the absolute form of ``path``."""
    binary = shutil.which("kubectl")
    if binary is None:
        raise FileNotFoundError('executable file not found in PATH: "kubectl"')
    args = ["apply", "-f", os.path.abspath(path)]
    print(f"Executing: {binary} [{' '.join(args)}]", end="")
    try:
        subprocess.run([binary, *args], check=True)
    except OSError as err:
        raise RuntimeError(f"Could not exec kubectl: {err}") from err
    except subprocess.CalledProcessError as err:
        raise RuntimeError(f"Command resulted in error: {err}") from err


def concatenate_list(items, delimiter: str) -> str:
    """Join the whitespace-separated words of ``items`` with ``delimiter``."""
    words = ("[" + " ".join(items) + "]").split()
    return delimiter.join(words).strip("[]")


def crd_exists(client, name: str) -> bool:
    """Return whether a CRD with the given name exists."""
    try:
        client.get(crd_gvr(), "", name)
    except (NotFoundError, RuntimeError, OSError) as err:
        print(err)
        return False
    return True


def parse_custom_resource_yaml(raw: str) -> dict[str, Any]:
    """Parse the YAML of a custom resource into an unstructured mapping."""
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as err:
        print(err)
        raise ValueError(f"invalid custom resource YAML: {err}") from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("custom resource YAML is not an object")
    return data