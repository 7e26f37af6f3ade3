import os
import subprocess
import threading
from unittest import mock

import pytest

from addonmgr.kube import InMemoryResourceClient, NotFoundError, addon_gvr, crd_gvr
from addonmgr.resources import (
    concatenate_list,
    create_addon,
    create_crd,
    create_load_test_addon,
    crd_exists,
    delete_addon,
    delete_crd,
    kubectl_apply,
    parse_addon_yaml,
    parse_crd_yaml,
    parse_custom_resource_yaml,
    read_file,
)

ADDON_MANIFEST = """\
apiVersion: v1
kind: Namespace
metadata:
  name: addon-manager-system
---
apiVersion: addonmgr.keikoproj.io/v1alpha1
kind: Addon
metadata:
  name: event-router
  namespace: addon-manager-system
spec:
  pkgName: event-router
  pkgVersion: v0.2
  pkgType: composite
  params:
    namespace: addon-event-router-ns
    context:
      clusterName: cluster-name
      clusterRegion: us-west-2
"""

CRD_MANIFEST = """\
apiVersion: apiextensions.k8s.io/v1beta1
kind: CustomResourceDefinition
metadata:
  name: addons.addonmgr.keikoproj.io
spec:
  group: addonmgr.keikoproj.io
"""


@pytest.fixture
def addon_path(tmp_path):
    path = tmp_path / "addon.yaml"
    path.write_text(ADDON_MANIFEST)
    return str(path)


@pytest.fixture
def crd_path(tmp_path):
    path = tmp_path / "crd.yaml"
    path.write_text(CRD_MANIFEST)
    return str(path)


def test_parse_addon_yaml_finds_addon_among_documents(addon_path):
    addon = parse_addon_yaml(addon_path)
    assert addon["kind"] == "Addon"
    assert addon["metadata"]["name"] == "event-router"
    assert addon["spec"]["params"]["namespace"] == "addon-event-router-ns"


def test_parse_addon_yaml_without_addon_returns_none(crd_path):
    assert parse_addon_yaml(crd_path) is None


def test_parse_addon_yaml_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        parse_addon_yaml(str(tmp_path / "missing.yaml"))


def test_parse_addon_yaml_malformed(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("kind: [Addon\n")
    with pytest.raises(ValueError):
        parse_addon_yaml(str(path))


def test_create_addon_creates_with_suffix(addon_path):
    client = InMemoryResourceClient()
    addon = create_addon(client, addon_path, "-2")
    assert addon["metadata"]["name"] == "event-router-2"
    stored = client.get(addon_gvr(), "addon-manager-system", "event-router-2")
    assert stored["spec"]["pkgName"] == "event-router"


def test_create_addon_twice_updates(addon_path):
    client = InMemoryResourceClient()
    create_addon(client, addon_path, "")
    first = client.get(addon_gvr(), "addon-manager-system", "event-router")
    create_addon(client, addon_path, "")
    second = client.get(addon_gvr(), "addon-manager-system", "event-router")
    assert first["metadata"]["resourceVersion"] != second["metadata"]["resourceVersion"]
    assert len(client.list(addon_gvr(), "addon-manager-system")) == 1


def test_create_addon_without_addon_raises(crd_path):
    with pytest.raises(ValueError):
        create_addon(InMemoryResourceClient(), crd_path, "")


def test_delete_addon_removes_it(addon_path):
    client = InMemoryResourceClient()
    create_addon(client, addon_path, "")
    deleted = delete_addon(client, addon_path)
    assert deleted["metadata"]["name"] == "event-router"
    with pytest.raises(NotFoundError):
        client.get(addon_gvr(), "addon-manager-system", "event-router")


def test_delete_missing_addon_raises(addon_path):
    with pytest.raises(NotFoundError):
        delete_addon(InMemoryResourceClient(), addon_path)


def test_create_load_test_addon_sets_unique_fields(addon_path):
    client = InMemoryResourceClient()
    lock = threading.Lock()
    addon = create_load_test_addon(lock, client, addon_path, "-5")
    assert not lock.locked()
    stored = client.get(addon_gvr(), "addon-manager-system", "event-router-5")
    assert stored["spec"]["pkgName"] == "event-router-5"
    assert stored["spec"]["pkgVersion"] == "v-5"
    assert stored["spec"]["params"]["namespace"] == "addon-event-router-ns-5"
    assert addon["spec"] == stored["spec"]


def test_parse_crd_yaml(crd_path, addon_path):
    assert parse_crd_yaml(crd_path)["metadata"]["name"] == "addons.addonmgr.keikoproj.io"
    assert parse_crd_yaml(addon_path) == {}


def test_create_and_delete_crd(crd_path):
    client = InMemoryResourceClient()
    create_crd(client, crd_path)
    assert crd_exists(client, "addons.addonmgr.keikoproj.io")
    delete_crd(client, crd_path)
    assert not crd_exists(client, "addons.addonmgr.keikoproj.io")


def test_create_existing_crd_applies_manifest(crd_path):
    client = InMemoryResourceClient()
    create_crd(client, crd_path)
    with mock.patch("shutil.which", return_value="/usr/bin/kubectl"), mock.patch(
        "subprocess.run"
    ) as run:
        create_crd(client, crd_path)
    run.assert_called_once()
    assert run.call_args.args[0] == ["/usr/bin/kubectl", "apply", "-f", os.path.abspath(crd_path)]


def test_kubectl_apply_missing_binary(crd_path):
    with mock.patch("shutil.which", return_value=None):
        with pytest.raises(FileNotFoundError):
            kubectl_apply(crd_path)


def test_kubectl_apply_command_failure(crd_path):
    failure = subprocess.CalledProcessError(1, ["kubectl"])
    with mock.patch("shutil.which", return_value="/usr/bin/kubectl"), mock.patch(
        "subprocess.run", side_effect=failure
    ):
        with pytest.raises(RuntimeError):
            kubectl_apply(crd_path)


def test_concatenate_list():
    assert concatenate_list(["a", "b", "c"], ",") == "a,b,c"
    assert concatenate_list([], ",") == ""
    assert concatenate_list(["a b", "c"], "-") == "a-b-c"


def test_read_file_round_trip(tmp_path):
    path = tmp_path / "data.bin"
    path.write_bytes(b"\x00\x01payload")
    assert read_file(str(path)) == b"\x00\x01payload"


def test_read_file_missing(tmp_path):
    with pytest.raises(OSError):
        read_file(str(tmp_path / "nope"))


def test_crd_exists_false_for_unknown():
    client = InMemoryResourceClient()
    assert crd_exists(client, "unknown") is False
    client.create(crd_gvr(), "", {"metadata": {"name": "known"}})
    assert crd_exists(client, "known") is True


def test_parse_custom_resource_yaml():
    parsed = parse_custom_resource_yaml(CRD_MANIFEST)
    assert parsed["kind"] == "CustomResourceDefinition"
    assert parsed["spec"] == {"group": "addonmgr.keikoproj.io"}


def test_parse_custom_resource_yaml_invalid():
    with pytest.raises(ValueError):
        parse_custom_resource_yaml("a: [b\n")