import os
from typing import Any

import pytest

from vcluster_hostpath_mapper.config import MapperConfig
from vcluster_hostpath_mapper.errors import ListingError

NODE = "node-1"


class FakeClusterView:
    """
    In-memory stand-in for ClusterView serving dict objects.
    """

    def __init__(
        self,
        pods: list[dict[str, Any]] | None = None,
        namespaces: dict[str, dict[str, str]] | None = None,
        secrets: dict[tuple[str, str], dict[str, Any]] | None = None,
        statefulsets: dict[tuple[str, str], dict[str, Any]] | None = None,
        deployments: dict[tuple[str, str], dict[str, Any]] | None = None,
    ):
        self.pods = pods or []
        self.namespaces = namespaces or {}
        self.secrets = secrets or {}
        self.statefulsets = statefulsets or {}
        self.deployments = deployments or {}
        self.errors: dict[str, Exception] = {}
        self.deleted: list[tuple[str, str]] = []

    def _maybe_fail(self, method: str) -> None:
        if method in self.errors:
            raise self.errors[method]

    def list_pods_on_node(self, node_name, namespace=None):
        self._maybe_fail("list_pods_on_node")
        return [
            p
            for p in self.pods
            if p.get("spec", {}).get("nodeName") == node_name
            and (namespace is None or p["metadata"]["namespace"] == namespace)
        ]

    def list_namespace_names(self, label_selector):
        self._maybe_fail("list_namespace_names")
        key, value = label_selector.split("=", 1)
        return [
            name for name, labels in self.namespaces.items() if labels.get(key) == value
        ]

    def read_secret(self, namespace, name):
        self._maybe_fail("read_secret")
        return self.secrets.get((namespace, name))

    def read_statefulset(self, namespace, name):
        self._maybe_fail("read_statefulset")
        return self.statefulsets.get((namespace, name))

    def read_deployment(self, namespace, name):
        self._maybe_fail("read_deployment")
        return self.deployments.get((namespace, name))

    def delete_pod(self, namespace, name):
        self._maybe_fail(f"delete_pod:{name}")
        self.deleted.append((namespace, name))


def pod(
    name: str,
    namespace: str,
    uid: str = "",
    node: str = NODE,
    containers: dict[str, str] | None = None,
    host_paths: list[str] | None = None,
) -> dict[str, Any]:
    """
    containers maps container name -> containerID (with runtime prefix).
    """
    return {
        "metadata": {"name": name, "namespace": namespace, "uid": uid or f"{name}-uid"},
        "spec": {
            "nodeName": node,
            "volumes": [
                {"name": f"vol{i}", "hostPath": {"path": path}}
                for i, path in enumerate(host_paths or [])
            ],
        },
        "status": {
            "containerStatuses": [
                {"name": cname, "containerID": cid}
                for cname, cid in (containers or {}).items()
            ]
        },
    }


@pytest.fixture
def make_pod():
    return pod


@pytest.fixture
def fake_cluster():
    return FakeClusterView


@pytest.fixture
def listing_error():
    return ListingError("connection refused")


@pytest.fixture
def mapper_config(tmp_path) -> MapperConfig:
    config = MapperConfig(
        target_namespace="vcluster-ns",
        name="vcluster",
        node_name=NODE,
        pod_name="hostpath-mapper-abc",
        virtual_root=str(tmp_path / "virtual"),
        log_root=str(tmp_path / "log"),
        pod_log_root=str(tmp_path / "log" / "pods"),
        physical_pod_log_mount=str(tmp_path / "physical" / "log" / "pods"),
        physical_kubelet_mount=str(tmp_path / "physical" / "kubelet" / "pods"),
        interval=0,
    )
    for path in (
        config.pod_log_root,
        config.container_logs_root,
        config.physical_pod_log_mount,
        config.physical_kubelet_mount,
        config.virtual_pod_logs_path,
        config.virtual_container_logs_path,
        config.virtual_kubelet_pods_path,
    ):
        os.makedirs(path, exist_ok=True)
    return config


def snapshot_tree(root: str) -> dict[str, str | None]:
    """
    relative path -> link target (None for plain files/dirs).
    """
    tree: dict[str, str | None] = {}
    for dirpath, dirnames, filenames in os.walk(root):
        for entry in dirnames + filenames:
            full = os.path.join(dirpath, entry)
            rel = os.path.relpath(full, root)
            tree[rel] = os.readlink(full) if os.path.islink(full) else None
    return tree


@pytest.fixture
def snapshot():
    return snapshot_tree
