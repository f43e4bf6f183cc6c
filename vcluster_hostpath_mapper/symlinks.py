import logging
import os
from typing import Any

from vcluster_hostpath_mapper.config import MapperConfig
from vcluster_hostpath_mapper.errors import SymlinkError
from vcluster_hostpath_mapper.locator import PodDetail
from vcluster_hostpath_mapper.model import (
    container_statuses,
    get_pod_name,
    get_pod_namespace,
)
from vcluster_hostpath_mapper.naming import container_log_name, strip_runtime_prefix

logger = logging.getLogger(__name__)


def ensure_symlink(target: str, source: str) -> bool:
    """
    Create `source` pointing at `target`. Returns False when `source`
    already exists.
    """
    try:
        os.symlink(target, source)
    except FileExistsError:
        return False
    except OSError as e:
        raise SymlinkError(f"error creating symlink {source} -> {target}: {e}") from e
    return True


# ----------------------------
# Pod logs
# ----------------------------


def create_pod_log_symlink(source: str, target: str) -> str:
    if ensure_symlink(target, source):
        logger.info(f"created symlink from {source} -> {target}")
    return source


# ----------------------------
# Kubelet pod dirs
# ----------------------------


def create_kubelet_pod_links(virtual_dir: str, physical_dir: str) -> list[str]:
    """
    Shadow every entry of the physical kubelet pod dir with a symlink in
    the virtual one. Returns the links that were newly created.
    """
    try:
        os.makedirs(virtual_dir, exist_ok=True)
    except OSError as e:
        raise SymlinkError(
            f"error creating vPod kubelet directory for {virtual_dir}: {e}"
        ) from e

    try:
        entries = sorted(os.listdir(physical_dir))
    except OSError as e:
        raise SymlinkError(
            f"error reading physical kubelet pod dir {physical_dir}: {e}"
        ) from e

    created = []
    for entry in entries:
        source = os.path.join(virtual_dir, entry)
        target = os.path.join(physical_dir, entry)
        if ensure_symlink(target, source):
            logger.info(f"created kubelet pod symlink {source} -> {target}")
            created.append(source)
    return created


# ----------------------------
# Container logs
# ----------------------------


def resolve_physical_log_filename(config: MapperConfig, physical_file_name: str) -> str:
    """
    /var/log/containers/<physical container file> points at
    /var/log/pods/<pod>/<container>/<n>.log; the rotation-suffixed
    <n>.log is only knowable by reading that link.
    """
    destination = os.readlink(
        os.path.join(config.container_logs_root, physical_file_name)
    )
    return os.path.basename(destination)


def create_container_symlinks(
    config: MapperConfig,
    virtual_pod: dict[str, Any],
    detail: PodDetail,
    target_dir: str,
) -> list[str]:
    """
    Link each started container of the virtual pod to its real log file.
    Containers whose physical link is not there yet are retried next pass.
    """
    name = get_pod_name(virtual_pod)
    namespace = get_pod_namespace(virtual_pod)
    physical_name = get_pod_name(detail.physical_pod)
    physical_namespace = get_pod_namespace(detail.physical_pod)

    created = []
    for status in container_statuses(virtual_pod):
        container_name = status.get("name", "")
        container_id = strip_runtime_prefix(status.get("containerID"))
        if not container_id:
            continue

        physical_file_name = container_log_name(
            physical_name, physical_namespace, container_name, container_id
        )
        try:
            log_file_name = resolve_physical_log_filename(config, physical_file_name)
        except OSError as e:
            logger.error(
                f"error reading destination filename from physical container symlink: {e}"
            )
            continue

        source = os.path.join(
            config.virtual_container_logs_path,
            container_log_name(name, namespace, container_name, container_id),
        )
        target = os.path.join(target_dir, container_name, log_file_name)

        if ensure_symlink(target, source):
            logger.info(f"created container:{source} -> pod:{target} symlink")
            created.append(source)

    return created
