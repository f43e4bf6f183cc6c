import logging
from typing import Any

from vcluster_hostpath_mapper.cluster import API_ERRORS, is_not_found
from vcluster_hostpath_mapper.config import LEGACY_HOST_PATHS, MapperConfig
from vcluster_hostpath_mapper.model import (
    get_pod_name,
    get_pod_namespace,
    host_path_volumes,
)

logger = logging.getLogger(__name__)


def mounts_legacy_path(pod: dict[str, Any]) -> bool:
    return any(path in LEGACY_HOST_PATHS for path in host_path_volumes(pod))


def select_pods_to_restart(
    pods: list[dict[str, Any]], self_pod_name: str
) -> list[dict[str, Any]]:
    restart = []
    for pod in pods:
        name = get_pod_name(pod)
        if self_pod_name and name == self_pod_name:
            logger.info(f"skipping self pod {name}")
            continue

        logger.info(f"processing pod {name}")
        if mounts_legacy_path(pod):
            logger.info(f"adding pod {name} to restart list")
            restart.append(pod)
    return restart


def list_restart_candidates(host, config: MapperConfig) -> list[dict[str, Any]]:
    """
    Single-namespace mode only sees the target namespace. In multi-namespace
    mode every pod on the node is a candidate.
    """
    if config.multi_namespace:
        return host.list_pods_on_node(config.node_name)
    return host.list_pods_on_node(config.node_name, namespace=config.target_namespace)


def restart_target_pods(host, config: MapperConfig) -> list[dict[str, Any]]:
    """
    Delete the host pods on this node that still mount the unmapped log
    paths, so they come back with the mapped layout.
    Returns the pods that were deleted.
    """
    pods = list_restart_candidates(host, config)
    restart = select_pods_to_restart(pods, config.pod_name)
    logger.info(f"restart list {len(restart)}")

    deleted = []
    for pod in restart:
        name, namespace = get_pod_name(pod), get_pod_namespace(pod)
        logger.info(f"deleting physical pod {name}")
        try:
            host.delete_pod(namespace, name)
        except API_ERRORS as e:
            if is_not_found(e):
                continue
            logger.error(f"error deleting target pod {name}: {e}")
            continue
        deleted.append(pod)
    return deleted
