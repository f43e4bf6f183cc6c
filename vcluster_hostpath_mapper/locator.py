import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from vcluster_hostpath_mapper.config import MapperConfig
from vcluster_hostpath_mapper.model import get_pod_name, get_pod_namespace, get_pod_uid
from vcluster_hostpath_mapper.naming import pod_log_token

logger = logging.getLogger(__name__)

VCLUSTER_NAMESPACE_LABEL = "vcluster.loft.sh/vcluster-namespace"


@dataclass
class PodDetail:
    target: str
    physical_pod: dict[str, Any] = field(default_factory=dict)
    symlink_name: str | None = None


# physical pod name -> detail
PhysicalPodMap = dict[str, PodDetail]


def filter_pods_by_namespace(
    pods: list[dict[str, Any]], namespaces: Iterable[str]
) -> list[dict[str, Any]]:
    """
    Keep the pods whose namespace is in `namespaces`, in their original order.
    """
    allowed = set(namespaces)
    return [pod for pod in pods if get_pod_namespace(pod) in allowed]


def path_exists(path: str) -> bool:
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error(f"error checking existence for path {path}: {e}")
        return False
    return True


def list_vcluster_pods(host, config: MapperConfig) -> list[dict[str, Any]]:
    """
    Host pods on this node that belong to this virtual cluster.
    Raises ListingError.
    """
    if not config.multi_namespace:
        return host.list_pods_on_node(config.node_name, config.target_namespace)

    pods = host.list_pods_on_node(config.node_name)
    namespaces = host.list_namespace_names(
        f"{VCLUSTER_NAMESPACE_LABEL}={config.target_namespace}"
    )
    return filter_pods_by_namespace(pods, namespaces)


def build_physical_pod_map(host, config: MapperConfig) -> PhysicalPodMap:
    """
    Map physical pod names to their on-disk log directory. Pods whose
    directory kubelet has not created yet are left out.
    """
    pod_map: PhysicalPodMap = {}

    for pod in list_vcluster_pods(host, config):
        name = get_pod_name(pod)
        token = pod_log_token(get_pod_namespace(pod), name, get_pod_uid(pod))

        if not path_exists(os.path.join(config.pod_log_root, token)):
            continue

        # first pod seen under a name wins
        if name not in pod_map:
            pod_map[name] = PodDetail(target=token, physical_pod=pod)

    return pod_map
