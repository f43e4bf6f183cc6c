import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any

from vcluster_hostpath_mapper.cleanup import (
    cleanup_container_paths,
    cleanup_kubelet_paths,
    cleanup_pod_paths,
)
from vcluster_hostpath_mapper.config import MapperConfig
from vcluster_hostpath_mapper.errors import ListingError, SymlinkError
from vcluster_hostpath_mapper.locator import PodDetail, build_physical_pod_map
from vcluster_hostpath_mapper.model import get_pod_name, get_pod_namespace, get_pod_uid
from vcluster_hostpath_mapper.naming import pod_identity, pod_log_token
from vcluster_hostpath_mapper.symlinks import (
    create_container_symlinks,
    create_kubelet_pod_links,
    create_pod_log_symlink,
)
from vcluster_hostpath_mapper.translate import Translator, make_translator

logger = logging.getLogger(__name__)


@dataclass
class PassStats:
    completed: bool = False
    mapped: int = 0
    skipped: int = 0
    created: int = 0
    removed: list[str] = field(default_factory=list)


class Reconciler:
    """
    Keeps the virtual log/kubelet trees pointing at the physical pods that
    back the virtual pods scheduled on this node.
    """

    def __init__(
        self,
        config: MapperConfig,
        host,
        virtual,
        translator: Translator | None = None,
    ):
        self.config = config
        self.host = host
        self.virtual = virtual
        self.translator = translator or make_translator(config)

    def prepare(self) -> None:
        for path in (
            self.config.virtual_pod_logs_path,
            self.config.virtual_container_logs_path,
            self.config.virtual_kubelet_pods_path,
        ):
            try:
                os.makedirs(path, exist_ok=True)
            except OSError as e:
                raise SymlinkError(f"error creating {path}: {e}") from e

    # ----------------------------
    # Single pass
    # ----------------------------

    def _map_pod(
        self, vpod: dict[str, Any], detail: PodDetail, stats: PassStats
    ) -> tuple[str, str]:
        config = self.config
        token = pod_log_token(
            get_pod_namespace(vpod), get_pod_name(vpod), get_pod_uid(vpod)
        )

        source = os.path.join(config.virtual_pod_logs_path, token)
        target = os.path.join(config.physical_pod_log_mount, detail.target)
        detail.symlink_name = create_pod_log_symlink(source, target)

        kubelet_source = os.path.join(
            config.virtual_kubelet_pods_path, get_pod_uid(vpod)
        )
        kubelet_target = os.path.join(
            config.physical_kubelet_mount, get_pod_uid(detail.physical_pod)
        )
        stats.created += len(create_kubelet_pod_links(kubelet_source, kubelet_target))

        container_target_dir = os.path.join(config.pod_log_root, token)
        stats.created += len(
            create_container_symlinks(config, vpod, detail, container_target_dir)
        )

        return source, kubelet_source

    def run_pass(self) -> PassStats:
        """
        One reconciliation pass. Listing problems end the pass early;
        SymlinkError propagates.
        """
        config = self.config
        stats = PassStats()

        try:
            pod_map = build_physical_pod_map(self.host, config)
        except ListingError as e:
            logger.error(f"unable to get physical pod mapping: {e}")
            return stats

        try:
            vpods = self.virtual.list_pods_on_node(config.node_name)
        except ListingError as e:
            logger.error(f"unable to list pods: {e}")
            return stats

        observed_pods: set[str] = set()
        seen_pod_paths: set[str] = set()
        seen_kubelet_paths: set[str] = set()

        for vpod in vpods:
            name, namespace = get_pod_name(vpod), get_pod_namespace(vpod)
            observed_pods.add(pod_identity(name, namespace))

            detail = pod_map.get(self.translator.physical_name(name, namespace))
            if detail is None:
                stats.skipped += 1
                continue

            pod_path, kubelet_path = self._map_pod(vpod, detail, stats)
            seen_pod_paths.add(pod_path)
            seen_kubelet_paths.add(kubelet_path)
            stats.mapped += 1

        stats.removed += cleanup_pod_paths(config.virtual_pod_logs_path, seen_pod_paths)
        stats.removed += cleanup_container_paths(
            config.virtual_container_logs_path, observed_pods
        )
        stats.removed += cleanup_kubelet_paths(
            config.virtual_kubelet_pods_path, seen_kubelet_paths
        )

        stats.completed = True
        logger.info(
            f"successfully reconciled mapper: {stats.mapped} mapped, "
            f"{stats.skipped} pending, {len(stats.removed)} removed"
        )
        return stats

    # ----------------------------
    # Loop
    # ----------------------------

    def run(self, stop: threading.Event) -> None:
        """
        Reconcile until `stop` is set. Returns normally on cancellation.
        """
        logger.info("mapping hostpaths")
        while not stop.is_set():
            self.run_pass()
            stop.wait(self.config.interval)
