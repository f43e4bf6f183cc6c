import logging
import os
import shutil
from collections.abc import Container

from vcluster_hostpath_mapper.naming import identity_from_container_log_name

logger = logging.getLogger(__name__)


def remove_path(path: str) -> bool:
    """
    Remove a link, file or directory tree. Failures are logged and
    reported as False; the entry is retried on the next pass.
    """
    logger.info(f"cleaning up {path}")
    try:
        if os.path.islink(path) or not os.path.isdir(path):
            os.unlink(path)
        else:
            shutil.rmtree(path)
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.error(f"error deleting symlink {path}: {e}")
        return False
    return True


def _list_dir(root: str) -> list[str] | None:
    try:
        return sorted(os.listdir(root))
    except OSError as e:
        logger.error(f"error listing {root}: {e}")
        return None


def cleanup_pod_paths(root: str, seen: Container[str]) -> list[str]:
    """
    Remove entries under `root` whose full path was not produced this pass.
    """
    removed = []
    for entry in _list_dir(root) or []:
        path = os.path.join(root, entry)
        if path in seen:
            continue
        if remove_path(path):
            removed.append(path)
    return removed


def cleanup_kubelet_paths(root: str, seen: Container[str]) -> list[str]:
    """
    Backup tooling may still read a virtual kubelet pod dir after the pod
    is gone from the API, so an unseen dir only loses the links whose
    target has disappeared. The dir itself goes once it is empty.
    """
    removed = []
    for entry in _list_dir(root) or []:
        pod_dir = os.path.join(root, entry)
        if pod_dir in seen:
            continue

        if not os.path.isdir(pod_dir) or os.path.islink(pod_dir):
            if not os.path.exists(pod_dir) and remove_path(pod_dir):
                removed.append(pod_dir)
            continue

        children = _list_dir(pod_dir)
        if children is None:
            continue

        for child in children:
            link = os.path.join(pod_dir, child)
            # exists() follows the link; False means it dangles
            if os.path.exists(link):
                continue
            if remove_path(link):
                removed.append(link)

        try:
            if not os.listdir(pod_dir):
                os.rmdir(pod_dir)
                logger.info(f"cleaning up {pod_dir}")
                removed.append(pod_dir)
        except OSError as e:
            logger.error(f"error deleting kubelet pod dir {pod_dir}: {e}")

    return removed


def cleanup_container_paths(root: str, observed_pods: Container[str]) -> list[str]:
    """
    Container entries are matched on their "podName_podNamespace" prefix so
    a pod gaining or losing containers keeps the others in place.
    """
    removed = []
    for entry in _list_dir(root) or []:
        identity = identity_from_container_log_name(entry)
        if identity is not None and identity in observed_pods:
            continue

        # this pod no longer exists, so neither do its containers
        path = os.path.join(root, entry)
        if remove_path(path):
            removed.append(path)
    return removed
