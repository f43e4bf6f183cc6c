from typing import Any

# ----------------------------
# Pod accessors
# ----------------------------


def get_pod_name(pod: dict[str, Any]) -> str:
    return pod.get("metadata", {}).get("name", "<unknown>")


def get_pod_namespace(pod: dict[str, Any]) -> str:
    return pod.get("metadata", {}).get("namespace", "default")


def get_pod_uid(pod: dict[str, Any]) -> str:
    return pod.get("metadata", {}).get("uid", "")


def container_statuses(pod: dict[str, Any]) -> list[dict[str, Any]]:
    return (pod.get("status") or {}).get("containerStatuses") or []


def host_path_volumes(pod: dict[str, Any]) -> list[str]:
    """
    Return the host paths of every hostPath volume declared on the pod.
    """
    paths = []
    for volume in (pod.get("spec") or {}).get("volumes") or []:
        host_path = volume.get("hostPath")
        if host_path and host_path.get("path"):
            paths.append(host_path["path"])
    return paths


def workload_containers(workload: dict[str, Any]) -> list[dict[str, Any]]:
    """
    Containers of a StatefulSet/Deployment pod template.
    """
    template = (workload.get("spec") or {}).get("template") or {}
    return (template.get("spec") or {}).get("containers") or []
