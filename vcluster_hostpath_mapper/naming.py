import hashlib

# <pod_name>_<namespace>_<container_name>-<container runtime id>.log
CONTAINER_LOG_TEMPLATE = "{pod}_{namespace}_{container}-{container_id}.log"

MAX_NAME_LENGTH = 63

# ----------------------------
# Path tokens
# ----------------------------


def pod_log_token(namespace: str, name: str, uid: str) -> str:
    """
    Directory name kubelet uses under /var/log/pods for a pod.
    """
    return f"{namespace}_{name}_{uid}"


def pod_identity(name: str, namespace: str) -> str:
    return f"{name}_{namespace}"


def container_log_name(
    pod_name: str, namespace: str, container_name: str, container_id: str
) -> str:
    return CONTAINER_LOG_TEMPLATE.format(
        pod=pod_name,
        namespace=namespace,
        container=container_name,
        container_id=container_id,
    )


def strip_runtime_prefix(container_id: str | None) -> str:
    """
    "containerd://abc" -> "abc". Ids without a runtime prefix yield "".
    """
    if not container_id:
        return ""
    _, sep, runtime_id = container_id.partition("://")
    return runtime_id if sep else ""


def identity_from_container_log_name(file_name: str) -> str | None:
    """
    Recover "podName_podNamespace" from a container log file name.
    """
    parts = file_name.split("_")
    if len(parts) < 3:
        return None
    return pod_identity(parts[0], parts[1])


# ----------------------------
# Kubernetes object names
# ----------------------------


def safe_concat_name(*parts: str) -> str:
    """
    Join with "-" and shorten to a valid object name, keeping a stable
    hash suffix when truncation is needed.
    """
    full = "-".join(parts)
    if len(full) <= MAX_NAME_LENGTH:
        return full
    digest = hashlib.sha256(full.encode("utf-8")).hexdigest()
    return (full[:52] + "-" + digest[:10]).replace(".-", "-")
