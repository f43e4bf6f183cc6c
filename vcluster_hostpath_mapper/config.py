import os
from dataclasses import dataclass
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    StrictBool,
    ValidationError,
    field_validator,
)

from vcluster_hostpath_mapper.errors import ConfigDecodeError

# ----------------------------
# Well-known paths
# ----------------------------

VIRTUAL_PATH_TEMPLATE = "/tmp/vcluster/{namespace}/{name}"

# Host paths as mounted into the mapper pod
LOG_HOST_PATH = "/var/log"
POD_LOGGING_HOST_PATH = "/var/log/pods"
KUBELET_POD_PATH = "/var/lib/kubelet/pods"

# Where the physical trees are mounted into the virtual pods
PHYSICAL_POD_LOG_MOUNT_PATH = "/var/vcluster/physical/log/pods"
PHYSICAL_KUBELET_MOUNT_PATH = "/var/vcluster/physical/kubelet/pods"

LEGACY_HOST_PATHS = frozenset({POD_LOGGING_HOST_PATH, LOG_HOST_PATH, KUBELET_POD_PATH})

NODE_NAME_ENV = "VCLUSTER_HOSTPATH_MAPPER_CURRENT_NODE_NAME"
POD_NAME_ENV = "POD_NAME"

SERVICE_ACCOUNT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

CONFIG_SECRET_TEMPLATE = "vc-config-{name}"
CONFIG_FILENAME = "config.yaml"

RECONCILE_INTERVAL_SECONDS = 5.0


@dataclass(frozen=True)
class MapperConfig:
    """
    Process-wide settings, resolved once at startup and shared read-only by
    every component.
    """

    target_namespace: str
    name: str
    node_name: str = ""
    pod_name: str = ""
    multi_namespace: bool = False

    client_ca_cert: str = ""
    server_ca_cert: str = ""
    server_ca_key: str = ""

    virtual_root: str = ""

    log_root: str = LOG_HOST_PATH
    pod_log_root: str = POD_LOGGING_HOST_PATH
    physical_pod_log_mount: str = PHYSICAL_POD_LOG_MOUNT_PATH
    physical_kubelet_mount: str = PHYSICAL_KUBELET_MOUNT_PATH

    interval: float = RECONCILE_INTERVAL_SECONDS

    def __post_init__(self):
        if not self.virtual_root:
            object.__setattr__(
                self,
                "virtual_root",
                VIRTUAL_PATH_TEMPLATE.format(
                    namespace=self.target_namespace, name=self.name
                ),
            )

    @property
    def virtual_logs_path(self) -> str:
        return os.path.join(self.virtual_root, "log")

    @property
    def virtual_pod_logs_path(self) -> str:
        return os.path.join(self.virtual_logs_path, "pods")

    @property
    def virtual_container_logs_path(self) -> str:
        return os.path.join(self.virtual_logs_path, "containers")

    @property
    def virtual_kubelet_pods_path(self) -> str:
        return os.path.join(self.virtual_root, "kubelet", "pods")

    @property
    def container_logs_root(self) -> str:
        return os.path.join(self.log_root, "containers")


def current_namespace(path: str = SERVICE_ACCOUNT_NAMESPACE_FILE) -> str:
    try:
        with open(path, encoding="utf-8") as f:
            namespace = f.read().strip()
    except FileNotFoundError:
        return "default"
    return namespace or "default"


def config_from_args(args, environ=None) -> MapperConfig:
    environ = os.environ if environ is None else environ
    return MapperConfig(
        target_namespace=args.target_namespace or current_namespace(),
        name=args.name,
        node_name=environ.get(NODE_NAME_ENV, ""),
        pod_name=environ.get(POD_NAME_ENV, ""),
        client_ca_cert=args.client_ca_cert,
        server_ca_cert=args.server_ca_cert,
        server_ca_key=args.server_ca_key,
    )


# ----------------------------
# vcluster config.yaml
# ----------------------------


class MultiNamespaceMode(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: StrictBool = False

    @field_validator("enabled", mode="before")
    @classmethod
    def null_is_false(cls, value):
        return False if value is None else value


class Experimental(BaseModel):
    model_config = ConfigDict(extra="allow")

    multiNamespaceMode: MultiNamespaceMode = MultiNamespaceMode()

    @field_validator("multiNamespaceMode", mode="before")
    @classmethod
    def null_is_empty(cls, value):
        return {} if value is None else value


class VClusterConfig(BaseModel):
    """
    The slice of the vcluster config.yaml the mapper reads. Other sections
    are carried through untouched. Keys present without a value decode to
    their defaults.
    """

    model_config = ConfigDict(extra="allow")

    experimental: Experimental = Experimental()

    @field_validator("experimental", mode="before")
    @classmethod
    def null_is_empty(cls, value):
        return {} if value is None else value

    @property
    def multi_namespace_enabled(self) -> bool:
        return self.experimental.multiNamespaceMode.enabled


class _StrictLoader(yaml.SafeLoader):
    pass


def _construct_unique_mapping(loader, node, deep=False):
    loader.flatten_mapping(node)
    mapping: dict[Any, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise yaml.constructor.ConstructorError(
                "while constructing a mapping",
                node.start_mark,
                f"found duplicate key {key!r}",
                key_node.start_mark,
            )
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


_StrictLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_unique_mapping
)


def parse_vcluster_config(raw: bytes | str) -> VClusterConfig:
    try:
        data = yaml.load(raw, Loader=_StrictLoader)
    except yaml.YAMLError as e:
        raise ConfigDecodeError(f"unmarshal {CONFIG_FILENAME}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigDecodeError(f"{CONFIG_FILENAME} must be a mapping")

    try:
        return VClusterConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigDecodeError(f"unmarshal {CONFIG_FILENAME}: {e}") from e
