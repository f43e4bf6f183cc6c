import base64
import binascii
import logging
from dataclasses import replace

from vcluster_hostpath_mapper.cluster import API_ERRORS
from vcluster_hostpath_mapper.config import (
    CONFIG_FILENAME,
    CONFIG_SECRET_TEMPLATE,
    MapperConfig,
    VClusterConfig,
    parse_vcluster_config,
)
from vcluster_hostpath_mapper.errors import ConfigDecodeError, ModeResolutionError
from vcluster_hostpath_mapper.model import workload_containers

logger = logging.getLogger(__name__)

MULTI_NAMESPACE_MARKER = "multi-namespace-mode"
SYNCER_CONTAINER = "syncer"


def read_config_secret(host, config: MapperConfig) -> VClusterConfig | None:
    """
    Decode config.yaml from the vc-config-<name> secret.
    Returns None when the secret does not exist.
    """
    secret_name = CONFIG_SECRET_TEMPLATE.format(name=config.name)
    try:
        secret = host.read_secret(config.target_namespace, secret_name)
    except API_ERRORS as e:
        raise ModeResolutionError(f"reading secret {secret_name}: {e}") from e

    if secret is None:
        return None

    encoded = (secret.get("data") or {}).get(CONFIG_FILENAME)
    if encoded is None:
        raise ConfigDecodeError(f"key '{CONFIG_FILENAME}' not found in secret")

    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigDecodeError(f"{CONFIG_FILENAME} is not valid base64") from e

    return parse_vcluster_config(raw)


def read_syncer_workload(host, config: MapperConfig) -> dict:
    """
    The syncer runs as a StatefulSet, or as a Deployment on distros that
    do not need one.
    """
    try:
        workload = host.read_statefulset(config.target_namespace, config.name)
        if workload is None:
            workload = host.read_deployment(config.target_namespace, config.name)
    except API_ERRORS as e:
        raise ModeResolutionError(f"looking up vcluster workload: {e}") from e

    if workload is None:
        raise ModeResolutionError(
            f"could not find vcluster {config.name} in namespace "
            f"{config.target_namespace} as statefulset or deployment"
        )
    return workload


def has_multi_namespace_marker(workload: dict) -> bool:
    for container in workload_containers(workload):
        if container.get("name") != SYNCER_CONTAINER:
            continue
        for arg in container.get("args") or []:
            if MULTI_NAMESPACE_MARKER in arg:
                return True
    return False


def detect_multi_namespace(host, config: MapperConfig) -> bool:
    vcluster_config = read_config_secret(host, config)
    if vcluster_config is not None and vcluster_config.multi_namespace_enabled:
        return True

    return has_multi_namespace_marker(read_syncer_workload(host, config))


def resolve_mode(host, config: MapperConfig) -> MapperConfig:
    """
    Return the configuration with the translation mode settled.
    """
    multi_namespace = detect_multi_namespace(host, config)
    mode = "multi-namespace" if multi_namespace else "single-namespace"
    logger.info(f"vcluster {config.name} runs in {mode} mode")
    return replace(config, multi_namespace=multi_namespace)
