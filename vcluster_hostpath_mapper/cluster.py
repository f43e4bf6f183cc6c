"""
Read access to the host and the virtual cluster.

Both views hand out plain Kubernetes-shaped dicts so the rest of the mapper
never touches generated client models.
"""

import logging
import threading
from typing import Any

import urllib3
from kubernetes import client
from kubernetes import config as kube_config
from kubernetes.client.rest import ApiException
from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_result,
    stop_after_delay,
    stop_when_event_set,
    wait_fixed,
)

from vcluster_hostpath_mapper.config import MapperConfig
from vcluster_hostpath_mapper.errors import ListingError, StartupError

logger = logging.getLogger(__name__)

NODE_NAME_FIELD = "spec.nodeName"

READINESS_TIMEOUT_SECONDS = 3600
READINESS_INTERVAL_SECONDS = 1

API_ERRORS = (ApiException, urllib3.exceptions.HTTPError)


def is_not_found(e: Exception) -> bool:
    return isinstance(e, ApiException) and e.status == 404


class ClusterView:
    """
    Synchronous queries against one cluster's API server.
    """

    def __init__(self, api_client: client.ApiClient, name: str = "host"):
        self.api_client = api_client
        self.name = name
        self.core_v1 = client.CoreV1Api(api_client)
        self.apps_v1 = client.AppsV1Api(api_client)

    def _to_dict(self, obj) -> dict[str, Any]:
        return self.api_client.sanitize_for_serialization(obj)

    # ----------------------------
    # Listings
    # ----------------------------

    def list_pods_on_node(
        self, node_name: str, namespace: str | None = None
    ) -> list[dict[str, Any]]:
        selector = f"{NODE_NAME_FIELD}={node_name}"
        try:
            if namespace:
                resp = self.core_v1.list_namespaced_pod(
                    namespace, field_selector=selector
                )
            else:
                resp = self.core_v1.list_pod_for_all_namespaces(
                    field_selector=selector
                )
        except API_ERRORS as e:
            raise ListingError(f"unable to list {self.name} pods: {e}") from e
        return [self._to_dict(pod) for pod in resp.items]

    def list_namespace_names(self, label_selector: str) -> list[str]:
        try:
            resp = self.core_v1.list_namespace(label_selector=label_selector)
        except API_ERRORS as e:
            raise ListingError(f"unable to list {self.name} namespaces: {e}") from e
        return [ns.metadata.name for ns in resp.items]

    # ----------------------------
    # Single objects (None when absent)
    # ----------------------------

    def read_secret(self, namespace: str, name: str) -> dict[str, Any] | None:
        try:
            return self._to_dict(self.core_v1.read_namespaced_secret(name, namespace))
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    def read_statefulset(self, namespace: str, name: str) -> dict[str, Any] | None:
        try:
            return self._to_dict(
                self.apps_v1.read_namespaced_stateful_set(name, namespace)
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    def read_deployment(self, namespace: str, name: str) -> dict[str, Any] | None:
        try:
            return self._to_dict(
                self.apps_v1.read_namespaced_deployment(name, namespace)
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    def delete_pod(self, namespace: str, name: str) -> None:
        self.core_v1.delete_namespaced_pod(name, namespace)


# ----------------------------
# Client construction
# ----------------------------


def load_host_api_client() -> client.ApiClient:
    try:
        # In-cluster first, kubeconfig for running outside a pod
        kube_config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except kube_config.ConfigException:
        try:
            kube_config.load_kube_config()
            logger.info("Loaded kubeconfig")
        except kube_config.ConfigException as e:
            raise StartupError("Cannot load Kubernetes configuration") from e
    return client.ApiClient()


def virtual_api_client(config: MapperConfig) -> client.ApiClient:
    configuration = client.Configuration()
    configuration.host = f"https://{config.name}"
    configuration.cert_file = config.client_ca_cert
    configuration.key_file = config.server_ca_key
    configuration.ssl_ca_cert = config.server_ca_cert
    configuration.tls_server_name = config.name
    return client.ApiClient(configuration)


# ----------------------------
# Virtual cluster readiness
# ----------------------------


def virtual_cluster_ready(api_client: client.ApiClient) -> bool:
    try:
        client.VersionApi(api_client).get_code()
    except API_ERRORS as e:
        logger.info(f"couldn't retrieve virtual cluster version ({e}), will retry")
        return False

    try:
        client.CoreV1Api(api_client).read_namespaced_service_account(
            "default", "default"
        )
    except API_ERRORS:
        logger.info("default ServiceAccount is not available yet, will retry")
        return False

    return True


def wait_for_virtual_cluster(
    api_client: client.ApiClient,
    stop: threading.Event,
    timeout: float = READINESS_TIMEOUT_SECONDS,
    interval: float = READINESS_INTERVAL_SECONDS,
) -> None:
    """
    Block until the virtual API server serves discovery and the default
    ServiceAccount exists. Raises StartupError on timeout or when `stop`
    is set first.
    """
    retrying = Retrying(
        retry=retry_if_result(lambda ready: not ready),
        wait=wait_fixed(interval),
        stop=stop_after_delay(timeout) | stop_when_event_set(stop),
        sleep=stop.wait,
        before_sleep=before_sleep_log(logger, logging.DEBUG),
    )
    try:
        retrying(virtual_cluster_ready, api_client)
    except RetryError as e:
        if stop.is_set():
            raise StartupError("cancelled while waiting for virtual cluster") from e
        raise StartupError(
            f"virtual cluster not ready after {timeout:.0f} seconds"
        ) from e
