from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
import urllib3
from kubernetes.client.rest import ApiException

from vcluster_hostpath_mapper import cluster
from vcluster_hostpath_mapper.config import MapperConfig
from vcluster_hostpath_mapper.errors import ListingError

TRANSPORT_ERRORS = [
    ApiException(status=500, reason="Internal Server Error"),
    urllib3.exceptions.ProtocolError("connection reset"),
]


@pytest.fixture
def apis():
    with patch.object(cluster.client, "CoreV1Api") as core, patch.object(
        cluster.client, "AppsV1Api"
    ) as apps:
        yield core.return_value, apps.return_value


@pytest.fixture
def view(apis):
    api_client = Mock()
    api_client.sanitize_for_serialization.side_effect = lambda obj: obj
    return cluster.ClusterView(api_client, name="host")


def named(name):
    return SimpleNamespace(metadata=SimpleNamespace(name=name))


# ----------------------------
# Listings
# ----------------------------


class TestListPodsOnNode:
    def test_namespaced_listing_uses_node_field_selector(self, view, apis):
        core, _ = apis
        pod = {"metadata": {"name": "p1"}}
        core.list_namespaced_pod.return_value = Mock(items=[pod])

        assert view.list_pods_on_node("node-1", namespace="team") == [pod]
        core.list_namespaced_pod.assert_called_once_with(
            "team", field_selector="spec.nodeName=node-1"
        )
        core.list_pod_for_all_namespaces.assert_not_called()

    def test_cluster_wide_listing_without_namespace(self, view, apis):
        core, _ = apis
        core.list_pod_for_all_namespaces.return_value = Mock(items=[])

        assert view.list_pods_on_node("node-1") == []
        core.list_pod_for_all_namespaces.assert_called_once_with(
            field_selector="spec.nodeName=node-1"
        )

    @pytest.mark.parametrize("error", TRANSPORT_ERRORS)
    def test_failures_become_listing_errors(self, view, apis, error):
        core, _ = apis
        core.list_pod_for_all_namespaces.side_effect = error

        with pytest.raises(ListingError, match="unable to list host pods"):
            view.list_pods_on_node("node-1")


class TestListNamespaceNames:
    def test_returns_names(self, view, apis):
        core, _ = apis
        core.list_namespace.return_value = Mock(items=[named("a"), named("b")])

        assert view.list_namespace_names("owner=vc") == ["a", "b"]
        core.list_namespace.assert_called_once_with(label_selector="owner=vc")

    @pytest.mark.parametrize("error", TRANSPORT_ERRORS)
    def test_failures_become_listing_errors(self, view, apis, error):
        core, _ = apis
        core.list_namespace.side_effect = error

        with pytest.raises(ListingError, match="namespaces"):
            view.list_namespace_names("owner=vc")


# ----------------------------
# Single objects
# ----------------------------


def _reader(apis, method):
    core, apps = apis
    return getattr(core if method == "read_namespaced_secret" else apps, method)


@pytest.mark.parametrize(
    "read, method",
    [
        ("read_secret", "read_namespaced_secret"),
        ("read_statefulset", "read_namespaced_stateful_set"),
        ("read_deployment", "read_namespaced_deployment"),
    ],
)
class TestReads:
    def test_found_object_is_returned(self, view, apis, read, method):
        obj = {"metadata": {"name": "vcluster"}}
        _reader(apis, method).return_value = obj

        assert getattr(view, read)("vcluster-ns", "vcluster") == obj
        _reader(apis, method).assert_called_once_with("vcluster", "vcluster-ns")

    def test_not_found_is_none(self, view, apis, read, method):
        _reader(apis, method).side_effect = ApiException(status=404, reason="Not Found")

        assert getattr(view, read)("vcluster-ns", "vcluster") is None

    def test_other_statuses_propagate(self, view, apis, read, method):
        _reader(apis, method).side_effect = ApiException(status=403, reason="Forbidden")

        with pytest.raises(ApiException) as exc_info:
            getattr(view, read)("vcluster-ns", "vcluster")
        assert exc_info.value.status == 403


def test_delete_pod_passes_name_then_namespace(view, apis):
    core, _ = apis
    view.delete_pod("team", "fluentd")
    core.delete_namespaced_pod.assert_called_once_with("fluentd", "team")


# ----------------------------
# Virtual cluster client and readiness
# ----------------------------


def test_virtual_api_client_uses_mounted_credentials():
    config = MapperConfig(
        target_namespace="team",
        name="vc1",
        client_ca_cert="/certs/client.crt",
        server_ca_cert="/certs/ca.crt",
        server_ca_key="/certs/client.key",
    )
    configuration = cluster.virtual_api_client(config).configuration

    assert configuration.host == "https://vc1"
    assert configuration.cert_file == "/certs/client.crt"
    assert configuration.key_file == "/certs/client.key"
    assert configuration.ssl_ca_cert == "/certs/ca.crt"
    assert configuration.tls_server_name == "vc1"


class TestVirtualClusterReady:
    @pytest.fixture
    def ready_apis(self):
        with patch.object(cluster.client, "VersionApi") as version, patch.object(
            cluster.client, "CoreV1Api"
        ) as core:
            yield version.return_value, core.return_value

    def test_ready_once_version_and_service_account_answer(self, ready_apis):
        version, core = ready_apis

        assert cluster.virtual_cluster_ready(Mock()) is True
        version.get_code.assert_called_once_with()
        core.read_namespaced_service_account.assert_called_once_with(
            "default", "default"
        )

    @pytest.mark.parametrize("error", TRANSPORT_ERRORS)
    def test_version_failure_is_not_ready(self, ready_apis, error):
        version, core = ready_apis
        version.get_code.side_effect = error

        assert cluster.virtual_cluster_ready(Mock()) is False
        core.read_namespaced_service_account.assert_not_called()

    def test_missing_service_account_is_not_ready(self, ready_apis):
        _, core = ready_apis
        core.read_namespaced_service_account.side_effect = ApiException(status=404)

        assert cluster.virtual_cluster_ready(Mock()) is False
