"""Shared fixtures: Installation bodies and an in-memory stand-in for the API server."""

import copy
import json
import pytest
from kubernetes_asyncio.client import ApiException
from porter_operator.resources import InstallationJob, StaticConfigProvider
from porter_operator.sensors.base import OperatorSensor
from porter_operator.types.schemas import InstallationSchema
from porter_operator.types.settings import Settings


def make_api_error(status: int, reason: str) -> ApiException:
    ex = ApiException(status=status, reason=reason)
    ex.body = json.dumps({"kind": "Status", "reason": reason, "message": f"{reason} ({status})"})
    return ex


class FakeCluster:
    """Keeps created objects in dictionaries keyed by (namespace, name)."""

    def __init__(self):
        self.installations = {}
        self.jobs = {}
        self.pvcs = {}
        self.calls = []

    def add_installation(self, body):
        meta = body["metadata"]
        self.installations[(meta["namespace"], meta["name"])] = copy.deepcopy(body)


class FakeCustomObjectsApi:
    def __init__(self, cluster: FakeCluster):
        self.cluster = cluster

    async def get_namespaced_custom_object(self, group, version, namespace, plural, name, **kwargs):
        self.cluster.calls.append(("get_installation", namespace, name))
        try:
            return copy.deepcopy(self.cluster.installations[(namespace, name)])
        except KeyError:
            raise make_api_error(404, "NotFound")


class FakeBatchV1Api:
    def __init__(self, cluster: FakeCluster):
        self.cluster = cluster

    async def read_namespaced_job(self, name, namespace, **kwargs):
        self.cluster.calls.append(("read_job", namespace, name))
        try:
            return self.cluster.jobs[(namespace, name)]
        except KeyError:
            raise make_api_error(404, "NotFound")

    async def create_namespaced_job(self, namespace, body, **kwargs):
        self.cluster.calls.append(("create_job", namespace, body.metadata.name))
        key = (namespace, body.metadata.name)
        if key in self.cluster.jobs:
            raise make_api_error(409, "AlreadyExists")
        self.cluster.jobs[key] = body
        return body


class FakeCoreV1Api:
    def __init__(self, cluster: FakeCluster):
        self.cluster = cluster

    async def create_namespaced_persistent_volume_claim(self, namespace, body, **kwargs):
        self.cluster.calls.append(("create_pvc", namespace, body.metadata.name))
        key = (namespace, body.metadata.name)
        if key in self.cluster.pvcs:
            raise make_api_error(409, "AlreadyExists")
        self.cluster.pvcs[key] = body
        return body


def make_installation_body(
    name="wordpress",
    namespace="default",
    resource_version="812",
    generation=5,
    **spec,
):
    spec.setdefault("reference", "example.com/wordpress-bundle:v1")
    spec.setdefault("action", "install")
    return {
        "apiVersion": "porter.sh/v1",
        "kind": "Installation",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": f"{name}-uid",
            "resourceVersion": resource_version,
            "generation": generation,
        },
        "spec": spec,
    }


@pytest.fixture
def api_error():
    """Factory for ApiException carrying a Kubernetes Status body."""
    return make_api_error


@pytest.fixture
def installation_body():
    """Factory for raw Installation objects as returned by the API server."""
    return make_installation_body


@pytest.fixture
def installation_factory():
    """Factory for loaded Installation models."""

    def factory(**kwargs):
        return InstallationSchema().load(make_installation_body(**kwargs))

    return factory


@pytest.fixture
def conf():
    return Settings(
        config_map_name="porter",
        default_outputs_volume_size="128Mi",
        default_porter_version="latest",
        porter_image_repository="ghcr.io/getporter/porter",
        porter_image_tag_prefix="kubernetes-",
        porter_driver="kubernetes",
        revision_field="generation",
        api_request_timeout_seconds=10.0,
    )


@pytest.fixture
def cluster(monkeypatch, conf):
    """Point InstallationJob at an in-memory cluster."""
    fake = FakeCluster()
    monkeypatch.setattr(InstallationJob, "conf", conf)
    monkeypatch.setattr(InstallationJob, "sensor", OperatorSensor())
    monkeypatch.setattr(InstallationJob, "custom_objects_api", FakeCustomObjectsApi(fake))
    monkeypatch.setattr(InstallationJob, "batch_v1_api", FakeBatchV1Api(fake))
    monkeypatch.setattr(InstallationJob, "core_v1_api", FakeCoreV1Api(fake))
    monkeypatch.setattr(InstallationJob, "config_provider", StaticConfigProvider())
    return fake
