import mmh3
import hashlib
from typing import Any, Dict, Optional, Union
from porter_operator.utils.helpers import canonicalize_dict
from porter_operator.utils.errors import already_exists_error, not_found_error
from porter_operator.common.models.labels import Labels
from kubernetes_asyncio.client import (
    ApiException,
    BatchV1Api,
    CoreV1Api,
    CustomObjectsApi,
    V1Job,
    V1PersistentVolumeClaim,
)

OPERATION_CREATE = "create"
OPERATION_EXISTS = "exists"


class BaseResource:
    """Base resource model.

    Wraps the Kubernetes API calls the operator needs. Reads return None
    when the object does not exist, creates report whether the object was
    created or already present. Every other API error is raised unchanged.
    """

    PORTER_OPERATOR_NAME = "porter-operator"
    HASH_ANNOTATION = "porter.sh/installation-hash"

    _namespace: str
    _labels: Labels

    #: Seconds before an API request is abandoned, None to wait forever
    request_timeout: Optional[float] = None

    def __init__(self, namespace: str, labels: Labels):
        self._namespace = namespace
        self._labels = labels

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def labels(self) -> Labels:
        return self._labels

    def _request_kwargs(self) -> Dict[str, Any]:
        if self.request_timeout is None:
            return {}
        return {"_request_timeout": self.request_timeout}

    def compute_hash(self, data: Any) -> str:
        """Compute a murmur3 hash."""
        if isinstance(data, dict):
            _data = canonicalize_dict(data)
        elif isinstance(data, str):
            _data = data.encode()
        else:
            raise ValueError(f"Hash of {type(data)} is not supported.")
        mumur_str = str(mmh3.hash128(_data))

        hash_obj = hashlib.sha256(mumur_str.encode("utf-8"))
        full_hash = hash_obj.hexdigest()

        # First 16 characters keep annotations readable
        return full_hash[:16]

    def prepare_hash_annotation(self, hash: Union[str, int]) -> Dict[str, str]:
        """Prepare hash annotation for k8s resources."""
        return {self.HASH_ANNOTATION: str(hash)}

    async def fetch_job(
        self, batch_v1_api: BatchV1Api, name: str, namespace: str
    ) -> Optional[V1Job]:
        """Retrieve the latest state of a job"""
        try:
            return await batch_v1_api.read_namespaced_job(
                name=name, namespace=namespace, **self._request_kwargs()
            )
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def create_job(
        self, batch_v1_api: BatchV1Api, namespace: str, job: V1Job
    ) -> str:
        try:
            await batch_v1_api.create_namespaced_job(
                namespace=namespace, body=job, **self._request_kwargs()
            )
        except ApiException as ex:
            # A job is never replaced: its name pins the revision it runs.
            if already_exists_error(ex):
                return OPERATION_EXISTS
            raise
        return OPERATION_CREATE

    async def create_persistent_volume_claim(
        self,
        core_v1_api: CoreV1Api,
        namespace: str,
        pvc: V1PersistentVolumeClaim,
    ) -> str:
        try:
            await core_v1_api.create_namespaced_persistent_volume_claim(
                namespace=namespace, body=pvc, **self._request_kwargs()
            )
        except ApiException as ex:
            if already_exists_error(ex):
                return OPERATION_EXISTS
            raise
        return OPERATION_CREATE

    async def get_custom_object(
        self,
        custom_objects_api: CustomObjectsApi,
        namespace: str,
        group: str,
        version: str,
        plural: str,
        name: str,
    ) -> Optional[Dict[str, Any]]:
        try:
            return await custom_objects_api.get_namespaced_custom_object(
                group=group,
                version=version,
                namespace=namespace,
                plural=plural,
                name=name,
                **self._request_kwargs(),
            )
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise
