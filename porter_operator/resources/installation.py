import asyncio
import logging
import aiohttp
from functools import cached_property
from logging import Logger
from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional
from marshmallow import ValidationError
from kubernetes_asyncio.client import (
    ApiException,
    BatchV1Api,
    CoreV1Api,
    CustomObjectsApi,
    V1Container,
    V1EnvFromSource,
    V1EnvVar,
    V1Job,
    V1JobSpec,
    V1ObjectMeta,
    V1OwnerReference,
    V1PersistentVolumeClaim,
    V1PersistentVolumeClaimSpec,
    V1PersistentVolumeClaimVolumeSource,
    V1PodSpec,
    V1PodTemplateSpec,
    V1ResourceRequirements,
    V1SecretEnvSource,
    V1SecretVolumeSource,
    V1Volume,
    V1VolumeMount,
)
from kubernetes_asyncio.client.api_client import ApiClient

from porter_operator.common.models.labels import Labels
from porter_operator.common.models.quantity import Quantity
from porter_operator.resources.base import BaseResource, OPERATION_CREATE
from porter_operator.resources.config import (
    ConfigMapConfigProvider,
    ConfigProvider,
    ConfigResolver,
)
from porter_operator.sensors.base import OperatorSensor
from porter_operator.types.models import Installation, InstallationResources
from porter_operator.types.schemas import InstallationSchema
from porter_operator.types.settings import Settings
from porter_operator.utils.errors import ConfigurationError, ReconciliationError
from porter_operator.utils.helpers import iter_sorted_items, repeated_flag

# Failures of a single API call, as opposed to cancellation of the whole pass.
_API_ERRORS = (ApiException, aiohttp.ClientError, asyncio.TimeoutError)


class ReconcileOutcome(NamedTuple):
    job_name: str
    revision: str
    created: bool


class InstallationJob(BaseResource):
    """The porter job (and its scratch volume) that runs one Installation revision.

    Job names are `<installation>-<revision>`, so each revision of the
    Installation maps to exactly one job. An existing job is never modified
    or restarted; a new revision simply gets a new job.
    """

    KIND = "Installation"
    GROUP_NAME = "porter.sh"
    GROUP_VERSION = "v1"
    PLURAL_NAME = "installations"

    #: Porter actions that are passed as the command, everything else goes through `invoke`
    CORE_ACTIONS = ("install", "upgrade", "uninstall")

    RESOURCE_TYPE_PVC = "persistent_volume_claim"
    RESOURCE_TYPE_JOB = "job"

    conf: Settings = Settings()
    sensor: OperatorSensor = OperatorSensor()
    shared_api_client: ApiClient = None
    config_provider: ConfigProvider = None

    name: str
    logger: Logger
    installation: Optional[Installation] = None
    revision: Optional[str] = None
    job_name: Optional[str] = None

    def __init__(self, name: str, namespace: str, logger: Logger = None):
        super().__init__(namespace, Labels.generate_default_labels(name))
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self.request_timeout = self.conf.api_request_timeout_seconds

    @classmethod
    def from_installation(
        cls, installation: Installation, logger: Logger = None
    ) -> "InstallationJob":
        job = cls(installation.name, installation.namespace, logger)
        job.installation = installation
        job.revision = cls.revision_of(installation, cls.conf.revision_field)
        job.job_name = InstallationResources.job_name(installation.name, job.revision)
        return job

    @classmethod
    def revision_of(cls, installation: Installation, revision_field: str) -> str:
        """Revision token of the Installation, taken from its metadata."""
        revision = installation.revision(revision_field)
        if revision is None:
            raise ConfigurationError(
                f"Installation {installation.namespace}/{installation.name} has no {revision_field}"
            )
        return revision

    @classmethod
    async def reconcile(
        cls, name: str, namespace: str, logger: Logger = None
    ) -> Optional[ReconcileOutcome]:
        """Make sure the job for the current revision of an Installation exists.

        Returns None when the Installation no longer exists.
        """
        logger = logger or logging.getLogger(__name__)
        installation = await cls(name, namespace, logger).fetch()
        if installation is None:
            # TODO: remove jobs and volumes left behind once a retention policy is decided
            logger.info(f"Installation {namespace}/{name} has been deleted")
            return None
        job = cls.from_installation(installation, logger)
        return await job.synchronize()

    async def fetch(self) -> Optional[Installation]:
        """Fetch the Installation from kubernetes."""
        try:
            body = await self.get_custom_object(
                self.custom_objects_api,
                namespace=self.namespace,
                group=self.GROUP_NAME,
                version=self.GROUP_VERSION,
                plural=self.PLURAL_NAME,
                name=self.name,
            )
        except _API_ERRORS as ex:
            raise ReconciliationError(
                "could not retrieve the Installation", self.namespace, self.name
            ) from ex
        if body is None:
            return None
        return self.load(body)

    def load(self, body: Dict) -> Installation:
        try:
            return InstallationSchema().load(body)
        except ValidationError as ex:
            raise ConfigurationError(
                f"Installation {self.namespace}/{self.name} is invalid: {ex.messages}"
            ) from ex

    async def synchronize(self) -> ReconcileOutcome:
        """Create the job for this revision unless it already exists."""
        try:
            job = await self.fetch_job(self.batch_v1_api, self.job_name, self.namespace)
        except _API_ERRORS as ex:
            raise ReconciliationError(
                f"could not query for the bundle installation job {self.job_name}",
                self.namespace,
                self.name,
                self.revision,
            ) from ex
        if job is not None:
            self.logger.debug(f"Job {self.namespace}/{self.job_name} already exists.")
            return ReconcileOutcome(self.job_name, self.revision, False)

        created = await self.create()
        return ReconcileOutcome(self.job_name, self.revision, created)

    async def create(self) -> bool:
        """Create the scratch volume, then the job that mounts it.

        Returns True if the job was created by this call, False if it
        turned out to exist already.
        """
        self.logger.info(
            f"creating porter job {self.namespace}/{self.job_name} "
            f"for Installation {self.namespace}/{self.name}"
        )
        size = await self.config_resolver.resolve_outputs_volume_size(self.installation)
        pvc = self.prepare_outputs_volume_claim(size)
        await self._create_child(
            self.RESOURCE_TYPE_PVC,
            pvc.metadata.name,
            lambda: self.create_persistent_volume_claim(
                self.core_v1_api, self.namespace, pvc
            ),
        )

        version, pull_policy = await self.config_resolver.resolve_porter_version(
            self.installation
        )
        service_account = await self.config_resolver.resolve_service_account(
            self.installation
        )
        job = self.prepare_job(version, pull_policy, service_account)
        self.logger.info(f"Using {job.spec.template.spec.containers[0].image}")
        operation = await self._create_child(
            self.RESOURCE_TYPE_JOB,
            job.metadata.name,
            lambda: self.create_job(self.batch_v1_api, self.namespace, job),
        )
        return operation == OPERATION_CREATE

    async def _create_child(
        self,
        resource_type: str,
        resource_name: str,
        create: Callable[[], Awaitable[str]],
    ) -> str:
        sensor_state = self.sensor.on_resource_sync_start(
            self.name, resource_name, self.namespace, resource_type
        )
        success, operation, error = False, OPERATION_CREATE, None
        try:
            operation = await create()
            success = True
        except _API_ERRORS as ex:
            error = ex
            raise ReconciliationError(
                f"error creating {resource_type} {resource_name}",
                self.namespace,
                self.name,
                self.revision,
            ) from ex
        finally:
            self.sensor.on_resource_sync_complete(
                self.name,
                resource_name,
                self.namespace,
                resource_type,
                sensor_state,
                operation,
                success,
                error,
            )
        if operation != OPERATION_CREATE:
            self.logger.info(
                f"{resource_type} {self.namespace}/{resource_name} already exists, nothing to create"
            )
        return operation

    def prepare_outputs_volume_claim(self, size: Quantity) -> V1PersistentVolumeClaim:
        """Volume porter uses to share outputs with the bundle's invocation image."""
        name = InstallationResources.outputs_volume_claim_name(self.name, self.revision)
        labels = self.labels.copy().include_job(self.job_name)
        return V1PersistentVolumeClaim(
            api_version="v1",
            kind="PersistentVolumeClaim",
            metadata=V1ObjectMeta(
                name=name,
                namespace=self.namespace,
                labels=labels.as_dict(),
            ),
            spec=V1PersistentVolumeClaimSpec(
                access_modes=["ReadWriteOnce"],
                resources=V1ResourceRequirements(requests={"storage": str(size)}),
            ),
        )

    def prepare_args(self) -> List[str]:
        """Command line of the porter agent.

        porter ACTION INSTALLATION --reference=REFERENCE --debug ...
        """
        spec = self.installation.spec
        if spec.action in self.CORE_ACTIONS:
            args = [spec.action]
        else:
            args = ["invoke", f"--action={spec.action}"]

        args.extend(
            [
                self.name,
                f"--reference={spec.reference}",
                "--debug",
                "--debug-plugins",
                f"--driver={self.conf.porter_driver}",
            ]
        )
        args.extend(repeated_flag("-c", spec.credential_sets))
        args.extend(repeated_flag("-p", spec.parameter_sets))
        args.extend(
            f"--param={key}={value}" for key, value in iter_sorted_items(spec.parameters)
        )
        return args

    def prepare_env(self) -> List[V1EnvVar]:
        """Configuration of porter's kubernetes driver."""
        return [
            V1EnvVar(name="KUBE_NAMESPACE", value=self.namespace),
            V1EnvVar(name="IN_CLUSTER", value="true"),
            V1EnvVar(name="LABELS", value=self.labels.as_str(" ")),
            V1EnvVar(
                name="JOB_VOLUME_NAME",
                value=InstallationResources.outputs_volume_claim_name(self.name, self.revision),
            ),
            V1EnvVar(name="JOB_VOLUME_PATH", value=InstallationResources.SHARED_VOLUME_PATH),
            V1EnvVar(name="CLEANUP_JOBS", value="false"),
        ]

    def prepare_volumes(self) -> List[V1Volume]:
        return [
            V1Volume(
                name=InstallationResources.SHARED_VOLUME_NAME,
                persistent_volume_claim=V1PersistentVolumeClaimVolumeSource(
                    claim_name=InstallationResources.outputs_volume_claim_name(
                        self.name, self.revision
                    ),
                ),
            ),
            V1Volume(
                name=InstallationResources.CONFIG_VOLUME_NAME,
                secret=V1SecretVolumeSource(
                    secret_name=InstallationResources.config_secret_name(self.name),
                    optional=True,
                ),
            ),
        ]

    def prepare_volume_mounts(self) -> List[V1VolumeMount]:
        return [
            V1VolumeMount(
                name=InstallationResources.SHARED_VOLUME_NAME,
                mount_path=InstallationResources.SHARED_VOLUME_PATH,
            ),
            V1VolumeMount(
                name=InstallationResources.CONFIG_VOLUME_NAME,
                mount_path=InstallationResources.CONFIG_VOLUME_PATH,
            ),
        ]

    def prepare_owner_references(self) -> Optional[List[V1OwnerReference]]:
        if not self.installation.metadata.uid:
            return None
        return [
            V1OwnerReference(
                api_version=self.installation.api_version,
                kind=self.installation.kind,
                name=self.name,
                uid=self.installation.metadata.uid,
                controller=True,
                block_owner_deletion=True,
            )
        ]

    def prepare_job(
        self, version: str, pull_policy: str, service_account: str
    ) -> V1Job:
        labels = self.labels.as_dict()
        annotations = self.prepare_hash_annotation(
            self.compute_hash(self.installation.spec.as_dict())
        )
        container = V1Container(
            name=InstallationResources.container_name(self.name, self.revision),
            image=InstallationResources.image(
                self.conf.porter_image_repository,
                self.conf.porter_image_tag_prefix,
                version,
            ),
            image_pull_policy=pull_policy,
            args=self.prepare_args(),
            env=self.prepare_env(),
            env_from=[
                V1EnvFromSource(
                    secret_ref=V1SecretEnvSource(
                        name=InstallationResources.env_secret_name(self.name),
                        optional=True,
                    )
                )
            ],
            volume_mounts=self.prepare_volume_mounts(),
        )
        return V1Job(
            api_version="batch/v1",
            kind="Job",
            metadata=V1ObjectMeta(
                name=self.job_name,
                namespace=self.namespace,
                labels=labels,
                annotations=annotations,
                owner_references=self.prepare_owner_references(),
            ),
            spec=V1JobSpec(
                completions=1,
                backoff_limit=0,
                template=V1PodTemplateSpec(
                    metadata=V1ObjectMeta(labels=labels),
                    spec=V1PodSpec(
                        containers=[container],
                        volumes=self.prepare_volumes(),
                        restart_policy="Never",
                        service_account_name=service_account or None,
                    ),
                ),
            ),
        )

    @cached_property
    def config_resolver(self) -> ConfigResolver:
        provider = self.config_provider or ConfigMapConfigProvider(
            self.core_v1_api, self.conf.config_map_name, self.request_timeout
        )
        return ConfigResolver(provider, self.conf, self.sensor, self.logger)

    @cached_property
    def core_v1_api(self) -> CoreV1Api:
        return CoreV1Api(self.shared_api_client)

    @cached_property
    def batch_v1_api(self) -> BatchV1Api:
        return BatchV1Api(self.shared_api_client)

    @cached_property
    def custom_objects_api(self) -> CustomObjectsApi:
        return CustomObjectsApi(self.shared_api_client)
