"""Resolution of the settings a porter job runs with.

Each setting is looked up in three places, first match wins:

1. the Installation itself (spec.outputsVolumeSize, spec.porterVersion, spec.serviceAccount)
2. the namespace defaults ConfigMap (`porter` by default)
3. the operator's built-in defaults

Namespace defaults are optional. A missing or unreadable ConfigMap only
means the built-in default is used.
"""

import asyncio
import logging
import aiohttp
from typing import Dict, Mapping, NamedTuple, Optional, Tuple
from kubernetes_asyncio.client import ApiException, CoreV1Api
from porter_operator.common.models.quantity import Quantity
from porter_operator.sensors.base import OperatorSensor
from porter_operator.types.models import Installation
from porter_operator.types.settings import Settings
from porter_operator.utils.errors import ConfigurationError, not_found_error

logger = logging.getLogger(__name__)

SOURCE_INSTALLATION = "installation"
SOURCE_NAMESPACE = "namespace"
SOURCE_DEFAULT = "default"

PULL_ALWAYS = "Always"
PULL_IF_NOT_PRESENT = "IfNotPresent"


class ConfigProvider:
    """Source of per-namespace default settings."""

    async def lookup(self, namespace: str, key: str) -> Optional[str]:
        """Return the default configured for `key` in `namespace`, if any."""
        raise NotImplementedError()


class StaticConfigProvider(ConfigProvider):
    """Namespace defaults held in memory, keyed by namespace then setting."""

    def __init__(self, defaults: Mapping[str, Mapping[str, str]] = None):
        self._defaults: Dict[str, Dict[str, str]] = {
            namespace: dict(values) for namespace, values in (defaults or {}).items()
        }

    async def lookup(self, namespace: str, key: str) -> Optional[str]:
        return self._defaults.get(namespace, {}).get(key)


class ConfigMapConfigProvider(ConfigProvider):
    """Namespace defaults read from a ConfigMap on every lookup."""

    def __init__(
        self,
        core_v1_api: CoreV1Api,
        config_map_name: str,
        request_timeout: Optional[float] = None,
    ):
        self.core_v1_api = core_v1_api
        self.config_map_name = config_map_name
        self.request_timeout = request_timeout

    async def lookup(self, namespace: str, key: str) -> Optional[str]:
        kwargs = {}
        if self.request_timeout is not None:
            kwargs["_request_timeout"] = self.request_timeout
        try:
            config_map = await self.core_v1_api.read_namespaced_config_map(
                name=self.config_map_name, namespace=namespace, **kwargs
            )
        except ApiException as ex:
            if not_found_error(ex):
                logger.info(
                    f"ConfigMap {namespace}/{self.config_map_name} not found, using default configuration"
                )
            else:
                logger.info(
                    f"WARN: cannot retrieve ConfigMap {namespace}/{self.config_map_name} "
                    f"({ex.status} {ex.reason}), using default configuration"
                )
            return None
        except (aiohttp.ClientError, asyncio.TimeoutError) as ex:
            logger.info(
                f"WARN: cannot reach the API server for ConfigMap {namespace}/{self.config_map_name} "
                f"({ex!r}), using default configuration"
            )
            return None
        data = config_map.data or {}
        return data.get(key)


class ResolvedSetting(NamedTuple):
    value: str
    source: str


class ConfigResolver:
    """Resolves execution settings for an Installation.

    Nothing is cached: every call asks the provider again so edits to the
    namespace defaults apply to the next job without restarting the operator.
    """

    OUTPUTS_VOLUME_SIZE_KEY = "outputsVolumeSize"
    PORTER_VERSION_KEY = "porterVersion"
    SERVICE_ACCOUNT_KEY = "serviceAccount"

    FLOATING_VERSIONS = ("latest", "canary")

    def __init__(
        self,
        provider: ConfigProvider,
        conf: Settings = None,
        sensor: OperatorSensor = None,
        logger: logging.Logger = logger,
    ):
        self.provider = provider
        self.conf = conf or Settings()
        self.sensor = sensor or OperatorSensor()
        self.logger = logger

    async def _resolve(
        self,
        installation: Installation,
        key: str,
        override: Optional[str],
        default: str,
    ) -> ResolvedSetting:
        if override:
            self.logger.info(f"{key} override from Installation: {override}")
            resolved = ResolvedSetting(override, SOURCE_INSTALLATION)
        else:
            value = await self.provider.lookup(installation.namespace, key)
            if value:
                self.logger.info(f"{key} defaulted from namespace configuration to {value}")
                resolved = ResolvedSetting(value, SOURCE_NAMESPACE)
            else:
                resolved = ResolvedSetting(default, SOURCE_DEFAULT)
        self.sensor.on_setting_resolved(
            installation.name, installation.namespace, key, resolved.source
        )
        return resolved

    async def resolve_outputs_volume_size(self, installation: Installation) -> Quantity:
        """Size of the scratch volume shared between porter and the bundle.

        Raises:
            ConfigurationError: The configured size is not a valid quantity.
        """
        resolved = await self._resolve(
            installation,
            self.OUTPUTS_VOLUME_SIZE_KEY,
            installation.spec.outputs_volume_size,
            self.conf.default_outputs_volume_size,
        )
        try:
            size = Quantity.parse(resolved.value)
        except ValueError as ex:
            raise ConfigurationError(
                f"invalid {self.OUTPUTS_VOLUME_SIZE_KEY} {resolved.value!r} from {resolved.source} "
                f"for Installation {installation.namespace}/{installation.name}"
                f"@{installation.revision(self.conf.revision_field)}: {ex}"
            ) from ex
        self.logger.info(f"resolved bundle outputs volume size: {size}")
        return size

    async def resolve_porter_version(self, installation: Installation) -> Tuple[str, str]:
        """Porter version to run and the image pull policy that goes with it.

        Floating tags are always pulled so they stay current, pinned versions
        are pulled once per node.
        """
        resolved = await self._resolve(
            installation,
            self.PORTER_VERSION_KEY,
            installation.spec.porter_version,
            self.conf.default_porter_version,
        )
        version = resolved.value
        self.logger.info(f"resolved porter image version: {version}")
        return version, self.pull_policy(version)

    async def resolve_service_account(self, installation: Installation) -> str:
        """Service account of the porter agent, empty for the namespace default."""
        resolved = await self._resolve(
            installation,
            self.SERVICE_ACCOUNT_KEY,
            installation.spec.service_account,
            "",
        )
        self.logger.info(f"resolved porter agent service account: {resolved.value!r}")
        return resolved.value

    @classmethod
    def pull_policy(cls, version: str) -> str:
        if version in cls.FLOATING_VERSIONS:
            return PULL_ALWAYS
        return PULL_IF_NOT_PRESENT
