import os
from typing import Any

_TRUE, _FALSE = {"True", "true", "yes", "1"}, {"False", "false", "no", "0"}


def _getenv(name: str, *default: Any) -> Any:
    try:
        v = os.environ[name]
        if v in _TRUE:
            return True
        elif v in _FALSE:
            return False
        else:
            return v
    except KeyError:
        pass
    if default:
        return default[0]
    raise KeyError(name)


# ------------------------------------------------
# ---- Defaults and environment variables ----
# ------------------------------------------------

#: Name of the ConfigMap holding per-namespace defaults for Installations
PORTER_CONFIG_MAP_NAME = _getenv("PORTER_CONFIG_MAP_NAME", "porter")

#: Size of the scratch volume shared by porter and the bundle when nothing else is configured
DEFAULT_OUTPUTS_VOLUME_SIZE = _getenv("DEFAULT_OUTPUTS_VOLUME_SIZE", "128Mi")

#: Porter version used when neither the Installation nor the namespace sets one
DEFAULT_PORTER_VERSION = _getenv("DEFAULT_PORTER_VERSION", "latest")

#: Repository of the porter agent image
PORTER_IMAGE_REPOSITORY = _getenv("PORTER_IMAGE_REPOSITORY", "ghcr.io/getporter/porter")

#: Prefix prepended to the porter version to form the image tag
PORTER_IMAGE_TAG_PREFIX = _getenv("PORTER_IMAGE_TAG_PREFIX", "kubernetes-")

#: Driver porter uses to run the bundle
PORTER_DRIVER = _getenv("PORTER_DRIVER", "kubernetes")

#: Installation metadata field used as the revision token in job names
INSTALLATION_REVISION_FIELD = _getenv("INSTALLATION_REVISION_FIELD", "generation")

#: Timeout in seconds applied to every Kubernetes API request
API_REQUEST_TIMEOUT_SECONDS = float(_getenv("API_REQUEST_TIMEOUT_SECONDS", 30.0))

#: Maximum number of Installations reconciled concurrently
WORKER_LIMIT = int(_getenv("WORKER_LIMIT", 2))

#: Port of the Prometheus metrics endpoint
METRICS_PORT = int(_getenv("METRICS_PORT", 8000))

REVISION_FIELDS = ("generation", "resourceVersion")


class Settings:
    """Operator settings"""

    config_map_name: str = PORTER_CONFIG_MAP_NAME
    default_outputs_volume_size: str = DEFAULT_OUTPUTS_VOLUME_SIZE
    default_porter_version: str = DEFAULT_PORTER_VERSION
    porter_image_repository: str = PORTER_IMAGE_REPOSITORY
    porter_image_tag_prefix: str = PORTER_IMAGE_TAG_PREFIX
    porter_driver: str = PORTER_DRIVER
    revision_field: str = INSTALLATION_REVISION_FIELD
    api_request_timeout_seconds: float = API_REQUEST_TIMEOUT_SECONDS
    worker_limit: int = WORKER_LIMIT
    metrics_port: int = METRICS_PORT

    def __init__(
        self,
        *args,
        config_map_name: str = None,
        default_outputs_volume_size: str = None,
        default_porter_version: str = None,
        porter_image_repository: str = None,
        porter_image_tag_prefix: str = None,
        porter_driver: str = None,
        revision_field: str = None,
        api_request_timeout_seconds: float = None,
        worker_limit: int = None,
        metrics_port: int = None,
        **kwargs,
    ):
        if config_map_name is not None:
            self.config_map_name = config_map_name

        if default_outputs_volume_size is not None:
            self.default_outputs_volume_size = default_outputs_volume_size

        if default_porter_version is not None:
            self.default_porter_version = default_porter_version

        if porter_image_repository is not None:
            self.porter_image_repository = porter_image_repository

        if porter_image_tag_prefix is not None:
            self.porter_image_tag_prefix = porter_image_tag_prefix

        if porter_driver is not None:
            self.porter_driver = porter_driver

        if revision_field is not None:
            self.revision_field = revision_field

        if api_request_timeout_seconds is not None:
            self.api_request_timeout_seconds = api_request_timeout_seconds

        if worker_limit is not None:
            self.worker_limit = worker_limit

        if metrics_port is not None:
            self.metrics_port = metrics_port

        if self.revision_field not in REVISION_FIELDS:
            raise ValueError(
                f"Unsupported revision field `{self.revision_field}`, "
                f"expected one of {', '.join(REVISION_FIELDS)}"
            )
