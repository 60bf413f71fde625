import kopf
import logging
from porter_operator.handlers import installation, probes
from porter_operator.types.settings import Settings
from porter_operator.resources import ConfigMapConfigProvider, InstallationJob
from porter_operator.sensors import init_metrics_server, SensorDelegate, PrometheusMonitor
from kubernetes_asyncio import config
from kubernetes_asyncio.client import CoreV1Api
from kubernetes_asyncio.client.api_client import ApiClient


@kopf.on.startup()
async def setup(
    settings: kopf.OperatorSettings, memo: kopf.Memo, logger: logging.Logger, **kwargs
):
    # In-cluster config first (production), then local kubeconfig (development)
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        logger.info("In-cluster config not found, trying local kubeconfig")
        try:
            await config.load_kube_config()
            logger.info("Loaded local Kubernetes configuration")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    memo.conf = Settings()
    InstallationJob.conf = memo.conf

    # One ApiClient shared by every reconciliation to prevent connection leaks
    shared_client = ApiClient()
    InstallationJob.shared_api_client = shared_client
    InstallationJob.config_provider = ConfigMapConfigProvider(
        CoreV1Api(shared_client),
        memo.conf.config_map_name,
        memo.conf.api_request_timeout_seconds,
    )
    logger.info("Shared Kubernetes API client initialized")

    sensor_delegate = SensorDelegate()
    sensor_delegate.add(PrometheusMonitor())
    memo.sensor = sensor_delegate
    InstallationJob.sensor = sensor_delegate
    logger.info("Sensor infrastructure initialized with PrometheusMonitor")

    try:
        init_metrics_server(memo.conf.metrics_port)
    except Exception as e:
        # Metrics are optional, reconciliation is not
        logger.error(f"Failed to start metrics server: {e}")
        logger.warning("Continuing without metrics server")

    settings.batching.worker_limit = memo.conf.worker_limit

    # Post logs of level WARNING and above as Kubernetes events
    settings.posting.enabled = True
    settings.posting.level = logging.WARNING


@kopf.on.cleanup()
async def cleanup(logger: logging.Logger, **kwargs):
    """Cleanup handler for operator shutdown."""
    logger.info("Shutting down operator...")

    if InstallationJob.shared_api_client is not None:
        await InstallationJob.shared_api_client.close()
        InstallationJob.shared_api_client = None
        logger.info("Shared API client closed")

    logger.info("Operator shutdown complete")


__all__ = [
    "installation",
    "probes",
]
