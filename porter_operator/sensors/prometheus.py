"""Prometheus monitoring backend for the porter operator.

PrometheusMonitor turns operator lifecycle events into Prometheus metrics:

1. Reconciliation loop health - duration, throughput, errors
2. Kubernetes resource writes - scratch volume and job creation
3. Configuration resolution - which tier each execution setting came from

All metrics carry the installation and namespace labels.
"""

from typing import Dict, Optional, Any
import time
import logging

from prometheus_client import CollectorRegistry, Counter, Histogram, REGISTRY

from porter_operator.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class PrometheusMonitor(OperatorSensor):
    """Prometheus metrics monitor for the porter operator.

    Example:
        monitor = PrometheusMonitor()
        state = monitor.on_reconcile_start("wordpress", "default", "create")
        monitor.on_reconcile_complete("wordpress", "default", state, True)
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        super().__init__()

        # =============================================================================
        # Reconciliation Loop Metrics
        # =============================================================================

        self.reconcile_duration = Histogram(
            'porterop_reconcile_duration_seconds',
            'Time spent reconciling an Installation',
            labelnames=['installation', 'namespace', 'trigger_source', 'result'],
            buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=registry,
        )

        self.reconcile_total = Counter(
            'porterop_reconcile_total',
            'Total number of reconciliation attempts',
            labelnames=['installation', 'namespace', 'trigger_source', 'result'],
            registry=registry,
        )

        self.reconcile_errors = Counter(
            'porterop_reconcile_errors_total',
            'Total number of reconciliation errors',
            labelnames=['installation', 'namespace', 'error_type'],
            registry=registry,
        )

        # =============================================================================
        # Kubernetes Resource Metrics
        # =============================================================================

        self.resource_sync_duration = Histogram(
            'porterop_resource_sync_duration_seconds',
            'Time spent writing Kubernetes resources',
            labelnames=['installation', 'namespace', 'resource_type', 'operation', 'result'],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=registry,
        )

        self.resource_sync_total = Counter(
            'porterop_resource_sync_total',
            'Total number of resource write operations',
            labelnames=['installation', 'namespace', 'resource_type', 'operation', 'result'],
            registry=registry,
        )

        self.resource_sync_errors = Counter(
            'porterop_resource_sync_errors_total',
            'Total number of resource write errors',
            labelnames=['installation', 'namespace', 'resource_type', 'error_type'],
            registry=registry,
        )

        # =============================================================================
        # Configuration Metrics
        # =============================================================================

        self.settings_resolved = Counter(
            'porterop_settings_resolved_total',
            'Execution settings resolved, by the tier that supplied the value',
            labelnames=['namespace', 'setting', 'source'],
            registry=registry,
        )

        logger.info("PrometheusMonitor initialized with all metrics")

    def on_reconcile_start(
        self,
        installation: str,
        namespace: str,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Record reconciliation start time."""
        return {
            'start_time': time.time(),
            'trigger_source': trigger_source,
        }

    def on_reconcile_complete(
        self,
        installation: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record reconciliation duration and result."""
        if state:
            duration = time.time() - state['start_time']
            trigger_source = state['trigger_source']
            result = 'success' if success else 'failure'

            self.reconcile_duration.labels(
                installation=installation,
                namespace=namespace,
                trigger_source=trigger_source,
                result=result,
            ).observe(duration)

            self.reconcile_total.labels(
                installation=installation,
                namespace=namespace,
                trigger_source=trigger_source,
                result=result,
            ).inc()

        if error:
            self.reconcile_errors.labels(
                installation=installation,
                namespace=namespace,
                error_type=error.__class__.__name__,
            ).inc()

    def on_resource_sync_start(
        self,
        installation: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> Optional[Dict[str, Any]]:
        """Record resource write start time."""
        return {
            'start_time': time.time(),
        }

    def on_resource_sync_complete(
        self,
        installation: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[str, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record resource write duration and result."""
        result = 'success' if success else 'failure'
        if state:
            duration = time.time() - state['start_time']
            self.resource_sync_duration.labels(
                installation=installation,
                namespace=namespace,
                resource_type=resource_type,
                operation=operation,
                result=result,
            ).observe(duration)

        self.resource_sync_total.labels(
            installation=installation,
            namespace=namespace,
            resource_type=resource_type,
            operation=operation,
            result=result,
        ).inc()

        if error:
            self.resource_sync_errors.labels(
                installation=installation,
                namespace=namespace,
                resource_type=resource_type,
                error_type=error.__class__.__name__,
            ).inc()

    def on_setting_resolved(
        self,
        installation: str,
        namespace: str,
        setting: str,
        source: str,
    ) -> None:
        self.settings_resolved.labels(
            namespace=namespace,
            setting=setting,
            source=source,
        ).inc()
