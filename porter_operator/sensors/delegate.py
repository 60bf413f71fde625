"""Sensor delegation for fan-out pattern.

SensorDelegate routes sensor events to several monitoring backends at once.
Each backend receives the same events and keeps its own state. A failing
backend is logged and never interrupts reconciliation.
"""

from typing import Set, Dict, Optional, Any
import logging

from porter_operator.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class SensorDelegate(OperatorSensor):
    """Delegate sensor that fans out events to multiple backends.

    Example:
        delegate = SensorDelegate()
        delegate.add(PrometheusMonitor())

        state = delegate.on_reconcile_start("wordpress", "default", "create")
        delegate.on_reconcile_complete("wordpress", "default", state, True)
    """

    def __init__(self) -> None:
        self._sensors: Set[OperatorSensor] = set()

    def add(self, sensor: OperatorSensor) -> None:
        logger.info(f"Adding sensor: {sensor.__class__.__name__}")
        self._sensors.add(sensor)

    def remove(self, sensor: OperatorSensor) -> None:
        logger.info(f"Removing sensor: {sensor.__class__.__name__}")
        self._sensors.discard(sensor)

    def clear(self) -> None:
        logger.info(f"Clearing {len(self._sensors)} sensors")
        self._sensors.clear()

    def on_reconcile_start(
        self,
        installation: str,
        namespace: str,
        trigger_source: str,
    ) -> Optional[Dict[OperatorSensor, Any]]:
        """Delegate reconcile_start to all sensors.

        Returns:
            Dict mapping each sensor to its returned state, or None if no sensors
        """
        if not self._sensors:
            return None

        states = {}
        for sensor in self._sensors:
            try:
                state = sensor.on_reconcile_start(installation, namespace, trigger_source)
                if state is not None:
                    states[sensor] = state
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.on_reconcile_start: {e}",
                    exc_info=True,
                )

        return states if states else None

    def on_reconcile_complete(
        self,
        installation: str,
        namespace: str,
        state: Optional[Dict[OperatorSensor, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        for sensor in self._sensors:
            try:
                sensor_state = state.get(sensor) if state else None
                sensor.on_reconcile_complete(
                    installation, namespace, sensor_state, success, error
                )
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.on_reconcile_complete: {e}",
                    exc_info=True,
                )

    def on_resource_sync_start(
        self,
        installation: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> Optional[Dict[OperatorSensor, Any]]:
        if not self._sensors:
            return None

        states = {}
        for sensor in self._sensors:
            try:
                state = sensor.on_resource_sync_start(
                    installation, resource_name, namespace, resource_type
                )
                if state is not None:
                    states[sensor] = state
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.on_resource_sync_start: {e}",
                    exc_info=True,
                )

        return states if states else None

    def on_resource_sync_complete(
        self,
        installation: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[OperatorSensor, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        for sensor in self._sensors:
            try:
                sensor_state = state.get(sensor) if state else None
                sensor.on_resource_sync_complete(
                    installation,
                    resource_name,
                    namespace,
                    resource_type,
                    sensor_state,
                    operation,
                    success,
                    error,
                )
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.on_resource_sync_complete: {e}",
                    exc_info=True,
                )

    def on_setting_resolved(
        self,
        installation: str,
        namespace: str,
        setting: str,
        source: str,
    ) -> None:
        for sensor in self._sensors:
            try:
                sensor.on_setting_resolved(installation, namespace, setting, source)
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.on_setting_resolved: {e}",
                    exc_info=True,
                )
