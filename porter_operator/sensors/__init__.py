"""Porter Operator Sensor Framework.

Hook-based instrumentation of operator lifecycle events. Reconciliation and
resource writes call into a SensorDelegate, which fans the events out to
every registered backend (Prometheus by default).

Usage:
    from porter_operator.sensors import SensorDelegate, PrometheusMonitor

    delegate = SensorDelegate()
    delegate.add(PrometheusMonitor())
"""

from porter_operator.sensors.base import OperatorSensor
from porter_operator.sensors.delegate import SensorDelegate
from porter_operator.sensors.prometheus import PrometheusMonitor
from porter_operator.sensors.server import init_metrics_server

__all__ = [
    'OperatorSensor',
    'SensorDelegate',
    'PrometheusMonitor',
    'init_metrics_server',
]
