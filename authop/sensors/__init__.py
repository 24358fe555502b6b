"""Authentication Operator Sensor Framework.

This module provides a monitoring and observability framework for the
operator. It enables non-invasive instrumentation of sync cycles, resource
applies, readiness verdicts and status updates through a hook-based pattern.

Key components:
- OperatorSensor: Base class defining lifecycle hooks for operator events
- SensorDelegate: Fan-out pattern for routing events to multiple sensor backends
- PrometheusMonitor: Prometheus metrics exporter

Usage:
    from authop.sensors import OperatorSensor, SensorDelegate

    class CustomSensor(OperatorSensor):
        def on_sync_complete(self, name, state, success, error=None) -> None:
            print(f"Synced {name}: {success}")

    delegate = SensorDelegate()
    delegate.add(CustomSensor())
    delegate.add(PrometheusMonitor())
"""

from authop.sensors.base import OperatorSensor
from authop.sensors.delegate import SensorDelegate
from authop.sensors.prometheus import PrometheusMonitor
from authop.sensors.server import init_metrics_server

__all__ = [
    'OperatorSensor',
    'SensorDelegate',
    'PrometheusMonitor',
    'init_metrics_server',
]
