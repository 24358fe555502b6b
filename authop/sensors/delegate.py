"""Sensor delegation for fan-out pattern.

This module provides SensorDelegate, which implements the delegation pattern
for routing sensor events to multiple monitoring backends simultaneously.
Each backend receives the same events and can maintain independent state.
"""

from typing import Set, Dict, List, Optional, Any
import logging

from authop.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class SensorDelegate(OperatorSensor):
    """Delegate sensor that fans out events to multiple backends.

    This class maintains a set of child sensors and forwards all lifecycle
    events to each one. State tracking is handled per-sensor, so each backend
    receives its own state dict from start/complete hook pairs. A failing
    sensor never breaks the operator: errors are logged and the remaining
    sensors still receive the event.

    Example:
        delegate = SensorDelegate()
        delegate.add(PrometheusMonitor())

        state = delegate.on_sync_start("cluster", 5, "timer")
        delegate.on_sync_complete("cluster", state, True)
    """

    def __init__(self) -> None:
        """Initialize empty sensor delegate."""
        self._sensors: Set[OperatorSensor] = set()

    def add(self, sensor: OperatorSensor) -> None:
        """Add a sensor to the delegate.

        Args:
            sensor: Sensor instance to add
        """
        logger.info(f"Adding sensor: {sensor.__class__.__name__}")
        self._sensors.add(sensor)

    def remove(self, sensor: OperatorSensor) -> None:
        """Remove a sensor from the delegate.

        Args:
            sensor: Sensor instance to remove
        """
        logger.info(f"Removing sensor: {sensor.__class__.__name__}")
        self._sensors.discard(sensor)

    def clear(self) -> None:
        """Remove all sensors from the delegate."""
        logger.info(f"Clearing {len(self._sensors)} sensors")
        self._sensors.clear()

    def _start(self, hook: str, *args: Any) -> Optional[Dict[OperatorSensor, Any]]:
        if not self._sensors:
            return None

        states = {}
        for sensor in self._sensors:
            try:
                state = getattr(sensor, hook)(*args)
                if state is not None:
                    states[sensor] = state
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.{hook}: {e}",
                    exc_info=True,
                )

        return states if states else None

    def _forward(self, hook: str, *args: Any) -> None:
        for sensor in self._sensors:
            try:
                getattr(sensor, hook)(*args)
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.{hook}: {e}",
                    exc_info=True,
                )

    # =============================================================================
    # Sync Lifecycle Hooks
    # =============================================================================

    def on_sync_start(
        self, name: str, generation: int, trigger_source: str
    ) -> Optional[Dict[OperatorSensor, Any]]:
        """Delegate sync_start to all sensors.

        Returns:
            Dict mapping each sensor to its returned state, or None if no sensors
        """
        return self._start("on_sync_start", name, generation, trigger_source)

    def on_sync_complete(
        self,
        name: str,
        state: Optional[Dict[OperatorSensor, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Delegate sync_complete to all sensors with their specific state."""
        for sensor in self._sensors:
            try:
                sensor_state = state.get(sensor) if state else None
                sensor.on_sync_complete(name, sensor_state, success, error)
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.on_sync_complete: {e}",
                    exc_info=True,
                )

    def on_stage_failed(self, name: str, stage: str, error: Exception) -> None:
        self._forward("on_stage_failed", name, stage, error)

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self, name: str, resource_name: str, namespace: str, resource_type: str
    ) -> Optional[Dict[OperatorSensor, Any]]:
        """Delegate resource_sync_start to all sensors."""
        return self._start(
            "on_resource_sync_start", name, resource_name, namespace, resource_type
        )

    def on_resource_sync_complete(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[OperatorSensor, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Delegate resource_sync_complete to all sensors with their specific state."""
        for sensor in self._sensors:
            try:
                sensor_state = state.get(sensor) if state else None
                sensor.on_resource_sync_complete(
                    name,
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

    def on_resource_drift_detected(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        drift_fields: List[str],
    ) -> None:
        self._forward(
            "on_resource_drift_detected",
            name,
            resource_name,
            namespace,
            resource_type,
            drift_fields,
        )

    # =============================================================================
    # Readiness Hooks
    # =============================================================================

    def on_readiness_verdict(
        self, name: str, stage: Optional[str], ready: bool, reason: str
    ) -> None:
        self._forward("on_readiness_verdict", name, stage, ready, reason)

    # =============================================================================
    # Status Hooks
    # =============================================================================

    def on_condition_status(self, name: str, condition_type: str, status: bool) -> None:
        self._forward("on_condition_status", name, condition_type, status)

    def on_status_update_failed(self, name: str, error: Exception) -> None:
        self._forward("on_status_update_failed", name, error)
