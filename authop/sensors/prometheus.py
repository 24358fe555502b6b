"""Prometheus monitoring backend for the authentication operator.

This module provides PrometheusMonitor, which collects operator lifecycle events
and exposes them as Prometheus metrics:

1. Sync Loop Health - Duration, throughput, stage failures
2. Readiness - Verdicts per stopping stage
3. Kubernetes Resource Sync - Operation counts, latency, drift detection
4. Status - Condition states and status persistence failures
"""

from typing import Dict, List, Optional, Any
import time
import logging

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, Gauge

from authop.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class PrometheusMonitor(OperatorSensor):
    """Prometheus metrics monitor for the authentication operator.

    Exposes metrics via prometheus_client that can be scraped by Prometheus.

    Metrics are organized by category:
    - authop_sync_* - Sync loop metrics
    - authop_readiness_* - Readiness verdicts
    - authop_resource_* - Kubernetes resource sync metrics
    - authop_condition_* / authop_status_* - Status metrics
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        """Initialize Prometheus metrics."""
        super().__init__()

        # =============================================================================
        # Sync Loop Metrics
        # =============================================================================

        self.sync_duration = Histogram(
            'authop_sync_duration_seconds',
            'Time spent in a sync cycle',
            labelnames=['name', 'trigger_source', 'result'],
            buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0],
            registry=registry,
        )

        self.sync_total = Counter(
            'authop_sync_total',
            'Total number of sync cycles',
            labelnames=['name', 'trigger_source', 'result'],
            registry=registry,
        )

        self.sync_errors = Counter(
            'authop_sync_errors_total',
            'Total number of failed sync cycles',
            labelnames=['name', 'error_type'],
            registry=registry,
        )

        self.stage_failures = Counter(
            'authop_stage_failures_total',
            'Total number of pipeline stage failures',
            labelnames=['name', 'stage'],
            registry=registry,
        )

        # =============================================================================
        # Readiness Metrics
        # =============================================================================

        self.readiness_verdicts = Counter(
            'authop_readiness_verdicts_total',
            'Readiness verdicts by the stage that stopped evaluation',
            labelnames=['name', 'stage', 'ready', 'reason'],
            registry=registry,
        )

        self.operand_ready = Gauge(
            'authop_operand_ready',
            'Whether the last cycle found the OAuth server ready (1) or not (0)',
            labelnames=['name'],
            registry=registry,
        )

        # =============================================================================
        # Kubernetes Resource Sync Metrics
        # =============================================================================

        self.resource_sync_duration = Histogram(
            'authop_resource_sync_duration_seconds',
            'Time spent applying Kubernetes resources',
            labelnames=['name', 'resource_name', 'namespace', 'resource_type', 'operation', 'result'],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=registry,
        )

        self.resource_sync_total = Counter(
            'authop_resource_sync_total',
            'Total number of resource apply operations',
            labelnames=['name', 'resource_name', 'namespace', 'resource_type', 'operation', 'result'],
            registry=registry,
        )

        self.resource_sync_errors = Counter(
            'authop_resource_sync_errors_total',
            'Total number of resource apply errors',
            labelnames=['name', 'resource_name', 'namespace', 'resource_type', 'error_type'],
            registry=registry,
        )

        self.resource_drift_detected = Counter(
            'authop_resource_drift_detected_total',
            'Total number of resource drift detections',
            labelnames=['name', 'resource_name', 'namespace', 'resource_type', 'drift_field'],
            registry=registry,
        )

        # =============================================================================
        # Status Metrics
        # =============================================================================

        self.condition_status = Gauge(
            'authop_condition_status',
            'Operator condition status (1 True, 0 False)',
            labelnames=['name', 'condition'],
            registry=registry,
        )

        self.status_update_failures = Counter(
            'authop_status_update_failures_total',
            'Total number of failed operator status updates',
            labelnames=['name', 'error_type'],
            registry=registry,
        )

        logger.info("PrometheusMonitor initialized with all metrics")

    # =============================================================================
    # Sync Lifecycle Hooks
    # =============================================================================

    def on_sync_start(
        self, name: str, generation: int, trigger_source: str
    ) -> Optional[Dict[str, Any]]:
        """Record sync start time."""
        return {
            'start_time': time.time(),
            'trigger_source': trigger_source,
        }

    def on_sync_complete(
        self,
        name: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record sync duration and result."""
        if state:
            duration = time.time() - state['start_time']
            result = 'success' if success else 'failure'

            self.sync_duration.labels(
                name=name,
                trigger_source=state['trigger_source'],
                result=result,
            ).observe(duration)

            self.sync_total.labels(
                name=name,
                trigger_source=state['trigger_source'],
                result=result,
            ).inc()

        if error:
            self.sync_errors.labels(
                name=name,
                error_type=error.__class__.__name__,
            ).inc()

    def on_stage_failed(self, name: str, stage: str, error: Exception) -> None:
        self.stage_failures.labels(name=name, stage=stage).inc()

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self, name: str, resource_name: str, namespace: str, resource_type: str
    ) -> Optional[Dict[str, Any]]:
        """Record resource sync start time."""
        return {'start_time': time.time()}

    def on_resource_sync_complete(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[str, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record resource sync duration and result."""
        result = 'success' if success else 'failure'
        labels = dict(
            name=name,
            resource_name=resource_name,
            namespace=namespace or '',
            resource_type=resource_type,
        )
        if state:
            self.resource_sync_duration.labels(
                operation=operation, result=result, **labels
            ).observe(time.time() - state['start_time'])

        self.resource_sync_total.labels(operation=operation, result=result, **labels).inc()

        if error:
            self.resource_sync_errors.labels(
                error_type=error.__class__.__name__, **labels
            ).inc()

    def on_resource_drift_detected(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        drift_fields: List[str],
    ) -> None:
        """Record one drift detection per differing field."""
        for field in drift_fields:
            self.resource_drift_detected.labels(
                name=name,
                resource_name=resource_name,
                namespace=namespace or '',
                resource_type=resource_type,
                drift_field=field,
            ).inc()

    # =============================================================================
    # Readiness Hooks
    # =============================================================================

    def on_readiness_verdict(
        self, name: str, stage: Optional[str], ready: bool, reason: str
    ) -> None:
        self.readiness_verdicts.labels(
            name=name,
            stage=stage or 'all',
            ready=str(ready).lower(),
            reason=reason or '',
        ).inc()
        self.operand_ready.labels(name=name).set(1 if ready else 0)

    # =============================================================================
    # Status Hooks
    # =============================================================================

    def on_condition_status(self, name: str, condition_type: str, status: bool) -> None:
        self.condition_status.labels(name=name, condition=condition_type).set(
            1 if status else 0
        )

    def on_status_update_failed(self, name: str, error: Exception) -> None:
        self.status_update_failures.labels(
            name=name, error_type=error.__class__.__name__
        ).inc()
