"""Base sensor classes for operator monitoring.

This module defines the base OperatorSensor class that provides lifecycle hooks
for monitoring the authentication operator. All hooks are no-ops by default,
allowing subclasses to override only the events they care about.

The hook pattern:
- Hooks come in pairs: on_X_start() and on_X_complete()
- Start hooks return an optional state dict for tracking multi-phase operations
- Complete hooks receive the state dict from their corresponding start hook
- All hooks are optional - sensors only implement what they need
"""

from typing import Dict, List, Optional, Any
import logging

logger = logging.getLogger(__name__)


class OperatorSensor:
    """Base sensor class for authentication operator monitoring.

    This class defines lifecycle hooks for four categories:
    1. Sync lifecycle (one full reconciliation cycle)
    2. Resource operations (K8s resource apply)
    3. Readiness (probe verdicts)
    4. Status (conditions and status persistence)

    All methods are no-ops by default. Subclasses override only the hooks
    they need to monitor.

    Example:
        class LoggingSensor(OperatorSensor):
            def on_sync_start(self, name: str, generation: int, trigger_source: str) -> Dict:
                return {'start_time': time.time()}

            def on_sync_complete(self, name: str, state: Dict, success: bool, error=None) -> None:
                duration = time.time() - state['start_time']
                logger.info(f"Synced {name} in {duration}s")
    """

    # =============================================================================
    # Sync Lifecycle Hooks
    # =============================================================================

    def on_sync_start(
        self,
        name: str,
        generation: int,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Called when a sync cycle begins.

        Args:
            name: Operator configuration resource name
            generation: Resource generation number
            trigger_source: What triggered the cycle (resume, create, update, timer)

        Returns:
            Optional state dict passed to on_sync_complete
        """
        pass

    def on_sync_complete(
        self,
        name: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Called when a sync cycle completes.

        Args:
            name: Operator configuration resource name
            state: State dict returned from on_sync_start
            success: Whether the cycle succeeded
            error: Exception if the cycle failed
        """
        pass

    def on_stage_failed(self, name: str, stage: str, error: Exception) -> None:
        """Called when a pipeline stage aborts the cycle.

        Args:
            name: Operator configuration resource name
            stage: Pipeline stage name (metadata, service, config, deployment, version)
            error: The stage error
        """
        pass

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> Optional[Dict[str, Any]]:
        """Called when K8s resource apply begins.

        Args:
            name: Operator configuration resource name
            resource_name: Name of the applied resource
            namespace: Kubernetes namespace of the resource
            resource_type: Type of resource (deployment, service, config_map, ...)

        Returns:
            Optional state dict passed to on_resource_sync_complete
        """
        pass

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
        """Called when K8s resource apply completes.

        Args:
            name: Operator configuration resource name
            resource_name: Name of the applied resource
            namespace: Kubernetes namespace of the resource
            resource_type: Type of resource
            state: State dict returned from on_resource_sync_start
            operation: Operation performed (create, update, delete)
            success: Whether the operation succeeded
            error: Exception if the operation failed
        """
        pass

    def on_resource_drift_detected(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        drift_fields: List[str],
    ) -> None:
        """Called when a resource differs from its desired state.

        Args:
            name: Operator configuration resource name
            resource_name: Name of the drifted resource
            namespace: Kubernetes namespace of the resource
            resource_type: Type of resource
            drift_fields: Fields that differ (metadata, data, spec, ...)
        """
        pass

    # =============================================================================
    # Readiness Hooks
    # =============================================================================

    def on_readiness_verdict(
        self, name: str, stage: Optional[str], ready: bool, reason: str
    ) -> None:
        """Called once per cycle with the readiness outcome.

        Args:
            name: Operator configuration resource name
            stage: Readiness stage that stopped evaluation, None when all passed
            ready: Whether every readiness stage passed
            reason: Reason reported by the stopping stage
        """
        pass

    # =============================================================================
    # Status Hooks
    # =============================================================================

    def on_condition_status(
        self, name: str, condition_type: str, status: bool
    ) -> None:
        """Called for every condition after a cycle.

        Args:
            name: Operator configuration resource name
            condition_type: Condition type (Available, Progressing, *Degraded)
            status: Whether the condition is True
        """
        pass

    def on_status_update_failed(self, name: str, error: Exception) -> None:
        """Called when persisting the operator status failed.

        Args:
            name: Operator configuration resource name
            error: The persistence error
        """
        pass
