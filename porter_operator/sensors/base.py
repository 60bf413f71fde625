"""Base sensor classes for operator monitoring.

This module defines the base OperatorSensor class that provides lifecycle hooks
for monitoring operator events. All hooks are no-ops by default, allowing
subclasses to override only the events they care about.

- Hooks come in pairs: on_X_start() and on_X_complete()
- Start hooks return an optional state dict for tracking multi-phase operations
- Complete hooks receive the state dict from their corresponding start hook
"""

from typing import Dict, Optional, Any
import logging

logger = logging.getLogger(__name__)


class OperatorSensor:
    """Base sensor class for porter operator monitoring.

    Hooks cover three areas:
    1. Reconciliation lifecycle (one pass over an Installation)
    2. Resource operations (scratch volume and job creation)
    3. Configuration resolution (which tier a setting was resolved from)
    """

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        installation: str,
        namespace: str,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Called when a reconciliation pass begins.

        Args:
            installation: Installation resource name
            namespace: Kubernetes namespace
            trigger_source: What triggered reconciliation (create, update, resume)

        Returns:
            Optional state dict passed to on_reconcile_complete
        """
        pass

    def on_reconcile_complete(
        self,
        installation: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Called when a reconciliation pass completes.

        Args:
            installation: Installation resource name
            namespace: Kubernetes namespace
            state: State dict returned from on_reconcile_start
            success: Whether reconciliation succeeded
            error: Exception if reconciliation failed
        """
        pass

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self,
        installation: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> Optional[Dict[str, Any]]:
        """Called when a child resource is about to be written.

        Returns:
            Optional state dict passed to on_resource_sync_complete
        """
        pass

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
        """Called when a child resource write completes.

        Args:
            operation: Operation performed (create, exists)
        """
        pass

    # =============================================================================
    # Configuration Hooks
    # =============================================================================

    def on_setting_resolved(
        self,
        installation: str,
        namespace: str,
        setting: str,
        source: str,
    ) -> None:
        """Called after an execution setting has been resolved.

        Args:
            setting: Setting name (outputsVolumeSize, porterVersion, serviceAccount)
            source: Tier the value came from (installation, namespace, default)
        """
        pass
