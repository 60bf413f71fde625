import kopf
import logging
from benedict import benedict
from typing import Dict, Optional
from kubernetes_asyncio.client import ApiException
from porter_operator.resources import InstallationJob, ReconcileOutcome
from porter_operator.sensors.base import OperatorSensor
from porter_operator.utils.errors import (
    ConfigurationError,
    ReconciliationError,
    convert_api_exception,
)

KIND = "Installation"
GROUP = "porter.sh"

JOB_CREATED = "JobCreated"
RECONCILE_FAILED = "ReconcileFailed"


def get_sensor() -> OperatorSensor:
    """Get sensor from InstallationJob class."""
    return InstallationJob.sensor


def prepare_status_patch(status: Optional[Dict], outcome: ReconcileOutcome) -> Dict:
    """Status fields to update after a reconciliation pass.

    The job created for the current revision becomes the active job; the one
    it replaces is kept as the last job.
    """
    _status = benedict(dict(status or {}), keyattr_dynamic=True)
    _status_updates = benedict(keyattr_dynamic=True)
    active = _status.get("activeJob.name")
    if active == outcome.job_name:
        return {}
    _status_updates["activeJob.name"] = outcome.job_name
    if active:
        _status_updates["lastJob.name"] = active
    return _status_updates.dict()


async def reconcile_installation(
    name: str, namespace: str, trigger_source: str, logger: logging.Logger
) -> Optional[ReconcileOutcome]:
    """Run one reconciliation pass and translate failures for kopf.

    Invalid configuration will not fix itself, so it is reported as a
    permanent error and retried only when the Installation changes. API
    failures are retried by kopf with backoff.
    """
    sensor = get_sensor()
    sensor_state = sensor.on_reconcile_start(name, namespace, trigger_source)
    success, error = False, None
    try:
        outcome = await InstallationJob.reconcile(name, namespace, logger=logger)
        success = True
        return outcome
    except ConfigurationError as e:
        error = e
        raise kopf.PermanentError(str(e)) from e
    except ReconciliationError as e:
        error = e
        if isinstance(e.__cause__, ApiException):
            convert_api_exception(e.__cause__, context=str(e))
        raise
    finally:
        sensor.on_reconcile_complete(name, namespace, sensor_state, success, error)


@kopf.on.resume(group=GROUP, kind=KIND)
@kopf.on.create(group=GROUP, kind=KIND)
@kopf.on.update(group=GROUP, kind=KIND)
async def reconciliation(
    body, name, namespace, status, patch, reason, logger: logging.Logger, **kwargs
):
    """Reconcile Installation resources."""
    trigger_source = str(getattr(reason, "value", reason) or "unknown")
    try:
        outcome = await reconcile_installation(name, namespace, trigger_source, logger)
    except Exception as e:
        kopf.warn(
            body,
            reason=RECONCILE_FAILED,
            message=f"Failed to reconcile Installation `{name}` in `{namespace}` namespace: {e}",
        )
        raise

    if outcome is None:
        return

    status_update = prepare_status_patch(status, outcome)
    if status_update:
        patch.status.update(status_update)

    if outcome.created:
        kopf.info(
            body,
            reason=JOB_CREATED,
            message=f"Created porter job `{outcome.job_name}` for revision {outcome.revision}.",
        )
