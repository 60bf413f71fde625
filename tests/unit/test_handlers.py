"""Unit tests for the Installation handler."""

import aiohttp
import kopf
import pytest
from unittest.mock import AsyncMock, Mock, patch
from porter_operator.handlers import installation as handler
from porter_operator.resources import InstallationJob, ReconcileOutcome
from porter_operator.sensors.base import OperatorSensor
from porter_operator.utils.errors import ConfigurationError, ReconciliationError


@pytest.fixture
def sensor(monkeypatch):
    sensor = Mock(spec=OperatorSensor)
    monkeypatch.setattr(InstallationJob, "sensor", sensor)
    return sensor


@pytest.fixture
def kopf_patch():
    kopf_patch = Mock()
    kopf_patch.status = {}
    return kopf_patch


async def run_handler(kopf_patch, status=None, reason="create"):
    await handler.reconciliation(
        body={"metadata": {"name": "wordpress", "namespace": "default"}},
        name="wordpress",
        namespace="default",
        status=status or {},
        patch=kopf_patch,
        reason=reason,
        logger=Mock(),
    )


class TestPrepareStatusPatch:
    def test_first_job(self):
        outcome = ReconcileOutcome("wordpress-5", "5", True)
        assert handler.prepare_status_patch({}, outcome) == {"activeJob": {"name": "wordpress-5"}}

    def test_previous_job_becomes_last_job(self):
        status = {"activeJob": {"name": "wordpress-5"}}
        outcome = ReconcileOutcome("wordpress-9", "9", True)
        assert handler.prepare_status_patch(status, outcome) == {
            "activeJob": {"name": "wordpress-9"},
            "lastJob": {"name": "wordpress-5"},
        }

    def test_unchanged(self):
        status = {"activeJob": {"name": "wordpress-5"}, "lastJob": {"name": "wordpress-3"}}
        outcome = ReconcileOutcome("wordpress-5", "5", False)
        assert handler.prepare_status_patch(status, outcome) == {}

    def test_missing_status(self):
        outcome = ReconcileOutcome("wordpress-5", "5", False)
        assert handler.prepare_status_patch(None, outcome) == {"activeJob": {"name": "wordpress-5"}}


class TestReconciliationHandler:
    @pytest.mark.asyncio
    async def test_job_created(self, sensor, kopf_patch):
        outcome = ReconcileOutcome("wordpress-5", "5", True)
        with patch.object(InstallationJob, "reconcile", AsyncMock(return_value=outcome)), \
                patch.object(kopf, "info") as info:
            await run_handler(kopf_patch)

        assert kopf_patch.status == {"activeJob": {"name": "wordpress-5"}}
        info.assert_called_once()
        assert info.call_args.kwargs["reason"] == handler.JOB_CREATED
        sensor.on_reconcile_start.assert_called_once_with("wordpress", "default", "create")
        assert sensor.on_reconcile_complete.call_args.args[3] is True

    @pytest.mark.asyncio
    async def test_job_exists(self, sensor, kopf_patch):
        outcome = ReconcileOutcome("wordpress-5", "5", False)
        with patch.object(InstallationJob, "reconcile", AsyncMock(return_value=outcome)), \
                patch.object(kopf, "info") as info:
            await run_handler(kopf_patch, status={"activeJob": {"name": "wordpress-5"}})

        assert kopf_patch.status == {}
        info.assert_not_called()

    @pytest.mark.asyncio
    async def test_deleted_installation(self, sensor, kopf_patch):
        with patch.object(InstallationJob, "reconcile", AsyncMock(return_value=None)):
            await run_handler(kopf_patch)
        assert kopf_patch.status == {}

    @pytest.mark.asyncio
    async def test_reason_enum(self, sensor, kopf_patch):
        with patch.object(InstallationJob, "reconcile", AsyncMock(return_value=None)):
            await run_handler(kopf_patch, reason=kopf.Reason.RESUME)
        sensor.on_reconcile_start.assert_called_once_with("wordpress", "default", "resume")

    @pytest.mark.asyncio
    async def test_configuration_error_is_permanent(self, sensor, kopf_patch):
        error = ConfigurationError("invalid outputsVolumeSize 'notasize'")
        with patch.object(InstallationJob, "reconcile", AsyncMock(side_effect=error)), \
                patch.object(kopf, "warn") as warn:
            with pytest.raises(kopf.PermanentError, match="notasize"):
                await run_handler(kopf_patch)

        assert warn.call_args.kwargs["reason"] == handler.RECONCILE_FAILED
        complete = sensor.on_reconcile_complete.call_args.args
        assert complete[3] is False
        assert complete[4] is error

    @pytest.mark.asyncio
    async def test_api_error_is_retried(self, sensor, kopf_patch, api_error):
        error = ReconciliationError("error creating job wordpress-5", "default", "wordpress", "5")
        error.__cause__ = api_error(500, "InternalError")
        with patch.object(InstallationJob, "reconcile", AsyncMock(side_effect=error)), \
                patch.object(kopf, "warn"):
            with pytest.raises(kopf.TemporaryError, match="error creating job wordpress-5"):
                await run_handler(kopf_patch)
        assert kopf_patch.status == {}

    @pytest.mark.asyncio
    async def test_connection_error_is_reraised(self, sensor, kopf_patch):
        error = ReconciliationError("could not retrieve the Installation", "default", "wordpress")
        error.__cause__ = aiohttp.ClientConnectionError("connection reset")
        with patch.object(InstallationJob, "reconcile", AsyncMock(side_effect=error)), \
                patch.object(kopf, "warn"):
            with pytest.raises(ReconciliationError):
                await run_handler(kopf_patch)
