"""Unit tests for Kubernetes API error helpers."""

import kopf
import pytest
from kubernetes_asyncio.client import ApiException
from porter_operator.utils.errors import (
    ReconciliationError,
    already_exists_error,
    convert_api_exception,
    not_found_error,
)


class TestErrorClassification:
    def test_already_exists(self, api_error):
        assert already_exists_error(api_error(409, "AlreadyExists"))

    def test_already_exists_without_body(self):
        assert already_exists_error(ApiException(status=409, reason="Conflict"))

    def test_conflict_is_not_already_exists(self, api_error):
        assert not already_exists_error(api_error(409, "Conflict"))

    def test_not_found(self, api_error):
        assert not_found_error(api_error(404, "NotFound"))
        assert not_found_error(ApiException(status=404, reason="Not Found"))

    def test_other_errors(self, api_error):
        assert not not_found_error(api_error(403, "Forbidden"))
        assert not already_exists_error(api_error(500, "InternalError"))
        assert not not_found_error(ValueError("404"))

    def test_unparseable_body(self):
        ex = ApiException(status=409, reason="Conflict")
        ex.body = "<html>bad gateway</html>"
        assert already_exists_error(ex)


class TestReconciliationError:
    def test_message_names_installation(self):
        error = ReconciliationError("error creating job wordpress-5", "default", "wordpress", "5")
        assert str(error) == "error creating job wordpress-5 (Installation default/wordpress@5)"
        assert error.namespace == "default"
        assert error.name == "wordpress"
        assert error.revision == "5"

    def test_message_without_revision(self):
        error = ReconciliationError("could not retrieve the Installation", "default", "wordpress")
        assert str(error).endswith("(Installation default/wordpress)")


class TestConvertApiException:
    @pytest.mark.parametrize("status", [400, 422])
    def test_malformed_requests_are_permanent(self, api_error, status):
        with pytest.raises(kopf.PermanentError):
            convert_api_exception(api_error(status, "Invalid"))

    @pytest.mark.parametrize("status", [403, 409, 429, 500, 503])
    def test_other_errors_are_retried(self, api_error, status):
        with pytest.raises(kopf.TemporaryError) as exc:
            convert_api_exception(api_error(status, "Failure"))
        assert exc.value.delay == 30

    def test_explicit_permanence(self, api_error):
        with pytest.raises(kopf.PermanentError):
            convert_api_exception(api_error(500, "InternalError"), permanent=True)
        with pytest.raises(kopf.TemporaryError):
            convert_api_exception(api_error(400, "BadRequest"), permanent=False)

    def test_message(self, api_error):
        with pytest.raises(kopf.TemporaryError) as exc:
            convert_api_exception(api_error(403, "Forbidden"), context="error creating job")
        message = str(exc.value)
        assert message.startswith("error creating job: Kubernetes API error (403)")
        assert "Forbidden (403)" in message

    def test_not_an_api_exception(self):
        with pytest.raises(ValueError):
            convert_api_exception(ValueError("boom"))
