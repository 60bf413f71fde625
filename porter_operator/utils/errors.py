import json
import kopf
import kubernetes_asyncio
from typing import Optional

_ALREADY_EXISTS = "alreadyexists"
_NOT_FOUND = "notfound"

# Status codes that will never succeed without a change to the request.
_PERMANENT_STATUSES = (400, 422)


def _reason(ex: kubernetes_asyncio.client.ApiException) -> str:
    try:
        err = json.loads(ex.body) if ex.body else {}
    except (json.JSONDecodeError, TypeError):
        return ""
    return str(err.get("reason", "")).lower() if isinstance(err, dict) else ""


def already_exists_error(ex: Exception) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 409 and _reason(ex) in ("", _ALREADY_EXISTS)


def not_found_error(ex: Exception) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 404 or _reason(ex) == _NOT_FOUND


class PorterOperatorError(Exception):
    """Base class for errors raised by the operator."""


class ConfigurationError(PorterOperatorError):
    """The desired state holds a value that cannot be used as-is.

    Retrying will fail identically until the Installation (or the namespace
    defaults) are corrected.
    """


class ReconciliationError(PorterOperatorError):
    """A cluster operation failed while reconciling an Installation."""

    def __init__(
        self,
        message: str,
        namespace: str,
        name: str,
        revision: Optional[str] = None,
    ):
        self.namespace = namespace
        self.name = name
        self.revision = revision
        where = f"{namespace}/{name}"
        if revision:
            where = f"{where}@{revision}"
        super().__init__(f"{message} (Installation {where})")


def convert_api_exception(
    ex: kubernetes_asyncio.client.ApiException,
    permanent: bool = None,
    context: Optional[str] = None,
):
    """
    Convert kubernetes ApiException to a Kopf-friendly exception.

    Args:
        ex: The ApiException to convert
        permanent: If True, raises PermanentError (won't retry). If False, raises TemporaryError (will retry).
                   If None, only malformed requests (400, 422) are permanent. Conflicts,
                   quota rejections and server errors are retried with backoff.
        context: Description of the failed operation, prepended to the message

    Raises:
        kopf.TemporaryError or kopf.PermanentError with serializable error details
    """
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        raise ex

    error_msg = f"Kubernetes API error ({ex.status}): {ex.reason}"

    try:
        if ex.body:
            body = json.loads(ex.body)
            if "message" in body:
                error_msg = f"{error_msg} - {body['message']}"
    except (json.JSONDecodeError, AttributeError, TypeError):
        pass

    if context:
        error_msg = f"{context}: {error_msg}"

    if permanent is None:
        is_permanent = ex.status in _PERMANENT_STATUSES
    else:
        is_permanent = permanent

    if is_permanent:
        raise kopf.PermanentError(error_msg) from ex
    else:
        raise kopf.TemporaryError(error_msg, delay=30) from ex
