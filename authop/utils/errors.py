import json
import kopf
import kubernetes_asyncio

_ALREADY_EXISTS = "alreadyexists"
_NOT_FOUND = "notfound"
_CONFLICT = "conflict"


def _reason(ex: kubernetes_asyncio.client.ApiException) -> str:
    try:
        err = json.loads(ex.body) if ex.body else {}
    except (json.JSONDecodeError, TypeError):
        return ""
    if not isinstance(err, dict):
        return ""
    return (err.get("reason") or "").lower()


def already_exists_error(ex: Exception) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 409 and _reason(ex) in ("", _ALREADY_EXISTS)


def not_found_error(ex: Exception) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 404 or _reason(ex) == _NOT_FOUND


def conflict_error(ex: Exception) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 409 and _reason(ex) in ("", _CONFLICT)


def convert_api_exception(ex: kubernetes_asyncio.client.ApiException, permanent: bool = None):
    """
    Convert kubernetes ApiException to a Kopf-friendly exception.

    Args:
        ex: The ApiException to convert
        permanent: If True, raises PermanentError (won't retry). If False, raises TemporaryError (will retry).
                   If None, automatically determines based on status code.

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

    # 4xx errors (except 408, 429) are typically permanent
    if permanent is None:
        is_permanent = 400 <= ex.status < 500 and ex.status not in [408, 429]
    else:
        is_permanent = permanent

    if is_permanent:
        raise kopf.PermanentError(error_msg) from ex
    else:
        raise kopf.TemporaryError(error_msg, delay=30) from ex


class OperatorError(Exception):
    """Base class for errors raised by the authentication operator."""


class SyncError(OperatorError):
    """A reconciliation stage failed.

    The message carries the stage context, the original error is chained
    as ``__cause__``.
    """

    def __init__(self, message: str, cause: Exception = None):
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ReadinessCheckError(OperatorError):
    """A readiness probe could not be carried out."""

    def __init__(self, message: str, reason: str = ""):
        super().__init__(message)
        self.reason = reason


class EndpointsNotReadyError(ReadinessCheckError):
    """The API server endpoints cannot serve the discovery document yet."""


class RouteError(OperatorError):
    """The external route could not be established."""

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason
