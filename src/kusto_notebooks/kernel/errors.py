from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Type

from kusto_notebooks.exceptions.errors import (
    AuthenticationError,
    GenericQueryError,
    InvalidQuery,
    QueryError,
    QueryTimeout,
    ServerError,
)

DEFAULT_MESSAGE = "Failed to execute query"


@dataclass(frozen=True)
class ClassifiedError:
    error_type: Type[QueryError]
    name: str
    message: str

    def to_exception(self) -> QueryError:
        return self.error_type(self.message)

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "message": self.message}


def _get(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def _response_status(response: Any) -> Optional[int]:
    status = _get(response, "status")
    if status is None:
        status = _get(response, "status_code")
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _response_data(response: Any) -> Any:
    data = _get(response, "data")
    if data is not None:
        return data
    json_fn = getattr(response, "json", None)
    if callable(json_fn):
        try:
            return json_fn()
        except ValueError:
            return None
    return None


def _status_error_type(status: int) -> Type[QueryError]:
    if status == 400:
        return InvalidQuery
    if status in (401, 403):
        return AuthenticationError
    if status in (408, 504):
        return QueryTimeout
    if status >= 500:
        return ServerError
    return GenericQueryError


def _http_message(data: Any) -> str:
    error = _get(data, "error")
    if error:
        return _get(error, "@message") or _get(error, "message") or DEFAULT_MESSAGE
    return _get(data, "message") or DEFAULT_MESSAGE


def classify_query_error(ex: Any) -> ClassifiedError:
    """Map whatever a client raised to ``(type, name, message)``.

    First match wins: an HTTP-shaped error carrying ``response`` with a status, then
    one of our own :class:`QueryError`, then any other exception (name and message
    verbatim), then an engine error (an exception or payload exposing
    ``innererror``) as ``"{message} ({innererror.message})"``.
    """
    response = _get(ex, "response")
    status = _response_status(response) if response is not None else None
    if status is not None:
        error_type = _status_error_type(status)
        message = str(_http_message(_response_data(response)))
        return ClassifiedError(error_type=error_type, name=error_type.display_name, message=message)

    if isinstance(ex, QueryError):
        return ClassifiedError(error_type=type(ex), name=ex.display_name, message=ex.message or DEFAULT_MESSAGE)

    if isinstance(ex, BaseException) and _get(ex, "innererror") is None:
        return ClassifiedError(error_type=GenericQueryError, name=type(ex).__name__, message=str(ex) or DEFAULT_MESSAGE)

    message = _get(ex, "message")
    if not message and isinstance(ex, BaseException):
        message = str(ex)
    if message:
        inner = _get(_get(ex, "innererror"), "message")
        text = f"{message} ({inner})" if inner else str(message)
        return ClassifiedError(error_type=GenericQueryError, name=GenericQueryError.display_name, message=text)

    return ClassifiedError(error_type=GenericQueryError, name=GenericQueryError.display_name, message=DEFAULT_MESSAGE)
