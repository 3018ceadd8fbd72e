"""Error kinds and result values for the Static Maps client.

Build operations and HTTP/storage collaborators never raise for domain
problems. They return a `Result` holding either a value or one of the
errors below, so callers can branch on `result.ok`.

Setters on the option store are the exception: they raise `ValidationError`
immediately (fail fast at mutation time) so that fluent chaining stays usable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar


class StaticMapError(Exception):
    """Base error. `code` is a stable machine-readable identifier."""

    code = "static_map_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def __str__(self) -> str:
        return self.message


class MissingApiKeyError(StaticMapError):
    code = "missing_api_key"

    def __init__(self) -> None:
        super().__init__("Google Maps API key is required")


class MissingRequiredParameterError(StaticMapError):
    code = "missing_required_parameter"

    def __init__(self, parameter: str) -> None:
        super().__init__(
            f"Missing required parameter: {parameter}", parameter=parameter
        )


class ValidationError(StaticMapError, ValueError):
    """A setter or override received an out-of-domain value."""

    code = "invalid_parameter"

    def __init__(self, field: str, value: Any, allowed: str) -> None:
        super().__init__(
            f"Invalid {field} {value!r}: must be {allowed}",
            field=field,
            value=value,
            allowed=allowed,
        )
        self.field = field
        self.value = value
        self.allowed = allowed


class InvalidImageError(StaticMapError):
    code = "invalid_image"

    def __init__(self, url: str, detail: str = "") -> None:
        msg = "Invalid image file"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg, url=url)


class UpstreamRequestError(StaticMapError):
    """Network call failed or the upstream answered with a non-200 status.

    `cause` is the underlying transport exception when there is one.
    """

    code = "upstream_request_failed"

    def __init__(
        self,
        url: str,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        if cause is not None:
            msg = f"Request failed: {cause.__class__.__name__}: {cause}"
        else:
            msg = f"Request failed with HTTP {status_code}"
        super().__init__(msg, url=url, status_code=status_code)
        self.status_code = status_code
        self.cause = cause
        self.__cause__ = cause


class StorageError(StaticMapError):
    """Writing a fetched map (or its sidecar) to disk failed."""

    code = "storage_failed"

    def __init__(self, path: str, cause: OSError) -> None:
        super().__init__(f"Cannot write {path}: {cause}", path=path)
        self.path = path
        self.cause = cause
        self.__cause__ = cause


class InvalidApiKeyError(StaticMapError):
    code = "invalid_api_key"

    def __init__(self, status_code: int) -> None:
        super().__init__(
            "The provided Google Maps API key is invalid",
            status_code=status_code,
        )
        self.status_code = status_code


T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[StaticMapError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: StaticMapError) -> "Result[T]":
        return cls(error=error)
