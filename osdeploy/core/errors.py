# osdeploy/core/errors.py

"""
클라이언트 전체에서 공통으로 쓰이는 에러 분류.

모든 에러는 OpenStackClientError 하나를 기반으로 하고,
`kind` 태그 + message + (선택) status_code / raw_body 를 들고 다닌다.
하위 레이어 에러를 감쌀 때는 `with_context()` 로 같은 종류의 새 에러를
명시적으로 만들어서 `raise ... from exc` 한다.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    CATALOG_MISSING = "catalog_missing"
    SERVICE_NOT_FOUND = "service_not_found"
    ENDPOINT_NOT_FOUND = "endpoint_not_found"
    NOT_AUTHENTICATED = "not_authenticated"
    TOKEN_EXPIRED = "token_expired"
    TRANSPORT = "transport"
    RESOURCE_NOT_FOUND = "resource_not_found"


class OpenStackClientError(RuntimeError):
    """태그가 붙은 클라이언트 에러의 공통 베이스."""

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        raw_body: Optional[str] = None,
        **details: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.raw_body = raw_body
        self.details: Dict[str, Any] = details

    def with_context(self, context: str) -> "OpenStackClientError":
        """같은 kind 의 새 에러를 만든다. (호출 측에서 `from self` 로 연결)"""
        return self.__class__(
            f"{context}: {self.message}",
            status_code=self.status_code,
            raw_body=self.raw_body,
            **self.details,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.raw_body is not None:
            data["raw_body"] = self.raw_body
        if self.details:
            data["details"] = dict(self.details)
        return data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value!r}, message={self.message!r})"


class ValidationError(OpenStackClientError):
    """필수 값 누락/공백, 또는 disk-less flavor 인데 disk 크기가 없는 경우."""

    kind = ErrorKind.VALIDATION


class AuthenticationError(OpenStackClientError):
    """identity 호출 실패 또는 카탈로그를 얻지 못한 경우."""

    kind = ErrorKind.AUTHENTICATION


class InvalidCredentialsError(ValidationError, AuthenticationError):
    """login / password 가 비어 있음. 네트워크 호출 전에 발생한다."""

    kind = ErrorKind.VALIDATION


class CatalogMissingError(OpenStackClientError):
    """authenticate 전에 카탈로그가 필요한 호출을 한 경우."""

    kind = ErrorKind.CATALOG_MISSING


class ServiceNotFoundError(OpenStackClientError):
    kind = ErrorKind.SERVICE_NOT_FOUND


class EndpointNotFoundError(OpenStackClientError):
    kind = ErrorKind.ENDPOINT_NOT_FOUND


class NotAuthenticatedError(OpenStackClientError):
    kind = ErrorKind.NOT_AUTHENTICATED


class TokenExpiredError(OpenStackClientError):
    kind = ErrorKind.TOKEN_EXPIRED


class TransportError(OpenStackClientError):
    """2xx 가 아닌 응답 또는 네트워크 실패. status_code 는 응답이 없으면 None."""

    kind = ErrorKind.TRANSPORT


class ResourceNotFoundError(OpenStackClientError):
    """오케스트레이터 단계에서 필수 리소스를 하나도 못 찾은 경우."""

    kind = ErrorKind.RESOURCE_NOT_FOUND
