# osdeploy/core/openstack/dispatcher.py

"""
HTTP 호출 한 건을 담당하는 디스패처.

- 인증이 필요한 호출이면 토큰 유무/만료를 먼저 확인하고 X-Auth-Token 헤더를 붙인다.
- payload 는 envelope key 아래로 감싸서 보낸다. (예: {"keypair": {...}})
- 2xx 가 아니거나 네트워크 실패면 TransportError 로 변환한다.
- 재시도/타임아웃은 주입된 httpx 클라이언트 몫이다.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from osdeploy.core.errors import NotAuthenticatedError, TokenExpiredError, TransportError
from osdeploy.core.util import to_query_string
from osdeploy.models.catalog import Session

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# "payload 없음" 표시. None 은 JSON null 로 그대로 전송된다.
UNSET: Any = _Unset()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RequestDispatcher:
    def __init__(
        self,
        http: httpx.AsyncClient,
        session_source: Callable[[], Session],
        *,
        clock: Optional[Clock] = None,
    ) -> None:
        self.http = http
        self._session_source = session_source
        self.clock: Clock = clock or utcnow

    def auth_headers(self, session: Optional[Session] = None) -> Dict[str, str]:
        """현재(또는 주어진) 세션의 토큰으로 인증 헤더를 만든다. 전송 전에 검사한다."""
        session = session if session is not None else self._session_source()
        token = session.token
        if token is None:
            raise NotAuthenticatedError("No authentication token, call authenticate() first")
        if token.is_expired(self.clock()):
            raise TokenExpiredError(
                f"Authentication token expired at {token.expires_at.isoformat()}",
                expires_at=token.expires_at.isoformat(),
            )
        return {"X-Auth-Token": token.value}

    async def send(
        self,
        base_url: str,
        path: str,
        method: str = "GET",
        *,
        requires_auth: bool = True,
        envelope_key: Optional[str] = None,
        payload: Any = UNSET,
        query: Optional[Mapping[str, Any]] = None,
        session: Optional[Session] = None,
    ) -> httpx.Response:
        """요청을 보내고 2xx 응답 객체를 그대로 반환한다."""
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if requires_auth:
            headers.update(self.auth_headers(session))

        url = f"{base_url}{path}{to_query_string(query)}"
        body = None
        if envelope_key and payload is not UNSET:
            body = {envelope_key: payload}

        logger.debug("%s %s", method, url)
        try:
            if body is None:
                response = await self.http.request(method, url, headers=headers)
            else:
                response = await self.http.request(method, url, headers=headers, json=body)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        if not response.is_success:
            logger.warning("%s %s returned HTTP %s", method, url, response.status_code)
            raise TransportError(
                f"{method} {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
                raw_body=response.text,
            )
        return response

    async def call(
        self,
        base_url: str,
        path: str,
        method: str = "GET",
        *,
        requires_auth: bool = True,
        envelope_key: Optional[str] = None,
        payload: Any = UNSET,
        query: Optional[Mapping[str, Any]] = None,
        session: Optional[Session] = None,
    ) -> Any:
        """
        send() 후 JSON 바디를 디코딩한다.

        envelope_key 가 있으면 그 키의 값만, 없으면 바디 전체를 반환한다.
        바디가 없는 응답(204 등)은 None.
        """
        response = await self.send(
            base_url,
            path,
            method,
            requires_auth=requires_auth,
            envelope_key=envelope_key,
            payload=payload,
            query=query,
            session=session,
        )
        data = decode_body(response)
        if envelope_key is None or data is None:
            return data
        if not isinstance(data, dict):
            raise TransportError(
                f"{method} {path}: expected a JSON object with '{envelope_key}'",
                status_code=response.status_code,
                raw_body=response.text,
            )
        return data.get(envelope_key)


def decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise TransportError(
            f"Invalid JSON body from {response.request.method} {response.request.url}",
            status_code=response.status_code,
            raw_body=response.text,
        ) from exc
