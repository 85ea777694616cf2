# osdeploy/core/openstack/session.py

"""
Keystone v3 password 인증과 세션 수명 관리.

authenticate 는 항상 처음부터 다시 한다. 시작하자마자 세션을 비우므로
실패한 재인증이 예전 토큰을 유효한 것처럼 남겨두는 일은 없다.
여러 요청이 같은 클라이언트를 공유하면서 재인증하는 경우의 동시성은 보장하지 않는다.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from osdeploy.core.errors import AuthenticationError, InvalidCredentialsError, OpenStackClientError
from osdeploy.core.openstack.dispatcher import RequestDispatcher
from osdeploy.models.catalog import Service, Session, Token

logger = logging.getLogger(__name__)

SUBJECT_TOKEN_HEADER = "X-Subject-Token"


def build_auth_body(
    login: str,
    password: str,
    domain: str = "Default",
    project: Optional[str] = None,
) -> Dict[str, Any]:
    """POST /auth/tokens 의 `auth` 객체."""
    auth: Dict[str, Any] = {
        "identity": {
            "methods": ["password"],
            "password": {
                "user": {
                    "name": login,
                    "password": password,
                    "domain": {"name": domain},
                }
            },
        }
    }
    if project:
        auth["scope"] = {"project": {"name": project, "domain": {"name": domain}}}
    return auth


class SessionManager:
    def __init__(self, auth_url: str, dispatcher: RequestDispatcher) -> None:
        self.auth_url = auth_url.rstrip("/")
        self.dispatcher = dispatcher
        self.session = Session()

    @property
    def catalog(self):
        return self.session.catalog

    async def authenticate(
        self,
        login: str,
        password: str,
        domain: str = "Default",
        project: Optional[str] = None,
    ) -> Session:
        # 인증은 누적되지 않는다
        self.session = Session()

        if not login or not login.strip():
            raise InvalidCredentialsError("login is required", field="login")
        if not password or not password.strip():
            raise InvalidCredentialsError("password is required", field="password")

        try:
            session = await self._request_session(login, password, domain, project)
        except AuthenticationError:
            raise
        except OpenStackClientError as exc:
            raise AuthenticationError(
                f"Fail to authenticate user {login}: {exc.message}",
                status_code=exc.status_code,
                raw_body=exc.raw_body,
            ) from exc
        except (KeyError, TypeError, ValueError) as exc:
            # 응답 형식이 예상과 다른 경우 (pydantic 검증 실패 포함)
            raise AuthenticationError(
                f"Fail to authenticate user {login}: unexpected identity response ({exc})"
            ) from exc

        self.session = session
        logger.info(
            "Authenticated user %s (project=%s, %d catalog services)",
            login,
            project,
            len(session.catalog or []),
        )
        return session

    async def _request_session(
        self,
        login: str,
        password: str,
        domain: str,
        project: Optional[str],
    ) -> Session:
        response = await self.dispatcher.send(
            self.auth_url,
            "/auth/tokens",
            "POST",
            requires_auth=False,
            envelope_key="auth",
            payload=build_auth_body(login, password, domain, project),
        )

        value = response.headers.get(SUBJECT_TOKEN_HEADER)
        if not value:
            raise AuthenticationError(
                f"Fail to authenticate user {login}: no {SUBJECT_TOKEN_HEADER} header in response",
                status_code=response.status_code,
                raw_body=response.text,
            )
        body = response.json()["token"]
        token = Token(value=value, expires_at=body["expires_at"])

        catalog = body.get("catalog")
        if not catalog:
            logger.warning("Identity response carries no catalog, fetching it explicitly")
            candidate = Session(token=token, project=project)
            catalog = await self.dispatcher.call(
                self.auth_url,
                "/auth/catalog",
                "GET",
                envelope_key="catalog",
                session=candidate,
            )
        if not catalog:
            raise AuthenticationError(f"Fail to authenticate user {login}: catalog is empty")

        return Session(
            token=token,
            project=project,
            catalog=[Service.model_validate(service) for service in catalog],
        )
