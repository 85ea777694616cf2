# tests/conftest.py

"""
pytest 설정 및 공통 fixture.

FakeCloud 는 httpx.MockTransport 위에서 동작하는 가짜 OpenStack 이다.
(method, query 제외 URL) 로 응답을 등록하고, 받은 요청을 모두 기록한다.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

# 프로젝트 루트를 PYTHONPATH에 추가
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from osdeploy.core.openstack.client import OpenStackClient  # noqa: E402

AUTH_URL = "https://identity.example/v3"
COMPUTE_URL = "https://compute.example/v2.1"
IMAGE_URL = "https://image.example"
NETWORK_URL = "https://network.example"
REGION = "R1"
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
EXPIRES_AT = "2026-10-19T13:00:00.000000Z"

CATALOG: List[Dict[str, Any]] = [
    {
        "type": "identity",
        "name": "keystone",
        "endpoints": [
            {"interface": "public", "region_id": REGION, "region": "Region One", "url": AUTH_URL},
        ],
    },
    {
        "type": "compute",
        "name": "nova",
        "endpoints": [
            {"interface": "public", "region_id": REGION, "region": "Region One", "url": COMPUTE_URL},
            {"interface": "internal", "region_id": REGION, "region": "Region One", "url": "http://nova.internal"},
        ],
    },
    {
        "type": "image",
        "name": "glance",
        "endpoints": [
            {"interface": "public", "region_id": REGION, "region": "Region One", "url": IMAGE_URL},
        ],
    },
    {
        "type": "network",
        "name": "neutron",
        "endpoints": [
            {"interface": "public", "region_id": REGION, "region": "Region One", "url": NETWORK_URL},
        ],
    },
]

Responder = Callable[[httpx.Request], httpx.Response]


class FakeCloud:
    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Responder] = {}
        self.requests: List[httpx.Request] = []

    def on(
        self,
        method: str,
        url: str,
        json_body: Any = None,
        *,
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
        responder: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ) -> None:
        if responder is None:
            # 요청마다 새 Response 를 만든다
            def responder(request: httpx.Request) -> httpx.Response:
                if json_body is None:
                    return httpx.Response(status_code, headers=headers)
                return httpx.Response(status_code, json=json_body, headers=headers)

        self.routes[(method, url)] = responder

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, str(request.url).split("?")[0])
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, text=f"no route for {key}")
        return route(request)

    def calls(self, method: Optional[str] = None, url: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method)
            and (url is None or str(r.url).split("?")[0] == url)
        ]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None

    def accept_login(self, catalog: Optional[List[Dict[str, Any]]] = None, token: str = "tok-1") -> None:
        token_body: Dict[str, Any] = {"expires_at": EXPIRES_AT}
        if catalog is not None:
            token_body["catalog"] = catalog
        self.on(
            "POST",
            f"{AUTH_URL}/auth/tokens",
            {"token": token_body},
            status_code=201,
            headers={"X-Subject-Token": token},
        )


@pytest.fixture
def cloud() -> FakeCloud:
    return FakeCloud()


@pytest.fixture
def http(cloud: FakeCloud) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(cloud.handler))


@pytest.fixture
def client(http: httpx.AsyncClient) -> OpenStackClient:
    return OpenStackClient(AUTH_URL, http, clock=lambda: NOW)


@pytest_asyncio.fixture
async def authed_client(cloud: FakeCloud, client: OpenStackClient) -> OpenStackClient:
    cloud.accept_login(CATALOG)
    await client.authenticate("demo", "secret", project="demo")
    cloud.requests.clear()
    return client
