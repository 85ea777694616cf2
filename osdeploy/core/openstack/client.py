# osdeploy/core/openstack/client.py

"""
OpenStack REST 클라이언트.

SessionManager / EndpointResolver / RequestDispatcher 를 묶고,
리소스별 얇은 래퍼(list/get/create/delete)를 제공한다.
모든 래퍼는 "엔드포인트 resolve → dispatch" 의 같은 패턴을 따르고,
실패하면 "Failed to <동작>" 문맥을 붙여 같은 종류의 에러로 다시 던진다.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import httpx

from osdeploy.config.settings import Settings
from osdeploy.core.errors import OpenStackClientError, TransportError
from osdeploy.core.openstack.catalog import EndpointResolver
from osdeploy.core.openstack.dispatcher import UNSET, Clock, RequestDispatcher
from osdeploy.core.openstack.session import SessionManager
from osdeploy.core.util import deep_merge
from osdeploy.models.catalog import Region, Session
from osdeploy.models.resources import (
    Flavor,
    Image,
    Keypair,
    Network,
    SecurityGroup,
    SecurityGroupRule,
    Server,
    Subnet,
)


def _segment(value: str) -> str:
    return quote(str(value), safe="")


class OpenStackClient:
    def __init__(
        self,
        auth_url: str,
        http: Optional[httpx.AsyncClient] = None,
        *,
        interface: str = "public",
        clock: Optional[Clock] = None,
        timeout: float = 30.0,
    ) -> None:
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self.interface = interface
        self.dispatcher = RequestDispatcher(self.http, lambda: self.sessions.session, clock=clock)
        self.sessions = SessionManager(auth_url, self.dispatcher)
        self.resolver = EndpointResolver(lambda: self.sessions.catalog)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http: Optional[httpx.AsyncClient] = None,
    ) -> "OpenStackClient":
        return cls(
            settings.OS_AUTH_URL,
            http,
            interface=settings.OS_INTERFACE,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "OpenStackClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # identity

    @property
    def session(self) -> Session:
        return self.sessions.session

    async def authenticate(
        self,
        login: str,
        password: str,
        domain: str = "Default",
        project: Optional[str] = None,
    ) -> Session:
        return await self.sessions.authenticate(login, password, domain, project)

    def get_regions(self, service_type: str) -> List[Region]:
        return self.resolver.get_regions(service_type)

    async def _request(
        self,
        region_id: str,
        service_type: str,
        path: str,
        method: str = "GET",
        *,
        action: str,
        envelope_key: Optional[str] = None,
        payload: Any = UNSET,
        query: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        try:
            base_url = self.resolver.resolve(service_type, region_id, self.interface)
            return await self.dispatcher.call(
                base_url,
                path,
                method,
                envelope_key=envelope_key,
                payload=payload,
                query=query,
            )
        except OpenStackClientError as exc:
            raise exc.with_context(f"Failed to {action} ({method} {path})") from exc

    # ------------------------------------------------------------------
    # image

    async def list_images(
        self, region_id: str, query: Optional[Mapping[str, Any]] = None
    ) -> List[Image]:
        # TODO: /v2 를 하드코딩하지 말고 image 서비스의 버전 문서에서 고르기
        images = await self._request(
            region_id, "image", "/v2/images",
            action="retrieve the image list", envelope_key="images", query=query,
        )
        return [Image.model_validate(item) for item in images or []]

    async def get_image(self, region_id: str, image_id: str) -> Image:
        # glance v2 는 단건 조회에 envelope 가 없다
        image = await self._request(
            region_id, "image", f"/v2/images/{_segment(image_id)}",
            action="retrieve the image detail",
        )
        return Image.model_validate(image)

    # ------------------------------------------------------------------
    # compute - flavors

    async def list_flavors(self, region_id: str, detailed: bool = True) -> List[Flavor]:
        """flavor 목록. detailed 면 flavor 별 상세 조회를 동시에 돌려서 채운다."""
        summaries = await self._request(
            region_id, "compute", "/flavors",
            action="retrieve the compute flavor list", envelope_key="flavors",
        )
        if not detailed:
            return [Flavor.model_validate(item) for item in summaries or []]
        ids = []
        for item in summaries or []:
            if not isinstance(item, dict) or not item.get("id"):
                raise TransportError(
                    f"Failed to retrieve the compute flavor list (GET /flavors): "
                    f"flavor summary without an id: {item!r}"
                )
            ids.append(item["id"])
        return list(await asyncio.gather(*(self.get_flavor(region_id, i) for i in ids)))

    async def get_flavor(self, region_id: str, flavor_id: str) -> Flavor:
        flavor = await self._request(
            region_id, "compute", f"/flavors/{_segment(flavor_id)}",
            action="retrieve the compute flavor detail", envelope_key="flavor",
        )
        return Flavor.model_validate(flavor)

    # ------------------------------------------------------------------
    # compute - keypairs

    async def list_keypairs(self, region_id: str) -> List[Keypair]:
        keypairs = await self._request(
            region_id, "compute", "/os-keypairs",
            action="retrieve the compute keypair list", envelope_key="keypairs",
        )
        # nova 는 항목마다 {"keypair": {...}} 로 한 번 더 감싸서 준다
        return [Keypair.model_validate(item.get("keypair", item)) for item in keypairs or []]

    async def create_keypair(
        self,
        region_id: str,
        name: str,
        public_key: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Keypair:
        """public_key 가 없으면 서버에서 새 키를 만들고 private_key 를 한 번 돌려준다."""
        body: Dict[str, Any] = {"name": name}
        if public_key:
            body["public_key"] = public_key
        keypair = await self._request(
            region_id, "compute", "/os-keypairs", "POST",
            action="save the compute keypair", envelope_key="keypair",
            payload=deep_merge(body, options),
        )
        return Keypair.model_validate(keypair)

    async def delete_keypair(self, region_id: str, name: str) -> None:
        await self._request(
            region_id, "compute", f"/os-keypairs/{_segment(name)}", "DELETE",
            action="delete the compute keypair",
        )

    # ------------------------------------------------------------------
    # compute - servers

    async def list_servers(
        self, region_id: str, query: Optional[Mapping[str, Any]] = None
    ) -> List[Server]:
        servers = await self._request(
            region_id, "compute", "/servers/detail",
            action="retrieve the compute server list", envelope_key="servers", query=query,
        )
        return [Server.model_validate(item) for item in servers or []]

    async def get_server(self, region_id: str, server_id: str) -> Server:
        server = await self._request(
            region_id, "compute", f"/servers/{_segment(server_id)}",
            action="retrieve the compute server", envelope_key="server",
        )
        return Server.model_validate(server)

    async def create_server(
        self,
        region_id: str,
        name: str,
        image_id: str,
        flavor_id: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Server:
        body = deep_merge({"name": name, "imageRef": image_id, "flavorRef": flavor_id}, options)
        server = await self._request(
            region_id, "compute", "/servers", "POST",
            action="create the compute server", envelope_key="server", payload=body,
        )
        return Server.model_validate(server)

    async def delete_server(self, region_id: str, server_id: str) -> None:
        await self._request(
            region_id, "compute", f"/servers/{_segment(server_id)}", "DELETE",
            action="delete the compute server",
        )

    async def get_server_addresses(self, region_id: str, server_id: str) -> Dict[str, Any]:
        addresses = await self._request(
            region_id, "compute", f"/servers/{_segment(server_id)}/ips",
            action="retrieve the compute server addresses", envelope_key="addresses",
        )
        return addresses or {}

    async def server_action(
        self,
        region_id: str,
        server_id: str,
        action: str,
        body: Any = None,
    ) -> Any:
        """POST /servers/{id}/action. 응답이 올 때까지 기다린 뒤 반환한다."""
        return await self._request(
            region_id, "compute", f"/servers/{_segment(server_id)}/action", "POST",
            action=f"run '{action}' on the compute server",
            envelope_key=action, payload=body,
        )

    async def start_server(self, region_id: str, server_id: str) -> None:
        await self.server_action(region_id, server_id, "os-start")

    async def stop_server(self, region_id: str, server_id: str) -> None:
        await self.server_action(region_id, server_id, "os-stop")

    async def reboot_server(self, region_id: str, server_id: str, hard: bool = False) -> None:
        await self.server_action(
            region_id, server_id, "reboot", {"type": "HARD" if hard else "SOFT"}
        )

    # ------------------------------------------------------------------
    # network - networks

    async def list_networks(
        self, region_id: str, query: Optional[Mapping[str, Any]] = None
    ) -> List[Network]:
        networks = await self._request(
            region_id, "network", "/v2.0/networks",
            action="retrieve the network list", envelope_key="networks", query=query,
        )
        return [Network.model_validate(item) for item in networks or []]

    async def get_network(self, region_id: str, network_id: str) -> Network:
        network = await self._request(
            region_id, "network", f"/v2.0/networks/{_segment(network_id)}",
            action="retrieve the network", envelope_key="network",
        )
        return Network.model_validate(network)

    async def create_network(
        self, region_id: str, options: Optional[Mapping[str, Any]] = None
    ) -> Network:
        network = await self._request(
            region_id, "network", "/v2.0/networks", "POST",
            action="create the network", envelope_key="network",
            payload=deep_merge({}, options),
        )
        return Network.model_validate(network)

    async def delete_network(self, region_id: str, network_id: str) -> None:
        await self._request(
            region_id, "network", f"/v2.0/networks/{_segment(network_id)}", "DELETE",
            action="delete the network",
        )

    # ------------------------------------------------------------------
    # network - subnets

    async def list_subnets(
        self, region_id: str, query: Optional[Mapping[str, Any]] = None
    ) -> List[Subnet]:
        subnets = await self._request(
            region_id, "network", "/v2.0/subnets",
            action="retrieve the subnet list", envelope_key="subnets", query=query,
        )
        return [Subnet.model_validate(item) for item in subnets or []]

    async def get_subnet(self, region_id: str, subnet_id: str) -> Subnet:
        subnet = await self._request(
            region_id, "network", f"/v2.0/subnets/{_segment(subnet_id)}",
            action="retrieve the subnet", envelope_key="subnet",
        )
        return Subnet.model_validate(subnet)

    async def create_subnet(
        self,
        region_id: str,
        network_id: str,
        ip_version: int,
        cidr: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Subnet:
        body = {"network_id": network_id, "ip_version": ip_version, "cidr": cidr}
        subnet = await self._request(
            region_id, "network", "/v2.0/subnets", "POST",
            action="create the subnet", envelope_key="subnet",
            payload=deep_merge(body, options),
        )
        return Subnet.model_validate(subnet)

    async def delete_subnet(self, region_id: str, subnet_id: str) -> None:
        await self._request(
            region_id, "network", f"/v2.0/subnets/{_segment(subnet_id)}", "DELETE",
            action="delete the subnet",
        )

    # ------------------------------------------------------------------
    # network - security groups

    async def list_security_groups(
        self, region_id: str, query: Optional[Mapping[str, Any]] = None
    ) -> List[SecurityGroup]:
        groups = await self._request(
            region_id, "network", "/v2.0/security-groups",
            action="retrieve the security group list", envelope_key="security_groups",
            query=query,
        )
        return [SecurityGroup.model_validate(item) for item in groups or []]

    async def get_security_group(self, region_id: str, group_id: str) -> SecurityGroup:
        group = await self._request(
            region_id, "network", f"/v2.0/security-groups/{_segment(group_id)}",
            action="retrieve the security group", envelope_key="security_group",
        )
        return SecurityGroup.model_validate(group)

    async def create_security_group(
        self,
        region_id: str,
        name: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> SecurityGroup:
        group = await self._request(
            region_id, "network", "/v2.0/security-groups", "POST",
            action="create the security group", envelope_key="security_group",
            payload=deep_merge({"name": name}, options),
        )
        return SecurityGroup.model_validate(group)

    async def delete_security_group(self, region_id: str, group_id: str) -> None:
        await self._request(
            region_id, "network", f"/v2.0/security-groups/{_segment(group_id)}", "DELETE",
            action="delete the security group",
        )

    async def create_security_group_rule(
        self,
        region_id: str,
        security_group_id: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> SecurityGroupRule:
        body = {"security_group_id": security_group_id, "direction": "ingress", "ethertype": "IPv4"}
        rule = await self._request(
            region_id, "network", "/v2.0/security-group-rules", "POST",
            action="create the security group rule", envelope_key="security_group_rule",
            payload=deep_merge(body, options),
        )
        return SecurityGroupRule.model_validate(rule)
