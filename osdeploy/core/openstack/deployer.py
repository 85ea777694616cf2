# osdeploy/core/openstack/deployer.py

"""
"ensure deployment" 워크플로우.

find-or-create 단계를 정해진 순서대로 실행하는 선형 파이프라인이다.
어느 단계든 실패하면 전체가 중단되고, 이미 끝난 단계(생성된 keypair,
security group 등)는 롤백하지 않는다.

순서:
1. 필수 값 검증 (네트워크 호출 전)
2. flavor 상세 조회 (disk-less flavor 인데 disk 크기가 없으면 실패)
3. 이미지 이름으로 조회 (이름이 정확히 일치하는 첫 번째 결과 사용)
4. SSH keypair 찾기 / 없으면 생성
5. security group 찾기 / 없으면 생성 + ingress 규칙 3개
6. bootstrap 스크립트 렌더링 → base64 user-data
7. 서버 생성
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, TypeVar

from osdeploy.config.settings import Settings
from osdeploy.core.errors import OpenStackClientError, ResourceNotFoundError, ValidationError
from osdeploy.core.openstack.bootstrap import encode_user_data, load_template, render_bootstrap_script
from osdeploy.core.openstack.client import OpenStackClient
from osdeploy.core.util import deep_merge
from osdeploy.models.deploy import DeploymentRequest
from osdeploy.models.resources import Flavor, Image, Keypair, ProvisionedServer, SecurityGroup

logger = logging.getLogger(__name__)

T = TypeVar("T", Image, Keypair, SecurityGroup)

# security group 생성 시점에만 만들어지는 ingress 규칙 (기존 그룹은 다시 확인하지 않음)
INGRESS_RULES: List[Dict[str, Any]] = [
    {"protocol": "tcp", "port_range_min": 80, "port_range_max": 81},
    {"protocol": "tcp", "port_range_min": 443, "port_range_max": 443},
    {"protocol": "tcp", "port_range_min": 22, "port_range_max": 22},
]


def validate_request(request: DeploymentRequest) -> None:
    for field, value in (
        ("image", request.image),
        ("flavor", request.flavor),
        ("ssh.name", request.ssh.name),
    ):
        if not value or not value.strip():
            raise ValidationError(f"'{field}' is required", field=field)


def check_flavor_disk(flavor: Flavor, disk: Optional[int]) -> None:
    if not flavor.has_local_disk and not disk:
        raise ValidationError(
            "disk size required for disk-less flavor",
            field="disk",
            flavor_id=flavor.id,
        )


def first_named(items: Iterable[T], name: str) -> Optional[T]:
    return next((item for item in items if item.name == name), None)


def build_server_options(
    overrides: Dict[str, Any],
    *,
    key_name: str,
    user_data: str,
    security_group: str,
    image_id: str,
    flavor: Flavor,
    disk: Optional[int],
) -> Dict[str, Any]:
    """요청 override 위에 key / user-data / security group (그리고 필요하면 볼륨 부팅)을 붙인다."""
    attachments: Dict[str, Any] = {
        "key_name": key_name,
        "user_data": user_data,
        "security_groups": [{"name": security_group}],
    }
    if not flavor.has_local_disk:
        attachments["block_device_mapping_v2"] = [
            {
                "boot_index": 0,
                "uuid": image_id,
                "source_type": "image",
                "destination_type": "volume",
                "volume_size": disk,
                "delete_on_termination": True,
            }
        ]
    return deep_merge(overrides, attachments)


@contextmanager
def _step(name: str) -> Iterator[None]:
    logger.info("Deployment step: %s", name)
    try:
        yield
    except OpenStackClientError as exc:
        logger.error("Deployment step '%s' failed: %s", name, exc.message)
        raise exc.with_context(f"Deployment step '{name}' failed") from exc


class ResourceOrchestrator:
    def __init__(
        self,
        client: OpenStackClient,
        *,
        security_group_name: str = "osdeploy-web",
        default_server_name: str = "osdeploy-server",
        env_file: str = "/etc/osdeploy/env",
        template: Optional[str] = None,
    ) -> None:
        self.client = client
        self.security_group_name = security_group_name
        self.default_server_name = default_server_name
        self.env_file = env_file
        self._template = template

    @classmethod
    def from_settings(cls, client: OpenStackClient, settings: Settings) -> "ResourceOrchestrator":
        return cls(
            client,
            security_group_name=settings.DEPLOY_SECURITY_GROUP,
            default_server_name=settings.DEPLOY_SERVER_NAME,
            env_file=settings.DEPLOY_ENV_FILE,
            template=load_template(settings.DEPLOY_BOOTSTRAP_TEMPLATE),
        )

    @property
    def template(self) -> str:
        if self._template is None:
            self._template = load_template()
        return self._template

    async def ensure_deployment(
        self, region_id: str, request: DeploymentRequest
    ) -> ProvisionedServer:
        with _step("validate"):
            validate_request(request)

        with _step("resolve flavor"):
            flavor = await self.client.get_flavor(region_id, request.flavor)
            check_flavor_disk(flavor, request.disk)

        with _step("resolve image"):
            image = await self.resolve_image(region_id, request.image)

        with _step("ensure keypair"):
            keypair = await self.ensure_keypair(region_id, request.ssh.name, request.ssh.public_key)

        with _step("ensure security group"):
            group = await self.ensure_security_group(region_id)

        with _step("render bootstrap script"):
            script = render_bootstrap_script(self.template, request.config, self.env_file)
            user_data = encode_user_data(script)

        with _step("create server"):
            options = build_server_options(
                request.server_options,
                key_name=keypair.name or request.ssh.name,
                user_data=user_data,
                security_group=group.name or self.security_group_name,
                image_id=image.id or "",
                flavor=flavor,
                disk=request.disk,
            )
            server = await self.client.create_server(
                region_id,
                request.server_name or self.default_server_name,
                image.id or "",
                flavor.id or request.flavor,
                options,
            )

        logger.info("Server %s requested in region %s", server.id, region_id)
        return server

    async def resolve_image(self, region_id: str, name: str) -> Image:
        # 이름이 정확히 일치하는 첫 이미지만 사용
        image = first_named(await self.client.list_images(region_id, {"name": name}), name)
        if image is None:
            raise ResourceNotFoundError(f"No image named '{name}'", resource="image", name=name)
        return image

    async def ensure_keypair(
        self, region_id: str, name: str, public_key: Optional[str] = None
    ) -> Keypair:
        existing = first_named(await self.client.list_keypairs(region_id), name)
        if existing is not None:
            logger.info("Reusing keypair %s", name)
            return existing

        logger.info("Creating keypair %s (%s)", name, "imported" if public_key else "generated")
        return await self.client.create_keypair(region_id, name, public_key)

    async def ensure_security_group(self, region_id: str) -> SecurityGroup:
        name = self.security_group_name
        groups = await self.client.list_security_groups(region_id, {"name": name})
        existing = first_named(groups, name)
        if existing is not None:
            # TODO: 기존 그룹의 ingress 규칙이 빠져 있어도 지금은 보완하지 않는다
            logger.info("Reusing security group %s", name)
            return existing

        logger.info("Creating security group %s", name)
        group = await self.client.create_security_group(region_id, name)
        for rule in INGRESS_RULES:
            await self.client.create_security_group_rule(region_id, group.id or "", rule)
        return group
