#!/usr/bin/env python3
"""
실제 OpenStack 에 대해 전체 배포 플로우를 돌려보는 스크립트

인증 → 리전 확인 → ensure_deployment → 서버 ACTIVE 대기 → IP 출력

사용법:
    python scripts/full_deploy.py

환경변수:
    OS_AUTH_URL, OS_USERNAME, OS_PASSWORD, OS_USER_DOMAIN_NAME, OS_PROJECT_NAME, OS_REGION_NAME
    DEPLOY_IMAGE: 이미지 이름 (필수)
    DEPLOY_FLAVOR: flavor ID (필수)
    DEPLOY_SSHKEY_NAME: keypair 이름 (필수)
    DEPLOY_SSHKEY_PUB: 공개키 (선택, 없으면 서버에서 생성)
    DEPLOY_DISK: disk-less flavor 용 볼륨 크기 GiB (선택)
"""

import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from osdeploy.config.settings import get_settings  # noqa: E402
from osdeploy.core.errors import OpenStackClientError  # noqa: E402
from osdeploy.core.openstack.client import OpenStackClient  # noqa: E402
from osdeploy.core.openstack.deployer import ResourceOrchestrator  # noqa: E402
from osdeploy.models.deploy import DeploymentRequest, SshKeySpec  # noqa: E402

load_dotenv()

POLL_SECONDS = 2.0


class Colors:
    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    BLUE = '\033[94m'
    END = '\033[0m'
    BOLD = '\033[1m'


def print_step(step_num: int, description: str):
    print(f"\n{Colors.BOLD}{Colors.BLUE}[Step {step_num}]{Colors.END} {description}")
    print("-" * 60)


def print_success(message: str):
    print(f"{Colors.GREEN}✓{Colors.END} {message}")


def print_error(message: str):
    print(f"{Colors.RED}✗{Colors.END} {message}")


def print_info(message: str):
    print(f"{Colors.YELLOW}ℹ{Colors.END} {message}")


async def run() -> int:
    settings = get_settings()
    region_id = settings.OS_REGION_NAME
    disk = os.getenv("DEPLOY_DISK")

    request = DeploymentRequest(
        image=os.getenv("DEPLOY_IMAGE", ""),
        flavor=os.getenv("DEPLOY_FLAVOR", ""),
        ssh=SshKeySpec(
            name=os.getenv("DEPLOY_SSHKEY_NAME", ""),
            public_key=os.getenv("DEPLOY_SSHKEY_PUB") or None,
        ),
        disk=int(disk) if disk else None,
        server_name=os.getenv("DEPLOY_SERVER_NAME") or None,
        config={"DEPLOYED_BY": "full_deploy.py"},
    )

    async with OpenStackClient.from_settings(settings) as client:
        print_step(1, "인증")
        await client.authenticate(
            settings.OS_USERNAME,
            settings.OS_PASSWORD,
            settings.OS_USER_DOMAIN_NAME,
            settings.OS_PROJECT_NAME,
        )
        print_success(f"토큰 발급 (만료: {client.session.token.expires_at.isoformat()})")

        print_step(2, "compute 리전 확인")
        regions = client.get_regions("compute")
        for region in regions:
            print_info(f"{region.region_id} ({region.region})")

        print_step(3, f"ensure_deployment ({region_id})")
        orchestrator = ResourceOrchestrator.from_settings(client, settings)
        server = await orchestrator.ensure_deployment(region_id, request)
        print_success(f"서버 생성 요청: {server.id}")

        print_step(4, "ACTIVE 대기 (Ctrl+C 로 중단)")
        while True:
            await asyncio.sleep(POLL_SECONDS)
            server = await client.get_server(region_id, server.id)
            print_info(f"status={server.status} progress={getattr(server, 'progress', '-')}")
            if server.status == "ACTIVE":
                break
            if server.status == "ERROR":
                print_error("서버가 ERROR 상태가 되었습니다")
                return 1

        addresses = await client.get_server_addresses(region_id, server.id)
        print_success(f"서버 준비 완료: {addresses}")
    return 0


def main() -> int:
    try:
        return asyncio.run(run())
    except OpenStackClientError as e:
        print_error(f"[{e.kind.value}] {e.message}")
        if e.raw_body:
            print_info(e.raw_body)
        return 1


if __name__ == "__main__":
    sys.exit(main())
