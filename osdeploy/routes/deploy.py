# osdeploy/routes/deploy.py
from fastapi import APIRouter, Depends, HTTPException
import logging
from datetime import datetime, timezone

from osdeploy.config.settings import get_settings
from osdeploy.core.errors import OpenStackClientError
from osdeploy.core.openstack.client import OpenStackClient
from osdeploy.core.openstack.deployer import ResourceOrchestrator
from osdeploy.models.deploy import DeployRequest, DeployResponse
from osdeploy.routes.deps import get_client

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=DeployResponse)
async def deploy(
    req: DeployRequest,
    client: OpenStackClient = Depends(get_client),
) -> DeployResponse:
    """
    이미지 / flavor / SSH 키 / security group 을 확인(없으면 생성)하고 서버를 만든다.

    같은 요청을 반복해도 keypair 와 security group 은 하나로 수렴한다.
    서버 생성 요청까지만 하고 ACTIVE 가 될 때까지 기다리지는 않는다.
    """
    settings = get_settings()
    region_id = req.region_id or settings.OS_REGION_NAME

    try:
        orchestrator = ResourceOrchestrator.from_settings(client, settings)
        server = await orchestrator.ensure_deployment(region_id, req)
    except OpenStackClientError:
        # 종류별 HTTP 상태 매핑은 main 의 exception handler 에서
        raise
    except Exception as e:
        logger.exception("Deployment failed")
        raise HTTPException(status_code=500, detail=f"Deployment failed: {str(e)}")

    return DeployResponse(
        accepted=True,
        region_id=region_id,
        instance_id=server.id,
        instance=server,
        message=f"Server creation requested: {server.id}",
        deployed_at=datetime.now(timezone.utc),
    )
