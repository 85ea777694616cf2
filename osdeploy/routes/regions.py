# osdeploy/routes/regions.py
from typing import List

from fastapi import APIRouter, Depends

from osdeploy.core.openstack.client import OpenStackClient
from osdeploy.models.catalog import Region
from osdeploy.routes.deps import get_client

router = APIRouter()


@router.get("/{service_type}", response_model=List[Region])
async def regions(
    service_type: str,
    client: OpenStackClient = Depends(get_client),
) -> List[Region]:
    return client.get_regions(service_type)
