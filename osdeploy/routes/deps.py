# osdeploy/routes/deps.py
from typing import AsyncIterator

from osdeploy.config.settings import get_settings
from osdeploy.core.openstack.client import OpenStackClient


async def get_client() -> AsyncIterator[OpenStackClient]:
    """
    요청마다 settings 의 OS_* 계정으로 인증된 클라이언트를 만들고,
    응답이 끝나면 httpx 클라이언트를 닫는다.
    """
    settings = get_settings()
    client = OpenStackClient.from_settings(settings)
    try:
        await client.authenticate(
            settings.OS_USERNAME,
            settings.OS_PASSWORD,
            settings.OS_USER_DOMAIN_NAME,
            settings.OS_PROJECT_NAME,
        )
        yield client
    finally:
        await client.aclose()
