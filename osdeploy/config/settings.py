# osdeploy/config/settings.py
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 일반
    LOG_LEVEL: str = "INFO"

    # OpenStack (identity)
    OS_AUTH_URL: str = "http://localhost:5000/v3"
    OS_USERNAME: str = ""
    OS_PASSWORD: str = ""  # 비어 있으면 authenticate 단계에서 바로 실패
    OS_USER_DOMAIN_NAME: str = "Default"
    OS_PROJECT_NAME: Optional[str] = None
    OS_REGION_NAME: str = "RegionOne"
    OS_INTERFACE: str = "public"

    # 주입되는 httpx 클라이언트에만 전달 (코어는 타임아웃을 걸지 않음)
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # 배포 규칙
    DEPLOY_SECURITY_GROUP: str = "osdeploy-web"
    DEPLOY_SERVER_NAME: str = "osdeploy-server"
    DEPLOY_ENV_FILE: str = "/etc/osdeploy/env"
    DEPLOY_BOOTSTRAP_TEMPLATE: Optional[str] = None  # 없으면 패키지 기본 템플릿


@lru_cache
def get_settings() -> Settings:
    return Settings()
