from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime

from osdeploy.models.resources import Server


class SshKeySpec(BaseModel):
    name: str = ""
    public_key: Optional[str] = None  # 없으면 서버에서 키를 생성한다


class DeploymentRequest(BaseModel):
    """ensure_deployment 입력. 저장되지 않는 일회성 값."""

    image: str = ""  # 이미지 이름
    flavor: str = ""  # flavor ID
    ssh: SshKeySpec = Field(default_factory=SshKeySpec)
    disk: Optional[int] = Field(default=None, gt=0)  # GiB, disk-less flavor 인 경우 필수
    server_name: Optional[str] = None
    config: Dict[str, str] = Field(default_factory=dict)  # bootstrap 스크립트에 export 될 값
    server_options: Dict[str, Any] = Field(default_factory=dict)  # 서버 스펙 override


class DeployRequest(DeploymentRequest):
    region_id: Optional[str] = None  # 없으면 OS_REGION_NAME


class DeployResponse(BaseModel):
    accepted: bool
    region_id: str
    instance_id: Optional[str] = None
    instance: Optional[Server] = None  # 생성된 서버 핸들
    message: str
    deployed_at: Optional[datetime] = None
