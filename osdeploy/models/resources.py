# compute / image / network API 응답 스키마
# 프로바이더가 내려주는 나머지 필드는 extra="allow" 로 그대로 보존한다.

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Resource(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None


class Image(Resource):
    status: Optional[str] = None
    min_disk: Optional[int] = None


class Flavor(Resource):
    vcpus: Optional[int] = None
    ram: Optional[int] = None
    disk: Optional[int] = None

    @property
    def has_local_disk(self) -> bool:
        return bool(self.disk)


class Keypair(Resource):
    public_key: Optional[str] = None
    fingerprint: Optional[str] = None
    private_key: Optional[str] = None  # 서버에서 생성한 경우에만 한 번 내려온다


class SecurityGroupRule(Resource):
    security_group_id: Optional[str] = None
    direction: Optional[str] = None
    ethertype: Optional[str] = None
    protocol: Optional[str] = None
    port_range_min: Optional[int] = None
    port_range_max: Optional[int] = None


class SecurityGroup(Resource):
    description: Optional[str] = None
    security_group_rules: List[SecurityGroupRule] = Field(default_factory=list)


class Network(Resource):
    status: Optional[str] = None
    subnets: List[str] = Field(default_factory=list)


class Subnet(Resource):
    network_id: Optional[str] = None
    ip_version: Optional[int] = None
    cidr: Optional[str] = None


class Server(Resource):
    """생성/조회된 서버 핸들 (ProvisionedServer)."""

    status: Optional[str] = None
    addresses: Dict[str, Any] = Field(default_factory=dict)


# 오케스트레이션 결과 타입 별칭
ProvisionedServer = Server
