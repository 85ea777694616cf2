# identity 응답에서 만들어지는 세션/카탈로그 스키마

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

InterfaceKind = Literal["public", "internal", "admin"]


class Endpoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    interface: InterfaceKind
    region_id: str
    region: Optional[str] = None
    url: str
    id: Optional[str] = None


class Service(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    name: Optional[str] = None
    id: Optional[str] = None
    endpoints: List[Endpoint] = Field(default_factory=list)


class Region(BaseModel):
    """카탈로그에서 파생된 리전 뷰. region_id 기준으로 중복 제거된다."""

    region_id: str
    region: Optional[str] = None


class Token(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now


class Session(BaseModel):
    """
    클라이언트 한 개가 소유하는 인증 상태.

    authenticate 가 성공할 때마다 통째로 교체되고,
    시도 시작 시점에는 빈 Session() 으로 초기화된다.
    """

    model_config = ConfigDict(frozen=True)

    token: Optional[Token] = None
    project: Optional[str] = None
    catalog: Optional[List[Service]] = None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None and bool(self.catalog)
