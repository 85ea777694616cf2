# osdeploy/core/openstack/catalog.py

"""
서비스 카탈로그 조회.

(service type, region, interface) → base URL.
여러 개가 맞으면 항상 "처음 것"을 쓴다. 같은 type 의 서비스가 여러 개 있어도 병합하지 않는다.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from osdeploy.core.errors import CatalogMissingError, EndpointNotFoundError, ServiceNotFoundError
from osdeploy.models.catalog import Endpoint, Region, Service

_MISSING_CATALOG = "Catalog is missing or empty. You should call the `authenticate` method before"


def find_service(catalog: Optional[Sequence[Service]], service_type: str) -> Service:
    if not catalog:
        raise CatalogMissingError(_MISSING_CATALOG)
    service = next((s for s in catalog if s.type == service_type), None)
    if service is None:
        raise ServiceNotFoundError(
            f"The service '{service_type}' doesn't exist",
            service_type=service_type,
        )
    return service


def find_endpoint(
    catalog: Optional[Sequence[Service]],
    service_type: str,
    region_id: str,
    interface: str = "public",
) -> Endpoint:
    service = find_service(catalog, service_type)
    endpoint = next(
        (e for e in service.endpoints if e.interface == interface and e.region_id == region_id),
        None,
    )
    if endpoint is None:
        raise EndpointNotFoundError(
            f"There is no {region_id} / {interface} endpoint in service {service_type}",
            service_type=service_type,
            region_id=region_id,
            interface=interface,
        )
    return endpoint


def list_regions(catalog: Optional[Sequence[Service]], service_type: str) -> List[Region]:
    """서비스의 리전 목록. region_id 기준 중복 제거, 처음 나온 순서 유지."""
    service = find_service(catalog, service_type)
    seen = set()
    regions: List[Region] = []
    for endpoint in service.endpoints:
        if endpoint.region_id in seen:
            continue
        seen.add(endpoint.region_id)
        regions.append(Region(region_id=endpoint.region_id, region=endpoint.region))
    return regions


class EndpointResolver:
    """현재 세션의 카탈로그를 읽기만 하는 resolver."""

    def __init__(self, catalog_source: Callable[[], Optional[Sequence[Service]]]) -> None:
        self._catalog_source = catalog_source

    def resolve(self, service_type: str, region_id: str, interface: str = "public") -> str:
        return find_endpoint(self._catalog_source(), service_type, region_id, interface).url

    def get_regions(self, service_type: str) -> List[Region]:
        return list_regions(self._catalog_source(), service_type)
