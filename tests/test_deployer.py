# tests/test_deployer.py

"""
ResourceOrchestrator.ensure_deployment 테스트.

FakeCloud 위에 이미지 / flavor / keypair / security group / 서버 API 를 올려두고
어떤 호출이 나갔는지로 find-or-create 동작을 확인한다.
"""

import base64

import httpx
import pydantic
import pytest

from conftest import COMPUTE_URL, IMAGE_URL, NETWORK_URL, REGION, FakeCloud
from osdeploy.core.errors import ResourceNotFoundError, TransportError, ValidationError
from osdeploy.core.openstack.deployer import INGRESS_RULES, ResourceOrchestrator, build_server_options
from osdeploy.models.deploy import DeploymentRequest, SshKeySpec
from osdeploy.models.resources import Flavor

TEMPLATE = "#!/bin/bash\n#OSDEPLOY_CONFIG#\necho ready\n"
GROUP = "osdeploy-web"

KEYPAIRS_URL = f"{COMPUTE_URL}/os-keypairs"
GROUPS_URL = f"{NETWORK_URL}/v2.0/security-groups"
RULES_URL = f"{NETWORK_URL}/v2.0/security-group-rules"
SERVERS_URL = f"{COMPUTE_URL}/servers"


def _request(**overrides) -> DeploymentRequest:
    values = {
        "image": "debian-12",
        "flavor": "f1",
        "ssh": SshKeySpec(name="k1", public_key="ssh-rsa AAA"),
        "server_name": "web-1",
        "config": {"FOO": "bar"},
    }
    values.update(overrides)
    return DeploymentRequest(**values)


def _serve(
    cloud: FakeCloud,
    *,
    disk: int = 20,
    images=None,
    keypairs=None,
    groups=None,
) -> None:
    cloud.on("GET", f"{COMPUTE_URL}/flavors/f1", {"flavor": {"id": "f1", "name": "m1.small", "disk": disk}})
    cloud.on(
        "GET",
        f"{IMAGE_URL}/v2/images",
        {"images": [{"id": "img-1", "name": "debian-12"}] if images is None else images},
    )
    cloud.on("GET", KEYPAIRS_URL, {"keypairs": [{"keypair": k} for k in keypairs or []]})
    cloud.on("POST", KEYPAIRS_URL, {"keypair": {"name": "k1", "public_key": "ssh-rsa AAA"}})
    cloud.on("GET", GROUPS_URL, {"security_groups": groups or []})
    cloud.on("POST", GROUPS_URL, {"security_group": {"id": "sg-1", "name": GROUP}}, status_code=201)

    def echo_rule(request: httpx.Request) -> httpx.Response:
        rule = FakeCloud.body(request)["security_group_rule"]
        return httpx.Response(201, json={"security_group_rule": {"id": "r", **rule}})

    cloud.on("POST", RULES_URL, responder=echo_rule)
    cloud.on("POST", SERVERS_URL, {"server": {"id": "srv-1", "adminPass": "pw"}}, status_code=202)


@pytest.fixture
def orchestrator(authed_client) -> ResourceOrchestrator:
    return ResourceOrchestrator(
        authed_client,
        security_group_name=GROUP,
        env_file="/etc/app.env",
        template=TEMPLATE,
    )


@pytest.mark.asyncio
async def test_full_deployment_creates_missing_resources(cloud, orchestrator):
    _serve(cloud)

    server = await orchestrator.ensure_deployment(REGION, _request())

    assert server.id == "srv-1"
    assert server.model_extra["adminPass"] == "pw"

    assert cloud.body(cloud.calls("POST", KEYPAIRS_URL)[0]) == {
        "keypair": {"name": "k1", "public_key": "ssh-rsa AAA"}
    }
    assert cloud.body(cloud.calls("POST", GROUPS_URL)[0]) == {"security_group": {"name": GROUP}}

    rules = [cloud.body(r)["security_group_rule"] for r in cloud.calls("POST", RULES_URL)]
    assert [(r["protocol"], r["port_range_min"], r["port_range_max"]) for r in rules] == [
        ("tcp", 80, 81),
        ("tcp", 443, 443),
        ("tcp", 22, 22),
    ]
    assert all(r["security_group_id"] == "sg-1" and r["direction"] == "ingress" for r in rules)

    body = cloud.body(cloud.calls("POST", SERVERS_URL)[0])["server"]
    assert body["name"] == "web-1"
    assert body["imageRef"] == "img-1"
    assert body["flavorRef"] == "f1"
    assert body["key_name"] == "k1"
    assert body["security_groups"] == [{"name": GROUP}]
    assert "block_device_mapping_v2" not in body
    assert base64.b64decode(body["user_data"]).decode() == (
        '#!/bin/bash\necho "export FOO=bar" >> /etc/app.env\necho ready\n'
    )


@pytest.mark.asyncio
async def test_image_is_searched_by_name(cloud, orchestrator):
    _serve(cloud)

    await orchestrator.ensure_deployment(REGION, _request())

    assert str(cloud.calls("GET", f"{IMAGE_URL}/v2/images")[0].url) == f"{IMAGE_URL}/v2/images?name=debian-12"


@pytest.mark.asyncio
async def test_existing_keypair_is_reused(cloud, orchestrator):
    _serve(cloud, keypairs=[{"name": "other"}, {"name": "k1", "fingerprint": "ff"}])

    await orchestrator.ensure_deployment(REGION, _request())

    assert cloud.calls("POST", KEYPAIRS_URL) == []
    assert cloud.body(cloud.calls("POST", SERVERS_URL)[0])["server"]["key_name"] == "k1"


@pytest.mark.asyncio
async def test_keypair_generated_server_side_without_public_key(cloud, orchestrator):
    _serve(cloud)

    await orchestrator.ensure_deployment(REGION, _request(ssh=SshKeySpec(name="k1")))

    assert cloud.body(cloud.calls("POST", KEYPAIRS_URL)[0]) == {"keypair": {"name": "k1"}}


@pytest.mark.asyncio
async def test_existing_security_group_is_reused_without_rule_checks(cloud, orchestrator):
    # 규칙이 하나도 없는 기존 그룹이어도 다시 만들거나 보완하지 않는다
    _serve(cloud, groups=[{"id": "sg-0", "name": GROUP, "security_group_rules": []}])

    await orchestrator.ensure_deployment(REGION, _request())

    assert cloud.calls("POST", GROUPS_URL) == []
    assert cloud.calls("POST", RULES_URL) == []
    assert str(cloud.calls("GET", GROUPS_URL)[0].url) == f"{GROUPS_URL}?name={GROUP}"


@pytest.mark.asyncio
async def test_diskless_flavor_without_disk_fails_before_image_lookup(cloud, orchestrator):
    _serve(cloud, disk=0)

    with pytest.raises(ValidationError, match="disk size required for disk-less flavor"):
        await orchestrator.ensure_deployment(REGION, _request(disk=None))

    assert cloud.calls("GET", f"{IMAGE_URL}/v2/images") == []
    assert cloud.calls("POST") == []


@pytest.mark.parametrize("disk", [0, -5])
def test_non_positive_disk_is_rejected(disk):
    with pytest.raises(pydantic.ValidationError):
        _request(disk=disk)


@pytest.mark.asyncio
async def test_diskless_flavor_boots_from_volume(cloud, orchestrator):
    _serve(cloud, disk=0)

    await orchestrator.ensure_deployment(REGION, _request(disk=15))

    body = cloud.body(cloud.calls("POST", SERVERS_URL)[0])["server"]
    assert body["block_device_mapping_v2"] == [
        {
            "boot_index": 0,
            "uuid": "img-1",
            "source_type": "image",
            "destination_type": "volume",
            "volume_size": 15,
            "delete_on_termination": True,
        }
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"image": ""}, "image"),
        ({"flavor": "  "}, "flavor"),
        ({"ssh": SshKeySpec(name="")}, "ssh.name"),
    ],
)
async def test_missing_required_fields_fail_before_network(cloud, orchestrator, overrides, field):
    with pytest.raises(ValidationError) as exc_info:
        await orchestrator.ensure_deployment(REGION, _request(**overrides))

    assert exc_info.value.details["field"] == field
    assert cloud.requests == []


@pytest.mark.asyncio
async def test_unknown_image_fails_with_resource_not_found(cloud, orchestrator):
    _serve(cloud, images=[])

    with pytest.raises(ResourceNotFoundError) as exc_info:
        await orchestrator.ensure_deployment(REGION, _request())

    assert exc_info.value.details["resource"] == "image"
    assert "resolve image" in str(exc_info.value)
    assert cloud.calls("POST") == []


@pytest.mark.asyncio
async def test_image_with_a_different_name_is_not_used(cloud, orchestrator):
    # name 필터가 무시되어 다른 이미지만 돌아오는 경우
    _serve(cloud, images=[{"id": "img-x", "name": "ubuntu"}])

    with pytest.raises(ResourceNotFoundError) as exc_info:
        await orchestrator.ensure_deployment(REGION, _request())

    assert exc_info.value.details["resource"] == "image"
    assert exc_info.value.details["name"] == "debian-12"
    assert cloud.calls("POST", SERVERS_URL) == []


@pytest.mark.asyncio
async def test_first_matching_image_wins(cloud, orchestrator):
    _serve(cloud, images=[{"id": "img-a", "name": "debian-12"}, {"id": "img-b", "name": "debian-12"}])

    await orchestrator.ensure_deployment(REGION, _request())

    assert cloud.body(cloud.calls("POST", SERVERS_URL)[0])["server"]["imageRef"] == "img-a"


@pytest.mark.asyncio
async def test_server_overrides_are_deep_merged(cloud, orchestrator):
    _serve(cloud)
    overrides = {"metadata": {"role": "web"}, "networks": [{"uuid": "net-1"}], "name": "from-options"}

    await orchestrator.ensure_deployment(REGION, _request(server_options=overrides))

    body = cloud.body(cloud.calls("POST", SERVERS_URL)[0])["server"]
    assert body["metadata"] == {"role": "web"}
    assert body["networks"] == [{"uuid": "net-1"}]
    # override 가 기본 스펙의 스칼라 값을 이긴다
    assert body["name"] == "from-options"


@pytest.mark.asyncio
async def test_failure_aborts_without_rollback(cloud, orchestrator):
    _serve(cloud)
    cloud.on("POST", SERVERS_URL, {"forbidden": {"message": "Quota exceeded"}}, status_code=403)

    with pytest.raises(TransportError) as exc_info:
        await orchestrator.ensure_deployment(REGION, _request())

    assert exc_info.value.status_code == 403
    assert "create server" in str(exc_info.value)
    # 앞 단계에서 만든 리소스는 지우지 않는다
    assert cloud.calls("DELETE") == []
    assert len(cloud.calls("POST", KEYPAIRS_URL)) == 1


@pytest.mark.asyncio
async def test_repeated_deployment_converges_on_keypair_and_group(cloud, orchestrator):
    _serve(cloud)
    await orchestrator.ensure_deployment(REGION, _request())

    _serve(
        cloud,
        keypairs=[{"name": "k1"}],
        groups=[{"id": "sg-1", "name": GROUP}],
    )
    await orchestrator.ensure_deployment(REGION, _request())

    assert len(cloud.calls("POST", KEYPAIRS_URL)) == 1
    assert len(cloud.calls("POST", GROUPS_URL)) == 1
    assert len(cloud.calls("POST", RULES_URL)) == len(INGRESS_RULES)
    assert len(cloud.calls("POST", SERVERS_URL)) == 2


def test_build_server_options_attachments_win_over_overrides():
    options = build_server_options(
        {"key_name": "from-request", "metadata": {"a": "b"}},
        key_name="k1",
        user_data="ZWNobw==",
        security_group="web",
        image_id="img-1",
        flavor=Flavor(id="f1", disk=10),
        disk=None,
    )

    assert options == {
        "key_name": "k1",
        "metadata": {"a": "b"},
        "user_data": "ZWNobw==",
        "security_groups": [{"name": "web"}],
    }
