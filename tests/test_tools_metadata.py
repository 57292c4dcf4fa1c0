"""커스텀 객체/필드와 필드 권한 도구 테스트예요."""

from __future__ import annotations

import pytest

from sf_gateway.app.tools.metadata import (
    ManageFieldArgs,
    ManageFieldPermissionsArgs,
    ManageObjectArgs,
    handle_manage_field,
    handle_manage_field_permissions,
    handle_manage_object,
)
from libs.common.errors import NotFoundError, ValidationError
from tests.conftest import FakeSession

_ADMIN_PERMISSION_SET = {"records": [{"Id": "0PS1", "Profile": {"Name": "System Administrator"}}]}


def _field_args(**overrides: object) -> ManageFieldArgs:
    values: dict[str, object] = {"operation": "create", "object_name": "Account", "field_name": "Tier"}
    values.update(overrides)
    return ManageFieldArgs(**values)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_manage_object_create_posts_custom_object() -> None:
    session = FakeSession(responses=[{"id": "01I1", "success": True}])
    args = ManageObjectArgs(operation="create", object_name="Project", label="Project", sharing_model="Private")
    result = await handle_manage_object(session, args)

    request = session.requests[0]
    assert request["path"] == "sobjects/CustomObject"
    assert request["tooling"] is True
    assert request["json"]["FullName"] == "Project__c"
    metadata = request["json"]["Metadata"]
    assert metadata["label"] == "Project"
    assert metadata["pluralLabel"] == "Project"
    assert metadata["sharingModel"] == "Private"
    assert metadata["nameField"] == {"label": "Project Name", "type": "Text"}
    assert "Project__c" in result.content[0].text


@pytest.mark.asyncio
async def test_manage_object_update_merges_existing_metadata() -> None:
    session = FakeSession(
        tooling_queries=[{"records": [{"Id": "01I1", "Metadata": {"label": "Old", "deploymentStatus": "Deployed"}}]}]
    )
    args = ManageObjectArgs(operation="update", object_name="Project__c", description="프로젝트")
    await handle_manage_object(session, args)

    assert "DeveloperName = 'Project'" in session.tooling_soql[0]
    request = session.requests[0]
    assert (request["method"], request["path"]) == ("PATCH", "sobjects/CustomObject/01I1")
    assert request["json"]["Metadata"] == {"label": "Old", "deploymentStatus": "Deployed", "description": "프로젝트"}


@pytest.mark.asyncio
async def test_manage_object_update_missing_object() -> None:
    with pytest.raises(NotFoundError):
        await handle_manage_object(FakeSession(), ManageObjectArgs(operation="update", object_name="Ghost"))


@pytest.mark.asyncio
async def test_manage_field_create_grants_default_profile_access() -> None:
    session = FakeSession(
        queries=[_ADMIN_PERMISSION_SET, {"records": []}],
        responses=[{"id": "00N1", "success": True}, {"id": "01k1", "success": True}],
    )
    result = await handle_manage_field(session, _field_args(type="Text", label="Tier"))

    create, permission = session.requests
    assert create["json"]["FullName"] == "Account.Tier__c"
    assert create["json"]["Metadata"]["length"] == 255
    assert create["json"]["Metadata"]["label"] == "Tier"
    assert permission["path"] == "sobjects/FieldPermissions"
    assert permission["json"] == {
        "ParentId": "0PS1",
        "SobjectType": "Account",
        "Field": "Account.Tier__c",
        "PermissionsRead": True,
        "PermissionsEdit": True,
    }
    assert "System Administrator" in result.content[0].text


@pytest.mark.asyncio
async def test_manage_field_create_skips_permissions_for_required_fields() -> None:
    session = FakeSession(responses=[{"id": "00N1", "success": True}])
    await handle_manage_field(session, _field_args(type="Text", required=True))
    assert len(session.requests) == 1
    assert session.soql == []


@pytest.mark.asyncio
async def test_manage_field_create_picklist_values() -> None:
    session = FakeSession(queries=[{"records": []}], responses=[{"id": "00N1", "success": True}])
    args = _field_args(type="Picklist", picklist_values=[{"label": "Gold", "isDefault": True}, {"label": "Silver"}])
    await handle_manage_field(session, args)
    values = session.requests[0]["json"]["Metadata"]["valueSet"]["valueSetDefinition"]["value"]
    assert values == [
        {"fullName": "Gold", "label": "Gold", "default": True},
        {"fullName": "Silver", "label": "Silver", "default": False},
    ]


@pytest.mark.asyncio
async def test_manage_field_create_requires_type() -> None:
    with pytest.raises(ValidationError):
        await handle_manage_field(FakeSession(), _field_args())


@pytest.mark.asyncio
async def test_manage_field_update_on_custom_object_resolves_table_id() -> None:
    session = FakeSession(
        tooling_queries=[
            {"records": [{"Id": "01I1"}]},
            {"records": [{"Id": "00N1", "Metadata": {"label": "Tier", "type": "Text", "length": 80}}]},
        ]
    )
    args = _field_args(operation="update", object_name="Project__c", length=120)
    await handle_manage_field(session, args)

    assert "TableEnumOrId = '01I1'" in session.tooling_soql[1]
    assert "DeveloperName = 'Tier'" in session.tooling_soql[1]
    assert session.requests[0]["json"]["Metadata"] == {"label": "Tier", "type": "Text", "length": 120}


@pytest.mark.asyncio
async def test_field_permissions_grant_updates_existing_record() -> None:
    session = FakeSession(
        queries=[_ADMIN_PERMISSION_SET, {"records": [{"Id": "01k9", "PermissionsRead": True, "PermissionsEdit": True}]}]
    )
    args = ManageFieldPermissionsArgs(
        operation="grant",
        object_name="Account",
        field_name="Tier__c",
        editable=False,
    )
    result = await handle_manage_field_permissions(session, args)
    request = session.requests[0]
    assert (request["method"], request["path"]) == ("PATCH", "sobjects/FieldPermissions/01k9")
    assert request["json"] == {"PermissionsRead": True, "PermissionsEdit": False}
    assert "편집 차단" in result.content[0].text


@pytest.mark.asyncio
async def test_field_permissions_revoke_reports_unknown_profile() -> None:
    session = FakeSession(queries=[{"records": []}])
    args = ManageFieldPermissionsArgs(
        operation="revoke",
        object_name="Account",
        field_name="Tier__c",
        profile_names=["Ghost Profile"],
    )
    result = await handle_manage_field_permissions(session, args)
    assert "Ghost Profile: 프로필을 찾지 못했어요." in result.content[0].text
    assert session.requests == []


@pytest.mark.asyncio
async def test_field_permissions_view() -> None:
    session = FakeSession(
        queries=[
            {
                "records": [
                    {
                        "Id": "01k1",
                        "Parent": {"Label": "X", "Profile": {"Name": "Standard User"}},
                        "PermissionsRead": True,
                        "PermissionsEdit": False,
                    }
                ]
            }
        ]
    )
    args = ManageFieldPermissionsArgs(operation="view", object_name="Account", field_name="Tier__c")
    result = await handle_manage_field_permissions(session, args)
    assert "- Standard User: 읽기 허용, 편집 차단" in result.content[0].text
