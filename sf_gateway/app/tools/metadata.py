"""커스텀 객체/필드 생성·수정과 필드 권한 관리 도구예요.

메타데이터 변경은 Tooling API의 `CustomObject`, `CustomField` sObject로 하고,
필드 권한은 일반 REST API의 `FieldPermissions` 레코드로 다뤄요.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sf_gateway.app.salesforce.soql import quote_literal
from sf_gateway.app.tools.base import ArgumentField, ArgumentKind, OperationDescriptor, ToolResult
from libs.common.errors import NotFoundError, ValidationError

DEFAULT_PROFILES = ("System Administrator",)


@dataclass(slots=True, frozen=True)
class ManageObjectArgs:
    operation: str
    object_name: str
    label: str | None = None
    plural_label: str | None = None
    description: str | None = None
    name_field_label: str | None = None
    name_field_type: str | None = None
    name_field_format: str | None = None
    sharing_model: str | None = None


@dataclass(slots=True, frozen=True)
class ManageFieldArgs:
    operation: str
    object_name: str
    field_name: str
    label: str | None = None
    type: str | None = None
    required: bool | None = None
    unique: bool | None = None
    external_id: bool | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    reference_to: str | None = None
    relationship_label: str | None = None
    relationship_name: str | None = None
    delete_constraint: str | None = None
    picklist_values: list[dict[str, Any]] | None = None
    description: str | None = None
    grant_access_to: list[str] | None = None


@dataclass(slots=True, frozen=True)
class ManageFieldPermissionsArgs:
    operation: str
    object_name: str
    field_name: str
    profile_names: list[str] | None = None
    readable: bool | None = None
    editable: bool | None = None


def custom_name(name: str) -> str:
    return name if name.endswith("__c") else f"{name}__c"


def developer_name(name: str) -> str:
    return name[: -len("__c")] if name.endswith("__c") else name


def created_id(response: Any) -> str:
    if isinstance(response, dict) and response.get("id"):
        return str(response["id"])
    raise ValidationError("생성 응답에 Id가 없어요.")


async def _single_tooling_record(session: Any, soql: str, missing_message: str) -> dict[str, Any]:
    result = await session.tooling_query(soql)
    records = result.get("records") or []
    if not records:
        raise NotFoundError(missing_message)
    return records[0]


# ── 커스텀 객체 ──────────────────────────────────────────────────────────────


def _object_metadata(args: ManageObjectArgs) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    if args.label is not None:
        metadata["label"] = args.label
    if args.plural_label is not None:
        metadata["pluralLabel"] = args.plural_label
    if args.description is not None:
        metadata["description"] = args.description
    if args.sharing_model is not None:
        metadata["sharingModel"] = args.sharing_model
    if args.name_field_label is not None or args.name_field_type is not None:
        name_field: dict[str, Any] = {
            "label": args.name_field_label or f"{args.label or developer_name(args.object_name)} Name",
            "type": args.name_field_type or "Text",
        }
        if name_field["type"] == "AutoNumber":
            name_field["displayFormat"] = args.name_field_format or "A-{0000}"
        metadata["nameField"] = name_field
    return metadata


async def handle_manage_object(session: Any, args: ManageObjectArgs) -> ToolResult:
    full_name = custom_name(args.object_name)

    if args.operation == "create":
        label = args.label or developer_name(args.object_name).replace("_", " ")
        metadata = {
            "label": label,
            "pluralLabel": args.plural_label or label,
            "nameField": {"label": f"{label} Name", "type": "Text"},
            "deploymentStatus": "Deployed",
            "sharingModel": "ReadWrite",
            **_object_metadata(args),
        }
        response = await session.request(
            "POST",
            "sobjects/CustomObject",
            json={"FullName": full_name, "Metadata": metadata},
            tooling=True,
        )
        return ToolResult.text(f"커스텀 객체 {full_name}을 만들었어요. (Id: {created_id(response)})")

    if args.operation == "update":
        record = await _single_tooling_record(
            session,
            f"SELECT Id, Metadata FROM CustomObject WHERE DeveloperName = {quote_literal(developer_name(full_name))}",
            f"커스텀 객체를 찾지 못했어요: {full_name}",
        )
        metadata = {**(record.get("Metadata") or {}), **_object_metadata(args)}
        await session.request(
            "PATCH",
            f"sobjects/CustomObject/{record['Id']}",
            json={"Metadata": metadata},
            tooling=True,
        )
        return ToolResult.text(f"커스텀 객체 {full_name}을 수정했어요.")

    raise ValidationError(f"지원하지 않는 객체 작업이에요: {args.operation}")


# ── 커스텀 필드 ──────────────────────────────────────────────────────────────


def _field_metadata(args: ManageFieldArgs) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    if args.label is not None:
        metadata["label"] = args.label
    if args.type is not None:
        metadata["type"] = args.type
    if args.description is not None:
        metadata["description"] = args.description
    if args.required is not None:
        metadata["required"] = args.required
    if args.unique is not None:
        metadata["unique"] = args.unique
    if args.external_id is not None:
        metadata["externalId"] = args.external_id
    if args.length is not None:
        metadata["length"] = args.length
    if args.precision is not None:
        metadata["precision"] = args.precision
    if args.scale is not None:
        metadata["scale"] = args.scale
    if args.reference_to is not None:
        metadata["referenceTo"] = args.reference_to
    if args.relationship_label is not None:
        metadata["relationshipLabel"] = args.relationship_label
    if args.relationship_name is not None:
        metadata["relationshipName"] = args.relationship_name
    if args.delete_constraint is not None:
        metadata["deleteConstraint"] = args.delete_constraint
    if args.picklist_values is not None:
        metadata["valueSet"] = {
            "valueSetDefinition": {
                "sorted": False,
                "value": [
                    {
                        "fullName": item.get("label"),
                        "label": item.get("label"),
                        "default": bool(item.get("isDefault")),
                    }
                    for item in args.picklist_values
                ],
            }
        }
    return metadata


def _type_defaults(field_type: str) -> dict[str, Any]:
    if field_type == "Text":
        return {"length": 255}
    if field_type in {"Number", "Currency", "Percent"}:
        return {"precision": 18, "scale": 0}
    if field_type in {"LongTextArea", "Html"}:
        return {"length": 32768, "visibleLines": 3}
    if field_type == "MultiselectPicklist":
        return {"visibleLines": 4}
    if field_type == "Checkbox":
        return {"defaultValue": "false"}
    return {}


async def _table_enum_or_id(session: Any, object_name: str) -> str:
    if not object_name.endswith("__c"):
        return object_name
    record = await _single_tooling_record(
        session,
        f"SELECT Id FROM CustomObject WHERE DeveloperName = {quote_literal(developer_name(object_name))}",
        f"커스텀 객체를 찾지 못했어요: {object_name}",
    )
    return str(record["Id"])


async def handle_manage_field(session: Any, args: ManageFieldArgs) -> ToolResult:
    field_name = custom_name(args.field_name)
    full_name = f"{args.object_name}.{field_name}"

    if args.operation == "create":
        if not args.type:
            raise ValidationError("필드를 만들려면 type이 필요해요.")
        metadata = {"label": args.field_name.replace("_", " "), **_type_defaults(args.type), **_field_metadata(args)}
        if args.type == "Checkbox":
            metadata.pop("required", None)
        response = await session.request(
            "POST",
            "sobjects/CustomField",
            json={"FullName": full_name, "Metadata": metadata},
            tooling=True,
        )
        lines = [f"필드 {full_name}을 만들었어요. (Id: {created_id(response)})"]

        # 주종 관계와 필수 필드는 권한을 따로 줄 수 없어요
        if args.type != "MasterDetail" and not args.required:
            profiles = args.grant_access_to or list(DEFAULT_PROFILES)
            lines.extend(
                await grant_field_access(
                    session,
                    object_name=args.object_name,
                    field_ref=full_name,
                    profile_names=profiles,
                    readable=True,
                    editable=True,
                )
            )
        return ToolResult.text("\n".join(lines))

    if args.operation == "update":
        table = await _table_enum_or_id(session, args.object_name)
        record = await _single_tooling_record(
            session,
            "SELECT Id, Metadata FROM CustomField "
            f"WHERE TableEnumOrId = {quote_literal(table)} "
            f"AND DeveloperName = {quote_literal(developer_name(field_name))}",
            f"필드를 찾지 못했어요: {full_name}",
        )
        metadata = {**(record.get("Metadata") or {}), **_field_metadata(args)}
        await session.request(
            "PATCH",
            f"sobjects/CustomField/{record['Id']}",
            json={"Metadata": metadata},
            tooling=True,
        )
        return ToolResult.text(f"필드 {full_name}을 수정했어요.")

    raise ValidationError(f"지원하지 않는 필드 작업이에요: {args.operation}")


# ── 필드 권한 ────────────────────────────────────────────────────────────────


async def _profile_permission_sets(session: Any, profile_names: list[str]) -> dict[str, str]:
    names = ", ".join(quote_literal(name) for name in profile_names)
    result = await session.query(
        f"SELECT Id, Profile.Name FROM PermissionSet WHERE IsOwnedByProfile = true AND Profile.Name IN ({names})"
    )
    mapping: dict[str, str] = {}
    for record in result.get("records") or []:
        profile = record.get("Profile") or {}
        if profile.get("Name"):
            mapping[str(profile["Name"])] = str(record["Id"])
    return mapping


async def _existing_permission(session: Any, parent_id: str, field_ref: str) -> dict[str, Any] | None:
    result = await session.query(
        "SELECT Id, PermissionsRead, PermissionsEdit FROM FieldPermissions "
        f"WHERE ParentId = {quote_literal(parent_id)} AND Field = {quote_literal(field_ref)}"
    )
    records = result.get("records") or []
    return records[0] if records else None


async def grant_field_access(
    session: Any,
    *,
    object_name: str,
    field_ref: str,
    profile_names: list[str],
    readable: bool,
    editable: bool,
) -> list[str]:
    """프로필별로 필드 권한을 만들거나 갱신하고 결과 줄 목록을 반환해요."""
    readable = readable or editable
    permission_sets = await _profile_permission_sets(session, profile_names)
    lines: list[str] = []
    for profile_name in profile_names:
        parent_id = permission_sets.get(profile_name)
        if parent_id is None:
            lines.append(f"- {profile_name}: 프로필을 찾지 못했어요.")
            continue
        values = {"PermissionsRead": readable, "PermissionsEdit": editable}
        existing = await _existing_permission(session, parent_id, field_ref)
        if existing is None:
            await session.request(
                "POST",
                "sobjects/FieldPermissions",
                json={"ParentId": parent_id, "SobjectType": object_name, "Field": field_ref, **values},
            )
        else:
            await session.request("PATCH", f"sobjects/FieldPermissions/{existing['Id']}", json=values)
        lines.append(f"- {profile_name}: 읽기 {'허용' if readable else '차단'}, 편집 {'허용' if editable else '차단'}")
    return lines


async def _revoke_field_access(session: Any, field_ref: str, profile_names: list[str]) -> list[str]:
    permission_sets = await _profile_permission_sets(session, profile_names)
    lines: list[str] = []
    for profile_name in profile_names:
        parent_id = permission_sets.get(profile_name)
        if parent_id is None:
            lines.append(f"- {profile_name}: 프로필을 찾지 못했어요.")
            continue
        existing = await _existing_permission(session, parent_id, field_ref)
        if existing is None:
            lines.append(f"- {profile_name}: 회수할 권한이 없어요.")
            continue
        await session.request("DELETE", f"sobjects/FieldPermissions/{existing['Id']}")
        lines.append(f"- {profile_name}: 권한을 회수했어요.")
    return lines


async def handle_manage_field_permissions(session: Any, args: ManageFieldPermissionsArgs) -> ToolResult:
    field_ref = f"{args.object_name}.{args.field_name}"
    profile_names = args.profile_names or list(DEFAULT_PROFILES)

    if args.operation == "view":
        result = await session.query(
            "SELECT Id, Parent.Label, Parent.Profile.Name, PermissionsRead, PermissionsEdit "
            f"FROM FieldPermissions WHERE SobjectType = {quote_literal(args.object_name)} "
            f"AND Field = {quote_literal(field_ref)}"
        )
        records = result.get("records") or []
        if not records:
            return ToolResult.text(f"{field_ref} 필드에 부여된 권한이 없어요.")
        lines = [f"{field_ref} 필드 권한 {len(records)}건이에요:"]
        for record in records:
            parent = record.get("Parent") or {}
            owner = (parent.get("Profile") or {}).get("Name") or parent.get("Label")
            lines.append(
                f"- {owner}: 읽기 {'허용' if record.get('PermissionsRead') else '차단'}, "
                f"편집 {'허용' if record.get('PermissionsEdit') else '차단'}"
            )
        return ToolResult.text("\n".join(lines))

    if args.operation == "grant":
        lines = await grant_field_access(
            session,
            object_name=args.object_name,
            field_ref=field_ref,
            profile_names=profile_names,
            readable=True if args.readable is None else args.readable,
            editable=True if args.editable is None else args.editable,
        )
        return ToolResult.text("\n".join([f"{field_ref} 필드 권한을 부여했어요:", *lines]))

    if args.operation == "revoke":
        lines = await _revoke_field_access(session, field_ref, profile_names)
        return ToolResult.text("\n".join([f"{field_ref} 필드 권한 회수 결과예요:", *lines]))

    raise ValidationError(f"지원하지 않는 권한 작업이에요: {args.operation}")


_OBJECT_OR_FIELD_OPERATIONS = ("create", "update")

MANAGE_OBJECT = OperationDescriptor(
    name="salesforce_manage_object",
    description="커스텀 객체를 만들거나 라벨, 설명, 공유 모델, 이름 필드 설정을 수정해요.",
    fields=(
        ArgumentField(
            "operation",
            ArgumentKind.STRING,
            "수행할 작업이에요.",
            required=True,
            enum=_OBJECT_OR_FIELD_OPERATIONS,
        ),
        ArgumentField("objectName", ArgumentKind.STRING, "객체 API 이름이에요. __c가 없으면 붙여요.", required=True),
        ArgumentField("label", ArgumentKind.STRING, "객체 라벨이에요."),
        ArgumentField("pluralLabel", ArgumentKind.STRING, "복수형 라벨이에요."),
        ArgumentField("description", ArgumentKind.STRING, "객체 설명이에요."),
        ArgumentField("nameFieldLabel", ArgumentKind.STRING, "이름 필드 라벨이에요."),
        ArgumentField(
            "nameFieldType",
            ArgumentKind.STRING,
            "이름 필드 타입이에요.",
            enum=("Text", "AutoNumber"),
        ),
        ArgumentField("nameFieldFormat", ArgumentKind.STRING, "AutoNumber 표시 형식이에요. 예: 'A-{0000}'"),
        ArgumentField(
            "sharingModel",
            ArgumentKind.STRING,
            "조직 기본 공유 설정이에요.",
            enum=("ReadWrite", "Read", "Private", "ControlledByParent"),
        ),
    ),
    arguments_type=ManageObjectArgs,
    handler=handle_manage_object,
)

MANAGE_FIELD = OperationDescriptor(
    name="salesforce_manage_field",
    description=(
        "객체에 커스텀 필드를 만들거나 속성을 수정해요. 새 필드는 기본으로 "
        "System Administrator 프로필에 읽기/편집 권한을 줘요. grantAccessTo로 프로필을 바꿀 수 있어요."
    ),
    fields=(
        ArgumentField(
            "operation",
            ArgumentKind.STRING,
            "수행할 작업이에요.",
            required=True,
            enum=_OBJECT_OR_FIELD_OPERATIONS,
        ),
        ArgumentField("objectName", ArgumentKind.STRING, "필드를 추가할 객체 API 이름이에요.", required=True),
        ArgumentField("fieldName", ArgumentKind.STRING, "필드 API 이름이에요. __c가 없으면 붙여요.", required=True),
        ArgumentField("label", ArgumentKind.STRING, "필드 라벨이에요."),
        ArgumentField(
            "type",
            ArgumentKind.STRING,
            "필드 타입이에요. 만들 때는 필요해요.",
            enum=(
                "Checkbox",
                "Currency",
                "Date",
                "DateTime",
                "Email",
                "Number",
                "Percent",
                "Phone",
                "Picklist",
                "MultiselectPicklist",
                "Text",
                "TextArea",
                "LongTextArea",
                "Html",
                "Url",
                "Lookup",
                "MasterDetail",
            ),
        ),
        ArgumentField("required", ArgumentKind.BOOLEAN, "필수 여부예요."),
        ArgumentField("unique", ArgumentKind.BOOLEAN, "고유 값 여부예요."),
        ArgumentField("externalId", ArgumentKind.BOOLEAN, "외부 ID 여부예요."),
        ArgumentField("length", ArgumentKind.NUMBER, "텍스트 필드 길이예요."),
        ArgumentField("precision", ArgumentKind.NUMBER, "숫자 필드 전체 자릿수예요."),
        ArgumentField("scale", ArgumentKind.NUMBER, "숫자 필드 소수 자릿수예요."),
        ArgumentField("referenceTo", ArgumentKind.STRING, "Lookup/MasterDetail 대상 객체예요."),
        ArgumentField("relationshipLabel", ArgumentKind.STRING, "관계 라벨이에요."),
        ArgumentField("relationshipName", ArgumentKind.STRING, "관계 API 이름이에요."),
        ArgumentField(
            "deleteConstraint",
            ArgumentKind.STRING,
            "Lookup 대상이 삭제될 때의 동작이에요.",
            enum=("Cascade", "Restrict", "SetNull"),
        ),
        ArgumentField(
            "picklistValues",
            ArgumentKind.ARRAY,
            "선택 목록 값이에요. 각 항목은 {label, isDefault} 형태예요.",
            item_kind=ArgumentKind.OBJECT,
        ),
        ArgumentField("description", ArgumentKind.STRING, "필드 설명이에요."),
        ArgumentField(
            "grantAccessTo",
            ArgumentKind.ARRAY,
            "새 필드에 읽기/편집 권한을 줄 프로필 이름 목록이에요.",
            item_kind=ArgumentKind.STRING,
        ),
    ),
    arguments_type=ManageFieldArgs,
    handler=handle_manage_field,
)

MANAGE_FIELD_PERMISSIONS = OperationDescriptor(
    name="salesforce_manage_field_permissions",
    description="프로필별 필드 수준 보안(FLS)을 부여, 회수, 조회해요. 프로필을 주지 않으면 System Administrator에 적용해요.",
    fields=(
        ArgumentField(
            "operation",
            ArgumentKind.STRING,
            "수행할 작업이에요.",
            required=True,
            enum=("grant", "revoke", "view"),
        ),
        ArgumentField("objectName", ArgumentKind.STRING, "객체 API 이름이에요.", required=True),
        ArgumentField("fieldName", ArgumentKind.STRING, "필드 API 이름이에요.", required=True),
        ArgumentField(
            "profileNames",
            ArgumentKind.ARRAY,
            "대상 프로필 이름 목록이에요.",
            item_kind=ArgumentKind.STRING,
        ),
        ArgumentField("readable", ArgumentKind.BOOLEAN, "읽기 권한이에요. 기본값은 true예요."),
        ArgumentField("editable", ArgumentKind.BOOLEAN, "편집 권한이에요. 기본값은 true예요."),
    ),
    arguments_type=ManageFieldPermissionsArgs,
    handler=handle_manage_field_permissions,
)
