# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
GPEditor API

Flat transfer models and a thin async facade over GroupPolicyManager for
the CLI and other consumers. Entities are projected into pydantic models
whose JSON form uses camelCase keys.
"""

import json
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from gpeditor.core.exceptions import ValueParseError
from gpeditor.core.logger import get_logger, operation_timer
from gpeditor.core.manager import GroupPolicyManager
from gpeditor.core.models import (
    GroupPolicyObject,
    OperationResult,
    PolicySetting,
    PolicyType,
    RegistryValue,
    RegistryValueKind,
)

logger = get_logger("api")


# =============================================================================
# Transfer Models
# =============================================================================

class GroupPolicyInfo(BaseModel):
    """Simplified GPO information for API consumers."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    name: str = ""
    domain: str = ""
    created_time: datetime = Field(default=datetime.min, alias="createdTime")
    modified_time: datetime = Field(default=datetime.min, alias="modifiedTime")
    status: str = ""
    settings_count: int = Field(default=0, alias="settingsCount", ge=0)


class PolicySettingInfo(BaseModel):
    """Simplified policy setting information for API consumers."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    description: str = ""
    type: str = PolicyType.ADMINISTRATIVE_TEMPLATES.value
    value: str = ""
    is_enabled: bool = Field(default=False, alias="isEnabled")
    registry_path: str = Field(default="", alias="registryPath")
    registry_key: str = Field(default="", alias="registryKey")
    value_type: str = Field(default=RegistryValueKind.STRING.value, alias="valueType")


_SETTINGS_ADAPTER = TypeAdapter(List[PolicySettingInfo])


def to_gpo_info(gpo: GroupPolicyObject) -> GroupPolicyInfo:
    return GroupPolicyInfo(
        id=gpo.id,
        name=gpo.name,
        domain=gpo.domain,
        created_time=gpo.created_time,
        modified_time=gpo.modified_time,
        status=gpo.status.value,
        settings_count=len(gpo.settings),
    )


def to_setting_info(setting: PolicySetting) -> PolicySettingInfo:
    return PolicySettingInfo(
        name=setting.name,
        description=setting.description,
        type=setting.type.value,
        value=setting.value.to_text(),
        is_enabled=setting.is_enabled,
        registry_path=setting.registry_path,
        registry_key=setting.registry_key,
        value_type=setting.value_type.value,
    )


def from_setting_info(info: PolicySettingInfo) -> PolicySetting:
    """Rebuild a PolicySetting, coercing the text value to its declared kind"""
    try:
        policy_type = PolicyType(info.type)
    except ValueError as e:
        raise ValueParseError(f"Unknown policy type: {info.type}", value=info.type, cause=e) from e
    kind = RegistryValueKind.from_name(info.value_type)
    return PolicySetting(
        name=info.name,
        description=info.description,
        type=policy_type,
        value=RegistryValue.parse(info.value, kind),
        is_enabled=info.is_enabled,
        registry_path=info.registry_path,
        registry_key=info.registry_key or info.name,
    )


# =============================================================================
# API Facade
# =============================================================================

class GroupPolicyApi:
    """
    High-level Group Policy API.

    Args:
        domain: Domain name, None for local policy
        manager: Pre-built manager (other arguments are then ignored)
        **manager_options: Passed to GroupPolicyManager
    """

    def __init__(self, domain: Optional[str] = None, manager: Optional[GroupPolicyManager] = None, **manager_options):
        logger.debug(f"Creating GroupPolicyApi for domain: {domain or 'Local'}")
        self.manager = manager or GroupPolicyManager(domain, **manager_options)

    # ---- GPO management ----

    async def get_all_gpos(self) -> List[GroupPolicyInfo]:
        with operation_timer("get_all_gpos"):
            gpos = await self.manager.get_all_gpos()
        return [to_gpo_info(gpo) for gpo in gpos]

    async def get_gpo_by_id(self, gpo_id: str) -> Optional[GroupPolicyInfo]:
        with operation_timer("get_gpo_by_id"):
            gpo = await self.manager.get_gpo_by_id(gpo_id)
        return to_gpo_info(gpo) if gpo else None

    async def get_gpo_by_name(self, gpo_name: str) -> Optional[GroupPolicyInfo]:
        with operation_timer("get_gpo_by_name"):
            gpo = await self.manager.get_gpo_by_name(gpo_name)
        return to_gpo_info(gpo) if gpo else None

    async def create_gpo(self, name: str, description: Optional[str] = None) -> OperationResult:
        with operation_timer("create_gpo"):
            return await self.manager.create_gpo(name, description)

    async def delete_gpo(self, gpo_id: str) -> OperationResult:
        with operation_timer("delete_gpo"):
            return await self.manager.delete_gpo(gpo_id)

    # ---- Policy settings ----

    async def get_policy_settings(self, gpo_id: str) -> List[PolicySettingInfo]:
        with operation_timer("get_policy_settings"):
            settings = await self.manager.get_policy_settings(gpo_id)
        return [to_setting_info(setting) for setting in settings]

    async def set_policy_setting_simple(
        self,
        gpo_id: str,
        setting_name: str,
        value: Any,
        registry_path: str,
        policy_type: str = "Computer",
    ) -> OperationResult:
        """
        Set a value by name.

        ``policy_type`` "User" targets the current-user hive, anything else
        the machine hive. The value kind is inferred from the python type.
        """
        setting = PolicySetting(
            name=setting_name,
            type=(
                PolicyType.USER_CONFIGURATION
                if policy_type.lower() == "user"
                else PolicyType.COMPUTER_CONFIGURATION
            ),
            value=RegistryValue.infer(value),
            is_enabled=True,
            registry_path=registry_path,
            registry_key=setting_name,
        )
        with operation_timer("set_policy_setting"):
            return await self.manager.set_policy_setting(gpo_id, setting)

    async def set_policy_setting_info(self, gpo_id: str, info: PolicySettingInfo) -> OperationResult:
        setting = from_setting_info(info)
        with operation_timer("set_policy_setting"):
            return await self.manager.set_policy_setting(gpo_id, setting)

    async def remove_policy_setting(self, gpo_id: str, setting_name: str) -> OperationResult:
        with operation_timer("remove_policy_setting"):
            return await self.manager.remove_policy_setting(gpo_id, setting_name)

    # ---- Linking ----

    async def link_gpo(self, gpo_id: str, organizational_unit: str) -> OperationResult:
        with operation_timer("link_gpo"):
            return await self.manager.link_gpo(gpo_id, organizational_unit)

    async def unlink_gpo(self, gpo_id: str, organizational_unit: str) -> OperationResult:
        with operation_timer("unlink_gpo"):
            return await self.manager.unlink_gpo(gpo_id, organizational_unit)

    # ---- Serialization ----

    @staticmethod
    def serialize_gpo(gpo: GroupPolicyInfo) -> str:
        return gpo.model_dump_json(by_alias=True, indent=2)

    @staticmethod
    def deserialize_gpo(text: str) -> GroupPolicyInfo:
        return GroupPolicyInfo.model_validate_json(text)

    @staticmethod
    def serialize_gpos(gpos: List[GroupPolicyInfo]) -> str:
        return json.dumps([gpo.model_dump(mode="json", by_alias=True) for gpo in gpos], indent=2)

    @staticmethod
    def serialize_policy_settings(settings: List[PolicySettingInfo]) -> str:
        return _SETTINGS_ADAPTER.dump_json(settings, by_alias=True, indent=2).decode("utf-8")

    @staticmethod
    def deserialize_policy_settings(text: str) -> List[PolicySettingInfo]:
        return _SETTINGS_ADAPTER.validate_json(text)
