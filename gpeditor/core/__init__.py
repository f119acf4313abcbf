# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
GPEditor Core

Policy settings resolution and registry mapping:
registry accessor, policy type classifier, settings tree walker,
GPO identity resolver and the policy manager that composes them.
"""

from .classifier import classify
from .exceptions import (
    ConfigError,
    GroupPolicyError,
    OperationFailedError,
    RegistryAccessError,
    UnsupportedOperationError,
    ValueParseError,
)
from .identity import (
    DOMAIN_POLICY_NAME,
    LOCAL_POLICY_ID,
    LOCAL_POLICY_NAME,
    DomainScope,
    LocalScope,
    scope_for,
)
from .manager import GroupPolicyManager
from .models import (
    GroupPolicyObject,
    GroupPolicyStatus,
    OperationOutcome,
    OperationResult,
    PolicySetting,
    PolicyType,
    RegistryValue,
    RegistryValueKind,
)
from .registry import (
    POLICIES_ROOT,
    MemoryRegistryAccessor,
    RegistryAccessor,
    RegistryRoot,
    WindowsRegistryAccessor,
    create_accessor,
)
from .walker import SettingsTreeWalker

__all__ = [
    # Manager
    "GroupPolicyManager",
    # Models
    "GroupPolicyObject",
    "GroupPolicyStatus",
    "PolicySetting",
    "PolicyType",
    "RegistryValue",
    "RegistryValueKind",
    "OperationOutcome",
    "OperationResult",
    # Registry
    "RegistryAccessor",
    "RegistryRoot",
    "WindowsRegistryAccessor",
    "MemoryRegistryAccessor",
    "create_accessor",
    "POLICIES_ROOT",
    # Resolution
    "classify",
    "SettingsTreeWalker",
    "LocalScope",
    "DomainScope",
    "scope_for",
    "LOCAL_POLICY_ID",
    "LOCAL_POLICY_NAME",
    "DOMAIN_POLICY_NAME",
    # Errors
    "GroupPolicyError",
    "ConfigError",
    "ValueParseError",
    "UnsupportedOperationError",
    "OperationFailedError",
    "RegistryAccessError",
]
