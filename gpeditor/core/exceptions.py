# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
GPEditor Exception Hierarchy

Exception Hierarchy:
    GroupPolicyError (base)
    ├── ConfigError
    ├── ValueParseError
    ├── UnsupportedOperationError
    └── OperationFailedError
        └── RegistryAccessError

UnsupportedOperationError means the current scope can never perform the
operation. OperationFailedError means the store was touched and refused.
Placeholder (not implemented) operations are not exceptions; they are
reported through OperationResult.
"""

from typing import Any, Dict, Optional


class GroupPolicyError(Exception):
    """Base exception for all GPEditor errors"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        result = {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }

        if self.cause:
            result["cause"] = {
                "type": self.cause.__class__.__name__,
                "message": str(self.cause),
            }

        return result

    def __str__(self):
        base = self.message
        if self.details:
            base += f" | Details: {self.details}"
        if self.cause:
            base += f" | Caused by: {self.cause}"
        return base


class ConfigError(GroupPolicyError):
    """Configuration-related errors"""


class ValueParseError(GroupPolicyError):
    """A textual value could not be coerced into a registry value kind"""

    def __init__(self, message: str, value: Any = None, kind: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.value = value
        self.kind = kind


class UnsupportedOperationError(GroupPolicyError):
    """The operation can never succeed in this policy scope"""

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation


class OperationFailedError(GroupPolicyError):
    """The policy store rejected an attempted operation"""

    def __init__(
        self,
        message: str,
        gpo_id: Optional[str] = None,
        setting_name: Optional[str] = None,
        registry_path: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", None) or {}
        if gpo_id is not None:
            details.setdefault("gpo_id", gpo_id)
        if setting_name is not None:
            details.setdefault("setting_name", setting_name)
        if registry_path is not None:
            details.setdefault("registry_path", registry_path)
        super().__init__(message, details=details, **kwargs)
        self.gpo_id = gpo_id
        self.setting_name = setting_name
        self.registry_path = registry_path


class RegistryAccessError(OperationFailedError):
    """A registry call failed (permission denied, corrupt key, bad type)"""

    def __init__(self, message: str, root: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.root = root
        if root is not None:
            self.details.setdefault("root", root)
