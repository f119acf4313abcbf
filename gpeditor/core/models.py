# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Group Policy domain models

- GroupPolicyObject: one GPO as seen by the manager (recomputed per call)
- PolicySetting: one registry-backed policy value
- RegistryValue: tagged value keyed by its RegistryValueKind
- OperationResult: success / not implemented / not found / failed outcome
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from .exceptions import ValueParseError


# =============================================================================
# Enums
# =============================================================================

class GroupPolicyStatus(str, Enum):
    """GPO status values."""
    ENABLED = "Enabled"
    DISABLED = "Disabled"
    NOT_CONFIGURED = "NotConfigured"
    PARTIALLY_CONFIGURED = "PartiallyConfigured"


class PolicyType(str, Enum):
    """Policy setting categories."""
    USER_CONFIGURATION = "UserConfiguration"
    COMPUTER_CONFIGURATION = "ComputerConfiguration"
    SECURITY_SETTINGS = "SecuritySettings"
    ADMINISTRATIVE_TEMPLATES = "AdministrativeTemplates"
    SOFTWARE_INSTALLATION = "SoftwareInstallation"
    SCRIPTS = "Scripts"
    FOLDER_REDIRECTION = "FolderRedirection"


class RegistryValueKind(str, Enum):
    """Native registry storage kinds supported by the editor."""
    STRING = "String"
    EXPAND_STRING = "ExpandString"
    MULTI_STRING = "MultiString"
    BINARY = "Binary"
    DWORD = "DWord"
    QWORD = "QWord"

    @property
    def reg_type(self) -> int:
        """Native REG_* constant"""
        return _KIND_TO_REG_TYPE[self]

    @classmethod
    def from_reg_type(cls, reg_type: int) -> Optional["RegistryValueKind"]:
        """Map a native REG_* constant, None for kinds the editor does not handle"""
        return _REG_TYPE_TO_KIND.get(reg_type)

    @classmethod
    def from_name(cls, name: str) -> "RegistryValueKind":
        """Case-insensitive lookup by value name ("dword", "String", ...)"""
        for kind in cls:
            if kind.value.lower() == name.strip().lower():
                return kind
        raise ValueParseError(f"Unknown registry value kind: {name}", value=name)


# winreg constants, duplicated so the models import on every platform
REG_SZ = 1
REG_EXPAND_SZ = 2
REG_BINARY = 3
REG_DWORD = 4
REG_MULTI_SZ = 7
REG_QWORD = 11

_KIND_TO_REG_TYPE = {
    RegistryValueKind.STRING: REG_SZ,
    RegistryValueKind.EXPAND_STRING: REG_EXPAND_SZ,
    RegistryValueKind.MULTI_STRING: REG_MULTI_SZ,
    RegistryValueKind.BINARY: REG_BINARY,
    RegistryValueKind.DWORD: REG_DWORD,
    RegistryValueKind.QWORD: REG_QWORD,
}
_REG_TYPE_TO_KIND = {v: k for k, v in _KIND_TO_REG_TYPE.items()}

MULTI_STRING_SEPARATOR = ";"

_TRUE_WORDS = {"true", "1", "yes", "on"}
_FALSE_WORDS = {"false", "0", "no", "off"}


# =============================================================================
# Registry values
# =============================================================================

RegistryData = Union[str, int, bytes, Tuple[str, ...]]


@dataclass(frozen=True)
class RegistryValue:
    """
    A registry value tagged with its storage kind.

    The data is normalized on construction so every consumer can rely on
    the python type implied by ``kind``:

    - String / ExpandString: str
    - MultiString: tuple of str
    - Binary: bytes
    - DWord: int in [0, 2**32)
    - QWord: int in [0, 2**64)
    """

    kind: RegistryValueKind
    data: RegistryData

    def __post_init__(self):
        object.__setattr__(self, "kind", RegistryValueKind(self.kind))
        object.__setattr__(self, "data", _normalize(self.kind, self.data))

    # ---- constructors ----

    @classmethod
    def string(cls, text: str) -> "RegistryValue":
        return cls(RegistryValueKind.STRING, text)

    @classmethod
    def expand_string(cls, text: str) -> "RegistryValue":
        return cls(RegistryValueKind.EXPAND_STRING, text)

    @classmethod
    def multi_string(cls, items) -> "RegistryValue":
        return cls(RegistryValueKind.MULTI_STRING, tuple(items))

    @classmethod
    def binary(cls, blob: bytes) -> "RegistryValue":
        return cls(RegistryValueKind.BINARY, blob)

    @classmethod
    def dword(cls, number: int) -> "RegistryValue":
        return cls(RegistryValueKind.DWORD, number)

    @classmethod
    def qword(cls, number: int) -> "RegistryValue":
        return cls(RegistryValueKind.QWORD, number)

    @classmethod
    def boolean(cls, flag: bool) -> "RegistryValue":
        """Booleans are stored as DWord 1/0, as policy templates do."""
        return cls(RegistryValueKind.DWORD, 1 if flag else 0)

    @classmethod
    def from_native(cls, data: Any, reg_type: int) -> Optional["RegistryValue"]:
        """Build from a winreg (data, type) pair, None for unsupported kinds"""
        kind = RegistryValueKind.from_reg_type(reg_type)
        if kind is None:
            return None
        # winreg reports zero-length data as None
        if data is None:
            if kind is RegistryValueKind.MULTI_STRING:
                data = ()
            elif kind is RegistryValueKind.BINARY:
                data = b""
        return cls(kind, data)

    @classmethod
    def infer(cls, data: Any) -> "RegistryValue":
        """Pick a kind from the python type of ``data``"""
        if isinstance(data, RegistryValue):
            return data
        if isinstance(data, bool):
            return cls.boolean(data)
        if isinstance(data, int):
            if -(1 << 31) <= data < (1 << 32):
                return cls.dword(data)
            return cls.qword(data)
        if isinstance(data, (bytes, bytearray, memoryview)):
            return cls.binary(bytes(data))
        if isinstance(data, (list, tuple)):
            return cls.multi_string(data)
        if data is None:
            return cls.string("")
        return cls.string(str(data))

    @classmethod
    def parse(cls, text: str, kind: RegistryValueKind) -> "RegistryValue":
        """
        Coerce a textual value into the given kind.

        Inverse of ``to_text``. Integers accept base prefixes (``0x10``) and
        the words true/false; binary is hex; multi-strings split on ``;``.
        There is no escaping, so a MultiString item containing ``;`` comes
        back as several items.
        """
        kind = RegistryValueKind(kind)
        try:
            if kind in (RegistryValueKind.DWORD, RegistryValueKind.QWORD):
                return cls(kind, _parse_int(text))
            if kind is RegistryValueKind.BINARY:
                return cls(kind, bytes.fromhex(text))
            if kind is RegistryValueKind.MULTI_STRING:
                items = tuple(text.split(MULTI_STRING_SEPARATOR)) if text else ()
                return cls(kind, items)
            return cls(kind, text)
        except ValueParseError:
            raise
        except (TypeError, ValueError) as e:
            raise ValueParseError(
                f"Failed to parse value '{text}' as {kind.value}",
                value=text,
                kind=kind.value,
                cause=e,
            ) from e

    @classmethod
    def parse_integer(cls, text: str) -> "RegistryValue":
        """DWord when the number fits 32 bits, QWord otherwise"""
        try:
            number = int(text.strip(), 0)
        except ValueError as e:
            raise ValueParseError(f"Failed to parse value '{text}' as Integer", value=text, kind="Integer", cause=e) from e
        if not -(1 << 63) <= number < (1 << 64):
            raise ValueParseError(f"{number} does not fit in a 64-bit integer", value=text, kind="Integer")
        return cls.infer(number)

    @classmethod
    def parse_boolean(cls, text: str) -> "RegistryValue":
        word = text.strip().lower()
        if word in _TRUE_WORDS:
            return cls.boolean(True)
        if word in _FALSE_WORDS:
            return cls.boolean(False)
        raise ValueParseError(f"Failed to parse value '{text}' as Boolean", value=text, kind="Boolean")

    # ---- conversions ----

    def to_native(self) -> Any:
        """Data in the shape winreg.SetValueEx expects"""
        if self.kind is RegistryValueKind.MULTI_STRING:
            return list(self.data)
        return self.data

    def to_text(self) -> str:
        if self.kind is RegistryValueKind.MULTI_STRING:
            return MULTI_STRING_SEPARATOR.join(self.data)
        if self.kind is RegistryValueKind.BINARY:
            return self.data.hex()
        return str(self.data)

    def __str__(self):
        return self.to_text()


def _parse_int(text: str) -> int:
    word = text.strip().lower()
    if word == "true":
        return 1
    if word == "false":
        return 0
    return int(word, 0)


def _normalize(kind: RegistryValueKind, data: Any) -> RegistryData:
    if kind in (RegistryValueKind.STRING, RegistryValueKind.EXPAND_STRING):
        if not isinstance(data, str):
            raise ValueParseError(f"{kind.value} value must be str, got {type(data).__name__}", value=data, kind=kind.value)
        return data

    if kind is RegistryValueKind.MULTI_STRING:
        if isinstance(data, str):
            raise ValueParseError("MultiString value must be a sequence of str", value=data, kind=kind.value)
        items = tuple(data)
        if not all(isinstance(item, str) for item in items):
            raise ValueParseError("MultiString value must be a sequence of str", value=data, kind=kind.value)
        return items

    if kind is RegistryValueKind.BINARY:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise ValueParseError(f"Binary value must be bytes, got {type(data).__name__}", value=data, kind=kind.value)
        return bytes(data)

    bits = 32 if kind is RegistryValueKind.DWORD else 64
    if isinstance(data, bool):
        data = int(data)
    if not isinstance(data, int):
        raise ValueParseError(f"{kind.value} value must be int, got {type(data).__name__}", value=data, kind=kind.value)
    if not -(1 << (bits - 1)) <= data < (1 << bits):
        raise ValueParseError(f"{data} does not fit in a {bits}-bit {kind.value}", value=data, kind=kind.value)
    # negative values are kept as their two's complement bit pattern
    return data & ((1 << bits) - 1)


# =============================================================================
# Entities
# =============================================================================

@dataclass
class PolicySetting:
    """
    A concrete registry-backed policy value.

    ``registry_path`` + ``registry_key`` identify the storage location
    under the scope root. Settings found by enumeration are enabled;
    a freshly constructed one is not.
    """

    name: str = ""
    description: str = ""
    type: PolicyType = PolicyType.ADMINISTRATIVE_TEMPLATES
    value: RegistryValue = field(default_factory=lambda: RegistryValue.string(""))
    is_enabled: bool = False
    registry_path: str = ""
    registry_key: str = ""

    @property
    def value_type(self) -> RegistryValueKind:
        return self.value.kind


@dataclass
class GroupPolicyObject:
    """One GPO. Live view, rebuilt from the store on every call."""

    id: str
    name: str
    domain: str
    created_time: datetime
    modified_time: datetime
    status: GroupPolicyStatus = GroupPolicyStatus.NOT_CONFIGURED
    settings: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.id:
            raise ValueError("GroupPolicyObject.id must not be empty")


# =============================================================================
# Operation results
# =============================================================================

class OperationOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    NOT_IMPLEMENTED = "not_implemented"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationResult:
    """
    Outcome of a mutating manager operation.

    Truthy only on success, so ``if await manager.set_policy_setting(...)``
    reads like the boolean contract, while ``outcome`` keeps a placeholder
    (never retry) apart from a store failure (maybe retry).
    """

    outcome: OperationOutcome
    message: str = ""
    error: Optional[BaseException] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.outcome is OperationOutcome.SUCCEEDED

    @property
    def succeeded(self) -> bool:
        return self.outcome is OperationOutcome.SUCCEEDED

    @property
    def not_implemented(self) -> bool:
        return self.outcome is OperationOutcome.NOT_IMPLEMENTED

    @property
    def not_found(self) -> bool:
        return self.outcome is OperationOutcome.NOT_FOUND

    @property
    def failed(self) -> bool:
        return self.outcome is OperationOutcome.FAILED

    @classmethod
    def ok(cls, message: str = "", **details) -> "OperationResult":
        return cls(OperationOutcome.SUCCEEDED, message, details=details)

    @classmethod
    def placeholder(cls, message: str, **details) -> "OperationResult":
        return cls(OperationOutcome.NOT_IMPLEMENTED, message, details=details)

    @classmethod
    def missing(cls, message: str, **details) -> "OperationResult":
        return cls(OperationOutcome.NOT_FOUND, message, details=details)

    @classmethod
    def failure(cls, message: str, error: Optional[BaseException] = None, **details) -> "OperationResult":
        return cls(OperationOutcome.FAILED, message, error=error, details=details)
