# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Registry Accessor

Capability-set access to the two policy hives:
- RegistryRoot.MACHINE -> HKEY_LOCAL_MACHINE
- RegistryRoot.USER    -> HKEY_CURRENT_USER

Implementations:
- WindowsRegistryAccessor: the real store through winreg
- MemoryRegistryAccessor: in-process store with registry semantics
  (case-insensitive names, enumeration in insertion order)

Every OSError coming out of the store is converted to RegistryAccessError.
A missing key on open_for_read is not an error: it returns None.
"""

import logging
import sys
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from .exceptions import ConfigError, RegistryAccessError
from .models import RegistryValue

if sys.platform == "win32":
    import winreg
else:
    winreg = None

logger = logging.getLogger("gpedit.registry")

PATH_SEPARATOR = "\\"
POLICIES_ROOT = "SOFTWARE\\Policies"


class RegistryRoot(str, Enum):
    """Policy scope roots."""
    MACHINE = "HKLM"
    USER = "HKCU"


def normalize_path(path: str) -> str:
    """Strip stray separators and collapse doubled ones"""
    parts = [part for part in path.replace("/", PATH_SEPARATOR).split(PATH_SEPARATOR) if part]
    return PATH_SEPARATOR.join(parts)


def join_path(parent: str, child: str) -> str:
    if not parent:
        return normalize_path(child)
    return normalize_path(f"{parent}{PATH_SEPARATOR}{child}")


class RegistryAccessor(ABC):
    """
    Base class for policy store access.

    Handles returned by open_for_read/open_for_write must be released with
    close(); the reading()/writing() context managers do that for callers.
    """

    @abstractmethod
    def open_for_read(self, root: RegistryRoot, path: str) -> Optional[Any]:
        """Open an existing key, None if it does not exist"""

    @abstractmethod
    def open_for_write(self, root: RegistryRoot, path: str) -> Any:
        """Open a key for writing, creating missing segments"""

    @abstractmethod
    def list_value_names(self, handle: Any) -> List[str]:
        """Value names in store enumeration order"""

    @abstractmethod
    def list_subkey_names(self, handle: Any) -> List[str]:
        """Immediate subkey names in store enumeration order"""

    @abstractmethod
    def get_value(self, handle: Any, name: str) -> Optional[RegistryValue]:
        """Read a value, None when its storage kind is not supported"""

    @abstractmethod
    def set_value(self, handle: Any, name: str, value: RegistryValue) -> None:
        """Create or overwrite a value"""

    @abstractmethod
    def delete_value(self, handle: Any, name: str) -> bool:
        """Delete a value, False if it was not there"""

    @abstractmethod
    def close(self, handle: Any) -> None:
        """Release a handle"""

    def last_modified(self, root: RegistryRoot, path: str) -> Optional[datetime]:
        """Last write time of a key when the store exposes it"""
        return None

    @contextmanager
    def reading(self, root: RegistryRoot, path: str) -> Iterator[Optional[Any]]:
        handle = self.open_for_read(root, path)
        try:
            yield handle
        finally:
            if handle is not None:
                self.close(handle)

    @contextmanager
    def writing(self, root: RegistryRoot, path: str) -> Iterator[Any]:
        handle = self.open_for_write(root, path)
        try:
            yield handle
        finally:
            self.close(handle)


# =============================================================================
# Windows registry
# =============================================================================

# FILETIME counts 100ns intervals from this epoch
_FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)


def filetime_to_datetime(filetime: int) -> datetime:
    """Convert a FILETIME integer to a naive local datetime"""
    moment = _FILETIME_EPOCH + timedelta(microseconds=filetime // 10)
    return moment.astimezone().replace(tzinfo=None)


class WindowsRegistryAccessor(RegistryAccessor):
    """Policy store backed by the Windows registry."""

    def __init__(self):
        self.available = winreg is not None
        if not self.available:
            logger.debug("winreg unavailable on %s, registry reads will be empty", sys.platform)

    def _hive(self, root: RegistryRoot) -> int:
        root = RegistryRoot(root)
        if root is RegistryRoot.USER:
            return winreg.HKEY_CURRENT_USER
        return winreg.HKEY_LOCAL_MACHINE

    @contextmanager
    def _guard(self, action: str, root: Optional[RegistryRoot] = None, path: Optional[str] = None):
        try:
            yield
        except OSError as e:
            raise RegistryAccessError(
                f"Registry {action} failed: {e.strerror or e}",
                root=root.value if root is not None else None,
                registry_path=path,
                cause=e,
            ) from e

    def open_for_read(self, root: RegistryRoot, path: str) -> Optional[Any]:
        if not self.available:
            return None
        path = normalize_path(path)
        try:
            return winreg.OpenKey(self._hive(root), path, 0, winreg.KEY_READ)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise RegistryAccessError(
                f"Cannot open {root.value}\\{path}: {e.strerror or e}",
                root=root.value,
                registry_path=path,
                cause=e,
            ) from e

    def open_for_write(self, root: RegistryRoot, path: str) -> Any:
        path = normalize_path(path)
        if not self.available:
            raise RegistryAccessError(
                "Windows registry is not available on this platform",
                root=root.value,
                registry_path=path,
            )
        with self._guard("create", root, path):
            return winreg.CreateKeyEx(
                self._hive(root), path, 0, winreg.KEY_READ | winreg.KEY_WRITE
            )

    def list_value_names(self, handle: Any) -> List[str]:
        with self._guard("value enumeration"):
            _, value_count, _ = winreg.QueryInfoKey(handle)
            return [winreg.EnumValue(handle, index)[0] for index in range(value_count)]

    def list_subkey_names(self, handle: Any) -> List[str]:
        with self._guard("subkey enumeration"):
            subkey_count, _, _ = winreg.QueryInfoKey(handle)
            return [winreg.EnumKey(handle, index) for index in range(subkey_count)]

    def get_value(self, handle: Any, name: str) -> Optional[RegistryValue]:
        with self._guard(f"read of value '{name}'"):
            data, reg_type = winreg.QueryValueEx(handle, name)
        return RegistryValue.from_native(data, reg_type)

    def set_value(self, handle: Any, name: str, value: RegistryValue) -> None:
        with self._guard(f"write of value '{name}'"):
            winreg.SetValueEx(handle, name, 0, value.kind.reg_type, value.to_native())

    def delete_value(self, handle: Any, name: str) -> bool:
        try:
            winreg.DeleteValue(handle, name)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise RegistryAccessError(
                f"Registry delete of value '{name}' failed: {e.strerror or e}",
                setting_name=name,
                cause=e,
            ) from e

    def close(self, handle: Any) -> None:
        handle.Close()

    def last_modified(self, root: RegistryRoot, path: str) -> Optional[datetime]:
        with self.reading(root, path) as handle:
            if handle is None:
                return None
            with self._guard("key info query", root, path):
                _, _, filetime = winreg.QueryInfoKey(handle)
        return filetime_to_datetime(filetime)


# =============================================================================
# In-memory registry
# =============================================================================

class _MemoryKey:
    """One key node. Children and values are keyed by lower-cased name."""

    def __init__(self, name: str):
        self.name = name
        self.values: Dict[str, Tuple[str, RegistryValue]] = {}
        self.subkeys: Dict[str, "_MemoryKey"] = {}
        self.modified = datetime.now()

    def touch(self):
        self.modified = datetime.now()


class _MemoryHandle:
    def __init__(self, root: RegistryRoot, path: str, node: _MemoryKey):
        self.root = root
        self.path = path
        self.node = node
        self.closed = False


class MemoryRegistryAccessor(RegistryAccessor):
    """
    In-process policy store.

    Used by the test-suite and by the ``memory`` backend for dry runs.
    ``deny(root, path)`` makes a key refuse to open, like a key whose ACL
    excludes the current user.
    """

    def __init__(self):
        self._roots = {root: _MemoryKey(root.value) for root in RegistryRoot}
        self._denied: Set[Tuple[RegistryRoot, str]] = set()
        self._lock = threading.RLock()

    def deny(self, root: RegistryRoot, path: str):
        with self._lock:
            self._denied.add((RegistryRoot(root), normalize_path(path).lower()))

    def allow(self, root: RegistryRoot, path: str):
        with self._lock:
            self._denied.discard((RegistryRoot(root), normalize_path(path).lower()))

    def put(self, root: RegistryRoot, path: str, name: str, value: RegistryValue):
        """Write a value, creating the path"""
        with self.writing(root, path) as handle:
            self.set_value(handle, name, value)

    def _check_access(self, root: RegistryRoot, path: str):
        if (root, path.lower()) in self._denied:
            raise RegistryAccessError(
                f"Access is denied: {root.value}\\{path}",
                root=root.value,
                registry_path=path,
                cause=PermissionError(13, "Access is denied"),
            )

    def _find(self, root: RegistryRoot, path: str) -> Optional[_MemoryKey]:
        node = self._roots[root]
        for segment in path.split(PATH_SEPARATOR) if path else []:
            node = node.subkeys.get(segment.lower())
            if node is None:
                return None
        return node

    def _handle(self, handle: _MemoryHandle) -> _MemoryKey:
        if handle.closed:
            raise RegistryAccessError("Handle is closed", root=handle.root.value, registry_path=handle.path)
        return handle.node

    def open_for_read(self, root: RegistryRoot, path: str) -> Optional[_MemoryHandle]:
        root = RegistryRoot(root)
        path = normalize_path(path)
        with self._lock:
            node = self._find(root, path)
            if node is None:
                return None
            self._check_access(root, path)
            return _MemoryHandle(root, path, node)

    def open_for_write(self, root: RegistryRoot, path: str) -> _MemoryHandle:
        root = RegistryRoot(root)
        path = normalize_path(path)
        with self._lock:
            node = self._roots[root]
            walked = ""
            for segment in path.split(PATH_SEPARATOR) if path else []:
                walked = join_path(walked, segment)
                self._check_access(root, walked)
                child = node.subkeys.get(segment.lower())
                if child is None:
                    child = _MemoryKey(segment)
                    node.subkeys[segment.lower()] = child
                    node.touch()
                node = child
            self._check_access(root, path)
            return _MemoryHandle(root, path, node)

    def list_value_names(self, handle: _MemoryHandle) -> List[str]:
        with self._lock:
            return [name for name, _ in self._handle(handle).values.values()]

    def list_subkey_names(self, handle: _MemoryHandle) -> List[str]:
        with self._lock:
            return [child.name for child in self._handle(handle).subkeys.values()]

    def get_value(self, handle: _MemoryHandle, name: str) -> Optional[RegistryValue]:
        with self._lock:
            entry = self._handle(handle).values.get(name.lower())
        if entry is None:
            raise RegistryAccessError(
                f"Value '{name}' not found",
                root=handle.root.value,
                registry_path=handle.path,
                setting_name=name,
                cause=FileNotFoundError(2, "The system cannot find the file specified"),
            )
        return entry[1]

    def set_value(self, handle: _MemoryHandle, name: str, value: RegistryValue) -> None:
        with self._lock:
            node = self._handle(handle)
            existing = node.values.get(name.lower())
            # overwrite keeps the original casing and enumeration slot
            stored_name = existing[0] if existing else name
            node.values[name.lower()] = (stored_name, value)
            node.touch()

    def delete_value(self, handle: _MemoryHandle, name: str) -> bool:
        with self._lock:
            node = self._handle(handle)
            if node.values.pop(name.lower(), None) is None:
                return False
            node.touch()
            return True

    def close(self, handle: _MemoryHandle) -> None:
        handle.closed = True

    def last_modified(self, root: RegistryRoot, path: str) -> Optional[datetime]:
        with self._lock:
            node = self._find(RegistryRoot(root), normalize_path(path))
            return node.modified if node is not None else None


def create_accessor(backend: str = "windows") -> RegistryAccessor:
    """Build the accessor named by the ``registry.backend`` setting"""
    if backend == "windows":
        return WindowsRegistryAccessor()
    if backend == "memory":
        return MemoryRegistryAccessor()
    raise ConfigError(f"Unknown registry backend: {backend}", details={"backend": backend})
