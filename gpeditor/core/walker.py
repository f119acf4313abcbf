# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Settings Tree Walker

Pre-order traversal of a registry subtree: the values of a key come first
(in store enumeration order), then each subkey recursively. A key or value
that cannot be read contributes nothing, and the walk carries on with its
siblings.
"""

import logging
from typing import Any, Callable, Iterator, List, Optional, Tuple, TypeVar

from .classifier import classify
from .exceptions import GroupPolicyError, RegistryAccessError
from .models import PolicySetting
from .registry import RegistryAccessor, RegistryRoot, join_path, normalize_path

DEFAULT_MAX_DEPTH = 32

T = TypeVar("T")

# (root, key path, open handle) -> records found at that key
NodeReader = Callable[[RegistryRoot, str, Any], List[T]]


class SettingsTreeWalker:
    """Materializes PolicySetting records from a registry subtree."""

    def __init__(
        self,
        accessor: RegistryAccessor,
        max_depth: int = DEFAULT_MAX_DEPTH,
        logger: Optional[logging.Logger] = None,
    ):
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        self.accessor = accessor
        self.max_depth = max_depth
        self.logger = logger or logging.getLogger("gpedit.walker")

    def walk(self, root: RegistryRoot, start_path: str) -> List[PolicySetting]:
        """Collect every setting under start_path"""
        return list(self.iter_settings(root, start_path))

    def iter_settings(self, root: RegistryRoot, start_path: str) -> Iterator[PolicySetting]:
        yield from self._visit(RegistryRoot(root), normalize_path(start_path), 0, self._read_settings)

    def iter_value_locations(self, root: RegistryRoot, start_path: str) -> Iterator[Tuple[str, str]]:
        """
        (key path, value name) pairs in walk order.

        Value data is never read, so values of kinds the editor cannot
        decode are listed too.
        """
        yield from self._visit(RegistryRoot(root), normalize_path(start_path), 0, self._read_value_names)

    def find_value(self, root: RegistryRoot, start_path: str, name: str) -> Optional[PolicySetting]:
        """First setting named ``name`` in walk order (names compare case-insensitively)"""
        wanted = name.lower()
        for setting in self.iter_settings(root, start_path):
            if setting.registry_key.lower() == wanted:
                return setting
        return None

    def find_value_location(self, root: RegistryRoot, start_path: str, name: str) -> Optional[Tuple[str, str]]:
        """Key path and stored name of the first value called ``name``, whatever its kind"""
        wanted = name.lower()
        for path, value_name in self.iter_value_locations(root, start_path):
            if value_name.lower() == wanted:
                return path, value_name
        return None

    def _visit(self, root: RegistryRoot, path: str, depth: int, read: NodeReader) -> Iterator[T]:
        try:
            handle = self.accessor.open_for_read(root, path)
        except RegistryAccessError as e:
            self.logger.debug("Skipping unreadable key %s\\%s: %s", root.value, path, e.message)
            return

        if handle is None:
            return

        try:
            records = read(root, path, handle)
            subkeys = self._list_subkeys(root, path, handle)
        finally:
            self.accessor.close(handle)

        yield from records

        if not subkeys:
            return
        if depth >= self.max_depth:
            self.logger.warning(
                "Not descending below %s\\%s: depth limit %d reached", root.value, path, self.max_depth
            )
            return

        for subkey in subkeys:
            yield from self._visit(root, join_path(path, subkey), depth + 1, read)

    def _list_value_names(self, root: RegistryRoot, path: str, handle) -> List[str]:
        try:
            return self.accessor.list_value_names(handle)
        except RegistryAccessError as e:
            self.logger.debug("Cannot list values of %s\\%s: %s", root.value, path, e.message)
            return []

    def _list_subkeys(self, root: RegistryRoot, path: str, handle) -> List[str]:
        try:
            return self.accessor.list_subkey_names(handle)
        except RegistryAccessError as e:
            self.logger.debug("Cannot list subkeys of %s\\%s: %s", root.value, path, e.message)
            return []

    def _read_value_names(self, root: RegistryRoot, path: str, handle) -> List[Tuple[str, str]]:
        return [(path, name) for name in self._list_value_names(root, path, handle)]

    def _read_settings(self, root: RegistryRoot, path: str, handle) -> List[PolicySetting]:
        settings: List[PolicySetting] = []
        policy_type = classify(path)

        for name in self._list_value_names(root, path, handle):
            try:
                value = self.accessor.get_value(handle, name)
            except GroupPolicyError as e:
                # unreadable or undecodable data (RegistryAccessError, ValueParseError)
                self.logger.debug("Cannot read %s\\%s\\%s: %s", root.value, path, name, e.message)
                continue
            if value is None:
                self.logger.debug("Skipping %s\\%s\\%s: unsupported value kind", root.value, path, name)
                continue
            settings.append(
                PolicySetting(
                    name=name,
                    type=policy_type,
                    value=value,
                    is_enabled=True,
                    registry_path=path,
                    registry_key=name,
                )
            )

        return settings
