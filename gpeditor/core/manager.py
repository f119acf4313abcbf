# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Group Policy Manager

Stateless orchestrator over the policy store. The scope (local machine or
a domain) is fixed at construction and picks the handler that implements
every operation:

- Local scope: reads and writes SOFTWARE\\Policies under HKLM and HKCU.
  GPO create/delete/link/unlink raise UnsupportedOperationError.
- Domain scope: placeholder. Listing yields a synthetic GPO and every
  mutation reports OperationOutcome.NOT_IMPLEMENTED.

Public operations are coroutines; the registry work runs on the default
executor so an event loop is never blocked by store I/O.
"""

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, TypeVar

from .exceptions import (
    GroupPolicyError,
    OperationFailedError,
    RegistryAccessError,
    UnsupportedOperationError,
)
from .identity import (
    Clock,
    DomainScope,
    LocalScope,
    LOCAL_POLICY_ID,
    PolicyScope,
    resolve_domain_identity,
    resolve_local_identity,
    scope_for,
)
from .models import GroupPolicyObject, OperationResult, PolicySetting, PolicyType, RegistryValue
from .registry import POLICIES_ROOT, RegistryAccessor, RegistryRoot, WindowsRegistryAccessor
from .walker import DEFAULT_MAX_DEPTH, SettingsTreeWalker

T = TypeVar("T")


# =============================================================================
# Scope handlers
# =============================================================================

class _ScopeHandler(ABC):
    """Operations as implemented for one policy scope."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    @abstractmethod
    def list_gpos(self) -> List[GroupPolicyObject]: ...

    @abstractmethod
    def create_gpo(self, name: str, description: Optional[str]) -> OperationResult: ...

    @abstractmethod
    def delete_gpo(self, gpo_id: str) -> OperationResult: ...

    @abstractmethod
    def get_settings(self, gpo_id: str) -> List[PolicySetting]: ...

    @abstractmethod
    def set_setting(self, gpo_id: str, setting: PolicySetting) -> OperationResult: ...

    @abstractmethod
    def remove_setting(self, gpo_id: str, setting_name: str) -> OperationResult: ...

    @abstractmethod
    def link_gpo(self, gpo_id: str, organizational_unit: str) -> OperationResult: ...

    @abstractmethod
    def unlink_gpo(self, gpo_id: str, organizational_unit: str) -> OperationResult: ...


class _LocalPolicyHandler(_ScopeHandler):
    """Local Computer Policy, backed by the registry policy hives."""

    def __init__(
        self,
        accessor: RegistryAccessor,
        walker: SettingsTreeWalker,
        policies_root: str,
        clock: Optional[Clock],
        logger: logging.Logger,
    ):
        super().__init__(logger)
        self.accessor = accessor
        self.walker = walker
        self.policies_root = policies_root
        self.clock = clock

    def list_gpos(self) -> List[GroupPolicyObject]:
        return [resolve_local_identity(self.accessor, self.policies_root, self.clock)]

    def create_gpo(self, name, description):
        raise UnsupportedOperationError("Cannot create new local group policies", operation="create_gpo")

    def delete_gpo(self, gpo_id):
        raise UnsupportedOperationError("Cannot delete local group policies", operation="delete_gpo")

    def link_gpo(self, gpo_id, organizational_unit):
        raise UnsupportedOperationError("Cannot link local group policies to OUs", operation="link_gpo")

    def unlink_gpo(self, gpo_id, organizational_unit):
        raise UnsupportedOperationError("Cannot unlink local group policies from OUs", operation="unlink_gpo")

    def get_settings(self, gpo_id: str) -> List[PolicySetting]:
        if gpo_id.upper() != LOCAL_POLICY_ID:
            self.logger.warning("GPO id %s is not the local policy id, reading local settings anyway", gpo_id)
        settings = self.walker.walk(RegistryRoot.MACHINE, self.policies_root)
        settings.extend(self.walker.walk(RegistryRoot.USER, self.policies_root))
        return settings

    def set_setting(self, gpo_id: str, setting: PolicySetting) -> OperationResult:
        root = RegistryRoot.USER if setting.type is PolicyType.USER_CONFIGURATION else RegistryRoot.MACHINE
        context = dict(
            gpo_id=gpo_id,
            setting_name=setting.registry_key,
            registry_path=setting.registry_path,
        )

        if not isinstance(setting.value, RegistryValue):
            error = OperationFailedError(
                f"Setting '{setting.registry_key}' has no typed registry value", **context
            )
            return OperationResult.failure(error.message, error, root=root.value, **context)

        try:
            with self.accessor.writing(root, setting.registry_path) as handle:
                self.accessor.set_value(handle, setting.registry_key, setting.value)
        except (RegistryAccessError, ValueError) as e:
            # winreg raises ValueError for names or paths with embedded NULs
            reason = e.message if isinstance(e, RegistryAccessError) else str(e)
            error = OperationFailedError(
                f"Failed to set policy setting '{setting.registry_key}': {reason}", cause=e, **context
            )
            self.logger.warning(str(error))
            return OperationResult.failure(error.message, error, root=root.value, **context)

        self.logger.info(
            "Set %s\\%s\\%s = %s (%s)",
            root.value, setting.registry_path, setting.registry_key, setting.value, setting.value_type.value,
        )
        return OperationResult.ok(
            f"Setting '{setting.registry_key}' updated", root=root.value, **context
        )

    def remove_setting(self, gpo_id: str, setting_name: str) -> OperationResult:
        for root in (RegistryRoot.MACHINE, RegistryRoot.USER):
            # match on value names so kinds the walker skips can still be removed
            match = self.walker.find_value_location(root, self.policies_root, setting_name)
            if match is None:
                continue

            registry_path, value_name = match
            context = dict(gpo_id=gpo_id, setting_name=setting_name, registry_path=registry_path)
            try:
                with self.accessor.writing(root, registry_path) as handle:
                    deleted = self.accessor.delete_value(handle, value_name)
            except RegistryAccessError as e:
                error = OperationFailedError(
                    f"Failed to remove policy setting '{setting_name}': {e.message}", cause=e, **context
                )
                self.logger.warning(str(error))
                return OperationResult.failure(error.message, error, root=root.value, **context)

            if deleted:
                self.logger.info("Removed %s\\%s\\%s", root.value, registry_path, value_name)
                return OperationResult.ok(f"Setting '{setting_name}' removed", root=root.value, **context)

        return OperationResult.missing(
            f"Setting '{setting_name}' not found", gpo_id=gpo_id, setting_name=setting_name
        )


class _DomainPolicyHandler(_ScopeHandler):
    """Domain GPOs. No directory integration: placeholders only."""

    def __init__(self, scope: DomainScope, clock: Optional[Clock], logger: logging.Logger):
        super().__init__(logger)
        self.scope = scope
        self.clock = clock

    def _placeholder(self, operation: str, **details) -> OperationResult:
        message = f"{operation} is not implemented for domain policies"
        self.logger.info("%s (domain %s)", message, self.scope.domain)
        return OperationResult.placeholder(message, domain=self.scope.domain, **details)

    def list_gpos(self) -> List[GroupPolicyObject]:
        try:
            return [resolve_domain_identity(self.scope, self.clock)]
        except Exception as e:
            self.logger.warning("Cannot enumerate GPOs of domain %s: %s", self.scope.domain, e, exc_info=True)
            return []

    def create_gpo(self, name, description):
        return self._placeholder("Creating a GPO", gpo_name=name)

    def delete_gpo(self, gpo_id):
        return self._placeholder("Deleting a GPO", gpo_id=gpo_id)

    def get_settings(self, gpo_id: str) -> List[PolicySetting]:
        self.logger.debug("Domain policy settings are not read (GPO %s)", gpo_id)
        return []

    def set_setting(self, gpo_id, setting):
        return self._placeholder("Setting a policy value", gpo_id=gpo_id, setting_name=setting.registry_key)

    def remove_setting(self, gpo_id, setting_name):
        return self._placeholder("Removing a policy value", gpo_id=gpo_id, setting_name=setting_name)

    def link_gpo(self, gpo_id, organizational_unit):
        return self._placeholder("Linking a GPO", gpo_id=gpo_id, organizational_unit=organizational_unit)

    def unlink_gpo(self, gpo_id, organizational_unit):
        return self._placeholder("Unlinking a GPO", gpo_id=gpo_id, organizational_unit=organizational_unit)


# =============================================================================
# Manager
# =============================================================================

class GroupPolicyManager:
    """
    Entry point for Group Policy operations.

    Args:
        domain: Domain name, empty or None for local policy
        accessor: Registry accessor (defaults to the Windows registry)
        policies_root: Root path walked in both hives
        max_depth: Depth cap for registry walks
        logger: Logger to report through (silent by default)
        clock: Callable returning "now", injectable for tests
    """

    def __init__(
        self,
        domain: Optional[str] = None,
        accessor: Optional[RegistryAccessor] = None,
        *,
        policies_root: str = POLICIES_ROOT,
        max_depth: int = DEFAULT_MAX_DEPTH,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Clock] = None,
    ):
        self.scope: PolicyScope = scope_for(domain)
        self.logger = logger or logging.getLogger("gpedit.manager")
        self.accessor = accessor or WindowsRegistryAccessor()

        if isinstance(self.scope, LocalScope):
            walker = SettingsTreeWalker(self.accessor, max_depth=max_depth, logger=self.logger)
            self._handler: _ScopeHandler = _LocalPolicyHandler(
                self.accessor, walker, policies_root, clock, self.logger
            )
        else:
            self._handler = _DomainPolicyHandler(self.scope, clock, self.logger)

    @property
    def is_local_policy(self) -> bool:
        return isinstance(self.scope, LocalScope)

    @property
    def domain(self) -> Optional[str]:
        return None if self.is_local_policy else self.scope.domain

    async def _run(self, func: Callable[..., T], *args) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    # ---- GPO management ----

    async def get_all_gpos(self) -> List[GroupPolicyObject]:
        """All GPOs of the scope: the local policy, or the domain placeholder"""
        self.logger.debug("Listing GPOs (%s)", self.scope.label)
        try:
            return await self._run(self._handler.list_gpos)
        except GroupPolicyError:
            raise
        except Exception as e:
            raise GroupPolicyError(
                f"Failed to retrieve GPOs: {e}", details={"scope": self.scope.label}, cause=e
            ) from e

    async def get_gpo_by_id(self, gpo_id: str) -> Optional[GroupPolicyObject]:
        wanted = gpo_id.lower()
        for gpo in await self.get_all_gpos():
            if gpo.id.lower() == wanted:
                return gpo
        return None

    async def get_gpo_by_name(self, gpo_name: str) -> Optional[GroupPolicyObject]:
        wanted = gpo_name.lower()
        for gpo in await self.get_all_gpos():
            if gpo.name.lower() == wanted:
                return gpo
        return None

    async def create_gpo(self, name: str, description: Optional[str] = None) -> OperationResult:
        self.logger.debug("Creating GPO %s", name)
        return await self._run(self._handler.create_gpo, name, description)

    async def delete_gpo(self, gpo_id: str) -> OperationResult:
        self.logger.debug("Deleting GPO %s", gpo_id)
        return await self._run(self._handler.delete_gpo, gpo_id)

    async def update_gpo(self, gpo: GroupPolicyObject) -> OperationResult:
        self.logger.debug("Updating GPO %s", gpo.id)
        return OperationResult.placeholder("Updating a GPO is not implemented", gpo_id=gpo.id)

    # ---- Policy settings ----

    async def get_policy_settings(self, gpo_id: str) -> List[PolicySetting]:
        self.logger.debug("Reading policy settings of GPO %s", gpo_id)
        try:
            return await self._run(self._handler.get_settings, gpo_id)
        except GroupPolicyError:
            raise
        except Exception as e:
            raise GroupPolicyError(
                f"Failed to retrieve policy settings: {e}", details={"gpo_id": gpo_id}, cause=e
            ) from e

    async def set_policy_setting(self, gpo_id: str, setting: PolicySetting) -> OperationResult:
        self.logger.debug("Setting %s\\%s in GPO %s", setting.registry_path, setting.registry_key, gpo_id)
        return await self._run(self._handler.set_setting, gpo_id, setting)

    async def remove_policy_setting(self, gpo_id: str, setting_name: str) -> OperationResult:
        self.logger.debug("Removing %s from GPO %s", setting_name, gpo_id)
        return await self._run(self._handler.remove_setting, gpo_id, setting_name)

    # ---- Linking ----

    async def link_gpo(self, gpo_id: str, organizational_unit: str) -> OperationResult:
        return await self._run(self._handler.link_gpo, gpo_id, organizational_unit)

    async def unlink_gpo(self, gpo_id: str, organizational_unit: str) -> OperationResult:
        return await self._run(self._handler.unlink_gpo, gpo_id, organizational_unit)
