# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
GPO identity resolution

Local scope has exactly one GPO with a fixed id. Domain scope has no
directory lookup: it yields a placeholder whose id is regenerated on each
call, so ids from one listing are not found by a later lookup.
"""

import logging
import os
import platform
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from .exceptions import RegistryAccessError
from .models import GroupPolicyObject, GroupPolicyStatus
from .registry import POLICIES_ROOT, RegistryAccessor, RegistryRoot

logger = logging.getLogger("gpedit.identity")

LOCAL_POLICY_ID = "LOCAL_COMPUTER_POLICY"
LOCAL_POLICY_NAME = "Local Computer Policy"
DOMAIN_POLICY_NAME = "Default Domain Policy"

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class LocalScope:
    """The machine's own policy."""

    @property
    def label(self) -> str:
        return "Local"


@dataclass(frozen=True)
class DomainScope:
    """Policies of a directory domain."""

    domain: str

    def __post_init__(self):
        domain = (self.domain or "").strip()
        if not domain:
            raise ValueError("DomainScope requires a non-empty domain name")
        object.__setattr__(self, "domain", domain)

    @property
    def label(self) -> str:
        return self.domain


PolicyScope = Union[LocalScope, DomainScope]


def scope_for(domain: Optional[str]) -> PolicyScope:
    """Empty or missing domain means local policy"""
    if domain is None or not domain.strip():
        return LocalScope()
    return DomainScope(domain)


def machine_name() -> str:
    return platform.node() or os.environ.get("COMPUTERNAME", "") or "localhost"


def resolve_local_identity(
    accessor: RegistryAccessor,
    policies_root: str = POLICIES_ROOT,
    now: Optional[Clock] = None,
) -> GroupPolicyObject:
    """Build the Local Computer Policy GPO"""
    clock = now or datetime.now
    modified = None
    try:
        modified = accessor.last_modified(RegistryRoot.MACHINE, policies_root)
    except RegistryAccessError as e:
        logger.debug("Cannot read last write time of %s: %s", policies_root, e.message)

    return GroupPolicyObject(
        id=LOCAL_POLICY_ID,
        name=LOCAL_POLICY_NAME,
        domain=machine_name(),
        # the registry does not record when local policy was created
        created_time=datetime.min,
        modified_time=modified or clock(),
        status=GroupPolicyStatus.ENABLED,
    )


def resolve_domain_identity(scope: DomainScope, now: Optional[Clock] = None) -> GroupPolicyObject:
    """Placeholder domain GPO, new id every call"""
    current = (now or datetime.now)()
    return GroupPolicyObject(
        id=str(uuid.uuid4()),
        name=DOMAIN_POLICY_NAME,
        domain=scope.domain,
        created_time=current - timedelta(days=30),
        modified_time=current - timedelta(days=1),
        status=GroupPolicyStatus.ENABLED,
    )
