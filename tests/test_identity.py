# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from gpeditor.core.identity import (
    LOCAL_POLICY_ID,
    LOCAL_POLICY_NAME,
    DomainScope,
    LocalScope,
    resolve_domain_identity,
    resolve_local_identity,
    scope_for,
)
from gpeditor.core.models import GroupPolicyStatus, RegistryValue
from gpeditor.core.registry import MemoryRegistryAccessor, RegistryRoot

NOW = datetime(2025, 6, 1, 12, 0, 0)


def fixed_clock():
    return NOW


@pytest.mark.parametrize("domain", [None, "", "   "])
def test_empty_domain_is_local(domain):
    assert scope_for(domain) == LocalScope()


def test_domain_scope_strips_name():
    scope = scope_for("  corp.example.com ")
    assert scope == DomainScope("corp.example.com")
    assert scope.label == "corp.example.com"


def test_domain_scope_requires_name():
    with pytest.raises(ValueError):
        DomainScope("")


def test_local_identity_without_policies():
    gpo = resolve_local_identity(MemoryRegistryAccessor(), now=fixed_clock)
    assert gpo.id == LOCAL_POLICY_ID
    assert gpo.name == LOCAL_POLICY_NAME
    assert gpo.status is GroupPolicyStatus.ENABLED
    assert gpo.created_time == datetime.min
    assert gpo.modified_time == NOW
    assert gpo.domain


def test_local_identity_uses_key_write_time():
    store = MemoryRegistryAccessor()
    store.put(RegistryRoot.MACHINE, "SOFTWARE\\Policies", "X", RegistryValue.dword(1))
    gpo = resolve_local_identity(store, now=fixed_clock)
    assert gpo.modified_time == store.last_modified(RegistryRoot.MACHINE, "SOFTWARE\\Policies")


def test_domain_identity():
    first = resolve_domain_identity(DomainScope("corp"), now=fixed_clock)
    second = resolve_domain_identity(DomainScope("corp"), now=fixed_clock)

    assert first.domain == "corp"
    assert first.created_time == NOW - timedelta(days=30)
    assert first.modified_time == NOW - timedelta(days=1)
    # no directory lookup: a fresh id every time
    assert first.id != second.id
