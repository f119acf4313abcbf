# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""Policy type classification from registry paths"""

from .models import PolicyType

USER_SCOPE_MARKER = "currentuser"
MACHINE_SCOPE_MARKER = "localmachine"


def classify(path: str) -> PolicyType:
    """
    Map a registry path to its policy category.

    The user marker wins over the machine marker; anything else is an
    administrative template. Discovery never yields the other categories.
    """
    lowered = path.lower()
    if USER_SCOPE_MARKER in lowered:
        return PolicyType.USER_CONFIGURATION
    if MACHINE_SCOPE_MARKER in lowered:
        return PolicyType.COMPUTER_CONFIGURATION
    return PolicyType.ADMINISTRATIVE_TEMPLATES
