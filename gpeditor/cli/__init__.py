# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""GPEditor CLI helpers - output formatting for the gpedit commands"""

from .formatters import (
    OUTPUT_FORMATS,
    format_gpo_details,
    format_gpos,
    format_settings,
    truncate,
)

__all__ = [
    "OUTPUT_FORMATS",
    "format_gpo_details",
    "format_gpos",
    "format_settings",
    "truncate",
]
