# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Output formatting for gpedit commands

Formats: table (human readable), json (transfer models, camelCase keys),
csv (header row + one row per record).
"""

import csv
import io
import json
from datetime import datetime
from typing import List

from gpeditor.api import GroupPolicyInfo, PolicySettingInfo

OUTPUT_FORMATS = ["table", "json", "csv"]


def truncate(value: str, max_length: int) -> str:
    """Shorten to max_length, marking the cut with '...'"""
    if not value or len(value) <= max_length:
        return value
    return value[: max_length - 3] + "..."


def _timestamp(moment: datetime, fmt: str = "%Y-%m-%d %H:%M") -> str:
    if moment == datetime.min:
        return "unknown"
    return moment.strftime(fmt)


def _csv(header: List[str], rows: List[List[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue().rstrip("\n")


def format_gpos(gpos: List[GroupPolicyInfo], output_format: str = "table") -> str:
    if output_format == "json":
        return json.dumps([gpo.model_dump(mode="json", by_alias=True) for gpo in gpos], indent=2)

    if output_format == "csv":
        return _csv(
            ["Id", "Name", "Domain", "CreatedTime", "ModifiedTime", "Status"],
            [
                [
                    gpo.id,
                    gpo.name,
                    gpo.domain,
                    gpo.created_time.isoformat(),
                    gpo.modified_time.isoformat(),
                    gpo.status,
                ]
                for gpo in gpos
            ],
        )

    lines = [
        f"{'ID':<38} {'Name':<30} {'Domain':<20} {'Created':<20}",
        "-" * 110,
    ]
    for gpo in gpos:
        lines.append(
            f"{gpo.id:<38} {truncate(gpo.name, 29):<30} "
            f"{truncate(gpo.domain, 19):<20} {_timestamp(gpo.created_time):<20}"
        )
    return "\n".join(lines)


def format_gpo_details(gpo: GroupPolicyInfo, output_format: str = "table") -> str:
    if output_format == "json":
        return gpo.model_dump_json(by_alias=True, indent=2)

    return "\n".join(
        [
            f"ID: {gpo.id}",
            f"Name: {gpo.name}",
            f"Domain: {gpo.domain}",
            f"Created: {_timestamp(gpo.created_time, '%Y-%m-%d %H:%M:%S')}",
            f"Modified: {_timestamp(gpo.modified_time, '%Y-%m-%d %H:%M:%S')}",
            f"Status: {gpo.status}",
            f"Settings Count: {gpo.settings_count}",
        ]
    )


def format_settings(settings: List[PolicySettingInfo], output_format: str = "table") -> str:
    if output_format == "json":
        return json.dumps([setting.model_dump(by_alias=True) for setting in settings], indent=2)

    if output_format == "csv":
        return _csv(
            ["Name", "Value", "Type", "ValueType", "RegistryPath"],
            [
                [s.name, s.value, s.type, s.value_type, s.registry_path]
                for s in settings
            ],
        )

    lines = [
        f"{'Name':<40} {'Value':<30} {'Type':<15}",
        "-" * 87,
    ]
    for setting in settings:
        lines.append(
            f"{truncate(setting.name, 39):<40} {truncate(setting.value, 29):<30} {setting.type:<15}"
        )
    return "\n".join(lines)
