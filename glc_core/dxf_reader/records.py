"""Tolerant DXF tag-stream reader."""

import re
from typing import List, Optional

from .elements import TagRecord

_LEADING_INT = re.compile(r"^[+-]?\d+")


def parse_group_code(line: str) -> Optional[int]:
    """Parse the leading integer of a group-code line, or None."""
    match = _LEADING_INT.match(line.strip())
    if match is None:
        return None
    return int(match.group(0))


def parse_float(value: Optional[str], default: float = float("nan")) -> float:
    """Parse a DXF numeric value; ``default`` for a missing value, nan for bad text."""
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError:
        return float("nan")


def parse_int(value: Optional[str], default: int = 0) -> int:
    """Parse a DXF integer value (flags, counts); unparsable text yields ``default``."""
    if value is None:
        return default
    code = parse_group_code(value)
    return default if code is None else code


def read_records(text: str) -> List[TagRecord]:
    """Split DXF text into ordered (code, value) records.

    Any line-ending convention is accepted. Lines are consumed two at a
    time; a pair whose code line is not an integer is dropped and a trailing
    unpaired line is ignored.
    """
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = normalized.split("\n")
    records: List[TagRecord] = []
    for i in range(0, len(lines) - 1, 2):
        code = parse_group_code(lines[i])
        if code is None:
            continue
        records.append(TagRecord(code=code, value=lines[i + 1]))
    return records
